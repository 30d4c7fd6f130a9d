import uvicorn

from . import deps

if __name__ == "__main__":
    print(f"Dispatcher running on port {deps.PORT}")
    print(f"Event socket: ws://localhost:{deps.PORT}/ws")
    uvicorn.run("dispatcher.main:app", host=deps.HOST, port=deps.PORT, log_level=deps.LOG_LEVEL.lower())
