import asyncio
import contextlib
import json
import logging
from typing import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, HTTPException, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from . import deps
from .events import EventRouter, Session
from .lifecycle import CallLifecycleManager
from .notifier import ConnectionManager
from .schemas import MediaTokenRequest

logger = logging.getLogger(__name__)

# ---------- FastAPI lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # startup: one state owner per process
    logging.basicConfig(level=deps.LOG_LEVEL, format="[%(asctime)s] %(levelname)s %(name)s %(message)s")
    connections = ConnectionManager()
    lifecycle = CallLifecycleManager(connections)
    app.state.connections = connections
    app.state.lifecycle = lifecycle
    app.state.router = EventRouter(lifecycle)
    yield
    # shutdown: all state is in memory, nothing to flush

app = FastAPI(title="Call Center Dispatcher", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=deps.CORS_ORIGINS, allow_credentials="*" not in deps.CORS_ORIGINS,
    allow_methods=["*"], allow_headers=["*"],
)

def get_lifecycle(request: Request) -> CallLifecycleManager:
    return request.app.state.lifecycle

# -------- Routes --------
# Handlers are async so they run on the event loop that owns the state.
@app.get("/health")
async def health(lifecycle: CallLifecycleManager = Depends(get_lifecycle)):
    state = lifecycle.state
    return {
        "ok": True,
        "agents": len(state.agents),
        "waiting": len(state.queue),
        "active_calls": len(state.calls),
    }

@app.get("/api/queue")
async def queue_status(lifecycle: CallLifecycleManager = Depends(get_lifecycle)):
    return lifecycle.queue_info()

@app.get("/api/agents")
async def agent_roster(lifecycle: CallLifecycleManager = Depends(get_lifecycle)):
    return lifecycle.agents_info()

@app.post("/media/token")
async def media_token(req: MediaTokenRequest, lifecycle: CallLifecycleManager = Depends(get_lifecycle)):
    if not deps.media_configured():
        raise HTTPException(status_code=503, detail="media server not configured")
    state = lifecycle.state
    call = state.calls.find(req.call_id)
    if call is None or not call.has_participant(req.identity):
        raise HTTPException(status_code=404, detail="not a participant of this call")

    participant = state.agents.find(req.identity) or state.customers.find(req.identity)
    name = participant.name if participant else None
    token = deps.make_media_token(identity=req.identity, name=name, room=call.id)
    return {"token": token, "url": deps.LIVEKIT_URL, "room": call.id}

# -------- Event socket --------
@app.websocket("/ws")
async def event_socket(websocket: WebSocket):
    connections: ConnectionManager = websocket.app.state.connections
    router: EventRouter = websocket.app.state.router

    connection_id = await connections.connect(websocket)
    session = Session(connection_id=connection_id)
    writer = asyncio.create_task(connections.pump(connection_id))
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                logger.warning("[WS] non-text frame from %s", connection_id)
                continue
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("[WS] non-JSON frame from %s", connection_id)
                continue
            if not isinstance(frame, dict):
                logger.warning("[WS] frame from %s is not an object", connection_id)
                continue
            router.handle(session, frame.get("event"), frame.get("data"))
    finally:
        # Unregister first: notifications to this connection become stale.
        connections.disconnect(connection_id)
        router.disconnect(session)
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer
