# backend/dispatcher/deps.py
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from livekit import api as lk_api

# Load .env from repo root or backend/.env
root_env = Path(__file__).resolve().parents[2] / ".env"
backend_env = Path(__file__).resolve().parents[1] / ".env"
for p in (root_env, backend_env):
    if p.exists():
        load_dotenv(p, override=False)

HOST = os.getenv("DISPATCHER_HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

DEFAULT_CUSTOMER_NAME = os.getenv("DEFAULT_CUSTOMER_NAME", "Kunde")
DEFAULT_AGENT_NAME = os.getenv("DEFAULT_AGENT_NAME", "Mitarbeiter")
ESTIMATED_MINUTES_PER_POSITION = int(os.getenv("ESTIMATED_MINUTES_PER_POSITION", "3"))

LIVEKIT_URL = os.getenv("LIVEKIT_URL")
LIVEKIT_API_KEY = os.getenv("LIVEKIT_API_KEY")
LIVEKIT_API_SECRET = os.getenv("LIVEKIT_API_SECRET")


def media_configured() -> bool:
    return bool(LIVEKIT_API_KEY and LIVEKIT_API_SECRET)


def make_media_token(identity: str, name: Optional[str], room: str) -> str:
    """Mint a LiveKit join token; the room is the call id."""
    token = (
        lk_api.AccessToken(api_key=LIVEKIT_API_KEY, api_secret=LIVEKIT_API_SECRET)
        .with_identity(identity)
        .with_name(name or identity)
        .with_grants(lk_api.VideoGrants(room_join=True, room=room))
        .to_jwt()
    )
    return token
