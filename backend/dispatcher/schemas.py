# Inbound event payloads. Both snake_case and the camelCase keys sent by the
# browser clients (peerId, callType, ...) are accepted.
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .models import CallType


class EventPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

class CustomerJoin(EventPayload):
    peer_id: str
    name: Optional[str] = None
    call_type: CallType = CallType.video
    has_video: bool = True
    has_audio: bool = True

class AgentRegister(EventPayload):
    agent_id: Optional[str] = None
    peer_id: Optional[str] = None
    name: Optional[str] = None

class AgentStatusUpdate(EventPayload):
    status: Literal["available", "offline"]

class AgentAccept(EventPayload):
    customer_id: str

class CallAddAgent(EventPayload):
    call_id: str
    target_agent_id: str

class CallEnd(EventPayload):
    call_id: str


# -------- HTTP --------
class MediaTokenRequest(EventPayload):
    identity: str
    call_id: str
