from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import enum, uuid


def new_id() -> str:
    return str(uuid.uuid4())

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentStatus(str, enum.Enum):
    available="available"; busy="busy"; offline="offline"

class CustomerStatus(str, enum.Enum):
    waiting="waiting"; in_call="in-call"

class CallType(str, enum.Enum):
    video="video"; audio="audio"


@dataclass
class Agent:
    id: str
    connection_id: str
    peer_id: Optional[str]
    name: str
    status: AgentStatus = AgentStatus.available
    current_call: Optional[str] = None

    def view(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "peer_id": self.peer_id,
            "current_call": self.current_call,
        }


@dataclass
class Customer:
    connection_id: str
    peer_id: str
    name: str
    call_type: CallType = CallType.video
    has_video: bool = True
    has_audio: bool = True
    id: str = field(default_factory=new_id)
    joined_at: datetime = field(default_factory=utcnow)
    status: CustomerStatus = CustomerStatus.waiting

    def wait_seconds(self, now: datetime) -> int:
        return max(0, int((now - self.joined_at).total_seconds()))


@dataclass
class CallParticipant:
    agent_id: str
    peer_id: Optional[str]


@dataclass
class Call:
    customer_id: str
    customer_peer_id: str
    call_type: CallType
    agents: list[CallParticipant] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    started_at: datetime = field(default_factory=utcnow)

    def agent_ids(self) -> list[str]:
        return [a.agent_id for a in self.agents]

    def has_participant(self, identity: str) -> bool:
        return identity == self.customer_id or identity in self.agent_ids()
