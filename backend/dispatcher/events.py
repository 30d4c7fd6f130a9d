"""Inbound side of the event bridge.

Maps wire event names onto lifecycle operations. Every precondition failure
and every malformed payload ends here as a log line: the sender gets no
rejection event.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .errors import DispatchError, InvalidState, NotFound
from .lifecycle import CallLifecycleManager
from .models import AgentStatus
from .schemas import (
    AgentAccept, AgentRegister, AgentStatusUpdate, CallAddAgent, CallEnd, CustomerJoin,
)

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """What the dispatcher remembers about one transport connection."""
    connection_id: str
    customer_id: Optional[str] = None
    agent_id: Optional[str] = None


class EventRouter:
    def __init__(self, lifecycle: CallLifecycleManager) -> None:
        self.lifecycle = lifecycle
        self._handlers: dict[str, Callable[[Session, dict], None]] = {
            "customer:join": self.on_customer_join,
            "customer:cancel": self.on_customer_cancel,
            "agent:register": self.on_agent_register,
            "agent:status": self.on_agent_status,
            "agent:accept": self.on_agent_accept,
            "call:add-agent": self.on_call_add_agent,
            "call:end": self.on_call_end,
        }

    @property
    def events(self) -> list[str]:
        return list(self._handlers)

    def handle(self, session: Session, event: Any, data: Any) -> bool:
        """Run one inbound event to completion. Returns False if it was dropped."""
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logger.warning("[WS] unknown event %r from %s", event, session.connection_id)
            return False
        try:
            handler(session, data if data is not None else {})
        except ValidationError as e:
            logger.warning("[WS] bad %s payload from %s: %s", event, session.connection_id, e.errors())
            return False
        except DispatchError as e:
            logger.info("[DISPATCH] dropped %s from %s: %s: %s",
                        event, session.connection_id, type(e).__name__, e)
            return False
        return True

    def disconnect(self, session: Session) -> None:
        if session.customer_id:
            try:
                self.lifecycle.disconnect_customer(session.customer_id)
            except DispatchError as e:
                logger.debug("[DISPATCH] customer %s already gone: %s", session.customer_id, e)
            session.customer_id = None
        if session.agent_id:
            try:
                self.lifecycle.disconnect_agent(session.agent_id, session.connection_id)
            except DispatchError as e:
                logger.debug("[DISPATCH] agent %s not reconciled: %s", session.agent_id, e)
            session.agent_id = None

    # -------- handlers --------
    def on_customer_join(self, session: Session, data: dict) -> None:
        payload = CustomerJoin.model_validate(data)
        if session.customer_id and session.customer_id in self.lifecycle.state.customers:
            raise InvalidState(f"connection already owns customer {session.customer_id}")
        customer = self.lifecycle.join_customer(
            session.connection_id,
            peer_id=payload.peer_id,
            name=payload.name,
            call_type=payload.call_type,
            has_video=payload.has_video,
            has_audio=payload.has_audio,
        )
        session.customer_id = customer.id

    def on_customer_cancel(self, session: Session, data: dict) -> None:
        if not session.customer_id:
            raise NotFound("no customer on this connection")
        self.lifecycle.cancel_customer(session.customer_id)
        session.customer_id = None

    def on_agent_register(self, session: Session, data: dict) -> None:
        payload = AgentRegister.model_validate(data)
        if session.agent_id and session.agent_id != payload.agent_id:
            try:
                self.lifecycle.disconnect_agent(session.agent_id, session.connection_id)
            except DispatchError as e:
                logger.debug("[DISPATCH] previous agent %s not reconciled: %s", session.agent_id, e)
            session.agent_id = None
        agent = self.lifecycle.register_agent(
            session.connection_id,
            agent_id=payload.agent_id,
            peer_id=payload.peer_id,
            name=payload.name,
        )
        session.agent_id = agent.id

    def on_agent_status(self, session: Session, data: dict) -> None:
        payload = AgentStatusUpdate.model_validate(data)
        self.lifecycle.set_agent_status(self._agent_id(session), AgentStatus(payload.status))

    def on_agent_accept(self, session: Session, data: dict) -> None:
        payload = AgentAccept.model_validate(data)
        self.lifecycle.accept(self._agent_id(session), payload.customer_id)

    def on_call_add_agent(self, session: Session, data: dict) -> None:
        payload = CallAddAgent.model_validate(data)
        self.lifecycle.add_agent(payload.call_id, payload.target_agent_id)

    def on_call_end(self, session: Session, data: dict) -> None:
        payload = CallEnd.model_validate(data)
        self.lifecycle.end(payload.call_id)

    def _agent_id(self, session: Session) -> str:
        if not session.agent_id:
            raise NotFound("no agent registered on this connection")
        agent = self.lifecycle.state.agents.get(session.agent_id)
        if agent.connection_id != session.connection_id:
            raise InvalidState(f"agent {session.agent_id} was taken over by another connection")
        return session.agent_id
