"""Call lifecycle: the only writer of agent status, ``current_call`` and
customer status.

Customer journey: waiting -> in-call -> removed.
Call: active -> (conferenced) -> ended.

Every operation raises a ``DispatchError`` subclass when its preconditions
fail and leaves state untouched in that case.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from . import deps
from .engine import AssignmentEngine
from .errors import InvalidState
from .models import (
    Agent, AgentStatus, Call, CallParticipant, CallType, Customer, CustomerStatus, new_id, utcnow,
)
from .notifier import AGENTS_GROUP, CUSTOMERS_GROUP, Notifier
from .state import DispatcherState

logger = logging.getLogger(__name__)


class CallLifecycleManager:
    def __init__(self, notifier: Notifier, clock: Callable[[], datetime] = utcnow,
                 minutes_per_position: int = deps.ESTIMATED_MINUTES_PER_POSITION) -> None:
        self.notifier = notifier
        self.state = DispatcherState(notifier, clock)
        self.engine = AssignmentEngine(self.state, notifier)
        self.minutes_per_position = minutes_per_position

    # -------- views --------
    def queue_info(self) -> dict:
        return self.state.queue_info()

    def agents_info(self) -> list[dict]:
        return self.state.agents_info()

    def _broadcast_queue(self) -> None:
        self.notifier.broadcast(AGENTS_GROUP, "queue:updated", self.queue_info())

    def _broadcast_agents(self) -> None:
        self.notifier.broadcast(AGENTS_GROUP, "agents:updated", self.agents_info())

    def try_assign(self):
        return self.engine.try_assign()

    # -------- customers --------
    def join_customer(self, connection_id: str, peer_id: str, name: Optional[str] = None,
                      call_type: CallType = CallType.video, has_video: bool = True,
                      has_audio: bool = True) -> Customer:
        self.notifier.join(connection_id, CUSTOMERS_GROUP)
        customer = Customer(
            connection_id=connection_id,
            peer_id=peer_id,
            name=name or deps.DEFAULT_CUSTOMER_NAME,
            call_type=call_type,
            has_video=has_video,
            has_audio=has_audio,
            joined_at=self.state.clock(),
        )
        self.state.customers.add(customer)
        position = self.state.queue.enqueue(customer)
        self.notifier.deliver(connection_id, "customer:queued", {
            "customer_id": customer.id,
            "position": position,
            "estimated_wait": position * self.minutes_per_position,
        })
        logger.info("[QUEUE] customer %s joined at position %d", customer.id, position)

        self._broadcast_queue()
        self.try_assign()
        return customer

    def cancel_customer(self, customer_id: str) -> None:
        customer = self.state.customers.get(customer_id)
        if customer.status != CustomerStatus.waiting:
            raise InvalidState(f"customer {customer_id} is {customer.status.value}")
        self.state.queue.remove(customer_id)
        self.state.customers.remove(customer_id)
        logger.info("[QUEUE] customer %s cancelled", customer_id)

        self._broadcast_queue()
        self.try_assign()

    # -------- agents --------
    def register_agent(self, connection_id: str, agent_id: Optional[str] = None,
                       peer_id: Optional[str] = None, name: Optional[str] = None) -> Agent:
        self.notifier.join(connection_id, AGENTS_GROUP)
        existing = self.state.agents.find(agent_id) if agent_id else None

        agent = Agent(
            id=agent_id or new_id(),
            connection_id=connection_id,
            peer_id=peer_id,
            name=name or deps.DEFAULT_AGENT_NAME,
        )
        self.state.agents.register(agent)
        if existing is not None and existing.connection_id != connection_id:
            self.notifier.leave(existing.connection_id, AGENTS_GROUP)
        self.notifier.deliver(connection_id, "agent:registered", {
            "agent_id": agent.id,
            "queue": self.queue_info(),
        })
        logger.info("[DISPATCH] agent %s registered", agent.id)

        if existing is not None and existing.current_call in self.state.calls:
            # The replaced record still holds the call; the new one starts free.
            self.notifier.deliver(existing.connection_id, "call:ended", {"call_id": existing.current_call})
            self.end(existing.current_call)
        else:
            self._broadcast_agents()
            self.try_assign()
        return agent

    def set_agent_status(self, agent_id: str, status: AgentStatus) -> None:
        agent = self.state.agents.get(agent_id)
        if status == AgentStatus.busy:
            raise InvalidState("busy is only entered by accepting or joining a call")
        if agent.current_call is not None:
            raise InvalidState(f"agent {agent_id} is in call {agent.current_call}")
        self.state.agents.set_status(agent_id, status)
        logger.info("[DISPATCH] agent %s is %s", agent_id, status.value)

        self._broadcast_agents()
        if status == AgentStatus.available:
            self.try_assign()

    # -------- calls --------
    def accept(self, agent_id: str, customer_id: str) -> Call:
        customer = self.state.customers.get(customer_id)
        agent = self.state.agents.get(agent_id)
        if customer.status != CustomerStatus.waiting or customer_id not in self.state.queue:
            raise InvalidState(f"customer {customer_id} is not waiting")
        if agent.status != AgentStatus.available:
            raise InvalidState(f"agent {agent_id} is {agent.status.value}")

        call = Call(
            customer_id=customer.id,
            customer_peer_id=customer.peer_id,
            call_type=customer.call_type,
            agents=[CallParticipant(agent_id=agent.id, peer_id=agent.peer_id)],
            started_at=self.state.clock(),
        )
        agent.status = AgentStatus.busy
        agent.current_call = call.id
        customer.status = CustomerStatus.in_call
        self.state.queue.remove(customer.id)
        self.state.calls.add(call)
        logger.info("[CALL] %s started: agent %s, customer %s", call.id, agent.id, customer.id)

        self.notifier.deliver(agent.connection_id, "call:start", {
            "call_id": call.id,
            "customer_peer_id": customer.peer_id,
            "customer_name": customer.name,
            "call_type": customer.call_type.value,
            "customer_has_video": customer.has_video,
            "customer_has_audio": customer.has_audio,
        })
        self.notifier.deliver(customer.connection_id, "call:connected", {
            "call_id": call.id,
            "agent_peer_id": agent.peer_id,
            "agent_name": agent.name,
        })
        self._broadcast_queue()
        self._broadcast_agents()
        self.try_assign()
        return call

    def add_agent(self, call_id: str, target_agent_id: str) -> Call:
        call = self.state.calls.get(call_id)
        target = self.state.agents.get(target_agent_id)
        if target.status != AgentStatus.available:
            raise InvalidState(f"agent {target_agent_id} is {target.status.value}")

        existing = list(call.agents)
        target.status = AgentStatus.busy
        target.current_call = call.id
        call.agents.append(CallParticipant(agent_id=target.id, peer_id=target.peer_id))
        logger.info("[CALL] %s conferenced agent %s (%d agents)", call.id, target.id, len(call.agents))

        self.notifier.deliver(target.connection_id, "call:join", {
            "call_id": call.id,
            "customer_peer_id": call.customer_peer_id,
            "existing_agents": [p.peer_id for p in existing],
            "call_type": call.call_type.value,
        })
        joined = {
            "call_id": call.id,
            "new_agent_peer_id": target.peer_id,
            "new_agent_name": target.name,
        }
        for participant in existing:
            agent = self.state.agents.find(participant.agent_id)
            if agent is not None:
                self.notifier.deliver(agent.connection_id, "call:agent-joined", joined)
        customer = self.state.customers.find(call.customer_id)
        if customer is not None:
            self.notifier.deliver(customer.connection_id, "call:agent-joined", joined)

        self._broadcast_agents()
        return call

    def end(self, call_id: str) -> Call:
        call = self.state.calls.get(call_id)
        ended = {"call_id": call.id}

        for participant in call.agents:
            agent = self.state.agents.find(participant.agent_id)
            if agent is None or agent.current_call != call.id:
                continue
            agent.status = AgentStatus.available
            agent.current_call = None
            self.notifier.deliver(agent.connection_id, "call:ended", ended)

        customer = self.state.customers.find(call.customer_id)
        if customer is not None:
            self.notifier.deliver(customer.connection_id, "call:ended", ended)
            self.state.queue.remove(customer.id)
            self.state.customers.remove(customer.id)

        self.state.calls.remove(call.id)
        logger.info("[CALL] %s ended", call.id)

        self._broadcast_agents()
        self.try_assign()
        return call

    # -------- reconciliation --------
    def disconnect_customer(self, customer_id: str) -> None:
        customer = self.state.customers.get(customer_id)
        if customer.status == CustomerStatus.in_call:
            call = self.state.calls.find_by_customer(customer_id)
            if call is not None:
                self.end(call.id)
        removed = self.state.queue.remove(customer_id)
        self.state.customers.remove(customer_id)
        logger.info("[QUEUE] customer %s disconnected", customer_id)

        self._broadcast_queue()
        if removed:
            self.try_assign()

    def disconnect_agent(self, agent_id: str, connection_id: Optional[str] = None) -> None:
        agent = self.state.agents.get(agent_id)
        if connection_id is not None and agent.connection_id != connection_id:
            raise InvalidState(f"agent {agent_id} re-registered on another connection")

        # Drop the record first so the freed call is never offered back to it.
        self.state.agents.remove(agent_id)
        if agent.current_call is not None and agent.current_call in self.state.calls:
            self.end(agent.current_call)
        logger.info("[DISPATCH] agent %s disconnected", agent_id)

        self._broadcast_agents()
