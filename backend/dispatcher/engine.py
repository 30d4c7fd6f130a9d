"""Offer selection.

``try_assign`` pairs the queue head with the first available agent and sends
that agent an advisory offer. Nothing is reserved: the customer stays queued
and the agent stays available until an explicit accept commits the match.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .notifier import Notifier
from .state import DispatcherState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Offer:
    agent_id: str
    customer_id: str
    wait_seconds: int


class AssignmentEngine:
    def __init__(self, state: DispatcherState, notifier: Notifier) -> None:
        self.state = state
        self.notifier = notifier

    def try_assign(self) -> Optional[Offer]:
        """Make at most one offer. Safe to call after any state change."""
        head_id = self.state.queue.peek_head()
        if head_id is None:
            return None
        agent = self.state.agents.first_available()
        if agent is None:
            return None
        customer = self.state.customers.find(head_id)
        if customer is None:
            logger.warning("[DISPATCH] queue head %s has no customer record", head_id)
            return None

        wait = customer.wait_seconds(self.state.clock())
        self.notifier.deliver(agent.connection_id, "call:incoming", {
            "customer_id": customer.id,
            "customer_name": customer.name,
            "call_type": customer.call_type.value,
            "has_video": customer.has_video,
            "has_audio": customer.has_audio,
            "wait_time": wait,
        })
        logger.info("[DISPATCH] offered customer %s to agent %s", customer.id, agent.id)
        return Offer(agent_id=agent.id, customer_id=customer.id, wait_seconds=wait)
