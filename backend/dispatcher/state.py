from datetime import datetime
from typing import Callable

from .call_queue import WaitQueue
from .models import utcnow
from .notifier import Notifier
from .registry import AgentRegistry, CallTable, CustomerRegistry


class DispatcherState:
    """Everything the dispatcher knows, held in one place.

    Owned by the CallLifecycleManager and handed to the assignment engine;
    nothing reads or writes module-level state.
    """

    def __init__(self, notifier: Notifier, clock: Callable[[], datetime] = utcnow) -> None:
        self.clock = clock
        self.agents = AgentRegistry()
        self.customers = CustomerRegistry()
        self.calls = CallTable()
        self.queue = WaitQueue(self.customers, notifier, clock)

    def queue_info(self) -> dict:
        entries = list(self.queue.snapshot())
        return {
            "queue": entries,
            "total": len(entries),
            "available_agents": self.agents.available_count(),
        }

    def agents_info(self) -> list[dict]:
        return [a.view() for a in self.agents]
