"""FIFO wait queue of customer ids.

Arrival order is the only ordering; there are no priority tiers. Removing an
entry shifts everyone behind it up by one, and each of those customers is
told its new position.
"""
import logging
from datetime import datetime
from typing import Callable, Iterator, Optional

from .errors import QueueEmpty
from .models import Customer, utcnow
from .notifier import Notifier
from .registry import CustomerRegistry

logger = logging.getLogger(__name__)


class QueueSnapshot:
    """Lazy, restartable view of the queue for status display.

    Each iteration walks the queue as it is at that moment and computes wait
    times against the clock at that moment.
    """

    def __init__(self, queue: "WaitQueue") -> None:
        self._queue = queue

    def __iter__(self) -> Iterator[dict]:
        now = self._queue.clock()
        for position, customer_id in enumerate(list(self._queue), start=1):
            customer = self._queue.customers.find(customer_id)
            if customer is None:
                continue
            yield {
                "id": customer.id,
                "name": customer.name,
                "call_type": customer.call_type.value,
                "position": position,
                "wait_seconds": customer.wait_seconds(now),
            }

    def __len__(self) -> int:
        return len(self._queue)


class WaitQueue:
    def __init__(self, customers: CustomerRegistry, notifier: Notifier,
                 clock: Callable[[], datetime] = utcnow) -> None:
        self.customers = customers
        self.notifier = notifier
        self.clock = clock
        self._entries: list[str] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, customer_id: str) -> bool:
        return customer_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def enqueue(self, customer: Customer) -> int:
        if customer.id not in self._entries:
            self._entries.append(customer.id)
        return self._entries.index(customer.id) + 1

    def peek_head(self) -> Optional[str]:
        return self._entries[0] if self._entries else None

    def dequeue_head(self) -> str:
        if not self._entries:
            raise QueueEmpty()
        return self._entries.pop(0)

    def position(self, customer_id: str) -> Optional[int]:
        try:
            return self._entries.index(customer_id) + 1
        except ValueError:
            return None

    def remove(self, customer_id: str) -> bool:
        try:
            index = self._entries.index(customer_id)
        except ValueError:
            return False
        del self._entries[index]
        for position, moved_id in enumerate(self._entries[index:], start=index + 1):
            customer = self.customers.find(moved_id)
            if customer is not None:
                self.notifier.deliver(customer.connection_id, "queue:position", {"position": position})
        logger.debug("[QUEUE] removed %s from position %d, %d left", customer_id, index + 1, len(self._entries))
        return True

    def snapshot(self) -> QueueSnapshot:
        return QueueSnapshot(self)
