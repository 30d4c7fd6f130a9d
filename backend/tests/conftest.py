from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from dispatcher.errors import StaleReference
from dispatcher.events import EventRouter
from dispatcher.lifecycle import CallLifecycleManager
from dispatcher.notifier import Notifier


class RecordingNotifier(Notifier):
    """Notifier double that records every delivery instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict]] = []
        self.broadcasts: list[tuple[str, str, Any]] = []
        self.groups: dict[str, set[str]] = {}
        self.closed: set[str] = set()

    def send(self, connection_id, event, data):
        if connection_id in self.closed:
            raise StaleReference(connection_id)
        self.sent.append((connection_id, event, data))

    def broadcast(self, group, event, data):
        self.broadcasts.append((group, event, data))

    def join(self, connection_id, group):
        if connection_id in self.closed:
            raise StaleReference(connection_id)
        self.groups.setdefault(group, set()).add(connection_id)

    def leave(self, connection_id, group):
        self.groups.get(group, set()).discard(connection_id)

    def close(self, connection_id: str) -> None:
        self.closed.add(connection_id)

    def events_for(self, connection_id: str, event: str) -> list[dict]:
        return [d for c, e, d in self.sent if c == connection_id and e == event]

    def last(self, connection_id: str, event: str) -> dict:
        found = self.events_for(connection_id, event)
        assert found, f"no {event} sent to {connection_id}"
        return found[-1]


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def notifier():
    return RecordingNotifier()

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def lifecycle(notifier, clock):
    return CallLifecycleManager(notifier, clock=clock, minutes_per_position=3)

@pytest.fixture
def router(lifecycle):
    return EventRouter(lifecycle)
