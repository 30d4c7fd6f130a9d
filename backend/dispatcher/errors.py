"""Failure taxonomy for dispatcher operations.

Core operations raise these; the event router turns every one of them into
a silently dropped request, so clients never see a rejection.
"""


class DispatchError(Exception):
    """Base class for every precondition failure in the dispatcher."""


class NotFound(DispatchError):
    """A referenced agent, customer or call identifier is absent."""


class InvalidState(DispatchError):
    """The referenced entity exists but is not in a state allowing the request."""


class StaleReference(DispatchError):
    """A connection id no longer maps to a live transport session."""


class QueueEmpty(DispatchError):
    """The wait queue has no entries."""
