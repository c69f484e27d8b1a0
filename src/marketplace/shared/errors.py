"""Error taxonomy of the order/payment lifecycle.

All business-rule failures are ``ValidationError`` subclasses so they carry
Protean's ``{field: [message]}`` payload and are rejected as commands.
Missing aggregates surface as Protean's ``ObjectNotFoundError``.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError

__all__ = [
    "AlreadyFinal",
    "ExternalServiceError",
    "IntegrityConflict",
    "InvalidTransition",
    "ReturnWindowExpired",
    "ObjectNotFoundError",
    "TransitionError",
    "ValidationError",
    "first_message",
]


class TransitionError(ValidationError):
    """An aggregate operation was rejected by its state machine."""

    def __init__(self, message, field="status"):
        super().__init__({field: [message]})
        self.message = message


class InvalidTransition(TransitionError):
    """The operation is not allowed from the aggregate's current state."""


class AlreadyFinal(TransitionError):
    """The aggregate already reached a terminal state; nothing left to do."""


class IntegrityConflict(ValidationError):
    """Incoming data contradicts what was already recorded."""

    def __init__(self, message, field="status"):
        super().__init__({field: [message]})
        self.message = message


class ExternalServiceError(Exception):
    """A call to the payment provider failed."""

    def __init__(self, message, provider_code=None):
        super().__init__(message)
        self.message = message
        self.provider_code = provider_code


def first_message(exc):
    """Return the first human-readable message carried by an exception."""
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        for value in messages.values():
            if isinstance(value, list | tuple) and value:
                return str(value[0])
            if value:
                return str(value)
    return str(exc)


class ReturnWindowExpired(InvalidTransition):
    """A return was requested after the return window closed."""

    def __init__(self, message):
        super().__init__(message, field="return_window")
