# reflection/errors.py


class ReflectionError(Exception):
    """Base class for everything the reflection flow can raise."""


class InvalidInput(ReflectionError, ValueError):
    """Empty task or answer text. Raised before any network activity."""


class OutOfRange(ReflectionError, IndexError):
    """Unknown task position or id."""


class InvalidState(ReflectionError):
    """The controller cannot perform this action in its current state."""


class MalformedResponse(ReflectionError):
    """
    Scorer body is missing a usable score.
    Never leaves the decode step: callers fall back to the neutral score.
    """


class RecoverableError(ReflectionError):
    """
    Failure while waiting on the scorer.
    The session stays where it was and the user may retry.
    """


class TransportFailure(RecoverableError):
    """Network error, timeout, non-success status or unreadable body."""


class RemoteError(RecoverableError):
    """The scorer answered, but its own call to the model failed."""
