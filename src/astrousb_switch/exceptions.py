"""
Exception hierarchy for the AstroUSB switch driver.

All exceptions inherit from :class:`SwitchError` so callers can catch
broadly (``except SwitchError``) or narrowly (``except OutOfRangeError``).
Cancelling a transition is a normal outcome and has no exception.
"""


class SwitchError(Exception):
    """Base exception for all switch driver errors."""


class ValidationError(SwitchError):
    """Raised when an argument fails validation before anything is applied."""


class InvalidDefinitionError(ValidationError):
    """Raised when a switch's range, step or value is not a legal definition."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Switch {name!r} is invalid: {reason}")
        self.reason = reason


class OutOfRangeError(ValidationError):
    """Raised when a requested value lies outside ``[minimum, maximum]``."""


class InvalidSwitchIdError(ValidationError):
    """Raised when a switch index does not address a configured channel."""


class NotWritableError(SwitchError):
    """Raised when writing the value or name of a read-only switch."""


class AsyncNotSupportedError(SwitchError):
    """Raised when an asynchronous set is requested on a synchronous-only switch."""


class TransitionInProgressError(SwitchError):
    """Raised when a set collides with a transition that is still running."""


class ConnectionError(SwitchError):  # noqa: A001 – intentional shadow of builtin
    """Raised when the serial connection is unavailable or fails to open."""


class TimeoutError(SwitchError):  # noqa: A001 – intentional shadow of builtin
    """Raised when the controller does not respond within the expected window."""


class CommandError(SwitchError):
    """Raised when the hardware sink cannot deliver a value."""


class ProfileError(SwitchError):
    """Raised when a persisted switch definition cannot be parsed."""
