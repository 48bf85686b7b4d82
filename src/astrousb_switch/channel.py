"""
Switch channel: one quantized, optionally timed output of the controller.

A :class:`SwitchChannel` owns a fixed definition (range, step, writability,
transition duration) and a mutable :class:`ChannelState`.  The state is an
immutable snapshot that is swapped in a single assignment, so status
pollers read it without locking and never observe a half-applied change::

    usb1 = SwitchChannel("USB 1", "0", maximum=10, step_size=2, supports_async=True, duration=2)
    handle = usb1.set_value_timed(6)
    ...
    handle.cancel()             # before 2 s elapse: value stays unchanged
    handle.wait()
    assert usb1.transition_complete

Writers (synchronous set, transition start and commit) are serialized by a
per-channel lock.  At most one timed transition runs per channel.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .constants import DEFAULT_MAXIMUM, DEFAULT_MINIMUM, DEFAULT_STEP_SIZE, DEFAULT_VALUE
from .exceptions import (
    AsyncNotSupportedError,
    InvalidDefinitionError,
    NotWritableError,
    OutOfRangeError,
    TransitionInProgressError,
)
from .validation import NO_NAME, ValidationResult, validate

if TYPE_CHECKING:
    from .sink import HardwareSink

logger = logging.getLogger(__name__)


def quantize(requested: float, minimum: float, maximum: float, step_size: float) -> float:
    """Snap *requested* to the nearest ``minimum + k * step_size``.

    Ties go to the even ``k`` (Python's :func:`round`).  The result is
    clamped to ``[minimum, maximum]`` for ranges whose state count is only
    integral within tolerance.
    """
    snapped = step_size * round((requested - minimum) / step_size) + minimum
    return float(min(max(snapped, minimum), maximum))


def format_value(value: float) -> str:
    """Render *value* locale-invariantly, dropping a redundant ``.0``."""
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


# ---------------------------------------------------------------------------
# Transition handle
# ---------------------------------------------------------------------------


class TransitionOutcome(Enum):
    """Terminal (or pending) result of a timed set."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class TransitionHandle:
    """Cancellation and completion handle for one timed set.

    Returned by :meth:`SwitchChannel.set_value_timed`.  Callers may
    :meth:`cancel`, poll :meth:`done`, or block in :meth:`wait`.
    """

    def __init__(self, requested_value: float) -> None:
        self.requested_value = requested_value
        self._lock = threading.Lock()
        self._cancel_requested = threading.Event()
        self._finished = threading.Event()
        self._committing = False
        self._outcome = TransitionOutcome.PENDING
        self._exception: Optional[BaseException] = None

    @classmethod
    def completed(cls, requested_value: float) -> TransitionHandle:
        """Return a handle that already finished successfully."""
        handle = cls(requested_value)
        handle._finish(TransitionOutcome.COMPLETED)
        return handle

    def __repr__(self) -> str:
        return (
            f"TransitionHandle(requested_value={self.requested_value!r}, "
            f"outcome={self._outcome.name})"
        )

    # -- Caller side --------------------------------------------------------

    def cancel(self) -> bool:
        """Request cancellation.

        Safe to call any number of times.  Returns ``False`` once the
        transition has finished or has started committing its value.
        """
        with self._lock:
            if self._committing or self._finished.is_set():
                return False
            self._cancel_requested.set()
            return True

    def cancelled(self) -> bool:
        return self._outcome is TransitionOutcome.CANCELLED

    def done(self) -> bool:
        return self._finished.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the transition finishes; ``False`` if *timeout* expired."""
        return self._finished.wait(timeout)

    @property
    def outcome(self) -> TransitionOutcome:
        return self._outcome

    @property
    def exception(self) -> Optional[BaseException]:
        """The error that failed the transition, if any."""
        return self._exception

    # -- Worker side --------------------------------------------------------

    def _sleep(self, duration: float) -> bool:
        """Wait up to *duration* seconds; ``True`` if cancelled meanwhile."""
        return self._cancel_requested.wait(duration)

    def _begin_commit(self) -> bool:
        with self._lock:
            if self._cancel_requested.is_set():
                return False
            self._committing = True
            return True

    def _finish(
        self, outcome: TransitionOutcome, exception: Optional[BaseException] = None
    ) -> None:
        self._outcome = outcome
        self._exception = exception
        self._finished.set()


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChannelState:
    """Consistent snapshot of a channel's mutable state."""

    value: float
    transition_complete: bool = True
    last_async_error: Optional[BaseException] = None
    transition: Optional[TransitionHandle] = None


class SwitchChannel:
    """A single quantized switch output.

    The defaults describe a binary on/off switch (range ``[0, 1]``, step 1).

    Args:
        name: Display name; must be non-empty.
        internal_id: Identifier of the hardware line this switch drives.
        maximum: Inclusive upper bound.
        minimum: Inclusive lower bound.
        step_size: Quantization step.
        value: Initial value, snapped to the nearest step.
        writable: Whether :meth:`set_value` is permitted.
        description: Free-form description (defaults to *name*).
        name_editable: Whether :meth:`rename` is permitted.
        supports_async: Whether :meth:`set_value_timed` is offered.
        duration: Seconds a timed set waits before the value settles.
        sink: Hardware sink that receives every committed value.

    Raises:
        InvalidDefinitionError: If the definition fails :func:`validate`.
    """

    def __init__(
        self,
        name: str,
        internal_id: str,
        maximum: float = DEFAULT_MAXIMUM,
        minimum: float = DEFAULT_MINIMUM,
        step_size: float = DEFAULT_STEP_SIZE,
        value: float = DEFAULT_VALUE,
        writable: bool = True,
        *,
        description: Optional[str] = None,
        name_editable: bool = True,
        supports_async: bool = False,
        duration: float = 0.0,
        sink: Optional[HardwareSink] = None,
    ) -> None:
        result = validate(name, maximum, minimum, step_size, value)
        if not result:
            raise InvalidDefinitionError(name, result.reason)
        if not (math.isfinite(duration) and duration >= 0):
            raise InvalidDefinitionError(name, "duration must be a non-negative number")

        self._name = name
        self._internal_id = internal_id
        self._minimum = float(minimum)
        self._maximum = float(maximum)
        self._step_size = float(step_size)
        self._writable = writable
        self._description = name if description is None else description
        self._name_editable = name_editable
        self._supports_async = supports_async
        self._duration = float(duration)
        self.sink = sink

        self._lock = threading.Lock()
        initial = quantize(value, self._minimum, self._maximum, self._step_size)
        self._state = ChannelState(value=initial)

    def __repr__(self) -> str:
        return (
            f"SwitchChannel(name={self._name!r}, internal_id={self._internal_id!r}, "
            f"range=[{self._minimum}, {self._maximum}], step={self._step_size}, value={self.value})"
        )

    # -- Definition ---------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def internal_id(self) -> str:
        return self._internal_id

    @property
    def description(self) -> str:
        return self._description

    @property
    def minimum(self) -> float:
        return self._minimum

    @property
    def maximum(self) -> float:
        return self._maximum

    @property
    def step_size(self) -> float:
        return self._step_size

    @property
    def writable(self) -> bool:
        return self._writable

    @property
    def name_editable(self) -> bool:
        return self._name_editable

    @property
    def supports_async(self) -> bool:
        return self._supports_async

    @property
    def duration(self) -> float:
        return self._duration

    def is_valid(self) -> ValidationResult:
        """Validate this channel's own name, range, step and value."""
        return validate(self._name, self._maximum, self._minimum, self._step_size, self.value)

    def rename(self, name: str) -> None:
        """Change the display name.

        Raises:
            NotWritableError: If the name is not editable.
            InvalidDefinitionError: If *name* is empty.
        """
        if not self._name_editable:
            raise NotWritableError(f"Switch {self._name!r} name cannot be changed")
        if not name:
            raise InvalidDefinitionError(self._name, NO_NAME)
        logger.debug("Switch %r renamed to %r", self._name, name)
        self._name = name

    # -- State (lock-free reads) --------------------------------------------

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def value(self) -> float:
        return self._state.value

    @property
    def transition_complete(self) -> bool:
        return self._state.transition_complete

    @property
    def last_async_error(self) -> Optional[BaseException]:
        return self._state.last_async_error

    @property
    def transition(self) -> Optional[TransitionHandle]:
        """The in-flight transition, or ``None`` when idle."""
        return self._state.transition

    # -- Synchronous set ----------------------------------------------------

    def set_value(self, requested: float) -> float:
        """Snap *requested* to the step lattice, apply it and return it.

        Raises:
            NotWritableError: If the switch is read-only.
            OutOfRangeError: If *requested* is outside ``[minimum, maximum]``.
            TransitionInProgressError: If a timed set is still running.
        """
        with self._lock:
            self._require_idle()
            self._check_request(requested)
            value = self._apply(requested)
            self._state = replace(self._state, value=value)
        logger.debug("Switch %r set to %s", self._name, value)
        return value

    # -- Timed set ----------------------------------------------------------

    def set_value_timed(self, requested: float) -> TransitionHandle:
        """Start a set that settles after :attr:`duration` seconds.

        The wait runs on a worker thread; the returned handle may be used to
        cancel it or to wait for it.  A rejected request is recorded in
        :attr:`last_async_error` and raised.  With a zero duration the value
        is applied immediately and a finished handle is returned.

        Raises:
            AsyncNotSupportedError: If the switch has no asynchronous path.
            TransitionInProgressError: If a timed set is already running.
            NotWritableError: If the switch is read-only.
            OutOfRangeError: If *requested* is outside ``[minimum, maximum]``.
        """
        if not self._supports_async:
            raise AsyncNotSupportedError(
                f"Switch {self._name!r} does not support asynchronous sets"
            )

        with self._lock:
            self._require_idle()
            try:
                self._check_request(requested)
                if self._duration <= 0:
                    value = self._apply(requested)
                    self._state = ChannelState(value=value)
                    return TransitionHandle.completed(requested)
            except Exception as exc:
                logger.warning(
                    "Switch %r rejected asynchronous set to %s: %s", self._name, requested, exc
                )
                self._state = replace(self._state, transition_complete=True, last_async_error=exc)
                raise

            handle = TransitionHandle(requested)
            self._state = replace(
                self._state, transition_complete=False, last_async_error=None, transition=handle
            )

        worker = threading.Thread(
            target=self._run_transition,
            args=(handle,),
            name=f"switch-{self._internal_id}-transition",
            daemon=True,
        )
        worker.start()
        logger.debug(
            "Switch %r transition to %s started (%.3f s)", self._name, requested, self._duration
        )
        return handle

    def cancel(self) -> bool:
        """Cancel the in-flight transition, if any.  Idempotent."""
        handle = self._state.transition
        if handle is None:
            return False
        return handle.cancel()

    # -- Internal -----------------------------------------------------------

    def _require_idle(self) -> None:
        if self._state.transition is not None:
            raise TransitionInProgressError(f"Switch {self._name!r} has a transition in progress")

    def _check_request(self, requested: float) -> None:
        if not self._writable:
            raise NotWritableError(f"Switch {self._name!r} cannot be written")
        if not (self._minimum <= requested <= self._maximum):
            raise OutOfRangeError(
                f"Switch {self._name!r}: {requested} is not in range "
                f"{self._minimum} to {self._maximum}"
            )

    def _apply(self, requested: float) -> float:
        """Quantize *requested* and push it to the sink; caller holds the lock."""
        value = quantize(requested, self._minimum, self._maximum, self._step_size)
        if self.sink is not None:
            self.sink.apply(self._internal_id, value)
        return value

    def _run_transition(self, handle: TransitionHandle) -> None:
        cancelled = handle._sleep(self._duration)

        if cancelled or not handle._begin_commit():
            with self._lock:
                self._state = replace(self._state, transition_complete=True, transition=None)
            handle._finish(TransitionOutcome.CANCELLED)
            logger.info("Switch %r transition to %s cancelled", self._name, handle.requested_value)
            return

        with self._lock:
            try:
                value = self._apply(handle.requested_value)
            except Exception as exc:
                self._state = replace(
                    self._state, transition_complete=True, last_async_error=exc, transition=None
                )
                failure: Optional[BaseException] = exc
            else:
                self._state = ChannelState(value=value)
                failure = None

        if failure is not None:
            logger.error(
                "Switch %r transition to %s failed: %s", self._name, handle.requested_value, failure
            )
            handle._finish(TransitionOutcome.FAILED, failure)
            return

        handle._finish(TransitionOutcome.COMPLETED)
        logger.info("Switch %r transition complete, value %s", self._name, value)
