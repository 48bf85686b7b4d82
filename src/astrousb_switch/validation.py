"""
Switch definition validation.

:func:`validate` checks a candidate definition (name, range, step, value)
against the rules every switch must satisfy.  Rules are applied in a fixed
order and the first failure wins, so the reason text for a given bad
definition is always the same.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .constants import STATE_COUNT_DIVISOR

NO_NAME = "no device name defined"
MAX_NOT_ABOVE_MIN = "maximum not greater than minimum"
STEP_NOT_POSITIVE = "step size must be greater than zero"
TOO_FEW_STATES = "step size gives less than two states"
STATES_NOT_INTEGER = "number of states is not an integer"
VALUE_OUT_OF_RANGE = "value not between minimum and maximum"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of :func:`validate`; truthy when the definition is legal."""

    ok: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok


_VALID = ValidationResult(True)


def _fail(reason: str) -> ValidationResult:
    return ValidationResult(False, reason)


def validate(
    name: str,
    maximum: float,
    minimum: float,
    step_size: float,
    value: float,
) -> ValidationResult:
    """Check a switch definition and return the first rule it breaks.

    The state count ``(maximum - minimum) / step_size`` may miss an integer
    by at most ``step_size / 10``; a remainder exactly on that tolerance is
    accepted.  Non-finite bounds, steps and values (NaN, infinity) fail the
    rule they take part in.

    Args:
        name: Display name; must be non-empty.
        maximum: Inclusive upper bound.
        minimum: Inclusive lower bound.
        step_size: Quantization step.
        value: Candidate current value.

    Returns:
        A :class:`ValidationResult` carrying ``ok`` and the failure reason.
    """
    if not name:
        return _fail(NO_NAME)
    if not (math.isfinite(minimum) and math.isfinite(maximum) and minimum < maximum):
        return _fail(MAX_NOT_ABOVE_MIN)
    if not (math.isfinite(step_size) and step_size > 0):
        return _fail(STEP_NOT_POSITIVE)

    states = (maximum - minimum) / step_size
    if states < 1:
        return _fail(TOO_FEW_STATES)
    tolerance = step_size / STATE_COUNT_DIVISOR
    if not math.isfinite(states) or abs(math.remainder(states, 1.0)) > tolerance:
        return _fail(STATES_NOT_INTEGER)
    if not (minimum <= value <= maximum):
        return _fail(VALUE_OUT_OF_RANGE)
    return _VALID
