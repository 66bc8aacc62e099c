"""
Counter Guard - monotonic validation of cumulative utilization counters

A daily snapshot may never report fewer hours or cycles than the snapshot
recorded for the same aircraft on the closest earlier day. Every offending
field is reported at once so the user can correct them in a single pass.
"""

import logging
from typing import Any, List, Optional

from models.utilization import COUNTER_FIELDS, CounterField

logger = logging.getLogger(__name__)


class MonotonicValidationError(Exception):
    """One or more counters went backwards."""

    message = "Monotonic validation error"

    def __init__(self, errors: List[str]):
        super().__init__(f"{self.message}: {'; '.join(errors)}")
        self.errors = errors


def format_counter_value(value: float) -> str:
    """99.0 -> '99', 12500.5 -> '12500.5'"""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return str(value)


def counter_value(record: Any, field: CounterField) -> Optional[float]:
    if isinstance(record, dict):
        return record.get(field.name)
    return getattr(record, field.name, None)


def find_monotonic_violations(previous: Any, candidate: Any) -> List[str]:
    """
    Compare ``candidate`` to the snapshot that precedes it.

    Returns one message per field that decreased. Optional counters
    (engines 3/4, APU cycles) are compared only when both sides carry them.
    Equal values are valid.
    """
    errors: List[str] = []

    for field in COUNTER_FIELDS:
        old = counter_value(previous, field)
        new = counter_value(candidate, field)

        if old is None or new is None:
            if old is not None or new is not None:
                logger.info(
                    f"[COUNTER GUARD] {field.name} present on one side only, "
                    f"skipped (previous={old}, candidate={new})"
                )
            continue

        if new < old:
            errors.append(
                f"{field.label} ({format_counter_value(new)}) cannot be less than "
                f"previous value ({format_counter_value(old)})"
            )

    return errors


def validate_monotonic_counters(previous: Optional[Any], candidate: Any) -> None:
    """
    Raise MonotonicValidationError when any counter of ``candidate`` is
    lower than in ``previous``. A missing predecessor always passes.
    """
    if previous is None:
        return

    errors = find_monotonic_violations(previous, candidate)
    if errors:
        raise MonotonicValidationError(errors)
