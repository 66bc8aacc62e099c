"""
Daily deltas between consecutive counter snapshots.

Deltas are plain subtractions. A negative value means the stored history is
no longer monotonic (edited out of order); it is logged and returned as is.
"""

import logging
from typing import Dict, List, Optional, Sequence

from models.utilization import COUNTER_FIELDS, DailyCounter, DailyDelta

logger = logging.getLogger(__name__)


def compute_delta(current: DailyCounter, previous: DailyCounter) -> DailyDelta:
    """
    Field-wise increase from ``previous`` to ``current``.

    The caller guarantees both belong to the same aircraft and that
    ``previous`` is the earlier snapshot. Optional counters missing on
    either side are left out rather than reported as zero.
    """
    values: Dict[str, Optional[float]] = {}

    for field in COUNTER_FIELDS:
        new = getattr(current, field.name)
        old = getattr(previous, field.name)
        if new is None or old is None:
            if old is not None or new is not None:
                logger.info(
                    f"[DELTA] {field.name} present on one side only, no delta "
                    f"for aircraft {current.aircraft_id} on {current.date.date().isoformat()}"
                )
            values[field.delta_name] = None
            continue

        delta = new - old
        if delta < 0:
            logger.warning(
                f"[DELTA] Negative {field.name} delta ({delta}) for aircraft "
                f"{current.aircraft_id} on {current.date.date().isoformat()}"
            )
        values[field.delta_name] = delta

    return DailyDelta(date=current.date, aircraft_id=current.aircraft_id, **values)


def compute_daily_deltas(counters: Sequence[DailyCounter]) -> List[DailyDelta]:
    """n snapshots -> n-1 deltas, each against its chronological predecessor."""
    if len(counters) < 2:
        return []

    ordered = sorted(counters, key=lambda c: c.date)
    return [
        compute_delta(ordered[i], ordered[i - 1])
        for i in range(1, len(ordered))
    ]
