"""
Utilization aggregation by day, month or year.

Aggregates report the hours and cycles FLOWN inside each bucket, per
aircraft. They are not sums of cumulative counters: each snapshot
contributes the increase since the previous snapshot of the same aircraft
within the filtered set, the first snapshot in range contributing zero.
Each bucket also carries the closing TTSN/TCSN of its last snapshot.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from models.utilization import (
    AggregationPeriod,
    DailyCounter,
    PeriodAggregate,
    day_start,
)

logger = logging.getLogger(__name__)

PERIOD_FORMATS = {
    AggregationPeriod.DAY: "%Y-%m-%d",
    AggregationPeriod.MONTH: "%Y-%m",
    AggregationPeriod.YEAR: "%Y",
}


def bucket_key(counter: DailyCounter, period: AggregationPeriod) -> str:
    """Bucket label taken from the snapshot date only."""
    return counter.date.strftime(PERIOD_FORMATS[AggregationPeriod(period)])


def filter_counters(
    counters: Iterable[DailyCounter],
    aircraft_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[DailyCounter]:
    """Aircraft and inclusive date range filter."""
    start = day_start(start_date) if start_date else None
    end = day_start(end_date) if end_date else None

    result = []
    for counter in counters:
        if aircraft_id and counter.aircraft_id != aircraft_id:
            continue
        day = day_start(counter.date)
        if start and day < start:
            continue
        if end and day > end:
            continue
        result.append(counter)
    return result


def _increase(current: float, previous: float, field: str, counter: DailyCounter) -> float:
    increase = current - previous
    if increase < 0:
        logger.warning(
            f"[AGGREGATION] {field} went backwards for aircraft {counter.aircraft_id} "
            f"on {counter.date.date().isoformat()}, counted as 0"
        )
        return 0.0
    return increase


def aggregate_utilization(
    counters: Iterable[DailyCounter],
    period: AggregationPeriod,
    aircraft_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[PeriodAggregate]:
    """
    Group snapshots into (bucket, aircraft) aggregates.

    Filters are applied before bucketing. Output is sorted ascending by
    bucket, then aircraft id.
    """
    period = AggregationPeriod(period)
    selected = filter_counters(counters, aircraft_id, start_date, end_date)

    by_aircraft: Dict[str, List[DailyCounter]] = defaultdict(list)
    for counter in selected:
        by_aircraft[counter.aircraft_id].append(counter)

    buckets: Dict[Tuple[str, str], dict] = {}
    for ac_id, history in by_aircraft.items():
        history.sort(key=lambda c: c.date)
        previous = None

        for counter in history:
            key = (bucket_key(counter, period), ac_id)
            bucket = buckets.setdefault(key, {
                "flight_hours": 0.0,
                "cycles": 0.0,
                "record_count": 0,
            })

            if previous is not None:
                bucket["flight_hours"] += _increase(
                    counter.airframe_hours_ttsn, previous.airframe_hours_ttsn,
                    "airframe_hours_ttsn", counter
                )
                bucket["cycles"] += _increase(
                    counter.airframe_cycles_tcsn, previous.airframe_cycles_tcsn,
                    "airframe_cycles_tcsn", counter
                )

            # History is ascending: the last one seen closes the bucket
            bucket["record_count"] += 1
            bucket["airframe_hours_ttsn"] = counter.airframe_hours_ttsn
            bucket["airframe_cycles_tcsn"] = counter.airframe_cycles_tcsn
            previous = counter

    return [
        PeriodAggregate(
            period=key[0],
            aircraft_id=key[1],
            flight_hours=round(values["flight_hours"], 1),
            cycles=values["cycles"],
            record_count=values["record_count"],
            airframe_hours_ttsn=values["airframe_hours_ttsn"],
            airframe_cycles_tcsn=values["airframe_cycles_tcsn"],
        )
        for key, values in sorted(buckets.items())
    ]
