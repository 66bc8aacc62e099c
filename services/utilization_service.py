"""
Utilization Service - daily counters, deltas and aggregations

Orchestrates the record store, the counter guard and the read-side
calculators. The store and the aircraft registry are injected so the
rules run the same against MongoDB or an in-memory double.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from models.aircraft import Aircraft
from models.utilization import (
    COUNTER_FIELD_NAMES,
    ENGINE_SLOTS,
    AggregationPeriod,
    DailyCounter,
    DailyCounterCreate,
    DailyCounterFilter,
    DailyCounterUpdate,
    DailyDelta,
    PeriodAggregate,
    day_start,
)
from services.counter_validator import (
    MonotonicValidationError,
    find_monotonic_violations,
)
from services.delta_calculator import compute_daily_deltas
from services.period_aggregator import aggregate_utilization

logger = logging.getLogger(__name__)


class DuplicateCounterError(Exception):
    """A counter already exists for this aircraft on this day."""

    def __init__(self, aircraft_id: str, day: datetime):
        self.aircraft_id = aircraft_id
        self.day = day
        super().__init__(
            f"Daily counter already exists for aircraft {aircraft_id} "
            f"on {day.date().isoformat()}"
        )


class CounterNotFoundError(Exception):
    def __init__(self, counter_id: str):
        self.counter_id = counter_id
        super().__init__(f"Daily counter with ID {counter_id} not found")


class AircraftNotFoundError(Exception):
    def __init__(self, aircraft_id: str):
        self.aircraft_id = aircraft_id
        super().__init__(f"Aircraft with ID {aircraft_id} not found")


def merge_counter_update(counter: DailyCounter, update: Dict[str, Any]) -> Dict[str, Any]:
    """Stored counter values overlaid with the supplied ones."""
    merged = {name: getattr(counter, name) for name in COUNTER_FIELD_NAMES}
    merged.update({k: v for k, v in update.items() if k in COUNTER_FIELD_NAMES})
    return merged


def missing_engine_slots(aircraft: Aircraft, candidate: Any) -> List[int]:
    """Engine slots the aircraft has but the snapshot does not report."""
    missing = []
    for slot in ENGINE_SLOTS[:aircraft.engines_count]:
        if getattr(candidate, f"engine{slot}_hours", None) is None \
                or getattr(candidate, f"engine{slot}_cycles", None) is None:
            missing.append(slot)
    return missing


class UtilizationService:

    def __init__(self, counter_repository, aircraft_repository):
        self.counters = counter_repository
        self.aircraft = aircraft_repository

    async def _check_neighbours(self, aircraft_id: str, day: datetime, candidate: Any) -> None:
        """
        The candidate must not be lower than its predecessor and must not
        exceed its successor. Errors from both sides are reported together.
        """
        errors: List[str] = []

        previous = await self.counters.find_previous_counter(aircraft_id, day)
        if previous is not None:
            errors.extend(find_monotonic_violations(previous, candidate))

        following = await self.counters.find_next_counter(aircraft_id, day)
        if following is not None:
            errors.extend(
                f"Next counter on {following.date.date().isoformat()}: {message}"
                for message in find_monotonic_violations(candidate, following)
            )

        if errors:
            raise MonotonicValidationError(errors)

    async def create(self, data: DailyCounterCreate, updated_by: str) -> DailyCounter:
        aircraft = await self.aircraft.find_by_id(data.aircraft_id)
        if aircraft is None:
            raise AircraftNotFoundError(data.aircraft_id)

        day = day_start(data.date)

        existing = await self.counters.find_by_aircraft_and_date(data.aircraft_id, day)
        if existing is not None:
            raise DuplicateCounterError(data.aircraft_id, day)

        missing = missing_engine_slots(aircraft, data)
        if missing:
            logger.warning(
                f"[UTILIZATION] {aircraft.registration} has {aircraft.engines_count} engines "
                f"but counter for {day.date().isoformat()} omits engine slot(s) {missing}"
            )

        await self._check_neighbours(data.aircraft_id, day, data)

        doc = data.model_dump()
        doc["date"] = day
        doc["updated_by"] = updated_by
        try:
            counter = await self.counters.create(doc)
        except DuplicateKeyError:
            # Concurrent create for the same day won the unique index
            raise DuplicateCounterError(data.aircraft_id, day)

        logger.info(
            f"Daily counter {counter.id} created for aircraft {aircraft.registration} "
            f"on {day.date().isoformat()} by {updated_by}"
        )
        return counter

    async def find_by_id(self, counter_id: str) -> DailyCounter:
        counter = await self.counters.find_by_id(counter_id)
        if counter is None:
            raise CounterNotFoundError(counter_id)
        return counter

    async def find_all(self, filter: Optional[DailyCounterFilter] = None) -> List[DailyCounter]:
        return await self.counters.find_all(filter)

    async def update(self, counter_id: str, data: DailyCounterUpdate, updated_by: str) -> DailyCounter:
        counter = await self.counters.find_by_id(counter_id)
        if counter is None:
            raise CounterNotFoundError(counter_id)

        update_data = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None
        }

        if any(name in update_data for name in COUNTER_FIELD_NAMES):
            merged = merge_counter_update(counter, update_data)
            await self._check_neighbours(counter.aircraft_id, counter.date, merged)

        update_data["updated_by"] = updated_by
        updated = await self.counters.update(counter_id, update_data)
        if updated is None:
            # Deleted between read and write
            raise CounterNotFoundError(counter_id)

        logger.info(f"Daily counter {counter_id} updated by {updated_by}")
        return updated

    async def delete(self, counter_id: str) -> DailyCounter:
        # Removing a link from a non-decreasing chain keeps it non-decreasing,
        # so neighbours need no re-validation.
        counter = await self.counters.delete(counter_id)
        if counter is None:
            raise CounterNotFoundError(counter_id)

        logger.info(
            f"Daily counter {counter_id} deleted "
            f"(aircraft {counter.aircraft_id}, {counter.date.date().isoformat()})"
        )
        return counter

    async def get_daily_deltas(
        self,
        aircraft_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[DailyDelta]:
        """
        Deltas between consecutive counters of one aircraft.

        Only counters inside the range are chained: the first delta is
        computed against the first counter in range, not the one before it.
        """
        counters = await self.counters.find_all(DailyCounterFilter(
            aircraft_id=aircraft_id,
            start_date=start_date,
            end_date=end_date,
        ))
        return compute_daily_deltas(counters)

    async def get_aggregated_utilization(
        self,
        period: AggregationPeriod,
        aircraft_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[PeriodAggregate]:
        # The store already matched the aircraft (ObjectId parsing ignores case)
        counters = await self.counters.find_all(DailyCounterFilter(
            aircraft_id=aircraft_id,
            start_date=start_date,
            end_date=end_date,
        ))
        return aggregate_utilization(counters, period, start_date=start_date, end_date=end_date)
