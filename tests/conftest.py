"""
Shared fixtures: in-memory doubles of the MongoDB repositories so the
utilization rules can be exercised without a running database.
"""

import pytest
from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from models.aircraft import Aircraft, AircraftStatus
from models.utilization import DailyCounter, DailyCounterFilter, day_start
from services.period_aggregator import filter_counters
from services.utilization_service import UtilizationService


def make_counter(
    aircraft_id: str,
    day: date,
    hours: float,
    cycles: float = None,
    **overrides
) -> DailyCounter:
    """Counter where engines / APU track the airframe unless overridden.

    Engines lag the airframe by 10 / 20 hours, floored at zero.
    """
    cycles = hours / 2 if cycles is None else cycles
    values = {
        "_id": str(ObjectId()),
        "aircraft_id": aircraft_id,
        "date": day_start(day),
        "airframe_hours_ttsn": hours,
        "airframe_cycles_tcsn": cycles,
        "engine1_hours": max(hours - 10, 0),
        "engine1_cycles": cycles,
        "engine2_hours": max(hours - 20, 0),
        "engine2_cycles": cycles,
        "apu_hours": hours / 4,
        "updated_by": "tester",
        "created_at": datetime.now(timezone.utc),
        "updated_at": datetime.now(timezone.utc),
    }
    values.update(overrides)
    return DailyCounter(**values)


def counter_payload(aircraft_id: str, day: str, hours: float, **overrides) -> dict:
    """JSON body / create data matching make_counter's field layout."""
    payload = {
        "aircraft_id": aircraft_id,
        "date": day,
        "airframe_hours_ttsn": hours,
        "airframe_cycles_tcsn": hours / 2,
        "engine1_hours": max(hours - 10, 0),
        "engine1_cycles": hours / 2,
        "engine2_hours": max(hours - 20, 0),
        "engine2_cycles": hours / 2,
        "apu_hours": hours / 4,
    }
    payload.update(overrides)
    return payload


def same_aircraft(stored_id: str, requested_id: str) -> bool:
    """Ids compare as ObjectIds do in Mongo, hex case ignored."""
    return stored_id.lower() == requested_id.lower()


class InMemoryDailyCounterRepository:

    def __init__(self):
        self.counters: Dict[str, DailyCounter] = {}

    def add(self, counter: DailyCounter) -> DailyCounter:
        self.counters[counter.id] = counter
        return counter

    async def create(self, data: dict) -> DailyCounter:
        day = day_start(data["date"])
        for counter in self.counters.values():
            if same_aircraft(counter.aircraft_id, data["aircraft_id"]) and counter.date == day:
                raise DuplicateKeyError("aircraft_date_unique")

        now = datetime.now(timezone.utc)
        values = {**data, "_id": str(ObjectId()), "date": day, "created_at": now, "updated_at": now}
        if values.get("last_flight_date") is not None:
            values["last_flight_date"] = day_start(values["last_flight_date"])
        return self.add(DailyCounter(**values))

    async def find_by_id(self, counter_id: str) -> Optional[DailyCounter]:
        return self.counters.get(counter_id)

    async def find_by_aircraft_and_date(self, aircraft_id: str, date) -> Optional[DailyCounter]:
        day = day_start(date)
        for counter in self.counters.values():
            if same_aircraft(counter.aircraft_id, aircraft_id) and counter.date == day:
                return counter
        return None

    async def find_previous_counter(self, aircraft_id: str, date) -> Optional[DailyCounter]:
        day = day_start(date)
        earlier = [c for c in self.counters.values() if same_aircraft(c.aircraft_id, aircraft_id) and c.date < day]
        return max(earlier, key=lambda c: c.date) if earlier else None

    async def find_next_counter(self, aircraft_id: str, date) -> Optional[DailyCounter]:
        day = day_start(date)
        later = [c for c in self.counters.values() if same_aircraft(c.aircraft_id, aircraft_id) and c.date > day]
        return min(later, key=lambda c: c.date) if later else None

    async def find_all(self, filter: Optional[DailyCounterFilter] = None) -> List[DailyCounter]:
        filter = filter or DailyCounterFilter()
        found = [
            c for c in filter_counters(self.counters.values(), None, filter.start_date, filter.end_date)
            if not filter.aircraft_id or same_aircraft(c.aircraft_id, filter.aircraft_id)
        ]
        # Newest first, like the Mongo repository
        return sorted(found, key=lambda c: c.date, reverse=True)

    async def update(self, counter_id: str, update_data: dict) -> Optional[DailyCounter]:
        counter = self.counters.get(counter_id)
        if counter is None:
            return None
        update_data = dict(update_data)
        if update_data.get("last_flight_date") is not None:
            update_data["last_flight_date"] = day_start(update_data["last_flight_date"])
        update_data["updated_at"] = datetime.now(timezone.utc)
        return self.add(counter.model_copy(update=update_data))

    async def delete(self, counter_id: str) -> Optional[DailyCounter]:
        return self.counters.pop(counter_id, None)


class InMemoryAircraftRepository:

    def __init__(self):
        self.aircraft: Dict[str, Aircraft] = {}

    def add(self, registration: str, engines_count: int = 2) -> Aircraft:
        now = datetime.now(timezone.utc)
        aircraft = Aircraft(
            _id=str(ObjectId()),
            registration=registration,
            fleet_group="A330",
            aircraft_type="A330-200",
            msn="1234",
            owner="Operator",
            manufacture_date=datetime(2010, 5, 1, tzinfo=timezone.utc),
            engines_count=engines_count,
            status=AircraftStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        self.aircraft[aircraft.id] = aircraft
        return aircraft

    async def create(self, data: dict) -> Aircraft:
        if await self.find_by_registration(data["registration"]):
            raise DuplicateKeyError("registration_unique")
        now = datetime.now(timezone.utc)
        aircraft = Aircraft(**{
            **data,
            "_id": str(ObjectId()),
            "manufacture_date": day_start(data["manufacture_date"]),
            "created_at": now,
            "updated_at": now,
        })
        self.aircraft[aircraft.id] = aircraft
        return aircraft

    async def find_by_id(self, aircraft_id: str) -> Optional[Aircraft]:
        return self.aircraft.get(aircraft_id)

    async def find_by_registration(self, registration: str) -> Optional[Aircraft]:
        for aircraft in self.aircraft.values():
            if aircraft.registration == registration:
                return aircraft
        return None

    async def find_all(self, fleet_group: Optional[str] = None, status: Optional[str] = None) -> List[Aircraft]:
        found = [
            a for a in self.aircraft.values()
            if (not fleet_group or a.fleet_group == fleet_group)
            and (not status or a.status.value == status)
        ]
        return sorted(found, key=lambda a: a.registration)

    async def update(self, aircraft_id: str, update_data: dict) -> Optional[Aircraft]:
        aircraft = self.aircraft.get(aircraft_id)
        if aircraft is None:
            return None
        update_data = dict(update_data)
        if update_data.get("manufacture_date") is not None:
            update_data["manufacture_date"] = day_start(update_data["manufacture_date"])
        # Re-validate so stored enum strings come back as AircraftStatus
        updated = Aircraft(**{**aircraft.model_dump(by_alias=True), **update_data})
        self.aircraft[aircraft_id] = updated
        return updated

    async def delete(self, aircraft_id: str) -> bool:
        return self.aircraft.pop(aircraft_id, None) is not None


@pytest.fixture
def counter_repository():
    return InMemoryDailyCounterRepository()


@pytest.fixture
def aircraft_repository():
    return InMemoryAircraftRepository()


@pytest.fixture
def twin(aircraft_repository):
    return aircraft_repository.add("A4O-DA")


@pytest.fixture
def service(counter_repository, aircraft_repository):
    return UtilizationService(counter_repository, aircraft_repository)
