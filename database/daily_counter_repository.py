"""
Daily Counter Repository

Stores one utilization snapshot per aircraft per UTC calendar day in the
``daily_counters`` collection. Indexes are created lazily on first use.

No business rules here: monotonic validation lives in the services layer.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from database.mongodb import to_object_id

from models.utilization import (
    DAILY_COUNTER_INDEXES,
    DailyCounter,
    DailyCounterFilter,
    day_start,
)

logger = logging.getLogger(__name__)

# Flag pour éviter de créer les indexes plusieurs fois
_indexes_ensured = False


async def ensure_daily_counter_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the daily_counters indexes (unique aircraft/date pair)."""
    global _indexes_ensured

    if _indexes_ensured:
        return

    for idx_spec in DAILY_COUNTER_INDEXES:
        try:
            await db.daily_counters.create_index(
                idx_spec["keys"],
                unique=idx_spec.get("unique", False),
                name=idx_spec["name"],
                background=True
            )
        except Exception as e:
            # Index exists with other options or similar non-fatal error
            logger.debug(f"Index {idx_spec['name']} skip: {e}")

    _indexes_ensured = True
    logger.info("[UTILIZATION] Indexes ensured for daily_counters")


def build_date_query(filter: DailyCounterFilter) -> Dict[str, Any]:
    """Mongo query for an aircraft and an inclusive date range."""
    query: Dict[str, Any] = {}

    if filter.aircraft_id:
        query["aircraft_id"] = to_object_id(filter.aircraft_id)
    if filter.start_date or filter.end_date:
        query["date"] = {}
        if filter.start_date:
            query["date"]["$gte"] = day_start(filter.start_date)
        if filter.end_date:
            query["date"]["$lte"] = day_start(filter.end_date)

    return query


def counter_from_doc(doc: Dict[str, Any]) -> DailyCounter:
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    doc["aircraft_id"] = str(doc["aircraft_id"])
    doc["updated_by"] = str(doc["updated_by"])
    return DailyCounter(**doc)


class DailyCounterRepository:
    """
    Accès MongoDB pour les compteurs journaliers.

    Dates are stored at midnight UTC, so "same day" lookups are equality
    matches and "before/after" lookups compare against day boundaries.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def _ensure_indexes(self):
        await ensure_daily_counter_indexes(self.db)

    async def create(self, data: Dict[str, Any]) -> DailyCounter:
        """
        Insert a counter document.

        Raises pymongo.errors.DuplicateKeyError when the aircraft already
        has a counter on that day.
        """
        await self._ensure_indexes()

        now = datetime.now(timezone.utc)
        doc = {
            **data,
            "aircraft_id": ObjectId(data["aircraft_id"]),
            "updated_by": to_object_id(data["updated_by"]) or data["updated_by"],
            "date": day_start(data["date"]),
            "created_at": now,
            "updated_at": now,
        }
        if doc.get("last_flight_date") is not None:
            doc["last_flight_date"] = day_start(doc["last_flight_date"])

        result = await self.db.daily_counters.insert_one(doc)
        doc["_id"] = result.inserted_id
        return counter_from_doc(doc)

    async def find_by_id(self, counter_id: str) -> Optional[DailyCounter]:
        oid = to_object_id(counter_id)
        if oid is None:
            return None
        doc = await self.db.daily_counters.find_one({"_id": oid})
        return counter_from_doc(doc) if doc else None

    async def find_by_aircraft_and_date(self, aircraft_id: str, date: datetime) -> Optional[DailyCounter]:
        doc = await self.db.daily_counters.find_one({
            "aircraft_id": to_object_id(aircraft_id),
            "date": day_start(date)
        })
        return counter_from_doc(doc) if doc else None

    async def find_previous_counter(self, aircraft_id: str, date: datetime) -> Optional[DailyCounter]:
        """Latest counter strictly before the day of ``date``."""
        doc = await self.db.daily_counters.find_one(
            {
                "aircraft_id": to_object_id(aircraft_id),
                "date": {"$lt": day_start(date)}
            },
            sort=[("date", -1)]
        )
        return counter_from_doc(doc) if doc else None

    async def find_next_counter(self, aircraft_id: str, date: datetime) -> Optional[DailyCounter]:
        """Earliest counter strictly after the day of ``date``."""
        doc = await self.db.daily_counters.find_one(
            {
                "aircraft_id": to_object_id(aircraft_id),
                "date": {"$gte": day_start(date) + timedelta(days=1)}
            },
            sort=[("date", 1)]
        )
        return counter_from_doc(doc) if doc else None

    async def find_all(self, filter: Optional[DailyCounterFilter] = None) -> List[DailyCounter]:
        """Counters matching the filter, newest first."""
        query = build_date_query(filter or DailyCounterFilter())
        cursor = self.db.daily_counters.find(query).sort("date", -1)
        docs = await cursor.to_list(length=None)
        return [counter_from_doc(doc) for doc in docs]

    async def update(self, counter_id: str, update_data: Dict[str, Any]) -> Optional[DailyCounter]:
        oid = to_object_id(counter_id)
        if oid is None:
            return None

        update_data = dict(update_data)
        if update_data.get("last_flight_date") is not None:
            update_data["last_flight_date"] = day_start(update_data["last_flight_date"])
        if "updated_by" in update_data:
            update_data["updated_by"] = to_object_id(update_data["updated_by"]) or update_data["updated_by"]
        update_data["updated_at"] = datetime.now(timezone.utc)

        doc = await self.db.daily_counters.find_one_and_update(
            {"_id": oid},
            {"$set": update_data},
            return_document=ReturnDocument.AFTER
        )
        return counter_from_doc(doc) if doc else None

    async def delete(self, counter_id: str) -> Optional[DailyCounter]:
        oid = to_object_id(counter_id)
        if oid is None:
            return None
        doc = await self.db.daily_counters.find_one_and_delete({"_id": oid})
        return counter_from_doc(doc) if doc else None
