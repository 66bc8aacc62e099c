import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from models.aircraft import AIRCRAFT_INDEXES, Aircraft
from models.utilization import day_start
from database.mongodb import to_object_id

logger = logging.getLogger(__name__)

_indexes_ensured = False


async def ensure_aircraft_indexes(db: AsyncIOMotorDatabase) -> None:
    global _indexes_ensured

    if _indexes_ensured:
        return

    for idx_spec in AIRCRAFT_INDEXES:
        try:
            await db.aircrafts.create_index(
                idx_spec["keys"],
                unique=idx_spec.get("unique", False),
                name=idx_spec["name"],
                background=True
            )
        except Exception as e:
            logger.debug(f"Index {idx_spec['name']} skip: {e}")

    _indexes_ensured = True
    logger.info("[AIRCRAFT] Indexes ensured for aircrafts")


def aircraft_from_doc(doc: Dict[str, Any]) -> Aircraft:
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    return Aircraft(**doc)


class AircraftRepository:
    """Accès MongoDB pour la flotte (collection aircrafts)."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def create(self, data: Dict[str, Any]) -> Aircraft:
        """Raises pymongo.errors.DuplicateKeyError on a known registration."""
        await ensure_aircraft_indexes(self.db)

        now = datetime.now(timezone.utc)
        doc = {
            **data,
            "manufacture_date": day_start(data["manufacture_date"]),
            "created_at": now,
            "updated_at": now,
        }
        result = await self.db.aircrafts.insert_one(doc)
        doc["_id"] = result.inserted_id
        return aircraft_from_doc(doc)

    async def find_by_id(self, aircraft_id: str) -> Optional[Aircraft]:
        oid = to_object_id(aircraft_id)
        if oid is None:
            return None
        doc = await self.db.aircrafts.find_one({"_id": oid})
        return aircraft_from_doc(doc) if doc else None

    async def find_by_registration(self, registration: str) -> Optional[Aircraft]:
        doc = await self.db.aircrafts.find_one({"registration": registration})
        return aircraft_from_doc(doc) if doc else None

    async def find_all(self, fleet_group: Optional[str] = None, status: Optional[str] = None) -> List[Aircraft]:
        query: Dict[str, Any] = {}
        if fleet_group:
            query["fleet_group"] = fleet_group
        if status:
            query["status"] = status

        cursor = self.db.aircrafts.find(query).sort("registration", 1)
        docs = await cursor.to_list(length=None)
        return [aircraft_from_doc(doc) for doc in docs]

    async def update(self, aircraft_id: str, update_data: Dict[str, Any]) -> Optional[Aircraft]:
        oid = to_object_id(aircraft_id)
        if oid is None:
            return None

        update_data = dict(update_data)
        if update_data.get("manufacture_date") is not None:
            update_data["manufacture_date"] = day_start(update_data["manufacture_date"])
        update_data["updated_at"] = datetime.now(timezone.utc)

        doc = await self.db.aircrafts.find_one_and_update(
            {"_id": oid},
            {"$set": update_data},
            return_document=ReturnDocument.AFTER
        )
        return aircraft_from_doc(doc) if doc else None

    async def delete(self, aircraft_id: str) -> bool:
        oid = to_object_id(aircraft_id)
        if oid is None:
            return False
        result = await self.db.aircrafts.delete_one({"_id": oid})
        return result.deleted_count > 0
