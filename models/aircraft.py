from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from enum import Enum

class AircraftStatus(str, Enum):
    ACTIVE = "active"
    PARKED = "parked"
    LEASED = "leased"

class AircraftBase(BaseModel):
    registration: str  # Format: A4O-BA (toujours en MAJUSCULES)
    fleet_group: str
    aircraft_type: str
    msn: str           # Manufacturer serial number
    owner: str
    manufacture_date: date
    engines_count: int = Field(2, ge=1, le=4)
    status: AircraftStatus = AircraftStatus.ACTIVE

class AircraftCreate(AircraftBase):
    pass

class AircraftUpdate(BaseModel):
    registration: Optional[str] = None
    fleet_group: Optional[str] = None
    aircraft_type: Optional[str] = None
    msn: Optional[str] = None
    owner: Optional[str] = None
    manufacture_date: Optional[date] = None
    engines_count: Optional[int] = Field(None, ge=1, le=4)
    status: Optional[AircraftStatus] = None

class Aircraft(AircraftBase):
    id: str = Field(alias="_id")
    manufacture_date: datetime
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True

AIRCRAFT_INDEXES = [
    {
        "keys": [("registration", 1)],
        "unique": True,
        "name": "registration_unique"
    },
    {
        "keys": [("fleet_group", 1), ("status", 1)],
        "name": "fleet_group_status_idx"
    }
]
