from pydantic import BaseModel, Field
from typing import Optional, Tuple
from datetime import date, datetime, time, timezone
from dataclasses import dataclass
from enum import Enum


# ============================================================
# COUNTER FIELDS
# ============================================================

@dataclass(frozen=True)
class CounterField:
    """A cumulative counter carried by every daily snapshot."""
    name: str
    label: str
    delta_name: str
    required: bool = True


ENGINE_SLOTS = (1, 2, 3, 4)
REQUIRED_ENGINE_SLOTS = (1, 2)


def engine_fields(slot: int) -> Tuple[CounterField, CounterField]:
    required = slot in REQUIRED_ENGINE_SLOTS
    return (
        CounterField(f"engine{slot}_hours", f"Engine {slot} hours", f"engine{slot}_hours", required),
        CounterField(f"engine{slot}_cycles", f"Engine {slot} cycles", f"engine{slot}_cycles", required),
    )


COUNTER_FIELDS: Tuple[CounterField, ...] = (
    CounterField("airframe_hours_ttsn", "Airframe hours", "flight_hours"),
    CounterField("airframe_cycles_tcsn", "Airframe cycles", "cycles"),
    *[field for slot in ENGINE_SLOTS for field in engine_fields(slot)],
    CounterField("apu_hours", "APU hours", "apu_hours"),
    CounterField("apu_cycles", "APU cycles", "apu_cycles", required=False),
)

COUNTER_FIELD_NAMES = tuple(field.name for field in COUNTER_FIELDS)


def day_start(value: date) -> datetime:
    """Midnight UTC of the calendar day of ``value``."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


# ============================================================
# DAILY COUNTERS
# ============================================================

class DailyCounterBase(BaseModel):
    # Heures / cycles depuis neuf
    airframe_hours_ttsn: float = Field(..., ge=0)   # TTSN
    airframe_cycles_tcsn: float = Field(..., ge=0)  # TCSN

    # Moteurs 1-2 obligatoires, 3-4 pour quadri/tri-moteurs
    engine1_hours: float = Field(..., ge=0)
    engine1_cycles: float = Field(..., ge=0)
    engine2_hours: float = Field(..., ge=0)
    engine2_cycles: float = Field(..., ge=0)
    engine3_hours: Optional[float] = Field(None, ge=0)
    engine3_cycles: Optional[float] = Field(None, ge=0)
    engine4_hours: Optional[float] = Field(None, ge=0)
    engine4_cycles: Optional[float] = Field(None, ge=0)

    # APU
    apu_hours: float = Field(..., ge=0)
    apu_cycles: Optional[float] = Field(None, ge=0)

class DailyCounterCreate(DailyCounterBase):
    aircraft_id: str
    date: date
    last_flight_date: Optional[date] = None

class DailyCounterUpdate(BaseModel):
    """Partial patch. Aircraft and date are fixed once recorded."""
    airframe_hours_ttsn: Optional[float] = Field(None, ge=0)
    airframe_cycles_tcsn: Optional[float] = Field(None, ge=0)
    engine1_hours: Optional[float] = Field(None, ge=0)
    engine1_cycles: Optional[float] = Field(None, ge=0)
    engine2_hours: Optional[float] = Field(None, ge=0)
    engine2_cycles: Optional[float] = Field(None, ge=0)
    engine3_hours: Optional[float] = Field(None, ge=0)
    engine3_cycles: Optional[float] = Field(None, ge=0)
    engine4_hours: Optional[float] = Field(None, ge=0)
    engine4_cycles: Optional[float] = Field(None, ge=0)
    apu_hours: Optional[float] = Field(None, ge=0)
    apu_cycles: Optional[float] = Field(None, ge=0)
    last_flight_date: Optional[date] = None

    class Config:
        extra = "forbid"

class DailyCounter(DailyCounterBase):
    id: str = Field(alias="_id")
    aircraft_id: str
    date: datetime
    last_flight_date: Optional[datetime] = None
    updated_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True

class DailyCounterFilter(BaseModel):
    aircraft_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


# ============================================================
# DERIVED VALUES (never persisted)
# ============================================================

class DailyDelta(BaseModel):
    date: datetime
    aircraft_id: str
    flight_hours: float
    cycles: float
    engine1_hours: float
    engine1_cycles: float
    engine2_hours: float
    engine2_cycles: float
    engine3_hours: Optional[float] = None
    engine3_cycles: Optional[float] = None
    engine4_hours: Optional[float] = None
    engine4_cycles: Optional[float] = None
    apu_hours: float
    apu_cycles: Optional[float] = None

class AggregationPeriod(str, Enum):
    DAY = "day"
    MONTH = "month"
    YEAR = "year"

class PeriodAggregate(BaseModel):
    period: str                   # YYYY-MM-DD, YYYY-MM or YYYY
    aircraft_id: str
    flight_hours: float           # heures volées dans la période
    cycles: float                 # cycles effectués dans la période
    record_count: int
    airframe_hours_ttsn: float    # totaux cumulés en fin de période
    airframe_cycles_tcsn: float


# ============================================================
# MONGODB INDEXES
# ============================================================

DAILY_COUNTER_INDEXES = [
    {
        "keys": [("aircraft_id", 1), ("date", -1)],
        "unique": True,
        "name": "aircraft_date_unique"
    },
    {
        "keys": [("date", -1)],
        "name": "date_idx"
    }
]
