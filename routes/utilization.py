"""
Utilization Routes - daily counter readings (TTSN / TCSN, engines, APU)

Counters are cumulative: a reading can never be lower than the previous
day's. Rejections list every offending counter at once.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import date
from typing import List, Optional
import logging

from database.mongodb import get_database
from database.daily_counter_repository import DailyCounterRepository
from database.aircraft_repository import AircraftRepository
from models.user import User, UserRole, WRITE_ROLES
from models.utilization import (
    AggregationPeriod,
    DailyCounter,
    DailyCounterCreate,
    DailyCounterFilter,
    DailyCounterUpdate,
    DailyDelta,
    PeriodAggregate,
)
from services.auth_deps import get_current_user, require_roles
from services.counter_validator import MonotonicValidationError
from services.utilization_service import (
    AircraftNotFoundError,
    CounterNotFoundError,
    DuplicateCounterError,
    UtilizationService,
)

router = APIRouter(prefix="/api/utilization", tags=["utilization"])
logger = logging.getLogger(__name__)


def get_utilization_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> UtilizationService:
    return UtilizationService(DailyCounterRepository(db), AircraftRepository(db))


def monotonic_exception(e: MonotonicValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": e.message, "errors": e.errors}
    )


@router.post("", response_model=DailyCounter, status_code=status.HTTP_201_CREATED)
async def create_daily_counter(
    counter: DailyCounterCreate,
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
    service: UtilizationService = Depends(get_utilization_service)
):
    """Record a daily counter reading"""
    try:
        return await service.create(counter, updated_by=current_user.id)
    except AircraftNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DuplicateCounterError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except MonotonicValidationError as e:
        logger.info(f"Counter rejected for aircraft {counter.aircraft_id}: {e.errors}")
        raise monotonic_exception(e)


@router.get("", response_model=List[DailyCounter])
async def list_daily_counters(
    aircraft_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    current_user: User = Depends(get_current_user),
    service: UtilizationService = Depends(get_utilization_service)
):
    """Daily counters, newest first, optionally filtered"""
    return await service.find_all(DailyCounterFilter(
        aircraft_id=aircraft_id,
        start_date=start_date,
        end_date=end_date
    ))


@router.get("/aggregations", response_model=List[PeriodAggregate])
async def get_aggregations(
    period: AggregationPeriod = Query(...),
    aircraft_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    current_user: User = Depends(get_current_user),
    service: UtilizationService = Depends(get_utilization_service)
):
    """
    Hours and cycles flown per period and aircraft.
    flight_hours / cycles are increases within the period, the TTSN / TCSN
    fields are the closing cumulative values.
    """
    return await service.get_aggregated_utilization(period, aircraft_id, start_date, end_date)


@router.get(
    "/deltas/{aircraft_id}",
    response_model=List[DailyDelta],
    response_model_exclude_none=True
)
async def get_daily_deltas(
    aircraft_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    current_user: User = Depends(get_current_user),
    service: UtilizationService = Depends(get_utilization_service)
):
    """Differences between consecutive counter readings of an aircraft"""
    return await service.get_daily_deltas(aircraft_id, start_date, end_date)


@router.get("/{counter_id}", response_model=DailyCounter)
async def get_daily_counter(
    counter_id: str,
    current_user: User = Depends(get_current_user),
    service: UtilizationService = Depends(get_utilization_service)
):
    try:
        return await service.find_by_id(counter_id)
    except CounterNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.put("/{counter_id}", response_model=DailyCounter)
async def update_daily_counter(
    counter_id: str,
    counter_update: DailyCounterUpdate,
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
    service: UtilizationService = Depends(get_utilization_service)
):
    """Correct a counter reading (re-validated against both neighbours)"""
    try:
        return await service.update(counter_id, counter_update, updated_by=current_user.id)
    except CounterNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MonotonicValidationError as e:
        logger.info(f"Counter update {counter_id} rejected: {e.errors}")
        raise monotonic_exception(e)


@router.delete("/{counter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_daily_counter(
    counter_id: str,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: UtilizationService = Depends(get_utilization_service)
):
    """Delete a counter reading (Admin only)"""
    try:
        await service.delete(counter_id)
    except CounterNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None
