from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from database.mongodb import get_database
from database.aircraft_repository import AircraftRepository
from models.aircraft import Aircraft, AircraftCreate, AircraftUpdate, AircraftStatus
from models.user import User, UserRole, WRITE_ROLES
from services.auth_deps import get_current_user, require_roles
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/aircraft", tags=["aircraft"])

def get_aircraft_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> AircraftRepository:
    return AircraftRepository(db)

def format_registration(registration: str) -> str:
    """Format registration to uppercase"""
    return registration.upper().strip()

def registration_taken(registration: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Aircraft with registration {registration} already exists"
    )

@router.post("", response_model=Aircraft, status_code=status.HTTP_201_CREATED)
async def create_aircraft(
    aircraft: AircraftCreate,
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
    repository: AircraftRepository = Depends(get_aircraft_repository)
):
    """Register a new aircraft in the fleet"""
    registration = format_registration(aircraft.registration)

    if await repository.find_by_registration(registration):
        raise registration_taken(registration)

    aircraft_dict = aircraft.model_dump()
    aircraft_dict["registration"] = registration
    aircraft_dict["status"] = aircraft.status.value

    try:
        created = await repository.create(aircraft_dict)
    except DuplicateKeyError:
        raise registration_taken(registration)

    logger.info(f"Aircraft {registration} created by {current_user.email}")
    return created

@router.get("", response_model=List[Aircraft])
async def list_aircraft(
    fleet_group: Optional[str] = None,
    aircraft_status: Optional[AircraftStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    repository: AircraftRepository = Depends(get_aircraft_repository)
):
    """Get all aircraft, optionally by fleet group / status"""
    return await repository.find_all(
        fleet_group=fleet_group,
        status=aircraft_status.value if aircraft_status else None
    )

@router.get("/{aircraft_id}", response_model=Aircraft)
async def get_aircraft(
    aircraft_id: str,
    current_user: User = Depends(get_current_user),
    repository: AircraftRepository = Depends(get_aircraft_repository)
):
    """Get a specific aircraft by ID"""
    aircraft = await repository.find_by_id(aircraft_id)
    if not aircraft:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aircraft not found"
        )
    return aircraft

@router.put("/{aircraft_id}", response_model=Aircraft)
async def update_aircraft(
    aircraft_id: str,
    aircraft_update: AircraftUpdate,
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
    repository: AircraftRepository = Depends(get_aircraft_repository)
):
    """Update an aircraft"""
    existing = await repository.find_by_id(aircraft_id)
    if not existing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aircraft not found"
        )

    # Build update dict (only non-None values)
    update_data = {k: v for k, v in aircraft_update.model_dump(exclude_unset=True).items() if v is not None}

    if "registration" in update_data:
        registration = format_registration(update_data["registration"])
        other = await repository.find_by_registration(registration)
        if other and other.id != aircraft_id:
            raise registration_taken(registration)
        update_data["registration"] = registration
    if "status" in update_data:
        update_data["status"] = update_data["status"].value

    try:
        updated = await repository.update(aircraft_id, update_data)
    except DuplicateKeyError:
        raise registration_taken(update_data["registration"])

    if not updated:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aircraft not found"
        )

    logger.info(f"Aircraft {aircraft_id} updated by {current_user.email}")
    return updated

@router.delete("/{aircraft_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_aircraft(
    aircraft_id: str,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    repository: AircraftRepository = Depends(get_aircraft_repository)
):
    """Delete an aircraft (Admin only)"""
    if not await repository.delete(aircraft_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aircraft not found"
        )

    logger.info(f"Aircraft {aircraft_id} deleted by {current_user.email}")
    return None
