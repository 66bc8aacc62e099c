from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from motor.motor_asyncio import AsyncIOMotorDatabase
from database.mongodb import get_database
from models.user import UserCreate, User, Token, UserRole
from services.auth_deps import get_current_user
from services.auth_service import verify_password, get_password_hash, create_access_token
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["authentication"])

def user_from_doc(user_doc: dict) -> User:
    return User(
        id=str(user_doc["_id"]),
        email=user_doc["email"],
        name=user_doc["name"],
        role=user_doc.get("role", UserRole.VIEWER),
        created_at=user_doc["created_at"]
    )

@router.post("/signup", response_model=Token)
async def signup(user: UserCreate, db: AsyncIOMotorDatabase = Depends(get_database)):
    """Create a new user account (first account becomes Admin)"""
    email = user.email.lower()
    existing_user = await db.users.find_one({"email": email})
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    role = UserRole.ADMIN if await db.users.count_documents({}) == 0 else UserRole.VIEWER

    user_dict = {
        "email": email,
        "name": user.name,
        "hashed_password": get_password_hash(user.password),
        "role": role.value,
        "created_at": datetime.now(timezone.utc)
    }

    result = await db.users.insert_one(user_dict)
    user_dict["_id"] = result.inserted_id
    logger.info(f"New user created: {email} ({role.value})")

    access_token = create_access_token(data={"sub": str(result.inserted_id)})
    return Token(access_token=access_token, user=user_from_doc(user_dict))

@router.post("/login", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncIOMotorDatabase = Depends(get_database)):
    """Login with email and password"""
    user_doc = await db.users.find_one({"email": form_data.username.lower()})
    if not user_doc or not verify_password(form_data.password, user_doc["hashed_password"]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(data={"sub": str(user_doc["_id"])})
    logger.info(f"User logged in: {user_doc['email']}")

    return Token(access_token=access_token, user=user_from_doc(user_doc))

@router.get("/me", response_model=User)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user info"""
    return current_user
