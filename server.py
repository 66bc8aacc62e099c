from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from database.mongodb import db
from database.daily_counter_repository import ensure_daily_counter_indexes
from database.aircraft_repository import ensure_aircraft_indexes
from config import get_settings
from routes import auth, aircraft, utilization
import logging

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the app"""
    # Startup
    await db.connect(settings.mongo_url, settings.db_name)
    await ensure_aircraft_indexes(db.get_db())
    await ensure_daily_counter_indexes(db.get_db())
    logger.info("Fleet Utilization Backend started")
    yield
    # Shutdown
    await db.disconnect()
    logger.info("Fleet Utilization Backend stopped")

# Create FastAPI app
app = FastAPI(
    title="Fleet Utilization API",
    description="Aircraft utilization counters, daily deltas and period aggregations",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(aircraft.router)
app.include_router(utilization.router)

@app.get("/")
async def root():
    return {
        "message": "Fleet Utilization API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/api")
async def api_root():
    return {
        "message": "Fleet Utilization API",
        "endpoints": {
            "auth": "/api/auth",
            "aircraft": "/api/aircraft",
            "utilization": "/api/utilization"
        }
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}
