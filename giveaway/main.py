# giveaway/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from giveaway.core.config import get_settings
from giveaway.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from giveaway.models import user as _user_models  # noqa: F401
from giveaway.models import profile as _profile_models  # noqa: F401
from giveaway.models import address as _address_models  # noqa: F401
from giveaway.models import order as _order_models  # noqa: F401
from giveaway.models import serial as _serial_models  # noqa: F401
from giveaway.models import mug as _mug_models  # noqa: F401


# Routers
from giveaway.routers.users import router as users_router
from giveaway.routers.profiles import router as profiles_router
from giveaway.routers.addresses import router as addresses_router
from giveaway.routers.orders import router as orders_router
from giveaway.routers.mugs import router as mugs_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    logger.info("Startup: connecting to database...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME or "Giveaway Storefront API",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(users_router, prefix=settings.API_V1_STR)
app.include_router(profiles_router, prefix=settings.API_V1_STR)
app.include_router(addresses_router, prefix=settings.API_V1_STR)
app.include_router(orders_router, prefix=settings.API_V1_STR)
app.include_router(mugs_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "giveaway-backend"}
