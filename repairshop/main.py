import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import MESSAGES_ENABLED, OPERATOR_PHONE
from .database import Base, engine
from .domain.orders.router import router as service_orders_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    if not MESSAGES_ENABLED:
        logger.info("📴 WhatsApp/SMS messages are disabled (MESSAGES_ENABLED=false)")
    elif not OPERATOR_PHONE:
        logger.warning("⚠️ OPERATOR_PHONE not set - operator notifications will be skipped")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Repair Shop API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(service_orders_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
