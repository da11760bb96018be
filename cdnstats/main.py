# cdnstats/main.py

from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from apscheduler.schedulers.background import BackgroundScheduler
from cdnstats.config import settings
from cdnstats.database import init_db
from cdnstats.logs import router as logs_router
from cdnstats.traffic import router as traffic_router
from cdnstats.aggregator import run_aggregation
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Scheduler instance
scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""

    # Startup
    logger.info("Starting CDN Stats API...")

    # Initialize database tables
    init_db()
    logger.info("Database initialized")

    # Schedule aggregation job, first run immediately
    scheduler.add_job(
        run_aggregation,
        trigger="interval",
        seconds=settings.aggregation_interval_seconds,
        next_run_time=datetime.now(),
        id="aggregation",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started - aggregation every {settings.aggregation_interval_seconds}s")

    yield

    # Shutdown
    logger.info("Shutting down...")

    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")


app = FastAPI(
    title="CDN Stats API",
    description="Edge node log statistics and per-account bandwidth attribution",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routes
app.include_router(traffic_router)
app.include_router(logs_router)
