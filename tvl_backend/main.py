import time
from fastapi import FastAPI, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tvl_backend.core.config import get_settings
from tvl_backend.core.database import get_db
from tvl_backend.db.init_db import init_db
from tvl_backend.api.routes import router as api_router, get_controller

from prometheus_fastapi_instrumentator import Instrumentator
from tvl_backend.core.logging_config import setup_logging, get_logger

settings = get_settings()

# Setup Structured Logging
setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
logger = get_logger("main")

app = FastAPI(title=settings.PROJECT_NAME)

# Instrument Prometheus
Instrumentator().instrument(app).expose(app)

@app.on_event("startup")
async def startup_event():
    try:
        await init_db()
    except Exception as e:
        logger.error("db_init_failed", error=str(e))
    logger.info("startup_event", msg="Loading project registry")
    try:
        get_controller()
    except Exception as e:
        logger.error("registry_load_failed", error=str(e))

@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    start_time = time.time()
    db_status = "unhealthy"
    data_status = "unknown"
    latest_timestamp = None

    try:
        # Check DB connectivity
        await db.execute(select(1))
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"

    try:
        controller = get_controller()
        timings = await controller.timings.resolve(controller.aggregated_config_hash)
        latest_timestamp = timings.latest_timestamp
        if latest_timestamp is None:
            data_status = "no_data"
        elif timings.is_synced:
            data_status = "synced"
        else:
            data_status = "not_fully_synced"
    except Exception as e:
        logger.error("health_data_status_failed", error=str(e))
        data_status = f"error: {str(e)}"

    latency = (time.time() - start_time) * 1000

    return {
        "status": "ok",
        "db_connectivity": db_status,
        "data_status": data_status,
        "latest_timestamp": latest_timestamp,
        "latency_ms": round(latency, 2)
    }

app.include_router(api_router)
