"""Main application entry point."""
import logging
import os
from contextlib import asynccontextmanager

import redis
import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import (
    API_VERSION,
    CORS_ORIGINS,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_PER_MINUTE_IP,
    RATE_LIMIT_PER_MINUTE_USER,
    REDIS_URL,
    UPLOAD_DIR,
    UPLOAD_URL_PREFIX,
)
from storefront.database import engine, get_db, init_db
from storefront.errors import error_body, register_exception_handlers
from storefront.logging_config import setup_logging
from storefront.redis_rate_limiter import RedisRateLimiter
from storefront.routers import admin, cart, orders, products, upload
from storefront.routers import auth as auth_router
from storefront.services.file_storage import FileStorage

# Setup structured logging
setup_logging()
logger = logging.getLogger(__name__)

# Sync client for the rate limiter middleware
redis_client = redis.from_url(REDIS_URL, decode_responses=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info("Starting application...")

    init_db()

    if RATE_LIMIT_ENABLED:
        RedisInstrumentor().instrument(redis_client=redis_client)
        logger.info("Redis rate limiting enabled", extra={
            "requests_per_minute_ip": RATE_LIMIT_PER_MINUTE_IP,
            "requests_per_minute_user": RATE_LIMIT_PER_MINUTE_USER
        })

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    redis_client.close()
    engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Jusas Tropical Smoothie API",
    version=API_VERSION,
    lifespan=lifespan
)

app.state.file_storage = FileStorage()

if RATE_LIMIT_ENABLED:
    app.add_middleware(
        RedisRateLimiter,
        redis_client=redis_client,
        requests_per_minute_ip=RATE_LIMIT_PER_MINUTE_IP,
        requests_per_minute_user=RATE_LIMIT_PER_MINUTE_USER
    )

# Credentialed CORS for the storefront frontends
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

register_exception_handlers(app)

# Instrument FastAPI and SQLAlchemy
FastAPIInstrumentor.instrument_app(app)
SQLAlchemyInstrumentor().instrument(engine=engine)


@app.get("/")
def root():
    return {"message": "Jusas Tropical Smoothie API is running"}


@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    """Health check endpoint; reports unhealthy when the database is unreachable."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check failed", extra={"error": str(e)})
        return JSONResponse(status_code=503, content=error_body("Database unavailable", status="unhealthy"))
    return {"status": "healthy", "version": API_VERSION}


# Include routers
app.include_router(auth_router.router)
app.include_router(products.router)
app.include_router(cart.router)
app.include_router(orders.router)
app.include_router(admin.router)
app.include_router(upload.router)

os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=UPLOAD_DIR), name="uploads")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
