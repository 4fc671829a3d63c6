import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from catalogue_service import models
from catalogue_service.database import engine, get_db
from catalogue_service.routers import books
from catalogue_service.config import settings
from catalogue_service.errors import SERVICE_UNAVAILABLE, ServiceUnavailableError, register_exception_handlers
from catalogue_service.logging_config import setup_logging

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up catalogue-service...")
    if settings.CREATE_TABLES:
        models.Base.metadata.create_all(bind=engine)
    yield
    logger.info("Shutting down catalogue-service...")

app = FastAPI(
    title="Book Catalogue Service",
    description=(
        "Microservice for the book catalogue: create, read, update "
        "(PUT and JSON Merge Patch), delete and filtered search."
    ),
    version="1.0.0",
    lifespan=lifespan
)

register_exception_handlers(app)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000
    logger.info(
        "%s %s -> %s (%.2f ms) ip=%s",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        request.client.host if request.client else "unknown",
    )
    return response

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health check endpoint
@app.get("/health", tags=["System"])
def health_check(db: Session = Depends(get_db)):
    health_status = {"status": "healthy", "service": "catalogue-service", "components": {}}

    # Check database
    try:
        db.execute(text("SELECT 1"))
        health_status["components"]["database"] = "connected"
    except Exception as e:
        logger.error(f"DB health check failed: {e}")
        health_status["components"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    if health_status["status"] != "healthy":
        raise ServiceUnavailableError(
            details=[
                {"field": name, "code": SERVICE_UNAVAILABLE, "message": state}
                for name, state in health_status["components"].items()
            ]
        )
    return health_status

app.include_router(books.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8002)
