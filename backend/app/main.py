"""FastAPI application entry point."""
import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import settings
from app.database import async_session, engine, get_db
from app.dependencies import get_file_service
from app.logging_config import setup_logging
from app.models import Base
from app.schemas.file import StatsResponse
from app.services.auth import close_redis
from app.services.errors import FilesError
from app.services.file_service import FileService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, start background worker."""
    setup_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Recover any jobs stuck in "running" from a previous crash
    from app.services.job_worker import recover_stale_jobs, worker_loop
    await recover_stale_jobs(async_session, settings.STALE_JOB_MINUTES)

    worker_task = None
    if settings.RUN_EMBEDDED_WORKER:
        worker_task = asyncio.create_task(
            worker_loop(async_session, settings.WORKER_POLL_INTERVAL)
        )

    yield

    # Cleanup
    if worker_task is not None:
        worker_task.cancel()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Files Manager API",
    version="1.0.0",
    description="Upload, list, share and download files, with image thumbnails.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FilesError)
async def files_error_handler(request: Request, exc: FilesError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.get("/api/health")
async def health_check(db=Depends(get_db)):
    """Verify API and database connectivity."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


@app.get("/api/stats", response_model=StatsResponse)
async def stats(service: FileService = Depends(get_file_service)):
    """Number of stored entries."""
    return {"files": await service.count()}


# Register routers
from app.routes.files import router as files_router
from app.routes.jobs import router as jobs_router
app.include_router(files_router)
app.include_router(jobs_router)
