"""FastAPI app with API routes"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from postdeck.config import get_settings
from postdeck.database import DatabaseUnavailableError, init_db
from postdeck.routes import router
from postdeck.services.carousel_renderer import register_fonts
from postdeck.services.scheduler import start_scheduler, stop_scheduler

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Register fonts, create tables and start the scheduler."""
    logger.info("Starting %s...", settings.app_name)

    register_fonts(settings.font_path)

    db_ready = await init_db()
    if db_ready:
        logger.info("Database initialized")

    if settings.scheduler_enabled and db_ready:
        start_scheduler()

    yield

    logger.info("Shutting down...")
    stop_scheduler()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DatabaseUnavailableError)
async def database_unavailable_handler(request: Request, exc: DatabaseUnavailableError):
    return JSONResponse({"detail": str(exc)}, status_code=503)


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(router, prefix="/api")
