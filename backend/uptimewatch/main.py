"""Main FastAPI application hosting the monitoring engine."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .config import settings
from .database import async_session, close_db, init_db
from .services.notifier import Notifier
from .services.scheduler import MonitoringEngine
from .services.store import SqlStore

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info(f"Starting uptimewatch {__version__}")

    await init_db()
    logger.info("Database initialized")

    engine = MonitoringEngine(SqlStore(async_session), Notifier())
    await engine.start_all()
    app.state.engine = engine

    yield

    engine.stop_all()
    await close_db()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="uptimewatch",
        description="HTTP(S) uptime monitoring with incidents and on-call alerts",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health_check():
        engine = getattr(app.state, "engine", None)
        return {
            "status": "healthy",
            "scheduler_running": bool(engine and engine.registry.running),
            "targets": len(engine.registry.target_ids()) if engine else 0,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
