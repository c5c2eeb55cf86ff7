import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .config import Settings, get_settings
from .db.monitoring import get_pool_snapshot
from .db.session import dispose_engine, get_engine
from .lesson_routes import router as lesson_router
from .logging_config import configure_logging
from .onboarding_routes import router as onboarding_router
from .profile_routes import router as progress_router
from .services import get_services, reset_services
from .session_routes import router as session_router
from .topic_routes import router as topic_router


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    services = get_services()
    if not services.session.auth_ready:
        # Nothing restores a credential at process start.
        await services.identity.start(None)
    logger.info(
        "Backend ready (session=%s, platform=%s)",
        services.session.state.value,
        services.capabilities.name,
    )
    try:
        yield
    finally:
        reset_services()
        if services.settings.persistence_mode == "database":
            dispose_engine()


app = FastAPI(title="OneMinute Skill Backend", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(session_router)
app.include_router(onboarding_router)
app.include_router(topic_router)
app.include_router(lesson_router)
app.include_router(progress_router)

settings_snapshot = get_settings()
logger.info(
    "Backend starting with persistence=%s platform=%s",
    settings_snapshot.persistence_mode,
    settings_snapshot.platform,
)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "persistence_mode": settings.persistence_mode, "platform": settings.platform}


@app.get("/healthz/database")
def database_health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    try:
        engine = get_engine()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Database health check failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {
        "status": "ok",
        "persistence_mode": settings.persistence_mode,
        "pool": get_pool_snapshot(engine),
    }
