"""
FastAPI application — local break engine API.
Runs on http://127.0.0.1:8766 by default.

The engine and its collaborators (settings store, statistics recorder,
overlay presenter) live on app.state, so each call to create_app() produces a
fully independent instance with no shared module-level globals.

Every route that touches the engine is ``async def``: it then runs on the
event loop that also delivers the engine's timer callbacks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import config
from ..errors import SettingsValidationError
from ..overlay.presenter import ApiOverlayPresenter
from ..scheduler.clock import AsyncioClock
from ..scheduler.engine import ScheduleEngine
from ..settings import SettingsStore
from ..stats.recorder import StatisticsRecorder

VERSION = "0.3.0"


# ---------------------------------------------------------------------------
# Lifespan — initialises and tears down all per-app state
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    data_dir: Path = app.state.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)

    app.state.settings = SettingsStore(data_dir / config.settings_file)
    app.state.recorder = StatisticsRecorder(data_dir / config.statistics_db)
    app.state.clock = AsyncioClock()
    app.state.presenter = ApiOverlayPresenter(now=app.state.clock.now)
    app.state.engine = ScheduleEngine(
        app.state.settings,
        app.state.recorder,
        app.state.presenter,
        app.state.clock,
        tolerance=config.timer_tolerance,
    )

    app.state.engine.start_all_timers()

    yield

    app.state.engine.stop_all_timers()


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(data_dir: Optional[Path] = None) -> FastAPI:
    app = FastAPI(
        title="Lumin",
        description="Local break reminder engine: regular, micro, water and custom breaks",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.data_dir = Path(data_dir) if data_dir is not None else config.data_dir

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "null"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SettingsValidationError)
    async def _validation_error(request: Request, exc: SettingsValidationError):
        return JSONResponse(
            status_code=422,
            content={"detail": exc.message, "key": exc.key},
        )

    from .routers import breaks, custom_breaks, settings, state, statistics

    app.include_router(state.router)
    app.include_router(breaks.router)
    app.include_router(settings.router)
    app.include_router(custom_breaks.router)
    app.include_router(statistics.router)

    @app.get("/health")
    async def health(request: Request):
        engine = getattr(request.app.state, "engine", None)
        return {
            "status": "ok",
            "app": "lumin",
            "version": VERSION,
            "enabled": engine.is_enabled if engine is not None else None,
        }

    return app


app = create_app()
