from __future__ import annotations

import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from diet_agent.config import Settings
from diet_agent.logging_config import setup_logging
from diet_agent.api.v1.chat import router as chat_router
from diet_agent.api.v1.history import router as history_router
from diet_agent.api.v1.meal_plans import router as meal_plans_router
from diet_agent.api.v1.metrics import router as metrics_router
from diet_agent.api.v1.tasks import router as tasks_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Ensure data dir exists so the history store and metrics can write
    settings = Settings()
    os.makedirs(settings.data_dir, exist_ok=True)
    logger.info(
        "Diet Agent API starting (Browser-Use key: {}, OpenAI key: {})",
        "present" if settings.browser_use_api_key else "missing",
        "present" if settings.openai_api_key else "missing",
    )
    yield


def create_app() -> FastAPI:
    settings = Settings()
    setup_logging(settings.log_level)
    app = FastAPI(title="Diet Agent API", version="1.0", lifespan=lifespan)

    # CORS (narrow it down in .env via CORS_ALLOW_ORIGINS if you want)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(chat_router)
    app.include_router(meal_plans_router)
    app.include_router(tasks_router)
    app.include_router(history_router)
    app.include_router(metrics_router)

    if settings.otel_exporter_endpoint:
        from diet_agent.telemetry import setup_telemetry
        setup_telemetry(app, settings.otel_exporter_endpoint)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.get("/readyz")
    def readyz():
        return {"status": "ready"}

    return app

app = create_app()
