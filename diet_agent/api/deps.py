from __future__ import annotations

from typing import AsyncIterator

import httpx
from fastapi import Depends, HTTPException, Request

from diet_agent.config import Settings
from diet_agent.services.browser_use import BrowserUseClient
from diet_agent.services.exceptions import RepoError
from diet_agent.services.metrics import MetricsLogger
from diet_agent.services.repo.json_repo import JSONHistoryStore
from diet_agent.services.task_runner import TaskRunner

# ---- DI helpers shared by the v1 routers --------------------------------------

def get_settings() -> Settings:
    return Settings()


async def get_http_client(settings: Settings = Depends(get_settings)) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.browser_use_http_timeout) as http:
        yield http


def get_browser_use_client(
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> BrowserUseClient:
    return BrowserUseClient(settings, http_client=http)


def get_task_runner(
    settings: Settings = Depends(get_settings),
    client: BrowserUseClient = Depends(get_browser_use_client),
):
    # None means "no credential": planning falls back to the demo path
    if not client.has_credential:
        return None
    return TaskRunner.from_settings(client, settings)


def get_metrics(settings: Settings = Depends(get_settings)) -> MetricsLogger:
    return MetricsLogger(settings)


def get_history_store(settings: Settings = Depends(get_settings)) -> JSONHistoryStore:
    try:
        return JSONHistoryStore(settings)
    except RepoError as e:
        raise HTTPException(status_code=500, detail=str(e))


def device_id_or_400(request: Request) -> str:
    did = request.headers.get("X-Device-Id")
    if not did:
        raise HTTPException(status_code=400, detail="Missing X-Device-Id header")
    return did
