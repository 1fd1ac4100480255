from __future__ import annotations

from typing import List, Literal, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException

from diet_agent.api.deps import get_browser_use_client, get_http_client, get_settings
from diet_agent.config import Settings
from diet_agent.core.models import ApiKeyValidation, CamelModel, Task
from diet_agent.services.browser_use import BrowserUseClient
from diet_agent.services.exceptions import BrowserUseError, CredentialMissingError, RemoteFetchError

router = APIRouter(tags=["tasks"])

TaskAction = Literal["pause", "resume", "stop"]


class ApiKeyRequest(CamelModel):
    api_key: Optional[str] = None


@router.get("/api/v1/tasks/{task_id}", response_model=Task)
async def get_task(task_id: str, client: BrowserUseClient = Depends(get_browser_use_client)):
    try:
        return await client.get_task(task_id)
    except CredentialMissingError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except RemoteFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/api/v1/tasks/{task_id}/screenshots", response_model=List[str])
async def get_task_screenshots(task_id: str, client: BrowserUseClient = Depends(get_browser_use_client)):
    try:
        return await client.get_task_screenshots(task_id)
    except CredentialMissingError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except RemoteFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/api/v1/tasks/{task_id}/gif")
async def get_task_gif(task_id: str, client: BrowserUseClient = Depends(get_browser_use_client)):
    try:
        return {"gifUrl": await client.get_task_gif(task_id)}
    except CredentialMissingError as e:
        raise HTTPException(status_code=401, detail=str(e))


@router.post("/api/v1/tasks/{task_id}/{action}")
async def control_task(task_id: str, action: TaskAction, client: BrowserUseClient = Depends(get_browser_use_client)):
    handlers = {"pause": client.pause_task, "resume": client.resume_task, "stop": client.stop_task}
    try:
        await handlers[action](task_id)
    except CredentialMissingError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except BrowserUseError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"ok": True, "action": action}


@router.post("/api/v1/api-key/validate", response_model=ApiKeyValidation)
async def validate_api_key(
    body: Optional[ApiKeyRequest] = None,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    # a key typed into the UI wins over the configured one
    api_key = body.api_key if body and body.api_key else None
    client = BrowserUseClient(settings, api_key=api_key, http_client=http)
    return await client.validate_api_key()
