from __future__ import annotations

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from loguru import logger

from diet_agent.config import Settings
from diet_agent.core.models import (
    ApiKeyValidation,
    MealPlan,
    MealPlanTaskInput,
    Preferences,
    ShoppingCartTaskInput,
    Task,
    TaskKind,
    TaskStatus,
)
from diet_agent.core.task_requests import TaskRequest, build_task_request
from .exceptions import (
    BrowserUseError,
    CredentialMissingError,
    RemoteFetchError,
    RemoteSubmissionError,
    TaskTimeoutError,
)

ProgressCallback = Callable[[TaskStatus, int], None]
Sleep = Callable[[float], Awaitable[None]]

REQUEST_SOURCE = "diet-agent"
USER_AGENT = "Diet-Agent/1.0"


def _notify(on_progress: Optional[ProgressCallback], task: Task) -> None:
    # The receiver may already be gone (closed websocket, finished request).
    if on_progress is None:
        return
    try:
        on_progress(task.status, task.step_count)
    except Exception:
        logger.exception("Progress callback failed for task {}", task.id)


class BrowserUseClient:
    """
    Async client for the Browser-Use task API: create a task, poll it to a
    terminal status, and a few account/task-control calls.

    The API key is read once at construction. A missing key fails every call
    with CredentialMissingError before anything goes over the wire.
    """

    def __init__(
        self,
        settings: Settings,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleep] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._base_url = settings.browser_use_base_url.rstrip("/")
        self._api_key = api_key if api_key is not None else settings.browser_use_api_key
        self._llm = settings.browser_use_llm
        self._task_timeout = int(settings.task_max_wait)
        self.max_poll_interval = settings.task_max_poll_interval
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=settings.browser_use_http_timeout)
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic
        logger.debug("BrowserUseClient initialized with API key: {}", "present" if self._api_key else "missing")

    async def __aenter__(self) -> "BrowserUseClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    @property
    def has_credential(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> Dict[str, str]:
        if not self._api_key:
            raise CredentialMissingError()
        return {
            "X-Browser-Use-API-Key": self._api_key,
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            "X-Request-Source": REQUEST_SOURCE,
        }

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    # ---- Task submission -----------------------------------------------------

    def task_body(self, request: TaskRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "task": request.instruction,
            "llm": self._llm,
            "maxSteps": request.max_steps,
            "structuredOutput": json.dumps(request.output_schema),
            "timeoutSeconds": self._task_timeout,
            "metadata": {
                "type": request.kind.value,
                **request.metadata,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "source": REQUEST_SOURCE,
            },
        }
        if request.max_llm_tokens is not None:
            body["maxLLMTokens"] = request.max_llm_tokens
        return body

    async def submit_task(self, kind: TaskKind, payload: Any) -> Task:
        request = build_task_request(kind, payload)
        headers = self._headers()
        body = self.task_body(request)
        label = kind.value.replace("_", " ")

        try:
            resp = await self._http.post(self._url("/tasks"), headers=headers, json=body)
        except httpx.HTTPError as e:
            raise RemoteSubmissionError(f"Failed to create {label} task: {e}") from e

        if resp.is_error:
            logger.error("Browser-Use API error creating {} task: {} {}", label, resp.status_code, resp.text[:300])
            raise RemoteSubmissionError(
                f"Failed to create {label} task: {resp.status_code} {resp.reason_phrase} - {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            task = Task.model_validate(resp.json())
        except ValueError as e:
            raise RemoteSubmissionError(
                f"Failed to create {label} task: unreadable response ({e})",
                status_code=resp.status_code,
                body=resp.text,
            ) from e
        logger.info("Browser-Use task created: {} ({})", task.id, kind.value)
        return task

    async def run_meal_plan_task(self, prompt: str, preferences: Optional[Preferences] = None) -> Task:
        return await self.submit_task(TaskKind.MEAL_PLAN, MealPlanTaskInput(prompt=prompt, preferences=preferences))

    async def run_shopping_cart_task(self, meal_plan: MealPlan, supermarket: str, country: str) -> Task:
        payload = ShoppingCartTaskInput(meal_plan=meal_plan, supermarket=supermarket, country=country)
        return await self.submit_task(TaskKind.SHOPPING_CART, payload)

    # ---- Task reads ----------------------------------------------------------

    async def get_task(self, task_id: str) -> Task:
        headers = self._headers()
        try:
            resp = await self._http.get(self._url(f"/tasks/{task_id}"), headers=headers)
        except httpx.HTTPError as e:
            raise RemoteFetchError(f"Failed to get task details: {e}") from e
        if resp.is_error:
            raise RemoteFetchError(
                f"Failed to get task details: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
                body=resp.text,
            )
        try:
            return Task.model_validate(resp.json())
        except ValueError as e:
            raise RemoteFetchError(f"Failed to read task details: {e}", status_code=resp.status_code) from e

    async def get_task_screenshots(self, task_id: str) -> List[str]:
        task = await self.get_task(task_id)
        return task.screenshots or []

    async def get_task_gif(self, task_id: str) -> Optional[str]:
        try:
            task = await self.get_task(task_id)
        except RemoteFetchError:
            return None
        return task.gif_url

    async def poll_until_terminal(
        self,
        task_id: str,
        on_progress: Optional[ProgressCallback] = None,
        poll_interval: float = 3.0,
        max_wait: float = 300.0,
    ) -> Task:
        """
        Fetch the task until it reaches finished/failed/stopped and return it.

        Failed fetches only grow the backoff factor (x1.5, interval capped at
        max_poll_interval); a successful fetch resets it to 1. The only way out
        besides a terminal task is TaskTimeoutError once max_wait has elapsed,
        checked before every attempt. Failed/stopped tasks are returned, not raised.
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        started = self._clock()
        backoff = 1.0
        max_factor = self.max_poll_interval / poll_interval

        while True:
            elapsed = self._clock() - started
            if elapsed >= max_wait:
                raise TaskTimeoutError(task_id, elapsed)

            try:
                task = await self.get_task(task_id)
            except RemoteFetchError as e:
                backoff = min(backoff * 1.5, max_factor)
                logger.warning("Error fetching task {} details (will retry): {}", task_id, e)
            else:
                _notify(on_progress, task)
                if task.is_terminal:
                    logger.info("Task {} reached terminal status {}", task_id, task.status.value)
                    return task
                backoff = 1.0

            delay = min(poll_interval * backoff, self.max_poll_interval)
            remaining = max_wait - (self._clock() - started)
            if remaining > 0:
                await self._sleep(min(delay, remaining))

    # ---- Task control --------------------------------------------------------

    async def _patch_task(self, task_id: str, action: str) -> None:
        headers = self._headers()
        try:
            resp = await self._http.patch(self._url(f"/tasks/{task_id}"), headers=headers, json={"action": action})
        except httpx.HTTPError as e:
            raise BrowserUseError(f"Failed to {action} task: {e}") from e
        if resp.is_error:
            raise BrowserUseError(f"Failed to {action} task: {resp.status_code} {resp.reason_phrase}")

    async def pause_task(self, task_id: str) -> None:
        await self._patch_task(task_id, "pause")

    async def resume_task(self, task_id: str) -> None:
        await self._patch_task(task_id, "resume")

    async def stop_task(self, task_id: str) -> None:
        await self._patch_task(task_id, "stop")

    # ---- Account -------------------------------------------------------------

    async def validate_api_key(self) -> ApiKeyValidation:
        try:
            headers = self._headers()
            resp = await self._http.get(self._url("/accounts/me"), headers=headers)
        except (CredentialMissingError, httpx.HTTPError) as e:
            logger.error("API key validation error: {}", e)
            return ApiKeyValidation(valid=False, error=str(e))

        if resp.is_error:
            return ApiKeyValidation(
                valid=False,
                error=f"API validation failed: {resp.status_code} {resp.reason_phrase} - {resp.text}",
            )

        # A 2xx with an unreadable body still proves the key works.
        try:
            account = resp.json()
        except ValueError:
            return ApiKeyValidation(valid=True)
        credits = None
        if isinstance(account, dict):
            raw = account.get("credits") or account.get("balance")
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                credits = float(raw)
        return ApiKeyValidation(valid=True, credits=credits)
