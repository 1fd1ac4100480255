from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from diet_agent.config import Settings
from diet_agent.core.models import ErrorCategory, MealPlan, ShoppingCart, Task, TaskKind, TaskStatus
from .browser_use import BrowserUseClient, Sleep
from .exceptions import (
    CredentialMissingError,
    OutputMissingError,
    OutputShapeError,
    RemoteFetchError,
    RemoteSubmissionError,
    ServiceError,
    TaskTerminalFailure,
)

T = TypeVar("T")

MessageCallback = Callable[[str], None]


class TaskOutcome(BaseModel, Generic[T]):
    """Classified result of a full submit/poll/validate run, retries included."""
    ok: bool
    value: Optional[T] = None
    task: Optional[Task] = None
    attempts: int = 0
    error_category: Optional[ErrorCategory] = None
    user_message: Optional[str] = None
    error_detail: Optional[str] = None  # raw error text, diagnostics only
    progress: List[str] = Field(default_factory=list)


# ---- Output validation -------------------------------------------------------

def load_output_json(output: Optional[str]) -> Any:
    """
    Decode a finished task's output. Prose (anything not starting with '{' or
    '[') is rejected before parsing; agents often answer with an apology.
    """
    if output is None or not output.strip():
        raise OutputMissingError("No output received from browser-use task")
    text = output.strip()
    if not text.startswith(("{", "[")):
        raise OutputShapeError(f"API returned error message: {text[:300]}")
    try:
        return json.loads(text)
    except ValueError as e:
        raise OutputShapeError(f"Output is not valid JSON: {e}") from e


def parse_meal_plan_output(output: Optional[str]) -> MealPlan:
    data = load_output_json(output)
    try:
        return MealPlan.model_validate(data)
    except ValidationError as e:
        raise OutputShapeError(f"Incomplete meal plan data received ({e.error_count()} problems)") from e


def parse_shopping_cart_output(output: Optional[str]) -> ShoppingCart:
    data = load_output_json(output)
    try:
        return ShoppingCart.model_validate(data)
    except ValidationError as e:
        raise OutputShapeError(f"Incomplete shopping cart data received ({e.error_count()} problems)") from e


# ---- Error translation -------------------------------------------------------

_HELP = {
    ErrorCategory.CREDENTIAL: (
        " There seems to be an issue with the API key configuration.",
        " Please check your Browser-Use API key in the setup.",
    ),
    ErrorCategory.NETWORK: (
        " There was a network connectivity issue.",
        " Please check your internet connection and try again.",
    ),
    ErrorCategory.SERVICE: (
        " The AI agent task was unsuccessful.",
        " This could be due to complexity or temporary service limitations.",
    ),
    ErrorCategory.DATA_FORMAT: (
        " There was a data formatting issue during processing.",
        " Please try rephrasing your request.",
    ),
}


def categorize_error(error: BaseException) -> ErrorCategory:
    if isinstance(error, CredentialMissingError):
        return ErrorCategory.CREDENTIAL
    if isinstance(error, RemoteSubmissionError):
        if error.status_code in (401, 403):
            return ErrorCategory.CREDENTIAL
        if error.status_code is None:
            return ErrorCategory.NETWORK
        return ErrorCategory.SERVICE
    if isinstance(error, RemoteFetchError):
        return ErrorCategory.NETWORK
    if isinstance(error, (OutputMissingError, OutputShapeError)):
        return ErrorCategory.DATA_FORMAT
    return ErrorCategory.SERVICE


def user_message_for(error: BaseException, subject: str = "meal plan") -> Tuple[ErrorCategory, str]:
    category = categorize_error(error)
    detail, help_text = _HELP[category]
    if isinstance(error, TaskTerminalFailure) and "consecutive step failures" in (error.error or ""):
        detail = " The AI agent had difficulty completing the research due to technical constraints."
        help_text = " Try simplifying your request or breaking it into smaller parts."
    message = (
        f"I apologize, but I encountered an error while creating your {subject}."
        f"{detail}{help_text} Please try again in a few moments."
    )
    return category, message


# ---- Retry wrapper -----------------------------------------------------------

class TaskRunner:
    """
    Runs one logical operation (submit, poll, validate) with caller-level retries.

    Every failure kind is retried the same way, terminal task failures included.
    Waits `retry_delay * n` before retry n. Service errors never escape `run`;
    they come back as a failed TaskOutcome with a user-facing message.
    """

    def __init__(
        self,
        client: BrowserUseClient,
        max_retries: int = 2,
        retry_delay: float = 2.0,
        poll_interval: float = 3.0,
        max_wait: float = 300.0,
        sleep: Optional[Sleep] = None,
    ):
        self.client = client
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, client: BrowserUseClient, settings: Settings, sleep: Optional[Sleep] = None) -> "TaskRunner":
        return cls(
            client,
            max_retries=settings.task_max_retries,
            retry_delay=settings.task_retry_delay,
            poll_interval=settings.task_poll_interval,
            max_wait=settings.task_max_wait,
            sleep=sleep,
        )

    async def run(
        self,
        kind: TaskKind,
        payload: Any,
        parse: Callable[[Optional[str]], T],
        on_progress: Optional[MessageCallback] = None,
        subject: str = "meal plan",
    ) -> TaskOutcome[T]:
        progress: List[str] = []

        def report(message: str) -> None:
            progress.append(message)
            if on_progress is None:
                return
            try:
                on_progress(message)
            except Exception:
                logger.exception("Progress listener failed")

        total = self.max_retries + 1
        last_error: Optional[ServiceError] = None
        last_task: Optional[Task] = None

        for attempt in range(1, total + 1):
            if attempt > 1:
                report(f"Retrying... (Attempt {attempt - 1} of {self.max_retries})")
                await self._sleep(self.retry_delay * (attempt - 1))
            last_task = None
            try:
                last_task = await self._run_once(kind, payload, report, attempt < total, subject)
                value = parse(last_task.output)
            except ServiceError as e:
                logger.warning("{} task error (attempt {}/{}): {}", kind.value, attempt, total, e)
                last_error = e
                continue
            logger.info("{} task {} succeeded on attempt {}", kind.value, last_task.id, attempt)
            return TaskOutcome(ok=True, value=value, task=last_task, attempts=attempt, progress=progress)

        assert last_error is not None
        category, message = user_message_for(last_error, subject)
        return TaskOutcome(
            ok=False,
            task=last_task,
            attempts=total,
            error_category=category,
            user_message=message,
            error_detail=str(last_error),
            progress=progress,
        )

    async def _run_once(
        self,
        kind: TaskKind,
        payload: Any,
        report: MessageCallback,
        will_retry: bool,
        subject: str,
    ) -> Task:
        task = await self.client.submit_task(kind, payload)
        report(f"AI agent is researching current market prices and creating your {subject}...")

        def on_status(status: TaskStatus, step_count: int) -> None:
            if status == TaskStatus.RUNNING:
                report(f"AI agent is working... ({step_count} steps completed)")
            elif status == TaskStatus.FINISHED:
                report(f"AI agent has completed your {subject}! Processing results...")
            elif status in (TaskStatus.FAILED, TaskStatus.STOPPED):
                tail = "Will retry shortly..." if will_retry else "Maximum retries reached."
                report(f"Task {status.value}. {tail}")

        done = await self.client.poll_until_terminal(
            task.id,
            on_progress=on_status,
            poll_interval=self.poll_interval,
            max_wait=self.max_wait,
        )
        if done.status in (TaskStatus.FAILED, TaskStatus.STOPPED):
            raise TaskTerminalFailure(done.id, done.status.value, done.error)
        return done
