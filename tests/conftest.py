import json
from typing import Callable, Iterable, List

import httpx
import pytest

from diet_agent.config import Settings
from diet_agent.core.models import MealPlan, Preferences
from diet_agent.services.demo import DemoMealPlanner


class FakeClock:
    """Monotonic clock that only moves when the code under test sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    d = tmp_path / "data"
    return Settings(
        _env_file=None,
        browser_use_api_key="bu_test_key",
        task_poll_interval=3.0,
        task_max_wait=30.0,
        task_max_poll_interval=10.0,
        data_dir=str(d),
        history_chats_file=str(d / "chat_history.json"),
        history_recipes_file=str(d / "recipe_history.json"),
        history_purchases_file=str(d / "purchase_history.json"),
    )


@pytest.fixture
def meal_plan() -> MealPlan:
    return DemoMealPlanner().plan(Preferences(days=2, people=2))


@pytest.fixture
def meal_plan_output(meal_plan) -> str:
    return meal_plan.model_dump_json(by_alias=True)


def task_json(task_id: str = "task-1", status: str = "running", steps: int = 0, **extra) -> dict:
    return {"id": task_id, "status": status, "steps": [{"n": i} for i in range(steps)], **extra}


def scripted_transport(script: Iterable, seen: List[httpx.Request] = None) -> httpx.MockTransport:
    """
    Answer requests from `script` in order. Items are httpx.Response objects,
    dicts (sent as a 200 JSON body) or callables taking the request.
    """
    queue = list(script)

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if not queue:
            raise AssertionError(f"unexpected request {request.method} {request.url}")
        item = queue.pop(0)
        if isinstance(item, httpx.Response):
            return item
        if callable(item):
            return item(request)
        return httpx.Response(200, json=item)

    return httpx.MockTransport(handler)


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content.decode("utf-8"))


@pytest.fixture
def make_task() -> Callable[..., dict]:
    return task_json


@pytest.fixture
def transport() -> Callable[..., httpx.MockTransport]:
    return scripted_transport
