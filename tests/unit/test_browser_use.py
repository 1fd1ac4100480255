import json

import httpx
import pytest

from diet_agent.core.models import (
    MealPlanTaskInput,
    Preferences,
    ShoppingCartTaskInput,
    TaskKind,
    TaskStatus,
)
from diet_agent.services.browser_use import BrowserUseClient
from diet_agent.services.exceptions import (
    BrowserUseError,
    CredentialMissingError,
    RemoteFetchError,
    RemoteSubmissionError,
    TaskTimeoutError,
)

BASE = "https://api.browser-use.com/api/v2"


def _client(settings, transport, clock, **kw):
    http = httpx.AsyncClient(transport=transport)
    return BrowserUseClient(settings, http_client=http, sleep=clock.sleep, clock=clock, **kw), http


# ---- Polling -----------------------------------------------------------------

@pytest.mark.asyncio
async def test_poll_times_out_when_every_fetch_fails(settings, transport, clock):
    script = [httpx.Response(500, text="boom") for _ in range(4)]
    client, http = _client(settings, transport(script), clock)
    async with http:
        with pytest.raises(TaskTimeoutError) as exc:
            await client.poll_until_terminal("task-1", poll_interval=3.0, max_wait=30.0)

    assert not isinstance(exc.value, RemoteFetchError)
    assert str(exc.value) == "Task task-1 timed out after 30 seconds"
    # backoff grows x1.5 per failure, capped at 10s, last sleep trimmed to the deadline
    assert clock.sleeps == pytest.approx([4.5, 6.75, 10.0, 8.75])
    assert clock.now <= 30.0 + 3.0


@pytest.mark.asyncio
async def test_poll_returns_finished_task_and_reports_each_poll(settings, transport, make_task, clock):
    output = '{"title": "X"}'
    script = [
        make_task(status="running", steps=1),
        make_task(status="running", steps=5),
        make_task(status="finished", steps=6, output=output),
    ]
    seen = []
    client, http = _client(settings, transport(script), clock)
    async with http:
        task = await client.poll_until_terminal(
            "task-1", on_progress=lambda status, steps: seen.append((status, steps)), max_wait=30.0
        )

    assert task.status == TaskStatus.FINISHED
    assert task.output == output
    assert seen == [(TaskStatus.RUNNING, 1), (TaskStatus.RUNNING, 5), (TaskStatus.FINISHED, 6)]
    assert clock.sleeps == [3.0, 3.0]


@pytest.mark.asyncio
async def test_backoff_resets_after_a_successful_poll(settings, transport, make_task, clock):
    script = [
        httpx.Response(503),
        httpx.Response(503),
        make_task(status="running"),
        make_task(status="running"),
        make_task(status="finished", output="{}"),
    ]
    client, http = _client(settings, transport(script), clock)
    async with http:
        await client.poll_until_terminal("task-1", max_wait=30.0)
    assert clock.sleeps == pytest.approx([4.5, 6.75, 3.0, 3.0])


@pytest.mark.asyncio
async def test_failed_task_is_returned_not_raised(settings, transport, make_task, clock):
    script = [make_task(status="failed", error="agent gave up")]
    client, http = _client(settings, transport(script), clock)
    async with http:
        task = await client.poll_until_terminal("task-1", max_wait=30.0)
    assert task.status == TaskStatus.FAILED
    assert task.error == "agent gave up"
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_progress_listener_errors_do_not_stop_polling(settings, transport, make_task, clock):
    script = [make_task(status="running"), make_task(status="finished", output="{}")]

    def listener(status, steps):
        raise RuntimeError("listener went away")

    client, http = _client(settings, transport(script), clock)
    async with http:
        task = await client.poll_until_terminal("task-1", on_progress=listener, max_wait=30.0)
    assert task.status == TaskStatus.FINISHED


@pytest.mark.asyncio
async def test_poll_rejects_non_positive_interval(settings, transport, clock):
    client, http = _client(settings, transport([]), clock)
    async with http:
        with pytest.raises(ValueError):
            await client.poll_until_terminal("task-1", poll_interval=0)


# ---- Submission --------------------------------------------------------------

@pytest.mark.asyncio
async def test_meal_plan_submission_then_poll_end_to_end(settings, transport, make_task, clock):
    output = '{"title":"X","description":"d"}'
    seen = []
    script = [
        make_task(task_id="mp-1", status="created"),
        make_task(task_id="mp-1", status="running", steps=1),
        make_task(task_id="mp-1", status="running", steps=5),
        make_task(task_id="mp-1", status="finished", steps=5, output=output),
    ]
    client, http = _client(settings, transport(script, seen), clock)
    async with http:
        created = await client.run_meal_plan_task("vegetarian plan", Preferences(people=4, days=7))
        task = await client.poll_until_terminal(created.id, max_wait=30.0)

    post = seen[0]
    body = json.loads(post.content)
    assert post.method == "POST"
    assert str(post.url) == f"{BASE}/tasks"
    assert post.headers["X-Browser-Use-API-Key"] == "bu_test_key"
    assert "vegetarian plan" in body["task"]
    assert "- People: 4" in body["task"]
    assert "- Days: 7" in body["task"]
    assert body["llm"] == "gemini-2.5-flash"
    assert body["maxSteps"] == 25
    assert body["maxLLMTokens"] == 4000
    assert body["metadata"]["type"] == "meal_plan_generation"
    assert body["metadata"]["source"] == "diet-agent"
    assert json.loads(body["structuredOutput"])["type"] == "object"

    assert [r.method for r in seen[1:]] == ["GET", "GET", "GET"]
    assert str(seen[1].url) == f"{BASE}/tasks/mp-1"
    assert task.status == TaskStatus.FINISHED
    assert task.output == output


@pytest.mark.asyncio
async def test_shopping_cart_submission_body(settings, transport, make_task, clock, meal_plan):
    seen = []
    client, http = _client(settings, transport([make_task(task_id="c-1")], seen), clock)
    async with http:
        task = await client.run_shopping_cart_task(meal_plan, "Walmart", "United States")

    body = json.loads(seen[0].content)
    assert task.id == "c-1"
    assert body["maxSteps"] == 35
    assert "maxLLMTokens" not in body
    assert body["metadata"]["mealPlanId"] == meal_plan.id
    assert body["metadata"]["type"] == "shopping_cart_generation"
    assert f"Proper quantities for {meal_plan.people} people for {meal_plan.days} days" in body["task"]


@pytest.mark.asyncio
async def test_missing_credential_fails_before_any_request(settings, transport, clock):
    seen = []
    no_key = settings.model_copy(update={"browser_use_api_key": None})
    client, http = _client(no_key, transport([], seen), clock)
    async with http:
        assert not client.has_credential
        with pytest.raises(CredentialMissingError):
            await client.run_meal_plan_task("plan meals")
        with pytest.raises(CredentialMissingError):
            await client.get_task("task-1")
    assert seen == []


@pytest.mark.asyncio
async def test_submission_http_error_keeps_status_and_body(settings, transport, clock):
    client, http = _client(settings, transport([httpx.Response(401, text="bad key")]), clock)
    async with http:
        with pytest.raises(RemoteSubmissionError) as exc:
            await client.submit_task(TaskKind.MEAL_PLAN, MealPlanTaskInput(prompt="plan"))
    assert exc.value.status_code == 401
    assert exc.value.body == "bad key"


@pytest.mark.asyncio
async def test_submission_transport_error_has_no_status(settings, transport, clock):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, http = _client(settings, transport([refuse]), clock)
    async with http:
        with pytest.raises(RemoteSubmissionError) as exc:
            await client.submit_task(TaskKind.MEAL_PLAN, MealPlanTaskInput(prompt="plan"))
    assert exc.value.status_code is None


@pytest.mark.asyncio
async def test_submit_rejects_mismatched_payload(settings, transport, clock):
    client, http = _client(settings, transport([]), clock)
    async with http:
        with pytest.raises(TypeError):
            await client.submit_task(TaskKind.SHOPPING_CART, MealPlanTaskInput(prompt="plan"))


# ---- Task control ------------------------------------------------------------

@pytest.mark.asyncio
async def test_pause_sends_patch_action(settings, transport, clock):
    seen = []
    client, http = _client(settings, transport([httpx.Response(200, json={})], seen), clock)
    async with http:
        await client.pause_task("task-9")
    assert seen[0].method == "PATCH"
    assert json.loads(seen[0].content) == {"action": "pause"}


@pytest.mark.asyncio
async def test_stop_failure_raises_service_error(settings, transport, clock):
    client, http = _client(settings, transport([httpx.Response(404)]), clock)
    async with http:
        with pytest.raises(BrowserUseError):
            await client.stop_task("missing")


@pytest.mark.asyncio
async def test_gif_lookup_swallows_fetch_errors(settings, transport, make_task, clock):
    script = [make_task(gif_url="https://cdn/x.gif"), httpx.Response(500)]
    client, http = _client(settings, transport(script), clock)
    async with http:
        assert await client.get_task_gif("task-1") == "https://cdn/x.gif"
        assert await client.get_task_gif("task-1") is None


# ---- API key validation ------------------------------------------------------

@pytest.mark.asyncio
async def test_validate_api_key_accepts_unparseable_success(settings, transport, clock):
    client, http = _client(settings, transport([httpx.Response(200, text="<html>ok</html>")]), clock)
    async with http:
        result = await client.validate_api_key()
    assert result.valid is True
    assert result.credits is None
    assert result.error is None


@pytest.mark.asyncio
async def test_validate_api_key_reads_credits(settings, transport, clock):
    client, http = _client(
        settings,
        transport([{"credits": 12.5}, {"balance": 3}, {"credits": None, "balance": 7}, {"credits": 0, "balance": 2}]),
        clock,
    )
    async with http:
        assert (await client.validate_api_key()).credits == 12.5
        assert (await client.validate_api_key()).credits == 3.0
        assert (await client.validate_api_key()).credits == 7.0
        assert (await client.validate_api_key()).credits == 2.0


@pytest.mark.asyncio
async def test_validate_api_key_reports_rejection(settings, transport, clock):
    client, http = _client(settings, transport([httpx.Response(401, text="invalid key")]), clock)
    async with http:
        result = await client.validate_api_key()
    assert result.valid is False
    assert result.error.startswith("API validation failed: 401")
    assert "invalid key" in result.error


@pytest.mark.asyncio
async def test_validate_api_key_without_key_is_invalid(settings, transport, clock):
    seen = []
    no_key = settings.model_copy(update={"browser_use_api_key": None})
    client, http = _client(no_key, transport([], seen), clock)
    async with http:
        result = await client.validate_api_key()
    assert result.valid is False
    assert result.error == "Browser-Use API key is required"
    assert seen == []


@pytest.mark.asyncio
async def test_explicit_api_key_overrides_settings(settings, transport, clock):
    seen = []
    client, http = _client(settings, transport([{"credits": 1}], seen), clock, api_key="bu_other")
    async with http:
        await client.validate_api_key()
    assert seen[0].headers["X-Browser-Use-API-Key"] == "bu_other"
    assert str(seen[0].url) == f"{BASE}/accounts/me"


def test_cart_input_requires_store_and_country(meal_plan):
    with pytest.raises(ValueError):
        ShoppingCartTaskInput(meal_plan=meal_plan, supermarket="", country="US")
