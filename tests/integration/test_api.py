import json

import httpx
import pytest
from fastapi.testclient import TestClient

from diet_agent.api.deps import get_http_client
from diet_agent.main import create_app


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    # isolate data dir and credentials for this test run
    d = tmp_path / "data"
    d.mkdir()
    monkeypatch.setenv("DATA_DIR", str(d))
    monkeypatch.setenv("HISTORY_CHATS_FILE", str(d / "chat_history.json"))
    monkeypatch.setenv("HISTORY_RECIPES_FILE", str(d / "recipe_history.json"))
    monkeypatch.setenv("HISTORY_PURCHASES_FILE", str(d / "purchase_history.json"))
    monkeypatch.setenv("TASK_RETRY_DELAY", "0")
    for name in ("BROWSER_USE_API_KEY", "OPENAI_API_KEY", "OTEL_EXPORTER_ENDPOINT"):
        monkeypatch.delenv(name, raising=False)
    return d


@pytest.fixture
def app(data_dir):
    return create_app()


@pytest.fixture
def client(app):
    return TestClient(app)


def use_transport(app, transport):
    """Route every outgoing Browser-Use call through `transport`."""
    async def _http():
        async with httpx.AsyncClient(transport=transport) as http:
            yield http
    app.dependency_overrides[get_http_client] = _http


def test_health(client):
    assert client.get("/healthz").json() == {"status": "ok"}
    assert client.get("/readyz").json() == {"status": "ready"}


def test_meal_plan_without_credential_uses_demo(client):
    resp = client.post("/api/v1/meal-plans", json={"prompt": "vegetarian plan for 2 people for 3 days"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["source"] == "demo"
    assert body["mealPlan"]["days"] == 3
    assert body["mealPlan"]["people"] == 2
    assert body["preferences"]["dietary_restrictions"] == ["vegetarian"]
    assert body["message"].startswith("Here's a sample meal plan")


def test_blank_prompt_is_rejected(client):
    assert client.post("/api/v1/meal-plans", json={"prompt": "   "}).status_code == 422


def test_meal_plan_with_credential_runs_remote_task(app, client, monkeypatch, transport, make_task, meal_plan_output):
    monkeypatch.setenv("BROWSER_USE_API_KEY", "bu_test")
    seen = []
    use_transport(app, transport([{"id": "t-1"}, make_task("t-1", "finished", steps=4, output=meal_plan_output)], seen))

    resp = client.post("/api/v1/meal-plans", json={"prompt": "plan for 2 people"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["source"] == "ai"
    assert body["taskId"] == "t-1"
    assert body["attempts"] == 1
    assert body["message"].startswith("I've created a personalized meal plan")
    assert seen[0].method == "POST"
    assert json.loads(seen[0].content)["maxSteps"] == 25


def test_remote_failure_falls_back_with_explanation(app, client, monkeypatch, transport):
    monkeypatch.setenv("BROWSER_USE_API_KEY", "bu_test")
    monkeypatch.setenv("TASK_MAX_RETRIES", "0")
    use_transport(app, transport([httpx.Response(401, text="bad key")]))

    body = client.post("/api/v1/meal-plans", json={"prompt": "plan for 2 people"}).json()
    assert body["source"] == "demo"
    assert body["errorCategory"] == "credential"
    assert "API key" in body["errorMessage"]


def test_chat_requires_device_id(client):
    assert client.post("/api/v1/chat", json={"message": "hi"}).status_code == 400


def test_chat_without_credential_uses_conversation_rules(client):
    headers = {"X-Device-Id": "device-rules"}
    resp = client.post("/api/v1/chat", json={"message": "I need a meal plan for 2 people"}, headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"].startswith("Great! I understand you want a meal plan for 2 people")
    assert body["hints"]["people"] == 2
    assert body["mealPlan"] is None

    chats = client.get("/api/v1/history/chats").json()
    assert chats[0]["query"] == "I need a meal plan for 2 people"
    assert [m["role"] for m in chats[0]["messages"]] == ["user", "assistant"]

    assert client.delete("/api/v1/chat", headers=headers).json() == {"ok": True}


def test_chat_meal_plan_request_with_credential(app, client, monkeypatch, transport, make_task, meal_plan_output):
    monkeypatch.setenv("BROWSER_USE_API_KEY", "bu_test")
    use_transport(app, transport([{"id": "t-2"}, make_task("t-2", "finished", output=meal_plan_output)]))

    resp = client.post(
        "/api/v1/chat", json={"message": "make a meal plan for 2 people"}, headers={"X-Device-Id": "device-ai"}
    )
    body = resp.json()
    assert body["source"] == "ai"
    assert body["mealPlan"]["id"]
    assert body["progress"][-1] == "AI agent has completed your meal plan! Processing results..."


def test_shopping_cart_demo_records_purchase(client, meal_plan):
    payload = {"mealPlan": meal_plan.model_dump(by_alias=True), "supermarket": "Walmart"}
    resp = client.post("/api/v1/shopping-cart", json=payload)
    assert resp.status_code == 200
    cart = resp.json()["cart"]
    assert cart["mealPlanId"] == meal_plan.id
    assert cart["country"] == "United States"

    purchases = client.get("/api/v1/history/purchases").json()
    assert purchases[0]["plan"] == meal_plan.title
    assert purchases[0]["status"] == "pending"


def test_task_routes_need_a_credential(client):
    assert client.get("/api/v1/tasks/t-1").status_code == 401
    assert client.post("/api/v1/tasks/t-1/pause").status_code == 401


def test_task_routes_proxy_the_remote_api(app, client, monkeypatch, transport, make_task):
    monkeypatch.setenv("BROWSER_USE_API_KEY", "bu_test")
    seen = []
    script = [make_task("t-1", "running", steps=2), httpx.Response(500), httpx.Response(200, json={})]
    use_transport(app, transport(script, seen))

    resp = client.get("/api/v1/tasks/t-1")
    assert resp.status_code == 200
    assert resp.json()["status"] == "running"
    assert client.get("/api/v1/tasks/t-1").status_code == 502
    assert client.post("/api/v1/tasks/t-1/stop").json() == {"ok": True, "action": "stop"}
    assert json.loads(seen[-1].content) == {"action": "stop"}
    assert client.post("/api/v1/tasks/t-1/explode").status_code == 422


def test_api_key_validation(app, client, transport):
    assert client.post("/api/v1/api-key/validate").json()["valid"] is False

    seen = []
    use_transport(app, transport([{"credits": 5}], seen))
    body = client.post("/api/v1/api-key/validate", json={"apiKey": "bu_typed"}).json()
    assert body == {"valid": True, "error": None, "credits": 5.0}
    assert seen[0].headers["X-Browser-Use-API-Key"] == "bu_typed"


def test_options_need_an_llm_key(client):
    form = {"days": 3, "people": 2, "calories": 2000, "protein": 100, "supermarket": "tesco"}
    assert client.post("/api/v1/meal-plans/options", json=form).status_code == 503


def test_history_roundtrip(client):
    resp = client.post("/api/v1/history/recipes", json={"title": "Lentil Soup", "cooking_time": "30 min"})
    assert resp.status_code == 200
    assert resp.json()["difficulty"] == "Medium"

    history = client.get("/api/v1/history").json()
    assert [r["title"] for r in history["recipes"]] == ["Lentil Soup"]

    assert client.delete("/api/v1/history/recipes").json() == {"ok": True}
    assert client.get("/api/v1/history/recipes").json() == []
    assert client.delete("/api/v1/history/bogus").status_code == 422
    assert client.delete("/api/v1/history").json() == {"ok": True}


def test_ui_metrics_are_appended(client, data_dir):
    resp = client.post("/api/v1/metrics/ui", json={"name": "chat_render", "duration_ms": 12.5})
    assert resp.json() == {"ok": True}
    line = (data_dir / "latency_log.jsonl").read_text(encoding="utf-8").splitlines()[0]
    assert json.loads(line)["origin"] == "frontend"
