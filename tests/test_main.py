import json

import httpx
import respx
from fastapi.testclient import TestClient

from tests.gemini_responses import (
    GEMINI_URL,
    gemini_error,
    gemini_quota_error,
    gemini_reply,
)

CHAT_BODY = {
    "messages": [
        {"role": "user", "content": "What does the chart show?"},
        {"role": "assistant", "content": "Revenue by month."},
        {"role": "user", "content": "Which month is highest?"},
    ],
    "context": {
        "fullDataContext": {"rowCount": 120},
        "visibleDataContext": {"visibleRows": [{"month": "Jan", "revenue": 10}]},
        "charts": [
            {"type": "bar", "xAxis": "month", "yAxis": "revenue", "aggregates": {"max": 42}}
        ],
    },
    "settings": {"verbosity": "brief"},
}

INSIGHTS_JSON = """```json
{"insights": [{"title": "Growth", "description": "Revenue grows.",
  "chartSuggestion": {"type": "line", "xAxis": "month", "yAxis": "revenue", "reason": "trend"}}],
 "summary": "Healthy growth.", "recommendations": ["Keep going"]}
```"""


def test_health_check(app):
    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["all_exhausted"] is False
    assert data["total_keys"] == 2


@respx.mock
def test_chat_returns_reply(app):
    route = respx.post(GEMINI_URL).mock(return_value=gemini_reply("March is highest."))

    client = TestClient(app)
    response = client.post("/api/chat", json=CHAT_BODY)

    assert response.status_code == 200
    assert response.json() == {"success": True, "reply": "March is highest."}
    request = route.calls[0].request
    assert request.headers["x-goog-api-key"] == "test_key_1"
    body = json.loads(request.content)
    assert body["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 1024}
    prompt = body["contents"][0]["parts"][0]["text"]
    assert "VERBOSITY SETTING: brief" in prompt
    assert "Which month is highest?" in prompt
    assert "ASSISTANT: Revenue by month." in prompt


@respx.mock
def test_chat_switches_key_on_quota(app):
    route = respx.post(GEMINI_URL).mock(
        side_effect=[gemini_quota_error(), gemini_reply("Switched key.")]
    )

    client = TestClient(app)
    response = client.post("/api/chat", json=CHAT_BODY)

    assert response.status_code == 200
    assert response.json()["reply"] == "Switched key."
    used = [call.request.headers["x-goog-api-key"] for call in route.calls]
    assert used == ["test_key_1", "test_key_2"]
    assert app.state.key_manager.is_exhausted("test_key_1") is True


@respx.mock
def test_chat_all_keys_exhausted(app):
    respx.post(GEMINI_URL).mock(return_value=gemini_quota_error("17s"))

    client = TestClient(app)
    response = client.post("/api/chat", json=CHAT_BODY)

    assert response.status_code == 429
    assert response.headers["retry-after"] == "17"
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "API Quota Exceeded"
    assert "All API keys exhausted" in data["message"]
    assert "suggestion" in data


@respx.mock
def test_chat_fatal_error(app):
    route = respx.post(GEMINI_URL).mock(
        return_value=gemini_error(403, "Permission denied")
    )

    client = TestClient(app)
    response = client.post("/api/chat", json=CHAT_BODY)

    assert response.status_code == 502
    assert "Permission denied" in response.json()["error"]
    assert route.call_count == 1


@respx.mock
def test_chat_overloaded_model(app):
    route = respx.post(GEMINI_URL).mock(
        return_value=gemini_error(503, "The model is overloaded.")
    )

    client = TestClient(app)
    response = client.post("/api/chat", json=CHAT_BODY)

    assert response.status_code == 503
    assert response.json()["success"] is False
    assert route.call_count == 3
    assert app.state.key_manager.is_exhausted("test_key_1") is False


def test_chat_rejects_empty_messages(app):
    client = TestClient(app)
    response = client.post("/api/chat", json={"messages": []})

    assert response.status_code == 400
    assert response.json()["success"] is False


@respx.mock
def test_insights(app):
    route = respx.post(GEMINI_URL).mock(return_value=gemini_reply(INSIGHTS_JSON))

    client = TestClient(app)
    response = client.post(
        "/api/ai/insights",
        json={
            "columns": ["month", "revenue"],
            "rows": [{"month": m, "revenue": i} for i, m in enumerate("ABCDEFG")],
            "chartType": "bar",
            "xAxis": "month",
            "yAxis": "revenue",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["insights"]["summary"] == "Healthy growth."
    assert data["insights"]["insights"][0]["chartSuggestion"]["type"] == "line"
    prompt = json.loads(route.calls[0].request.content)["contents"][0]["parts"][0]["text"]
    assert "Total Rows: 7" in prompt
    assert "Current Chart: bar chart" in prompt


def test_insights_requires_columns_and_rows(app):
    client = TestClient(app)
    response = client.post("/api/ai/insights", json={"columns": ["a"]})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Columns and rows are required"}


@respx.mock
def test_insights_accepts_empty_dataset(app):
    route = respx.post(GEMINI_URL).mock(return_value=gemini_reply(INSIGHTS_JSON))

    client = TestClient(app)
    response = client.post("/api/ai/insights", json={"columns": [], "rows": []})

    assert response.status_code == 200
    assert response.json()["success"] is True
    prompt = json.loads(route.calls[0].request.content)["contents"][0]["parts"][0]["text"]
    assert "Total Rows: 0" in prompt


@respx.mock
def test_insights_unparseable_output(app):
    respx.post(GEMINI_URL).mock(return_value=gemini_reply("I am not JSON"))

    client = TestClient(app)
    response = client.post(
        "/api/ai/insights", json={"columns": ["a"], "rows": [{"a": 1}]}
    )

    assert response.status_code == 502
    assert response.json()["success"] is False


@respx.mock
def test_suggest(app):
    respx.post(GEMINI_URL).mock(
        return_value=gemini_reply(
            '```json\n[{"title": "Revenue", "x": "month", "y": "revenue", "reason": "trend"}]\n```'
        )
    )

    client = TestClient(app)
    response = client.post(
        "/api/suggest", json={"columns": ["month", "revenue"], "rows": [{"month": "Jan"}]}
    )

    assert response.status_code == 200
    assert response.json() == [
        {"title": "Revenue", "x": "month", "y": "revenue", "reason": "trend"}
    ]


@respx.mock
def test_generate_report(app):
    route = respx.post(GEMINI_URL).mock(
        side_effect=[gemini_reply("analysis notes"), gemini_reply("# Report")]
    )

    client = TestClient(app)
    response = client.post(
        "/api/generate-report",
        json={
            "charts": [
                {
                    "chartType": "line",
                    "xAxis": "month",
                    "yAxis": "revenue",
                    "dataSnapshot": {"x": ["Jan", "Feb"], "y": [1, 2]},
                }
            ],
            "reportType": "detailed",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["report"] == "# Report"
    assert data["metadata"]["chartsAnalyzed"] == 1
    assert data["metadata"]["reportType"] == "detailed"
    assert data["metadata"]["apiCallsUsed"] == 2
    assert route.call_count == 2
    second = json.loads(route.calls[1].request.content)
    assert "analysis notes" in second["contents"][0]["parts"][0]["text"]
    assert second["generationConfig"] == {"temperature": 0.5, "maxOutputTokens": 4096}


def test_generate_report_requires_charts(app):
    client = TestClient(app)
    response = client.post("/api/generate-report", json={"charts": []})

    assert response.status_code == 400


def test_test_keys(app):
    app.state.key_manager.get_next_key()

    client = TestClient(app)
    response = client.get("/api/test-keys")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["keyCount"] == 2
    assert data["keys"][0]["usageCount"] == 1
    assert data["keys"][1]["lastUsed"] == "never"
    assert "test_key_1" not in response.text
