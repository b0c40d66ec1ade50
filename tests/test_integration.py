"""Integration tests for the gateway - full stack with a mocked Gemini API."""

from datetime import date

import httpx
import pytest
import respx
from httpx import AsyncClient, ASGITransport

from docuvision.config import load_config
from docuvision.key_manager import create_key_manager
from docuvision.main import app as main_app, build_gemini_client
from docuvision.quota_window import QuotaWindow

from tests.gemini_responses import GEMINI_URL, gemini_quota_error, gemini_reply

CHAT_BODY = {"messages": [{"role": "user", "content": "Summarize the data"}]}


@pytest.fixture
def three_key_app(monkeypatch):
    """App wired with three keys and no backoff delay."""
    monkeypatch.setenv("GEMINI_API_KEY", "test_key_1")
    monkeypatch.setenv("GEMINI_API_KEY_2", "test_key_2")
    monkeypatch.setenv("GOOGLE_API_KEY", "test_key_3")
    monkeypatch.setenv("RETRY_BASE_DELAY_SECONDS", "0")

    config = load_config(use_dotenv=False)
    http_client = httpx.AsyncClient(base_url=config.gemini_base_url)

    main_app.state.config = config
    main_app.state.http_client = http_client
    main_app.state.key_manager = create_key_manager(config)
    main_app.state.gemini_client = build_gemini_client(config, http_client)
    main_app.state.quota_window = QuotaWindow()

    yield main_app

    for name in ("config", "http_client", "key_manager", "gemini_client", "quota_window"):
        if hasattr(main_app.state, name):
            delattr(main_app.state, name)


def keys_used(route):
    return [call.request.headers["x-goog-api-key"] for call in route.calls]


@pytest.mark.asyncio
async def test_round_robin_spreads_requests(three_key_app):
    async with AsyncClient(
        transport=ASGITransport(app=three_key_app), base_url="http://test"
    ) as client:
        with respx.mock:
            route = respx.post(GEMINI_URL).mock(return_value=gemini_reply("ok"))

            for _ in range(4):
                response = await client.post("/api/chat", json=CHAT_BODY)
                assert response.status_code == 200

            assert keys_used(route) == [
                "test_key_1",
                "test_key_2",
                "test_key_3",
                "test_key_1",
            ]

            stats = (await client.get("/api/test-keys")).json()
            assert [item["usageCount"] for item in stats["keys"]] == [2, 1, 1]


@pytest.mark.asyncio
async def test_exhausted_key_stays_out_of_rotation(three_key_app):
    async with AsyncClient(
        transport=ASGITransport(app=three_key_app), base_url="http://test"
    ) as client:
        with respx.mock:
            route = respx.post(GEMINI_URL).mock(
                side_effect=[
                    gemini_quota_error(),
                    gemini_reply("first"),
                    gemini_reply("second"),
                    gemini_reply("third"),
                ]
            )

            for _ in range(3):
                response = await client.post("/api/chat", json=CHAT_BODY)
                assert response.status_code == 200

            assert keys_used(route) == [
                "test_key_1",
                "test_key_2",
                "test_key_3",
                "test_key_2",
            ]

            status = (await client.get("/admin/status")).json()
            assert status["exhausted_keys"] == 1
            assert status["keys"][0]["status"] == "EXHAUSTED"


@pytest.mark.asyncio
async def test_quota_day_rollover_restores_keys(three_key_app):
    manager = three_key_app.state.key_manager
    for key in manager.keys:
        manager.mark_exhausted(key)
    three_key_app.state.quota_window.last_reset_date = date(2000, 1, 1)

    async with AsyncClient(
        transport=ASGITransport(app=three_key_app), base_url="http://test"
    ) as client:
        with respx.mock:
            respx.post(GEMINI_URL).mock(return_value=gemini_reply("fresh day"))

            response = await client.post("/api/chat", json=CHAT_BODY)

            assert response.status_code == 200
            assert response.json()["reply"] == "fresh day"
            assert manager.is_all_exhausted() is False


@pytest.mark.asyncio
async def test_daily_reset_can_be_disabled(three_key_app):
    three_key_app.state.config.daily_reset = False
    manager = three_key_app.state.key_manager
    for key in manager.keys:
        manager.mark_exhausted(key)
    three_key_app.state.quota_window.last_reset_date = date(2000, 1, 1)

    async with AsyncClient(
        transport=ASGITransport(app=three_key_app), base_url="http://test"
    ) as client:
        with respx.mock:
            route = respx.post(GEMINI_URL).mock(return_value=gemini_quota_error())

            response = await client.post("/api/chat", json=CHAT_BODY)

            assert response.status_code == 429
            # Every key was already marked, so the first quota error ends the loop.
            assert route.call_count == 1
