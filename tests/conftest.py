import httpx
import pytest

from docuvision.config import KEY_SLOTS, load_config
from docuvision.main import app as main_app, build_gemini_client
from docuvision.key_manager import create_key_manager
from docuvision.quota_window import QuotaWindow


@pytest.fixture(autouse=True)
def clean_key_slots(monkeypatch):
    for slot in KEY_SLOTS:
        monkeypatch.delenv(slot, raising=False)


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test_key_1")
    monkeypatch.setenv("GEMINI_API_KEY_2", "test_key_2")
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
