import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

import pytest

import backend.config as config
from backend.local_db.db import DealStore

_ENV_KEYS = (
    "FIRECRAWL_API_KEY",
    "FIRECRAWL_API_URL",
    "SEARCH_PROVIDER",
    "SERPAPI_API_KEY",
    "SERP_API_KEY",
    "DATABASE_URL",
    "EXTRACTION_TIMEOUT_MS",
    "SEARCH_TIMEOUT_MS",
    "SLOW_EXTRACTION_WARNING_S",
    "RETRY_MAX_RETRIES",
    "RETRY_BASE_DELAY_MS",
    "RETRY_MAX_DELAY_MS",
    "RETRY_BACKOFF_MULTIPLIER",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _ci_env(monkeypatch):
    # no developer .env, no real keys, no network
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda *a, **kw: False)
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


@pytest.fixture
def store(tmp_path):
    s = DealStore.from_url(f"sqlite:///{tmp_path / 'deals.db'}")
    yield s
    s.engine.dispose()
