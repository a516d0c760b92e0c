# tests/test_config.py
from agents.retry import RetryConfig
from backend.config import Settings, env_float, env_int, get_settings


def test_defaults_without_environment():
    s = get_settings()
    assert s.firecrawl_api_key is None
    assert s.search_provider == "firecrawl"
    assert s.extraction_timeout_ms == 30000
    assert s.search_timeout_ms == 20000
    assert s.retry_max_retries == 3
    assert s.log_level == "INFO"


def test_environment_overrides_and_clamps(monkeypatch):
    monkeypatch.setenv("FIRECRAWL_API_KEY", " fc-live ")
    monkeypatch.setenv("EXTRACTION_TIMEOUT_MS", "1000")
    monkeypatch.setenv("SEARCH_TIMEOUT_MS", "not-a-number")
    monkeypatch.setenv("RETRY_MAX_RETRIES", "50")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    s = get_settings()
    assert s.firecrawl_api_key == "fc-live"
    assert s.extraction_timeout_ms == 5000
    assert s.search_timeout_ms == 20000
    assert s.retry_max_retries == 10
    assert s.log_level == "DEBUG"


def test_settings_are_cached():
    assert get_settings() is get_settings()


def test_search_provider_selection(monkeypatch):
    monkeypatch.setenv("SEARCH_PROVIDER", "SerpApi")
    monkeypatch.setenv("SERP_API_KEY", "serp-key")
    s = get_settings()
    assert s.search_provider == "serpapi"
    assert s.serpapi_api_key == "serp-key"


def test_unknown_search_provider_falls_back(monkeypatch):
    monkeypatch.setenv("SEARCH_PROVIDER", "bing")
    assert get_settings().search_provider == "firecrawl"


def test_blank_key_counts_as_missing(monkeypatch):
    monkeypatch.setenv("FIRECRAWL_API_KEY", "   ")
    assert get_settings().firecrawl_api_key is None


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("X_INT", "7")
    monkeypatch.setenv("X_FLOAT", "0.2")
    assert env_int("X_INT", 1, max_value=5) == 5
    assert env_int("MISSING_INT", 3) == 3
    assert env_float("X_FLOAT", 1.0, min_value=1.0) == 1.0


def test_retry_config_from_settings_keeps_max_above_base():
    s = Settings(retry_base_delay_ms=2000, retry_max_delay_ms=500)
    cfg = RetryConfig.from_settings(s)
    assert cfg.base_delay == 2000
    assert cfg.max_delay == 2000
