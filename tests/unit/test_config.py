from src.infrastructure.api.middlewares import DEV_ORIGINS, allowed_origins
from src.infrastructure.config import Settings, load_settings


def test_load_settings_from_env(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or")
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    monkeypatch.setenv("USE_AI_PLANNER", "0")
    monkeypatch.setenv("MAX_VARIATIONS", "4")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.test, https://b.test,")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    s = load_settings()
    assert s.openrouter_api_key == "sk-or"
    assert s.google_api_key == "g-key"
    assert s.use_ai_planner is False
    assert s.max_variations == 4
    assert s.cors_origins == ("https://a.test", "https://b.test")
    assert s.log_level == "DEBUG"


def test_defaults(monkeypatch):
    for name in ("OPENROUTER_API_KEY", "REDIS_URL", "PLANNER_TIMEOUT_SECONDS", "IMAGE_TTL_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    s = load_settings()
    assert s.openrouter_api_key is None
    assert s.redis_url is None
    assert s.planner_timeout_seconds == 60.0
    assert s.image_ttl_seconds == 3600


def test_allowed_origins():
    assert allowed_origins(Settings(env="development")) == list(DEV_ORIGINS)
    assert allowed_origins(Settings(env="production")) == ["*"]
    assert allowed_origins(Settings(env="production", cors_origins=("https://x.test",))) == [
        "https://x.test"
    ]
