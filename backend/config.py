# config.py
import os

def _csv_env(name: str, default: str = "") -> list[str]:
    val = os.getenv(name, default)
    # split only if non-empty; strip whitespace
    return [x.strip() for x in val.split(",")] if val else []

def _bool_env(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")

class BaseConfig:
    DEBUG = False
    TESTING = False
    JSON_SORT_KEYS = False
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10 MB, base64 audio uploads
    PREFERRED_URL_SCHEME = "https"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Secrets (must be set in env for prod)
    SECRET_KEY = os.getenv("APP_SECRET_KEY") or "dev-only-secret-change-me"

    # CORS
    CORS_ORIGINS = _csv_env("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "200 per hour")

    # Redis response cache
    REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB = int(os.getenv("REDIS_DB", "0"))
    REDIS_PASSWORD = os.getenv("REDIS_PASSWORD") or None
    CACHE_ENABLED = _bool_env("CACHE_ENABLED", True)
    CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "300"))
    CACHE_MAX_FAILURES = int(os.getenv("CACHE_MAX_FAILURES", "3"))
    CACHE_RETRY_INTERVAL = float(os.getenv("CACHE_RETRY_INTERVAL", "30"))
    CACHE_SOCKET_TIMEOUT = float(os.getenv("CACHE_SOCKET_TIMEOUT", "0.5"))

    # Upstream model
    LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4")
    LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.8"))  # conversational
    LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "400"))
    LLM_PRESENCE_PENALTY = float(os.getenv("LLM_PRESENCE_PENALTY", "0.6"))
    LLM_FREQUENCY_PENALTY = float(os.getenv("LLM_FREQUENCY_PENALTY", "0.4"))
    LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))

    # Interview relay
    HISTORY_TURNS = int(os.getenv("HISTORY_TURNS", "5"))
    AUDIO_FLUSH_SEGMENTS = int(os.getenv("AUDIO_FLUSH_SEGMENTS", "10"))

class DevConfig(BaseConfig):
    DEBUG = True

class ProdConfig(BaseConfig):
    pass

class TestConfig(BaseConfig):
    TESTING = True
    CACHE_ENABLED = False
    RATELIMIT_ENABLED = False

def validate_required_secrets():
    if os.getenv("ENV") == "prod":
        if not os.getenv("APP_SECRET_KEY"):
            raise RuntimeError("APP_SECRET_KEY must be set in production")
