import os

from dotenv import load_dotenv

load_dotenv()


def _default_sqlite_url() -> str:
    data_dir = "/data"
    if os.path.isdir(data_dir):
        return f"sqlite:////{os.path.join(data_dir.lstrip('/'), 'hearthboard.db')}"
    return "sqlite:///hearthboard.db"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", _default_sqlite_url())

# --- Auth ---
FAMILY_PIN_HASH = os.getenv("FAMILY_PIN_HASH") or None
SESSION_SECRET = os.getenv("SESSION_SECRET", "dev-secret")
SESSION_COOKIE = "hearthboard_session"
SESSION_MAX_AGE_DAYS = int(os.getenv("SESSION_MAX_AGE_DAYS", "30"))
SESSION_HTTPS_ONLY = _env_flag("SESSION_HTTPS_ONLY")

LOGIN_MAX_ATTEMPTS = 5
LOGIN_LOCKOUT_SECONDS = 5 * 60

# --- Outbound HTTP ---
HTTP_TIMEOUT_SECONDS = 10.0
USER_AGENT = "Mozilla/5.0 (compatible; HearthboardBot/1.0)"
WEATHER_CACHE_SECONDS = int(os.getenv("WEATHER_CACHE_SECONDS", "1800"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
