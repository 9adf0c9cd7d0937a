import logging
import posixpath
import time
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import RedirectResponse
from passlib.hash import hex_sha256
from starlette.middleware.base import BaseHTTPMiddleware

from . import config
from .models import utcnow

logger = logging.getLogger(__name__)

PIN_LENGTH = 6
PUBLIC_PATHS = {"/login", "/api/auth/login", "/health"}
PUBLIC_PREFIXES = ("/static/",)


def hash_pin(pin: str) -> str:
    return hex_sha256.hash(pin)


def verify_pin(pin: str, stored_hash: Optional[str] = None) -> bool:
    stored_hash = stored_hash if stored_hash is not None else config.FAMILY_PIN_HASH
    if not stored_hash:
        logger.error("FAMILY_PIN_HASH not configured")
        return False
    try:
        return hex_sha256.verify(pin, stored_hash.strip().lower())
    except ValueError:
        logger.error("FAMILY_PIN_HASH is not a SHA-256 hex digest")
        return False


def is_valid_pin_format(pin) -> bool:
    return isinstance(pin, str) and len(pin) == PIN_LENGTH


class LoginRateLimiter:
    """Fixed-window lockout of client IPs after repeated failed PINs.

    State lives in process memory: it resets on restart and is not shared
    between instances.
    """

    def __init__(
        self,
        max_attempts: int = config.LOGIN_MAX_ATTEMPTS,
        lockout_seconds: float = config.LOGIN_LOCKOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        # ip -> {"count": int, "last_failure": float}
        self._failures: dict[str, dict] = {}

    def is_limited(self, ip: str) -> bool:
        record = self._failures.get(ip)
        if record is None:
            return False
        if self._clock() - record["last_failure"] > self.lockout_seconds:
            del self._failures[ip]
            return False
        return record["count"] >= self.max_attempts

    def record_failure(self, ip: str) -> int:
        record = self._failures.setdefault(ip, {"count": 0, "last_failure": 0.0})
        record["count"] += 1
        record["last_failure"] = self._clock()
        if record["count"] >= self.max_attempts:
            logger.warning("Locking out %s after %d failed PIN attempts", ip, record["count"])
        return record["count"]

    def clear(self, ip: str) -> None:
        self._failures.pop(ip, None)

    def reset(self) -> None:
        self._failures.clear()


def get_login_limiter(request: Request) -> LoginRateLimiter:
    return request.app.state.login_limiter


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def login_user(request: Request):
    request.session["authenticated"] = True
    request.session["logged_in_at"] = utcnow().isoformat()


def logout_user(request: Request):
    request.session.clear()


def is_authenticated(request: Request) -> bool:
    return request.session.get("authenticated") is True


def requires_session(path: str) -> bool:
    if path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES):
        return False
    # manifest.json, favicon.ico and other files served as-is
    return "." not in posixpath.basename(path)


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Redirects requests without an authenticated session to the login page.

    Must sit inside SessionMiddleware so ``request.session`` is populated.
    """

    async def dispatch(self, request: Request, call_next):
        if requires_session(request.url.path) and not is_authenticated(request):
            return RedirectResponse("/login", status_code=307)
        return await call_next(request)
