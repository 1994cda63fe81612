"""
CSRF protection using a token-echo pattern.

Safe requests (GET/HEAD/OPTIONS) receive the caller's token in the
``X-CSRF-Token`` response header; state-changing requests must send it back
in the same request header. Tokens are stored per session in Redis, with an
in-process fallback that only works for single-instance deployments.
"""
import hmac
import secrets
import threading
import time
from typing import Dict, Optional, Tuple

from fastapi import Request, Response
from redis.exceptions import RedisError

from storefront.core.cache import get_redis
from storefront.core.config import settings
from storefront.core.exceptions import CsrfRejected
from storefront.core.logging import get_logger
from storefront.core.security import peek_token_subject

logger = get_logger(__name__)

CSRF_HEADER = "X-CSRF-Token"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def generate_csrf_token() -> str:
    return secrets.token_hex(32)


def session_identifier(request: Request) -> str:
    """Bearer subject for authenticated callers, else IP + user agent."""
    subject = peek_token_subject(request)
    if subject:
        return f"user:{subject}"

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    elif request.client:
        ip = request.client.host
    else:
        ip = "unknown"
    if ip.startswith("::ffff:"):
        ip = ip[7:]

    user_agent = (request.headers.get("user-agent") or "unknown")[:50]
    return f"anon:{ip}:{user_agent}"


class CsrfTokenStore:
    """Session id -> token, with expiry."""

    def __init__(self, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds
        self._local: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[str]:
        redis = get_redis()
        if redis is not None:
            try:
                return redis.get(f"csrf:{session_id}")
            except RedisError as e:
                logger.warning(f"Redis CSRF store unavailable, using in-process store: {e}")

        with self._lock:
            entry = self._local.get(session_id)
            if entry is None:
                return None
            token, expires_at = entry
            if expires_at < time.time():
                del self._local[session_id]
                return None
            return token

    def set(self, session_id: str, token: str) -> None:
        redis = get_redis()
        if redis is not None:
            try:
                redis.setex(f"csrf:{session_id}", self.ttl_seconds, token)
                return
            except RedisError as e:
                logger.warning(f"Redis CSRF store unavailable, using in-process store: {e}")

        with self._lock:
            self._local[session_id] = (token, time.time() + self.ttl_seconds)

    def clear(self) -> None:
        with self._lock:
            self._local.clear()


class CsrfGuard:
    """Dependency that issues tokens on safe requests and checks them on the rest."""

    def __init__(self, store: Optional[CsrfTokenStore] = None):
        self.store = store or CsrfTokenStore(settings.CSRF_TOKEN_TTL_SECONDS)

    def issue(self, request: Request) -> str:
        """Return the session's live token, creating one if needed."""
        session_id = session_identifier(request)
        token = self.store.get(session_id)
        if not token:
            token = generate_csrf_token()
            self.store.set(session_id, token)
        return token

    def validate(self, request: Request) -> None:
        token = request.headers.get(CSRF_HEADER)
        if not token:
            raise CsrfRejected("CSRF token missing. Please include X-CSRF-Token header.")

        stored = self.store.get(session_identifier(request))
        if not stored or not hmac.compare_digest(stored, token):
            raise CsrfRejected()

    def check(self, request: Request, response: Optional[Response] = None) -> None:
        """Issue a token on safe methods, validate it on the rest."""
        if not settings.CSRF_ENABLED:
            return
        if request.method in SAFE_METHODS:
            token = self.issue(request)
            if response is not None:
                response.headers[CSRF_HEADER] = token
            return
        self.validate(request)

    async def __call__(self, request: Request, response: Response) -> None:
        self.check(request, response)


csrf_protect = CsrfGuard()
