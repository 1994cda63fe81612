"""
Tests for CSRF token issue/validation.
"""
import pytest
from unittest.mock import MagicMock, patch
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.requests import Request
from starlette.responses import Response

from storefront.core.config import settings
from storefront.core.csrf import CsrfGuard, CsrfTokenStore, session_identifier
from storefront.core.exceptions import CsrfRejected
from storefront.core.security import create_access_token


def _request(headers=None, method="POST"):
    headers = {"User-Agent": "pytest-browser", **(headers or {})}
    return Request({
        "type": "http",
        "scheme": "http",
        "server": ("testserver", 80),
        "method": method,
        "path": "/api/orders",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("203.0.113.9", 5555),
        "query_string": b"",
    })


@pytest.fixture
def guard():
    return CsrfGuard(CsrfTokenStore(ttl_seconds=60))


class TestSessionIdentifier:

    def test_anonymous_uses_ip_and_user_agent(self):
        assert session_identifier(_request()) == "anon:203.0.113.9:pytest-browser"

    def test_ipv4_mapped_address_is_unwrapped(self):
        request = _request({"X-Forwarded-For": "::ffff:198.51.100.7"})
        assert session_identifier(request) == "anon:198.51.100.7:pytest-browser"

    def test_authenticated_uses_subject(self):
        token = create_access_token({"sub": "cust-1", "role": "customer"})
        assert session_identifier(_request({"Authorization": f"Bearer {token}"})) == "user:cust-1"


class TestCsrfGuard:

    def test_issue_reuses_live_token(self, guard):
        first = guard.issue(_request(method="GET"))
        second = guard.issue(_request(method="GET"))

        assert first == second
        assert len(first) == 64

    def test_matching_token_passes(self, guard):
        token = guard.issue(_request(method="GET"))
        guard.validate(_request({"X-CSRF-Token": token}))

    def test_missing_header_rejected(self, guard):
        guard.issue(_request(method="GET"))

        with pytest.raises(CsrfRejected) as exc_info:
            guard.validate(_request())

        assert exc_info.value.status_code == 403
        assert "X-CSRF-Token" in exc_info.value.message

    def test_wrong_token_rejected(self, guard):
        guard.issue(_request(method="GET"))

        with pytest.raises(CsrfRejected):
            guard.validate(_request({"X-CSRF-Token": "0" * 64}))

    def test_token_is_bound_to_session(self, guard):
        token = guard.issue(_request(method="GET"))

        with pytest.raises(CsrfRejected):
            guard.validate(_request({"X-CSRF-Token": token, "User-Agent": "other-browser"}))

    def test_expired_token_rejected(self):
        guard = CsrfGuard(CsrfTokenStore(ttl_seconds=-1))
        token = guard.issue(_request(method="GET"))

        with pytest.raises(CsrfRejected):
            guard.validate(_request({"X-CSRF-Token": token}))


class TestCsrfTokenStoreRedis:

    def test_uses_redis_when_available(self):
        redis = MagicMock()
        redis.get.return_value = "abc"
        store = CsrfTokenStore(ttl_seconds=60)

        with patch("storefront.core.csrf.get_redis", return_value=redis):
            store.set("user:1", "abc")
            assert store.get("user:1") == "abc"

        redis.setex.assert_called_once_with("csrf:user:1", 60, "abc")
        redis.get.assert_called_once_with("csrf:user:1")

    def test_falls_back_to_local_store(self):
        redis = MagicMock()
        redis.setex.side_effect = RedisConnectionError("refused")
        redis.get.side_effect = RedisConnectionError("refused")
        store = CsrfTokenStore(ttl_seconds=60)

        with patch("storefront.core.csrf.get_redis", return_value=redis):
            store.set("user:1", "abc")
            assert store.get("user:1") == "abc"


class TestCsrfCheck:

    def test_safe_method_sets_response_header(self, guard):
        response = Response()
        guard.check(_request(method="GET"), response)

        assert response.headers["X-CSRF-Token"] == guard.issue(_request(method="GET"))

    def test_disabled_guard_allows_everything(self, guard):
        with patch.object(settings, "CSRF_ENABLED", False):
            guard.check(_request())
