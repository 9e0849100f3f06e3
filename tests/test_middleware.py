"""Middleware tests: request context, error envelope, rate limiting and CORS."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from habit_tracker import redis_client
from habit_tracker.middleware.logging import redact_credentials
from habit_tracker.middleware.rate_limit import RateLimitMiddleware
from habit_tracker.monitoring import get_metrics


def _fake_redis(count: int = 1, error: Exception | None = None) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[count, True], side_effect=error)
    fake = MagicMock()
    fake.pipeline.return_value = pipe
    return fake


class TestRequestContext:
    async def test_request_id_generated(self, client: AsyncClient) -> None:
        response = await client.get("/health")
        assert len(response.headers["x-request-id"]) == 36

    async def test_request_id_preserved(self, client: AsyncClient) -> None:
        response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
        assert response.headers["x-request-id"] == "test-abc-123"

    async def test_requests_counted_by_method_and_status(self, client: AsyncClient) -> None:
        await client.get("/health")
        await client.get("/api/nope")
        await client.post("/api/auth/login", json={})

        snapshot = get_metrics().requests_snapshot()
        assert snapshot["totalRequests"] == 3
        assert snapshot["activeRequests"] == 0
        assert snapshot["byMethod"] == {"GET": 2, "POST": 1}
        assert snapshot["byStatusGroup"] == {"2xx": 1, "4xx": 2}


class TestErrorEnvelope:
    async def test_unknown_route(self, client: AsyncClient) -> None:
        response = await client.get("/api/nope")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_FOUND"
        assert "timestamp" in body["meta"]

    async def test_invalid_bearer_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/features", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"

    async def test_errors_recorded_by_code(self, client: AsyncClient) -> None:
        await client.get("/api/nope")
        await client.get("/api/features")

        errors = get_metrics().errors_snapshot()
        assert errors["totalErrors"] == 2
        assert errors["byCode"]["NOT_FOUND"]["count"] == 1
        assert errors["byCode"]["AUTHENTICATION_ERROR"]["count"] == 1
        # newest first
        assert errors["recent"][0]["path"] == "/api/features"
        assert errors["recent"][1]["status"] == 404


async def test_cors_exposes_content_disposition(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert "Content-Disposition" in response.headers["access-control-expose-headers"]


class TestRateLimit:
    def test_limiter_chosen_by_method(self) -> None:
        middleware = RateLimitMiddleware(MagicMock(), read_requests=100, write_requests=30)
        assert middleware.limiter_for("GET").name == "read"
        assert middleware.limiter_for("head").name == "read"
        for method in ("POST", "PATCH", "DELETE"):
            assert middleware.limiter_for(method).name == "write"
        assert middleware.limiter_for("DELETE").requests_per_window == 30

    async def test_skipped_without_redis(self, client: AsyncClient) -> None:
        response = await client.get("/version")
        assert response.status_code == 200
        assert "x-ratelimit-limit" not in response.headers

    async def test_read_budget_headers(self, client: AsyncClient, monkeypatch) -> None:
        monkeypatch.setattr(redis_client, "_client", _fake_redis(1))
        response = await client.get("/version")
        assert response.status_code == 200
        assert response.headers["x-ratelimit-limit"] == "100"
        assert response.headers["x-ratelimit-remaining"] == "99"

    async def test_write_budget_is_separate(self, client: AsyncClient, monkeypatch) -> None:
        fake = _fake_redis(31)
        monkeypatch.setattr(redis_client, "_client", fake)
        response = await client.post("/api/auth/login", json={"email": "a@example.com", "password": "x"})

        assert response.status_code == 429
        body = response.json()
        assert body["error"]["code"] == "RATE_LIMITED"
        assert body["error"]["details"] == {"limiter": "write"}
        assert response.headers["x-ratelimit-limit"] == "30"
        assert 1 <= int(response.headers["retry-after"]) <= 60
        key = fake.pipeline.return_value.incr.call_args.args[0]
        assert key.startswith("ratelimit:write:")

    async def test_same_count_allowed_for_reads(self, client: AsyncClient, monkeypatch) -> None:
        monkeypatch.setattr(redis_client, "_client", _fake_redis(31))
        response = await client.get("/version")
        assert response.status_code == 200

    async def test_throttles_counted(self, client: AsyncClient, monkeypatch) -> None:
        monkeypatch.setattr(redis_client, "_client", _fake_redis(101))
        assert (await client.get("/version")).status_code == 429
        assert (await client.get("/version")).status_code == 429

        snapshot = get_metrics().rate_limiting_snapshot()
        assert snapshot == {"totalThrottled": 2, "byLimiter": {"read": 2}}

    @pytest.mark.parametrize("path", ["/health", "/ready"])
    async def test_health_endpoints_exempt(self, client: AsyncClient, monkeypatch, path: str) -> None:
        fake = _fake_redis(10_000)
        fake.ping = AsyncMock(return_value=True)
        monkeypatch.setattr(redis_client, "_client", fake)
        response = await client.get(path)
        assert response.status_code == 200
        fake.pipeline.assert_not_called()

    async def test_redis_failure_lets_requests_through(self, client: AsyncClient, monkeypatch) -> None:
        monkeypatch.setattr(redis_client, "_client", _fake_redis(error=RedisConnectionError("down")))
        response = await client.get("/version")
        assert response.status_code == 200
        assert "x-ratelimit-limit" not in response.headers


class TestLogRedaction:
    def test_credentials_masked(self) -> None:
        event = {"event": "login", "password": "hunter2", "refresh_token": "abc", "user_id": "u1"}
        redacted = redact_credentials(None, "info", event)
        assert redacted["password"] == "[redacted]"
        assert redacted["refresh_token"] == "[redacted]"
        assert redacted["user_id"] == "u1"
