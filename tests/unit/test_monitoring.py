"""Request metrics and uptime formatting (no app)."""

import pytest

from habit_tracker.monitoring import RequestMetrics, format_uptime


class TestFormatUptime:
    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [
            (0, "0s"),
            (59.9, "59s"),
            (61, "1m 1s"),
            (3_600, "1h 0m 0s"),
            (90_061, "1d 1h 1m 1s"),
        ],
    )
    def test_format(self, seconds: float, expected: str):
        assert format_uptime(seconds) == expected


class TestRequestMetrics:
    def test_average_and_groups(self):
        metrics = RequestMetrics()
        for status, ms in ((200, 10.0), (201, 20.0), (404, 30.0)):
            metrics.request_started()
            metrics.request_finished("get" if status != 201 else "POST", status, ms)

        snapshot = metrics.requests_snapshot()
        assert snapshot["totalRequests"] == 3
        assert snapshot["activeRequests"] == 0
        assert snapshot["averageResponseTime"] == 20.0
        assert snapshot["byMethod"] == {"GET": 2, "POST": 1}
        assert snapshot["byStatusGroup"] == {"2xx": 2, "4xx": 1}

    def test_empty_average_is_zero(self):
        assert RequestMetrics().requests_snapshot()["averageResponseTime"] == 0.0

    def test_recent_errors_bounded_newest_first(self):
        metrics = RequestMetrics(recent_errors_kept=2)
        for i in range(3):
            metrics.record_error("NOT_FOUND", f"missing {i}", 404, "GET", f"/x/{i}")

        errors = metrics.errors_snapshot()
        assert errors["totalErrors"] == 3
        assert errors["byCode"]["NOT_FOUND"]["count"] == 3
        assert [e["path"] for e in errors["recent"]] == ["/x/2", "/x/1"]

    def test_throttles_per_limiter(self):
        metrics = RequestMetrics()
        metrics.record_throttle("write")
        metrics.record_throttle("write")
        metrics.record_throttle("read")
        assert metrics.rate_limiting_snapshot() == {"totalThrottled": 3, "byLimiter": {"write": 2, "read": 1}}
