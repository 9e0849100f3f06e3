"""In-process request, error and throttling counters for the admin system view.

Counters live in the worker process and start from zero on every restart; with
several workers each one reports its own numbers.
"""

from __future__ import annotations

import platform
import time
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any

import psutil

from habit_tracker.config import get_settings
from habit_tracker.time_utils import isoformat_utc, utcnow


@dataclass
class ErrorRecord:
    """One error response, kept in the recent-errors ring."""

    code: str
    message: str
    status: int
    method: str
    path: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "status": self.status,
            "method": self.method,
            "path": self.path,
            "timestamp": isoformat_utc(self.timestamp),
        }


class RequestMetrics:
    """Running totals fed by the request-context middleware, the error handlers and the rate limiter."""

    def __init__(self, recent_errors_kept: int = 20) -> None:
        self.started_at = utcnow()
        self._started_monotonic = time.monotonic()
        self.total_requests = 0
        self.active_requests = 0
        self._total_duration_ms = 0.0
        self.by_method: Counter[str] = Counter()
        self.by_status_group: Counter[str] = Counter()
        self.errors_by_code: dict[str, dict[str, Any]] = {}
        self.recent_errors: deque[ErrorRecord] = deque(maxlen=recent_errors_kept)
        self.throttled: Counter[str] = Counter()

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started_monotonic

    def request_started(self) -> None:
        self.active_requests += 1

    def request_finished(self, method: str, status_code: int, duration_ms: float) -> None:
        self.active_requests = max(0, self.active_requests - 1)
        self.total_requests += 1
        self._total_duration_ms += duration_ms
        self.by_method[method.upper()] += 1
        self.by_status_group[f"{status_code // 100}xx"] += 1

    def record_error(self, code: str, message: str, status: int, method: str, path: str) -> None:
        now = utcnow()
        entry = self.errors_by_code.setdefault(code, {"count": 0, "lastSeen": None})
        entry["count"] += 1
        entry["lastSeen"] = isoformat_utc(now)
        self.recent_errors.appendleft(ErrorRecord(code, message, status, method, path, now))

    def record_throttle(self, limiter: str) -> None:
        self.throttled[limiter] += 1

    def requests_snapshot(self) -> dict[str, Any]:
        average = self._total_duration_ms / self.total_requests if self.total_requests else 0.0
        return {
            "totalRequests": self.total_requests,
            "activeRequests": self.active_requests,
            "averageResponseTime": round(average, 1),
            "byMethod": dict(self.by_method),
            "byStatusGroup": dict(self.by_status_group),
        }

    def errors_snapshot(self) -> dict[str, Any]:
        return {
            "totalErrors": sum(e["count"] for e in self.errors_by_code.values()),
            "byCode": {code: dict(entry) for code, entry in self.errors_by_code.items()},
            "recent": [e.to_dict() for e in self.recent_errors],
        }

    def rate_limiting_snapshot(self) -> dict[str, Any]:
        return {
            "totalThrottled": sum(self.throttled.values()),
            "byLimiter": dict(self.throttled),
        }


@lru_cache
def get_metrics() -> RequestMetrics:
    """Process-wide metrics instance."""
    return RequestMetrics(recent_errors_kept=get_settings().recent_errors_kept)


def format_uptime(seconds: float) -> str:
    """``1d 2h 3m 4s``, dropping leading zero units."""
    days, rem = divmod(int(seconds), 86_400)
    hours, rem = divmod(rem, 3_600)
    minutes, secs = divmod(rem, 60)
    parts: list[str] = []
    if days:
        parts.append(f"{days}d")
    if days or hours:
        parts.append(f"{hours}h")
    if days or hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


def process_snapshot() -> dict[str, Any]:
    """Host and process resource usage."""
    proc = psutil.Process()
    mem = proc.memory_info()
    vm = psutil.virtual_memory()
    return {
        "platform": platform.system().lower(),
        "arch": platform.machine(),
        "pid": proc.pid,
        "cpuCount": psutil.cpu_count(),
        "loadAverage": [round(x, 2) for x in psutil.getloadavg()],
        "threads": proc.num_threads(),
        "memory": {
            "rss": mem.rss,
            "vms": mem.vms,
            "percent": round(proc.memory_percent(), 1),
            "systemTotal": vm.total,
            "systemAvailable": vm.available,
        },
    }
