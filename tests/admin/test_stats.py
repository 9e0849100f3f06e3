"""Application stats, trends and content breakdown."""

from datetime import date, timedelta

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from habit_tracker.admin import stats_service
from habit_tracker.db.models import Book, Challenge
from habit_tracker.time_utils import utc_today, utcnow


class TestApplicationStats:
    async def test_empty_database(self, db_session: AsyncSession):
        stats = await stats_service.get_application_stats(db_session)
        assert stats == {
            "totalUsers": 0,
            "totalHabits": 0,
            "totalHabitLogs": 0,
            "adminCount": 0,
            "activeUsersLast7Days": 0,
            "activeUsersLast30Days": 0,
            "newRegistrationsLast7Days": 0,
            "avgCompletionRate": 0,
        }

    async def test_habits_without_logs(self, db_session: AsyncSession, regular_user, make_habit):
        await make_habit(regular_user)
        stats = await stats_service.get_application_stats(db_session)
        assert stats["totalHabits"] == 1
        assert stats["avgCompletionRate"] == 0

    async def test_totals_and_windows(
        self, db_session: AsyncSession, admin_user, regular_user, make_user, make_habit, make_log
    ):
        now = utcnow()
        today = utc_today()
        veteran = await make_user("Veteran", created_at=now - timedelta(days=40))
        skewed = await make_user("Skewed")

        recent = await make_habit(regular_user)
        await make_log(recent, today, completed=True, created_at=now - timedelta(days=2))
        await make_log(recent, today - timedelta(days=1), completed=True, created_at=now - timedelta(days=2))
        await make_log(recent, today - timedelta(days=2), completed=False, created_at=now - timedelta(days=2))

        older = await make_habit(veteran)
        await make_log(older, today - timedelta(days=10), created_at=now - timedelta(days=10))

        # Future-dated rows are not activity
        future = await make_habit(skewed)
        await make_log(future, today, created_at=now + timedelta(days=1))

        stats = await stats_service.get_application_stats(db_session)
        assert stats["totalUsers"] == 4
        assert stats["totalHabits"] == 3
        assert stats["totalHabitLogs"] == 5
        assert stats["adminCount"] == 1
        assert stats["activeUsersLast7Days"] == 1
        assert stats["activeUsersLast30Days"] == 2
        assert stats["newRegistrationsLast7Days"] == 3
        # 4 of 5 completed
        assert stats["avgCompletionRate"] == 80

    async def test_completion_rate_rounds_half_up(
        self, db_session: AsyncSession, regular_user, make_habit, make_log
    ):
        habit = await make_habit(regular_user)
        today = utc_today()
        # 1 of 8 completed = 12.5%
        for offset in range(8):
            await make_log(habit, today - timedelta(days=offset), completed=offset == 0)
        stats = await stats_service.get_application_stats(db_session)
        assert stats["avgCompletionRate"] == 13

    async def test_endpoint(self, client: AsyncClient, admin_headers: dict):
        response = await client.get("/api/admin/stats", headers=admin_headers)
        assert response.status_code == 200
        stats = response.json()["data"]["stats"]
        assert stats["totalUsers"] == 1
        assert stats["adminCount"] == 1

    async def test_endpoint_admin_only(self, client: AsyncClient, user_headers: dict):
        response = await client.get("/api/admin/stats", headers=user_headers)
        assert response.status_code == 403


class _FixedAggregator:
    """Canned buckets, including one outside the window."""

    def __init__(self, today: date) -> None:
        self.today = today
        self.calls: list[tuple[date, date]] = []

    async def new_users_by_day(self, start: date, end: date) -> dict[date, int]:
        self.calls.append((start, end))
        return {self.today: 4, start - timedelta(days=1): 99}

    async def active_users_by_day(self, start: date, end: date) -> dict[date, int]:
        return {start: 2}

    async def completion_by_day(self, start: date, end: date) -> dict[date, tuple[int, int]]:
        return {self.today: (2, 3)}


class TestTrends:
    async def test_series_length_and_order(self, db_session: AsyncSession):
        trends = await stats_service.get_trends(db_session, days=7)
        assert len(trends) == 8
        assert trends[-1]["date"] == utc_today().isoformat()
        assert trends[0]["date"] == (utc_today() - timedelta(days=7)).isoformat()
        assert all(p["newUsers"] == 0 and p["completionRate"] == 0 for p in trends)

    async def test_sql_buckets(
        self, db_session: AsyncSession, regular_user, make_user, make_habit, make_log
    ):
        today = utc_today()
        other = await make_user("Other", created_at=utcnow() - timedelta(days=3))
        mine = await make_habit(regular_user)
        theirs = await make_habit(other)
        await make_log(mine, today, completed=True)
        await make_log(theirs, today, completed=False)
        await make_log(theirs, today - timedelta(days=3), completed=True)

        trends = {p["date"]: p for p in await stats_service.get_trends(db_session, days=5)}
        assert trends[today.isoformat()] == {
            "date": today.isoformat(),
            "newUsers": 1,
            "activeUsers": 2,
            "completionRate": 50,
        }
        three_ago = trends[(today - timedelta(days=3)).isoformat()]
        assert three_ago["newUsers"] == 1
        assert three_ago["activeUsers"] == 1
        assert three_ago["completionRate"] == 100

    async def test_custom_aggregator(self, db_session: AsyncSession):
        today = utc_today()
        aggregator = _FixedAggregator(today)
        trends = await stats_service.get_trends(db_session, days=2, aggregator=aggregator)

        assert aggregator.calls == [(today - timedelta(days=2), today)]
        assert [p["newUsers"] for p in trends] == [0, 0, 4]
        assert [p["activeUsers"] for p in trends] == [2, 0, 0]
        assert trends[-1]["completionRate"] == 67

    async def test_endpoint_default_30_days(self, client: AsyncClient, admin_headers: dict):
        response = await client.get("/api/admin/stats/trends", headers=admin_headers)
        assert response.status_code == 200
        assert len(response.json()["data"]["trends"]) == 31

    async def test_endpoint_days_bounds(self, client: AsyncClient, admin_headers: dict):
        assert (await client.get("/api/admin/stats/trends?days=0", headers=admin_headers)).status_code == 400
        assert (await client.get("/api/admin/stats/trends?days=366", headers=admin_headers)).status_code == 400
        response = await client.get("/api/admin/stats/trends?days=365", headers=admin_headers)
        assert len(response.json()["data"]["trends"]) == 366


class TestContentBreakdown:
    async def test_breakdown(
        self, db_session: AsyncSession, admin_user, regular_user, make_habit, make_log
    ):
        h1 = await make_habit(
            regular_user, "Run", frequency="DAILY", habit_type="BOOLEAN", category="health", current_streak=3
        )
        await make_habit(
            regular_user, "Water", frequency="DAILY", habit_type="NUMERIC", category="health", current_streak=4
        )
        await make_habit(regular_user, "Plan", frequency="WEEKLY", habit_type="BOOLEAN", current_streak=0)
        await make_habit(
            admin_user,
            "Study",
            frequency="WEEKLY",
            habit_type="DURATION",
            category="learning",
            current_streak=10,
            is_archived=True,
        )
        await make_log(h1, utc_today(), completed=True)
        await make_log(h1, utc_today() - timedelta(days=1), completed=False)

        for status in ("READING", "READING", "COMPLETED"):
            db_session.add(Book(user_id=regular_user.id, title="Book", status=status))
        db_session.add(Challenge(user_id=regular_user.id, name="30 days", duration=30, start_date=utc_today()))
        await db_session.commit()

        breakdown = await stats_service.get_content_breakdown(db_session)
        assert breakdown["habits"]["byFrequency"] == [
            {"frequency": "DAILY", "count": 2},
            {"frequency": "WEEKLY", "count": 2},
        ]
        assert breakdown["habits"]["byType"] == [
            {"type": "BOOLEAN", "count": 2},
            {"type": "DURATION", "count": 1},
            {"type": "NUMERIC", "count": 1},
        ]
        assert breakdown["habits"]["byCategory"] == [
            {"category": "health", "count": 2},
            {"category": "learning", "count": 1},
        ]
        assert breakdown["books"]["byStatus"] == [
            {"status": "COMPLETED", "count": 1},
            {"status": "READING", "count": 2},
        ]
        assert breakdown["challenges"]["byStatus"] == [{"status": "ACTIVE", "count": 1}]
        assert breakdown["engagement"] == {
            "avgHabitsPerUser": 2.0,
            "avgCompletionRate": 50,
            "avgStreakLength": 2.3,
            "usersWithActiveHabits": 1,
            "totalUsers": 2,
        }

    async def test_empty(self, db_session: AsyncSession):
        breakdown = await stats_service.get_content_breakdown(db_session)
        assert breakdown["habits"]["byCategory"] == []
        assert breakdown["engagement"]["avgHabitsPerUser"] == 0
        assert breakdown["engagement"]["avgStreakLength"] == 0
        assert breakdown["engagement"]["avgCompletionRate"] == 0

    async def test_endpoint(self, client: AsyncClient, admin_headers: dict):
        response = await client.get("/api/admin/stats/content", headers=admin_headers)
        assert response.status_code == 200
        assert set(response.json()["data"]["breakdown"]) == {"habits", "books", "challenges", "engagement"}


class TestSystemStats:
    async def test_sections(self, db_session: AsyncSession, admin_user, regular_user, make_habit, make_log):
        habit = await make_habit(regular_user)
        await make_log(habit)

        stats = await stats_service.get_system_stats(db_session)

        assert set(stats) == {
            "application",
            "dependencies",
            "system",
            "requests",
            "errors",
            "rateLimiting",
            "activeUsers",
        }
        assert stats["application"]["version"] == "0.1.0"
        assert stats["application"]["uptime"]["formatted"].endswith("s")
        assert stats["dependencies"]["database"]["status"] == "connected"
        assert stats["dependencies"]["redis"]["status"] == "not configured"
        assert stats["system"]["pid"] > 0
        assert stats["system"]["memory"]["rss"] > 0
        assert len(stats["system"]["loadAverage"]) == 3
        assert stats["activeUsers"] == {"dau": 1, "wau": 1, "mau": 1, "totalRegistered": 2}

    async def test_endpoint_reports_traffic(self, client: AsyncClient, admin_headers: dict):
        await client.get("/api/admin/nope", headers=admin_headers)

        response = await client.get("/api/admin/stats/system", headers=admin_headers)
        assert response.status_code == 200
        stats = response.json()["data"]["stats"]
        assert stats["requests"]["totalRequests"] == 1
        assert stats["requests"]["activeRequests"] == 1
        assert stats["errors"]["byCode"]["NOT_FOUND"]["count"] == 1
        assert stats["rateLimiting"] == {"totalThrottled": 0, "byLimiter": {}}

    async def test_endpoint_admin_only(self, client: AsyncClient, user_headers: dict):
        response = await client.get("/api/admin/stats/system", headers=user_headers)
        assert response.status_code == 403
