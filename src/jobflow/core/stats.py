from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from jobflow.config import Settings, get_settings
from jobflow.db.models import DailyStats
from jobflow.db.repositories import Repository
from jobflow.types import DashboardStats, TodaySummary

WINDOW_DAYS = 7


def local_today(settings: Settings | None = None) -> date:
    settings = settings or get_settings()
    tz = UTC if settings.timezone.upper() == "UTC" else ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def response_rate(total_responses: int, total_applications: int) -> int:
    """Percentage rounded half up; 0 when there are no applications."""
    if total_applications <= 0:
        return 0
    return (total_responses * 200 + total_applications) // (2 * total_applications)


class StatsService:
    """Dashboard metrics computed on read from stored rows."""

    def __init__(self, session: Session, *, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.repo = Repository(session)

    def today(self) -> date:
        return local_today(self.settings)

    def get_weekly_stats(self, user_id: str, *, today: date | None = None) -> list[DailyStats]:
        end = today or self.today()
        start = end - timedelta(days=WINDOW_DAYS - 1)
        return self.repo.list_daily_stats(user_id, start, end)

    def get_dashboard_stats(self, user_id: str, *, today: date | None = None) -> DashboardStats:
        today = today or self.today()
        todays_row = self.repo.get_daily_stats(user_id, today)
        total_applications = self.repo.count_job_applications(user_id)
        total_responses = self.repo.count_job_applications(user_id, exclude_status="pending")
        weekly_earnings = sum(
            (Decimal(row.earnings or 0) for row in self.get_weekly_stats(user_id, today=today)),
            Decimal("0"),
        )
        return DashboardStats(
            today_applications=todays_row.applications_count if todays_row else 0,
            total_applications=total_applications,
            response_rate=response_rate(total_responses, total_applications),
            total_responses=total_responses,
            weekly_earnings=float(weekly_earnings),
        )

    def get_today_summary(self, user_id: str, *, today: date | None = None) -> TodaySummary:
        today = today or self.today()
        todays_row = self.repo.get_daily_stats(user_id, today)
        dashboard = self.get_dashboard_stats(user_id, today=today)
        if todays_row:
            target = todays_row.target
        else:
            user_settings = self.repo.get_user_settings(user_id)
            target = user_settings.daily_target if user_settings else self.settings.default_daily_target
        return TodaySummary(
            applications_count=todays_row.applications_count if todays_row else 0,
            response_rate=dashboard.response_rate,
            total_responses=dashboard.total_responses,
            target=target,
        )
