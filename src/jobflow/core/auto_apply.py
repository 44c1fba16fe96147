from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from jobflow.config import Settings, get_settings
from jobflow.core.stats import local_today
from jobflow.db.models import JobApplication, UserSettings
from jobflow.db.repositories import Repository
from jobflow.errors import InvalidStateError
from jobflow.types import AutoApplyRequest, JobApplicationCreate, SimulatedJob, UserSettingsUpsert

logger = logging.getLogger(__name__)

AUTO_APPLY_PLATFORM = "Upwork"
AUTO_APPLY_LOCATION = "Remote"
AUTO_APPLY_DESCRIPTION = "Auto-applied via JobFlow system"

SIMULATED_JOBS: tuple[SimulatedJob, ...] = (
    SimulatedJob(
        id=1,
        title="React Developer",
        company="TechCorp",
        pay_rate=75,
        location="Remote",
        description="We need a React developer for our web application",
        requirements=["React", "JavaScript", "Node.js"],
        is_interview_free=True,
        match_score=85,
    ),
    SimulatedJob(
        id=2,
        title="Full Stack Developer",
        company="StartupXYZ",
        pay_rate=60,
        location="Remote",
        description="Looking for a full-stack developer to join our team",
        requirements=["JavaScript", "TypeScript", "PostgreSQL"],
        is_interview_free=False,
        match_score=70,
    ),
)


def filter_jobs(jobs: tuple[SimulatedJob, ...] | list[SimulatedJob], settings: UserSettings) -> list[SimulatedJob]:
    matches = []
    for job in jobs:
        if settings.interview_free_only and not job.is_interview_free:
            continue
        if job.pay_rate < (settings.min_pay_rate or 0):
            continue
        matches.append(job)
    return matches


class AutoApplyService:
    """Simulated job search and one-click apply driven by the user's settings."""

    def __init__(self, session: Session, *, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.repo = Repository(session)

    def _require_settings(self, user_id: str) -> UserSettings:
        user_settings = self.repo.get_user_settings(user_id)
        if user_settings is None:
            raise InvalidStateError("User settings have not been saved yet")
        return user_settings

    def toggle(self, user_id: str, enabled: bool) -> UserSettings:
        self._require_settings(user_id)
        logger.info("Auto-apply %s for user %s", "enabled" if enabled else "disabled", user_id)
        return self.repo.upsert_user_settings(user_id, UserSettingsUpsert(auto_apply_enabled=enabled))

    def search(self, user_id: str) -> list[SimulatedJob]:
        user_settings = self._require_settings(user_id)
        if not user_settings.auto_apply_enabled:
            raise InvalidStateError("Auto-apply is not enabled")
        return filter_jobs(SIMULATED_JOBS, user_settings)

    def apply(self, user_id: str, request: AutoApplyRequest) -> JobApplication:
        user_settings = self.repo.get_user_settings(user_id)
        target = user_settings.daily_target if user_settings else self.settings.default_daily_target
        pay_rate = None if request.pay_rate is None else str(request.pay_rate)
        payload = JobApplicationCreate(
            title=request.title,
            company=request.company,
            platform=AUTO_APPLY_PLATFORM,
            status="pending",
            pay_rate=pay_rate,
            url=request.url or f"https://upwork.com/job/{request.job_id}",
            location=AUTO_APPLY_LOCATION,
            description=AUTO_APPLY_DESCRIPTION,
        )
        application = self.repo.record_application(
            user_id,
            payload,
            day=local_today(self.settings),
            target=target,
        )
        logger.info("Auto-applied user=%s job=%s application=%s", user_id, request.job_id, application.id)
        return application
