from __future__ import annotations

import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

ApplicationStatus = Literal["pending", "responded", "interview", "offer", "declined"]
JobType = Literal["contract", "full-time", "part-time", "freelance"]
EmailCategory = Literal["positive", "negative", "follow-up", "interview", "offer"]
CampaignStatus = Literal["draft", "sending", "sent", "completed"]


class PatchModel(BaseModel):
    """Partial payload: only the fields a caller actually sent are applied."""

    not_null_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_for_required_columns(self) -> PatchModel:
        for name in sorted(self.model_fields_set & self.not_null_fields):
            if getattr(self, name) is None:
                raise ValueError(f"{name} may not be null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class UserUpsert(BaseModel):
    id: str = Field(min_length=1)
    email: EmailStr | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None


class JobApplicationCreate(BaseModel):
    title: str = Field(min_length=1)
    company: str = Field(min_length=1)
    platform: str = Field(min_length=1)
    url: str | None = None
    description: str | None = None
    pay_rate: str | None = None
    location: str | None = None
    status: ApplicationStatus = "pending"
    requires_interview: bool = False
    job_type: JobType = "contract"
    skills: list[str] = Field(default_factory=list)
    matching_score: int = Field(default=0, ge=0, le=100)
    notes: str | None = None


class JobApplicationUpdate(PatchModel):
    not_null_fields: ClassVar[frozenset[str]] = frozenset(
        {"title", "company", "platform", "status", "requires_interview", "job_type", "skills", "matching_score"}
    )

    title: str | None = None
    company: str | None = None
    platform: str | None = None
    url: str | None = None
    description: str | None = None
    pay_rate: str | None = None
    location: str | None = None
    status: ApplicationStatus | None = None
    requires_interview: bool | None = None
    job_type: JobType | None = None
    skills: list[str] | None = None
    matching_score: int | None = Field(default=None, ge=0, le=100)
    notes: str | None = None


class EmailTrackingCreate(BaseModel):
    job_application_id: int | None = None
    message_id: str | None = None
    subject: str | None = None
    sender: str | None = None
    content: str | None = None
    category: EmailCategory | None = None
    is_read: bool = False
    auto_replied: bool = False


class EmailTrackingUpdate(PatchModel):
    not_null_fields: ClassVar[frozenset[str]] = frozenset({"is_read", "auto_replied"})

    job_application_id: int | None = None
    subject: str | None = None
    sender: str | None = None
    content: str | None = None
    category: EmailCategory | None = None
    is_read: bool | None = None
    auto_replied: bool | None = None


class UserSettingsUpsert(PatchModel):
    not_null_fields: ClassVar[frozenset[str]] = frozenset(
        {
            "daily_target",
            "preferred_location",
            "min_pay_rate",
            "auto_apply_enabled",
            "email_integration_enabled",
            "interview_free_only",
            "preferred_job_types",
            "user_skills",
        }
    )

    daily_target: int | None = Field(default=None, ge=0)
    preferred_location: str | None = None
    min_pay_rate: int | None = Field(default=None, ge=0)
    auto_apply_enabled: bool | None = None
    email_integration_enabled: bool | None = None
    interview_free_only: bool | None = None
    preferred_job_types: list[JobType] | None = None
    user_skills: list[str] | None = None
    resume_text: str | None = None
    cover_letter_template: str | None = None
    email_signature: str | None = None
    bank_account_details: dict[str, Any] | None = None


class PlatformCredentialsCreate(BaseModel):
    platform: str = Field(min_length=1)
    credentials: dict[str, Any]

    @field_validator("credentials")
    @classmethod
    def validate_credentials(cls, value: dict[str, Any]) -> dict[str, Any]:
        if not value:
            raise ValueError("credentials must not be empty")
        return value


class DailyStatsUpsert(PatchModel):
    not_null_fields: ClassVar[frozenset[str]] = frozenset(
        {"applications_count", "responses_count", "target", "earnings"}
    )

    date: dt.date
    applications_count: int | None = Field(default=None, ge=0)
    responses_count: int | None = Field(default=None, ge=0)
    target: int | None = Field(default=None, ge=0)
    earnings: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)


class ContactCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    company: str | None = None
    job_title: str | None = None
    industry: str | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    last_contacted: datetime | None = None
    response_received: bool = False


class ContactUpdate(PatchModel):
    not_null_fields: ClassVar[frozenset[str]] = frozenset({"name", "email", "tags", "response_received"})

    name: str | None = None
    email: EmailStr | None = None
    company: str | None = None
    job_title: str | None = None
    industry: str | None = None
    notes: str | None = None
    tags: list[str] | None = None
    last_contacted: datetime | None = None
    response_received: bool | None = None


class ResumeTemplateCreate(BaseModel):
    name: str = Field(min_length=1)
    industry: str | None = None
    skills: list[str] = Field(default_factory=list)
    content: str
    is_default: bool = False


class ResumeTemplateUpdate(PatchModel):
    not_null_fields: ClassVar[frozenset[str]] = frozenset({"name", "skills", "content", "is_default"})

    name: str | None = None
    industry: str | None = None
    skills: list[str] | None = None
    content: str | None = None
    is_default: bool | None = None


class EmailCampaignCreate(BaseModel):
    name: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    template: str = Field(min_length=1)
    contact_ids: list[int] = Field(default_factory=list)
    status: CampaignStatus = "draft"
    scheduled_for: datetime | None = None


class EmailCampaignUpdate(PatchModel):
    not_null_fields: ClassVar[frozenset[str]] = frozenset(
        {"name", "subject", "template", "contact_ids", "status", "sent_count", "response_count"}
    )

    name: str | None = None
    subject: str | None = None
    template: str | None = None
    contact_ids: list[int] | None = None
    status: CampaignStatus | None = None
    sent_count: int | None = Field(default=None, ge=0)
    response_count: int | None = Field(default=None, ge=0)
    scheduled_for: datetime | None = None


class DashboardStats(BaseModel):
    today_applications: int
    total_applications: int
    response_rate: int
    total_responses: int
    weekly_earnings: float


class TodaySummary(BaseModel):
    applications_count: int
    response_rate: int
    total_responses: int
    target: int


class CampaignSendResult(BaseModel):
    sent: int
    failed: int
    total: int


class SimulatedJob(BaseModel):
    id: int
    title: str
    company: str
    pay_rate: int
    location: str
    description: str
    requirements: list[str] = Field(default_factory=list)
    is_interview_free: bool
    match_score: int


class AutoApplyRequest(BaseModel):
    job_id: int
    title: str = Field(min_length=1)
    company: str = Field(min_length=1)
    pay_rate: str | int | None = None
    url: str | None = None
