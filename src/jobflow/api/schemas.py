from __future__ import annotations

import datetime as dt
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr


class ORMResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserResponse(ORMResponse):
    id: str
    email: str | None
    first_name: str | None
    last_name: str | None
    profile_image_url: str | None
    created_at: datetime
    updated_at: datetime


class JobApplicationResponse(ORMResponse):
    id: int
    user_id: str
    title: str
    company: str
    platform: str
    url: str | None
    description: str | None
    pay_rate: str | None
    location: str | None
    status: str
    requires_interview: bool
    job_type: str
    skills: list[str]
    matching_score: int
    applied_at: datetime
    last_updated: datetime
    notes: str | None


class EmailTrackingResponse(ORMResponse):
    id: int
    job_application_id: int | None
    user_id: str
    message_id: str | None
    subject: str | None
    sender: str | None
    content: str | None
    category: str | None
    received_at: datetime
    is_read: bool
    auto_replied: bool


class UserSettingsResponse(ORMResponse):
    id: int
    user_id: str
    daily_target: int
    preferred_location: str
    min_pay_rate: int
    auto_apply_enabled: bool
    email_integration_enabled: bool
    interview_free_only: bool
    preferred_job_types: list[str]
    user_skills: list[str]
    resume_text: str | None
    cover_letter_template: str | None
    email_signature: str | None
    bank_account_details: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime


class PlatformCredentialsResponse(ORMResponse):
    """Credential metadata only; ciphertext is never part of a response."""

    id: int
    user_id: str
    platform: str
    is_active: bool
    last_used: datetime | None
    created_at: datetime
    updated_at: datetime


class DailyStatsResponse(ORMResponse):
    id: int
    user_id: str
    date: dt.date
    applications_count: int
    responses_count: int
    target: int
    earnings: float


class ContactResponse(ORMResponse):
    id: int
    user_id: str
    name: str
    email: str
    company: str | None
    job_title: str | None
    industry: str | None
    notes: str | None
    tags: list[str]
    last_contacted: datetime | None
    response_received: bool
    created_at: datetime
    updated_at: datetime


class ResumeTemplateResponse(ORMResponse):
    id: int
    user_id: str
    name: str
    industry: str | None
    skills: list[str]
    content: str
    is_default: bool
    created_at: datetime
    updated_at: datetime


class EmailCampaignResponse(ORMResponse):
    id: int
    user_id: str
    name: str
    subject: str
    template: str
    contact_ids: list[int]
    sent_count: int
    response_count: int
    status: str
    scheduled_for: datetime | None
    created_at: datetime
    updated_at: datetime


class MessageResponse(BaseModel):
    message: str


class CampaignSendResponse(BaseModel):
    message: str
    sent: int
    failed: int
    total: int


class AutoApplyToggleRequest(BaseModel):
    enabled: bool


class AutoApplyResponse(BaseModel):
    message: str
    application: JobApplicationResponse


class UserProfileRequest(BaseModel):
    email: EmailStr | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
