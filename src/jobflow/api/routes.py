from __future__ import annotations

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from jobflow.api.deps import get_current_user_id, get_db, get_transport, get_vault, require_owned
from jobflow.api.schemas import (
    AutoApplyResponse,
    AutoApplyToggleRequest,
    CampaignSendResponse,
    ContactResponse,
    DailyStatsResponse,
    EmailCampaignResponse,
    EmailTrackingResponse,
    JobApplicationResponse,
    MessageResponse,
    PlatformCredentialsResponse,
    ResumeTemplateResponse,
    UserProfileRequest,
    UserResponse,
    UserSettingsResponse,
)
from jobflow.core.auto_apply import AutoApplyService
from jobflow.core.campaigns import CampaignDispatcher
from jobflow.core.exporter import export_applications_csv, export_applications_json
from jobflow.core.mailer import EmailTransport
from jobflow.core.stats import StatsService
from jobflow.core.vault import CredentialVault
from jobflow.db.repositories import Repository
from jobflow.errors import NotFoundError
from jobflow.types import (
    AutoApplyRequest,
    ContactCreate,
    ContactUpdate,
    DailyStatsUpsert,
    DashboardStats,
    EmailCampaignCreate,
    EmailCampaignUpdate,
    EmailTrackingCreate,
    EmailTrackingUpdate,
    JobApplicationCreate,
    JobApplicationUpdate,
    PlatformCredentialsCreate,
    ResumeTemplateCreate,
    ResumeTemplateUpdate,
    SimulatedJob,
    TodaySummary,
    UserSettingsUpsert,
    UserUpsert,
)

router = APIRouter(prefix="/api", tags=["api"])


# Auth / user


@router.get("/auth/user", response_model=UserResponse)
def get_user(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)) -> UserResponse:
    user = Repository(db).get_user(user_id)
    if user is None:
        raise NotFoundError("user", user_id)
    return UserResponse.model_validate(user)


@router.put("/auth/user", response_model=UserResponse)
def upsert_user(
    payload: UserProfileRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> UserResponse:
    upsert = UserUpsert(id=user_id, **payload.model_dump(exclude_unset=True))
    user = Repository(db).upsert_user(upsert)
    return UserResponse.model_validate(user)


# Dashboard and stats


@router.get("/dashboard/stats", response_model=DashboardStats)
def dashboard_stats(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)) -> DashboardStats:
    return StatsService(db).get_dashboard_stats(user_id)


@router.get("/stats/today", response_model=TodaySummary)
def today_stats(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)) -> TodaySummary:
    return StatsService(db).get_today_summary(user_id)


@router.get("/stats/weekly", response_model=list[DailyStatsResponse])
def weekly_stats(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[DailyStatsResponse]:
    rows = StatsService(db).get_weekly_stats(user_id)
    return [DailyStatsResponse.model_validate(row) for row in rows]


@router.get("/stats/daily/{day}", response_model=DailyStatsResponse | None)
def daily_stats(
    day: date,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> DailyStatsResponse | None:
    row = Repository(db).get_daily_stats(user_id, day)
    return DailyStatsResponse.model_validate(row) if row else None


@router.post("/stats/daily", response_model=DailyStatsResponse)
def upsert_daily_stats(
    payload: DailyStatsUpsert,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> DailyStatsResponse:
    row = Repository(db).upsert_daily_stats(user_id, payload)
    return DailyStatsResponse.model_validate(row)


# Job applications


@router.get("/applications", response_model=list[JobApplicationResponse])
def list_applications(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[JobApplicationResponse]:
    rows = Repository(db).list_job_applications(user_id)
    return [JobApplicationResponse.model_validate(row) for row in rows]


@router.get("/applications/{application_id}", response_model=JobApplicationResponse)
def get_application(
    application_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> JobApplicationResponse:
    row = Repository(db).get_job_application(application_id)
    require_owned(row, user_id, "application", application_id)
    return JobApplicationResponse.model_validate(row)


@router.post("/applications", response_model=JobApplicationResponse)
def create_application(
    payload: JobApplicationCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> JobApplicationResponse:
    row = Repository(db).create_job_application(user_id, payload)
    return JobApplicationResponse.model_validate(row)


@router.put("/applications/{application_id}", response_model=JobApplicationResponse)
def update_application(
    application_id: int,
    payload: JobApplicationUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> JobApplicationResponse:
    repo = Repository(db)
    require_owned(repo.get_job_application(application_id), user_id, "application", application_id)
    row = repo.update_job_application(application_id, payload.changes())
    return JobApplicationResponse.model_validate(row)


@router.delete("/applications/{application_id}", response_model=MessageResponse)
def delete_application(
    application_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageResponse:
    repo = Repository(db)
    row = repo.get_job_application(application_id)
    if row is not None:
        require_owned(row, user_id, "application", application_id)
        repo.delete_job_application(application_id)
    return MessageResponse(message="Application deleted successfully")


# Email tracking


@router.get("/emails/job/{job_id}", response_model=list[EmailTrackingResponse])
def list_emails_for_job(
    job_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[EmailTrackingResponse]:
    rows = Repository(db).list_emails_for_job(job_id)
    return [EmailTrackingResponse.model_validate(row) for row in rows if row.user_id == user_id]


@router.get("/emails/unread", response_model=list[EmailTrackingResponse])
def list_unread_emails(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[EmailTrackingResponse]:
    rows = Repository(db).list_unread_emails(user_id)
    return [EmailTrackingResponse.model_validate(row) for row in rows]


@router.post("/emails", response_model=EmailTrackingResponse)
def create_email(
    payload: EmailTrackingCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> EmailTrackingResponse:
    repo = Repository(db)
    if payload.job_application_id is not None:
        application = repo.get_job_application(payload.job_application_id)
        require_owned(application, user_id, "application", payload.job_application_id)
    row = repo.create_email_tracking(user_id, payload)
    return EmailTrackingResponse.model_validate(row)


@router.put("/emails/{email_id}", response_model=EmailTrackingResponse)
def update_email(
    email_id: int,
    payload: EmailTrackingUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> EmailTrackingResponse:
    repo = Repository(db)
    require_owned(repo.get_email(email_id), user_id, "email", email_id)
    changes = payload.changes()
    if changes.get("job_application_id") is not None:
        application_id = changes["job_application_id"]
        require_owned(repo.get_job_application(application_id), user_id, "application", application_id)
    row = repo.update_email_tracking(email_id, changes)
    return EmailTrackingResponse.model_validate(row)


# User settings


@router.get("/settings", response_model=UserSettingsResponse | None)
def get_settings_route(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> UserSettingsResponse | None:
    row = Repository(db).get_user_settings(user_id)
    return UserSettingsResponse.model_validate(row) if row else None


@router.post("/settings", response_model=UserSettingsResponse)
def upsert_settings(
    payload: UserSettingsUpsert,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> UserSettingsResponse:
    row = Repository(db).upsert_user_settings(user_id, payload)
    return UserSettingsResponse.model_validate(row)


# Platform credentials


@router.get("/credentials", response_model=list[PlatformCredentialsResponse])
def list_credentials(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[PlatformCredentialsResponse]:
    rows = Repository(db).list_platform_credentials(user_id)
    return [PlatformCredentialsResponse.model_validate(row) for row in rows]


@router.post("/credentials", response_model=PlatformCredentialsResponse)
def create_credentials(
    payload: PlatformCredentialsCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    vault: CredentialVault = Depends(get_vault),
) -> PlatformCredentialsResponse:
    row = Repository(db).create_platform_credentials(
        user_id=user_id,
        platform=payload.platform,
        encrypted_credentials=vault.encrypt_json(payload.credentials),
    )
    return PlatformCredentialsResponse.model_validate(row)


@router.delete("/credentials/{credentials_id}", response_model=MessageResponse)
def delete_credentials(
    credentials_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageResponse:
    repo = Repository(db)
    row = repo.get_platform_credentials(credentials_id)
    if row is not None:
        require_owned(row, user_id, "credentials", credentials_id)
        repo.delete_platform_credentials(credentials_id)
    return MessageResponse(message="Credentials deleted successfully")


# Export


@router.get("/export/applications")
def export_applications(
    format: Literal["csv", "json"] = Query("json"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Response:
    rows = Repository(db).list_job_applications(user_id)
    if format == "csv":
        return Response(
            content=export_applications_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="job_applications.csv"'},
        )
    return Response(
        content=export_applications_json(rows),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="job_applications.json"'},
    )


# Contacts


@router.get("/contacts", response_model=list[ContactResponse])
def list_contacts(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[ContactResponse]:
    return [ContactResponse.model_validate(row) for row in Repository(db).list_contacts(user_id)]


@router.post("/contacts", response_model=ContactResponse)
def create_contact(
    payload: ContactCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ContactResponse:
    return ContactResponse.model_validate(Repository(db).create_contact(user_id, payload))


@router.put("/contacts/{contact_id}", response_model=ContactResponse)
def update_contact(
    contact_id: int,
    payload: ContactUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ContactResponse:
    repo = Repository(db)
    require_owned(repo.get_contact(contact_id), user_id, "contact", contact_id)
    return ContactResponse.model_validate(repo.update_contact(contact_id, payload.changes()))


@router.delete("/contacts/{contact_id}", response_model=MessageResponse)
def delete_contact(
    contact_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageResponse:
    repo = Repository(db)
    row = repo.get_contact(contact_id)
    if row is not None:
        require_owned(row, user_id, "contact", contact_id)
        repo.delete_contact(contact_id)
    return MessageResponse(message="Contact deleted successfully")


# Resume templates


@router.get("/resume-templates", response_model=list[ResumeTemplateResponse])
def list_resume_templates(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[ResumeTemplateResponse]:
    rows = Repository(db).list_resume_templates(user_id)
    return [ResumeTemplateResponse.model_validate(row) for row in rows]


@router.post("/resume-templates", response_model=ResumeTemplateResponse)
def create_resume_template(
    payload: ResumeTemplateCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ResumeTemplateResponse:
    return ResumeTemplateResponse.model_validate(Repository(db).create_resume_template(user_id, payload))


@router.put("/resume-templates/{template_id}", response_model=ResumeTemplateResponse)
def update_resume_template(
    template_id: int,
    payload: ResumeTemplateUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ResumeTemplateResponse:
    repo = Repository(db)
    require_owned(repo.get_resume_template(template_id), user_id, "resume template", template_id)
    return ResumeTemplateResponse.model_validate(repo.update_resume_template(template_id, payload.changes()))


@router.post("/resume-templates/{template_id}/default", response_model=ResumeTemplateResponse)
def set_default_resume_template(
    template_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ResumeTemplateResponse:
    repo = Repository(db)
    require_owned(repo.get_resume_template(template_id), user_id, "resume template", template_id)
    return ResumeTemplateResponse.model_validate(repo.set_default_resume_template(template_id))


@router.delete("/resume-templates/{template_id}", response_model=MessageResponse)
def delete_resume_template(
    template_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageResponse:
    repo = Repository(db)
    row = repo.get_resume_template(template_id)
    if row is not None:
        require_owned(row, user_id, "resume template", template_id)
        repo.delete_resume_template(template_id)
    return MessageResponse(message="Resume template deleted successfully")


# Email campaigns


@router.get("/email-campaigns", response_model=list[EmailCampaignResponse])
def list_email_campaigns(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[EmailCampaignResponse]:
    rows = Repository(db).list_email_campaigns(user_id)
    return [EmailCampaignResponse.model_validate(row) for row in rows]


@router.get("/email-campaigns/{campaign_id}", response_model=EmailCampaignResponse)
def get_email_campaign(
    campaign_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> EmailCampaignResponse:
    row = Repository(db).get_email_campaign(campaign_id)
    require_owned(row, user_id, "email campaign", campaign_id)
    return EmailCampaignResponse.model_validate(row)


@router.post("/email-campaigns", response_model=EmailCampaignResponse)
def create_email_campaign(
    payload: EmailCampaignCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> EmailCampaignResponse:
    return EmailCampaignResponse.model_validate(Repository(db).create_email_campaign(user_id, payload))


@router.put("/email-campaigns/{campaign_id}", response_model=EmailCampaignResponse)
def update_email_campaign(
    campaign_id: int,
    payload: EmailCampaignUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> EmailCampaignResponse:
    repo = Repository(db)
    require_owned(repo.get_email_campaign(campaign_id), user_id, "email campaign", campaign_id)
    return EmailCampaignResponse.model_validate(repo.update_email_campaign(campaign_id, payload.changes()))


@router.delete("/email-campaigns/{campaign_id}", response_model=MessageResponse)
def delete_email_campaign(
    campaign_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageResponse:
    repo = Repository(db)
    row = repo.get_email_campaign(campaign_id)
    if row is not None:
        require_owned(row, user_id, "email campaign", campaign_id)
        repo.delete_email_campaign(campaign_id)
    return MessageResponse(message="Email campaign deleted successfully")


@router.post("/email-campaigns/{campaign_id}/send", response_model=CampaignSendResponse)
def send_email_campaign(
    campaign_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_transport),
) -> CampaignSendResponse:
    require_owned(Repository(db).get_email_campaign(campaign_id), user_id, "email campaign", campaign_id)
    result = CampaignDispatcher(db, transport).send(campaign_id, user_id=user_id)
    return CampaignSendResponse(message="Email campaign sent successfully", **result.model_dump())


# Auto-apply


@router.post("/auto-apply/toggle", response_model=MessageResponse)
def toggle_auto_apply(
    payload: AutoApplyToggleRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageResponse:
    AutoApplyService(db).toggle(user_id, payload.enabled)
    state = "enabled" if payload.enabled else "disabled"
    return MessageResponse(message=f"Auto-apply {state} successfully")


@router.get("/auto-apply/search", response_model=list[SimulatedJob])
def search_auto_apply_jobs(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[SimulatedJob]:
    return AutoApplyService(db).search(user_id)


@router.post("/auto-apply/apply", response_model=AutoApplyResponse)
def auto_apply(
    payload: AutoApplyRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> AutoApplyResponse:
    application = AutoApplyService(db).apply(user_id, payload)
    return AutoApplyResponse(
        message="Application submitted successfully",
        application=JobApplicationResponse.model_validate(application),
    )
