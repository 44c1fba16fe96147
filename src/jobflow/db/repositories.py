from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from typing import Any

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobflow.db.base import Base, utcnow
from jobflow.db.models import (
    Contact,
    DailyStats,
    EmailCampaign,
    EmailTracking,
    JobApplication,
    PlatformCredentials,
    ResumeTemplate,
    User,
    UserSettings,
)
from jobflow.errors import InvalidStateError, NotFoundError, ValidationFailure
from jobflow.types import (
    ContactCreate,
    DailyStatsUpsert,
    EmailCampaignCreate,
    EmailTrackingCreate,
    JobApplicationCreate,
    ResumeTemplateCreate,
    UserSettingsUpsert,
    UserUpsert,
)

logger = logging.getLogger(__name__)

# Never changed by a partial update.
IMMUTABLE_FIELDS = frozenset({"id", "user_id", "applied_at", "created_at", "updated_at", "last_updated"})

_DIALECT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class Repository:
    def __init__(self, session: Session):
        self.session = session

    def _save(self, obj: Base) -> Any:
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def _require(self, model: type[Base], entity_id: object, label: str) -> Any:
        obj = self.session.get(model, entity_id)
        if obj is None:
            raise NotFoundError(label, entity_id)
        return obj

    def _patch(self, obj: Base, values: dict[str, Any]) -> None:
        for key, value in values.items():
            if key in IMMUTABLE_FIELDS:
                continue
            if not hasattr(obj, key):
                raise ValidationFailure(
                    f"unknown field '{key}' for {obj.__tablename__}",
                    errors=[{"field": key, "message": "unknown field"}],
                )
            setattr(obj, key, value)

    def _delete_by_id(self, model: type[Base], entity_id: int) -> None:
        self.session.execute(delete(model).where(model.id == entity_id))
        self.session.commit()

    def _upsert(
        self,
        model: type[Base],
        *,
        key: dict[str, Any],
        values: dict[str, Any],
        touch_updated_at: bool = False,
    ) -> Any:
        """Insert ``key | values`` or overwrite ``values`` on the row matching ``key``."""
        update_values = dict(values)
        if touch_updated_at:
            update_values["updated_at"] = utcnow()

        insert_fn = _DIALECT_INSERTS.get(self.session.get_bind().dialect.name)
        if insert_fn is not None:
            statement = insert_fn(model).values(**(key | values))
            if update_values:
                statement = statement.on_conflict_do_update(index_elements=list(key), set_=update_values)
            else:
                statement = statement.on_conflict_do_nothing(index_elements=list(key))
            self.session.execute(statement)
        else:
            existing = self.session.scalar(select(model).filter_by(**key))
            if existing:
                for field, value in update_values.items():
                    setattr(existing, field, value)
            else:
                self.session.add(model(**(key | values)))

        self.session.commit()
        statement = select(model).filter_by(**key).execution_options(populate_existing=True)
        return self.session.scalar(statement)

    # Users

    def get_user(self, user_id: str) -> User | None:
        return self.session.get(User, user_id)

    def upsert_user(self, payload: UserUpsert) -> User:
        values = payload.model_dump(exclude={"id"}, exclude_unset=True)
        return self._upsert(User, key={"id": payload.id}, values=values, touch_updated_at=True)

    def ensure_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if user is None:
            user = self.upsert_user(UserUpsert(id=user_id))
        return user

    def delete_user(self, user_id: str) -> None:
        self.session.execute(delete(User).where(User.id == user_id))
        self.session.commit()

    # Job applications

    def list_job_applications(self, user_id: str) -> list[JobApplication]:
        statement = (
            select(JobApplication)
            .where(JobApplication.user_id == user_id)
            .order_by(JobApplication.applied_at.desc(), JobApplication.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def get_job_application(self, application_id: int) -> JobApplication | None:
        return self.session.get(JobApplication, application_id)

    def create_job_application(self, user_id: str, payload: JobApplicationCreate) -> JobApplication:
        return self._save(JobApplication(user_id=user_id, **payload.model_dump()))

    def update_job_application(self, application_id: int, values: dict[str, Any]) -> JobApplication:
        application = self._require(JobApplication, application_id, "job application")
        self._patch(application, values)
        application.last_updated = utcnow()
        self.session.commit()
        self.session.refresh(application)
        return application

    def delete_job_application(self, application_id: int) -> None:
        self.session.execute(
            update(EmailTracking)
            .where(EmailTracking.job_application_id == application_id)
            .values(job_application_id=None)
        )
        self._delete_by_id(JobApplication, application_id)

    def count_job_applications(self, user_id: str, *, exclude_status: str | None = None) -> int:
        statement = select(func.count()).select_from(JobApplication).where(JobApplication.user_id == user_id)
        if exclude_status is not None:
            statement = statement.where(JobApplication.status != exclude_status)
        return int(self.session.scalar(statement) or 0)

    def record_application(
        self,
        user_id: str,
        payload: JobApplicationCreate,
        *,
        day: date,
        target: int,
    ) -> JobApplication:
        """Create an application and bump that day's count in one transaction."""
        application = JobApplication(user_id=user_id, **payload.model_dump())
        try:
            self.session.add(application)
            self.session.flush()

            increment = {"applications_count": DailyStats.applications_count + 1}
            insert_fn = _DIALECT_INSERTS.get(self.session.get_bind().dialect.name)
            if insert_fn is not None:
                statement = (
                    insert_fn(DailyStats)
                    .values(user_id=user_id, date=day, applications_count=1, target=target)
                    .on_conflict_do_update(index_elements=["user_id", "date"], set_=increment)
                )
                self.session.execute(statement)
            else:
                existing = self.get_daily_stats(user_id, day)
                if existing:
                    self.session.execute(
                        update(DailyStats).where(DailyStats.id == existing.id).values(**increment)
                    )
                else:
                    self.session.add(
                        DailyStats(user_id=user_id, date=day, applications_count=1, target=target)
                    )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(application)
        return application

    # Email tracking

    def list_emails(self, user_id: str) -> list[EmailTracking]:
        statement = (
            select(EmailTracking)
            .where(EmailTracking.user_id == user_id)
            .order_by(EmailTracking.received_at.desc(), EmailTracking.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def list_emails_for_job(self, job_application_id: int) -> list[EmailTracking]:
        statement = (
            select(EmailTracking)
            .where(EmailTracking.job_application_id == job_application_id)
            .order_by(EmailTracking.received_at.desc(), EmailTracking.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def list_unread_emails(self, user_id: str) -> list[EmailTracking]:
        statement = (
            select(EmailTracking)
            .where(and_(EmailTracking.user_id == user_id, EmailTracking.is_read.is_(False)))
            .order_by(EmailTracking.received_at.desc(), EmailTracking.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def get_email(self, email_id: int) -> EmailTracking | None:
        return self.session.get(EmailTracking, email_id)

    def get_email_by_message_id(self, message_id: str) -> EmailTracking | None:
        return self.session.scalar(select(EmailTracking).where(EmailTracking.message_id == message_id))

    def _reuse_ingested(self, existing: EmailTracking, user_id: str) -> EmailTracking:
        if existing.user_id != user_id:
            raise InvalidStateError(f"message_id {existing.message_id} is already tracked by another account")
        return existing

    def create_email_tracking(self, user_id: str, payload: EmailTrackingCreate) -> EmailTracking:
        if payload.message_id:
            existing = self.get_email_by_message_id(payload.message_id)
            if existing:
                return self._reuse_ingested(existing, user_id)

        try:
            return self._save(EmailTracking(user_id=user_id, **payload.model_dump()))
        except IntegrityError:
            self.session.rollback()
            existing = self.get_email_by_message_id(payload.message_id) if payload.message_id else None
            if existing is None:
                raise
            logger.info("Email message_id=%s ingested concurrently, reusing row", payload.message_id)
            return self._reuse_ingested(existing, user_id)

    def update_email_tracking(self, email_id: int, values: dict[str, Any]) -> EmailTracking:
        email = self._require(EmailTracking, email_id, "email")
        self._patch(email, values)
        self.session.commit()
        self.session.refresh(email)
        return email

    def mark_email_read(self, email_id: int) -> EmailTracking:
        return self.update_email_tracking(email_id, {"is_read": True})

    def delete_email_tracking(self, email_id: int) -> None:
        self._delete_by_id(EmailTracking, email_id)

    # User settings

    def get_user_settings(self, user_id: str) -> UserSettings | None:
        return self.session.scalar(select(UserSettings).where(UserSettings.user_id == user_id))

    def upsert_user_settings(self, user_id: str, payload: UserSettingsUpsert) -> UserSettings:
        return self._upsert(
            UserSettings,
            key={"user_id": user_id},
            values=payload.changes(),
            touch_updated_at=True,
        )

    # Platform credentials

    def list_platform_credentials(self, user_id: str) -> list[PlatformCredentials]:
        statement = (
            select(PlatformCredentials)
            .where(PlatformCredentials.user_id == user_id)
            .order_by(PlatformCredentials.created_at.desc(), PlatformCredentials.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def get_platform_credentials(self, credentials_id: int) -> PlatformCredentials | None:
        return self.session.get(PlatformCredentials, credentials_id)

    def create_platform_credentials(
        self,
        *,
        user_id: str,
        platform: str,
        encrypted_credentials: str,
        is_active: bool = True,
    ) -> PlatformCredentials:
        return self._save(
            PlatformCredentials(
                user_id=user_id,
                platform=platform,
                encrypted_credentials=encrypted_credentials,
                is_active=is_active,
            )
        )

    def update_platform_credentials(self, credentials_id: int, values: dict[str, Any]) -> PlatformCredentials:
        credentials = self._require(PlatformCredentials, credentials_id, "platform credentials")
        self._patch(credentials, values)
        self.session.commit()
        self.session.refresh(credentials)
        return credentials

    def touch_platform_credentials(self, credentials_id: int) -> PlatformCredentials:
        return self.update_platform_credentials(credentials_id, {"last_used": utcnow()})

    def delete_platform_credentials(self, credentials_id: int) -> None:
        self._delete_by_id(PlatformCredentials, credentials_id)

    # Daily stats

    def get_daily_stats(self, user_id: str, day: date) -> DailyStats | None:
        statement = select(DailyStats).where(and_(DailyStats.user_id == user_id, DailyStats.date == day))
        return self.session.scalar(statement)

    def list_daily_stats(self, user_id: str, start: date, end: date) -> list[DailyStats]:
        statement = (
            select(DailyStats)
            .where(
                and_(
                    DailyStats.user_id == user_id,
                    DailyStats.date >= start,
                    DailyStats.date <= end,
                )
            )
            .order_by(DailyStats.date.desc())
        )
        return list(self.session.scalars(statement).all())

    def upsert_daily_stats(self, user_id: str, payload: DailyStatsUpsert) -> DailyStats:
        values = payload.changes()
        day = values.pop("date")
        return self._upsert(DailyStats, key={"user_id": user_id, "date": day}, values=values)

    # Contacts

    def list_contacts(self, user_id: str) -> list[Contact]:
        statement = (
            select(Contact)
            .where(Contact.user_id == user_id)
            .order_by(Contact.created_at.desc(), Contact.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def get_contact(self, contact_id: int) -> Contact | None:
        return self.session.get(Contact, contact_id)

    def get_contacts_by_ids(self, user_id: str, contact_ids: Iterable[int]) -> list[Contact]:
        """Resolve ids in the given order, dropping duplicates and ids that no longer exist."""
        ordered = list(dict.fromkeys(contact_ids))
        if not ordered:
            return []
        statement = select(Contact).where(and_(Contact.user_id == user_id, Contact.id.in_(ordered)))
        by_id = {contact.id: contact for contact in self.session.scalars(statement).all()}
        return [by_id[contact_id] for contact_id in ordered if contact_id in by_id]

    def create_contact(self, user_id: str, payload: ContactCreate) -> Contact:
        return self._save(Contact(user_id=user_id, **payload.model_dump()))

    def update_contact(self, contact_id: int, values: dict[str, Any]) -> Contact:
        contact = self._require(Contact, contact_id, "contact")
        self._patch(contact, values)
        self.session.commit()
        self.session.refresh(contact)
        return contact

    def delete_contact(self, contact_id: int) -> None:
        contact = self.get_contact(contact_id)
        if contact is None:
            return

        statement = select(EmailCampaign).where(EmailCampaign.user_id == contact.user_id)
        for campaign in self.session.scalars(statement).all():
            if contact_id in (campaign.contact_ids or []):
                campaign.contact_ids = [cid for cid in campaign.contact_ids if cid != contact_id]
        self.session.delete(contact)
        self.session.commit()

    # Resume templates

    def list_resume_templates(self, user_id: str) -> list[ResumeTemplate]:
        statement = (
            select(ResumeTemplate)
            .where(ResumeTemplate.user_id == user_id)
            .order_by(ResumeTemplate.created_at.desc(), ResumeTemplate.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def get_resume_template(self, template_id: int) -> ResumeTemplate | None:
        return self.session.get(ResumeTemplate, template_id)

    def get_default_resume_template(self, user_id: str) -> ResumeTemplate | None:
        statement = select(ResumeTemplate).where(
            and_(ResumeTemplate.user_id == user_id, ResumeTemplate.is_default.is_(True))
        )
        return self.session.scalar(statement)

    def _clear_default_template(self, user_id: str, *, keep_id: int | None = None) -> None:
        statement = (
            update(ResumeTemplate)
            .where(and_(ResumeTemplate.user_id == user_id, ResumeTemplate.is_default.is_(True)))
            .values(is_default=False)
        )
        if keep_id is not None:
            statement = statement.where(ResumeTemplate.id != keep_id)
        self.session.execute(statement)

    def create_resume_template(self, user_id: str, payload: ResumeTemplateCreate) -> ResumeTemplate:
        if payload.is_default:
            self._clear_default_template(user_id)
        return self._save(ResumeTemplate(user_id=user_id, **payload.model_dump()))

    def update_resume_template(self, template_id: int, values: dict[str, Any]) -> ResumeTemplate:
        template = self._require(ResumeTemplate, template_id, "resume template")
        if values.get("is_default"):
            self._clear_default_template(template.user_id, keep_id=template.id)
        self._patch(template, values)
        self.session.commit()
        self.session.refresh(template)
        return template

    def set_default_resume_template(self, template_id: int) -> ResumeTemplate:
        return self.update_resume_template(template_id, {"is_default": True})

    def delete_resume_template(self, template_id: int) -> None:
        self._delete_by_id(ResumeTemplate, template_id)

    # Email campaigns

    def list_email_campaigns(self, user_id: str) -> list[EmailCampaign]:
        statement = (
            select(EmailCampaign)
            .where(EmailCampaign.user_id == user_id)
            .order_by(EmailCampaign.created_at.desc(), EmailCampaign.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def get_email_campaign(self, campaign_id: int) -> EmailCampaign | None:
        return self.session.get(EmailCampaign, campaign_id)

    def create_email_campaign(self, user_id: str, payload: EmailCampaignCreate) -> EmailCampaign:
        return self._save(EmailCampaign(user_id=user_id, **payload.model_dump()))

    def update_email_campaign(self, campaign_id: int, values: dict[str, Any]) -> EmailCampaign:
        campaign = self._require(EmailCampaign, campaign_id, "email campaign")
        self._patch(campaign, values)
        self.session.commit()
        self.session.refresh(campaign)
        return campaign

    def delete_email_campaign(self, campaign_id: int) -> None:
        self._delete_by_id(EmailCampaign, campaign_id)
