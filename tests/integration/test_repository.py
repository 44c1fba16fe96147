import datetime as dt
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from jobflow.db.models import DailyStats, EmailCampaign
from jobflow.db.repositories import Repository
from jobflow.errors import InvalidStateError, NotFoundError, ValidationFailure
from jobflow.types import (
    ContactCreate,
    DailyStatsUpsert,
    EmailCampaignCreate,
    EmailTrackingCreate,
    JobApplicationCreate,
    ResumeTemplateCreate,
    UserSettingsUpsert,
)


def _application(repo: Repository, user_id: str, **overrides) -> int:
    payload = JobApplicationCreate(title="Dev", company="Acme", platform="Upwork", **overrides)
    return repo.create_job_application(user_id, payload).id


def test_status_update_touches_only_status_and_last_updated(repo: Repository, user_id: str) -> None:
    application_id = _application(repo, user_id, notes="first")
    before = repo.get_job_application(application_id)
    applied_at, last_updated = before.applied_at, before.last_updated

    after = repo.update_job_application(application_id, {"status": "interview"})

    assert after.status == "interview"
    assert after.title == "Dev"
    assert after.notes == "first"
    assert after.applied_at == applied_at
    assert after.last_updated >= last_updated


def test_update_ignores_immutable_fields_and_rejects_unknown(repo: Repository, user_id: str) -> None:
    application_id = _application(repo, user_id)
    updated = repo.update_job_application(application_id, {"user_id": "someone-else"})
    assert updated.user_id == user_id

    with pytest.raises(ValidationFailure):
        repo.update_job_application(application_id, {"salary": 100})


def test_update_missing_application_raises(repo: Repository) -> None:
    with pytest.raises(NotFoundError):
        repo.update_job_application(999, {"status": "offer"})


def test_list_orders_newest_first(repo: Repository, user_id: str) -> None:
    first = _application(repo, user_id)
    second = _application(repo, user_id)
    assert [row.id for row in repo.list_job_applications(user_id)] == [second, first]


def test_delete_application_unlinks_emails_and_is_idempotent(repo: Repository, user_id: str) -> None:
    application_id = _application(repo, user_id)
    email = repo.create_email_tracking(
        user_id, EmailTrackingCreate(job_application_id=application_id, message_id="<m1@mail>")
    )

    repo.delete_job_application(application_id)
    repo.delete_job_application(application_id)

    assert repo.get_job_application(application_id) is None
    repo.session.expire_all()
    assert repo.get_email(email.id).job_application_id is None


def test_email_ingest_is_idempotent_on_message_id(repo: Repository, user_id: str) -> None:
    first = repo.create_email_tracking(user_id, EmailTrackingCreate(message_id="<dup@mail>", subject="One"))
    second = repo.create_email_tracking(user_id, EmailTrackingCreate(message_id="<dup@mail>", subject="Two"))

    assert first.id == second.id
    assert len(repo.list_emails(user_id)) == 1


def test_unread_emails_and_mark_read(repo: Repository, user_id: str) -> None:
    email = repo.create_email_tracking(user_id, EmailTrackingCreate(subject="Hi"))
    assert [row.id for row in repo.list_unread_emails(user_id)] == [email.id]

    repo.mark_email_read(email.id)
    assert repo.list_unread_emails(user_id) == []


def test_settings_upsert_creates_then_merges(repo: Repository, user_id: str) -> None:
    created = repo.upsert_user_settings(user_id, UserSettingsUpsert(daily_target=10))
    assert created.daily_target == 10
    assert created.min_pay_rate == 50

    merged = repo.upsert_user_settings(user_id, UserSettingsUpsert(min_pay_rate=80))
    assert merged.id == created.id
    assert merged.daily_target == 10
    assert merged.min_pay_rate == 80


def test_daily_stats_upsert_replaces_supplied_fields(repo: Repository, user_id: str) -> None:
    day = dt.date(2026, 3, 2)
    repo.upsert_daily_stats(user_id, DailyStatsUpsert(date=day, applications_count=3, earnings=Decimal("12.50")))
    row = repo.upsert_daily_stats(user_id, DailyStatsUpsert(date=day, applications_count=5))

    assert row.applications_count == 5
    assert Decimal(row.earnings) == Decimal("12.50")
    assert len(repo.list_daily_stats(user_id, day, day)) == 1


def test_daily_stats_unique_per_user_and_date(repo: Repository, user_id: str) -> None:
    day = dt.date(2026, 3, 2)
    repo.upsert_daily_stats(user_id, DailyStatsUpsert(date=day))
    repo.session.add(DailyStats(user_id=user_id, date=day))
    with pytest.raises(IntegrityError):
        repo.session.commit()
    repo.session.rollback()


def test_contacts_resolve_in_order_without_duplicates_or_strangers(repo: Repository, user_id: str) -> None:
    bob = repo.create_contact(user_id, ContactCreate(name="Bob", email="bob@acme.com"))
    amy = repo.create_contact(user_id, ContactCreate(name="Amy", email="amy@acme.com"))
    repo.ensure_user("user-2")
    eve = repo.create_contact("user-2", ContactCreate(name="Eve", email="eve@evil.com"))

    resolved = repo.get_contacts_by_ids(user_id, [amy.id, 999, bob.id, amy.id, eve.id])
    assert [contact.id for contact in resolved] == [amy.id, bob.id]


def test_delete_contact_prunes_campaign_contact_ids(repo: Repository, user_id: str) -> None:
    bob = repo.create_contact(user_id, ContactCreate(name="Bob", email="bob@acme.com"))
    amy = repo.create_contact(user_id, ContactCreate(name="Amy", email="amy@acme.com"))
    campaign = repo.create_email_campaign(
        user_id, EmailCampaignCreate(name="Intro", subject="Hi", template="Hi [Name]", contact_ids=[bob.id, amy.id])
    )

    repo.delete_contact(bob.id)

    assert repo.session.get(EmailCampaign, campaign.id).contact_ids == [amy.id]


def test_only_one_default_resume_template(repo: Repository, user_id: str) -> None:
    first = repo.create_resume_template(user_id, ResumeTemplateCreate(name="A", content="a", is_default=True))
    second = repo.create_resume_template(user_id, ResumeTemplateCreate(name="B", content="b", is_default=True))
    repo.session.expire_all()
    assert repo.get_default_resume_template(user_id).id == second.id

    repo.set_default_resume_template(first.id)
    repo.session.expire_all()
    assert repo.get_default_resume_template(user_id).id == first.id
    assert repo.get_resume_template(second.id).is_default is False


def test_delete_user_cascades(repo: Repository, user_id: str) -> None:
    application_id = _application(repo, user_id)
    repo.create_contact(user_id, ContactCreate(name="Bob", email="bob@acme.com"))

    repo.delete_user(user_id)
    repo.session.expire_all()

    assert repo.get_job_application(application_id) is None
    assert repo.list_contacts(user_id) == []


def test_record_application_increments_daily_count(repo: Repository, user_id: str) -> None:
    day = dt.date(2026, 3, 2)
    payload = JobApplicationCreate(title="Dev", company="Acme", platform="Upwork")
    repo.record_application(user_id, payload, day=day, target=7)
    repo.record_application(user_id, payload, day=day, target=7)

    repo.session.expire_all()
    stats = repo.get_daily_stats(user_id, day)
    assert stats.applications_count == 2
    assert stats.target == 7
    assert repo.count_job_applications(user_id) == 2


def test_daily_stats_second_full_payload_wins(repo: Repository, user_id: str) -> None:
    day = dt.date(2026, 3, 3)
    first = DailyStatsUpsert(date=day, applications_count=2, responses_count=1, target=7, earnings=Decimal("5"))
    second = DailyStatsUpsert(date=day, applications_count=1, responses_count=0, target=9, earnings=Decimal("2.5"))
    repo.upsert_daily_stats(user_id, first)
    row = repo.upsert_daily_stats(user_id, second)

    assert (row.applications_count, row.responses_count, row.target) == (1, 0, 9)
    assert Decimal(row.earnings) == Decimal("2.50")


def test_touch_credentials_sets_last_used(repo: Repository, user_id: str) -> None:
    credentials = repo.create_platform_credentials(user_id=user_id, platform="Upwork", encrypted_credentials="token")
    assert credentials.last_used is None

    assert repo.touch_platform_credentials(credentials.id).last_used is not None
    repo.delete_platform_credentials(credentials.id)
    assert repo.list_platform_credentials(user_id) == []


def test_delete_email_is_idempotent(repo: Repository, user_id: str) -> None:
    email = repo.create_email_tracking(user_id, EmailTrackingCreate(subject="Hi"))
    repo.delete_email_tracking(email.id)
    repo.delete_email_tracking(email.id)
    assert repo.list_emails(user_id) == []


def test_email_ingest_does_not_reuse_another_users_row(repo: Repository, user_id: str) -> None:
    repo.create_email_tracking(user_id, EmailTrackingCreate(message_id="<shared@mail>", content="private"))
    repo.ensure_user("user-2")

    with pytest.raises(InvalidStateError):
        repo.create_email_tracking("user-2", EmailTrackingCreate(message_id="<shared@mail>"))
    assert repo.list_emails("user-2") == []
