import json

from typer.testing import CliRunner

from jobflow.cli.app import app
from jobflow.db.repositories import Repository
from jobflow.db.session import SessionLocal
from jobflow.types import ContactCreate, EmailCampaignCreate, JobApplicationCreate

runner = CliRunner()


def test_user_stats_export_and_campaign_dry_run() -> None:
    result = runner.invoke(app, ["user", "upsert", "--id", "cli-user", "--email", "cli@example.com"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["email"] == "cli@example.com"

    with SessionLocal() as db:
        repo = Repository(db)
        repo.create_job_application(
            "cli-user", JobApplicationCreate(title="Dev", company="Acme", platform="Upwork", status="responded")
        )
        contact = repo.create_contact("cli-user", ContactCreate(name="Bob", email="bob@acme.com", company="Acme"))
        campaign = repo.create_email_campaign(
            "cli-user",
            EmailCampaignCreate(name="Intro", subject="Hi", template="Hi [Name] at [Company]", contact_ids=[contact.id]),
        )
        campaign_id = campaign.id

    result = runner.invoke(app, ["stats", "dashboard", "--user-id", "cli-user"])
    assert result.exit_code == 0, result.output
    stats = json.loads(result.output)
    assert stats["total_applications"] == 1
    assert stats["response_rate"] == 100

    result = runner.invoke(app, ["export", "applications", "--user-id", "cli-user", "--format", "csv"])
    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[1].startswith("Dev,Acme,Upwork,responded,")

    result = runner.invoke(app, ["campaign", "send", "--campaign-id", str(campaign_id), "--dry-run"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["sent"] == 1
    assert payload["messages"][0]["text"] == "Hi Bob at Acme"


def test_vault_generate_key() -> None:
    result = runner.invoke(app, ["vault", "generate-key"])
    assert result.exit_code == 0
    assert len(result.output.strip()) == 44


def test_campaign_send_unknown_id_fails() -> None:
    result = runner.invoke(app, ["campaign", "send", "--campaign-id", "999", "--dry-run"])
    assert result.exit_code != 0
