from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import typer
import uvicorn

from jobflow.api.app import create_app
from jobflow.api.schemas import DailyStatsResponse, UserResponse
from jobflow.config import get_settings
from jobflow.core.campaigns import CampaignDispatcher
from jobflow.core.exporter import export_applications_csv, export_applications_json
from jobflow.core.mailer import RecordingTransport, SendGridTransport
from jobflow.core.stats import StatsService
from jobflow.core.vault import generate_key
from jobflow.db.init import init_database
from jobflow.db.repositories import Repository
from jobflow.db.session import SessionLocal
from jobflow.errors import InvalidStateError, NotFoundError
from jobflow.logging_config import configure_logging
from jobflow.types import UserUpsert

app = typer.Typer(help="JobFlow CLI")
user_app = typer.Typer(help="Manage users")
stats_app = typer.Typer(help="Dashboard statistics")
export_app = typer.Typer(help="Export stored records")
campaign_app = typer.Typer(help="Outreach email campaigns")
vault_app = typer.Typer(help="Credential vault helpers")

app.add_typer(user_app, name="user")
app.add_typer(stats_app, name="stats")
app.add_typer(export_app, name="export")
app.add_typer(campaign_app, name="campaign")
app.add_typer(vault_app, name="vault")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


@app.command("init")
def init_cmd() -> None:
    """Initialize the data directory and database schema."""
    configure_logging()
    result = init_database()
    typer.echo(json.dumps({"ok": True, **result}, indent=2))


@user_app.command("upsert")
def user_upsert(
    user_id: str = typer.Option(..., "--id"),
    email: str | None = typer.Option(None, "--email"),
    first_name: str | None = typer.Option(None, "--first-name"),
    last_name: str | None = typer.Option(None, "--last-name"),
) -> None:
    configure_logging()
    ensure_initialized()
    values = {"email": email, "first_name": first_name, "last_name": last_name}
    payload = UserUpsert(id=user_id, **{key: value for key, value in values.items() if value is not None})
    with SessionLocal() as db:
        user = Repository(db).upsert_user(payload)
        typer.echo(json.dumps(UserResponse.model_validate(user).model_dump(mode="json"), indent=2))


@stats_app.command("dashboard")
def stats_dashboard(
    user_id: str = typer.Option(..., "--user-id"),
    day: str | None = typer.Option(None, "--date", help="ISO date; defaults to today"),
) -> None:
    configure_logging()
    ensure_initialized()
    today = date.fromisoformat(day) if day else None
    with SessionLocal() as db:
        stats = StatsService(db).get_dashboard_stats(user_id, today=today)
        typer.echo(json.dumps(stats.model_dump(), indent=2))


@stats_app.command("weekly")
def stats_weekly(
    user_id: str = typer.Option(..., "--user-id"),
    day: str | None = typer.Option(None, "--date", help="ISO date; defaults to today"),
) -> None:
    configure_logging()
    ensure_initialized()
    today = date.fromisoformat(day) if day else None
    with SessionLocal() as db:
        rows = StatsService(db).get_weekly_stats(user_id, today=today)
        typer.echo(
            json.dumps(
                [DailyStatsResponse.model_validate(row).model_dump(mode="json") for row in rows],
                indent=2,
            )
        )


@export_app.command("applications")
def export_applications(
    user_id: str = typer.Option(..., "--user-id"),
    format: str = typer.Option("json", "--format"),
    output: Path | None = typer.Option(None, "--output"),
) -> None:
    configure_logging()
    ensure_initialized()
    if format not in {"csv", "json"}:
        raise typer.BadParameter("format must be csv or json")
    with SessionLocal() as db:
        rows = Repository(db).list_job_applications(user_id)
        content = export_applications_csv(rows) if format == "csv" else export_applications_json(rows)
    if output is None:
        typer.echo(content, nl=False)
        return
    output.write_text(content, encoding="utf-8")
    typer.echo(json.dumps({"ok": True, "path": str(output), "count": len(rows)}, indent=2))


@campaign_app.command("send")
def campaign_send(
    campaign_id: int = typer.Option(..., "--campaign-id"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Render messages without delivering them"),
) -> None:
    configure_logging()
    ensure_initialized()
    transport = RecordingTransport() if dry_run else SendGridTransport.from_settings()
    with SessionLocal() as db:
        try:
            result = CampaignDispatcher(db, transport).send(campaign_id)
        except (NotFoundError, InvalidStateError) as exc:
            raise typer.BadParameter(str(exc)) from exc
    payload = result.model_dump()
    if dry_run:
        payload["messages"] = [{"to": item.to, "subject": item.subject, "text": item.text} for item in transport.sent]
    typer.echo(json.dumps(payload, indent=2))


@vault_app.command("generate-key")
def vault_generate_key() -> None:
    """Print a fresh ENCRYPTION_KEY value."""
    typer.echo(generate_key())


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
