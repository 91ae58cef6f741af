"""Typer CLI entrypoint for screening operations."""

from __future__ import annotations

import json
import mimetypes
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, Iterator, List, Optional

import typer
import yaml
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .container import ScreeningContainer, create_container
from .errors import ScreeningError
from .logging import configure_logging
from .schemas import JobPosting
from .schemas.config import load_config

app = typer.Typer(help="Candidate screening orchestration CLI.")


@app.callback()
def main_options(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    database_url: Optional[str] = typer.Option(None, envvar="AUTOHIRE_DATABASE_URL", help="SQLAlchemy database URL."),
    scoring_url: Optional[str] = typer.Option(None, envvar="AUTOHIRE_SCORING_URL", help="Scoring service base URL."),
    scoring_api_key: Optional[str] = typer.Option(None, envvar="AUTOHIRE_SCORING_API_KEY", help="Scoring service API key."),
    log_level: str = typer.Option("WARNING", help="Log level for structured logging."),
) -> None:
    """Load configuration and build the service container."""
    settings: dict[str, Any] = {}
    if config:
        with config.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
            if not isinstance(loaded, dict):
                raise typer.BadParameter("Config file must be a YAML object", param_name="config")
            settings = loaded

    if database_url:
        settings.setdefault("database", {})["url"] = database_url
    if scoring_url:
        settings.setdefault("scoring", {})["base_url"] = scoring_url
    if scoring_api_key:
        settings.setdefault("scoring", {})["api_key"] = scoring_api_key

    configure_logging(log_level)
    try:
        app_config = load_config(settings)
    except (ScreeningError, PydanticValidationError) as exc:
        raise typer.BadParameter(str(exc), param_name="config") from exc
    ctx.obj = create_container(settings=app_config)


@app.command("init-db")
def init_db(ctx: typer.Context) -> None:
    """Create database tables."""
    container = _container(ctx)
    database = container.database()
    typer.echo(f"Database ready at {database.url}")


@app.command("add-job")
def add_job(
    ctx: typer.Context,
    job: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Job posting JSON path."),
) -> None:
    """Register a job posting."""
    container = _container(ctx)
    with _errors():
        payload = json.loads(job.read_text(encoding="utf-8"))
        created = container.job_repository().add(JobPosting.model_validate(payload))
    _emit(created)


@app.command()
def submit(
    ctx: typer.Context,
    job_id: str = typer.Option(..., help="Job posting id."),
    candidate_id: str = typer.Option(..., help="Candidate id."),
    document: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Resume file."),
    name: Optional[str] = typer.Option(None, help="Candidate name."),
    email: Optional[str] = typer.Option(None, help="Candidate email for stage notifications."),
) -> None:
    """Submit an application and cache its resume text."""
    service = _container(ctx).service()
    mime_type, _ = mimetypes.guess_type(document.name)
    with _errors():
        application = service.submit_application(
            job_id=job_id,
            candidate_id=candidate_id,
            document=document.read_bytes(),
            mime_type=mime_type,
            filename=document.name,
            candidate_name=name,
            candidate_email=email,
        )
    _emit(application.model_dump(mode="json", exclude={"extracted_text"}))


@app.command("start-run")
def start_run(
    ctx: typer.Context,
    job_id: str = typer.Option(..., help="Job posting id."),
    application_id: Optional[List[str]] = typer.Option(None, help="Restrict the run to these applications."),
    wait: bool = typer.Option(True, help="Wait for the run to finish."),
) -> None:
    """Start a screening run for a job."""
    service = _container(ctx).service()
    with _errors():
        ticket = service.start_screening_run(job_id, application_id or None)
        if not wait:
            _emit(ticket)
            return
        service.wait_for_run(ticket.run_id)
        _emit(service.get_run_progress(ticket.run_id))


@app.command()
def progress(ctx: typer.Context, run_id: str = typer.Argument(..., help="Run id.")) -> None:
    """Show run progress."""
    with _errors():
        _emit(_container(ctx).service().get_run_progress(run_id))


@app.command()
def eligibility(
    ctx: typer.Context,
    job_id: str = typer.Option(..., help="Job posting id."),
    profile: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Candidate profile JSON path."),
) -> None:
    """Evaluate a candidate profile against a job's eligibility rules."""
    service = _container(ctx).service()
    with _errors():
        payload = json.loads(profile.read_text(encoding="utf-8"))
        result = service.evaluate_eligibility(job_id, payload)
    _emit(asdict(result))


@app.command()
def advance(
    ctx: typer.Context,
    stage: str = typer.Option(..., help="Target pipeline stage."),
    application_id: List[str] = typer.Option(..., help="Application ids to advance."),
) -> None:
    """Advance applications to a pipeline stage."""
    service = _container(ctx).service()
    try:
        with _errors():
            result = service.advance_stage(application_id, stage)
    finally:
        # Deliver queued notifications before the process exits.
        service.shutdown()
    _emit(asdict(result))


@app.command()
def reject(
    ctx: typer.Context,
    application_id: List[str] = typer.Option(..., help="Application ids to reject."),
) -> None:
    """Move applications to the rejected stage."""
    with _errors():
        rejected = _container(ctx).service().reject_applications(application_id)
    _emit({"rejected": rejected})


@app.command("stage-list")
def stage_list(
    ctx: typer.Context,
    job_id: str = typer.Option(..., help="Job posting id."),
    stage: str = typer.Option(..., help="Pipeline stage."),
) -> None:
    """List applications at a stage, best scores first."""
    with _errors():
        applications = _container(ctx).service().list_by_stage(job_id, stage)
    _emit([item.model_dump(mode="json", exclude={"extracted_text"}) for item in applications])


@app.command("stale-runs")
def stale_runs(
    ctx: typer.Context,
    expire: bool = typer.Option(False, help="Mark stale runs as failed."),
) -> None:
    """Report running runs that stopped making progress."""
    service = _container(ctx).service()
    runs = service.expire_stale_runs() if expire else service.find_stale_runs()
    _emit([run.model_dump(mode="json") for run in runs])


def _container(ctx: typer.Context) -> ScreeningContainer:
    return ctx.obj


@contextmanager
def _errors() -> Iterator[None]:
    try:
        yield
    except (ScreeningError, PydanticValidationError, json.JSONDecodeError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _emit(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
