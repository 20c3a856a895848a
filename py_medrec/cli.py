# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
This module provides the command-line interface for the medication engine.

Every command reads its records from YAML or JSON files.
"""
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional, Type, TypeVar

import typer
import yaml
from pydantic import BaseModel

from . import config
from .engine import MedicationEngine
from .metrics import export_discrepancies, reconciliation_metrics
from .models import (
    AdministrationAttempt,
    Medication,
    MedicationSource,
    PharmacistReview,
    Prescription,
    ReconciliationCase,
)
from .prescriptions import prescriptions_due_for_review
from .reconciliation import summarize_case
from .types import TransitionType, WorkflowAction

app = typer.Typer(help="Medication administration safety and reconciliation engine.")

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _read_file(path: Path) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"Input file not found at: {path}")
    with open(path, "r") as f:
        # YAML is a superset of JSON, so one loader covers both.
        return yaml.safe_load(f)


def load_model(path: Path, model: Type[M]) -> M:
    """Load and validate one record from a YAML or JSON file."""
    return model.model_validate(_read_file(path))


def load_models(path: Path, model: Type[M]) -> List[M]:
    """Load and validate a list of records from a YAML or JSON file."""
    data = _read_file(path) or []
    if not isinstance(data, list):
        data = [data]
    return [model.model_validate(item) for item in data]


def _write_or_echo(payload: BaseModel, output: Optional[Path]) -> None:
    text = payload.model_dump_json(indent=2)
    if output:
        output.write_text(text)
        logger.info(f"Wrote {type(payload).__name__} to {output}")
    else:
        typer.echo(text)


def _engine(profile: str) -> MedicationEngine:
    settings = config.load_config(profile=profile)
    logging.getLogger().setLevel(settings.log_level)
    return MedicationEngine.from_settings(settings)


def _fail(message: str) -> None:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


ProfileOption = typer.Option("dev", "--profile", "-p", help="The configuration profile to use.")


@app.command()
def next_dose(
    prescription_file: Path = typer.Argument(..., help="Prescription record."),
    last_attempt_file: Optional[Path] = typer.Option(
        None, "--last-attempt", help="The most recent administration attempt."
    ),
    profile: str = ProfileOption,
) -> None:
    """Show the next scheduled administration and the daily dose total."""
    engine = _engine(profile)
    try:
        prescription = load_model(prescription_file, Prescription)
        last_attempt = (
            load_model(last_attempt_file, AdministrationAttempt) if last_attempt_file else None
        )
        result = engine.next_administration(prescription, last_attempt)
    except Exception as e:
        logger.error(f"Could not compute next administration: {e}")
        raise typer.Exit(code=1)

    if result.is_prn:
        typer.echo("PRN order: no fixed schedule; eligibility is decided by check-safety.")
    elif result.next_time is None:
        typer.echo("Custom frequency: no fixed schedule.")
    else:
        typer.echo(f"Next administration: {result.next_time.isoformat()}")
    typer.echo(f"Daily dose total: {result.daily_dose_total:g} {result.unit}")


@app.command()
def check_safety(
    prescription_file: Path = typer.Argument(..., help="Prescription record."),
    medication_file: Path = typer.Argument(..., help="Medication record."),
    attempt_file: Path = typer.Argument(..., help="The proposed administration attempt."),
    prior_file: Optional[Path] = typer.Option(
        None, "--prior", help="The most recent prior attempt."
    ),
    today_total: float = typer.Option(
        0.0, "--today-total", help="Sum of doses already given today."
    ),
    profile: str = ProfileOption,
) -> None:
    """Decide whether an administration is allowed now. Exits 1 on denial."""
    engine = _engine(profile)
    try:
        decision = engine.check_administration(
            load_model(prescription_file, Prescription),
            load_model(medication_file, Medication),
            load_model(attempt_file, AdministrationAttempt),
            load_model(prior_file, AdministrationAttempt) if prior_file else None,
            today_total,
        )
    except Exception as e:
        logger.error(f"Safety check failed: {e}")
        raise typer.Exit(code=1)

    if decision.allowed:
        typer.secho("ALLOW", fg=typer.colors.GREEN)
        return
    reason = decision.reason.value if decision.reason else "UNKNOWN"
    _fail(f"DENY {reason}: {decision.message}")


@app.command()
def score(
    attempt_file: Path = typer.Argument(..., help="The recorded administration attempt."),
    prescription_file: Path = typer.Argument(..., help="Prescription record."),
    medication_file: Path = typer.Argument(..., help="Medication record."),
    profile: str = ProfileOption,
) -> None:
    """Score a recorded administration for compliance and accuracy."""
    engine = _engine(profile)
    try:
        result = engine.score_administration(
            load_model(attempt_file, AdministrationAttempt),
            load_model(prescription_file, Prescription),
            load_model(medication_file, Medication),
        )
    except Exception as e:
        typer.secho(f"Scoring failed: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _write_or_echo(result, None)


@app.command()
def reconcile(
    source_file: Path = typer.Argument(..., help="Source medication list."),
    target_file: Path = typer.Argument(..., help="Target medication list."),
    transition_type: TransitionType = typer.Option(
        ..., "--transition", "-t", help="The care transition.", case_sensitive=False
    ),
    resident: str = typer.Option(..., "--resident", "-r", help="Resident identifier."),
    performed_by: str = typer.Option("cli", "--performed-by", help="Who runs the reconciliation."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the reconciliation case as JSON."
    ),
    profile: str = ProfileOption,
) -> None:
    """Compare two medication lists and report the discrepancies."""
    engine = _engine(profile)
    try:
        case = engine.reconcile(
            load_model(source_file, MedicationSource),
            load_model(target_file, MedicationSource),
            transition_type,
            resident_id=resident,
            performed_by=performed_by,
        )
    except Exception as e:
        typer.secho(f"Reconciliation failed: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    for d in case.discrepancies:
        colour = typer.colors.RED if d.requires_action else typer.colors.YELLOW
        typer.secho(
            f"[{d.severity.value.upper()}] {d.discrepancy_type.value}: {d.description}",
            fg=colour,
        )
    summary = summarize_case(case)
    typer.echo(
        f"{summary.discrepancies_found} discrepancies, {summary.critical_issues} critical. "
        f"Status: {summary.status.value}."
    )
    if output:
        _write_or_echo(case, output)


@app.command()
def transition(
    case_file: Path = typer.Argument(..., help="Reconciliation case JSON."),
    discrepancy_id: str = typer.Argument(..., help="The discrepancy to transition."),
    action: WorkflowAction = typer.Argument(..., help="open, resolve or accept_risk."),
    actor: str = typer.Option(..., "--actor", "-a", help="The clinician acting."),
    rationale: Optional[str] = typer.Option(None, "--rationale", help="Resolution rationale."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Where to write the updated case (defaults to CASE_FILE)."
    ),
    profile: str = ProfileOption,
) -> None:
    """Move one discrepancy through the resolution workflow."""
    engine = _engine(profile)
    try:
        case = engine.transition_discrepancy(
            load_model(case_file, ReconciliationCase),
            discrepancy_id,
            action,
            actor,
            rationale=rationale,
        )
    except Exception as e:
        typer.secho(f"Transition failed: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _write_or_echo(case, output or case_file)
    typer.echo(f"Case status: {case.status.value}")


@app.command()
def review(
    case_file: Path = typer.Argument(..., help="Reconciliation case JSON."),
    review_file: Path = typer.Argument(..., help="Pharmacist review record."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Where to write the updated case (defaults to CASE_FILE)."
    ),
    profile: str = ProfileOption,
) -> None:
    """Attach a pharmacist review to a reconciliation case."""
    engine = _engine(profile)
    try:
        case = engine.attach_pharmacist_review(
            load_model(case_file, ReconciliationCase),
            load_model(review_file, PharmacistReview),
        )
    except Exception as e:
        typer.secho(f"Review failed: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _write_or_echo(case, output or case_file)
    typer.echo(f"Case status: {case.status.value}")


@app.command()
def metrics(
    case_files: List[Path] = typer.Argument(..., help="Reconciliation case JSON files."),
    export: bool = typer.Option(False, "--export", help="Also export discrepancies."),
    profile: str = ProfileOption,
) -> None:
    """Report reconciliation metrics over a set of cases."""
    settings = config.load_config(profile=profile)
    try:
        cases = [load_model(path, ReconciliationCase) for path in case_files]
        result = reconciliation_metrics(cases)
        _write_or_echo(result, None)
        if export:
            path = export_discrepancies(cases, settings.export)
            typer.secho(f"Discrepancies exported to {path}", fg=typer.colors.GREEN)
    except Exception as e:
        typer.secho(f"Metrics failed: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.command()
def due_reviews(
    prescriptions_file: Path = typer.Argument(..., help="A list of prescription records."),
    days: Optional[int] = typer.Option(
        None, "--days", "-d", help="Look-ahead window in days (defaults to configuration)."
    ),
    today: Optional[datetime] = typer.Option(
        None, "--today", formats=["%Y-%m-%d"], help="Reference date (defaults to today)."
    ),
    profile: str = ProfileOption,
) -> None:
    """List active prescriptions due for clinical review."""
    settings = config.load_config(profile=profile)
    window = days if days is not None else settings.scheduling.review_lookahead_days
    reference: date = today.date() if today else date.today()
    try:
        prescriptions = load_models(prescriptions_file, Prescription)
    except Exception as e:
        typer.secho(f"Could not load prescriptions: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    due = prescriptions_due_for_review(prescriptions, reference, window)
    if not due:
        typer.secho("No prescriptions due for review.", fg=typer.colors.GREEN)
        return
    for p in due:
        review_date = p.review_schedule.next_review_date if p.review_schedule else None
        typer.echo(f"{p.id}\t{p.resident_id}\t{p.medication_id}\t{review_date}")


if __name__ == "__main__":
    app()
