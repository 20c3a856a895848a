# -*- coding: utf-8 -*-
"""
This module aggregates reconciliation cases into operational metrics and
exports discrepancies for offline analysis.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import polars as pl

from .config import ExportSettings
from .models import CompletionPercentiles, ReconciliationCase, ReconciliationMetrics
from .types import CaseStatus, ExportFormat, Severity

logger = logging.getLogger(__name__)

DISCREPANCY_SCHEMA: Dict[str, Any] = {
    "case_id": pl.Utf8,
    "resident_id": pl.Utf8,
    "transition_type": pl.Utf8,
    "discrepancy_id": pl.Utf8,
    "discrepancy_type": pl.Utf8,
    "severity": pl.Utf8,
    "status": pl.Utf8,
    "medication_name": pl.Utf8,
    "requires_action": pl.Boolean,
    "high_risk": pl.Boolean,
    "resolution_type": pl.Utf8,
    "resolved_by": pl.Utf8,
}

CASE_SCHEMA: Dict[str, Any] = {
    "case_id": pl.Utf8,
    "status": pl.Utf8,
    "discrepancies": pl.Int64,
    "critical": pl.Int64,
    "reviewed": pl.Boolean,
    "completion_minutes": pl.Float64,
}


def discrepancy_frame(cases: Iterable[ReconciliationCase]) -> pl.DataFrame:
    """Flattens every discrepancy of every case into one row."""
    rows: List[Dict[str, Any]] = []
    for case in cases:
        for d in case.discrepancies:
            rows.append(
                {
                    "case_id": case.id,
                    "resident_id": case.resident_id,
                    "transition_type": case.transition_type.value,
                    "discrepancy_id": d.id,
                    "discrepancy_type": d.discrepancy_type.value,
                    "severity": d.severity.value,
                    "status": d.status.value,
                    "medication_name": d.medication_name,
                    "requires_action": d.requires_action,
                    "high_risk": d.high_risk,
                    "resolution_type": d.resolution.resolution_type.value if d.resolution else None,
                    "resolved_by": d.resolution.resolved_by if d.resolution else None,
                }
            )
    return pl.DataFrame(rows, schema=DISCREPANCY_SCHEMA)


def case_frame(cases: Iterable[ReconciliationCase]) -> pl.DataFrame:
    """One row per case. Completion time is only set for completed or approved cases."""
    rows: List[Dict[str, Any]] = []
    for case in cases:
        completion: Optional[float] = None
        if case.status in (CaseStatus.COMPLETED, CaseStatus.APPROVED):
            completion = (case.updated_at - case.created_at).total_seconds() / 60
        rows.append(
            {
                "case_id": case.id,
                "status": case.status.value,
                "discrepancies": len(case.discrepancies),
                "critical": sum(1 for d in case.discrepancies if d.severity == Severity.CRITICAL),
                "reviewed": len(case.pharmacist_reviews) > 0,
                "completion_minutes": completion,
            }
        )
    return pl.DataFrame(rows, schema=CASE_SCHEMA)


def _counts_by(df: pl.DataFrame, column: str) -> Dict[str, int]:
    counted = (
        df.filter(pl.col(column).is_not_null())
        .group_by(column)
        .agg(pl.col(column).count().alias("n"))
        .sort(column)
    )
    return {row[column]: int(row["n"]) for row in counted.to_dicts()}


def _quantile(series: pl.Series, q: float) -> float:
    if series.is_empty():
        return 0.0
    value = series.quantile(q, interpolation="linear")
    return float(value) if value is not None else 0.0


def reconciliation_metrics(cases: Iterable[ReconciliationCase]) -> ReconciliationMetrics:
    """
    Computes reconciliation analytics over a set of cases: volumes, rates and
    completion-time percentiles (linear interpolation).
    """
    cases = list(cases)
    cases_df = case_frame(cases)
    discrepancies_df = discrepancy_frame(cases)

    total = cases_df.height
    if total == 0:
        logger.info("No reconciliation cases supplied; returning empty metrics.")
        return ReconciliationMetrics(
            total_reconciliations=0,
            average_discrepancies=0.0,
            average_completion_minutes=0.0,
            pharmacist_review_rate=0.0,
            critical_issue_rate=0.0,
        )

    total_discrepancies = int(cases_df["discrepancies"].sum())
    critical = int(cases_df["critical"].sum())
    reviewed = int(cases_df["reviewed"].sum())
    completion = cases_df["completion_minutes"].drop_nulls()
    average_completion = float(completion.mean()) if not completion.is_empty() else 0.0  # type: ignore[arg-type]

    metrics = ReconciliationMetrics(
        total_reconciliations=total,
        average_discrepancies=total_discrepancies / total,
        average_completion_minutes=average_completion,
        discrepancy_types=_counts_by(discrepancies_df, "discrepancy_type"),
        resolution_types=_counts_by(discrepancies_df, "resolution_type"),
        pharmacist_review_rate=reviewed / total * 100,
        critical_issue_rate=(critical / total_discrepancies * 100) if total_discrepancies else 0.0,
        time_to_completion=CompletionPercentiles(
            median=_quantile(completion, 0.5),
            p95=_quantile(completion, 0.95),
            p99=_quantile(completion, 0.99),
        ),
    )
    logger.info(
        f"Computed metrics over {total} reconciliations and {total_discrepancies} discrepancies."
    )
    return metrics


def export_discrepancies(
    cases: Iterable[ReconciliationCase],
    settings: ExportSettings,
    filename_stem: str = "discrepancies",
) -> Path:
    """
    Writes all discrepancies to the configured directory and format.

    :return: The path of the written file.
    """
    df = discrepancy_frame(cases)
    export_dir = Path(settings.export_dir)
    export_dir.mkdir(parents=True, exist_ok=True)

    if settings.export_format == ExportFormat.PARQUET:
        path = export_dir / f"{filename_stem}.parquet"
        df.write_parquet(path, compression="zstd")
    elif settings.export_format == ExportFormat.CSV:
        path = export_dir / f"{filename_stem}.csv"
        df.write_csv(path)
    else:
        raise ValueError(f"Unsupported export format: {settings.export_format}")

    logger.info(f"Exported {df.height} discrepancies to {path}")
    return path
