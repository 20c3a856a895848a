# -*- coding: utf-8 -*-
# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
This module scores a completed administration for process compliance and
accuracy, and flags records that need immediate clinical review.

Compliance is a point table out of 10, scaled to 0-100. Each rule is a named
entry in COMPLIANCE_RULES so it can be checked in isolation.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .config import SchedulingSettings
from .exceptions import ComplianceViolation, ValidationError
from .models import AdministrationAttempt, AdministrationScore, Medication, Prescription
from .types import AdministrationStatus, RefusalReason, SideEffectSeverity

logger = logging.getLogger(__name__)

SEVERE_SIDE_EFFECTS = frozenset({SideEffectSeverity.SEVERE, SideEffectSeverity.LIFE_THREATENING})

NOT_DOUBLE_CHECKED_PENALTY = 5
NOT_BARCODE_SCANNED_PENALTY = 3
MISSING_WITNESS_PENALTY = 10
UNDOCUMENTED_SIDE_EFFECTS_PENALTY = 15


@dataclass(frozen=True)
class ScoringContext:
    """Everything a compliance rule may look at."""

    attempt: AdministrationAttempt
    prescription: Prescription
    medication: Medication
    timing_tolerance_minutes: int = 30

    @property
    def witness_required(self) -> bool:
        return self.medication.is_controlled_substance

    @property
    def witness_present(self) -> bool:
        return self.attempt.witness is not None


@dataclass(frozen=True)
class ComplianceRule:
    name: str
    points: int
    check: Callable[[ScoringContext], bool]


COMPLIANCE_RULES: Tuple[ComplianceRule, ...] = (
    ComplianceRule(
        "electronic_signature", 2, lambda ctx: bool(ctx.attempt.electronic_signature)
    ),
    ComplianceRule("patient_identified", 1, lambda ctx: ctx.attempt.patient_identified),
    ComplianceRule("barcode_scanned", 1, lambda ctx: ctx.attempt.barcode_scanned),
    ComplianceRule("double_checked", 1, lambda ctx: ctx.attempt.double_checked),
    ComplianceRule(
        "witness_when_required",
        2,
        lambda ctx: not ctx.witness_required or ctx.witness_present,
    ),
    ComplianceRule(
        "timing_within_tolerance",
        1,
        lambda ctx: abs(ctx.attempt.timing_variance_minutes) <= ctx.timing_tolerance_minutes,
    ),
    ComplianceRule(
        "notes_or_given",
        1,
        lambda ctx: ctx.attempt.has_clinical_notes
        or ctx.attempt.status == AdministrationStatus.GIVEN,
    ),
    ComplianceRule(
        "side_effects_documented",
        1,
        lambda ctx: not ctx.attempt.side_effects_observed
        or ctx.attempt.side_effects_documented,
    ),
)

TOTAL_COMPLIANCE_POINTS = sum(rule.points for rule in COMPLIANCE_RULES)


def evaluate_compliance_rules(ctx: ScoringContext) -> Tuple[int, List[str]]:
    """Returns the points awarded and the names of the rules that failed."""
    awarded = 0
    failed: List[str] = []
    for rule in COMPLIANCE_RULES:
        if rule.check(ctx):
            awarded += rule.points
        else:
            failed.append(rule.name)
    return awarded, failed


def compliance_score(ctx: ScoringContext) -> int:
    awarded, _ = evaluate_compliance_rules(ctx)
    return round(awarded / TOTAL_COMPLIANCE_POINTS * 100)


def accuracy_score(ctx: ScoringContext, late_penalty_minutes: int = 15) -> int:
    """
    Starts at 100 and deducts one point per ``late_penalty_minutes`` late
    (early administration is not penalised) plus fixed penalties for missed
    safety steps. Never below zero.
    """
    attempt = ctx.attempt
    score = 100

    late_minutes = max(attempt.timing_variance_minutes, 0)
    score -= late_minutes // late_penalty_minutes

    if not attempt.double_checked:
        score -= NOT_DOUBLE_CHECKED_PENALTY
    if not attempt.barcode_scanned:
        score -= NOT_BARCODE_SCANNED_PENALTY
    if ctx.witness_required and not ctx.witness_present:
        score -= MISSING_WITNESS_PENALTY
    if attempt.side_effects_observed and not attempt.side_effects_documented:
        score -= UNDOCUMENTED_SIDE_EFFECTS_PENALTY

    return max(score, 0)


def compliance_violations(ctx: ScoringContext) -> List[str]:
    """
    Regulatory-required fields that are missing. An empty list means the
    record is compliant.
    """
    attempt = ctx.attempt
    violations: List[str] = []
    if not attempt.electronic_signature:
        violations.append("missing_signature")
    if ctx.witness_required and not ctx.witness_present:
        violations.append("missing_witness")
    if not attempt.patient_identified:
        violations.append("missing_patient_identification")
    if attempt.status == AdministrationStatus.REFUSED and attempt.reason is None:
        violations.append("refusal_without_reason")
    if attempt.side_effects_observed and not attempt.side_effects_documented:
        violations.append("undocumented_side_effects")
    return violations


def requires_immediate_clinical_review(ctx: ScoringContext) -> bool:
    attempt = ctx.attempt
    if any(effect.severity in SEVERE_SIDE_EFFECTS for effect in attempt.side_effects):
        return True
    if attempt.status == AdministrationStatus.WITHHELD:
        return True
    if (
        attempt.status == AdministrationStatus.REFUSED
        and attempt.reason == RefusalReason.ALLERGIC_REACTION
    ):
        return True
    return len(compliance_violations(ctx)) > 0


def assert_compliant(
    attempt: AdministrationAttempt, prescription: Prescription, medication: Medication
) -> None:
    """Raises ComplianceViolation if any regulatory-required field is missing."""
    violations = compliance_violations(ScoringContext(attempt, prescription, medication))
    if violations:
        raise ComplianceViolation(violations)


def score_administration(
    attempt: AdministrationAttempt,
    prescription: Prescription,
    medication: Medication,
    settings: Optional[SchedulingSettings] = None,
) -> AdministrationScore:
    """
    Computes the compliance and accuracy scores for a completed administration.

    :param attempt: The recorded administration attempt.
    :param prescription: The prescription the attempt belongs to.
    :param medication: The medication the prescription refers to.
    :param settings: Timing tolerances; defaults to SchedulingSettings().
    :return: An AdministrationScore.
    """
    if attempt.prescription_id != prescription.id:
        raise ValidationError(
            f"Attempt {attempt.id} belongs to prescription {attempt.prescription_id}, "
            f"not {prescription.id}"
        )
    settings = settings or SchedulingSettings()  # type: ignore[call-arg]
    ctx = ScoringContext(
        attempt=attempt,
        prescription=prescription,
        medication=medication,
        timing_tolerance_minutes=settings.timing_tolerance_minutes,
    )

    awarded, failed = evaluate_compliance_rules(ctx)
    violations = compliance_violations(ctx)
    result = AdministrationScore(
        compliance_score=round(awarded / TOTAL_COMPLIANCE_POINTS * 100),
        accuracy_score=accuracy_score(ctx, settings.late_penalty_minutes),
        requires_immediate_clinical_review=requires_immediate_clinical_review(ctx),
        timing_variance_minutes=attempt.timing_variance_minutes,
        failed_rules=failed,
        compliance_violations=violations,
    )
    logger.debug(f"Scored attempt {attempt.id}: {result.model_dump()}")
    return result
