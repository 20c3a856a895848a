# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
This module contains the service facade for the medication engine.

The facade wires the pure rule functions to the injected drug-risk lookup and
the audit/notification publisher. It holds no state between calls.
"""
import logging
from datetime import datetime
from typing import Optional, Union, cast

from .config import AppSettings
from .dosing import compute_next_administration
from .events import AbstractEventPublisher, LoggingEventPublisher
from .exceptions import AdministrationBlocked
from .models import (
    AdministrationAttempt,
    AdministrationScore,
    Medication,
    MedicationSource,
    NextAdministration,
    PharmacistReview,
    Prescription,
    ReconciliationCase,
    SafetyDecision,
)
from .reconciliation import pharmacist_review_required, reconcile
from .risk import AbstractDrugRiskLookup, StaticDrugRiskLookup
from .safety import evaluate_safety, may_record
from .scoring import score_administration
from .types import (
    CaseStatus,
    DenyReason,
    ResolutionType,
    Severity,
    TransitionType,
    WorkflowAction,
)
from .workflow import attach_pharmacist_review, transition_case_discrepancy

logger = logging.getLogger(__name__)


class MedicationEngine:
    """Orchestrates administration safety checks and medication reconciliation."""

    def __init__(
        self,
        config: AppSettings,
        risk_lookup: AbstractDrugRiskLookup,
        publisher: AbstractEventPublisher,
    ):
        self.config = config
        self.risk_lookup = risk_lookup
        self.publisher = publisher

    @classmethod
    def from_settings(cls, config: AppSettings) -> "MedicationEngine":
        """Builds an engine with the static risk lookup and a logging publisher."""
        return cls(
            config=config,
            risk_lookup=StaticDrugRiskLookup.from_settings(config.risk),
            publisher=LoggingEventPublisher(),
        )

    def next_administration(
        self,
        prescription: Prescription,
        last_attempt: Optional[AdministrationAttempt] = None,
        now: Optional[datetime] = None,
    ) -> NextAdministration:
        return compute_next_administration(prescription, last_attempt, now)

    def check_administration(
        self,
        prescription: Prescription,
        medication: Medication,
        proposed_attempt: AdministrationAttempt,
        prior_attempt: Optional[AdministrationAttempt] = None,
        todays_dose_total: float = 0.0,
    ) -> SafetyDecision:
        """Evaluates the safety gate and audits the decision."""
        decision = evaluate_safety(
            prescription, medication, proposed_attempt, prior_attempt, todays_dose_total
        )
        self.publisher.record_audit(
            "safety_evaluated",
            prescription.id,
            {
                "attempt_id": proposed_attempt.id,
                "allowed": decision.allowed,
                "reason": decision.reason.value if decision.reason else None,
            },
        )
        return decision

    def record_administration(
        self,
        attempt: AdministrationAttempt,
        prescription: Prescription,
        medication: Medication,
        prior_attempt: Optional[AdministrationAttempt] = None,
        todays_dose_total: float = 0.0,
    ) -> AdministrationScore:
        """
        Gates, scores and audits a recorded administration.

        After a safety denial only refused, omitted and withheld outcomes are
        recorded.

        :raises AdministrationBlocked: if any other outcome is recorded against a denial.
        """
        decision = self.check_administration(
            prescription, medication, attempt, prior_attempt, todays_dose_total
        )
        if not may_record(decision, attempt.status):
            reason = cast(DenyReason, decision.reason)
            logger.error(
                f"Refusing to record {attempt.status.value} attempt {attempt.id} for prescription "
                f"{prescription.id}: {reason.value}"
            )
            raise AdministrationBlocked(reason, decision.message)

        return self.score_administration(attempt, prescription, medication)

    def score_administration(
        self,
        attempt: AdministrationAttempt,
        prescription: Prescription,
        medication: Medication,
    ) -> AdministrationScore:
        """Scores an already-recorded administration without re-running the safety gate."""
        score = score_administration(attempt, prescription, medication, self.config.scheduling)
        self.publisher.record_audit(
            "administration_recorded",
            attempt.id,
            {
                "prescription_id": prescription.id,
                "status": attempt.status.value,
                "compliance_score": score.compliance_score,
                "accuracy_score": score.accuracy_score,
            },
        )
        if score.requires_immediate_clinical_review:
            logger.warning(f"Administration {attempt.id} requires immediate clinical review.")
            self.publisher.notify(
                "clinical_review_required",
                attempt.id,
                {
                    "prescription_id": prescription.id,
                    "resident_id": prescription.resident_id,
                    "violations": score.compliance_violations,
                },
            )
        return score

    def reconcile(
        self,
        source: MedicationSource,
        target: MedicationSource,
        transition_type: TransitionType,
        resident_id: str,
        performed_by: str,
        now: Optional[datetime] = None,
        clinical_notes: str = "",
    ) -> ReconciliationCase:
        """Runs a reconciliation, audits it and raises critical-discrepancy alerts."""
        try:
            case = reconcile(
                source,
                target,
                transition_type,
                self.risk_lookup,
                resident_id=resident_id,
                performed_by=performed_by,
                now=now,
                clinical_notes=clinical_notes,
            )
        except Exception as e:
            logger.error(f"Reconciliation failed for resident {resident_id}: {e}", exc_info=True)
            raise

        self.publisher.record_audit(
            "reconciliation_started",
            case.id,
            {
                "resident_id": resident_id,
                "transition_type": transition_type.value,
                "discrepancies": len(case.discrepancies),
                "status": case.status.value,
            },
        )
        for discrepancy in case.discrepancies:
            if discrepancy.severity == Severity.CRITICAL:
                self.publisher.notify(
                    "critical_discrepancy",
                    discrepancy.id,
                    {
                        "reconciliation_id": case.id,
                        "resident_id": resident_id,
                        "medication_name": discrepancy.medication_name,
                        "discrepancy_type": discrepancy.discrepancy_type.value,
                    },
                )
        if pharmacist_review_required(case):
            self.publisher.notify(
                "pharmacist_review_requested",
                case.id,
                {"resident_id": resident_id, "status": case.status.value},
            )
        return case

    def transition_discrepancy(
        self,
        case: ReconciliationCase,
        discrepancy_id: str,
        action: Union[WorkflowAction, str],
        actor: str,
        rationale: Optional[str] = None,
        resolution_type: Optional[ResolutionType] = None,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ReconciliationCase:
        """Applies a workflow action to one discrepancy and audits the transition."""
        before = case.get_discrepancy(discrepancy_id)
        updated_case = transition_case_discrepancy(
            case,
            discrepancy_id,
            action,
            actor,
            rationale=rationale,
            resolution_type=resolution_type,
            expected_version=expected_version,
            now=now,
        )
        after = updated_case.get_discrepancy(discrepancy_id)
        self.publisher.record_audit(
            "discrepancy_transitioned",
            discrepancy_id,
            {
                "reconciliation_id": case.id,
                "from": before.status.value,
                "to": after.status.value,
                "actor": actor,
            },
        )
        if updated_case.status != case.status:
            self.publisher.record_audit(
                "reconciliation_status_changed",
                case.id,
                {"from": case.status.value, "to": updated_case.status.value},
            )
        return updated_case

    def attach_pharmacist_review(
        self,
        case: ReconciliationCase,
        review: PharmacistReview,
        now: Optional[datetime] = None,
    ) -> ReconciliationCase:
        """Attaches a pharmacist review, audits it and notifies the clinical team."""
        updated_case = attach_pharmacist_review(case, review, now)
        self.publisher.record_audit(
            "pharmacist_review_attached",
            case.id,
            {
                "pharmacist_id": review.pharmacist_id,
                "approval_status": review.approval_status.value,
                "overall_risk": review.risk_assessment.overall_risk.value,
                "status": updated_case.status.value,
            },
        )
        if updated_case.status == CaseStatus.APPROVED:
            self.publisher.notify("reconciliation_approved", case.id, {})
        elif not review.is_approved:
            self.publisher.notify(
                "reconciliation_review_feedback",
                case.id,
                {
                    "approval_status": review.approval_status.value,
                    "recommendations": review.recommendations,
                },
            )
        return updated_case
