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
This module defines the Pydantic models for prescriptions, administrations
and medication reconciliation.

All models are frozen snapshots. Functions in this package never mutate a
model in place; they return an updated copy via ``model_copy``.
"""
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .types import (
    AdministrationStatus,
    ApprovalStatus,
    CaseStatus,
    DenyReason,
    DiscrepancyStatus,
    DiscrepancyType,
    FrequencyPattern,
    PrescriptionStatus,
    PrescriptionType,
    RefusalReason,
    Reliability,
    ResolutionType,
    ReviewFrequency,
    ReviewType,
    Severity,
    SideEffectSeverity,
    SourceType,
    TERMINAL_DISCREPANCY_STATUSES,
    TransitionType,
)


class Snapshot(BaseModel):
    """Base class for immutable value snapshots."""

    model_config = ConfigDict(frozen=True)


# --- Prescribing ---


class Medication(Snapshot):
    """A medication product as held in the formulary."""

    id: str
    name: str
    generic_name: Optional[str] = None
    active_ingredient: str
    strength: str
    form: Optional[str] = None
    therapeutic_class: Optional[str] = None
    is_active: bool = True
    is_controlled_substance: bool = Field(
        False, description="Controlled-drug class; administration requires a witness."
    )


class Dosage(Snapshot):
    """The prescribed single dose and how often it is given."""

    amount: float
    unit: str
    frequency: FrequencyPattern
    custom_frequency: Optional[str] = None
    timing_instructions: List[str] = Field(default_factory=list)


class ReviewSchedule(Snapshot):
    frequency: ReviewFrequency
    last_review_date: Optional[date] = None
    next_review_date: date
    review_reason: Optional[str] = None


class Prescription(Snapshot):
    """A prescriber's order for one medication for one resident."""

    id: str
    resident_id: str
    medication_id: str
    prescription_type: PrescriptionType = PrescriptionType.REGULAR
    dosage: Dosage
    route: str = "oral"
    indication: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    status: PrescriptionStatus = PrescriptionStatus.ACTIVE
    max_dose_per_day: Optional[float] = Field(
        None, description="Daily dose ceiling, in the dosage unit."
    )
    minimum_interval_hours: Optional[float] = Field(
        None, description="Minimum hours between doses, typically for PRN orders."
    )
    review_schedule: Optional[ReviewSchedule] = None
    prescriber_id: Optional[str] = None
    discontinuation_reason: Optional[str] = None
    discontinued_by: Optional[str] = None
    discontinuation_date: Optional[date] = None

    @property
    def is_prn(self) -> bool:
        return (
            self.prescription_type == PrescriptionType.PRN
            or self.dosage.frequency == FrequencyPattern.AS_REQUIRED
        )


# --- Administration ---


class WitnessInfo(Snapshot):
    witness_id: str
    witness_name: str
    signature: Optional[str] = None


class SideEffect(Snapshot):
    description: str
    severity: SideEffectSeverity = SideEffectSeverity.MILD
    documented: bool = True


class VitalSigns(Snapshot):
    blood_pressure: Optional[str] = None
    heart_rate: Optional[int] = None
    respiratory_rate: Optional[int] = None
    temperature: Optional[float] = None
    oxygen_saturation: Optional[float] = None


class AdministeredDose(Snapshot):
    amount: float
    unit: str


class AdministrationAttempt(Snapshot):
    """A single timestamped administration event against a prescription."""

    id: str
    prescription_id: str
    scheduled_time: datetime
    administration_time: datetime
    status: AdministrationStatus
    dosage_given: Optional[AdministeredDose] = None
    administered_by: str
    electronic_signature: Optional[str] = None
    witness: Optional[WitnessInfo] = None
    reason: Optional[RefusalReason] = Field(
        None, description="Why the dose was refused, omitted or withheld."
    )
    side_effects: List[SideEffect] = Field(default_factory=list)
    vitals_before: Optional[VitalSigns] = None
    vitals_after: Optional[VitalSigns] = None
    double_checked: bool = False
    barcode_scanned: bool = False
    patient_identified: bool = False
    clinical_notes: List[str] = Field(default_factory=list)
    idempotency_key: Optional[str] = Field(
        None, description="Client-supplied key; deduplication is the caller's job."
    )

    @property
    def timing_variance_minutes(self) -> int:
        """Whole minutes between scheduled and actual time, negative when early."""
        delta = self.administration_time - self.scheduled_time
        return int(delta.total_seconds() / 60)

    @property
    def side_effects_observed(self) -> bool:
        return len(self.side_effects) > 0

    @property
    def side_effects_documented(self) -> bool:
        return all(effect.documented for effect in self.side_effects)

    @property
    def has_clinical_notes(self) -> bool:
        return any(note.strip() for note in self.clinical_notes)

    def add_clinical_note(self, note: str) -> "AdministrationAttempt":
        """Returns a copy with the note appended. Notes are append-only."""
        if not note or not note.strip():
            raise ValueError("Clinical note cannot be empty")
        return self.model_copy(update={"clinical_notes": [*self.clinical_notes, note.strip()]})


# --- Reconciliation ---


class ReconciliationMedication(Snapshot):
    """One line of a captured medication list."""

    name: str
    generic_name: Optional[str] = None
    active_ingredient: str
    strength: str
    dosage: str
    frequency: str
    route: str
    formulation: Optional[str] = None
    timing: Optional[str] = None
    indication: Optional[str] = None
    prescriber: Optional[str] = None
    is_active: bool = True


class MedicationSource(Snapshot):
    """A snapshot of a resident's medication list from a named origin."""

    source_type: SourceType
    source_date: datetime
    medications: List[ReconciliationMedication] = Field(default_factory=list)
    reliability: Reliability = Reliability.UNVERIFIED
    verified_by: Optional[str] = None
    verification_date: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def active_medications(self) -> List[ReconciliationMedication]:
        return [med for med in self.medications if med.is_active]


class DiscrepancyResolution(Snapshot):
    resolution_type: ResolutionType
    resolution_action: str = ""
    rationale: str
    resolved_by: str
    resolved_at: datetime
    approved_by: Optional[str] = None
    approval_date: Optional[datetime] = None
    follow_up_date: Optional[date] = None

    @property
    def follow_up_required(self) -> bool:
        return self.follow_up_date is not None


class MedicationDiscrepancy(Snapshot):
    """A single divergence between the source and target lists."""

    id: str
    discrepancy_type: DiscrepancyType
    severity: Severity
    medication_name: str
    match_key: str
    source_value: Optional[str] = None
    target_value: Optional[str] = None
    description: str
    clinical_significance: str = ""
    requires_action: bool
    high_risk: bool = False
    identified_by: str
    identified_at: datetime
    status: DiscrepancyStatus = DiscrepancyStatus.IDENTIFIED
    opened_by: Optional[str] = None
    resolution: Optional[DiscrepancyResolution] = None
    version: int = Field(0, description="Incremented on every transition.")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_DISCREPANCY_STATUSES


class RiskAssessment(Snapshot):
    overall_risk: Severity
    specific_risks: List[str] = Field(default_factory=list)
    mitigation_strategies: List[str] = Field(default_factory=list)


class PharmacistReview(Snapshot):
    """A pharmacist's gating review of a reconciliation case."""

    pharmacist_id: str
    pharmacist_name: str
    review_date: datetime
    review_type: ReviewType = ReviewType.INITIAL
    recommendations: List[str] = Field(default_factory=list)
    clinical_assessment: str = ""
    risk_assessment: RiskAssessment
    approval_status: ApprovalStatus
    notes: str = ""

    @property
    def is_approved(self) -> bool:
        return self.approval_status == ApprovalStatus.APPROVED


class ReconciliationCase(Snapshot):
    """Pairs a source and target list for one resident and one transition."""

    id: str
    resident_id: str
    transition_type: TransitionType
    performed_by: str
    source: MedicationSource
    target: MedicationSource
    discrepancies: List[MedicationDiscrepancy] = Field(default_factory=list)
    pharmacist_reviews: List[PharmacistReview] = Field(default_factory=list)
    status: CaseStatus = CaseStatus.IN_PROGRESS
    created_at: datetime
    updated_at: datetime
    clinical_notes: str = ""

    @property
    def resolutions(self) -> List[DiscrepancyResolution]:
        return [d.resolution for d in self.discrepancies if d.resolution is not None]

    @property
    def has_approved_review(self) -> bool:
        return any(review.is_approved for review in self.pharmacist_reviews)

    def get_discrepancy(self, discrepancy_id: str) -> MedicationDiscrepancy:
        for discrepancy in self.discrepancies:
            if discrepancy.id == discrepancy_id:
                return discrepancy
        raise KeyError(f"Discrepancy {discrepancy_id} not found in case {self.id}")


# --- Results ---


class NextAdministration(Snapshot):
    next_time: Optional[datetime] = Field(
        None, description="None for PRN and custom patterns, which have no fixed schedule."
    )
    daily_dose_total: float
    unit: str
    is_prn: bool = False
    baseline: datetime


class SafetyDecision(Snapshot):
    """Allow, or deny with a named reason. Returned as data, never raised."""

    allowed: bool
    reason: Optional[DenyReason] = None
    message: str = ""

    @classmethod
    def allow(cls) -> "SafetyDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason, message: str = "") -> "SafetyDecision":
        return cls(allowed=False, reason=reason, message=message)


class AdministrationScore(Snapshot):
    compliance_score: int
    accuracy_score: int
    requires_immediate_clinical_review: bool
    timing_variance_minutes: int
    failed_rules: List[str] = Field(default_factory=list)
    compliance_violations: List[str] = Field(default_factory=list)

    @property
    def requires_review(self) -> bool:
        return self.requires_immediate_clinical_review


class ReconciliationSummary(Snapshot):
    reconciliation_id: str
    resident_id: str
    transition_type: TransitionType
    status: CaseStatus
    source_medications: int
    target_medications: int
    final_medications: int
    discrepancies_found: int
    discrepancies_resolved: int
    critical_issues: int
    pharmacist_review_required: bool
    completion_minutes: Optional[int] = None
    performed_by: str
    reviewed_by: Optional[str] = None


class CompletionPercentiles(Snapshot):
    median: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


class ReconciliationMetrics(Snapshot):
    total_reconciliations: int
    average_discrepancies: float
    average_completion_minutes: float
    discrepancy_types: Dict[str, int] = Field(default_factory=dict)
    resolution_types: Dict[str, int] = Field(default_factory=dict)
    pharmacist_review_rate: float
    critical_issue_rate: float
    time_to_completion: CompletionPercentiles = Field(default_factory=CompletionPercentiles)

