# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
# tests/conftest.py
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List

import pytest

from py_medrec.models import (
    AdministeredDose,
    AdministrationAttempt,
    Dosage,
    Medication,
    MedicationSource,
    PharmacistReview,
    Prescription,
    ReconciliationMedication,
    RiskAssessment,
)
from py_medrec.risk import StaticDrugRiskLookup
from py_medrec.types import (
    AdministrationStatus,
    ApprovalStatus,
    FrequencyPattern,
    Reliability,
    Severity,
    SourceType,
)

NOW = datetime(2024, 3, 14, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def medication() -> Medication:
    return Medication(
        id="med-paracetamol",
        name="Paracetamol 500mg tablets",
        active_ingredient="Paracetamol",
        strength="500mg",
        form="tablet",
    )


@pytest.fixture
def controlled_medication() -> Medication:
    return Medication(
        id="med-morphine",
        name="Oramorph",
        active_ingredient="Morphine sulfate",
        strength="10mg/5ml",
        is_controlled_substance=True,
    )


@pytest.fixture
def make_prescription() -> Callable[..., Prescription]:
    """Builds a valid prescription; keyword arguments override fields."""

    def _make(**overrides: Any) -> Prescription:
        dosage_fields: Dict[str, Any] = {
            "amount": 500,
            "unit": "mg",
            "frequency": FrequencyPattern.FOUR_TIMES_DAILY,
        }
        dosage_fields.update(overrides.pop("dosage", {}))
        fields: Dict[str, Any] = {
            "id": "rx-1",
            "resident_id": "resident-1",
            "medication_id": "med-paracetamol",
            "dosage": Dosage(**dosage_fields),
            "start_date": date(2024, 1, 1),
        }
        fields.update(overrides)
        return Prescription(**fields)

    return _make


@pytest.fixture
def prescription(make_prescription: Callable[..., Prescription]) -> Prescription:
    return make_prescription()


@pytest.fixture
def make_attempt() -> Callable[..., AdministrationAttempt]:
    """Builds a fully documented, on-time 'given' attempt; keyword arguments override fields."""

    def _make(**overrides: Any) -> AdministrationAttempt:
        fields: Dict[str, Any] = {
            "id": "attempt-1",
            "prescription_id": "rx-1",
            "scheduled_time": NOW,
            "administration_time": NOW,
            "status": AdministrationStatus.GIVEN,
            "dosage_given": AdministeredDose(amount=500, unit="mg"),
            "administered_by": "nurse-1",
            "electronic_signature": "sig-nurse-1",
            "double_checked": True,
            "barcode_scanned": True,
            "patient_identified": True,
        }
        fields.update(overrides)
        return AdministrationAttempt(**fields)

    return _make


@pytest.fixture
def make_med() -> Callable[..., ReconciliationMedication]:
    def _make(name: str, ingredient: str, strength: str, **overrides: Any) -> ReconciliationMedication:
        fields: Dict[str, Any] = {
            "name": name,
            "active_ingredient": ingredient,
            "strength": strength,
            "dosage": strength,
            "frequency": "once daily",
            "route": "oral",
        }
        fields.update(overrides)
        return ReconciliationMedication(**fields)

    return _make


@pytest.fixture
def make_source() -> Callable[..., MedicationSource]:
    def _make(
        medications: List[ReconciliationMedication],
        source_type: SourceType = SourceType.HOME_MEDICATIONS,
        source_date: datetime = NOW,
    ) -> MedicationSource:
        return MedicationSource(
            source_type=source_type,
            source_date=source_date,
            medications=medications,
            reliability=Reliability.HIGH,
        )

    return _make


@pytest.fixture
def risk_lookup() -> StaticDrugRiskLookup:
    return StaticDrugRiskLookup(
        high_risk_ingredients=["warfarin", "insulin", "morphine"],
        major_interaction_ingredients=["clarithromycin"],
    )


@pytest.fixture
def make_review() -> Callable[..., PharmacistReview]:
    def _make(approval_status: ApprovalStatus = ApprovalStatus.APPROVED, **overrides: Any) -> PharmacistReview:
        fields: Dict[str, Any] = {
            "pharmacist_id": "pharm-1",
            "pharmacist_name": "A. Pharmacist",
            "review_date": NOW,
            "risk_assessment": RiskAssessment(overall_risk=Severity.HIGH),
            "approval_status": approval_status,
        }
        fields.update(overrides)
        return PharmacistReview(**fields)

    return _make
