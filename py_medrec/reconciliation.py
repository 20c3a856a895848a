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
This module compares two medication lists across a care transition and
produces a classified set of discrepancies.

Medications are matched on active ingredient plus strength, never on brand
name. Output is deterministic: the same two snapshots always yield the same
discrepancies, in the same order, with the same ids.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .models import (
    MedicationDiscrepancy,
    MedicationSource,
    ReconciliationCase,
    ReconciliationMedication,
    ReconciliationSummary,
)
from .risk import AbstractDrugRiskLookup, normalize_ingredient
from .types import (
    CaseStatus,
    DiscrepancyStatus,
    DiscrepancyType,
    ResolutionType,
    Severity,
    TransitionType,
)
from .workflow import derive_case_status

logger = logging.getLogger(__name__)

RECONCILIATION_NAMESPACE = uuid.UUID("6f1c2b6e-3f0a-4e7b-9a51-3c9d3f2a8e10")

CRITICAL_WHEN_HIGH_RISK = frozenset(
    {DiscrepancyType.OMISSION, DiscrepancyType.ADDITION, DiscrepancyType.DOSE_CHANGE}
)
MEDIUM_WHEN_STANDARD = frozenset(
    {
        DiscrepancyType.DOSE_CHANGE,
        DiscrepancyType.FREQUENCY_CHANGE,
        DiscrepancyType.ROUTE_CHANGE,
    }
)
PRESENCE_TYPES = frozenset({DiscrepancyType.OMISSION, DiscrepancyType.ADDITION})

# (field, discrepancy type, required). Optional fields only count as changed
# when both sides record a value.
COMPARED_FIELDS: Tuple[Tuple[str, DiscrepancyType, bool], ...] = (
    ("dosage", DiscrepancyType.DOSE_CHANGE, True),
    ("frequency", DiscrepancyType.FREQUENCY_CHANGE, True),
    ("route", DiscrepancyType.ROUTE_CHANGE, True),
    ("formulation", DiscrepancyType.FORMULATION_CHANGE, False),
    ("timing", DiscrepancyType.TIMING_CHANGE, False),
    ("indication", DiscrepancyType.INDICATION_CHANGE, False),
)

CLINICAL_SIGNIFICANCE: Dict[DiscrepancyType, str] = {
    DiscrepancyType.OMISSION: (
        "Omission of {name} may lead to therapeutic failure or disease progression. "
        "Review indication and necessity."
    ),
    DiscrepancyType.ADDITION: (
        "Addition of {name} not documented in source list. "
        "Verify indication and appropriateness."
    ),
    DiscrepancyType.DOSE_CHANGE: (
        "Dose change for {name} may affect therapeutic efficacy or increase risk of "
        "adverse effects."
    ),
    DiscrepancyType.FREQUENCY_CHANGE: (
        "Frequency change for {name} may affect steady-state levels and therapeutic outcomes."
    ),
    DiscrepancyType.ROUTE_CHANGE: (
        "Route change for {name} may significantly alter bioavailability and therapeutic effect."
    ),
}
DEFAULT_SIGNIFICANCE = (
    "Change in {name} requires clinical review to ensure continued safety and efficacy."
)


def match_key(medication: ReconciliationMedication) -> str:
    """Active ingredient plus strength, normalised."""
    return (
        f"{normalize_ingredient(medication.active_ingredient)}"
        f"|{normalize_ingredient(medication.strength)}"
    )


def classify_severity(discrepancy_type: DiscrepancyType, high_risk: bool) -> Severity:
    if high_risk:
        if discrepancy_type in CRITICAL_WHEN_HIGH_RISK:
            return Severity.CRITICAL
        return Severity.HIGH
    if discrepancy_type in PRESENCE_TYPES:
        return Severity.HIGH
    if discrepancy_type in MEDIUM_WHEN_STANDARD:
        return Severity.MEDIUM
    return Severity.LOW


def requires_action(severity: Severity, has_major_interaction: bool) -> bool:
    if severity in (Severity.CRITICAL, Severity.HIGH):
        return True
    return severity == Severity.MEDIUM and has_major_interaction


def clinical_significance(discrepancy_type: DiscrepancyType, name: str) -> str:
    template = CLINICAL_SIGNIFICANCE.get(discrepancy_type, DEFAULT_SIGNIFICANCE)
    return template.format(name=name)


def case_id_for(
    resident_id: str,
    transition_type: TransitionType,
    source: MedicationSource,
    target: MedicationSource,
) -> str:
    seed = (
        f"{resident_id}:{transition_type.value}:"
        f"{source.source_type.value}@{source.source_date.isoformat()}:"
        f"{target.source_type.value}@{target.source_date.isoformat()}"
    )
    return str(uuid.uuid5(RECONCILIATION_NAMESPACE, seed))


def _index_medications(source: MedicationSource, label: str) -> Dict[str, ReconciliationMedication]:
    """Maps match key -> medication for active lines, keeping the first of any duplicates."""
    indexed: Dict[str, ReconciliationMedication] = {}
    for med in source.active_medications:
        key = match_key(med)
        if key in indexed:
            logger.warning(f"Duplicate {label} entry for '{key}' ignored: {med.name}")
            continue
        indexed[key] = med
    return indexed


def _display(med: ReconciliationMedication) -> str:
    return f"{med.dosage} {med.frequency}"


def _normalized(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return normalize_ingredient(value)


def identify_discrepancies(
    source: MedicationSource,
    target: MedicationSource,
    risk_lookup: AbstractDrugRiskLookup,
    case_id: str,
    identified_by: str,
    identified_at: datetime,
) -> List[MedicationDiscrepancy]:
    """
    Compares the active lines of two lists. Order: omissions (source order),
    additions (target order), then field changes (source order, field order).
    """
    source_map = _index_medications(source, "source")
    target_map = _index_medications(target, "target")
    discrepancies: List[MedicationDiscrepancy] = []

    def build(
        discrepancy_type: DiscrepancyType,
        key: str,
        reference: ReconciliationMedication,
        counterpart: Optional[ReconciliationMedication],
        source_value: Optional[str],
        target_value: Optional[str],
        description: str,
    ) -> MedicationDiscrepancy:
        high_risk = risk_lookup.is_high_risk(reference) or (
            counterpart is not None and risk_lookup.is_high_risk(counterpart)
        )
        interaction = risk_lookup.has_major_interaction(reference) or (
            counterpart is not None and risk_lookup.has_major_interaction(counterpart)
        )
        severity = classify_severity(discrepancy_type, high_risk)
        return MedicationDiscrepancy(
            id=str(uuid.uuid5(RECONCILIATION_NAMESPACE, f"{case_id}:{key}:{discrepancy_type.value}")),
            discrepancy_type=discrepancy_type,
            severity=severity,
            medication_name=reference.name,
            match_key=key,
            source_value=source_value,
            target_value=target_value,
            description=description,
            clinical_significance=clinical_significance(discrepancy_type, reference.name),
            requires_action=requires_action(severity, interaction),
            high_risk=high_risk,
            identified_by=identified_by,
            identified_at=identified_at,
            status=DiscrepancyStatus.IDENTIFIED,
        )

    for key, med in source_map.items():
        if key not in target_map:
            discrepancies.append(
                build(
                    DiscrepancyType.OMISSION,
                    key,
                    med,
                    None,
                    _display(med),
                    "Not prescribed",
                    f"{med.name} is in source list but not in target list",
                )
            )

    for key, med in target_map.items():
        if key not in source_map:
            discrepancies.append(
                build(
                    DiscrepancyType.ADDITION,
                    key,
                    med,
                    None,
                    "Not in source list",
                    _display(med),
                    f"{med.name} is in target list but not in source list",
                )
            )

    for key, source_med in source_map.items():
        target_med = target_map.get(key)
        if target_med is None:
            continue
        for field_name, discrepancy_type, required in COMPARED_FIELDS:
            source_value = getattr(source_med, field_name)
            target_value = getattr(target_med, field_name)
            left, right = _normalized(source_value), _normalized(target_value)
            if not required and (left is None or right is None):
                continue
            if left == right:
                continue
            label = field_name.replace("_", " ")
            discrepancies.append(
                build(
                    discrepancy_type,
                    key,
                    source_med,
                    target_med,
                    source_value,
                    target_value,
                    f"{label.capitalize()} change for {source_med.name}: "
                    f"{source_value} -> {target_value}",
                )
            )

    return discrepancies


def reconcile(
    source: MedicationSource,
    target: MedicationSource,
    transition_type: TransitionType,
    risk_lookup: AbstractDrugRiskLookup,
    resident_id: str,
    performed_by: str,
    case_id: Optional[str] = None,
    now: Optional[datetime] = None,
    clinical_notes: str = "",
) -> ReconciliationCase:
    """
    Compares the source and target lists and opens a reconciliation case.

    :param source: The list the resident arrives with (or the previous chart).
    :param target: The list being reconciled against it.
    :param transition_type: The care transition that triggered reconciliation.
    :param risk_lookup: Supplies the high-risk and major-interaction predicates.
    :param resident_id: The resident both lists belong to.
    :param performed_by: Who started the reconciliation.
    :param case_id: Optional explicit case id; derived from the inputs otherwise.
    :param now: Timestamp for the case and its discrepancies; defaults to UTC now.
    :return: A ReconciliationCase carrying the discrepancies and derived status.
    """
    now = now or datetime.now(timezone.utc)
    case_id = case_id or case_id_for(resident_id, transition_type, source, target)
    logger.info(
        f"Starting {transition_type.value} reconciliation {case_id} for resident {resident_id}: "
        f"{len(source.active_medications)} source vs {len(target.active_medications)} target"
    )

    discrepancies = identify_discrepancies(source, target, risk_lookup, case_id, performed_by, now)

    case = ReconciliationCase(
        id=case_id,
        resident_id=resident_id,
        transition_type=transition_type,
        performed_by=performed_by,
        source=source,
        target=target,
        discrepancies=discrepancies,
        status=CaseStatus.IN_PROGRESS,
        created_at=now,
        updated_at=now,
        clinical_notes=clinical_notes,
    )
    case = case.model_copy(update={"status": derive_case_status(case)})

    critical = [d for d in discrepancies if d.severity == Severity.CRITICAL]
    if critical:
        logger.warning(
            f"Reconciliation {case_id} found {len(critical)} critical discrepancies: "
            f"{[d.medication_name for d in critical]}"
        )
    logger.info(
        f"Reconciliation {case_id} identified {len(discrepancies)} discrepancies; "
        f"status {case.status.value}"
    )
    return case


def pharmacist_review_required(case: ReconciliationCase) -> bool:
    return any(
        d.severity in (Severity.CRITICAL, Severity.HIGH)
        or (d.severity == Severity.MEDIUM and d.discrepancy_type == DiscrepancyType.OMISSION)
        for d in case.discrepancies
    )


def summarize_case(case: ReconciliationCase) -> ReconciliationSummary:
    """
    Summarises a case. The final medication count starts from the target list,
    adds omissions resolved by adding the medication and drops additions
    resolved by removing it.
    """
    final = len({match_key(med) for med in case.target.active_medications})
    for d in case.discrepancies:
        if d.status != DiscrepancyStatus.RESOLVED or d.resolution is None:
            continue
        resolution_type = d.resolution.resolution_type
        if (
            d.discrepancy_type == DiscrepancyType.OMISSION
            and resolution_type == ResolutionType.MEDICATION_ADDED
        ):
            final += 1
        elif (
            d.discrepancy_type == DiscrepancyType.ADDITION
            and resolution_type == ResolutionType.MEDICATION_REMOVED
        ):
            final -= 1

    completion_minutes: Optional[int] = None
    if case.status in (CaseStatus.COMPLETED, CaseStatus.APPROVED):
        completion_minutes = round((case.updated_at - case.created_at).total_seconds() / 60)

    reviewed_by = case.pharmacist_reviews[-1].pharmacist_id if case.pharmacist_reviews else None

    return ReconciliationSummary(
        reconciliation_id=case.id,
        resident_id=case.resident_id,
        transition_type=case.transition_type,
        status=case.status,
        source_medications=len(case.source.active_medications),
        target_medications=len(case.target.active_medications),
        final_medications=final,
        discrepancies_found=len(case.discrepancies),
        discrepancies_resolved=sum(1 for d in case.discrepancies if d.is_terminal),
        critical_issues=sum(1 for d in case.discrepancies if d.severity == Severity.CRITICAL),
        pharmacist_review_required=pharmacist_review_required(case),
        completion_minutes=completion_minutes,
        performed_by=case.performed_by,
        reviewed_by=reviewed_by,
    )
