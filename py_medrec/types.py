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
This module defines common types and enums used across the application.
"""
from enum import Enum


class FrequencyPattern(str, Enum):
    """Enumeration for the dosing frequency patterns a prescription can carry."""

    ONCE_DAILY = "once_daily"
    TWICE_DAILY = "twice_daily"
    THREE_TIMES_DAILY = "three_times_daily"
    FOUR_TIMES_DAILY = "four_times_daily"
    EVERY_4_HOURS = "every_4_hours"
    EVERY_6_HOURS = "every_6_hours"
    EVERY_8_HOURS = "every_8_hours"
    EVERY_12_HOURS = "every_12_hours"
    AS_REQUIRED = "as_required"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class PrescriptionType(str, Enum):
    """Enumeration for the kinds of prescription order."""

    REGULAR = "regular"
    PRN = "prn"
    STAT = "stat"
    VARIABLE = "variable"


class PrescriptionStatus(str, Enum):
    """Enumeration for the prescription lifecycle states."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    DISCONTINUED = "discontinued"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class ReviewFrequency(str, Enum):
    """Enumeration for how often a prescription is clinically reviewed."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"
    CUSTOM = "custom"


class AdministrationStatus(str, Enum):
    """Enumeration for the recorded outcome of an administration attempt."""

    GIVEN = "given"
    REFUSED = "refused"
    OMITTED = "omitted"
    DELAYED = "delayed"
    WITHHELD = "withheld"
    NOT_AVAILABLE = "not_available"


class RefusalReason(str, Enum):
    """Enumeration for why a dose was refused or withheld."""

    PATIENT_REFUSED = "patient_refused"
    ALLERGIC_REACTION = "allergic_reaction"
    NAUSEA_VOMITING = "nausea_vomiting"
    ASLEEP = "asleep"
    NIL_BY_MOUTH = "nil_by_mouth"
    CLINICAL_DECISION = "clinical_decision"
    OTHER = "other"


class SideEffectSeverity(str, Enum):
    """Enumeration for the severity of an observed side effect."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    LIFE_THREATENING = "life_threatening"


class DenyReason(str, Enum):
    """Enumeration for the reason codes a safety check can deny with."""

    PRESCRIPTION_INVALID = "PRESCRIPTION_INVALID"
    MEDICATION_INACTIVE = "MEDICATION_INACTIVE"
    INTERVAL_TOO_SHORT = "INTERVAL_TOO_SHORT"
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"


class TransitionType(str, Enum):
    """Enumeration for the care transitions that trigger a reconciliation."""

    ADMISSION = "admission"
    DISCHARGE = "discharge"
    TRANSFER = "transfer"
    PERIODIC_REVIEW = "periodic_review"


class SourceType(str, Enum):
    """Enumeration for the origins a medication list can be captured from."""

    HOME_MEDICATIONS = "home_medications"
    HOSPITAL_MEDICATIONS = "hospital_medications"
    GP_LIST = "gp_list"
    PHARMACY_RECORDS = "pharmacy_records"
    CARE_HOME_MAR = "care_home_mar"


class Reliability(str, Enum):
    """Enumeration for how trustworthy a captured medication list is."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNVERIFIED = "unverified"


class DiscrepancyType(str, Enum):
    """Enumeration for the kinds of divergence between two medication lists."""

    OMISSION = "omission"
    ADDITION = "addition"
    DOSE_CHANGE = "dose_change"
    FREQUENCY_CHANGE = "frequency_change"
    ROUTE_CHANGE = "route_change"
    FORMULATION_CHANGE = "formulation_change"
    TIMING_CHANGE = "timing_change"
    INDICATION_CHANGE = "indication_change"


class Severity(str, Enum):
    """Enumeration for discrepancy and risk severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DiscrepancyStatus(str, Enum):
    """Enumeration for the discrepancy resolution states."""

    IDENTIFIED = "identified"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    ACCEPTED_RISK = "accepted_risk"


class WorkflowAction(str, Enum):
    """Enumeration for the actions a clinician can apply to a discrepancy."""

    OPEN = "open"
    RESOLVE = "resolve"
    ACCEPT_RISK = "accept_risk"


class ResolutionType(str, Enum):
    """Enumeration for how a discrepancy was resolved."""

    MEDICATION_ADDED = "medication_added"
    MEDICATION_REMOVED = "medication_removed"
    DOSE_ADJUSTED = "dose_adjusted"
    FREQUENCY_CHANGED = "frequency_changed"
    ROUTE_CHANGED = "route_changed"
    NO_ACTION_REQUIRED = "no_action_required"
    CLINICAL_REVIEW_REQUESTED = "clinical_review_requested"


class CaseStatus(str, Enum):
    """Enumeration for the overall status of a reconciliation case."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REQUIRES_REVIEW = "requires_review"
    APPROVED = "approved"


class ReviewType(str, Enum):
    """Enumeration for the kinds of pharmacist review."""

    INITIAL = "initial"
    FOLLOW_UP = "follow_up"
    FINAL_APPROVAL = "final_approval"


class ApprovalStatus(str, Enum):
    """Enumeration for a pharmacist's decision on a reconciliation."""

    APPROVED = "approved"
    REQUIRES_CHANGES = "requires_changes"
    REJECTED = "rejected"


class ExportFormat(str, Enum):
    """Enumeration for the file formats discrepancies can be exported to."""

    CSV = "csv"
    PARQUET = "parquet"


TERMINAL_PRESCRIPTION_STATUSES = frozenset(
    {
        PrescriptionStatus.DISCONTINUED,
        PrescriptionStatus.EXPIRED,
        PrescriptionStatus.CANCELLED,
    }
)

TERMINAL_DISCREPANCY_STATUSES = frozenset(
    {DiscrepancyStatus.RESOLVED, DiscrepancyStatus.ACCEPTED_RISK}
)
