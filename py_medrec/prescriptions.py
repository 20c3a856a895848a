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
This module provides prescription lifecycle helpers: validity for
administration, request validation, discontinuation and review scheduling.
"""
import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional

from .dosing import add_months, dosage_errors
from .exceptions import IllegalTransition, ValidationError
from .models import Prescription
from .types import PrescriptionStatus, ReviewFrequency

logger = logging.getLogger(__name__)


def is_valid_for_administration(prescription: Prescription, on: date) -> bool:
    """
    A prescription is valid when it is active and ``on`` falls inside
    [start_date, end_date]. An end date in the past always invalidates it,
    whatever the status field says.
    """
    if prescription.status != PrescriptionStatus.ACTIVE:
        return False
    if on < prescription.start_date:
        return False
    if prescription.end_date is not None and on > prescription.end_date:
        return False
    return True


def validate_prescription(prescription: Prescription) -> None:
    """
    Validates a prescription before it is accepted.

    :raises ValidationError: listing every problem found.
    """
    errors = dosage_errors(prescription.dosage)

    if not prescription.resident_id:
        errors.append("Resident ID is required")
    if not prescription.medication_id:
        errors.append("Medication ID is required")
    if prescription.end_date and prescription.end_date <= prescription.start_date:
        errors.append("End date must be after start date")
    if (
        prescription.max_dose_per_day is not None
        and prescription.dosage.amount > prescription.max_dose_per_day
    ):
        errors.append("Single dose exceeds maximum daily dose")
    if prescription.minimum_interval_hours is not None and prescription.minimum_interval_hours < 0:
        errors.append("Minimum interval cannot be negative")

    if errors:
        logger.warning(f"Prescription {prescription.id} failed validation: {errors}")
        raise ValidationError(f"Invalid prescription {prescription.id}", errors)


def discontinue_prescription(
    prescription: Prescription, reason: str, discontinued_by: str, on: date
) -> Prescription:
    """Returns a discontinued copy. Only active prescriptions can be discontinued."""
    if prescription.status != PrescriptionStatus.ACTIVE:
        raise IllegalTransition(
            prescription.status.value,
            "discontinue",
            "Only active prescriptions can be discontinued",
        )
    if not reason or not reason.strip():
        raise ValidationError("A discontinuation reason is required")

    logger.info(f"Discontinuing prescription {prescription.id} by {discontinued_by}")
    return prescription.model_copy(
        update={
            "status": PrescriptionStatus.DISCONTINUED,
            "discontinuation_reason": reason,
            "discontinued_by": discontinued_by,
            "discontinuation_date": on,
        }
    )


def next_review_date(frequency: ReviewFrequency, from_date: date) -> Optional[date]:
    """Advances a review date by its frequency; custom schedules have no fixed step."""
    if frequency == ReviewFrequency.WEEKLY:
        return from_date + timedelta(days=7)
    if frequency == ReviewFrequency.MONTHLY:
        return add_months(from_date, 1)
    if frequency == ReviewFrequency.QUARTERLY:
        return add_months(from_date, 3)
    if frequency == ReviewFrequency.ANNUALLY:
        return add_months(from_date, 12)
    return None


def record_review(prescription: Prescription, reviewed_on: date) -> Prescription:
    """Returns a copy with the review schedule rolled forward from ``reviewed_on``."""
    schedule = prescription.review_schedule
    if schedule is None:
        raise ValidationError(f"Prescription {prescription.id} has no review schedule")

    upcoming = next_review_date(schedule.frequency, reviewed_on) or schedule.next_review_date
    return prescription.model_copy(
        update={
            "review_schedule": schedule.model_copy(
                update={"last_review_date": reviewed_on, "next_review_date": upcoming}
            )
        }
    )


def prescriptions_due_for_review(
    prescriptions: Iterable[Prescription], today: date, days_ahead: int = 7
) -> List[Prescription]:
    """
    Active prescriptions whose next review falls on or before ``today + days_ahead``,
    ordered by review date. Overdue reviews are included.
    """
    horizon = today + timedelta(days=days_ahead)
    due = [
        p
        for p in prescriptions
        if p.status == PrescriptionStatus.ACTIVE
        and p.review_schedule is not None
        and p.review_schedule.next_review_date <= horizon
    ]
    return sorted(due, key=lambda p: p.review_schedule.next_review_date)  # type: ignore[union-attr]
