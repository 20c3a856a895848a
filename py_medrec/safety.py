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
This module decides whether a specific administration attempt is permitted.

A denial is an expected, clinically meaningful outcome and is returned as a
SafetyDecision rather than raised.
"""
import logging
from datetime import timedelta
from typing import Optional

from .models import AdministrationAttempt, Medication, Prescription, SafetyDecision
from .prescriptions import is_valid_for_administration
from .types import AdministrationStatus, DenyReason

logger = logging.getLogger(__name__)

RECORDABLE_AFTER_DENIAL = frozenset(
    {AdministrationStatus.REFUSED, AdministrationStatus.OMITTED, AdministrationStatus.WITHHELD}
)


def proposed_dose(prescription: Prescription, attempt: AdministrationAttempt) -> float:
    """The dose the attempt would give, falling back to the prescribed single dose."""
    if attempt.dosage_given is not None:
        return attempt.dosage_given.amount
    return prescription.dosage.amount


def evaluate_safety(
    prescription: Prescription,
    medication: Medication,
    proposed_attempt: AdministrationAttempt,
    prior_attempt: Optional[AdministrationAttempt] = None,
    todays_dose_total: float = 0.0,
) -> SafetyDecision:
    """
    Runs the safety checks in order; the first failing check denies.

    1. Prescription not valid on the attempt's date -> PRESCRIPTION_INVALID
    2. Medication inactive -> MEDICATION_INACTIVE
    3. PRN order with a minimum interval that has not yet elapsed since the
       prior attempt -> INTERVAL_TOO_SHORT
    4. Daily ceiling configured and today's total plus this dose exceeds it
       -> DAILY_LIMIT_EXCEEDED

    The caller must read today's dose total and record the outcome under a
    per-prescription lock, otherwise two concurrent doses can both pass check 4.

    :param prescription: The prescription being administered.
    :param medication: The medication the prescription refers to.
    :param proposed_attempt: The draft attempt; its administration time is "now".
    :param prior_attempt: The most recent prior attempt, if any.
    :param todays_dose_total: Sum of doses already given today, in the dosage unit.
    :return: SafetyDecision.allow() or SafetyDecision.deny(reason, message).
    """
    attempted_at = proposed_attempt.administration_time

    if not is_valid_for_administration(prescription, attempted_at.date()):
        return _deny(
            prescription,
            DenyReason.PRESCRIPTION_INVALID,
            f"Prescription is {prescription.status.value} or outside its validity window "
            f"({prescription.start_date} to {prescription.end_date or 'open'}).",
        )

    if not medication.is_active:
        return _deny(
            prescription,
            DenyReason.MEDICATION_INACTIVE,
            f"Medication {medication.name} is inactive.",
        )

    interval_hours = prescription.minimum_interval_hours
    if prescription.is_prn and interval_hours is not None and prior_attempt is not None:
        elapsed = attempted_at - prior_attempt.administration_time
        if elapsed < timedelta(hours=interval_hours):
            return _deny(
                prescription,
                DenyReason.INTERVAL_TOO_SHORT,
                f"Only {elapsed.total_seconds() / 3600:.2f}h since the prior attempt; "
                f"minimum interval is {interval_hours}h.",
            )

    ceiling = prescription.max_dose_per_day
    if ceiling is not None:
        dose = proposed_dose(prescription, proposed_attempt)
        if todays_dose_total + dose > ceiling:
            return _deny(
                prescription,
                DenyReason.DAILY_LIMIT_EXCEEDED,
                f"{todays_dose_total} + {dose} {prescription.dosage.unit} would exceed "
                f"the daily maximum of {ceiling} {prescription.dosage.unit}.",
            )

    return SafetyDecision.allow()


def may_record(decision: SafetyDecision, status: AdministrationStatus) -> bool:
    """
    After a denial only refused, omitted and withheld outcomes may be recorded.
    """
    if decision.allowed:
        return True
    return status in RECORDABLE_AFTER_DENIAL


def _deny(prescription: Prescription, reason: DenyReason, message: str) -> SafetyDecision:
    logger.warning(f"Administration denied for prescription {prescription.id}: {reason.value}")
    return SafetyDecision.deny(reason, message)
