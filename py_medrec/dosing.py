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
This module converts a prescription's frequency pattern into administration
timing and daily dose totals.
"""
import calendar
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, TypeVar

from .exceptions import ValidationError
from .models import AdministrationAttempt, Dosage, NextAdministration, Prescription
from .types import FrequencyPattern

logger = logging.getLogger(__name__)

_D = TypeVar("_D", date, datetime)

FIXED_INTERVALS: Dict[FrequencyPattern, timedelta] = {
    FrequencyPattern.ONCE_DAILY: timedelta(hours=24),
    FrequencyPattern.TWICE_DAILY: timedelta(hours=12),
    FrequencyPattern.THREE_TIMES_DAILY: timedelta(hours=8),
    FrequencyPattern.FOUR_TIMES_DAILY: timedelta(hours=6),
    FrequencyPattern.EVERY_4_HOURS: timedelta(hours=4),
    FrequencyPattern.EVERY_6_HOURS: timedelta(hours=6),
    FrequencyPattern.EVERY_8_HOURS: timedelta(hours=8),
    FrequencyPattern.EVERY_12_HOURS: timedelta(hours=12),
    FrequencyPattern.WEEKLY: timedelta(days=7),
}

# Patterns absent from this table have no fixed daily count.
ADMINISTRATIONS_PER_DAY: Dict[FrequencyPattern, int] = {
    FrequencyPattern.ONCE_DAILY: 1,
    FrequencyPattern.TWICE_DAILY: 2,
    FrequencyPattern.THREE_TIMES_DAILY: 3,
    FrequencyPattern.FOUR_TIMES_DAILY: 4,
    FrequencyPattern.EVERY_4_HOURS: 6,
    FrequencyPattern.EVERY_6_HOURS: 4,
    FrequencyPattern.EVERY_8_HOURS: 3,
    FrequencyPattern.EVERY_12_HOURS: 2,
}


def add_months(value: _D, months: int) -> _D:
    """
    Advances a date or datetime by whole calendar months, clamping the day to
    the last day of the target month (e.g. Jan 31 + 1 month -> Feb 28/29).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def dosage_errors(dosage: Dosage) -> List[str]:
    """Returns every problem with a dosage; an empty list means it is well-formed."""
    errors: List[str] = []
    if dosage.amount <= 0:
        errors.append("Valid dosage amount is required")
    if not dosage.unit or not dosage.unit.strip():
        errors.append("Dosage unit is required")
    if dosage.frequency == FrequencyPattern.CUSTOM and not (
        dosage.custom_frequency and dosage.custom_frequency.strip()
    ):
        errors.append("Custom frequency text is required when frequency is 'custom'")
    return errors


def validate_dosage(dosage: Dosage) -> None:
    """Raises ValidationError if the dosage is malformed."""
    errors = dosage_errors(dosage)
    if errors:
        raise ValidationError("Invalid dosage: " + "; ".join(errors), errors)


def administrations_per_day(frequency: FrequencyPattern) -> Optional[int]:
    """
    Number of administrations the pattern implies in 24 hours, or None for
    patterns without a fixed daily count (as_required, weekly, monthly, custom).
    """
    return ADMINISTRATIONS_PER_DAY.get(frequency)


def daily_dose_total(dosage: Dosage) -> float:
    """
    Total daily dose implied by the pattern. Patterns without a fixed daily
    count report the single dose.
    """
    validate_dosage(dosage)
    count = administrations_per_day(dosage.frequency) or 1
    return dosage.amount * count


def next_scheduled_time(frequency: FrequencyPattern, baseline: datetime) -> Optional[datetime]:
    """Advances the baseline by the pattern's fixed offset, or None if it has none."""
    if frequency == FrequencyPattern.MONTHLY:
        return add_months(baseline, 1)
    interval = FIXED_INTERVALS.get(frequency)
    if interval is None:
        return None
    return baseline + interval


def compute_next_administration(
    prescription: Prescription,
    last_attempt: Optional[AdministrationAttempt] = None,
    now: Optional[datetime] = None,
) -> NextAdministration:
    """
    Computes the next scheduled administration time and the daily dose total.

    The baseline is the last attempt's administration time or, when there is
    none, ``now``. The result is never a retroactive due time.

    :param prescription: The prescription to schedule.
    :param last_attempt: The most recent administration attempt, if any.
    :param now: The current time; defaults to the current UTC time.
    :return: A NextAdministration. ``next_time`` is None for PRN and custom
        patterns, whose eligibility is decided by the safety gate instead.
    """
    dosage = prescription.dosage
    total = daily_dose_total(dosage)

    if last_attempt is not None:
        baseline = last_attempt.administration_time
    else:
        baseline = now or datetime.now(timezone.utc)

    if prescription.is_prn:
        next_time = None
    else:
        next_time = next_scheduled_time(dosage.frequency, baseline)

    logger.debug(
        f"Prescription {prescription.id}: pattern={dosage.frequency.value}, "
        f"baseline={baseline.isoformat()}, next={next_time}, daily_total={total}"
    )
    return NextAdministration(
        next_time=next_time,
        daily_dose_total=total,
        unit=dosage.unit,
        is_prn=prescription.is_prn,
        baseline=baseline,
    )
