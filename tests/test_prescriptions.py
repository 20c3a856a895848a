# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
Tests for the prescription lifecycle helpers.
"""
from datetime import date

import pytest

from py_medrec.exceptions import IllegalTransition, ValidationError
from py_medrec.models import ReviewSchedule
from py_medrec.prescriptions import (
    discontinue_prescription,
    is_valid_for_administration,
    next_review_date,
    prescriptions_due_for_review,
    record_review,
    validate_prescription,
)
from py_medrec.types import PrescriptionStatus, ReviewFrequency


def test_active_prescription_is_valid_inside_window(make_prescription) -> None:
    rx = make_prescription(end_date=date(2024, 6, 30))
    assert is_valid_for_administration(rx, date(2024, 1, 1))
    assert is_valid_for_administration(rx, date(2024, 6, 30))


def test_past_end_date_invalidates_active_prescription(make_prescription) -> None:
    rx = make_prescription(end_date=date(2024, 2, 1))
    assert rx.status == PrescriptionStatus.ACTIVE
    assert not is_valid_for_administration(rx, date(2024, 2, 2))


def test_not_yet_started_is_invalid(make_prescription) -> None:
    rx = make_prescription(start_date=date(2024, 5, 1))
    assert not is_valid_for_administration(rx, date(2024, 4, 30))


@pytest.mark.parametrize(
    "status",
    [PrescriptionStatus.SUSPENDED, PrescriptionStatus.DISCONTINUED, PrescriptionStatus.EXPIRED],
)
def test_non_active_status_is_invalid(make_prescription, status) -> None:
    rx = make_prescription(status=status)
    assert not is_valid_for_administration(rx, date(2024, 3, 1))


def test_validate_prescription_accepts_valid(prescription) -> None:
    validate_prescription(prescription)


def test_validate_prescription_lists_every_error(make_prescription, caplog) -> None:
    rx = make_prescription(
        start_date=date(2024, 3, 1),
        end_date=date(2024, 2, 1),
        max_dose_per_day=250,
    )
    with pytest.raises(ValidationError) as exc_info:
        validate_prescription(rx)
    assert exc_info.value.errors == [
        "End date must be after start date",
        "Single dose exceeds maximum daily dose",
    ]
    assert "failed validation" in caplog.text


def test_discontinue_active_prescription(prescription) -> None:
    stopped = discontinue_prescription(prescription, "Course complete", "dr-1", date(2024, 3, 1))
    assert stopped.status == PrescriptionStatus.DISCONTINUED
    assert stopped.discontinuation_reason == "Course complete"
    assert stopped.discontinued_by == "dr-1"
    assert stopped.discontinuation_date == date(2024, 3, 1)
    # The original snapshot is untouched
    assert prescription.status == PrescriptionStatus.ACTIVE


def test_discontinue_requires_active(make_prescription) -> None:
    rx = make_prescription(status=PrescriptionStatus.SUSPENDED)
    with pytest.raises(IllegalTransition, match="Only active prescriptions"):
        discontinue_prescription(rx, "No longer needed", "dr-1", date(2024, 3, 1))


def test_discontinue_requires_reason(prescription) -> None:
    with pytest.raises(ValidationError):
        discontinue_prescription(prescription, "  ", "dr-1", date(2024, 3, 1))


@pytest.mark.parametrize(
    "frequency, expected",
    [
        (ReviewFrequency.WEEKLY, date(2024, 2, 7)),
        (ReviewFrequency.MONTHLY, date(2024, 2, 29)),
        (ReviewFrequency.QUARTERLY, date(2024, 4, 30)),
        (ReviewFrequency.ANNUALLY, date(2025, 1, 31)),
        (ReviewFrequency.CUSTOM, None),
    ],
)
def test_next_review_date(frequency, expected) -> None:
    assert next_review_date(frequency, date(2024, 1, 31)) == expected


def test_record_review_rolls_schedule_forward(make_prescription) -> None:
    rx = make_prescription(
        review_schedule=ReviewSchedule(
            frequency=ReviewFrequency.MONTHLY, next_review_date=date(2024, 3, 1)
        )
    )
    reviewed = record_review(rx, date(2024, 3, 4))
    assert reviewed.review_schedule.last_review_date == date(2024, 3, 4)
    assert reviewed.review_schedule.next_review_date == date(2024, 4, 4)


def test_record_review_without_schedule(prescription) -> None:
    with pytest.raises(ValidationError, match="has no review schedule"):
        record_review(prescription, date(2024, 3, 4))


def test_prescriptions_due_for_review(make_prescription) -> None:
    def scheduled(rx_id: str, review_on: date, **kwargs):
        return make_prescription(
            id=rx_id,
            review_schedule=ReviewSchedule(
                frequency=ReviewFrequency.MONTHLY, next_review_date=review_on
            ),
            **kwargs,
        )

    today = date(2024, 3, 10)
    prescriptions = [
        scheduled("later", date(2024, 3, 30)),
        scheduled("soon", date(2024, 3, 15)),
        scheduled("overdue", date(2024, 3, 1)),
        scheduled("stopped", date(2024, 3, 12), status=PrescriptionStatus.DISCONTINUED),
        make_prescription(id="unscheduled"),
    ]

    due = prescriptions_due_for_review(prescriptions, today, days_ahead=7)

    assert [p.id for p in due] == ["overdue", "soon"]
