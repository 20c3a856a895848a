# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
Unit tests for the MedicationEngine.
"""
import logging
from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import pytest
from pytest_mock import MockerFixture

from py_medrec import scoring
from py_medrec.config import AppSettings
from py_medrec.engine import MedicationEngine
from py_medrec.events import AbstractEventPublisher, LoggingEventPublisher
from py_medrec.exceptions import AdministrationBlocked
from py_medrec.risk import StaticDrugRiskLookup
from py_medrec.types import (
    AdministrationStatus,
    ApprovalStatus,
    CaseStatus,
    DenyReason,
    RefusalReason,
    SourceType,
    TransitionType,
)


@pytest.fixture
def mock_publisher() -> MagicMock:
    """Fixture for a mocked AbstractEventPublisher."""
    return MagicMock()


@pytest.fixture
def engine(mock_publisher: MagicMock, risk_lookup: StaticDrugRiskLookup) -> MedicationEngine:
    return MedicationEngine(AppSettings(), risk_lookup, mock_publisher)


@pytest.fixture
def warfarin_lists(make_med, make_source):
    source = make_source([make_med("Warfarin", "warfarin", "5mg")])
    target = make_source([], source_type=SourceType.HOSPITAL_MEDICATIONS)
    return source, target


def _notifications(publisher: MagicMock):
    return [c.args[0] for c in publisher.notify.call_args_list]


def test_from_settings_wires_defaults() -> None:
    engine = MedicationEngine.from_settings(AppSettings())
    assert isinstance(engine.risk_lookup, StaticDrugRiskLookup)
    assert isinstance(engine.publisher, LoggingEventPublisher)
    assert "warfarin" in engine.risk_lookup.high_risk_ingredients


def test_next_administration_delegates(engine, prescription, now) -> None:
    result = engine.next_administration(prescription, now=now)
    assert result.next_time == now + timedelta(hours=6)


def test_check_administration_audits_decision(engine, mock_publisher, make_prescription, medication, make_attempt) -> None:
    rx = make_prescription(max_dose_per_day=500)
    decision = engine.check_administration(rx, medication, make_attempt(), todays_dose_total=100)

    assert decision.reason == DenyReason.DAILY_LIMIT_EXCEEDED
    mock_publisher.record_audit.assert_called_once_with(
        "safety_evaluated",
        "rx-1",
        {"attempt_id": "attempt-1", "allowed": False, "reason": "DAILY_LIMIT_EXCEEDED"},
    )


def test_record_given_dose_against_denial_is_blocked(
    engine, mock_publisher, make_prescription, medication, make_attempt
) -> None:
    rx = make_prescription(max_dose_per_day=500)
    with pytest.raises(AdministrationBlocked) as exc_info:
        engine.record_administration(make_attempt(), rx, medication, todays_dose_total=100)
    assert exc_info.value.reason == DenyReason.DAILY_LIMIT_EXCEEDED
    audited = [c.args[0] for c in mock_publisher.record_audit.call_args_list]
    assert "administration_recorded" not in audited


def test_refusal_is_recorded_despite_denial(
    engine, mock_publisher, make_prescription, medication, make_attempt
) -> None:
    rx = make_prescription(max_dose_per_day=500)
    attempt = make_attempt(
        status=AdministrationStatus.REFUSED,
        reason=RefusalReason.PATIENT_REFUSED,
        clinical_notes=["Declined, will offer again at lunch"],
    )
    score = engine.record_administration(attempt, rx, medication, todays_dose_total=100)
    assert score.compliance_score == 100
    mock_publisher.record_audit.assert_any_call(
        "administration_recorded",
        "attempt-1",
        {
            "prescription_id": "rx-1",
            "status": "refused",
            "compliance_score": 100,
            "accuracy_score": 100,
        },
    )


def test_score_administration_skips_safety_gate(
    engine, mock_publisher, make_prescription, medication, make_attempt
) -> None:
    rx = make_prescription(end_date=date(2024, 3, 1))
    score = engine.score_administration(make_attempt(), rx, medication)

    assert score.compliance_score == 100
    audited = [c.args[0] for c in mock_publisher.record_audit.call_args_list]
    assert audited == ["administration_recorded"]


def test_delayed_attempt_against_denial_is_blocked(
    engine, make_prescription, medication, make_attempt
) -> None:
    rx = make_prescription(max_dose_per_day=500)
    attempt = make_attempt(status=AdministrationStatus.DELAYED)
    with pytest.raises(AdministrationBlocked):
        engine.record_administration(attempt, rx, medication, todays_dose_total=100)


def test_missing_witness_notifies_clinical_review(
    engine, mock_publisher, prescription, controlled_medication, make_attempt
) -> None:
    score = engine.record_administration(make_attempt(), prescription, controlled_medication)
    assert score.requires_review
    mock_publisher.notify.assert_called_once_with(
        "clinical_review_required",
        "attempt-1",
        {
            "prescription_id": "rx-1",
            "resident_id": "resident-1",
            "violations": ["missing_witness"],
        },
    )


def test_reconcile_notifies_critical_discrepancies(engine, mock_publisher, warfarin_lists, now) -> None:
    source, target = warfarin_lists
    case = engine.reconcile(source, target, TransitionType.ADMISSION, "resident-1", "nurse-1", now=now)

    assert case.status == CaseStatus.REQUIRES_REVIEW
    assert _notifications(mock_publisher) == ["critical_discrepancy", "pharmacist_review_requested"]
    mock_publisher.record_audit.assert_called_once()
    assert mock_publisher.record_audit.call_args.args[0] == "reconciliation_started"


def test_reconcile_failure_is_logged_and_reraised(
    engine, mock_publisher, warfarin_lists, caplog, mocker: MockerFixture
) -> None:
    source, target = warfarin_lists
    mocker.patch("py_medrec.engine.reconcile", side_effect=RuntimeError("lookup unavailable"))
    with caplog.at_level(logging.ERROR):
        with pytest.raises(RuntimeError, match="lookup unavailable"):
            engine.reconcile(source, target, TransitionType.ADMISSION, "resident-1", "nurse-1")
    assert "Reconciliation failed for resident resident-1" in caplog.text
    mock_publisher.record_audit.assert_not_called()


def test_transition_audits_status_change(engine, mock_publisher, make_med, make_source, now) -> None:
    source = make_source([make_med("Aspirin", "aspirin", "75mg", timing="morning")])
    target = make_source([make_med("Aspirin", "aspirin", "75mg", timing="evening")])
    case = engine.reconcile(source, target, TransitionType.TRANSFER, "resident-1", "nurse-1", now=now)
    discrepancy_id = case.discrepancies[0].id
    mock_publisher.reset_mock()

    case = engine.transition_discrepancy(case, discrepancy_id, "open", "nurse-1", now=now)
    case = engine.transition_discrepancy(
        case, discrepancy_id, "resolve", "nurse-1", rationale="Aligned to evening", now=now
    )

    events = [c.args[0] for c in mock_publisher.record_audit.call_args_list]
    assert events == [
        "discrepancy_transitioned",
        "discrepancy_transitioned",
        "reconciliation_status_changed",
    ]
    mock_publisher.record_audit.assert_called_with(
        "reconciliation_status_changed",
        case.id,
        {"from": "in_progress", "to": "completed"},
    )


def test_review_feedback_and_approval_notifications(
    engine, mock_publisher, warfarin_lists, make_review, now
) -> None:
    source, target = warfarin_lists
    case = engine.reconcile(source, target, TransitionType.ADMISSION, "resident-1", "nurse-1", now=now)
    mock_publisher.reset_mock()

    case = engine.attach_pharmacist_review(
        case,
        make_review(ApprovalStatus.REQUIRES_CHANGES, recommendations=["Restart warfarin"]),
        now=now,
    )
    assert _notifications(mock_publisher) == ["reconciliation_review_feedback"]

    discrepancy_id = case.discrepancies[0].id
    case = engine.transition_discrepancy(case, discrepancy_id, "open", "pharm-1", now=now)
    case = engine.transition_discrepancy(
        case, discrepancy_id, "resolve", "dr-1", rationale="Warfarin restarted", now=now
    )
    mock_publisher.reset_mock()

    case = engine.attach_pharmacist_review(case, make_review(), now=now)
    assert case.status == CaseStatus.APPROVED
    mock_publisher.notify.assert_called_once_with("reconciliation_approved", case.id, {})


def test_logging_publisher_writes_to_log(caplog) -> None:
    publisher: AbstractEventPublisher = LoggingEventPublisher()
    with caplog.at_level(logging.INFO):
        publisher.record_audit("safety_evaluated", "rx-1", {"allowed": True})
        publisher.notify("critical_discrepancy", "d-1", {})
    assert "AUDIT safety_evaluated rx-1" in caplog.text
    assert "NOTIFY critical_discrepancy d-1" in caplog.text


def test_abstract_publisher_raises_not_implemented_error() -> None:
    class ConcretePublisher(AbstractEventPublisher):
        def record_audit(self, event_type, entity_id, data):
            return super().record_audit(event_type, entity_id, data)  # type: ignore[safe-super]

        def notify(self, notification_type, entity_id, data):
            return super().notify(notification_type, entity_id, data)  # type: ignore[safe-super]

    publisher = ConcretePublisher()
    with pytest.raises(NotImplementedError):
        publisher.record_audit("x", "y", {})
    with pytest.raises(NotImplementedError):
        publisher.notify("x", "y", {})


def test_engine_uses_configured_scheduling(mock_publisher, risk_lookup, prescription, medication, make_attempt, now) -> None:
    config = AppSettings()
    config.scheduling.late_penalty_minutes = 5
    engine = MedicationEngine(config, risk_lookup, mock_publisher)
    with patch(
        "py_medrec.engine.score_administration", wraps=scoring.score_administration
    ) as spy:
        score = engine.record_administration(
            make_attempt(administration_time=now + timedelta(minutes=20)), prescription, medication
        )
    assert spy.call_args.args[3] is config.scheduling
    assert score.accuracy_score == 96
