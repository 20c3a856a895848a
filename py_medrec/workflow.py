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
This module drives each discrepancy from detection to resolution and derives
the status of the owning reconciliation case.

Discrepancy states::

    identified -> under_review -> resolved
                               -> accepted_risk

Critical and high severity discrepancies can only be closed as accepted risk
with an approved pharmacist review attached. The functions assume a single
writer per discrepancy; callers serialise concurrent reviewers, e.g. by
passing ``expected_version``.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from .exceptions import ComplianceViolation, IllegalTransition, ValidationError
from .models import (
    DiscrepancyResolution,
    MedicationDiscrepancy,
    PharmacistReview,
    ReconciliationCase,
)
from .types import (
    CaseStatus,
    DiscrepancyStatus,
    ResolutionType,
    Severity,
    WorkflowAction,
)

logger = logging.getLogger(__name__)

REVIEW_GATED_SEVERITIES = frozenset({Severity.CRITICAL, Severity.HIGH})


def _coerce_action(action: Union[WorkflowAction, str]) -> WorkflowAction:
    try:
        return WorkflowAction(action)
    except ValueError as e:
        raise ValidationError(f"Unknown workflow action: {action}") from e


def _build_resolution(
    discrepancy: MedicationDiscrepancy,
    action: WorkflowAction,
    actor: str,
    rationale: Optional[str],
    resolution: Optional[DiscrepancyResolution],
    resolution_type: Optional[ResolutionType],
    pharmacist_review: Optional[PharmacistReview],
    now: datetime,
) -> DiscrepancyResolution:
    if resolution is None:
        text = (rationale or "").strip()
        if not text:
            raise IllegalTransition(
                discrepancy.status.value, action.value, "a non-empty rationale is required"
            )
        resolution = DiscrepancyResolution(
            resolution_type=resolution_type or ResolutionType.NO_ACTION_REQUIRED,
            resolution_action=action.value,
            rationale=text,
            resolved_by=actor,
            resolved_at=now,
        )
    elif not resolution.rationale.strip():
        raise IllegalTransition(
            discrepancy.status.value, action.value, "a non-empty rationale is required"
        )

    if pharmacist_review is not None and pharmacist_review.is_approved and not resolution.approved_by:
        resolution = resolution.model_copy(
            update={
                "approved_by": pharmacist_review.pharmacist_id,
                "approval_date": pharmacist_review.review_date,
            }
        )
    return resolution


def transition_discrepancy(
    discrepancy: MedicationDiscrepancy,
    action: Union[WorkflowAction, str],
    actor: str,
    rationale: Optional[str] = None,
    resolution: Optional[DiscrepancyResolution] = None,
    resolution_type: Optional[ResolutionType] = None,
    pharmacist_review: Optional[PharmacistReview] = None,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
) -> MedicationDiscrepancy:
    """
    Applies a workflow action to a discrepancy and returns the updated copy.

    :param discrepancy: The current discrepancy snapshot.
    :param action: 'open', 'resolve' or 'accept_risk'.
    :param actor: The clinician performing the action.
    :param rationale: Free-text rationale; required to resolve or accept risk
        unless a full ``resolution`` is supplied.
    :param resolution: An explicit resolution record.
    :param resolution_type: Resolution type used when building one from
        ``rationale``; defaults to no_action_required.
    :param pharmacist_review: The review attached to the case, if any.
    :param expected_version: Optimistic concurrency check against ``version``.
    :param now: Transition timestamp; defaults to UTC now.
    :raises IllegalTransition: if the action is not allowed from the current state.
    """
    action = _coerce_action(action)
    if not actor or not actor.strip():
        raise ValidationError("An actor is required for every workflow transition")
    if expected_version is not None and expected_version != discrepancy.version:
        raise IllegalTransition(
            discrepancy.status.value,
            action.value,
            f"stale version {expected_version}, current is {discrepancy.version}",
        )
    now = now or datetime.now(timezone.utc)

    if action == WorkflowAction.OPEN:
        if discrepancy.status != DiscrepancyStatus.IDENTIFIED:
            raise IllegalTransition(discrepancy.status.value, action.value)
        updated = discrepancy.model_copy(
            update={
                "status": DiscrepancyStatus.UNDER_REVIEW,
                "opened_by": actor,
                "version": discrepancy.version + 1,
            }
        )
    else:
        if discrepancy.status != DiscrepancyStatus.UNDER_REVIEW:
            raise IllegalTransition(discrepancy.status.value, action.value)

        if action == WorkflowAction.ACCEPT_RISK:
            target_status = DiscrepancyStatus.ACCEPTED_RISK
            if discrepancy.severity in REVIEW_GATED_SEVERITIES and not (
                pharmacist_review is not None and pharmacist_review.is_approved
            ):
                raise IllegalTransition(
                    discrepancy.status.value,
                    action.value,
                    f"{discrepancy.severity.value} discrepancies need an approved "
                    "pharmacist review before risk can be accepted",
                )
        else:
            target_status = DiscrepancyStatus.RESOLVED

        built = _build_resolution(
            discrepancy,
            action,
            actor,
            rationale,
            resolution,
            resolution_type,
            pharmacist_review,
            now,
        )
        updated = discrepancy.model_copy(
            update={
                "status": target_status,
                "resolution": built,
                "version": discrepancy.version + 1,
            }
        )

    logger.info(
        f"Discrepancy {discrepancy.id} ({discrepancy.severity.value} "
        f"{discrepancy.discrepancy_type.value}): {discrepancy.status.value} -> "
        f"{updated.status.value} by {actor}"
    )
    return updated


def derive_case_status(case: ReconciliationCase) -> CaseStatus:
    """
    Status implied by the discrepancies. An approved case stays approved; any
    unresolved critical or high discrepancy forces requires_review, so such a
    case can never be completed.
    """
    if case.status == CaseStatus.APPROVED:
        return CaseStatus.APPROVED
    open_items = [d for d in case.discrepancies if not d.is_terminal]
    if any(d.severity in REVIEW_GATED_SEVERITIES for d in open_items):
        return CaseStatus.REQUIRES_REVIEW
    if not open_items:
        return CaseStatus.COMPLETED
    return CaseStatus.IN_PROGRESS


def apply_discrepancy(
    case: ReconciliationCase,
    discrepancy: MedicationDiscrepancy,
    now: Optional[datetime] = None,
) -> ReconciliationCase:
    """Replaces a discrepancy in the case and recomputes the case status."""
    case.get_discrepancy(discrepancy.id)
    if case.status == CaseStatus.APPROVED:
        raise IllegalTransition(case.status.value, "update_discrepancy", "case is approved")
    discrepancies = [discrepancy if d.id == discrepancy.id else d for d in case.discrepancies]
    updated = case.model_copy(
        update={
            "discrepancies": discrepancies,
            "updated_at": now or datetime.now(timezone.utc),
        }
    )
    return updated.model_copy(update={"status": derive_case_status(updated)})


def latest_approved_review(case: ReconciliationCase) -> Optional[PharmacistReview]:
    approved = [review for review in case.pharmacist_reviews if review.is_approved]
    return approved[-1] if approved else None


def transition_case_discrepancy(
    case: ReconciliationCase,
    discrepancy_id: str,
    action: Union[WorkflowAction, str],
    actor: str,
    rationale: Optional[str] = None,
    resolution: Optional[DiscrepancyResolution] = None,
    resolution_type: Optional[ResolutionType] = None,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ReconciliationCase:
    """
    Transitions one discrepancy of a case, using the case's latest approved
    pharmacist review as the gate for accepting risk.
    """
    now = now or datetime.now(timezone.utc)
    current = case.get_discrepancy(discrepancy_id)
    updated = transition_discrepancy(
        current,
        action,
        actor,
        rationale=rationale,
        resolution=resolution,
        resolution_type=resolution_type,
        pharmacist_review=latest_approved_review(case),
        expected_version=expected_version,
        now=now,
    )
    return apply_discrepancy(case, updated, now)


def attach_pharmacist_review(
    case: ReconciliationCase, review: PharmacistReview, now: Optional[datetime] = None
) -> ReconciliationCase:
    """
    Attaches a pharmacist review. An approved review on a completed case
    approves it; on any other case the review is recorded and the status is
    left to the discrepancies.

    :raises ComplianceViolation: if the review does not identify the pharmacist.
    :raises IllegalTransition: if the case is already approved.
    """
    if not review.pharmacist_id or not review.pharmacist_id.strip():
        raise ComplianceViolation(["missing_pharmacist_identity"])
    if case.status == CaseStatus.APPROVED:
        raise IllegalTransition(case.status.value, "attach_pharmacist_review", "case is approved")

    updated = case.model_copy(
        update={
            "pharmacist_reviews": [*case.pharmacist_reviews, review],
            "updated_at": now or datetime.now(timezone.utc),
        }
    )
    status = derive_case_status(updated)
    if review.is_approved and status == CaseStatus.COMPLETED:
        status = CaseStatus.APPROVED
    logger.info(
        f"Pharmacist review by {review.pharmacist_id} on case {case.id}: "
        f"{review.approval_status.value}; status {case.status.value} -> {status.value}"
    )
    return updated.model_copy(update={"status": status})


def approve_case(case: ReconciliationCase, now: Optional[datetime] = None) -> ReconciliationCase:
    """Moves a completed case with an approved pharmacist review to approved."""
    if case.status != CaseStatus.COMPLETED:
        raise IllegalTransition(case.status.value, "approve", "only completed cases can be approved")
    if not case.has_approved_review:
        raise IllegalTransition(
            case.status.value, "approve", "an approved pharmacist review is required"
        )
    return case.model_copy(
        update={"status": CaseStatus.APPROVED, "updated_at": now or datetime.now(timezone.utc)}
    )
