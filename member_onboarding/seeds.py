"""Default workflow transition rows for the member onboarding approval ladder."""

from __future__ import annotations

from typing import Any, Dict, List

from flask_sqlalchemy import SQLAlchemy

from member_onboarding.models import MemberStatus, WorkflowTransition, WorkflowType

DEFAULT_TRANSITIONS: List[Dict[str, Any]] = [
    {
        "workflow_type": WorkflowType.MEMBER_ONBOARDING.value,
        "current_status": MemberStatus.PENDING_COMMITTEE_APPROVAL.value,
        "next_status": MemberStatus.PENDING_CEO_APPROVAL.value,
        "phase": "COMMITTEE_APPROVAL",
        "approval_stage": "committee",
        "order": 1,
        "description": "Committee review (quorum based)",
    },
    {
        "workflow_type": WorkflowType.MEMBER_ONBOARDING.value,
        "current_status": MemberStatus.PENDING_CEO_APPROVAL.value,
        "next_status": MemberStatus.APPROVED_PENDING_PAYMENT.value,
        "phase": "CEO_APPROVAL",
        "approval_stage": "ceo",
        "order": 2,
        "description": "CEO final approval",
    },
]


def seed_transitions(db: SQLAlchemy) -> int:
    """Insert any missing default transitions.

    Existing rows (matched on workflow type and current status) are left as
    they are so deployments can retune the ladder.

    Args:
        db: SQLAlchemy database instance

    Returns:
        Number of rows inserted
    """
    inserted = 0
    for data in DEFAULT_TRANSITIONS:
        existing = (
            db.session.query(WorkflowTransition)
            .filter_by(
                workflow_type=data["workflow_type"],
                current_status=data["current_status"],
            )
            .first()
        )
        if not existing:
            db.session.add(WorkflowTransition(**data))
            inserted += 1
    db.session.commit()
    return inserted
