"""Workflow transition repository - read access to the approval ladder."""

from __future__ import annotations

from typing import List, Optional

from flask_sqlalchemy import SQLAlchemy

from member_onboarding.models import WorkflowTransition
from member_onboarding.repositories.base_repository import BaseRepository


class WorkflowTransitionRepository(BaseRepository[WorkflowTransition]):
    """Repository for configured workflow transitions.

    Only active rows are visible. A missing row is a normal outcome and
    callers are expected to fail closed on ``None``.
    """

    def __init__(self, db: SQLAlchemy) -> None:
        super().__init__(db, WorkflowTransition)

    def get_transition(
        self, workflow_type: str, current_status: str
    ) -> Optional[WorkflowTransition]:
        """Get the active transition leaving a status.

        Args:
            workflow_type: Workflow type key
            current_status: Status the entity is currently in

        Returns:
            Transition row or None
        """
        return self.get_one_by_filter(
            workflow_type=workflow_type, current_status=current_status, is_active=True
        )

    def get_transition_by_order(
        self, workflow_type: str, order: int
    ) -> Optional[WorkflowTransition]:
        """Get the active transition configured for an approval order."""
        return self.get_one_by_filter(
            workflow_type=workflow_type, order=order, is_active=True
        )

    def get_workflow_transitions(self, workflow_type: str) -> List[WorkflowTransition]:
        """Get every active transition for a workflow, lowest order first."""
        return (
            self.query()
            .filter_by(workflow_type=workflow_type, is_active=True)
            .order_by(WorkflowTransition.order.asc())
            .all()
        )
