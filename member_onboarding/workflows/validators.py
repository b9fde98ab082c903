"""Approval validator chain.

Validators run in order over one shared ``ValidationContext`` and the chain
stops at the first failure. The transition-existence validator fills in
``context.transition`` for the validators after it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from member_onboarding.models import Member, WorkflowTransition
from member_onboarding.repositories import WorkflowTransitionRepository

logger = logging.getLogger(__name__)


@dataclass
class ValidationContext:
    """Mutable state threaded through one ``validate`` call."""

    entity: Member
    current_status: str
    current_user_email: str
    transition: Optional[WorkflowTransition] = None


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None

    @classmethod
    def passed(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def failed(cls, error: str) -> "ValidationResult":
        return cls(is_valid=False, error=error)


class Validator(Protocol):
    def validate(self, context: ValidationContext) -> ValidationResult: ...


class TransitionExistsValidator:
    """Fails when no active transition leaves the current status."""

    def __init__(
        self, transitions: WorkflowTransitionRepository, workflow_type: str
    ) -> None:
        self.transitions = transitions
        self.workflow_type = workflow_type

    def validate(self, context: ValidationContext) -> ValidationResult:
        transition = self.transitions.get_transition(
            self.workflow_type, context.current_status
        )
        if transition is None:
            return ValidationResult.failed(
                f"No valid transition for status {context.current_status}"
            )
        context.transition = transition
        return ValidationResult.passed()


class SequentialOrderValidator:
    """Cross-checks the resolved transition against the full configured ladder."""

    def __init__(
        self, transitions: WorkflowTransitionRepository, workflow_type: str
    ) -> None:
        self.transitions = transitions
        self.workflow_type = workflow_type

    def validate(self, context: ValidationContext) -> ValidationResult:
        if context.transition is None:
            return ValidationResult.failed(
                "Transition information is required for sequential validation"
            )

        rows = self.transitions.get_workflow_transitions(self.workflow_type)
        if not rows:
            return ValidationResult.failed(
                f"No workflow transitions found for {self.workflow_type}"
            )

        by_status = {row.current_status: row for row in rows}
        row = by_status.get(context.current_status)
        if row is None:
            return ValidationResult.failed(
                f"Invalid approval status: {context.current_status}. "
                f"Must be one of: {', '.join(by_status)}"
            )
        if row.order != context.transition.order:
            return ValidationResult.failed(
                f"Order mismatch: Expected order {row.order} for status "
                f"{context.current_status}, but got {context.transition.order}"
            )
        return ValidationResult.passed()


class ApprovalOrderValidator:
    """No stage skipping, one action per actor at the committee stage,
    one approval per later stage."""

    def __init__(
        self,
        transitions: WorkflowTransitionRepository,
        workflow_type: str,
        committee_stage: str = "committee",
    ) -> None:
        self.transitions = transitions
        self.workflow_type = workflow_type
        self.committee_stage = committee_stage

    def validate(self, context: ValidationContext) -> ValidationResult:
        if context.transition is None:
            return ValidationResult.failed(
                "Transition information is required for order validation"
            )

        member = context.entity
        current_order = context.transition.order
        error = missing_prior_stage(
            member, current_order, self.transitions, self.workflow_type
        )
        if error:
            return ValidationResult.failed(error)

        if context.transition.approval_stage == self.committee_stage:
            if has_acted_at_order(member, current_order, context.current_user_email):
                return ValidationResult.failed(
                    "You have already provided feedback for this application "
                    "at the committee stage"
                )
        elif any(entry.order == current_order for entry in member.approval_history):
            stage = stage_name(self.transitions, self.workflow_type, current_order)
            return ValidationResult.failed(
                f"Invalid approval order: {stage} approval has already been completed"
            )

        return ValidationResult.passed()


class ValidatorChain:
    """Runs validators in sequence, returning the first failure verbatim."""

    def __init__(self, validators: Sequence[Validator]) -> None:
        self.validators: List[Validator] = list(validators)

    def validate(self, context: ValidationContext) -> ValidationResult:
        for validator in self.validators:
            result = validator.validate(context)
            if not result.is_valid:
                logger.info(
                    f"{type(validator).__name__} rejected {context.entity.member_id}: "
                    f"{result.error}"
                )
                return result
        return ValidationResult.passed()


def build_approval_chain(
    transitions: WorkflowTransitionRepository,
    workflow_type: str,
    committee_stage: str = "committee",
) -> ValidatorChain:
    """Default chain: transition exists, sequential order, approval order."""
    return ValidatorChain(
        [
            TransitionExistsValidator(transitions, workflow_type),
            SequentialOrderValidator(transitions, workflow_type),
            ApprovalOrderValidator(transitions, workflow_type, committee_stage),
        ]
    )


def stage_name(
    transitions: WorkflowTransitionRepository, workflow_type: str, order: int
) -> str:
    row = transitions.get_transition_by_order(workflow_type, order)
    return row.approval_stage if row else "Unknown"


def missing_prior_stage(
    member: Member,
    order: int,
    transitions: WorkflowTransitionRepository,
    workflow_type: str,
) -> Optional[str]:
    """Return an error naming the first earlier order with no approval or rejection."""
    completed = {entry.order for entry in member.approval_history}
    completed.update(entry.order for entry in member.rejection_history)
    for earlier in range(1, order):
        if earlier not in completed:
            stage = stage_name(transitions, workflow_type, earlier)
            return (
                f"Invalid approval order: {stage} stage (order {earlier}) "
                f"has not been completed yet"
            )
    return None


def has_acted_at_order(member: Member, order: int, email: str) -> bool:
    """True when ``email`` already approved or rejected at ``order``."""
    email = email.lower()
    return any(
        entry.order == order and entry.approver_email.lower() == email
        for entry in member.approval_history
    ) or any(
        entry.order == order and entry.rejector_email.lower() == email
        for entry in member.rejection_history
    )
