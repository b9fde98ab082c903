"""Repositories package - data access layer."""

from __future__ import annotations

from member_onboarding.repositories.base_repository import BaseRepository
from member_onboarding.repositories.member_repository import MemberRepository
from member_onboarding.repositories.workflow_transition_repository import (
    WorkflowTransitionRepository,
)

__all__ = [
    "BaseRepository",
    "MemberRepository",
    "WorkflowTransitionRepository",
]
