"""Workflow phase handlers."""

from __future__ import annotations

from .approval import ApprovalHandler
from .base import BaseWorkflowHandler
from .payment import PaymentHandler
from .phase1 import Phase1Handler
from .phase2 import Phase2Handler
from .phase3 import Phase3Handler
from .rejection import RejectionHandler

__all__ = [
    "ApprovalHandler",
    "BaseWorkflowHandler",
    "PaymentHandler",
    "Phase1Handler",
    "Phase2Handler",
    "Phase3Handler",
    "RejectionHandler",
]
