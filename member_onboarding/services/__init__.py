"""External collaborator services."""

from __future__ import annotations

from .identity_service import (
    EntraIdentityProvider,
    IdentityAccount,
    IdentityProvider,
    LoggingIdentityProvider,
    build_identity_provider,
)
from .notification_service import NotificationKind, WorkflowNotificationService

__all__ = [
    "EntraIdentityProvider",
    "IdentityAccount",
    "IdentityProvider",
    "LoggingIdentityProvider",
    "build_identity_provider",
    "NotificationKind",
    "WorkflowNotificationService",
]
