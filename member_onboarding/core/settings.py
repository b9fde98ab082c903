"""Application settings powered by Pydantic."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root directory (one level up from member_onboarding/)
BASE_DIR = Path(__file__).resolve().parent.parent.parent


class EmailSettings(BaseModel):
    """Outbound email/notification settings."""

    smtp_server: Optional[str] = Field(default=None, alias="EMAIL_SMTP_SERVER")
    smtp_port: int = Field(default=587, alias="EMAIL_SMTP_PORT")
    username: Optional[str] = Field(default=None, alias="EMAIL_USERNAME")
    password: Optional[str] = Field(default=None, alias="EMAIL_PASSWORD")
    use_tls: bool = Field(default=True, alias="EMAIL_USE_TLS")
    sender: str = Field(default="noreply@membership.local", alias="EMAIL_SENDER")

    @field_validator("smtp_port", mode="before")
    @classmethod
    def cast_port(cls, value: object) -> int:
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
        raise ValueError("SMTP port must be an integer")

    @field_validator("use_tls", mode="before")
    @classmethod
    def cast_tls_flag(cls, value: object) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in {"1", "true", "yes", "on"}
        return bool(value)


class IdentityProviderSettings(BaseModel):
    """Microsoft Entra ID (Graph) configuration used to provision member accounts."""

    tenant_id: Optional[str] = Field(default=None, alias="ENTRA_TENANT_ID")
    client_id: Optional[str] = Field(default=None, alias="ENTRA_CLIENT_ID")
    client_secret: Optional[str] = Field(default=None, alias="ENTRA_CLIENT_SECRET")
    user_domain: Optional[str] = Field(default=None, alias="ENTRA_USER_DOMAIN")
    graph_url: str = Field(
        default="https://graph.microsoft.com/v1.0", alias="ENTRA_GRAPH_URL"
    )
    authority_host: str = Field(
        default="https://login.microsoftonline.com", alias="ENTRA_AUTHORITY_HOST"
    )
    timeout_seconds: int = Field(default=15, alias="ENTRA_TIMEOUT_SECONDS")

    @property
    def enabled(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)


class AppSettings(BaseSettings):
    """Top-level application settings object."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_env: str = Field(default="development", alias="APP_ENV")
    secret_key: str = Field(
        default="dev-secret-key-change-in-production", alias="SECRET_KEY"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    sqlalchemy_database_uri_override: Optional[str] = Field(
        default=None, alias="SQLALCHEMY_DATABASE_URI"
    )
    sqlite_db_path: str = Field(
        default="instance/membership.db", alias="SQLITE_DB_PATH"
    )
    sqlalchemy_echo: bool = Field(default=False, alias="SQLALCHEMY_ECHO")

    # Workflow configuration
    required_committee_actions: int = Field(
        default=2, ge=1, alias="REQUIRED_COMMITTEE_ACTIONS"
    )
    allowed_user_count: int = Field(default=5, ge=0, alias="ALLOWED_USER_COUNT")
    membership_validity_years: int = Field(
        default=1, ge=1, alias="MEMBERSHIP_VALIDITY_YEARS"
    )
    workflow_conflict_retries: int = Field(
        default=3, ge=1, alias="WORKFLOW_CONFLICT_RETRIES"
    )
    rejection_stages_raw: Optional[str] = Field(
        default=None, alias="REJECTION_STAGES"
    )

    admin_email: str = Field(default="admin@membership.local", alias="ADMIN_EMAIL")
    frontend_base_url: str = Field(
        default="http://localhost:3000", alias="FRONTEND_BASE_URL"
    )
    bank_account_number: Optional[str] = Field(
        default=None, alias="BANK_ACCOUNT_NUMBER"
    )
    bank_iban: Optional[str] = Field(default=None, alias="BANK_IBAN")
    bank_account_holder: Optional[str] = Field(
        default=None, alias="BANK_ACCOUNT_HOLDER"
    )

    # Nested groups read their aliased variables from the process environment;
    # main.py loads .env into it before settings are built.
    email: EmailSettings = Field(
        default_factory=lambda: EmailSettings.model_validate(dict(os.environ))
    )
    identity: IdentityProviderSettings = Field(
        default_factory=lambda: IdentityProviderSettings.model_validate(
            dict(os.environ)
        )
    )

    @field_validator("sqlalchemy_echo", mode="before")
    @classmethod
    def cast_sqlalchemy_echo(cls, value: object) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in {"1", "true", "yes", "on"}
        return bool(value)

    @property
    def sqlalchemy_database_uri(self) -> str:
        """Construct SQLAlchemy database URI based on configuration."""
        if self.sqlalchemy_database_uri_override:
            return self.sqlalchemy_database_uri_override

        sqlite_path = Path(self.sqlite_db_path)
        if not sqlite_path.is_absolute():
            sqlite_path = (BASE_DIR / sqlite_path).resolve()
        return f"sqlite:///{sqlite_path.as_posix()}"

    @property
    def rejection_stages(self) -> dict[str, dict[str, object]]:
        """Map member status to the stage/order a rejection is recorded against.

        ``REJECTION_STAGES`` may hold a JSON object with the same shape to
        override the defaults for a deployment.
        """
        defaults: dict[str, dict[str, object]] = {
            "pendingCommitteeApproval": {"stage": "committee", "order": 1},
            "pendingCEOApproval": {"stage": "ceo", "order": 2},
            "pendingFormSubmission": {"stage": "admin", "order": 0},
            "approvedPendingPayment": {"stage": "admin", "order": 0},
        }
        if not self.rejection_stages_raw:
            return defaults
        try:
            data = json.loads(self.rejection_stages_raw)
        except json.JSONDecodeError as exc:
            raise ValueError("REJECTION_STAGES must be a JSON object") from exc
        if not isinstance(data, dict):
            raise ValueError("REJECTION_STAGES must be a JSON object")
        return {
            str(status): {"stage": str(info["stage"]), "order": int(info["order"])}
            for status, info in data.items()
        }

    @property
    def workflow_config(self) -> dict[str, object]:
        """Get workflow configuration."""
        return {
            "WORKFLOW_TYPE": "MEMBER_ONBOARDING",
            "INITIAL_STATUS": "pendingFormSubmission",
            "COMPLETION_STATUS": "pendingCommitteeApproval",
            "PAYMENT_PENDING_STATUS": "approvedPendingPayment",
            "ACTIVE_STATUS": "active",
            "REJECTED_STATUS": "rejected",
            "TERMINAL_STATUSES": ["active", "rejected"],
            "PHASE2_SOURCE_STATUSES": ["pendingFormSubmission"],
            "COMMITTEE_STAGE": "committee",
            "REQUIRED_COMMITTEE_ACTIONS": self.required_committee_actions,
            "ALLOWED_USER_COUNT": self.allowed_user_count,
            "MEMBERSHIP_VALIDITY_YEARS": self.membership_validity_years,
            "CONFLICT_RETRIES": self.workflow_conflict_retries,
            "REJECTION_STAGES": self.rejection_stages,
        }

    def as_flask_config(self) -> dict[str, object]:
        """Render settings as a mapping compatible with Flask.config."""
        return {
            "SECRET_KEY": self.secret_key,
            "SQLALCHEMY_DATABASE_URI": self.sqlalchemy_database_uri,
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "SQLALCHEMY_ECHO": self.sqlalchemy_echo,
            "WORKFLOW_CONFIG": self.workflow_config,
        }
