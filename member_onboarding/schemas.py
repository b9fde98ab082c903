"""Pydantic schemas for request validation."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema accepting camelCase payload keys alongside snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class MemberUserInput(CamelModel):
    """A contact person attached to the member."""

    id: Optional[int] = None
    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    user_type: Optional[str] = None
    designation: Optional[str] = None
    contact_number: Optional[str] = None
    correspondence_user: Optional[bool] = None
    marketing_focal_point: Optional[bool] = None
    investor_focal_point: Optional[bool] = None
    newsletter_subscription: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        cleaned = value.strip().lower()
        if "@" not in cleaned:
            raise ValueError("Email address is not valid")
        return cleaned


class CreateMemberRequest(CamelModel):
    """Phase 1 payload. Status and payment status are never accepted."""

    category: Optional[str] = None
    tier: Optional[str] = None
    organisation_info: Dict[str, Any] = Field(default_factory=dict)
    member_consent: Dict[str, Any] = Field(default_factory=dict)
    additional_info: Dict[str, Any] = Field(default_factory=dict)
    users: List[MemberUserInput] = Field(default_factory=list)

    @field_validator("users")
    @classmethod
    def require_user_emails(cls, value: List[MemberUserInput]) -> List[MemberUserInput]:
        for user in value:
            if not user.email:
                raise ValueError("Every user must have an email address")
        return value


class UpdateMemberRequest(CamelModel):
    """Phase 2 / Phase 3 partial payload."""

    category: Optional[str] = None
    tier: Optional[str] = None
    organisation_info: Optional[Dict[str, Any]] = None
    member_consent: Optional[Dict[str, Any]] = None
    additional_info: Optional[Dict[str, Any]] = None
    users: Optional[List[MemberUserInput]] = None


class StatusActionRequest(CamelModel):
    """Approve / reject payload."""

    action_by: str = Field(..., min_length=1)
    action_by_email: str = Field(..., min_length=3)
    comments: Optional[str] = None

    @field_validator("action_by_email")
    @classmethod
    def normalise_email(cls, value: str) -> str:
        cleaned = value.strip().lower()
        if "@" not in cleaned:
            raise ValueError("Email address is not valid")
        return cleaned


class PaymentLinkRequest(CamelModel):
    """Payment link payload."""

    payment_link: str = Field(..., min_length=1)
    payment_status: Optional[str] = None


class PaymentStatusRequest(CamelModel):
    """Payment completion / reset payload."""

    payment_status: str = Field(..., min_length=1)
