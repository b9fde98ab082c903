"""Database models for the member onboarding workflow."""

import enum

from flask_sqlalchemy import SQLAlchemy

from member_onboarding.utils import utcnow

db = SQLAlchemy()


class WorkflowType(str, enum.Enum):
    """Workflow type enumeration (keys the transition table)."""

    MEMBER_ONBOARDING = "MEMBER_ONBOARDING"


class MemberStatus(str, enum.Enum):
    """Statuses used by the default member onboarding ladder.

    The column itself is a plain string: the set of legal approval statuses
    lives in the ``workflow_transitions`` table and can grow without a code
    change.
    """

    PENDING_FORM_SUBMISSION = "pendingFormSubmission"
    PENDING_COMMITTEE_APPROVAL = "pendingCommitteeApproval"
    PENDING_BOARD_APPROVAL = "pendingBoardApproval"
    PENDING_CEO_APPROVAL = "pendingCEOApproval"
    APPROVED_PENDING_PAYMENT = "approvedPendingPayment"
    ACTIVE = "active"
    REJECTED = "rejected"


class PaymentStatus(str, enum.Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class UserType(str, enum.Enum):
    """Member user type enumeration."""

    PRIMARY = "Primary"
    SECONDARY = "Secondary"


class Member(db.Model):
    """Member model - the subject of the onboarding workflow."""

    __tablename__ = "members"

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(
        db.String(20), unique=True, nullable=False, index=True
    )  # e.g. MEM-00001, never reassigned
    application_number = db.Column(
        db.String(30), unique=True, nullable=False, index=True
    )  # e.g. APP-2026-00001
    category = db.Column(db.String(100), nullable=True)
    tier = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(50), nullable=False, index=True)
    organisation_info = db.Column(db.JSON, nullable=False, default=dict)
    member_consent = db.Column(db.JSON, nullable=False, default=dict)
    additional_info = db.Column(db.JSON, nullable=False, default=dict)

    # Set only by the payment phase
    payment_status = db.Column(db.String(30), nullable=False, default="pending")
    payment_link = db.Column(db.String(500), nullable=True)
    valid_until = db.Column(db.DateTime, nullable=True)
    allowed_user_count = db.Column(db.Integer, nullable=True)
    approval_date = db.Column(db.DateTime, nullable=True)
    identity_external_id = db.Column(db.String(200), nullable=True)
    identity_provisioned_at = db.Column(db.DateTime, nullable=True)

    # Optimistic concurrency token, checked on every UPDATE
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    users = db.relationship(
        "MemberUser",
        backref="member",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="MemberUser.id",
    )
    approval_history = db.relationship(
        "ApprovalHistoryEntry",
        backref="member",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ApprovalHistoryEntry.id",
    )
    rejection_history = db.relationship(
        "RejectionHistoryEntry",
        backref="member",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="RejectionHistoryEntry.id",
    )

    @property
    def primary_user(self):
        """Return the user flagged as the primary contact, if any."""
        for user in self.users:
            if user.user_type == UserType.PRIMARY.value:
                return user
        return None

    def to_dict(self):
        """Convert model to dictionary."""
        return {
            "member_id": self.member_id,
            "application_number": self.application_number,
            "category": self.category,
            "tier": self.tier,
            "status": self.status,
            "organisation_info": self.organisation_info or {},
            "member_consent": self.member_consent or {},
            "additional_info": self.additional_info or {},
            "payment_status": self.payment_status,
            "payment_link": self.payment_link,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
            "allowed_user_count": self.allowed_user_count,
            "approval_date": (
                self.approval_date.isoformat() if self.approval_date else None
            ),
            "identity_provisioned": self.identity_external_id is not None,
            "users": [user.to_dict() for user in self.users],  # type: ignore
            "approval_history": [
                entry.to_dict() for entry in self.approval_history  # type: ignore
            ],
            "rejection_history": [
                entry.to_dict() for entry in self.rejection_history  # type: ignore
            ],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class MemberUser(db.Model):
    """Member user model - contact people attached to a member."""

    __tablename__ = "member_users"

    id = db.Column(db.Integer, primary_key=True)
    member_pk = db.Column(
        db.Integer, db.ForeignKey("members.id"), nullable=False, index=True
    )
    username = db.Column(db.String(200), nullable=True)
    email = db.Column(db.String(200), nullable=False, index=True)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    user_type = db.Column(
        db.String(20), nullable=False, default=UserType.SECONDARY.value
    )
    designation = db.Column(db.String(200), nullable=True)
    contact_number = db.Column(db.String(50), nullable=True)
    correspondence_user = db.Column(db.Boolean, default=False, nullable=False)
    marketing_focal_point = db.Column(db.Boolean, default=False, nullable=False)
    investor_focal_point = db.Column(db.Boolean, default=False, nullable=False)
    newsletter_subscription = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "user_type": self.user_type,
            "designation": self.designation,
            "contact_number": self.contact_number,
            "correspondence_user": self.correspondence_user,
            "marketing_focal_point": self.marketing_focal_point,
            "investor_focal_point": self.investor_focal_point,
            "newsletter_subscription": self.newsletter_subscription,
        }


class ApprovalHistoryEntry(db.Model):
    """Approval history model - append-only log of accepted approvals."""

    __tablename__ = "member_approval_history"
    __table_args__ = (
        db.UniqueConstraint(
            "member_pk", "order", "approver_email", name="uq_approval_actor_order"
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    member_pk = db.Column(
        db.Integer, db.ForeignKey("members.id"), nullable=False, index=True
    )
    approval_stage = db.Column(db.String(50), nullable=False)
    order = db.Column(db.Integer, nullable=False)
    approved_by = db.Column(db.String(200), nullable=False)
    approver_email = db.Column(db.String(200), nullable=False)
    comments = db.Column(db.Text, nullable=True)
    approved_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        """Convert model to dictionary."""
        return {
            "approval_stage": self.approval_stage,
            "order": self.order,
            "approved_by": self.approved_by,
            "approver_email": self.approver_email,
            "comments": self.comments,
            "approved_at": self.approved_at.isoformat(),
        }


class RejectionHistoryEntry(db.Model):
    """Rejection history model - append-only log of rejections and feedback."""

    __tablename__ = "member_rejection_history"
    __table_args__ = (
        db.UniqueConstraint(
            "member_pk", "order", "rejector_email", name="uq_rejection_actor_order"
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    member_pk = db.Column(
        db.Integer, db.ForeignKey("members.id"), nullable=False, index=True
    )
    rejection_stage = db.Column(db.String(50), nullable=False)
    order = db.Column(db.Integer, nullable=False)
    rejected_by = db.Column(db.String(200), nullable=False)
    rejector_email = db.Column(db.String(200), nullable=False)
    reason = db.Column(db.Text, nullable=False)
    rejected_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        """Convert model to dictionary."""
        return {
            "rejection_stage": self.rejection_stage,
            "order": self.order,
            "rejected_by": self.rejected_by,
            "rejector_email": self.rejector_email,
            "reason": self.reason,
            "rejected_at": self.rejected_at.isoformat(),
        }


class WorkflowTransition(db.Model):
    """Workflow transition model - configured approval ladder rows."""

    __tablename__ = "workflow_transitions"
    __table_args__ = (
        db.UniqueConstraint(
            "workflow_type", "current_status", name="uq_transition_status"
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    workflow_type = db.Column(db.String(50), nullable=False, index=True)
    current_status = db.Column(db.String(50), nullable=False)
    next_status = db.Column(db.String(50), nullable=False)
    phase = db.Column(db.String(50), nullable=False)  # WorkflowPhase value
    approval_stage = db.Column(db.String(50), nullable=False)
    order = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    description = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        """Convert model to dictionary."""
        return {
            "workflow_type": self.workflow_type,
            "current_status": self.current_status,
            "next_status": self.next_status,
            "phase": self.phase,
            "approval_stage": self.approval_stage,
            "order": self.order,
            "is_active": self.is_active,
            "description": self.description,
        }
