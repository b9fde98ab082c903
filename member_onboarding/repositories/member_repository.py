"""Member repository - data access for workflow subjects."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from member_onboarding.exceptions import ConcurrentUpdateError, PersistenceError
from member_onboarding.models import Member, MemberUser
from member_onboarding.repositories.base_repository import BaseRepository
from member_onboarding.utils import next_sequence_code, utcnow

logger = logging.getLogger(__name__)


class MemberRepository(BaseRepository[Member]):
    """Repository for Member and MemberUser persistence."""

    def __init__(self, db: SQLAlchemy) -> None:
        super().__init__(db, Member)

    def get_by_member_id(self, member_id: str) -> Optional[Member]:
        """Get a member by its public identifier.

        Args:
            member_id: Public member identifier (e.g. MEM-00001)

        Returns:
            Member instance or None
        """
        return self.get_one_by_filter(member_id=member_id)

    def reload(self, member_id: str) -> Optional[Member]:
        """Discard cached state and read the member again from storage."""
        self.db.session.expire_all()
        return self.get_by_member_id(member_id)

    def next_member_id(self) -> str:
        """Generate the next sequential member identifier (MEM-00001)."""
        latest = self.query().order_by(Member.id.desc()).first()
        return next_sequence_code(latest.member_id if latest else None, "MEM")

    def next_application_number(self, year: Optional[int] = None) -> str:
        """Generate the next application number for a year (APP-2026-00001)."""
        prefix = f"APP-{year or utcnow().year}"
        latest = (
            self.query()
            .filter(Member.application_number.like(f"{prefix}-%"))
            .order_by(Member.id.desc())
            .first()
        )
        return next_sequence_code(
            latest.application_number if latest else None, prefix
        )

    def create_member(
        self, data: Dict[str, Any], users: List[Dict[str, Any]]
    ) -> Member:
        """Create a member with its users in one transaction.

        Args:
            data: Member column values (identifiers and status included)
            users: User column values

        Returns:
            Persisted member instance

        Raises:
            PersistenceError: If the insert violates a constraint
        """
        member = Member(**data)
        for user_data in users:
            member.users.append(MemberUser(**user_data))
        self.add(member)
        try:
            self.commit()
        except IntegrityError as exc:
            self.rollback()
            logger.error(f"Failed to create member {data.get('member_id')}: {exc}")
            raise PersistenceError(
                f"Could not create member {data.get('member_id')}"
            ) from exc
        return member

    def save(self, member: Member) -> None:
        """Commit pending changes to a member conditionally on its version.

        ``updated_at`` is always touched so the UPDATE carries the version
        check even when only child rows were added.

        Raises:
            ConcurrentUpdateError: If another transaction changed the member
                first or already inserted the same history row
        """
        member_id = member.member_id
        member.updated_at = utcnow()
        try:
            self.commit()
        except (StaleDataError, IntegrityError) as exc:
            self.rollback()
            logger.warning(f"Concurrent update detected on {member_id}: {exc}")
            raise ConcurrentUpdateError(member_id) from exc
