# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Relational datastore access for the family approval saga.

FamilyStore is the narrow contract the saga depends on. SqlFamilyStore
implements it over SQLAlchemy async sessions. Every operation runs in
its own session and transaction, so a completed step is durable before
the next one starts.

Driver errors never leave this module: integrity violations become
RecordConflictError, everything else (connection loss, timeouts,
statement errors) becomes StoreUnavailableError.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domains.family_approval.errors import (
    RecordConflictError,
    StoreUnavailableError,
)
from src.infrastructure.database.models.family import (
    FamilyApproval,
    Organization,
    Profile,
    Student,
)
from src.models.family_approval import (
    ApprovalStatus,
    ChildSpec,
    FamilyApprovalRequest,
    ParentContact,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileFields:
    """Fields of a directory profile."""

    email: str
    full_name: str
    organization_id: str
    role: str = "student"


@dataclass(frozen=True)
class StudentFields:
    """Fields of a student record."""

    name: str
    age: int
    level: str
    organization_id: str
    notes: str | None = None
    profile_image: str | None = None


class FamilyStore(ABC):
    """Datastore operations used by the family approval saga."""

    @abstractmethod
    async def load_approval(self, request_id: str) -> FamilyApprovalRequest | None:
        """Load an approval by id. Returns None when it does not exist."""
        ...

    @abstractmethod
    async def update_approval_status(
        self,
        request_id: str,
        status: ApprovalStatus,
        actor_id: str,
        decided_at: datetime,
        admin_notes: str | None = None,
    ) -> bool:
        """Move a pending approval to a decided status.

        The write only applies while the approval is still pending.

        Returns:
            True if the approval was updated, False if it was no longer
            pending (or gone).
        """
        ...

    @abstractmethod
    async def write_profile(self, identity_id: str, fields: ProfileFields) -> str:
        """Create the profile of an identity. Returns the profile id."""
        ...

    @abstractmethod
    async def delete_profile(self, profile_id: str) -> bool:
        """Delete a profile. Returns False if it was already gone."""
        ...

    @abstractmethod
    async def write_domain_record(self, profile_id: str, fields: StudentFields) -> str:
        """Create the student record of a profile. Returns the record id."""
        ...

    @abstractmethod
    async def delete_domain_record(self, record_id: str) -> bool:
        """Delete a student record. Returns False if it was already gone."""
        ...

    @abstractmethod
    async def exists_handle(self, handle: str) -> bool:
        """Check whether a profile already uses the handle's login email."""
        ...

    @abstractmethod
    async def get_organization_name(self, organization_id: str) -> str | None:
        """Get an organization's display name."""
        ...

    @abstractmethod
    async def expire_pending(self, now: datetime) -> list[str]:
        """Mark pending approvals whose expiry has passed as expired.

        Returns:
            Ids of the approvals that were expired.
        """
        ...


def _is_uuid(value: str) -> bool:
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


def _child_from_json(data: Any) -> ChildSpec:
    """Build a ChildSpec from stored JSON, keeping whatever is usable."""
    if not isinstance(data, dict):
        return ChildSpec()
    try:
        return ChildSpec.model_validate(data)
    except ValidationError:
        # Unparseable age; leave it empty so the child fails validation alone
        return ChildSpec(
            name=str(data.get("name") or ""),
            level=data.get("level") if isinstance(data.get("level"), str) else None,
            notes=data.get("notes") if isinstance(data.get("notes"), str) else None,
        )


class SqlFamilyStore(FamilyStore):
    """FamilyStore over SQLAlchemy async sessions.

    Attributes:
        child_email_domain: Domain of child login emails, used to map a
            handle to its profile email.

    Example:
        store = SqlFamilyStore(get_sessionmaker(), "child.eleve.app")
        request = await store.load_approval(request_id)
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        child_email_domain: str,
    ) -> None:
        """Initialize the store.

        Args:
            sessionmaker: Factory for async sessions.
            child_email_domain: Domain of child login emails.
        """
        self._sessionmaker = sessionmaker
        self.child_email_domain = child_email_domain.lower()

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Run one operation in its own committed transaction."""
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    yield session
        except IntegrityError as e:
            logger.warning("%s violated a constraint: %s", operation, e.orig)
            raise RecordConflictError(
                f"{operation} conflicts with an existing record",
                details={"operation": operation},
            ) from e
        except (DBAPIError, SQLAlchemyError, TimeoutError, OSError) as e:
            logger.error("%s failed: %s", operation, e)
            raise StoreUnavailableError(
                f"Datastore unavailable during {operation}",
                details={"operation": operation},
            ) from e

    async def load_approval(self, request_id: str) -> FamilyApprovalRequest | None:
        if not _is_uuid(request_id):
            return None

        async with self._transaction("load approval") as session:
            row = await session.get(FamilyApproval, request_id)
            if row is None:
                return None
            return self._to_request(row)

    async def update_approval_status(
        self,
        request_id: str,
        status: ApprovalStatus,
        actor_id: str,
        decided_at: datetime,
        admin_notes: str | None = None,
    ) -> bool:
        values: dict[str, Any] = {
            "status": status.value,
            "approved_by": actor_id,
            "approved_at": decided_at,
        }
        if admin_notes is not None:
            values["admin_notes"] = admin_notes

        async with self._transaction("update approval status") as session:
            result = await session.execute(
                update(FamilyApproval)
                .where(
                    FamilyApproval.id == request_id,
                    FamilyApproval.status == ApprovalStatus.PENDING.value,
                )
                .values(**values)
                .returning(FamilyApproval.id)
            )
            updated = result.scalar_one_or_none() is not None

        if updated:
            logger.info("Approval %s set to %s by %s", request_id, status.value, actor_id)
        return updated

    async def write_profile(self, identity_id: str, fields: ProfileFields) -> str:
        async with self._transaction("write profile") as session:
            profile = Profile(
                id=identity_id,
                email=fields.email,
                full_name=fields.full_name,
                role=fields.role,
                organization_id=fields.organization_id,
            )
            session.add(profile)
            await session.flush()
            profile_id = profile.id

        logger.info("Profile created: %s", profile_id)
        return profile_id

    async def delete_profile(self, profile_id: str) -> bool:
        async with self._transaction("delete profile") as session:
            result = await session.execute(
                delete(Profile).where(Profile.id == profile_id).returning(Profile.id)
            )
            return result.scalar_one_or_none() is not None

    async def write_domain_record(self, profile_id: str, fields: StudentFields) -> str:
        async with self._transaction("write student record") as session:
            student = Student(
                user_id=profile_id,
                organization_id=fields.organization_id,
                name=fields.name,
                age=fields.age,
                level=fields.level,
                notes=fields.notes,
                profile_image=fields.profile_image,
                coach_id=None,
                is_approved=True,
                is_active=True,
            )
            session.add(student)
            await session.flush()
            record_id = student.id

        logger.info("Student record created: %s", record_id)
        return record_id

    async def delete_domain_record(self, record_id: str) -> bool:
        async with self._transaction("delete student record") as session:
            result = await session.execute(
                delete(Student).where(Student.id == record_id).returning(Student.id)
            )
            return result.scalar_one_or_none() is not None

    async def exists_handle(self, handle: str) -> bool:
        email = f"{handle}@{self.child_email_domain}"
        async with self._transaction("check handle") as session:
            result = await session.execute(
                select(Profile.id).where(Profile.email == email).limit(1)
            )
            return result.scalar_one_or_none() is not None

    async def get_organization_name(self, organization_id: str) -> str | None:
        if not _is_uuid(organization_id):
            return None

        async with self._transaction("load organization") as session:
            result = await session.execute(
                select(Organization.name).where(Organization.id == organization_id)
            )
            return result.scalar_one_or_none()

    async def expire_pending(self, now: datetime) -> list[str]:
        async with self._transaction("expire approvals") as session:
            result = await session.execute(
                update(FamilyApproval)
                .where(
                    FamilyApproval.status == ApprovalStatus.PENDING.value,
                    FamilyApproval.expires_at.is_not(None),
                    FamilyApproval.expires_at < now,
                )
                .values(status=ApprovalStatus.EXPIRED.value)
                .returning(FamilyApproval.id)
            )
            expired = [str(approval_id) for approval_id in result.scalars().all()]

        if expired:
            logger.info("Expired %d pending approvals", len(expired))
        return expired

    @staticmethod
    def _to_request(row: FamilyApproval) -> FamilyApprovalRequest:
        children_data = row.children_data if isinstance(row.children_data, list) else []
        return FamilyApprovalRequest(
            id=str(row.id),
            parent_id=str(row.parent_id) if row.parent_id else None,
            organization_id=str(row.organization_id),
            parent=ParentContact(email=row.parent_email, name=row.parent_name),
            children=[_child_from_json(item) for item in children_data],
            status=ApprovalStatus(row.status),
            approved_by=str(row.approved_by) if row.approved_by else None,
            approved_at=row.approved_at,
            parent_notes=row.parent_notes,
            admin_notes=row.admin_notes,
            expires_at=row.expires_at,
            created_at=row.created_at,
        )
