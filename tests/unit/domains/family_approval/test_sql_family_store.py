# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for SqlFamilyStore with a mocked async session."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from src.domains.family_approval.errors import (
    RecordConflictError,
    StoreUnavailableError,
)
from src.domains.family_approval.store import (
    ProfileFields,
    SqlFamilyStore,
    StudentFields,
)
from src.infrastructure.database.models.family import FamilyApproval, Profile
from src.models.family_approval import ApprovalStatus

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_session() -> MagicMock:
    """Session usable as `async with sessionmaker() as s, s.begin()`."""
    session = MagicMock()
    session.__aenter__.return_value = session
    session.begin.return_value.__aenter__.return_value = None
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def store(mock_session: MagicMock) -> SqlFamilyStore:
    sessionmaker = MagicMock(return_value=mock_session)
    return SqlFamilyStore(sessionmaker, "child.eleve.app")


def _scalar_result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _approval_row(**overrides) -> FamilyApproval:
    values = {
        "id": str(uuid4()),
        "parent_id": str(uuid4()),
        "organization_id": str(uuid4()),
        "parent_email": "parent@example.com",
        "parent_name": "Jordan Parent",
        "status": "pending",
        "children_data": [
            {"name": "Alex", "age": 9, "level": "Beginner", "profile_image": None},
            {"name": "Bea", "age": "twelve", "level": "Advanced"},
        ],
        "parent_notes": "Two kids",
        "admin_notes": None,
        "approved_by": None,
        "approved_at": None,
        "expires_at": NOW,
        "created_at": NOW,
    }
    values.update(overrides)
    return FamilyApproval(**values)


class TestLoadApproval:
    """Tests for SqlFamilyStore.load_approval."""

    @pytest.mark.asyncio
    async def test_maps_row_to_request(self, store, mock_session) -> None:
        row = _approval_row()
        mock_session.get.return_value = row

        request = await store.load_approval(row.id)

        assert request.id == row.id
        assert request.status == ApprovalStatus.PENDING
        assert request.parent.email == "parent@example.com"
        assert [c.name for c in request.children] == ["Alex", "Bea"]
        assert request.children[0].age == 9
        # Unparseable age is kept empty so only that child fails validation
        assert request.children[1].age is None
        assert request.children[1].level == "Advanced"

    @pytest.mark.asyncio
    async def test_missing_row(self, store, mock_session) -> None:
        mock_session.get.return_value = None

        assert await store.load_approval(str(uuid4())) is None

    @pytest.mark.asyncio
    async def test_malformed_id_is_not_found(self, store, mock_session) -> None:
        assert await store.load_approval("not-a-uuid") is None
        mock_session.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_error_is_store_unavailable(self, store, mock_session) -> None:
        mock_session.get.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

        with pytest.raises(StoreUnavailableError):
            await store.load_approval(str(uuid4()))

    @pytest.mark.asyncio
    async def test_timeout_is_store_unavailable(self, store, mock_session) -> None:
        mock_session.get.side_effect = TimeoutError()

        with pytest.raises(StoreUnavailableError):
            await store.load_approval(str(uuid4()))


class TestUpdateApprovalStatus:
    """Tests for the conditional status update."""

    @pytest.mark.asyncio
    async def test_updated_when_still_pending(self, store, mock_session) -> None:
        approval_id = str(uuid4())
        mock_session.execute.return_value = _scalar_result(approval_id)

        updated = await store.update_approval_status(
            approval_id, ApprovalStatus.APPROVED, "actor-1", NOW, "ok"
        )

        assert updated is True
        mock_session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_updated_when_decided(self, store, mock_session) -> None:
        mock_session.execute.return_value = _scalar_result(None)

        assert await store.update_approval_status(
            str(uuid4()), ApprovalStatus.REJECTED, "actor-1", NOW
        ) is False


class TestRecordWrites:
    """Tests for profile and student record writes."""

    @pytest.mark.asyncio
    async def test_write_profile_uses_identity_id(self, store, mock_session) -> None:
        profile_id = await store.write_profile(
            "identity-1",
            ProfileFields(email="alex@child.eleve.app", full_name="Alex", organization_id="org-1"),
        )

        assert profile_id == "identity-1"
        added = mock_session.add.call_args.args[0]
        assert isinstance(added, Profile)
        assert added.role == "student"

    @pytest.mark.asyncio
    async def test_integrity_error_is_conflict(self, store, mock_session) -> None:
        mock_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(RecordConflictError):
            await store.write_profile(
                "identity-1",
                ProfileFields(email="alex@child.eleve.app", full_name="Alex", organization_id="org-1"),
            )

    @pytest.mark.asyncio
    async def test_write_domain_record_fields(self, store, mock_session) -> None:
        await store.write_domain_record(
            "identity-1",
            StudentFields(name="Alex", age=9, level="Beginner", organization_id="org-1"),
        )

        student = mock_session.add.call_args.args[0]
        assert student.user_id == "identity-1"
        assert student.is_approved is True
        assert student.is_active is True
        assert student.coach_id is None

    @pytest.mark.asyncio
    async def test_delete_missing_record_returns_false(self, store, mock_session) -> None:
        mock_session.execute.return_value = _scalar_result(None)

        assert await store.delete_domain_record("record-1") is False
        assert await store.delete_profile("identity-1") is False


class TestLookups:
    """Tests for handle, organization and expiry queries."""

    @pytest.mark.asyncio
    async def test_exists_handle(self, store, mock_session) -> None:
        mock_session.execute.return_value = _scalar_result("identity-1")

        assert await store.exists_handle("alex") is True

    @pytest.mark.asyncio
    async def test_organization_name(self, store, mock_session) -> None:
        mock_session.execute.return_value = _scalar_result("Skate Lab")

        assert await store.get_organization_name(str(uuid4())) == "Skate Lab"

    @pytest.mark.asyncio
    async def test_expire_pending_returns_ids(self, store, mock_session) -> None:
        result = MagicMock()
        result.scalars.return_value.all.return_value = ["a", "b"]
        mock_session.execute.return_value = result

        assert await store.expire_pending(NOW) == ["a", "b"]
