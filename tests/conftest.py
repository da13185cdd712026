# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- In-memory identity provider, datastore and email channel
- Settings and a fully wired approval saga
- Sample approvals
"""

import asyncio
import os
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

import pytest

# Actors are declared at import time; keep them off Redis
os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")

from src.core.config.settings import Settings  # noqa: E402
from src.domains.family_approval import (  # noqa: E402
    ApprovalSaga,
    FamilyStore,
    ProfileFields,
    RecordConflictError,
    StoreUnavailableError,
    StudentFields,
    create_approval_saga,
)
from src.infrastructure.identity.base import (  # noqa: E402
    IdentityConflictError,
    IdentityProvider,
)
from src.infrastructure.notifications.channels.base import (  # noqa: E402
    BaseEmailChannel,
    ChannelResult,
    ChannelType,
    EmailMessage,
)
from src.models.family_approval import (  # noqa: E402
    ApprovalStatus,
    ChildSpec,
    FamilyApprovalRequest,
    ParentContact,
)
from src.utils.datetime import utc_now  # noqa: E402


# =============================================================================
# Fakes
# =============================================================================


class FakeIdentityProvider(IdentityProvider):
    """Identity provider kept in a dict, with failure hooks."""

    def __init__(self) -> None:
        self.identities: dict[str, dict[str, Any]] = {}
        self.create_calls: list[str] = []
        self.delete_calls: list[str] = []
        self.list_calls = 0
        self.create_errors: dict[str, Exception] = {}
        self.delete_errors: dict[str, Exception] = {}
        self.create_started: asyncio.Event | None = None
        self.create_gate: asyncio.Event | None = None

    def seed(self, username: str) -> str:
        identity_id = str(uuid4())
        self.identities[identity_id] = {
            "email": f"{username}@child.eleve.app",
            "password": "seeded",
            "attributes": {"username": username},
        }
        return identity_id

    def usernames(self) -> set[str]:
        return {i["attributes"]["username"] for i in self.identities.values()}

    async def create_identity(self, email: str, password: str, attributes: dict[str, Any]) -> str:
        username = attributes["username"]
        self.create_calls.append(username)

        if self.create_started is not None:
            self.create_started.set()
        if self.create_gate is not None:
            await self.create_gate.wait()

        if username in self.create_errors:
            raise self.create_errors[username]
        if username in self.usernames():
            raise IdentityConflictError("User already registered", status_code=422)

        identity_id = str(uuid4())
        self.identities[identity_id] = {
            "email": email,
            "password": password,
            "attributes": dict(attributes),
        }
        return identity_id

    async def delete_identity(self, identity_id: str) -> bool:
        self.delete_calls.append(identity_id)
        if identity_id in self.delete_errors:
            raise self.delete_errors[identity_id]
        return self.identities.pop(identity_id, None) is not None

    async def list_handles(self) -> set[str]:
        self.list_calls += 1
        return self.usernames()


class FakeFamilyStore(FamilyStore):
    """Datastore kept in dicts, enforcing the same keys as the schema."""

    def __init__(self, email_domain: str = "child.eleve.app") -> None:
        self.email_domain = email_domain
        self.approvals: dict[str, FamilyApprovalRequest] = {}
        self.organizations: dict[str, str] = {}
        self.profiles: dict[str, ProfileFields] = {}
        self.students: dict[str, dict[str, Any]] = {}
        self.status_updates: list[tuple[str, ApprovalStatus, str]] = []
        # Failure hooks, keyed by child full name
        self.profile_write_errors: dict[str, Exception] = {}
        self.student_write_errors: dict[str, Exception] = {}
        self.profile_delete_error: Exception | None = None
        self.load_error: Exception | None = None
        self.organization_error: Exception | None = None
        self.concurrent_decision = False
        self.status_update_error: Exception | None = None
        self.profile_started: asyncio.Event | None = None
        self.profile_gate: asyncio.Event | None = None

    async def load_approval(self, request_id: str) -> FamilyApprovalRequest | None:
        if self.load_error is not None:
            raise self.load_error
        return self.approvals.get(request_id)

    async def update_approval_status(
        self,
        request_id: str,
        status: ApprovalStatus,
        actor_id: str,
        decided_at: datetime,
        admin_notes: str | None = None,
    ) -> bool:
        if self.status_update_error is not None:
            raise self.status_update_error
        approval = self.approvals.get(request_id)
        if approval is None or approval.status != ApprovalStatus.PENDING or self.concurrent_decision:
            return False

        update: dict[str, Any] = {"status": status, "approved_by": actor_id, "approved_at": decided_at}
        if admin_notes is not None:
            update["admin_notes"] = admin_notes
        self.approvals[request_id] = approval.model_copy(update=update)
        self.status_updates.append((request_id, status, actor_id))
        return True

    async def write_profile(self, identity_id: str, fields: ProfileFields) -> str:
        if self.profile_started is not None:
            self.profile_started.set()
        if self.profile_gate is not None:
            await self.profile_gate.wait()
        if fields.full_name in self.profile_write_errors:
            raise self.profile_write_errors[fields.full_name]
        if identity_id in self.profiles or any(p.email == fields.email for p in self.profiles.values()):
            raise RecordConflictError("profile exists")
        self.profiles[identity_id] = fields
        return identity_id

    async def delete_profile(self, profile_id: str) -> bool:
        if self.profile_delete_error is not None:
            raise self.profile_delete_error
        return self.profiles.pop(profile_id, None) is not None

    async def write_domain_record(self, profile_id: str, fields: StudentFields) -> str:
        if fields.name in self.student_write_errors:
            raise self.student_write_errors[fields.name]
        if profile_id not in self.profiles:
            raise RecordConflictError("profile missing")
        if any(s["user_id"] == profile_id for s in self.students.values()):
            raise RecordConflictError("student exists")
        record_id = str(uuid4())
        self.students[record_id] = {"user_id": profile_id, "fields": fields}
        return record_id

    async def delete_domain_record(self, record_id: str) -> bool:
        return self.students.pop(record_id, None) is not None

    async def exists_handle(self, handle: str) -> bool:
        email = f"{handle}@{self.email_domain}"
        return any(p.email == email for p in self.profiles.values())

    async def get_organization_name(self, organization_id: str) -> str | None:
        if self.organization_error is not None:
            raise self.organization_error
        return self.organizations.get(organization_id)

    async def expire_pending(self, now: datetime) -> list[str]:
        expired = []
        for approval_id, approval in self.approvals.items():
            if (
                approval.status == ApprovalStatus.PENDING
                and approval.expires_at is not None
                and approval.expires_at < now
            ):
                self.approvals[approval_id] = approval.model_copy(
                    update={"status": ApprovalStatus.EXPIRED}
                )
                expired.append(approval_id)
        return expired


class FakeEmailChannel(BaseEmailChannel):
    """Email channel that records messages."""

    def __init__(self) -> None:
        super().__init__()
        self.outbox: list[EmailMessage] = []
        self.fail = False
        self.crash: Exception | None = None

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.RESEND

    async def send(self, message: EmailMessage) -> ChannelResult:
        if self.crash is not None:
            raise self.crash
        if self.fail:
            return self.failed("Resend error 500: boom")
        self.outbox.append(message)
        return self.sent(message_id=f"msg-{len(self.outbox)}")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults."""
    return Settings()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def family_store() -> FakeFamilyStore:
    return FakeFamilyStore()


@pytest.fixture
def email_channel() -> FakeEmailChannel:
    return FakeEmailChannel()


@pytest.fixture
def saga(
    family_store: FakeFamilyStore,
    identity_provider: FakeIdentityProvider,
    email_channel: FakeEmailChannel,
    settings: Settings,
) -> ApprovalSaga:
    """Approval saga wired to the in-memory collaborators."""
    return create_approval_saga(family_store, identity_provider, email_channel, settings)


@pytest.fixture
def sample_organization_id() -> str:
    return "550e8400-e29b-41d4-a716-446655440000"


@pytest.fixture
def sample_actor_id() -> str:
    return "550e8400-e29b-41d4-a716-446655440099"


@pytest.fixture
def make_approval(family_store: FakeFamilyStore, sample_organization_id: str):
    """Factory that stores a pending approval for the given children."""
    family_store.organizations[sample_organization_id] = "Skate Lab"

    def _make(
        children: list[dict[str, Any]],
        status: ApprovalStatus = ApprovalStatus.PENDING,
        expires_at: datetime | None = None,
    ) -> FamilyApprovalRequest:
        approval = FamilyApprovalRequest(
            id=str(uuid4()),
            parent_id=str(uuid4()),
            organization_id=sample_organization_id,
            parent=ParentContact(email="parent@example.com", name="Jordan Parent"),
            children=[ChildSpec(**child) for child in children],
            status=status,
            expires_at=expires_at or utc_now() + timedelta(days=7),
            created_at=utc_now(),
        )
        family_store.approvals[approval.id] = approval
        return approval

    return _make


@pytest.fixture
def three_children() -> list[dict[str, Any]]:
    return [
        {"name": "Alex Johnson", "age": 9, "level": "Beginner"},
        {"name": "Bea Johnson", "age": 12, "level": "Intermediate"},
        {"name": "Cam Johnson", "age": 15, "level": "Advanced", "notes": "Goofy stance"},
    ]


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
