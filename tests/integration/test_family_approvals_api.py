# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for Family Approvals API endpoints."""

from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.dependencies import get_approval_saga
from src.api.v1 import router as v1_router
from src.domains.family_approval import RecordConflictError, StoreUnavailableError
from src.models.family_approval import ApprovalStatus

APPROVE_URL = "/api/v1/family-approvals/approve"
REJECT_URL = "/api/v1/family-approvals/reject"


@pytest.fixture
def app(saga):
    """Create test FastAPI app wired to the in-memory saga."""
    app = FastAPI()
    app.include_router(v1_router)
    app.dependency_overrides[get_approval_saga] = lambda: saga
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


class TestFamilyApprovalsAPIRouting:
    """Tests for family approvals API routing."""

    def test_routes_registered(self, client):
        """Test that family approval routes are registered."""
        # An empty body reaches validation only when the route exists
        assert client.post(APPROVE_URL, json={}).status_code == 422
        assert client.post(REJECT_URL, json={}).status_code == 422
        assert client.post("/api/v1/family-approvals/unknown", json={}).status_code == 404


class TestApproveEndpoint:
    """Tests for POST /family-approvals/approve."""

    def test_approve_all_children(self, client, make_approval, three_children, sample_actor_id, email_channel):
        """Test a fully successful approval returns 200 in camelCase."""
        approval = make_approval(three_children)

        response = client.post(
            APPROVE_URL,
            json={"requestId": approval.id, "actorId": sample_actor_id, "adminNotes": "Welcome"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["requestId"] == approval.id
        assert data["approvedCount"] == 3
        assert data["failedChildren"] == []
        assert data["requestStatus"] == "approved"
        assert data["notificationStatus"] == "sent"
        assert [s["username"] for s in data["studentsCreated"]] == [
            "alexjohnson",
            "beajohnson",
            "camjohnson",
        ]
        assert all(s["studentId"] for s in data["studentsCreated"])
        assert len(email_channel.outbox) == 1

    def test_partial_failure_returns_424(self, client, make_approval, three_children, sample_actor_id, family_store):
        """Test that a failed child yields 424 with the same body shape."""
        family_store.profile_write_errors["Bea Johnson"] = RecordConflictError("profile exists")
        approval = make_approval(three_children)

        response = client.post(APPROVE_URL, json={"requestId": approval.id, "actorId": sample_actor_id})

        assert response.status_code == 424
        data = response.json()
        assert data["approvedCount"] == 2
        assert data["requestStatus"] == "approved"
        assert [f["name"] for f in data["failedChildren"]] == ["Bea Johnson"]
        assert family_store.approvals[approval.id].status == ApprovalStatus.APPROVED

    def test_all_children_invalid_stays_pending(self, client, make_approval, sample_actor_id, family_store):
        """Test that zero created accounts leave the request pending."""
        approval = make_approval([{"name": "Sam", "age": 25, "level": "Beginner"}])

        response = client.post(APPROVE_URL, json={"requestId": approval.id, "actorId": sample_actor_id})

        assert response.status_code == 424
        data = response.json()
        assert data["approvedCount"] == 0
        assert data["requestStatus"] == "pending"
        assert data["notificationStatus"] == "skipped"
        assert family_store.approvals[approval.id].status == ApprovalStatus.PENDING

    def test_not_found(self, client, sample_actor_id):
        """Test that an unknown request returns 404."""
        response = client.post(APPROVE_URL, json={"requestId": str(uuid4()), "actorId": sample_actor_id})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not_found"

    def test_already_processed(self, client, make_approval, three_children, sample_actor_id):
        """Test that a decided request returns 409."""
        approval = make_approval(three_children, status=ApprovalStatus.REJECTED)

        response = client.post(APPROVE_URL, json={"requestId": approval.id, "actorId": sample_actor_id})

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "already_processed"

    def test_second_approval_conflicts(self, client, make_approval, three_children, sample_actor_id, identity_provider):
        """Test that approving twice creates no further accounts."""
        approval = make_approval(three_children)
        body = {"requestId": approval.id, "actorId": sample_actor_id}

        assert client.post(APPROVE_URL, json=body).status_code == 200
        calls = len(identity_provider.create_calls)

        assert client.post(APPROVE_URL, json=body).status_code == 409
        assert len(identity_provider.create_calls) == calls

    def test_empty_request(self, client, make_approval, sample_actor_id):
        """Test that a request without children returns 400."""
        approval = make_approval([])

        response = client.post(APPROVE_URL, json={"requestId": approval.id, "actorId": sample_actor_id})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "empty_approval"

    def test_datastore_unavailable(self, client, sample_actor_id, family_store):
        """Test that a datastore outage returns 503."""
        family_store.load_error = StoreUnavailableError("connection refused")

        response = client.post(APPROVE_URL, json={"requestId": str(uuid4()), "actorId": sample_actor_id})

        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "store_unavailable"

    def test_missing_actor_is_validation_error(self, client):
        """Test that a body without actorId is rejected."""
        response = client.post(APPROVE_URL, json={"requestId": str(uuid4())})

        assert response.status_code == 422

    def test_non_uuid_actor_is_validation_error(self, client, make_approval, three_children, identity_provider, family_store):
        """Test that an actorId that is not a UUID is rejected before any account is created."""
        approval = make_approval(three_children)

        response = client.post(APPROVE_URL, json={"requestId": approval.id, "actorId": "admin"})

        assert response.status_code == 422
        assert identity_provider.create_calls == []
        assert family_store.approvals[approval.id].status == ApprovalStatus.PENDING

    def test_finalize_outage_returns_503_and_removes_accounts(
        self, client, make_approval, three_children, sample_actor_id, identity_provider, family_store
    ):
        """Test that a failed status write leaves no accounts behind."""
        approval = make_approval(three_children)
        family_store.status_update_error = StoreUnavailableError("db down")

        response = client.post(APPROVE_URL, json={"requestId": approval.id, "actorId": sample_actor_id})

        assert response.status_code == 503
        assert identity_provider.identities == {}
        assert family_store.students == {}


class TestRejectEndpoint:
    """Tests for POST /family-approvals/reject."""

    def test_reject_pending(self, client, make_approval, three_children, sample_actor_id, family_store, identity_provider):
        """Test rejecting a pending request."""
        approval = make_approval(three_children)

        response = client.post(
            REJECT_URL,
            json={"requestId": approval.id, "actorId": sample_actor_id, "adminNotes": "Full this season"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["requestId"] == approval.id
        assert data["requestStatus"] == "rejected"
        assert data["rejectedAt"]
        stored = family_store.approvals[approval.id]
        assert stored.status == ApprovalStatus.REJECTED
        assert stored.admin_notes == "Full this season"
        assert identity_provider.create_calls == []

    def test_reject_decided(self, client, make_approval, three_children, sample_actor_id):
        """Test that rejecting a decided request returns 409."""
        approval = make_approval(three_children, status=ApprovalStatus.APPROVED)

        response = client.post(REJECT_URL, json={"requestId": approval.id, "actorId": sample_actor_id})

        assert response.status_code == 409
