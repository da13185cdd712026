# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Family approval models.

This module defines the values that flow through the family approval
saga and the request/response schemas of the approval endpoints.

Domain values:
- ChildSpec: one child as submitted by the parent (raw, validated per child)
- FamilyApprovalRequest: the pending approval loaded from the datastore
- ProvisionedAccount: identity + profile + student record of one child
- ChildFailure / RollbackWarning: why a child was not provisioned
- ApprovalResult: per-request summary returned by the saga

API schemas use camelCase aliases on the wire.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic.alias_generators import to_camel

MIN_CHILD_AGE = 1
MAX_CHILD_AGE = 18


class SkillLevel(str, Enum):
    """Skateboarding skill level of a student."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class ApprovalStatus(str, Enum):
    """Lifecycle status of a family approval."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


# =============================================================================
# Domain values
# =============================================================================


class ChildSpec(BaseModel):
    """A child as submitted on the parent's form.

    Values are kept as submitted. Range and enum checks happen when the
    child is provisioned so that one bad entry does not block the others.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    age: int | None = None
    level: str | None = None
    notes: str | None = None
    profile_image: str | None = None


class ParentContact(BaseModel):
    """Where the approval outcome is sent."""

    model_config = ConfigDict(frozen=True)

    email: str
    name: str


class FamilyApprovalRequest(BaseModel):
    """A parent's submission awaiting an administrator decision.

    Attributes:
        id: Approval identifier.
        parent_id: Parent account identifier.
        organization_id: Organization the children join.
        parent: Parent contact details.
        children: Children in submission order.
        status: Lifecycle status.
        approved_by: Actor that approved or rejected the request.
        approved_at: When the request was approved or rejected.
        parent_notes: Free text from the parent.
        admin_notes: Free text from the administrator.
        expires_at: When a pending request lapses.
        created_at: Submission time.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    parent_id: str | None = None
    organization_id: str
    parent: ParentContact
    children: list[ChildSpec] = Field(default_factory=list)
    status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: str | None = None
    approved_at: datetime | None = None
    parent_notes: str | None = None
    admin_notes: str | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        """Check whether the request still awaits a decision."""
        return self.status == ApprovalStatus.PENDING


class ProvisionedAccount(BaseModel):
    """A fully provisioned child account.

    The three keys are created together by one provisioning run and are
    never left behind partially.
    """

    model_config = ConfigDict(frozen=True)

    child_name: str
    username: str
    login_email: str
    identity_id: str
    profile_id: str
    domain_record_id: str
    initial_secret: SecretStr


class RollbackWarning(BaseModel):
    """A compensation step that could not be completed.

    The named resource may still exist and needs operator attention.
    """

    model_config = ConfigDict(frozen=True)

    step: str
    resource_id: str
    error: str


class ChildFailure(BaseModel):
    """A child that could not be provisioned."""

    model_config = ConfigDict(frozen=True)

    child: ChildSpec
    reason: str
    error_code: str
    failed_at: str
    rollback_warnings: list[RollbackWarning] = Field(default_factory=list)


class ApprovalResult(BaseModel):
    """Summary of one saga run.

    Attributes:
        request_id: Approval that was processed.
        status: Status of the approval after the run.
        provisioned: Accounts that were created.
        failures: Children that were not provisioned.
        notification_status: Delivery status of the parent email.
    """

    request_id: str
    status: ApprovalStatus
    provisioned: list[ProvisionedAccount] = Field(default_factory=list)
    failures: list[ChildFailure] = Field(default_factory=list)
    notification_status: str | None = None

    @property
    def approved_count(self) -> int:
        """Number of accounts created."""
        return len(self.provisioned)

    @property
    def failed_count(self) -> int:
        """Number of children that failed."""
        return len(self.failures)

    @property
    def has_failures(self) -> bool:
        """Whether any child failed."""
        return bool(self.failures)

    @property
    def rollback_warnings(self) -> list[RollbackWarning]:
        """All rollback warnings across failed children."""
        return [w for failure in self.failures for w in failure.rollback_warnings]


# =============================================================================
# API schemas
# =============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApproveFamilyRequest(_CamelModel):
    """Body of the approve endpoint."""

    request_id: UUID = Field(description="Family approval ID")
    actor_id: UUID = Field(description="Approving administrator ID")
    admin_notes: str | None = Field(default=None, description="Optional administrator notes")


class RejectFamilyRequest(_CamelModel):
    """Body of the reject endpoint."""

    request_id: UUID = Field(description="Family approval ID")
    actor_id: UUID = Field(description="Rejecting administrator ID")
    admin_notes: str | None = Field(default=None, description="Reason shown to the family")


class FailedChildResponse(_CamelModel):
    """A child that could not be provisioned."""

    name: str
    reason: str


class CreatedStudentResponse(_CamelModel):
    """A student account that was created. Secrets are never returned."""

    name: str
    username: str
    student_id: str


class ApproveFamilyResponse(_CamelModel):
    """Outcome of an approval."""

    request_id: str
    approved_count: int
    failed_children: list[FailedChildResponse] = Field(default_factory=list)
    request_status: ApprovalStatus
    students_created: list[CreatedStudentResponse] = Field(default_factory=list)
    notification_status: str | None = None

    @classmethod
    def from_result(cls, result: ApprovalResult) -> "ApproveFamilyResponse":
        """Build the response body from a saga result."""
        return cls(
            request_id=result.request_id,
            approved_count=result.approved_count,
            failed_children=[
                FailedChildResponse(name=f.child.name, reason=f.reason)
                for f in result.failures
            ],
            request_status=result.status,
            students_created=[
                CreatedStudentResponse(
                    name=a.child_name,
                    username=a.username,
                    student_id=a.domain_record_id,
                )
                for a in result.provisioned
            ],
            notification_status=result.notification_status,
        )


class RejectFamilyResponse(_CamelModel):
    """Outcome of a rejection."""

    request_id: str
    request_status: ApprovalStatus
    rejected_at: datetime
