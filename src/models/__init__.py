# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic models shared by the domain services and the API."""

from src.models.family_approval import (
    ApprovalResult,
    ApprovalStatus,
    ApproveFamilyRequest,
    ApproveFamilyResponse,
    ChildFailure,
    ChildSpec,
    FamilyApprovalRequest,
    ParentContact,
    ProvisionedAccount,
    RejectFamilyRequest,
    RejectFamilyResponse,
    RollbackWarning,
    SkillLevel,
)

__all__ = [
    "ApprovalResult",
    "ApprovalStatus",
    "ApproveFamilyRequest",
    "ApproveFamilyResponse",
    "ChildFailure",
    "ChildSpec",
    "FamilyApprovalRequest",
    "ParentContact",
    "ProvisionedAccount",
    "RejectFamilyRequest",
    "RejectFamilyResponse",
    "RollbackWarning",
    "SkillLevel",
]
