# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Family approval domain.

Provides the saga that turns a parent's registration of children into
student accounts, the rejection of such registrations, and the expiry of
registrations that were never decided.
"""

from src.domains.family_approval.errors import (
    AllocationExhaustedError,
    AlreadyProcessedError,
    ApprovalNotFoundError,
    ChildValidationError,
    DuplicateHandleError,
    EmptyApprovalError,
    FamilyApprovalError,
    IdentityRejectedError,
    InvalidIdentifierError,
    ProviderUnavailableError,
    RecordConflictError,
    StoreUnavailableError,
)
from src.domains.family_approval.expiry import ApprovalExpirySweep
from src.domains.family_approval.notifications import NotificationDispatcher
from src.domains.family_approval.provisioner import (
    ChildAccountProvisioner,
    ChildOutcome,
    ProvisioningState,
)
from src.domains.family_approval.saga import ApprovalSaga, create_approval_saga
from src.domains.family_approval.store import (
    FamilyStore,
    ProfileFields,
    SqlFamilyStore,
    StudentFields,
)
from src.domains.family_approval.username import UsernameAllocator, slugify
from src.domains.family_approval.writers import (
    DomainRecordWriter,
    IdentityBinder,
    ProfileWriter,
)

__all__ = [
    # Errors
    "AllocationExhaustedError",
    "AlreadyProcessedError",
    "ApprovalNotFoundError",
    "ChildValidationError",
    "DuplicateHandleError",
    "EmptyApprovalError",
    "FamilyApprovalError",
    "IdentityRejectedError",
    "InvalidIdentifierError",
    "ProviderUnavailableError",
    "RecordConflictError",
    "StoreUnavailableError",
    # Saga
    "ApprovalSaga",
    "create_approval_saga",
    "ApprovalExpirySweep",
    # Components
    "ChildAccountProvisioner",
    "ChildOutcome",
    "ProvisioningState",
    "UsernameAllocator",
    "slugify",
    "IdentityBinder",
    "ProfileWriter",
    "DomainRecordWriter",
    "NotificationDispatcher",
    # Store
    "FamilyStore",
    "SqlFamilyStore",
    "ProfileFields",
    "StudentFields",
]
