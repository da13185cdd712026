# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions raised by the family approval domain.

Adapters translate driver and HTTP errors into these classes so that the
saga and the API layer only deal with domain failures. The error_code of
each class is what a ChildFailure records and what the API logs.
"""

from typing import Any


class FamilyApprovalError(Exception):
    """Base exception for family approval errors.

    Attributes:
        message: Error message.
        details: Additional error details.
    """

    error_code = "family_approval_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ChildValidationError(FamilyApprovalError):
    """Raised when a submitted child fails field validation."""

    error_code = "validation_failed"


class AllocationExhaustedError(FamilyApprovalError):
    """Raised when no free username was found within the attempt limit."""

    error_code = "username_exhausted"


class DuplicateHandleError(FamilyApprovalError):
    """Raised when the identity provider reports the handle as taken."""

    error_code = "duplicate_handle"


class ProviderUnavailableError(FamilyApprovalError):
    """Raised when the identity provider cannot be reached."""

    error_code = "provider_unavailable"


class StoreUnavailableError(FamilyApprovalError):
    """Raised when the datastore cannot be reached or times out."""

    error_code = "store_unavailable"


class RecordConflictError(FamilyApprovalError):
    """Raised when a write violates a uniqueness or integrity constraint."""

    error_code = "record_conflict"


class ApprovalNotFoundError(FamilyApprovalError):
    """Raised when the approval does not exist."""

    error_code = "not_found"


class AlreadyProcessedError(FamilyApprovalError):
    """Raised when the approval is no longer pending."""

    error_code = "already_processed"


class EmptyApprovalError(FamilyApprovalError):
    """Raised when the approval lists no children."""

    error_code = "empty_approval"


class IdentityRejectedError(FamilyApprovalError):
    """Raised when the identity provider refuses a request for another reason."""

    error_code = "identity_rejected"


class InvalidIdentifierError(FamilyApprovalError):
    """Raised when a request or actor ID is not a UUID."""

    error_code = "invalid_identifier"
