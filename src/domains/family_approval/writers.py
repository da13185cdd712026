# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Create/destroy pairs for the three records of a child account.

- IdentityBinder: login identity at the identity provider
- ProfileWriter: directory profile keyed by the identity id
- DomainRecordWriter: student record linked to the profile

Every destroy is idempotent: a record that is already gone is reported
as False, not as an error.
"""

import logging
from typing import Any

from pydantic import SecretStr

from src.domains.family_approval.errors import (
    ChildValidationError,
    DuplicateHandleError,
    IdentityRejectedError,
    ProviderUnavailableError,
)
from src.domains.family_approval.store import FamilyStore, ProfileFields, StudentFields
from src.infrastructure.identity.base import (
    IdentityConflictError,
    IdentityProvider,
    IdentityProviderError,
    IdentityProviderUnavailableError,
)
from src.models.family_approval import MAX_CHILD_AGE, MIN_CHILD_AGE, ChildSpec, SkillLevel

logger = logging.getLogger(__name__)


class IdentityBinder:
    """Creates and destroys login identities for child accounts.

    Also serves as the handle directory of the UsernameAllocator.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        store: FamilyStore,
        email_domain: str,
    ) -> None:
        """Initialize the binder.

        Args:
            provider: Identity provider adapter.
            store: Datastore, consulted for profiles using a handle.
            email_domain: Domain of child login emails.
        """
        self._provider = provider
        self._store = store
        self._email_domain = email_domain.lower()

    def login_email(self, handle: str) -> str:
        """Login email of a handle."""
        return f"{handle}@{self._email_domain}"

    async def handle_exists(self, handle: str) -> bool:
        """Check whether a live identity or profile uses the handle."""
        try:
            handles = await self._provider.list_handles()
        except IdentityProviderError as e:
            raise self._translate(e, "list identities") from e

        if handle.lower() in handles:
            return True
        return await self._store.exists_handle(handle)

    async def create(self, handle: str, secret: SecretStr, attributes: dict[str, Any]) -> str:
        """Create the identity of a handle.

        Returns:
            The identity id.

        Raises:
            DuplicateHandleError: If the provider already has the handle.
            ProviderUnavailableError: If the provider cannot be reached.
            IdentityRejectedError: If the provider refused the request.
        """
        try:
            return await self._provider.create_identity(
                self.login_email(handle),
                secret.get_secret_value(),
                {"username": handle, **attributes},
            )
        except IdentityProviderError as e:
            raise self._translate(e, "create identity", handle=handle) from e

    async def destroy(self, identity_id: str) -> bool:
        """Delete an identity. False if it was already gone."""
        try:
            return await self._provider.delete_identity(identity_id)
        except IdentityProviderError as e:
            raise self._translate(e, "delete identity") from e

    @staticmethod
    def _translate(
        error: IdentityProviderError,
        operation: str,
        handle: str | None = None,
    ) -> Exception:
        logger.warning("Identity provider error during %s: %s", operation, error.message)
        details = {"operation": operation, "status_code": error.status_code}
        if isinstance(error, IdentityConflictError):
            return DuplicateHandleError(
                f"Username '{handle}' is already taken",
                details={**details, "handle": handle},
            )
        if isinstance(error, IdentityProviderUnavailableError):
            return ProviderUnavailableError(
                f"Identity provider unavailable during {operation}",
                details=details,
            )
        return IdentityRejectedError(
            f"Identity provider rejected {operation}: {error.message}",
            details=details,
        )


class ProfileWriter:
    """Creates and destroys directory profiles."""

    def __init__(self, store: FamilyStore) -> None:
        self._store = store

    async def create(self, identity_id: str, fields: ProfileFields) -> str:
        return await self._store.write_profile(identity_id, fields)

    async def destroy(self, profile_id: str) -> bool:
        return await self._store.delete_profile(profile_id)


class DomainRecordWriter:
    """Creates and destroys student records.

    Owns the checks on submitted child data. validate() must pass before
    any record of the child (identity included) is written.
    """

    def __init__(self, store: FamilyStore) -> None:
        self._store = store

    @staticmethod
    def validate(child: ChildSpec) -> None:
        """Check a child's name, age and level.

        Raises:
            ChildValidationError: On the first invalid field.
        """
        if not child.name or not child.name.strip():
            raise ChildValidationError("Child name is required", details={"field": "name"})

        if child.age is None:
            raise ChildValidationError("Age is required", details={"field": "age"})

        if not MIN_CHILD_AGE <= child.age <= MAX_CHILD_AGE:
            raise ChildValidationError(
                f"Age must be between {MIN_CHILD_AGE} and {MAX_CHILD_AGE}, got {child.age}",
                details={"field": "age", "value": child.age},
            )

        allowed = [level.value for level in SkillLevel]
        if child.level not in allowed:
            raise ChildValidationError(
                f"Level must be one of {', '.join(allowed)}, got {child.level!r}",
                details={"field": "level", "value": child.level},
            )

    async def create(self, profile_id: str, fields: StudentFields) -> str:
        return await self._store.write_domain_record(profile_id, fields)

    async def destroy(self, record_id: str) -> bool:
        return await self._store.delete_domain_record(record_id)
