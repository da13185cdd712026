# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Base classes for identity provider adapters.

An identity provider owns login credentials. It is external to the
relational datastore, so writes to it cannot share a transaction with
profile or student writes.
"""

from abc import ABC, abstractmethod
from typing import Any


class IdentityProviderError(Exception):
    """Base exception for identity provider errors.

    Attributes:
        message: Error description.
        status_code: HTTP status returned by the provider, if any.
        details: Additional error details.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class IdentityConflictError(IdentityProviderError):
    """Raised when the login email or username is already registered."""


class IdentityProviderUnavailableError(IdentityProviderError):
    """Raised when the provider cannot be reached, times out or fails."""


class IdentityProvider(ABC):
    """Admin interface of an identity provider."""

    @abstractmethod
    async def create_identity(
        self,
        email: str,
        password: str,
        attributes: dict[str, Any],
    ) -> str:
        """Create a confirmed login identity.

        Args:
            email: Login email.
            password: Initial password.
            attributes: User metadata stored with the identity.

        Returns:
            The new identity ID.

        Raises:
            IdentityConflictError: If the email is already registered.
            IdentityProviderUnavailableError: If the provider failed.
        """
        ...

    @abstractmethod
    async def delete_identity(self, identity_id: str) -> bool:
        """Delete an identity.

        Returns:
            True if deleted, False if it did not exist.

        Raises:
            IdentityProviderUnavailableError: If the provider failed.
        """
        ...

    @abstractmethod
    async def list_handles(self) -> set[str]:
        """List the usernames of all live identities.

        Raises:
            IdentityProviderUnavailableError: If the provider failed.
        """
        ...
