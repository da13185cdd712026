# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP client for the identity provider's admin users API.

The provider exposes a GoTrue-compatible admin API authenticated with a
service-role key:
- POST   /auth/v1/admin/users            create a user
- DELETE /auth/v1/admin/users/{id}       delete a user
- GET    /auth/v1/admin/users?page&per_page  list users

Timeouts, connection errors, 429 and 5xx responses are reported as
IdentityProviderUnavailableError so callers can retry later.
"""

import logging
from typing import Any

import httpx

from src.core.config.settings import IdentityProviderSettings
from src.infrastructure.identity.base import (
    IdentityConflictError,
    IdentityProvider,
    IdentityProviderError,
    IdentityProviderUnavailableError,
)

logger = logging.getLogger(__name__)

_CONFLICT_MARKERS = ("already", "exists", "duplicate")


class IdentityAdminClient(IdentityProvider):
    """Identity provider adapter over the admin users API.

    Attributes:
        admin_url: Admin users endpoint.

    Example:
        client = IdentityAdminClient(settings.identity)
        identity_id = await client.create_identity(email, password, {"username": "alex"})
        await client.close()
    """

    def __init__(
        self,
        settings: IdentityProviderSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Identity provider settings.
            client: Optional preconfigured HTTP client (used by tests).
        """
        self._settings = settings
        self._email_domain = settings.child_email_domain.lower()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.timeout)

    @property
    def admin_url(self) -> str:
        """Get the admin users endpoint."""
        return self._settings.admin_url

    def _headers(self) -> dict[str, str]:
        key = self._settings.service_key.get_secret_value()
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.RequestError as e:
            logger.warning("Identity provider request failed: %s %s: %s", method, url, e)
            raise IdentityProviderUnavailableError(
                f"Identity provider not reachable: {e}",
            ) from e

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text
        if isinstance(data, dict):
            return str(data.get("msg") or data.get("message") or data.get("error_description") or data)
        return str(data)

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return

        detail = self._error_detail(response)
        status_code = response.status_code

        if status_code == 429 or status_code >= 500:
            raise IdentityProviderUnavailableError(
                f"{operation} failed: {detail}",
                status_code=status_code,
            )

        if status_code in (409, 422) and any(m in detail.lower() for m in _CONFLICT_MARKERS):
            raise IdentityConflictError(
                f"{operation} failed: {detail}",
                status_code=status_code,
            )

        raise IdentityProviderError(
            f"{operation} failed: {detail}",
            status_code=status_code,
        )

    async def create_identity(
        self,
        email: str,
        password: str,
        attributes: dict[str, Any],
    ) -> str:
        """Create a confirmed login identity."""
        response = await self._request(
            "POST",
            self.admin_url,
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": attributes,
            },
        )
        self._raise_for_status(response, "Create identity")

        data = response.json()
        user = data.get("user", data) if isinstance(data, dict) else {}
        identity_id = user.get("id") if isinstance(user, dict) else None
        if not identity_id:
            raise IdentityProviderError("Create identity returned no user id")

        logger.info("Identity created: %s", identity_id)
        return str(identity_id)

    async def delete_identity(self, identity_id: str) -> bool:
        """Delete an identity. A missing identity is reported as False."""
        response = await self._request("DELETE", f"{self.admin_url}/{identity_id}")
        if response.status_code == 404:
            logger.info("Identity already absent: %s", identity_id)
            return False

        self._raise_for_status(response, "Delete identity")
        logger.info("Identity deleted: %s", identity_id)
        return True

    async def list_handles(self) -> set[str]:
        """List usernames of all live identities.

        A username is taken from the identity's metadata, or from the
        local part of its email when the email is in the child domain.
        """
        handles: set[str] = set()
        page = 1
        per_page = self._settings.page_size

        while True:
            response = await self._request(
                "GET",
                self.admin_url,
                params={"page": page, "per_page": per_page},
            )
            self._raise_for_status(response, "List identities")

            users = response.json().get("users", [])
            for user in users:
                handle = self._handle_of(user)
                if handle:
                    handles.add(handle)

            if len(users) < per_page:
                break
            page += 1

        return handles

    def _handle_of(self, user: dict[str, Any]) -> str | None:
        metadata = user.get("user_metadata") or {}
        username = metadata.get("username")
        if username:
            return str(username).lower()

        email = (user.get("email") or "").lower()
        local, _, domain = email.partition("@")
        if local and domain == self._email_domain:
            return local
        return None
