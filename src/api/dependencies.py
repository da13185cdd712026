# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module owns the long-lived collaborators of the service (datastore
engine, identity provider client, email channel) and exposes them and
the services built from them as FastAPI dependencies. Tests replace them
through app.dependency_overrides.

Example:
    @router.post("/approve")
    async def approve(body: ApproveFamilyRequest, saga: Saga):
        ...
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status

from src.core.config import Settings, get_settings
from src.domains.family_approval import (
    ApprovalSaga,
    FamilyStore,
    SqlFamilyStore,
    create_approval_saga,
)
from src.infrastructure.database.connection import (
    DatabaseError,
    close_database,
    get_sessionmaker,
    init_database,
)
from src.infrastructure.identity import IdentityAdminClient, IdentityProvider
from src.infrastructure.notifications import BaseEmailChannel, create_email_channel

logger = logging.getLogger(__name__)

_identity_client: IdentityAdminClient | None = None
_email_channel: BaseEmailChannel | None = None


async def init_services(settings: Settings) -> None:
    """Initialize the datastore, identity client and email channel."""
    global _identity_client, _email_channel

    await init_database(settings)
    _identity_client = IdentityAdminClient(settings.identity)
    _email_channel = create_email_channel(settings.email)


async def close_services() -> None:
    """Close the datastore, identity client and email channel."""
    global _identity_client, _email_channel

    if _email_channel is not None:
        await _email_channel.close()
        _email_channel = None

    if _identity_client is not None:
        await _identity_client.close()
        _identity_client = None

    await close_database()


def get_app_settings() -> Settings:
    """Get application settings."""
    return get_settings()


def get_family_store(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> FamilyStore:
    """Get the family approval datastore.

    Raises:
        HTTPException: 503 if the datastore is not initialized.
    """
    try:
        sessionmaker = get_sessionmaker()
    except DatabaseError as e:
        logger.error("Datastore not available: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Datastore not available",
        )
    return SqlFamilyStore(sessionmaker, settings.identity.child_email_domain)


def get_identity_provider() -> IdentityProvider:
    """Get the identity provider client.

    Raises:
        HTTPException: 503 if the client is not initialized.
    """
    if _identity_client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider not available",
        )
    return _identity_client


def get_email_channel() -> BaseEmailChannel:
    """Get the email channel.

    Raises:
        HTTPException: 503 if the channel is not initialized.
    """
    if _email_channel is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Email channel not available",
        )
    return _email_channel


def get_approval_saga(
    store: Annotated[FamilyStore, Depends(get_family_store)],
    identity_provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
    email_channel: Annotated[BaseEmailChannel, Depends(get_email_channel)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ApprovalSaga:
    """Build the approval saga for one request."""
    return create_approval_saga(store, identity_provider, email_channel, settings)


# Type aliases for cleaner endpoint signatures
Saga = Annotated[ApprovalSaga, Depends(get_approval_saga)]
