# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity provider integration.

Example:
    from src.infrastructure.identity import IdentityAdminClient

    client = IdentityAdminClient(settings.identity)
    handles = await client.list_handles()
"""

from src.infrastructure.identity.base import (
    IdentityConflictError,
    IdentityProvider,
    IdentityProviderError,
    IdentityProviderUnavailableError,
)
from src.infrastructure.identity.client import IdentityAdminClient

__all__ = [
    "IdentityAdminClient",
    "IdentityConflictError",
    "IdentityProvider",
    "IdentityProviderError",
    "IdentityProviderUnavailableError",
]
