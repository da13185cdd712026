# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    family_approvals: Approve and reject family registrations.
"""

from fastapi import APIRouter

from src.api.v1 import family_approvals

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(
    family_approvals.router,
    prefix="/family-approvals",
    tags=["Family Approvals"],
)

__all__ = ["router"]
