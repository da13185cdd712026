# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Family approval background actors.

Actors:
    - expire_family_approvals: Marks overdue pending approvals as expired.
      Meant to be enqueued periodically (e.g. hourly by cron).
"""

import logging
from typing import Any

import dramatiq

from src.core.config import get_settings
from src.domains.family_approval.expiry import ApprovalExpirySweep
from src.domains.family_approval.store import SqlFamilyStore
from src.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from src.infrastructure.background.tasks.base import run_async
from src.infrastructure.database.connection import (
    close_database,
    get_sessionmaker,
    init_database,
)

setup_dramatiq()

logger = logging.getLogger(__name__)


async def _expire_family_approvals() -> list[str]:
    settings = get_settings()
    await init_database(settings)
    try:
        store = SqlFamilyStore(get_sessionmaker(), settings.identity.child_email_domain)
        return await ApprovalExpirySweep(store).run()
    finally:
        await close_database()


@dramatiq.actor(
    queue_name=Queues.APPROVALS,
    max_retries=3,
    time_limit=120000,  # 2 minutes
    priority=Priority.LOW,
)
def expire_family_approvals() -> dict[str, Any]:
    """Expire pending family approvals whose expires_at has passed.

    Returns:
        Summary with the number and ids of expired approvals.
    """
    expired = run_async(_expire_family_approvals())
    logger.info("Expired %d family approvals", len(expired))
    return {"expired_count": len(expired), "expired_ids": expired}


def get_approval_actors() -> list:
    """Get all family approval actors."""
    return [expire_family_approvals]
