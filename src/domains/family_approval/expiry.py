# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Expiry of family approvals that were never decided."""

from collections.abc import Callable
from datetime import datetime

from src.domains.family_approval.store import FamilyStore
from src.utils.datetime import ensure_utc, utc_now
from src.utils.logging import get_logger

logger = get_logger(__name__)


class ApprovalExpirySweep:
    """Marks pending approvals past their expires_at as expired.

    This is the only writer of the expired status. The update is a single
    conditional statement, so an approval decided at the same moment is
    never overwritten.
    """

    def __init__(self, store: FamilyStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def run(self, now: datetime | None = None) -> list[str]:
        """Expire overdue pending approvals.

        Args:
            now: Reference time, defaults to the current UTC time.

        Returns:
            Ids of the approvals that were expired.
        """
        reference = ensure_utc(now) if now is not None else self._clock()
        expired = await self._store.expire_pending(reference)
        logger.info("approvals_expired", count=len(expired), reference=reference.isoformat())
        return expired
