# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the family approval background actors."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.infrastructure.background.broker import Queues, get_broker
from src.infrastructure.background.tasks import (
    expire_family_approvals,
    get_all_actors,
)

MODULE = "src.infrastructure.background.tasks.approvals"


class TestExpireFamilyApprovals:
    """Tests for the expire_family_approvals actor."""

    def test_registered_on_approvals_queue(self) -> None:
        assert expire_family_approvals.queue_name == Queues.APPROVALS
        assert expire_family_approvals in get_all_actors()
        assert Queues.APPROVALS in get_broker().get_declared_queues()

    def test_runs_sweep_and_closes_database(self) -> None:
        sweep = MagicMock()
        sweep.run = AsyncMock(return_value=["a1", "a2"])

        with (
            patch(f"{MODULE}.init_database", new=AsyncMock()) as init_db,
            patch(f"{MODULE}.close_database", new=AsyncMock()) as close_db,
            patch(f"{MODULE}.get_sessionmaker", return_value=MagicMock()),
            patch(f"{MODULE}.ApprovalExpirySweep", return_value=sweep) as sweep_cls,
        ):
            result = expire_family_approvals()

        assert result == {"expired_count": 2, "expired_ids": ["a1", "a2"]}
        init_db.assert_awaited_once()
        close_db.assert_awaited_once()
        sweep_cls.assert_called_once()

    def test_closes_database_when_sweep_fails(self) -> None:
        sweep = MagicMock()
        sweep.run = AsyncMock(side_effect=RuntimeError("boom"))

        with (
            patch(f"{MODULE}.init_database", new=AsyncMock()),
            patch(f"{MODULE}.close_database", new=AsyncMock()) as close_db,
            patch(f"{MODULE}.get_sessionmaker", return_value=MagicMock()),
            patch(f"{MODULE}.ApprovalExpirySweep", return_value=sweep),
        ):
            with pytest.raises(RuntimeError):
                expire_family_approvals()

        close_db.assert_awaited_once()
