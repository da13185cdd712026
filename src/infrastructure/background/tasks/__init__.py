# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task actors.

Usage:
    from src.infrastructure.background.tasks import expire_family_approvals

    expire_family_approvals.send()

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 1 --threads 2
"""

from src.infrastructure.background.tasks.approvals import (
    expire_family_approvals,
    get_approval_actors,
)


def get_all_actors() -> list:
    """Get all actors for worker registration."""
    return get_approval_actors()


__all__ = [
    "expire_family_approvals",
    "get_all_actors",
    "get_approval_actors",
]
