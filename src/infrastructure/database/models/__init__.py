# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models."""

from src.infrastructure.database.models.base import Base, TimestampMixin
from src.infrastructure.database.models.family import (
    FamilyApproval,
    Organization,
    Profile,
    Student,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "FamilyApproval",
    "Organization",
    "Profile",
    "Student",
]
