# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Username allocation for child accounts.

A username is the child's name folded to a lowercase ASCII slug. When a
live identity already uses the slug, numeric suffixes are tried in order
(alexjohnson, alexjohnson1, alexjohnson2, ...).

The check and the later identity write are not atomic. Two concurrent
approvals can pick the same candidate; the identity provider rejects the
second write and that child fails with DuplicateHandleError.
"""

import re
import unicodedata
from typing import Protocol

from src.domains.family_approval.errors import AllocationExhaustedError
from src.utils.logging import get_logger

logger = get_logger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


class HandleDirectory(Protocol):
    """Answers whether a handle is already in use."""

    async def handle_exists(self, handle: str) -> bool: ...


def slugify(name: str) -> str:
    """Fold a display name to a lowercase ASCII slug.

    Accented letters lose their accents; anything that is not an ASCII
    letter or digit is dropped.

    Example:
        >>> slugify("Zoë O'Brien")
        'zoeobrien'
    """
    decomposed = unicodedata.normalize("NFKD", name)
    ascii_only = decomposed.encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("", ascii_only.lower())


class UsernameAllocator:
    """Derives an unused username from a child's name.

    Attributes:
        max_attempts: Number of candidates tried before giving up.
        fallback: Base handle for names that produce an empty slug.
    """

    def __init__(
        self,
        directory: HandleDirectory,
        max_attempts: int = 1000,
        fallback: str = "student",
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._directory = directory
        self.max_attempts = max_attempts
        self.fallback = slugify(fallback) or "student"

    def candidates(self, name: str):
        """Yield candidate handles for a name, bounded by max_attempts."""
        base = slugify(name) or self.fallback
        yield base
        for suffix in range(1, self.max_attempts):
            yield f"{base}{suffix}"

    async def allocate(self, name: str) -> str:
        """Find the first candidate no live identity uses.

        Args:
            name: Display name of the child.

        Returns:
            The allocated username.

        Raises:
            AllocationExhaustedError: If every candidate is taken.
        """
        for candidate in self.candidates(name):
            if not await self._directory.handle_exists(candidate):
                logger.debug("username_allocated", name=name, username=candidate)
                return candidate

        logger.warning("username_exhausted", name=name, attempts=self.max_attempts)
        raise AllocationExhaustedError(
            f"No free username for '{name}' after {self.max_attempts} attempts",
            details={"name": name, "attempts": self.max_attempts},
        )
