# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for username allocation."""

from unittest.mock import AsyncMock

import pytest

from src.domains.family_approval.errors import AllocationExhaustedError
from src.domains.family_approval.username import UsernameAllocator, slugify


def _directory(taken: set[str]) -> AsyncMock:
    directory = AsyncMock()
    directory.handle_exists.side_effect = lambda handle: handle in taken
    return directory


class TestSlugify:
    """Tests for slugify."""

    def test_lowercases_and_strips_spaces(self) -> None:
        assert slugify("Alex Johnson") == "alexjohnson"

    def test_drops_punctuation(self) -> None:
        assert slugify("Mary-Kate O'Neil") == "marykateoneil"

    def test_folds_accents(self) -> None:
        assert slugify("Zoë Ångström") == "zoeangstrom"

    def test_keeps_digits(self) -> None:
        assert slugify("Kid 2") == "kid2"

    def test_non_latin_name_gives_empty_slug(self) -> None:
        assert slugify("李小龙") == ""


class TestUsernameAllocator:
    """Tests for UsernameAllocator."""

    @pytest.mark.asyncio
    async def test_free_slug_is_used_as_is(self) -> None:
        allocator = UsernameAllocator(_directory(set()))

        assert await allocator.allocate("Alex Johnson") == "alexjohnson"

    @pytest.mark.asyncio
    async def test_taken_slug_gets_first_free_suffix(self) -> None:
        allocator = UsernameAllocator(_directory({"alexjohnson"}))

        assert await allocator.allocate("Alex Johnson") == "alexjohnson1"

    @pytest.mark.asyncio
    async def test_suffixes_are_tried_in_order(self) -> None:
        directory = _directory({"sam", "sam1", "sam2"})
        allocator = UsernameAllocator(directory)

        assert await allocator.allocate("Sam") == "sam3"
        checked = [call.args[0] for call in directory.handle_exists.await_args_list]
        assert checked == ["sam", "sam1", "sam2", "sam3"]

    @pytest.mark.asyncio
    async def test_empty_slug_uses_fallback(self) -> None:
        allocator = UsernameAllocator(_directory({"student"}), fallback="student")

        assert await allocator.allocate("李小龙") == "student1"

    @pytest.mark.asyncio
    async def test_exhaustion_raises(self) -> None:
        allocator = UsernameAllocator(_directory({"sam", "sam1", "sam2"}), max_attempts=3)

        with pytest.raises(AllocationExhaustedError) as exc_info:
            await allocator.allocate("Sam")

        assert exc_info.value.details["attempts"] == 3
        assert exc_info.value.error_code == "username_exhausted"

    def test_candidates_are_bounded(self) -> None:
        allocator = UsernameAllocator(_directory(set()), max_attempts=4)

        assert list(allocator.candidates("Sam")) == ["sam", "sam1", "sam2", "sam3"]

    def test_rejects_non_positive_attempts(self) -> None:
        with pytest.raises(ValueError):
            UsernameAllocator(_directory(set()), max_attempts=0)
