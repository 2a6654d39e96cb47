"""Tests for retrospectify.categorizer."""

from unittest.mock import AsyncMock

import pytest

from retrospectify.categorizer import FALLBACK_REASONING, categorize, categorize_by_rating
from retrospectify.models import Categorization, Category


class TestCategorizeByRating:
    @pytest.mark.parametrize("rating,expected", [
        (5, Category.WENT_WELL),
        (4, Category.WENT_WELL),
        (3, Category.IMPROVE),
        (1, Category.IMPROVE),
    ])
    def test_threshold(self, rating, expected):
        assert categorize_by_rating(rating).category == expected

    def test_reasoning_mentions_rating_only(self):
        assert "rating" in categorize_by_rating(2).reasoning


class TestCategorize:
    """Tests for categorize."""

    @pytest.mark.asyncio
    async def test_blank_justification_high_rating(self):
        classify = AsyncMock()
        result = await categorize(5, "", classify)
        assert result.category == Category.WENT_WELL
        classify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_justification_low_rating(self):
        classify = AsyncMock()
        result = await categorize(1, "   ", classify)
        assert result.category == Category.IMPROVE
        classify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_classifier_result_returned_verbatim(self):
        stub = Categorization(category=Category.DISCUSS, reasoning="mixed feelings")
        classify = AsyncMock(return_value=stub)

        result = await categorize(3, "it was fine but testing was slow", classify)

        assert result == stub
        classify.assert_awaited_once_with(3, "it was fine but testing was slow")

    @pytest.mark.asyncio
    async def test_none_falls_back_to_discuss(self):
        result = await categorize(4, "great", AsyncMock(return_value=None))
        assert result.category == Category.DISCUSS
        assert result.reasoning == FALLBACK_REASONING

    @pytest.mark.asyncio
    async def test_exception_falls_back_to_discuss(self):
        result = await categorize(2, "bad", AsyncMock(side_effect=RuntimeError("boom")))
        assert result.category == Category.DISCUSS

    @pytest.mark.asyncio
    async def test_action_category_is_not_usable(self):
        stub = Categorization(category=Category.ACTION, reasoning="")
        result = await categorize(2, "fix the build", AsyncMock(return_value=stub))
        assert result.category == Category.DISCUSS

    @pytest.mark.asyncio
    async def test_plain_string_category_is_normalized(self):
        stub = Categorization(category="improve", reasoning="slow builds")
        result = await categorize(2, "builds are slow", AsyncMock(return_value=stub))

        assert result.category is Category.IMPROVE
        assert result.to_dict() == {"category": "improve", "reasoning": "slow builds"}

    @pytest.mark.asyncio
    async def test_mapping_result_is_accepted(self):
        classify = AsyncMock(return_value={"category": "went-well", "reasoning": "shipped"})
        result = await categorize(5, "we shipped", classify)
        assert result == Categorization(category=Category.WENT_WELL, reasoning="shipped")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bogus", ["discuss", 42, object()])
    async def test_result_without_fields_falls_back(self, bogus):
        result = await categorize(3, "meh", AsyncMock(return_value=bogus))
        assert result.category == Category.DISCUSS
        assert result.reasoning == FALLBACK_REASONING
