"""Tests for core.scoring."""

import pytest

from core.categories import UNKNOWN_CATEGORY
from core.scoring import TOO_SHORT, score_item, visible_text


class TestVisibleText:
    def test_strips_hashtag_and_mention_markers(self):
        assert visible_text("#Lagos @user hi") == "Lagos user hi"

    def test_trims_whitespace(self):
        assert visible_text("  hello  ") == "hello"


class TestTooShort:
    @pytest.mark.parametrize("content", ["Too short", "#a #b #c #d #e", "@someone ok", "", "   #### "])
    def test_short_content_is_rejected(self, make_item, content):
        score = score_item(make_item(content))
        assert score.is_valid is False
        assert score.rejection_reason == TOO_SHORT
        assert score.confidence == 0.0
        assert score.primary_category == UNKNOWN_CATEGORY

    def test_fifteen_visible_characters_is_long_enough(self, make_item):
        assert len(visible_text("#Abuja @police ok")) == 15
        score = score_item(make_item("#Abuja @police ok"))
        assert score.rejection_reason != TOO_SHORT

    def test_below_fifteen_visible_characters_is_too_short(self, make_item):
        assert len(visible_text("#Abuja @police")) == 12
        assert score_item(make_item("#Abuja @police")).rejection_reason == TOO_SHORT


class TestConfidence:
    def test_verified_high_engagement_is_clamped(self, make_item):
        score = score_item(make_item(verified=True, engagement=500))
        assert score.confidence == 1.0
        assert score.is_valid

    def test_unverified_zero_engagement_is_penalized(self, make_item):
        score = score_item(make_item(verified=False, engagement=0))
        assert score.confidence == pytest.approx(0.8)
        assert score.is_valid
        assert score.rejection_reason is None

    def test_unverified_zero_engagement_fails_a_strict_threshold(self, make_item):
        score = score_item(make_item(verified=False, engagement=0), threshold=0.9)
        assert score.confidence == pytest.approx(0.8)
        assert score.is_valid is False
        assert score.rejection_reason is None

    def test_too_many_emojis(self, make_item):
        content = "Election results are coming in tonight " + "\U0001F525" * 6
        score = score_item(make_item(content, verified=False, engagement=10))
        assert score.is_valid is False
        assert score.rejection_reason == "Too many emojis"
        assert score.confidence == pytest.approx(0.7)

    def test_too_many_hashtags(self, make_item):
        content = "Election results tonight #a #b #c #d #e #f"
        score = score_item(make_item(content, verified=False, engagement=10))
        assert score.is_valid is False
        assert score.rejection_reason == "Too many hashtags"
        assert score.confidence == pytest.approx(0.8)

    def test_penalty_reasons_invalidate_even_with_bonus(self, make_item):
        content = "Election results tonight #a #b #c #d #e #f " + "\U0001F600" * 6
        score = score_item(make_item(content, verified=True, engagement=1000))
        assert score.is_valid is False
        assert score.rejection_reason == "Too many emojis; Too many hashtags"

    def test_five_hashtags_is_allowed(self, make_item):
        content = "Election results tonight #a #b #c #d #e"
        assert score_item(make_item(content)).is_valid

    def test_confidence_never_below_zero(self, make_item):
        content = "Rumours everywhere today " + "#x " * 6 + "\U0001F600" * 6
        score = score_item(make_item(content, verified=False, engagement=0))
        assert 0.0 <= score.confidence <= 1.0

    @pytest.mark.parametrize("engagements", [[0, 1, 50, 100, 101, 5000]])
    def test_verified_confidence_is_monotonic_in_engagement(self, make_item, engagements):
        confidences = [
            score_item(make_item(verified=True, engagement=e)).confidence for e in engagements
        ]
        assert confidences == sorted(confidences)
        assert max(confidences) <= 1.0


class TestThresholds:
    def test_category_threshold_is_used(self, make_item):
        item = make_item("Military attack repelled near the border town", verified=False, engagement=0)
        # Security needs 0.7; 0.8 passes
        assert score_item(item, category_thresholds={"Security": 0.7}).is_valid
        assert not score_item(item, category_thresholds={"Security": 0.85}).is_valid

    def test_explicit_threshold_wins(self, make_item):
        item = make_item("Military attack repelled near the border town", verified=False, engagement=0)
        assert not score_item(item, 0.9, category_thresholds={"Security": 0.1}).is_valid

    def test_missing_category_uses_default(self, make_item):
        item = make_item("Military attack repelled near the border town", verified=False, engagement=0)
        assert not score_item(item, category_thresholds={}, default_threshold=0.9).is_valid

    def test_score_carries_categories(self, make_item):
        score = score_item(make_item("The president announced a new policy on education."))
        assert score.primary_category == "Politics"
        assert "Education" in score.secondary_categories
        assert score.item_id.startswith("item-")
