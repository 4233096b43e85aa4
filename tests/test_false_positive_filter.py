"""Tests for false_positive_filter.py"""

import pytest

from content_risk.core.false_positive_filter import (
    filter_false_positives,
    filter_phrases_by_category,
    should_flag_phrase,
)


class TestShouldFlagPhrase:
    """Test should_flag_phrase."""

    def test_kid_alone_is_filtered(self):
        assert should_flag_phrase("kid") is False

    def test_kid_exploitation_is_kept(self):
        assert should_flag_phrase("kid exploitation") is True

    @pytest.mark.parametrize("phrase", ["you", "Team", "rival", "score"])
    def test_allow_listed_words_filtered(self, phrase):
        assert should_flag_phrase(phrase) is False

    def test_short_phrases_filtered(self):
        assert should_flag_phrase("ok") is False

    def test_punctuation_filtered(self):
        assert should_flag_phrase("!!!") is False

    def test_technology_without_context_filtered(self):
        assert should_flag_phrase("my new phone") is False

    def test_technology_with_context_kept(self):
        assert should_flag_phrase("phone scam") is True

    def test_family_phrase_without_context_filtered(self):
        assert should_flag_phrase("playing with the kids") is False

    def test_profanity_kept(self):
        assert should_flag_phrase("damn") is True

    def test_non_string(self):
        assert should_flag_phrase(None) is False


class TestFilterLists:
    """Test list-level filtering."""

    def test_filter_false_positives(self):
        phrases = ["damn", "kid", "Damn ", "!!", "hell"]
        assert filter_false_positives(phrases) == ["damn", "hell"]

    def test_filter_false_positives_non_list(self):
        assert filter_false_positives("damn") == []

    def test_filter_by_category_drops_empty(self):
        filtered = filter_phrases_by_category({
            "ADVERTISER_FRIENDLY_PROFANITY": ["damn", "team"],
            "CONTENT_SAFETY_CHILD_SAFETY": ["kid"],
        })
        assert filtered == {"ADVERTISER_FRIENDLY_PROFANITY": ["damn"]}
