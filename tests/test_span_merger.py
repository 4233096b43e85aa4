"""Tests for span_merger.py"""

from content_risk.core.span_merger import merge_spans
from content_risk.models import RiskSpan


def span(start, end, text="", category="ADVERTISER_FRIENDLY_PROFANITY", level="MEDIUM"):
    return RiskSpan(
        text=text,
        start_index=start,
        end_index=end,
        risk_level=level,
        policy_category=category,
        explanation="",
    )


class TestMergeSpans:
    """Test merge_spans."""

    SOURCE = "abcdefghij"

    def test_overlapping_spans_merge(self):
        """[0,5] and [4,10] over 'abcdefghij' become one span [0,10]."""
        merged = merge_spans([span(0, 5, "abcde"), span(4, 10, "efghij")], self.SOURCE)

        assert len(merged) == 1
        assert merged[0].start_index == 0
        assert merged[0].end_index == 10
        assert merged[0].text == "abcdefghij"

    def test_adjacent_spans_merge(self):
        merged = merge_spans([span(0, 3, "abc"), span(4, 6, "ef")], self.SOURCE)

        assert len(merged) == 1
        assert merged[0].text == "abcdef"

    def test_gap_larger_than_one_does_not_merge(self):
        merged = merge_spans([span(0, 2, "ab"), span(5, 7, "fg")], self.SOURCE)
        assert len(merged) == 2

    def test_different_categories_never_merge(self):
        merged = merge_spans(
            [span(0, 5, "abcde"), span(4, 10, "efghij", category="CONTENT_SAFETY_VIOLENCE")],
            self.SOURCE,
        )
        assert len(merged) == 2

    def test_different_levels_never_merge(self):
        merged = merge_spans([span(0, 5, "abcde"), span(4, 10, "efghij", level="HIGH")], self.SOURCE)
        assert len(merged) == 2

    def test_spans_without_offsets_pass_through_first(self):
        loose = RiskSpan(text="abc", policy_category="ADVERTISER_FRIENDLY_PROFANITY", risk_level="MEDIUM")
        merged = merge_spans([span(0, 5, "abcde"), loose, span(4, 10, "efghij")], self.SOURCE)

        assert merged[0] is loose
        assert len(merged) == 2

    def test_unsorted_input_is_sorted(self):
        merged = merge_spans([span(6, 8, "gh"), span(0, 2, "ab")], self.SOURCE)
        assert [s.start_index for s in merged] == [0, 6]

    def test_same_category_merges_across_other_category(self):
        """A span of another category in between does not block a merge."""
        merged = merge_spans(
            [
                span(0, 4, "abcd"),
                span(2, 3, "c", category="CONTENT_SAFETY_VIOLENCE"),
                span(3, 8, "defgh"),
            ],
            self.SOURCE,
        )
        profanity = [s for s in merged if s.policy_category == "ADVERTISER_FRIENDLY_PROFANITY"]
        assert len(profanity) == 1
        assert profanity[0].text == "abcdefgh"

    def test_idempotent(self):
        spans = [span(0, 5, "abcde"), span(4, 7, "efg"), span(9, 10, "j", category="CONTENT_SAFETY_VIOLENCE")]
        once = merge_spans(spans, self.SOURCE)
        twice = merge_spans(once, self.SOURCE)

        assert twice == once

    def test_without_source_text_does_not_duplicate(self):
        merged = merge_spans([span(0, 5, "abcde"), span(2, 4, "cd")])

        assert len(merged) == 1
        assert merged[0].text == "abcde"

    def test_empty(self):
        assert merge_spans([], self.SOURCE) == []
