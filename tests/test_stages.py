"""Tests for stages.py"""

import pytest

from content_risk.core import stages
from content_risk.core.policy_catalog import CATEGORY_KEYS
from content_risk.models import PolicyCategoryAnalysis, RiskAssessment, RiskSpan, Suggestion


def suggestion(n):
    return Suggestion(title=f"S{n}", text="Consider this.", priority="LOW", impact_score=10)


class TestFitSuggestions:
    """Suggestion lists always hold 5 to 12 items."""

    @pytest.mark.parametrize("count", [0, 1, 4])
    def test_padded_to_five(self, count):
        fitted = stages.fit_suggestions([suggestion(i) for i in range(count)])

        assert len(fitted) == 5
        assert fitted[-1].title == "General Best Practice"

    def test_truncated_to_twelve(self):
        fitted = stages.fit_suggestions([suggestion(i) for i in range(20)])

        assert len(fitted) == 12
        assert fitted[-1].title == "S11"

    def test_in_range_untouched(self):
        items = [suggestion(i) for i in range(7)]
        assert stages.fit_suggestions(items) == items

    def test_default_suggestions(self):
        defaults = stages.default_suggestions()

        assert len(defaults) == 5
        assert defaults[0].title == "Review Content"


class TestValidatePolicy:
    """Test policy output normalization."""

    def test_categories_wrapper(self):
        outcome = stages.validate_policy(
            {"categories": {"ADVERTISER_FRIENDLY_PROFANITY": {"risk_score": 35, "severity": "medium"}}}
        )

        assert outcome.valid
        assert outcome.data["ADVERTISER_FRIENDLY_PROFANITY"].risk_score == 35
        assert outcome.data["ADVERTISER_FRIENDLY_PROFANITY"].severity == "MEDIUM"

    def test_missing_categories_filled(self):
        outcome = stages.validate_policy({"ADVERTISER_FRIENDLY_PROFANITY": {"risk_score": 35}})

        assert set(outcome.data) == set(CATEGORY_KEYS)
        assert outcome.data["CONTENT_SAFETY_VIOLENCE"].risk_score == 0

    def test_list_format(self):
        outcome = stages.validate_policy([
            {"category": "Hate Speech", "risk_score": 60},
            {"category": "advertiser friendly profanity", "risk_score": 20},
        ])

        assert outcome.valid
        assert outcome.data["COMMUNITY_STANDARDS_HATE_SPEECH"].risk_score == 60
        assert outcome.data["ADVERTISER_FRIENDLY_PROFANITY"].risk_score == 20

    def test_ten_point_scale_rescaled(self):
        outcome = stages.validate_policy({"categories": {
            "ADVERTISER_FRIENDLY_PROFANITY": {"risk_score": 7, "confidence": 9},
            "CONTENT_SAFETY_VIOLENCE": {"risk_score": 2, "confidence": 8},
        }})

        assert outcome.data["ADVERTISER_FRIENDLY_PROFANITY"].risk_score == 70
        assert outcome.data["CONTENT_SAFETY_VIOLENCE"].risk_score == 20
        assert outcome.data["ADVERTISER_FRIENDLY_PROFANITY"].confidence == 90

    def test_no_categories_invalid(self):
        assert not stages.validate_policy({}).valid
        assert not stages.validate_policy("text").valid

    def test_entry_missing_risk_score_invalid(self):
        outcome = stages.validate_policy({"categories": {"ADVERTISER_FRIENDLY_PROFANITY": {"confidence": 10}}})
        assert not outcome.valid


class TestValidateOthers:
    def test_risk_category_keys_normalized(self):
        outcome = stages.validate_risk({
            "overall_risk_score": 30,
            "risky_phrases_by_category": {"Profanity & Inappropriate Language": ["damn"]},
        })

        assert outcome.data.risky_phrases_by_category == {"ADVERTISER_FRIENDLY_PROFANITY": ["damn"]}

    def test_suggestions_drop_malformed_items(self):
        outcome = stages.validate_suggestions({"suggestions": [{"title": "ok", "text": "fine"}, {"priority": "HIGH"}]})

        assert outcome.valid
        assert [s.title for s in outcome.data] == ["ok"]

    def test_suggestions_bare_list(self):
        outcome = stages.validate_suggestions([{"title": "ok", "text": "fine"}])
        assert len(outcome.data) == 1

    def test_suggestions_wrong_type(self):
        assert not stages.validate_suggestions({"suggestions": "none"}).valid

    def test_context_word_count_not_clamped(self):
        outcome = stages.validate_context({"content_type": "Gaming", "content_length": 1500})
        assert outcome.data.content_length == 1500


class TestDefaults:
    def test_default_policy_covers_catalog(self):
        policy = stages.default_policy()

        assert set(policy) == set(CATEGORY_KEYS)
        assert all(a.risk_score == 0 and a.explanation == "Analysis unavailable" for a in policy.values())

    def test_default_risk(self):
        risk = stages.default_risk()

        assert risk.overall_risk_score == 0
        assert risk.flagged_section == "Analysis unavailable"

    def test_default_context_counts_words(self):
        assert stages.default_context("one two three").content_length == 3


class TestChunking:
    def test_short_text_single_chunk(self):
        assert stages.split_into_chunks("short text", 100, 10) == [(0, "short text")]

    def test_long_text_chunks_cover_everything(self):
        text = " ".join(f"word{i}" for i in range(400))
        chunks = stages.split_into_chunks(text, 500, 50)

        assert len(chunks) > 1
        for offset, chunk in chunks:
            assert text[offset:offset + len(chunk)] == chunk
        last_offset, last_chunk = chunks[-1]
        assert last_offset + len(last_chunk) == len(text)
        for (o1, c1), (o2, _) in zip(chunks, chunks[1:]):
            assert o2 <= o1 + len(c1)

    def test_anchor_span_uses_matching_offsets(self):
        source = "intro damn outro"
        span = RiskSpan(text="damn", start_index=0, end_index=4)

        anchored = stages.anchor_span(span, source, offset=6)

        assert (anchored.start_index, anchored.end_index) == (6, 10)

    def test_anchor_span_searches_when_offsets_wrong(self):
        anchored = stages.anchor_span(RiskSpan(text="damn", start_index=0, end_index=4), "oh damn")
        assert (anchored.start_index, anchored.end_index) == (3, 7)

    def test_anchor_span_missing_text_loses_offsets(self):
        anchored = stages.anchor_span(RiskSpan(text="absent", start_index=0, end_index=6), "oh damn")
        assert not anchored.has_offsets

    def test_combine_chunk_assessments(self):
        source = "damn first part. second part hell"
        first = RiskAssessment(
            overall_risk_score=20,
            flagged_section="damn",
            risk_factors=["profanity"],
            risky_phrases_by_category={"ADVERTISER_FRIENDLY_PROFANITY": ["damn"]},
            risky_spans=[RiskSpan(text="damn", start_index=0, end_index=4)],
        )
        second = RiskAssessment(
            overall_risk_score=50,
            flagged_section="hell",
            severity_level="MEDIUM",
            risk_factors=["profanity", "tone"],
            risky_phrases_by_category={"ADVERTISER_FRIENDLY_PROFANITY": ["hell", "DAMN"]},
            risky_spans=[RiskSpan(text="hell", start_index=12, end_index=16)],
        )

        combined = stages.combine_chunk_assessments([(0, first), (17, second)], source)

        assert combined.overall_risk_score == 50
        assert combined.flagged_section == "hell"
        assert combined.risk_factors == ["profanity", "tone"]
        assert combined.risky_phrases_by_category == {"ADVERTISER_FRIENDLY_PROFANITY": ["damn", "hell"]}
        assert [(s.start_index, s.end_index) for s in combined.risky_spans] == [(0, 4), (29, 33)]

    def test_spans_from_phrases(self):
        policy = {"ADVERTISER_FRIENDLY_PROFANITY": PolicyCategoryAnalysis(risk_score=35, severity="MEDIUM")}

        spans = stages.spans_from_phrases(
            {"ADVERTISER_FRIENDLY_PROFANITY": ["damn", "missing"]}, policy, "Oh Damn it", []
        )

        assert len(spans) == 1
        assert spans[0].text == "Damn"
        assert (spans[0].start_index, spans[0].end_index) == (3, 7)
        assert spans[0].risk_level == "MEDIUM"

    def test_decode_entities_twice(self):
        assert stages.decode_entities("it&amp;#39;s") == "it's"
