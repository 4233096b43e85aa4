"""Tests for schema_validator.py"""

from content_risk.core.schema_validator import SchemaValidator, clamp_score
from content_risk.models import PolicyCategoryAnalysis, PolicyCategoryMap, RiskAssessment, RiskSpan


class TestSchemaValidator:
    """Test lenient validation of model output."""

    def setup_method(self):
        self.validator = SchemaValidator()

    def test_scores_are_clamped(self):
        """Out-of-range numbers are clamped into [0, 100]."""
        outcome = self.validator.validate({"risk_score": 140, "confidence": -5}, PolicyCategoryAnalysis)

        assert outcome.valid
        assert outcome.data.risk_score == 100
        assert outcome.data.confidence == 0

    def test_numeric_strings_accepted(self):
        outcome = self.validator.validate({"overall_risk_score": "42%"}, RiskAssessment)

        assert outcome.valid
        assert outcome.data.overall_risk_score == 42

    def test_missing_optional_fields_get_defaults(self):
        """Optional fields default to [], LOW and 0."""
        outcome = self.validator.validate({"risk_score": 10}, PolicyCategoryAnalysis)

        assert outcome.valid
        assert outcome.data.violations == []
        assert outcome.data.severity == "LOW"
        assert outcome.data.confidence == 0

    def test_missing_required_field_fails(self):
        outcome = self.validator.validate({"flagged_section": "x"}, RiskAssessment)

        assert not outcome.valid
        assert any("overall_risk_score" in error for error in outcome.errors)

    def test_unknown_fields_preserved(self):
        outcome = self.validator.validate({"risk_score": 5, "model_notes": "extra"}, PolicyCategoryAnalysis)

        assert outcome.valid
        assert outcome.data.model_extra == {"model_notes": "extra"}

    def test_levels_are_case_insensitive(self):
        outcome = self.validator.validate({"risk_score": 5, "severity": "moderate"}, PolicyCategoryAnalysis)
        assert outcome.data.severity == "MEDIUM"

        outcome = self.validator.validate({"risk_score": 5, "severity": "nonsense"}, PolicyCategoryAnalysis)
        assert outcome.data.severity == "LOW"

    def test_single_string_becomes_list(self):
        outcome = self.validator.validate({"risk_score": 5, "violations": "one problem"}, PolicyCategoryAnalysis)
        assert outcome.data.violations == ["one problem"]

    def test_typing_shapes(self):
        outcome = self.validator.validate({"A": {"risk_score": 1}, "B": {"risk_score": 2}}, PolicyCategoryMap)

        assert outcome.valid
        assert set(outcome.data) == {"A", "B"}

    def test_non_object_fails(self):
        outcome = self.validator.validate("just text", RiskAssessment)
        assert not outcome.valid

    def test_inverted_span_offsets_dropped(self):
        span = RiskSpan(text="x", start_index=10, end_index=2)

        assert span.start_index is None
        assert span.end_index is None
        assert not span.has_offsets

    def test_clamp_score(self):
        assert clamp_score(-1) == 0
        assert clamp_score(50) == 50
        assert clamp_score(101) == 100
