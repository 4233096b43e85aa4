"""Stage definitions: validators, normalizers and conservative defaults.

Each stage validator takes the parsed JSON value and returns a
``ValidationOutcome`` holding the typed stage result. Validators never
raise; a failed outcome sends the extractor on to its next strategy.
"""

import html
import logging
from typing import Any

from ..models import (
    ContentSummary,
    AIDetection,
    ConfidenceAnalysis,
    ContextAnalysis,
    PolicyCategoryAnalysis,
    PolicyCategoryMap,
    RiskAssessment,
    RiskSpan,
    Suggestion,
)
from .policy_catalog import CATEGORY_KEYS, normalize_category_key
from .schema_validator import SchemaValidator, ValidationOutcome
from .score_aggregator import normalize_batch_scores

logger = logging.getLogger(__name__)

CONTENT_SUMMARY = "content_summary"
CONTEXT = "context_analysis"
AI_DETECTION = "ai_detection"
POLICY = "policy_analysis"
RISK = "risk_assessment"
CONFIDENCE = "confidence_analysis"
SUGGESTIONS = "suggestions"

MIN_SUGGESTIONS = 5
MAX_SUGGESTIONS = 12

UNAVAILABLE = "Analysis unavailable"

_validator = SchemaValidator()


def decode_entities(text: str) -> str:
    """Decode HTML entities twice (transcripts often arrive double-encoded)."""
    return html.unescape(html.unescape(text))


# ============================================================================
# Defaults
# ============================================================================


def default_context(content: str) -> ContextAnalysis:
    return ContextAnalysis(
        content_type="General",
        target_audience="General Audience",
        monetization_impact=50,
        content_length=len(content.split()),
        language_detected="English",
    )


def default_policy() -> PolicyCategoryMap:
    return {
        key: PolicyCategoryAnalysis(
            risk_score=0, confidence=0, violations=[], severity="LOW", explanation=UNAVAILABLE
        )
        for key in CATEGORY_KEYS
    }


def default_risk() -> RiskAssessment:
    return RiskAssessment(
        overall_risk_score=0,
        flagged_section=UNAVAILABLE,
        risk_factors=[],
        severity_level="LOW",
        risky_phrases_by_category={},
        risky_spans=[],
    )


def default_confidence() -> ConfidenceAnalysis:
    return ConfidenceAnalysis(
        overall_confidence=50,
        text_clarity=50,
        policy_specificity=50,
        context_availability=50,
        confidence_factors=["Analysis confidence could not be determined"],
    )


def padding_suggestion() -> Suggestion:
    return Suggestion(
        title="General Best Practice",
        text="Consider reviewing your content for further improvements in engagement, compliance, or monetization.",
        priority="LOW",
        impact_score=40,
    )


def default_suggestions() -> list[Suggestion]:
    review = Suggestion(
        title="Review Content",
        text="It is advised to review your content for potential policy violations.",
        priority="MEDIUM",
        impact_score=50,
    )
    return fit_suggestions([review])


def fit_suggestions(suggestions: list[Suggestion]) -> list[Suggestion]:
    """Pad to 5 with generic best practices, truncate to 12."""
    fitted = list(suggestions[:MAX_SUGGESTIONS])
    while len(fitted) < MIN_SUGGESTIONS:
        fitted.append(padding_suggestion())
    return fitted


# ============================================================================
# Validators
# ============================================================================


def validate_content_summary(data: Any) -> ValidationOutcome:
    return _validator.validate(data, ContentSummary)


def validate_context(data: Any) -> ValidationOutcome:
    return _validator.validate(data, ContextAnalysis)


def validate_ai_detection(data: Any) -> ValidationOutcome:
    return _validator.validate(data, AIDetection)


def validate_confidence(data: Any) -> ValidationOutcome:
    return _validator.validate(data, ConfidenceAnalysis)


def _policy_entries(data: Any) -> dict[str, Any] | None:
    """Accept {"categories": {...}}, a direct map, or a list carrying "category"."""
    if isinstance(data, dict) and "categories" in data:
        data = data["categories"]

    if isinstance(data, list):
        entries = {}
        for item in data:
            if isinstance(item, dict) and isinstance(item.get("category"), str):
                entries[item["category"]] = {k: v for k, v in item.items() if k != "category"}
        return entries

    if isinstance(data, dict):
        return {key: value for key, value in data.items() if isinstance(value, dict)}

    return None


def validate_policy(data: Any) -> ValidationOutcome:
    """
    Validate policy output and bring it onto the full catalog.

    Category labels are mapped onto catalog keys, batches on a 0-5 or 0-10
    scale are rescaled to 0-100, and catalog categories the model skipped
    are filled with zero-risk entries.
    """
    entries = _policy_entries(data)
    if not entries:
        return ValidationOutcome(valid=False, errors=["<root>: no policy categories found"])

    normalized = {normalize_category_key(key): value for key, value in entries.items()}
    outcome = _validator.validate(normalized, PolicyCategoryMap)
    if not outcome.valid:
        return outcome

    policy: PolicyCategoryMap = outcome.data
    keys = list(policy)
    risk_scores = normalize_batch_scores([policy[k].risk_score for k in keys])
    confidences = normalize_batch_scores([policy[k].confidence for k in keys])
    for key, risk_score, confidence in zip(keys, risk_scores, confidences):
        policy[key] = policy[key].model_copy(update={"risk_score": risk_score, "confidence": confidence})

    for key in CATEGORY_KEYS:
        if key not in policy:
            policy[key] = PolicyCategoryAnalysis(
                risk_score=0, confidence=0, violations=[], severity="LOW", explanation=""
            )

    return ValidationOutcome(valid=True, data=policy)


def validate_risk(data: Any) -> ValidationOutcome:
    """Validate risk output; phrase and span categories are mapped onto catalog keys."""
    outcome = _validator.validate(data, RiskAssessment)
    if not outcome.valid:
        return outcome

    risk: RiskAssessment = outcome.data
    phrases: dict[str, list[str]] = {}
    for category, items in risk.risky_phrases_by_category.items():
        phrases.setdefault(normalize_category_key(category), []).extend(items)

    spans = [
        span.model_copy(update={"policy_category": normalize_category_key(span.policy_category)})
        if span.policy_category else span
        for span in risk.risky_spans
    ]
    return ValidationOutcome(
        valid=True,
        data=risk.model_copy(update={"risky_phrases_by_category": phrases, "risky_spans": spans}),
    )


def validate_suggestions(data: Any) -> ValidationOutcome:
    """
    Validate suggestions, dropping individual malformed items.

    Accepts {"suggestions": [...]} or a bare list. Padding and truncation
    happen later in fit_suggestions.
    """
    if isinstance(data, dict):
        items = data.get("suggestions")
    else:
        items = data
    if not isinstance(items, list):
        return ValidationOutcome(valid=False, errors=["suggestions: expected a list"])

    suggestions = []
    for item in items:
        outcome = _validator.validate(item, Suggestion)
        if outcome.valid:
            suggestions.append(outcome.data)
        else:
            logger.debug(f"Dropping malformed suggestion: {outcome.errors[:2]}")
    return ValidationOutcome(valid=True, data=suggestions)


# ============================================================================
# Risk stage helpers
# ============================================================================


def split_into_chunks(text: str, size: int, overlap: int) -> list[tuple[int, str]]:
    """
    Split text into overlapping chunks, preferring whitespace boundaries.

    Returns:
        (offset, chunk) pairs; offset is the chunk start within text
    """
    if len(text) <= size:
        return [(0, text)]

    chunks = []
    start = 0
    while start < len(text):
        end = min(start + size, len(text))
        if end < len(text):
            boundary = text.rfind(" ", start + size // 2, end)
            if boundary != -1:
                end = boundary
        chunks.append((start, text[start:end]))
        if end >= len(text):
            break
        start = max(end - overlap, start + 1)
    return chunks


def anchor_span(span: RiskSpan, source: str, offset: int = 0) -> RiskSpan:
    """
    Pin a span to absolute offsets in source.

    Offsets are trusted only if the text at them matches the span text;
    otherwise the first occurrence of the text is used, and a span whose
    text cannot be found loses its offsets.
    """
    if span.has_offsets:
        start, end = span.start_index + offset, span.end_index + offset
        if source[start:end].lower() == span.text.lower():
            return span.model_copy(update={"start_index": start, "end_index": end})

    if span.text:
        found = source.lower().find(span.text.lower(), offset)
        if found == -1:
            found = source.lower().find(span.text.lower())
        if found != -1:
            return span.model_copy(update={"start_index": found, "end_index": found + len(span.text)})

    return span.model_copy(update={"start_index": None, "end_index": None})


def combine_chunk_assessments(assessments: list[tuple[int, RiskAssessment]], source: str) -> RiskAssessment:
    """
    Merge per-chunk risk assessments into one.

    The highest-scoring chunk supplies score, flagged section and severity;
    phrases are unioned per category, factors de-duplicated, spans shifted
    to absolute offsets.
    """
    if len(assessments) == 1:
        offset, only = assessments[0]
        return only.model_copy(update={"risky_spans": [anchor_span(s, source, offset) for s in only.risky_spans]})

    top = max(assessments, key=lambda item: item[1].overall_risk_score)[1]

    phrases: dict[str, list[str]] = {}
    factors: list[str] = []
    spans: list[RiskSpan] = []
    for offset, assessment in assessments:
        for category, items in assessment.risky_phrases_by_category.items():
            bucket = phrases.setdefault(category, [])
            for item in items:
                if item.lower() not in (existing.lower() for existing in bucket):
                    bucket.append(item)
        for factor in assessment.risk_factors:
            if factor not in factors:
                factors.append(factor)
        spans.extend(anchor_span(span, source, offset) for span in assessment.risky_spans)

    return top.model_copy(
        update={"risky_phrases_by_category": phrases, "risk_factors": factors, "risky_spans": spans}
    )


def spans_from_phrases(
    phrases_by_category: dict[str, list[str]], policy: PolicyCategoryMap, source: str, existing: list[RiskSpan]
) -> list[RiskSpan]:
    """Create spans for risky phrases the model listed without a span."""
    covered = {(span.policy_category, span.text.lower()) for span in existing}
    created = []
    lowered = source.lower()
    for category, phrases in phrases_by_category.items():
        level = policy[category].severity if category in policy else "LOW"
        for phrase in phrases:
            if (category, phrase.lower()) in covered:
                continue
            start = lowered.find(phrase.lower())
            if start == -1:
                continue
            created.append(
                RiskSpan(
                    text=source[start:start + len(phrase)],
                    start_index=start,
                    end_index=start + len(phrase),
                    risk_level=level,
                    policy_category=category,
                    explanation=f"Flagged under {category.replace('_', ' ').title()}",
                )
            )
    return created
