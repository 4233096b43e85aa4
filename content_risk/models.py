"""Pydantic models for content risk analyzer service."""

from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from .core.schema_validator import Level, Score, StrList, Text

AnalysisMode = Literal["multi-modal", "text-only"]


def _coerce_offset(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        offset = int(value)
    except (TypeError, ValueError):
        return None
    return offset if offset >= 0 else None


Offset = Annotated[Optional[int], BeforeValidator(_coerce_offset)]


def _coerce_word_count(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


WordCount = Annotated[int, BeforeValidator(_coerce_word_count)]


# ============================================================================
# Request
# ============================================================================


class VideoMetadata(BaseModel):
    """Title and description supplied alongside a video."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    description: str = ""


class AnalysisRequest(BaseModel):
    """One analysis request. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    transcript: Optional[str] = None
    video_asset_ref: Optional[str] = None  # e.g. gs:// or https:// URI of the video
    metadata: Optional[VideoMetadata] = None
    channel_context: Optional[dict[str, Any]] = None

    def has_content(self) -> bool:
        """True if transcript, metadata or asset can be analyzed."""
        if self.transcript and self.transcript.strip():
            return True
        if self.video_asset_ref and self.video_asset_ref.strip():
            return True
        if self.metadata and (self.metadata.title.strip() or self.metadata.description.strip()):
            return True
        return False


# ============================================================================
# Stage results (validated model output)
# ============================================================================


class StageModel(BaseModel):
    """Base for stage outputs. Unknown fields are kept."""

    model_config = ConfigDict(extra="allow")


class ContentSummary(StageModel):
    """Holistic multi-modal summary shared with every text stage."""

    summary: Text
    visual_elements: StrList = Field(default_factory=list)
    audio_elements: StrList = Field(default_factory=list)
    notable_quotes: StrList = Field(default_factory=list)


class ContextAnalysis(StageModel):
    """Stage 1: content classification."""

    content_type: Text
    target_audience: Text = "General Audience"
    monetization_impact: Score = 50
    content_length: WordCount = 0
    language_detected: Text = "English"


class AIDetection(StageModel):
    """Optional stage: likelihood that the content is AI generated."""

    ai_probability: Score
    confidence: Score = 0
    patterns: StrList = Field(default_factory=list)
    indicators: dict[str, Score] = Field(default_factory=dict)
    explanation: Text = ""


class PolicyCategoryAnalysis(StageModel):
    """Stage 2: result for a single policy category."""

    risk_score: Score
    confidence: Score = 0
    violations: StrList = Field(default_factory=list)
    severity: Level = "LOW"
    explanation: Text = ""


PolicyCategoryMap = dict[str, PolicyCategoryAnalysis]


class RiskSpan(StageModel):
    """Contiguous range of source text tagged with a category and severity."""

    text: Text
    start_index: Offset = None
    end_index: Offset = None
    risk_level: Level = "LOW"
    policy_category: Text = ""
    explanation: Text = ""

    @model_validator(mode="after")
    def _drop_inverted_offsets(self) -> "RiskSpan":
        if (
            self.start_index is not None
            and self.end_index is not None
            and self.end_index < self.start_index
        ):
            self.start_index = None
            self.end_index = None
        return self

    @property
    def has_offsets(self) -> bool:
        return self.start_index is not None and self.end_index is not None


class RiskAssessment(StageModel):
    """Stage 3: overall risk and risky phrases."""

    overall_risk_score: Score
    flagged_section: Text = ""
    risk_factors: StrList = Field(default_factory=list)
    severity_level: Level = "LOW"
    risky_phrases_by_category: dict[str, StrList] = Field(default_factory=dict)
    risky_spans: list[RiskSpan] = Field(default_factory=list)


class ConfidenceAnalysis(StageModel):
    """Stage 4: how much the analysis can be trusted."""

    overall_confidence: Score
    text_clarity: Score = 50
    policy_specificity: Score = 50
    context_availability: Score = 50
    confidence_factors: StrList = Field(default_factory=list)


class Suggestion(StageModel):
    """Stage 5: one improvement suggestion."""

    title: Text
    text: Text
    priority: Level = "LOW"
    impact_score: Score = 0


class SuggestionList(StageModel):
    suggestions: list[Suggestion] = Field(default_factory=list)


# ============================================================================
# Aggregate result
# ============================================================================


class Highlight(BaseModel):
    """Top-scoring policy category surfaced to the user."""

    category: str
    risk: str
    score: float
    confidence: float


class AnalysisMetadata(BaseModel):
    """How and when the analysis was produced."""

    model_used: str
    analysis_timestamp: str  # ISO-8601
    processing_time_ms: int
    content_length: int
    analysis_mode: AnalysisMode
    queue_status: Optional[dict[str, Any]] = None


class AnalysisResult(BaseModel):
    """Final aggregate of one pipeline run. Immutable."""

    model_config = ConfigDict(frozen=True)

    risk_score: int = Field(..., ge=0, le=100)
    risk_level: Literal["LOW", "MEDIUM", "HIGH"]
    confidence_score: float = Field(..., ge=0, le=100)
    flagged_section: str
    policy_categories: PolicyCategoryMap
    context_analysis: ContextAnalysis
    confidence_analysis: ConfidenceAnalysis
    risk_factors: list[str] = Field(default_factory=list)
    highlights: list[Highlight] = Field(default_factory=list, max_length=4)
    suggestions: list[Suggestion] = Field(..., min_length=5, max_length=12)
    risky_spans: list[RiskSpan] = Field(default_factory=list)
    risky_phrases: list[str] = Field(default_factory=list)
    risky_phrases_by_category: dict[str, list[str]] = Field(default_factory=dict)
    ai_detection: Optional[AIDetection] = None
    analysis_metadata: AnalysisMetadata


# ============================================================================
# Usage
# ============================================================================


class QuotaStatus(BaseModel):
    """Daily quota snapshot for one provider."""

    provider: str
    date: str
    available: bool
    current: int
    limit: int
