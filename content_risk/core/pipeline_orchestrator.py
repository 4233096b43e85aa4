"""Multi-stage content risk analysis pipeline.

Fixed stage order:
1. Context classification
2. AI-origin detection (only when channel context is supplied)
3. Policy category analysis
4. Risk assessment (chunked for long text)
5. Confidence analysis
6. Suggestion generation

Each stage prompt carries every earlier stage's output. Multi-modal runs
fetch one holistic content summary from the video first and share it with
every stage instead of re-sending the video. A stage that exhausts its
attempts falls back to a conservative default in text-only mode; in
multi-modal mode the failure re-runs the whole request text-only.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, UTC
from typing import Any, Callable, Optional, Protocol

from ..config import settings
from ..models import (
    AIDetection,
    AnalysisMetadata,
    AnalysisMode,
    AnalysisRequest,
    AnalysisResult,
    ConfidenceAnalysis,
    ContentSummary,
    ContextAnalysis,
    PolicyCategoryMap,
    RiskAssessment,
    Suggestion,
    SuggestionList,
)
from ..utils.logging_utils import log_exception_json, log_json, truncate
from . import stages
from .errors import InvalidRequestError, ProviderError, TerminalStageError
from .false_positive_filter import filter_phrases_by_category, should_flag_phrase
from .modality import MULTI_MODAL, ModalityFallbackManager
from .output_extractor import StructuredOutputExtractor, Validator
from .prompt_builder import PromptBuilder
from .retry_controller import RetryController
from .schema_validator import SchemaValidator
from .score_aggregator import calculate_overall_score, generate_highlights
from .span_merger import merge_spans

logger = logging.getLogger(__name__)


@dataclass
class StageDiagnostic:
    """Record emitted when a stage needed retries or failed outright."""

    stage: str
    attempts: int
    success: bool
    analysis_mode: str
    raw_response: str = ""
    error: Optional[str] = None
    strategy: Optional[str] = None


class DiagnosticsSink(Protocol):
    def emit(self, record: StageDiagnostic) -> None:
        ...


def _needed_retries(stage_attempt: int, provider_attempts: int, strategy: str) -> bool:
    """True if a success took more than one stage attempt, provider call or model repair."""
    return (
        stage_attempt > 1
        or provider_attempts > 1
        or strategy == "ai-repair"
        or strategy.startswith("retry-")
    )


class LoggingDiagnosticsSink:
    """Write diagnostics as single-line JSON log entries."""

    def emit(self, record: StageDiagnostic) -> None:
        log_json(
            logger,
            f"Stage {record.stage} {'recovered' if record.success else 'failed'} after {record.attempts} attempts",
            severity="WARNING" if record.success else "ERROR",
            **asdict(record),
        )


@dataclass
class _Run:
    """Per-request state for one pass through the stages."""

    request: AnalysisRequest
    content: str
    mode: AnalysisMode
    summary: Optional[str] = None
    providers_used: list[str] = field(default_factory=list)

    def note_provider(self, provider: str) -> None:
        if provider not in self.providers_used:
            self.providers_used.append(provider)


@dataclass
class _StageOutputs:
    context: ContextAnalysis
    ai_detection: Optional[AIDetection]
    policy: PolicyCategoryMap
    risk: RiskAssessment
    confidence: ConfidenceAnalysis
    suggestions: list[Suggestion]


class PipelineOrchestrator:
    """
    Run the analysis stages and assemble the final result.

    One instance serves any number of concurrent requests; all per-request
    state lives in a ``_Run`` object.
    """

    def __init__(
        self,
        retry_controller: RetryController,
        extractor: Optional[StructuredOutputExtractor] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        modality: Optional[ModalityFallbackManager] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        stage_max_attempts: Optional[int] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        """
        Initialize the pipeline.

        Args:
            retry_controller: Routes every provider call (retries, fallback, quota)
            extractor: Structured output extractor (default: new instance)
            prompt_builder: Stage prompt builder
            modality: Path selection (default: based on retry_controller providers)
            diagnostics: Sink for retry/failure records (default: JSON logs)
            stage_max_attempts: Call+extract attempts per stage
            clock: Timestamp source for analysis metadata
        """
        self.retry = retry_controller
        self.extractor = extractor or StructuredOutputExtractor(SchemaValidator())
        self.prompts = prompt_builder or PromptBuilder()
        self.modality = modality or ModalityFallbackManager(retry_controller.supports_multimodal)
        self.diagnostics = diagnostics or LoggingDiagnosticsSink()
        self.stage_max_attempts = stage_max_attempts or settings.stage_max_attempts
        self._clock = clock

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Analyze one request.

        Raises:
            InvalidRequestError: Request has no transcript, metadata or asset
        """
        if not request.has_content():
            raise InvalidRequestError("Request has no transcript, metadata or video asset to analyze")

        started = time.monotonic()
        result = await self.modality.execute(
            request,
            lambda req, content, mode, summary: self._run_pipeline(req, content, mode, summary, started),
            self._summarize,
        )
        logger.info(
            f"Analysis complete: risk_score={result.risk_score}, risk_level={result.risk_level}, "
            f"mode={result.analysis_metadata.analysis_mode}, "
            f"time={result.analysis_metadata.processing_time_ms}ms"
        )
        return result

    # ------------------------------------------------------------------
    # Provider calls
    # ------------------------------------------------------------------

    async def _repair(self, prompt: str) -> str:
        result = await self.retry.run(lambda provider: provider.generate_content(prompt), max_attempts=1)
        return result.value

    async def _summarize(self, request: AnalysisRequest, content: str) -> str:
        """Fetch the shared multi-modal content summary."""
        run = _Run(request=request, content=content, mode=MULTI_MODAL)
        prompt = self.prompts.build_content_summary_prompt()
        transcript = request.transcript if request.transcript and request.transcript.strip() else None

        async def call(provider):
            return await provider.generate_multimodal_content(
                prompt, request.video_asset_ref, transcript=transcript, metadata=request.metadata
            )

        summary: ContentSummary = await self._run_stage(
            run,
            stages.CONTENT_SUMMARY,
            call,
            ContentSummary,
            stages.validate_content_summary,
            require_multimodal=True,
        )
        return summary.model_dump_json(indent=2)

    async def _run_stage(
        self,
        run: _Run,
        stage: str,
        call: Callable[[Any], Any],
        shape: Any,
        validator: Validator,
        require_multimodal: bool = False,
    ) -> Any:
        """
        Call the model and extract a typed result, with bounded attempts.

        Raises:
            TerminalStageError: Every attempt failed
        """
        raw: Optional[str] = None
        last_error: Optional[str] = None
        attempts = 0

        for attempt in range(1, self.stage_max_attempts + 1):
            attempts = attempt
            try:
                outcome = await self.retry.run(call, require_multimodal=require_multimodal)
                run.note_provider(outcome.provider)
                raw = outcome.value
                extraction = await self.extractor.extract(raw, shape, validator=validator, repair=self._repair)
            except ProviderError as e:
                # Retries and provider fallback already happened inside run()
                last_error = str(e)
                break
            except Exception as e:
                log_exception_json(
                    logger,
                    f"Unexpected error in stage {stage}",
                    e,
                    stage=stage,
                    attempts=attempt,
                    raw_response=truncate(raw, settings.diagnostics_max_chars),
                )
                last_error = f"{type(e).__name__}: {e}"
                break

            if extraction.success:
                # Stage retries + provider calls + extraction steps past the direct parse
                total = (attempt - 1) + outcome.attempts + (extraction.attempts - 1)
                if _needed_retries(attempt, outcome.attempts, extraction.strategy):
                    self.diagnostics.emit(
                        StageDiagnostic(
                            stage=stage,
                            attempts=total,
                            success=True,
                            analysis_mode=run.mode,
                            raw_response=truncate(raw, settings.diagnostics_max_chars),
                            strategy=extraction.strategy,
                        )
                    )
                return extraction.data

            last_error = extraction.error
            logger.warning(f"Stage {stage} extraction failed (attempt {attempt}/{self.stage_max_attempts})")

        self.diagnostics.emit(
            StageDiagnostic(
                stage=stage,
                attempts=attempts,
                success=False,
                analysis_mode=run.mode,
                raw_response=truncate(raw, settings.diagnostics_max_chars),
                error=last_error,
            )
        )
        raise TerminalStageError(stage, attempts, last_error, truncate(raw, settings.diagnostics_max_chars))

    async def _text_stage(
        self,
        run: _Run,
        stage: str,
        prompt: str,
        shape: Any,
        validator: Validator,
        default: Callable[[], Any],
    ) -> Any:
        """Run a text stage; text-only runs degrade to ``default()`` on failure."""
        try:
            return await self._run_stage(
                run, stage, lambda provider: provider.generate_content(prompt), shape, validator
            )
        except TerminalStageError as e:
            if run.mode == MULTI_MODAL:
                raise
            logger.warning(f"Stage {stage} using conservative default: {e}")
            return default()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _risk_stage(self, run: _Run, context, policy, ai_detection) -> RiskAssessment:
        chunks = stages.split_into_chunks(run.content, settings.chunk_size, settings.chunk_overlap)
        if len(chunks) > 1:
            logger.info(f"Risk assessment over {len(chunks)} chunks ({len(run.content)} chars)")

        assessments = []
        for index, (offset, chunk) in enumerate(chunks, start=1):
            prompt = self.prompts.build_risk_prompt(
                chunk,
                context,
                policy,
                ai_detection,
                content_summary=run.summary,
                chunk=(index, len(chunks)) if len(chunks) > 1 else None,
            )
            assessment = await self._text_stage(
                run, stages.RISK, prompt, RiskAssessment, stages.validate_risk, stages.default_risk
            )
            assessments.append((offset, assessment))

        return stages.combine_chunk_assessments(assessments, run.content)

    async def _run_stages(self, run: _Run) -> _StageOutputs:
        content, summary = run.content, run.summary

        context = await self._text_stage(
            run,
            stages.CONTEXT,
            self.prompts.build_context_prompt(content, run.request.channel_context, summary),
            ContextAnalysis,
            stages.validate_context,
            lambda: stages.default_context(content),
        )

        ai_detection = None
        if run.request.channel_context:
            ai_detection = await self._text_stage(
                run,
                stages.AI_DETECTION,
                self.prompts.build_ai_detection_prompt(content, context, summary),
                AIDetection,
                stages.validate_ai_detection,
                lambda: None,
            )

        policy = await self._text_stage(
            run,
            stages.POLICY,
            self.prompts.build_policy_prompt(content, context, ai_detection, summary),
            PolicyCategoryMap,
            stages.validate_policy,
            stages.default_policy,
        )

        risk = await self._risk_stage(run, context, policy, ai_detection)

        confidence = await self._text_stage(
            run,
            stages.CONFIDENCE,
            self.prompts.build_confidence_prompt(content, context, policy, risk, ai_detection, summary),
            ConfidenceAnalysis,
            stages.validate_confidence,
            stages.default_confidence,
        )

        suggestions = await self._text_stage(
            run,
            stages.SUGGESTIONS,
            self.prompts.build_suggestions_prompt(content, context, policy, risk, confidence, ai_detection, summary),
            SuggestionList,
            stages.validate_suggestions,
            stages.default_suggestions,
        )

        return _StageOutputs(
            context=context,
            ai_detection=ai_detection,
            policy=policy,
            risk=risk,
            confidence=confidence,
            suggestions=stages.fit_suggestions(suggestions),
        )

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    async def _run_pipeline(
        self,
        request: AnalysisRequest,
        content: str,
        mode: AnalysisMode,
        summary: Optional[str],
        started: float,
    ) -> AnalysisResult:
        run = _Run(request=request, content=content, mode=mode, summary=summary)
        logger.info(f"Running {len(content)}-char analysis in {mode} mode")

        outputs = await self._run_stages(run)
        return self._build_result(run, outputs, started)

    def _build_result(self, run: _Run, outputs: _StageOutputs, started: float) -> AnalysisResult:
        policy, risk = outputs.policy, outputs.risk

        phrases_by_category = filter_phrases_by_category(risk.risky_phrases_by_category)

        risky_phrases: list[str] = []
        for phrases in phrases_by_category.values():
            for phrase in phrases:
                if phrase.lower() not in (p.lower() for p in risky_phrases):
                    risky_phrases.append(phrase)

        spans = [span for span in risk.risky_spans if should_flag_phrase(span.text)]
        spans.extend(stages.spans_from_phrases(phrases_by_category, policy, run.content, spans))
        spans = merge_spans(spans, run.content)

        aggregate = calculate_overall_score(policy, risk)

        metadata = AnalysisMetadata(
            model_used=", ".join(run.providers_used) or self.retry.primary.name,
            analysis_timestamp=self._clock().isoformat(),
            processing_time_ms=int((time.monotonic() - started) * 1000),
            content_length=len(run.content),
            analysis_mode=run.mode,
            queue_status=self.retry.queue_status(),
        )

        return AnalysisResult(
            risk_score=aggregate.risk_score,
            risk_level=aggregate.risk_level,
            confidence_score=outputs.confidence.overall_confidence,
            flagged_section=risk.flagged_section,
            policy_categories=policy,
            context_analysis=outputs.context,
            confidence_analysis=outputs.confidence,
            risk_factors=risk.risk_factors,
            highlights=generate_highlights(policy),
            suggestions=outputs.suggestions,
            risky_spans=spans,
            risky_phrases=risky_phrases,
            risky_phrases_by_category=phrases_by_category,
            ai_detection=outputs.ai_detection,
            analysis_metadata=metadata,
        )
