"""Choose between multi-modal and text-only analysis.

The multi-modal path is used only when a provider supports it AND the
request carries a video asset. Any failure on that path re-runs the whole
pipeline text-only, so callers never see a half multi-modal result.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..models import AnalysisMode, AnalysisRequest
from ..utils.logging_utils import log_exception_json
from .errors import ProviderError, TerminalStageError
from .stages import decode_entities

logger = logging.getLogger(__name__)

T = TypeVar("T")

MULTI_MODAL: AnalysisMode = "multi-modal"
TEXT_ONLY: AnalysisMode = "text-only"

NO_CONTENT_NOTICE = "No transcript or metadata available for analysis."

# (request, text content, mode, shared content summary) -> result
PipelineRun = Callable[[AnalysisRequest, str, AnalysisMode, Optional[str]], Awaitable[T]]
Summarize = Callable[[AnalysisRequest, str], Awaitable[str]]


def build_text_content(request: AnalysisRequest) -> str:
    """
    Text to analyze: transcript, else title and description, else a notice.

    HTML entities are decoded.
    """
    if request.transcript and request.transcript.strip():
        return decode_entities(request.transcript.strip())

    if request.metadata:
        parts = [p.strip() for p in (request.metadata.title, request.metadata.description) if p and p.strip()]
        if parts:
            return decode_entities("\n\n".join(parts))

    return NO_CONTENT_NOTICE


class ModalityFallbackManager:
    """Select the execution path and degrade to text-only on failure."""

    def __init__(self, supports_multimodal: Callable[[], bool]):
        """
        Args:
            supports_multimodal: Reports whether any configured provider
                accepts video input
        """
        self._supports_multimodal = supports_multimodal

    def select_mode(self, request: AnalysisRequest) -> AnalysisMode:
        has_asset = bool(request.video_asset_ref and request.video_asset_ref.strip())
        if has_asset and self._supports_multimodal():
            return MULTI_MODAL
        return TEXT_ONLY

    async def execute(self, request: AnalysisRequest, run: PipelineRun, summarize: Summarize) -> T:
        """
        Run the pipeline on the best available path.

        Args:
            request: Analysis request
            run: Runs every stage for a given content string and mode
            summarize: Produces the shared multi-modal content summary

        Returns:
            Whatever ``run`` returns
        """
        content = build_text_content(request)

        if self.select_mode(request) == MULTI_MODAL:
            try:
                summary = await summarize(request, content)
                return await run(request, content, MULTI_MODAL, summary)
            except (TerminalStageError, ProviderError) as e:
                log_exception_json(
                    logger,
                    "Multi-modal analysis failed, re-running text-only",
                    e,
                    severity="WARNING",
                    asset=request.video_asset_ref,
                )

        return await run(request, content, TEXT_ONLY, None)
