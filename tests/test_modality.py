"""Tests for modality.py"""

from unittest.mock import AsyncMock

import pytest

from content_risk.core.errors import RetryExhaustedError, TerminalStageError
from content_risk.core.modality import NO_CONTENT_NOTICE, ModalityFallbackManager, build_text_content
from content_risk.models import AnalysisRequest, VideoMetadata


class TestBuildTextContent:
    def test_transcript_preferred(self):
        request = AnalysisRequest(transcript="spoken words", metadata=VideoMetadata(title="Title"))
        assert build_text_content(request) == "spoken words"

    def test_metadata_when_no_transcript(self):
        request = AnalysisRequest(transcript="  ", metadata=VideoMetadata(title="Title", description="About"))
        assert build_text_content(request) == "Title\n\nAbout"

    def test_placeholder_when_nothing(self):
        assert build_text_content(AnalysisRequest(video_asset_ref="gs://bucket/v.mp4")) == NO_CONTENT_NOTICE

    def test_entities_decoded(self):
        assert build_text_content(AnalysisRequest(transcript="Tom &amp;amp; Jerry")) == "Tom & Jerry"


class TestModalityFallbackManager:
    """Test path selection and degradation."""

    ASSET_REQUEST = AnalysisRequest(transcript="hello there", video_asset_ref="gs://bucket/v.mp4")

    def test_multimodal_needs_asset_and_capability(self):
        assert ModalityFallbackManager(lambda: True).select_mode(self.ASSET_REQUEST) == "multi-modal"
        assert ModalityFallbackManager(lambda: False).select_mode(self.ASSET_REQUEST) == "text-only"
        assert ModalityFallbackManager(lambda: True).select_mode(AnalysisRequest(transcript="x")) == "text-only"

    @pytest.mark.asyncio
    async def test_multimodal_path_passes_summary(self):
        manager = ModalityFallbackManager(lambda: True)
        run = AsyncMock(return_value="result")
        summarize = AsyncMock(return_value="summary")

        assert await manager.execute(self.ASSET_REQUEST, run, summarize) == "result"
        run.assert_awaited_once_with(self.ASSET_REQUEST, "hello there", "multi-modal", "summary")

    @pytest.mark.asyncio
    async def test_summary_failure_reruns_text_only(self):
        manager = ModalityFallbackManager(lambda: True)
        run = AsyncMock(return_value="text result")
        summarize = AsyncMock(side_effect=RetryExhaustedError(3, None))

        assert await manager.execute(self.ASSET_REQUEST, run, summarize) == "text result"
        run.assert_awaited_once_with(self.ASSET_REQUEST, "hello there", "text-only", None)

    @pytest.mark.asyncio
    async def test_stage_failure_reruns_whole_pipeline_text_only(self):
        manager = ModalityFallbackManager(lambda: True)
        run = AsyncMock(side_effect=[TerminalStageError("policy_analysis", 3, "bad json"), "text result"])
        summarize = AsyncMock(return_value="summary")

        assert await manager.execute(self.ASSET_REQUEST, run, summarize) == "text result"
        assert run.await_count == 2
        assert run.await_args_list[1].args[2] == "text-only"

    @pytest.mark.asyncio
    async def test_text_only_skips_summary(self):
        manager = ModalityFallbackManager(lambda: False)
        run = AsyncMock(return_value="r")
        summarize = AsyncMock()

        await manager.execute(self.ASSET_REQUEST, run, summarize)

        summarize.assert_not_awaited()
