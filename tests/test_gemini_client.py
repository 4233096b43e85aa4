"""Tests for gemini_client.py"""

from unittest.mock import AsyncMock, Mock

import pytest
from google.api_core import exceptions as google_exceptions

from content_risk.core.errors import ProviderError, QuotaExceededError, TransientProviderError
from content_risk.core.gemini_client import GeminiProvider, ModelProvider, classify_provider_error
from content_risk.models import VideoMetadata


class TestClassifyProviderError:
    """Test SDK error mapping."""

    def test_daily_quota_is_terminal(self):
        exc = google_exceptions.ResourceExhausted("Quota exceeded for quota metric 'requests per day'")
        assert isinstance(classify_provider_error(exc, "gemini"), QuotaExceededError)

    def test_rate_limit_is_transient(self):
        exc = google_exceptions.ResourceExhausted("Too many requests, slow down")
        mapped = classify_provider_error(exc, "gemini")
        assert isinstance(mapped, TransientProviderError)
        assert mapped.provider == "gemini"

    def test_server_errors_are_transient(self):
        for exc in (
            google_exceptions.ServiceUnavailable("overloaded"),
            google_exceptions.InternalServerError("boom"),
            google_exceptions.DeadlineExceeded("slow"),
        ):
            assert isinstance(classify_provider_error(exc, "gemini"), TransientProviderError)

    def test_connection_error_is_transient(self):
        assert isinstance(classify_provider_error(ConnectionError("reset"), "gemini"), TransientProviderError)

    def test_bad_request_passes_through(self):
        exc = google_exceptions.InvalidArgument("bad prompt")
        assert classify_provider_error(exc, "gemini") is exc

    def test_provider_errors_pass_through(self):
        exc = QuotaExceededError("out", provider="gemini")
        assert classify_provider_error(exc, "other") is exc


class TestGeminiProvider:
    """Test GeminiProvider with a mocked async client."""

    @pytest.fixture
    def client(self):
        client = Mock()
        client.models.generate_content = AsyncMock(return_value=Mock(text='{"ok": true}'))
        return client

    def test_satisfies_protocol(self, client):
        provider = GeminiProvider("gemini-test", client=client)
        assert isinstance(provider, ModelProvider)
        assert provider.name == "gemini-test"

    @pytest.mark.asyncio
    async def test_generate_content(self, client):
        provider = GeminiProvider("gemini-test", client=client)

        text = await provider.generate_content("prompt")

        assert text == '{"ok": true}'
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"] == ["prompt"]
        assert kwargs["config"]["response_mime_type"] == "application/json"
        assert "media_resolution" not in kwargs["config"]

    @pytest.mark.asyncio
    async def test_empty_response_is_transient(self, client):
        client.models.generate_content.return_value = Mock(text="")
        provider = GeminiProvider("gemini-test", client=client)

        with pytest.raises(TransientProviderError):
            await provider.generate_content("prompt")

    @pytest.mark.asyncio
    async def test_quota_error_is_mapped(self, client):
        client.models.generate_content.side_effect = google_exceptions.ResourceExhausted(
            "Quota exceeded: requests per day"
        )
        provider = GeminiProvider("gemini-test", client=client)

        with pytest.raises(QuotaExceededError):
            await provider.generate_content("prompt")

    @pytest.mark.asyncio
    async def test_multimodal_contents(self, client):
        provider = GeminiProvider("gemini-test", client=client)

        await provider.generate_multimodal_content(
            "summarize",
            "gs://bucket/video.mp4",
            transcript="hello there",
            metadata=VideoMetadata(title="Title", description="Desc"),
        )

        kwargs = client.models.generate_content.call_args.kwargs
        contents = kwargs["contents"]
        assert len(contents) == 4
        assert "Title: Title" in contents[1]
        assert "hello there" in contents[2]
        assert contents[3] == "summarize"
        assert "media_resolution" in kwargs["config"]

    @pytest.mark.asyncio
    async def test_multimodal_disabled(self, client):
        provider = GeminiProvider("gemini-text", client=client, supports_multimodal=False)

        with pytest.raises(ProviderError):
            await provider.generate_multimodal_content("summarize", "gs://bucket/video.mp4")
        client.models.generate_content.assert_not_called()
