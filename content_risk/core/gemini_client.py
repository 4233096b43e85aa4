"""Gemini model providers via the google-genai SDK.

The pipeline talks to models only through the ``ModelProvider`` protocol.
``GeminiProvider`` implements it on Vertex AI (or the Gemini API when an API
key is configured) and translates SDK errors into the provider error
taxonomy so the retry controller can tell quota exhaustion from transient
failures.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from google import genai
from google.api_core import exceptions as google_exceptions
from google.genai import errors as genai_errors
from google.genai.types import MediaResolution, Part

from ..config import settings
from ..models import VideoMetadata
from .errors import ProviderError, QuotaExceededError, TransientProviderError

logger = logging.getLogger(__name__)

# Substrings that mark a 429 as a hard daily quota rather than a rate limit
_DAILY_QUOTA_MARKERS = ("per day", "perday", "daily", "quota exceeded for quota metric")


@runtime_checkable
class ModelProvider(Protocol):
    """Generative model used by the pipeline."""

    name: str
    supports_multimodal: bool

    async def generate_content(self, prompt: str) -> str:
        ...

    async def generate_multimodal_content(
        self,
        prompt: str,
        asset: str,
        transcript: Optional[str] = None,
        metadata: Optional[VideoMetadata] = None,
    ) -> str:
        ...


def classify_provider_error(exc: Exception, provider: str) -> Exception:
    """
    Map an SDK exception onto the provider error taxonomy.

    Returns the exception to raise: QuotaExceededError for daily quota
    exhaustion, TransientProviderError for rate limits, 5xx and network
    failures, and the original exception for anything else (bad request,
    permission denied) so it is not retried.
    """
    message = str(exc)
    lowered = message.lower()

    if isinstance(exc, ProviderError):
        return exc

    code = getattr(exc, "code", None)
    if isinstance(exc, google_exceptions.ResourceExhausted):
        code = 429
    elif isinstance(exc, (google_exceptions.ServiceUnavailable, google_exceptions.InternalServerError,
                          google_exceptions.DeadlineExceeded)):
        code = 503

    if code == 429 or "resource_exhausted" in lowered:
        if any(marker in lowered for marker in _DAILY_QUOTA_MARKERS):
            return QuotaExceededError(message, provider=provider)
        return TransientProviderError(message, provider=provider)

    if isinstance(code, int) and code >= 500:
        return TransientProviderError(message, provider=provider)

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return TransientProviderError(message, provider=provider)

    return exc


class GeminiProvider:
    """
    Gemini model via google-genai async client.

    Features:
    - Vertex AI with Application Default Credentials, or API key
    - Direct video URI input (gs:// or YouTube URL) for multi-modal calls
    - JSON response mime type
    - Low media resolution to keep video token counts down
    """

    supports_multimodal = True

    def __init__(
        self,
        model_name: Optional[str] = None,
        client=None,
        supports_multimodal: bool = True,
    ):
        """
        Initialize Gemini provider.

        Args:
            model_name: Gemini model id (defaults to settings.gemini_model)
            client: Pre-built async client (``genai.Client(...).aio``), for tests
            supports_multimodal: Whether video input is allowed for this model
        """
        self.model_name = model_name or settings.gemini_model
        self.name = self.model_name
        self.supports_multimodal = supports_multimodal
        self.client = client or self._init_client()

        logger.info(
            f"Gemini provider initialized: model={self.model_name}, "
            f"location={settings.gemini_location}, multimodal={supports_multimodal}"
        )

    def _init_client(self):
        """Create the async client (.aio) for Vertex AI or the Gemini API."""
        if settings.gemini_api_key:
            return genai.Client(api_key=settings.gemini_api_key).aio

        return genai.Client(
            vertexai=True,
            project=settings.gcp_project_id or None,
            location=settings.gemini_location,
        ).aio

    def _config(self, media_resolution: bool = False) -> dict:
        config = {
            "temperature": settings.gemini_temperature,
            "max_output_tokens": settings.gemini_max_output_tokens,
            "response_mime_type": "application/json",
        }
        if media_resolution:
            config["media_resolution"] = MediaResolution.MEDIA_RESOLUTION_LOW
        return config

    async def _generate(self, contents: list, media_resolution: bool = False) -> str:
        try:
            response = await self.client.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=self._config(media_resolution),
            )
        except (genai_errors.APIError, google_exceptions.GoogleAPICallError, ConnectionError) as e:
            raise classify_provider_error(e, self.name) from e

        text = response.text
        if not text:
            raise TransientProviderError(f"Empty response from {self.model_name}", provider=self.name)
        return text

    async def generate_content(self, prompt: str) -> str:
        """Text-only generation."""
        return await self._generate([prompt])

    async def generate_multimodal_content(
        self,
        prompt: str,
        asset: str,
        transcript: Optional[str] = None,
        metadata: Optional[VideoMetadata] = None,
    ) -> str:
        """
        Generation over a video plus optional transcript and metadata.

        Args:
            prompt: Instruction text
            asset: Video URI
            transcript: Transcript text, appended as a separate part
            metadata: Title and description, appended as a separate part
        """
        if not self.supports_multimodal:
            raise ProviderError(f"{self.model_name} does not support multi-modal input", provider=self.name)

        contents: list = [Part.from_uri(file_uri=asset, mime_type="video/mp4")]
        if metadata and (metadata.title or metadata.description):
            contents.append(f"Title: {metadata.title}\nDescription: {metadata.description}")
        if transcript:
            contents.append(f"Transcript:\n{transcript}")
        contents.append(prompt)

        logger.info(f"Multi-modal call: model={self.model_name}, asset={asset}")
        return await self._generate(contents, media_resolution=True)


def build_providers() -> list[GeminiProvider]:
    """Primary provider plus the optional fallback model, in call order."""
    providers = [GeminiProvider(settings.gemini_model)]
    if settings.gemini_fallback_model and settings.gemini_fallback_model != settings.gemini_model:
        providers.append(GeminiProvider(settings.gemini_fallback_model))
    return providers
