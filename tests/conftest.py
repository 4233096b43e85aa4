"""Pytest configuration and fixtures."""

import json
import os
from typing import Callable, Optional
from unittest.mock import AsyncMock, Mock

import pytest

# Set up environment variables for testing (before settings are loaded)
os.environ.setdefault("GCP_PROJECT_ID", "test-project")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("FIRESTORE_DATABASE_ID", "(default)")
os.environ.setdefault("GEMINI_FALLBACK_MODEL", "")
os.environ.setdefault("RETRY_BASE_DELAY_SECONDS", "0")
os.environ.setdefault("RETRY_MAX_DELAY_SECONDS", "0")
os.environ.setdefault("EXTRACTION_RETRY_DELAY_SECONDS", "0")
os.environ.setdefault("DEFAULT_DAILY_LIMIT", "1000")


CONTEXT_RESPONSE = {
    "content_type": "Entertainment",
    "target_audience": "General Audience",
    "monetization_impact": 20,
    "content_length": 8,
    "language_detected": "English",
}

POLICY_RESPONSE = {
    "categories": {
        "ADVERTISER_FRIENDLY_PROFANITY": {
            "risk_score": 35,
            "confidence": 90,
            "violations": ["Mild profanity"],
            "severity": "MEDIUM",
            "explanation": "Uses the word damn",
        },
        "CONTENT_SAFETY_VIOLENCE": {
            "risk_score": 0,
            "confidence": 95,
            "violations": [],
            "severity": "LOW",
            "explanation": "No violence",
        },
    }
}

RISK_RESPONSE = {
    "overall_risk_score": 30,
    "flagged_section": "mild profanity like damn",
    "risk_factors": ["Mild profanity"],
    "severity_level": "MEDIUM",
    "risky_phrases_by_category": {
        "ADVERTISER_FRIENDLY_PROFANITY": ["damn", "kid"],
    },
}

CONFIDENCE_RESPONSE = {
    "overall_confidence": 85,
    "text_clarity": 90,
    "policy_specificity": 80,
    "context_availability": 70,
    "confidence_factors": ["Short, clear transcript"],
}

AI_DETECTION_RESPONSE = {
    "ai_probability": 15,
    "confidence": 60,
    "patterns": [],
    "indicators": {"personal_voice": 80},
    "explanation": "Natural phrasing",
}

SUGGESTIONS_RESPONSE = {
    "suggestions": [
        {"title": "Consider softer language", "text": "It is advised to replace damn.", "priority": "MEDIUM", "impact_score": 60},
        {"title": "Add a content note", "text": "Consider a short content note.", "priority": "LOW", "impact_score": 30},
    ]
}

SUMMARY_RESPONSE = {
    "summary": "A creator talks to camera and says damn once.",
    "visual_elements": ["talking head"],
    "audio_elements": ["speech"],
    "notable_quotes": ["damn"],
}

# Prompt marker -> stage name, checked in order
STAGE_MARKERS = [
    ("The following JSON is malformed", "repair"),
    ("Analyze the context of the following content", "context"),
    ("likely produced by generative AI", "ai_detection"),
    ("YouTube policy compliance", "policy"),
    ("Assess the overall risk level", "risk"),
    ("Assess how confident", "confidence"),
    ("Generate specific, actionable suggestions", "suggestions"),
]


def stage_of(prompt: str) -> str:
    for marker, stage in STAGE_MARKERS:
        if marker in prompt:
            return stage
    return "unknown"


def default_responses() -> dict[str, str]:
    return {
        "context": json.dumps(CONTEXT_RESPONSE),
        "ai_detection": json.dumps(AI_DETECTION_RESPONSE),
        "policy": json.dumps(POLICY_RESPONSE),
        "risk": json.dumps(RISK_RESPONSE),
        "confidence": json.dumps(CONFIDENCE_RESPONSE),
        "suggestions": json.dumps(SUGGESTIONS_RESPONSE),
        "repair": "still not json",
        "summary": json.dumps(SUMMARY_RESPONSE),
    }


class FakeProvider:
    """Scripted model provider keyed by pipeline stage."""

    def __init__(
        self,
        name: str = "fake-model",
        supports_multimodal: bool = False,
        responses: Optional[dict[str, str]] = None,
        multimodal_error: Optional[Exception] = None,
        handler: Optional[Callable[[str], str]] = None,
    ):
        self.name = name
        self.supports_multimodal = supports_multimodal
        self.responses = default_responses()
        self.responses.update(responses or {})
        self.multimodal_error = multimodal_error
        self.handler = handler
        self.prompts: list[str] = []
        self.stages: list[str] = []
        self.multimodal_calls = 0

    async def generate_content(self, prompt: str) -> str:
        stage = stage_of(prompt)
        self.prompts.append(prompt)
        self.stages.append(stage)
        if self.handler is not None:
            return self.handler(prompt)
        return self.responses.get(stage, "{}")

    async def generate_multimodal_content(self, prompt, asset, transcript=None, metadata=None) -> str:
        self.multimodal_calls += 1
        self.stages.append("summary")
        if self.multimodal_error is not None:
            raise self.multimodal_error
        return self.responses["summary"]


class ListSink:
    """Diagnostics sink that keeps records for assertions."""

    def __init__(self):
        self.records = []

    def emit(self, record) -> None:
        self.records.append(record)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def diagnostics():
    return ListSink()


@pytest.fixture
def no_sleep():
    """Replacement for asyncio.sleep that records delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def mock_firestore():
    """Mock Firestore client."""
    mock_client = Mock()
    mock_doc = Mock()
    mock_doc.exists = False
    mock_client.collection().document().get.return_value = mock_doc
    return mock_client
