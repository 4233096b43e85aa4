"""Build stage prompts for the risk analysis pipeline.

Every stage prompt:
- Demands JSON only, with escaping rules spelled out
- Embeds the outputs of all earlier stages as context
- Embeds the shared multi-modal content summary when one exists
"""

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel

from .policy_catalog import CATEGORY_KEYS, CATEGORY_NAMES

logger = logging.getLogger(__name__)

JSON_RULES = """IMPORTANT: Respond ONLY with valid JSON. Do not include any commentary, explanation, or text outside the JSON object.

CRITICAL JSON FORMATTING RULES:
- All string values MUST escape any double quotes inside them as \\".
- Do NOT use unescaped double quotes inside any string value.
- Do NOT include comments or extra text. Output ONLY valid JSON.
- If a string contains a newline, escape it as \\n."""

FALSE_POSITIVE_GUIDANCE = """CRITICAL FALSE POSITIVE PREVENTION:
- DO NOT flag common words like "you", "worried", "rival", "team", "player", "goal", "score", "match", "game", "play", "win", "lose"
- DO NOT flag family/child words like "kid", "kids", "child", "children", "boy", "girl", "son", "daughter", "family", "parent", "mom", "dad", "baby", "teen" - these are normal family content
- DO NOT flag technology words like "phone", "device", "mobile", "tablet", "computer", "laptop", "screen", "keyboard" - these are normal tech content
- Only flag words that are ACTUALLY problematic in context (profanity, hate speech, threats, graphic violence, sexual content)
- If a word could be interpreted multiple ways, err on the side of NOT flagging it"""


def _dump(value: Any) -> str:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    elif isinstance(value, dict):
        value = {
            k: v.model_dump(mode="json") if isinstance(v, BaseModel) else v
            for k, v in value.items()
        }
    return json.dumps(value, indent=2, default=str)


def build_repair_prompt(malformed: str, expected_shape: str) -> str:
    """Prompt asking a model to return corrected JSON only."""
    return f"""The following JSON is malformed. Please repair it to match the expected schema.

MALFORMED JSON:
{malformed}

EXPECTED SCHEMA:
{expected_shape}

INSTRUCTIONS:
1. Fix any syntax errors in the JSON
2. Ensure it matches the expected schema
3. Return ONLY the repaired JSON
4. Do not include any explanations or commentary
5. Do not use markdown formatting

RESPOND WITH ONLY THE REPAIRED JSON."""


class PromptBuilder:
    """Build prompts for each analysis stage."""

    def _wrap(self, body: str) -> str:
        return f"{JSON_RULES}\n\n{body.strip()}\n\nAGAIN: Respond ONLY with valid JSON."

    def _context_block(self, prior: dict[str, Any], content_summary: Optional[str]) -> str:
        parts = []
        if content_summary:
            parts.append(f"Holistic content summary (from video, audio and transcript):\n{content_summary}")
        for label, value in prior.items():
            if value is None:
                continue
            parts.append(f"{label}:\n{_dump(value)}")
        return "\n\n".join(parts)

    def build_content_summary_prompt(self) -> str:
        """Multi-modal prompt producing the shared content context summary."""
        return self._wrap("""
Watch the attached video and read any transcript and metadata provided.
Produce ONE holistic summary that later text-only analysis steps will rely on instead of the video.

Describe:
- What happens visually (people, actions, on-screen text, imagery of concern)
- What is said (key statements, any profanity, threats, slurs or sexual language, quoted verbatim)
- Tone, audience and apparent purpose of the content
- Anything relevant to YouTube advertiser-friendly and community guidelines

Provide the summary in JSON format:
{
  "summary": "string (detailed description, at least several sentences)",
  "visual_elements": ["string", ...],
  "audio_elements": ["string", ...],
  "notable_quotes": ["string", ...]
}
""")

    def build_context_prompt(self, content: str, channel_context: Optional[dict] = None,
                             content_summary: Optional[str] = None) -> str:
        """Stage 1: classify content type, audience and language."""
        extra = self._context_block({"Channel context": channel_context}, content_summary)
        return self._wrap(f"""
Analyze the context of the following content. Classify it before any policy analysis.

Content: "{content}"

{extra}

Provide context analysis in JSON format:
{{
  "content_type": "string (e.g. Gaming, Education, Entertainment, News, Sports, Technology, Vlog, Music, General)",
  "target_audience": "string (e.g. General Audience, Children, Teens, Adults)",
  "monetization_impact": "number (0-100, how much the context itself affects ad suitability)",
  "content_length": "number (word count)",
  "language_detected": "string"
}}
""")

    def build_ai_detection_prompt(self, content: str, context: Any,
                                  content_summary: Optional[str] = None) -> str:
        """Optional stage: likelihood the content is AI generated."""
        extra = self._context_block({"Context": context}, content_summary)
        return self._wrap(f"""
Assess whether the following content was likely produced by generative AI.

Content: "{content}"

{extra}

Consider repetitive structure, generic phrasing, unnatural transitions, lack of personal detail and uniform sentence length.

Provide the assessment in JSON format:
{{
  "ai_probability": "number (0-100)",
  "confidence": "number (0-100)",
  "patterns": ["string", ...],
  "indicators": {{
    "repetitive_language": "number (0-100)",
    "structured_format": "number (0-100)",
    "personal_voice": "number (0-100)",
    "natural_flow": "number (0-100)"
  }},
  "explanation": "string"
}}
""")

    def build_policy_prompt(self, content: str, context: Any, ai_detection: Any = None,
                            content_summary: Optional[str] = None) -> str:
        """Stage 2: per-category policy analysis over every catalog key."""
        extra = self._context_block({"Context": context, "AI detection": ai_detection}, content_summary)
        categories = "\n".join(f"- {key} ({CATEGORY_NAMES[key]})" for key in CATEGORY_KEYS)
        return self._wrap(f"""
Analyze the following content for YouTube policy compliance. For each category KEY below, provide a risk score, confidence, violations, severity and explanation. You must return a result for every key, even if the risk is 0.

CRITICAL ANALYSIS GUIDELINES:
- Be conservative - only flag content that is genuinely problematic
- Sports terminology and general discussion are NOT harmful content
- Only flag actual profanity, hate speech, threats, graphic violence, or sexual content
- If in doubt, err on the side of NOT flagging content

Categories (use these KEYS as JSON keys):
{categories}

Return all risk scores and confidence values as integers between 0 and 100. Do NOT use a 0-5 or 0-10 scale.

Content: "{content}"

{extra}

Provide analysis in JSON format with this structure:
{{
  "categories": {{
    "CATEGORY_KEY": {{
      "risk_score": 0-100,
      "confidence": 0-100,
      "violations": ["string", ...],
      "severity": "LOW|MEDIUM|HIGH",
      "explanation": "string"
    }}
  }}
}}
""")

    def build_risk_prompt(self, content: str, context: Any, policy: Any, ai_detection: Any = None,
                          content_summary: Optional[str] = None, chunk: Optional[tuple[int, int]] = None) -> str:
        """Stage 3: overall risk, flagged section, risky phrases and spans."""
        extra = self._context_block(
            {"Context": context, "AI detection": ai_detection, "Policy analysis": policy}, content_summary
        )
        keys = "\n".join(f"- {key}" for key in CATEGORY_KEYS)
        chunk_note = ""
        if chunk:
            chunk_note = (
                f"\nThis is part {chunk[0]} of {chunk[1]} of a longer transcript. "
                "Report only what appears in this part; offsets are relative to this part.\n"
            )
        return self._wrap(f"""
Assess the overall risk level and identify ALL and ONLY the sections of the following content that directly contain policy violations or concerns (do NOT include generic intros, outros, or non-risky text).
{chunk_note}
Content: "{content}"

{extra}

{FALSE_POSITIVE_GUIDANCE}

Only assign HIGH risk scores (70-100) for serious policy violations, MEDIUM (40-69) for moderate concerns and LOW (0-39) for minor issues or clean content. Return the overall risk score as an integer between 0 and 100.

For each policy category, list the ACTUAL WORDS or phrases from the content that are the reason for the risk. Include each risky word only once per category. Use these EXACT category keys in risky_phrases_by_category:
{keys}

For each risky phrase also return a span with the character offsets of its first occurrence in the content (start_index inclusive, end_index exclusive).

Provide risk assessment in JSON format:
{{
  "overall_risk_score": "number (0-100)",
  "flagged_section": "string (most concerning part of the content)",
  "risk_factors": ["list of main risk factors"],
  "severity_level": "LOW|MEDIUM|HIGH",
  "risky_phrases_by_category": {{
    "CATEGORY_KEY": ["risky word or phrase", ...]
  }},
  "risky_spans": [
    {{
      "text": "string",
      "start_index": "number",
      "end_index": "number",
      "risk_level": "LOW|MEDIUM|HIGH",
      "policy_category": "CATEGORY_KEY",
      "explanation": "string"
    }}
  ]
}}
""")

    def build_confidence_prompt(self, content: str, context: Any, policy: Any, risk: Any,
                                ai_detection: Any = None, content_summary: Optional[str] = None) -> str:
        """Stage 4: confidence in the analysis so far."""
        extra = self._context_block(
            {"Context": context, "AI detection": ai_detection, "Policy analysis": policy, "Risk assessment": risk},
            content_summary,
        )
        return self._wrap(f"""
Assess how confident the preceding analysis of this content can be.

Content: "{content}"

{extra}

Provide confidence analysis in JSON format:
{{
  "overall_confidence": "number (0-100)",
  "text_clarity": "number (0-100)",
  "policy_specificity": "number (0-100)",
  "context_availability": "number (0-100)",
  "confidence_factors": ["string", ...]
}}
""")

    def build_suggestions_prompt(self, content: str, context: Any, policy: Any, risk: Any,
                                 confidence: Any = None, ai_detection: Any = None,
                                 content_summary: Optional[str] = None) -> str:
        """Stage 5: advisory suggestions, 5 to 12 items."""
        extra = self._context_block(
            {
                "Context": context,
                "AI detection": ai_detection,
                "Policy analysis": policy,
                "Risk assessment": risk,
                "Confidence": confidence,
            },
            content_summary,
        )
        return self._wrap(f"""
Generate specific, actionable suggestions to improve the following content based on the analysis.

Content: "{content}"

{extra}

All suggestions should be phrased as advice or recommendations (e.g. 'It is advised to...', 'Consider...', 'We recommend...'), not as direct commands. Avoid imperative language.
You MUST provide between 5 and 12 suggestions, regardless of risk level. If the content is very safe, include tips for growth, engagement, monetization, or best practices.
Do NOT exceed 12 suggestions.

Provide suggestions in JSON format:
{{
  "suggestions": [
    {{
      "title": "string",
      "text": "string (detailed explanation)",
      "priority": "HIGH|MEDIUM|LOW",
      "impact_score": "number (0-100, how much this will improve the content)"
    }}
  ]
}}
""")
