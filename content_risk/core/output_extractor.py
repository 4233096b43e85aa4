"""Turn raw model text into validated structured data.

Strategies run in order and stop at the first candidate that parses AND
passes validation:

1. ``direct``      json.loads on the whole text
2. ``jsonrepair``  permissive repair with the json-repair library
3. ``heuristic``   largest bracketed block, smart quotes, trailing commas,
                   bare control characters
4. ``ai-repair``   one extra model call asking for corrected JSON, then 1-3
                   on its output
5. ``retry-N``     progressively more aggressive cleaning with a short delay

Every step reports its outcome as a value. The extractor never raises for
bad model output, and a failed result always carries the original text.
"""

import asyncio
import json
import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, get_origin

from json_repair import repair_json
from pydantic import BaseModel, TypeAdapter

from ..config import settings
from ..utils.logging_utils import log_exception_json
from .errors import MalformedOutputError, ProviderError, SchemaValidationError
from .prompt_builder import build_repair_prompt
from .schema_validator import SchemaValidator, ValidationOutcome

logger = logging.getLogger(__name__)

RepairFn = Callable[[str], Awaitable[str]]
Validator = Callable[[Any], ValidationOutcome]

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_LINE_COMMENT_RE = re.compile(r"^\s*//.*$", re.MULTILINE)
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_PY_LITERALS = {"True": "true", "False": "false", "None": "null"}
_PY_LITERAL_RE = re.compile(r"(?<![\"\w])(True|False|None)(?![\"\w])")
_SMART_QUOTES = str.maketrans({
    "“": '"', "”": '"', "„": '"', "«": '"', "»": '"',
    "‘": "'", "’": "'", "‚": "'",
})
_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


@dataclass
class ExtractionResult:
    """Outcome of extracting structured data from one response."""

    success: bool
    data: Any = None
    strategy: str = "failed"
    attempts: int = 0
    error: Optional[str] = None
    raw_text: str = ""
    repaired_text: Optional[str] = None
    # MalformedOutputError or SchemaValidationError for the last failed step
    cause: Optional[Exception] = None


@dataclass
class _Candidate:
    """Result of a single parse step."""

    ok: bool
    data: Any = None
    text: Optional[str] = None
    error: Optional[str] = None


def _load(text: str) -> _Candidate:
    try:
        return _Candidate(ok=True, data=json.loads(text), text=text)
    except (json.JSONDecodeError, TypeError, RecursionError) as e:
        return _Candidate(ok=False, text=text, error=f"{type(e).__name__}: {e}")


def strip_fences(text: str) -> str:
    """Remove markdown code fences."""
    return _FENCE_RE.sub("", text).replace("```", "").strip()


def extract_bracketed(text: str, opener: str) -> Optional[str]:
    """Largest substring from the first ``opener`` to the last matching closer."""
    closer = "}" if opener == "{" else "]"
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def escape_control_chars_in_strings(text: str) -> str:
    """Escape raw newlines and tabs that appear inside JSON string literals."""
    out = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            elif char in _CONTROL_ESCAPES:
                out.append(_CONTROL_ESCAPES[char])
                continue
        elif char == '"':
            in_string = True
        out.append(char)
    return "".join(out)


def describe_shape(shape: Any) -> str:
    """JSON schema of a pydantic model or typing shape, for repair prompts."""
    try:
        if isinstance(shape, type) and issubclass(shape, BaseModel):
            schema = shape.model_json_schema()
        else:
            schema = TypeAdapter(shape).json_schema()
        return json.dumps(schema, indent=2)
    except Exception:
        return str(shape)


def _expects_array(shape: Any) -> bool:
    return get_origin(shape) is list or shape is list


class StructuredOutputExtractor:
    """
    Cascade of parse and repair strategies.

    Strategy success counts are kept in ``strategy_stats`` so the
    effectiveness of each strategy can be monitored over time.
    """

    def __init__(
        self,
        schema_validator: Optional[SchemaValidator] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.schema_validator = schema_validator or SchemaValidator()
        self.max_attempts = max_attempts if max_attempts is not None else settings.extraction_max_attempts
        self.retry_delay = retry_delay if retry_delay is not None else settings.extraction_retry_delay_seconds
        self._sleep = sleep
        self.strategy_stats: Counter[str] = Counter()

    # ------------------------------------------------------------------
    # Individual strategies
    # ------------------------------------------------------------------

    def _direct(self, text: str) -> _Candidate:
        return _load(text.strip())

    def _jsonrepair(self, text: str) -> _Candidate:
        try:
            repaired = repair_json(text)
        except Exception as e:  # json-repair has no stable error type
            return _Candidate(ok=False, error=f"json-repair failed: {e}")
        if not repaired or repaired in ('""', "null"):
            return _Candidate(ok=False, text=repaired, error="json-repair produced no structure")
        return _load(repaired)

    def _heuristic(self, text: str, shape: Any) -> _Candidate:
        cleaned = strip_fences(text).translate(_SMART_QUOTES)
        openers = ["[", "{"] if _expects_array(shape) else ["{", "["]
        block = None
        for opener in openers:
            block = extract_bracketed(cleaned, opener)
            if block:
                break
        if block is None:
            return _Candidate(ok=False, text=cleaned, error="No bracketed block found")

        block = _TRAILING_COMMA_RE.sub(r"\1", block)
        block = escape_control_chars_in_strings(block)
        return _load(block)

    def _clean(self, text: str, level: int, shape: Any) -> str:
        """Cleaning for the retry loop; each level includes the previous ones."""
        cleaned = strip_fences(text)
        block = extract_bracketed(cleaned, "[" if _expects_array(shape) else "{")
        cleaned = block or cleaned
        if level >= 2:
            cleaned = cleaned.translate(_SMART_QUOTES)
            cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
        if level >= 3:
            cleaned = _BLOCK_COMMENT_RE.sub("", cleaned)
            cleaned = _LINE_COMMENT_RE.sub("", cleaned)
            cleaned = _PY_LITERAL_RE.sub(lambda m: _PY_LITERALS[m.group(1)], cleaned)
            cleaned = escape_control_chars_in_strings(cleaned)
            cleaned = "".join(ch for ch in cleaned if ch.isprintable() or ch in "\n\r\t ")
            cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
        return cleaned

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    def _validate(self, candidate: _Candidate, shape: Any, validator: Optional[Validator]) -> ValidationOutcome:
        if validator is not None:
            return validator(candidate.data)
        return self.schema_validator.validate(candidate.data, shape)

    def _check(
        self, name: str, candidate: _Candidate, shape: Any, validator: Optional[Validator]
    ) -> tuple[Optional[ValidationOutcome], Optional[Exception]]:
        """Validate a parse step; returns (accepted outcome, None) or (None, error)."""
        if not candidate.ok:
            return None, MalformedOutputError(f"{name}: {candidate.error}")
        outcome = self._validate(candidate, shape, validator)
        if outcome.valid:
            return outcome, None
        return None, SchemaValidationError(
            f"{name}: schema validation failed: {'; '.join(outcome.errors[:3])}", outcome.errors
        )

    def _try_local(
        self, text: str, shape: Any, validator: Optional[Validator]
    ) -> tuple[Optional[str], Optional[ValidationOutcome], Optional[str], Optional[Exception]]:
        """
        Run strategies 1-3.

        Returns:
            (strategy, outcome, repaired_text, last_error); strategy is None
            when nothing was accepted
        """
        steps = (
            ("direct", lambda: self._direct(text)),
            ("jsonrepair", lambda: self._jsonrepair(text)),
            ("heuristic", lambda: self._heuristic(text, shape)),
        )
        last_error = None
        for name, step in steps:
            candidate = step()
            outcome, last_error = self._check(name, candidate, shape, validator)
            if outcome is not None:
                repaired = None if name == "direct" else candidate.text
                return name, outcome, repaired, None
        return None, None, None, last_error

    def _success(self, raw: str, strategy: str, outcome: ValidationOutcome, attempts: int,
                 repaired: Optional[str]) -> ExtractionResult:
        self.strategy_stats[strategy] += 1
        if strategy != "direct":
            logger.info(f"Structured output recovered via {strategy} after {attempts} attempts")
        return ExtractionResult(
            success=True,
            data=outcome.data,
            strategy=strategy,
            attempts=attempts,
            raw_text=raw,
            repaired_text=repaired,
        )

    async def _ai_repair(self, repair: RepairFn, raw: str, shape: Any) -> tuple[Optional[str], Optional[Exception]]:
        """Ask the model for corrected JSON; any failure is returned, not raised."""
        try:
            return await repair(build_repair_prompt(raw, describe_shape(shape))), None
        except ProviderError as e:
            logger.warning(f"AI repair call failed: {e}")
            return None, MalformedOutputError(f"ai-repair: {e}")
        except Exception as e:
            log_exception_json(logger, "AI repair call raised unexpectedly", e, severity="WARNING")
            return None, MalformedOutputError(f"ai-repair: {type(e).__name__}: {e}")

    async def extract(
        self,
        raw_text: str,
        shape: Any,
        validator: Optional[Validator] = None,
        repair: Optional[RepairFn] = None,
    ) -> ExtractionResult:
        """
        Extract structured data from a model response.

        Args:
            raw_text: Model response text
            shape: Pydantic model class or typing annotation describing the data
            validator: Optional replacement for schema validation (normalizes
                and validates in one step)
            repair: Optional model handle for one AI-assisted repair call

        Returns:
            ExtractionResult; on failure ``raw_text`` holds the original response
            and ``cause`` the typed error of the last step
        """
        raw = raw_text or ""
        if not raw.strip():
            self.strategy_stats["failed"] += 1
            cause = MalformedOutputError("Empty response")
            return ExtractionResult(success=False, error=str(cause), raw_text=raw, cause=cause)

        # Strategies 1-3
        strategy, outcome, repaired, last_error = self._try_local(raw, shape, validator)
        if strategy:
            attempts = {"direct": 1, "jsonrepair": 2, "heuristic": 3}[strategy]
            return self._success(raw, strategy, outcome, attempts, repaired)
        attempts = 3

        # Strategy 4: AI-assisted repair
        if repair is not None:
            attempts += 1
            fixed, repair_error = await self._ai_repair(repair, raw, shape)
            if repair_error is not None:
                last_error = repair_error
            else:
                strategy, outcome, repaired, error = self._try_local(fixed, shape, validator)
                if strategy:
                    return self._success(raw, "ai-repair", outcome, attempts, repaired or fixed)
                last_error = error

        # Strategy 5: progressively aggressive cleaning
        for level in range(1, self.max_attempts + 1):
            attempts += 1
            await self._sleep(self.retry_delay * level)
            cleaned = self._clean(raw, min(level, 3), shape)
            outcome, last_error = self._check(f"retry-{level}", _load(cleaned), shape, validator)
            if outcome is not None:
                return self._success(raw, f"retry-{level}", outcome, attempts, cleaned)

        self.strategy_stats["failed"] += 1
        cause = last_error or MalformedOutputError("All extraction strategies failed")
        logger.warning(f"All extraction strategies failed after {attempts} attempts: {cause}")
        return ExtractionResult(
            success=False,
            strategy="failed",
            attempts=attempts,
            error=str(cause),
            raw_text=raw,
            cause=cause,
        )
