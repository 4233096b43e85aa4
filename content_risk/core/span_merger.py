"""Merge overlapping or adjacent risky spans.

Offsets are character positions into the decoded source text, with
``end_index`` exclusive. Spans merge only with spans of the same policy
category and risk level. Spans without offsets pass through untouched.
"""

import logging
from typing import Optional

from ..models import RiskSpan

logger = logging.getLogger(__name__)

# Spans separated by at most this many characters are merged
MAX_MERGE_GAP = 1


def _span_key(span: RiskSpan) -> tuple[str, str]:
    return (span.policy_category, span.risk_level)


def _merged_text(
    running: RiskSpan, nxt: RiskSpan, start: int, end: int, source_text: Optional[str]
) -> str:
    if source_text and end <= len(source_text):
        return source_text[start:end]
    # No usable source: keep the longer text, append only if not already covered
    if nxt.text and nxt.text not in running.text:
        return f"{running.text} {nxt.text}".strip()
    return running.text


def merge_spans(spans: list[RiskSpan], source_text: Optional[str] = None) -> list[RiskSpan]:
    """
    Merge spans that overlap or touch within the same category and level.

    Args:
        spans: Spans in any order
        source_text: Decoded text the offsets point into; merged span text is
            sliced from it rather than concatenated

    Returns:
        Unanchored spans first (input order), then anchored spans sorted by
        start offset with no overlaps inside any category/level pair
    """
    unanchored = [span for span in spans if not span.has_offsets]
    anchored = sorted(
        (span for span in spans if span.has_offsets),
        key=lambda s: (s.start_index, s.end_index),
    )

    running: dict[tuple[str, str], RiskSpan] = {}
    merged: list[RiskSpan] = []
    merge_count = 0

    for span in anchored:
        key = _span_key(span)
        current = running.get(key)

        if current is not None and span.start_index <= current.end_index + MAX_MERGE_GAP:
            end = max(current.end_index, span.end_index)
            explanation = current.explanation
            if span.explanation and span.explanation not in explanation:
                explanation = f"{explanation}; {span.explanation}" if explanation else span.explanation
            running[key] = current.model_copy(
                update={
                    "end_index": end,
                    "text": _merged_text(current, span, current.start_index, end, source_text),
                    "explanation": explanation,
                }
            )
            merge_count += 1
            continue

        if current is not None:
            merged.append(current)
        running[key] = span

    merged.extend(running.values())
    merged.sort(key=lambda s: (s.start_index, s.end_index))

    if merge_count:
        logger.debug(f"Merged {merge_count} spans: {len(spans)} -> {len(unanchored) + len(merged)}")

    return unanchored + merged
