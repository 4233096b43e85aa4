"""Combine per-stage scores into one overall risk score and level.

Canonical thresholds: score <= 25 is LOW, 26-65 is MEDIUM, > 65 is HIGH.
"""

import logging
from dataclasses import dataclass

from ..models import Highlight, PolicyCategoryMap, RiskAssessment
from .policy_catalog import category_weight

logger = logging.getLogger(__name__)

LOW_MAX = 25
MEDIUM_MAX = 65

HIGHLIGHT_MIN_SCORE = 20
MAX_HIGHLIGHTS = 4


@dataclass
class AggregateScore:
    """Overall score with the pieces it was built from."""

    risk_score: int
    risk_level: str
    category_score: float
    max_category_score: float
    risk_stage_score: float


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def get_risk_level(score: float) -> str:
    """Map a 0-100 score onto LOW / MEDIUM / HIGH."""
    if score <= LOW_MAX:
        return "LOW"
    if score <= MEDIUM_MAX:
        return "MEDIUM"
    return "HIGH"


def normalize_batch_scores(scores: list[float]) -> list[float]:
    """
    Rescale a batch of scores that came back on a 0-5 or 0-10 scale.

    The whole batch is judged together: if its maximum is <= 5 every score
    is multiplied by 20, if <= 10 by 10. An all-zero batch is returned as is.
    """
    if not scores:
        return scores
    peak = max(scores)
    if peak <= 0:
        return scores
    if peak <= 5:
        logger.warning("Detected 0-5 scale in category scores, normalizing by 20x")
        return [clamp(s * 20) for s in scores]
    if peak <= 10:
        logger.warning("Detected 0-10 scale in category scores, normalizing by 10x")
        return [clamp(s * 10) for s in scores]
    return [clamp(s) for s in scores]


def calculate_category_score(policy: PolicyCategoryMap) -> float:
    """
    Weighted average of category scores with distribution adjustments.

    Boosts: +20 if any category >= 80; else +15 for 3+ categories in
    [40, 80); +10 for 2; +5 for 1 such category or 3+ in [20, 40).
    Floors: 35 with 4+ categories >= 30, 25 with 2+.
    """
    if not policy:
        return 0.0

    total_weight = 0.0
    weighted = 0.0
    for category, analysis in policy.items():
        weight = category_weight(category)
        weighted += analysis.risk_score * weight
        total_weight += weight

    average = weighted / total_weight if total_weight else 0.0
    scores = [analysis.risk_score for analysis in policy.values()]

    high = sum(1 for s in scores if s >= 80)
    medium = sum(1 for s in scores if 40 <= s < 80)
    low = sum(1 for s in scores if 20 <= s < 40)
    concerning = sum(1 for s in scores if s >= 30)

    adjusted = average
    if high:
        adjusted = average + 20
    elif medium >= 3:
        adjusted = average + 15
    elif medium >= 2:
        adjusted = average + 10
    elif low >= 3 or medium >= 1:
        adjusted = average + 5

    if concerning >= 4:
        adjusted = max(adjusted, 35)
    elif concerning >= 2:
        adjusted = max(adjusted, 25)

    logger.debug(
        f"Category score: weighted_average={average:.2f}, high={high}, medium={medium}, "
        f"low={low}, concerning={concerning}, adjusted={adjusted:.2f}"
    )
    return clamp(adjusted)


def calculate_overall_score(policy: PolicyCategoryMap, risk: RiskAssessment) -> AggregateScore:
    """
    Overall score from the policy and risk stages.

    The result is the larger of the weighted category score and the mean of
    the risk stage's own score and the highest category score, clamped to
    [0, 100] and rounded.
    """
    category_score = calculate_category_score(policy)
    max_category = max((a.risk_score for a in policy.values()), default=0.0)
    stage_score = risk.overall_risk_score

    combined = max(category_score, (stage_score + max_category) / 2)
    score = int(round(clamp(combined)))

    return AggregateScore(
        risk_score=score,
        risk_level=get_risk_level(score),
        category_score=category_score,
        max_category_score=max_category,
        risk_stage_score=stage_score,
    )


def generate_highlights(policy: PolicyCategoryMap) -> list[Highlight]:
    """Top 4 categories scoring above 20, highest first."""
    highlights = [
        Highlight(
            category=category.replace("_", " "),
            risk=analysis.severity,
            score=analysis.risk_score,
            confidence=analysis.confidence,
        )
        for category, analysis in policy.items()
        if analysis.risk_score > HIGHLIGHT_MIN_SCORE
    ]
    highlights.sort(key=lambda h: h.score, reverse=True)
    return highlights[:MAX_HIGHLIGHTS]
