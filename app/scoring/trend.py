"""
Score trend against the immediately preceding assessment.

Lower score = lower risk, so a falling score is an improvement.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.schemas.risk_response import RiskAssessment, RiskAssessmentView, ScoreTrendDirection

# Movements within ±TREND_STABLE_BAND points count as stable
TREND_STABLE_BAND = 5


@dataclass(frozen=True)
class ScoreTrend:
    previous_score: int
    direction: ScoreTrendDirection


def classify_trend(previous_score: int, current_score: int) -> ScoreTrendDirection:
    if previous_score - current_score > TREND_STABLE_BAND:
        return ScoreTrendDirection.IMPROVING
    if current_score - previous_score > TREND_STABLE_BAND:
        return ScoreTrendDirection.WORSENING
    return ScoreTrendDirection.STABLE


def analyze_trend(
    current: RiskAssessment,
    previous: Optional[RiskAssessment],
) -> Optional[ScoreTrend]:
    if previous is None:
        return None
    return ScoreTrend(
        previous_score=previous.overall_score,
        direction=classify_trend(previous.overall_score, current.overall_score),
    )


def to_view(assessment: RiskAssessment, trend: Optional[ScoreTrend] = None) -> RiskAssessmentView:
    view = RiskAssessmentView(**assessment.model_dump())
    if trend is None:
        return view
    return view.model_copy(
        update={"previous_score": trend.previous_score, "score_trend": trend.direction}
    )
