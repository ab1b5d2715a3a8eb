"""
Client Risk Scoring Engine

Orchestrates:
  1. All registered factor collectors
  2. Weighted composite score
  3. Risk level from the configured thresholds
  4. Recommendations + summary

Pure: the caller supplies the inputs, the effective RiskConfig and the
clock. Nothing here reads the database or global state.
"""
from __future__ import annotations

import math
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable

import structlog

from app.schemas.risk_config import RiskConfig, RiskThresholds
from app.schemas.risk_response import (
    RiskAssessment,
    RiskFactor,
    RiskFactorType,
    RiskLevel,
    TriggeredBy,
)
from app.scoring import factors
from app.scoring.factors import FactorResult
from app.scoring.inputs import FactorInputs
from app.scoring.recommendations import build_summary, generate_recommendations

logger = structlog.get_logger()


@dataclass(frozen=True)
class ScoringResult:
    overall_score: int
    factors: list[RiskFactor]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_factors(
    results: Iterable[FactorResult],
    factor_weights: dict[RiskFactorType, float],
) -> ScoringResult:
    """
    Composite = weighted mean of the factor scores over the weights of the
    factors present, i.e. sum(weighted_score) * 100 / sum(weight).
    Zero-weighted factors are listed but do not move the score.
    """
    risk_factors: list[RiskFactor] = []
    weighted_total = 0.0
    weight_total = 0.0

    for result in results:
        weight = max(0.0, factor_weights.get(result.factor_type, 0.0))
        score = max(0.0, min(100.0, result.score))
        weighted_total += score * weight
        weight_total += weight

        risk_factors.append(
            RiskFactor(
                type=result.factor_type,
                name=result.name,
                description=result.description,
                score=score,
                weight=weight,
                weighted_score=round(score * weight / 100, 2),
                category=result.category,
                details=result.details,
            )
        )

    if weight_total <= 0:
        return ScoringResult(overall_score=0, factors=risk_factors)

    overall = _round_half_up(weighted_total / weight_total)
    return ScoringResult(overall_score=max(0, min(100, overall)), factors=risk_factors)


def classify_level(score: float, thresholds: RiskThresholds) -> RiskLevel:
    """Boundaries belong to the lower band."""
    if score <= thresholds.low:
        return RiskLevel.LOW
    if score <= thresholds.medium:
        return RiskLevel.MEDIUM
    if score <= thresholds.high:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def evaluate(
    inputs: FactorInputs,
    config: RiskConfig,
    *,
    triggered_by: TriggeredBy,
    created_by: str,
) -> RiskAssessment:
    """
    Main scoring entry point. `inputs.as_of` is the assessment time.
    """
    t0 = time.perf_counter_ns()

    scoring = score_factors(factors.collect_all(inputs), config.factor_weights)
    level = classify_level(scoring.overall_score, config.thresholds)

    assessment = RiskAssessment(
        id=str(uuid.uuid4()),
        client_id=inputs.facts.client_id,
        organization_id=inputs.facts.organization_id,
        overall_score=scoring.overall_score,
        risk_level=level,
        factors=scoring.factors,
        summary=build_summary(level, scoring.factors),
        recommendations=generate_recommendations(scoring.factors),
        assessed_at=inputs.as_of,
        valid_until=inputs.as_of + timedelta(days=config.auto_assess_interval),
        triggered_by=triggered_by,
        created_by=created_by,
    )

    logger.info(
        "risk_scoring_complete",
        assessment_id=assessment.id,
        client_id=assessment.client_id,
        score=assessment.overall_score,
        level=level.value,
        recommendations_count=len(assessment.recommendations),
        elapsed_us=int((time.perf_counter_ns() - t0) / 1_000),
    )
    return assessment
