"""
Recommendations and summary text derived from the computed factors.

A rule fires when its factor's score is strictly above the trigger.
Output is ordered by the triggering factor's score (highest first, rule
order on ties) and de-duplicated.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from app.schemas.risk_response import RiskFactor, RiskFactorType, RiskLevel


@dataclass(frozen=True)
class RecommendationRule:
    factor_type: RiskFactorType
    trigger: float
    message: Callable[[RiskFactor], str]


MISSING_FIELD_LABELS = {
    "registration_number": "tax registration number (NIP)",
    "email": "email address",
    "phone": "phone number",
    "address": "postal address",
}


def _tax_message(factor: RiskFactor) -> str:
    status = factor.details.get("status")
    if status in ("NOT_REGISTERED", "INACTIVE", "INVALID"):
        return "Verify the client's VAT registration with the tax authority before issuing further invoices"
    if status in ("UNKNOWN", "UNAVAILABLE"):
        return "Run a VAT registration check for this client"
    return "Re-verify the client's VAT status, the last check is out of date"


def _completeness_message(factor: RiskFactor) -> str:
    missing = factor.details.get("missing_fields") or []
    if not missing:
        return "Complete the client's registration data"
    return f"Complete the client's {MISSING_FIELD_LABELS.get(missing[0], missing[0])}"


RULES: list[RecommendationRule] = [
    RecommendationRule(RiskFactorType.TAX_STATUS, 40, _tax_message),
    RecommendationRule(
        RiskFactorType.PAYMENT_HISTORY, 50,
        lambda f: "Review overdue invoices and agree a repayment schedule with the client",
    ),
    RecommendationRule(
        RiskFactorType.LEGAL_STATUS, 50,
        lambda f: f"Review why the client account is {f.details.get('status', 'not active')}",
    ),
    RecommendationRule(RiskFactorType.DATA_COMPLETENESS, 20, _completeness_message),
    RecommendationRule(
        RiskFactorType.ACTIVITY_LEVEL, 60,
        lambda f: "Schedule a check-in with the client, there is little recent activity",
    ),
    RecommendationRule(
        RiskFactorType.DOCUMENT_COMPLIANCE, 50,
        lambda f: "Request the outstanding documents from the client",
    ),
    RecommendationRule(
        RiskFactorType.COMMUNICATION_PATTERN, 50,
        lambda f: "Re-establish regular contact with the client",
    ),
]


def generate_recommendations(factors: list[RiskFactor]) -> list[str]:
    by_type = {f.type: f for f in factors}
    fired: list[tuple[float, str]] = []
    for rule in RULES:
        factor = by_type.get(rule.factor_type)
        if factor is not None and factor.score > rule.trigger:
            fired.append((factor.score, rule.message(factor)))

    fired.sort(key=lambda item: item[0], reverse=True)

    recommendations: list[str] = []
    for _, text in fired:
        if text not in recommendations:
            recommendations.append(text)
    return recommendations


LEVEL_SUMMARIES = {
    RiskLevel.LOW: "Low risk - no action required",
    RiskLevel.MEDIUM: "Medium risk - requires monitoring",
    RiskLevel.HIGH: "High risk - requires attention",
    RiskLevel.CRITICAL: "Critical risk - immediate action required",
}


def build_summary(level: RiskLevel, factors: list[RiskFactor]) -> str:
    summary = LEVEL_SUMMARIES[level]
    top: Optional[RiskFactor] = max(factors, key=lambda f: f.score, default=None)
    if top is not None and level != RiskLevel.LOW and top.score > 0:
        summary += f" (main driver: {top.name.lower()}, score {top.score:.0f})"
    return summary
