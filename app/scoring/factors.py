"""
Client Risk Factor Collectors

Each collector:
  1. Reads raw facts about one client (FactorInputs)
  2. Maps them to a bin
  3. Returns a risk sub-score in [0, 100] for that bin

Weights are applied in the engine, not here.

Convention: HIGHER score = HIGHER risk (100 is worst).

Collectors are registered per factor type; the registry order is the order
factors appear in an assessment. A new factor type is added by registering
a new function with @collector, nothing else changes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from app.schemas.risk_response import RiskCategory, RiskFactorType
from app.scoring.inputs import FactorInputs, VatStatus


@dataclass(frozen=True)
class FactorResult:
    factor_type: RiskFactorType
    name: str
    description: str
    category: RiskCategory
    score: float
    details: dict[str, Any] = field(default_factory=dict)


Collector = Callable[[FactorInputs], FactorResult]

COLLECTORS: dict[RiskFactorType, Collector] = {}


def collector(factor_type: RiskFactorType) -> Callable[[Collector], Collector]:
    def register(fn: Collector) -> Collector:
        COLLECTORS[factor_type] = fn
        return fn
    return register


def collect_all(inputs: FactorInputs) -> list[FactorResult]:
    return [fn(inputs) for fn in COLLECTORS.values()]


# Score given whenever an input is unknown or its provider is degraded
UNCERTAIN_SCORE = 50.0


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


def _days_since(as_of: datetime, ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return max(0, (as_of - ts).days)


# ═══════════════════════════════════════════════════════════════
# 1. TAX REGISTRATION STATUS  (default weight = 25)
#    Latest VAT validation, falling back to the status cached on the
#    client record when no validation was ever run.
# ═══════════════════════════════════════════════════════════════
TAX_FAILED_STATUSES = {VatStatus.NOT_REGISTERED, VatStatus.INACTIVE, VatStatus.INVALID}
TAX_FAILED_SCORE = 90.0
TAX_EXEMPT_SCORE = 20.0

# (max days since verification, score) for a confirmed-active registration
TAX_VERIFICATION_AGE_BINS = [
    (30, 5.0),
    (90, 15.0),
    (180, 25.0),
]
TAX_STALE_SCORE = 35.0


@collector(RiskFactorType.TAX_STATUS)
def score_tax_status(inputs: FactorInputs) -> FactorResult:
    validation = inputs.tax_validation
    if validation is not None:
        status, validated_at = validation.status, validation.validated_at
    else:
        status = VatStatus.parse(inputs.facts.vat_status)
        validated_at = inputs.facts.vat_validated_at

    def result(score: float, bin_label: str, **details: Any) -> FactorResult:
        return FactorResult(
            RiskFactorType.TAX_STATUS,
            "VAT status",
            "VAT registration status of the client",
            RiskCategory.COMPLIANCE,
            score,
            {"status": status.value, "bin": bin_label, **details},
        )

    if status in TAX_FAILED_STATUSES:
        return result(TAX_FAILED_SCORE, "FAILED")

    if status in (VatStatus.UNKNOWN, VatStatus.UNAVAILABLE):
        return result(UNCERTAIN_SCORE, "UNCERTAIN")

    if status == VatStatus.EXEMPT:
        return result(TAX_EXEMPT_SCORE, "EXEMPT")

    if validated_at is None:
        return result(TAX_STALE_SCORE, "ACTIVE_UNVERIFIED")

    age_days = _days_since(inputs.as_of, validated_at)
    for max_days, score in TAX_VERIFICATION_AGE_BINS:
        if age_days <= max_days:
            return result(score, f"ACTIVE_<={max_days}d", verification_age_days=age_days)
    return result(TAX_STALE_SCORE, "ACTIVE_STALE", verification_age_days=age_days)


# ═══════════════════════════════════════════════════════════════
# 2. PAYMENT HISTORY  (default weight = 20)
#    Overdue invoices on the client's account.
# ═══════════════════════════════════════════════════════════════
OVERDUE_INVOICE_INCREMENT = 20.0


@collector(RiskFactorType.PAYMENT_HISTORY)
def score_payment_history(inputs: FactorInputs) -> FactorResult:
    overdue = inputs.facts.overdue_invoice_count
    score = UNCERTAIN_SCORE if overdue is None else _clamp(overdue * OVERDUE_INVOICE_INCREMENT)
    return FactorResult(
        RiskFactorType.PAYMENT_HISTORY,
        "Payment history",
        "Overdue invoices issued to the client",
        RiskCategory.FINANCIAL,
        score,
        {"overdue_invoices": overdue},
    )


# ═══════════════════════════════════════════════════════════════
# 3. ACCOUNT STATUS  (default weight = 15)
# ═══════════════════════════════════════════════════════════════
ACCOUNT_STATUS_SCORES = {
    "active": 5.0,
    "archived": 60.0,
    "inactive": 75.0,
    "suspended": 90.0,
}


@collector(RiskFactorType.LEGAL_STATUS)
def score_account_status(inputs: FactorInputs) -> FactorResult:
    status = (inputs.facts.status or "unknown").lower()
    return FactorResult(
        RiskFactorType.LEGAL_STATUS,
        "Account status",
        "Status of the client account",
        RiskCategory.COMPLIANCE,
        ACCOUNT_STATUS_SCORES.get(status, UNCERTAIN_SCORE),
        {"status": status},
    )


# ═══════════════════════════════════════════════════════════════
# 4. DATA COMPLETENESS  (default weight = 15)
#    Each missing canonical field adds a fixed increment.
# ═══════════════════════════════════════════════════════════════
MISSING_FIELD_INCREMENT = 25.0

# Canonical fields, most impactful first
CANONICAL_FIELDS = ["registration_number", "email", "phone", "address"]


@collector(RiskFactorType.DATA_COMPLETENESS)
def score_data_completeness(inputs: FactorInputs) -> FactorResult:
    missing = [
        name for name in CANONICAL_FIELDS
        if not (getattr(inputs.facts, name) or "").strip()
    ]
    return FactorResult(
        RiskFactorType.DATA_COMPLETENESS,
        "Data completeness",
        "Completeness of the client's registration and contact data",
        RiskCategory.DATA_QUALITY,
        _clamp(len(missing) * MISSING_FIELD_INCREMENT),
        {"missing_fields": missing},
    )


# ═══════════════════════════════════════════════════════════════
# 5. ACTIVITY LEVEL  (default weight = 10)
#    Timeline events in the lookback window; linear decay, floor 0.
#    No activity at all → 100.
# ═══════════════════════════════════════════════════════════════
ACTIVITY_DECAY_PER_EVENT = 10.0


@collector(RiskFactorType.ACTIVITY_LEVEL)
def score_activity_level(inputs: FactorInputs) -> FactorResult:
    count = inputs.recent_activity_count
    if count is None:
        score = UNCERTAIN_SCORE
    else:
        score = _clamp(100.0 - count * ACTIVITY_DECAY_PER_EVENT)
    return FactorResult(
        RiskFactorType.ACTIVITY_LEVEL,
        "Activity level",
        "Recent activity recorded on the client's timeline",
        RiskCategory.OPERATIONAL,
        score,
        {"recent_events": count},
    )


# ═══════════════════════════════════════════════════════════════
# 6. DOCUMENT COMPLIANCE  (default weight = 10)
# ═══════════════════════════════════════════════════════════════
MISSING_DOCUMENT_INCREMENT = 25.0


@collector(RiskFactorType.DOCUMENT_COMPLIANCE)
def score_document_compliance(inputs: FactorInputs) -> FactorResult:
    missing = inputs.facts.missing_document_count
    score = UNCERTAIN_SCORE if missing is None else _clamp(missing * MISSING_DOCUMENT_INCREMENT)
    return FactorResult(
        RiskFactorType.DOCUMENT_COMPLIANCE,
        "Document compliance",
        "Required documents the client has not delivered",
        RiskCategory.COMPLIANCE,
        score,
        {"missing_documents": missing},
    )


# ═══════════════════════════════════════════════════════════════
# 7. COMMUNICATION PATTERN  (default weight = 5)
#    Days since the last contact with the client.
# ═══════════════════════════════════════════════════════════════
CONTACT_AGE_BINS = [
    (30, 0.0),
    (90, 30.0),
    (180, 60.0),
]
CONTACT_LAPSED_SCORE = 90.0
NEVER_CONTACTED_SCORE = 70.0


@collector(RiskFactorType.COMMUNICATION_PATTERN)
def score_communication_pattern(inputs: FactorInputs) -> FactorResult:
    last_contact: Optional[datetime] = inputs.facts.last_contact_at

    def result(score: float, days: Optional[int]) -> FactorResult:
        return FactorResult(
            RiskFactorType.COMMUNICATION_PATTERN,
            "Communication pattern",
            "Regularity of contact with the client",
            RiskCategory.OPERATIONAL,
            score,
            {"days_since_contact": days},
        )

    if last_contact is None:
        return result(NEVER_CONTACTED_SCORE, None)

    days = _days_since(inputs.as_of, last_contact)
    for max_days, score in CONTACT_AGE_BINS:
        if days <= max_days:
            return result(score, days)
    return result(CONTACT_LAPSED_SCORE, days)
