"""
Response payloads for the client risk endpoints.

RiskFactor and RiskAssessment are also the engine's domain values: they are
built once by the scoring pipeline, persisted, and never mutated.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


RISK_LEVEL_ORDER: list[RiskLevel] = [
    RiskLevel.LOW,
    RiskLevel.MEDIUM,
    RiskLevel.HIGH,
    RiskLevel.CRITICAL,
]


def levels_at_or_above(min_level: RiskLevel) -> list[RiskLevel]:
    return RISK_LEVEL_ORDER[RISK_LEVEL_ORDER.index(min_level):]


class RiskFactorType(str, Enum):
    TAX_STATUS = "tax_status"
    PAYMENT_HISTORY = "payment_history"
    LEGAL_STATUS = "legal_status"
    DATA_COMPLETENESS = "data_completeness"
    ACTIVITY_LEVEL = "activity_level"
    DOCUMENT_COMPLIANCE = "document_compliance"
    COMMUNICATION_PATTERN = "communication_pattern"


class RiskCategory(str, Enum):
    COMPLIANCE = "compliance"
    FINANCIAL = "financial"
    OPERATIONAL = "operational"
    DATA_QUALITY = "data_quality"


class TriggeredBy(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"
    BULK = "bulk"


class ScoreTrendDirection(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


class RiskFactor(BaseModel):
    """Individual factor contribution to the overall score."""
    model_config = {"frozen": True}

    type: RiskFactorType
    name: str
    description: str
    score: float = Field(ge=0, le=100, description="Risk sub-score, 100 = highest risk")
    weight: float = Field(ge=0, le=100, description="Weight configured at assessment time")
    weighted_score: float
    category: RiskCategory
    details: dict[str, Any] = Field(default_factory=dict)


class RiskAssessment(BaseModel):
    """
    One immutable assessment of a client.
    A re-assessment creates a new record; older ones stay for history.
    """
    model_config = {"frozen": True}

    id: str
    client_id: str
    organization_id: str
    overall_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    factors: list[RiskFactor]
    summary: str
    recommendations: list[str] = []
    assessed_at: datetime
    valid_until: datetime
    triggered_by: TriggeredBy
    created_by: str


class RiskAssessmentView(RiskAssessment):
    """Assessment as returned to callers, optionally annotated with a trend."""
    previous_score: Optional[int] = None
    score_trend: Optional[ScoreTrendDirection] = None


class AssessmentResult(BaseModel):
    success: bool = True
    assessment: RiskAssessmentView
    cached: bool = Field(description="True when a still-valid stored assessment was returned")
    message: str


class RiskHistoryEntry(BaseModel):
    id: str
    score: int
    risk_level: RiskLevel
    factors_summary: dict[str, float]
    assessed_at: datetime
    triggered_by: TriggeredBy


class RiskHistoryResult(BaseModel):
    client_id: str
    history: list[RiskHistoryEntry]
    total: int


class BulkAssessmentError(BaseModel):
    client_id: str
    error: str


class BulkRiskAssessmentResult(BaseModel):
    success: bool = True
    assessed: int
    failed: int
    assessments: list[RiskAssessment]
    errors: list[BulkAssessmentError] = []
    message: str


class TopFactor(BaseModel):
    type: RiskFactorType
    score: float


class HighRiskClientItem(BaseModel):
    client_id: str
    display_name: Optional[str] = None
    client_type: Optional[str] = None
    overall_score: int
    risk_level: RiskLevel
    top_factors: list[TopFactor]
    assessed_at: datetime


class HighRiskClientsResult(BaseModel):
    clients: list[HighRiskClientItem]
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool
