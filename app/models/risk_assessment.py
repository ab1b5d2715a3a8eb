"""
Persistent assessment history: every computed assessment is stored.
Schema: crm_risk.risk_assessment

Rows are insert-only: a re-assessment adds a row, older rows stay for
history and trend queries.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, Text, Index
from sqlalchemy.orm import DeclarativeBase

SCHEMA = "crm_risk"


class Base(DeclarativeBase):
    pass


class RiskAssessmentRecord(Base):
    __tablename__ = "risk_assessment"
    __table_args__ = (
        Index("ix_risk_assessment_client_assessed", "client_id", "assessed_at"),
        {"schema": SCHEMA},
    )

    id = Column(String(36), primary_key=True)
    client_id = Column(String(36), nullable=False, index=True)
    organization_id = Column(String(36), nullable=False, index=True)

    # ── Scoring outputs ──
    overall_score = Column(Integer, nullable=False)
    risk_level = Column(String(20), nullable=False, index=True)
    summary = Column(Text, nullable=False)

    # ── Factor breakdown (JSON, in collector order) ──
    factors_json = Column(JSON, nullable=False)
    recommendations_json = Column(JSON, nullable=False)
    # "|compliance|financial|": categories of positively weighted factors
    factor_categories = Column(String(200), nullable=False, default="")

    # ── Metadata ──
    assessed_at = Column(DateTime(timezone=True), nullable=False, index=True)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    triggered_by = Column(String(10), nullable=False)
    created_by = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<RiskAssessmentRecord {self.id} client={self.client_id} level={self.risk_level} score={self.overall_score}>"


class RiskConfigRecord(Base):
    """One row per organization; absent row means defaults apply."""
    __tablename__ = "risk_config"
    __table_args__ = {"schema": SCHEMA}

    organization_id = Column(String(36), primary_key=True)
    factor_weights_json = Column(JSON, nullable=False)
    thresholds_json = Column(JSON, nullable=False)
    auto_assess_interval = Column(Integer, nullable=False)
    enable_auto_assess = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    updated_by = Column(String(100), nullable=False)

    def __repr__(self):
        return f"<RiskConfigRecord org={self.organization_id}>"
