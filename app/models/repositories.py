"""Data access layer for assessments and per-organization config"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.risk_assessment import RiskAssessmentRecord, RiskConfigRecord
from app.schemas.risk_config import DEFAULT_RISK_CONFIG, RiskConfig, RiskThresholds
from app.schemas.risk_response import (
    RiskAssessment,
    RiskCategory,
    RiskFactor,
    RiskFactorType,
    RiskLevel,
)


def _aware(ts: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo; everything is stored in UTC
    if ts is None or ts.tzinfo is not None:
        return ts
    return ts.replace(tzinfo=timezone.utc)


def _categories_key(assessment: RiskAssessment) -> str:
    categories = sorted({f.category.value for f in assessment.factors if f.weight > 0})
    return f"|{'|'.join(categories)}|" if categories else ""


def to_domain(row: RiskAssessmentRecord) -> RiskAssessment:
    return RiskAssessment(
        id=row.id,
        client_id=row.client_id,
        organization_id=row.organization_id,
        overall_score=row.overall_score,
        risk_level=RiskLevel(row.risk_level),
        factors=[RiskFactor(**f) for f in row.factors_json],
        summary=row.summary,
        recommendations=list(row.recommendations_json),
        assessed_at=_aware(row.assessed_at),
        valid_until=_aware(row.valid_until),
        triggered_by=row.triggered_by,
        created_by=row.created_by,
    )


class SqlAssessmentStore:
    """Insert-only repository for risk assessments"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, assessment: RiskAssessment) -> RiskAssessment:
        row = RiskAssessmentRecord(
            id=assessment.id,
            client_id=assessment.client_id,
            organization_id=assessment.organization_id,
            overall_score=assessment.overall_score,
            risk_level=assessment.risk_level.value,
            summary=assessment.summary,
            factors_json=[f.model_dump(mode="json") for f in assessment.factors],
            recommendations_json=list(assessment.recommendations),
            factor_categories=_categories_key(assessment),
            assessed_at=assessment.assessed_at,
            valid_until=assessment.valid_until,
            triggered_by=assessment.triggered_by.value,
            created_by=assessment.created_by,
        )
        self.db.add(row)
        await self.db.flush()
        return assessment

    async def find_latest(self, client_id: str) -> Optional[RiskAssessment]:
        history = await self.find_history(client_id, limit=1)
        return history[0] if history else None

    async def find_history(self, client_id: str, limit: int) -> list[RiskAssessment]:
        stmt = (
            select(RiskAssessmentRecord)
            .where(RiskAssessmentRecord.client_id == client_id)
            .order_by(RiskAssessmentRecord.assessed_at.desc(), RiskAssessmentRecord.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [to_domain(row) for row in result.scalars()]

    async def count(self, client_id: str) -> int:
        stmt = select(func.count()).select_from(RiskAssessmentRecord).where(
            RiskAssessmentRecord.client_id == client_id
        )
        return (await self.db.execute(stmt)).scalar_one()

    async def find_filtered(
        self,
        organization_id: str,
        levels: list[RiskLevel],
        category: Optional[RiskCategory],
        page: int,
        limit: int,
    ) -> tuple[list[RiskAssessment], int]:
        # exactly one row per client, even when two assessments share assessed_at
        ranked = (
            select(
                RiskAssessmentRecord.id,
                func.row_number()
                .over(
                    partition_by=RiskAssessmentRecord.client_id,
                    order_by=(RiskAssessmentRecord.assessed_at.desc(), RiskAssessmentRecord.created_at.desc()),
                )
                .label("rn"),
            )
            .where(RiskAssessmentRecord.organization_id == organization_id)
            .subquery()
        )
        stmt = (
            select(RiskAssessmentRecord)
            .join(ranked, RiskAssessmentRecord.id == ranked.c.id)
            .where(
                ranked.c.rn == 1,
                RiskAssessmentRecord.risk_level.in_([level.value for level in levels]),
            )
        )
        if category is not None:
            stmt = stmt.where(RiskAssessmentRecord.factor_categories.like(f"%|{category.value}|%"))

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

        page_stmt = (
            stmt.order_by(
                RiskAssessmentRecord.overall_score.desc(),
                RiskAssessmentRecord.assessed_at.desc(),
            )
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = (await self.db.execute(page_stmt)).scalars()
        return [to_domain(row) for row in rows], total


class SqlConfigStore:
    """Per-organization risk config, last write wins"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, organization_id: str) -> RiskConfig:
        row = await self.db.get(RiskConfigRecord, organization_id)
        if row is None:
            return DEFAULT_RISK_CONFIG

        known = {t.value for t in RiskFactorType}
        return RiskConfig(
            factor_weights={
                RiskFactorType(k): float(v)
                for k, v in row.factor_weights_json.items()
                if k in known
            },
            thresholds=RiskThresholds(**row.thresholds_json),
            auto_assess_interval=row.auto_assess_interval,
            enable_auto_assess=row.enable_auto_assess,
            updated_at=_aware(row.updated_at),
        )

    async def upsert(self, organization_id: str, config: RiskConfig, updated_by: str) -> RiskConfig:
        now = datetime.now(timezone.utc)
        values = {
            "factor_weights_json": {t.value: w for t, w in config.factor_weights.items()},
            "thresholds_json": config.thresholds.model_dump(),
            "auto_assess_interval": config.auto_assess_interval,
            "enable_auto_assess": config.enable_auto_assess,
            "updated_at": now,
            "updated_by": updated_by,
        }

        row = await self.db.get(RiskConfigRecord, organization_id)
        if row is None:
            self.db.add(RiskConfigRecord(organization_id=organization_id, **values))
        else:
            for field, value in values.items():
                setattr(row, field, value)
        await self.db.flush()
        return config.model_copy(update={"updated_at": now})
