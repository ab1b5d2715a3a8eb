"""
Client risk endpoints, /v1/risk

POST /clients/{client_id}/assess   → assess (or return the still-valid assessment)
GET  /clients/{client_id}/history  → assessment history
GET  /config                       → effective risk config (defaults if unset)
PUT  /config                       → partial config update
POST /bulk-assess                  → up to 50 clients, partial-success report
GET  /high-risk                    → clients at or above a risk level

Every operation is scoped to the organization in the caller's token.
Writes are committed here, once the service call has succeeded; audit
events are published after the commit.
"""
from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Actor, get_actor
from app.core.config import Settings, get_settings
from app.core.exceptions import BatchTooLargeError, ClientNotFoundError, InvalidConfigurationError
from app.models.database import get_db
from app.models.repositories import SqlAssessmentStore, SqlConfigStore
from app.schemas.risk_config import RiskConfigResult, RiskConfigUpdate
from app.schemas.risk_request import AssessClientRiskRequest, BulkAssessRiskRequest
from app.schemas.risk_response import (
    AssessmentResult,
    BulkRiskAssessmentResult,
    HighRiskClientsResult,
    RiskCategory,
    RiskHistoryResult,
    RiskLevel,
)
from app.services.client_facts import SqlActivityCounter, SqlClientFactsProvider, SqlTaxValidationProvider
from app.services.event_publisher import KafkaAuditSink
from app.services.risk_service import RiskService

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/risk", tags=["risk"])


def build_risk_service(db: AsyncSession, actor: Actor, settings: Settings) -> RiskService:
    return RiskService(
        clients=SqlClientFactsProvider(db),
        activity=SqlActivityCounter(db),
        tax_validations=SqlTaxValidationProvider(db),
        assessments=SqlAssessmentStore(db),
        configs=SqlConfigStore(db),
        audit=KafkaAuditSink(),
        organization_id=actor.organization_id,
        user_id=actor.user_id,
        activity_lookback_days=settings.activity_lookback_days,
        item_scope=db.begin_nested,
    )


async def get_risk_service(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    settings: Settings = Depends(get_settings),
) -> RiskService:
    return build_risk_service(db, actor, settings)


@router.post(
    "/clients/{client_id}/assess",
    response_model=AssessmentResult,
    response_model_exclude_none=True,
    summary="Assess the risk of one client",
)
async def assess_client_risk(
    client_id: str,
    request: AssessClientRiskRequest,
    service: RiskService = Depends(get_risk_service),
    db: AsyncSession = Depends(get_db),
) -> AssessmentResult:
    try:
        result = await service.assess_client_risk(
            client_id,
            include_history=request.include_history,
            recalculate=request.recalculate,
        )
    except ClientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    await db.commit()
    await service.publish_audit_events()
    return result


@router.get("/clients/{client_id}/history", response_model=RiskHistoryResult)
async def get_client_risk_history(
    client_id: str,
    limit: int = Query(10, ge=1, le=100),
    service: RiskService = Depends(get_risk_service),
) -> RiskHistoryResult:
    try:
        return await service.get_client_risk_history(client_id, limit)
    except ClientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/config", response_model=RiskConfigResult)
async def get_risk_config(service: RiskService = Depends(get_risk_service)) -> RiskConfigResult:
    config = await service.get_risk_config()
    return RiskConfigResult(
        config=config,
        message="Using default risk configuration" if config.updated_at is None else "Risk configuration loaded",
    )


@router.put("/config", response_model=RiskConfigResult)
async def update_risk_config(
    update: RiskConfigUpdate,
    service: RiskService = Depends(get_risk_service),
    db: AsyncSession = Depends(get_db),
) -> RiskConfigResult:
    try:
        config = await service.update_risk_config(update)
    except InvalidConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    await db.commit()
    await service.publish_audit_events()
    return RiskConfigResult(config=config, message="Risk configuration updated")


@router.post("/bulk-assess", response_model=BulkRiskAssessmentResult)
async def bulk_assess_risk(
    request: BulkAssessRiskRequest,
    service: RiskService = Depends(get_risk_service),
    db: AsyncSession = Depends(get_db),
) -> BulkRiskAssessmentResult:
    try:
        result = await service.bulk_assess_risk(request.client_ids, recalculate=request.recalculate)
    except BatchTooLargeError as e:
        raise HTTPException(status_code=422, detail=str(e))

    await db.commit()
    await service.publish_audit_events()
    return result


@router.get("/high-risk", response_model=HighRiskClientsResult)
async def get_high_risk_clients(
    min_level: RiskLevel = RiskLevel.HIGH,
    category: Optional[RiskCategory] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: RiskService = Depends(get_risk_service),
) -> HighRiskClientsResult:
    return await service.get_high_risk_clients(min_level=min_level, category=category, page=page, limit=limit)


@router.get("/health", tags=["health"])
async def health(settings: Settings = Depends(get_settings)):
    return {"status": "ok", "service": settings.app_name}
