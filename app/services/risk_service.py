"""
Client risk service: the single-client pipeline and everything built on it.

  assess_client_risk     cache → collectors → scoring → persist → trend
  get_client_risk_history
  get_risk_config / update_risk_config
  bulk_assess_risk       per-client isolated fan-out (max 50)
  get_high_risk_clients  latest assessment per client, filtered + paginated
  assess_due_clients     sweep used by the external auto-assessment cron

One instance serves one caller: the organization and actor come from the
validated token and scope every read and write. Audit events are queued
and only published through publish_audit_events(), which the caller runs
once the writes are committed.
"""
from __future__ import annotations

import math
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncContextManager, Callable, Optional

import structlog

from app.core import metrics
from app.core.exceptions import BatchTooLargeError, ClientNotFoundError, InputDegradedError
from app.schemas.risk_config import RiskConfig, RiskConfigUpdate, merge_config_update
from app.schemas.risk_response import (
    AssessmentResult,
    BulkAssessmentError,
    BulkRiskAssessmentResult,
    HighRiskClientItem,
    HighRiskClientsResult,
    RiskAssessment,
    RiskCategory,
    RiskHistoryEntry,
    RiskHistoryResult,
    RiskLevel,
    TopFactor,
    TriggeredBy,
    levels_at_or_above,
)
from app.scoring.cache import CacheHit, check_cache
from app.scoring.engine import evaluate
from app.scoring.inputs import ClientFacts, FactorInputs, TaxValidation
from app.scoring.trend import analyze_trend, to_view
from app.services.event_publisher import RISK_ASSESSED, RISK_CONFIG_UPDATED
from app.services.ports import (
    ActivityCounter,
    AssessmentStore,
    AuditSink,
    ClientFactsProvider,
    ConfigStore,
    TaxValidationProvider,
)

logger = structlog.get_logger()

MAX_BULK_CLIENTS = 50
TOP_FACTORS_COUNT = 3
DEFAULT_ACTIVITY_LOOKBACK_DAYS = 90


@asynccontextmanager
async def _no_scope():
    yield


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RiskService:
    def __init__(
        self,
        *,
        clients: ClientFactsProvider,
        activity: ActivityCounter,
        tax_validations: TaxValidationProvider,
        assessments: AssessmentStore,
        configs: ConfigStore,
        audit: AuditSink,
        organization_id: str,
        user_id: str,
        activity_lookback_days: int = DEFAULT_ACTIVITY_LOOKBACK_DAYS,
        clock: Callable[[], datetime] = _utcnow,
        item_scope: Callable[[], AsyncContextManager[Any]] = _no_scope,
    ):
        self.clients = clients
        self.activity = activity
        self.tax_validations = tax_validations
        self.assessments = assessments
        self.configs = configs
        self.audit = audit
        self.organization_id = organization_id
        self.user_id = user_id
        self.activity_lookback_days = activity_lookback_days
        self.clock = clock
        # wraps each batch item, e.g. a DB savepoint, so one failure stays local
        self.item_scope = item_scope
        self._pending_events: list[tuple[str, dict[str, Any]]] = []

    # ═══════════════════════════════════════════════════════════════
    # Single client
    # ═══════════════════════════════════════════════════════════════

    async def assess_client_risk(
        self,
        client_id: str,
        include_history: bool = False,
        recalculate: bool = False,
    ) -> AssessmentResult:
        assessment, cached = await self._assess(client_id, recalculate, TriggeredBy.MANUAL)

        trend = None
        if include_history:
            previous = await self._previous_assessment(assessment)
            trend = analyze_trend(assessment, previous)

        return AssessmentResult(
            assessment=to_view(assessment, trend),
            cached=cached,
            message=(
                "Returned current risk assessment"
                if cached
                else f"Risk assessment completed: {assessment.risk_level.value}"
            ),
        )

    async def get_client_risk_history(self, client_id: str, limit: int = 10) -> RiskHistoryResult:
        await self._require_client(client_id)

        history = await self.assessments.find_history(client_id, limit)
        total = await self.assessments.count(client_id)
        return RiskHistoryResult(
            client_id=client_id,
            history=[
                RiskHistoryEntry(
                    id=a.id,
                    score=a.overall_score,
                    risk_level=a.risk_level,
                    factors_summary={f.type.value: f.score for f in a.factors},
                    assessed_at=a.assessed_at,
                    triggered_by=a.triggered_by,
                )
                for a in history
            ],
            total=total,
        )

    # ═══════════════════════════════════════════════════════════════
    # Configuration
    # ═══════════════════════════════════════════════════════════════

    async def get_risk_config(self) -> RiskConfig:
        return await self.configs.get(self.organization_id)

    async def update_risk_config(self, update: RiskConfigUpdate) -> RiskConfig:
        current = await self.configs.get(self.organization_id)
        merged = merge_config_update(current, update)
        saved = await self.configs.upsert(self.organization_id, merged, self.user_id)

        changes = update.model_dump(mode="json", exclude_none=True)
        logger.info("risk_config_updated", organization_id=self.organization_id, changes=changes)
        self._queue_audit(RISK_CONFIG_UPDATED, {"changes": changes})
        return saved

    # ═══════════════════════════════════════════════════════════════
    # Batch
    # ═══════════════════════════════════════════════════════════════

    async def bulk_assess_risk(self, client_ids: list[str], recalculate: bool = False) -> BulkRiskAssessmentResult:
        if len(client_ids) > MAX_BULK_CLIENTS:
            raise BatchTooLargeError(f"At most {MAX_BULK_CLIENTS} clients per bulk request (got {len(client_ids)})")

        config = await self.configs.get(self.organization_id)
        assessments: list[RiskAssessment] = []
        errors: list[BulkAssessmentError] = []

        for client_id in client_ids:
            queued = len(self._pending_events)
            try:
                async with self.item_scope():
                    assessment, _ = await self._assess(client_id, recalculate, TriggeredBy.BULK, config)
                assessments.append(assessment)
            except Exception as e:
                del self._pending_events[queued:]
                metrics.assessment_failure_counter.inc()
                logger.warning("bulk_assessment_item_failed", client_id=client_id, error=str(e))
                errors.append(BulkAssessmentError(client_id=client_id, error=str(e)))

        logger.info(
            "bulk_assessment_complete",
            organization_id=self.organization_id,
            requested=len(client_ids),
            assessed=len(assessments),
            failed=len(errors),
        )
        return BulkRiskAssessmentResult(
            assessed=len(assessments),
            failed=len(errors),
            assessments=assessments,
            errors=errors,
            message=f"Assessed {len(assessments)} of {len(client_ids)} clients",
        )

    async def assess_due_clients(self) -> dict[str, Any]:
        """
        Re-assess every active client whose latest assessment is missing or
        expired. Called by the external scheduler, one organization per run.
        """
        config = await self.configs.get(self.organization_id)
        if not config.enable_auto_assess:
            logger.info("auto_assessment_disabled", organization_id=self.organization_id)
            return {"status": "disabled", "clients_checked": 0, "assessed": 0, "skipped": 0, "failed": 0}

        client_ids = await self.clients.list_active_client_ids(self.organization_id)
        assessed = skipped = failed = 0
        for client_id in client_ids:
            queued = len(self._pending_events)
            try:
                async with self.item_scope():
                    _, cached = await self._assess(client_id, False, TriggeredBy.AUTO, config)
            except Exception as e:
                del self._pending_events[queued:]
                failed += 1
                metrics.assessment_failure_counter.inc()
                logger.warning("auto_assessment_item_failed", client_id=client_id, error=str(e))
                continue
            if cached:
                skipped += 1
            else:
                assessed += 1

        return {
            "status": "success",
            "clients_checked": len(client_ids),
            "assessed": assessed,
            "skipped": skipped,
            "failed": failed,
        }

    # ═══════════════════════════════════════════════════════════════
    # High-risk query
    # ═══════════════════════════════════════════════════════════════

    async def get_high_risk_clients(
        self,
        min_level: RiskLevel = RiskLevel.HIGH,
        category: Optional[RiskCategory] = None,
        page: int = 1,
        limit: int = 20,
    ) -> HighRiskClientsResult:
        levels = levels_at_or_above(min_level)
        found, total = await self.assessments.find_filtered(self.organization_id, levels, category, page, limit)

        items: list[HighRiskClientItem] = []
        for assessment in found:
            facts = await self.clients.get_client(self.organization_id, assessment.client_id)
            top = sorted(assessment.factors, key=lambda f: f.score, reverse=True)[:TOP_FACTORS_COUNT]
            items.append(
                HighRiskClientItem(
                    client_id=assessment.client_id,
                    display_name=facts.display_name if facts else None,
                    client_type=facts.client_type if facts else None,
                    overall_score=assessment.overall_score,
                    risk_level=assessment.risk_level,
                    top_factors=[TopFactor(type=f.type, score=f.score) for f in top],
                    assessed_at=assessment.assessed_at,
                )
            )

        total_pages = math.ceil(total / limit) if total else 0
        return HighRiskClientsResult(
            clients=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_more=page < total_pages,
        )

    # ═══════════════════════════════════════════════════════════════
    # Internals
    # ═══════════════════════════════════════════════════════════════

    async def _require_client(self, client_id: str) -> ClientFacts:
        facts = await self.clients.get_client(self.organization_id, client_id)
        if facts is None:
            raise ClientNotFoundError(client_id)
        return facts

    async def _assess(
        self,
        client_id: str,
        recalculate: bool,
        triggered_by: TriggeredBy,
        config: Optional[RiskConfig] = None,
    ) -> tuple[RiskAssessment, bool]:
        """Returns (assessment, cached)."""
        facts = await self._require_client(client_id)
        now = self.clock()

        decision = check_cache(await self.assessments.find_latest(client_id), now, recalculate)
        if isinstance(decision, CacheHit):
            logger.info("risk_assessment_cache_hit", client_id=client_id, assessment_id=decision.assessment.id)
            metrics.record_assessment(True, decision.assessment.risk_level.value, decision.assessment.overall_score)
            return decision.assessment, True

        if config is None:
            config = await self.configs.get(self.organization_id)

        inputs = FactorInputs(
            facts=facts,
            as_of=now,
            recent_activity_count=await self._recent_activity(client_id, now),
            tax_validation=await self._tax_validation(client_id),
        )
        assessment = evaluate(inputs, config, triggered_by=triggered_by, created_by=self.user_id)
        await self.assessments.create(assessment)

        logger.info(
            "risk_assessment_computed",
            client_id=client_id,
            assessment_id=assessment.id,
            reason=decision.reason.value,
            score=assessment.overall_score,
            level=assessment.risk_level.value,
            triggered_by=triggered_by.value,
        )
        metrics.record_assessment(False, assessment.risk_level.value, assessment.overall_score)
        self._queue_audit(RISK_ASSESSED, {
            "client_id": client_id,
            "assessment_id": assessment.id,
            "overall_score": assessment.overall_score,
            "risk_level": assessment.risk_level.value,
            "triggered_by": triggered_by.value,
        })
        return assessment, False

    async def _recent_activity(self, client_id: str, now: datetime) -> Optional[int]:
        try:
            return await self.activity.count_recent(client_id, now - timedelta(days=self.activity_lookback_days))
        except InputDegradedError as e:
            metrics.degraded_input_counter.labels(input="activity").inc()
            logger.warning("activity_count_degraded", client_id=client_id, error=str(e))
            return None

    async def _tax_validation(self, client_id: str) -> Optional[TaxValidation]:
        try:
            return await self.tax_validations.latest(client_id)
        except InputDegradedError as e:
            metrics.degraded_input_counter.labels(input="tax_validation").inc()
            logger.warning("tax_validation_degraded", client_id=client_id, error=str(e))
            return TaxValidation.degraded()

    async def _previous_assessment(self, assessment: RiskAssessment) -> Optional[RiskAssessment]:
        history = await self.assessments.find_history(assessment.client_id, limit=2)
        return next((a for a in history if a.id != assessment.id), None)

    def _queue_audit(self, event_type: str, payload: dict[str, Any]) -> None:
        self._pending_events.append((event_type, {
            "organization_id": self.organization_id,
            "actor_id": self.user_id,
            **payload,
        }))

    async def publish_audit_events(self) -> None:
        """Publish queued audit events. Call only after the writes they describe are committed."""
        events, self._pending_events = self._pending_events, []
        for event_type, payload in events:
            try:
                await self.audit.record(event_type, payload)
            except Exception as e:
                # audit is observe-only; the primary operation already succeeded
                logger.warning("audit_record_failed", event_type=event_type, error=str(e))
