"""In-memory collaborators and builders shared by the risk tests"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from app.core.exceptions import InputDegradedError
from app.schemas.risk_config import DEFAULT_RISK_CONFIG, RiskConfig
from app.schemas.risk_response import (
    RiskAssessment,
    RiskCategory,
    RiskFactor,
    RiskFactorType,
    RiskLevel,
    TriggeredBy,
)
from app.scoring.inputs import ClientFacts, TaxValidation
from app.services.risk_service import RiskService

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
ORG_ID = "22222222-2222-2222-2222-222222222222"
USER_ID = "11111111-1111-1111-1111-111111111111"
CLIENT_ID = "33333333-3333-3333-3333-333333333333"


def make_facts(**overrides) -> ClientFacts:
    """Baseline 'healthy' client, then override specific fields."""
    kwargs = {
        "client_id": CLIENT_ID,
        "organization_id": ORG_ID,
        "status": "active",
        "display_name": "Test Company",
        "client_type": "company",
        "vat_status": "ACTIVE",
        "vat_validated_at": NOW - timedelta(days=1),
        "email": "office@company.test",
        "phone": "+48123456789",
        "registration_number": "1234567890",
        "address": "Prosta 1, Warszawa",
        "overdue_invoice_count": 0,
        "missing_document_count": 0,
        "last_contact_at": NOW - timedelta(days=10),
    }
    kwargs.update(overrides)
    return ClientFacts(**kwargs)


def make_assessment(
    client_id: str = CLIENT_ID,
    score: int = 35,
    level: RiskLevel = RiskLevel.MEDIUM,
    assessed_at: datetime = NOW - timedelta(days=5),
    valid_for_days: int = 30,
    factors: Optional[list[RiskFactor]] = None,
    organization_id: str = ORG_ID,
) -> RiskAssessment:
    if factors is None:
        factors = [
            RiskFactor(
                type=RiskFactorType.TAX_STATUS,
                name="VAT status",
                description="VAT registration status of the client",
                score=20,
                weight=25,
                weighted_score=5,
                category=RiskCategory.COMPLIANCE,
            )
        ]
    return RiskAssessment(
        id=str(uuid.uuid4()),
        client_id=client_id,
        organization_id=organization_id,
        overall_score=score,
        risk_level=level,
        factors=factors,
        summary="Medium risk - requires monitoring",
        recommendations=["Re-verify the client's VAT status, the last check is out of date"],
        assessed_at=assessed_at,
        valid_until=assessed_at + timedelta(days=valid_for_days),
        triggered_by=TriggeredBy.MANUAL,
        created_by=USER_ID,
    )


class FakeClients:
    def __init__(self, *facts: ClientFacts):
        self.by_id = {f.client_id: f for f in facts}

    def add(self, facts: ClientFacts) -> None:
        self.by_id[facts.client_id] = facts

    async def get_client(self, organization_id, client_id):
        facts = self.by_id.get(client_id)
        if facts is None or facts.organization_id != organization_id:
            return None
        return facts

    async def list_active_client_ids(self, organization_id):
        return sorted(
            f.client_id for f in self.by_id.values()
            if f.organization_id == organization_id and f.status == "active"
        )


class FakeActivity:
    def __init__(self, default: int = 5):
        self.default = default
        self.counts: dict[str, int] = {}
        self.failing: set[str] = set()
        self.degraded: set[str] = set()
        self.calls: list[tuple[str, datetime]] = []

    async def count_recent(self, client_id, since):
        self.calls.append((client_id, since))
        if client_id in self.failing:
            raise RuntimeError(f"timeline unavailable for {client_id}")
        if client_id in self.degraded:
            raise InputDegradedError(f"timeline activity unavailable for {client_id}")
        return self.counts.get(client_id, self.default)


class FakeTaxValidations:
    def __init__(self):
        self.validations: dict[str, TaxValidation] = {}
        self.degraded = False

    async def latest(self, client_id):
        if self.degraded:
            raise InputDegradedError("VAT validation history unavailable")
        return self.validations.get(client_id)


class InMemoryAssessmentStore:
    def __init__(self):
        self.rows: list[RiskAssessment] = []
        self.created: list[RiskAssessment] = []

    def seed(self, *assessments: RiskAssessment) -> None:
        self.rows.extend(assessments)

    async def create(self, assessment):
        self.rows.append(assessment)
        self.created.append(assessment)
        return assessment

    async def find_latest(self, client_id):
        history = await self.find_history(client_id, 1)
        return history[0] if history else None

    async def find_history(self, client_id, limit):
        mine = [a for a in self.rows if a.client_id == client_id]
        return sorted(mine, key=lambda a: a.assessed_at, reverse=True)[:limit]

    async def count(self, client_id):
        return len([a for a in self.rows if a.client_id == client_id])

    async def find_filtered(self, organization_id, levels, category, page, limit):
        latest: dict[str, RiskAssessment] = {}
        for a in self.rows:
            if a.organization_id != organization_id:
                continue
            if a.client_id not in latest or a.assessed_at > latest[a.client_id].assessed_at:
                latest[a.client_id] = a

        matches = [
            a for a in latest.values()
            if a.risk_level in levels
            and (category is None or any(f.category == category and f.weight > 0 for f in a.factors))
        ]
        matches.sort(key=lambda a: (a.overall_score, a.assessed_at), reverse=True)
        start = (page - 1) * limit
        return matches[start:start + limit], len(matches)


class InMemoryConfigStore:
    def __init__(self):
        self.configs: dict[str, RiskConfig] = {}
        self.upserts: list[tuple[str, RiskConfig, str]] = []

    async def get(self, organization_id):
        return self.configs.get(organization_id, DEFAULT_RISK_CONFIG)

    async def upsert(self, organization_id, config, updated_by):
        saved = config.model_copy(update={"updated_at": NOW})
        self.configs[organization_id] = saved
        self.upserts.append((organization_id, saved, updated_by))
        return saved


class RecordingAuditSink:
    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.fail = False

    async def record(self, event_type, payload):
        if self.fail:
            raise RuntimeError("audit log unreachable")
        self.events.append((event_type, payload))


@dataclass
class RiskEnv:
    clients: FakeClients
    activity: FakeActivity = field(default_factory=FakeActivity)
    tax: FakeTaxValidations = field(default_factory=FakeTaxValidations)
    store: InMemoryAssessmentStore = field(default_factory=InMemoryAssessmentStore)
    configs: InMemoryConfigStore = field(default_factory=InMemoryConfigStore)
    audit: RecordingAuditSink = field(default_factory=RecordingAuditSink)
    now: datetime = NOW

    def service(self, organization_id: str = ORG_ID) -> RiskService:
        return RiskService(
            clients=self.clients,
            activity=self.activity,
            tax_validations=self.tax,
            assessments=self.store,
            configs=self.configs,
            audit=self.audit,
            organization_id=organization_id,
            user_id=USER_ID,
            clock=lambda: self.now,
        )
