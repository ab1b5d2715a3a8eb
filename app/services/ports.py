"""
Collaborator interfaces consumed by the risk service.

SQL-backed implementations live in app.models.repositories and
app.services.client_facts; tests substitute in-memory fakes.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol

from app.schemas.risk_config import RiskConfig
from app.schemas.risk_response import RiskAssessment, RiskCategory, RiskLevel
from app.scoring.inputs import ClientFacts, TaxValidation


class ClientFactsProvider(Protocol):
    async def get_client(self, organization_id: str, client_id: str) -> Optional[ClientFacts]: ...

    async def list_active_client_ids(self, organization_id: str) -> list[str]: ...


class ActivityCounter(Protocol):
    async def count_recent(self, client_id: str, since: datetime) -> int: ...


class TaxValidationProvider(Protocol):
    async def latest(self, client_id: str) -> Optional[TaxValidation]:
        """Raises InputDegradedError when the validation source is unavailable."""
        ...


class AssessmentStore(Protocol):
    async def create(self, assessment: RiskAssessment) -> RiskAssessment: ...

    async def find_latest(self, client_id: str) -> Optional[RiskAssessment]: ...

    async def find_history(self, client_id: str, limit: int) -> list[RiskAssessment]:
        """Newest first."""
        ...

    async def count(self, client_id: str) -> int: ...

    async def find_filtered(
        self,
        organization_id: str,
        levels: list[RiskLevel],
        category: Optional[RiskCategory],
        page: int,
        limit: int,
    ) -> tuple[list[RiskAssessment], int]:
        """Latest assessment per client matching the filter, plus the total count."""
        ...


class ConfigStore(Protocol):
    async def get(self, organization_id: str) -> RiskConfig:
        """Stored config, or DEFAULT_RISK_CONFIG when none exists."""
        ...

    async def upsert(self, organization_id: str, config: RiskConfig, updated_by: str) -> RiskConfig: ...


class AuditSink(Protocol):
    async def record(self, event_type: str, payload: dict[str, Any]) -> None: ...
