"""
Read-only access to the CRM tables owned by other modules.

  crm.client              → ClientFacts
  crm.client_risk_inputs  → overdue invoices / missing documents (view fed by
                            the accounting and document modules; may have no row)
  crm.timeline_event      → activity count, last contact
  crm.vat_validation      → latest VAT verification

Queries are plain SQL: this service does not own these schemas.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InputDegradedError
from app.scoring.inputs import ClientFacts, TaxValidation, VatStatus

logger = structlog.get_logger()

CRM_SCHEMA = "crm"

_CLIENT_SQL = f"""
    SELECT c.id, c.organization_id, c.status, c.display_name, c.type,
           c.vat_status, c.vat_validated_at, c.email, c.phone, c.nip,
           c.street, c.city,
           ri.overdue_invoice_count, ri.missing_document_count,
           (SELECT max(te.occurred_at) FROM {CRM_SCHEMA}.timeline_event te
             WHERE te.client_id = c.id
               AND te.event_type IN ('email_sent', 'call', 'meeting')) AS last_contact_at
      FROM {CRM_SCHEMA}.client c
      LEFT JOIN {CRM_SCHEMA}.client_risk_inputs ri ON ri.client_id = c.id
     WHERE c.id = :client_id
       AND c.organization_id = :org
       AND c.deleted_at IS NULL
"""


class SqlClientFactsProvider:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_client(self, organization_id: str, client_id: str) -> Optional[ClientFacts]:
        result = await self.db.execute(text(_CLIENT_SQL), {"client_id": client_id, "org": organization_id})
        row = result.first()
        if row is None:
            return None

        r = row._mapping
        address = ", ".join(part for part in (r["street"], r["city"]) if part) or None
        return ClientFacts(
            client_id=str(r["id"]),
            organization_id=str(r["organization_id"]),
            status=r["status"],
            display_name=r["display_name"],
            client_type=r["type"],
            vat_status=r["vat_status"],
            vat_validated_at=r["vat_validated_at"],
            email=r["email"],
            phone=r["phone"],
            registration_number=r["nip"],
            address=address,
            overdue_invoice_count=r["overdue_invoice_count"],
            missing_document_count=r["missing_document_count"],
            last_contact_at=r["last_contact_at"],
        )

    async def list_active_client_ids(self, organization_id: str) -> list[str]:
        result = await self.db.execute(text(
            f"SELECT id FROM {CRM_SCHEMA}.client "
            f"WHERE organization_id = :org AND status = 'active' AND deleted_at IS NULL ORDER BY id"
        ), {"org": organization_id})
        return [str(r.id) for r in result]


class SqlActivityCounter:
    """Timeline events since a point in time; read failures are reported as degraded input."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_recent(self, client_id: str, since: datetime) -> int:
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(text(
                    f"SELECT count(*) FROM {CRM_SCHEMA}.timeline_event "
                    f"WHERE client_id = :client_id AND occurred_at >= :since"
                ), {"client_id": client_id, "since": since})
                count = result.scalar_one()
        except SQLAlchemyError as e:
            logger.warning("timeline_activity_read_failed", client_id=client_id, error=str(e))
            raise InputDegradedError(f"Timeline activity unavailable: {e}") from e
        return int(count)


class SqlTaxValidationProvider:
    """Latest VAT validation; any read failure is reported as degraded input."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def latest(self, client_id: str) -> Optional[TaxValidation]:
        try:
            # savepoint: a failed read must not poison the request transaction
            async with self.db.begin_nested():
                result = await self.db.execute(text(
                    f"SELECT vat_status, validated_at FROM {CRM_SCHEMA}.vat_validation "
                    f"WHERE client_id = :client_id ORDER BY validated_at DESC LIMIT 1"
                ), {"client_id": client_id})
                row = result.first()
        except SQLAlchemyError as e:
            logger.warning("vat_validation_read_failed", client_id=client_id, error=str(e))
            raise InputDegradedError(f"VAT validation history unavailable: {e}") from e

        if row is None:
            return None
        return TaxValidation(status=VatStatus.parse(row.vat_status), validated_at=row.validated_at)
