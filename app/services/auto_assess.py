"""
auto_assess.py
──────────────
Scheduled sweep that re-assesses every active client of an organization
whose latest risk assessment is missing or past its validity window.

The schedule lives outside this service (cron / Kubernetes CronJob); this
module is what the schedule runs. Organizations with enable_auto_assess
switched off are skipped.

Usage:
  python -m app.services.auto_assess <organization_id>

Environment variables required:
  DATABASE_URL  - CRM database (crm + crm_risk schemas)
"""
from __future__ import annotations

import asyncio
import sys
import time
from typing import Any

import structlog

from app.api.risk_endpoint import build_risk_service
from app.core.auth import Actor
from app.core.config import get_settings
from app.models.database import SessionLocal

logger = structlog.get_logger(__name__)

AUTO_ASSESS_ACTOR = "system:auto-assess"


async def run_auto_assessment(organization_id: str) -> dict[str, Any]:
    t0 = time.monotonic()
    logger.info("auto_assessment_started", organization_id=organization_id)

    async with SessionLocal() as db:
        service = build_risk_service(
            db,
            Actor(user_id=AUTO_ASSESS_ACTOR, organization_id=organization_id),
            get_settings(),
        )
        result = await service.assess_due_clients()
        await db.commit()
        await service.publish_audit_events()

    result["elapsed_seconds"] = round(time.monotonic() - t0, 2)
    logger.info("auto_assessment_finished", organization_id=organization_id, **result)
    return result


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: python -m app.services.auto_assess <organization_id>", file=sys.stderr)
        sys.exit(2)
    asyncio.run(run_auto_assessment(sys.argv[1]))
