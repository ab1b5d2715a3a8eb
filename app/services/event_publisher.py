"""
Audit event publisher — fire-and-forget.

Publishes risk audit events (assessment computed, config updated) for the
CRM audit log consumer. Every event is also written to the structured log.
Gracefully degrades if Kafka is unavailable.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import structlog
from app.core.config import get_settings

logger = structlog.get_logger()

RISK_ASSESSED = "risk.assessed"
RISK_CONFIG_UPDATED = "risk.config_updated"

_producer = None


async def _get_producer():
    global _producer
    settings = get_settings()
    if not settings.kafka_enabled:
        return None
    if _producer is None:
        from aiokafka import AIOKafkaProducer
        _producer = AIOKafkaProducer(bootstrap_servers=settings.kafka_bootstrap)
        await _producer.start()
    return _producer


async def close_producer() -> None:
    global _producer
    if _producer is not None:
        await _producer.stop()
        _producer = None


class KafkaAuditSink:
    async def record(self, event_type: str, payload: dict[str, Any]) -> None:
        logger.info("audit_event", event_type=event_type, **payload)

        settings = get_settings()
        if not settings.kafka_enabled:
            return

        try:
            producer = await _get_producer()
            if producer:
                event = {
                    "event_type": event_type,
                    "emitted_at": datetime.now(timezone.utc).isoformat(),
                    **payload,
                }
                key = str(payload.get("client_id") or payload.get("organization_id") or "")
                await producer.send_and_wait(
                    settings.kafka_topic_audit_events,
                    json.dumps(event, default=str).encode("utf-8"),
                    key=key.encode("utf-8"),
                )
                logger.info("kafka_event_published", event_type=event_type)
        except Exception as e:
            # Fire-and-forget: log but don't fail the request
            logger.warning("kafka_publish_failed", event_type=event_type, error=str(e))
