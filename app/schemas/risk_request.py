"""
Inbound payloads for the client risk endpoints.

Client ids are CRM UUIDs; the organization never arrives in a payload, it
comes from the caller's token.
"""
from __future__ import annotations

import uuid
from pydantic import BaseModel, Field, field_validator

from app.services.risk_service import MAX_BULK_CLIENTS


def _check_uuid(value: str) -> str:
    try:
        uuid.UUID(value)
    except ValueError:
        raise ValueError(f"{value!r} is not a valid client id (UUID expected)")
    return value


class AssessClientRiskRequest(BaseModel):
    include_history: bool = Field(False, description="Annotate the result with the trend vs. the previous assessment")
    recalculate: bool = Field(False, description="Ignore a still-valid stored assessment")


class BulkAssessRiskRequest(BaseModel):
    client_ids: list[str] = Field(min_length=1, max_length=MAX_BULK_CLIENTS)
    recalculate: bool = False

    @field_validator("client_ids")
    @classmethod
    def validate_client_ids(cls, v: list[str]) -> list[str]:
        return [_check_uuid(client_id) for client_id in v]
