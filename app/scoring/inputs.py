"""
Raw facts the factor collectors read.

Everything optional here is optional on purpose: a missing value is a risk
signal handled by the collector, never an error.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class VatStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXEMPT = "EXEMPT"
    NOT_REGISTERED = "NOT_REGISTERED"
    INACTIVE = "INACTIVE"
    INVALID = "INVALID"
    UNKNOWN = "UNKNOWN"
    UNAVAILABLE = "UNAVAILABLE"  # verification provider degraded

    @classmethod
    def parse(cls, value: Optional[str]) -> "VatStatus":
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ClientFacts:
    client_id: str
    organization_id: str
    status: str                      # active | inactive | suspended | archived
    display_name: Optional[str] = None
    client_type: Optional[str] = None  # individual | company
    vat_status: Optional[str] = None
    vat_validated_at: Optional[datetime] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    registration_number: Optional[str] = None  # NIP / tax id
    address: Optional[str] = None
    overdue_invoice_count: Optional[int] = None
    missing_document_count: Optional[int] = None
    last_contact_at: Optional[datetime] = None


@dataclass(frozen=True)
class TaxValidation:
    status: VatStatus
    validated_at: Optional[datetime] = None

    @classmethod
    def degraded(cls) -> "TaxValidation":
        return cls(status=VatStatus.UNAVAILABLE)


@dataclass(frozen=True)
class FactorInputs:
    facts: ClientFacts
    as_of: datetime
    recent_activity_count: Optional[int] = None
    tax_validation: Optional[TaxValidation] = None
