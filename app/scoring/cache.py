"""
Assessment cache decision.

A stored assessment is reused while `now <= valid_until`, unless the caller
asks to recalculate. The decision is returned as an explicit variant so the
caller cannot forget the miss path.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from app.schemas.risk_response import RiskAssessment


class MissReason(str, Enum):
    NO_ASSESSMENT = "no_assessment"
    RECALCULATE = "recalculate"
    EXPIRED = "expired"


@dataclass(frozen=True)
class CacheHit:
    assessment: RiskAssessment


@dataclass(frozen=True)
class CacheMiss:
    reason: MissReason
    previous: Optional[RiskAssessment] = None


CacheDecision = Union[CacheHit, CacheMiss]


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def check_cache(
    latest: Optional[RiskAssessment],
    now: datetime,
    recalculate: bool = False,
) -> CacheDecision:
    if latest is None:
        return CacheMiss(MissReason.NO_ASSESSMENT)
    if recalculate:
        return CacheMiss(MissReason.RECALCULATE, previous=latest)
    if _aware(now) <= _aware(latest.valid_until):
        return CacheHit(latest)
    return CacheMiss(MissReason.EXPIRED, previous=latest)
