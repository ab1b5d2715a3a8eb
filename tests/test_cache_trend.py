"""
Tests for the assessment cache decision and score trend.
"""
from datetime import timedelta

import pytest

from app.schemas.risk_response import RiskLevel, ScoreTrendDirection
from app.scoring.cache import CacheHit, CacheMiss, MissReason, check_cache
from app.scoring.trend import analyze_trend, classify_trend, to_view
from factories import NOW, make_assessment


class TestCheckCache:
    def test_no_assessment(self):
        decision = check_cache(None, NOW)
        assert decision == CacheMiss(MissReason.NO_ASSESSMENT)

    def test_still_valid_is_hit(self):
        latest = make_assessment(assessed_at=NOW - timedelta(days=5))
        assert check_cache(latest, NOW) == CacheHit(latest)

    def test_valid_until_boundary_is_hit(self):
        latest = make_assessment(assessed_at=NOW - timedelta(days=30), valid_for_days=30)
        assert isinstance(check_cache(latest, NOW), CacheHit)

    def test_expired(self):
        latest = make_assessment(assessed_at=NOW - timedelta(days=31), valid_for_days=30)
        decision = check_cache(latest, NOW)
        assert isinstance(decision, CacheMiss)
        assert decision.reason == MissReason.EXPIRED
        assert decision.previous == latest

    def test_recalculate_bypasses_valid_assessment(self):
        latest = make_assessment(assessed_at=NOW - timedelta(days=1))
        decision = check_cache(latest, NOW, recalculate=True)
        assert decision == CacheMiss(MissReason.RECALCULATE, previous=latest)

    def test_naive_valid_until_treated_as_utc(self):
        latest = make_assessment(assessed_at=(NOW - timedelta(days=1)).replace(tzinfo=None))
        assert isinstance(check_cache(latest, NOW), CacheHit)


class TestTrend:
    @pytest.mark.parametrize("previous,current,direction", [
        (60, 30, ScoreTrendDirection.IMPROVING),
        (30, 70, ScoreTrendDirection.WORSENING),
        (50, 52, ScoreTrendDirection.STABLE),
        (50, 45, ScoreTrendDirection.STABLE),
        (50, 44, ScoreTrendDirection.IMPROVING),
        (50, 56, ScoreTrendDirection.WORSENING),
    ])
    def test_classify(self, previous, current, direction):
        assert classify_trend(previous, current) == direction

    def test_no_previous_means_no_trend(self):
        assert analyze_trend(make_assessment(), None) is None

    def test_trend_against_previous(self):
        previous = make_assessment(score=60, level=RiskLevel.HIGH)
        current = make_assessment(score=30, level=RiskLevel.MEDIUM)

        trend = analyze_trend(current, previous)
        assert trend.previous_score == 60
        assert trend.direction == ScoreTrendDirection.IMPROVING


class TestToView:
    def test_without_trend(self):
        assessment = make_assessment()
        view = to_view(assessment)

        assert view.id == assessment.id
        assert view.factors == assessment.factors
        assert view.previous_score is None
        assert view.score_trend is None

    def test_with_trend(self):
        previous = make_assessment(score=30)
        current = make_assessment(score=70, level=RiskLevel.HIGH)

        view = to_view(current, analyze_trend(current, previous))
        assert view.previous_score == 30
        assert view.score_trend == ScoreTrendDirection.WORSENING
        assert view.overall_score == 70
