"""Tests for the promotion thresholds in tier_rules.py."""

from decimal import Decimal

from lawnly.mappers.tier_rules import (
    ContractorStats,
    average_rating,
    next_tier,
    premium_tier_open,
    qualifies_for_premium,
    qualifies_for_standard,
)
from lawnly.schemas.supabase import ContractorTier


def test_standard_at_exact_boundary():
    stats = ContractorStats(completed_jobs=5, average_rating=Decimal("4.5"))
    assert qualifies_for_standard(stats) is True


def test_standard_four_jobs_is_not_enough():
    stats = ContractorStats(completed_jobs=4, average_rating=Decimal("5"))
    assert qualifies_for_standard(stats) is False


def test_standard_rating_just_below_threshold():
    stats = ContractorStats(completed_jobs=5, average_rating=Decimal("4.49"))
    assert qualifies_for_standard(stats) is False


def test_standard_requires_reviews():
    stats = ContractorStats(completed_jobs=20, average_rating=None)
    assert qualifies_for_standard(stats) is False


def test_average_rating_is_exact():
    assert average_rating([5, 4]) == Decimal("4.5")
    assert average_rating([5, 5, 4, 5, 4, 5, 5, 4, 5, 5]) == Decimal("4.7")
    assert average_rating([]) is None


def test_premium_gate_on_platform_volume():
    assert premium_tier_open(49) is False
    assert premium_tier_open(50) is True


def test_premium_at_boundaries():
    stats = ContractorStats(completed_jobs=50, average_rating=Decimal("4.7"), disputes=1)
    assert qualifies_for_premium(stats) is True


def test_premium_dispute_rate_is_strict():
    # 3 / 100 is exactly 3%, which is not below the limit
    stats = ContractorStats(completed_jobs=100, average_rating=Decimal("4.9"), disputes=3)
    assert stats.dispute_rate == Decimal("0.03")
    assert qualifies_for_premium(stats) is False


def test_premium_rejects_low_rating_or_volume():
    assert qualifies_for_premium(
        ContractorStats(completed_jobs=49, average_rating=Decimal("5"))
    ) is False
    assert qualifies_for_premium(
        ContractorStats(completed_jobs=80, average_rating=Decimal("4.69"))
    ) is False
    assert qualifies_for_premium(
        ContractorStats(completed_jobs=80, average_rating=None)
    ) is False


def test_next_tier_never_demotes():
    assert next_tier(ContractorTier.probation) == ContractorTier.standard
    assert next_tier(ContractorTier.standard) == ContractorTier.premium
    assert next_tier(ContractorTier.premium) is None
