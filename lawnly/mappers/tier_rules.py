from dataclasses import dataclass
from decimal import Decimal

from lawnly.schemas.supabase import ContractorTier

STANDARD_MIN_JOBS = 5
STANDARD_MIN_RATING = Decimal("4.5")

PREMIUM_PLATFORM_MIN_JOBS = 50
PREMIUM_MIN_JOBS = 50
PREMIUM_MIN_RATING = Decimal("4.7")
PREMIUM_MAX_DISPUTE_RATE = Decimal("0.03")


@dataclass(frozen=True)
class ContractorStats:
    completed_jobs: int
    average_rating: Decimal | None
    disputes: int = 0

    @property
    def dispute_rate(self) -> Decimal:
        if self.completed_jobs == 0:
            return Decimal(0)
        return Decimal(self.disputes) / Decimal(self.completed_jobs)


def average_rating(ratings: list[int]) -> Decimal | None:
    if not ratings:
        return None
    return Decimal(sum(ratings)) / Decimal(len(ratings))


def qualifies_for_standard(stats: ContractorStats) -> bool:
    if stats.completed_jobs < STANDARD_MIN_JOBS:
        return False
    # No reviews means the rating clause cannot be met
    if stats.average_rating is None:
        return False
    return stats.average_rating >= STANDARD_MIN_RATING


def premium_tier_open(platform_completed_jobs: int) -> bool:
    return platform_completed_jobs >= PREMIUM_PLATFORM_MIN_JOBS


def qualifies_for_premium(stats: ContractorStats) -> bool:
    if stats.completed_jobs < PREMIUM_MIN_JOBS:
        return False
    if stats.average_rating is None or stats.average_rating < PREMIUM_MIN_RATING:
        return False
    return stats.dispute_rate < PREMIUM_MAX_DISPUTE_RATE


def next_tier(tier: ContractorTier) -> ContractorTier | None:
    if tier == ContractorTier.probation:
        return ContractorTier.standard
    if tier == ContractorTier.standard:
        return ContractorTier.premium
    return None
