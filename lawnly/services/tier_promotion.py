import asyncio
import logging

from lawnly.exceptions.custom import ExternalServiceError, RateLimitError
from lawnly.mappers.messages import promotion_email, promotion_notification
from lawnly.mappers.tier_rules import (
    ContractorStats,
    average_rating,
    next_tier,
    premium_tier_open,
    qualifies_for_premium,
    qualifies_for_standard,
)
from lawnly.schemas.responses import Promotion, TierPromotionResponse
from lawnly.schemas.supabase import Contractor, ContractorTier
from lawnly.services.notifications import NotificationService
from lawnly.services.supabase import SupabaseService

logger = logging.getLogger(__name__)


class TierPromotionEvaluator:
    """Scheduled pass that promotes contractors who meet tier thresholds.

    The probation pass runs first. The standard pass then lists standard
    contractors afresh, so someone promoted a moment ago is considered for
    premium in the same run and a second run finds nothing left to do. The
    tier write is conditional on the tier read, which makes overlapping
    runs harmless: a contractor already promoted is skipped and never
    notified twice.
    """

    def __init__(self, supabase: SupabaseService, notifier: NotificationService) -> None:
        self._supabase = supabase
        self._notifier = notifier

    async def run(self) -> TierPromotionResponse:
        logger.info("Tier promotion check started")

        platform_jobs = await self._supabase.count_completed_bookings()

        probation = await self._supabase.list_contractors([ContractorTier.probation])
        logger.info("Evaluating %d probation contractors", len(probation))
        promotions, errors = await self._evaluate_all(probation)
        evaluated = len(probation)

        if premium_tier_open(platform_jobs):
            standard = await self._supabase.list_contractors([ContractorTier.standard])
            logger.info("Evaluating %d standard contractors", len(standard))
            premium_promotions, premium_errors = await self._evaluate_all(standard)
            promotions.extend(premium_promotions)
            errors += premium_errors
            evaluated += len(standard)
        else:
            logger.info(
                "Skipping premium promotions: platform has %d completed jobs", platform_jobs
            )

        logger.info("Tier promotion check complete: %d promotions", len(promotions))
        return TierPromotionResponse(
            evaluated=evaluated,
            platform_completed_jobs=platform_jobs,
            promotions=promotions,
            errors=errors,
        )

    async def _evaluate_all(self, contractors: list[Contractor]) -> tuple[list[Promotion], int]:
        promotions: list[Promotion] = []
        errors = 0
        for contractor in contractors:
            try:
                promotion = await self._evaluate(contractor)
            except (ExternalServiceError, RateLimitError):
                logger.exception("Failed to evaluate contractor %s", contractor.id)
                errors += 1
                continue
            if promotion is not None:
                promotions.append(promotion)
        return promotions, errors

    async def _stats(self, contractor: Contractor, with_disputes: bool) -> ContractorStats:
        completed, ratings = await asyncio.gather(
            self._supabase.count_completed_bookings(contractor.id),
            self._supabase.get_review_ratings(contractor.id),
        )
        disputes = await self._supabase.count_disputes(contractor.id) if with_disputes else 0
        return ContractorStats(
            completed_jobs=completed,
            average_rating=average_rating(ratings),
            disputes=disputes,
        )

    async def _evaluate(self, contractor: Contractor) -> Promotion | None:
        target = next_tier(contractor.tier)
        if target is None:
            return None

        if contractor.tier == ContractorTier.probation:
            stats = await self._stats(contractor, with_disputes=False)
            eligible = qualifies_for_standard(stats)
        else:
            stats = await self._stats(contractor, with_disputes=True)
            eligible = qualifies_for_premium(stats)

        if not eligible:
            return None

        promoted = await self._supabase.update_contractor(
            contractor.id,
            {"tier": target.value},
            match={"tier": contractor.tier.value},
        )
        if promoted is None:
            logger.info("Contractor %s tier changed since read, skipping", contractor.id)
            return None

        logger.info(
            "Promoted contractor %s %s -> %s (jobs=%d rating=%s disputes=%d)",
            contractor.id, contractor.tier, target,
            stats.completed_jobs, stats.average_rating, stats.disputes,
        )

        title, message = promotion_notification(target)
        self._notifier.notify(contractor.user_id, title, message)
        self._notifier.email(contractor.user_id, *promotion_email(target, contractor.business_name))

        return Promotion(contractor_id=contractor.id, from_tier=contractor.tier, to_tier=target)
