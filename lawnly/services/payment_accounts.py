import logging

from lawnly.exceptions.custom import AuthorizationError, NotFoundError
from lawnly.schemas.stripe import PaymentAccountStatus, StripeEvent
from lawnly.schemas.supabase import AuthUser, Contractor
from lawnly.services.stripe import StripeService
from lawnly.services.supabase import SupabaseService

logger = logging.getLogger(__name__)


class PaymentAccountService:
    """Contractor-facing payment account provisioning.

    Never called from the payout path: a contractor without an account
    simply has their payouts deferred until they finish onboarding here.
    """

    def __init__(
        self,
        supabase: SupabaseService,
        stripe: StripeService,
        country: str = "AU",
        return_url: str = "https://lawnly.com.au/contractor",
    ) -> None:
        self._supabase = supabase
        self._stripe = stripe
        self._country = country
        self._return_url = return_url

    async def _approved_contractor(self, user: AuthUser) -> Contractor:
        contractor = await self._supabase.get_contractor_by_user(user.id)
        if contractor is None:
            raise NotFoundError("Contractor profile not found")
        if contractor.approval_status != "approved":
            raise AuthorizationError("Contractor not approved")
        return contractor

    async def status(self, user: AuthUser) -> PaymentAccountStatus:
        contractor = await self._approved_contractor(user)

        account_id = contractor.stripe_account_id
        if not account_id:
            account_id = await self._stripe.create_express_account(user.email, self._country)
            await self._supabase.update_contractor(
                contractor.id, {"stripe_account_id": account_id}
            )

        account = await self._stripe.retrieve_account(account_id)
        await self._supabase.update_contractor(
            contractor.id,
            {
                "stripe_onboarding_complete": account.details_submitted,
                "stripe_payouts_enabled": account.payouts_enabled,
            },
        )
        return PaymentAccountStatus(
            stripe_account_id=account_id,
            onboarding_complete=account.details_submitted,
            payouts_enabled=account.payouts_enabled,
        )

    async def onboarding_link(self, user: AuthUser) -> PaymentAccountStatus:
        status = await self.status(user)
        status.url = await self._stripe.create_account_link(
            status.stripe_account_id,
            refresh_url=self._return_url,
            return_url=self._return_url,
        )
        return status

    async def handle_event(self, event: StripeEvent) -> bool:
        """Apply an account webhook event. Returns False for ignored events."""
        if event.type != "account.updated":
            logger.info("Ignoring Stripe event %s", event.type)
            return False

        account = event.data.get("object") or {}
        account_id = account.get("id")
        if not account_id:
            logger.warning("account.updated event without an account id")
            return False

        onboarding_complete = bool(account.get("details_submitted", False))
        payouts_enabled = bool(account.get("payouts_enabled", False))
        updated = await self._supabase.update_contractors_by_account(
            account_id,
            {
                "stripe_onboarding_complete": onboarding_complete,
                "stripe_payouts_enabled": payouts_enabled,
            },
        )
        logger.info(
            "Account %s updated: onboarding=%s payouts=%s (%d contractor rows)",
            account_id, onboarding_complete, payouts_enabled, updated,
        )
        return True
