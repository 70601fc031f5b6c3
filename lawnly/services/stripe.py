import logging
from contextlib import contextmanager

import pydantic
import stripe

from lawnly.exceptions.custom import AuthenticationError, RateLimitError, StripeError, ValidationError
from lawnly.schemas.stripe import StripeAccount, StripeEvent, StripePayout

logger = logging.getLogger(__name__)


@contextmanager
def _stripe_errors():
    try:
        yield
    except stripe.RateLimitError as exc:
        raise RateLimitError("Stripe") from exc
    except stripe.StripeError as exc:
        raise StripeError(exc.user_message or str(exc), status_code=exc.http_status) from exc


class StripeService:
    def __init__(self, secret_key: str, webhook_secret: str = "", max_network_retries: int = 2):
        self._client = stripe.StripeClient(
            secret_key,
            http_client=stripe.HTTPXClient(),
            max_network_retries=max_network_retries,
        )
        self._webhook_secret = webhook_secret

    async def create_express_account(self, email: str | None, country: str) -> str:
        params = {
            "type": "express",
            "country": country,
            "capabilities": {"transfers": {"requested": True}},
        }
        if email:
            params["email"] = email
        with _stripe_errors():
            account = await self._client.v1.accounts.create_async(params=params)
            # Funds leave the connected account only when a payout is released
            await self._client.v1.accounts.update_async(
                account.id,
                params={"settings": {"payouts": {"schedule": {"interval": "manual"}}}},
            )

        logger.info("Created Stripe account %s", account.id)
        return account.id

    async def retrieve_account(self, account_id: str) -> StripeAccount:
        with _stripe_errors():
            account = await self._client.v1.accounts.retrieve_async(account_id)
        return StripeAccount.model_validate(account.to_dict())

    async def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        with _stripe_errors():
            link = await self._client.v1.account_links.create_async(params={
                "account": account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            })
        return link.url

    async def create_payout(
        self,
        account_id: str,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> StripePayout:
        """Pay out from a connected account's balance.

        Stripe replays the original response for a repeated idempotency key,
        so retries with the same key never move money twice.
        """
        with _stripe_errors():
            payout = await self._client.v1.payouts.create_async(
                params={"amount": amount_cents, "currency": currency, "metadata": metadata},
                options={"stripe_account": account_id, "idempotency_key": idempotency_key},
            )
        result = StripePayout.model_validate(payout.to_dict())
        logger.info("Stripe payout %s created (%d %s)", result.id, result.amount, result.currency)
        return result

    def parse_event(self, payload: bytes, signature: str | None) -> StripeEvent:
        if self._webhook_secret:
            if not signature:
                raise AuthenticationError("Missing Stripe-Signature header")
            try:
                stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
            except stripe.SignatureVerificationError as exc:
                raise AuthenticationError("Invalid webhook signature") from exc
            except ValueError as exc:
                raise ValidationError(f"Invalid webhook payload: {exc}") from exc
        try:
            return StripeEvent.model_validate_json(payload)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid webhook payload: {exc}") from exc
