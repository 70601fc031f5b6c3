import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from lawnly.config import Settings
from lawnly.exceptions.custom import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from lawnly.exceptions.handlers import (
    authentication_error_handler,
    authorization_error_handler,
    conflict_error_handler,
    external_service_error_handler,
    not_found_error_handler,
    rate_limit_error_handler,
    request_validation_error_handler,
    validation_error_handler,
)
from lawnly.jobs import JobStore
from lawnly.routers.bookings import router as bookings_router
from lawnly.routers.payment_accounts import router as payment_accounts_router
from lawnly.routers.quotes import router as quotes_router
from lawnly.routers.tier_promotions import router as tier_promotions_router
from lawnly.services.booking import BookingStateMachine
from lawnly.services.notifications import NotificationService
from lawnly.services.payment_accounts import PaymentAccountService
from lawnly.services.payout import PayoutCoordinator
from lawnly.services.quote import QuoteService
from lawnly.services.resend import ResendService
from lawnly.services.stripe import StripeService
from lawnly.services.supabase import SupabaseService
from lawnly.services.tier_promotion import TierPromotionEvaluator
from lawnly.tasks import FireAndForget


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    async with httpx.AsyncClient(timeout=30.0) as client:
        supabase = SupabaseService(
            client, settings.supabase_url, settings.supabase_service_role_key
        )
        stripe = StripeService(settings.stripe_secret_key, settings.stripe_webhook_secret)

        resend: ResendService | None = None
        if settings.resend_api_key:
            resend = ResendService(client, settings.resend_api_key, settings.email_from)

        dispatcher = FireAndForget()
        notifier = NotificationService(supabase, dispatcher, resend=resend)
        payouts = PayoutCoordinator(
            supabase,
            stripe,
            currency=settings.payout_currency,
            platform_fee_rate=settings.platform_fee_rate,
        )

        app.state.supabase_service = supabase
        app.state.stripe_service = stripe
        app.state.quote_service = QuoteService(supabase)
        app.state.booking_service = BookingStateMachine(supabase, payouts, notifier, dispatcher)
        app.state.payment_account_service = PaymentAccountService(
            supabase,
            stripe,
            country=settings.connect_country,
            return_url=settings.onboarding_return_url,
        )
        app.state.tier_promotion_service = TierPromotionEvaluator(supabase, notifier)
        app.state.job_store = JobStore()
        app.state.dispatcher = dispatcher

        yield

        # Let in-flight notifications finish before the client closes
        await dispatcher.drain()


app = FastAPI(title="Lawnly Settlement", lifespan=lifespan)

app.add_exception_handler(AuthenticationError, authentication_error_handler)
app.add_exception_handler(AuthorizationError, authorization_error_handler)
app.add_exception_handler(ValidationError, validation_error_handler)
app.add_exception_handler(NotFoundError, not_found_error_handler)
app.add_exception_handler(ConflictError, conflict_error_handler)
app.add_exception_handler(ExternalServiceError, external_service_error_handler)
app.add_exception_handler(RateLimitError, rate_limit_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)

app.include_router(quotes_router)
app.include_router(bookings_router)
app.include_router(payment_accounts_router)
app.include_router(tier_promotions_router)
