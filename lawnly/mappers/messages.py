"""Plain-text and HTML bodies for contractor-facing notifications."""

import html
from decimal import Decimal

from lawnly.schemas.supabase import ContractorTier

_SIGNATURE = '<p style="color: #666; margin-top: 30px;">Best regards,<br>The Lawnly Team</p>'

_TIER_TITLES = {
    ContractorTier.standard: "Verified Contractor",
    ContractorTier.premium: "Premium Contractor",
}

_TIER_PERKS = {
    ContractorTier.standard: [
        "You can now accept up to 10 concurrent jobs",
        "No maximum job value restriction",
    ],
    ContractorTier.premium: [
        "No job restrictions",
        "Priority in future features",
    ],
}


def short_ref(booking_id: str) -> str:
    return booking_id[:8]


def format_amount(amount: Decimal | None) -> str:
    return f"${Decimal(amount or 0):.2f}"


def approval_notification(customer_name: str, booking_id: str, amount: Decimal | None) -> tuple[str, str]:
    title = "Payment Released!"
    message = (
        f"{customer_name} has approved your work for booking #{short_ref(booking_id)}. "
        f"Payment of {format_amount(amount)} will arrive in your bank account in 1-2 business days."
    )
    return title, message


def approval_email(
    contractor_name: str,
    customer_name: str,
    booking_id: str,
    amount: Decimal | None,
    rating: int | None,
) -> tuple[str, str]:
    rating_text = f"{rating}/5 stars" if rating else "Not rated"
    html = (
        '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">'
        '<h1 style="color: #16a34a;">Payment Approved!</h1>'
        f"<p>Hi {contractor_name},</p>"
        f"<p>Great news! {customer_name} has approved payment for Job #{short_ref(booking_id)}.</p>"
        f"<p><strong>Amount:</strong> {format_amount(amount)}</p>"
        f"<p><strong>Rating:</strong> {rating_text}</p>"
        "<p>Funds will arrive in your bank account in 1-2 business days.</p>"
        f"{_SIGNATURE}</div>"
    )
    return "Payment Approved!", html


def promotion_notification(tier: ContractorTier) -> tuple[str, str]:
    title = _TIER_TITLES[tier]
    perks = ". ".join(_TIER_PERKS[tier])
    return (
        f"Promoted to {title}!",
        f"Congratulations! You've been promoted to {title} status. {perks}.",
    )


def promotion_email(tier: ContractorTier, name: str | None) -> tuple[str, str]:
    title = _TIER_TITLES[tier]
    perks = "".join(f'<p style="margin: 5px 0;">{perk}</p>' for perk in _TIER_PERKS[tier])
    html = (
        '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">'
        '<h1 style="color: #16a34a;">Congratulations!</h1>'
        f"<p>Hi {name or 'there'},</p>"
        f"<p>You've been promoted to <strong>{title}</strong> status!</p>"
        f"{perks}"
        "<p>Keep up the great work!</p>"
        f"{_SIGNATURE}</div>"
    )
    return f"You've been promoted to {title}!", html


def dispute_notification(customer_name: str, booking_id: str) -> tuple[str, str]:
    return (
        "Issue Reported",
        f"{customer_name} has raised an issue with Job #{short_ref(booking_id)}. "
        "Please respond within 24 hours.",
    )


def dispute_email(contractor_name: str, booking_id: str, description: str) -> tuple[str, str]:
    # description is customer-supplied text
    html_body = (
        '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">'
        '<h1 style="color: #d97706;">Issue Reported</h1>'
        f"<p>Hi {contractor_name},</p>"
        f"<p>The customer has raised an issue with Job #{short_ref(booking_id)}. "
        "Please respond within 24 hours.</p>"
        f"<p><strong>Issue:</strong> {html.escape(description)}</p>"
        f"{_SIGNATURE}</div>"
    )
    return f"Issue Reported - Job #{short_ref(booking_id)}", html_body
