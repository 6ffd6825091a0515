"""
WhatsApp side channel via the Twilio Messages API.

Messages are best-effort: every failure is logged and reported as False,
nothing is raised to the caller. Callers schedule send_whatsapp_message on
BackgroundTasks so delivery never holds up the triggering request.
"""

import logging
import re
from typing import Iterable, Optional

import httpx
import structlog
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from medquote.config import settings
from medquote.services.http_client import get_http_client

logger = structlog.get_logger()
_std_logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class _TwilioRetryableError(Exception):
    """Raised for 5xx or network errors that warrant a retry."""


def format_phone_number(phone: str) -> str:
    """Normalise a local number to E.164 using the default country code.

    "0712 345 678" -> "+254712345678"; numbers already starting with "+"
    only lose their whitespace.
    """
    number = re.sub(r"\s+", "", phone)
    if not number.startswith("+"):
        number = settings.DEFAULT_COUNTRY_CODE + re.sub(r"^0", "", number)
    return number


def format_amount(cents: int) -> str:
    """Convert cents to display string (e.g. 500000 → '5,000.00')."""
    return f"{cents / 100:,.2f}"


def is_configured() -> bool:
    return bool(
        settings.TWILIO_ACCOUNT_SID
        and settings.TWILIO_AUTH_TOKEN
        and settings.TWILIO_WHATSAPP_NUMBER
    )


@retry(
    retry=retry_if_exception_type(_TwilioRetryableError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    before_sleep=before_sleep_log(_std_logger, logging.WARNING),
    reraise=False,
)
async def _post_with_retry(to: str, body: str) -> bool:
    client = get_http_client()
    try:
        response = await client.post(
            TWILIO_MESSAGES_URL.format(sid=settings.TWILIO_ACCOUNT_SID),
            auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
            data={
                "From": settings.TWILIO_WHATSAPP_NUMBER,
                "To": f"whatsapp:{to}",
                "Body": body,
            },
        )
    except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
        logger.warning("whatsapp_network_error_retrying", error=str(exc), to=to)
        raise _TwilioRetryableError(str(exc)) from exc

    if response.status_code in (200, 201):
        logger.info("whatsapp_sent", to=to, sid=response.json().get("sid"))
        return True

    if response.status_code >= 500:
        logger.warning(
            "whatsapp_twilio_5xx_retrying", status_code=response.status_code, to=to
        )
        raise _TwilioRetryableError(f"Twilio returned {response.status_code}")

    logger.error(
        "whatsapp_failed_twilio",
        status_code=response.status_code,
        response=response.text[:500],
        to=to,
    )
    return False


async def send_whatsapp_message(to: Optional[str], message: str) -> bool:
    if not to:
        logger.info("whatsapp_skipped_no_phone")
        return False
    if not is_configured():
        logger.warning("twilio_not_configured", message="WhatsApp sending skipped")
        return False

    phone_number = format_phone_number(to)
    try:
        return await _post_with_retry(phone_number, message) or False
    except Exception as exc:
        logger.error("whatsapp_all_retries_exhausted", error=str(exc), to=phone_number)
        return False


# ---------- Message templates ----------


def new_rfq_message(product_names: Iterable[str]) -> str:
    return (
        f"🏥 *New RFQ on {settings.APP_NAME}*\n\n"
        f"Products needed: {', '.join(product_names)}\n\n"
        "Submit your quotation now to win this order!\n\n"
        f"View RFQ: {settings.PUBLIC_BASE_URL}/vendor\n\n"
        f"- {settings.APP_NAME} Team"
    )


def new_quotation_message(rfq_id, vendor_name: str, product_name: str, price_cents: int) -> str:
    return (
        "💰 *New Quotation Received*\n\n"
        f"Product: {product_name}\n"
        f"Vendor: {vendor_name}\n"
        f"Price: {settings.CURRENCY} {format_amount(price_cents)}\n\n"
        "Compare prices and choose the best deal!\n\n"
        f"View quotations: {settings.PUBLIC_BASE_URL}/buyer/rfq/{rfq_id}\n\n"
        f"- {settings.APP_NAME} Team"
    )


def quotation_chosen_message(
    product_name: str, buyer_name: str, buyer_phone: Optional[str], buyer_email: str
) -> str:
    return (
        "🎉 *Your Quotation Was Chosen!*\n\n"
        f"Congratulations! {buyer_name} selected your quotation for:\n"
        f"{product_name}\n\n"
        "*Buyer Contact:*\n"
        f"📱 Phone: {buyer_phone or 'N/A'}\n"
        f"📧 Email: {buyer_email}\n\n"
        "Please contact them directly to finalize the order.\n\n"
        f"- {settings.APP_NAME} Team"
    )


def order_update_message(status_message: str) -> str:
    return f"📦 Order Update: {status_message}"


def approval_request_message(requester_name: str, estimated_value_cents: int) -> str:
    return (
        "📋 *Approval Required*\n\n"
        f"{requester_name} submitted an RFQ for approval "
        f"(Est. {settings.CURRENCY} {format_amount(estimated_value_cents)}).\n\n"
        f"Review it: {settings.PUBLIC_BASE_URL}/buyer/approvals\n\n"
        f"- {settings.APP_NAME} Team"
    )


def group_buy_message(product_name: str, hospital_count: int, potential_savings_cents: int) -> str:
    return (
        "🤝 *Group Buying Opportunity*\n\n"
        f"{hospital_count} hospitals are buying: {product_name}\n\n"
        "Join the group purchase and save up to "
        f"{settings.CURRENCY} {format_amount(potential_savings_cents)}!\n\n"
        f"View opportunity: {settings.PUBLIC_BASE_URL}/buyer\n\n"
        f"- {settings.APP_NAME} Team"
    )
