import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core.errors import DependencyError, ValidationError
from execmarket.dependencies import get_db
from execmarket.providers import PaymentConfigError, WebhookVerificationError, get_payment_provider
from execmarket.schemas import WebhookAck
from execmarket.services.billing import handle_stripe_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Handle incoming Stripe webhooks. Unverified payloads are rejected before any read or write."""
    payload = await request.body()
    sig_header = request.headers.get("Stripe-Signature", "")
    try:
        event = get_payment_provider().verify_webhook(payload, sig_header)
    except PaymentConfigError as e:
        logger.error("Stripe webhook received but not configured: %s", e)
        raise DependencyError("Stripe webhook secret is not configured") from e
    except WebhookVerificationError as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        raise ValidationError(str(e), code="invalid_webhook") from e

    handled = await handle_stripe_event(db, event)
    logger.info("Stripe event %s (%s) handled=%s", event["id"], event["type"], handled)
    return WebhookAck(handled=handled)
