"""
Webhook Endpoints.

Handles incoming webhooks from Stripe (payment confirmations).
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.database import get_db
from storefront.modules.shop.orders import OrderService
from storefront.modules.shop.payment import PaymentService, get_payment_service
from storefront.modules.shop.schemas import PaymentConfirmation

router = APIRouter()


@router.post("/stripe", status_code=200)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    payment: PaymentService = Depends(get_payment_service),
) -> Response:
    """
    Stripe Webhook Endpoint.

    Completes orders on ``checkout.session.completed``. Errors are returned
    as non-2xx so Stripe redelivers; finalization is idempotent, so a
    redelivery after a partial success is harmless.
    """
    body = await request.body()
    signature = request.headers.get("Stripe-Signature")

    if not signature:
        raise HTTPException(status_code=401, detail="Missing signature")

    event = await payment.verify_webhook(body, signature)

    if not event:
        raise HTTPException(status_code=401, detail="Invalid signature")

    event_type = event["type"]
    logger.info(f"Received Stripe webhook: {event_type}")

    if event_type == "checkout.session.completed":
        session = event["data"]
        confirmation = PaymentConfirmation(
            session_id=session["id"],
            client_reference_id=session.get("client_reference_id") or "",
            total_price=session.get("amount_total") or 0,
        )
        if not confirmation.client_reference_id:
            logger.warning(f"Checkout session {confirmation.session_id} has no client reference id")
            return Response(status_code=200)

        await OrderService(db, payment).finalize_order(confirmation)

    elif event_type == "checkout.session.expired":
        session = event["data"]
        logger.info(f"Checkout session expired: {session.get('id')}")

    return Response(status_code=200)
