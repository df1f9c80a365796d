from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from runcall.application.exceptions import InvalidSignature, ReconciliationError, ValidationError
from runcall.application.use_cases.confirm_booking import ConfirmBookingUseCase
from runcall.wiring.dependencies import get_confirm_booking_use_case


router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    uc: ConfirmBookingUseCase = Depends(get_confirm_booking_use_case),
) -> Response:
    body = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        result = uc.confirm_from_webhook(body, signature)
    except InvalidSignature as e:
        logger.warning("Webhook signature rejected", extra={"error": str(e)})
        return Response(content=f"Webhook Error: {e}", status_code=400)
    except ReconciliationError as e:
        # Non-2xx makes Stripe redeliver; confirmation is safe to re-run.
        logger.error("Webhook confirmation failed", extra={"error": str(e)})
        return Response(status_code=500)
    except ValidationError as e:
        logger.warning("Webhook ignored", extra={"reason": str(e)})
        return Response(status_code=200)

    if result is not None:
        logger.info(
            "Webhook processed",
            extra={"booking_id": result.booking_id, "event_id": result.calendar_event_id},
        )
    return Response(status_code=200)
