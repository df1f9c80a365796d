from fastapi import APIRouter, Depends

from runcall.api.errors import DOMAIN_ERRORS, to_http
from runcall.api.v1.schemas import CheckoutRequestSchema, CheckoutResponseSchema
from runcall.application.use_cases.booking import BookingUseCase
from runcall.wiring.dependencies import get_booking_use_case

router = APIRouter()


@router.post("/checkout-session", response_model=CheckoutResponseSchema)
def create_checkout_session(
    req: CheckoutRequestSchema,
    uc: BookingUseCase = Depends(get_booking_use_case),
):
    try:
        session = uc.create_payment_session(req.booking_id, tier=req.price_tier)
    except DOMAIN_ERRORS as e:
        raise to_http(e)

    return CheckoutResponseSchema(checkout_url=session.url, session_id=session.session_id)
