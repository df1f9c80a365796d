from fastapi import APIRouter, Depends, Query

from runcall.api.errors import DOMAIN_ERRORS, to_http
from runcall.api.v1.schemas import (
    BookingInfoSchema,
    BookingRefSchema,
    BookingStatusSchema,
    ConfirmationSchema,
    HoldRequestSchema,
    HoldResponseSchema,
)
from runcall.application.use_cases.booking import BookingUseCase
from runcall.application.use_cases.confirm_booking import ConfirmBookingUseCase
from runcall.domain.entities.booking import ClientInfo
from runcall.wiring.dependencies import get_booking_use_case, get_confirm_booking_use_case

router = APIRouter()


@router.post("/hold", response_model=HoldResponseSchema)
def create_hold(
    req: HoldRequestSchema,
    uc: BookingUseCase = Depends(get_booking_use_case),
):
    try:
        booking_id = uc.create_hold(
            provider_id=req.expert_id,
            slot_start=req.slot_start,
            slot_end=req.slot_end,
            client=ClientInfo(
                name=req.user_name,
                email=req.user_email,
                timezone=req.timezone,
                note=req.user_note,
            ),
        )
    except DOMAIN_ERRORS as e:
        raise to_http(e)

    return HoldResponseSchema(booking_id=booking_id)


@router.get("/info", response_model=BookingInfoSchema)
def booking_info(
    booking_id: str = Query(...),
    uc: BookingUseCase = Depends(get_booking_use_case),
):
    try:
        info = uc.get_booking_info(booking_id)
    except DOMAIN_ERRORS as e:
        raise to_http(e)

    return BookingInfoSchema(
        booking_id=info.booking_id,
        status=info.status.value,
        hasFixedPrice=info.has_fixed_price,
        fixedPrice=info.fixed_price_cents,
        currency=info.currency,
        priceTiers=list(info.price_tiers),
    )


@router.post("/cancel", response_model=BookingStatusSchema)
def cancel_booking(
    req: BookingRefSchema,
    uc: BookingUseCase = Depends(get_booking_use_case),
):
    try:
        booking = uc.cancel(req.booking_id)
    except DOMAIN_ERRORS as e:
        raise to_http(e)

    return BookingStatusSchema(booking_id=booking.id, status=booking.status.value)


@router.post("/confirm", response_model=ConfirmationSchema)
def confirm_booking(
    req: BookingRefSchema,
    uc: ConfirmBookingUseCase = Depends(get_confirm_booking_use_case),
):
    try:
        result = uc.confirm_manually(req.booking_id)
    except DOMAIN_ERRORS as e:
        raise to_http(e)

    return ConfirmationSchema(
        booking_id=result.booking_id,
        calendar_event_id=result.calendar_event_id,
        meeting_link=result.meeting_link,
        already_confirmed=result.already_confirmed,
    )
