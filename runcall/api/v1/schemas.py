from datetime import datetime

from pydantic import BaseModel, Field


class SlotSchema(BaseModel):
    start: str
    end: str


class HoldRequestSchema(BaseModel):
    expert_id: str
    slot_start: datetime
    slot_end: datetime
    timezone: str
    user_name: str
    user_email: str
    user_note: str | None = None


class HoldResponseSchema(BaseModel):
    booking_id: str


class BookingInfoSchema(BaseModel):
    booking_id: str
    status: str
    hasFixedPrice: bool
    fixedPrice: int | None = None
    currency: str = "usd"
    priceTiers: list[int] = Field(default_factory=list)


class BookingRefSchema(BaseModel):
    booking_id: str


class BookingStatusSchema(BaseModel):
    booking_id: str
    status: str


class CheckoutRequestSchema(BaseModel):
    booking_id: str
    price_tier: int | None = None


class CheckoutResponseSchema(BaseModel):
    checkout_url: str | None = None
    session_id: str


class ConfirmationSchema(BaseModel):
    ok: bool = True
    booking_id: str
    calendar_event_id: str | None = None
    meeting_link: str | None = None
    already_confirmed: bool = False
