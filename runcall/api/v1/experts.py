from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from runcall.api.errors import DOMAIN_ERRORS, to_http
from runcall.api.v1.schemas import SlotSchema
from runcall.application.use_cases.get_slots import GetSlotsUseCase
from runcall.wiring.dependencies import get_slots_use_case

router = APIRouter()


@router.get("/slots", response_model=list[SlotSchema])
def list_slots(
    expert_id: str = Query(...),
    time_from: datetime | None = Query(None, alias="from"),
    time_to: datetime | None = Query(None, alias="to"),
    uc: GetSlotsUseCase = Depends(get_slots_use_case),
):
    if not expert_id.strip():
        raise HTTPException(status_code=400, detail="Missing expert_id")
    try:
        slots = uc.execute(expert_id.strip(), time_from=time_from, time_to=time_to)
    except DOMAIN_ERRORS as e:
        raise to_http(e)

    return [SlotSchema(**slot.to_payload()) for slot in slots]
