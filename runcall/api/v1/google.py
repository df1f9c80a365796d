from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from runcall.api.errors import DOMAIN_ERRORS, to_http
from runcall.application.use_cases.connect_calendar import ConnectCalendarUseCase
from runcall.wiring.dependencies import get_connect_calendar_use_case

router = APIRouter()


@router.get("/connect")
def connect(
    expert_id: str = Query(""),
    uc: ConnectCalendarUseCase = Depends(get_connect_calendar_use_case),
):
    try:
        url = uc.authorization_url(expert_id)
    except DOMAIN_ERRORS as e:
        raise to_http(e)
    return RedirectResponse(url, status_code=302)


@router.get("/callback")
def callback(
    code: str = Query(""),
    state: str = Query(""),
    uc: ConnectCalendarUseCase = Depends(get_connect_calendar_use_case),
):
    try:
        account = uc.complete(code, state)
    except DOMAIN_ERRORS as e:
        raise to_http(e)
    return RedirectResponse(
        f"/dashboard.html?expert_id={quote(account.owner_id)}&connected=1",
        status_code=302,
    )
