import logging

from fastapi import FastAPI

from runcall.api.v1.bookings import router as bookings_router
from runcall.api.v1.checkout import router as checkout_router
from runcall.api.v1.experts import router as experts_router
from runcall.api.v1.google import router as google_router
from runcall.api.webhooks import router as webhooks_router
from runcall.core.config import settings

class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("booking_id", "provider_id", "calendar_id", "event_id", "status", "reason", "error"):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)

app = FastAPI(title="RunCall Booking", version="1.0.0")

app.include_router(experts_router, prefix="/api/experts", tags=["experts"])
app.include_router(bookings_router, prefix="/api/bookings", tags=["bookings"])
app.include_router(checkout_router, prefix="/api/stripe", tags=["payments"])
app.include_router(google_router, prefix="/api/google", tags=["google"])
app.include_router(webhooks_router, tags=["webhooks"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
