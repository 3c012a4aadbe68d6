import hmac
import logging

from fastapi import FastAPI, Request, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .settings import settings
from .db import init_db, get_session
from . import services
from .auth import get_current_user, assert_can_sync
from .exceptions import CategoryNotFound, InvalidWebhookPayload, RegistrationNotFound, UpstreamUnavailable
from .ledger import Ledger
from .schemas import CheckoutCreate
from .xendit import XenditClient

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Race Bib")

@app.on_event("startup")
def _startup() -> None:
    init_db()

def get_ledger(session: Session = Depends(get_session)) -> Ledger:
    return Ledger(session)

def get_payment_client() -> XenditClient:
    return XenditClient.from_settings()

def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)

def callback_token_ok(token: str | None) -> bool:
    expected = settings.XENDIT_CALLBACK_TOKEN
    # unconfigured token rejects everything
    if not expected or token is None:
        return False
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))

# ---------------------------
# Payments
# ---------------------------

@app.post("/api/payments/webhook")
async def payments_webhook(request: Request, ledger: Ledger = Depends(get_ledger)):
    if not callback_token_ok(request.headers.get("x-callback-token")):
        logger.warning("Rejected Xendit webhook from %s: bad callback token", request.client.host if request.client else "?")
        return _error("Unauthorized", 401)

    try:
        payload = services.parse_webhook(await request.body())
    except InvalidWebhookPayload as e:
        logger.warning("Rejected Xendit webhook: %s", e)
        return _error(str(e), 400)

    try:
        await run_in_threadpool(services.handle_webhook, ledger, payload)
    except Exception as e:
        logger.exception("Webhook error for %s", payload.external_id)
        return _error(str(e), 500)
    return {"success": True}

@app.get("/api/payments/sync/{registration_id}")
def payments_sync(
    registration_id: str,
    user=Depends(get_current_user),
    ledger: Ledger = Depends(get_ledger),
    client: XenditClient = Depends(get_payment_client),
):
    try:
        reg = ledger.read_registration(registration_id)
        assert_can_sync(user, reg.user_id)
        result = services.sync_registration(ledger, client, reg)
    except RegistrationNotFound:
        return _error("Registration not found", 404)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Sync error for %s", registration_id)
        return _error(str(e), 500)
    return result.as_response()

@app.post("/api/payments/create-checkout")
def payments_create_checkout(
    payload: CheckoutCreate,
    ledger: Ledger = Depends(get_ledger),
    client: XenditClient = Depends(get_payment_client),
):
    try:
        result = services.create_checkout(ledger, client, payload)
    except CategoryNotFound as e:
        return _error(str(e), 404)
    except UpstreamUnavailable as e:
        return _error(str(e) or "Failed to create Xendit invoice", 502)
    except Exception as e:
        logger.exception("Checkout error for event %s", payload.event_id)
        return _error(str(e), 500)
    return result.as_response()

# ---------------------------
# CSV
# ---------------------------

from .csv_export import router as csv_router
app.include_router(csv_router, prefix="/api", tags=["csv"])
