from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

from pydantic import ValidationError

from . import bibs, models
from .exceptions import (
    CategoryNotFound,
    InvalidWebhookPayload,
    RegistrationNotFound,
    UpstreamUnavailable,
    WriteConflict,
)
from .ledger import Ledger
from .qr import make_bib_qr
from .schemas import CheckoutCreate, XenditWebhookPayload
from .settings import settings
from .xendit import PAID_STATUSES, XenditClient, pick_invoice

logger = logging.getLogger(__name__)

# ---------------------------
# Payment confirmation
# ---------------------------

@dataclass
class PaymentOutcome:
    status: str
    race_number: Optional[str] = None
    qr_code_url: Optional[str] = None
    # True only for the call that actually performed pending -> paid
    applied: bool = False


def _outcome_from(reg: models.Registration) -> PaymentOutcome:
    return PaymentOutcome(status=reg.status, race_number=reg.race_number, qr_code_url=reg.qr_code_url)


def confirm_payment(
    ledger: Ledger,
    registration_id: str,
    payment_id: Optional[str],
    *,
    manual: bool = False,
    mode: Optional[str] = None,
) -> PaymentOutcome:
    """Mark a registration paid and issue its bib + QR, at most once.

    Safe to call any number of times, from the webhook and the sync path
    concurrently. The paid write only succeeds while the row is still
    ``pending``; a caller that loses returns the winner's race number and its
    own counter increment is rolled back with the failed transaction.
    """
    reg = ledger.read_registration(registration_id)

    if reg.status == models.PAID:
        logger.info("Registration %s already paid (%s); nothing to do", registration_id, reg.race_number)
        return _outcome_from(reg)
    if reg.status != models.PENDING:
        logger.warning("Payment %s for registration %s in status %s ignored", payment_id, registration_id, reg.status)
        return _outcome_from(reg)

    event_id, category_id = reg.event_id, reg.category_id
    vanity_number, runner_name = reg.vanity_number, reg.runner_name

    try:
        race_number = bibs.allocate(ledger, event_id, category_id, vanity_number, mode=mode)
        qr_code_url = make_bib_qr(registration_id, event_id, runner_name, race_number)
        ledger.write_registration_paid(
            registration_id,
            race_number=race_number,
            qr_code_url=qr_code_url,
            payment_id=payment_id,
            manual=manual,
        )
    except WriteConflict:
        winner = ledger.read_registration(registration_id)
        logger.info(
            "Registration %s was confirmed concurrently; keeping %s",
            registration_id,
            winner.race_number,
        )
        return _outcome_from(winner)
    except Exception:
        ledger.rollback()
        raise

    logger.info(
        "Payment confirmed for registration %s: race number %s (%s)",
        registration_id,
        race_number,
        "sync" if manual else "webhook",
    )
    return PaymentOutcome(status=models.PAID, race_number=race_number, qr_code_url=qr_code_url, applied=True)


def parse_webhook(raw: bytes) -> XenditWebhookPayload:
    try:
        return XenditWebhookPayload.model_validate_json(raw)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "body" for err in e.errors()})
        raise InvalidWebhookPayload(f"Invalid webhook payload: {', '.join(fields)}") from e


def handle_webhook(ledger: Ledger, payload: XenditWebhookPayload) -> Optional[PaymentOutcome]:
    """Apply a verified invoice callback. Returns None when nothing was done."""
    if payload.status not in PAID_STATUSES:
        logger.info("Webhook for %s with status %s acknowledged", payload.external_id, payload.status)
        return None
    try:
        return confirm_payment(ledger, payload.external_id, payload.id)
    except RegistrationNotFound:
        logger.warning("Webhook %s references unknown registration %s", payload.id, payload.external_id)
        return None

# ---------------------------
# Manual sync
# ---------------------------

@dataclass
class SyncResult:
    status: str
    race_number: Optional[str] = None
    message: Optional[str] = None

    def as_response(self) -> dict:
        out = {"status": self.status}
        if self.race_number is not None:
            out["raceNumber"] = self.race_number
        if self.message:
            out["message"] = self.message
        return out


def sync_registration(ledger: Ledger, client: XenditClient, reg: models.Registration) -> SyncResult:
    """Reconcile one registration against Xendit when the webhook was missed."""
    if reg.status == models.PAID:
        return SyncResult(status=models.PAID, race_number=reg.race_number)

    registration_id = reg.id
    try:
        invoices = client.find_invoices(registration_id)
    except UpstreamUnavailable as e:
        logger.warning("Sync for %s could not reach Xendit: %s", registration_id, e)
        return SyncResult(status=models.PENDING, message="Payment provider unavailable, try again later")

    if not invoices:
        return SyncResult(status=models.PENDING, message="No invoice found yet")

    invoice = pick_invoice(invoices)
    invoice_status = str(invoice.get("status") or "")

    if invoice_status in PAID_STATUSES:
        outcome = confirm_payment(ledger, registration_id, invoice.get("id"), manual=True)
        return SyncResult(status=outcome.status, race_number=outcome.race_number)

    return SyncResult(status=invoice_status.lower() or models.PENDING)

# ---------------------------
# Checkout
# ---------------------------

@dataclass
class CheckoutResult:
    checkout_url: str
    registration_id: str

    def as_response(self) -> dict:
        return {"checkoutUrl": self.checkout_url, "registrationId": self.registration_id}


def build_invoice(reg: models.Registration, event_name: str, category_name: str) -> dict:
    base_url = settings.PUBLIC_BASE_URL.rstrip("/")
    items = [
        {
            "name": f"Base Fee: {category_name}",
            "quantity": 1,
            "price": reg.base_price,
            "category": "Registration",
        }
    ]
    if reg.vanity_premium > 0:
        items.append(
            {
                "name": f"Vanity Number: {reg.vanity_number}",
                "quantity": 1,
                "price": reg.vanity_premium,
                "category": "Vanity Fee",
            }
        )
    return {
        "external_id": reg.id,
        "amount": reg.total_price,
        "description": f"Registration for {event_name} - {category_name}",
        "invoice_duration": settings.INVOICE_DURATION_SECONDS,
        "currency": settings.INVOICE_CURRENCY,
        "reminder_time": 1,
        "success_redirect_url": f"{base_url}/events/{reg.event_id}/register/success?id={reg.id}",
        "failure_redirect_url": f"{base_url}/events/{reg.event_id}/register/failed?id={reg.id}",
        "customer": {
            "given_names": reg.runner_name,
            "email": reg.runner_email,
            "mobile_number": reg.runner_phone,
        },
        "items": items,
        "fees": [],
    }


def create_checkout(ledger: Ledger, client: XenditClient, payload: CheckoutCreate) -> CheckoutResult:
    event = ledger.read_event(payload.event_id)
    category = ledger.read_event_category(payload.event_id, payload.category_id)
    if event is None or category is None:
        raise CategoryNotFound(payload.event_id, payload.category_id)

    reg = ledger.create_registration(
        event_id=payload.event_id,
        category_id=payload.category_id,
        user_id=payload.user_id,
        runner_name=payload.participant.name,
        runner_email=payload.participant.email,
        runner_phone=payload.participant.phone,
        base_price=payload.base_price,
        vanity_premium=payload.vanity_premium,
        total_price=payload.total_price,
        vanity_number=payload.vanity_number or None,
    )

    # registration stays pending if this fails
    result = client.create_invoice(build_invoice(reg, event.name, category.name or category.category_id))
    if result.get("id"):
        ledger.set_invoice_id(reg.id, result["id"])

    logger.info("Created checkout for registration %s (invoice %s)", reg.id, result.get("id"))
    return CheckoutResult(checkout_url=result.get("invoice_url", ""), registration_id=reg.id)
