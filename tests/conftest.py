from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from racebib import db, models
from racebib.auth import issue_token
from racebib.exceptions import UpstreamUnavailable
from racebib.ledger import Ledger
from racebib.main import app, get_payment_client
from racebib.settings import settings

CALLBACK_TOKEN = "test-callback-token"
EVENT_ID = "mnl-marathon-2026"


class FakeXendit:
    """Stands in for XenditClient; records every call."""

    def __init__(self):
        self.invoices: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self.created: list[dict] = []
        self.fail: Exception | None = None

    def add_invoice(self, external_id: str, status: str, invoice_id: str | None = None) -> dict:
        invoice = {"id": invoice_id or f"inv-{len(self.invoices) + 1}", "external_id": external_id, "status": status}
        self.invoices.setdefault(external_id, []).append(invoice)
        return invoice

    def find_invoices(self, external_id):
        self.calls.append(("find_invoices", external_id))
        if self.fail:
            raise self.fail
        return list(self.invoices.get(external_id, []))

    def create_invoice(self, invoice):
        self.calls.append(("create_invoice", invoice["external_id"]))
        if self.fail:
            raise self.fail
        self.created.append(invoice)
        n = len(self.created)
        return {"id": f"inv-created-{n}", "invoice_url": f"https://checkout.xendit.co/web/inv-created-{n}", "status": "PENDING"}


@pytest.fixture(autouse=True)
def database(tmp_path):
    db.dispose_db()
    db.init_db(f"sqlite:///{tmp_path / 'racebib.db'}")
    yield
    db.dispose_db()


@pytest.fixture(autouse=True)
def _settings(monkeypatch):
    monkeypatch.setattr(settings, "XENDIT_CALLBACK_TOKEN", CALLBACK_TOKEN)
    monkeypatch.setattr(settings, "BIB_ALLOCATION_MODE", "counter")
    monkeypatch.setattr(settings, "SYNC_REQUIRE_AUTH", False)
    monkeypatch.setattr(settings, "PUBLIC_BASE_URL", "https://runs.example.ph")


@pytest.fixture
def session():
    s = db.new_session()
    yield s
    s.close()


@pytest.fixture
def ledger(session):
    return Ledger(session)


@pytest.fixture
def event(session):
    ev = models.Event(event_id=EVENT_ID, name="Manila Marathon 2026")
    ev.categories = [
        models.EventCategory(category_id="42K", name="Full Marathon", price=1800, race_number_format="42K-{number}"),
        models.EventCategory(category_id="21K", name="Half Marathon", price=1500, race_number_format="21K-{number}"),
        models.EventCategory(category_id="5K", name="Fun Run", price=600, race_number_format="{number}"),
        models.EventCategory(category_id="VIP", name="VIP", price=5000, race_number_format="VIP"),
    ]
    session.add(ev)
    session.commit()
    return ev


@pytest.fixture
def make_registration(ledger, event):
    counter = {"n": 0}

    def _make(category_id="42K", vanity_number=None, user_id="user-1", runner_name=None, **fields):
        counter["n"] += 1
        return ledger.create_registration(
            event_id=EVENT_ID,
            category_id=category_id,
            user_id=user_id,
            runner_name=runner_name or f"Runner {counter['n']}",
            runner_email=f"runner{counter['n']}@example.ph",
            vanity_number=vanity_number,
            base_price=1800.0,
            total_price=1800.0,
            **fields,
        )

    return _make


@pytest.fixture
def xendit():
    return FakeXendit()


@pytest.fixture
def client(xendit):
    app.dependency_overrides[get_payment_client] = lambda: xendit
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def webhook_headers():
    return {"x-callback-token": CALLBACK_TOKEN}


def bearer(user_id: str, role: str = "runner", event_id: str | None = None) -> dict:
    return {"Authorization": f"Bearer {issue_token(user_id=user_id, username=user_id, role=role, event_id=event_id)}"}


def upstream_down() -> UpstreamUnavailable:
    return UpstreamUnavailable("Payment provider timed out")
