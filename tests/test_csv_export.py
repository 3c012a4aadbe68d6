import csv
from io import StringIO

from racebib.services import confirm_payment

from conftest import EVENT_ID, bearer


def _rows(response):
    return list(csv.DictReader(StringIO(response.text)))


def test_registrations_csv_for_admin(client, ledger, make_registration):
    paid = make_registration(runner_name="Maria Santos")
    confirm_payment(ledger, paid.id, "pay-1")
    make_registration()

    r = client.get("/api/registrations.csv", headers=bearer("ops", "admin"))

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    rows = _rows(r)
    assert len(rows) == 2
    maria = next(row for row in rows if row["registration_id"] == paid.id)
    assert maria["race_number"] == "42K-001"
    assert maria["status"] == "paid"


def test_registrations_csv_status_filter(client, ledger, make_registration):
    confirm_payment(ledger, make_registration().id, "pay-1")
    make_registration()

    r = client.get("/api/registrations.csv", params={"status": "pending"}, headers=bearer("ops", "admin"))

    assert [row["status"] for row in _rows(r)] == ["pending"]


def test_organizer_is_limited_to_own_event(client, make_registration):
    make_registration()

    own = client.get("/api/registrations.csv", headers=bearer("org", "organizer", EVENT_ID))
    other = client.get(
        "/api/registrations.csv", params={"event_id": "cebu-2026"}, headers=bearer("org", "organizer", EVENT_ID)
    )

    assert own.status_code == 200
    assert len(_rows(own)) == 1
    assert other.status_code == 403


def test_csv_requires_staff(client, event):
    assert client.get("/api/registrations.csv").status_code == 401
    assert client.get("/api/registrations.csv", headers=bearer("runner-1")).status_code == 403


def test_bib_counters_csv_for_admin(client, ledger, make_registration):
    confirm_payment(ledger, make_registration().id, "pay-1")
    ledger.ensure_counter("cebu-2026", "21K")

    r = client.get("/api/bib-counters.csv", headers=bearer("ops", "admin"))

    assert r.status_code == 200
    assert _rows(r) == [
        {"event_id": "cebu-2026", "category_id": "21K", "count": "0"},
        {"event_id": EVENT_ID, "category_id": "42K", "count": "1"},
    ]


def test_bib_counters_csv_organizer_sees_own_event(client, ledger, make_registration):
    confirm_payment(ledger, make_registration().id, "pay-1")
    ledger.ensure_counter("cebu-2026", "21K")
    org = bearer("org", "organizer", EVENT_ID)

    own = client.get("/api/bib-counters.csv", headers=org)
    other = client.get("/api/bib-counters.csv", params={"event_id": "cebu-2026"}, headers=org)

    assert _rows(own) == [{"event_id": EVENT_ID, "category_id": "42K", "count": "1"}]
    assert other.status_code == 403
    assert client.get("/api/bib-counters.csv", headers=bearer("runner-1")).status_code == 403
