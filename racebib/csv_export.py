from __future__ import annotations

import csv
from io import StringIO

from fastapi import APIRouter, Depends, HTTPException
from starlette.responses import Response
from sqlalchemy.orm import Session

from .db import get_session
from .ledger import Ledger
from .auth import staff_required, assert_can_access_event

router = APIRouter()

def _csv_response(filename: str, text: str) -> Response:
    return Response(
        content=text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

def _scope_event(user, event_id: str | None) -> str | None:
    # organizers default to, and are limited to, their own event
    if user.role == "organizer":
        event_id = event_id or user.event_id
        if not event_id:
            raise HTTPException(status_code=400, detail="Organizer is not linked to an event")
        assert_can_access_event(user, event_id)
    return event_id

@router.get("/registrations.csv")
def registrations_csv(
    event_id: str | None = None,
    status: str | None = None,
    user=Depends(staff_required),
    session: Session = Depends(get_session),
):
    event_id = _scope_event(user, event_id)
    rows = Ledger(session).list_registrations(event_id=event_id, status=status)
    buf = StringIO()
    w = csv.writer(buf)
    w.writerow([
        "registration_id", "event_id", "category_id", "user_id", "runner_name", "runner_email",
        "status", "payment_status", "vanity_number", "race_number", "total_price",
        "xendit_payment_id", "synced_manual", "paid_at",
    ])
    for r in rows:
        w.writerow([
            r.id,
            r.event_id,
            r.category_id,
            r.user_id,
            r.runner_name,
            r.runner_email,
            r.status,
            r.payment_status,
            r.vanity_number or "",
            r.race_number or "",
            r.total_price,
            r.xendit_payment_id or "",
            int(bool(r.synced_manual)),
            r.paid_at.isoformat() if r.paid_at else "",
        ])
    name = f"registrations_{event_id.replace(' ', '_')}.csv" if event_id else "registrations.csv"
    return _csv_response(name, buf.getvalue())

@router.get("/bib-counters.csv")
def bib_counters_csv(
    event_id: str | None = None,
    user=Depends(staff_required),
    session: Session = Depends(get_session),
):
    event_id = _scope_event(user, event_id)
    rows = Ledger(session).list_counters(event_id=event_id)
    buf = StringIO()
    w = csv.writer(buf)
    w.writerow(["event_id", "category_id", "count"])
    for c in rows:
        w.writerow([c.event_id, c.category_id, c.count])
    return _csv_response("bib-counters.csv", buf.getvalue())
