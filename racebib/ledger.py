from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update, and_, or_, func, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .exceptions import RegistrationNotFound, WriteConflict

logger = logging.getLogger(__name__)


def _non_vanity():
    return or_(models.Registration.vanity_number.is_(None), models.Registration.vanity_number == "")


def _paid_non_vanity_count(event_id: str, category_id: str):
    return (
        select(func.count())
        .select_from(models.Registration)
        .where(
            and_(
                models.Registration.event_id == event_id,
                models.Registration.category_id == category_id,
                models.Registration.status == models.PAID,
                _non_vanity(),
            )
        )
    )


class Ledger:
    """Durable registrations, categories and bib counters.

    Everything the payment reconciler and the bib allocator read or write goes
    through here. Methods that mutate say whether they commit; the rest leave
    the session's transaction open so a caller can group an allocation and the
    paid write into one commit.
    """

    def __init__(self, session: Session):
        self.session = session

    # ---------------------------
    # Registrations
    # ---------------------------

    def read_registration(self, registration_id: str) -> models.Registration:
        reg = self.session.get(models.Registration, registration_id, populate_existing=True)
        if reg is None:
            raise RegistrationNotFound(registration_id)
        return reg

    def create_registration(self, **fields) -> models.Registration:
        """Insert a ``pending``/``unpaid`` registration and commit."""
        reg = models.Registration(**fields)
        reg.status = models.PENDING
        reg.payment_status = "unpaid"
        self.session.add(reg)
        self.session.commit()
        return reg

    def set_invoice_id(self, registration_id: str, invoice_id: str) -> None:
        self.session.execute(
            update(models.Registration)
            .where(models.Registration.id == registration_id)
            .values(xendit_invoice_id=invoice_id, updated_at=models.utcnow())
        )
        self.session.commit()

    def write_registration_paid(
        self,
        registration_id: str,
        *,
        race_number: str,
        qr_code_url: str,
        payment_id: Optional[str],
        manual: bool = False,
    ) -> models.Registration:
        """Flip ``pending -> paid`` and commit, in the same transaction as any
        counter increment already issued on this session.

        Raises WriteConflict (after rolling back) when the row is no longer
        pending.
        """
        now = models.utcnow()
        stmt = (
            update(models.Registration)
            .where(
                and_(
                    models.Registration.id == registration_id,
                    models.Registration.status == models.PENDING,
                )
            )
            .values(
                status=models.PAID,
                payment_status="paid",
                race_number=race_number,
                qr_code_url=qr_code_url,
                xendit_payment_id=payment_id,
                synced_manual=manual,
                paid_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.execute(stmt)
            if result.rowcount == 0:
                self.session.rollback()
                raise WriteConflict(registration_id)
            self.session.commit()
        except WriteConflict:
            raise
        except Exception:
            self.session.rollback()
            raise
        return self.read_registration(registration_id)

    def rollback(self) -> None:
        self.session.rollback()

    def list_registrations(self, event_id: Optional[str] = None, status: Optional[str] = None) -> list[models.Registration]:
        q = select(models.Registration).order_by(
            models.Registration.event_id.asc(),
            models.Registration.category_id.asc(),
            models.Registration.created_at.asc(),
        )
        if event_id:
            q = q.where(models.Registration.event_id == event_id)
        if status:
            q = q.where(models.Registration.status == status)
        return self.session.execute(q).scalars().all()

    # ---------------------------
    # Events / categories
    # ---------------------------

    def read_event(self, event_id: str) -> Optional[models.Event]:
        return self.session.get(models.Event, event_id)

    def read_event_category(self, event_id: str, category_id: str) -> Optional[models.EventCategory]:
        return self.session.execute(
            select(models.EventCategory).where(
                and_(
                    models.EventCategory.event_id == event_id,
                    models.EventCategory.category_id == category_id,
                )
            )
        ).scalar_one_or_none()

    # ---------------------------
    # Bib counters
    # ---------------------------

    def count_paid_non_vanity(self, event_id: str, category_id: str) -> int:
        return self.session.execute(_paid_non_vanity_count(event_id, category_id)).scalar_one()

    def ensure_counter(self, event_id: str, category_id: str) -> None:
        """Create the counter row if missing, seeded from a recount. Commits."""
        if self.session.get(models.BibCounter, (event_id, category_id)) is not None:
            return
        start = self.count_paid_non_vanity(event_id, category_id)
        self.session.add(models.BibCounter(event_id=event_id, category_id=category_id, count=start))
        try:
            self.session.commit()
            logger.info("Created bib counter %s_%s at %d", event_id, category_id, start)
        except IntegrityError:
            # another request created it first
            self.session.rollback()

    def next_counter_value(self, event_id: str, category_id: str) -> int:
        """Atomically increment the counter and return the new value.

        A counter that fell behind the paid non-vanity registrations (numbers
        issued in ``recount`` mode) jumps past them in the same statement.
        Not committed: the increment lives and dies with the caller's
        transaction.
        """
        where = and_(
            models.BibCounter.event_id == event_id,
            models.BibCounter.category_id == category_id,
        )
        paid = _paid_non_vanity_count(event_id, category_id).scalar_subquery()
        result = self.session.execute(
            update(models.BibCounter)
            .where(where)
            .values(
                count=case(
                    (models.BibCounter.count >= paid, models.BibCounter.count),
                    else_=paid,
                ) + 1
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise LookupError(f"No bib counter for {event_id}_{category_id}")
        return self.session.execute(select(models.BibCounter.count).where(where)).scalar_one()

    def read_counter(self, event_id: str, category_id: str) -> int:
        value = self.session.execute(
            select(models.BibCounter.count).where(
                and_(
                    models.BibCounter.event_id == event_id,
                    models.BibCounter.category_id == category_id,
                )
            )
        ).scalar_one_or_none()
        return value or 0

    def list_counters(self, event_id: Optional[str] = None) -> list[models.BibCounter]:
        stmt = select(models.BibCounter)
        if event_id:
            stmt = stmt.where(models.BibCounter.event_id == event_id)
        return self.session.execute(
            stmt.order_by(models.BibCounter.event_id.asc(), models.BibCounter.category_id.asc())
        ).scalars().all()

    def seed_counters(self) -> dict[tuple[str, str], int]:
        """Backfill counters from paid non-vanity registrations. Commits.

        Counters never move backwards: an existing value above the recount is
        kept.
        """
        rows = self.session.execute(
            select(models.Registration.event_id, models.Registration.category_id, func.count())
            .where(and_(models.Registration.status == models.PAID, _non_vanity()))
            .group_by(models.Registration.event_id, models.Registration.category_id)
        ).all()

        seeded: dict[tuple[str, str], int] = {}
        for event_id, category_id, n in rows:
            if not event_id or not category_id:
                continue
            counter = self.session.get(models.BibCounter, (event_id, category_id))
            if counter is None:
                counter = models.BibCounter(event_id=event_id, category_id=category_id, count=n)
                self.session.add(counter)
            else:
                counter.count = max(counter.count, n)
            seeded[(event_id, category_id)] = counter.count
        self.session.commit()
        return seeded
