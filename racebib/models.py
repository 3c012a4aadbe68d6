from __future__ import annotations

from datetime import date, datetime, timezone
import uuid

from sqlalchemy import String, Integer, Float, Boolean, Date, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

DEFAULT_RACE_NUMBER_FORMAT = "{number}"

# Registration.status
PENDING = "pending"
PAID = "paid"
CANCELLED = "cancelled"
FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_registration_id() -> str:
    return uuid.uuid4().hex


class Event(Base):
    __tablename__ = "events"
    event_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    categories: Mapped[list["EventCategory"]] = relationship(back_populates="event", cascade="all, delete-orphan")


class EventCategory(Base):
    __tablename__ = "event_categories"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False)
    category_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    # e.g. "42K-{number}"
    race_number_format: Mapped[str] = mapped_column(String, nullable=False, default=DEFAULT_RACE_NUMBER_FORMAT)

    event: Mapped["Event"] = relationship(back_populates="categories")

    __table_args__ = (
        UniqueConstraint("event_id", "category_id", name="uq_event_category"),
    )


class Registration(Base):
    __tablename__ = "registrations"
    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_registration_id)
    event_id: Mapped[str] = mapped_column(String, nullable=False)
    category_id: Mapped[str] = mapped_column(String, nullable=False)
    user_id: Mapped[str] = mapped_column(String, nullable=False)

    runner_name: Mapped[str] = mapped_column(String, nullable=False)
    runner_email: Mapped[str] = mapped_column(String, nullable=False, default="")
    runner_phone: Mapped[str] = mapped_column(String, nullable=False, default="")

    base_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    vanity_premium: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # pending | paid | cancelled | failed
    status: Mapped[str] = mapped_column(String, nullable=False, default=PENDING)
    # unpaid | paid | failed | expired
    payment_status: Mapped[str] = mapped_column(String, nullable=False, default="unpaid")

    vanity_number: Mapped[str | None] = mapped_column(String, nullable=True)
    race_number: Mapped[str | None] = mapped_column(String, nullable=True)
    qr_code_url: Mapped[str | None] = mapped_column(String, nullable=True)

    xendit_invoice_id: Mapped[str | None] = mapped_column(String, nullable=True)
    xendit_payment_id: Mapped[str | None] = mapped_column(String, nullable=True)
    synced_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_registrations_event_category_status", "event_id", "category_id", "status"),
    )


class BibCounter(Base):
    __tablename__ = "bib_counters"
    event_id: Mapped[str] = mapped_column(String, primary_key=True)
    category_id: Mapped[str] = mapped_column(String, primary_key=True)
    # paid, non-vanity registrations issued so far
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
