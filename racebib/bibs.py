"""Race (bib) number allocation.

A vanity number is used as-is. Otherwise the next sequential number for the
event + category is assigned. Either way the raw number is dropped into the
category's ``race_number_format`` template, e.g. "42K-{number}" -> "42K-007".
"""
from __future__ import annotations

import logging
from typing import Optional

from .ledger import Ledger
from .models import DEFAULT_RACE_NUMBER_FORMAT
from .settings import settings

logger = logging.getLogger(__name__)

PLACEHOLDER = "{number}"
MIN_DIGITS = 3

COUNTER = "counter"
RECOUNT = "recount"
ALLOCATION_MODES = (COUNTER, RECOUNT)


def pad_number(n: int) -> str:
    return str(n).zfill(MIN_DIGITS)


def format_race_number(template: Optional[str], raw: str) -> str:
    # no placeholder => template is used verbatim
    return (template or DEFAULT_RACE_NUMBER_FORMAT).replace(PLACEHOLDER, raw, 1)


def resolve_format(ledger: Ledger, event_id: str, category_id: str) -> str:
    category = ledger.read_event_category(event_id, category_id)
    if category is None:
        logger.warning("Category %s not found for event %s; using %s", category_id, event_id, DEFAULT_RACE_NUMBER_FORMAT)
        return DEFAULT_RACE_NUMBER_FORMAT
    return category.race_number_format or DEFAULT_RACE_NUMBER_FORMAT


def next_sequence(ledger: Ledger, event_id: str, category_id: str, mode: str) -> int:
    if mode == RECOUNT:
        # Not safe under concurrency: two callers can see the same count.
        return ledger.count_paid_non_vanity(event_id, category_id) + 1
    ledger.ensure_counter(event_id, category_id)
    return ledger.next_counter_value(event_id, category_id)


def allocate(
    ledger: Ledger,
    event_id: str,
    category_id: str,
    vanity_number: Optional[str] = None,
    mode: Optional[str] = None,
) -> str:
    """Return the formatted race number for a registration about to be paid.

    In ``counter`` mode the increment is left uncommitted on the ledger's
    session; the caller commits it together with the paid write.
    """
    mode = mode or settings.BIB_ALLOCATION_MODE
    if mode not in ALLOCATION_MODES:
        raise ValueError(f"Unknown bib allocation mode: {mode}")

    template = resolve_format(ledger, event_id, category_id)

    if vanity_number:
        return format_race_number(template, vanity_number)

    seq = next_sequence(ledger, event_id, category_id, mode)
    return format_race_number(template, pad_number(seq))
