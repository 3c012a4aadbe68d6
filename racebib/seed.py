#!/usr/bin/env python3
"""Seed bib counters from existing paid registrations.

Usage:
  racebib-seed-counters
  racebib-seed-counters --db-url sqlite:///./racebib.db

Run once after importing historical registrations, before switching the
allocator to counter mode. Vanity registrations are not counted.
"""

from __future__ import annotations

import argparse
import logging

from . import db
from .ledger import Ledger

logger = logging.getLogger(__name__)


def seed_bib_counters(ledger: Ledger) -> int:
    seeded = ledger.seed_counters()
    for (event_id, category_id), value in sorted(seeded.items()):
        logger.info("Set %s_%s -> %d", event_id, category_id, value)
    logger.info("Seeded %d counter documents.", len(seeded))
    return len(seeded)


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--db-url", type=str, default=None, help="Database URL (defaults to RACEBIB_DB_URL)")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    db.init_db(args.db_url)
    session = db.new_session()
    try:
        n = seed_bib_counters(Ledger(session))
    finally:
        session.close()
    print(f"Seeded {n} counters.")


if __name__ == "__main__":
    main()
