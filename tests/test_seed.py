from racebib import bibs, models, seed
from racebib.services import confirm_payment

from conftest import EVENT_ID


def _paid(ledger, make_registration, category_id="42K", vanity_number=None):
    reg = make_registration(category_id=category_id, vanity_number=vanity_number)
    confirm_payment(ledger, reg.id, f"pay-{reg.id}", mode=bibs.RECOUNT)
    return reg


def test_seed_counts_paid_non_vanity(ledger, make_registration):
    _paid(ledger, make_registration)
    _paid(ledger, make_registration)
    _paid(ledger, make_registration, vanity_number="999")
    _paid(ledger, make_registration, category_id="21K")
    make_registration()  # still pending

    assert seed.seed_bib_counters(ledger) == 2
    assert ledger.read_counter(EVENT_ID, "42K") == 2
    assert ledger.read_counter(EVENT_ID, "21K") == 1


def test_seed_never_lowers_a_counter(ledger, session, make_registration):
    session.add(models.BibCounter(event_id=EVENT_ID, category_id="42K", count=10))
    session.commit()
    _paid(ledger, make_registration)

    ledger.seed_counters()

    assert ledger.read_counter(EVENT_ID, "42K") == 10


def test_next_bib_after_seed_continues_the_sequence(ledger, make_registration):
    _paid(ledger, make_registration)
    _paid(ledger, make_registration)
    seed.seed_bib_counters(ledger)

    reg = make_registration()
    assert confirm_payment(ledger, reg.id, "pay-new").race_number == "42K-003"


def test_main_reports_count(ledger, make_registration, capsys):
    _paid(ledger, make_registration)

    seed.main([])

    assert "Seeded 1 counters." in capsys.readouterr().out
