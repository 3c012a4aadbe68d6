import base64
import json

from racebib.qr import bib_payload, make_bib_qr, make_qr_png_bytes

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def test_bib_payload_fields():
    payload = json.loads(bib_payload("reg1", "mnl-marathon-2026", "Maria Santos", "42K-007"))
    assert payload == {
        "registrationId": "reg1",
        "eventId": "mnl-marathon-2026",
        "runnerName": "Maria Santos",
        "raceNumber": "42K-007",
    }


def test_png_bytes():
    assert make_qr_png_bytes("42K-007").startswith(PNG_SIGNATURE)


def test_bib_qr_is_png_data_url():
    url = make_bib_qr("reg1", "mnl-marathon-2026", "Maria Santos", "42K-007")
    prefix = "data:image/png;base64,"
    assert url.startswith(prefix)
    assert base64.b64decode(url[len(prefix):]).startswith(PNG_SIGNATURE)
