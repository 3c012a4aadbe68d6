from __future__ import annotations

import base64
import json
from io import BytesIO

import qrcode
from PIL import Image


def make_qr_png_bytes(text: str, box_size: int = 10, border: int = 2) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(text)
    qr.make(fit=True)
    img: Image.Image = qr.make_image(fill_color="black", back_color="white").convert("RGB")
    bio = BytesIO()
    img.save(bio, format="PNG")
    return bio.getvalue()


def make_qr_data_url(text: str) -> str:
    png = make_qr_png_bytes(text)
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def bib_payload(registration_id: str, event_id: str, runner_name: str, race_number: str) -> str:
    """JSON scanned at race-kit claim and at the start line."""
    return json.dumps(
        {
            "registrationId": registration_id,
            "eventId": event_id,
            "runnerName": runner_name,
            "raceNumber": race_number,
        }
    )


def make_bib_qr(registration_id: str, event_id: str, runner_name: str, race_number: str) -> str:
    return make_qr_data_url(bib_payload(registration_id, event_id, runner_name, race_number))
