#!/usr/bin/env python3
"""Generate a printable PDF of bib labels for the paid runners of an event.

Usage examples:
  racebib-bib-labels --event-id manila-marathon-2026 --out bibs.pdf
  racebib-bib-labels --event-id manila-marathon-2026 --cols 3 --rows 4 --size-mm 55 --out labels.pdf

Notes:
- Each QR encodes the same JSON payload stored on the registration
  (registrationId, eventId, runnerName, raceNumber).
- Default layout is an A4 sheet with a reasonable label grid.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.lib.utils import ImageReader

from . import db, models
from .ledger import Ledger
from .qr import bib_payload, make_qr_png_bytes


@dataclass
class Layout:
    cols: int = 4
    rows: int = 6
    margin_mm: float = 10.0
    gap_mm: float = 4.0
    size_mm: float = 42.0
    qr_mm: float = 30.0
    font: str = "Helvetica-Bold"
    font_size: float = 14.0
    name_font_size: float = 7.0


@dataclass
class BibLabel:
    race_number: str
    runner_name: str
    payload: str

    @classmethod
    def from_registration(cls, reg: models.Registration) -> "BibLabel":
        return cls(
            race_number=reg.race_number,
            runner_name=reg.runner_name,
            payload=bib_payload(reg.id, reg.event_id, reg.runner_name, reg.race_number),
        )


def check_layout(layout: Layout) -> None:
    if layout.qr_mm > layout.size_mm:
        raise ValueError("--qr-mm must be <= --size-mm")
    page_w, page_h = A4
    usable_w = page_w - 2 * layout.margin_mm * mm
    usable_h = page_h - 2 * layout.margin_mm * mm
    label = layout.size_mm * mm
    gap = layout.gap_mm * mm
    needed_w = layout.cols * label + (layout.cols - 1) * gap
    needed_h = layout.rows * label + (layout.rows - 1) * gap
    if needed_w > usable_w + 1e-6 or needed_h > usable_h + 1e-6:
        raise ValueError(
            f"Grid does not fit on A4 with current settings. "
            f"Needed: {needed_w/mm:.1f}x{needed_h/mm:.1f}mm, "
            f"Usable: {usable_w/mm:.1f}x{usable_h/mm:.1f}mm. "
            f"Try fewer rows/cols, smaller --size-mm, or smaller margins."
        )


def render_labels(labels: list[BibLabel], out, layout: Layout | None = None, title: str = "Race bib labels") -> int:
    """Draw ``labels`` onto A4 pages written to ``out`` (path or file object). Returns page count."""
    layout = layout or Layout()
    check_layout(layout)

    page_w, page_h = A4
    margin = layout.margin_mm * mm
    gap = layout.gap_mm * mm
    label = layout.size_mm * mm
    qr_size = layout.qr_mm * mm

    c = canvas.Canvas(out, pagesize=A4)
    c.setTitle(title)

    def draw_label(x: float, y: float, item: BibLabel):
        # (x, y) is the bottom-left corner; QR on top, race number and name below
        pad = 2 * mm
        qr_x = x + (label - qr_size) / 2
        qr_y = y + label - qr_size - pad

        img = ImageReader(BytesIO(make_qr_png_bytes(item.payload)))
        c.drawImage(img, qr_x, qr_y, width=qr_size, height=qr_size, preserveAspectRatio=True, mask="auto")

        c.setFont(layout.font, layout.font_size)
        c.drawCentredString(x + label / 2, y + pad + layout.name_font_size + 1, item.race_number)
        c.setFont("Helvetica", layout.name_font_size)
        c.drawCentredString(x + label / 2, y + pad, item.runner_name[:40])

    per_page = layout.cols * layout.rows
    pages = 0
    for start in range(0, len(labels), per_page):
        if pages:
            c.showPage()
        pages += 1
        for idx, item in enumerate(labels[start:start + per_page]):
            r, col = divmod(idx, layout.cols)
            x = margin + col * (label + gap)
            # y origin at bottom; first row at the top of the usable area
            y = (page_h - margin - label) - r * (label + gap)
            draw_label(x, y, item)

    c.save()
    return pages


def paid_labels(ledger: Ledger, event_id: str, category_id: str | None = None) -> list[BibLabel]:
    regs = ledger.list_registrations(event_id=event_id, status=models.PAID)
    if category_id:
        regs = [r for r in regs if r.category_id == category_id]
    labels = [BibLabel.from_registration(r) for r in regs if r.race_number]
    labels.sort(key=lambda l: l.race_number)
    return labels


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--event-id", type=str, required=True, help="Event to print bibs for")
    ap.add_argument("--category-id", type=str, default=None, help="Only this category")
    ap.add_argument("--db-url", type=str, default=None, help="Database URL (defaults to RACEBIB_DB_URL)")
    ap.add_argument("--out", type=str, default="bib_labels.pdf", help="Output PDF filename")

    ap.add_argument("--margin-mm", type=float, default=10.0, help="Page margin in mm")
    ap.add_argument("--gap-mm", type=float, default=4.0, help="Gap between labels in mm")
    ap.add_argument("--cols", type=int, default=4, help="Number of columns")
    ap.add_argument("--rows", type=int, default=6, help="Number of rows")
    ap.add_argument("--size-mm", type=float, default=42.0, help="Label square size in mm (QR + text area)")
    ap.add_argument("--qr-mm", type=float, default=30.0, help="QR size in mm inside label")
    ap.add_argument("--font", type=str, default="Helvetica-Bold", help="Font name")
    ap.add_argument("--font-size", type=float, default=14.0, help="Race number font size")

    args = ap.parse_args(argv)
    layout = Layout(
        cols=args.cols,
        rows=args.rows,
        margin_mm=args.margin_mm,
        gap_mm=args.gap_mm,
        size_mm=args.size_mm,
        qr_mm=args.qr_mm,
        font=args.font,
        font_size=args.font_size,
    )
    try:
        check_layout(layout)
    except ValueError as e:
        raise SystemExit(str(e))

    db.init_db(args.db_url)
    session = db.new_session()
    try:
        labels = paid_labels(Ledger(session), args.event_id, args.category_id)
    finally:
        session.close()

    if not labels:
        raise SystemExit(f"No paid registrations with race numbers for {args.event_id}")

    pages = render_labels(labels, args.out, layout, title=f"{args.event_id} bib labels")
    print(f"Saved: {args.out} ({len(labels)} labels, {pages} pages)")


if __name__ == "__main__":
    main()
