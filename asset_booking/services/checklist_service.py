from __future__ import annotations

import logging
from datetime import date, datetime
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from asset_booking.models.booking_models import Booking
from asset_booking.services.booking_filters import utc_now
from asset_booking.services.errors import ValidationError


CHECKLIST_LOGGER = logging.getLogger("asset_booking.checklist")


def checklist_filename(on_date: date | None = None) -> str:
    current = on_date or utc_now().date()
    return f"booking-checklist-{current.isoformat()}.pdf"


def _format_timestamp(value: datetime | None) -> str:
    if not value:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M")


def _custodian_label(booking: Booking) -> str:
    if booking.CustodianUser:
        return booking.CustodianUser.FullName
    if booking.CustodianTeamMember:
        return booking.CustodianTeamMember.Name
    return "-"


def build_checklist(booking: Booking, on_date: date | None = None) -> dict:
    if not booking.Assets:
        raise ValidationError("Booking has no assets to put on a checklist.")
    return {
        "bookingId": booking.BookingID,
        "name": booking.Name,
        "status": booking.Status,
        "from": _format_timestamp(booking.FromDate),
        "to": _format_timestamp(booking.ToDate),
        "custodian": _custodian_label(booking),
        "assets": [
            {
                "id": asset.AssetID,
                "title": asset.Title,
                "description": asset.Description or "",
            }
            for asset in booking.Assets
        ],
        "filename": checklist_filename(on_date),
    }


def render_checklist_pdf(checklist: dict) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=checklist["filename"])
    styles = getSampleStyleSheet()

    story = [
        Paragraph(f"Booking checklist: {escape(checklist['name'])}", styles["Title"]),
        Paragraph(f"Period: {checklist['from']} to {checklist['to']}", styles["Normal"]),
        Paragraph(f"Custodian: {escape(checklist['custodian'])}", styles["Normal"]),
        Paragraph(f"Status: {checklist['status']}", styles["Normal"]),
        Spacer(1, 12),
    ]

    rows = [["#", "Asset", "Description", "Checked"]]
    for index, asset in enumerate(checklist["assets"], start=1):
        rows.append([str(index), asset["title"], asset["description"][:80], ""])

    table = Table(rows, colWidths=[30, 170, 230, 60], repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ]
        )
    )
    story.append(table)
    doc.build(story)

    CHECKLIST_LOGGER.info(
        "Checklist rendered booking_id=%s assets=%s", checklist["bookingId"], len(checklist["assets"])
    )
    return buffer.getvalue()
