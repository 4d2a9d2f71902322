import csv
import io
from io import BytesIO
from typing import Iterable, List

import qrcode
from PIL import Image as PILImage
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Image, Table, TableStyle

from ..models.models import QRCode
from .qr_ids import sticker_url


CSV_HEADER = ["QR_ID", "Activation_PIN", "URL"]
STICKERS_PER_ROW = 3


def batch_to_csv(codes: Iterable[QRCode]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for qr in codes:
        writer.writerow([qr.qr_id, qr.activation_pin, sticker_url(qr.qr_id)])
    return buffer.getvalue()


def qr_image(data: str, size: int = 300) -> BytesIO:
    """Generate QR code image as PNG in a BytesIO"""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white").convert("RGB")
    img = img.resize((size, size), PILImage.Resampling.LANCZOS)

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)
    return buffer


def qr_png(data: str, size: int = 300) -> bytes:
    return qr_image(data, size).getvalue()


def batch_to_pdf(codes: List[QRCode]) -> bytes:
    """A4 sheet of stickers: QR image, QR id and activation PIN per cell."""
    out = BytesIO()
    doc = SimpleDocTemplate(out, pagesize=A4, leftMargin=10 * mm, rightMargin=10 * mm, topMargin=10 * mm, bottomMargin=10 * mm)
    styles = getSampleStyleSheet()
    id_style = ParagraphStyle("QrId", parent=styles["Heading3"], alignment=1, spaceAfter=0)
    pin_style = ParagraphStyle("Pin", parent=styles["Normal"], alignment=1, fontSize=8)

    cells = []
    for qr in codes:
        img = Image(qr_image(sticker_url(qr.qr_id), size=240), width=40 * mm, height=40 * mm)
        cells.append([img, Paragraph(qr.qr_id, id_style), Paragraph(f"PIN: {qr.activation_pin}", pin_style)])

    rows = [cells[i:i + STICKERS_PER_ROW] for i in range(0, len(cells), STICKERS_PER_ROW)]
    if rows and len(rows[-1]) < STICKERS_PER_ROW:
        rows[-1] = rows[-1] + [""] * (STICKERS_PER_ROW - len(rows[-1]))

    story = []
    if rows:
        table = Table(rows, colWidths=[63 * mm] * STICKERS_PER_ROW)
        table.setStyle(TableStyle([
            ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("TOPPADDING", (0, 0), (-1, -1), 4 * mm),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4 * mm),
        ]))
        story.append(table)
    else:
        story.append(Paragraph("No QR codes in this batch", styles["Normal"]))

    doc.build(story)
    return out.getvalue()
