from tagsphere.models.models import QRCode
from tagsphere.services.qr_print import batch_to_csv, batch_to_pdf, qr_png


def _codes():
    return [
        QRCode(qr_id="ABCDEFG", activation_pin="123456"),
        QRCode(qr_id="HJKLMN2", activation_pin="654321"),
    ]


def test_csv_layout():
    lines = batch_to_csv(_codes()).strip().split("\n")
    assert lines[0] == "QR_ID,Activation_PIN,URL"
    assert lines[1] == "ABCDEFG,123456,https://tagsphere.co.in/v/ABCDEFG"
    assert len(lines) == 3


def test_png_bytes():
    data = qr_png("https://tagsphere.co.in/v/ABCDEFG")
    assert data.startswith(b"\x89PNG")


def test_pdf_sheet():
    pdf = batch_to_pdf(_codes())
    assert pdf.startswith(b"%PDF")


def test_pdf_empty_batch():
    assert batch_to_pdf([]).startswith(b"%PDF")
