import re

from tagsphere.models.models import QRCode
from tagsphere.services import qr_ids
from tagsphere.services.qr_ids import (
    ALPHABET,
    QR_ID_PATTERN,
    create_qr_batch,
    generate_batch,
    generate_pin,
    generate_qr_id,
    sticker_url,
)


def test_qr_id_format():
    for _ in range(200):
        qr_id = generate_qr_id()
        assert len(qr_id) == 7
        assert set(qr_id) <= set(ALPHABET)
        assert re.match(QR_ID_PATTERN, qr_id)


def test_alphabet_skips_ambiguous_characters():
    for ch in "0OIl":
        assert ch not in ALPHABET


def test_pin_format():
    for _ in range(50):
        pin = generate_pin()
        assert len(pin) == 6 and pin.isdigit()


def test_batch_ids_are_unique():
    batch = generate_batch(500)
    assert len(batch) == 500
    assert len({b["qr_id"] for b in batch}) == 500


def test_sticker_url():
    assert sticker_url("ABCDEFG") == "https://tagsphere.co.in/v/ABCDEFG"


def test_create_batch_persists_codes(db):
    codes = create_qr_batch(db, 5, "BATCH-A")
    assert len(codes) == 5
    stored = db.query(QRCode).filter(QRCode.batch_id == "BATCH-A").all()
    assert len(stored) == 5
    assert all(c.status == "available" for c in stored)


def test_create_batch_default_batch_id(db):
    codes = create_qr_batch(db, 2)
    assert codes[0].batch_id.startswith("BATCH-")


def test_create_batch_skips_existing_ids(db, make_qr, monkeypatch):
    make_qr(qr_id="ABCDEFG")
    monkeypatch.setattr(
        qr_ids,
        "generate_batch",
        lambda count: [{"qr_id": "ABCDEFG", "activation_pin": "111111"}, {"qr_id": "HJKLMN2", "activation_pin": "222222"}],
    )
    codes = create_qr_batch(db, 2, "BATCH-B")
    assert [c.qr_id for c in codes] == ["HJKLMN2"]
    assert db.query(QRCode).count() == 2
