import os

from scripts.create_admin import ensure_admin
from scripts.generate_qr_ids import generate
from tagsphere.models.models import QRCode, User


def test_generate_writes_csv_and_pdf(db, tmp_path):
    result = generate(4, "BATCH-PRINT", str(tmp_path), pdf=True, db=db)
    assert result["batch_id"] == "BATCH-PRINT"
    assert len(result["codes"]) == 4
    assert db.query(QRCode).filter(QRCode.batch_id == "BATCH-PRINT").count() == 4

    assert os.path.basename(result["csv"]) == "qr-codes-BATCH-PRINT.csv"
    with open(result["csv"], encoding="utf-8") as f:
        lines = f.read().strip().split("\n")
    assert lines[0] == "QR_ID,Activation_PIN,URL"
    assert len(lines) == 5
    with open(result["pdf"], "rb") as f:
        assert f.read(4) == b"%PDF"


def test_ensure_admin_creates_then_promotes(db, make_user):
    user, created = ensure_admin(db, "9000000001", "Ops Admin")
    assert created and user.role == "admin"

    existing = make_user()
    promoted, created = ensure_admin(db, "9876543210")
    assert not created
    assert promoted.id == existing.id
    assert db.query(User).filter(User.role == "admin").count() == 2
