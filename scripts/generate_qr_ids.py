"""
Generate a batch of QR sticker codes and write the print files.

Usage:
    python scripts/generate_qr_ids.py [COUNT] [--batch-id BATCH] [--output-dir DIR] [--pdf]

Writes qr-codes-<batch>.csv (QR_ID,Activation_PIN,URL) and, with --pdf,
an A4 sticker sheet next to it.
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv
load_dotenv()

from tagsphere.config import settings
from tagsphere.db import Base, SessionLocal, engine
from tagsphere.services.qr_ids import create_qr_batch, sticker_url
from tagsphere.services.qr_print import batch_to_csv, batch_to_pdf


DEFAULT_OUTPUT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'output'))


def generate(count: int, batch_id: str = None, output_dir: str = DEFAULT_OUTPUT_DIR, pdf: bool = False, db=None) -> dict:
    """Insert the batch and write its files. Returns the written paths and the codes."""
    own_session = db is None
    db = db or SessionLocal()
    try:
        codes = create_qr_batch(db, count, batch_id)
        if not codes:
            return {"batch_id": batch_id, "codes": [], "csv": None, "pdf": None}
        batch = codes[0].batch_id

        os.makedirs(output_dir, exist_ok=True)
        csv_path = os.path.join(output_dir, f"qr-codes-{batch}.csv")
        with open(csv_path, "w", encoding="utf-8", newline="") as f:
            f.write(batch_to_csv(codes))

        pdf_path = None
        if pdf:
            pdf_path = os.path.join(output_dir, f"qr-codes-{batch}.pdf")
            with open(pdf_path, "wb") as f:
                f.write(batch_to_pdf(codes))
        return {"batch_id": batch, "codes": codes, "csv": csv_path, "pdf": pdf_path}
    finally:
        if own_session:
            db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate QR sticker codes")
    parser.add_argument("count", nargs="?", type=int, default=100, help="Number of codes (1-1000)")
    parser.add_argument("--batch-id", default=None, help="Batch label, defaults to BATCH-<epoch ms>")
    parser.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--pdf", action="store_true", help="Also write an A4 sticker sheet")
    args = parser.parse_args(argv)

    if not 1 <= args.count <= 1000:
        parser.error("count must be between 1 and 1000")

    if settings.auto_create_db:
        Base.metadata.create_all(bind=engine)

    print(f"Generating {args.count} QR codes...")
    result = generate(args.count, args.batch_id, args.output_dir, args.pdf)
    codes = result["codes"]
    print(f"Created {len(codes)} QR codes in batch: {result['batch_id']}")
    print(f"CSV saved to: {result['csv']}")
    if result["pdf"]:
        print(f"PDF saved to: {result['pdf']}")

    print("\nSample QR codes:")
    for qr in codes[:5]:
        print(f"{qr.qr_id} | PIN: {qr.activation_pin} | {sticker_url(qr.qr_id)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
