#!/usr/bin/env python3
"""Sample roster generator for manual and performance testing.

Writes a first-sheet roster in the layout the importer expects:
- Row 1: NAME / INDEX NO / PHONE NO / EMAIL / PICTURE
- Row 2+: one student per row, optionally with a passport-style picture
  anchored in the PICTURE cell of its row

A share of rows can be made deliberately dirty (bad index numbers,
enumerated or missing emails) to exercise the row rules.
"""
from __future__ import annotations

import argparse
import io
import sys
from pathlib import Path

import numpy as np
from openpyxl import Workbook
from openpyxl.drawing.image import Image as XLImage
from PIL import Image

HEADER = ["NAME", "INDEX NO", "PHONE NO", "EMAIL", "PICTURE"]
FIRST_NAMES = ["Ama", "Kofi", "Esi", "Yaw", "Akosua", "Kwame", "Abena", "Kojo", "Efua", "Kwesi"]
LAST_NAMES = ["Mensah", "Owusu", "Asante", "Boateng", "Osei", "Addo", "Quaye", "Tetteh"]


def _picture(rng: np.random.Generator, size: int) -> bytes:
    color = tuple(int(c) for c in rng.integers(0, 256, 3))
    buf = io.BytesIO()
    Image.new("RGB", (size, size), color).save(buf, format="PNG")
    return buf.getvalue()


def generate_rows(rows: int, dirty_ratio: float, seed: int = 42) -> list[list[object]]:
    """Build roster rows; roughly ``dirty_ratio`` of them break one rule."""
    rng = np.random.default_rng(seed)
    year = 22
    out: list[list[object]] = []
    for n in range(1, rows + 1):
        first = FIRST_NAMES[int(rng.integers(len(FIRST_NAMES)))]
        last = LAST_NAMES[int(rng.integers(len(LAST_NAMES)))]
        index_no = f"PS/LAB/{year}/{n:04d}"
        email = f"{first}.{last}{n}@st.uni.edu.gh".lower()
        phone = f"02{int(rng.integers(0, 10**8)):08d}"
        if rng.random() < dirty_ratio:
            kind = int(rng.integers(4))
            if kind == 0:
                index_no = f"PS/LAB/{year}/{n}"
            elif kind == 1:
                email = f"{n}. {email}"
            elif kind == 2:
                email = "N/A"
            else:
                index_no = ""
        out.append([f"{first} {last}", index_no, phone, email])
    return out


def create_roster_file(output_path: Path, rows: int, pictures: bool, dirty_ratio: float, seed: int = 42) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = "Students"
    ws.append(HEADER)
    for row in generate_rows(rows, dirty_ratio, seed):
        ws.append(row)
    if pictures:
        rng = np.random.default_rng(seed + 1)
        for n in range(rows):
            ws.add_image(XLImage(io.BytesIO(_picture(rng, 32))), f"E{n + 2}")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    print(f"Created roster: {output_path}")
    print(f"  Rows: {rows} (+ 1 header row)")
    print(f"  Pictures: {rows if pictures else 0}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a sample student roster workbook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/roster.xlsx --rows 200
  %(prog)s data/dirty.xlsx --rows 500 --dirty-ratio 0.1 --no-pictures
        """,
    )
    parser.add_argument("output", type=Path, help="Output .xlsx path")
    parser.add_argument("--rows", type=int, default=100, help="Number of students (default: 100)")
    parser.add_argument("--no-pictures", action="store_true", help="Do not embed pictures")
    parser.add_argument("--dirty-ratio", type=float, default=0.0, help="Share of rows with a data problem (0..1)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not 0.0 <= args.dirty_ratio <= 1.0:
        print("Error: --dirty-ratio must be between 0 and 1", file=sys.stderr)
        return 1
    if args.rows > 9999:
        print("Error: index numbers only go up to 9999 per year", file=sys.stderr)
        return 1

    create_roster_file(args.output, args.rows, not args.no_pictures, args.dirty_ratio, args.seed)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
