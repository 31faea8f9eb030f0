#!/usr/bin/env python3
"""Synthetic lot inventory generator (demo data / performance checks).

Produces a CSV or XLSX upload in the layout the importer expects from sales
exports:
- Row 1: title row (skipped by the header locator)
- Row 2: header row (Lot No, Phase, Lot Area, Status, Category, RSV Date)
- Row 3+: one lot per row
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

HEADER = ["Lot No", "Phase", "Lot Area", "Status", "Category", "RSV Date"]
PHASE_CODES = ["1", "1-K", "2", "2-C", "2-CK", "3", "3-P", "3-PK"]
STATUSES = ["Open", "Reserved", "Sold", "available"]
CATEGORIES = ["", "Regular", "Prime", "Commercial", "RC", "PC", "CC"]


def generate_lots(rows: int, seed: int = 42) -> pd.DataFrame:
    """Random lots with unique (lot number, phase) keys.

    Category cells are blank for roughly half of the rows so that the
    phase-code inference path is exercised too.
    """
    rng = np.random.default_rng(seed)
    phases = rng.choice(PHASE_CODES, rows)
    statuses = rng.choice(STATUSES, rows)
    categories = rng.choice(CATEGORIES, rows, p=[0.5] + [0.5 / 6] * 6)
    sizes = np.round(rng.uniform(80, 400, rows), 1)
    dates = pd.date_range("2024-01-01", "2024-12-31", periods=100)
    rsv = rng.choice(dates, rows)
    return pd.DataFrame({
        "Lot No": [f"{i + 1}" for i in range(rows)],
        "Phase": phases,
        "Lot Area": sizes,
        "Status": statuses,
        "Category": categories,
        # 予約済みのみ日付を持つ
        "RSV Date": [
            pd.Timestamp(d).date().isoformat() if s == "Reserved" else ""
            for d, s in zip(rsv, statuses, strict=True)
        ],
    })


def write_inventory(output: Path, rows: int, title: str = "Lot Inventory", seed: int = 42) -> Path:
    """Write the title row, header row and ``rows`` lots to ``output`` (.csv or .xlsx)."""
    df = generate_lots(rows, seed)
    sheet = pd.DataFrame([[title] + [""] * (len(HEADER) - 1), HEADER] + df.values.tolist())
    output.parent.mkdir(parents=True, exist_ok=True)
    if output.suffix.lower() == ".xlsx":
        sheet.to_excel(output, header=False, index=False, engine="openpyxl")
    else:
        sheet.to_csv(output, header=False, index=False)
    return output


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a synthetic lot inventory upload")
    parser.add_argument("output", type=Path, help="Output file (.csv or .xlsx)")
    parser.add_argument("--rows", type=int, default=5_000, help="Number of lots (default: 5,000)")
    parser.add_argument("--title", default="Lot Inventory", help="Title row text")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    path = write_inventory(args.output, args.rows, args.title, args.seed)
    print(f"Created inventory file: {path} ({args.rows:,} lots)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
