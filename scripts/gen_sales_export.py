#!/usr/bin/env python3
"""Generate a synthetic ERP sales export for performance testing.

The file looks like what the ERP writes: semicolon separated, Brazilian
number and date formats, one invoice line per row. A configurable share of
invoice numbers is repeated so the duplicate check has work to do.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

CITIES = ["Curitiba", "Londrina", "Maringá", "Cascavel", "Joinville", "Blumenau"]
BRANDS = ["Alfa", "Beta", "Gama", "Delta"]


def _brl(values: np.ndarray) -> list[str]:
    """1234.5 -> 'R$ 1.234,50'"""
    return [
        "R$ " + f"{v:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
        for v in values
    ]


def generate_sales_export(rows: int, repeat_ratio: float = 0.1, seed: int = 42) -> pd.DataFrame:
    """Build a sales export with ``rows`` lines.

    Args:
        rows: Number of data rows
        repeat_ratio: Share of rows reusing an earlier invoice number
        seed: Random seed for reproducible data
    """
    rng = np.random.default_rng(seed)

    invoices = np.arange(100_000, 100_000 + rows)
    repeats = rng.random(rows) < repeat_ratio
    repeats[0] = False
    invoices[repeats] = rng.choice(invoices[~repeats], repeats.sum())

    dates = pd.Timestamp("2023-01-01") + pd.to_timedelta(rng.integers(0, 730, rows), unit="D")
    quantity = rng.integers(1, 50, rows)
    unit_price = np.round(rng.uniform(5, 2500, rows), 2)

    return pd.DataFrame({
        "Número da Nota Fiscal": invoices.astype(str),
        "Data de Emissao da NF": dates.strftime("%d/%m/%Y"),
        "Quantidade": quantity.astype(str),
        "Preço Unitário": _brl(unit_price),
        "total": _brl(quantity * unit_price),
        "NomeCli": [f"Cliente {i % 500:03d}" for i in range(rows)],
        "CIDADE": rng.choice(CITIES, rows),
        "MARCA": rng.choice(BRANDS, rows),
    })


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic ERP sales export (semicolon CSV)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/vendas.csv
  %(prog)s data/vendas_grande.csv --rows 200000 --repeat-ratio 0.05
        """,
    )
    parser.add_argument("output", type=Path, help="Output CSV path")
    parser.add_argument("--rows", type=int, default=50_000, help="Data rows (default: 50,000)")
    parser.add_argument(
        "--repeat-ratio", type=float, default=0.1, help="Share of repeated invoice numbers (default: 0.1)"
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not 0 <= args.repeat_ratio < 1:
        print("Error: --repeat-ratio must be in [0, 1)", file=sys.stderr)
        return 1

    frame = generate_sales_export(args.rows, args.repeat_ratio, args.seed)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(args.output, sep=";", index=False, encoding="utf-8")
    print(f"Created sales export: {args.output}")
    print(f"  Rows: {args.rows:,}")
    print(f"  Repeated invoices: {int((frame['Número da Nota Fiscal'].duplicated()).sum()):,}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
