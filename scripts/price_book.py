#!/usr/bin/env python3
"""Value a CSV book of European options.

    python scripts/price_book.py book.csv                 # JSON to stdout
    python scripts/price_book.py book.csv -o marks.csv --normalized

Columns: ``id,S0,K,T,r,sigma,kind`` and an optional ``market_price``.  When
``market_price`` is present the implied volatility is reported next to the
model price.  Rows that do not validate are kept with an ``error`` field.
"""

from __future__ import annotations
import argparse
import csv
import json
import logging
import sys
from pathlib import Path

from quantcore import OptionSpec, QuantError, bs_greeks, implied_vol
from quantcore import config

logger = logging.getLogger("price_book")

_FIELDS = ("S0", "K", "T", "r", "sigma")


def value_position(row: dict, normalized: bool = False) -> dict:
    spec = OptionSpec(**{f: float(row[f]) for f in _FIELDS},
                      kind=(row.get("kind") or "call").strip().lower())
    g = bs_greeks(spec)
    out = {"id": row.get("id", "")}
    out.update(g.normalized() if normalized else g.as_dict())
    if row.get("market_price"):
        out["implied_vol"] = implied_vol(spec, float(row["market_price"]))
    return out


def value_book(rows, normalized: bool = False):
    for n, row in enumerate(rows, start=1):
        try:
            yield value_position(row, normalized)
        except (QuantError, KeyError, ValueError) as exc:
            logger.warning("row %d (id=%s) skipped: %s", n, row.get("id", "?"), exc)
            yield {"id": row.get("id", ""), "error": str(exc)}


def _write_csv(records: list[dict], stream) -> None:
    columns = list(dict.fromkeys(k for rec in records for k in rec))
    writer = csv.DictWriter(stream, fieldnames=columns)
    writer.writeheader()
    writer.writerows(records)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    ap.add_argument("book", type=Path)
    ap.add_argument("-o", "--output", type=Path, default=None,
                    help=".csv or .json; JSON on stdout when omitted")
    ap.add_argument("--normalized", action="store_true",
                    help="add vega/rho per 1%% and theta per trading day")
    args = ap.parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL.upper(), format="%(levelname)s %(message)s")

    with args.book.open(newline="") as fh:
        records = list(value_book(csv.DictReader(fh), args.normalized))

    failed = sum("error" in rec for rec in records)
    logger.info("%d positions valued, %d rejected", len(records) - failed, failed)

    if args.output is None:
        json.dump(records, sys.stdout, indent=2)
        sys.stdout.write("\n")
    elif args.output.suffix == ".csv":
        with args.output.open("w", newline="") as fh:
            _write_csv(records, fh)
    else:
        args.output.write_text(json.dumps(records, indent=2))
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
