"""Build the dashboard's interchange document from the published workbook."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from prevalence.config import HEADER_ROW, dataset_path, postcodes_path, workbook_path
from prevalence.data import build_dataset, dataset_summary
from prevalence.dataset import DatasetError, write_dataset
from prevalence.normalize import HeaderShapeError


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="prevalence-precompute")
    parser.add_argument("--workbook", type=Path, default=workbook_path(), help="Prevalence workbook (.xlsx)")
    parser.add_argument("--postcodes", type=Path, default=postcodes_path(), help="Postcode -> lat/lon CSV")
    parser.add_argument("--out", type=Path, default=dataset_path(), help="Output JSON document")
    parser.add_argument("--header-row", type=int, default=HEADER_ROW, help="0-based row of the first header row")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    level = logging.WARNING if args.verbose == 0 else logging.INFO if args.verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    try:
        dataset = build_dataset(args.workbook, args.postcodes, header_row=args.header_row)
        out = write_dataset(dataset, args.out)
    except (HeaderShapeError, DatasetError, FileNotFoundError) as exc:
        print(json.dumps({"status": "error", "error": str(exc)}), file=sys.stderr)
        return 1

    summary = dataset_summary(dataset)
    print(
        json.dumps(
            {
                "status": "ok",
                "conditions": summary["conditions"],
                "practices": summary["practices"],
                "geocoded_practices": summary["geocoded_practices"],
                "output": str(out),
            }
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
