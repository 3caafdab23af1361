"""CLI for the quality gate: ``fitcheck check FILE...``."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from fitcheck.adapters.image_source import file_to_data_url
from fitcheck.core.config import QualityThresholds
from fitcheck.core.image_quality import analyze
from fitcheck.domain.models import QualityVerdict

logger = logging.getLogger("fitcheck.app.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fitcheck",
        description="Check whether photos are usable for virtual try-on",
    )
    sub = parser.add_subparsers(dest="command")

    check_p = sub.add_parser("check", help="Run the quality check on image files")
    check_p.add_argument("paths", nargs="+", help="Image files to check")
    check_p.add_argument("--json", action="store_true", help="Print verdicts as JSON")
    check_p.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    return parser


def _check_file(path: str, thresholds: QualityThresholds) -> QualityVerdict:
    try:
        data_url = file_to_data_url(path)
    except OSError as e:
        logger.error(f"Could not read {path}: {e}")
        return QualityVerdict.accept()
    return analyze(data_url, thresholds)


def run_check(paths: List[str], as_json: bool = False) -> int:
    thresholds = QualityThresholds.from_env()
    results = [(path, _check_file(path, thresholds)) for path in paths]

    if as_json:
        payload = [
            {"path": path, **verdict.model_dump(mode="json")}
            for path, verdict in results
        ]
        print(json.dumps(payload, indent=2))
    else:
        for path, verdict in results:
            status = "OK" if verdict.is_acceptable else ", ".join(i.value for i in verdict.issues)
            print(f"{path}: {status}")

    return 0 if all(v.is_acceptable for _, v in results) else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "check":
        return run_check(args.paths, as_json=args.json)

    return 2


if __name__ == "__main__":
    sys.exit(main())
