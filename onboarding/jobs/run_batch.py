"""CLI job to onboard a file of registry candidates in one pass."""

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from onboarding.core.db import init_pool
from onboarding.jobs.session import AlreadySelected, OnboardingSession
from onboarding.models import CompanyCandidate, ValidationError

logger = logging.getLogger(__name__)


def load_candidates(path: Path) -> List[CompanyCandidate]:
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if isinstance(payload, dict):
        payload = payload.get("companies", [])
    if not isinstance(payload, list):
        raise ValidationError("input must be a list of companies or an object with a 'companies' list")
    return [CompanyCandidate.from_payload(item) for item in payload]


def run_batch_job(
    *,
    candidates: Sequence[CompanyCandidate],
    base_number: str,
    export_text: Optional[Path] = None,
    export_excel: Optional[Path] = None,
    insert: bool = False,
    keep_going: bool = False,
    session: Optional[OnboardingSession] = None,
) -> int:
    if not candidates:
        raise ValueError("No candidates to process")

    session = session or OnboardingSession()
    if not session.set_base_number(base_number):
        raise ValueError(f"base number {base_number!r} is not numeric")

    for candidate in candidates:
        try:
            company = session.add(candidate)
        except AlreadySelected:
            logger.warning("Skipping repeated candidate %s", candidate.key)
            continue
        logger.info("Queued %s town=%s bidder=%s", company.key, company.town, company.bidder_number)

    if export_text:
        export_text.write_bytes(session.export_text())
        logger.info("Wrote text export to %s", export_text)
    if export_excel:
        export_excel.write_bytes(session.export_workbook())
        logger.info("Wrote spreadsheet export to %s", export_excel)

    if not insert:
        return 0

    init_pool()
    result = session.insert(fail_fast=not keep_going)
    for outcome in result.duplicates:
        logger.error("Duplicate: %s", outcome.message)
    for outcome in result.errors:
        logger.error("Write error for %s: %s", outcome.company.key, outcome.message)
    logger.info("Completed run: inserted=%d remaining=%d", len(result.inserted), len(session.selection))
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Onboard registry companies as suppliers")
    parser.add_argument("--input", dest="input", type=Path, required=True, help="JSON file of companies")
    parser.add_argument("--base-number", dest="base_number", default="0000000000", help="First bidder number")
    parser.add_argument("--export-text", dest="export_text", type=Path, help="Write a tab-delimited export")
    parser.add_argument("--export-excel", dest="export_excel", type=Path, help="Write a spreadsheet export")
    parser.add_argument("--insert", dest="insert", action="store_true", help="Insert into the supplier store")
    parser.add_argument(
        "--keep-going",
        dest="keep_going",
        action="store_true",
        help="Continue past duplicates instead of stopping at the first",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    if not (args.export_text or args.export_excel or args.insert):
        parser.error("choose at least one of --export-text, --export-excel or --insert")

    return run_batch_job(
        candidates=load_candidates(args.input),
        base_number=args.base_number,
        export_text=args.export_text,
        export_excel=args.export_excel,
        insert=args.insert,
        keep_going=args.keep_going,
    )


if __name__ == "__main__":
    raise SystemExit(main())
