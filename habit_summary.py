"""Print an insights report for one person and export it to JSON/CSV.

Usage:
    python habit_summary.py --db habits.db --person <id> [--range month]
        [--anchor 2024-03-06] [--output-dir habit_insights]
"""

from __future__ import annotations

import argparse
import logging
import sys

from insights import (
    RANGE_KINDS,
    build_insights_payload,
    parse_anchor,
    print_insights_report,
    save_insights_files,
)
from store import HabitStore, StoreError

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize daily habit answers.")
    parser.add_argument("--db", default="habits.db", help="Path to the SQLite database")
    parser.add_argument("--person", required=True, help="Person id to report on")
    parser.add_argument("--range", dest="range_kind", choices=RANGE_KINDS, default="week")
    parser.add_argument("--anchor", help="Anchor date (YYYY-MM-DD), defaults to today")
    parser.add_argument(
        "--output-dir",
        default="habit_insights",
        help="Directory for insights.json and question_stats.csv",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Run the report; exits with status 1 on bad input or store errors."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)

    try:
        anchor = parse_anchor(args.anchor)
    except ValueError:
        logger.error("Invalid anchor date: %s", args.anchor)
        sys.exit(1)

    store = HabitStore(args.db)
    try:
        payload = build_insights_payload(store, args.person, args.range_kind, anchor)
    except LookupError as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except StoreError as exc:
        logger.error("Could not read %s: %s", args.db, exc)
        sys.exit(1)

    print_insights_report(payload)
    save_insights_files(payload, args.output_dir)
    print(f"\nInsights have been saved to the '{args.output_dir}' directory:")
    print("1. insights.json - Full insights payload")
    print("2. question_stats.csv - One row of statistics per question")


if __name__ == "__main__":
    main()
