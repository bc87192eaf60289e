#!/usr/bin/env python3
"""
Lead Lifecycle Sweep Script

Applies buyer lead time-decay transitions against Supabase, the same work the
daily cron route performs. Useful for backfills and for replaying a sweep as
of a given instant.

Usage:
    python run_lifecycle_sweep.py
    python run_lifecycle_sweep.py --as-of 2025-01-01T19:30:00Z
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.time import to_ist
from services.lead_lifecycle_service import SweepResult, create_lifecycle_engine
from services.settings import load_settings


def parse_as_of(value: str) -> datetime:
    """Parse an ISO-8601 instant; naive values are rejected."""

    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid --as-of value: {e}") from e
    if dt.tzinfo is None or dt.utcoffset() is None:
        raise argparse.ArgumentTypeError("--as-of must include a timezone (e.g. 'Z' or '+05:30')")
    return dt.astimezone(timezone.utc)


def print_summary(result: SweepResult, as_of: Optional[datetime]) -> None:
    """Print sweep summary."""
    print("=" * 60)
    print("LIFECYCLE SWEEP SUMMARY")
    print("=" * 60)
    if as_of is not None:
        print(f"As of (IST):      {to_ist(as_of).isoformat()}")
    print(f"Evaluated:        {result.evaluated}")
    print(f"Transitioned:     {result.transitioned}")
    print(f"Failed:           {len(result.failed)}")
    print()

    if result.failed:
        print("First 5 failures:")
        for failure in result.failed[:5]:
            print(f"  - {failure.lead_id}: [{failure.error_type}] {failure.error}")
        if len(result.failed) > 5:
            print(f"  ... and {len(result.failed) - 5} more")
    else:
        print("No failures!")

    print("=" * 60)


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Apply buyer lead lifecycle transitions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sweep as of now
  python run_lifecycle_sweep.py

  # Replay a sweep as of a past instant
  python run_lifecycle_sweep.py --as-of 2025-01-01T19:30:00Z
        """
    )

    parser.add_argument(
        "--as-of",
        type=parse_as_of,
        default=None,
        help="Evaluation instant, ISO-8601 with timezone (default: now)"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every evaluated lead"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        engine = create_lifecycle_engine(load_settings())
        result = engine.run_sweep(args.as_of)
        print_summary(result, args.as_of)
        return 1 if result.failed else 0

    except KeyboardInterrupt:
        print("\n\nSweep interrupted by user")
        return 130

    except Exception as e:
        print(f"\nFATAL ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
