#!/usr/bin/env python
"""Derive missing asset ids for stored gifts.

Gifts saved before asset ids were recorded carry photo and audio URLs but no
public ids, which makes their assets undeletable by id. This pass derives the
ids from the URLs and stores them.

Constraints:
- Tombstoned gifts are skipped
- --dry-run reports what would change and writes nothing
- Safe to re-run; gifts that already have ids are left alone

Usage:
    cd python && DATABASE_URL=... uv run python ../scripts/backfill_asset_ids.py [--dry-run]
"""

import os
import sys


def main():
    dry_run = "--dry-run" in sys.argv[1:]

    if not os.getenv("DATABASE_URL"):
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from memoryhaze.db.session import get_session_factory
    from memoryhaze.logging import configure_logging
    from memoryhaze.services.maintenance import backfill_asset_ids

    configure_logging(json_format=False)

    db = get_session_factory()()
    try:
        report = backfill_asset_ids(db, dry_run=dry_run)
    finally:
        db.close()

    prefix = "[dry run] " if dry_run else ""
    print(
        f"{prefix}scanned={report.scanned} repaired={report.repaired} "
        f"still_missing={report.still_missing}"
    )
    if report.still_missing:
        sys.exit(1)


if __name__ == "__main__":
    main()
