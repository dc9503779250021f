"""
Backfill user levels from stored xp.

Older user documents may carry no xp/level, or a level written by a client
that computed it differently. This rewrites every user so that
level == xp // 100 + 1 and xp defaults to 0.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.dependencies import get_db_client
from backend.db import DbClient
from shared.experience import level_for

logger = logging.getLogger(__name__)


def backfill(db: DbClient, *, dry_run: bool) -> int:
    updated = 0
    # UserProfile derives its level from xp when it is loaded, so saving the
    # loaded profile persists the corrected values.
    for user in db.list_users():
        logger.info("%s: xp=%d level=%d", user.uid, user.xp, level_for(user.xp))
        if not dry_run:
            db.save_user(user)
        updated += 1
    return updated


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List users and their levels without saving",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    total = backfill(get_db_client(), dry_run=args.dry_run)
    logger.info("Processed %d users", total)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
