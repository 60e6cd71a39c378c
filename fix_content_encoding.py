"""
Repair double-encoded text in escape room descriptions.

Usage:
    python fix_content_encoding.py                 # fix every room
    python fix_content_encoding.py --dry-run       # only report
    python fix_content_encoding.py --batch-size 50
"""
import argparse
import logging
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from common.config import LOG_FORMAT, LOG_LEVEL
from common.content_cleaner import clean_content, has_mojibake
from common.logging_config import setup_logging
from rooms_service.database import SessionLocal
from rooms_service.models import EscapeRoom

logger = logging.getLogger("fix_content_encoding")

BATCH_SIZE = 100
FIELDS = ("description", "post_content")


def fix_room(room: EscapeRoom) -> Dict[str, str]:
    """Return the cleaned values of the fields of ``room`` that need fixing."""
    updates = {}
    for field in FIELDS:
        value = getattr(room, field)
        if value and has_mojibake(value):
            updates[field] = clean_content(value)
    return updates


def fix_rooms(db: Session, batch_size: int = BATCH_SIZE, dry_run: bool = False) -> Dict[str, int]:
    """
    Walk ``escape_rooms`` in id order and clean affected rows.

    Each batch is committed on its own; a failing batch is rolled back,
    counted as errors and the walk continues with the next one.

    Returns
    -------
    Dict[str, int]
        ``processed``, ``fixed`` and ``errors`` counts.
    """
    stats = {"processed": 0, "fixed": 0, "errors": 0}
    last_id = 0

    while True:
        rooms = (
            db.query(EscapeRoom)
            .filter(EscapeRoom.id > last_id)
            .order_by(EscapeRoom.id)
            .limit(batch_size)
            .all()
        )
        if not rooms:
            break
        last_id = rooms[-1].id

        fixed_in_batch = 0
        for room in rooms:
            stats["processed"] += 1
            updates = fix_room(room)
            if not updates:
                continue
            logger.info(
                f"{'Would fix' if dry_run else 'Fixing'} {', '.join(updates)} for {room.name}",
                extra={"room_id": room.id},
            )
            if not dry_run:
                for field, value in updates.items():
                    setattr(room, field, value)
            fixed_in_batch += 1

        if dry_run:
            stats["fixed"] += fixed_in_batch
            db.expunge_all()
            continue

        try:
            db.commit()
            stats["fixed"] += fixed_in_batch
        except SQLAlchemyError as exc:
            db.rollback()
            stats["errors"] += fixed_in_batch
            logger.error(f"Batch ending at room {last_id} failed: {exc}")
        db.expunge_all()

    return stats


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--dry-run", action="store_true", help="report rooms that need fixing without writing")
    parser.add_argument("--batch-size", type=int, default=BATCH_SIZE, help="rooms per batch")
    args = parser.parse_args(argv)

    setup_logging(LOG_LEVEL, LOG_FORMAT)

    db = SessionLocal()
    try:
        stats = fix_rooms(db, batch_size=args.batch_size, dry_run=args.dry_run)
    finally:
        db.close()

    logger.info(
        f"Processed {stats['processed']} rooms, "
        f"{'would fix' if args.dry_run else 'fixed'} {stats['fixed']}, errors {stats['errors']}"
    )
    return 1 if stats["errors"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
