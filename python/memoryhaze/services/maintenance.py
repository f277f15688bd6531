"""Operator maintenance passes over stored gifts."""

from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from memoryhaze.db.models import Gift
from memoryhaze.logging import get_logger
from memoryhaze.services.gift_fields import normalized_changes

logger = get_logger(__name__)


@dataclass
class BackfillReport:
    scanned: int = 0
    repaired: int = 0
    still_missing: int = 0


def _missing_asset_ids(gift: Gift) -> bool:
    missing_photos = bool(gift.photos) and not gift.photo_public_ids
    missing_audio = bool(gift.audio) and not gift.audio_public_id
    return missing_photos or missing_audio


def backfill_asset_ids(db: Session, dry_run: bool = False) -> BackfillReport:
    """Derive and store asset ids for gifts that were saved without them.

    Gifts whose URLs don't carry an asset id (no upload marker) stay missing
    and are counted in ``still_missing``; they can only be cleaned up through
    the folder-prefix delete.
    """
    report = BackfillReport()
    gifts = db.scalars(select(Gift).where(Gift.permanently_deleted.is_(False))).all()

    for gift in gifts:
        if not _missing_asset_ids(gift):
            continue
        report.scanned += 1

        values = normalized_changes(gift, {})
        asset_values = {
            k: v for k, v in values.items() if k in ("photo_public_ids", "audio_public_id")
        }
        if asset_values and not dry_run:
            db.execute(
                update(Gift)
                .where(Gift.id == gift.id)
                .values(**asset_values)
                .execution_options(synchronize_session=False)
            )

        photos_ok = not gift.photos or bool(
            asset_values.get("photo_public_ids", gift.photo_public_ids)
        )
        audio_ok = not gift.audio or bool(
            asset_values.get("audio_public_id", gift.audio_public_id)
        )
        if photos_ok and audio_ok:
            report.repaired += 1
        else:
            report.still_missing += 1
            logger.warning("asset_ids_underivable", gift_id=str(gift.id))

    if dry_run:
        db.rollback()
    else:
        db.commit()

    logger.info(
        "asset_id_backfill_finished",
        scanned=report.scanned,
        repaired=report.repaired,
        still_missing=report.still_missing,
        dry_run=dry_run,
    )
    return report
