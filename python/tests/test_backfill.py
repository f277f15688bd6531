"""Tests for the asset id backfill maintenance pass."""

from sqlalchemy.orm import Session

from memoryhaze.db.models import Gift, User
from memoryhaze.services.gift_lifecycle import permanent_delete
from memoryhaze.services.maintenance import backfill_asset_ids
from tests.factories import (
    create_completed_gift,
    create_test_gift,
    gift_folder,
    photo_url,
    set_gift_columns,
)


def _reload(session: Session, gift: Gift) -> Gift:
    return session.get(Gift, gift.id, populate_existing=True)


class TestBackfillAssetIds:
    def test_derives_missing_ids(self, db_session: Session, owner: User):
        gift = create_completed_gift(db_session, owner)
        folder = gift_folder(owner)
        set_gift_columns(db_session, gift, photo_public_ids=[], audio_public_id=None)

        report = backfill_asset_ids(db_session)

        assert report.scanned == 1
        assert report.repaired == 1
        assert report.still_missing == 0
        gift = _reload(db_session, gift)
        assert gift.photo_public_ids == [f"{folder}/photo_1", f"{folder}/photo_2"]
        assert gift.audio_public_id == f"{folder}/song"

    def test_gifts_with_ids_are_not_scanned(self, db_session: Session, owner: User):
        create_completed_gift(db_session, owner)

        report = backfill_asset_ids(db_session)

        assert report.scanned == 0
        assert report.repaired == 0

    def test_underivable_photos_stay_missing(self, db_session: Session, owner: User):
        gift = create_test_gift(db_session, owner)
        set_gift_columns(
            db_session,
            gift,
            photos=["https://cdn.example.com/legacy/photo.jpg"],
            photo_public_ids=[],
        )

        report = backfill_asset_ids(db_session)

        assert report.scanned == 1
        assert report.repaired == 0
        assert report.still_missing == 1
        assert _reload(db_session, gift).photo_public_ids == []

    def test_partially_derivable_photos_count_as_repaired(
        self, db_session: Session, owner: User
    ):
        gift = create_test_gift(db_session, owner)
        folder = gift_folder(owner)
        set_gift_columns(
            db_session,
            gift,
            photos=[
                "https://cdn.example.com/legacy/photo.jpg",
                photo_url(f"{folder}/photo_2"),
            ],
            photo_public_ids=[],
        )

        report = backfill_asset_ids(db_session)

        assert report.repaired == 1
        assert _reload(db_session, gift).photo_public_ids == [f"{folder}/photo_2"]

    def test_dry_run_writes_nothing(self, db_session: Session, owner: User):
        gift = create_completed_gift(db_session, owner)
        set_gift_columns(db_session, gift, photo_public_ids=[], audio_public_id=None)

        report = backfill_asset_ids(db_session, dry_run=True)

        assert report.scanned == 1
        assert report.repaired == 1
        gift = _reload(db_session, gift)
        assert gift.photo_public_ids == []
        assert gift.audio_public_id is None

    def test_tombstoned_gifts_are_skipped(
        self, db_session: Session, owner: User, fake_asset_store
    ):
        gift = create_test_gift(db_session, owner)
        permanent_delete(db_session, gift.id, fake_asset_store)
        set_gift_columns(
            db_session,
            gift,
            photos=[photo_url(f"{gift_folder(owner)}/photo_1")],
            photo_public_ids=[],
        )

        report = backfill_asset_ids(db_session)

        assert report.scanned == 0
