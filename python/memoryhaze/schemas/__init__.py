"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from memoryhaze.schemas.gift import (
    CompleteGiftRequest,
    GiftCreatedOut,
    GiftOut,
    GiftRequestCreate,
    GiftSummaryOut,
    GiftViewOut,
    RejectGiftRequest,
    SetAccessRequest,
)

__all__ = [
    "CompleteGiftRequest",
    "GiftCreatedOut",
    "GiftOut",
    "GiftRequestCreate",
    "GiftSummaryOut",
    "GiftViewOut",
    "RejectGiftRequest",
    "SetAccessRequest",
]
