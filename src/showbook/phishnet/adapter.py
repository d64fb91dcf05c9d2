"""Adapter to convert Phish.net API records to Showbook dataclass models."""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING

from ..models import ShowDetails, VenueDetails

if TYPE_CHECKING:
    from .models import ReviewRecord, ShowRecord, VenueRecord


class PhishNetAdapter:
    """Converts Phish.net API records to Showbook dataclass models."""

    def to_show(self, record: ShowRecord, *, fallback_date: dt.date | None = None) -> ShowDetails:
        """Convert a ShowRecord to ShowDetails.

        Args:
            record: API show record
            fallback_date: Date used when the record omits ``showdate``

        Returns:
            Showbook ShowDetails dataclass

        Raises:
            ValueError: If neither the record nor ``fallback_date`` carries a date
        """
        show_date = record.show_date or fallback_date
        if show_date is None:
            raise ValueError(f"Show record {record.show_id!r} has no date")
        return ShowDetails(
            show_id=record.show_id or show_date.isoformat(),
            date=show_date,
            venue_id=record.venue_id,
            venue=_clean(record.venue),
            city=_clean(record.city),
            state=_clean(record.state),
            country=_clean(record.country),
            notes=_clean(record.show_notes),
            setlist_data=record.setlist_data,
            tour=_clean(record.tour),
            rating=record.rating,
        )

    def to_venue(self, record: VenueRecord) -> VenueDetails:
        return VenueDetails(
            venue_id=record.venue_id,
            name=record.name.strip(),
            city=_clean(record.city),
            state=_clean(record.state),
            country=_clean(record.country),
            capacity=record.capacity,
        )

    def average_rating(self, reviews: list[ReviewRecord]) -> float | None:
        """Mean of the reviews that carry a rating, on the catalog's 5-point scale."""
        ratings = [review.rating for review in reviews if review.rating is not None and review.rating > 0]
        if not ratings:
            return None
        return sum(ratings) / len(ratings)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None
