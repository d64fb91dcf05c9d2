from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(slots=True)
class ShowDetails:
    """Authoritative show record resolved from the catalog."""

    show_id: str
    date: dt.date
    venue_id: Optional[str]
    venue: Optional[str]
    city: Optional[str]
    state: Optional[str]
    country: Optional[str]
    notes: Optional[str] = None
    setlist_data: Optional[str] = None
    tour: Optional[str] = None
    rating: Optional[float] = None

    @property
    def full_location(self) -> str:
        parts = [part for part in (self.city, self.state) if part]
        if self.country and self.country != "USA":
            parts.append(self.country)
        return ", ".join(parts)


@dataclass(slots=True)
class VenueDetails:
    venue_id: str
    name: str
    city: Optional[str]
    state: Optional[str]
    country: Optional[str]
    capacity: Optional[int] = None


@dataclass(slots=True)
class LibraryItem:
    """An item in the host media library.

    ``item_id`` stays empty until the host store persists the item.
    """

    item_id: Optional[str]
    name: str
    path: Optional[str] = None
    premiere_date: Optional[dt.date] = None
    overview: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    provider_ids: Dict[str, str] = field(default_factory=dict)

    @property
    def has_identity(self) -> bool:
        return bool(self.item_id and str(self.item_id).strip())


@dataclass(slots=True)
class Collection:
    collection_id: str
    name: str
    overview: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    created_at: Optional[dt.datetime] = None
