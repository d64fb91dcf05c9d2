from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from .collection_events import RunHints
from .config import ArtistConfig
from .parsers.setlist import strip_html
from .utils import format_short_date

if TYPE_CHECKING:
    from .models import LibraryItem, ShowDetails, VenueDetails
    from .parsers.setlist import ParsedSetlist
    from .parsers.show_filename import ShowIdentification
    from .run_detection import RunInfo

LOGGER = logging.getLogger(__name__)

GENRES = ("Concert", "Live Music")
PROVIDER_SHOW = "PhishNet"
PROVIDER_VENUE = "PhishNetVenue"


@dataclass(slots=True)
class ShowMetadata:
    """Presentation metadata for one library item."""

    name: str
    overview: str
    premiere_date: Optional[dt.date] = None
    production_year: Optional[int] = None
    genres: List[str] = field(default_factory=lambda: list(GENRES))
    tags: List[str] = field(default_factory=list)
    community_rating: Optional[float] = None
    provider_ids: Dict[str, str] = field(default_factory=dict)
    has_metadata: bool = True
    confidence: float = 0.0

    def apply_to(self, item: LibraryItem) -> LibraryItem:
        """Copy the metadata onto a library item, keeping provider ids it already has."""
        item.name = self.name
        item.overview = self.overview
        item.premiere_date = self.premiere_date
        item.genres = list(self.genres)
        item.tags = list(self.tags)
        item.provider_ids.update(self.provider_ids)
        return item


def _unique(values: Iterable[Optional[str]]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def _long_date(value: dt.date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def _special_suffix(identification: ShowIdentification) -> str:
    if identification.is_special_event and identification.event_type:
        return f" ({identification.event_type})"
    return ""


def build_basic_metadata(
    identification: ShowIdentification,
    artist: ArtistConfig,
    label: Optional[str] = None,
) -> ShowMetadata:
    """Metadata derived from the filename alone, used whenever the catalog is unavailable."""
    label = label or identification.original_label
    date = identification.date

    if date is not None:
        name = " ".join(_unique([artist.name, identification.city, format_short_date(date)]))
        if identification.venue:
            location = f" at {identification.venue}"
        elif identification.city:
            location = f" in {identification.city}"
            if identification.state:
                location += f", {identification.state}"
        else:
            location = ""
        overview = f"{artist.name} concert performed on {_long_date(date)}{location}"
    else:
        name = f"{artist.name} - {label}"
        overview = f"{artist.name} concert video: {label}"
    name += _special_suffix(identification)

    tags = [artist.name, *GENRES]
    if identification.is_special_event:
        tags.append("Special Event")
    tags.append(identification.event_type)

    return ShowMetadata(
        name=name,
        overview=overview,
        premiere_date=date,
        production_year=date.year if date else None,
        tags=_unique(tags),
        confidence=identification.confidence,
    )


def build_catalog_metadata(
    identification: ShowIdentification,
    show: ShowDetails,
    artist: ArtistConfig,
    *,
    setlist: Optional[ParsedSetlist] = None,
    venue: Optional[VenueDetails] = None,
    run: Optional[RunInfo] = None,
    average_rating: Optional[float] = None,
) -> ShowMetadata:
    """Metadata built from the authoritative catalog record and its enrichments."""
    city = (venue.city if venue and venue.city else None) or show.city
    title_parts = []
    if run is not None and run.is_part_of_run:
        title_parts.append(run.night_indicator)
    title_parts.extend([artist.name, city, format_short_date(show.date)])
    name = " ".join(part for part in title_parts if part) + _special_suffix(identification)

    overview_lines: List[str] = []
    if setlist is not None and setlist.sets:
        overview_lines.append(f"Setlist ({setlist.total_songs} songs):")
        overview_lines.extend(entry.render() for entry in setlist.sets)
        overview_lines.append("")

    venue_name = venue.name if venue and venue.name else show.venue
    location_parts = _unique([venue_name, show.city, show.state])
    details = f"{artist.name} concert performed on {_long_date(show.date)}"
    if location_parts:
        details += f" at {', '.join(location_parts)}"
    overview_lines.append(details)

    if venue is not None and venue.city and venue.city != show.city:
        overview_lines.append(f"Location: {', '.join(_unique([venue.city, venue.state]))}")
    if show.tour:
        overview_lines.append(f"Tour: {show.tour}")
    if show.notes:
        notes = strip_html(show.notes)
        if notes:
            overview_lines.extend(["", notes])

    community_rating = None
    if average_rating is not None:
        # catalog ratings are out of 5, library ratings out of 10
        community_rating = average_rating * 2.0
        LOGGER.debug("Community rating for %s: %.1f/10", show.date.isoformat(), community_rating)

    tags = [artist.name, *GENRES, "Jam Band", show.city, show.state]
    if identification.is_special_event:
        tags.extend(["Special Event", identification.event_type])
    tags.append(venue_name)

    provider_ids = {PROVIDER_SHOW: show.date.isoformat()}
    venue_id = venue.venue_id if venue is not None else show.venue_id
    if venue_id:
        provider_ids[PROVIDER_VENUE] = str(venue_id)
    if run is not None and run.is_part_of_run and city:
        hints = RunHints(
            city=city,
            year=show.date.year,
            day_number=run.position,
            show_date=show.date,
            total_nights=run.total_nights,
            run_dates=list(run.dates),
        )
        provider_ids.update(hints.to_provider_ids())

    return ShowMetadata(
        name=name,
        overview="\n".join(overview_lines),
        premiere_date=show.date,
        production_year=show.date.year,
        tags=_unique(tags),
        community_rating=community_rating,
        provider_ids=provider_ids,
        confidence=identification.confidence,
    )


def build_placeholder_metadata(
    identification: ShowIdentification,
    artist: ArtistConfig,
    label: Optional[str] = None,
    threshold: float = 0.3,
) -> ShowMetadata:
    """Explain why a label could not be identified and how to rename it."""
    label = (label or identification.original_label or "").strip() or "(unnamed item)"
    example_date = "2024-08-30"
    overview = "\n".join(
        [
            f"Showbook could not identify this {artist.name} show from the name '{label}' "
            f"(confidence {identification.clamped_confidence:.2f}, needs {threshold:.2f}).",
            "",
            "Rename the file so it contains the show date, for example:",
            f"  {artist.filename_prefix}{example_date}.mkv",
            f"  {artist.name.replace(' ', '.')}.{example_date}.Commerce.City.CO.mkv",
            f"  {artist.name} - 8-30-2024 - Dick's.mkv",
            "Then refresh this item's metadata.",
        ]
    )
    return ShowMetadata(
        name=f"{artist.name} - {label}",
        overview=overview,
        genres=[],
        tags=[artist.name, "Needs Rename"],
        has_metadata=False,
        confidence=identification.confidence,
    )
