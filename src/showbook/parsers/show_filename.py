"""Rule-based identification of concert shows from media filenames.

Every rule is a (regex, extractor, base confidence) triple. All rules are
evaluated against the label; each successful extraction becomes a candidate
and the highest-confidence candidate wins, ties going to the rule declared
first. Rules deliberately overlap so that precise formats outrank generic
ones: ``Phish.2024-04-18.Las.Vegas.NV`` is matched both by the fully
qualified rule (0.9) and by the bare date fallback (0.3).
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Optional, Tuple

from ..config import ArtistConfig

LOGGER = logging.getLogger(__name__)

HIGH_CONFIDENCE = 0.7
DIRECTORY_VENUE_BOOST = 0.1
DIRECTORY_YEAR_BOOST = 0.05
MAX_RUN_NIGHTS = 13

MEDIA_EXTENSIONS = frozenset(
    {
        ".mkv",
        ".mp4",
        ".m4v",
        ".avi",
        ".mov",
        ".webm",
        ".ts",
        ".mpg",
        ".flac",
        ".mp3",
        ".wav",
        ".shn",
        ".ogg",
        ".m4a",
    }
)

# Short venue codes seen in filenames and folder names -> (venue, city, state)
VENUE_CODES: Dict[str, Tuple[str, str, str]] = {
    "dicks": ("Dick's Sporting Goods Park", "Commerce City", "CO"),
    "msg": ("Madison Square Garden", "New York", "NY"),
    "spac": ("Saratoga Performing Arts Center", "Saratoga Springs", "NY"),
    "sphere": ("Sphere", "Las Vegas", "NV"),
    "alpharetta": ("Ameris Bank Amphitheatre", "Alpharetta", "GA"),
    "charleston": ("Credit One Stadium", "Charleston", "SC"),
    "orangebeach": ("The Wharf Amphitheater", "Orange Beach", "AL"),
    "bigcypress": ("Big Cypress Seminole Reservation", "Big Cypress", "FL"),
    "npr": ("NPR Headquarters", "Washington", "DC"),
    "mondegreen": ("Mondegreen", "Dover", "DE"),
}

# Free-text landmarks of historical shows -> (venue, city, state, event type)
HISTORICAL_LANDMARKS: Dict[str, Tuple[str, str, str, str]] = {
    "big cypress": ("Big Cypress Seminole Reservation", "Big Cypress", "FL", "Millennium Show"),
}


@dataclass(frozen=True)
class Broadcast:
    """A recurring broadcast whose venue is fixed rather than parsed."""

    description: str
    keyword: str  # regex fragment matched after the date
    venue: str
    city: str
    state: str
    event_type: str
    confidence: float


BROADCASTS: Tuple[Broadcast, ...] = (
    Broadcast(
        description="NPR Tiny Desk format",
        keyword=r"npr.*?tiny[\s._-]*desk",
        venue="NPR Headquarters",
        city="Washington",
        state="DC",
        event_type="NPR Tiny Desk Concert",
        confidence=0.95,
    ),
    Broadcast(
        description="Tonight Show format",
        keyword=r"tonight[\s._-]*show",
        venue="Studio 6B",
        city="New York",
        state="NY",
        event_type="The Tonight Show Starring Jimmy Fallon",
        confidence=0.9,
    ),
)

STATE_CODES = frozenset(
    {
        "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "DC", "FL", "GA", "HI", "ID", "IL", "IN",
        "IA", "KS", "KY", "LA", "ME", "MD", "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH",
        "NJ", "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC", "SD", "TN", "TX", "UT",
        "VT", "VA", "WA", "WV", "WI", "WY", "PR",
        # Canadian provinces
        "AB", "BC", "MB", "NB", "NL", "NS", "ON", "PE", "QC", "SK",
    }
)
_STATE_GROUP = "(" + "|".join(sorted(STATE_CODES)) + ")"
_STATE_BOUNDARY = r"(?=[.\s_-]|$)"

_DAY_MARKER = re.compile(r"(?<![a-z0-9])(?:n|night|day)[\s._-]?([1-9]\d?)(?![0-9])", re.IGNORECASE)
_FOLDER_YEAR = re.compile(r"\d{4}")


@dataclass(slots=True)
class ShowIdentification:
    """Structured, confidence-scored identification of a single label."""

    original_label: str = ""
    date: Optional[dt.date] = None
    venue: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    event_type: Optional[str] = None
    day_number: Optional[int] = None
    is_special_event: bool = False
    confidence: float = 0.0
    rule: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence > HIGH_CONFIDENCE

    @property
    def clamped_confidence(self) -> float:
        """Confidence capped to 1.0 for display; additive boosts may exceed it."""
        return min(self.confidence, 1.0)

    def summary_fields(self) -> List[Tuple[str, object]]:
        return [
            ("Label", self.original_label),
            ("Rule", self.rule or "(none)"),
            ("Confidence", self.confidence),
            ("Date", self.date.isoformat() if self.date else None),
            ("Venue", self.venue),
            ("City", self.city),
            ("State", self.state),
            ("Event type", self.event_type),
            ("Day number", self.day_number),
        ]


Extractor = Callable[[re.Match[str], float, int], Optional[ShowIdentification]]


@dataclass(frozen=True)
class ParseRule:
    description: str
    regex: re.Pattern[str]
    extractor: Extractor
    base_confidence: float


def plausible_date(year: int | str, month: int | str, day: int | str, founding_year: int) -> Optional[dt.date]:
    """Return the calendar date when it exists and is not before the founding year."""
    try:
        value = dt.date(int(year), int(month), int(day))
    except (TypeError, ValueError):
        return None
    if value.year < founding_year:
        return None
    return value


def strip_media_extension(label: str) -> str:
    name = label.replace("\\", "/").rsplit("/", 1)[-1].strip()
    lowered = name.lower()
    for extension in MEDIA_EXTENSIONS:
        if lowered.endswith(extension):
            return name[: -len(extension)].strip()
    return name


def find_venue_code(text: str, *, whole_tokens: bool = False) -> Optional[Tuple[str, str, str]]:
    """Look up a known venue code in free text (substring) or token list (exact)."""
    lowered = text.lower()
    if whole_tokens:
        tokens = set(re.split(r"[^a-z0-9]+", lowered))
        for code, venue in VENUE_CODES.items():
            if code in tokens:
                return venue
        return None
    for code, venue in VENUE_CODES.items():
        if code in lowered:
            return venue
    return None


# Extractors. Each receives the match, the rule's base confidence and the
# founding year, and returns None when the extracted date is implausible.


def _extract_compact(match: re.Match[str], base: float, founding_year: int) -> Optional[ShowIdentification]:
    date = plausible_date(match.group(1), match.group(2), match.group(3), founding_year)
    if date is None:
        return None
    result = ShowIdentification(date=date, confidence=base)
    venue = find_venue_code(match.string[match.end() :], whole_tokens=True)
    if venue:
        result.venue, result.city, result.state = venue
    return result


def _extract_fully_qualified(match: re.Match[str], base: float, founding_year: int) -> Optional[ShowIdentification]:
    date = plausible_date(match.group(1), match.group(2), match.group(3), founding_year)
    if date is None:
        return None
    city = match.group(4).replace(".", " ").strip()
    return ShowIdentification(date=date, city=city, state=match.group(5).upper(), confidence=base)


def _extract_descriptive(match: re.Match[str], base: float, founding_year: int) -> Optional[ShowIdentification]:
    date = plausible_date(match.group(3), match.group(1), match.group(2), founding_year)
    if date is None:
        return None
    description = match.group(4).strip()
    result = ShowIdentification(date=date, confidence=base)
    result.metadata["description"] = description

    lowered = description.lower()
    if "secret set" in lowered:
        result.event_type = "Secret Set"
        result.is_special_event = True
        result.confidence += 0.1

    venue = find_venue_code(lowered)
    if venue:
        result.venue, result.city, result.state = venue
        result.confidence += 0.1
    return result


def _extract_secret_set(match: re.Match[str], base: float, founding_year: int) -> Optional[ShowIdentification]:
    date = plausible_date(match.group(1), match.group(2), match.group(3), founding_year)
    if date is None:
        return None
    return ShowIdentification(
        date=date,
        city=match.group(4).replace("_", " ").strip(),
        state=match.group(5).upper(),
        event_type="Secret Set",
        is_special_event=True,
        confidence=base,
    )


def _extract_historical(match: re.Match[str], base: float, founding_year: int) -> Optional[ShowIdentification]:
    date = plausible_date(match.group(1), match.group(2), match.group(3), founding_year)
    if date is None:
        return None
    description = re.sub(r"[._]+", " ", match.group(4)).strip()
    result = ShowIdentification(date=date, confidence=base)
    result.metadata["description"] = description

    lowered = description.lower()
    for landmark, (venue, city, state, event_type) in HISTORICAL_LANDMARKS.items():
        if landmark in lowered:
            result.venue = venue
            result.city = city
            result.state = state
            result.event_type = event_type
            result.is_special_event = True
            result.confidence = 0.95
            break
    return result


def _broadcast_extractor(broadcast: Broadcast) -> Extractor:
    def _extract(match: re.Match[str], base: float, founding_year: int) -> Optional[ShowIdentification]:
        date = plausible_date(match.group(1), match.group(2), match.group(3), founding_year)
        if date is None:
            return None
        return ShowIdentification(
            date=date,
            venue=broadcast.venue,
            city=broadcast.city,
            state=broadcast.state,
            event_type=broadcast.event_type,
            is_special_event=True,
            confidence=base,
        )

    return _extract


def _extract_special_keyword(match: re.Match[str], base: float, founding_year: int) -> Optional[ShowIdentification]:
    kind = match.group(1).lower()
    return ShowIdentification(event_type=f"{kind.capitalize()} Set", is_special_event=True, confidence=base)


def _extract_bare_date(match: re.Match[str], base: float, founding_year: int) -> Optional[ShowIdentification]:
    date = plausible_date(match.group(1), match.group(2), match.group(3), founding_year)
    if date is None:
        return None
    return ShowIdentification(date=date, confidence=base)


def build_rules(artist: ArtistConfig) -> List[ParseRule]:
    """Compile the ordered rule table for an artist."""
    name = re.escape(artist.name.lower())
    name_compact = re.escape(artist.name.lower().replace(" ", ""))
    name_dotted = re.escape(artist.name.lower()).replace(r"\ ", r"[.\s]")
    prefix = re.escape(artist.filename_prefix.lower())
    flags = re.IGNORECASE

    rules = [
        ParseRule(
            "Compact prefixed date",
            re.compile(rf"^(?:{name_compact}|{prefix})[-_]?(\d{{4}})-(\d{{2}})-(\d{{2}})", flags),
            _extract_compact,
            0.8,
        ),
        ParseRule(
            "Fully qualified date, city and state",
            re.compile(
                rf"^{name_dotted}\.(\d{{4}})-(\d{{2}})-(\d{{2}})\.((?:[a-z'-]+\.)*?[a-z'-]+)\.{_STATE_GROUP}{_STATE_BOUNDARY}",
                flags,
            ),
            _extract_fully_qualified,
            0.9,
        ),
        ParseRule(
            "Descriptive date with event description",
            re.compile(rf"{name}\s*-\s*(\d{{1,2}})-(\d{{1,2}})-(\d{{4}})\s*-\s*(.+)", flags),
            _extract_descriptive,
            0.7,
        ),
        ParseRule(
            "Secret set marker",
            re.compile(
                rf"^{prefix}(\d{{4}})-(\d{{2}})-(\d{{2}})\.secret\.set-([^.]+)\.{_STATE_GROUP}{_STATE_BOUNDARY}",
                flags,
            ),
            _extract_secret_set,
            0.9,
        ),
        ParseRule(
            "Historical free-text date",
            re.compile(rf"^{name_dotted}[\s.]+(\d{{4}})\.(\d{{2}})\.(\d{{2}})[\s.]+(.+)", flags),
            _extract_historical,
            0.8,
        ),
    ]

    for broadcast in BROADCASTS:
        rules.append(
            ParseRule(
                broadcast.description,
                re.compile(rf"{name_compact}[\s._-]+(\d{{4}})-(\d{{2}})-(\d{{2}}).*?{broadcast.keyword}", flags),
                _broadcast_extractor(broadcast),
                broadcast.confidence,
            )
        )

    rules.extend(
        [
            ParseRule(
                "Special set without date",
                re.compile(r"(ambient|secret)[\s._-]+set", flags),
                _extract_special_keyword,
                0.6,
            ),
            ParseRule(
                "Bare date fallback",
                re.compile(r"(\d{4})-(\d{2})-(\d{2})"),
                _extract_bare_date,
                0.3,
            ),
        ]
    )
    return rules


class ShowFilenameParser:
    """Parses show filenames into :class:`ShowIdentification` candidates."""

    def __init__(self, artist: ArtistConfig | None = None) -> None:
        self.artist = artist or ArtistConfig()
        self.rules = build_rules(self.artist)

    def candidates(self, label: str) -> List[Tuple[ParseRule, ShowIdentification]]:
        """Evaluate every rule and return all successful extractions in rule order."""
        results: List[Tuple[ParseRule, ShowIdentification]] = []
        for rule in self.rules:
            match = rule.regex.search(label)
            if not match:
                continue
            try:
                candidate = rule.extractor(match, rule.base_confidence, self.artist.founding_year)
            except Exception as exc:  # noqa: BLE001 - a faulty rule must not abort parsing
                LOGGER.warning("Error parsing '%s' with rule '%s': %s", label, rule.description, exc)
                continue
            if candidate is None:
                LOGGER.debug("Rule '%s' matched '%s' but rejected the extracted date", rule.description, label)
                continue
            candidate.rule = rule.description
            LOGGER.debug("Rule '%s' matched with confidence %.2f", rule.description, candidate.confidence)
            results.append((rule, candidate))
        return results

    def parse(self, label: Optional[str], context_path: Optional[str] = None) -> ShowIdentification:
        if label is None or not str(label).strip():
            return ShowIdentification(original_label=label or "")

        clean_label = strip_media_extension(str(label))
        LOGGER.debug("Parsing filename: %s", clean_label)

        candidates = self.candidates(clean_label)
        if not candidates:
            LOGGER.info("No patterns matched for filename: %s", clean_label)
            return ShowIdentification(original_label=label)

        # max() keeps the first of equal scores, so declaration order breaks ties
        _, best = max(candidates, key=lambda item: item[1].confidence)
        best.original_label = label
        best.day_number = self._extract_day_number(clean_label)
        self._apply_directory_context(best, context_path)

        LOGGER.debug(
            "Best parse result for '%s': %s at %s (confidence: %.2f)",
            clean_label,
            best.date.isoformat() if best.date else None,
            best.venue,
            best.confidence,
        )
        return best

    @staticmethod
    def _extract_day_number(label: str) -> Optional[int]:
        match = _DAY_MARKER.search(label)
        if not match:
            return None
        value = int(match.group(1))
        return value if value <= MAX_RUN_NIGHTS else None

    @staticmethod
    def _apply_directory_context(result: ShowIdentification, context_path: Optional[str]) -> None:
        if not context_path or not context_path.strip():
            return
        directory_name = PurePosixPath(context_path.replace("\\", "/").rstrip("/")).name.lower()
        if not directory_name:
            return

        if not result.venue:
            venue = find_venue_code(directory_name)
            if venue:
                venue_name, city, state = venue
                result.venue = venue_name
                result.city = result.city or city
                result.state = result.state or state
                result.confidence += DIRECTORY_VENUE_BOOST

        if _FOLDER_YEAR.search(directory_name):
            result.confidence += DIRECTORY_YEAR_BOOST
