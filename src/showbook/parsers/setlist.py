from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import List, Optional

_TAG_PATTERN = re.compile(r"<[^>]+>")
_SET_MARKER = re.compile(r"\b(Set\s+(?:IV|III|II|I|[1-4])|Encore(?:\s+2)?)\s*:", re.IGNORECASE)
# Separators inside [...] or (...) annotations are not song boundaries.
_SONG_SEPARATOR = re.compile(r"\s*(->|>|,)\s*(?![^\[\(]*[\]\)])")
_ANNOTATION = re.compile(r"\[([^\]]*)\]|\(([^)]*)\)")

_TRANSITIONS = {",": ", ", ">": " > ", "->": " -> "}


@dataclass(slots=True)
class SongInfo:
    title: str
    original_text: str
    transition: Optional[str] = None
    notes: Optional[str] = None


@dataclass(slots=True)
class SetInfo:
    number: int
    name: str
    songs: List[SongInfo] = field(default_factory=list)

    def render(self) -> str:
        parts: List[str] = []
        for index, song in enumerate(self.songs):
            parts.append(song.title)
            if index < len(self.songs) - 1:
                parts.append(song.transition or ", ")
        return f"{self.name}: {''.join(parts)}"


@dataclass(slots=True)
class ParsedSetlist:
    sets: List[SetInfo] = field(default_factory=list)

    @property
    def total_songs(self) -> int:
        return sum(len(entry.songs) for entry in self.sets)

    @property
    def all_songs(self) -> List[SongInfo]:
        return [song for entry in self.sets for song in entry.songs]

    def render(self) -> str:
        return "\n".join(entry.render() for entry in self.sets)


def strip_html(text: str) -> str:
    cleaned = _TAG_PATTERN.sub(" ", text)
    cleaned = html.unescape(cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def _normalize_set_name(marker: str) -> str:
    words = marker.split()
    if words[0].lower() == "encore":
        return " ".join(["Encore", *words[1:]])
    return f"Set {words[1].upper()}"


def _parse_song(fragment: str) -> Optional[SongInfo]:
    original = fragment.strip()
    if not original:
        return None
    notes = [
        (bracketed or parenthetical).strip()
        for bracketed, parenthetical in _ANNOTATION.findall(original)
        if (bracketed or parenthetical).strip()
    ]
    title = re.sub(r"\s+", " ", _ANNOTATION.sub("", original)).strip()
    if not title:
        return None
    return SongInfo(title=title, original_text=original, notes="; ".join(notes) or None)


def _parse_songs(section: str) -> List[SongInfo]:
    songs: List[SongInfo] = []
    tokens = _SONG_SEPARATOR.split(section)
    # split() with a capture group alternates fragment, separator, fragment...
    for index in range(0, len(tokens), 2):
        song = _parse_song(tokens[index])
        if song is None:
            continue
        if index + 1 < len(tokens):
            song.transition = _TRANSITIONS[tokens[index + 1]]
        songs.append(song)
    if songs:
        songs[-1].transition = None
    return songs


def parse_setlist(text: Optional[str]) -> ParsedSetlist:
    """Parse a catalog setlist blob into sets of songs.

    Text before the first section marker becomes an unnamed ``Set 1``.
    Sections without any songs are dropped and set numbers stay contiguous.
    """
    parsed = ParsedSetlist()
    if not text or not text.strip():
        return parsed

    cleaned = strip_html(text)
    sections: List[tuple[str, str]] = []
    markers = list(_SET_MARKER.finditer(cleaned))
    leading = cleaned[: markers[0].start()] if markers else cleaned
    if leading.strip():
        sections.append(("Set 1", leading))
    for index, marker in enumerate(markers):
        end = markers[index + 1].start() if index + 1 < len(markers) else len(cleaned)
        sections.append((_normalize_set_name(marker.group(1)), cleaned[marker.end() : end]))

    for name, body in sections:
        songs = _parse_songs(body)
        if songs:
            parsed.sets.append(SetInfo(number=len(parsed.sets) + 1, name=name, songs=songs))
    return parsed
