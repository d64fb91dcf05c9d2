from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .utils import env_bool, env_str, load_yaml_file, validate_url

DEFAULT_API_BASE_URL = "https://api.phish.net/v5/"


@dataclass(frozen=True)
class ArtistConfig:
    """The tracked artist every component identifies shows for."""

    name: str = "Phish"
    slug: str = "phish"
    filename_prefix: str = "ph"
    founding_year: int = 1983


@dataclass
class PhishNetSettings:
    api_key: str | None = None
    base_url: str = DEFAULT_API_BASE_URL
    timeout: float = 30.0
    min_interval: float = 1.0  # Seconds between requests (1 request/second)


@dataclass
class ParserSettings:
    confidence_threshold: float = 0.3


@dataclass
class MetadataSettings:
    include_reviews: bool = True
    max_reviews: int = 50
    run_window_days: int = 7


@dataclass
class LibrarySettings:
    backend: str = "sqlite"  # sqlite
    path: Path = field(default_factory=lambda: Path("/data/showbook/library.db"))


@dataclass
class CollectionSettings:
    enabled: bool = True
    max_workers: int = 2


@dataclass
class Settings:
    artist: ArtistConfig = field(default_factory=ArtistConfig)
    phishnet: PhishNetSettings = field(default_factory=PhishNetSettings)
    parser: ParserSettings = field(default_factory=ParserSettings)
    metadata: MetadataSettings = field(default_factory=MetadataSettings)
    library: LibrarySettings = field(default_factory=LibrarySettings)
    collections: CollectionSettings = field(default_factory=CollectionSettings)


@dataclass
class AppConfig:
    settings: Settings


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _ensure_mapping(value: Any, *, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"'{field_name}' must be provided as a mapping when specified")
    return value


def _build_artist_config(data: dict[str, Any]) -> ArtistConfig:
    data = _ensure_mapping(data, field_name="artist")
    if not data:
        return ArtistConfig()

    defaults = ArtistConfig()
    name = _clean_str(data.get("name")) or defaults.name
    slug = _clean_str(data.get("slug")) or name.lower().replace(" ", "-")
    prefix = _clean_str(data.get("filename_prefix")) or defaults.filename_prefix

    try:
        founding_year = int(data.get("founding_year", defaults.founding_year))
    except (TypeError, ValueError) as exc:
        raise ValueError("'artist.founding_year' must be an integer") from exc
    if founding_year < 1800 or founding_year > dt.date.today().year:
        raise ValueError(f"'artist.founding_year' is out of range: {founding_year}")

    return ArtistConfig(name=name, slug=slug, filename_prefix=prefix, founding_year=founding_year)


def _build_phishnet_settings(data: dict[str, Any]) -> PhishNetSettings:
    data = _ensure_mapping(data, field_name="phishnet")

    base_url = _clean_str(data.get("base_url")) or DEFAULT_API_BASE_URL
    if not validate_url(base_url):
        raise ValueError(f"'phishnet.base_url' must be a valid http/https URL, got: {base_url}")
    if not base_url.endswith("/"):
        base_url += "/"

    try:
        timeout = float(data.get("timeout", 30.0))
    except (TypeError, ValueError) as exc:
        raise ValueError("'phishnet.timeout' must be a number") from exc

    try:
        min_interval = float(data.get("min_interval", 1.0))
    except (TypeError, ValueError) as exc:
        raise ValueError("'phishnet.min_interval' must be a number") from exc
    if min_interval < 0:
        raise ValueError("'phishnet.min_interval' must not be negative")

    return PhishNetSettings(
        api_key=_clean_str(data.get("api_key")),
        base_url=base_url,
        timeout=timeout,
        min_interval=min_interval,
    )


def _build_parser_settings(data: dict[str, Any]) -> ParserSettings:
    data = _ensure_mapping(data, field_name="parser")
    try:
        threshold = float(data.get("confidence_threshold", 0.3))
    except (TypeError, ValueError) as exc:
        raise ValueError("'parser.confidence_threshold' must be a number") from exc
    if threshold < 0:
        raise ValueError("'parser.confidence_threshold' must not be negative")
    return ParserSettings(confidence_threshold=threshold)


def _build_metadata_settings(data: dict[str, Any]) -> MetadataSettings:
    data = _ensure_mapping(data, field_name="metadata")
    try:
        max_reviews = int(data.get("max_reviews", 50))
        run_window_days = int(data.get("run_window_days", 7))
    except (TypeError, ValueError) as exc:
        raise ValueError("'metadata.max_reviews' and 'metadata.run_window_days' must be integers") from exc
    if max_reviews <= 0:
        max_reviews = 50
    if run_window_days < 1:
        raise ValueError("'metadata.run_window_days' must be at least 1")
    return MetadataSettings(
        include_reviews=bool(data.get("include_reviews", True)),
        max_reviews=max_reviews,
        run_window_days=run_window_days,
    )


def _build_library_settings(data: dict[str, Any]) -> LibrarySettings:
    data = _ensure_mapping(data, field_name="library")
    backend = (_clean_str(data.get("backend")) or "sqlite").lower()
    path_raw = _clean_str(data.get("path"))
    path = Path(path_raw).expanduser() if path_raw else LibrarySettings().path
    return LibrarySettings(backend=backend, path=path)


def _build_collection_settings(data: dict[str, Any]) -> CollectionSettings:
    data = _ensure_mapping(data, field_name="collections")
    try:
        max_workers = int(data.get("max_workers", 2))
    except (TypeError, ValueError) as exc:
        raise ValueError("'collections.max_workers' must be an integer") from exc
    return CollectionSettings(enabled=bool(data.get("enabled", True)), max_workers=max(1, max_workers))


def _apply_env_overrides(settings: Settings) -> Settings:
    api_key = env_str("PHISHNET_API_KEY")
    if api_key:
        settings.phishnet.api_key = api_key

    collections_enabled = env_bool("SHOWBOOK_COLLECTIONS")
    if collections_enabled is not None:
        settings.collections.enabled = collections_enabled

    library_path = env_str("SHOWBOOK_LIBRARY_PATH")
    if library_path:
        settings.library.path = Path(library_path).expanduser()

    return settings


def _build_settings(data: dict[str, Any]) -> Settings:
    data = _ensure_mapping(data, field_name="settings")
    settings = Settings(
        artist=_build_artist_config(data.get("artist")),
        phishnet=_build_phishnet_settings(data.get("phishnet")),
        parser=_build_parser_settings(data.get("parser")),
        metadata=_build_metadata_settings(data.get("metadata")),
        library=_build_library_settings(data.get("library")),
        collections=_build_collection_settings(data.get("collections")),
    )
    return _apply_env_overrides(settings)


def load_config(path: Path) -> AppConfig:
    data = load_yaml_file(path)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return AppConfig(settings=_build_settings(data.get("settings", {})))


def default_config() -> AppConfig:
    """Configuration used when no file is supplied (environment overrides still apply)."""
    return AppConfig(settings=_build_settings({}))
