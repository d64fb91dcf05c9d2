"""Showbook core package.

The showbook package is organized into focused modules with clear separation of concerns:

- **parsers.show_filename**: Rule-based, confidence-scored show identification from filenames
- **parsers.setlist**: Parsing of catalog setlist blobs into sets and songs
- **phishnet**: Rate-limited Phish.net API client, response models and adapter
- **run_detection**: Consecutive-night run detection at a single venue
- **collection_manager**: Idempotent grouping of run items into collections
- **collection_events**: Queue-driven retry of collection membership from item events
- **show_metadata**: Basic, catalog and placeholder metadata assembly
- **provider**: End-to-end metadata resolution with graceful degradation

The main entry point is ``build_provider`` (or ``ShowMetadataProvider`` for
explicit wiring).
"""

from .parsers.show_filename import ShowFilenameParser, ShowIdentification
from .provider import ShowMetadataProvider, build_provider
from .version import __version__

__all__ = [
    "__version__",
    "ShowFilenameParser",
    "ShowIdentification",
    "ShowMetadataProvider",
    "build_provider",
]
