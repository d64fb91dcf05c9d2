"""Phish.net API client package.

This package provides a rate-limited client for the Phish.net v5 REST API,
the pydantic models its responses are validated against, and an adapter
that turns those records into Showbook's own dataclasses.
"""

from __future__ import annotations

from .adapter import PhishNetAdapter
from .client import (
    OperationCancelledError,
    PhishNetClient,
    PhishNetError,
    PhishNetTransportError,
)
from .models import ApiEnvelope, ReviewRecord, SetlistRecord, ShowRecord, VenueRecord

__all__ = [
    "PhishNetAdapter",
    "PhishNetClient",
    "PhishNetError",
    "PhishNetTransportError",
    "OperationCancelledError",
    "ApiEnvelope",
    "ReviewRecord",
    "SetlistRecord",
    "ShowRecord",
    "VenueRecord",
]
