"""HTTP client for the Phish.net v5 REST API."""

from __future__ import annotations

import datetime as dt
import logging
import threading
import time
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from ..config import DEFAULT_API_BASE_URL
from .models import ApiEnvelope, ReviewRecord, SetlistRecord, ShowRecord, VenueRecord

LOGGER = logging.getLogger(__name__)

REDACTED = "***"
_LOCK_POLL_SECONDS = 0.1

RecordT = TypeVar("RecordT", bound=BaseModel)


class PhishNetError(Exception):
    """Base exception for Phish.net API errors."""


class PhishNetTransportError(PhishNetError):
    """The service could not be reached (timeout, DNS, connection failure)."""


class OperationCancelledError(Exception):
    """A network operation was abandoned because its cancel event was set."""


def _raise_if_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError("Operation cancelled")


def format_show_date(value: dt.date | str | None) -> str:
    """Validate a show date argument and return it as ``YYYY-MM-DD``."""
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    if value is None or not str(value).strip():
        raise ValueError("Show date must not be blank")
    text = str(value).strip()
    try:
        return dt.date.fromisoformat(text).isoformat()
    except ValueError as exc:
        raise ValueError(f"Show date must be formatted as YYYY-MM-DD, got: {text}") from exc


class PhishNetClient:
    """Rate-limited client for Phish.net.

    Every request goes through a single gate: the caller holding the gate waits
    until ``min_interval`` seconds have passed since the previous request
    started, then issues its own. Concurrent callers queue on the gate.

    Data-absent responses (non-2xx status, empty or undecodable body, malformed
    JSON, an envelope reporting an error) return ``None`` or ``[]``. Transport failures
    raise :class:`PhishNetTransportError`; a set ``cancel_event`` raises
    :class:`OperationCancelledError`.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        artist_slug: str = "phish",
        artist_name: str = "Phish",
        founding_year: int = 1983,
        timeout: float = 30.0,
        min_interval: float = 1.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("Phish.net API key is required")
        self.api_key = api_key.strip()
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.artist_slug = artist_slug
        self.artist_name = artist_name
        self.founding_year = founding_year
        self.min_interval = max(0.0, min_interval)
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None
        self._gate = threading.Lock()
        self._last_request: float | None = None

    # ------------------------------------------------------------------ helpers

    def _redact(self, text: str) -> str:
        redacted = text.replace(self.api_key, REDACTED)
        encoded = quote(self.api_key, safe="")
        if encoded != self.api_key:
            redacted = redacted.replace(encoded, REDACTED)
        return redacted

    def _acquire_gate(self, cancel_event: threading.Event | None) -> None:
        if cancel_event is None:
            self._gate.acquire()
            return
        while not self._gate.acquire(timeout=_LOCK_POLL_SECONDS):
            _raise_if_cancelled(cancel_event)

    def _wait_for_slot(self, cancel_event: threading.Event | None) -> None:
        if self._last_request is None:
            return
        remaining = self.min_interval - (time.monotonic() - self._last_request)
        if remaining <= 0:
            return
        LOGGER.debug("Rate limiting: waiting %.2f seconds", remaining)
        if cancel_event is None:
            time.sleep(remaining)
        elif cancel_event.wait(remaining):
            raise OperationCancelledError("Operation cancelled while waiting for rate limit")

    def _request(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[dict[str, Any]] | None:
        """Issue one GET request and unwrap the response envelope.

        Returns:
            The envelope's ``data`` rows, or None when the service had no usable data.

        Raises:
            PhishNetTransportError: When the request could not be completed.
            OperationCancelledError: When ``cancel_event`` is set.
        """
        _raise_if_cancelled(cancel_event)
        url = f"{self.base_url}{path}"
        query = {**(params or {}), "apikey": self.api_key}

        self._acquire_gate(cancel_event)
        try:
            self._wait_for_slot(cancel_event)
            self._last_request = time.monotonic()
            LOGGER.debug("Making API request to: %s", self._redact(str(httpx.URL(url, params=query))))
            try:
                response = self._client.get(url, params=query)
            except httpx.TimeoutException as exc:
                raise PhishNetTransportError(f"Request timeout for API endpoint {path}") from exc
            except httpx.DecodingError as exc:
                LOGGER.warning("Failed to decode response from API endpoint %s: %s", path, self._redact(str(exc)))
                return None
            except httpx.RequestError as exc:
                raise PhishNetTransportError(
                    f"Transport failure for API endpoint {path}: {self._redact(str(exc))}"
                ) from exc
        finally:
            self._gate.release()

        _raise_if_cancelled(cancel_event)
        return self._unwrap(path, response)

    def _unwrap(self, path: str, response: httpx.Response) -> list[dict[str, Any]] | None:
        if not response.is_success:
            LOGGER.warning("API request to %s failed with status %d", path, response.status_code)
            return None
        if not response.content or not response.content.strip():
            LOGGER.warning("Empty response from API endpoint %s", path)
            return None
        try:
            payload = response.json()
        except ValueError as exc:
            LOGGER.warning("Failed to parse JSON response from API endpoint %s: %s", path, exc)
            return None
        try:
            envelope = ApiEnvelope.model_validate(payload)
        except ValidationError as exc:
            LOGGER.warning("Unexpected response shape from API endpoint %s: %s", path, exc.error_count())
            return None
        if envelope.error:
            LOGGER.warning("API returned error for %s: %s", path, envelope.error_message or "(no message)")
            return None
        return envelope.data

    @staticmethod
    def _parse_records(rows: list[dict[str, Any]] | None, model: type[RecordT]) -> list[RecordT]:
        records: list[RecordT] = []
        for row in rows or []:
            try:
                records.append(model.model_validate(row))
            except ValidationError as exc:
                LOGGER.debug("Skipping malformed %s row: %s", model.__name__, exc)
        return records

    def _is_tracked_artist(self, record: ShowRecord) -> bool:
        if not record.artist_name:
            return True
        return record.artist_name.strip().casefold() == self.artist_name.casefold()

    def _validate_year(self, year: int) -> int:
        latest = dt.date.today().year + 1
        if year < self.founding_year or year > latest:
            raise ValueError(f"Year must be between {self.founding_year} and {latest}, got: {year}")
        return year

    # ---------------------------------------------------------------- endpoints

    def get_shows(self, date: dt.date | str, *, cancel_event: threading.Event | None = None) -> list[ShowRecord]:
        """Fetch the tracked artist's shows on a single date."""
        show_date = format_show_date(date)
        rows = self._request(f"shows/showdate/{show_date}.json", cancel_event=cancel_event)
        shows = [show for show in self._parse_records(rows, ShowRecord) if self._is_tracked_artist(show)]
        LOGGER.debug("Found %d show(s) on %s", len(shows), show_date)
        return shows

    def get_shows_in_range(
        self,
        start: dt.date | str,
        end: dt.date | str,
        *,
        cancel_event: threading.Event | None = None,
    ) -> list[ShowRecord]:
        """Fetch the tracked artist's shows between two dates (inclusive)."""
        start_date = format_show_date(start)
        end_date = format_show_date(end)
        if start_date > end_date:
            raise ValueError(f"Start date {start_date} is after end date {end_date}")
        rows = self._request(
            f"shows/artist/{self.artist_slug}.json",
            params={"startdate": start_date, "enddate": end_date},
            cancel_event=cancel_event,
        )
        return [show for show in self._parse_records(rows, ShowRecord) if self._is_tracked_artist(show)]

    def get_shows_by_year(self, year: int, *, cancel_event: threading.Event | None = None) -> list[ShowRecord]:
        self._validate_year(int(year))
        rows = self._request(f"shows/showyear/{int(year)}.json", cancel_event=cancel_event)
        return [show for show in self._parse_records(rows, ShowRecord) if self._is_tracked_artist(show)]

    def get_setlist(
        self, date: dt.date | str, *, cancel_event: threading.Event | None = None
    ) -> SetlistRecord | None:
        show_date = format_show_date(date)
        rows = self._request(f"setlists/showdate/{show_date}.json", cancel_event=cancel_event)
        records = self._parse_records(rows, SetlistRecord)
        return records[0] if records else None

    def get_venue(self, venue_id: str | int, *, cancel_event: threading.Event | None = None) -> VenueRecord | None:
        if venue_id is None or not str(venue_id).strip():
            raise ValueError("Venue id must not be blank")
        rows = self._request(f"venues/venueid/{str(venue_id).strip()}.json", cancel_event=cancel_event)
        records = self._parse_records(rows, VenueRecord)
        return records[0] if records else None

    def get_reviews(
        self,
        date: dt.date | str,
        limit: int = 50,
        *,
        cancel_event: threading.Event | None = None,
    ) -> list[ReviewRecord]:
        show_date = format_show_date(date)
        rows = self._request(f"reviews/showdate/{show_date}.json", cancel_event=cancel_event)
        reviews = self._parse_records(rows, ReviewRecord)
        return reviews[: max(0, limit)]

    def test_connection(self, *, cancel_event: threading.Event | None = None) -> bool:
        """Return True when the API answers with data; cancellation still propagates."""
        try:
            rows = self._request("shows.json", params={"limit": 1}, cancel_event=cancel_event)
        except PhishNetTransportError as exc:
            LOGGER.error("Failed to test API connection: %s", exc)
            return False
        return rows is not None

    def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> PhishNetClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()
