"""Pydantic models for Phish.net v5 API responses."""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _stringify_id(value: Any) -> Any:
    value = _blank_to_none(value)
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


class ShowRecord(BaseModel):
    """API response model for a show."""

    model_config = ConfigDict(extra="ignore")

    show_id: str | None = Field(default=None, validation_alias=AliasChoices("show_id", "showid"))
    show_date: dt.date | None = Field(default=None, validation_alias=AliasChoices("show_date", "showdate"))
    venue: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    venue_id: str | None = Field(default=None, validation_alias=AliasChoices("venue_id", "venueid"))
    artist_name: str | None = Field(default=None, validation_alias=AliasChoices("artist_name", "artistname"))
    rating: float | None = None
    show_notes: str | None = Field(
        default=None, validation_alias=AliasChoices("show_notes", "shownotes", "setlist_notes")
    )
    setlist_data: str | None = Field(default=None, validation_alias=AliasChoices("setlist_data", "setlistdata"))
    tour: str | None = Field(default=None, validation_alias=AliasChoices("tour", "tourname"))

    @field_validator("show_id", "venue_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _stringify_id(value)

    @field_validator("show_date", "rating", mode="before")
    @classmethod
    def _coerce_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class SetlistRecord(BaseModel):
    """API response model for a setlist row."""

    model_config = ConfigDict(extra="ignore")

    show_id: str | None = Field(default=None, validation_alias=AliasChoices("show_id", "showid"))
    show_date: dt.date | None = Field(default=None, validation_alias=AliasChoices("show_date", "showdate"))
    venue: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    artist_name: str | None = Field(default=None, validation_alias=AliasChoices("artist_name", "artistname"))
    setlist_data: str | None = Field(default=None, validation_alias=AliasChoices("setlist_data", "setlistdata"))
    setlist_notes: str | None = Field(default=None, validation_alias=AliasChoices("setlist_notes", "setlistnotes"))

    @field_validator("show_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _stringify_id(value)

    @field_validator("show_date", mode="before")
    @classmethod
    def _coerce_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class VenueRecord(BaseModel):
    """API response model for a venue."""

    model_config = ConfigDict(extra="ignore")

    venue_id: str = Field(validation_alias=AliasChoices("venue_id", "venueid"))
    name: str = Field(default="", validation_alias=AliasChoices("name", "venuename", "venue"))
    city: str | None = None
    state: str | None = None
    country: str | None = None
    venue_info: str | None = Field(default=None, validation_alias=AliasChoices("venue_info", "venueinfo"))
    capacity: int | None = None

    @field_validator("venue_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _stringify_id(value)

    @field_validator("capacity", mode="before")
    @classmethod
    def _coerce_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ReviewRecord(BaseModel):
    """API response model for a user review."""

    model_config = ConfigDict(extra="ignore")

    review_id: str | None = Field(default=None, validation_alias=AliasChoices("review_id", "reviewid"))
    show_date: dt.date | None = Field(default=None, validation_alias=AliasChoices("show_date", "showdate"))
    username: str | None = None
    review_text: str | None = Field(default=None, validation_alias=AliasChoices("review_text", "review"))
    rating: float | None = None
    posted_at: str | None = Field(default=None, validation_alias=AliasChoices("posted_at", "posted_date"))

    @field_validator("review_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _stringify_id(value)

    @field_validator("show_date", "rating", mode="before")
    @classmethod
    def _coerce_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ApiEnvelope(BaseModel):
    """Response wrapper shared by every endpoint.

    ``error`` arrives as an int, a bool or a numeric string depending on the
    endpoint. ``data`` stays untyped here and is validated per endpoint.
    """

    model_config = ConfigDict(extra="ignore")

    error: bool = False
    error_message: str | None = None
    data: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("error", mode="before")
    @classmethod
    def _coerce_error(cls, value: Any) -> Any:
        if value is None:
            return False
        if isinstance(value, str):
            return value.strip().lower() not in {"", "0", "false", "no"}
        return bool(value)

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, value: Any) -> Any:
        if value is None or value == "":
            return []
        if isinstance(value, dict):
            return [value]
        return value
