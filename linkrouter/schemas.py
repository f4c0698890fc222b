"""Pydantic schemas shared by the resolver, the dispatcher and the queue consumer.

Schema Hierarchy
=================
::
    LinkRecord (cache + record store payload)
    ├─ id: str
    ├─ account_id: str | None
    └─ destinations: dict[str, str] ("default" required)

    ClickEvent (one per inbound click)
    ├─ account_id: str
    ├─ id: str (link id)
    ├─ destination: str
    ├─ country / latitude / longitude: optional
    └─ timestamp: datetime | None (attached at dispatch time)

    LinkClickMessage (queue envelope)
    ├─ type: "LINK_CLICK"
    └─ data: ClickEvent

    EvaluationRequest (evaluation workflow input)

    HealthResponse (Output)

Key Behaviours
===============
- LinkRecord rejects payloads without a "default" destination, so a corrupt
  cache entry fails validation instead of routing visitors nowhere.
- Destination URLs are checked with the validators library.
- ClickEvent timestamps are timezone-aware UTC.

Classes:
    LinkRecord:  Routing destinations for one short link.
    ClickEvent:  Geotagged click produced per redirect.
    LinkClickMessage:  Queue envelope around a ClickEvent.
    EvaluationRequest:  Request handed to the evaluation workflow.
    HealthResponse:  Output schema for health checks.
"""

import datetime
from typing import Literal

import validators
from pydantic import BaseModel, Field, field_validator

from linkrouter.enums import HealthStatus

__all__ = [
    "DEFAULT_DESTINATION_KEY",
    "UNKNOWN_COUNTRY",
    "LinkRecord",
    "ClickEvent",
    "LinkClickMessage",
    "EvaluationRequest",
    "HealthResponse",
]

DEFAULT_DESTINATION_KEY = "default"
UNKNOWN_COUNTRY = "UNKNOWN"


class LinkRecord(BaseModel):
    id: str = Field(..., min_length=1)
    account_id: str | None = None
    destinations: dict[str, str]

    model_config = {"from_attributes": True, "frozen": True}

    @field_validator("destinations")
    @classmethod
    def validate_destinations(cls, v: dict[str, str]) -> dict[str, str]:
        if DEFAULT_DESTINATION_KEY not in v:
            raise ValueError("destinations must contain a 'default' entry")
        for key, url in v.items():
            if not validators.url(url, simple_host=True):
                raise ValueError(f"Invalid URL for destination '{key}'")
        return v


class ClickEvent(BaseModel):
    """Click on a short link, fanned out to the queue and the click tracker."""

    account_id: str
    id: str = Field(..., description="Short link id that was clicked, e.g. 'abc123'")
    destination: str
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    timestamp: datetime.datetime | None = None

    @property
    def has_geolocation(self) -> bool:
        return self.latitude is not None and self.longitude is not None and bool(self.country)

    @property
    def timestamp_ms(self) -> int:
        assert self.timestamp is not None, "timestamp must be attached before dispatch"
        return int(self.timestamp.timestamp() * 1000)

    @property
    def evaluation_key(self) -> str:
        return f"{self.id}:{self.destination}"


class LinkClickMessage(BaseModel):
    type: Literal["LINK_CLICK"] = "LINK_CLICK"
    data: ClickEvent


class EvaluationRequest(BaseModel):
    account_id: str
    link_id: str
    destination: str
    country: str
    requested_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
