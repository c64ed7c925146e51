"""Schedule snapshots: validated shape, signing, and the HTTP source."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from datetime import date, datetime
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from timecard_engine.calculators.intervals import make_interval
from timecard_engine.calculators.types import Interval
from timecard_engine.errors import ScheduleSourceError, ValidationError

logger = logging.getLogger(__name__)


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScheduleInterval(_SnapshotModel):
    """A scheduled interval with explicit offsets."""

    start_at: datetime
    end_at: datetime

    @model_validator(mode="after")
    def _check_bounds(self) -> ScheduleInterval:
        # pydantic reports ValueError as a field error
        try:
            make_interval(self.start_at, self.end_at, "scheduleInterval")
        except ValidationError as exc:
            raise ValueError(exc.message) from None
        return self


class ScheduleEntry(_SnapshotModel):
    time_id: int
    time_label: str = ""


class ScheduleSnapshot(_SnapshotModel):
    """Point-in-time capture of a tutor's scheduled intervals for one day."""

    version: int = 1
    franchise_id: int | None = None
    tutor_id: int | None = None
    work_date: date | None = None
    timezone: str | None = None
    slot_minutes: int | None = Field(default=None, gt=0, le=24 * 60)
    entries: list[ScheduleEntry] = Field(default_factory=list)
    intervals: list[ScheduleInterval]
    issued_at: datetime | None = None
    signature: str | None = None

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: int) -> int:
        if value != 1:
            raise ValueError("unsupported schedule snapshot version")
        return value

    def to_intervals(self) -> list[Interval]:
        return [
            make_interval(i.start_at, i.end_at, f"scheduleSnapshot.intervals[{n}]")
            for n, i in enumerate(self.intervals)
        ]

    def to_json(self) -> dict[str, Any]:
        """Wire shape, as stored on the day."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def parse_snapshot(payload: Any) -> ScheduleSnapshot:
    """Validate an untrusted snapshot payload."""
    if isinstance(payload, ScheduleSnapshot):
        return payload
    try:
        return ScheduleSnapshot.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid schedule snapshot",
            errors=[
                {"loc": [str(p) for p in err["loc"]], "msg": err["msg"]}
                for err in exc.errors()
            ],
        ) from None


def _canonical_json(snapshot: ScheduleSnapshot) -> bytes:
    payload = snapshot.to_json()
    payload.pop("signature", None)
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def compute_signature(snapshot: ScheduleSnapshot, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), _canonical_json(snapshot), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def sign_snapshot(snapshot: ScheduleSnapshot, secret: str) -> ScheduleSnapshot:
    """Return a copy of ``snapshot`` carrying an HMAC-SHA256 signature."""
    return snapshot.model_copy(update={"signature": compute_signature(snapshot, secret)})


def verify_snapshot(snapshot: ScheduleSnapshot, secret: str) -> None:
    """Raise ValidationError unless the snapshot signature is valid."""
    if not snapshot.signature:
        raise ValidationError("Missing schedule snapshot signature")
    expected = compute_signature(snapshot, secret)
    if not hmac.compare_digest(snapshot.signature, expected):
        raise ValidationError("Invalid schedule snapshot signature")


class ScheduleSource(Protocol):
    """Anything that can produce a schedule snapshot for a tutor's day."""

    async def fetch(self, franchise_id: int, tutor_id: int, work_date: date) -> ScheduleSnapshot:
        ...


class HttpScheduleSource:
    """Fetches snapshots from the scheduling system over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, franchise_id: int, tutor_id: int, work_date: date) -> ScheduleSnapshot:
        url = (
            f"{self.base_url}/franchises/{franchise_id}/tutors/{tutor_id}"
            f"/schedule/{work_date.isoformat()}"
        )
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, headers={"accept": "application/json"})
        except httpx.HTTPError as exc:
            raise ScheduleSourceError(f"Schedule source request failed: {exc}") from exc

        if response.status_code != 200:
            raise ScheduleSourceError(
                f"Schedule source error ({response.status_code}): {response.text[:300]}",
                upstreamStatus=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ScheduleSourceError("Schedule source returned invalid JSON") from exc

        try:
            return parse_snapshot(payload)
        except ValidationError as exc:
            raise ScheduleSourceError(
                "Schedule source returned an invalid snapshot", errors=exc.details.get("errors")
            ) from exc


class UnconfiguredScheduleSource:
    """Used when no scheduling system URL is configured."""

    async def fetch(self, franchise_id: int, tutor_id: int, work_date: date) -> ScheduleSnapshot:
        raise ScheduleSourceError("No schedule source is configured")


def build_schedule_source(base_url: str | None, timeout: float) -> ScheduleSource:
    if not base_url:
        logger.info("No SCHEDULE_SOURCE_URL set; finalizing clock-outs will need a snapshot")
        return UnconfiguredScheduleSource()
    return HttpScheduleSource(base_url, timeout=timeout)
