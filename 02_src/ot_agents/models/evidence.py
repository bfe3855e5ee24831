"""Evidence citations attached to observations and messages."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(value: Any) -> datetime:
    """Accept a datetime or ISO string and return an aware UTC datetime."""
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class EvidenceType(str, Enum):
    """What an evidence record points at."""

    ASSET = "asset"
    GAP = "gap"
    RISK_SCORE = "risk_score"
    METRIC = "metric"
    PATTERN = "pattern"


@dataclass(frozen=True)
class Evidence:
    """
    Immutable citation explaining a finding.

    Carries enough fields to explain the finding without re-reading the
    source record; never owns the referenced entity.
    """

    type: EvidenceType
    id: str | None
    description: str
    data: dict = field(default_factory=dict)
    captured_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "id": self.id,
            "description": self.description,
            "data": self.data,
            "captured_at": self.captured_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Evidence":
        return cls(
            type=EvidenceType(data["type"]),
            id=data.get("id"),
            description=data.get("description", ""),
            data=dict(data.get("data") or {}),
            captured_at=parse_timestamp(data["captured_at"]),
        )
