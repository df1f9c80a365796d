from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, order=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError(f"Interval end must be after start ({self.start} >= {self.end})")

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open overlap test: touching intervals do not overlap."""
        return start < self.end and self.start < end


@dataclass(frozen=True, order=True)
class Slot:
    start: datetime
    end: datetime

    def to_payload(self) -> dict[str, str]:
        return {"start": _iso_z(self.start), "end": _iso_z(self.end)}


def _iso_z(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")
