from __future__ import annotations

from dataclasses import asdict, dataclass


# ---------- Canonical activity ----------

@dataclass(frozen=True)
class Lap:
    """One lap summary. Timestamps are Unix epoch seconds."""

    start_time: float | None = None
    end_time: float | None = None
    total_timer_time: float = 0.0
    total_distance: float = 0.0
    avg_heart_rate: float | None = None
    max_heart_rate: float | None = None
    avg_speed: float | None = None


@dataclass(frozen=True)
class Record:
    """One sensor sample. Any field may be missing."""

    timestamp: float | None = None
    heart_rate: float | None = None
    distance: float | None = None
    speed: float | None = None


@dataclass(frozen=True)
class Activity:
    laps: tuple[Lap, ...] = ()
    records: tuple[Record, ...] = ()


# ---------- Derived stats ----------

@dataclass(frozen=True)
class LapStat:
    lap_number: int
    total_distance: float
    avg_pace: float | None  # seconds per km
    min_hr: int | None
    max_hr: int | None
    avg_hr: int | None
    time_to_min_hr: int | None  # seconds from lap start
    elapsed_time: float

    def to_dict(self) -> dict:
        return asdict(self)


# ---------- Decoder state ----------

@dataclass(frozen=True)
class FieldDefinition:
    number: int
    size: int
    base_type: int


@dataclass(frozen=True)
class StreamDefinition:
    """Layout declared by a definition record for one local type id."""

    message_number: int
    little_endian: bool
    fields: tuple[FieldDefinition, ...] = ()
    developer_fields: tuple[FieldDefinition, ...] = ()
