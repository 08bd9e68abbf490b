"""
Static FIT profile tables.

Only the slice of the FIT profile needed for lap and record statistics is
described here. Field values are decoded as raw integers and turned into
physical units with ``value / scale - offset``.
"""

from __future__ import annotations

from typing import NamedTuple


FIT_SIGNATURE = b".FIT"

# Seconds between the Unix epoch and the FIT epoch (1989-12-31T00:00:00Z).
FIT_EPOCH_OFFSET = 631065600

TIMESTAMP_FIELD = 253


class FieldProfile(NamedTuple):
    name: str
    scale: float | None = None
    offset: float | None = None


class BaseType(NamedTuple):
    name: str
    size: int
    fmt: str | None  # struct format char, None for string/byte types
    invalid: int | None


# ---------- Message kinds ----------

MESSAGE_NAMES = {
    0: "file_id",
    18: "session",
    19: "lap",
    20: "record",
    21: "event",
    23: "device_info",
    34: "activity",
}

DEFAULT_KINDS = ("lap", "record")


# ---------- Field profiles ----------

# Field 253 is the timestamp in every message kind.
COMMON_FIELDS = {
    TIMESTAMP_FIELD: FieldProfile("timestamp"),
}

FIELD_PROFILES = {
    19: {  # lap
        2: FieldProfile("start_time"),
        7: FieldProfile("total_elapsed_time", scale=1000),
        8: FieldProfile("total_timer_time", scale=1000),
        9: FieldProfile("total_distance", scale=100),
        13: FieldProfile("avg_speed", scale=1000),
        14: FieldProfile("max_speed", scale=1000),
        15: FieldProfile("avg_heart_rate"),
        16: FieldProfile("max_heart_rate"),
        110: FieldProfile("enhanced_avg_speed", scale=1000),
        111: FieldProfile("enhanced_max_speed", scale=1000),
    },
    20: {  # record
        0: FieldProfile("position_lat"),
        1: FieldProfile("position_long"),
        2: FieldProfile("altitude", scale=5, offset=500),
        3: FieldProfile("heart_rate"),
        4: FieldProfile("cadence"),
        5: FieldProfile("distance", scale=100),
        6: FieldProfile("speed", scale=1000),
        73: FieldProfile("enhanced_speed", scale=1000),
        78: FieldProfile("enhanced_altitude", scale=5, offset=500),
    },
}


def field_profile(message_number: int, field_number: int) -> FieldProfile | None:
    """Look up the profile for a field, or None if we don't keep it."""
    profiles = FIELD_PROFILES.get(message_number, {})
    return profiles.get(field_number) or COMMON_FIELDS.get(field_number)


# ---------- Base types ----------

BASE_TYPES = {
    0x00: BaseType("enum", 1, "B", 0xFF),
    0x01: BaseType("sint8", 1, "b", 0x7F),
    0x02: BaseType("uint8", 1, "B", 0xFF),
    0x83: BaseType("sint16", 2, "h", 0x7FFF),
    0x84: BaseType("uint16", 2, "H", 0xFFFF),
    0x85: BaseType("sint32", 4, "i", 0x7FFFFFFF),
    0x86: BaseType("uint32", 4, "I", 0xFFFFFFFF),
    0x07: BaseType("string", 1, None, 0),
    0x88: BaseType("float32", 4, "f", None),  # invalid is NaN
    0x89: BaseType("float64", 8, "d", None),
    0x0A: BaseType("uint8z", 1, "B", 0),
    0x8B: BaseType("uint16z", 2, "H", 0),
    0x8C: BaseType("uint32z", 4, "I", 0),
    0x0D: BaseType("byte", 1, None, None),
    0x8E: BaseType("sint64", 8, "q", 0x7FFFFFFFFFFFFFFF),
    0x8F: BaseType("uint64", 8, "Q", 0xFFFFFFFFFFFFFFFF),
    0x90: BaseType("uint64z", 8, "Q", 0),
}


def base_type(tag: int) -> BaseType | None:
    """Resolve a base type tag, tolerating a missing endian-ability bit."""
    return BASE_TYPES.get(tag) or BASE_TYPES.get(tag & 0x1F)


# ---------- JSON fallback ----------

# Garmin Connect metric descriptor key -> canonical record field
JSON_METRIC_KEYS = {
    "directTimestamp": "timestamp",
    "directHeartRate": "heart_rate",
    "directDistance": "distance",
    "directSpeed": "speed",
}
