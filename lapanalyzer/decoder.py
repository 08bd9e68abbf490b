"""
Minimal FIT decoder.

Decodes the definition/data record stream of a FIT file into
``{message kind: [field dict, ...]}``. Only lap and record messages are
kept by default; every other message is still decoded so the cursor stays
aligned.

- Definition records are stored in a 16-slot table indexed by local type id
  and may be redefined at any point in the stream.
- Compressed-timestamp headers carry a 5-bit offset against the last full
  timestamp seen in the stream.
- A corrupt or truncated tail stops decoding; everything decoded before that
  point is returned.
"""

from __future__ import annotations

import logging
import math
import struct

from lapanalyzer.errors import DecodeTruncation, FormatError
from lapanalyzer.models import Activity, FieldDefinition, Lap, Record, StreamDefinition
from lapanalyzer.profile import (
    DEFAULT_KINDS,
    FIT_EPOCH_OFFSET,
    FIT_SIGNATURE,
    MESSAGE_NAMES,
    base_type,
    field_profile,
)

log = logging.getLogger(__name__)

MIN_HEADER_SIZE = 12
LOCAL_TYPE_SLOTS = 16

COMPRESSED_HEADER_MASK = 0x80
DEFINITION_MASK = 0x40
DEVELOPER_DATA_MASK = 0x20
LOCAL_TYPE_MASK = 0x0F
COMPRESSED_LOCAL_TYPE_MASK = 0x03
TIME_OFFSET_MASK = 0x1F


def is_fit(data: bytes) -> bool:
    return len(data) > 12 and data[8:12] == FIT_SIGNATURE


def expand_compressed_timestamp(last_timestamp: int, time_offset: int) -> int:
    """Rebuild a full timestamp from a 5-bit offset, rolling over every 32 s."""
    ts = (last_timestamp & ~TIME_OFFSET_MASK) + time_offset
    if time_offset < (last_timestamp & TIME_OFFSET_MASK):
        ts += 0x20
    return ts


class FitDecoder:
    """Single-use decoder. All mutable state is scoped to one instance."""

    def __init__(self, data: bytes, kinds=DEFAULT_KINDS):
        self.data = bytes(data)
        self.kinds = frozenset(kinds)
        self.offset = 0
        self.definitions: list[StreamDefinition | None] = [None] * LOCAL_TYPE_SLOTS
        self.messages: dict[str, list[dict]] = {}
        self.last_timestamp = 0
        self.header_size = 0
        self.data_size = 0
        self.truncated = False

    @property
    def data_end(self) -> int:
        return self.header_size + self.data_size

    @property
    def bytes_consumed(self) -> int:
        return self.offset

    # ---------- cursor ----------

    def _take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise DecodeTruncation(
                f"Need {size} bytes at offset {self.offset}, only {len(self.data) - self.offset} left"
            )
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def _u8(self) -> int:
        return self._take(1)[0]

    # ---------- top level ----------

    def parse(self) -> dict[str, list[dict]]:
        self._parse_header()
        while self.offset < self.data_end:
            try:
                self._parse_record()
            except (DecodeTruncation, struct.error, OverflowError, ValueError) as e:
                self.truncated = True
                log.warning("Stopped decoding at offset %d: %s", self.offset, e)
                break
        log.debug(
            "FIT decoded: %s",
            ", ".join(f"{k}: {len(v)}" for k, v in self.messages.items()) or "no messages",
        )
        return self.messages

    def _parse_header(self) -> None:
        if len(self.data) < MIN_HEADER_SIZE:
            raise FormatError(f"Not a valid FIT file ({len(self.data)} bytes)")
        header_size = self.data[0]
        if header_size < MIN_HEADER_SIZE:
            raise FormatError(f"Not a valid FIT file (header size {header_size})")
        if self.data[8:12] != FIT_SIGNATURE:
            raise FormatError("Not a valid FIT file (missing .FIT signature)")
        self.header_size = header_size
        self.data_size = struct.unpack_from("<I", self.data, 4)[0]
        self.offset = header_size

    def _parse_record(self) -> None:
        header = self._u8()

        if header & COMPRESSED_HEADER_MASK:
            local_type = (header >> 5) & COMPRESSED_LOCAL_TYPE_MASK
            ts = expand_compressed_timestamp(self.last_timestamp, header & TIME_OFFSET_MASK)
            self.last_timestamp = ts
            self._parse_data_message(local_type, ts)
        elif header & DEFINITION_MASK:
            self._parse_definition(header & LOCAL_TYPE_MASK, bool(header & DEVELOPER_DATA_MASK))
        else:
            self._parse_data_message(header & LOCAL_TYPE_MASK)

    # ---------- definitions ----------

    def _parse_definition(self, local_type: int, has_developer_data: bool) -> None:
        self._take(1)  # reserved
        little_endian = self._u8() == 0
        message_number = struct.unpack("<H" if little_endian else ">H", self._take(2))[0]
        field_count = self._u8()
        fields = tuple(FieldDefinition(*self._take(3)) for _ in range(field_count))

        developer_fields: tuple[FieldDefinition, ...] = ()
        if has_developer_data:
            dev_count = self._u8()
            developer_fields = tuple(FieldDefinition(*self._take(3)) for _ in range(dev_count))

        self.definitions[local_type] = StreamDefinition(
            message_number=message_number,
            little_endian=little_endian,
            fields=fields,
            developer_fields=developer_fields,
        )

    # ---------- data ----------

    def _parse_data_message(self, local_type: int, compressed_ts: int | None = None) -> None:
        definition = self.definitions[local_type]
        if definition is None:
            raise DecodeTruncation(f"No definition for local type {local_type}")

        msg: dict = {}
        for fdef in definition.fields:
            value = self._read_field(fdef, definition.little_endian)
            profile = field_profile(definition.message_number, fdef.number)
            if profile is None or value is None:
                continue
            if profile.scale:
                value = value / profile.scale
            if profile.offset:
                value = value - profile.offset
            msg[profile.name] = value

        # Developer fields: size is all we need
        for dfield in definition.developer_fields:
            self._take(dfield.size)

        if compressed_ts is not None and msg.get("timestamp") is None:
            msg["timestamp"] = compressed_ts
        if msg.get("timestamp") is not None:
            self.last_timestamp = int(msg["timestamp"])

        kind = MESSAGE_NAMES.get(definition.message_number)
        if kind in self.kinds:
            self.messages.setdefault(kind, []).append(msg)

    def _read_field(self, fdef: FieldDefinition, little_endian: bool):
        raw = self._take(fdef.size)
        btype = base_type(fdef.base_type)

        # strings, byte arrays, unknown types and arrays are skipped
        if btype is None or btype.fmt is None or fdef.size != btype.size:
            return None

        value = struct.unpack(("<" if little_endian else ">") + btype.fmt, raw)[0]
        if btype.invalid is not None and value == btype.invalid:
            return None
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return value


def decode(data: bytes, kinds=DEFAULT_KINDS) -> dict[str, list[dict]]:
    """Decode a FIT payload into message dicts grouped by kind."""
    return FitDecoder(data, kinds=kinds).parse()


# ---------- canonical activity ----------

def _fit_time(value) -> float | None:
    if value is None:
        return None
    return float(value) + FIT_EPOCH_OFFSET


def _lap_from_message(msg: dict) -> Lap:
    speed = msg.get("enhanced_avg_speed")
    if speed is None:
        speed = msg.get("avg_speed")
    return Lap(
        start_time=_fit_time(msg.get("start_time")),
        end_time=_fit_time(msg.get("timestamp")),
        total_timer_time=msg.get("total_timer_time") or 0.0,
        total_distance=msg.get("total_distance") or 0.0,
        avg_heart_rate=msg.get("avg_heart_rate"),
        max_heart_rate=msg.get("max_heart_rate"),
        avg_speed=speed,
    )


def _record_from_message(msg: dict) -> Record:
    speed = msg.get("enhanced_speed")
    if speed is None:
        speed = msg.get("speed")
    return Record(
        timestamp=_fit_time(msg.get("timestamp")),
        heart_rate=msg.get("heart_rate"),
        distance=msg.get("distance"),
        speed=speed,
    )


def activity_from_messages(messages: dict[str, list[dict]]) -> Activity:
    """Build the canonical Activity from decoded lap/record messages."""
    return Activity(
        laps=tuple(_lap_from_message(m) for m in messages.get("lap", [])),
        records=tuple(_record_from_message(m) for m in messages.get("record", [])),
    )


def decode_activity(data: bytes) -> Activity:
    return activity_from_messages(decode(data))
