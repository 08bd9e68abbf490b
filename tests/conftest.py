from __future__ import annotations

import io
import json
import struct
import zipfile

import pytest

from lapanalyzer.config import Config
from lapanalyzer.web import create_app

# struct format per base type tag, for writing test streams
_FORMATS = {
    0x00: "B", 0x01: "b", 0x02: "B", 0x83: "h", 0x84: "H", 0x85: "i", 0x86: "I",
    0x88: "f", 0x89: "d", 0x0A: "B", 0x8B: "H", 0x8C: "I", 0x8E: "q", 0x8F: "Q", 0x90: "Q",
}

# (field number, size, base type)
LAP_FIELDS = [(253, 4, 0x86), (2, 4, 0x86), (8, 4, 0x86), (9, 4, 0x86), (15, 1, 0x02), (16, 1, 0x02)]
RECORD_FIELDS = [(253, 4, 0x86), (3, 1, 0x02), (5, 4, 0x86), (6, 2, 0x84)]

LAP = 19
RECORD = 20


class FitBuilder:
    """Writes just enough of a FIT stream to exercise the decoder."""

    def __init__(self):
        self.body = bytearray()
        self._defs = {}

    def definition(self, local_type, message_number, fields, little_endian=True, developer_fields=()):
        header = 0x40 | local_type | (0x20 if developer_fields else 0)
        endian = "<" if little_endian else ">"
        self.body += bytes([header, 0, 0 if little_endian else 1])
        self.body += struct.pack(endian + "H", message_number)
        self.body += bytes([len(fields)])
        for triple in fields:
            self.body += bytes(triple)
        if developer_fields:
            self.body += bytes([len(developer_fields)])
            for triple in developer_fields:
                self.body += bytes(triple)
        self._defs[local_type] = (list(fields), endian, list(developer_fields))
        return self

    def data(self, local_type, *values, time_offset=None):
        if time_offset is None:
            header = local_type
        else:
            header = 0x80 | ((local_type & 0x03) << 5) | (time_offset & 0x1F)
        self.body += bytes([header])
        fields, endian, dev_fields = self._defs[local_type]
        assert len(values) == len(fields)
        for (_, size, btype), value in zip(fields, values):
            if isinstance(value, (bytes, bytearray)):
                assert len(value) == size
                self.body += value
            else:
                self.body += struct.pack(endian + _FORMATS[btype], value)
        for _, size, _ in dev_fields:
            self.body += b"\x00" * size
        return self

    def raw(self, chunk: bytes):
        self.body += chunk
        return self

    def build(self, header_size=14, data_size=None, crc=True) -> bytes:
        if data_size is None:
            data_size = len(self.body)
        header = bytes([header_size, 0x20]) + struct.pack("<H", 2132)
        header += struct.pack("<I", data_size) + b".FIT"
        header += b"\x00" * (header_size - 12)
        return header + bytes(self.body) + (b"\x00\x00" if crc else b"")


def lap_activity_fit(laps, records) -> bytes:
    """
    ``laps``: (timestamp, start_time, timer_s, distance_m, avg_hr, max_hr)
    ``records``: (timestamp, heart_rate, distance_m, speed_ms)
    Values are in physical units; scaling to FIT integers happens here.
    """
    b = FitBuilder()
    b.definition(0, RECORD, RECORD_FIELDS)
    for ts, hr, dist, speed in records:
        b.data(0, ts, hr, int(round(dist * 100)), int(round(speed * 1000)))
    b.definition(1, LAP, LAP_FIELDS)
    for ts, start, timer, dist, avg_hr, max_hr in laps:
        b.data(1, ts, start, int(round(timer * 1000)), int(round(dist * 100)), avg_hr, max_hr)
    return b.build()


def make_zip(entries, compression=zipfile.ZIP_DEFLATED) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=compression) as zf:
        for name, payload in entries:
            zf.writestr(name, payload)
    return buf.getvalue()


def garmin_json(rows, laps, descriptors=("directTimestamp", "directHeartRate", "directDistance", "directSpeed")):
    return json.dumps({
        "details": {
            "metricDescriptors": [{"metricsIndex": i, "key": k} for i, k in enumerate(descriptors)],
            "activityDetailMetrics": [{"metrics": list(r)} for r in rows],
        },
        "splits": {"lapDTOs": list(laps)},
    })


@pytest.fixture
def fit_builder():
    return FitBuilder


@pytest.fixture
def four_lap_fit():
    """1000/1000/1000/400 m laps, two records each, 4 minute kilometres."""
    base = 1_000_000_000
    records = [
        (base + 10, 120, 100.0, 4.1),
        (base + 230, 140, 900.0, 4.2),
        (base + 250, 130, 1100.0, 4.0),
        (base + 470, 150, 1900.0, 4.0),
        (base + 490, 128, 2100.0, 4.3),
        (base + 710, 160, 2900.0, 4.4),
        (base + 730, 135, 3100.0, 3.9),
        (base + 800, 150, 3350.0, 3.8),
    ]
    laps = [
        (base + 240, base, 240.0, 1000.0, 131, 141),
        (base + 480, base + 240, 240.0, 1000.0, 140, 151),
        (base + 720, base + 480, 240.0, 1000.0, 144, 161),
        (base + 816, base + 720, 96.0, 400.0, 142, 151),
    ]
    return lap_activity_fit(laps, records)


@pytest.fixture
def config():
    return Config(boundary_tolerance_m=10.0)


@pytest.fixture
def client(config):
    app = create_app(config)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c
