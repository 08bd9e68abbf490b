"""
Adapter for the Garmin Connect JSON fallback.

When the FIT download is refused, the activity is fetched as two JSON
documents, ``details`` (per-second metric rows described by a descriptor
list) and ``splits`` (lap summaries), bundled as ``{"details": ..., "splits":
...}``. This module turns that bundle into the same canonical Activity the
FIT decoder produces.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from lapanalyzer.errors import MalformedInputError
from lapanalyzer.models import Activity, Lap, Record
from lapanalyzer.profile import JSON_METRIC_KEYS

log = logging.getLogger(__name__)

_GMT_FORMATS = (
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
)


def parse_gmt(value: str) -> float | None:
    """Parse a Garmin ``startTimeGMT`` string into Unix seconds (UTC)."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1]
    dt = None
    for fmt in _GMT_FORMATS:
        try:
            dt = datetime.strptime(text, fmt)
            break
        except ValueError:
            continue
    if dt is None:
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            log.debug("Unparseable lap start time %r", value)
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _load(json_text) -> dict:
    if isinstance(json_text, (bytes, bytearray)):
        try:
            json_text = json_text.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"JSON input is not UTF-8: {e}") from e
    try:
        doc = json.loads(json_text)
    except (TypeError, ValueError) as e:
        raise MalformedInputError(f"Could not parse activity JSON: {e}") from e

    if not isinstance(doc, dict):
        raise MalformedInputError("Activity JSON must be an object with details and splits")
    if not isinstance(doc.get("details"), dict):
        raise MalformedInputError("Activity JSON has no details object")
    if "splits" not in doc or not isinstance(doc["splits"], (dict, list)):
        raise MalformedInputError("Activity JSON has no splits")
    return doc


def _records(details: dict) -> list[Record]:
    index = {}
    for d in details.get("metricDescriptors") or []:
        if isinstance(d, dict) and d.get("metricsIndex") is not None:
            index[d["metricsIndex"]] = d.get("key")
    log.debug("Metric keys: %s", ", ".join(str(k) for k in index.values()))

    rows = details.get("activityDetailMetrics")
    if not rows:
        rows = (details.get("geoPolylineDTO") or {}).get("metrics") or []

    records = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        values = row.get("metrics") or []
        fields = {}
        for i, value in enumerate(values):
            name = JSON_METRIC_KEYS.get(index.get(i))
            if name is not None:
                fields[name] = value
        if not isinstance(fields.get("timestamp"), (int, float)):
            continue
        fields["timestamp"] = fields["timestamp"] / 1000  # ms -> s
        records.append(Record(**fields))
    return records


def _lap_start(lap: dict) -> float | None:
    if lap.get("startTimeGMT") is not None:
        return parse_gmt(lap["startTimeGMT"])
    return lap.get("startTimeInSeconds")


def _laps(splits) -> list[Lap]:
    if isinstance(splits, dict):
        lap_rows = splits.get("lapDTOs") or []
    else:
        lap_rows = splits

    laps = []
    for row in lap_rows:
        if not isinstance(row, dict):
            continue
        duration = row.get("duration") or row.get("elapsedDuration") or 0
        start = _lap_start(row)
        laps.append(Lap(
            start_time=start,
            end_time=start + duration if start is not None else None,
            total_timer_time=duration,
            total_distance=row.get("distance") or 0,
            avg_heart_rate=row.get("averageHR") or row.get("averageHeartRate") or None,
            max_heart_rate=row.get("maxHR") or row.get("maxHeartRate") or None,
            avg_speed=row.get("averageSpeed") or None,
        ))
    return laps


def adapt(json_text) -> Activity:
    """Convert a ``{"details", "splits"}`` JSON bundle into an Activity."""
    doc = _load(json_text)
    records = _records(doc["details"])
    laps = _laps(doc["splits"])

    if records:
        log.debug("First record: %s", records[0])
        log.debug("Last record: %s", records[-1])
        log.debug(
            "Records with HR: %d, with distance: %d",
            sum(1 for r in records if r.heart_rate is not None),
            sum(1 for r in records if r.distance is not None),
        )
    log.info("JSON parsed: %d records, %d laps", len(records), len(laps))
    return Activity(laps=tuple(laps), records=tuple(records))
