from __future__ import annotations

import codecs
import logging
from pathlib import Path

import yaml

from lapanalyzer.config import Config
from lapanalyzer.container import extract, is_zip
from lapanalyzer.decoder import decode_activity, is_fit
from lapanalyzer.errors import FormatError, NotFoundError
from lapanalyzer.formatter import stats_to_dict
from lapanalyzer.json_adapter import adapt
from lapanalyzer.models import Activity, LapStat
from lapanalyzer.reconcile import BOUNDARY_TOLERANCE_M, reconcile

log = logging.getLogger(__name__)


def _looks_like_json(data: bytes) -> bool:
    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8):]
    return data.lstrip()[:1] == b"{"


def parse_activity_bytes(data: bytes, extension: str = ".fit") -> Activity:
    """Detect the payload format (ZIP, FIT or JSON) and return an Activity."""
    data = bytes(data)
    log.info("Loading %d bytes", len(data))

    if is_zip(data):
        return decode_activity(extract(data, extension=extension))
    if is_fit(data):
        return decode_activity(data)
    if _looks_like_json(data):
        return adapt(data)

    preview = data[:100].decode("utf-8", errors="replace")
    raise FormatError(f"Unexpected file format ({len(data)} bytes). Preview: {preview}")


def parse_activity_file(path: Path, extension: str = ".fit") -> Activity:
    return parse_activity_bytes(Path(path).read_bytes(), extension=extension)


def compute_lap_stats(activity: Activity, config: Config | None = None) -> list[LapStat]:
    """Reconcile laps with records. Raises NotFoundError if there are no laps."""
    if not activity.laps:
        raise NotFoundError("No laps found in this activity.")
    tolerance = config.boundary_tolerance_m if config else BOUNDARY_TOLERANCE_M
    stats = reconcile(activity.laps, activity.records, tolerance_m=tolerance)
    log.info("Computed stats for %d laps from %d records", len(stats), len(activity.records))
    return stats


def build_summary(source: Path, stats: list[LapStat]) -> dict:
    return {
        "source": source.name,
        "lap_count": len(stats),
        "laps": stats_to_dict(stats),
    }


def parse_and_write(path: Path, config: Config | None = None) -> Path:
    """Compute lap stats for an activity file, write the YAML alongside it, return the YAML path."""
    path = Path(path)
    extension = config.payload_extension if config else ".fit"
    activity = parse_activity_file(path, extension=extension)
    stats = compute_lap_stats(activity, config)
    return write_summary(path, stats)


def write_summary(path: Path, stats: list[LapStat]) -> Path:
    path = Path(path)
    yaml_path = path.with_suffix(".yaml")
    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(build_summary(path, stats), f, sort_keys=False, allow_unicode=True)
    log.info("Wrote %s", yaml_path)
    return yaml_path
