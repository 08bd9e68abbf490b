from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from lapanalyzer.models import LapStat

MISSING = "--"

TABLE_HEADER = "Lap  | Distance  | Avg Pace  | Min HR | Max HR | Avg HR"
TABLE_SEP = "-----|-----------|-----------|--------|--------|--------"
MIN_HR_AT_HEADER = " | Min HR @"
MIN_HR_AT_SEP = "|----------"


def format_pace(seconds: Optional[float]) -> str:
    """Seconds -> ``m:ss``. Also used for plain durations."""
    if seconds is None or not math.isfinite(seconds) or seconds <= 0:
        return MISSING
    total = int(math.floor(seconds + 0.5))
    return f"{total // 60}:{total % 60:02d}"


def format_clock(seconds: Optional[int]) -> str:
    """Signed ``m:ss`` offset; zero is a real value here."""
    if seconds is None:
        return MISSING
    sign = "-" if seconds < 0 else ""
    total = abs(int(seconds))
    return f"{sign}{total // 60}:{total % 60:02d}"


def format_distance(meters: Optional[float]) -> str:
    if meters is None or meters <= 0:
        return MISSING
    return f"{meters / 1000:.2f}"


def _num(value: Optional[int]) -> str:
    return MISSING if value is None else str(value)


def format_lap_label(stat: LapStat) -> str:
    """Label for the lap picker, e.g. ``Lap 2 - 1.00 km, 4:05``."""
    return (
        f"Lap {stat.lap_number} - {format_distance(stat.total_distance)} km, "
        f"{format_pace(stat.elapsed_time)}"
    )


def select_laps(
    stats: Sequence[LapStat],
    selection: Optional[Iterable[Tuple[int, int]]] = None,
) -> List[LapStat]:
    """Display-time filter over inclusive ``(lo, hi)`` ranges. Keeps lap order."""
    if selection is None:
        return list(stats)
    ranges = list(selection)
    return [s for s in stats if any(lo <= s.lap_number <= hi for lo, hi in ranges)]


def render_table(stats: Sequence[LapStat], show_min_hr_time: bool = False) -> str:
    if not stats:
        return "No laps selected."

    header = TABLE_HEADER + (MIN_HR_AT_HEADER if show_min_hr_time else "")
    sep = TABLE_SEP + (MIN_HR_AT_SEP if show_min_hr_time else "")

    rows = []
    for s in stats:
        lap = str(s.lap_number).rjust(3)
        dist = (format_distance(s.total_distance) + " km" if s.total_distance else MISSING).rjust(9)
        pace = (format_pace(s.avg_pace) + "/km" if s.avg_pace else MISSING).rjust(9)
        row = (
            f" {lap} | {dist} | {pace} | {_num(s.min_hr).rjust(6)} | "
            f"{_num(s.max_hr).rjust(6)} | {_num(s.avg_hr).rjust(6)}"
        )
        if show_min_hr_time:
            row += f" | {format_clock(s.time_to_min_hr).rjust(8)}"
        rows.append(row)

    return "\n".join([header, sep, *rows])


def stats_to_dict(stats: Sequence[LapStat]) -> List[dict]:
    return [s.to_dict() for s in stats]


def parse_lap_selection(text: Optional[str]) -> Optional[List[Tuple[int, int]]]:
    """``"1,3-5"`` -> ``[(1, 1), (3, 5)]``. None or empty selects every lap.

    Ranges are kept as bounds, never expanded.
    """
    if not text:
        return None
    ranges = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            lo, hi = part.split("-", 1)
            ranges.append((int(lo), int(hi)))
        else:
            n = int(part)
            ranges.append((n, n))
    return ranges
