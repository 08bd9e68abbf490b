"""
Match per-second records to laps and compute per-lap statistics.

Lap boundaries come from the lap summaries, not the record stream: lap i
covers the cumulative distance window ``[sum(d[:i]), sum(d[:i+1]))``.
Records are assigned to a lap by their distance, with a fixed tolerance on
both ends to absorb GPS/device rounding at the boundaries. A lap that
matches no record by distance falls back to matching by timestamp.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple

from lapanalyzer.models import Lap, LapStat, Record

log = logging.getLogger(__name__)

BOUNDARY_TOLERANCE_M = 10.0


def _round(x: Optional[float]) -> Optional[int]:
    """Round half up, so 142.5 -> 143 rather than banker's 142."""
    if x is None:
        return None
    return int(math.floor(x + 0.5))


def distance_windows(laps: Sequence[Lap]) -> List[Tuple[float, float]]:
    windows = []
    cum = 0.0
    for lap in laps:
        start = cum
        cum += lap.total_distance or 0
        windows.append((start, cum))
    return windows


def _match_by_time(lap: Lap, indexed: Iterable[Tuple[int, Record]]) -> List[Tuple[int, Record]]:
    return [
        (i, r) for i, r in indexed
        if r.timestamp is not None and lap.start_time <= r.timestamp <= lap.end_time
    ]


def _lap_stat(
    number: int,
    lap: Lap,
    matched: List[Tuple[int, Record]],
) -> LapStat:
    hr_records = [(i, r) for i, r in matched if r.heart_rate is not None and r.heart_rate > 0]

    time_to_min_hr = None
    if hr_records:
        hr_values = [r.heart_rate for _, r in hr_records]
        min_hr = min(hr_values)
        max_hr = max(hr_values)
        avg_hr = _round(sum(hr_values) / len(hr_values))

        # earliest in input order, not distance order
        _, first_min = min(
            ((i, r) for i, r in hr_records if r.heart_rate == min_hr),
            key=lambda item: item[0],
        )
        if first_min.timestamp is not None and lap.start_time is not None:
            time_to_min_hr = _round(first_min.timestamp - lap.start_time)
        min_hr = _round(min_hr)
        max_hr = _round(max_hr)
    else:
        # Lap summaries carry no minimum
        min_hr = None
        max_hr = _round(lap.max_heart_rate or None)
        avg_hr = _round(lap.avg_heart_rate or None)

    total_distance = lap.total_distance or 0
    duration = None
    if lap.start_time is not None and lap.end_time is not None:
        duration = lap.end_time - lap.start_time
    elapsed = lap.total_timer_time or duration or 0

    avg_pace = None
    if total_distance > 0 and elapsed > 0:
        avg_pace = elapsed * 1000 / total_distance

    return LapStat(
        lap_number=number,
        total_distance=total_distance,
        avg_pace=avg_pace,
        min_hr=min_hr,
        max_hr=max_hr,
        avg_hr=avg_hr,
        time_to_min_hr=time_to_min_hr,
        elapsed_time=elapsed,
    )


def reconcile(
    laps: Sequence[Lap],
    records: Sequence[Record],
    tolerance_m: float = BOUNDARY_TOLERANCE_M,
) -> List[LapStat]:
    """
    Compute one LapStat per lap, in lap order.

    Pure function: never raises on missing data, absent values come back as
    ``None``. Selecting which laps to display happens afterwards and never
    changes these numbers.
    """
    indexed = list(enumerate(records))
    by_distance = sorted(
        ((i, r) for i, r in indexed if r.distance is not None),
        key=lambda item: item[1].distance,
    )

    stats = []
    for number, (lap, (start, end)) in enumerate(zip(laps, distance_windows(laps)), start=1):
        matched = [
            (i, r) for i, r in by_distance
            if start - tolerance_m <= r.distance <= end + tolerance_m
        ]

        if not matched and lap.start_time is not None and lap.end_time is not None:
            matched = _match_by_time(lap, indexed)
            source = "time"
        else:
            source = "distance"

        stat = _lap_stat(number, lap, matched)
        log.debug(
            "Lap %d: %d records by %s, dist %.0f-%.0fm, min HR %s",
            number, len(matched), source, start, end, stat.min_hr,
        )
        stats.append(stat)
    return stats
