from lapanalyzer.decoder import decode_activity
from lapanalyzer.models import Lap, Record
from lapanalyzer.reconcile import distance_windows, reconcile


def _lap(distance, start=None, end=None, timer=0.0, avg_hr=None, max_hr=None):
    return Lap(
        start_time=start,
        end_time=end,
        total_timer_time=timer,
        total_distance=distance,
        avg_heart_rate=avg_hr,
        max_heart_rate=max_hr,
    )


def test_distance_windows_are_cumulative():
    laps = [_lap(1000), _lap(1000), _lap(0), _lap(400)]
    assert distance_windows(laps) == [(0, 1000), (1000, 2000), (2000, 2000), (2000, 2400)]


def test_four_lap_scenario(four_lap_fit):
    activity = decode_activity(four_lap_fit)
    stats = reconcile(activity.laps, activity.records)

    assert [s.lap_number for s in stats] == [1, 2, 3, 4]
    assert [s.min_hr for s in stats] == [120, 130, 128, 135]
    assert [s.max_hr for s in stats] == [140, 150, 160, 150]
    assert [s.avg_hr for s in stats] == [130, 140, 144, 143]
    assert [s.time_to_min_hr for s in stats] == [10, 10, 10, 10]
    assert [s.elapsed_time for s in stats] == [240.0, 240.0, 240.0, 96.0]
    assert [s.avg_pace for s in stats] == [240.0, 240.0, 240.0, 240.0]


def test_boundary_tolerance():
    laps = [_lap(1000), _lap(1000)]
    inside = reconcile(laps, [Record(distance=1009.9, heart_rate=150)])
    outside = reconcile(laps, [Record(distance=1010.1, heart_rate=150)])

    # 1009.9 is in lap 1 by tolerance and in lap 2 by its window
    assert inside[0].max_hr == 150
    assert inside[1].max_hr == 150
    assert outside[0].max_hr is None
    assert outside[1].max_hr == 150


def test_tolerance_past_last_lap():
    laps = [_lap(400)]
    assert reconcile(laps, [Record(distance=409.9, heart_rate=140)])[0].min_hr == 140
    assert reconcile(laps, [Record(distance=410.1, heart_rate=140)])[0].min_hr is None


def test_custom_tolerance():
    laps = [_lap(1000), _lap(1000)]
    stats = reconcile(laps, [Record(distance=1030, heart_rate=150)], tolerance_m=50)
    assert stats[0].max_hr == 150


def test_timestamp_fallback_replaces_empty_distance_match():
    laps = [_lap(1000, start=100, end=200), _lap(1000, start=200, end=300)]
    records = [
        Record(timestamp=100, heart_rate=120),  # no distance
        Record(timestamp=200, heart_rate=125),  # inclusive on both laps
        Record(timestamp=250, heart_rate=140, distance=1500),
    ]
    stats = reconcile(laps, records)

    assert (stats[0].min_hr, stats[0].max_hr) == (120, 125)
    assert stats[0].time_to_min_hr == 0
    # lap 2 matched by distance, so timestamp matches are ignored
    assert (stats[1].min_hr, stats[1].max_hr) == (140, 140)


def test_no_fallback_without_both_timestamps():
    laps = [_lap(1000, start=100, end=None, max_hr=170, avg_hr=150)]
    stats = reconcile(laps, [Record(timestamp=150, heart_rate=120)])
    assert stats[0].min_hr is None
    assert stats[0].max_hr == 170
    assert stats[0].avg_hr == 150


def test_zero_heart_rate_is_dropout():
    laps = [_lap(1000, start=0)]
    records = [
        Record(timestamp=1, distance=10, heart_rate=0),
        Record(timestamp=2, distance=20, heart_rate=None),
        Record(timestamp=3, distance=30, heart_rate=131),
    ]
    stat = reconcile(laps, records)[0]
    assert (stat.min_hr, stat.max_hr, stat.avg_hr) == (131, 131, 131)
    assert stat.time_to_min_hr == 3


def test_lap_summary_fallback_when_no_heart_rate():
    laps = [_lap(1000, timer=300, avg_hr=151.4, max_hr=169)]
    stat = reconcile(laps, [Record(distance=500)])[0]
    assert stat.min_hr is None
    assert stat.max_hr == 169
    assert stat.avg_hr == 151
    assert stat.time_to_min_hr is None


def test_time_to_min_uses_first_record_in_input_order():
    laps = [_lap(1000, start=1000)]
    # distance order puts the later sample first
    records = [
        Record(timestamp=1030, distance=600, heart_rate=118),
        Record(timestamp=1060, distance=300, heart_rate=118),
        Record(timestamp=1090, distance=900, heart_rate=130),
    ]
    assert reconcile(laps, records)[0].time_to_min_hr == 30


def test_time_to_min_needs_timestamps():
    laps = [_lap(1000, start=None)]
    stat = reconcile(laps, [Record(timestamp=5, distance=1, heart_rate=120)])[0]
    assert stat.min_hr == 120
    assert stat.time_to_min_hr is None


def test_average_rounds_half_up():
    laps = [_lap(1000)]
    records = [Record(distance=1, heart_rate=142), Record(distance=2, heart_rate=143)]
    assert reconcile(laps, records)[0].avg_hr == 143


def test_elapsed_prefers_timer_time():
    laps = [
        _lap(1000, start=0, end=400, timer=300),
        _lap(1000, start=400, end=700),
        _lap(0),
    ]
    stats = reconcile(laps, [])
    assert stats[0].elapsed_time == 300
    assert stats[0].avg_pace == 300
    assert stats[1].elapsed_time == 300
    assert stats[2].elapsed_time == 0
    assert stats[2].avg_pace is None


def test_unsorted_records_are_tolerated():
    laps = [_lap(1000), _lap(1000)]
    records = [
        Record(distance=1800, heart_rate=150),
        Record(distance=200, heart_rate=120),
        Record(distance=1200, heart_rate=140),
        Record(distance=800, heart_rate=125),
    ]
    stats = reconcile(laps, records)
    assert (stats[0].min_hr, stats[0].max_hr) == (120, 125)
    assert (stats[1].min_hr, stats[1].max_hr) == (140, 150)


def test_reconcile_is_deterministic(four_lap_fit):
    activity = decode_activity(four_lap_fit)
    first = reconcile(activity.laps, activity.records)
    second = reconcile(activity.laps, activity.records)
    assert first == second


def test_one_stat_per_lap_even_without_records():
    laps = [_lap(1000), _lap(500)]
    stats = reconcile(laps, [])
    assert len(stats) == 2
    assert all(s.min_hr is None for s in stats)


def test_no_laps():
    assert reconcile([], [Record(distance=1, heart_rate=100)]) == []
