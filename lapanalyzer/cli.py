from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from lapanalyzer.config import Config
from lapanalyzer.errors import LapAnalyzerError
from lapanalyzer.formatter import parse_lap_selection, render_table, select_laps, stats_to_dict
from lapanalyzer.parser import compute_lap_stats, parse_activity_file, write_summary

log = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lapanalyzer",
        description="Per-lap heart rate and pace from a FIT file, Garmin ZIP or JSON export.",
    )
    p.add_argument("path", type=Path, help="activity file (.fit, .zip or .json)")
    p.add_argument("--laps", help="laps to show, e.g. 1,3-5 (default: all)")
    p.add_argument("--min-hr-time", action="store_true", help="add the 'Min HR @' column")
    p.add_argument("--json", action="store_true", help="print JSON instead of a table")
    p.add_argument("--yaml", action="store_true", help="also write <path>.yaml with every lap")
    p.add_argument("--env-file", help="dotenv file to load settings from")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    config = Config.from_env(args.env_file)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.path.exists():
        print(f"File not found: {args.path}", file=sys.stderr)
        return 1

    try:
        selection = parse_lap_selection(args.laps)
    except ValueError:
        print(f"Invalid lap selection: {args.laps}", file=sys.stderr)
        return 1

    try:
        activity = parse_activity_file(args.path, extension=config.payload_extension)
        stats = compute_lap_stats(activity, config)
        if args.yaml:
            out_path = write_summary(args.path, stats)
            print(f"Wrote {out_path}", file=sys.stderr)
    except LapAnalyzerError as e:
        log.debug("Failed to analyse %s", args.path, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    selected = select_laps(stats, selection)
    if args.json:
        print(json.dumps(stats_to_dict(selected), indent=2))
    else:
        print(render_table(selected, show_min_hr_time=args.min_hr_time))
    return 0


if __name__ == "__main__":
    sys.exit(main())
