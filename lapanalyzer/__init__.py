"""Per-lap heart-rate and pace statistics from FIT files and Garmin JSON exports."""

__version__ = "0.1.0"
