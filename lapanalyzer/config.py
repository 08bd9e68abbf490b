from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass
class Config:
    boundary_tolerance_m: float = 10.0
    payload_extension: str = ".fit"
    flask_port: int = 5000
    flask_debug: bool = False
    max_upload_mb: int = 50
    log_level: str = "INFO"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> Config:
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()  # loads .env from cwd

        return cls(
            boundary_tolerance_m=float(os.environ.get("BOUNDARY_TOLERANCE_M", "10")),
            payload_extension=os.environ.get("PAYLOAD_EXTENSION", ".fit").lower(),
            flask_port=int(os.environ.get("FLASK_PORT", "5000")),
            flask_debug=os.environ.get("FLASK_DEBUG", "false").lower() in ("true", "1", "yes"),
            max_upload_mb=int(os.environ.get("MAX_UPLOAD_MB", "50")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
