"""Settings resolved from ``HOURGLASS_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "HOURGLASS"

_DEFAULT_TASK_FILE = Path.home() / ".hourglass"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_path(name: str, default: Path | None) -> Path | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True)
class Settings:
    task_file: Path
    sound_file: Path | None = None
    player_command: str = ""
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            task_file=_env_path(_k("TASKS"), _DEFAULT_TASK_FILE),
            sound_file=_env_path(_k("SOUND"), None),
            player_command=_env(_k("PLAYER")).strip(),
            log_level=_env(_k("LOG_LEVEL"), "WARNING").strip().upper() or "WARNING",
        )
