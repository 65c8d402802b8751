"""
Settings for wireview.

Reads WIREVIEW_* values from backend/.env (python-dotenv) and the process
environment. Real environment variables win over the .env file.
"""

import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PATH = Path(__file__).resolve().parent / ".env"
_DEFAULT_WORKSPACE = Path(__file__).resolve().parent.parent / ".workspace"


@dataclass(frozen=True)
class Settings:
    target_size: float = 1.5           # converter output extent
    viewer_target_size: float = 0.5    # size meshes are fitted to on load
    workspace_dir: Path = _DEFAULT_WORKSPACE
    max_upload_size: int = 10 * 1024 * 1024
    log_level: int = logging.INFO


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(env_path: Path = ENV_PATH) -> Settings:
    """Load .env into os.environ (without overriding) and build Settings."""
    load_dotenv(env_path, override=False)

    level_name = os.environ.get("WIREVIEW_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"WIREVIEW_LOG_LEVEL: unknown level {level_name!r}")

    workspace = os.environ.get("WIREVIEW_WORKSPACE")
    return Settings(
        target_size=_env_float("WIREVIEW_TARGET_SIZE", Settings.target_size),
        viewer_target_size=_env_float(
            "WIREVIEW_VIEWER_TARGET_SIZE", Settings.viewer_target_size),
        workspace_dir=Path(workspace) if workspace else _DEFAULT_WORKSPACE,
        max_upload_size=int(_env_float(
            "WIREVIEW_MAX_UPLOAD_SIZE", Settings.max_upload_size)),
        log_level=level,
    )
