"""Load optional board configuration from `.taskboard/config.yaml`."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from .constants import (
    CONFIG_FILE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MOVE_MAX_RETRIES,
    DEFAULT_MOVE_TIMEOUT_SECONDS,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    LOG_LEVEL_ENV,
    STATE_DIR_ENV,
    STATE_DIR_NAME,
)
from .io_utils import _load_yaml_with_error

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


def resolve_state_dir(state_dir: Optional[str | Path] = None) -> Path:
    """Pick the board state directory.

    Args:
        state_dir: Explicit directory; wins over everything else.

    Returns:
        The explicit path, else ``$TASKBOARD_STATE_DIR``, else ``./.taskboard``.
    """
    if state_dir:
        return Path(state_dir).expanduser().resolve()
    env_dir = os.environ.get(STATE_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser().resolve()
    return (Path.cwd() / STATE_DIR_NAME).resolve()


def load_board_config(state_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional board config file.

    Args:
        state_dir: Board state directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = state_dir / CONFIG_FILE
    data, err = _load_yaml_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _positive_float(value: Any, default: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _non_negative_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default


def get_move_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the move settings.

    Args:
        config: Board configuration dictionary.

    Returns:
        A mapping with `timeout_seconds` (client wait bound) and `max_retries`
        (conditional-write retries), defaults filled in.
    """
    raw = _get_nested(config, "move")
    raw = raw if isinstance(raw, dict) else {}
    return {
        "timeout_seconds": _positive_float(raw.get("timeout_seconds"), DEFAULT_MOVE_TIMEOUT_SECONDS),
        "max_retries": _non_negative_int(raw.get("max_retries"), DEFAULT_MOVE_MAX_RETRIES),
    }


def get_server_config(config: dict[str, Any]) -> dict[str, Any]:
    raw = _get_nested(config, "server")
    raw = raw if isinstance(raw, dict) else {}
    host = raw.get("host")
    port = _non_negative_int(raw.get("port"), DEFAULT_SERVER_PORT)
    return {
        "host": host if isinstance(host, str) and host else DEFAULT_SERVER_HOST,
        "port": port or DEFAULT_SERVER_PORT,
        "cors": bool(raw.get("cors", True)),
    }


def get_logging_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the logging settings; `$TASKBOARD_LOG_LEVEL` overrides the file."""
    raw = _get_nested(config, "logging")
    raw = raw if isinstance(raw, dict) else {}
    level = os.environ.get(LOG_LEVEL_ENV) or raw.get("level") or DEFAULT_LOG_LEVEL
    level = str(level).upper()
    if level not in VALID_LOG_LEVELS:
        level = DEFAULT_LOG_LEVEL
    return {"level": level}
