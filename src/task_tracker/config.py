"""Load optional tracker configuration from `.tt/config.yaml`."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .constants import (
    CONFIG_FILE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    STATE_DIR_NAME,
)
from .io_utils import _load_data_with_error

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
VALID_OUTPUT_FORMATS = {"text", "json"}


def load_tracker_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional tracker config file.

    Args:
        project_dir: Directory holding the `.tt/` state directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    if not path.exists():
        return {}, None
    data, err = _load_data_with_error(path, {})
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


def get_log_level(config: dict[str, Any]) -> str:
    """Return the configured log level, falling back to the default."""
    raw = config.get("log_level")
    if isinstance(raw, str) and raw.upper() in VALID_LOG_LEVELS:
        return raw.upper()
    return DEFAULT_LOG_LEVEL


def get_output_format(config: dict[str, Any]) -> str:
    raw = config.get("output")
    if isinstance(raw, str) and raw in VALID_OUTPUT_FORMATS:
        return raw
    return DEFAULT_OUTPUT_FORMAT


def get_server_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract host/port for the RPC server.

    Args:
        config: Tracker configuration dictionary.

    Returns:
        A mapping with `host` and `port`, defaults filled in.
    """
    host = _get_nested(config, "server", "host")
    port = _get_nested(config, "server", "port")
    return {
        "host": host if isinstance(host, str) and host else DEFAULT_SERVER_HOST,
        "port": port if isinstance(port, int) and port > 0 else DEFAULT_SERVER_PORT,
    }
