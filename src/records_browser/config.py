"""Configuration persistence: load and save."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from records_browser.models import (
    CONFIG_APP_NAME,
    DEFAULT_API_BASE_URL,
    DEFAULT_COLLECTION,
    DEFAULT_DEDUPE_HORIZON_SECONDS,
    DEFAULT_DURATION_COLUMNS,
    DEFAULT_ITEMS_KEY,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PLAYER_COMMAND,
    DEFAULT_SEARCH_DEBOUNCE_MS,
    DEFAULT_SNAPSHOT_CAP,
    MAX_PAGE_SIZE,
    MAX_SNAPSHOT_CAP,
    SORT_DIRECTIONS,
    SessionState,
    UserConfig,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Configuration Persistence
# ============================================================================
#
# Validation contract: _dict_to_config() guarantees valid output for any input:
#
#   Field                    Rule                          Handler
#   ───────────────────────  ────────────────────────────  ─────────────────────
#   page_size                1 ≤ x ≤ MAX_PAGE_SIZE         _clamp_int
#   snapshot_cap             1 ≤ x ≤ MAX_SNAPSHOT_CAP      _clamp_int
#   search_debounce_ms       0 ≤ x ≤ 5000                  _clamp_int
#   dedupe_horizon_seconds   > 0                           _parse_horizon
#   session.sort_direction   in SORT_DIRECTIONS            _parse_session_state
#   duration_columns[]       non-empty strings             _parse_str_list
#   scalar fields            type-checked via _safe_get()  _dict_to_config
#
# SessionState.__post_init__ clamps page_size and sort_direction again for
# instances built directly rather than deserialized.
#
CONFIG_FILENAME = "config.json"
MAX_SEARCH_DEBOUNCE_MS = 5000


def get_config_path() -> Path:
    """Get the path to the configuration file.

    Uses platformdirs for cross-platform config directory:
    - Linux: ~/.config/records-browser/config.json
    - macOS: ~/Library/Application Support/records-browser/config.json
    - Windows: %APPDATA%/records-browser/config.json
    """
    config_dir = Path(user_config_dir(CONFIG_APP_NAME))
    return config_dir / CONFIG_FILENAME


def _config_to_dict(config: UserConfig) -> dict[str, Any]:
    """Serialize UserConfig to a JSON-compatible dictionary."""
    return {
        "version": config.version,
        "api_base_url": config.api_base_url,
        "api_token": config.api_token,
        "collection": config.collection,
        "items_key": config.items_key,
        "page_size": config.page_size,
        "snapshot_cap": config.snapshot_cap,
        "search_debounce_ms": config.search_debounce_ms,
        "dedupe_horizon_seconds": config.dedupe_horizon_seconds,
        "trust_server_total": config.trust_server_total,
        "request_timeout_seconds": config.request_timeout_seconds,
        "unread_poll_seconds": config.unread_poll_seconds,
        "player_command": config.player_command,
        "duration_columns": list(config.duration_columns),
        "session": {
            "search": config.session.search,
            "sort_column": config.session.sort_column,
            "sort_direction": config.session.sort_direction,
            "page_size": config.session.page_size,
        },
    }


def _safe_get(data: dict, key: str, default: Any, expected_type: type | tuple[type, ...]) -> Any:
    """Safely get a value from dict with type validation.

    Returns the default if key is missing or value has wrong type.
    """
    value = data.get(key, default)
    # bool is an int subclass; a stray true/false must not pass as a number.
    if isinstance(value, bool) and expected_type is not bool:
        return default
    if not isinstance(value, expected_type):
        return default
    return value


def _clamp_int(data: dict[str, Any], key: str, default: int, low: int, high: int) -> int:
    """Read an int field and clamp it into ``[low, high]``, warning when it moved."""
    value = _safe_get(data, key, default, int)
    clamped = max(low, min(value, high))
    if clamped != value:
        logger.warning("Config %s=%d out of range, using %d", key, value, clamped)
    return clamped


def _parse_horizon(data: dict[str, Any]) -> float:
    value = _safe_get(data, "dedupe_horizon_seconds", DEFAULT_DEDUPE_HORIZON_SECONDS, (int, float))
    if value <= 0:
        logger.warning("Config dedupe_horizon_seconds=%r must be positive, using default", value)
        return DEFAULT_DEDUPE_HORIZON_SECONDS
    return float(value)


def _parse_str_list(data: dict[str, Any], key: str, default: tuple[str, ...]) -> list[str]:
    raw = data.get(key)
    if not isinstance(raw, list):
        return list(default)
    return [item for item in raw if isinstance(item, str) and item]


def _parse_session_state(data: dict[str, Any]) -> SessionState:
    """Parse the session state section from config data."""
    session_data = data.get("session", {})
    if not isinstance(session_data, dict):
        session_data = {}

    sort_column_raw = session_data.get("sort_column")
    sort_column = sort_column_raw if isinstance(sort_column_raw, str) and sort_column_raw else None

    sort_direction = _safe_get(session_data, "sort_direction", "asc", str)
    if sort_direction not in SORT_DIRECTIONS:
        sort_direction = "asc"

    return SessionState(
        search=_safe_get(session_data, "search", "", str),
        sort_column=sort_column,
        sort_direction=sort_direction,
        page_size=_clamp_int(session_data, "page_size", DEFAULT_PAGE_SIZE, 1, MAX_PAGE_SIZE),
    )


def _dict_to_config(data: dict[str, Any]) -> UserConfig:
    """Deserialize a dictionary to UserConfig with type validation."""
    return UserConfig(
        api_base_url=(
            _safe_get(data, "api_base_url", DEFAULT_API_BASE_URL, str) or DEFAULT_API_BASE_URL
        ),
        api_token=_safe_get(data, "api_token", "", str),
        collection=_safe_get(data, "collection", DEFAULT_COLLECTION, str) or DEFAULT_COLLECTION,
        items_key=_safe_get(data, "items_key", DEFAULT_ITEMS_KEY, str) or DEFAULT_ITEMS_KEY,
        page_size=_clamp_int(data, "page_size", DEFAULT_PAGE_SIZE, 1, MAX_PAGE_SIZE),
        snapshot_cap=_clamp_int(data, "snapshot_cap", DEFAULT_SNAPSHOT_CAP, 1, MAX_SNAPSHOT_CAP),
        search_debounce_ms=_clamp_int(
            data, "search_debounce_ms", DEFAULT_SEARCH_DEBOUNCE_MS, 0, MAX_SEARCH_DEBOUNCE_MS
        ),
        dedupe_horizon_seconds=_parse_horizon(data),
        trust_server_total=_safe_get(data, "trust_server_total", False, bool),
        request_timeout_seconds=_clamp_int(data, "request_timeout_seconds", 30, 1, 600),
        unread_poll_seconds=_clamp_int(data, "unread_poll_seconds", 30, 0, 3600),
        player_command=_safe_get(data, "player_command", DEFAULT_PLAYER_COMMAND, str),
        duration_columns=_parse_str_list(data, "duration_columns", DEFAULT_DURATION_COLUMNS),
        session=_parse_session_state(data),
        version=_safe_get(data, "version", 1, int),
    )


def load_config() -> UserConfig:
    """Load configuration from disk.

    Returns default config if file doesn't exist or is corrupted.
    Logs specific errors to help diagnose config issues.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return UserConfig()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            logger.warning("Config file is not a JSON object, using defaults")
            return UserConfig()
        return _dict_to_config(data)
    except json.JSONDecodeError as e:
        logger.warning("Config file has invalid JSON, using defaults: %s", e)
        return UserConfig()
    except (KeyError, TypeError) as e:
        logger.warning("Config file has invalid structure, using defaults: %s", e)
        return UserConfig()
    except OSError as e:
        logger.warning("Could not read config file, using defaults: %s", e)
        return UserConfig()


def save_config(config: UserConfig) -> bool:
    """Save configuration to disk atomically.

    Uses write-to-tempfile + os.replace() to prevent partial writes
    on crash/interrupt from corrupting the config file.

    Creates the config directory if it doesn't exist.
    Returns True on success, False on failure.
    """
    config_path = get_config_path()

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = _config_to_dict(config)
        json_str = json.dumps(data, indent=2, ensure_ascii=False)
        fd, tmp_path = tempfile.mkstemp(dir=config_path.parent, suffix=".tmp", prefix=".config-")
        closed = False
        try:
            os.write(fd, json_str.encode("utf-8"))
            os.close(fd)
            closed = True
            os.replace(tmp_path, config_path)
        except BaseException:
            if not closed:
                os.close(fd)
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return True
    except OSError as e:
        logger.error("Failed to save config: %s", e)
        return False


__all__ = [
    "CONFIG_FILENAME",
    "get_config_path",
    "load_config",
    "save_config",
]
