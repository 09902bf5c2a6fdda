"""Config manager — read ``sim_config.json``, overlay env vars, validate.

Sections map one-to-one onto the simulator's config cells (watchdog,
leds, table, network, wifi) plus ``system`` for process-level settings.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from cncsim.config.persistence import atomic_write_json
from cncsim.core.models.config import SimConfig

_log = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "sim_config.json"
_CONFIG_FILE_ENV = "CNCSIM_CONFIG_FILE"

# env var → (section, field, type)
_ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "CNCSIM_LOG_LEVEL": ("system", "log_level", str),
    "CNCSIM_WEBUI_PORT": ("system", "webui_port", int),
    "CNCSIM_STATE_FILE": ("system", "state_file", str),
    "CNCSIM_WATCHDOG_ENABLED": ("watchdog", "enabled", bool),
    "CNCSIM_WATCHDOG_TIMEOUT": ("watchdog", "timeout_seconds", int),
}

_TRUTHY = ("1", "true", "yes", "on")


def _coerce(value: str, target_type: type) -> object:
    if target_type is bool:
        return value.strip().lower() in _TRUTHY
    return target_type(value)


def apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``CNCSIM_*`` environment variables onto *raw* in place."""
    for env_key, (section, field, target_type) in _ENV_OVERRIDES.items():
        env_val = os.environ.get(env_key)
        if env_val is None:
            continue
        raw.setdefault(section, {})[field] = _coerce(env_val, target_type)
        _log.debug("Env override %s -> %s.%s = %r", env_key, section, field, env_val)
    return raw


def load_config(config_path: Path | str | None = None) -> SimConfig:
    """Load, override, and validate the simulator configuration.

    Args:
        config_path: Path to ``sim_config.json``.  When *None*, falls back
            to the ``CNCSIM_CONFIG_FILE`` env-var and then the copy shipped
            with the package.

    Raises:
        FileNotFoundError: If the config file does not exist.
        pydantic.ValidationError: If the file contents are invalid.
    """
    path = _resolve_config_path(config_path)
    _log.info("Loading config from %s", path)
    return SimConfig(**apply_env_overrides(_read_raw(path)))


def save_section(
    section: str,
    values: dict[str, Any],
    config_path: Path | str | None = None,
) -> SimConfig:
    """Merge *values* into one config *section* and persist it atomically.

    The whole file is validated before anything is written, so a rejected
    update leaves the file untouched.  Environment overrides are not
    written back.

    Raises:
        KeyError: If *section* is not a top-level config section.
        pydantic.ValidationError: If the merged section is invalid.
    """
    if section not in SimConfig.model_fields:
        raise KeyError(f"Unknown config section: {section}")
    path = _resolve_config_path(config_path)
    raw = _read_raw(path)
    raw.setdefault(section, {}).update(values)

    validated = SimConfig(**raw)
    atomic_write_json(path, validated.model_dump())
    _log.info("Saved config section '%s' to %s", section, path)
    return validated


def _read_raw(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def _resolve_config_path(config_path: Path | str | None) -> Path:
    if config_path is not None:
        path = Path(config_path)
    else:
        env = os.environ.get(_CONFIG_FILE_ENV)
        path = Path(env) if env else _DEFAULT_CONFIG_PATH
    if not path.is_file():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            f"Create sim_config.json or set {_CONFIG_FILE_ENV} to a valid path."
        )
    return path
