"""Validation of reload requests and collaborator options."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import voluptuous as vol
import yaml

from symsize.const import (
    CONF_ADDR2LINE_PATH,
    CONF_BINARY_PATH,
    CONF_DUMP_FLAGS,
    CONF_DUMP_TOOL_PATH,
    CONF_LOCATION_TOOL_PATH,
    CONF_NM_PATH,
    CONF_RESOLVE_LOCATIONS,
    CONF_SHOW_DATA,
    CONF_SHOW_TEXT,
    CONF_USE_REGEX_FILTERING,
    CONF_VERIFY_LOCATIONS,
    DEFAULT_DUMP_FLAGS,
    ENV_ADDR2LINE_PATH,
    ENV_NM_PATH,
)
from symsize.core import SymsizeError
from symsize.helpers import get_str_env

_LOGGER = logging.getLogger(__name__)


def path_string(value: Any) -> str:
    """Validate a filesystem path given as str or Path."""
    if isinstance(value, Path):
        value = str(value)
    if not isinstance(value, str):
        raise vol.Invalid(f"Expected a path, got {type(value).__name__}")
    value = value.strip()
    if not value:
        raise vol.Invalid("Path must not be empty")
    return value


def boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.lower()
        if lowered in ("true", "yes", "on", "enable", "1"):
            return True
        if lowered in ("false", "no", "off", "disable", "0"):
            return False
    raise vol.Invalid(f"Expected boolean value, got {value!r}")


def flag_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split()
    if not isinstance(value, (list, tuple)):
        raise vol.Invalid("Expected a list of flags")
    flags = []
    for flag in value:
        if not isinstance(flag, str) or not flag.strip():
            raise vol.Invalid(f"Invalid flag {flag!r}")
        flags.append(flag.strip())
    return flags


RELOAD_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_BINARY_PATH): path_string,
        vol.Required(CONF_DUMP_TOOL_PATH): path_string,
        vol.Optional(CONF_RESOLVE_LOCATIONS, default=False): boolean,
        vol.Optional(CONF_DUMP_FLAGS, default=list(DEFAULT_DUMP_FLAGS)): flag_list,
        vol.Optional(CONF_LOCATION_TOOL_PATH): vol.Any(None, path_string),
    }
)

OPTIONS_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_USE_REGEX_FILTERING, default=False): boolean,
        vol.Optional(CONF_VERIFY_LOCATIONS, default=False): boolean,
        vol.Optional(CONF_SHOW_TEXT, default=True): boolean,
        vol.Optional(CONF_SHOW_DATA, default=True): boolean,
        vol.Optional(CONF_NM_PATH): path_string,
        vol.Optional(CONF_ADDR2LINE_PATH): path_string,
    }
)


def load_options(path: Path | None = None) -> dict[str, Any]:
    """Load collaborator options from an optional YAML file.

    Tool paths missing from the file fall back to the SYMSIZE_NM and
    SYMSIZE_ADDR2LINE environment variables.

    Raises:
        SymsizeError: The file cannot be read or is not valid YAML
        vol.Invalid: The file content does not match OPTIONS_SCHEMA
    """
    raw: dict[str, Any] = {}
    if path is not None:
        _LOGGER.debug("Loading options from %s", path)
        try:
            with open(path, encoding="utf-8") as f_handle:
                raw = yaml.safe_load(f_handle) or {}
        except OSError as err:
            raise SymsizeError(f"Error reading options file {path}: {err}") from err
        except yaml.YAMLError as err:
            raise SymsizeError(f"Invalid YAML in {path}: {err}") from err
        if not isinstance(raw, dict):
            raise vol.Invalid(f"Options file {path} must contain a mapping")

    for key, env_var in (
        (CONF_NM_PATH, ENV_NM_PATH),
        (CONF_ADDR2LINE_PATH, ENV_ADDR2LINE_PATH),
    ):
        if key not in raw and (env_value := get_str_env(env_var)):
            raw[key] = env_value

    return OPTIONS_SCHEMA(raw)
