"""
Configuration Loader for Hubwatch.

Implements a layered configuration system:
    hardcoded defaults < .hubwatch.yml < env vars

Usage:
    from config_loader import build_unified_config, validate_config
    config = build_unified_config(repo_path=".")
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".hubwatch.yml"

# ---------------------------------------------------------------------------
# Default configuration
# ---------------------------------------------------------------------------

def get_default_config() -> Dict[str, Any]:
    """Return all configuration parameters with sensible defaults.

    This is the lowest-priority layer.  Every configurable key must appear
    here so that downstream code never needs to guard against missing keys.
    """
    return {
        # -- Hub connection --
        "hub_url": "",
        "request_timeout": 120,
        "verify_ssl": True,

        # -- Waits --
        "bom_max_wait_minutes": 5,
        "report_max_wait_minutes": 30,

        # -- Persisted scan status --
        "scan_status_directory": "",
        "expected_scan_count": 1,
    }

# ---------------------------------------------------------------------------
# Nested YAML -> flat config dict
# ---------------------------------------------------------------------------

def flatten_config_file(nested: dict) -> Dict[str, Any]:
    """Convert the nested ``.hubwatch.yml`` layout to a flat config dict.

    Mapping rules:
    - ``nested["hub"]["url"]``              -> ``hub_url``
    - ``nested["hub"]["timeout"]``          -> ``request_timeout``
    - ``nested["hub"]["verify_ssl"]``       -> ``verify_ssl``
    - ``nested["polling"][key]``            -> key (directly)
    - ``nested["scan_status"]["directory"]``     -> ``scan_status_directory``
    - ``nested["scan_status"]["expected_scans"]``-> ``expected_scan_count``
    - Top-level keys already in flat form are passed through as-is.

    Only non-None values are included.
    """
    flat: Dict[str, Any] = {}
    defaults = get_default_config()

    hub = nested.get("hub")
    if isinstance(hub, dict):
        for key, config_key in (
            ("url", "hub_url"),
            ("timeout", "request_timeout"),
            ("verify_ssl", "verify_ssl"),
        ):
            if hub.get(key) is not None:
                flat[config_key] = hub[key]

    polling = nested.get("polling")
    if isinstance(polling, dict):
        for key, value in polling.items():
            if value is not None:
                flat[key] = value

    status = nested.get("scan_status")
    if isinstance(status, dict):
        if status.get("directory") is not None:
            flat["scan_status_directory"] = status["directory"]
        if status.get("expected_scans") is not None:
            flat["expected_scan_count"] = status["expected_scans"]

    for key, value in nested.items():
        if key in defaults and value is not None and not isinstance(value, dict):
            flat[key] = value

    return flat

# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

# Mapping: (env_var_name, ...) -> (config_key, type)
# Types: "str", "bool", "int", "float"
_ENV_MAPPINGS: List[tuple] = [
    (("HUBWATCH_HUB_URL", "HUB_URL"),               "hub_url",                 "str"),
    (("HUBWATCH_REQUEST_TIMEOUT", "HUB_TIMEOUT"),   "request_timeout",         "int"),
    (("HUBWATCH_VERIFY_SSL",),                      "verify_ssl",              "bool"),
    (("HUBWATCH_BOM_MAX_WAIT_MINUTES",),            "bom_max_wait_minutes",    "float"),
    (("HUBWATCH_REPORT_MAX_WAIT_MINUTES",),         "report_max_wait_minutes", "float"),
    (("HUBWATCH_SCAN_STATUS_DIRECTORY",),           "scan_status_directory",   "str"),
    (("HUBWATCH_EXPECTED_SCAN_COUNT",),             "expected_scan_count",     "int"),
]


def _coerce(raw: str, type_tag: str) -> Any:
    """Convert a raw env-var string to the appropriate Python type."""
    if type_tag == "bool":
        return raw.lower() == "true"
    if type_tag == "int":
        return int(raw)
    if type_tag == "float":
        return float(raw)
    return raw


def load_env_overrides() -> Dict[str, Any]:
    """Load configuration values from explicitly-set environment variables.

    Only variables that are **present** in ``os.environ`` are returned.
    The first name found wins (left-to-right in the mapping tuple).
    """
    overrides: Dict[str, Any] = {}

    for env_names, config_key, type_tag in _ENV_MAPPINGS:
        for env_name in env_names:
            if env_name in os.environ:
                try:
                    overrides[config_key] = _coerce(os.environ[env_name], type_tag)
                except (ValueError, TypeError) as exc:
                    logger.warning(
                        "Ignoring env var %s: could not convert %r to %s (%s)",
                        env_name, os.environ[env_name], type_tag, exc,
                    )
                break  # first match wins

    return overrides

# ---------------------------------------------------------------------------
# Merge helpers
# ---------------------------------------------------------------------------

def deep_merge(base: dict, override: dict) -> dict:
    """Merge *override* into *base*.  Only non-None override values win."""
    merged = dict(base)
    for key, value in override.items():
        if value is not None:
            merged[key] = value
    return merged

# ---------------------------------------------------------------------------
# .hubwatch.yml loader
# ---------------------------------------------------------------------------

def load_config_file(repo_path: str = ".") -> Dict[str, Any]:
    """Load ``.hubwatch.yml`` from *repo_path* and return a flat config dict.

    Returns an empty dict if the file does not exist.
    """
    yml_path = Path(repo_path) / CONFIG_FILE_NAME
    if not yml_path.is_file():
        return {}

    logger.info("Loading %s from %s", CONFIG_FILE_NAME, yml_path)
    with open(yml_path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        logger.warning("Ignoring %s: top level is not a mapping", yml_path)
        return {}
    return flatten_config_file(raw)

# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def build_unified_config(
    repo_path: str = ".",
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build a fully-merged configuration dict.

    Layer precedence (last wins):
        1. Hard-coded defaults          (``get_default_config()``)
        2. ``.hubwatch.yml``            (``load_config_file()``)
        3. Environment variables        (``load_env_overrides()``)
        4. Explicit *overrides*         (programmatic callers)
    """
    config = get_default_config()

    file_values = load_config_file(repo_path)
    if file_values:
        config = deep_merge(config, file_values)
        logger.info("Applied %s overrides (%d keys)", CONFIG_FILE_NAME, len(file_values))

    env_overrides = load_env_overrides()
    if env_overrides:
        config = deep_merge(config, env_overrides)
        logger.debug("Applied %d env-var overrides", len(env_overrides))

    if overrides:
        config = deep_merge(config, overrides)
        logger.debug("Applied %d explicit overrides", len(overrides))

    return config

# ---------------------------------------------------------------------------
# Configuration validation
# ---------------------------------------------------------------------------

def validate_config(config: Dict[str, Any]) -> List[str]:
    """Validate a configuration dict and return a list of warnings/errors.

    Returns
    -------
    list[str]
        Human-readable warning/error messages.  An empty list means the
        config is valid.
    """
    issues: List[str] = []

    hub_url = config.get("hub_url", "")
    if not hub_url:
        issues.append("ERROR: hub_url is not set (HUB_URL or hub.url in .hubwatch.yml).")
    elif not str(hub_url).startswith(("http://", "https://")):
        issues.append(f"ERROR: hub_url '{hub_url}' must start with http:// or https://.")

    for key in ("bom_max_wait_minutes", "report_max_wait_minutes"):
        value = config.get(key)
        if not isinstance(value, (int, float)) or value <= 0:
            issues.append(f"ERROR: {key} must be a positive number.")

    timeout = config.get("request_timeout")
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        issues.append("ERROR: request_timeout must be a positive number.")

    expected = config.get("expected_scan_count")
    if not isinstance(expected, int) or expected < 1:
        issues.append("ERROR: expected_scan_count must be >= 1.")

    if config.get("verify_ssl") is False:
        issues.append(
            "WARNING: verify_ssl is false.  Hub certificates will not be checked."
        )

    return issues
