"""
Configuration for the plugin options extractor.

Every key has a built-in default; a YAML file passed with ``--config`` is
deep-merged over ``DEFAULT_CONFIG``, so it only needs to list what it changes::

    concurrency: 8
    path_aliases:
      "@mylib": src/mylib
    plugin_renames:
      oneko: CursorBuddy
    external_enums:
      ActivityType:
        HANG_STATUS: 6
"""
import copy
import logging

try:
    import yaml
except ImportError:
    raise ImportError("Missing required dependency 'PyYAML': install with pip install pyyaml")

from option_types import DEFAULT_LOOKUP_TABLES

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or is malformed."""
    pass


DEFAULT_CONFIG = {
    "concurrency": 5,
    "progress_interval": 10,
    "vencord_plugins_dir": "src/plugins",
    "equicord_plugins_dir": "src/equicordplugins",
    "path_aliases": {
        "@api": "src/api",
        "@components": "src/components",
        "@utils": "src/utils",
        "@shared": "src/shared",
        "@plugins": "src/plugins",
        "@equicordplugins": "src/equicordplugins",
        "@webpack": "src/webpack",
        "@vencord/discord-types": "packages/discord-types",
    },
    "plugin_renames": {"oneko": "CursorBuddy"},
    "external_enums": {},
    "lookup_tables": DEFAULT_LOOKUP_TABLES,
}

POSITIVE_INT_KEYS = ("concurrency", "progress_interval")
MAPPING_KEYS = ("path_aliases", "plugin_renames", "external_enums")


def deep_merge(base, override):
    """Return ``base`` with ``override`` merged in; nested dicts merge, everything else replaces."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config):
    for key in POSITIVE_INT_KEYS:
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigError(f"'{key}' must be a positive integer, got {value!r}")
    for key in MAPPING_KEYS:
        if not isinstance(config.get(key), dict):
            raise ConfigError(f"'{key}' must be a mapping")
    for enum_name, members in config["external_enums"].items():
        if not isinstance(members, dict):
            raise ConfigError(f"external enum '{enum_name}' must map member names to values, got {members!r}")
        for member, value in members.items():
            if not isinstance(member, str) or isinstance(value, bool) or not isinstance(value, (int, str)):
                raise ConfigError(f"external enum member {enum_name}.{member} must be a string or integer, got {value!r}")
    tables = config.get("lookup_tables")
    if not isinstance(tables, list):
        raise ConfigError("'lookup_tables' must be a list")
    for table in tables:
        if not isinstance(table, dict):
            raise ConfigError(f"lookup table entry must be a mapping, got {table!r}")
        missing = {"helper", "base_constant", "revision_constant", "template"} - set(table)
        if missing:
            raise ConfigError(f"lookup table entry is missing {sorted(missing)}")
    return config


def load_config(path=None):
    """
    Load the extractor configuration.

    Args:
        path: Optional YAML file merged over ``DEFAULT_CONFIG``.

    Returns:
        dict: The effective configuration.

    Raises:
        ConfigError: When the file cannot be read, is not valid YAML, is not a
            mapping, or has values of the wrong type.
    """
    if path is None:
        return copy.deepcopy(DEFAULT_CONFIG)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    unknown = set(data) - set(DEFAULT_CONFIG)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
        data = {k: v for k, v in data.items() if k in DEFAULT_CONFIG}
    logger.debug(f"Loaded config from {path}")
    return validate_config(deep_merge(DEFAULT_CONFIG, data))
