"""
Renders extracted plugins as Nix module files.

``NixGenerator`` knows Nix value syntax (strings and their two escaping
styles, lists, attribute sets, identifiers). The ``generate_nix_*`` functions
build on it to emit one ``mkOption``/``mkEnableOption`` per setting and one
attribute set per plugin.
"""
import re
import logging

from option_types import TargetType
from plugin_settings import Setting, SettingsGroup

logger = logging.getLogger(__name__)

DEFAULT_INDENT = "  "

ENABLE_SETTING_NAME = "enable"
OPTION_CONFIG_INDENT_LEVEL = 2

CATEGORY_LABELS = {
    "shared": " (Shared between Vencord and Equicord)",
    "vencord": " (Vencord-only)",
    "equicord": " (Equicord-only)",
}

MODULE_HEADER_LINES = [
    "# This file is auto-generated by the plugin options extractor",
    "# DO NOT EDIT this file directly; instead update the generator",
    "",
    "{ lib, ... }:",
    "let",
    "  inherit (lib) types mkEnableOption mkOption;",
    "in",
]

INTEGER_STRING_PATTERN = re.compile(r"^-?\d+$")

NIX_KEYWORDS = {"assert", "else", "if", "in", "inherit", "let", "or", "rec", "then", "with"}

PARENTHESES_PATTERN = re.compile(r"\s*\([^)]*\)\s*")
INVALID_CHARS_PATTERN = re.compile(r"[^A-Za-z0-9_'-]")
LEADING_TRAILING_UNDERSCORES_PATTERN = re.compile(r"^_+|_+$")
MULTIPLE_UNDERSCORES_PATTERN = re.compile(r"_+")
VALID_IDENTIFIER_START_PATTERN = re.compile(r"^[A-Za-z_]")
ACRONYM_PATTERN = re.compile(r"[A-Z]{2}")

# Word boundaries for camelCase: fooBar, FOOBar, and any run of separators
LOWER_UPPER_PATTERN = re.compile(r"([a-z0-9])([A-Z])")
UPPER_UPPER_LOWER_PATTERN = re.compile(r"([A-Z])([A-Z][a-z])")
WORD_SEPARATOR_PATTERN = re.compile(r"[^A-Za-z0-9]+")

MULTILINE_SINGLE_QUOTES_PATTERN = re.compile(r"''")
MULTILINE_DOLLAR_PATTERN = re.compile(r"\$")
MULTILINE_ESCAPED_NEWLINE_PATTERN = re.compile(r"\\\n")
SINGLE_QUOTE_AT_END_PATTERN = re.compile(r"\s'$")


class NixRaw:
    """Pre-rendered Nix text, emitted verbatim."""

    def __init__(self, value) -> None:
        self.value = value

    def __eq__(self, other):
        return isinstance(other, NixRaw) and other.value == self.value

    def __repr__(self) -> str:
        return f"NixRaw({self.value!r})"


def escape_double_quoted(text):
    """Escape ``text`` for a ``"..."`` Nix string: backslashes, quotes and ``${``."""
    result = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\":
            result.append("\\\\")
        elif char == "$" and text[i + 1:i + 2] == "{":
            result.append("\\${")
            i += 1
        elif char == '"':
            result.append('\\"')
        else:
            result.append(char)
        i += 1
    return "".join(result)


def escape_multiline(text):
    """Escape ``text`` for a ``''...''`` indented Nix string."""
    escaped = MULTILINE_SINGLE_QUOTES_PATTERN.sub("'''", text)
    escaped = MULTILINE_DOLLAR_PATTERN.sub("''$", escaped)
    escaped = MULTILINE_ESCAPED_NEWLINE_PATTERN.sub(lambda _: "''\\\n", escaped)
    # A trailing ' would merge with the closing ''
    if escaped.endswith("'") and not escaped.endswith("''") and not SINGLE_QUOTE_AT_END_PATTERN.search(escaped):
        escaped += " "
    return escaped


def camel_case(text):
    """``"show_timestamps"``/``"ShowTimestamps"`` -> ``"showTimestamps"``."""
    spaced = UPPER_UPPER_LOWER_PATTERN.sub(r"\1 \2", LOWER_UPPER_PATTERN.sub(r"\1 \2", text))
    words = [w for w in WORD_SEPARATOR_PATTERN.split(spaced) if w]
    if not words:
        return ""
    parts = [words[0].lower()]
    for word in words[1:]:
        if word[0].isdigit():
            parts.append("_" + word.lower())
        else:
            parts.append(word[0].upper() + word[1:].lower())
    return "".join(parts)


class NixGenerator:
    def __init__(self, indent=DEFAULT_INDENT) -> None:
        self.indent_unit = indent

    def indent(self, level=1):
        return self.indent_unit * level

    def string(self, text, multiline=False):
        if multiline or "\n" in text:
            return f"''{escape_multiline(text)}''"
        return f'"{escape_double_quoted(text)}"'

    def number(self, n):
        if isinstance(n, float):
            return repr(n)
        return str(n)

    def boolean(self, b):
        return "true" if b else "false"

    def null(self):
        return "null"

    def raw(self, value):
        return NixRaw(value)

    def list(self, items, level=0):
        if not items:
            return "[ ]"
        lines = ["["]
        for item in items:
            lines.append(f"{self.indent(level + 1)}{self.value(item, level + 1)}")
        lines.append(f"{self.indent(level)}]")
        return "\n".join(lines)

    def attr_set(self, attrs, level=0):
        """Render a dict; keys sorted with ``enable`` first, ``None`` values skipped."""
        keys = sorted(k for k, v in attrs.items() if v is not None)
        if ENABLE_SETTING_NAME in keys:
            keys.remove(ENABLE_SETTING_NAME)
            keys.insert(0, ENABLE_SETTING_NAME)
        if not keys:
            return "{ }"
        lines = ["{"]
        for key in keys:
            lines.append(f"{self.indent(level + 1)}{self.identifier(key)} = {self.value(attrs[key], level + 1)};")
        lines.append(f"{self.indent(level)}}}")
        return "\n".join(lines)

    def value(self, value, level=0):
        if isinstance(value, NixRaw):
            return value.value
        if value is None:
            return self.null()
        if isinstance(value, bool):
            return self.boolean(value)
        if isinstance(value, (int, float)):
            return self.number(value)
        if isinstance(value, str):
            return self.string(value)
        if isinstance(value, (list, tuple)):
            return self.list(value, level)
        if isinstance(value, dict):
            return self.attr_set(value, level)
        logger.debug(f"Rendering unsupported value {value!r} as null")
        return self.null()

    def identifier(self, name):
        """
        Turn a setting or plugin name into a Nix attribute name: drop
        parenthesized text, replace invalid characters, camelCase, and prefix
        ``_`` when the result would not start with a letter or underscore.
        Names containing an acronym (two consecutive capitals) and no
        separators are kept as they are. Nix keywords come back quoted.
        """
        starts_with_underscore = name.startswith("_")
        ends_with_underscore = name.endswith("_")
        sanitized = PARENTHESES_PATTERN.sub("", name)
        sanitized = INVALID_CHARS_PATTERN.sub("_", sanitized)
        sanitized = LEADING_TRAILING_UNDERSCORES_PATTERN.sub("", sanitized)
        sanitized = MULTIPLE_UNDERSCORES_PATTERN.sub("_", sanitized)

        needs_prefix = not sanitized or not VALID_IDENTIFIER_START_PATTERN.match(sanitized)
        has_acronym = ACRONYM_PATTERN.search(sanitized) is not None
        needs_camel_case = "_" in sanitized or " " in sanitized
        if not has_acronym or needs_camel_case:
            sanitized = camel_case(sanitized)

        if starts_with_underscore and not ends_with_underscore and sanitized and VALID_IDENTIFIER_START_PATTERN.match(sanitized):
            return "_" + sanitized
        if needs_prefix or not sanitized or not VALID_IDENTIFIER_START_PATTERN.match(sanitized):
            sanitized = "_" + sanitized
        if sanitized in NIX_KEYWORDS:
            return f'"{sanitized}"'
        return sanitized


gen = NixGenerator()


def _enum_mapping_description(choices, labels):
    """``"1 = Label, 2 = Other"`` for integer choices that carry labels, or None."""
    if not labels:
        return None
    mappings = []
    for value in choices:
        if isinstance(value, bool) or not isinstance(value, int):
            continue
        label = labels.get(str(value))
        if isinstance(label, str):
            mappings.append(f"{value} = {label}")
    return ", ".join(mappings) if mappings else None


def _render_type(setting):
    if setting.target_type == TargetType.ENUM:
        rendered = " ".join(
            gen.string(v) if isinstance(v, str) else gen.value(v) for v in setting.enum_choices or ()
        )
        return gen.raw(f"{TargetType.ENUM.value} [ {rendered} ]")
    return gen.raw(setting.target_type.value)


def _render_default(setting):
    value = setting.default
    if value is None:
        return gen.raw("null")
    if setting.target_type == TargetType.FLOAT and isinstance(value, int) and not isinstance(value, bool):
        return gen.raw(f"{value:.1f}")
    if setting.target_type == TargetType.INT and isinstance(value, str) and INTEGER_STRING_PATTERN.match(value):
        return gen.raw(value)
    if isinstance(value, (str, int, float, bool, list, tuple, dict)):
        return value
    return None


def build_option_config(setting):
    """The attribute set passed to ``mkOption`` for one setting."""
    config = {"type": _render_type(setting)}
    if setting.has_default:
        config["default"] = _render_default(setting)

    if setting.description:
        description = setting.description
        is_integer_enum = setting.target_type == TargetType.ENUM and all(
            isinstance(v, int) and not isinstance(v, bool) for v in setting.enum_choices or ()
        )
        if is_integer_enum:
            mapping = _enum_mapping_description(setting.enum_choices, setting.enum_labels)
            if mapping is not None:
                description = f"{description}\n\nValues: {mapping}"
        config["description"] = gen.raw(gen.string(description, multiline=True))

    if setting.example and not (setting.description and setting.example in setting.description):
        config["example"] = setting.example
    return config


def _enable_option(description, category):
    if category is not None:
        description = (description or "") + CATEGORY_LABELS[category]
    rendered = gen.string(description, multiline=True) if description else '""'
    return gen.raw(f"mkEnableOption {rendered}")


def generate_nix_setting(setting: Setting, category=None):
    """Render one setting as ``mkOption {...}`` (``mkEnableOption`` for ``enable``)."""
    if setting.name == ENABLE_SETTING_NAME:
        return _enable_option(setting.description, category)
    return gen.raw(f"mkOption {gen.attr_set(build_option_config(setting), OPTION_CONFIG_INDENT_LEVEL)}")


def _add_attr(attrs, owners, name, value):
    """Store ``value`` under ``name``'s identifier; the first name to claim an identifier keeps it."""
    key = gen.identifier(name)
    if key in attrs:
        logger.warning(f"'{name}' and '{owners[key]}' both map to Nix attribute {key}; keeping '{owners[key]}'")
        return
    attrs[key] = value
    owners[key] = name


def _settings_attrs(settings, category):
    attrs, owners = {}, {}
    for setting in settings.values():
        if isinstance(setting, SettingsGroup):
            _add_attr(attrs, owners, setting.name, _settings_attrs(setting.settings, category))
        else:
            _add_attr(attrs, owners, setting.name, generate_nix_setting(setting, category))
    return attrs


def generate_nix_plugin(config, category=None):
    """
    Attribute set of options for a plugin. Plugins get an ``enable`` option
    unless they declare their own; settings groups nest without one.
    """
    attrs = _settings_attrs(config.settings, category)
    if ENABLE_SETTING_NAME in config.settings:
        return attrs
    return {ENABLE_SETTING_NAME: _enable_option(config.description, category), **attrs}


def generate_nix_module(plugins, category=None):
    """
    Render a complete Nix module for ``plugins`` (plugin name to ``PluginConfig``).

    Returns:
        str: module source, ending without a trailing newline.
    """
    module, owners = {}, {}
    for name, plugin in plugins.items():
        if plugin is not None:
            _add_attr(module, owners, name, generate_nix_plugin(plugin, category))
    return "\n".join(MODULE_HEADER_LINES + [gen.attr_set(module, 0)])
