import os
import re
import logging

from node_utils import (
    call_arguments,
    call_callee,
    decode_string_literal,
    find_first,
    is_string_literal,
    is_true_literal,
    member_value_node,
    node_text,
    unwrap_node,
)
from option_types import DEFINE_PLUGIN, DESCRIPTION_PROPERTY, IS_MODIFIED_PROPERTY, NAME_PROPERTY
from expression_evaluator import evaluate

logger = logging.getLogger(__name__)

PLUGIN_ENTRY_FILES = ("index.tsx", "index.ts")
PLUGIN_SOURCE_FILES = ("index.tsx", "index.ts", "settings.ts")
SETTINGS_FILES = ("settings.tsx", "settings.ts")

DIRECTORY_WORD_SEPARATOR = re.compile(r"[-_.\s]+")


class PluginSource:
    def __init__(self, directory, source, settings=None) -> None:
        self.directory = directory
        self.source = source
        self.settings = settings

    @property
    def directory_name(self):
        return os.path.basename(os.path.normpath(self.directory))

    def __repr__(self) -> str:
        return f"(directory={self.directory}, source={self.source}, settings={self.settings})"


def find_plugin_directories(plugins_dir):
    """
    List the plugin directories under ``plugins_dir``: every sub-directory with
    an ``index.ts`` or ``index.tsx``, sorted by name.
    """
    if not os.path.isdir(plugins_dir):
        return []
    directories = []
    for entry in sorted(os.listdir(plugins_dir)):
        path = os.path.join(plugins_dir, entry)
        if not os.path.isdir(path):
            continue
        if any(os.path.isfile(os.path.join(path, f)) for f in PLUGIN_ENTRY_FILES):
            directories.append(path)
    return directories


def _first_existing(directory, candidates):
    return next(
        (os.path.join(directory, c) for c in candidates if os.path.isfile(os.path.join(directory, c))),
        None,
    )


def find_plugin_source(plugin_dir):
    return _first_existing(plugin_dir, PLUGIN_SOURCE_FILES)


def find_settings_file(plugin_dir):
    return _first_existing(plugin_dir, SETTINGS_FILES)


def locate_plugin(plugin_dir):
    """Return a ``PluginSource`` for ``plugin_dir``, or None when it has no source file."""
    source = find_plugin_source(plugin_dir)
    if source is None:
        return None
    return PluginSource(plugin_dir, source, find_settings_file(plugin_dir))


def find_call(source_file, callee_name):
    """Return the first call to ``callee_name(...)`` in a parsed file, or None."""

    def is_call(node):
        if node.type != "call_expression":
            return False
        callee = call_callee(node)
        return callee is not None and callee.type == "identifier" and node_text(callee) == callee_name

    return find_first(source_file.root, is_call)


def first_object_argument(call):
    """The first argument of ``call`` when it is an object literal (through wrappers)."""
    if call is None:
        return None
    args = call_arguments(call)
    if not args:
        return None
    first = unwrap_node(args[0])
    return first if first is not None and first.type == "object" else None


def plugin_name_from_directory(directory_name):
    """``"my-plugin_x"`` -> ``"MyPluginX"``."""
    words = [w for w in DIRECTORY_WORD_SEPARATOR.split(directory_name) if w]
    return "".join(w[0].upper() + w[1:] for w in words)


def extract_plugin_info(source_file, project):
    """
    Read ``name``, ``description`` and ``isModified`` from the
    ``definePlugin({...})`` call of a plugin's entry file.

    Returns:
        dict with ``name`` (None if not a literal), ``description`` and
        ``is_modified``; None when the file has no ``definePlugin`` object.
    """
    definition = first_object_argument(find_call(source_file, DEFINE_PLUGIN))
    if definition is None:
        return None

    def string_member(name):
        value = member_value_node(definition, name)
        if value is None:
            return None
        if is_string_literal(unwrap_node(value)):
            return decode_string_literal(unwrap_node(value))
        outcome = evaluate(value, project)
        return outcome.value if outcome.ok and isinstance(outcome.value, str) else None

    return {
        "name": string_member(NAME_PROPERTY),
        "description": string_member(DESCRIPTION_PROPERTY),
        "is_modified": is_true_literal(member_value_node(definition, IS_MODIFIED_PROPERTY)),
    }
