#!/usr/bin/env python3
"""
Walks the object literal passed to ``definePluginSettings()`` and builds the
tree of ``Setting``s and ``SettingsGroup``s.

For every leaf the pipeline is::

    options_matcher.extract_choices  ->  type_classifier.classify
        -> default_resolver.resolve_default  ->  Setting

A leaf that cannot be classified with confidence is left out of the tree (and
logged at DEBUG) rather than emitted with a made-up type.
"""
import logging

from node_utils import (
    decode_string_literal,
    has_property,
    is_string_literal,
    is_true_literal,
    member_value_node,
    object_pairs,
    unwrap_node,
)
from option_types import (
    DESCRIPTION_PROPERTY,
    HIDDEN_PROPERTY,
    NAME_PROPERTY,
    NOT_SET,
    PLACEHOLDER_PROPERTY,
    RESTART_NEEDED_PROPERTY,
    RESTART_REQUIRED_SUFFIX,
    TYPE_PROPERTY,
    TargetType,
)
from outcome import ErrorKind, Outcome
from options_matcher import extract_choices
from default_shape import inspect_default
from type_classifier import classify, option_type_of
from default_resolver import resolve_default
from plugin_settings import Setting, SettingsGroup

logger = logging.getLogger(__name__)


def _string_property(obj, name):
    value = unwrap_node(member_value_node(obj, name))
    if is_string_literal(value):
        return decode_string_literal(value)
    return None


def is_settings_group(obj):
    """
    A group has at least one object-literal-valued member and neither a
    ``type`` nor a ``description`` of its own.
    """
    if has_property(obj, TYPE_PROPERTY) or has_property(obj, DESCRIPTION_PROPERTY):
        return False
    return any(
        unwrap_node(pair.child_by_field_name("value")).type == "object"
        for _, pair in object_pairs(obj)
    )


def is_hidden(obj):
    return is_true_literal(member_value_node(obj, HIDDEN_PROPERTY))


def setting_description(obj):
    """``description`` (or ``name``) plus the restart marker when ``restartNeeded: true``."""
    description = _string_property(obj, DESCRIPTION_PROPERTY)
    if description is None:
        description = _string_property(obj, NAME_PROPERTY)
    if description is not None and is_true_literal(member_value_node(obj, RESTART_NEEDED_PROPERTY)):
        description += RESTART_REQUIRED_SUFFIX
    return description


def setting_example(obj, description):
    placeholder = _string_property(obj, PLACEHOLDER_PROPERTY)
    if placeholder is None:
        return None
    if description is not None and placeholder in description:
        return None
    return placeholder


def extract_setting(name, obj, project) -> Outcome:
    """
    Classify one leaf setting.

    Args:
        name: The setting's key.
        obj: The setting's object literal.
        project: ``SourceProject`` used for evaluation.

    Returns:
        Outcome: a ``Setting``, or an error when the setting cannot be
        classified with confidence.
    """
    option_type = option_type_of(obj, project)
    choices = extract_choices(obj, project).value
    evidence = inspect_default(obj, project)

    if not option_type.ok:
        if evidence.shape == "absent" and choices.is_empty:
            return option_type
        logger.debug(f"Setting '{name}': {option_type.error}; inferring from default")
    type_name = option_type.value if option_type.ok else None

    target = classify(type_name, evidence, choices)
    target, default = resolve_default(obj, target, evidence, choices, project, type_name)

    if target == TargetType.ENUM and choices.is_empty:
        return Outcome.failure(ErrorKind.UNSUPPORTED_PATTERN, f"Setting '{name}' has no choices", obj)
    if target == TargetType.ENUM and default is NOT_SET:
        return Outcome.failure(ErrorKind.MISSING_REQUIRED_PROPERTY, f"Setting '{name}' has no default", obj)

    description = setting_description(obj)
    is_enum = target == TargetType.ENUM
    return Outcome.success(
        Setting(
            name=name,
            target_type=target,
            description=description,
            default=default,
            enum_choices=choices.values if is_enum else None,
            enum_labels=dict(choices.labels) if is_enum and choices.labels else None,
            example=setting_example(obj, description),
            hidden=is_hidden(obj),
            restart_needed=is_true_literal(member_value_node(obj, RESTART_NEEDED_PROPERTY)),
        )
    )


def extract(object_node, project, retain_hidden=False):
    """
    Build the settings tree of a settings declaration object.

    Args:
        object_node: The object literal passed to ``definePluginSettings``.
        project: ``SourceProject`` that owns the node.
        retain_hidden: Keep settings marked ``hidden: true``.

    Returns:
        dict: Setting name to ``Setting`` or ``SettingsGroup``, in declaration order.
    """
    settings = {}
    for key, pair in object_pairs(object_node):
        value = unwrap_node(pair.child_by_field_name("value"))
        if value is None or value.type != "object":
            continue
        if not retain_hidden and is_hidden(value):
            continue
        if is_settings_group(value):
            settings[key] = SettingsGroup(key, extract(value, project, retain_hidden))
            continue
        outcome = extract_setting(key, value, project)
        if not outcome.ok:
            logger.debug(f"Omitting setting '{key}': {outcome.error}")
            continue
        settings[key] = outcome.value
    return settings
