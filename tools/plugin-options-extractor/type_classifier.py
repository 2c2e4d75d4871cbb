"""
Decision table from (option type token, default evidence, choices) to the Nix
type a setting is emitted as.

The table is an ordered tuple of guarded ``Rule``s evaluated top to bottom;
the first rule whose guard holds decides. ``Str`` is the single terminal
fallback. Order matters: moving a rule changes the output for inputs that
several rules accept (a ``SELECT`` whose options are ``[true, false]`` is a
``Bool``, not an ``Enum``; a ``STRING`` with an array default is a ``Str``).
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from node_utils import member_parts, member_value_node, node_text, unwrap_node
from option_types import COMPONENT_OPTION_TYPES, OPTION_TYPE_NAMES, TYPE_PROPERTY, TargetType, option_type_name
from outcome import ErrorKind, Outcome
from expression_evaluator import enum_member_values, evaluate, is_number
from reference_resolver import resolve_declaration

logger = logging.getLogger(__name__)

BOOLEAN_ENUM_LENGTH = 2


@dataclass(frozen=True)
class ClassificationInput:
    """What the classifier looks at for one setting."""
    option_type: Optional[str]
    evidence: object
    choices: object

    @property
    def inferred(self) -> bool:
        """True when the type token leaves the type to the default's shape."""
        return self.option_type is None or self.option_type in COMPONENT_OPTION_TYPES

    @property
    def component(self) -> bool:
        return self.option_type in COMPONENT_OPTION_TYPES


@dataclass(frozen=True)
class Rule:
    name: str
    guard: Callable[[ClassificationInput], bool]
    target: TargetType


def _option_type_from_member(node, project):
    base, member = member_parts(node)
    if base is None or member is None:
        return None
    base = unwrap_node(base)
    if base.type == "identifier":
        declaration = resolve_declaration(base, project)
        if declaration is not None and declaration.kind == "enum":
            value = enum_member_values(declaration.node, project).get(member)
            name = option_type_name(value)
            if name is not None:
                return name
    return member if member in OPTION_TYPE_NAMES else None


def option_type_of(setting, project) -> Outcome:
    """
    Resolve the ``type`` property of a setting to an ``OptionType`` name.

    Accepts ``OptionType.X`` (through the enum's declared value when the enum is
    in reach, else by member name), numeric literals and identifiers that
    evaluate to a numeric member value.

    Returns:
        Outcome: the option type name, None when the setting has no ``type``,
        or an error when a ``type`` is present but cannot be resolved.
    """
    node = unwrap_node(member_value_node(setting, TYPE_PROPERTY))
    if node is None:
        return Outcome.success(None)
    if node.type == "member_expression":
        name = _option_type_from_member(node, project)
        if name is not None:
            return Outcome.success(name)
    outcome = evaluate(node, project)
    if outcome.ok:
        name = option_type_name(outcome.value) if is_number(outcome.value) else None
        if name is not None:
            return Outcome.success(name)
        return Outcome.failure(
            ErrorKind.UNSUPPORTED_PATTERN, f"Unknown option type value {outcome.value!r}", node
        )
    return Outcome.failure(ErrorKind.UNRESOLVED_IDENTIFIER, f"Cannot resolve option type {node_text(node)}", node)


def _is_boolean_enum(choices):
    values = choices.values
    return (
        len(values) == BOOLEAN_ENUM_LENGTH
        and all(isinstance(v, bool) for v in values)
        and len(set(values)) == BOOLEAN_ENUM_LENGTH
    )


def _fractional(value):
    return isinstance(value, float) and not value.is_integer()


def _literal_of(c, kind):
    literal = c.evidence.literal
    if kind is bool:
        return isinstance(literal, bool)
    if kind is int:
        return is_number(literal) and not _fractional(literal)
    if kind is float:
        return _fractional(literal)
    return isinstance(literal, kind)


def _declared(c, *kinds):
    return c.option_type is None and c.evidence.declared_kind in kinds


CLASSIFICATION_RULES = (
    Rule("boolean-enum", lambda c: _is_boolean_enum(c.choices), TargetType.BOOL),
    Rule("enum", lambda c: not c.choices.is_empty, TargetType.ENUM),
    Rule("boolean", lambda c: c.option_type == "BOOLEAN", TargetType.BOOL),
    Rule("string", lambda c: c.option_type == "STRING", TargetType.STR),
    Rule("fractional-number", lambda c: c.option_type == "NUMBER" and _literal_of(c, float), TargetType.FLOAT),
    Rule("number", lambda c: c.option_type == "NUMBER", TargetType.INT),
    Rule("bigint", lambda c: c.option_type == "BIGINT", TargetType.INT),
    Rule("slider", lambda c: c.option_type == "SLIDER", TargetType.FLOAT),
    Rule("select", lambda c: c.option_type == "SELECT", TargetType.STR),
    Rule("string-array", lambda c: c.evidence.string_array, TargetType.LIST_OF_STR),
    Rule(
        "object-array",
        lambda c: c.evidence.object_array and not c.evidence.identifier,
        TargetType.LIST_OF_ATTRS,
    ),
    Rule(
        "empty-custom-array",
        lambda c: c.evidence.empty_typed_array and c.option_type == "CUSTOM",
        TargetType.LIST_OF_ATTRS,
    ),
    Rule("empty-typed-array", lambda c: c.evidence.empty_typed_array, TargetType.LIST_OF_STR),
    Rule("empty-array", lambda c: c.evidence.is_empty_array, TargetType.LIST_OF_STR),
    Rule("declared-boolean", lambda c: _declared(c, "boolean"), TargetType.BOOL),
    Rule("declared-string", lambda c: _declared(c, "string"), TargetType.STR),
    Rule("declared-number", lambda c: _declared(c, "number"), TargetType.INT),
    Rule("declared-collection", lambda c: _declared(c, "array", "component"), TargetType.ATTRS),
    Rule(
        "missing-default",
        lambda c: (c.component and c.evidence.shape in ("absent", "null", "getter"))
        or (c.option_type is None and c.evidence.shape in ("absent", "getter")),
        TargetType.ATTRS,
    ),
    Rule("component-array", lambda c: c.component and c.evidence.shape == "array", TargetType.STR),
    Rule("object-default", lambda c: c.inferred and c.evidence.shape == "object", TargetType.ATTRS),
    Rule("runtime-bool", lambda c: c.inferred and _literal_of(c, bool), TargetType.BOOL),
    Rule("runtime-string", lambda c: c.inferred and _literal_of(c, str), TargetType.STR),
    Rule("runtime-int", lambda c: c.inferred and _literal_of(c, int), TargetType.INT),
    Rule("runtime-float", lambda c: c.inferred and _literal_of(c, float), TargetType.FLOAT),
    Rule("collection-default", lambda c: c.option_type is None and c.evidence.shape == "array", TargetType.ATTRS),
)


def classify(option_type, evidence, choices) -> TargetType:
    """
    Pick the target type for a setting.

    Args:
        option_type: ``OptionType`` name from ``option_type_of`` (or None).
        evidence: ``DefaultEvidence`` from ``default_shape.inspect_default``.
        choices: ``OptionChoices`` from ``options_matcher.extract_choices``.

    Returns:
        TargetType: the target of the first matching rule, ``STR`` if none matched.
    """
    c = ClassificationInput(option_type, evidence, choices)
    for rule in CLASSIFICATION_RULES:
        if rule.guard(c):
            logger.debug(f"Classified by rule '{rule.name}'")
            return rule.target
    return TargetType.STR


def matching_rule(option_type, evidence, choices) -> Optional[str]:
    """Name of the rule ``classify`` would apply, or None for the terminal fallback."""
    c = ClassificationInput(option_type, evidence, choices)
    for rule in CLASSIFICATION_RULES:
        if rule.guard(c):
            return rule.name
    return None
