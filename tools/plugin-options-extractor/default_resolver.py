"""
Computes the default value emitted for a classified setting.

``resolve_default()`` applies its rules in a fixed precedence and may refine the
target type on the way (a ``Str`` without a usable default becomes a nullable
string; an ``Attrs`` whose default is a getter becomes one too). The result is
a ``(TargetType, default)`` pair where ``default`` is ``NOT_SET`` when nothing
could be determined; the serializer then omits the default.
"""
import logging

from node_utils import (
    FUNCTION_NODE_TYPES,
    array_elements,
    call_arguments,
    call_receiver,
    first_named_child,
    function_body_expression,
    function_parameter_names,
    is_method_call,
    is_true_literal,
    member_value_node,
    node_text,
    object_pairs,
    unwrap_node,
)
from option_types import (
    DEFAULT_PROPERTY,
    LIST_TARGET_TYPES,
    NOT_SET,
    OPTIONS_PROPERTY,
    VALUE_PROPERTY,
    TargetType,
)
from expression_evaluator import evaluate, evaluate_object
from options_matcher import map_source_elements, options_expression
from reference_resolver import resolve_array_literal, resolve_expression, resolve_object_literal
from default_shape import call_return_shape

logger = logging.getLogger(__name__)

EQUALITY_OPERATORS = {"===", "=="}
INEQUALITY_OPERATORS = {"!==", "!="}

COLLECTION_DEFAULTS = {"array": list, "object": dict}


def _marker_holds(marker, project, bindings):
    """
    Whether a ``default:`` marker is set for one option: ``true``, or a
    comparison such as ``name === "dark"`` evaluated with the callback's
    parameters bound.
    """
    marker = unwrap_node(marker)
    if marker is None:
        return False
    if marker.type in ("true", "false"):
        return marker.type == "true"
    if marker.type != "binary_expression":
        return False
    operator = marker.child_by_field_name("operator")
    operator = operator.type if operator is not None else None
    if operator not in EQUALITY_OPERATORS | INEQUALITY_OPERATORS:
        return False
    left = evaluate(marker.child_by_field_name("left"), project, bindings)
    right = evaluate(marker.child_by_field_name("right"), project, bindings)
    if not (left.ok and right.ok):
        return False
    return (left.value == right.value) == (operator in EQUALITY_OPERATORS)


def _comparison_constant(marker, project):
    """The side of ``x === c`` that evaluates without bindings, if any."""
    marker = unwrap_node(marker)
    if marker is None or marker.type != "binary_expression":
        return NOT_SET
    operator = marker.child_by_field_name("operator")
    if operator is None or operator.type not in EQUALITY_OPERATORS:
        return NOT_SET
    for side in ("right", "left"):
        outcome = evaluate(marker.child_by_field_name(side), project)
        if outcome.ok:
            return outcome.value
    return NOT_SET


def _marker_in_array(array, project, depth=0):
    for element in array_elements(array):
        element = unwrap_node(element)
        if element.type == "spread_element":
            spread = resolve_array_literal(first_named_child(element), project)
            if spread is not None and depth < 1:
                found = _marker_in_array(spread, project, depth + 1)
                if found is not NOT_SET:
                    return found
            continue
        if element.type != "object" or not is_true_literal(member_value_node(element, DEFAULT_PROPERTY)):
            continue
        value = evaluate(member_value_node(element, VALUE_PROPERTY), project)
        if value.ok:
            return value.value
        logger.debug(f"Option marked default has no constant value: {value.error}")
    return NOT_SET


def _marker_in_map(call, project):
    args = call_arguments(call)
    callback = unwrap_node(args[0]) if args else None
    if callback is not None and callback.type not in FUNCTION_NODE_TYPES:
        callback = resolve_expression(callback, project)
    if callback is None or callback.type not in FUNCTION_NODE_TYPES:
        return NOT_SET
    body = unwrap_node(function_body_expression(callback))
    if body is None or body.type != "object":
        return NOT_SET
    marker = member_value_node(body, DEFAULT_PROPERTY)
    if marker is None:
        return NOT_SET

    receiver = resolve_expression(call_receiver(call), project)
    elements = map_source_elements(call_receiver(call), project) or []
    params = function_parameter_names(callback) or []
    for index, element in enumerate(elements):
        bindings = {}
        if params:
            bindings[params[0]] = element
        if len(params) > 1:
            bindings[params[1]] = index
        if _marker_holds(marker, project, bindings):
            value = evaluate(member_value_node(body, VALUE_PROPERTY), project, bindings)
            if value.ok:
                return value.value

    constant = _comparison_constant(marker, project)
    if constant is not NOT_SET:
        return constant
    if is_method_call(receiver, "keys", "Object"):
        keys_args = call_arguments(receiver)
        table = resolve_object_literal(keys_args[0], project) if keys_args else None
        if table is not None:
            for key, _ in object_pairs(table):
                return key
    return NOT_SET


def find_default_marker(setting, project):
    """
    Value of the option marked ``default: true`` (or the option a
    ``default: x === c`` comparison selects), regardless of its position.

    Returns:
        The marked option's value, or ``NOT_SET``.
    """
    options = member_value_node(setting, OPTIONS_PROPERTY)
    if options is None:
        return NOT_SET
    node = options_expression(options, project)
    if node is None:
        return NOT_SET
    if node.type == "array":
        return _marker_in_array(node, project)
    if is_method_call(node, "map"):
        return _marker_in_map(node, project)
    return NOT_SET


def fold_call_default(call, project):
    """
    Statically fold ``factory({...})`` into a dict by evaluating each property
    of the first object-literal argument.

    Properties that do not evaluate degrade to ``[]``/``{}`` when their value is
    an array/object literal and are dropped otherwise. A call without an object
    argument yields an empty collection matching its return shape.
    """
    args = call_arguments(call)
    first = unwrap_node(args[0]) if args else None
    if first is None or first.type != "object":
        shape = call_return_shape(call, project)
        if shape == "array":
            return []
        return {}
    folded, failures = evaluate_object(first, project)
    for key, value_node, _ in failures:
        kind = unwrap_node(value_node).type
        if kind in COLLECTION_DEFAULTS:
            folded[key] = COLLECTION_DEFAULTS[kind]()
        else:
            logger.debug(f"Dropping unresolvable property '{key}' from {node_text(call)}")
    return folded


def _promote_string(evidence, option_type):
    """
    A ``Str`` without a usable default: promote an identifier default that
    names a custom value or an object array to an attribute type, otherwise
    demote to a nullable string.
    """
    promotable = (
        evidence.identifier
        and evidence.identifier_declared
        and (option_type == "CUSTOM" or evidence.object_array)
    )
    if not promotable:
        return TargetType.NULLABLE_STR, None
    if evidence.object_array or evidence.identifier_is_array:
        return TargetType.LIST_OF_ATTRS, []
    return TargetType.ATTRS, {}


def _attrs_default(evidence, project):
    if evidence.getter:
        return TargetType.NULLABLE_STR, None
    node = unwrap_node(evidence.initializer)
    if node is not None and node.type == "call_expression":
        folded = fold_call_default(node, project)
        if isinstance(folded, list):
            return TargetType.LIST_OF_ATTRS, folded
        return TargetType.ATTRS, folded
    if evidence.identifier and evidence.object_array:
        return TargetType.LIST_OF_ATTRS, []
    return TargetType.ATTRS, {}


def resolve_default(setting, target, evidence, choices, project, option_type=None):
    """
    Compute ``(final_type, default)`` for a classified setting.

    Args:
        setting: The setting's object literal node.
        target: ``TargetType`` chosen by the classifier.
        evidence: ``DefaultEvidence`` for the setting.
        choices: ``OptionChoices`` for the setting.
        project: ``SourceProject`` for reference resolution.
        option_type: ``OptionType`` name, used to recognize custom settings.

    Returns:
        tuple: ``(TargetType, default)``; ``default`` is ``NOT_SET`` when no
        rule produced one.
    """
    if evidence.has_literal:
        return target, evidence.literal
    if evidence.string_array:
        return TargetType.LIST_OF_STR, []
    if target in LIST_TARGET_TYPES:
        return target, []
    if target == TargetType.BOOL:
        marked = find_default_marker(setting, project)
        return target, marked if isinstance(marked, bool) else False
    if target == TargetType.ENUM:
        marked = find_default_marker(setting, project)
        if marked is not NOT_SET:
            return target, marked
        if not choices.is_empty:
            return target, choices.values[0]
        return target, NOT_SET
    if target == TargetType.STR:
        return _promote_string(evidence, option_type)
    if target == TargetType.NULLABLE_STR:
        return target, None
    if target == TargetType.ATTRS:
        return _attrs_default(evidence, project)
    return target, NOT_SET
