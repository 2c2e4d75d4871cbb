#!/usr/bin/env python3
"""
Extracts the closed set of choices a SELECT-style setting offers.

Plugin authors spell "these are the allowed values" in many ways. The idioms
understood here are tried in order, and the first one that yields values wins:

1. A literal array of plain values::

       options: ["compact", "cozy"]

2. A literal array of ``{ value, label }`` objects, with ``...IDENT`` spreads
   of other such arrays expanded one level deep::

       options: [{ label: "Compact", value: "compact" }, ...EXTRA_OPTIONS]

3. ``.map()`` over a literal array, ``Object.keys(x)`` or ``Object.values(x)``,
   where the callback returns a ``{ value, label }`` object. The callback body
   is evaluated once per element with its parameter bound to the element::

       options: Object.keys(Layouts).map(name => ({ label: name, value: name }))

4. ``Array.from(x)`` over a literal array (or an identifier resolving to one),
   handled like idiom 1.

5. Lookup tables: ``names.map(n => ({ value: table[n] }))`` where ``table``
   maps names to string literals or to ``helper("name")`` calls that expand to
   a URL built from two string constants declared next to the table (see
   ``DEFAULT_LOOKUP_TABLES``).

Anything else yields no choices. A setting with no choices is simply not an
enumeration; it is never treated as a parse failure.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Tuple

from node_utils import (
    FUNCTION_NODE_TYPES,
    array_elements,
    call_arguments,
    call_callee,
    call_receiver,
    first_named_child,
    function_body_expression,
    function_parameter_names,
    is_method_call,
    is_string_literal,
    decode_string_literal,
    member_value_node,
    node_text,
    object_pairs,
    unwrap_node,
)
from option_types import LABEL_PROPERTY, OPTIONS_PROPERTY, VALUE_PROPERTY
from outcome import ErrorKind, Outcome
from expression_evaluator import evaluate, to_js_string
from reference_resolver import resolve_array_literal, resolve_expression, resolve_object_literal

logger = logging.getLogger(__name__)

MAX_SPREAD_DEPTH = 1


@dataclass(frozen=True)
class OptionChoices:
    """Ordered choice values plus display labels keyed by ``String(value)``."""
    values: Tuple = ()
    labels: Dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.values


EMPTY_CHOICES = OptionChoices()


def _choices(values, labels=None) -> Outcome:
    return Outcome.success(OptionChoices(tuple(values), dict(labels or {})))


def _is_function(node):
    return node is not None and node.type in FUNCTION_NODE_TYPES


def options_expression(node, project):
    """
    Normalize the ``options`` initializer: strip wrappers, unwrap a
    ``() => [...]`` thunk, and follow an identifier to an array or call.
    """
    node = unwrap_node(node)
    if _is_function(node):
        body = function_body_expression(node)
        if body is not None:
            node = unwrap_node(body)
    if node is not None and node.type in ("identifier", "member_expression"):
        resolved = resolve_expression(node, project)
        if resolved is not None and resolved.type in ("array", "call_expression"):
            return resolved
    return node


def map_source_elements(receiver, project):
    """
    The elements a ``.map()`` callback will see, in iteration order.

    Returns a list of element nodes (array literals, ``Object.values``) or key
    strings (``Object.keys``), or None if the receiver is not understood.
    """
    receiver = unwrap_node(receiver)
    if receiver is None:
        return None
    if receiver.type in ("identifier", "member_expression"):
        receiver = resolve_expression(receiver, project)
        if receiver is None:
            return None
    if receiver.type == "array":
        elements = []
        for element in array_elements(receiver):
            if element.type == "spread_element":
                spread = resolve_array_literal(first_named_child(element), project)
                if spread is None:
                    return None
                elements.extend(array_elements(spread))
            else:
                elements.append(element)
        return elements
    if is_method_call(receiver, "keys", "Object") or is_method_call(receiver, "values", "Object"):
        args = call_arguments(receiver)
        obj = resolve_object_literal(args[0], project) if args else None
        if obj is None:
            return None
        if is_method_call(receiver, "keys", "Object"):
            return [key for key, _ in object_pairs(obj)]
        return [pair.child_by_field_name("value") for _, pair in object_pairs(obj)]
    return None


def option_from_object(obj, project, bindings=None) -> Outcome:
    """Read ``{ value, label? }``; the label is kept only when it evaluates to a string."""
    value_node = member_value_node(obj, VALUE_PROPERTY)
    if value_node is None:
        return Outcome.failure(
            ErrorKind.MISSING_REQUIRED_PROPERTY, f"Missing '{VALUE_PROPERTY}' property in option object", obj
        )
    value = evaluate(value_node, project, bindings)
    if not value.ok:
        return value
    label_node = member_value_node(obj, LABEL_PROPERTY)
    label = evaluate(label_node, project, bindings) if label_node is not None else None
    if label is not None and label.ok and isinstance(label.value, str):
        return Outcome.success((value.value, label.value))
    return Outcome.success((value.value, None))


def _collect(options, values, labels):
    for outcome in options:
        if not outcome.ok:
            logger.debug(f"Skipping option: {outcome.error}")
            continue
        value, label = outcome.value
        values.append(value)
        if label is not None:
            labels[to_js_string(value)] = label


def _match_literal_array(node, project):
    if node.type != "array":
        return None
    elements = array_elements(node)
    if any(unwrap_node(e).type in ("object", "spread_element") for e in elements):
        return None
    outcomes = [evaluate(element, project) for element in elements]
    values = [o.value for o in outcomes if o.ok]
    if elements and not values:
        return Outcome.failure(
            ErrorKind.UNSUPPORTED_PATTERN,
            "No evaluable elements: " + "; ".join(str(o.error) for o in outcomes),
            node,
        )
    return _choices(values)


def _object_array_options(array, project, depth):
    options = []
    for element in array_elements(array):
        element = unwrap_node(element)
        if element.type == "object":
            options.append(option_from_object(element, project))
        elif element.type == "spread_element":
            if depth >= MAX_SPREAD_DEPTH:
                continue
            spread = resolve_array_literal(first_named_child(element), project)
            if spread is None:
                options.append(
                    Outcome.failure(
                        ErrorKind.UNRESOLVED_IDENTIFIER, f"Cannot resolve spread element {node_text(element)}", element
                    )
                )
                continue
            options.extend(_object_array_options(spread, project, depth + 1))
        else:
            value = evaluate(element, project)
            options.append(Outcome.success((value.value, None)) if value.ok else value)
    return options


def _match_object_array(node, project):
    if node.type != "array":
        return None
    options = _object_array_options(node, project, 0)
    values, labels = [], {}
    _collect(options, values, labels)
    if options and not values:
        missing = any(
            o.error.kind == ErrorKind.MISSING_REQUIRED_PROPERTY for o in options if not o.ok
        )
        kind = ErrorKind.MISSING_REQUIRED_PROPERTY if missing else ErrorKind.UNSUPPORTED_PATTERN
        return Outcome.failure(kind, "No evaluable option objects in array", node)
    return _choices(values, labels)


def _map_callback(call, project):
    args = call_arguments(call)
    if not args:
        return None
    callback = unwrap_node(args[0])
    if not _is_function(callback):
        callback = resolve_expression(callback, project)
    return callback if _is_function(callback) else None


def _match_mapped_array(node, project):
    if not is_method_call(node, "map"):
        return None
    elements = map_source_elements(call_receiver(node), project)
    callback = _map_callback(node, project)
    if elements is None or callback is None:
        return None
    params = function_parameter_names(callback)
    if params is None:
        return Outcome.failure(ErrorKind.UNSUPPORTED_PATTERN, "Destructured map() parameters are not supported", node)
    body = unwrap_node(function_body_expression(callback))
    if body is None or body.type != "object":
        return Outcome.failure(ErrorKind.UNSUPPORTED_PATTERN, "map() callback must return an object literal", node)

    options = []
    for index, element in enumerate(elements):
        bindings = {}
        if params:
            bindings[params[0]] = element
        if len(params) > 1:
            bindings[params[1]] = index
        options.append(option_from_object(body, project, bindings))
    values, labels = [], {}
    _collect(options, values, labels)
    if elements and not values:
        return Outcome.failure(ErrorKind.UNSUPPORTED_PATTERN, "map() callback produced no constant values", node)
    return _choices(values, labels)


def _match_array_from(node, project):
    if not is_method_call(node, "from", "Array"):
        return None
    args = call_arguments(node)
    if not args:
        return Outcome.failure(ErrorKind.MISSING_REQUIRED_PROPERTY, "Array.from() requires at least one argument", node)
    array = resolve_array_literal(args[0], project)
    if array is None:
        return Outcome.failure(
            ErrorKind.UNSUPPORTED_PATTERN, "Array.from() pattern not supported for this argument type", node
        )
    result = _match_literal_array(array, project)
    if result is None:
        return Outcome.failure(ErrorKind.UNSUPPORTED_PATTERN, "Array.from() over non-literal elements", node)
    return result


def _string_constant(source_file, name, project):
    if source_file is None:
        return None
    declaration = source_file.declarations.get(name)
    if declaration is None or declaration.value is None:
        return None
    outcome = evaluate(declaration.value, project)
    return outcome.value if outcome.ok and isinstance(outcome.value, str) else None


def lookup_table_values(table, project):
    """
    Expand every entry of a lookup table object literal to its string value.

    Entries are string literals or calls to one of the configured lookup
    helpers with a single string argument.
    """
    source_file = project.file_of(table)
    values = []
    for _, pair in object_pairs(table):
        entry = unwrap_node(pair.child_by_field_name("value"))
        if is_string_literal(entry):
            values.append(decode_string_literal(entry))
            continue
        if entry is None or entry.type != "call_expression":
            continue
        callee = call_callee(entry)
        args = call_arguments(entry)
        if callee is None or not args or not is_string_literal(unwrap_node(args[0])):
            continue
        for idiom in project.lookup_tables:
            if node_text(callee) != idiom["helper"]:
                continue
            base = _string_constant(source_file, idiom["base_constant"], project)
            revision = _string_constant(source_file, idiom["revision_constant"], project)
            if base is None or revision is None:
                logger.debug(f"Lookup constants for {idiom['helper']} not found in {source_file}")
                continue
            name = decode_string_literal(unwrap_node(args[0]))
            values.append(idiom["template"].format(base=base, revision=revision, name=name))
            break
    return values


def _lookup_table_identifier(node, project):
    callback = _map_callback(node, project)
    if callback is not None:
        body = unwrap_node(function_body_expression(callback))
        value = unwrap_node(member_value_node(body, VALUE_PROPERTY)) if body is not None else None
        if value is not None and value.type == "subscript_expression":
            table = unwrap_node(value.child_by_field_name("object"))
            if table is not None and table.type == "identifier":
                return table
    receiver = resolve_expression(call_receiver(node), project)
    if is_method_call(receiver, "keys", "Object"):
        args = call_arguments(receiver)
        return args[0] if args else None
    return None


def _match_lookup_table(node, project):
    if not is_method_call(node, "map"):
        return None
    table_identifier = _lookup_table_identifier(node, project)
    if table_identifier is None:
        return None
    table = resolve_object_literal(table_identifier, project)
    if table is None:
        return Outcome.failure(
            ErrorKind.UNRESOLVED_IDENTIFIER, f"Cannot resolve lookup table {node_text(table_identifier)}", node
        )
    values = lookup_table_values(table, project)
    if not values:
        values = [key for key, _ in object_pairs(table)]
    if not values:
        return Outcome.failure(ErrorKind.UNSUPPORTED_PATTERN, "Lookup table has no entries", node)
    return _choices(values)


OPTION_IDIOMS = (
    _match_literal_array,
    _match_object_array,
    _match_mapped_array,
    _match_array_from,
    _match_lookup_table,
)


def match_options(node, project) -> Outcome:
    """
    Run the idiom catalogue over an ``options`` initializer.

    Returns:
        Outcome: ``OptionChoices`` from the first idiom that succeeds, else the
        error of the last idiom that applied (``UnsupportedPattern`` if none did).
    """
    node = options_expression(node, project)
    if node is None:
        return Outcome.failure(ErrorKind.UNRESOLVED_IDENTIFIER, "Options expression cannot be resolved")
    last_failure = None
    for idiom in OPTION_IDIOMS:
        outcome = idiom(node, project)
        if outcome is None:
            continue
        if outcome.ok:
            return outcome
        last_failure = outcome
    if last_failure is not None:
        return last_failure
    return Outcome.failure(ErrorKind.UNSUPPORTED_PATTERN, f"Unsupported options expression: {node.type}", node)


def extract_choices(setting, project) -> Outcome:
    """
    Choices declared by a setting object's ``options`` property.

    Never fails: a missing or unrecognized ``options`` yields ``EMPTY_CHOICES``.
    """
    options = member_value_node(setting, OPTIONS_PROPERTY)
    if options is None:
        return Outcome.success(EMPTY_CHOICES)
    outcome = match_options(options, project)
    if not outcome.ok:
        logger.debug(f"No options extracted: {outcome.error}")
        return Outcome.success(EMPTY_CHOICES)
    return outcome
