#!/usr/bin/env python3
"""
Static evaluator for the constant expressions found in plugin settings.

Plugin sources are never executed. Instead ``evaluate()`` walks a closed subset
of TypeScript expression forms and folds them into a literal value (``str``,
``int``, ``float`` or ``bool``):

- string, template (without substitutions), numeric, bigint and boolean literals
- identifiers, resolved through ``reference_resolver``
- ``obj.member`` / ``obj["member"]`` access on enums, object literals and a
  table of platform enums that are not part of the analyzed sources
- arithmetic and bitwise binary operators, and unary ``-``/``+``/``~``,
  with JavaScript number semantics

Dispatch is by node type through ``NODE_EVALUATORS``; every node type not listed
there fails with ``UnsupportedExpressionKind``. Failures are returned as
``Outcome`` values, never raised.

Numbers follow JavaScript: there is only one number type, so an integral
result is reported as ``int`` (``3.0`` evaluates to ``3``) and a fractional one
as ``float``.
"""
import math
import logging
import re

from tree_sitter import Node

from node_utils import (
    decode_string_literal,
    has_substitutions,
    member_parts,
    member_value_node,
    named_children,
    node_text,
    object_pairs,
    unwrap_node,
)
from outcome import ErrorKind, Outcome
from reference_resolver import resolve, resolve_declaration, resolve_expression

logger = logging.getLogger(__name__)

MAX_EVALUATION_DEPTH = 32
MAX_SAFE_INTEGER = 2 ** 53

LEGACY_OCTAL_PATTERN = re.compile(r"^0[0-7]+$")
DECIMAL_INTEGER_PATTERN = re.compile(r"^[0-9]+$")


def is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_number(value):
    """Report integral floats as ``int``, the way JavaScript prints them."""
    if isinstance(value, float) and value.is_integer() and abs(value) < MAX_SAFE_INTEGER:
        return int(value)
    return value


def parse_number_literal(text):
    """
    Parse a JavaScript numeric literal.

    Handles ``_`` separators, ``0x``/``0o``/``0b`` prefixes, legacy octal,
    exponents and the bigint ``n`` suffix. Raises ValueError on anything else.
    """
    text = text.replace("_", "")
    if text.endswith("n"):
        return int(text[:-1], 0)
    lowered = text.lower()
    if lowered.startswith(("0x", "0o", "0b")):
        return int(lowered, 0)
    if LEGACY_OCTAL_PATTERN.match(text):
        return int(text, 8)
    if DECIMAL_INTEGER_PATTERN.match(text):
        return int(text)
    return normalize_number(float(text))


def to_js_string(value):
    """``String(value)`` for literal values; used for label keys."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(normalize_number(value))
    return str(value)


def _to_int32(value):
    value = int(value) & 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _to_uint32(value):
    return int(value) & 0xFFFFFFFF


def _shift_count(value):
    return _to_uint32(value) & 31


BINARY_OPERATORS = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": lambda a, b: a / b,
    "%": lambda a, b: math.fmod(a, b),
    "|": lambda a, b: _to_int32(a) | _to_int32(b),
    "&": lambda a, b: _to_int32(a) & _to_int32(b),
    "^": lambda a, b: _to_int32(a) ^ _to_int32(b),
    "<<": lambda a, b: _to_int32(_to_int32(a) << _shift_count(b)),
    ">>": lambda a, b: _to_int32(a) >> _shift_count(b),
    ">>>": lambda a, b: _to_uint32(a) >> _shift_count(b),
}

UNARY_OPERATORS = {
    "-": lambda a: -a,
    "+": lambda a: a,
    "~": lambda a: ~_to_int32(a),
}


def evaluate(node, project, bindings=None) -> Outcome:
    """
    Fold an expression node into a literal value.

    Args:
        node: Expression node to evaluate.
        project: ``SourceProject`` used to resolve identifiers.
        bindings: Optional mapping of parameter names to values (literal
            values or expression nodes), used when evaluating the body of a
            ``.map()`` callback once per element.

    Returns:
        Outcome: ``value`` on success, otherwise an ``EvaluationError``.
    """
    return _evaluate(node, project, bindings or {}, 0)


def _evaluate(node, project, bindings, depth) -> Outcome:
    if node is None:
        return Outcome.failure(ErrorKind.UNSUPPORTED_EXPRESSION_KIND, "Missing expression")
    if depth > MAX_EVALUATION_DEPTH:
        return Outcome.failure(
            ErrorKind.UNRESOLVED_IDENTIFIER, f"Reference chain too deep at '{node_text(node)}'", node
        )
    node = unwrap_node(node)
    handler = NODE_EVALUATORS.get(node.type)
    if handler is None:
        return Outcome.failure(
            ErrorKind.UNSUPPORTED_EXPRESSION_KIND, f"Cannot evaluate node of type {node.type}", node
        )
    return handler(node, project, bindings, depth)


def _evaluate_string(node, project, bindings, depth):
    return Outcome.success(decode_string_literal(node))


def _evaluate_template(node, project, bindings, depth):
    if has_substitutions(node):
        return Outcome.failure(
            ErrorKind.UNSUPPORTED_EXPRESSION_KIND, "Template literals with substitutions are not constant", node
        )
    return Outcome.success(decode_string_literal(node))


def _evaluate_number(node, project, bindings, depth):
    try:
        return _finite(parse_number_literal(node_text(node)), node)
    except ValueError:
        return Outcome.failure(
            ErrorKind.UNSUPPORTED_EXPRESSION_KIND, f"Unrecognized numeric literal {node_text(node)}", node
        )


def _evaluate_true(node, project, bindings, depth):
    return Outcome.success(True)


def _evaluate_false(node, project, bindings, depth):
    return Outcome.success(False)


def _evaluate_binding(name, bindings, project, depth):
    bound = bindings[name]
    if isinstance(bound, Node):
        return _evaluate(bound, project, {}, depth + 1)
    return Outcome.success(bound)


def _evaluate_identifier(node, project, bindings, depth):
    name = node_text(node)
    if name in bindings:
        return _evaluate_binding(name, bindings, project, depth)
    initializer = resolve(node, project)
    if initializer is None:
        return Outcome.failure(ErrorKind.UNRESOLVED_IDENTIFIER, f"Cannot resolve identifier: {name}", node)
    outcome = _evaluate(initializer, project, {}, depth + 1)
    if not outcome.ok:
        return Outcome.failure(
            ErrorKind.UNRESOLVED_IDENTIFIER,
            f"Identifier {name} does not resolve to a constant ({outcome.error})",
            node,
        )
    return outcome


def enum_member_values(enum_node, project, depth=0):
    """
    Compute the values of an ``enum`` declaration's members, in order.

    Members without an initializer continue from the previous numeric member
    (starting at 0). Initializers may refer to earlier members by bare name.
    Members whose value cannot be determined are left out.
    """
    values = {}
    body = enum_node.child_by_field_name("body")
    if body is None:
        return values
    next_value = 0
    for member in named_children(body):
        if member.type == "enum_assignment":
            name_node = member.child_by_field_name("name")
            value_node = member.child_by_field_name("value")
        else:
            name_node, value_node = member, None
        if name_node is None:
            continue
        name = decode_string_literal(name_node) if name_node.type == "string" else node_text(name_node)
        if value_node is None:
            if next_value is None:
                continue
            values[name] = next_value
            next_value += 1
            continue
        outcome = _evaluate(value_node, project, dict(values), depth + 1)
        if not outcome.ok:
            logger.debug(f"Enum member {name} is not constant: {outcome.error}")
            next_value = None
            continue
        values[name] = outcome.value
        next_value = outcome.value + 1 if is_number(outcome.value) else None
    return values


def _resolve_object_node(node, project, bindings):
    """Follow ``node`` (identifier, member chain, parameter binding) to an object/array literal."""
    node = unwrap_node(node)
    if node is not None and node.type == "identifier" and node_text(node) in bindings:
        bound = bindings[node_text(node)]
        if not isinstance(bound, Node):
            return None
        node = bound
    resolved = resolve_expression(node, project)
    if resolved is not None and resolved.type in ("object", "array"):
        return resolved
    return None


def _member_of_literal(container, member, project, depth):
    if container.type == "object":
        value = member_value_node(container, member)
        if value is not None:
            return _evaluate(value, project, {}, depth + 1)
        return None
    if container.type == "array":
        elements = named_children(container)
        if member.isdigit() and int(member) < len(elements):
            return _evaluate(elements[int(member)], project, {}, depth + 1)
    return None


def _access(node, base, member, project, bindings, depth):
    """
    Shared resolution of ``base.member`` and ``base["member"]``.

    Order: a member of a known enum; a property of an object literal reachable
    from ``base``; the external enum table.
    """
    base = unwrap_node(base)
    base_text = node_text(base)
    if base.type == "identifier" and base_text not in bindings:
        declaration = resolve_declaration(base, project)
        if declaration is not None and declaration.kind == "enum":
            members = enum_member_values(declaration.node, project, depth)
            if member in members:
                return Outcome.success(members[member])

    container = _resolve_object_node(base, project, bindings)
    if container is not None:
        outcome = _member_of_literal(container, member, project, depth)
        if outcome is not None:
            return outcome

    table = project.external_enums.get(base_text)
    if table is not None and member in table:
        return Outcome.success(table[member])

    return Outcome.failure(
        ErrorKind.UNRESOLVABLE_ACCESS, f"Cannot resolve property access: {base_text}.{member}", node
    )


def _evaluate_member(node, project, bindings, depth):
    base, member = member_parts(node)
    if base is None or member is None:
        return Outcome.failure(ErrorKind.UNRESOLVABLE_ACCESS, f"Malformed property access {node_text(node)}", node)
    return _access(node, base, member, project, bindings, depth)


def _evaluate_subscript(node, project, bindings, depth):
    base = node.child_by_field_name("object")
    index = node.child_by_field_name("index")
    key = _evaluate(index, project, bindings, depth + 1)
    if not key.ok or not (isinstance(key.value, str) or is_number(key.value)):
        return Outcome.failure(
            ErrorKind.UNRESOLVABLE_ACCESS, f"Cannot resolve element access: {node_text(node)}", node
        )
    return _access(node, base, to_js_string(key.value), project, bindings, depth)


def _finite(value, node):
    if isinstance(value, float) and not math.isfinite(value):
        return Outcome.failure(ErrorKind.NON_NUMERIC_OPERAND, f"{node_text(node)} is not a finite number", node)
    return Outcome.success(normalize_number(value))


def _evaluate_binary(node, project, bindings, depth):
    operator_node = node.child_by_field_name("operator")
    operator = operator_node.type if operator_node is not None else None
    apply = BINARY_OPERATORS.get(operator)
    if apply is None:
        return Outcome.failure(ErrorKind.UNSUPPORTED_OPERATOR, f"Unsupported binary operator: {operator}", node)

    left = _evaluate(node.child_by_field_name("left"), project, bindings, depth + 1)
    right = _evaluate(node.child_by_field_name("right"), project, bindings, depth + 1)
    if not (left.ok and right.ok and is_number(left.value) and is_number(right.value)):
        return Outcome.failure(
            ErrorKind.NON_NUMERIC_OPERAND, f"Binary expression operands must be numbers: {node_text(node)}", node
        )
    if operator in ("/", "%") and right.value == 0:
        return Outcome.failure(ErrorKind.NON_NUMERIC_OPERAND, f"Division by zero in {node_text(node)}", node)
    try:
        return _finite(apply(left.value, right.value), node)
    except OverflowError:
        return Outcome.failure(ErrorKind.NON_NUMERIC_OPERAND, f"{node_text(node)} overflows", node)


def _evaluate_unary(node, project, bindings, depth):
    operator_node = node.child_by_field_name("operator")
    operator = operator_node.type if operator_node is not None else None
    apply = UNARY_OPERATORS.get(operator)
    if apply is None:
        return Outcome.failure(ErrorKind.UNSUPPORTED_OPERATOR, f"Unsupported unary operator: {operator}", node)
    argument = _evaluate(node.child_by_field_name("argument"), project, bindings, depth + 1)
    if not argument.ok or not is_number(argument.value):
        return Outcome.failure(
            ErrorKind.NON_NUMERIC_OPERAND, f"Unary operand must be a number: {node_text(node)}", node
        )
    return _finite(apply(argument.value), node)


NODE_EVALUATORS = {
    "string": _evaluate_string,
    "template_string": _evaluate_template,
    "number": _evaluate_number,
    "true": _evaluate_true,
    "false": _evaluate_false,
    "identifier": _evaluate_identifier,
    "shorthand_property_identifier": _evaluate_identifier,
    "member_expression": _evaluate_member,
    "subscript_expression": _evaluate_subscript,
    "binary_expression": _evaluate_binary,
    "unary_expression": _evaluate_unary,
}


def evaluate_object(obj, project):
    """
    Evaluate every ``key: value`` pair of an object literal.

    Returns the pairs that evaluate, in declaration order, plus the list of
    ``(key, value_node, error)`` for those that do not.
    """
    values, failures = {}, []
    for key, pair in object_pairs(obj):
        value_node = pair.child_by_field_name("value")
        outcome = evaluate(value_node, project)
        if outcome.ok:
            values[key] = outcome.value
        else:
            failures.append((key, value_node, outcome.error))
    return values, failures
