"""
Shape checks on a setting's ``default`` property.

The classifier and the default resolver both need to know what *kind* of thing
a default is before they know (or even when they cannot know) its value: an
array of strings, an array of objects, an empty typed array, a call returning
an object, a getter, a renderer function... ``inspect_default()`` answers all
of those questions once and hands back a ``DefaultEvidence`` record.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from node_utils import (
    FUNCTION_NODE_TYPES,
    array_elements,
    call_arguments,
    call_callee,
    find_getter,
    function_body_expression,
    member_value_node,
    node_text,
    unwrap_node,
    wrapper_type_node,
)
from option_types import DEFAULT_PROPERTY, NOT_SET
from expression_evaluator import evaluate
from reference_resolver import resolve, resolve_by_name, resolve_declaration, resolve_expression
from ts_parser import annotation_kind, array_element_kind, declared_type_kind

logger = logging.getLogger(__name__)

NULL_IDENTIFIERS = {"undefined"}

RENDERER_NODE_TYPES = FUNCTION_NODE_TYPES | {"jsx_element", "jsx_self_closing_element", "class"}

OBJECT_RETURNING_BUILTINS = {"fromEntries", "assign", "create"}
ARRAY_RETURNING_BUILTINS = {"keys", "values", "entries"}

# Node types the evaluator is never asked about; their shape speaks for them
NON_SCALAR_NODE_TYPES = {"array", "object", "call_expression", "new_expression", "null"} | RENDERER_NODE_TYPES


@dataclass(frozen=True)
class DefaultEvidence:
    """
    Everything known about a setting's ``default`` without running it.

    ``shape`` is one of ``absent``, ``getter``, ``null``, ``literal``,
    ``array``, ``object``, ``renderer``, ``call``, ``unresolved`` or
    ``other``. ``literal`` holds the evaluated scalar, or ``NOT_SET``.
    """
    initializer: Any = None
    literal: Any = NOT_SET
    shape: str = "absent"
    string_array: bool = False
    object_array: bool = False
    empty_typed_array: bool = False
    identifier: bool = False
    identifier_declared: bool = False
    identifier_is_array: bool = False
    getter: bool = False
    declared_kind: Optional[str] = None

    @property
    def has_literal(self) -> bool:
        return self.literal is not NOT_SET

    @property
    def is_empty_array(self) -> bool:
        node = unwrap_node(self.initializer)
        return node is not None and node.type == "array" and not array_elements(node)


def default_initializer(setting):
    """The ``default`` value node of a setting object (wrappers intact), or None."""
    return member_value_node(setting, DEFAULT_PROPERTY)


def _is_null(node):
    node = unwrap_node(node)
    if node is None:
        return False
    if node.type in ("null", "undefined"):
        return True
    return node.type == "identifier" and node_text(node) in NULL_IDENTIFIERS


def _is_string_array(node):
    """
    ``["a", "b"]``, or an array wrapped in ``as T``. When the array carries a
    type assertion the asserted element type alone decides.
    """
    if node is None:
        return False
    type_node = wrapper_type_node(node)
    inner = unwrap_node(node)
    if inner is None or inner.type != "array":
        return False
    if type_node is not None:
        return array_element_kind(type_node) == "string"
    return all(unwrap_node(e).type == "string" for e in array_elements(inner))


def _is_object_array(node):
    inner = unwrap_node(node)
    if inner is None or inner.type != "array":
        return False
    type_node = wrapper_type_node(node)
    if type_node is not None and array_element_kind(type_node) is None:
        return False
    elements = array_elements(inner)
    return bool(elements) and all(unwrap_node(e).type == "object" for e in elements)


def _callee_function(call, project):
    callee = unwrap_node(call_callee(call))
    if callee is None or callee.type != "identifier":
        return None
    target = unwrap_node(resolve(callee, project))
    return target if target is not None and target.type in FUNCTION_NODE_TYPES else None


def _callee_body(call, project):
    function = _callee_function(call, project)
    if function is None:
        return None
    return unwrap_node(function_body_expression(function))


def call_return_shape(call, project):
    """
    ``"object"``, ``"array"`` or None for what a call in a default position
    returns: a local function's returned literal, or well-known ``Object.*`` /
    ``Array.*`` builtins.
    """
    body = _callee_body(call, project)
    if body is not None and body.type in ("object", "array"):
        return body.type
    callee = call_callee(call)
    text = node_text(callee) if callee is not None else ""
    if text.startswith("Object."):
        method = text.split(".", 1)[1]
        if method in OBJECT_RETURNING_BUILTINS:
            return "object"
        if method in ARRAY_RETURNING_BUILTINS:
            return "array"
    if text.startswith("Array."):
        return "array"
    return None


def has_string_array_default(setting, project):
    """True when ``default`` is (or names) an array of string literals."""
    init = default_initializer(setting)
    if init is None:
        return False
    if unwrap_node(init).type == "identifier":
        return _is_string_array(resolve(unwrap_node(init), project))
    return _is_string_array(init)


def has_object_array_default(setting, project):
    """True for an array of object literals given inline, by name, or returned by a local function."""
    init = default_initializer(setting)
    if init is None:
        return False
    node = unwrap_node(init)
    if node.type == "array":
        return _is_object_array(init)
    if node.type == "call_expression":
        body = _callee_body(node, project)
        return body is not None and _is_object_array(body)
    if node.type == "identifier":
        return _is_object_array(resolve(node, project))
    return False


def has_empty_typed_array_default(setting, project):
    """
    ``[] as Foo[]`` / ``[] as Array<Foo>``, or a call to a local function
    returning an empty array or an array of objects or calls.
    """
    init = default_initializer(setting)
    if init is None:
        return False
    node = unwrap_node(init)
    if node.type == "array":
        return array_element_kind(wrapper_type_node(init)) is not None and not array_elements(node)
    if node.type == "call_expression":
        body = _callee_body(node, project)
        if body is None or body.type != "array":
            return False
        return all(unwrap_node(e).type in ("object", "call_expression") for e in array_elements(body))
    return False


def is_getter_default(setting):
    return find_getter(setting, DEFAULT_PROPERTY) is not None


def _scalar_literal(node, project):
    if node is None or unwrap_node(node).type in NON_SCALAR_NODE_TYPES or _is_null(node):
        return NOT_SET
    outcome = evaluate(node, project)
    if outcome.ok:
        return outcome.value
    logger.debug(f"Default is not a constant: {outcome.error}")
    return NOT_SET


def _shape_of(node, literal, project):
    if literal is not NOT_SET:
        return "literal"
    if _is_null(node):
        return "null"
    node = unwrap_node(node)
    if node.type in ("array", "object"):
        return node.type
    if node.type in RENDERER_NODE_TYPES:
        return "renderer"
    if node.type == "call_expression":
        args = call_arguments(node)
        if args and unwrap_node(args[0]).type == "object":
            return "object"
        return call_return_shape(node, project) or "call"
    if node.type in ("identifier", "member_expression"):
        resolved = resolve_expression(node, project)
        if resolved is None:
            return "unresolved"
        if resolved.type == "call_expression":
            return call_return_shape(resolved, project) or "call"
        if resolved.type in ("array", "object"):
            return resolved.type
        if resolved.type in RENDERER_NODE_TYPES:
            return "renderer"
        return "unresolved"
    return "other"


def _declared_kind(init, project):
    kind = declared_type_kind(init)
    if kind is not None:
        return kind
    node = unwrap_node(init)
    if node.type != "identifier":
        return None
    declaration = resolve_declaration(node, project)
    if declaration is None or declaration.kind != "variable":
        return None
    annotation = declaration.node.child_by_field_name("type")
    if annotation is not None:
        return annotation_kind(annotation)
    return declared_type_kind(declaration.value) if declaration.value is not None else None


def inspect_default(setting, project) -> DefaultEvidence:
    """
    Gather the evidence about ``setting``'s ``default`` the classifier and the
    default resolver work from.

    Args:
        setting: The setting's object literal node.
        project: ``SourceProject`` for reference resolution.

    Returns:
        DefaultEvidence: ``shape == "absent"`` when there is no default at all.
    """
    if is_getter_default(setting):
        return DefaultEvidence(shape="getter", getter=True)
    init = default_initializer(setting)
    if init is None:
        return DefaultEvidence()

    node = unwrap_node(init)
    literal = _scalar_literal(init, project)
    identifier = node.type == "identifier" and not _is_null(node)
    declared = False
    is_array = False
    if identifier:
        declared = (
            resolve_declaration(node, project) is not None
            or resolve_by_name(node_text(node), project.file_of(node)) is not None
        )
        resolved = resolve_expression(node, project)
        is_array = resolved is not None and resolved.type == "array"

    return DefaultEvidence(
        initializer=init,
        literal=literal,
        shape=_shape_of(init, literal, project),
        string_array=has_string_array_default(setting, project),
        object_array=has_object_array_default(setting, project),
        empty_typed_array=has_empty_typed_array_default(setting, project),
        identifier=identifier,
        identifier_declared=declared,
        identifier_is_array=is_array,
        declared_kind=_declared_kind(init, project) if literal is NOT_SET else None,
    )
