#!/usr/bin/env python3
"""
Resolves identifiers in plugin sources to the expressions that define them.

Resolution happens in two tiers, and a single call never mixes them:

1. **Scoped lookup.** Starting at the identifier, walk outwards through the
   enclosing statement blocks and functions up to the program. Function
   parameters shadow outer names. A hit on an ``import`` is followed one level
   into the imported module's exports (relative paths and path aliases are
   resolved by ``SourceProject``).
2. **Name scan.** Only when the scoped lookup finds no declaration at all: look
   the bare name up in the file's top-level table, then in any
   ``variable_declarator`` of the file.

Unresolvable names are not errors here: every function returns None and lets
the caller decide whether that matters.
"""
import logging
from typing import Optional

from node_utils import FUNCTION_NODE_TYPES, get_property_value, member_parts, node_text, unwrap_node, walk
from ts_parser import Declaration, collect_declarations

logger = logging.getLogger(__name__)

MAX_RESOLUTION_DEPTH = 16

PARAMETER_BINDING_TYPES = ("identifier", "shorthand_property_identifier_pattern")


def _binds_parameter(function, name):
    single = function.child_by_field_name("parameter")
    if single is not None:
        return node_text(single) == name
    params = function.child_by_field_name("parameters")
    if params is None:
        return False
    return any(
        node.type in PARAMETER_BINDING_TYPES and node_text(node) == name
        for node in walk(params)
    )


def _follow_alias(declaration, project, source_file):
    if declaration.kind != "import" or source_file is None:
        return declaration
    target = project.resolve_module(source_file, declaration.source)
    if target is None:
        return declaration
    exported = target.exports.get(declaration.imported_name)
    if exported is None:
        logger.debug(f"'{declaration.imported_name}' is not exported by {target.path}")
        return declaration
    return exported


def resolve_declaration(identifier, project) -> Optional[Declaration]:
    """
    Scoped (first tier) lookup of the declaration an identifier refers to.

    Args:
        identifier: An ``identifier`` node.
        project: The ``SourceProject`` the identifier's file belongs to.

    Returns:
        The binding ``Declaration`` (an import is replaced by the declaration it
        imports when the module can be loaded), or None if no enclosing scope
        declares the name.
    """
    name = node_text(identifier)
    source_file = project.file_of(identifier)
    scope = identifier.parent
    while scope is not None:
        if scope.type in FUNCTION_NODE_TYPES and _binds_parameter(scope, name):
            return Declaration("parameter", name, scope)
        table = None
        if scope.type == "program":
            table = source_file.declarations if source_file is not None else collect_declarations(scope)
        elif scope.type == "statement_block":
            table = collect_declarations(scope)
        if table:
            declaration = table.get(name)
            if declaration is not None:
                return _follow_alias(declaration, project, source_file)
        scope = scope.parent
    return None


def resolve_by_name(name, source_file):
    """Second tier: plain name scan of one file. Returns an initializer node or None."""
    if source_file is None:
        return None
    declaration = source_file.declarations.get(name)
    if declaration is not None and declaration.value is not None:
        return declaration.value
    for declarator in source_file.variable_declarators(name):
        value = declarator.child_by_field_name("value")
        if value is not None:
            return value
    return None


def resolve(identifier, project):
    """
    Return the initializer expression an identifier stands for, or None.

    Declarations found by the scoped lookup answer the question even when they
    carry no initializer; the name scan is only consulted when no declaration
    was found at all.
    """
    declaration = resolve_declaration(identifier, project)
    if declaration is not None:
        return declaration.value
    value = resolve_by_name(node_text(identifier), project.file_of(identifier))
    if value is not None:
        logger.debug(f"Resolved '{node_text(identifier)}' by name scan")
    return value


def resolve_expression(node, project):
    """
    Follow identifiers and ``obj.prop`` chains (through wrappers) to the
    expression they ultimately denote. Returns None when a link is unresolvable.
    """
    node = unwrap_node(node)
    for _ in range(MAX_RESOLUTION_DEPTH):
        if node is None:
            return None
        if node.type == "identifier":
            node = unwrap_node(resolve(node, project))
        elif node.type == "member_expression":
            base, member = member_parts(node)
            obj = resolve_object_literal(base, project)
            node = unwrap_node(get_property_value(obj, member)) if obj is not None else None
        else:
            return node
    logger.debug("Gave up following a reference chain")
    return None


def resolve_object_literal(node, project):
    resolved = resolve_expression(node, project)
    return resolved if resolved is not None and resolved.type == "object" else None


def resolve_array_literal(node, project):
    resolved = resolve_expression(node, project)
    return resolved if resolved is not None and resolved.type == "array" else None
