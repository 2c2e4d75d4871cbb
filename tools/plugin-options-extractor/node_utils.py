"""
Small vocabulary on top of tree-sitter TypeScript nodes.

tree-sitter hands us untyped nodes with a string ``type``; the extractor only
ever needs a handful of questions answered about them:

- what is the expression *behind* type assertions and parentheses
  (``x as const``, ``<T>x``, ``x!``, ``(x)``, ``x satisfies T``)
- which properties does an object literal carry, and what is the value of one
- what literal text does a string or template literal denote
- what parameters and body does an arrow function have

Everything here is read-only over the parse tree.
"""
import re
import logging

logger = logging.getLogger(__name__)

WRAPPER_NODE_TYPES = {
    "parenthesized_expression",
    "as_expression",
    "satisfies_expression",
    "type_assertion",
    "non_null_expression",
}

FUNCTION_NODE_TYPES = {
    "arrow_function",
    "function",
    "function_expression",
    "function_declaration",
    "generator_function",
    "generator_function_declaration",
    "method_definition",
}

COMMENT_NODE_TYPE = "comment"

# \u{1F600}, \u00e9, \x41, legacy octal, CRLF/LF line continuations, single chars
JS_ESCAPE_PATTERN = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|[0-7]{1,3}|\r\n|[\s\S])"
)

SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "\n": "",
    "\r": "",
    "\r\n": "",
    "\u2028": "",
    "\u2029": "",
}


def node_text(node):
    """Return the source text covered by ``node``."""
    return node.text.decode("utf-8")


def named_children(node):
    """Named children of ``node`` without comment nodes."""
    return [child for child in node.named_children if child.type != COMMENT_NODE_TYPE]


def first_named_child(node):
    children = named_children(node)
    return children[0] if children else None


def unwrap_node(node):
    """
    Strip wrapper forms that do not change the value of an expression.

    ``(x)``, ``x as T``, ``x satisfies T``, ``<T>x`` and ``x!`` all evaluate to
    ``x`` at runtime, so the extractor looks straight through them.

    Args:
        node: Any expression node (may be None).

    Returns:
        The innermost non-wrapper expression, or None if ``node`` was None.
    """
    while node is not None and node.type in WRAPPER_NODE_TYPES:
        children = named_children(node)
        if not children:
            return node
        # <T>expr keeps the expression last, every other wrapper keeps it first
        node = children[-1] if node.type == "type_assertion" else children[0]
    return node


def wrapper_type_node(node):
    """Return the type node of an ``as``/``satisfies`` wrapper, if any."""
    if node is None or node.type not in ("as_expression", "satisfies_expression"):
        return None
    children = named_children(node)
    return children[1] if len(children) > 1 else None


def decode_js_escapes(raw):
    """Decode JavaScript escape sequences found in the body of a string literal."""

    def replace(match):
        escape = match.group(1)
        if escape in SIMPLE_ESCAPES:
            return SIMPLE_ESCAPES[escape]
        if escape.startswith("u{"):
            return chr(int(escape[2:-1], 16))
        if escape.startswith("u") and len(escape) == 5:
            return chr(int(escape[1:], 16))
        if escape.startswith("x") and len(escape) == 3:
            return chr(int(escape[1:], 16))
        if escape.isdigit() and all(c in "01234567" for c in escape):
            return chr(int(escape, 8))
        return escape

    return JS_ESCAPE_PATTERN.sub(replace, raw)


def decode_string_literal(node):
    """Return the value denoted by a ``string`` or substitution-free ``template_string`` node."""
    text = node_text(node)
    return decode_js_escapes(text[1:-1])


def has_substitutions(template_node):
    return any(child.type == "template_substitution" for child in template_node.children)


def is_string_literal(node):
    if node is None:
        return False
    if node.type == "string":
        return True
    return node.type == "template_string" and not has_substitutions(node)


def property_key(pair):
    """
    Return the static key name of an object member, or None for computed keys.

    Handles ``key: value`` pairs, methods and getters (``get key() {}``).
    """
    key = pair.child_by_field_name("key") or pair.child_by_field_name("name")
    if key is None:
        return None
    if key.type in ("property_identifier", "identifier", "private_property_identifier"):
        return node_text(key)
    if key.type == "string":
        return decode_string_literal(key)
    if key.type == "number":
        return node_text(key)
    return None


def object_pairs(obj):
    """Yield ``(key, pair_node)`` for every ``key: value`` member of an object literal."""
    for child in named_children(obj):
        if child.type != "pair":
            continue
        key = property_key(child)
        if key is not None:
            yield key, child


def get_property(obj, name):
    """Return the first ``pair`` of object literal ``obj`` whose key is ``name``."""
    if obj is None or obj.type != "object":
        return None
    for key, pair in object_pairs(obj):
        if key == name:
            return pair
    return None


def get_property_value(obj, name):
    """Return the value node of property ``name`` of object literal ``obj``."""
    pair = get_property(obj, name)
    if pair is None:
        return None
    return pair.child_by_field_name("value")


def member_value_node(obj, name):
    """
    Value node of member ``name``: the value of ``name: value`` or, for the
    shorthand ``{ name }``, the shorthand identifier itself.
    """
    value = get_property_value(obj, name)
    if value is not None:
        return value
    if obj is None or obj.type != "object":
        return None
    for child in named_children(obj):
        if child.type == "shorthand_property_identifier" and node_text(child) == name:
            return child
    return None


def has_property(obj, name):
    """True if ``obj`` declares ``name`` in any form (pair, shorthand, method or getter)."""
    if obj is None or obj.type != "object":
        return False
    for child in named_children(obj):
        if child.type == "shorthand_property_identifier" and node_text(child) == name:
            return True
        if child.type in ("pair", "method_definition") and property_key(child) == name:
            return True
    return False


def is_getter(method):
    return method.type == "method_definition" and any(
        not child.is_named and child.type == "get" for child in method.children
    )


def find_getter(obj, name):
    """Return the ``get name() {}`` accessor of ``obj``, if declared."""
    if obj is None or obj.type != "object":
        return None
    for child in named_children(obj):
        if is_getter(child) and property_key(child) == name:
            return child
    return None


def is_true_literal(node):
    return node is not None and unwrap_node(node).type == "true"


def array_elements(array):
    return named_children(array)


def call_callee(call):
    return call.child_by_field_name("function")


def call_arguments(call):
    args = call.child_by_field_name("arguments")
    if args is None:
        return []
    return named_children(args)


def member_parts(member):
    """Return ``(object_node, property_name)`` for a ``member_expression``."""
    prop = member.child_by_field_name("property")
    return member.child_by_field_name("object"), node_text(prop) if prop is not None else None


def is_method_call(call, method_name, receiver_name=None):
    """
    True if ``call`` is ``<receiver>.<method_name>(...)``.

    When ``receiver_name`` is given the receiver must be that plain identifier,
    e.g. ``is_method_call(node, "keys", "Object")`` for ``Object.keys(x)``.
    """
    if call is None or call.type != "call_expression":
        return False
    callee = call_callee(call)
    if callee is None or callee.type != "member_expression":
        return False
    receiver, name = member_parts(callee)
    if name != method_name:
        return False
    if receiver_name is None:
        return True
    return receiver is not None and receiver.type == "identifier" and node_text(receiver) == receiver_name


def call_receiver(call):
    """Return the object a method is called on (``x`` in ``x.map(f)``)."""
    callee = call_callee(call)
    if callee is None or callee.type != "member_expression":
        return None
    return callee.child_by_field_name("object")


def function_parameter_names(function):
    """
    Return the plain parameter names of a function, or None if any parameter
    uses a destructuring pattern.
    """
    single = function.child_by_field_name("parameter")
    if single is not None:
        return [node_text(single)] if single.type == "identifier" else None
    params = function.child_by_field_name("parameters")
    if params is None:
        return []
    names = []
    for param in named_children(params):
        pattern = param.child_by_field_name("pattern") if param.type != "identifier" else param
        if pattern is None or pattern.type != "identifier":
            return None
        names.append(node_text(pattern))
    return names


def function_body_expression(function):
    """
    Return the expression a function evaluates to.

    Expression-bodied arrows return their body; block bodies are accepted when
    their first statement is a ``return``.
    """
    body = function.child_by_field_name("body")
    if body is None:
        return None
    if body.type != "statement_block":
        return body
    for statement in named_children(body):
        if statement.type == "return_statement":
            return first_named_child(statement)
        break
    return None


def walk(node):
    """Depth-first pre-order iteration over ``node`` and its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def find_first(node, predicate):
    for candidate in walk(node):
        if predicate(candidate):
            return candidate
    return None
