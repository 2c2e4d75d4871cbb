"""
Parsed-program provider for plugin sources.

Wraps tree-sitter's TypeScript/TSX grammars and gives the rest of the extractor
three things the grammar alone does not:

- a per-file declaration table (top-level ``const``/``let``/``var``
  declarators, ``enum``s, functions, imports and exports), built once when the
  file is parsed
- module resolution for ``import`` specifiers (relative paths and
  tsconfig-style aliases such as ``@utils/types``)
- a way back from any node to the ``SourceFile`` that owns it

Files are loaded lazily and cached; loading is safe to call from several
worker threads at once. Parsed trees are never modified.
"""
import os
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional

try:
    import tree_sitter_typescript as tstypescript
except ImportError:
    raise ImportError("Missing required dependency 'tree-sitter-typescript': install with pip install tree-sitter-typescript")

from tree_sitter import Language, Parser

from option_types import DEFAULT_LOOKUP_TABLES, EXTERNAL_ENUMS
from node_utils import (
    decode_string_literal,
    named_children,
    node_text,
    walk,
    wrapper_type_node,
)

logger = logging.getLogger(__name__)

TYPESCRIPT_LANGUAGE = Language(tstypescript.language_typescript())
TSX_LANGUAGE = Language(tstypescript.language_tsx())

MODULE_EXTENSIONS = (".ts", ".tsx", "/index.ts", "/index.tsx")

VARIABLE_DECLARATION_TYPES = ("lexical_declaration", "variable_declaration")
FUNCTION_DECLARATION_TYPES = ("function_declaration", "generator_function_declaration")

COMPONENT_TYPE_NAMES = {
    "Component",
    "ComponentType",
    "FC",
    "FunctionComponent",
    "ReactNode",
    "ReactElement",
    "Element",
}


def get_language(path):
    """Pick the grammar for ``path``: TSX for ``.tsx`` files, TypeScript otherwise."""
    return TSX_LANGUAGE if str(path).endswith(".tsx") else TYPESCRIPT_LANGUAGE


def get_parser(path):
    return Parser(get_language(path))


@dataclass(frozen=True)
class Declaration:
    """
    A name bound in some scope.

    ``kind`` is one of ``variable``, ``enum``, ``function``, ``class``,
    ``import``, ``namespace`` or ``parameter``. ``value`` holds the initializer
    for variables and the function node itself for function declarations.
    Imports carry the module ``source`` and the ``imported_name`` they bind.
    """
    kind: str
    name: str
    node: object
    value: Optional[object] = None
    source: Optional[str] = None
    imported_name: Optional[str] = None


def _declarator_declarations(statement):
    for declarator in named_children(statement):
        if declarator.type != "variable_declarator":
            continue
        name = declarator.child_by_field_name("name")
        if name is None or name.type != "identifier":
            continue
        yield Declaration("variable", node_text(name), declarator, declarator.child_by_field_name("value"))


def _import_declarations(statement):
    source_node = statement.child_by_field_name("source")
    if source_node is None:
        return
    source = decode_string_literal(source_node)
    for clause in named_children(statement):
        if clause.type != "import_clause":
            continue
        for item in named_children(clause):
            if item.type == "identifier":
                yield Declaration("import", node_text(item), item, source=source, imported_name="default")
            elif item.type == "namespace_import":
                alias = item.named_children[-1] if item.named_children else None
                if alias is not None:
                    yield Declaration("namespace", node_text(alias), item, source=source)
            elif item.type == "named_imports":
                for specifier in named_children(item):
                    if specifier.type != "import_specifier":
                        continue
                    name = specifier.child_by_field_name("name")
                    alias = specifier.child_by_field_name("alias") or name
                    if name is None:
                        continue
                    yield Declaration(
                        "import", node_text(alias), specifier, source=source, imported_name=node_text(name)
                    )


def _statement_declarations(statement):
    """Yield the declarations a single statement introduces into its scope."""
    if statement.type in ("export_statement", "ambient_declaration"):
        inner = statement.child_by_field_name("declaration")
        if inner is None:
            inner = next((c for c in named_children(statement) if c.type.endswith("declaration")), None)
        if inner is not None:
            yield from _statement_declarations(inner)
        return
    if statement.type in VARIABLE_DECLARATION_TYPES:
        yield from _declarator_declarations(statement)
    elif statement.type == "enum_declaration":
        name = statement.child_by_field_name("name")
        if name is not None:
            yield Declaration("enum", node_text(name), statement)
    elif statement.type in FUNCTION_DECLARATION_TYPES:
        name = statement.child_by_field_name("name")
        if name is not None:
            yield Declaration("function", node_text(name), statement, statement)
    elif statement.type in ("class_declaration", "abstract_class_declaration"):
        name = statement.child_by_field_name("name")
        if name is not None:
            yield Declaration("class", node_text(name), statement)
    elif statement.type == "import_statement":
        yield from _import_declarations(statement)


def collect_declarations(container) -> Dict[str, Declaration]:
    """
    Build the name table of a ``program`` or ``statement_block``.

    Only direct children are inspected; nested blocks are separate scopes.
    The first declaration of a name wins.
    """
    table = {}
    for statement in named_children(container):
        for declaration in _statement_declarations(statement):
            table.setdefault(declaration.name, declaration)
    return table


def collect_exports(program, declarations) -> Dict[str, Declaration]:
    """Map exported names (including ``default``) to their declarations."""
    exports = {}
    for statement in named_children(program):
        if statement.type != "export_statement":
            continue
        inner = statement.child_by_field_name("declaration")
        if inner is not None:
            for declaration in _statement_declarations(inner):
                exports.setdefault(declaration.name, declaration)
            continue
        value = statement.child_by_field_name("value")
        if value is not None:
            exports["default"] = Declaration("variable", "default", statement, value)
            continue
        for clause in named_children(statement):
            if clause.type != "export_clause":
                continue
            for specifier in named_children(clause):
                name = specifier.child_by_field_name("name")
                alias = specifier.child_by_field_name("alias") or name
                if name is not None and node_text(name) in declarations:
                    exports.setdefault(node_text(alias), declarations[node_text(name)])
    return exports


class SourceFile:
    """A parsed TypeScript/TSX file with its top-level name tables."""

    def __init__(self, path, source: bytes):
        self.path = path
        self.source = source
        self.tree = get_parser(path).parse(source)
        self.root = self.tree.root_node
        self.declarations = collect_declarations(self.root)
        self.exports = collect_exports(self.root, self.declarations)

    def __repr__(self) -> str:
        return f"(path={self.path}, declarations={len(self.declarations)})"

    @property
    def has_errors(self) -> bool:
        return self.root.has_error

    def variable_declarators(self, name):
        """Every ``variable_declarator`` binding ``name``, at any depth, in source order."""
        for node in walk(self.root):
            if node.type != "variable_declarator":
                continue
            binding = node.child_by_field_name("name")
            if binding is not None and binding.type == "identifier" and node_text(binding) == name:
                yield node


class SourceProject:
    """
    The set of source files an extraction run has looked at.

    Args:
        root: Source tree root used to expand ``path_aliases``.
        path_aliases: Mapping of import prefixes to directories relative to
            ``root``, e.g. ``{"@utils": "src/utils"}``.
        external_enums: Enum tables for declarations that never appear in the
            analyzed sources, keyed by enum name then member name.
        lookup_tables: Lookup-table option idioms (see ``options_matcher``).
    """

    def __init__(self, root=None, path_aliases=None, external_enums=None, lookup_tables=None):
        self.root = root
        self.path_aliases = dict(path_aliases or {})
        self.external_enums = dict(EXTERNAL_ENUMS)
        for enum_name, members in (external_enums or {}).items():
            self.external_enums[enum_name] = {**self.external_enums.get(enum_name, {}), **members}
        self.lookup_tables = list(DEFAULT_LOOKUP_TABLES if lookup_tables is None else lookup_tables)
        self._files: Dict[str, SourceFile] = {}
        self._by_root_id: Dict[int, SourceFile] = {}
        self._lock = threading.Lock()

    def _normalize(self, path):
        if not os.path.isabs(path) and self.root:
            path = os.path.join(self.root, path)
        return os.path.normpath(os.path.abspath(path))

    def _register(self, path, source):
        parsed = SourceFile(path, source)
        if parsed.has_errors:
            logger.debug(f"Syntax errors while parsing {path}; continuing with partial tree")
        with self._lock:
            existing = self._files.get(path)
            if existing is not None:
                return existing
            self._files[path] = parsed
            self._by_root_id[parsed.root.id] = parsed
        return parsed

    def get(self, path) -> Optional[SourceFile]:
        with self._lock:
            return self._files.get(self._normalize(path))

    def load(self, path) -> SourceFile:
        """Parse ``path`` (once) and return its ``SourceFile``. Raises ``OSError`` if unreadable."""
        path = self._normalize(path)
        with self._lock:
            cached = self._files.get(path)
        if cached is not None:
            return cached
        with open(path, "rb") as f:
            source = f.read()
        logger.debug(f"Parsed {path}")
        return self._register(path, source)

    def add_source(self, path, code) -> SourceFile:
        """Register in-memory source text under ``path``."""
        if isinstance(code, str):
            code = code.encode("utf-8")
        return self._register(self._normalize(path), code)

    def file_of(self, node) -> Optional[SourceFile]:
        """Return the file whose tree contains ``node``."""
        while node.parent is not None:
            node = node.parent
        with self._lock:
            return self._by_root_id.get(node.id)

    def _alias_target(self, specifier):
        for alias in sorted(self.path_aliases, key=len, reverse=True):
            if specifier == alias or specifier.startswith(alias + "/"):
                rest = specifier[len(alias):].lstrip("/")
                return os.path.join(self.root or "", self.path_aliases[alias], rest)
        return None

    def resolve_module(self, from_file: SourceFile, specifier) -> Optional[SourceFile]:
        """
        Resolve an import specifier to a loaded ``SourceFile``.

        Bare package specifiers that match no alias resolve to None.
        """
        if specifier.startswith("."):
            base = os.path.join(os.path.dirname(from_file.path), specifier)
        else:
            base = self._alias_target(specifier)
            if base is None:
                return None
        base = self._normalize(base)
        candidates = [base] if base.endswith((".ts", ".tsx")) else []
        candidates += [base + ext for ext in MODULE_EXTENSIONS]
        for candidate in candidates:
            candidate = os.path.normpath(candidate)
            with self._lock:
                cached = self._files.get(candidate)
            if cached is not None:
                return cached
            if os.path.isfile(candidate):
                try:
                    return self.load(candidate)
                except OSError as e:
                    logger.debug(f"Failed to read {candidate}: {e}")
                    return None
        logger.debug(f"Unresolved import '{specifier}' from {from_file.path}")
        return None


def _type_name(type_node):
    if type_node.type in ("type_identifier", "identifier"):
        return node_text(type_node)
    if type_node.type == "nested_type_identifier":
        return node_text(type_node).rsplit(".", 1)[-1]
    if type_node.type == "generic_type":
        name = type_node.child_by_field_name("name")
        return _type_name(name) if name is not None else None
    return None


def annotation_kind(type_node):
    """
    Classify a TypeScript type into ``boolean``, ``string``, ``number``,
    ``array`` or ``component``; None when the type says nothing useful.
    """
    if type_node is None:
        return None
    if type_node.type == "type_annotation":
        children = named_children(type_node)
        return annotation_kind(children[0]) if children else None
    if type_node.type == "parenthesized_type":
        children = named_children(type_node)
        return annotation_kind(children[0]) if children else None
    if type_node.type == "predefined_type":
        text = node_text(type_node)
        if text == "bigint":
            return "number"
        return text if text in ("boolean", "string", "number") else None
    if type_node.type == "literal_type":
        child = named_children(type_node)
        if not child:
            return None
        return {"string": "string", "number": "number", "true": "boolean", "false": "boolean"}.get(child[0].type)
    if type_node.type in ("array_type", "tuple_type", "readonly_type"):
        return "array"
    if type_node.type == "union_type":
        kinds = {
            annotation_kind(member)
            for member in named_children(type_node)
            if node_text(member) not in ("null", "undefined")
        }
        return kinds.pop() if len(kinds) == 1 else None
    name = _type_name(type_node)
    if name in ("Array", "ReadonlyArray"):
        return "array"
    if name in COMPONENT_TYPE_NAMES:
        return "component"
    return None


def declared_type_kind(node):
    """
    Best-effort static type of an expression from the annotations around it:
    ``x as T`` / ``x satisfies T`` wrappers, or the ``: T`` annotation of the
    declarator it initializes.
    """
    current = node
    while current is not None:
        kind = annotation_kind(wrapper_type_node(current))
        if kind is not None:
            return kind
        if current.type not in ("as_expression", "satisfies_expression", "parenthesized_expression"):
            break
        current = named_children(current)[0] if named_children(current) else None
    parent = node.parent
    if parent is not None and parent.type == "variable_declarator":
        return annotation_kind(parent.child_by_field_name("type"))
    return None


def array_element_kind(type_node):
    """For ``T[]`` or ``Array<T>`` return ``annotation_kind(T)``; None for other types."""
    if type_node is None:
        return None
    if type_node.type == "type_annotation":
        children = named_children(type_node)
        return array_element_kind(children[0]) if children else None
    if type_node.type == "readonly_type":
        children = named_children(type_node)
        return array_element_kind(children[0]) if children else None
    if type_node.type == "array_type":
        children = named_children(type_node)
        return (annotation_kind(children[0]) or "object") if children else None
    if type_node.type == "generic_type" and _type_name(type_node) in ("Array", "ReadonlyArray"):
        arguments = type_node.child_by_field_name("type_arguments")
        children = named_children(arguments) if arguments is not None else []
        return (annotation_kind(children[0]) or "object") if children else None
    return None
