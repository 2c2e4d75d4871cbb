"""
Tests for default resolution: the precedence of the default rules, the
``default: true`` marker search, call folding for attribute-set defaults,
and the shape evidence those rules are built on.
"""

import unittest
import sys
import os

# Add plugin-options-extractor directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../../tools/plugin-options-extractor'))

from ts_parser import SourceProject
from default_shape import inspect_default
from default_resolver import find_default_marker, fold_call_default, resolve_default
from options_matcher import extract_choices
from option_types import NOT_SET, TargetType
from type_classifier import classify, option_type_of
from node_utils import unwrap_node, member_value_node


def setting_from(code):
    project = SourceProject()
    source = project.add_source("test.ts", code)
    return source.declarations["setting"].value, project


def resolve(code):
    """Run classification and default resolution for ``const setting = {...}``."""
    setting, project = setting_from(code)
    option_type = option_type_of(setting, project).value_or(None)
    choices = extract_choices(setting, project).value
    evidence = inspect_default(setting, project)
    target = classify(option_type, evidence, choices)
    return resolve_default(setting, target, evidence, choices, project, option_type)


class TestDefaultShape(unittest.TestCase):

    def test_absent_default(self):
        setting, project = setting_from("const setting = { type: OptionType.STRING };")
        evidence = inspect_default(setting, project)
        self.assertEqual(evidence.shape, "absent")
        self.assertFalse(evidence.has_literal)

    def test_literal_default(self):
        setting, project = setting_from("const setting = { default: 1 << 3 };")
        evidence = inspect_default(setting, project)
        self.assertEqual(evidence.shape, "literal")
        self.assertEqual(evidence.literal, 8)

    def test_getter_default(self):
        setting, project = setting_from("const setting = { get default() { return Date.now(); } };")
        evidence = inspect_default(setting, project)
        self.assertTrue(evidence.getter)
        self.assertEqual(evidence.shape, "getter")

    def test_null_and_undefined(self):
        for value in ("null", "undefined"):
            with self.subTest(value=value):
                setting, project = setting_from(f"const setting = {{ default: {value} }};")
                self.assertEqual(inspect_default(setting, project).shape, "null")

    def test_string_array_through_identifier(self):
        setting, project = setting_from('const NAMES = ["a", "b"];\nconst setting = { default: NAMES };')
        evidence = inspect_default(setting, project)
        self.assertTrue(evidence.string_array)
        self.assertTrue(evidence.identifier_is_array)

    def test_asserted_element_type_decides_string_array(self):
        setting, project = setting_from('const setting = { default: ["a"] as Rule[] };')
        self.assertFalse(inspect_default(setting, project).string_array)
        setting, project = setting_from("const setting = { default: [] as string[] };")
        evidence = inspect_default(setting, project)
        self.assertTrue(evidence.string_array)
        self.assertTrue(evidence.empty_typed_array)

    def test_object_array_returned_by_local_function(self):
        code = (
            "function defaultRules() { return [{ match: 'a' }, { match: 'b' }]; }\n"
            "const setting = { default: defaultRules() };"
        )
        setting, project = setting_from(code)
        evidence = inspect_default(setting, project)
        self.assertTrue(evidence.object_array)
        self.assertEqual(evidence.shape, "array")

    def test_call_with_object_argument_is_object_shaped(self):
        setting, project = setting_from("const setting = { default: makeConfig({ a: 1 }) };")
        self.assertEqual(inspect_default(setting, project).shape, "object")

    def test_object_builtins(self):
        setting, project = setting_from("const setting = { default: Object.fromEntries(pairs) };")
        self.assertEqual(inspect_default(setting, project).shape, "object")
        setting, project = setting_from("const setting = { default: Object.keys(table) };")
        self.assertEqual(inspect_default(setting, project).shape, "array")

    def test_renderer(self):
        setting, project = setting_from("const setting = { default: () => null };")
        self.assertEqual(inspect_default(setting, project).shape, "renderer")

    def test_declared_kind_from_annotation(self):
        code = "const enabled: boolean = isEnabled();\nconst setting = { default: enabled };"
        setting, project = setting_from(code)
        self.assertEqual(inspect_default(setting, project).declared_kind, "boolean")

    def test_unresolved_identifier(self):
        setting, project = setting_from("const setting = { default: nowhere };")
        evidence = inspect_default(setting, project)
        self.assertEqual(evidence.shape, "unresolved")
        self.assertTrue(evidence.identifier)
        self.assertFalse(evidence.identifier_declared)


class TestResolveDefault(unittest.TestCase):

    def test_literal_default_wins(self):
        self.assertEqual(resolve('const setting = { type: OptionType.STRING, default: "abc" };'), (TargetType.STR, "abc"))

    def test_identifier_literal_default(self):
        code = "const SIZE = 16;\nconst setting = { type: OptionType.NUMBER, default: SIZE };"
        self.assertEqual(resolve(code), (TargetType.INT, 16))

    def test_string_array_collapses_to_empty_list(self):
        code = 'const setting = { type: OptionType.STRING, default: ["one", "two"] };'
        self.assertEqual(resolve(code), (TargetType.LIST_OF_STR, []))

    def test_list_types_default_to_empty_list(self):
        code = "const setting = { type: OptionType.CUSTOM, default: [{ id: 1 }] };"
        self.assertEqual(resolve(code), (TargetType.LIST_OF_ATTRS, []))

    def test_boolean_without_default(self):
        self.assertEqual(resolve("const setting = { type: OptionType.BOOLEAN };"), (TargetType.BOOL, False))

    def test_boolean_enum_uses_marker(self):
        code = (
            "const setting = { type: OptionType.SELECT, options: [\n"
            '  { label: "Yes", value: true, default: true },\n'
            '  { label: "No", value: false },\n'
            "] };"
        )
        self.assertEqual(resolve(code), (TargetType.BOOL, True))

    def test_enum_falls_back_to_first_choice(self):
        code = 'const setting = { type: OptionType.SELECT, options: ["a", "b"] };'
        self.assertEqual(resolve(code), (TargetType.ENUM, "a"))

    def test_enum_marker_from_comparison(self):
        code = (
            "const setting = { type: OptionType.SELECT,\n"
            '  options: ["light", "dark"].map(t => ({ label: t, value: t, default: t === "dark" })) };'
        )
        self.assertEqual(resolve(code), (TargetType.ENUM, "dark"))

    def test_enum_marker_inside_spread(self):
        code = (
            'const BASE = [{ value: "a" }, { value: "b", default: true }];\n'
            'const setting = { type: OptionType.SELECT, options: [...BASE, { value: "c" }] };'
        )
        self.assertEqual(resolve(code), (TargetType.ENUM, "b"))

    def test_unresolved_custom_identifier_is_nullable(self):
        code = "const setting = { type: OptionType.CUSTOM, default: someUnresolvedIdentifier };"
        self.assertEqual(resolve(code), (TargetType.NULLABLE_STR, None))

    def test_custom_identifier_object_array_is_promoted(self):
        code = (
            'const DEFAULT_RULES = [{ match: "x" }];\n'
            "const setting = { type: OptionType.CUSTOM, default: DEFAULT_RULES };"
        )
        self.assertEqual(resolve(code), (TargetType.LIST_OF_ATTRS, []))

    def test_getter_attrs_become_nullable(self):
        code = "const setting = { type: OptionType.CUSTOM, get default() { return load(); } };"
        self.assertEqual(resolve(code), (TargetType.NULLABLE_STR, None))

    def test_call_default_is_folded(self):
        code = (
            "const setting = { type: OptionType.CUSTOM,\n"
            '  default: makeConfig({ size: 12, name: "x", tags: [a, b], nested: { k: v }, fn: () => 1 }) };'
        )
        self.assertEqual(
            resolve(code),
            (TargetType.ATTRS, {"size": 12, "name": "x", "tags": [], "nested": {}}),
        )

    def test_object_literal_default(self):
        code = "const setting = { type: OptionType.CUSTOM, default: { a: 1 } };"
        self.assertEqual(resolve(code), (TargetType.ATTRS, {}))

    def test_component_without_default(self):
        self.assertEqual(resolve("const setting = { type: OptionType.COMPONENT };"), (TargetType.ATTRS, {}))

    def test_float_literal(self):
        self.assertEqual(resolve("const setting = { type: OptionType.SLIDER, default: 0.5 };"), (TargetType.FLOAT, 0.5))


class TestMarkerSearch(unittest.TestCase):

    def test_marker_position_does_not_matter(self):
        values = ["x", "y", "z"]
        for marked in values:
            with self.subTest(marked=marked):
                elements = ", ".join(
                    f'{{ value: "{v}", default: true }}' if v == marked else f'{{ value: "{v}" }}' for v in values
                )
                setting, project = setting_from(f"const setting = {{ options: [{elements}] }};")
                self.assertEqual(find_default_marker(setting, project), marked)

    def test_no_marker(self):
        setting, project = setting_from('const setting = { options: [{ value: "x" }] };')
        self.assertIs(find_default_marker(setting, project), NOT_SET)

    def test_negated_marker(self):
        code = 'const setting = { options: ["a", "b"].map(v => ({ value: v, default: v !== "a" })) };'
        setting, project = setting_from(code)
        self.assertEqual(find_default_marker(setting, project), "b")

    def test_comparison_constant_when_nothing_matches(self):
        code = (
            "const Layouts = { grid: 1, list: 2 };\n"
            'const setting = { options: Object.keys(Layouts).map(k => ({ value: k, default: k === "cards" })) };'
        )
        setting, project = setting_from(code)
        self.assertEqual(find_default_marker(setting, project), "cards")


class TestFoldCallDefault(unittest.TestCase):

    def test_call_without_object_argument(self):
        setting, project = setting_from("const setting = { default: Object.keys(table) };")
        call = unwrap_node(member_value_node(setting, "default"))
        self.assertEqual(fold_call_default(call, project), [])

    def test_object_argument_is_folded(self):
        code = (
            "const LIMIT = 4;\n"
            'const setting = { default: createStore({ name: "store", limit: LIMIT * 2, '
            "tags: [compute()], extra: { a: compute() }, handler: compute() }) };"
        )
        setting, project = setting_from(code)
        call = unwrap_node(member_value_node(setting, "default"))
        self.assertEqual(
            fold_call_default(call, project),
            {"name": "store", "limit": 8, "tags": [], "extra": {}},
        )

    def test_factory_without_arguments(self):
        setting, project = setting_from("const setting = { default: createStore() };")
        call = unwrap_node(member_value_node(setting, "default"))
        self.assertEqual(fold_call_default(call, project), {})


if __name__ == "__main__":
    unittest.main()
