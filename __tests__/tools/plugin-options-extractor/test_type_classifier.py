"""
Rule-by-rule tests for the type classifier decision table, and for resolving
a setting's ``type`` property to an ``OptionType`` name.
"""

import unittest
import sys
import os

# Add plugin-options-extractor directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../../tools/plugin-options-extractor'))

from ts_parser import SourceProject
from default_shape import DefaultEvidence
from options_matcher import EMPTY_CHOICES, OptionChoices
from option_types import TargetType
from outcome import ErrorKind
from type_classifier import CLASSIFICATION_RULES, classify, matching_rule, option_type_of


OPTION_TYPE_ENUM = "enum OptionType { STRING, NUMBER, BIGINT, BOOLEAN, SELECT, SLIDER, COMPONENT, CUSTOM }\n"


def option_type(code):
    project = SourceProject()
    source = project.add_source("test.ts", code)
    return option_type_of(source.declarations["setting"].value, project)


def empty_array_node():
    project = SourceProject()
    source = project.add_source("test.ts", "const value = [];")
    return source.declarations["value"].value


class TestOptionTypeOf(unittest.TestCase):

    def test_member_name_without_enum_in_reach(self):
        self.assertEqual(option_type("const setting = { type: OptionType.SLIDER };").value, "SLIDER")

    def test_member_through_enum_declaration(self):
        code = OPTION_TYPE_ENUM + "const setting = { type: OptionType.CUSTOM };"
        self.assertEqual(option_type(code).value, "CUSTOM")

    def test_numeric_type(self):
        self.assertEqual(option_type("const setting = { type: 3 };").value, "BOOLEAN")

    def test_identifier_holding_member_value(self):
        code = OPTION_TYPE_ENUM + "const KIND = OptionType.SELECT;\nconst setting = { type: KIND };"
        self.assertEqual(option_type(code).value, "SELECT")

    def test_missing_type(self):
        outcome = option_type("const setting = { default: 1 };")
        self.assertTrue(outcome.ok)
        self.assertIsNone(outcome.value)

    def test_unresolvable_type(self):
        outcome = option_type("const setting = { type: mystery };")
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.error.kind, ErrorKind.UNRESOLVED_IDENTIFIER)

    def test_out_of_range_type(self):
        outcome = option_type("const setting = { type: 42 };")
        self.assertEqual(outcome.error.kind, ErrorKind.UNSUPPORTED_PATTERN)


class TestClassificationRules(unittest.TestCase):
    """Each case names the rule expected to fire, so table order changes show up here."""

    def assertRule(self, rule, target, option_type, evidence=None, choices=EMPTY_CHOICES):
        evidence = evidence if evidence is not None else DefaultEvidence()
        self.assertEqual(matching_rule(option_type, evidence, choices), rule)
        self.assertEqual(classify(option_type, evidence, choices), target)

    def test_boolean_enum_collapses_to_bool(self):
        for option_type in ("SELECT", "STRING", None):
            with self.subTest(option_type=option_type):
                self.assertRule("boolean-enum", TargetType.BOOL, option_type, choices=OptionChoices((True, False)))

    def test_three_booleans_is_not_a_boolean_enum(self):
        self.assertRule("enum", TargetType.ENUM, "SELECT", choices=OptionChoices((True, False, True)))

    def test_enum(self):
        self.assertRule("enum", TargetType.ENUM, "SELECT", choices=OptionChoices(("a", "b")))

    def test_declared_scalar_types(self):
        self.assertRule("boolean", TargetType.BOOL, "BOOLEAN")
        self.assertRule("string", TargetType.STR, "STRING")
        self.assertRule("number", TargetType.INT, "NUMBER")
        self.assertRule("bigint", TargetType.INT, "BIGINT")
        self.assertRule("slider", TargetType.FLOAT, "SLIDER")
        self.assertRule("select", TargetType.STR, "SELECT")

    def test_fractional_number(self):
        self.assertRule("fractional-number", TargetType.FLOAT, "NUMBER", DefaultEvidence(literal=2.5, shape="literal"))
        self.assertRule("number", TargetType.INT, "NUMBER", DefaultEvidence(literal=3, shape="literal"))

    def test_string_with_array_default_stays_string(self):
        evidence = DefaultEvidence(shape="array", string_array=True)
        self.assertRule("string", TargetType.STR, "STRING", evidence)

    def test_string_array(self):
        evidence = DefaultEvidence(shape="array", string_array=True)
        self.assertRule("string-array", TargetType.LIST_OF_STR, "CUSTOM", evidence)
        self.assertRule("string-array", TargetType.LIST_OF_STR, None, evidence)

    def test_object_array(self):
        evidence = DefaultEvidence(shape="array", object_array=True)
        self.assertRule("object-array", TargetType.LIST_OF_ATTRS, "CUSTOM", evidence)

    def test_object_array_behind_identifier_is_not_inlined(self):
        evidence = DefaultEvidence(shape="array", object_array=True, identifier=True, identifier_declared=True)
        self.assertRule("component-array", TargetType.STR, "CUSTOM", evidence)

    def test_empty_typed_arrays(self):
        evidence = DefaultEvidence(shape="array", empty_typed_array=True)
        self.assertRule("empty-custom-array", TargetType.LIST_OF_ATTRS, "CUSTOM", evidence)
        self.assertRule("empty-typed-array", TargetType.LIST_OF_STR, None, evidence)

    def test_empty_array(self):
        evidence = DefaultEvidence(initializer=empty_array_node(), shape="array")
        self.assertRule("empty-array", TargetType.LIST_OF_STR, "CUSTOM", evidence)

    def test_declared_types_without_option_type(self):
        self.assertRule("declared-boolean", TargetType.BOOL, None, DefaultEvidence(shape="call", declared_kind="boolean"))
        self.assertRule("declared-string", TargetType.STR, None, DefaultEvidence(shape="call", declared_kind="string"))
        self.assertRule("declared-number", TargetType.INT, None, DefaultEvidence(shape="call", declared_kind="number"))
        self.assertRule("declared-collection", TargetType.ATTRS, None, DefaultEvidence(shape="call", declared_kind="array"))
        self.assertRule(
            "declared-collection", TargetType.ATTRS, None, DefaultEvidence(shape="renderer", declared_kind="component")
        )

    def test_declared_type_is_ignored_with_option_type(self):
        evidence = DefaultEvidence(shape="call", declared_kind="boolean")
        self.assertRule(None, TargetType.STR, "CUSTOM", evidence)

    def test_missing_default(self):
        self.assertRule("missing-default", TargetType.ATTRS, "COMPONENT", DefaultEvidence())
        self.assertRule("missing-default", TargetType.ATTRS, "CUSTOM", DefaultEvidence(shape="null"))
        self.assertRule("missing-default", TargetType.ATTRS, None, DefaultEvidence(shape="getter", getter=True))

    def test_component_array(self):
        self.assertRule("component-array", TargetType.STR, "COMPONENT", DefaultEvidence(shape="array"))

    def test_object_default(self):
        self.assertRule("object-default", TargetType.ATTRS, "CUSTOM", DefaultEvidence(shape="object"))
        self.assertRule("object-default", TargetType.ATTRS, None, DefaultEvidence(shape="object"))

    def test_runtime_literal_types(self):
        self.assertRule("runtime-bool", TargetType.BOOL, "CUSTOM", DefaultEvidence(literal=True, shape="literal"))
        self.assertRule("runtime-string", TargetType.STR, None, DefaultEvidence(literal="x", shape="literal"))
        self.assertRule("runtime-int", TargetType.INT, "CUSTOM", DefaultEvidence(literal=5, shape="literal"))
        self.assertRule("runtime-float", TargetType.FLOAT, None, DefaultEvidence(literal=0.5, shape="literal"))

    def test_collection_default(self):
        self.assertRule("collection-default", TargetType.ATTRS, None, DefaultEvidence(shape="array"))

    def test_terminal_fallback(self):
        self.assertRule(None, TargetType.STR, "CUSTOM", DefaultEvidence(shape="unresolved", identifier=True))

    def test_rule_names_are_unique(self):
        names = [rule.name for rule in CLASSIFICATION_RULES]
        self.assertEqual(len(names), len(set(names)))


if __name__ == "__main__":
    unittest.main()
