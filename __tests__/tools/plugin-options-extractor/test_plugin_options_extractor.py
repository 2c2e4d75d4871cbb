"""
Tests for plugin orchestration: per-plugin extraction, directory scans on a
temporary source tree, categorization into shared/Vencord-only/Equicord-only
and the JSON/YAML document layout.
"""

import unittest
import tempfile
import sys
import os

# Add plugin-options-extractor directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../../tools/plugin-options-extractor'))

from ts_parser import SourceProject
from extractor_config import load_config
from plugin_settings import PluginConfig, Setting
from option_types import TargetType
from plugin_options_extractor import (
    ExtractionError,
    ExtractionSummary,
    ParsedPlugins,
    build_document,
    categorize_plugins,
    parse_plugins,
    parse_plugins_from_directory,
    parse_single_plugin,
    write_nix_modules,
)


INDEX_WITH_SETTINGS = """\
import definePlugin, { OptionType } from "@utils/types";
import { definePluginSettings } from "@api/Settings";

const settings = definePluginSettings({
    volume: { type: OptionType.SLIDER, description: "Volume", default: 0.5, markers: [0, 0.5, 1] },
});

export default definePlugin({ name: "Loud", description: "Makes noise", settings });
"""

INDEX_IMPORTING_SETTINGS = """\
import definePlugin from "@utils/types";
import { settings } from "./settings";

export default definePlugin({ name: "Split", description: "Settings live elsewhere", settings });
"""

SEPARATE_SETTINGS = """\
import { definePluginSettings } from "@api/Settings";
import { OptionType } from "@utils/types";

export const settings = definePluginSettings({
    prefix: { type: OptionType.STRING, description: "Prefix", default: "!" },
});
"""


def write_file(path, content=""):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def plugin(name, directory=None, is_modified=False, marker=None):
    settings = {}
    if marker is not None:
        settings["origin"] = Setting("origin", TargetType.STR, default=marker)
    return PluginConfig(name=name, directory_name=directory or name.lower(), settings=settings, is_modified=is_modified)


class TestParsing(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = self.tmp.name
        plugins = os.path.join(self.root, "src", "plugins")
        write_file(os.path.join(plugins, "loud", "index.tsx"), INDEX_WITH_SETTINGS)
        write_file(os.path.join(plugins, "split", "index.ts"), INDEX_IMPORTING_SETTINGS)
        write_file(os.path.join(plugins, "split", "settings.ts"), SEPARATE_SETTINGS)
        write_file(os.path.join(plugins, "no-settings", "index.ts"), "export default {};")
        self.plugins_dir = plugins
        self.config = load_config()

    def tearDown(self):
        self.tmp.cleanup()

    def project(self):
        return SourceProject(root=self.root, path_aliases=self.config["path_aliases"])

    def test_parse_single_plugin(self):
        config = parse_single_plugin(os.path.join(self.plugins_dir, "loud"), self.project(), self.config)
        self.assertEqual(config.name, "Loud")
        self.assertEqual(config.description, "Makes noise")
        self.assertEqual(config.settings["volume"].target_type, TargetType.FLOAT)
        self.assertEqual(config.settings["volume"].default, 0.5)

    def test_settings_in_separate_file(self):
        config = parse_single_plugin(os.path.join(self.plugins_dir, "split"), self.project(), self.config)
        self.assertEqual(config.name, "Split")
        self.assertEqual(config.settings["prefix"].default, "!")

    def test_name_falls_back_to_directory(self):
        config = parse_single_plugin(os.path.join(self.plugins_dir, "no-settings"), self.project(), self.config)
        self.assertEqual(config.name, "NoSettings")
        self.assertEqual(config.settings, {})

    def test_directory_without_source_is_skipped(self):
        empty = os.path.join(self.root, "empty")
        os.makedirs(empty)
        self.assertIsNone(parse_single_plugin(empty, self.project(), self.config))

    def test_parse_plugins_from_directory(self):
        plugins, summary = parse_plugins_from_directory(self.plugins_dir, self.project(), self.config)
        self.assertEqual(list(plugins), ["Loud", "NoSettings", "Split"])
        self.assertEqual((summary.found, summary.processed, summary.skipped), (3, 3, 0))

    def test_duplicate_names_keep_first_directory(self):
        padding = "".join(f"const filler{i} = {i};\n" for i in range(2000))
        write_file(
            os.path.join(self.plugins_dir, "aaa", "index.ts"),
            padding + 'export default definePlugin({ name: "Same", description: "from aaa" });',
        )
        write_file(
            os.path.join(self.plugins_dir, "zzz", "index.ts"),
            'export default definePlugin({ name: "Same", description: "from zzz" });',
        )
        for _ in range(5):
            with self.subTest():
                plugins, summary = parse_plugins_from_directory(self.plugins_dir, self.project(), self.config)
                self.assertEqual(plugins["Same"].directory_name, "aaa")
                self.assertEqual(plugins["Same"].description, "from aaa")
                self.assertEqual(summary.processed, 5)

    def test_parse_plugins(self):
        parsed = parse_plugins(self.root, self.config)
        self.assertEqual(sorted(parsed.vencord_plugins), ["Loud", "NoSettings", "Split"])
        self.assertEqual(parsed.equicord_plugins, {})
        self.assertEqual(parsed.summary.found, 3)

    def test_parse_plugins_with_directory_override(self):
        config = dict(self.config, vencord_plugins_dir="missing")
        parsed = parse_plugins(self.root, config, vencord_plugins_dir="src/plugins")
        self.assertEqual(len(parsed.vencord_plugins), 3)

    def test_missing_plugin_directories(self):
        with self.assertRaises(ExtractionError):
            parse_plugins(os.path.join(self.root, "src"), self.config)

    def test_write_nix_modules(self):
        parsed = parse_plugins(self.root, self.config)
        categories = categorize_plugins(parsed)
        output = os.path.join(self.root, "out")
        paths = write_nix_modules(categories, output)
        self.assertEqual(
            [os.path.relpath(p, output) for p in paths],
            [os.path.join("plugins", f"{n}.nix") for n in ("shared", "vencord", "equicord")],
        )
        with open(paths[1], encoding="utf-8") as f:
            vencord_module = f.read()
        self.assertIn("loud = {", vencord_module)
        self.assertIn("default = 0.5;", vencord_module)


class TestSummary(unittest.TestCase):

    def test_merge(self):
        merged = ExtractionSummary(2, 1, 1, ["a"]).merge(ExtractionSummary(3, 3, 0, []))
        self.assertEqual((merged.found, merged.processed, merged.skipped), (5, 4, 1))
        self.assertEqual(merged.skipped_names, ["a"])


class TestCategorize(unittest.TestCase):

    def setUp(self):
        self.vencord = ParsedPlugins(
            vencord_plugins={
                "Alpha": plugin("Alpha", marker="vencord"),
                "Beta": plugin("Beta", marker="vencord"),
                "Gamma": plugin("Gamma", marker="vencord"),
                "Solo": plugin("Solo", marker="vencord"),
                "oneko": plugin("oneko", marker="vencord"),
            }
        )
        self.equicord = ParsedPlugins(
            vencord_plugins={
                "Alpha": plugin("Alpha", marker="equicord"),
                "BetaRenamed": plugin("BetaRenamed", directory="beta", marker="equicord"),
                "Gamma": plugin("Gamma", is_modified=True, marker="equicord"),
                "Upstream": plugin("Upstream", marker="equicord"),
            },
            equicord_plugins={
                "CursorBuddy": plugin("CursorBuddy", marker="equicord"),
                "Extra": plugin("Extra", marker="equicord"),
            },
        )

    def test_without_equicord_everything_is_vencord_only(self):
        result = categorize_plugins(self.vencord)
        self.assertEqual(result["generic"], {})
        self.assertEqual(list(result["vencord_only"]), ["Alpha", "Beta", "Gamma", "Solo", "oneko"])
        self.assertEqual(result["equicord_only"], {})

    def test_shared_plugins_use_equicord_config(self):
        result = categorize_plugins(self.vencord, self.equicord)
        self.assertEqual(sorted(result["generic"]), ["Alpha", "Beta", "oneko"])
        for config in result["generic"].values():
            self.assertEqual(config.settings["origin"].default, "equicord")
        self.assertEqual(result["generic"]["oneko"].name, "CursorBuddy")
        self.assertEqual(result["generic"]["Beta"].name, "BetaRenamed")

    def test_modified_and_unmatched_plugins_are_vencord_only(self):
        result = categorize_plugins(self.vencord, self.equicord)
        self.assertEqual(list(result["vencord_only"]), ["Gamma", "Solo"])
        self.assertEqual(result["vencord_only"]["Gamma"].settings["origin"].default, "vencord")

    def test_equicord_only(self):
        result = categorize_plugins(self.vencord, self.equicord)
        self.assertEqual(list(result["equicord_only"]), ["Extra", "Gamma", "Upstream"])
        self.assertTrue(result["equicord_only"]["Gamma"].is_modified)

    def test_custom_renames(self):
        result = categorize_plugins(self.vencord, self.equicord, renames={"Solo": "Extra"})
        self.assertIn("Solo", result["generic"])
        self.assertIn("oneko", result["vencord_only"])
        self.assertIn("CursorBuddy", result["equicord_only"])


class TestDocument(unittest.TestCase):

    def test_build_document(self):
        categories = {
            "generic": {"Alpha": plugin("Alpha", marker="x")},
            "vencord_only": {},
            "equicord_only": {"Extra": plugin("Extra")},
        }
        document = build_document(categories)
        self.assertEqual(list(document), ["shared", "equicord"])
        self.assertEqual(document["shared"]["Alpha"]["settings"]["origin"]["default"], "x")
        self.assertEqual(type(document["shared"]), dict)


if __name__ == "__main__":
    unittest.main()
