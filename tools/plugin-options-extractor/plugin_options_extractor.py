#!/usr/bin/env python3
"""
Extract plugin settings from Vencord and Equicord source trees and render them
as Nix options (or JSON/YAML).

Usage:
    plugin_options_extractor.py --vencord ~/src/Vencord --equicord ~/src/Equicord --output modules/
    plugin_options_extractor.py --vencord ~/src/Vencord --format json
"""
import os
import sys
import json
import logging
import argparse
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional

try:
    import yaml
except ImportError:
    raise ImportError("Missing required dependency 'PyYAML': install with pip install pyyaml")

from option_types import DEFINE_PLUGIN_SETTINGS
from ts_parser import SourceProject
from plugin_locator import (
    extract_plugin_info,
    find_call,
    find_plugin_directories,
    first_object_argument,
    locate_plugin,
    plugin_name_from_directory,
)
from settings_extractor import extract
from plugin_settings import PluginConfig
from extractor_config import ConfigError, load_config
from nix_generator import generate_nix_module
from setting_bag import SettingBag

logger = logging.getLogger(__name__)

# (categorize_plugins key, output name)
CATEGORIES = (
    ("generic", "shared"),
    ("vencord_only", "vencord"),
    ("equicord_only", "equicord"),
)

NIX_OUTPUT_DIR = "plugins"


class ExtractionError(Exception):
    pass


@dataclass
class ExtractionSummary:
    found: int = 0
    processed: int = 0
    skipped: int = 0
    skipped_names: List[str] = field(default_factory=list)

    def merge(self, other: "ExtractionSummary") -> "ExtractionSummary":
        return ExtractionSummary(
            found=self.found + other.found,
            processed=self.processed + other.processed,
            skipped=self.skipped + other.skipped,
            skipped_names=self.skipped_names + other.skipped_names,
        )


@dataclass
class ParsedPlugins:
    """Plugins of one source tree: the upstream plugin directory and the Equicord-only one."""
    vencord_plugins: Dict[str, PluginConfig] = field(default_factory=dict)
    equicord_plugins: Dict[str, PluginConfig] = field(default_factory=dict)
    summary: ExtractionSummary = field(default_factory=ExtractionSummary)


def _settings_object(located, source_file, project):
    call = find_call(source_file, DEFINE_PLUGIN_SETTINGS)
    if call is None and located.settings and located.settings != located.source:
        call = find_call(project.load(located.settings), DEFINE_PLUGIN_SETTINGS)
    return first_object_argument(call)


def parse_single_plugin(plugin_dir, project, config=None, retain_hidden=False) -> Optional[PluginConfig]:
    """
    Extract one plugin directory.

    Returns:
        PluginConfig, or None when the plugin has no source file, cannot be
        read, or has no usable name.
    """
    located = locate_plugin(plugin_dir)
    if located is None:
        logger.info(f"No plugin source found in {plugin_dir}, skipping")
        return None

    try:
        source_file = project.load(located.source)
        info = extract_plugin_info(source_file, project) or {}
        settings_object = _settings_object(located, source_file, project)
    except OSError as e:
        logger.warning(f"Failed to read plugin {located.directory_name}: {e}")
        return None

    name = info.get("name") or plugin_name_from_directory(located.directory_name)
    if not name:
        logger.warning(f"Could not determine a name for plugin in {plugin_dir}, skipping")
        return None

    settings = extract(settings_object, project, retain_hidden) if settings_object is not None else {}
    logger.debug(f"Plugin {name}: {len(settings)} settings")
    return PluginConfig(
        name=name,
        directory_name=located.directory_name,
        settings=settings,
        description=info.get("description"),
        is_modified=info.get("is_modified", False),
    )


def parse_plugins_from_directory(plugins_dir, project, config, retain_hidden=False):
    """
    Extract every plugin under ``plugins_dir`` on a thread pool.

    Returns:
        tuple: (dict of plugin name to ``PluginConfig`` sorted by name, ``ExtractionSummary``)
    """
    directories = find_plugin_directories(plugins_dir)
    summary = ExtractionSummary(found=len(directories))
    logger.info(f"Found {len(directories)} plugins in {plugins_dir}")

    results = {}
    interval = config["progress_interval"]
    with ThreadPoolExecutor(max_workers=config["concurrency"]) as executor:
        futures = {
            executor.submit(parse_single_plugin, directory, project, config, retain_hidden): directory
            for directory in directories
        }
        for done, future in enumerate(as_completed(futures), start=1):
            directory = futures[future]
            try:
                results[directory] = future.result()
            except Exception as e:
                logger.warning(f"Failed to extract plugin {os.path.basename(directory)}: {e}")
                results[directory] = None
            if done % interval == 0:
                logger.info(f"Progress: {done}/{len(directories)} plugins in {plugins_dir}")

    # Merge in directory order; the first directory claiming a name keeps it
    plugins = {}
    for directory in directories:
        directory_name = os.path.basename(directory)
        plugin = results[directory]
        if plugin is None:
            summary.skipped += 1
            summary.skipped_names.append(directory_name)
            continue
        summary.processed += 1
        if plugin.name in plugins:
            logger.warning(
                f"Duplicate plugin name {plugin.name} in {directory_name}; "
                f"keeping {plugins[plugin.name].directory_name}"
            )
        else:
            plugins[plugin.name] = plugin

    return dict(sorted(plugins.items())), summary


def parse_plugins(source_root, config, vencord_plugins_dir=None, equicord_plugins_dir=None, retain_hidden=False):
    """
    Extract the plugins of one source tree (Vencord or Equicord).

    Raises:
        ExtractionError: When neither plugin directory exists under ``source_root``.
    """
    vencord_dir = os.path.join(source_root, vencord_plugins_dir or config["vencord_plugins_dir"])
    equicord_dir = os.path.join(source_root, equicord_plugins_dir or config["equicord_plugins_dir"])
    if not os.path.isdir(vencord_dir) and not os.path.isdir(equicord_dir):
        raise ExtractionError(f"No plugin directories found under {source_root} (looked for {vencord_dir} and {equicord_dir})")

    project = SourceProject(
        root=source_root,
        path_aliases=config["path_aliases"],
        external_enums=config["external_enums"],
        lookup_tables=config["lookup_tables"],
    )
    parsed = ParsedPlugins()
    if os.path.isdir(vencord_dir):
        parsed.vencord_plugins, summary = parse_plugins_from_directory(vencord_dir, project, config, retain_hidden)
        parsed.summary = parsed.summary.merge(summary)
    if os.path.isdir(equicord_dir):
        parsed.equicord_plugins, summary = parse_plugins_from_directory(equicord_dir, project, config, retain_hidden)
        parsed.summary = parsed.summary.merge(summary)
    return parsed


def _find_counterpart(name, plugin, shared, equicord_only, shared_by_directory, renames):
    if name in shared:
        return shared[name]
    renamed = renames.get(name) or renames.get(name.lower())
    if renamed is not None:
        if renamed in equicord_only:
            return equicord_only[renamed]
        if renamed in shared:
            return shared[renamed]
    return shared_by_directory.get(plugin.directory_name.lower())


def categorize_plugins(vencord: ParsedPlugins, equicord: Optional[ParsedPlugins] = None, renames=None):
    """
    Split plugins into the three output modules.

    A Vencord plugin whose Equicord counterpart is unmodified is ``generic``
    and uses the Equicord settings. Everything else from Vencord is
    ``vencord_only``. ``equicord_only`` collects the Equicord plugins without
    an unmodified Vencord counterpart.

    Returns:
        dict with ``generic``, ``vencord_only`` and ``equicord_only``, each
        mapping plugin name to ``PluginConfig``.
    """
    renames = {"oneko": "CursorBuddy"} if renames is None else renames
    if equicord is None:
        return {"generic": {}, "vencord_only": dict(vencord.vencord_plugins), "equicord_only": {}}

    shared = equicord.vencord_plugins
    equicord_plugins = equicord.equicord_plugins
    shared_by_directory = {p.directory_name.lower(): p for p in shared.values()}

    generic, vencord_only, modified = {}, {}, {}
    matched = set()
    for name, plugin in vencord.vencord_plugins.items():
        counterpart = _find_counterpart(name, plugin, shared, equicord_plugins, shared_by_directory, renames)
        if counterpart is None:
            vencord_only[name] = plugin
            continue
        matched.add(counterpart.name)
        if counterpart.is_modified:
            logger.debug(f"Plugin {name} is modified in Equicord as {counterpart.name}")
            vencord_only[name] = plugin
            modified[counterpart.name] = counterpart
        else:
            generic[name] = counterpart

    equicord_only = {n: p for n, p in equicord_plugins.items() if n not in matched}
    equicord_only.update(modified)
    for name, plugin in shared.items():
        if name not in matched:
            equicord_only.setdefault(name, plugin)

    return {
        "generic": dict(sorted(generic.items())),
        "vencord_only": dict(sorted(vencord_only.items())),
        "equicord_only": dict(sorted(equicord_only.items())),
    }


def build_document(categories):
    """Nested plain dict for JSON/YAML output: category, plugin name, plugin."""
    bag = SettingBag()
    for key, label in CATEGORIES:
        for name, plugin in categories[key].items():
            bag[label][name] = plugin.to_dict()
    return bag.to_plain()


def write_nix_modules(categories, output_dir):
    target_dir = os.path.join(output_dir, NIX_OUTPUT_DIR)
    os.makedirs(target_dir, exist_ok=True)
    paths = []
    for key, label in CATEGORIES:
        path = os.path.join(target_dir, f"{label}.nix")
        with open(path, "w", encoding="utf-8") as f:
            f.write(generate_nix_module(categories[key], label) + "\n")
        paths.append(path)
    return paths


def main():
    def generate_options():
        arg_parser = argparse.ArgumentParser(
            description="Extract Vencord/Equicord plugin settings and generate Nix options"
        )
        arg_parser.add_argument(
            "--vencord",
            type=str,
            required=True,
            help="Path to the Vencord source tree",
        )
        arg_parser.add_argument(
            "--vencord-plugins",
            type=str,
            help="Plugin directory within the Vencord tree (default: src/plugins)",
        )
        arg_parser.add_argument(
            "--equicord",
            type=str,
            help="Path to the Equicord source tree",
        )
        arg_parser.add_argument(
            "--equicord-plugins",
            type=str,
            help="Equicord-only plugin directory within the Equicord tree (default: src/equicordplugins)",
        )
        arg_parser.add_argument(
            "--output",
            type=str,
            help="Output directory (nix) or file (json/yaml); stdout when omitted",
        )
        arg_parser.add_argument(
            "--format",
            type=str,
            choices=["nix", "json", "yaml"],
            default="nix",
            help="Output format",
        )
        arg_parser.add_argument(
            "--include-hidden",
            action="store_true",
            help="Keep settings marked hidden",
        )
        arg_parser.add_argument(
            "--config",
            type=str,
            help="YAML configuration file merged over the built-in defaults",
        )
        arg_parser.add_argument("-v", "--verbose", action="store_true")
        return arg_parser

    arg_parser = generate_options()
    options, _ = arg_parser.parse_known_args()

    if options.verbose:
        logging.basicConfig(level="DEBUG")
    else:
        logging.basicConfig(level="WARNING")

    try:
        config = load_config(options.config)
    except ConfigError as e:
        logging.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if not os.path.isdir(options.vencord):
        logging.error(f"Vencord source tree not found: {options.vencord}")
        sys.exit(1)
    if options.equicord and not os.path.isdir(options.equicord):
        logging.error(f"Equicord source tree not found: {options.equicord}")
        sys.exit(1)

    try:
        vencord = parse_plugins(
            options.vencord,
            config,
            vencord_plugins_dir=options.vencord_plugins,
            retain_hidden=options.include_hidden,
        )
        equicord = None
        if options.equicord:
            # The Equicord tree carries its own copy of the upstream plugins
            equicord = parse_plugins(
                options.equicord,
                config,
                equicord_plugins_dir=options.equicord_plugins,
                retain_hidden=options.include_hidden,
            )
    except ExtractionError as e:
        logging.error(str(e))
        sys.exit(1)

    categories = categorize_plugins(vencord, equicord, config["plugin_renames"])
    summary = vencord.summary if equicord is None else vencord.summary.merge(equicord.summary)

    if options.format == "nix":
        if options.output:
            try:
                paths = write_nix_modules(categories, options.output)
            except OSError as e:
                logging.error(f"Failed to write Nix modules: {e}")
                sys.exit(1)
            for path in paths:
                print(f"✅ Nix module generated at {path}", file=sys.stderr)
        else:
            for key, label in CATEGORIES:
                print(f"# ==> {NIX_OUTPUT_DIR}/{label}.nix <==")
                print(generate_nix_module(categories[key], label))
    else:
        document = build_document(categories)
        if options.format == "json":
            output = json.dumps(document, indent=2, ensure_ascii=False)
        else:
            output = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
        if options.output:
            try:
                with open(options.output, "w", encoding="utf-8") as f:
                    f.write(output)
            except OSError as e:
                logging.error(f"Failed to write output file: {e}")
                sys.exit(1)
            print(f"✅ {options.format.upper()} output generated at {options.output}", file=sys.stderr)
        else:
            print(output)

    print(
        f"Processed {summary.processed} of {summary.found} plugins, skipped {summary.skipped}",
        file=sys.stderr,
    )
    if summary.skipped_names:
        logging.info(f"Skipped plugins: {', '.join(summary.skipped_names)}")


if __name__ == "__main__":
    main()
