"""
Shared constants: setting property names, the plugin API's ``OptionType``
enumeration, the Nix target types and the table of platform enums whose
declarations live outside the analyzed sources.
"""
from enum import Enum

DEFINE_PLUGIN = "definePlugin"
DEFINE_PLUGIN_SETTINGS = "definePluginSettings"

TYPE_PROPERTY = "type"
DESCRIPTION_PROPERTY = "description"
NAME_PROPERTY = "name"
DEFAULT_PROPERTY = "default"
PLACEHOLDER_PROPERTY = "placeholder"
RESTART_NEEDED_PROPERTY = "restartNeeded"
HIDDEN_PROPERTY = "hidden"
OPTIONS_PROPERTY = "options"
VALUE_PROPERTY = "value"
LABEL_PROPERTY = "label"
IS_MODIFIED_PROPERTY = "isModified"

RESTART_REQUIRED_SUFFIX = " (restart required)"

# Declaration order of `export const enum OptionType` in the plugin API
OPTION_TYPE_NAMES = (
    "STRING",
    "NUMBER",
    "BIGINT",
    "BOOLEAN",
    "SELECT",
    "SLIDER",
    "COMPONENT",
    "CUSTOM",
)

COMPONENT_OPTION_TYPES = {"COMPONENT", "CUSTOM"}


class TargetType(Enum):
    """Nix option types a setting can be emitted as."""
    BOOL = "types.bool"
    STR = "types.str"
    INT = "types.int"
    FLOAT = "types.float"
    NULLABLE_STR = "types.nullOr types.str"
    ATTRS = "types.attrs"
    LIST_OF_STR = "types.listOf types.str"
    LIST_OF_ATTRS = "types.listOf types.attrs"
    ENUM = "types.enum"


LIST_TARGET_TYPES = {TargetType.LIST_OF_STR, TargetType.LIST_OF_ATTRS}


class _NotSet:
    """Marker for a setting whose default could not be determined."""

    def __repr__(self) -> str:
        return "NOT_SET"

    def __bool__(self) -> bool:
        return False


NOT_SET = _NotSet()

EXTERNAL_ENUMS = {
    "ActivityType": {
        "PLAYING": 0,
        "STREAMING": 1,
        "LISTENING": 2,
        "WATCHING": 3,
        "CUSTOM": 4,
        "COMPETING": 5,
    },
    "StatusType": {
        "ONLINE": 0,
        "IDLE": 1,
        "DND": 2,
        "INVISIBLE": 3,
    },
    "ChannelType": {
        "GUILD_TEXT": 0,
        "DM": 1,
        "GUILD_VOICE": 2,
    },
}


def option_type_name(value):
    """Map an ``OptionType`` member value (0-7) to its name, or None."""
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if 0 <= value < len(OPTION_TYPE_NAMES):
        return OPTION_TYPE_NAMES[value]
    return None


# Shiki theme options: `themes` maps names to shikiRepoTheme("name") calls that
# expand to raw GitHub URLs pinned at SHIKI_REPO@SHIKI_REPO_COMMIT.
DEFAULT_LOOKUP_TABLES = [
    {
        "helper": "shikiRepoTheme",
        "base_constant": "SHIKI_REPO",
        "revision_constant": "SHIKI_REPO_COMMIT",
        "template": "https://raw.githubusercontent.com/{base}/{revision}/packages/tm-themes/themes/{name}.json",
    },
]
