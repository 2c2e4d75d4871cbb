"""Extracted settings, settings groups and plugins."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from option_types import NOT_SET, TargetType


@dataclass(frozen=True)
class Setting:
    """
    A leaf setting.

    ``enum_choices`` is non-empty exactly when ``target_type`` is ``ENUM``.
    ``default`` is ``NOT_SET`` when no default could be determined.
    """
    name: str
    target_type: TargetType
    description: Optional[str] = None
    default: Any = NOT_SET
    enum_choices: Optional[Tuple] = None
    enum_labels: Optional[Dict[str, str]] = None
    example: Optional[str] = None
    hidden: bool = False
    restart_needed: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not NOT_SET

    def to_dict(self):
        data = {
            "name": self.name,
            "type": self.target_type.value,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.has_default:
            data["default"] = self.default
        if self.enum_choices:
            data["enumValues"] = list(self.enum_choices)
        if self.enum_labels:
            data["enumLabels"] = dict(self.enum_labels)
        if self.example is not None:
            data["example"] = self.example
        if self.hidden:
            data["hidden"] = True
        data["restartNeeded"] = self.restart_needed
        return data


@dataclass(frozen=True)
class SettingsGroup:
    """Nested settings section; ``settings`` maps names to ``Setting`` or ``SettingsGroup``."""
    name: str
    settings: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self):
        return {
            "name": self.name,
            "settings": {key: value.to_dict() for key, value in self.settings.items()},
        }


@dataclass(frozen=True)
class PluginConfig:
    """One plugin's metadata and settings tree."""
    name: str
    directory_name: str
    settings: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
    is_modified: bool = False

    def to_dict(self):
        data = {"name": self.name, "directoryName": self.directory_name}
        if self.description is not None:
            data["description"] = self.description
        if self.is_modified:
            data["isModified"] = True
        data["settings"] = {key: value.to_dict() for key, value in self.settings.items()}
        return data
