from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from threading import RLock
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from .claims import UNLIMITED

FeatureType = Literal["limit", "flag"]

DEFAULT_REGISTRY_PATH = Path(__file__).resolve().parent / "feature_registry.json"


@dataclass(frozen=True)
class FeatureDefinition:
    """Display metadata for a single limit or flag."""

    key: str
    type: FeatureType
    display_name: str
    sort_order: int
    description: str = ""
    unit: str = ""
    unlimited_text: str = ""
    format: str = ""
    icon: str = ""
    category: str = ""

    def __post_init__(self) -> None:
        key = self.key.strip()
        if not key:
            raise ValueError("feature key is required")
        if self.type not in ("limit", "flag"):
            raise ValueError("type must be one of: limit, flag")
        object.__setattr__(self, "key", key)


class FeatureRegistry:
    """Read-only mapping from feature or limit key to display metadata."""

    def __init__(self, definitions: Mapping[str, FeatureDefinition]) -> None:
        self._definitions = MappingProxyType(dict(definitions))

    def __contains__(self, key: object) -> bool:
        return key in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def keys(self) -> List[str]:
        return list(self._definitions.keys())

    def get(self, key: str) -> Optional[FeatureDefinition]:
        return self._definitions.get(str(key).strip())

    def by_category(self, category: str) -> List[FeatureDefinition]:
        return sorted(
            (d for d in self._definitions.values() if d.category == category),
            key=lambda d: d.sort_order,
        )

    def format_value(self, key: str, value: Union[int, bool]) -> str:
        definition = self.get(key)
        if definition is None:
            return ""

        if definition.type == "limit":
            if isinstance(value, bool):
                return ""
            limit_value = int(value)
            if limit_value == UNLIMITED:
                return definition.unlimited_text or "Unlimited"
            template = definition.format or "{value} {unit}"
            result = template.replace("{value}", f"{limit_value:,}")
            return result.replace("{unit}", definition.unit)

        if value is True:
            return definition.display_name
        return ""

    def plan_features(self, plan: Mapping[str, Any]) -> List[str]:
        """Human-readable feature lines for a plan, limits first, in display order."""
        features = plan.get("features") or {}
        lines: List[str] = []

        limits = features.get("limits") or {}
        known_limits = [
            (self._definitions[key], value)
            for key, value in limits.items()
            if key in self._definitions
        ]
        for definition, value in sorted(known_limits, key=lambda item: item[0].sort_order):
            formatted = self.format_value(definition.key, value)
            if formatted:
                lines.append(formatted)

        flags = features.get("flags") or {}
        enabled_flags = [
            self._definitions[key]
            for key, value in flags.items()
            if key in self._definitions and value is True
        ]
        for definition in sorted(enabled_flags, key=lambda d: d.sort_order):
            lines.append(definition.display_name)

        return lines


class FeatureRegistryLoader:
    """Loads the feature registry from JSON with reload support."""

    def __init__(self, config_path: Union[str, Path] = DEFAULT_REGISTRY_PATH) -> None:
        self._config_path = Path(config_path)
        self._lock = RLock()
        self._registry: FeatureRegistry
        self.reload()

    @property
    def registry(self) -> FeatureRegistry:
        with self._lock:
            return self._registry

    def reload(self) -> None:
        raw = self._read_config_file()
        parsed = self._parse_config(raw)
        with self._lock:
            self._registry = parsed

    def _read_config_file(self) -> dict:
        with self._config_path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        if not isinstance(raw, dict):
            raise ValueError("feature registry must contain a top-level object")
        return raw

    @staticmethod
    def _parse_config(raw: dict) -> FeatureRegistry:
        features_raw = raw.get("features")
        if not isinstance(features_raw, dict):
            raise ValueError("feature registry must include an object field named 'features'")

        definitions: Dict[str, FeatureDefinition] = {}
        for key, data in features_raw.items():
            if not isinstance(key, str) or not key.strip():
                raise ValueError("each feature key must be a non-empty string")
            if not isinstance(data, dict):
                raise ValueError(f"feature '{key}' must be an object")
            if "display_name" not in data:
                raise ValueError(f"feature '{key}' is missing display_name")

            definition = FeatureDefinition(
                key=key,
                type=data.get("type", ""),
                display_name=str(data["display_name"]),
                sort_order=int(data.get("sort_order", 0)),
                description=str(data.get("description", "")),
                unit=str(data.get("unit", "")),
                unlimited_text=str(data.get("unlimited_text", "")),
                format=str(data.get("format", "")),
                icon=str(data.get("icon", "")),
                category=str(data.get("category", "")),
            )
            definitions[definition.key] = definition

        if not definitions:
            raise ValueError("feature registry must define at least one feature")

        return FeatureRegistry(definitions)


_default_loader: Optional[FeatureRegistryLoader] = None


def default_registry() -> FeatureRegistry:
    global _default_loader
    if _default_loader is None:
        _default_loader = FeatureRegistryLoader()
    return _default_loader.registry
