"""Node disk manager configuration: parse, edit path filters and serialise."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

import yaml

CONFIG_KEY = "node-disk-manager.config"
PATH_FILTER_KEY = "path-filter"


class NDMConfigError(Exception):
    """Raised for invalid or unusable NDM configuration."""


class ListType(str, Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"


def _str(entry: Mapping, key: str) -> str:
    value = entry.get(key)
    return "" if value is None else str(value)


@dataclass
class ProbeConfig:
    key: str = ""
    name: str = ""
    state: str = ""

    def to_dict(self) -> dict:
        return {"key": self.key, "name": self.name, "state": self.state}


@dataclass
class FilterConfig:
    key: str = ""
    name: str = ""
    state: str = ""
    include: str = ""
    exclude: str = ""

    def to_dict(self) -> dict:
        out = {"key": self.key, "name": self.name, "state": self.state}
        if self.include:
            out["include"] = self.include
        if self.exclude:
            out["exclude"] = self.exclude
        return out


@dataclass
class TagConfig:
    name: str = ""
    type: str = ""
    pattern: str = ""
    tag_name: str = ""

    def to_dict(self) -> dict:
        items = {"name": self.name, "type": self.type, "pattern": self.pattern, "tag": self.tag_name}
        return {k: v for k, v in items.items() if v}


@dataclass
class Config:
    probe_configs: list[ProbeConfig] = field(default_factory=list)
    filter_configs: list[FilterConfig] = field(default_factory=list)
    tag_configs: list[TagConfig] = field(default_factory=list)

    def _path_filter(self) -> FilterConfig:
        for fc in self.filter_configs:
            if fc.key == PATH_FILTER_KEY:
                return fc
        raise NDMConfigError("No filterconfig with 'key: path-filter' found")

    @staticmethod
    def _list_type(list_type: Any) -> ListType:
        try:
            return ListType(list_type)
        except ValueError:
            raise NDMConfigError("invalid filterconfig path-filter list name") from None

    def append_to_path_filter(self, list_type: ListType | str, disk_path: str) -> None:
        """Append a path to the include or exclude list of the path filter."""
        fc = self._path_filter()
        attr = self._list_type(list_type).value
        current = getattr(fc, attr)
        setattr(fc, attr, f"{current},{disk_path}" if current else disk_path)

    def remove_from_path_filter(self, list_type: ListType | str, disk_path: str) -> None:
        """Remove a path from the include or exclude list of the path filter."""
        fc = self._path_filter()
        attr = self._list_type(list_type).value
        value = getattr(fc, attr).replace("," + disk_path, "").replace(disk_path, "")
        setattr(fc, attr, value)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        if self.probe_configs:
            out["probeconfigs"] = [p.to_dict() for p in self.probe_configs]
        if self.filter_configs:
            out["filterconfigs"] = [f.to_dict() for f in self.filter_configs]
        if self.tag_configs:
            out["tagconfigs"] = [t.to_dict() for t in self.tag_configs]
        return out

    def get_config_yaml(self) -> str:
        try:
            return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)
        except yaml.YAMLError as err:
            raise NDMConfigError(f"failed to marshal NDM Config to YAML: {err}") from err


def _entries(doc: Mapping, key: str) -> list[Mapping]:
    items = doc.get(key) or []
    if not isinstance(items, list) or not all(isinstance(i, Mapping) for i in items):
        raise NDMConfigError(f"failed to unmarshal NDM config: invalid {key}")
    return items


def new_config_from_api_config_map(config_map: Mapping | None) -> Config:
    """Parse the NDM config held in a ConfigMap (given as a mapping with 'data')."""
    if config_map is None:
        raise NDMConfigError("NDM ConfigMap is 'nil'")
    text = (config_map.get("data") or {}).get(CONFIG_KEY, "")
    try:
        doc = yaml.safe_load(text) or {}
    except yaml.YAMLError as err:
        raise NDMConfigError(f"failed to unmarshal NDM config: {err}") from err
    if not isinstance(doc, Mapping):
        raise NDMConfigError("failed to unmarshal NDM config: not a mapping")
    return Config(
        probe_configs=[ProbeConfig(_str(e, "key"), _str(e, "name"), _str(e, "state"))
                       for e in _entries(doc, "probeconfigs")],
        filter_configs=[FilterConfig(_str(e, "key"), _str(e, "name"), _str(e, "state"),
                                     _str(e, "include"), _str(e, "exclude"))
                        for e in _entries(doc, "filterconfigs")],
        tag_configs=[TagConfig(_str(e, "name"), _str(e, "type"), _str(e, "pattern"), _str(e, "tag"))
                     for e in _entries(doc, "tagconfigs")],
    )