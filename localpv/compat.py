"""Validation of StorageClass parameters for local persistent volumes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

import yaml

from localpv.objects import StorageClass, TopologySelectorLabelRequirement, TopologySelectorTerm

CAS_TYPE_KEY = "openebs.io/cas-type"
CAS_CONFIG_KEY = "cas.openebs.io/config"
LOCAL_PV_CAS_TYPE_VALUE = "local"
LOCAL_PV_PROVISIONER_NAME = "openebs.io/local"
KEY_QUOTA_SOFT_LIMIT = "softLimitGrace"
KEY_QUOTA_HARD_LIMIT = "hardLimitGrace"

# Allows 123.456%, 123%, 123.%, .45% and the empty string;
# rejects .%, %, . and 1234.45%.
_QUOTA_RE = re.compile(r"^(^$|(^[0-9]{1,3}([.][0-9]*)?|[.][0-9]+)%)$")


@dataclass
class CASConfig:
    """One entry of the cas.openebs.io/config annotation."""

    name: str = ""
    value: str = ""
    enabled: str = ""
    data: dict[str, str] | None = None
    entries: list[str] = field(default_factory=list)


def _scalar(value: Any, what: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list)):
        raise ValueError(f"invalid CAS config: {what} must be a scalar")
    return str(value)


def unmarshal_cas_config(text: str) -> list[CASConfig]:
    """Parse the YAML list held in a cas.openebs.io/config annotation."""
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise ValueError(f"invalid CAS config: {err}") from err
    if doc is None:
        return []
    if not isinstance(doc, list):
        raise ValueError("invalid CAS config: expected a list")
    configs = []
    for item in doc:
        if item is None:
            configs.append(CASConfig())
            continue
        if not isinstance(item, Mapping):
            raise ValueError("invalid CAS config: entries must be mappings")
        data = item.get("data")
        if data is not None and not isinstance(data, Mapping):
            raise ValueError("invalid CAS config: data must be a mapping")
        entries = item.get("list")
        if entries is not None and not isinstance(entries, list):
            raise ValueError("invalid CAS config: list must be a list")
        configs.append(
            CASConfig(
                name=_scalar(item.get("name"), "name"),
                value=_scalar(item.get("value"), "value"),
                enabled=_scalar(item.get("enabled"), "enabled"),
                data=None if data is None else {str(k): _scalar(v, "data") for k, v in data.items()},
                entries=[_scalar(e, "list") for e in entries or []],
            )
        )
    return configs


def is_valid_path(hostpath: str) -> bool:
    """True for an absolute path that is not the root nor directly under it."""
    if not hostpath.startswith("/"):
        return False
    path = hostpath.removesuffix("/")
    parent, _, sub = path.rpartition("/")
    return bool(parent.removesuffix("/")) and bool(sub.removesuffix("/"))


def is_valid_quota_data(data: Mapping[str, str] | None) -> bool:
    """True when the soft and hard limits, where present, are valid percentages."""
    if data is None:
        return True
    return all(
        _QUOTA_RE.fullmatch(data[key]) is not None
        for key in (KEY_QUOTA_SOFT_LIMIT, KEY_QUOTA_HARD_LIMIT)
        if key in data
    )


def is_valid_filesystem(filesystem: str) -> bool:
    return filesystem in ("xfs", "ext4")


def is_compatible_with_local_pv_cas_type(storage_class: StorageClass) -> bool:
    cas_type = storage_class.metadata.annotations.get(CAS_TYPE_KEY)
    return cas_type is None or cas_type in (LOCAL_PV_CAS_TYPE_VALUE, "")


# A rule of None accepts the parameter without further checks.
_Rule = Optional[Callable[[CASConfig], bool]]


def _storage_type_is(*types: str) -> Callable[[CASConfig], bool]:
    allowed = set(types) | {f'"{t}"' for t in types}
    return lambda config: config.value in allowed


def _base_path(config: CASConfig) -> bool:
    return is_valid_path(config.value)


def _quota(config: CASConfig) -> bool:
    return is_valid_quota_data(config.data)


def _check(storage_class: StorageClass, rules: Mapping[str, _Rule]) -> bool:
    if not is_compatible_with_local_pv_cas_type(storage_class):
        return False
    text = storage_class.metadata.annotations.get(CAS_CONFIG_KEY)
    if text is not None:
        try:
            configs = unmarshal_cas_config(text)
        except ValueError:
            return False
        for config in configs:
            name = config.name.strip()
            if name not in rules:
                return False
            rule = rules[name]
            if rule is not None and not rule(config):
                return False
    provisioner = storage_class.provisioner
    return not provisioner or provisioner == LOCAL_PV_PROVISIONER_NAME


def is_compatible_with_hostpath(storage_class: StorageClass) -> bool:
    return _check(storage_class, {"NodeAffinityLabel": None, "XFSQuota": _quota, "EXT4Quota": _quota})


def is_compatible_with_quota(storage_class: StorageClass) -> bool:
    return _check(
        storage_class,
        {"StorageType": _storage_type_is("hostpath"), "BasePath": _base_path, "NodeAffinityLabel": None},
    )


def is_compatible_with_node_affinity_label(storage_class: StorageClass) -> bool:
    return _check(
        storage_class,
        {
            "StorageType": _storage_type_is("hostpath", "device"),
            "BasePath": _base_path,
            "XFSQuota": _quota,
            "EXT4Quota": _quota,
        },
    )


def is_compatible_with_device(storage_class: StorageClass) -> bool:
    return _check(storage_class, {"BlockDeviceSelectors": None, "FSType": None})


def is_compatible_with_fs_type(storage_class: StorageClass) -> bool:
    return _check(storage_class, {"StorageType": _storage_type_is("device"), "BlockDeviceSelectors": None})


def is_compatible_with_block_device_tag(storage_class: StorageClass) -> bool:
    return _check(storage_class, {"StorageType": _storage_type_is("device"), "FSType": None})


def write_or_append_cas_config(storage_class: StorageClass, config: str) -> None:
    """Append a fragment to the CAS config annotation, creating it if absent."""
    annotations = storage_class.metadata.annotations
    annotations[CAS_CONFIG_KEY] = annotations.get(CAS_CONFIG_KEY, "") + config


def append_allowed_topologies(
    storage_class: StorageClass, allowed_topologies: Mapping[str, list[str]]
) -> None:
    """Add one selector term holding a requirement for each given label key."""
    term = TopologySelectorTerm(
        [TopologySelectorLabelRequirement(key, list(values)) for key, values in allowed_topologies.items()]
    )
    storage_class.allowed_topologies.append(term)