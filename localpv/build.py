"""Building StorageClass objects for local persistent volumes from options."""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

from localpv.compat import (
    CAS_CONFIG_KEY,
    CAS_TYPE_KEY,
    KEY_QUOTA_HARD_LIMIT,
    KEY_QUOTA_SOFT_LIMIT,
    LOCAL_PV_CAS_TYPE_VALUE,
    LOCAL_PV_PROVISIONER_NAME,
    append_allowed_topologies,
    is_compatible_with_block_device_tag,
    is_compatible_with_device,
    is_compatible_with_fs_type,
    is_compatible_with_hostpath,
    is_compatible_with_node_affinity_label,
    is_compatible_with_quota,
    is_valid_filesystem,
    is_valid_path,
    is_valid_quota_data,
    write_or_append_cas_config,
)
from localpv.objects import StorageClass

DEFAULT_VOLUME_BINDING_MODE = "WaitForFirstConsumer"
DEFAULT_RECLAIM_POLICY = "Delete"

StorageClassOption = Callable[[StorageClass], None]


class StorageClassBuildError(Exception):
    """Raised when an option cannot be applied to a StorageClass."""


def new_storage_class(*args: StorageClassOption) -> StorageClass:
    """Return a new StorageClass with every option applied in order."""
    storage_class = StorageClass()
    for option in args:
        try:
            option(storage_class)
        except StorageClassBuildError as err:
            raise StorageClassBuildError(f"Failed to build StorageClass.: {err}") from err
    return storage_class


def with_name(name: str) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if not name:
            raise StorageClassBuildError("Failed to set Name. Name is an empty string.")
        sc.metadata.name = name

    return option


def with_generate_name(generate_name: str) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if not generate_name:
            raise StorageClassBuildError(
                "Failed to set GenerateName. Name prefix is an empty string."
            )
        sc.metadata.generate_name = generate_name + "-"

    return option


def with_labels(labels: Mapping[str, str]) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if not labels:
            raise StorageClassBuildError("Failed to set Labels. Input is invalid.")
        sc.metadata.labels.update(labels)

    return option


def with_parameters(parameters: Mapping[str, str]) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if not parameters:
            raise StorageClassBuildError("Failed to set Parameters. Input is invalid.")
        sc.parameters.update(parameters)

    return option


def with_local_pv() -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if CAS_TYPE_KEY in sc.metadata.annotations:
            raise StorageClassBuildError(f"Annotation '{CAS_TYPE_KEY}' is already set.")
        if sc.provisioner:
            raise StorageClassBuildError("Provisioner name is already set.")
        sc.metadata.annotations[CAS_TYPE_KEY] = LOCAL_PV_CAS_TYPE_VALUE
        sc.provisioner = LOCAL_PV_PROVISIONER_NAME

    return option


def _incompatible(what: str, kind: str = "annotation") -> StorageClassBuildError:
    return StorageClassBuildError(
        f"{what} Invalid existing '{CAS_CONFIG_KEY}' {kind} parameters or Provisioner name."
    )


def with_hostpath(hostpath_dir: str) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if not is_valid_path(hostpath_dir):
            raise StorageClassBuildError(
                "Invalid hostpath directory. Path must be an absolute path and must be a "
                "directory which is not directly under '/'."
            )
        if not is_compatible_with_hostpath(sc):
            raise _incompatible("Failed to set StorageType and BasePath for Hostpath.")
        write_or_append_cas_config(
            sc,
            "- name: StorageType\n"
            '  value: "hostpath"\n'
            "- name: BasePath\n"
            f'  value: "{hostpath_dir}"\n',
        )

    return option


def with_device() -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if not is_compatible_with_device(sc):
            raise _incompatible("Failed to set StorageType for Device.")
        write_or_append_cas_config(sc, '- name: StorageType\n  value: "device"\n')

    return option


def _quota(config_name: str, soft_limit: str, hard_limit: str) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if not is_compatible_with_quota(sc):
            raise _incompatible(f"Failed to set {config_name} parameters.")
        config = f'- name: {config_name}\n  enabled: "true"\n'
        if soft_limit or hard_limit:
            limits = {KEY_QUOTA_SOFT_LIMIT: soft_limit, KEY_QUOTA_HARD_LIMIT: hard_limit}
            if not is_valid_quota_data(limits):
                raise StorageClassBuildError(
                    f"Failed to set {config_name} parameters. "
                    f"Invalid {KEY_QUOTA_SOFT_LIMIT} and {KEY_QUOTA_HARD_LIMIT} values"
                )
            config += (
                "  data:\n"
                f'    {KEY_QUOTA_SOFT_LIMIT}: "{soft_limit}"\n'
                f'    {KEY_QUOTA_HARD_LIMIT}: "{hard_limit}"\n'
            )
        write_or_append_cas_config(sc, config)

    return option


def with_xfs_quota(soft_limit: str, hard_limit: str) -> StorageClassOption:
    return _quota("XFSQuota", soft_limit, hard_limit)


def with_ext4_quota(soft_limit: str, hard_limit: str) -> StorageClassOption:
    return _quota("EXT4Quota", soft_limit, hard_limit)


def with_volume_binding_mode(mode: str) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        sc.volume_binding_mode = mode or DEFAULT_VOLUME_BINDING_MODE

    return option


def with_reclaim_policy(policy: str) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        sc.reclaim_policy = policy or DEFAULT_RECLAIM_POLICY

    return option


def with_allowed_topologies(allowed_topologies: Mapping[str, list[str]]) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if not allowed_topologies:
            raise StorageClassBuildError("Failed to set AllowedTopologies. Input is invalid.")
        append_allowed_topologies(sc, allowed_topologies)

    return option


def with_node_affinity_labels(node_label_keys: Iterable[str]) -> StorageClassOption:
    keys = list(node_label_keys)

    def option(sc: StorageClass) -> None:
        if not keys:
            raise StorageClassBuildError("Failed to set NodeLabelKey. Input is invalid.")
        if not is_compatible_with_node_affinity_label(sc):
            raise _incompatible("Failed to set NodeAffinityLabel.", "annotaion")
        label_keys = "".join(f'    - "{key}"\n' for key in keys if key)
        if not label_keys:
            raise StorageClassBuildError("Failed to set NodeLabelKey. Input is invalid.")
        write_or_append_cas_config(sc, "- name: NodeAffinityLabels\n  list:\n" + label_keys)

    return option


def with_fs_type(filesystem: str) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if not is_valid_filesystem(filesystem):
            raise StorageClassBuildError(
                'Filesystem is invalid. Accepted values are "ext4" and "xfs".'
            )
        if not is_compatible_with_fs_type(sc):
            raise _incompatible("Failed to set FSType.")
        write_or_append_cas_config(sc, f'- name: FSType\n  value: "{filesystem}"\n')

    return option


def with_block_device_selectors(bd_selectors: Mapping[str, str]) -> StorageClassOption:
    def option(sc: StorageClass) -> None:
        if not bd_selectors:
            raise StorageClassBuildError(
                "Failed to set BlockDeviceSelectors. Input is invalid."
            )
        if not is_compatible_with_block_device_tag(sc):
            raise _incompatible("Failed to set BlockDeviceTag.", "annotaion")
        selectors = "".join(
            f'    "{key}": "{value}"\n' for key, value in bd_selectors.items() if value
        )
        if not selectors:
            raise StorageClassBuildError(
                "Failed to set BlockDeviceSelectors. Input is invalid."
            )
        write_or_append_cas_config(sc, "- name: BlockDeviceSelectors\n  data:\n" + selectors)

    return option