# localpv

Tools for describing local persistent volume StorageClasses for Kubernetes,
checking that their configuration is consistent, and creating them in a cluster.
The package also edits the path filters of a node disk manager configuration.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Building a StorageClass

A StorageClass is built from options that are applied in order. An option that
cannot be applied raises `StorageClassBuildError`.

```python
from localpv.build import (
    new_storage_class,
    with_generate_name,
    with_labels,
    with_local_pv,
    with_hostpath,
    with_xfs_quota,
    with_volume_binding_mode,
    with_reclaim_policy,
)

sc = new_storage_class(
    with_generate_name("sc-hp-xfs"),
    with_labels({"openebs.io/test-sc": "true"}),
    with_local_pv(),
    with_hostpath("/var/openebs/local"),
    with_xfs_quota("20%", "50%"),
    with_volume_binding_mode("WaitForFirstConsumer"),
    with_reclaim_policy("Delete"),
)
print(sc.to_dict())
```

The options write their settings into the `cas.openebs.io/config` annotation.
Device StorageClasses use `with_device`, `with_fs_type` and
`with_block_device_selectors`. `with_node_affinity_labels` and
`with_allowed_topologies` limit where volumes are placed. `with_ext4_quota`
works like `with_xfs_quota`. Each option checks that the configuration already
present on the StorageClass is compatible with it. For example, a hostpath
option is refused once block device selectors are set. The checks themselves are
in `localpv.compat`, for example `is_compatible_with_hostpath` and
`is_valid_quota_data`.

`localpv.objects` holds the `StorageClass` and `StorageClassList` classes.
Their `to_dict` and `from_dict` methods convert to and from the Kubernetes API's
JSON form.

## Talking to the cluster

`localpv.client.Client` finds the cluster configuration in this order:

1. The kubeconfig path, if one is set (`with_kube_config_path`).
2. The in-cluster service account, if the client was made with `in_cluster()`.
3. The `OPENEBS_IO_K8S_MASTER` and `OPENEBS_IO_KUBE_CONFIG` environment
   variables, if either of them is set.
4. Otherwise, the in-cluster service account.

A configuration that cannot be found raises `ClientError`.

`localpv.kube.Kubeclient` creates, lists, gets, updates and deletes
StorageClasses. Create it with `new_kube_client`, and give it a clientset or a
kubeconfig path through `with_client_set` or `with_kube_config_path`. Failures
raise `KubeclientError`.

```python
from localpv.kube import new_kube_client, with_kube_config_path

kube = new_kube_client(with_kube_config_path("/home/user/.kube/config"))
created = kube.create(sc)
```

## Node disk manager configuration

The configuration is read from a ConfigMap given as a mapping. The mapping's
`data` holds the configuration under the key `node-disk-manager.config`.

```python
from localpv.ndmconfig import ListType, new_config_from_api_config_map

config_map = {
    "data": {
        "node-disk-manager.config": (
            "filterconfigs:\n"
            "  - key: path-filter\n"
            "    name: path filter\n"
            "    state: \"true\"\n"
            "    exclude: /dev/fd0,/dev/sr0\n"
        )
    }
}
config = new_config_from_api_config_map(config_map)
config.append_to_path_filter(ListType.EXCLUDE, "/dev/loop9000")
print(config.get_config_yaml())
```

## Logging

`localpv.logger.init_logging` sets up basic logging to standard error if no
handler is configured yet. If the flush frequency you pass differs from the
default interval, it also starts a background thread that flushes the log
handlers at that frequency. `finish_logging` stops that thread and flushes
once more. `KlogWriter` is a file-like object that passes everything written
to it on to the `localpv` logger.

## What the package does not do

The package has no command-line program. It does not provision or delete
volumes on nodes itself. It only builds StorageClasses and sends them to the
cluster.