"""Kubernetes API operations on StorageClass resources."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from localpv import client as kubeclient
from localpv.objects import StorageClass, StorageClassList

STORAGE_CLASS_PATH = "/apis/storage.k8s.io/v1/storageclasses"

GetClientsetFn = Callable[[], Any]
GetClientsetForPathFn = Callable[[str], Any]
GetFn = Callable[[Any, str, "Mapping | None"], StorageClass]
ListFn = Callable[[Any, "Mapping | None"], StorageClassList]
CreateFn = Callable[[Any, StorageClass], StorageClass]
UpdateFn = Callable[[Any, StorageClass], StorageClass]
DeleteFn = Callable[[Any, str, "Mapping | None"], None]
DeleteCollectionFn = Callable[[Any, "Mapping | None", "Mapping | None"], None]


class KubeclientError(Exception):
    """Raised when a StorageClass operation cannot be carried out."""


def _default_get_clientset() -> Any:
    return kubeclient.new().clientset()


def _default_get_clientset_for_path(kube_config_path: str) -> Any:
    return kubeclient.new(kubeclient.with_kube_config_path(kube_config_path)).clientset()


def _params(options: Mapping | None) -> dict | None:
    return dict(options) if options else None


def _default_get(cli: Any, name: str, options: Mapping | None) -> StorageClass:
    data = cli.request("GET", f"{STORAGE_CLASS_PATH}/{name}", _params(options), None)
    return StorageClass.from_dict(data)


def _default_list(cli: Any, options: Mapping | None) -> StorageClassList:
    data = cli.request("GET", STORAGE_CLASS_PATH, _params(options), None)
    return StorageClassList.from_dict(data)


def _default_create(cli: Any, storage_class: StorageClass) -> StorageClass:
    data = cli.request("POST", STORAGE_CLASS_PATH, None, storage_class.to_dict())
    return StorageClass.from_dict(data)


def _default_update(cli: Any, storage_class: StorageClass) -> StorageClass:
    path = f"{STORAGE_CLASS_PATH}/{storage_class.metadata.name}"
    data = cli.request("PUT", path, None, storage_class.to_dict())
    return StorageClass.from_dict(data)


def _default_delete(cli: Any, name: str, delete_options: Mapping | None) -> None:
    body = dict(delete_options) if delete_options else None
    cli.request("DELETE", f"{STORAGE_CLASS_PATH}/{name}", None, body)


def _default_delete_collection(
    cli: Any, list_options: Mapping | None, delete_options: Mapping | None
) -> None:
    body = dict(delete_options) if delete_options else None
    cli.request("DELETE", STORAGE_CLASS_PATH, _params(list_options), body)


class Kubeclient:
    """Runs StorageClass operations against a Kubernetes cluster.

    Every step that talks to the cluster is a replaceable callable, so the
    client can be driven by fakes.
    """

    def __init__(
        self,
        *,
        clientset: Any = None,
        kube_config_path: str = "",
        get_clientset: GetClientsetFn | None = None,
        get_clientset_for_path: GetClientsetForPathFn | None = None,
        get_fn: GetFn | None = None,
        list_fn: ListFn | None = None,
        create_fn: CreateFn | None = None,
        update_fn: UpdateFn | None = None,
        delete_fn: DeleteFn | None = None,
        delete_collection_fn: DeleteCollectionFn | None = None,
    ) -> None:
        self.clientset = clientset
        self.kube_config_path = kube_config_path
        self.get_clientset = get_clientset
        self.get_clientset_for_path = get_clientset_for_path
        self.get_fn = get_fn
        self.list_fn = list_fn
        self.create_fn = create_fn
        self.update_fn = update_fn
        self.delete_fn = delete_fn
        self.delete_collection_fn = delete_collection_fn
        self._with_defaults()

    def _with_defaults(self) -> None:
        if self.get_clientset is None:
            self.get_clientset = _default_get_clientset
        if self.get_clientset_for_path is None:
            self.get_clientset_for_path = _default_get_clientset_for_path
        if self.get_fn is None:
            self.get_fn = _default_get
        if self.list_fn is None:
            self.list_fn = _default_list
        if self.create_fn is None:
            self.create_fn = _default_create
        if self.update_fn is None:
            self.update_fn = _default_update
        if self.delete_fn is None:
            self.delete_fn = _default_delete
        if self.delete_collection_fn is None:
            self.delete_collection_fn = _default_delete_collection

    def _clientset_for_path_or_direct(self) -> Any:
        if self.kube_config_path:
            return self.get_clientset_for_path(self.kube_config_path)
        return self.get_clientset()

    def _clientset_or_cached(self) -> Any:
        if self.clientset is not None:
            return self.clientset
        try:
            self.clientset = self._clientset_for_path_or_direct()
        except Exception as err:
            raise KubeclientError(f"failed to get clientset: {err}") from err
        return self.clientset

    def _cli(self, message: str) -> Any:
        try:
            return self._clientset_or_cached()
        except KubeclientError as err:
            raise KubeclientError(f"{message}: {err}") from err

    def get(self, name: str, options: Mapping | None = None) -> StorageClass:
        """Return the named StorageClass."""
        if not name.strip():
            raise KubeclientError("failed to get StorageClass: missing StorageClass name")
        cli = self._cli(f"failed to get StorageClass {{{name}}}")
        return self.get_fn(cli, name, options)

    def list(self, options: Mapping | None = None) -> StorageClassList:
        """Return the StorageClasses that match the list options."""
        cli = self._cli(f"failed to list StorageClass listoptions: '{options}'")
        return self.list_fn(cli, options)

    def delete(self, name: str, delete_options: Mapping | None = None) -> None:
        """Delete the named StorageClass."""
        if not name.strip():
            raise KubeclientError("failed to delete StorageClass: missing StorageClass name")
        cli = self._cli(f"failed to delete StorageClass {{{name}}}")
        self.delete_fn(cli, name, delete_options)

    def create(self, storage_class: StorageClass | None) -> StorageClass:
        """Create a StorageClass and return the object the cluster stored."""
        if storage_class is None:
            raise KubeclientError("failed to create StorageClass: nil StorageClass object")
        cli = self._cli(f"failed to create StorageClass {{{storage_class.metadata.name}}}")
        return self.create_fn(cli, storage_class)

    def update(self, storage_class: StorageClass | None) -> StorageClass:
        """Update a StorageClass and return the object the cluster stored."""
        if storage_class is None:
            raise KubeclientError("failed to update StorageClass: nil StorageClass object")
        cli = self._cli(f"failed to update StorageClass {{{storage_class.metadata.name}}}")
        return self.update_fn(cli, storage_class)

    def create_collection(self, storage_class_list: StorageClassList | None) -> StorageClassList:
        """Create every StorageClass in the list, stopping at the first failure."""
        if storage_class_list is None or not storage_class_list.items:
            raise KubeclientError(
                "failed to create list of StorageClasses: nil StorageClass list provided"
            )
        return StorageClassList(items=[self.create(item) for item in storage_class_list.items])

    def delete_collection(
        self, list_options: Mapping | None = None, delete_options: Mapping | None = None
    ) -> None:
        """Delete the StorageClasses that match the list options."""
        cli = self._cli("failed to delete the collection of StorageClasses")
        self.delete_collection_fn(cli, list_options, delete_options)


KubeclientBuildOption = Callable[[Kubeclient], None]


def new_kube_client(*args: KubeclientBuildOption) -> Kubeclient:
    """Return a new client with the given options applied."""
    client = Kubeclient()
    for option in args:
        option(client)
    client._with_defaults()
    return client


def with_client_set(clientset: Any) -> KubeclientBuildOption:
    def option(client: Kubeclient) -> None:
        client.clientset = clientset

    return option


def with_kube_config_path(path: str) -> KubeclientBuildOption:
    def option(client: Kubeclient) -> None:
        client.kube_config_path = path

    return option