import json

import httpx
import pytest

from localpv.client import ClientError, Clientset, RestConfig
from localpv.kube import (
    STORAGE_CLASS_PATH,
    Kubeclient,
    KubeclientError,
    new_kube_client,
    with_client_set,
    with_kube_config_path,
)
from localpv.objects import ObjectMeta, StorageClass, StorageClassList

DIRECT_CS = object()
PATH_CS = object()


def get_cs_ok():
    return DIRECT_CS


def get_cs_nil():
    return None


def get_cs_err():
    raise ClientError("fake error")


def get_cs_for_path_ok(path):
    return PATH_CS


def get_cs_for_path_err(path):
    raise ClientError("fake error")


def list_ok(cli, options):
    return StorageClassList(items=[StorageClass(metadata=ObjectMeta(name="listed"))])


def list_err(cli, options):
    raise ClientError("some error")


def get_ok(cli, name, options):
    return StorageClass(metadata=ObjectMeta(name=name))


def get_err(cli, name, options):
    raise ClientError("some error")


def delete_ok(cli, name, options):
    return None


def delete_err(cli, name, options):
    raise ClientError("some error")


def create_ok(cli, sc):
    return StorageClass(metadata=ObjectMeta(name=sc.metadata.name + "-created"))


def create_err(cli, sc):
    raise ClientError("failed to create StorageClass")


def set_clientset(k):
    k.clientset = DIRECT_CS


def set_kube_config_path(k):
    k.kube_config_path = "fake-path"


def set_nil_clientset(k):
    k.clientset = None


def noop(k):
    pass


def test_defaults_fill_missing_functions_and_keep_given_ones():
    k = Kubeclient(get_clientset=get_cs_ok, list_fn=None, get_fn=get_ok, create_fn=None)
    assert k.get_clientset is get_cs_ok
    assert k.get_fn is get_ok
    for fn in (k.get_clientset_for_path, k.list_fn, k.create_fn, k.update_fn,
               k.delete_fn, k.delete_collection_fn):
        assert callable(fn)


@pytest.mark.parametrize(
    "get_cs, get_cs_path, path, expected",
    [
        (get_cs_nil, get_cs_for_path_ok, "fake-path", PATH_CS),
        (get_cs_ok, get_cs_for_path_ok, "", DIRECT_CS),
        (get_cs_err, get_cs_for_path_ok, "fake-path", PATH_CS),
        (get_cs_ok, get_cs_for_path_err, "", DIRECT_CS),
    ],
)
def test_clientset_path_or_direct_positive(get_cs, get_cs_path, path, expected):
    seen = []
    k = Kubeclient(
        get_clientset=get_cs,
        get_clientset_for_path=get_cs_path,
        kube_config_path=path,
        list_fn=lambda cli, opts: seen.append(cli) or StorageClassList(),
    )
    k.list()
    assert seen == [expected]
    assert k.clientset is expected


@pytest.mark.parametrize(
    "get_cs, get_cs_path, path",
    [
        (get_cs_err, get_cs_for_path_ok, ""),
        (get_cs_ok, get_cs_for_path_err, "fake-path"),
        (get_cs_err, get_cs_for_path_err, "fake-path"),
        (get_cs_err, get_cs_for_path_err, ""),
    ],
)
def test_clientset_path_or_direct_negative(get_cs, get_cs_path, path):
    k = Kubeclient(get_clientset=get_cs, get_clientset_for_path=get_cs_path,
                   kube_config_path=path, list_fn=list_ok)
    with pytest.raises(KubeclientError, match="failed to get clientset"):
        k.list()


def test_clientset_is_cached():
    calls = []

    def counting():
        calls.append(1)
        return DIRECT_CS

    k = Kubeclient(get_clientset=counting, list_fn=list_ok, get_fn=get_ok)
    listed = k.list()
    got = k.get("sc-1")
    assert [i.metadata.name for i in listed.items] == ["listed"]
    assert got.metadata.name == "sc-1"
    assert k.clientset is DIRECT_CS
    assert calls == [1]


@pytest.mark.parametrize("clientset, expected", [(None, None), (DIRECT_CS, DIRECT_CS)])
def test_with_client_set(clientset, expected):
    k = Kubeclient()
    with_client_set(clientset)(k)
    assert k.clientset is expected


def test_with_kube_config_path_option():
    k = Kubeclient()
    with_kube_config_path("/tmp/kubeconfig")(k)
    assert k.kube_config_path == "/tmp/kubeconfig"


@pytest.mark.parametrize(
    "opts, expect_clientset, expect_path",
    [
        ([set_clientset, set_kube_config_path], True, True),
        ([set_clientset, noop], True, False),
        ([set_clientset, noop, noop], True, False),
        ([set_nil_clientset, set_kube_config_path], False, True),
        ([set_nil_clientset, noop, set_kube_config_path], False, True),
        ([set_nil_clientset, noop, noop], False, False),
    ],
)
def test_new_kube_client_options(opts, expect_clientset, expect_path):
    k = new_kube_client(*opts)
    assert (k.clientset is DIRECT_CS) == expect_clientset
    assert k.kube_config_path == ("fake-path" if expect_path else "")


@pytest.mark.parametrize(
    "get_cs, get_cs_path, path, list_fn, error",
    [
        (get_cs_nil, get_cs_for_path_ok, "fake-path", list_ok, None),
        (get_cs_ok, get_cs_for_path_ok, "", list_ok, None),
        (get_cs_err, get_cs_for_path_ok, "fake-path", list_ok, None),
        (get_cs_ok, get_cs_for_path_err, "", list_ok, None),
        (get_cs_err, get_cs_for_path_ok, "", list_ok, KubeclientError),
        (get_cs_ok, get_cs_for_path_err, "fake-path", list_ok, KubeclientError),
        (get_cs_err, get_cs_for_path_err, "fake-path", list_ok, KubeclientError),
        (get_cs_ok, get_cs_for_path_ok, "", list_err, ClientError),
    ],
)
def test_list(get_cs, get_cs_path, path, list_fn, error):
    k = Kubeclient(get_clientset=get_cs, get_clientset_for_path=get_cs_path,
                   kube_config_path=path, list_fn=list_fn)
    if error is None:
        result = k.list({})
        assert [i.metadata.name for i in result.items] == ["listed"]
    else:
        with pytest.raises(error):
            k.list({})


@pytest.mark.parametrize(
    "get_cs, get_cs_path, path, get_fn, name, error",
    [
        (get_cs_err, get_cs_for_path_ok, "", get_ok, "pod-1", KubeclientError),
        (get_cs_ok, get_cs_for_path_err, "fake-path", get_ok, "pod-1", KubeclientError),
        (get_cs_ok, get_cs_for_path_ok, "", get_ok, "pod-2", None),
        (get_cs_ok, get_cs_for_path_ok, "fp", get_err, "pod-3", ClientError),
        (get_cs_ok, get_cs_for_path_ok, "fakepath", get_ok, "", KubeclientError),
        (get_cs_ok, get_cs_for_path_ok, "", get_ok, "   ", KubeclientError),
    ],
)
def test_get(get_cs, get_cs_path, path, get_fn, name, error):
    k = Kubeclient(get_clientset=get_cs, get_clientset_for_path=get_cs_path,
                   kube_config_path=path, get_fn=get_fn)
    if error is None:
        assert k.get(name, {}).metadata.name == name
    else:
        with pytest.raises(error):
            k.get(name, {})


def test_get_error_names_storage_class():
    k = Kubeclient(get_clientset=get_cs_err, get_fn=get_ok)
    with pytest.raises(KubeclientError, match=r"failed to get StorageClass \{sc-9\}"):
        k.get("sc-9")


@pytest.mark.parametrize(
    "get_cs, get_cs_path, path, name, delete_fn, error",
    [
        (get_cs_err, get_cs_for_path_ok, "", "pod-1", delete_ok, KubeclientError),
        (get_cs_ok, get_cs_for_path_ok, "fake-path2", "pod-2", delete_ok, None),
        (get_cs_ok, get_cs_for_path_ok, "", "pod-3", delete_err, ClientError),
        (get_cs_ok, get_cs_for_path_ok, "fakepath", "", delete_ok, KubeclientError),
        (get_cs_ok, get_cs_for_path_err, "fake-path2", "pod1", delete_ok, KubeclientError),
        (get_cs_ok, get_cs_for_path_err, "fake-path2", "pod1", delete_err, KubeclientError),
    ],
)
def test_delete(get_cs, get_cs_path, path, name, delete_fn, error):
    deleted = []

    def recording(cli, n, opts):
        deleted.append(n)
        return delete_fn(cli, n, opts)

    k = Kubeclient(get_clientset=get_cs, get_clientset_for_path=get_cs_path,
                   kube_config_path=path, delete_fn=recording)
    if error is None:
        k.delete(name, {})
        assert deleted == [name]
    else:
        with pytest.raises(error):
            k.delete(name, {})


@pytest.mark.parametrize(
    "get_cs, get_cs_path, path, create_fn, sc, error",
    [
        (get_cs_err, get_cs_for_path_err, "", create_ok,
         StorageClass(metadata=ObjectMeta(name="SC-1")), KubeclientError),
        (get_cs_ok, get_cs_for_path_ok, "", create_err,
         StorageClass(metadata=ObjectMeta(name="SC-2")), ClientError),
        (get_cs_ok, get_cs_for_path_ok, "fake-path", create_err, None, KubeclientError),
        (get_cs_err, get_cs_for_path_ok, "fake-path", create_ok, None, KubeclientError),
        (get_cs_ok, get_cs_for_path_err, "fake-path", create_ok, None, KubeclientError),
    ],
)
def test_create_errors(get_cs, get_cs_path, path, create_fn, sc, error):
    k = Kubeclient(get_clientset=get_cs, get_clientset_for_path=get_cs_path,
                   kube_config_path=path, create_fn=create_fn)
    with pytest.raises(error):
        k.create(sc)


def test_create_ok():
    k = Kubeclient(get_clientset=get_cs_ok, create_fn=create_ok)
    assert k.create(StorageClass(metadata=ObjectMeta(name="sc"))).metadata.name == "sc-created"


def test_update_none_raises():
    k = Kubeclient(get_clientset=get_cs_ok)
    with pytest.raises(KubeclientError, match="nil StorageClass object"):
        k.update(None)


def test_update_passes_clientset_and_object():
    seen = []
    k = Kubeclient(get_clientset=get_cs_ok,
                   update_fn=lambda cli, sc: seen.append((cli, sc.metadata.name)) or sc)
    result = k.update(StorageClass(metadata=ObjectMeta(name="sc-u")))
    assert result.metadata.name == "sc-u"
    assert seen == [(DIRECT_CS, "sc-u")]


@pytest.mark.parametrize("bad", [None, StorageClassList()])
def test_create_collection_rejects_empty(bad):
    k = Kubeclient(get_clientset=get_cs_ok, create_fn=create_ok)
    with pytest.raises(KubeclientError, match="nil StorageClass list"):
        k.create_collection(bad)


def test_create_collection_creates_each_item_in_order():
    k = Kubeclient(get_clientset=get_cs_ok, create_fn=create_ok)
    items = [StorageClass(metadata=ObjectMeta(name=n)) for n in ("a", "b")]
    result = k.create_collection(StorageClassList(items=items))
    assert [i.metadata.name for i in result.items] == ["a-created", "b-created"]


def test_create_collection_stops_on_error():
    k = Kubeclient(get_clientset=get_cs_ok, create_fn=create_err)
    with pytest.raises(ClientError):
        k.create_collection(StorageClassList(items=[StorageClass()]))


def test_delete_collection_clientset_error():
    k = Kubeclient(get_clientset=get_cs_err)
    with pytest.raises(KubeclientError, match="collection of StorageClasses"):
        k.delete_collection({}, {})


def _mock_clientset(handler):
    transport = httpx.MockTransport(handler)
    return Clientset(RestConfig(host="http://k8s.example.com"), transport=transport)


def test_default_get_uses_api():
    def handler(request):
        assert request.method == "GET"
        assert request.url.path == f"{STORAGE_CLASS_PATH}/sc-1"
        return httpx.Response(200, json={"metadata": {"name": "sc-1"},
                                         "provisioner": "openebs.io/local"})

    k = new_kube_client(with_client_set(_mock_clientset(handler)))
    sc = k.get("sc-1")
    assert sc.metadata.name == "sc-1"
    assert sc.provisioner == "openebs.io/local"


def test_default_list_sends_options():
    def handler(request):
        assert request.url.params["labelSelector"] == "a=b"
        return httpx.Response(200, json={"items": [{"metadata": {"name": "x"}},
                                                   {"metadata": {"name": "y"}}]})

    k = new_kube_client(with_client_set(_mock_clientset(handler)))
    result = k.list({"labelSelector": "a=b"})
    assert [i.metadata.name for i in result.items] == ["x", "y"]


def test_default_create_posts_object():
    def handler(request):
        assert request.method == "POST"
        assert request.url.path == STORAGE_CLASS_PATH
        return httpx.Response(201, json=json.loads(request.content))

    k = new_kube_client(with_client_set(_mock_clientset(handler)))
    sc = StorageClass(metadata=ObjectMeta(name="sc-new"), provisioner="openebs.io/local")
    created = k.create(sc)
    assert created.metadata.name == "sc-new"
    assert created.provisioner == "openebs.io/local"


def test_default_delete_and_delete_collection():
    requests = []

    def handler(request):
        requests.append((request.method, request.url.path, dict(request.url.params)))
        return httpx.Response(200, json={})

    k = new_kube_client(with_client_set(_mock_clientset(handler)))
    deleted = k.delete("sc-old")
    deleted_collection = k.delete_collection({"labelSelector": "t=1"}, {})
    assert deleted is None
    assert deleted_collection is None
    assert requests == [
        ("DELETE", f"{STORAGE_CLASS_PATH}/sc-old", {}),
        ("DELETE", STORAGE_CLASS_PATH, {"labelSelector": "t=1"}),
    ]


def test_default_api_error_is_client_error():
    k = new_kube_client(with_client_set(_mock_clientset(lambda r: httpx.Response(404))))
    with pytest.raises(ClientError):
        k.get("missing")