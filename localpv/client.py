"""Kubernetes connection configuration and API clients."""

from __future__ import annotations

import base64
import os
import ssl
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import httpx
import yaml

K8S_MASTER_IP_ENVIRONMENT_KEY = "OPENEBS_IO_K8S_MASTER"
KUBE_CONFIG_ENVIRONMENT_KEY = "OPENEBS_IO_KUBE_CONFIG"

_SA_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


class ClientError(Exception):
    """Raised when a Kubernetes configuration or client cannot be obtained."""


@dataclass
class RestConfig:
    """Connection settings for a Kubernetes API server."""

    host: str = ""
    bearer_token: str = ""
    ca_file: str = ""
    ca_data: bytes = b""
    cert_file: str = ""
    key_file: str = ""
    cert_data: bytes = b""
    key_data: bytes = b""
    insecure: bool = False


class _ApiClient:
    def __init__(self, config: RestConfig, transport: httpx.BaseTransport | None = None):
        self.config = config
        self._transport = transport

    def _verify(self) -> Any:
        cfg = self.config
        if cfg.insecure:
            return False
        if not (cfg.ca_file or cfg.ca_data or cfg.cert_file or cfg.cert_data):
            return True
        ctx = ssl.create_default_context(
            cafile=cfg.ca_file or None,
            cadata=cfg.ca_data.decode() if cfg.ca_data else None,
        )
        if cfg.cert_file:
            ctx.load_cert_chain(cfg.cert_file, cfg.key_file or None)
        elif cfg.cert_data:
            with tempfile.TemporaryDirectory() as tmp:
                cert = Path(tmp, "cert.pem")
                key = Path(tmp, "key.pem")
                cert.write_bytes(self.config.cert_data)
                key.write_bytes(self.config.key_data)
                ctx.load_cert_chain(str(cert), str(key))
        return ctx

    def _send(self, method: str, path: str, params: dict | None, body: Any) -> Any:
        headers = {"Accept": "application/json"}
        if self.config.bearer_token:
            headers["Authorization"] = f"Bearer {self.config.bearer_token}"
        kwargs: dict[str, Any] = {"base_url": self.config.host, "headers": headers}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        else:
            kwargs["verify"] = self._verify()
        try:
            with httpx.Client(**kwargs) as http:
                response = http.request(method, path, params=params, json=body)
                response.raise_for_status()
        except httpx.HTTPError as err:
            raise ClientError(f"{method} {path} failed: {err}") from err
        return response.json() if response.content else None


class Clientset(_ApiClient):
    """Typed access to the Kubernetes REST API."""

    def request(self, method: str, path: str, params: dict | None = None, body: Any = None) -> Any:
        """Send a request to the API server and return the decoded JSON reply."""
        return self._send(method, path, params, body)


class DynamicClient(_ApiClient):
    """Untyped access to arbitrary Kubernetes resources."""

    def request(self, method: str, path: str, params: dict | None = None, body: Any = None) -> Any:
        """Send a request to the API server and return the decoded JSON reply."""
        return self._send(method, path, params, body)


def get_env(key: str) -> str:
    """Return the value of an environment variable, or an empty string."""
    return os.environ.get(key, "")


def in_cluster_config() -> RestConfig:
    """Build a configuration from the service account mounted into a pod."""
    host = os.environ.get("KUBERNETES_SERVICE_HOST", "")
    port = os.environ.get("KUBERNETES_SERVICE_PORT", "")
    if not host or not port:
        raise ClientError(
            "unable to load in-cluster configuration, "
            "KUBERNETES_SERVICE_HOST and KUBERNETES_SERVICE_PORT must be defined"
        )
    try:
        token = (_SA_DIR / "token").read_text().strip()
    except OSError as err:
        raise ClientError(f"unable to read service account token: {err}") from err
    if ":" in host:
        host = f"[{host}]"
    ca = _SA_DIR / "ca.crt"
    return RestConfig(
        host=f"https://{host}:{port}",
        bearer_token=token,
        ca_file=str(ca) if ca.exists() else "",
    )


def _named(entries: list | None, name: str, inner: str) -> dict:
    for entry in entries or []:
        if entry.get("name") == name:
            return entry.get(inner) or {}
    raise ClientError(f"kubeconfig has no {inner} named {name!r}")


def _load_kubeconfig(path: str) -> RestConfig:
    try:
        doc = yaml.safe_load(Path(path).read_text()) or {}
    except (OSError, yaml.YAMLError) as err:
        raise ClientError(f"failed to load kubeconfig {path!r}: {err}") from err
    if not isinstance(doc, dict):
        raise ClientError(f"invalid kubeconfig {path!r}")
    current = doc.get("current-context", "")
    if not current:
        raise ClientError(f"kubeconfig {path!r} has no current-context")
    context = _named(doc.get("contexts"), current, "context")
    cluster = _named(doc.get("clusters"), context.get("cluster", ""), "cluster")
    user = _named(doc.get("users"), context.get("user", ""), "user") if context.get("user") else {}

    token = user.get("token", "")
    if not token and user.get("tokenFile"):
        token = Path(user["tokenFile"]).read_text().strip()

    def data(key: str) -> bytes:
        raw = user.get(key) if key.startswith("client") else cluster.get(key)
        return base64.b64decode(raw) if raw else b""

    return RestConfig(
        host=cluster.get("server", ""),
        bearer_token=token,
        ca_file=cluster.get("certificate-authority", ""),
        ca_data=data("certificate-authority-data"),
        cert_file=user.get("client-certificate", ""),
        key_file=user.get("client-key", ""),
        cert_data=data("client-certificate-data"),
        key_data=data("client-key-data"),
        insecure=bool(cluster.get("insecure-skip-tls-verify", False)),
    )


def build_config_from_flags(master_url: str, kubeconfig_path: str) -> RestConfig:
    """Build a configuration from a master URL and/or a kubeconfig file."""
    if not master_url and not kubeconfig_path:
        try:
            return in_cluster_config()
        except ClientError as err:
            raise ClientError(f"invalid configuration: no configuration has been provided: {err}") from err
    if not kubeconfig_path:
        return RestConfig(host=master_url)
    config = _load_kubeconfig(kubeconfig_path)
    if master_url:
        config.host = master_url
    return config


@dataclass
class Client:
    """Resolves a Kubernetes configuration and builds API clients from it."""

    is_in_cluster: bool = False
    kube_config_path: str = ""
    get_in_cluster_config: Callable[[], RestConfig] | None = None
    build_config_from_flags: Callable[[str, str], RestConfig] | None = None
    get_kube_clientset: Callable[[RestConfig], Clientset] | None = None
    get_kube_dynamic_client: Callable[[RestConfig], DynamicClient] | None = None
    get_kube_master_ip_from_env: Callable[[str], str] | None = None
    get_kube_config_path_from_env: Callable[[str], str] | None = field(default=None)

    def __post_init__(self) -> None:
        self._with_defaults()

    def _with_defaults(self) -> None:
        if self.get_in_cluster_config is None:
            self.get_in_cluster_config = in_cluster_config
        if self.build_config_from_flags is None:
            self.build_config_from_flags = build_config_from_flags
        if self.get_kube_clientset is None:
            self.get_kube_clientset = Clientset
        if self.get_kube_dynamic_client is None:
            self.get_kube_dynamic_client = DynamicClient
        if self.get_kube_master_ip_from_env is None:
            self.get_kube_master_ip_from_env = get_env
        if self.get_kube_config_path_from_env is None:
            self.get_kube_config_path_from_env = get_env

    def get_config_for_path_or_direct(self) -> RestConfig:
        """Return the config from the kubeconfig path if set, otherwise by priority."""
        if self.kube_config_path:
            return self.config_for_path(self.kube_config_path)
        return self.config()

    def config_for_path(self, kube_config_path: str) -> RestConfig:
        return self.build_config_from_flags("", kube_config_path)

    def config(self) -> RestConfig:
        """Return the config: in-cluster flag first, then environment, then in-cluster."""
        if self.is_in_cluster:
            return self.get_in_cluster_config()
        if (
            self.get_kube_master_ip_from_env(K8S_MASTER_IP_ENVIRONMENT_KEY).strip()
            or self.get_kube_config_path_from_env(KUBE_CONFIG_ENVIRONMENT_KEY).strip()
        ):
            return self._config_from_env()
        return self.get_in_cluster_config()

    def _config_from_env(self) -> RestConfig:
        master = self.get_kube_master_ip_from_env(K8S_MASTER_IP_ENVIRONMENT_KEY)
        kubeconfig = self.get_kube_config_path_from_env(KUBE_CONFIG_ENVIRONMENT_KEY)
        if not master.strip() and not kubeconfig.strip():
            raise ClientError(
                "failed to get kubernetes config: missing ENV: atleast one should be set: "
                f"{{{K8S_MASTER_IP_ENVIRONMENT_KEY}}} or {{{KUBE_CONFIG_ENVIRONMENT_KEY}}}"
            )
        return self.build_config_from_flags(master, kubeconfig)

    def clientset(self) -> Clientset:
        try:
            config = self.get_config_for_path_or_direct()
        except Exception as err:
            raise ClientError(
                f"failed to get kubernetes clientset: IsInCluster {{{self.is_in_cluster}}}: "
                f"KubeConfigPath {{{self.kube_config_path}}}: {err}"
            ) from err
        return self.get_kube_clientset(config)

    def dynamic(self) -> DynamicClient:
        try:
            config = self.get_config_for_path_or_direct()
        except Exception as err:
            raise ClientError(f"failed to get dynamic client: {err}") from err
        return self.get_kube_dynamic_client(config)


def new(*args: Callable[[Client], None]) -> Client:
    """Return a new client with the given options applied."""
    client = Client()
    for option in args:
        option(client)
    client._with_defaults()
    return client


_instance: Client | None = None
_instance_lock = threading.Lock()


def instance(*args: Callable[[Client], None]) -> Client:
    """Return the process-wide client, creating it on first use."""
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = new(*args)
    return _instance


def in_cluster() -> Callable[[Client], None]:
    def option(client: Client) -> None:
        client.is_in_cluster = True

    return option


def with_kube_config_path(kube_config_path: str) -> Callable[[Client], None]:
    def option(client: Client) -> None:
        client.kube_config_path = kube_config_path

    return option


def get_config(client: Client | None) -> RestConfig:
    if client is None:
        raise ClientError("failed to get kubernetes config: nil client provided")
    return client.get_config_for_path_or_direct()