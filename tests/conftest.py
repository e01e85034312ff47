from __future__ import annotations

import subprocess
from collections.abc import Callable
from typing import Any

import pytest
import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException

from kedge_e2e.cluster import ClusterClient
from kedge_e2e.config import Config
from kedge_e2e.endpoints import EndpointHealthPoller
from kedge_e2e.tools import Tools


def make_pod(name: str, phase: str = "Running") -> client.V1Pod:
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name),
        status=client.V1PodStatus(phase=phase),
    )


def make_service(name: str, ports: list[tuple[int, int | None]]) -> client.V1Service:
    """Build a Service from (port, node_port) pairs."""
    return client.V1Service(
        metadata=client.V1ObjectMeta(name=name),
        spec=client.V1ServiceSpec(
            type="NodePort",
            ports=[client.V1ServicePort(port=port, node_port=node_port) for port, node_port in ports],
        ),
    )


def make_node(name: str, address: str | None) -> client.V1Node:
    addresses = [client.V1NodeAddress(address=address, type="InternalIP")] if address else []
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name),
        status=client.V1NodeStatus(addresses=addresses),
    )


class FakeCoreV1:
    """In-memory stand-in for kubernetes.client.CoreV1Api.

    ``pod_snapshots`` is consumed one list per ``list_namespaced_pod`` call;
    the last snapshot repeats once the sequence is exhausted.
    """

    def __init__(
        self,
        pod_snapshots: list[list[client.V1Pod]] | None = None,
        services: list[client.V1Service] | None = None,
        nodes: list[client.V1Node] | None = None,
    ) -> None:
        self.pod_snapshots = pod_snapshots or [[]]
        self.services = services or []
        self.nodes = nodes if nodes is not None else [make_node("minikube", "10.0.0.5")]
        self.namespaces: dict[str, dict[str, str]] = {}
        self.namespace_phase = "Active"
        self.errors: dict[str, ApiException] = {}
        self.calls: dict[str, int] = {}
        self.deleted: list[str] = []

    def _record(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if name in self.errors:
            raise self.errors[name]

    def create_namespace(self, body: client.V1Namespace) -> client.V1Namespace:
        self._record("create_namespace")
        name = body.metadata.name
        if name in self.namespaces:
            raise ApiException(status=409, reason="AlreadyExists")
        self.namespaces[name] = dict(body.metadata.labels or {})
        return body

    def read_namespace(self, name: str) -> client.V1Namespace:
        self._record("read_namespace")
        if name not in self.namespaces:
            raise ApiException(status=404, reason="Not Found")
        return client.V1Namespace(
            metadata=client.V1ObjectMeta(name=name),
            status=client.V1NamespaceStatus(phase=self.namespace_phase),
        )

    def delete_namespace(self, name: str) -> None:
        self._record("delete_namespace")
        if name not in self.namespaces:
            raise ApiException(status=404, reason="Not Found")
        del self.namespaces[name]
        self.deleted.append(name)

    def list_namespace(self, label_selector: str = "") -> client.V1NamespaceList:
        self._record("list_namespace")
        key, _, value = label_selector.partition("=")
        items = [
            client.V1Namespace(metadata=client.V1ObjectMeta(name=name, labels=labels))
            for name, labels in self.namespaces.items()
            if not key or labels.get(key) == value
        ]
        return client.V1NamespaceList(items=items)

    def list_namespaced_pod(self, namespace: str) -> client.V1PodList:
        self._record("list_namespaced_pod")
        idx = min(self.calls["list_namespaced_pod"], len(self.pod_snapshots)) - 1
        return client.V1PodList(items=self.pod_snapshots[idx])

    def list_namespaced_service(self, namespace: str) -> client.V1ServiceList:
        self._record("list_namespaced_service")
        return client.V1ServiceList(items=self.services)

    def list_node(self) -> client.V1NodeList:
        self._record("list_node")
        return client.V1NodeList(items=self.nodes)


class FakeResponse:
    def __init__(self, status: int, reason: str) -> None:
        self.status = status
        self.reason = reason
        self.drained = False
        self.released = False

    def drain_conn(self) -> None:
        self.drained = True

    def release_conn(self) -> None:
        self.released = True


class FakeHTTP:
    """Stand-in for urllib3.PoolManager.

    ``outcomes`` maps a URL to a list of results, consumed in order: a
    ``(status, reason)`` tuple or an exception instance to raise. The last
    outcome repeats.
    """

    def __init__(self, outcomes: dict[str, list[Any]] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.requests: list[tuple[str, str, dict[str, Any]]] = []
        self.responses: list[FakeResponse] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append((method, url, kwargs))
        seen = sum(1 for _, u, _ in self.requests if u == url)
        results = self.outcomes.get(url, [(200, "OK")])
        outcome = results[min(seen, len(results)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        response = FakeResponse(*outcome)
        self.responses.append(response)
        return response

    def urls(self) -> list[str]:
        return [url for _, url, _ in self.requests]


def connection_refused(url: str = "http://10.0.0.5:30080") -> urllib3.exceptions.HTTPError:
    return urllib3.exceptions.MaxRetryError(None, url, reason="Connection refused")


@pytest.fixture
def fast_config(monkeypatch: pytest.MonkeyPatch) -> Config:
    """A Config whose polling never actually sleeps."""
    for var in (
        "GENERATOR_TOOL", "KUBECTL_TOOL", "KUBECONFIG", "SUITE_FILE",
        "RUN_POLICY", "MAX_PARALLEL", "K8S_VERIFY", "VERIFY_SSL",
    ):
        monkeypatch.delenv(var, raising=False)
    config = Config()
    config.poll_interval = 0
    config.namespace_ready_timeout = 5
    config.pod_ready_timeout = 5
    config.endpoint_ready_timeout = 5
    config.log_file = ""
    return config


@pytest.fixture
def tools() -> Tools:
    return Tools(generator="/usr/local/bin/kedge", kubectl="/usr/local/bin/kubectl")


@pytest.fixture
def fake_core() -> FakeCoreV1:
    return FakeCoreV1(
        pod_snapshots=[[make_pod("web-abc123")]],
        services=[make_service("svc", [(8080, 30080)])],
    )


@pytest.fixture
def cluster(fake_core: FakeCoreV1) -> ClusterClient:
    return ClusterClient(fake_core)


@pytest.fixture
def fake_http() -> FakeHTTP:
    return FakeHTTP()


@pytest.fixture
def poller_factory(fake_http: FakeHTTP) -> Callable[..., EndpointHealthPoller]:
    def _build(**kwargs: Any) -> EndpointHealthPoller:
        kwargs.setdefault("poll_interval", 0)
        return EndpointHealthPoller(fake_http, **kwargs)

    return _build


@pytest.fixture
def fake_run(monkeypatch: pytest.MonkeyPatch) -> Callable[..., list[dict[str, Any]]]:
    """Patch subprocess.run in the tools module with scripted results.

    Each call to the returned function appends a scripted
    ``(returncode, stdout, stderr)``; the list it returns records every
    invocation's arguments.
    """
    scripted: list[tuple[int, bytes, bytes]] = []
    calls: list[dict[str, Any]] = []

    def _run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
        calls.append({"cmd": cmd, **kwargs})
        returncode, stdout, stderr = scripted.pop(0) if scripted else (0, b"", b"")
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

    monkeypatch.setattr("kedge_e2e.tools.subprocess.run", _run)

    def _script(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b"") -> list[dict[str, Any]]:
        scripted.append((returncode, stdout, stderr))
        return calls

    return _script
