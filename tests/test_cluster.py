from __future__ import annotations

import pytest
import urllib3
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from kedge_e2e.cluster import ClusterClient
from kedge_e2e.config import Config
from kedge_e2e.errors import E2EError, ListError, NamespaceError
from tests.conftest import FakeCoreV1, make_pod


class TestClusterClient:
    @pytest.mark.asyncio
    async def test_list_pods_returns_items(self) -> None:
        core = FakeCoreV1(pod_snapshots=[[make_pod("web-1"), make_pod("db-1")]])
        pods = await ClusterClient(core).list_pods("wordpress")
        assert [p.metadata.name for p in pods] == ["web-1", "db-1"]

    @pytest.mark.asyncio
    async def test_transport_error_becomes_list_error(self) -> None:
        core = FakeCoreV1()
        core.errors["list_node"] = urllib3.exceptions.MaxRetryError(None, "/api/v1/nodes", reason="refused")

        with pytest.raises(ListError, match="nodes") as exc_info:
            await ClusterClient(core).list_nodes()
        assert isinstance(exc_info.value.__cause__, urllib3.exceptions.HTTPError)

    @pytest.mark.asyncio
    async def test_read_phase_of_missing_namespace_is_none(self) -> None:
        assert await ClusterClient(FakeCoreV1()).read_namespace_phase("nope") is None

    @pytest.mark.asyncio
    async def test_read_phase_failure_is_namespace_error(self) -> None:
        core = FakeCoreV1()
        core.errors["read_namespace"] = ApiException(status=401, reason="Unauthorized")
        with pytest.raises(NamespaceError, match="Unauthorized"):
            await ClusterClient(core).read_namespace_phase("wordpress")

    @pytest.mark.asyncio
    async def test_delete_missing_namespace_is_silent(self) -> None:
        await ClusterClient(FakeCoreV1()).delete_namespace("nope")


class TestFromConfig:
    def test_explicit_kubeconfig_is_loaded(self, fast_config: Config, monkeypatch: pytest.MonkeyPatch) -> None:
        loaded: list[str | None] = []
        monkeypatch.setattr(k8s_config, "load_kube_config", lambda config_file=None: loaded.append(config_file))
        fast_config.kubeconfig_path = "/tmp/kubeconfig"

        cluster = ClusterClient.from_config(fast_config)

        assert loaded == ["/tmp/kubeconfig"]
        assert cluster.core_v1 is not None

    def test_falls_back_to_default_kubeconfig(self, fast_config: Config, monkeypatch: pytest.MonkeyPatch) -> None:
        loaded: list[str | None] = []

        def _no_incluster() -> None:
            raise k8s_config.ConfigException("not in cluster")

        monkeypatch.setattr(k8s_config, "load_incluster_config", _no_incluster)
        monkeypatch.setattr(k8s_config, "load_kube_config", lambda config_file=None: loaded.append(config_file))

        ClusterClient.from_config(fast_config)

        assert loaded == [None]

    def test_unloadable_config_raises(self, fast_config: Config, monkeypatch: pytest.MonkeyPatch) -> None:
        def _fail(config_file: str | None = None) -> None:
            raise k8s_config.ConfigException("invalid kube-config file")

        monkeypatch.setattr(k8s_config, "load_kube_config", _fail)
        fast_config.kubeconfig_path = "/tmp/broken"

        with pytest.raises(E2EError, match="invalid kube-config"):
            ClusterClient.from_config(fast_config)

    def test_ssl_verification_can_be_disabled(self, fast_config: Config, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(k8s_config, "load_kube_config", lambda config_file=None: None)
        fast_config.kubeconfig_path = "/tmp/kubeconfig"
        fast_config.k8s_verify_ssl = False

        cluster = ClusterClient.from_config(fast_config)

        assert cluster.core_v1.api_client.configuration.verify_ssl is False
