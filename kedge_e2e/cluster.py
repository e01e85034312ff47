"""Async facade over the Kubernetes CoreV1 API"""

import asyncio
from typing import Dict, List, Optional

import urllib3
from kubernetes import client, config as k8s_config
from kubernetes.client.rest import ApiException

from .config import Config
from .errors import E2EError, ListError, NamespaceError
from .log import get_logger

log = get_logger(__name__)

MANAGED_LABEL = 'kedge-e2e'

# Errors a single API call can raise: API-level and transport-level
API_ERRORS = (ApiException, urllib3.exceptions.HTTPError)


def _reason(e: Exception) -> str:
    if isinstance(e, ApiException):
        return f"({e.status}) {e.reason}"
    return str(e)


class ClusterClient:
    """Thin async wrapper over one shared CoreV1Api.

    Every call is blocking in the underlying client and is run in a worker
    thread. The API object's urllib3 pool is shared by all test cases.
    """

    def __init__(self, core_v1):
        self.core_v1 = core_v1

    @classmethod
    def from_config(cls, config: Config) -> "ClusterClient":
        """Load kubeconfig (explicit, in-cluster or default) and build the API client"""
        try:
            if config.kubeconfig_path:
                log.info(f"Loading kubeconfig from: {config.kubeconfig_path}", "CONFIG")
                k8s_config.load_kube_config(config_file=config.kubeconfig_path)
            else:
                try:
                    k8s_config.load_incluster_config()
                    log.info("Using in-cluster Kubernetes configuration", "CONFIG")
                except k8s_config.ConfigException:
                    k8s_config.load_kube_config()
                    log.info("Using default kubeconfig file", "CONFIG")
        except (k8s_config.ConfigException, OSError) as e:
            raise E2EError(f"failed to load Kubernetes configuration: {e}") from e

        k8s_conf = client.Configuration.get_default_copy()
        if config.k8s_verify_ssl is not None:
            k8s_conf.verify_ssl = config.k8s_verify_ssl
            if not config.k8s_verify_ssl:
                k8s_conf.assert_hostname = False
                k8s_conf.ssl_ca_cert = None
                urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            log.info(f"SSL verification set via environment: {config.k8s_verify_ssl}", "CONFIG")

        return cls(client.CoreV1Api(client.ApiClient(configuration=k8s_conf)))

    # Namespaces

    async def create_namespace(self, name: str, labels: Optional[Dict[str, str]] = None):
        body = client.V1Namespace(
            metadata=client.V1ObjectMeta(name=name, labels=labels or {})
        )
        try:
            return await asyncio.to_thread(self.core_v1.create_namespace, body=body)
        except API_ERRORS as e:
            raise NamespaceError(name, "create", _reason(e)) from e

    async def read_namespace_phase(self, name: str) -> Optional[str]:
        """Return the namespace phase, or None if it does not exist yet"""
        try:
            ns = await asyncio.to_thread(self.core_v1.read_namespace, name=name)
        except ApiException as e:
            if e.status == 404:
                return None
            raise NamespaceError(name, "read", _reason(e)) from e
        except urllib3.exceptions.HTTPError as e:
            raise NamespaceError(name, "read", _reason(e)) from e
        return getattr(getattr(ns, 'status', None), 'phase', None)

    async def delete_namespace(self, name: str):
        try:
            await asyncio.to_thread(self.core_v1.delete_namespace, name=name)
        except API_ERRORS as e:
            if isinstance(e, ApiException) and e.status == 404:
                return
            raise NamespaceError(name, "delete", _reason(e)) from e

    async def list_namespaces(self, label_selector: str = "") -> List[str]:
        try:
            namespaces = await asyncio.to_thread(
                self.core_v1.list_namespace, label_selector=label_selector
            )
        except API_ERRORS as e:
            raise ListError("namespaces", reason=_reason(e)) from e
        return [ns.metadata.name for ns in namespaces.items]

    # Workloads

    async def list_pods(self, namespace: str) -> list:
        try:
            pods = await asyncio.to_thread(self.core_v1.list_namespaced_pod, namespace=namespace)
        except API_ERRORS as e:
            raise ListError("pods", namespace, _reason(e)) from e
        return list(pods.items)

    async def list_services(self, namespace: str) -> list:
        try:
            services = await asyncio.to_thread(self.core_v1.list_namespaced_service, namespace=namespace)
        except API_ERRORS as e:
            raise ListError("services", namespace, _reason(e)) from e
        return list(services.items)

    async def list_nodes(self) -> list:
        try:
            nodes = await asyncio.to_thread(self.core_v1.list_node)
        except API_ERRORS as e:
            raise ListError("nodes", reason=_reason(e)) from e
        return list(nodes.items)
