"""Resolve NodePort endpoints and poll them until they answer 200 OK"""

import asyncio
from typing import Dict, Iterable, Optional

import urllib3

from .cluster import ClusterClient
from .errors import HealthCheckError, ListError
from .log import get_logger
from .models import ServicePort
from .polling import Deadline

log = get_logger(__name__)

HEALTHY_STATUS = "200 OK"

# Follow redirects like a browser would, but never retry a failed request:
# the poll loop does that itself
PROBE_RETRIES = urllib3.Retry(total=None, connect=0, read=0, redirect=10, status=0, other=0)


class EndpointResolver:
    """Maps declared service ports to http://<node-address>:<node-port> URLs"""

    def __init__(self, cluster: ClusterClient):
        self.cluster = cluster

    async def node_address(self) -> str:
        """Address of the first node; assumes a single-node test cluster"""
        nodes = await self.cluster.list_nodes()
        if not nodes:
            raise ListError("nodes", reason="cluster reported no nodes")
        addresses = (nodes[0].status.addresses if nodes[0].status else None) or []
        if not addresses:
            raise ListError("nodes", reason=f"node {nodes[0].metadata.name!r} has no address")
        address = addresses[0].address
        if ":" in address and not address.startswith("["):
            address = f"[{address}]"  # IPv6 literal
        return address

    async def resolve(self, namespace: str, declared: Iterable[ServicePort]) -> Dict[str, str]:
        """Build the endpoint map; undeclared or unmatched entries are left out"""
        node_ip = await self.node_address()
        log.debug(f"node ip address {node_ip}", "ENDPOINTS")
        running = await self.cluster.list_services(namespace)

        endpoints: Dict[str, str] = {}
        for svc in declared:
            for service in running:
                if service.metadata.name != svc.name:
                    continue
                for port in (service.spec.ports if service.spec else None) or []:
                    if port.port != svc.port:
                        continue
                    if not port.node_port:
                        log.warn(f"Service {svc.key} in {namespace} has no node port", "ENDPOINTS")
                        continue
                    endpoints[svc.key] = f"http://{node_ip}:{port.node_port}"
        log.debug(f"endpoints: {endpoints}", "ENDPOINTS")
        return endpoints


class EndpointHealthPoller:
    """Probes every endpoint until each one answered exactly 200 OK"""

    def __init__(self, http: Optional[urllib3.PoolManager] = None, poll_interval: float = 1.0,
                 http_timeout: float = 5.0, timeout: Optional[float] = None):
        self.http = http if http is not None else urllib3.PoolManager()
        self.poll_interval = poll_interval
        self.http_timeout = http_timeout
        self.timeout = timeout

    def probe(self, url: str) -> str:
        """GET the url once and return its status line, e.g. '200 OK'"""
        response = self.http.request(
            "GET", url,
            timeout=urllib3.Timeout(total=self.http_timeout),
            retries=PROBE_RETRIES,
            preload_content=False,
        )
        try:
            return f"{response.status} {response.reason}"
        finally:
            response.drain_conn()
            response.release_conn()

    async def wait(self, endpoints: Dict[str, str], cancel: Optional[asyncio.Event] = None):
        """Poll until all endpoints are healthy.

        Transport errors are retried after a pause; any other status than
        200 OK aborts immediately without probing the remaining endpoints.
        The caller's map is not modified.
        """
        pending = dict(endpoints)
        deadline = Deadline(self.timeout, cancel, f"endpoints {sorted(pending)}")

        while pending:
            for key, url in list(pending.items()):
                deadline.check()
                try:
                    status = await asyncio.to_thread(self.probe, url)
                except urllib3.exceptions.HTTPError as e:
                    log.debug(f"error while making http request {url!r} for service {key!r}, err: {e}", "HEALTH")
                    await deadline.pause(self.poll_interval)
                    continue

                if status != HEALTHY_STATUS:
                    raise HealthCheckError(key, url, status)
                log.info(f"{key!r} is running!", "HEALTH")
                del pending[key]
