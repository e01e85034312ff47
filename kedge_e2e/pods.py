"""Wait for expected pods to reach the Running phase"""

import asyncio
from typing import Iterable, Optional

from .cluster import ClusterClient
from .log import get_logger
from .polling import Deadline

log = get_logger(__name__)

POD_RUNNING = 'Running'


def pod_matches(pod, expected: str) -> bool:
    """True if the pod name contains `expected` and the pod is Running.

    Containment rather than equality because generated pods carry a random
    suffix. Any pod whose name merely contains the string also counts.
    """
    name = pod.metadata.name or ""
    phase = getattr(pod.status, 'phase', None) if pod.status else None
    return expected in name and phase == POD_RUNNING


class PodReadinessWatcher:
    """Polls a namespace until every expected pod name is Running"""

    def __init__(self, cluster: ClusterClient, poll_interval: float = 1.0,
                 timeout: Optional[float] = None):
        self.cluster = cluster
        self.poll_interval = poll_interval
        self.timeout = timeout

    async def wait(self, namespace: str, expected: Iterable[str],
                   cancel: Optional[asyncio.Event] = None):
        """Return once every expected substring matched a Running pod"""
        remaining = {name: 0 for name in expected}
        deadline = Deadline(self.timeout, cancel, f"pods {sorted(remaining)} in {namespace}")

        while True:
            log.debug(f"pods not started yet in {namespace}: {' '.join(remaining)}", "PODS")
            pods = await self.cluster.list_pods(namespace)
            for expected_name in list(remaining):
                for pod in pods:
                    if pod_matches(pod, expected_name):
                        log.info(f"Pod {pod.metadata.name!r} started!", "PODS")
                        remaining.pop(expected_name, None)
                        break
            if not remaining:
                return
            await deadline.pause(self.poll_interval)
