"""Namespace lifecycle for test cases"""

import asyncio
from typing import Optional

from .cluster import MANAGED_LABEL, ClusterClient
from .errors import NamespaceError
from .log import get_logger
from .polling import Deadline

log = get_logger(__name__)


class NamespaceManager:
    """Creates a namespace per test case and removes it afterwards"""

    def __init__(self, cluster: ClusterClient, ready_timeout: Optional[float] = 60,
                 poll_interval: float = 0.5):
        self.cluster = cluster
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval

    async def create(self, name: str):
        """Create the namespace.

        An already existing namespace is an error: it is never reused, so it
        is never deleted by mistake either.
        """
        namespace = await self.cluster.create_namespace(name, labels={MANAGED_LABEL: 'true'})
        log.info(f"Created namespace {name}", "NAMESPACE")
        return namespace

    async def wait_until_ready(self, name: str, cancel: Optional[asyncio.Event] = None):
        """Wait until namespace phase is Active"""
        deadline = Deadline(self.ready_timeout, cancel, f"namespace {name} to become Active")
        while True:
            phase = await self.cluster.read_namespace_phase(name)
            if phase == 'Active':
                log.debug(f"Namespace {name} is ready", "NAMESPACE")
                return
            await deadline.pause(self.poll_interval)

    async def delete(self, name: str) -> bool:
        """Best-effort delete; failures are logged, never raised"""
        try:
            await self.cluster.delete_namespace(name)
        except NamespaceError as e:
            log.warn(f"Failed to delete namespace {name}: {e}", "NAMESPACE")
            return False
        log.info(f"Successfully deleted namespace: {name!r}", "NAMESPACE")
        return True

    async def cleanup_stale(self) -> int:
        """Delete namespaces left behind by aborted runs"""
        stale = await self.cluster.list_namespaces(label_selector=f"{MANAGED_LABEL}=true")
        log.info(f"Found {len(stale)} namespaces to clean up", "CLEANUP")
        if not stale:
            return 0

        results = await asyncio.gather(*(self.delete(ns) for ns in stale))
        deleted = sum(1 for result in results if result is True)
        log.info(f"Deleted {deleted}/{len(stale)} namespaces", "CLEANUP")
        return deleted
