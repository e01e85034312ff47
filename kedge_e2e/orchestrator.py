"""Run test cases: namespace, manifests, pods, endpoints, cleanup"""

import asyncio
import time
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .cluster import ClusterClient
from .config import Config
from .endpoints import EndpointHealthPoller, EndpointResolver
from .errors import TestCaseError
from .log import Colors, get_logger
from .models import RunReport, TestCase, TestCaseResult
from .namespaces import NamespaceManager
from .pods import PodReadinessWatcher
from .tools import ManifestPipeline, Tools

log = get_logger(__name__)

STEP_CREATE_NAMESPACE = 'create-namespace'
STEP_GENERATE = 'generate'
STEP_APPLY = 'apply'
STEP_WAIT_PODS = 'wait-pods'
STEP_RESOLVE_ENDPOINTS = 'resolve-endpoints'
STEP_WAIT_ENDPOINTS = 'wait-endpoints'
STEP_UNKNOWN = 'unknown'


class RunPolicy(str, Enum):
    """How declared test cases are scheduled and how failures spread"""
    SEQUENTIAL = 'sequential'  # one at a time, stop at the first failure
    FAIL_FAST = 'fail-fast'    # all at once, first failure cancels the rest
    ISOLATE = 'isolate'        # all at once, failures only affect their own test case


class TestCaseRunner:
    """Executes the steps of a single test case"""

    __test__ = False  # not a pytest class

    def __init__(self, namespaces: NamespaceManager, pipeline: ManifestPipeline,
                 pods: PodReadinessWatcher, resolver: EndpointResolver,
                 health: EndpointHealthPoller):
        self.namespaces = namespaces
        self.pipeline = pipeline
        self.pods = pods
        self.resolver = resolver
        self.health = health

    @classmethod
    def from_config(cls, config: Config, cluster: ClusterClient, tools: Tools,
                    http=None) -> "TestCaseRunner":
        return cls(
            namespaces=NamespaceManager(cluster, ready_timeout=config.namespace_ready_timeout,
                                        poll_interval=min(config.poll_interval, 0.5)),
            pipeline=ManifestPipeline(tools, command_timeout=config.command_timeout),
            pods=PodReadinessWatcher(cluster, poll_interval=config.poll_interval,
                                     timeout=config.pod_ready_timeout),
            resolver=EndpointResolver(cluster),
            health=EndpointHealthPoller(http, poll_interval=config.poll_interval,
                                        http_timeout=config.http_timeout,
                                        timeout=config.endpoint_ready_timeout),
        )

    async def run(self, test_case: TestCase, cancel: Optional[asyncio.Event] = None) -> Dict[str, str]:
        """Run every step in order and return the healthy endpoint map.

        The namespace is deleted exactly once whenever it was created,
        whichever later step fails.
        """
        namespace = test_case.namespace
        try:
            await self.namespaces.create(namespace)
        except Exception as e:
            raise TestCaseError(test_case.name, STEP_CREATE_NAMESPACE, e) from e

        step = STEP_CREATE_NAMESPACE
        try:
            await self.namespaces.wait_until_ready(namespace, cancel)

            step = STEP_GENERATE
            manifest = await self.pipeline.generate(test_case.input_files)

            step = STEP_APPLY
            await self.pipeline.apply(manifest, namespace)

            step = STEP_WAIT_PODS
            await self.pods.wait(namespace, test_case.pods_started, cancel)

            step = STEP_RESOLVE_ENDPOINTS
            endpoints = await self.resolver.resolve(namespace, test_case.node_port_services)

            step = STEP_WAIT_ENDPOINTS
            await self.health.wait(endpoints, cancel)
            log.info(f"Successfully pinged all endpoints of {test_case.name!r}", "HEALTH")
            return endpoints
        except Exception as e:
            raise TestCaseError(test_case.name, step, e) from e
        finally:
            await self.namespaces.delete(namespace)


class Orchestrator:
    """Runs a declared set of test cases under one RunPolicy"""

    def __init__(self, runner: TestCaseRunner, policy: RunPolicy = RunPolicy.ISOLATE,
                 max_parallel: int = 0, cancel: Optional[asyncio.Event] = None):
        self.runner = runner
        self.policy = RunPolicy(policy)
        self.max_parallel = max_parallel
        self.cancel = cancel if cancel is not None else asyncio.Event()

    async def run_case(self, test_case: TestCase) -> Optional[TestCaseResult]:
        """Run one test case; None if the run was cancelled before it started"""
        if self.cancel.is_set():
            return None

        log.info(f"Running: {test_case.name}", "MAIN")
        start_time = time.time()
        try:
            endpoints = await self.runner.run(test_case, self.cancel)
        except TestCaseError as e:
            return self._failed(test_case, e, start_time)
        except Exception as e:
            # raised outside any step, e.g. during namespace cleanup
            error = TestCaseError(test_case.name, STEP_UNKNOWN, e)
            error.__cause__ = e
            return self._failed(test_case, error, start_time)

        elapsed = time.time() - start_time
        log.info(f"Test case {test_case.name!r} passed in {elapsed:.2f}s", "MAIN")
        return TestCaseResult(test_case.name, test_case.namespace, passed=True,
                              endpoints=endpoints, elapsed=elapsed)

    def _failed(self, test_case: TestCase, error: TestCaseError, start_time: float) -> TestCaseResult:
        log.error(str(error), "MAIN")
        if self.policy is RunPolicy.FAIL_FAST:
            self.cancel.set()
        return TestCaseResult(test_case.name, test_case.namespace, passed=False, error=error,
                              elapsed=time.time() - start_time)

    async def run_all(self, test_cases: Sequence[TestCase]) -> RunReport:
        """Run the whole set and report every outcome"""
        if self.policy is RunPolicy.SEQUENTIAL:
            return await self._run_sequential(test_cases)
        return await self._run_concurrent(test_cases)

    async def _run_sequential(self, test_cases: Sequence[TestCase]) -> RunReport:
        report = RunReport()
        for idx, test_case in enumerate(test_cases):
            result = await self.run_case(test_case)
            if result is None:
                report.skipped.extend(tc.name for tc in test_cases[idx:])
                break
            report.results.append(result)
            if not result.passed:
                report.skipped.extend(tc.name for tc in test_cases[idx + 1:])
                break
        return report

    async def _run_concurrent(self, test_cases: Sequence[TestCase]) -> RunReport:
        semaphore = asyncio.Semaphore(self.max_parallel) if self.max_parallel > 0 else None

        async def run_with_semaphore(test_case: TestCase) -> Optional[TestCaseResult]:
            if semaphore is None:
                return await self.run_case(test_case)
            async with semaphore:
                return await self.run_case(test_case)

        results = await asyncio.gather(*(run_with_semaphore(tc) for tc in test_cases))

        report = RunReport()
        for test_case, result in zip(test_cases, results):
            if result is None:
                report.skipped.append(test_case.name)
            else:
                report.results.append(result)
        return report


def print_summary(report: RunReport) -> None:
    """Print a per-test-case summary of the run"""
    print(f"\n{Colors.CYAN}{'=' * 80}{Colors.NC}")
    print(f"{Colors.GREEN}Run Summary{Colors.NC}")
    print(f"{Colors.CYAN}{'=' * 80}{Colors.NC}")
    for result in report.results:
        if result.passed:
            print(f"  {Colors.GREEN}PASS{Colors.NC} {result.name} ({result.elapsed:.2f}s)")
            for key, url in sorted(result.endpoints.items()):
                print(f"       {key} -> {url}")
        else:
            print(f"  {Colors.RED}FAIL{Colors.NC} {result.name} ({result.elapsed:.2f}s): {result.error}")
    for name in report.skipped:
        print(f"  {Colors.YELLOW}SKIP{Colors.NC} {name}")
    print(f"\n  Passed: {len(report.passed)}, Failed: {len(report.failed)}, "
          f"Skipped: {len(report.skipped)}")
    print(f"{Colors.CYAN}{'=' * 80}{Colors.NC}\n")


def failed_names(report: RunReport) -> List[str]:
    return [r.name for r in report.failed]
