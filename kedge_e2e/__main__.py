#!/usr/bin/env python3
"""
kedge-e2e command line entry point
Deploys each declared test case into its own namespace and verifies it
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from .cluster import ClusterClient
from .config import Config
from .errors import E2EError
from .log import get_logger, setup_logging
from .namespaces import NamespaceManager
from .orchestrator import Orchestrator, RunPolicy, TestCaseRunner, failed_names, print_summary
from .suite import default_suite, load_suite, select
from .tools import discover_tools

log = get_logger(__name__)


def create_argument_parser():
    """Create and configure argument parser"""
    parser = argparse.ArgumentParser(
        prog='kedge-e2e',
        description='End-to-end verification of generated Kubernetes manifests',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
For every test case the tool creates a namespace, generates manifests with
`<generator> generate -f ...`, creates them with `kubectl -n <ns> create -f -`,
waits for the expected pods to run, resolves NodePort endpoints, polls them
until they answer 200 OK and finally deletes the namespace.

Environment Variables:
  GENERATOR_TOOL (default: kedge)
  KUBECTL_TOOL (default: kubectl)
  KUBECONFIG, K8S_VERIFY
  PROJECT_PATH (default: $GOPATH/src/github.com/kedgeproject/kedge/)
  SUITE_FILE
  RUN_POLICY (default: isolate)
  MAX_PARALLEL (default: 0, unlimited)
  NAMESPACE_READY_TIMEOUT (default: 60)
  POD_READY_TIMEOUT (default: 600, 0 waits forever)
  ENDPOINT_READY_TIMEOUT (default: 300, 0 waits forever)
  COMMAND_TIMEOUT (default: 300)
  POLL_INTERVAL (default: 1.0)
  HTTP_TIMEOUT (default: 5.0)
  LOG_FILE, LOG_LEVEL

Examples:
  %(prog)s --policy sequential
  %(prog)s --suite suite.yaml --only "Testing health" --pod-timeout 0
  %(prog)s --cleanup
        """
    )

    # Test selection
    parser.add_argument('--suite', help='YAML suite file (default: built-in examples)')
    parser.add_argument('--only', action='append', metavar='NAME',
                        help='Run only this test case (repeatable)')
    parser.add_argument('--project-path',
                        help='Generator checkout used by the built-in suite')

    # Orchestration
    parser.add_argument('--policy', choices=[p.value for p in RunPolicy],
                        help='How test cases are scheduled and how failures spread')
    parser.add_argument('--max-parallel', type=int,
                        help='Maximum test cases running at once (0 = all)')

    # Tools and cluster
    parser.add_argument('--generator', help='Manifest generator executable')
    parser.add_argument('--kubectl', help='kubectl executable')
    parser.add_argument('--kubeconfig', help='Path to the kubeconfig file')
    parser.add_argument('--verify-ssl', action='store_true',
                        help='Force TLS verification of the API server')

    # Timing
    parser.add_argument('--namespace-timeout', type=float,
                        help='Seconds to wait for a namespace to become Active')
    parser.add_argument('--pod-timeout', type=float,
                        help='Seconds to wait for pods (0 = forever)')
    parser.add_argument('--endpoint-timeout', type=float,
                        help='Seconds to wait for endpoints (0 = forever)')
    parser.add_argument('--command-timeout', type=float,
                        help='Seconds allowed for one generator or kubectl run')
    parser.add_argument('--poll-interval', type=float,
                        help='Seconds between two polls')
    parser.add_argument('--http-timeout', type=float,
                        help='Per-request HTTP timeout in seconds')

    # Control options
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Set logging level')
    parser.add_argument('--log-file', help='Log file path')
    parser.add_argument('--list-only', action='store_true',
                        help='Only list the selected test cases')
    parser.add_argument('--cleanup', action='store_true',
                        help='Delete namespaces left over by earlier runs and exit')
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Override config with command line arguments"""
    if args.suite is not None:
        config.suite_file = args.suite
    if args.project_path is not None:
        config.project_path = args.project_path
    if args.policy is not None:
        config.run_policy = args.policy
    if args.max_parallel is not None:
        config.max_parallel = args.max_parallel
    if args.generator is not None:
        config.generator_tool = args.generator
    if args.kubectl is not None:
        config.kubectl_tool = args.kubectl
    if args.kubeconfig is not None:
        config.kubeconfig_path = args.kubeconfig
    if args.verify_ssl:
        config.k8s_verify_ssl = True
    if args.namespace_timeout is not None:
        config.namespace_ready_timeout = args.namespace_timeout
    if args.pod_timeout is not None:
        config.pod_ready_timeout = args.pod_timeout
    if args.endpoint_timeout is not None:
        config.endpoint_ready_timeout = args.endpoint_timeout
    if args.command_timeout is not None:
        config.command_timeout = args.command_timeout
    if args.poll_interval is not None:
        config.poll_interval = args.poll_interval
    if args.http_timeout is not None:
        config.http_timeout = args.http_timeout
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_file is not None:
        config.log_file = args.log_file
    return config


def install_signal_handlers(cancel: asyncio.Event):
    """Stop waiting test cases on SIGINT/SIGTERM so they can clean up"""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel.set)
        except NotImplementedError:  # Windows event loops
            pass


async def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function, returns the process exit code"""
    parser = create_argument_parser()
    args = parser.parse_args(argv)
    config = apply_overrides(Config(), args)
    setup_logging(config)

    try:
        policy = RunPolicy(config.run_policy)
        if config.suite_file:
            test_cases = load_suite(config.suite_file)
        else:
            test_cases = default_suite(config.project_path)
        test_cases = select(test_cases, args.only)
    except ValueError as e:
        log.error(f"Invalid configuration: {e}", "MAIN")
        return 1
    except E2EError as e:
        log.error(str(e), "SUITE")
        return 1

    if args.list_only:
        for case in test_cases:
            print(f"{case.name} (namespace: {case.namespace})")
        return 0

    try:
        cluster = ClusterClient.from_config(config)
        if args.cleanup:
            await NamespaceManager(cluster).cleanup_stale()
            return 0
        tools = discover_tools(config)
    except E2EError as e:
        log.error(str(e), "MAIN")
        return 1

    cancel = asyncio.Event()
    install_signal_handlers(cancel)
    orchestrator = Orchestrator(
        TestCaseRunner.from_config(config, cluster, tools),
        policy=policy,
        max_parallel=config.max_parallel,
        cancel=cancel,
    )

    log.info(f"Running {len(test_cases)} test cases with policy {policy.value}", "MAIN")
    report = await orchestrator.run_all(test_cases)
    print_summary(report)
    if not report.ok:
        log.error(f"Failed test cases: {failed_names(report)}, skipped: {report.skipped}", "SUMMARY")
        return 1
    log.info("All test cases passed", "SUMMARY")
    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
