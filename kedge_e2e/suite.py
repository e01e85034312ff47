"""Declared test sets: the built-in suite and YAML suite files"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

import yaml

from .errors import SuiteError
from .log import get_logger
from .models import ServicePort, TestCase

log = get_logger(__name__)

WORDPRESS = ServicePort(name="wordpress", port=8080)

# (test name, namespace, example files, expected pods)
DEFAULT_SCENARIOS = [
    ("Normal Wordpress test", "wordpress", ["wordpress/db.yaml", "wordpress/web.yaml"], ["web"]),
    ("Testing configMap", "configmap", ["configmap/db.yaml", "configmap/web.yaml"], ["web"]),
    ("Testing customVol", "customvol", ["customVol/db.yaml", "customVol/web.yaml"], ["web"]),
    ("Testing health", "health", ["health/db.yaml", "health/web.yaml"], ["web"]),
    ("Testing healthChecks", "healthchecks", ["healthchecks/db.yaml", "healthchecks/web.yaml"], ["web"]),
    ("Testing single file", "singlefile", ["single_file/wordpress.yml"], ["wordpress"]),
    ("Testing envFrom", "envfrom", ["envFrom/db.yaml", "envFrom/web.yaml"], ["web"]),
]


def default_suite(project_path: str) -> List[TestCase]:
    """The example scenarios shipped with the generator project"""
    return [
        TestCase(
            name=name,
            namespace=namespace,
            input_files=tuple(f"{project_path}examples/{path}" for path in files),
            pods_started=tuple(pods),
            node_port_services=(WORDPRESS,),
        )
        for name, namespace, files, pods in DEFAULT_SCENARIOS
    ]


def _require(entry: Dict[str, Any], key: str, idx: int):
    if key not in entry or entry[key] in (None, ""):
        raise SuiteError(f"test #{idx + 1}: missing required field {key!r}")
    return entry[key]


def _parse_service(raw: Any, idx: int) -> ServicePort:
    if not isinstance(raw, dict):
        raise SuiteError(f"test #{idx + 1}: nodePortServices entries must be mappings")
    name = _require(raw, 'name', idx)
    try:
        port = int(_require(raw, 'port', idx))
    except (TypeError, ValueError):
        raise SuiteError(f"test #{idx + 1}: invalid port {raw.get('port')!r} for service {name!r}")
    return ServicePort(name=str(name), port=port)


def parse_suite(data: Any) -> List[TestCase]:
    """Build test cases from an already loaded suite document"""
    if not isinstance(data, dict) or not isinstance(data.get('tests'), list):
        raise SuiteError("suite must be a mapping with a 'tests' list")

    cases = []
    for idx, entry in enumerate(data['tests']):
        if not isinstance(entry, dict):
            raise SuiteError(f"test #{idx + 1}: must be a mapping")
        cases.append(TestCase(
            name=str(_require(entry, 'name', idx)),
            namespace=str(_require(entry, 'namespace', idx)),
            input_files=tuple(str(f) for f in entry.get('inputFiles') or []),
            pods_started=tuple(str(p) for p in entry.get('podsStarted') or []),
            node_port_services=tuple(_parse_service(s, idx) for s in entry.get('nodePortServices') or []),
        ))
    check_unique_namespaces(cases)
    return cases


def load_suite(path: str) -> List[TestCase]:
    """Load test cases from a YAML suite file"""
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise SuiteError(f"cannot read suite file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise SuiteError(f"invalid YAML in suite file {path}: {e}") from e

    cases = parse_suite(data)
    log.info(f"Loaded {len(cases)} test cases from {path}", "SUITE")
    return cases


def check_unique_namespaces(cases: Iterable[TestCase]) -> None:
    """Concurrent test cases must never share a namespace"""
    seen: Dict[str, str] = {}
    for case in cases:
        if case.namespace in seen:
            raise SuiteError(
                f"namespace {case.namespace!r} used by both {seen[case.namespace]!r} and {case.name!r}"
            )
        seen[case.namespace] = case.name


def select(cases: Sequence[TestCase], names: Optional[Iterable[str]]) -> List[TestCase]:
    """Keep only the named test cases, preserving suite order"""
    if not names:
        return list(cases)
    wanted = set(names)
    unknown = wanted - {case.name for case in cases}
    if unknown:
        raise SuiteError(f"unknown test cases: {', '.join(sorted(unknown))}")
    return [case for case in cases if case.name in wanted]
