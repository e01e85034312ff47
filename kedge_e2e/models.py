"""Data model for test cases and run results"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ServicePort:
    """A service name plus the port it declares"""
    name: str
    port: int

    @property
    def key(self) -> str:
        return f"{self.name}:{self.port}"


@dataclass(frozen=True)
class TestCase:
    """One declared scenario, executed in its own namespace"""
    __test__ = False  # not a pytest class

    name: str
    namespace: str
    input_files: Tuple[str, ...] = ()
    pods_started: Tuple[str, ...] = ()
    node_port_services: Tuple[ServicePort, ...] = ()


@dataclass
class TestCaseResult:
    """Outcome of running a single test case"""
    __test__ = False  # not a pytest class

    name: str
    namespace: str
    passed: bool
    error: Optional[BaseException] = None
    endpoints: Dict[str, str] = field(default_factory=dict)
    elapsed: float = 0.0


@dataclass
class RunReport:
    """Outcome of a whole run"""
    results: List[TestCaseResult] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def passed(self) -> List[TestCaseResult]:
        return [r for r in self.results if r.passed]

    @property
    def failed(self) -> List[TestCaseResult]:
        return [r for r in self.results if not r.passed]

    @property
    def ok(self) -> bool:
        return not self.failed and not self.skipped
