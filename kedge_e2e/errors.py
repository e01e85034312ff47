"""Error types raised by the e2e harness"""

from typing import List, Optional


class E2EError(Exception):
    """Base class for all harness errors"""


class ToolDiscoveryError(E2EError):
    """A required external tool is not on the search path"""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"cannot find {tool}")


class GenerationError(E2EError):
    """The manifest generator exited non-zero"""

    def __init__(self, args: List[str], stderr: str, returncode: Optional[int] = None):
        self.args_list = list(args)
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(f"error running {' '.join(self.args_list)!r} (exit {returncode})\n{stderr}")


class ApplyError(E2EError):
    """The cluster CLI failed to create the manifest resources"""

    def __init__(self, namespace: str, output: str, returncode: Optional[int] = None):
        self.namespace = namespace
        self.output = output
        self.returncode = returncode
        super().__init__(f"failed to create resources in {namespace!r} (exit {returncode}), got: {output}")


class ListError(E2EError):
    """Listing a cluster resource failed"""

    def __init__(self, resource: str, namespace: Optional[str] = None, reason: str = ""):
        self.resource = resource
        self.namespace = namespace
        scope = f" in namespace {namespace!r}" if namespace else ""
        super().__init__(f"error while listing all {resource}{scope}: {reason}")


class HealthCheckError(E2EError):
    """An endpoint answered with something other than 200 OK"""

    def __init__(self, endpoint: str, url: str, status: str):
        self.endpoint = endpoint
        self.url = url
        self.status = status
        super().__init__(f"for service {endpoint!r} ({url}) got {status!r}")


class NamespaceError(E2EError):
    """Creating, reading or deleting a namespace failed"""

    def __init__(self, namespace: str, action: str, reason: str = ""):
        self.namespace = namespace
        self.action = action
        super().__init__(f"error during namespace {action} of {namespace!r}: {reason}")


class WaitTimeoutError(E2EError):
    """A polling loop hit its deadline"""

    def __init__(self, what: str, timeout: Optional[float]):
        self.what = what
        self.timeout = timeout
        super().__init__(f"timed out after {timeout}s waiting for {what}")


class RunCancelledError(E2EError):
    """The run was cancelled while a test case was waiting"""

    def __init__(self, what: str):
        self.what = what
        super().__init__(f"cancelled while waiting for {what}")


class SuiteError(E2EError):
    """The declared test set is malformed"""


class TestCaseError(E2EError):
    """A step of a test case failed; wraps the cause with its context"""

    __test__ = False  # not a pytest class

    def __init__(self, test_case: str, step: str, cause: BaseException):
        self.test_case = test_case
        self.step = step
        self.cause = cause
        super().__init__(f"test case {test_case!r} failed at step {step!r}: {cause}")
