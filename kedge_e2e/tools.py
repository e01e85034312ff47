"""External tools: generator and cluster CLI"""

import asyncio
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import Config
from .errors import ApplyError, GenerationError, ToolDiscoveryError
from .log import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Tools:
    """Resolved executable locations, shared read-only by all test cases"""
    generator: str
    kubectl: str


def find_tool(name: str) -> str:
    """Locate an executable by name or path"""
    location = shutil.which(name)
    if location is None:
        raise ToolDiscoveryError(name)
    log.info(f"{name} location: {location}", "TOOLS")
    return location


def discover_tools(config: Config) -> Tools:
    """Resolve both tools or fail before any test case starts"""
    return Tools(
        generator=find_tool(config.generator_tool),
        kubectl=find_tool(config.kubectl_tool),
    )


def generate_args(files: Sequence[str]) -> List[str]:
    """Build the generator arguments, one -f per expanded input file"""
    args = ["generate"]
    for path in files:
        args.extend(["-f", os.path.expandvars(path)])
    return args


class ManifestPipeline:
    """Turns input files into manifests and creates them in a namespace"""

    def __init__(self, tools: Tools, command_timeout: Optional[float] = None):
        self.tools = tools
        self.command_timeout = command_timeout if command_timeout and command_timeout > 0 else None

    async def generate(self, files: Sequence[str]) -> bytes:
        """Run the generator and return its standard output"""
        return await asyncio.to_thread(self._generate_sync, list(files))

    def _generate_sync(self, files: List[str]) -> bytes:
        cmd = [self.tools.generator] + generate_args(files)
        log.debug(f"Executing: {' '.join(cmd)}", "MANIFEST")
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.command_timeout,
                check=False
            )
        except subprocess.TimeoutExpired:
            raise GenerationError(cmd, f"timed out after {self.command_timeout}s")
        except (OSError, ValueError) as e:
            raise GenerationError(cmd, str(e)) from e

        if result.returncode != 0:
            stderr = result.stderr.decode('utf-8', errors='replace')
            raise GenerationError(cmd, stderr, result.returncode)
        return result.stdout

    async def apply(self, manifest: bytes, namespace: str) -> str:
        """Feed the manifest to `kubectl -n <namespace> create -f -`"""
        return await asyncio.to_thread(self._apply_sync, manifest, namespace)

    def _apply_sync(self, manifest: bytes, namespace: str) -> str:
        cmd = [self.tools.kubectl, "-n", namespace, "create", "-f", "-"]
        log.debug(f"Executing: {' '.join(cmd)}", "MANIFEST")
        try:
            # run() writes stdin and drains stdout concurrently
            result = subprocess.run(
                cmd,
                input=manifest,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.command_timeout,
                check=False
            )
        except subprocess.TimeoutExpired:
            raise ApplyError(namespace, f"timed out after {self.command_timeout}s")
        except (OSError, ValueError) as e:
            raise ApplyError(namespace, str(e)) from e

        output = (result.stdout or b"").decode('utf-8', errors='replace')
        if result.returncode != 0:
            raise ApplyError(namespace, output, result.returncode)
        log.info(f"Deployed in namespace {namespace!r}", "MANIFEST")
        log.debug(output, "MANIFEST")
        return output
