#!/usr/bin/env python3
"""
Sandboxed Python execution for student code.
Runs each submission in a fresh, isolated interpreter subprocess and
captures its output streams.
"""

import asyncio
import os
import shutil
import sys
from typing import Optional

from ..logging_utils import get_logger
from ..tutoring.interfaces import ExecutionEngine
from ..tutoring.state import ExecutionResult

try:
    import resource
    RESOURCE_AVAILABLE = True
except ImportError:
    RESOURCE_AVAILABLE = False

logger = get_logger(__name__)

PROBE_SCRIPT = "import sys, io"


class EngineInitError(Exception):
    """The Python environment could not be started"""


class EngineNotReadyError(Exception):
    """Code was submitted before initialize() completed"""


class PythonExecutionEngine(ExecutionEngine):
    """Runs student code in an isolated interpreter subprocess"""

    def __init__(
        self,
        interpreter: str = None,
        timeout: float = 10.0,
        memory_limit_mb: int = 512,
    ):
        self.interpreter = interpreter
        self.timeout = timeout
        self.memory_limit_mb = memory_limit_mb
        self._initialized = False

        # Output captured from the most recent run
        self._stdout = ''
        self._stderr = ''

    def _locate_interpreter(self) -> Optional[str]:
        """Find a Python interpreter to run student code with"""
        if self.interpreter:
            return shutil.which(self.interpreter) or (
                self.interpreter if os.path.exists(self.interpreter) else None
            )
        if sys.executable:
            return sys.executable
        return shutil.which('python3') or shutil.which('python')

    async def initialize(self) -> None:
        """
        Locate the interpreter and verify it starts.

        Raises:
            EngineInitError: no interpreter found, or the probe failed.
        """
        interpreter = self._locate_interpreter()
        if not interpreter:
            raise EngineInitError("No Python interpreter found")

        try:
            proc = await asyncio.create_subprocess_exec(
                interpreter, '-I', '-c', PROBE_SCRIPT,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise EngineInitError(f"Failed to start Python interpreter: {e}") from e

        if proc.returncode != 0:
            raise EngineInitError(
                "Failed to initialize Python environment (init script failed): "
                + stderr.decode('utf-8', errors='replace').strip()
            )

        self.interpreter = interpreter
        self._initialized = True
        logger.info("Python environment ready (%s)", interpreter)

    def ready(self) -> bool:
        """Check if code can be executed"""
        return self._initialized

    async def execute(self, code: str) -> ExecutionResult:
        """
        Run ``code`` and return its captured output.

        Runtime errors in the student's code come back as stderr text with
        success=False; they are not raised.

        Raises:
            EngineNotReadyError: initialize() has not succeeded.
        """
        if not self.ready():
            raise EngineNotReadyError("Python environment not initialized")

        self.reset()

        try:
            proc = await asyncio.create_subprocess_exec(
                self.interpreter, '-I', '-',
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._child_env(),
                preexec_fn=self._limit_resources if RESOURCE_AVAILABLE else None,
            )
        except OSError as e:
            logger.error("Could not start code execution: %s", e)
            return ExecutionResult(stdout='', stderr=str(e), success=False)

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(input=code.encode('utf-8')),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            self._stderr = f"Execution timed out after {self.timeout:g} seconds"
            return ExecutionResult(stdout='', stderr=self._stderr, success=False)

        self._stdout = stdout.decode('utf-8', errors='replace')
        self._stderr = stderr.decode('utf-8', errors='replace')

        return ExecutionResult(
            stdout=self._stdout,
            stderr=self._stderr,
            success=proc.returncode == 0 and not self._stderr,
        )

    def reset(self) -> None:
        """Clear the captured output buffers"""
        self._stdout = ''
        self._stderr = ''

    def _child_env(self) -> dict:
        env = {
            'PATH': os.environ.get('PATH', ''),
            'PYTHONIOENCODING': 'utf-8',
            'PYTHONDONTWRITEBYTECODE': '1',
        }
        if 'SYSTEMROOT' in os.environ:
            env['SYSTEMROOT'] = os.environ['SYSTEMROOT']
        return env

    def _limit_resources(self) -> None:
        """Applied in the child before exec (POSIX only)"""
        cpu_seconds = int(self.timeout) + 1
        resource.setrlimit(resource.RLIMIT_CPU, (cpu_seconds, cpu_seconds))
        memory = self.memory_limit_mb * 1024 * 1024
        resource.setrlimit(resource.RLIMIT_AS, (memory, memory))
