#!/usr/bin/env python3
"""
Subprocess Resource Manager for bcg

Runs external tools (bgpq4) with:
- Context managed process lifecycle
- Timeout handling with graceful termination, then kill
- Guaranteed reaping on every exit path
"""

import logging
import subprocess
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class ProcessState(Enum):
    """Process execution states"""

    COMPLETED = "completed"
    TIMEOUT = "timeout"
    FAILED = "failed"


@dataclass
class ProcessResult:
    """Result from managed subprocess execution"""

    returncode: int
    stdout: str
    stderr: str
    state: ProcessState
    execution_time: float
    command: List[str]
    pid: Optional[int] = None
    error_message: Optional[str] = None


class ManagedProcess:
    """
    Context manager for subprocess execution

    The child is always terminated (SIGTERM, then SIGKILL after a grace
    period) when the context exits, including on exceptions.
    """

    def __init__(
        self,
        command: List[str],
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        grace_period: float = 5.0,
    ):
        """
        Initialize managed process

        Args:
            command: Command and arguments to execute
            timeout: Execution timeout in seconds
            env: Environment variables
            grace_period: Seconds to wait after SIGTERM before SIGKILL
        """
        self.command = command
        self.timeout = timeout
        self.env = env
        self.grace_period = grace_period

        self.process: Optional[subprocess.Popen] = None
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(__name__)

    def __enter__(self) -> "ManagedProcess":
        self.start_time = time.time()
        self.process = subprocess.Popen(
            self.command,
            env=self.env,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
        )
        self.logger.debug(f"Started process {self.process.pid}: {' '.join(self.command)}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._cleanup()
        return False

    def wait_for_completion(self) -> ProcessResult:
        """
        Wait for process completion

        Returns:
            ProcessResult with execution details
        """
        if not self.process:
            raise RuntimeError("Process not started - use within context manager")

        try:
            stdout, stderr = self.process.communicate(timeout=self.timeout)
            execution_time = time.time() - self.start_time
            state = ProcessState.COMPLETED if self.process.returncode == 0 else ProcessState.FAILED

            return ProcessResult(
                returncode=self.process.returncode,
                stdout=stdout or "",
                stderr=stderr or "",
                state=state,
                execution_time=execution_time,
                command=self.command,
                pid=self.process.pid,
            )

        except subprocess.TimeoutExpired:
            execution_time = time.time() - self.start_time
            self.logger.warning(f"Process {self.process.pid} timeout after {self.timeout}s")
            stdout, stderr = self._terminate()

            return ProcessResult(
                returncode=self.process.returncode or -1,
                stdout=stdout or "",
                stderr=stderr or "",
                state=ProcessState.TIMEOUT,
                execution_time=execution_time,
                command=self.command,
                pid=self.process.pid,
                error_message=f"Process timeout after {self.timeout}s",
            )

    def _terminate(self):
        self.process.terminate()
        try:
            return self.process.communicate(timeout=self.grace_period)
        except subprocess.TimeoutExpired:
            self.logger.warning(f"Force killing process {self.process.pid}")
            self.process.kill()
            return self.process.communicate()

    def _cleanup(self):
        if self.process and self.process.poll() is None:
            self._terminate()
            self.logger.debug(f"Cleaned up process {self.process.pid}")


@contextmanager
def managed_subprocess(command: List[str], **kwargs):
    """
    Convenience context manager for subprocess execution

    Example:
        with managed_subprocess(['bgpq4', '-Ab4', 'AS-EXAMPLE']) as result:
            if result.state == ProcessState.COMPLETED:
                print(result.stdout)
    """
    with ManagedProcess(command, **kwargs) as managed:
        yield managed.wait_for_completion()


def run_with_resource_management(command: List[str], timeout: Optional[float] = None,
                                 **kwargs) -> ProcessResult:
    """
    Execute subprocess with resource management

    A missing executable is reported as a FAILED result rather than an
    exception so callers have a single failure path.
    """
    try:
        with managed_subprocess(command, timeout=timeout, **kwargs) as result:
            return result
    except OSError as e:
        return ProcessResult(
            returncode=-1,
            stdout="",
            stderr=str(e),
            state=ProcessState.FAILED,
            execution_time=0.0,
            command=command,
            error_message=f"Cannot execute {command[0]}: {e}",
        )
