"""Subprocess execution with a hard wall-clock budget.

Children are started in their own session so a timeout can SIGKILL the
whole process group, including any helpers the tool forked.
"""

import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

logger = logging.getLogger(__name__)

# How long to wait for a killed group to release its pipes
KILL_GRACE_SECONDS = 5.0


@dataclass
class ProcessResult:
    """Captured output of a finished process."""
    returncode: int
    stdout: str
    stderr: str


class ProcessTimeoutError(Exception):
    """Raised when a process exceeded its budget and was killed."""

    def __init__(self, command: str, timeout: float, stderr: str = ""):
        super().__init__(f"{command} timed out after {timeout:g} seconds")
        self.command = command
        self.timeout = timeout
        self.stderr = stderr


def _kill_process_group(process: subprocess.Popen) -> None:
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        # Group leader already reaped and its id reused; fall back to the child
        process.kill()


def run_process(
    command: Sequence[str],
    timeout: float,
    *,
    on_stderr: Optional[Callable[[str], None]] = None,
) -> ProcessResult:
    """Run ``command`` to completion, killing it if it exceeds ``timeout``.

    Args:
        command: Program and arguments
        timeout: Wall-clock budget in seconds
        on_stderr: Called with the full stderr text once the process exits

    Returns:
        ProcessResult with decoded stdout/stderr

    Raises:
        ProcessTimeoutError: Budget exceeded; the process group was killed
        OSError: The program could not be started
    """
    name = os.path.basename(command[0])
    logger.debug("Running %s", " ".join(command))

    process = subprocess.Popen(
        list(command),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        start_new_session=True,
    )

    try:
        stdout, stderr = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.error("%s exceeded %ss budget, killing process group %s", name, timeout, process.pid)
        _kill_process_group(process)
        try:
            _, stderr = process.communicate(timeout=KILL_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            # A detached descendant still holds the pipes open
            process.stdout.close()
            process.stderr.close()
            process.wait()
            stderr = b""
        raise ProcessTimeoutError(name, timeout, stderr.decode("utf-8", "replace"))
    except BaseException:
        _kill_process_group(process)
        process.wait()
        raise

    stderr_text = stderr.decode("utf-8", "replace")
    if on_stderr is not None:
        on_stderr(stderr_text)

    return ProcessResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", "replace"),
        stderr=stderr_text,
    )
