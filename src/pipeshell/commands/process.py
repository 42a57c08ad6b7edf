"""
External Process Execution

Runs a command to completion with its standard streams bound to arbitrary
Python streams. Data is pumped between the process pipes and the bound
streams on helper threads, so a process can be a stage in a pipeline like
any other filter.
"""

import logging
import os
import subprocess
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pipeshell.core.config.models import DEFAULT_CHUNK_SIZE
from pipeshell.core.context import ShellContext
from pipeshell.core.exceptions import ProcessError, ProcessInterruptedError, StreamError
from pipeshell.core.pipeline.interfaces import ByteFilter
from pipeshell.core.streams import close_quietly


logger = logging.getLogger(__name__)


def _read_some(stream: Any, size: int) -> bytes:
    # read1() returns what is available instead of waiting for a full chunk
    read1 = getattr(stream, 'read1', None)
    return read1(size) if read1 is not None else stream.read(size)


class _Pump(threading.Thread):
    """Copies one stream into another on a helper thread."""

    def __init__(self, source: Any, sink: Any, close_sink: bool, name: str,
                 chunk_size: int = DEFAULT_CHUNK_SIZE):
        super().__init__(name=name, daemon=True)
        self.source = source
        self.sink = sink
        self.close_sink = close_sink
        self.chunk_size = chunk_size
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            while True:
                chunk = _read_some(self.source, self.chunk_size)
                if not chunk:
                    break
                self.sink.write(chunk)
                self.sink.flush()
        except BrokenPipeError:
            # The process stopped reading its input; not an error of ours
            logger.debug(f"{self.name}: process closed its input early")
        except (OSError, ValueError) as e:
            self.error = e
        finally:
            if self.close_sink:
                close_quietly(self.sink)


class ProcessLauncher:
    """
    Launches external commands with bound standard streams.

    Streams left as None: stdin reads nothing, stdout and stderr are
    inherited from this process.
    """

    def __init__(self, poll_interval: float = 0.05, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize the launcher.

        Args:
            poll_interval: Seconds between checks of the cancellation event
            chunk_size: Size of the chunks pumped between streams
        """
        self.poll_interval = poll_interval
        self.chunk_size = chunk_size

    def run(self, command: Sequence[str],
            stdin: Optional[Any] = None,
            stdout: Optional[Any] = None,
            stderr: Optional[Any] = None,
            close_stdin: bool = False,
            close_stdout: bool = False,
            close_stderr: bool = False,
            environment: Optional[Mapping[str, str]] = None,
            working_directory: Optional[Union[str, os.PathLike]] = None,
            cancel_event: Optional[threading.Event] = None) -> bool:
        """
        Run ``command`` to completion.

        Args:
            command: Program and arguments
            stdin: Binary stream fed to the process's standard input
            stdout: Binary stream receiving the process's standard output
            stderr: Binary stream receiving the process's standard error
            close_stdin: Close ``stdin`` when the run ends
            close_stdout: Close ``stdout`` when the run ends
            close_stderr: Close ``stderr`` when the run ends
            environment: Complete environment for the process (inherited if None)
            working_directory: Directory to run in (inherited if None)
            cancel_event: Event that interrupts the wait when set

        Returns:
            True if the process exited with status 0

        Raises:
            ProcessError: If the process cannot be started
            ProcessInterruptedError: If ``cancel_event`` is set before the process ends
            StreamError: If pumping data to or from the process fails
        """
        command = [os.fspath(part) for part in command]
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL if stdin is None else subprocess.PIPE,
                stdout=None if stdout is None else subprocess.PIPE,
                stderr=None if stderr is None else subprocess.PIPE,
                env=dict(environment) if environment is not None else None,
                cwd=str(working_directory) if working_directory is not None else None,
            )
        except OSError as e:
            self._close(stdin, close_stdin, stdout, close_stdout, stderr, close_stderr)
            raise ProcessError(f"Cannot start {command[0]!r}: {e}", command=command, cause=e) from e

        logger.debug(f"Started process {process.pid}: {command}")
        pumps = self._start_pumps(process, stdin, stdout, stderr)
        try:
            status = self._wait(process, command, cancel_event)
            for pump in pumps:
                # An input pump may block on a source the process never drained
                pump.join(self.poll_interval if pump.sink is process.stdin else None)
        finally:
            self._close(stdin, close_stdin, stdout, close_stdout, stderr, close_stderr)

        failed = [pump.error for pump in pumps if pump.error is not None]
        if failed:
            raise StreamError(f"I/O failure while running {command[0]!r}: {failed[0]}", cause=failed[0])

        logger.debug(f"Process {process.pid} exited with status {status}")
        return status == 0

    def _start_pumps(self, process: subprocess.Popen, stdin: Any, stdout: Any, stderr: Any) -> List[_Pump]:
        pumps = []
        if stdin is not None:
            pumps.append(_Pump(stdin, process.stdin, True, f"stdin-{process.pid}", self.chunk_size))
        if stdout is not None:
            pumps.append(_Pump(process.stdout, stdout, False, f"stdout-{process.pid}", self.chunk_size))
        if stderr is not None:
            pumps.append(_Pump(process.stderr, stderr, False, f"stderr-{process.pid}", self.chunk_size))
        for pump in pumps:
            pump.start()
        return pumps

    def _wait(self, process: subprocess.Popen, command: List[str],
              cancel_event: Optional[threading.Event]) -> int:
        if cancel_event is None:
            return process.wait()

        while True:
            try:
                return process.wait(timeout=self.poll_interval)
            except subprocess.TimeoutExpired:
                if cancel_event.is_set():
                    process.kill()
                    process.wait()
                    raise ProcessInterruptedError(command=command)

    @staticmethod
    def _close(stdin: Any, close_stdin: bool, stdout: Any, close_stdout: bool,
               stderr: Any, close_stderr: bool) -> None:
        if close_stdin:
            close_quietly(stdin)
        if close_stdout:
            close_quietly(stdout)
        if close_stderr:
            close_quietly(stderr)


class ExecFilter(ByteFilter[bool]):
    """
    Byte filter running an external command between its source and sink.

    Returns whether the command succeeded, or False if it was interrupted.
    """

    def __init__(self, command: Sequence[str],
                 environment: Optional[Dict[str, str]] = None,
                 working_directory: Optional[Union[str, os.PathLike]] = None,
                 stderr: Optional[Any] = None,
                 cancel_event: Optional[threading.Event] = None,
                 launcher: Optional[ProcessLauncher] = None):
        self.command = list(command)
        self.environment = environment
        self.working_directory = working_directory
        self.stderr = stderr
        self.cancel_event = cancel_event
        self.launcher = launcher or ProcessLauncher()

    @property
    def name(self) -> str:
        return "exec " + " ".join(self.command)

    def execute(self, source: Any, sink: Any) -> bool:
        try:
            return self.launcher.run(
                self.command,
                stdin=source,
                stdout=sink,
                stderr=self.stderr,
                environment=self.environment,
                working_directory=self.working_directory,
                cancel_event=self.cancel_event,
            )
        except ProcessInterruptedError:
            logger.debug(f"{self.name} was interrupted")
            return False


def exec_filter(command: Sequence[str],
                context: Optional[ShellContext] = None,
                stderr: Optional[Any] = None,
                cancel_event: Optional[threading.Event] = None) -> ExecFilter:
    """
    Build a byte filter running ``command``.

    The environment and working directory come from ``context`` when given.
    """
    environment = dict(context.environment) if context is not None else None
    working_directory = Path(context.cwd) if context is not None else None
    return ExecFilter(command, environment, working_directory, stderr, cancel_event)
