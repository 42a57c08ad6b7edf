"""
Background Task Runner

Launches non-synchronous pipeline stages on their own threads. A stage that
fails does not take the pipeline down with it: the failure is captured in a
typed TaskOutcome and otherwise discarded. Neighbouring stages only notice it
as an early end-of-input or a broken connector.

Tasks are fire-and-forget unless the caller collects them in a StageScope,
which can join them and inspect their outcomes.
"""

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, TypeVar, TYPE_CHECKING

from pipeshell.core.streams import close_quietly

if TYPE_CHECKING:
    from pipeshell.core.pipeline.interfaces import Filter


T = TypeVar('T')

logger = logging.getLogger(__name__)

_task_ids = itertools.count(1)

ErrorHook = Callable[['BackgroundTask', BaseException], None]


@dataclass
class TaskOutcome(Generic[T]):
    """Result of a background stage: either a value or the error it raised."""
    success: bool
    result: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls, result: Optional[T] = None) -> 'TaskOutcome[T]':
        return cls(success=True, result=result)

    @classmethod
    def failed(cls, error: BaseException) -> 'TaskOutcome[T]':
        return cls(success=False, error=error)


class BackgroundTask:
    """
    One filter stage bound to its source and sink, running on its own thread.

    The task closes its source and sink according to the flags it was
    launched with, exactly once, whatever the stage's outcome.
    """

    def __init__(self, stage: 'Filter', source: Any, close_source: bool,
                 sink: Any, close_sink: bool, name: str,
                 daemon: bool = True, on_error: Optional[ErrorHook] = None):
        self.stage = stage
        self.source = source
        self.close_source = close_source
        self.sink = sink
        self.close_sink = close_sink
        self.on_error = on_error
        self.outcome: Optional[TaskOutcome] = None
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=daemon)

    @property
    def name(self) -> str:
        return self._thread.name

    @property
    def done(self) -> bool:
        """True once the stage has finished and its endpoints were handled."""
        return self._done.is_set()

    def start(self) -> 'BackgroundTask':
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the task to finish.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            True if the task finished within the timeout
        """
        return self._done.wait(timeout)

    def _run(self) -> None:
        try:
            result = self.stage.execute(self.source, self.sink)
            self.outcome = TaskOutcome.ok(result)
        except Exception as e:
            self.outcome = TaskOutcome.failed(e)
            if self.on_error is not None:
                self._report(e)
        finally:
            if self.close_source:
                close_quietly(self.source)
            if self.close_sink:
                close_quietly(self.sink)
            self._done.set()

    def _report(self, error: Exception) -> None:
        try:
            self.on_error(self, error)
        except Exception as hook_error:
            # The hook is diagnostic only; its failures must not escape the thread
            logger.debug(f"Error hook for {self.name} failed: {hook_error}")

    def __repr__(self) -> str:
        state = "done" if self.done else "running"
        return f"BackgroundTask(name='{self.name}', stage={self.stage.name}, {state})"


class StageScope:
    """
    Collects the background tasks launched for one pipeline call.

    Used as a context manager, the scope joins all of its tasks on exit::

        with StageScope() as scope:
            pipeline.execute(source, sink, scope=scope)
        assert not scope.failures
    """

    def __init__(self, join_timeout: Optional[float] = None):
        self.join_timeout = join_timeout
        self._tasks: List[BackgroundTask] = []
        self._lock = threading.Lock()

    def add(self, task: BackgroundTask) -> None:
        with self._lock:
            self._tasks.append(task)

    @property
    def tasks(self) -> List[BackgroundTask]:
        with self._lock:
            return list(self._tasks)

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every collected task.

        The timeout applies to each task in turn.

        Returns:
            True if all tasks finished
        """
        return all([task.join(timeout) for task in self.tasks])

    @property
    def outcomes(self) -> List[Optional[TaskOutcome]]:
        """Outcomes in launch order; None for tasks still running."""
        return [task.outcome for task in self.tasks]

    @property
    def failures(self) -> List[BaseException]:
        return [o.error for o in self.outcomes if o is not None and not o.success]

    def __enter__(self) -> 'StageScope':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.join(self.join_timeout)


class BackgroundTaskRunner:
    """Launches filter stages as background tasks."""

    def __init__(self, thread_name_prefix: str = "pipeshell-stage",
                 daemon: bool = True,
                 on_error: Optional[ErrorHook] = None):
        """
        Initialize the runner.

        Args:
            thread_name_prefix: Prefix for the names of stage threads
            daemon: Whether stage threads are daemon threads
            on_error: Optional hook called with (task, error) when a stage fails
        """
        self.thread_name_prefix = thread_name_prefix
        self.daemon = daemon
        self.on_error = on_error

    def launch(self, stage: 'Filter', source: Any, close_source: bool,
               sink: Any, close_sink: bool,
               scope: Optional[StageScope] = None,
               name: Optional[str] = None) -> BackgroundTask:
        """
        Start ``stage`` on a new thread.

        Args:
            stage: Filter to execute
            source: Stream the stage reads
            close_source: Close ``source`` when the stage finishes
            sink: Stream the stage writes
            close_sink: Close ``sink`` when the stage finishes
            scope: Scope to register the task with
            name: Thread name; generated from the prefix and stage name if omitted

        Returns:
            The started task
        """
        name = name or f"{self.thread_name_prefix}-{next(_task_ids)}-{stage.name}"
        task = BackgroundTask(stage, source, close_source, sink, close_sink,
                              name=name, daemon=self.daemon, on_error=self.on_error)
        if scope is not None:
            scope.add(task)

        logger.debug(f"Launching background stage {name}")
        return task.start()
