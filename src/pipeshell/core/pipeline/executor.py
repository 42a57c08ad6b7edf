"""
Pipeline Composer

Builds one filter out of an ordered list of filters, the way a shell builds a
pipe out of commands. Adjacent stages are linked with in-memory connectors,
exactly one stage runs on the caller's thread and every other stage runs as a
background task.

Two composition modes are supported:

- forward: the last stage runs synchronously and its result (or error) is
  the pipeline's. Upstream stages have drained when the call returns.
- reverse: the first stage runs synchronously and its result (or error) is
  the pipeline's. Downstream stages may still be running when it returns.

The ``close_source``/``close_sink`` flags decide whether the pipeline's
external endpoints are closed when the stage owning them finishes. Internal
connectors are always closed by the stages on either side of them.
"""

import logging
from typing import Any, List, Optional, Sequence

from pipeshell.core.concurrency.runner import BackgroundTaskRunner, StageScope
from pipeshell.core.config.models import AppConfig, PipelineConfig
from pipeshell.core.exceptions import ErrorCode, PipelineError
from pipeshell.core.pipeline.connector import Connector
from pipeshell.core.pipeline.interfaces import ByteFilter, CharFilter, Filter
from pipeshell.core.streams import StreamKind, close_quietly, copy_stream


logger = logging.getLogger(__name__)


class Pipeline(Filter[Any]):
    """
    A linear chain of filters that is itself a filter.

    Stages are validated at construction: each must be a Filter of the same
    stream kind as the pipeline. A pipeline without stages copies its source
    into its sink unchanged.
    """

    def __init__(self, stages: Sequence[Filter],
                 kind: StreamKind = StreamKind.BYTES,
                 close_source: Optional[bool] = None,
                 close_sink: Optional[bool] = None,
                 reverse: bool = False,
                 config: Optional[PipelineConfig] = None,
                 runner: Optional[BackgroundTaskRunner] = None):
        """
        Initialize the pipeline.

        Args:
            stages: Filters in data-flow order
            kind: Stream kind every stage must share
            close_source: Close the source when the first stage finishes
                (config default, normally True)
            close_sink: Close the sink when the last stage finishes
                (config default, normally False)
            reverse: Run the first stage synchronously instead of the last
            config: Pipeline settings (capacity, chunk size, thread naming)
            runner: Launcher for background stages
        """
        self.config = config or PipelineConfig()
        self.kind = kind
        self.stages: List[Filter] = list(stages)
        self.close_source = self.config.close_source if close_source is None else close_source
        self.close_sink = self.config.close_sink if close_sink is None else close_sink
        self.reverse = reverse
        self.runner = runner or BackgroundTaskRunner(
            thread_name_prefix=self.config.thread_name_prefix,
            daemon=self.config.daemon_threads
        )

        self._validate_stages()

    @classmethod
    def from_app_config(cls, stages: Sequence[Filter], app_config: AppConfig, **kwargs) -> 'Pipeline':
        """Create a pipeline using the pipeline section of an application config."""
        return cls(stages, config=app_config.pipeline, **kwargs)

    def _validate_stages(self) -> None:
        for index, stage in enumerate(self.stages):
            if not isinstance(stage, Filter):
                raise PipelineError(
                    f"Stage {index} is not a filter: {stage!r}",
                    stage_index=index,
                    field_name="stages",
                    field_value=repr(stage)
                )
            if stage.kind is not self.kind:
                raise PipelineError(
                    f"Stage {index} ({stage.name}) is a {stage.kind.value} filter "
                    f"but the pipeline carries {self.kind.value}",
                    error_code=ErrorCode.PIPELINE_KIND_MISMATCH,
                    stage_index=index,
                    field_name="stages",
                    field_value=stage.name
                )

    @property
    def name(self) -> str:
        inner = " | ".join(stage.name for stage in self.stages)
        return f"pipeline({inner})"

    def __len__(self) -> int:
        return len(self.stages)

    def execute(self, source: Any, sink: Any, *, scope: Optional[StageScope] = None) -> Any:
        """
        Run the pipeline from ``source`` to ``sink``.

        Args:
            source: External input stream
            sink: External output stream
            scope: Optional scope that collects the background stage tasks

        Returns:
            The synchronous stage's result (the last stage in forward mode,
            the first in reverse mode); None for an empty pipeline

        Raises:
            Whatever the synchronous stage raises, after the external
            endpoints were closed according to the close flags
        """
        count = len(self.stages)
        logger.debug(f"Executing {'reverse' if self.reverse else 'forward'} {self.name} "
                     f"(close_source={self.close_source}, close_sink={self.close_sink})")

        if count == 0:
            return self._run_single(None, source, sink)
        if count == 1:
            return self._run_single(self.stages[0], source, sink)
        if self.reverse:
            return self._run_reverse(source, sink, scope)
        return self._run_forward(source, sink, scope)

    def _run_single(self, stage: Optional[Filter], source: Any, sink: Any) -> Any:
        try:
            if stage is None:
                copy_stream(source, sink, self.config.chunk_size)
                return None
            return stage.execute(source, sink)
        finally:
            if self.close_source:
                close_quietly(source)
            if self.close_sink:
                close_quietly(sink)

    def _connector(self, index: int) -> Connector:
        return Connector(self.kind, self.config.connector_capacity,
                         name=f"{self.name}[{index}->{index + 1}]")

    def _run_forward(self, source: Any, sink: Any, scope: Optional[StageScope]) -> Any:
        upstream = source
        close_upstream = self.close_source

        for index, stage in enumerate(self.stages[:-1]):
            connector = self._connector(index)
            self.runner.launch(stage, upstream, close_upstream, connector.writer, True, scope=scope)
            upstream = connector.reader
            close_upstream = True

        terminal = self.stages[-1]
        try:
            return terminal.execute(upstream, sink)
        finally:
            # A terminal stage that stops early must break the upstream writer
            close_quietly(upstream)
            if self.close_sink:
                close_quietly(sink)

    def _run_reverse(self, source: Any, sink: Any, scope: Optional[StageScope]) -> Any:
        connectors = [self._connector(index) for index in range(len(self.stages) - 1)]
        last = len(self.stages) - 1

        for index in range(last, 0, -1):
            if index == last:
                downstream, close_downstream = sink, self.close_sink
            else:
                downstream, close_downstream = connectors[index].writer, True
            self.runner.launch(self.stages[index], connectors[index - 1].reader, True,
                               downstream, close_downstream, scope=scope)

        head = connectors[0].writer
        try:
            return self.stages[0].execute(source, head)
        finally:
            if self.close_source:
                close_quietly(source)
            # End-of-input for the downstream stages
            close_quietly(head)

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(stages={len(self.stages)}, kind={self.kind.value}, "
                f"reverse={self.reverse})")


class BytePipeline(Pipeline, ByteFilter[Any]):
    """Pipeline over octet streams."""

    def __init__(self, stages: Sequence[Filter], **kwargs):
        kwargs['kind'] = StreamKind.BYTES
        super().__init__(stages, **kwargs)


class CharPipeline(Pipeline, CharFilter[Any]):
    """Pipeline over character streams."""

    def __init__(self, stages: Sequence[Filter], **kwargs):
        kwargs['kind'] = StreamKind.TEXT
        super().__init__(stages, **kwargs)


def byte_pipeline(*stages: Filter, reverse: bool = False,
                  close_source: Optional[bool] = None,
                  close_sink: Optional[bool] = None,
                  config: Optional[PipelineConfig] = None,
                  runner: Optional[BackgroundTaskRunner] = None) -> BytePipeline:
    """Compose octet filters into a pipeline."""
    return BytePipeline(stages, reverse=reverse, close_source=close_source,
                        close_sink=close_sink, config=config, runner=runner)


def char_pipeline(*stages: Filter, reverse: bool = False,
                  close_source: Optional[bool] = None,
                  close_sink: Optional[bool] = None,
                  config: Optional[PipelineConfig] = None,
                  runner: Optional[BackgroundTaskRunner] = None) -> CharPipeline:
    """Compose character filters into a pipeline."""
    return CharPipeline(stages, reverse=reverse, close_source=close_source,
                        close_sink=close_sink, config=config, runner=runner)
