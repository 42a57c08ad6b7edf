"""
Tests for the pipeline composer.

Covers forward and reverse composition, close-flag handling on success and
failure, background failure isolation and connector wiring.
"""

import io
import os
import threading
import time

import pytest

from pipeshell.commands.sed import substitute_all_filter
from pipeshell.commands.text import wc_l_filter
from pipeshell.core.concurrency.runner import BackgroundTaskRunner, StageScope
from pipeshell.core.config.models import AppConfig, PipelineConfig
from pipeshell.core.exceptions import BrokenConnectorError, ErrorCode, PipelineError
from pipeshell.core.pipeline.connector import Connector
from pipeshell.core.pipeline.executor import (
    BytePipeline, CharPipeline, Pipeline, byte_pipeline, char_pipeline
)
from pipeshell.core.pipeline.interfaces import byte_filter, char_filter
from pipeshell.core.streams import StreamKind


JOIN_TIMEOUT = 10.0


def upper():
    return char_filter(lambda source, sink: sink.write(source.read().upper()), name="upper")


def suffix(text):
    def _suffix(source, sink):
        data = source.read()
        sink.write(data + text)
        return data + text
    return char_filter(_suffix, name=f"suffix {text}")


def failing(message="stage failed"):
    def _fail(source, sink):
        raise OSError(message)
    return char_filter(_fail, name="failing")


class TestComposition:
    """Test that pipelines behave like function composition."""

    def test_hallo_doubled_over_octets(self):
        stage = substitute_all_filter("(.)", "$1$1").as_byte_filter("utf-8", "utf-8")
        sink = io.BytesIO()

        byte_pipeline(stage).execute(io.BytesIO(b"Hallo"), sink)

        assert sink.getvalue() == b"HHaalllloo"

    def test_forward_chain_applies_stages_in_order(self):
        sink = io.StringIO()
        pipeline = char_pipeline(upper(), suffix("-1"), suffix("-2"))

        result = pipeline.execute(io.StringIO("abc"), sink)

        assert sink.getvalue() == "ABC-1-2"
        assert result == "ABC-1-2"

    def test_reverse_chain_counts_lines(self):
        sink = Connector(StreamKind.TEXT)
        pipeline = char_pipeline(
            substitute_all_filter("[aeiou]", "i"),
            substitute_all_filter("i", "i\n"),
            wc_l_filter(),
            reverse=True,
            close_sink=True,
        )

        result = pipeline.execute(io.StringIO("Drei Chinesen"), sink.writer)

        # The synchronous first stage replaced five vowels
        assert result == 5
        assert sink.reader.read() == "6" + os.linesep

    def test_reverse_returns_first_stage_result(self):
        sink = io.StringIO()
        pipeline = char_pipeline(suffix("!"), upper(), reverse=True)

        with StageScope() as scope:
            result = pipeline.execute(io.StringIO("hi"), sink, scope=scope)

        assert result == "hi!"
        assert scope.join(JOIN_TIMEOUT)
        assert sink.getvalue() == "HI!"

    def test_backpressure_with_tiny_connectors(self, small_pipeline_config):
        payload = "".join(chr(ord("a") + i % 26) for i in range(5000))
        sink = io.StringIO()
        pipeline = char_pipeline(upper(), suffix("."), suffix("!"), config=small_pipeline_config)

        pipeline.execute(io.StringIO(payload), sink)

        assert sink.getvalue() == payload.upper() + ".!"

    def test_nested_pipeline_is_a_stage(self):
        inner = char_pipeline(upper(), suffix("1"))
        outer = char_pipeline(inner, suffix("2"))
        sink = io.StringIO()

        outer.execute(io.StringIO("x"), sink)

        assert sink.getvalue() == "X12"

    def test_byte_pipeline_of_adapted_stages(self):
        stages = [upper().as_byte_filter("utf-8", "utf-8"), suffix("ß").as_byte_filter("utf-8", "utf-8")]
        sink = io.BytesIO()

        BytePipeline(stages).execute(io.BytesIO(b"ok"), sink)

        assert sink.getvalue() == "OKß".encode("utf-8")


class TestZeroStages:
    """Test the identity pipeline."""

    def test_bytes_copied_verbatim(self, tracking_bytes):
        data = bytes(range(256)) * 100
        source = tracking_bytes(data)
        sink = tracking_bytes()

        result = byte_pipeline().execute(source, sink)

        assert result is None
        assert sink.data == data

    def test_text_copied_verbatim(self):
        sink = io.StringIO()
        char_pipeline(close_source=False).execute(io.StringIO("a\r\nb"), sink)
        assert sink.getvalue() == "a\r\nb"

    def test_close_flags_honoured(self, tracking_bytes):
        source = tracking_bytes(b"x")
        sink = tracking_bytes()

        byte_pipeline(close_source=True, close_sink=True).execute(source, sink)

        assert source.close_count == 1
        assert sink.close_count == 1
        assert sink.data == b"x"


class TestSingleStage:
    """Test close handling of a one-stage pipeline."""

    def test_closes_source_once_and_never_sink(self, tracking_text):
        source = tracking_text("abc")
        sink = tracking_text()

        char_pipeline(upper(), close_source=True, close_sink=False).execute(source, sink)

        assert source.close_count == 1
        assert sink.close_count == 0
        assert sink.getvalue() == "ABC"

    def test_closes_source_once_on_failure(self, tracking_text):
        source = tracking_text("abc")
        sink = tracking_text()

        with pytest.raises(OSError, match="stage failed"):
            char_pipeline(failing(), close_source=True, close_sink=False).execute(source, sink)

        assert source.close_count == 1
        assert sink.close_count == 0

    def test_close_sink_on_failure(self, tracking_text):
        sink = tracking_text()

        with pytest.raises(OSError):
            char_pipeline(failing(), close_source=False, close_sink=True).execute(io.StringIO(""), sink)

        assert sink.close_count == 1

    def test_close_failure_does_not_escape(self):
        class BadClose(io.StringIO):
            def close(self):
                if not self.closed:
                    super().close()
                    raise OSError("cannot close")

        sink = io.StringIO()
        char_pipeline(upper(), close_source=True).execute(BadClose("q"), sink)

        assert sink.getvalue() == "Q"


class TestForwardClosePolicy:
    """Test boundary and connector closing with several stages."""

    def test_source_and_sink_closed_per_flags(self, tracking_text):
        source = tracking_text("abc")
        sink = tracking_text()

        char_pipeline(upper(), suffix("!"), close_source=True, close_sink=True).execute(source, sink)

        assert source.close_count == 1
        assert sink.close_count == 1
        assert sink.data == "ABC!"

    def test_source_left_open(self, tracking_text):
        source = tracking_text("abc")
        sink = tracking_text()

        with StageScope() as scope:
            char_pipeline(upper(), suffix("!"), close_source=False).execute(source, sink, scope=scope)

        assert source.close_count == 0
        assert sink.close_count == 0

    def test_terminal_failure_raises_after_closing_sink(self, tracking_text):
        sink = tracking_text()

        with pytest.raises(OSError, match="terminal"):
            char_pipeline(upper(), failing("terminal"), close_sink=True).execute(io.StringIO("x"), sink)

        assert sink.close_count == 1

    def test_config_supplies_default_close_flags(self, tracking_text):
        source = tracking_text("abc")
        sink = tracking_text()
        config = PipelineConfig(close_source=False, close_sink=True)

        char_pipeline(upper(), config=config).execute(source, sink)

        assert source.close_count == 0
        assert sink.close_count == 1


class TestReverseClosePolicy:
    """Test boundary and connector closing when the first stage runs in the caller."""

    def test_source_and_sink_closed_once(self, tracking_text):
        source = tracking_text("abc")
        sink = tracking_text()

        with StageScope(join_timeout=JOIN_TIMEOUT) as scope:
            char_pipeline(upper(), suffix("!"), reverse=True, close_source=True,
                          close_sink=True).execute(source, sink, scope=scope)

        assert scope.join(JOIN_TIMEOUT)
        assert source.close_count == 1
        assert sink.close_count == 1
        assert sink.data == "ABC!"

    def test_sink_left_open_without_flag(self, tracking_text):
        source = tracking_text("abc")
        sink = tracking_text()

        with StageScope(join_timeout=JOIN_TIMEOUT) as scope:
            char_pipeline(upper(), suffix("!"), reverse=True, close_source=True,
                          close_sink=False).execute(source, sink, scope=scope)

        assert scope.join(JOIN_TIMEOUT)
        assert source.close_count == 1
        assert sink.close_count == 0
        assert sink.getvalue() == "ABC!"

    def test_head_failure_closes_each_endpoint_once(self, tracking_text):
        source = tracking_text("abc")
        sink = tracking_text()

        with StageScope(join_timeout=JOIN_TIMEOUT) as scope:
            with pytest.raises(OSError, match="head"):
                char_pipeline(failing("head"), suffix("!"), reverse=True, close_source=True,
                              close_sink=True).execute(source, sink, scope=scope)

        assert scope.join(JOIN_TIMEOUT)
        assert source.close_count == 1
        assert sink.close_count == 1
        assert sink.data == "!"

    def test_early_downstream_stop_breaks_head(self):
        def take_one(source, sink):
            return source.read(1)

        big = byte_filter(lambda source, sink: sink.write(b"x" * 100000), name="big")
        pipeline = byte_pipeline(big, byte_filter(take_one), reverse=True,
                                 config=PipelineConfig(connector_capacity=16))

        with StageScope(join_timeout=JOIN_TIMEOUT) as scope:
            with pytest.raises(BrokenConnectorError):
                pipeline.execute(io.BytesIO(b""), io.BytesIO(), scope=scope)

        assert scope.join(JOIN_TIMEOUT)
        assert scope.failures == []

    def test_adapted_head_failure_not_masked(self):
        def head(source, sink):
            sink.write("pending")
            connector = sink.buffer.connector
            deadline = time.monotonic() + JOIN_TIMEOUT
            while not connector.reader_closed and time.monotonic() < deadline:
                time.sleep(0.01)
            raise OSError("original failure")

        ignore = byte_filter(lambda source, sink: None, name="ignore")
        pipeline = byte_pipeline(char_filter(head).as_byte_filter("utf-8", "utf-8"), ignore, reverse=True)

        with StageScope(join_timeout=JOIN_TIMEOUT) as scope:
            with pytest.raises(OSError, match="original failure") as exc_info:
                pipeline.execute(io.BytesIO(b""), io.BytesIO(), scope=scope)

        assert not isinstance(exc_info.value, BrokenConnectorError)


class TestBackgroundFailures:
    """Test that background failures are isolated and observable on request."""

    def test_upstream_failure_looks_like_end_of_input(self):
        sink = io.StringIO()

        with StageScope(join_timeout=JOIN_TIMEOUT) as scope:
            result = char_pipeline(failing("upstream"), suffix("|")).execute(io.StringIO("data"), sink, scope=scope)

        assert result == "|"
        assert sink.getvalue() == "|"
        assert len(scope.failures) == 1
        assert str(scope.failures[0]) == "upstream"

    def test_error_hook_receives_failure(self):
        reported = []
        runner = BackgroundTaskRunner(on_error=lambda task, error: reported.append((task.name, error)))
        pipeline = char_pipeline(failing("boom"), suffix(""), runner=runner)

        with StageScope(join_timeout=JOIN_TIMEOUT) as scope:
            pipeline.execute(io.StringIO(""), io.StringIO(), scope=scope)

        assert len(reported) == 1
        assert reported[0][0] == scope.tasks[0].name
        assert str(reported[0][1]) == "boom"

    def test_early_terminal_stop_breaks_upstream(self):
        def take_one(source, sink):
            return source.read(1)

        big = byte_filter(lambda source, sink: sink.write(b"x" * 100000), name="big")
        pipeline = byte_pipeline(big, byte_filter(take_one), config=PipelineConfig(connector_capacity=16))

        with StageScope() as scope:
            result = pipeline.execute(io.BytesIO(b""), io.BytesIO(), scope=scope)
            assert scope.join(JOIN_TIMEOUT)

        assert result == b"x"
        assert len(scope.failures) == 1
        assert isinstance(scope.failures[0], BrokenConnectorError)

    def test_reverse_stage_zero_failure_propagates(self):
        sink = io.StringIO()

        with StageScope(join_timeout=JOIN_TIMEOUT) as scope:
            with pytest.raises(OSError, match="head"):
                char_pipeline(failing("head"), upper(), reverse=True).execute(io.StringIO("x"), sink, scope=scope)

        assert scope.join(JOIN_TIMEOUT)
        assert sink.getvalue() == ""
        assert scope.failures == []


class TestValidation:
    """Test stage validation at construction."""

    def test_kind_mismatch(self):
        with pytest.raises(PipelineError) as exc_info:
            byte_pipeline(upper())

        assert exc_info.value.error_code == ErrorCode.PIPELINE_KIND_MISMATCH
        assert exc_info.value.context.stage_index == 0
        assert exc_info.value.suggestions

    def test_not_a_filter(self):
        with pytest.raises(PipelineError) as exc_info:
            char_pipeline(upper(), "wc -l")

        assert exc_info.value.error_code == ErrorCode.PIPELINE_INVALID_STAGE
        assert exc_info.value.context.stage_index == 1

    def test_pipeline_types(self):
        assert isinstance(char_pipeline(), CharPipeline)
        assert isinstance(byte_pipeline(), BytePipeline)
        assert char_pipeline().kind is StreamKind.TEXT
        assert byte_pipeline().kind is StreamKind.BYTES
        assert hasattr(char_pipeline(), "as_byte_filter")

    def test_name_and_len(self):
        pipeline = char_pipeline(upper(), suffix("x"))
        assert len(pipeline) == 2
        assert pipeline.name == "pipeline(upper | suffix x)"

    def test_from_app_config(self, tracking_bytes):
        app_config = AppConfig(pipeline=PipelineConfig(close_source=False, close_sink=True, connector_capacity=4))
        source = tracking_bytes(b"abc")
        sink = tracking_bytes()

        pipeline = BytePipeline.from_app_config([upper().as_byte_filter("utf-8", "utf-8")], app_config)
        pipeline.execute(source, sink)

        assert pipeline.config is app_config.pipeline
        assert pipeline.kind is StreamKind.BYTES
        assert source.close_count == 0
        assert sink.close_count == 1
        assert sink.data == b"ABC"


class TestThreads:
    """Test the threads that run background stages."""

    def test_stage_threads_named_with_prefix(self):
        names = []

        def record(source, sink):
            names.append(threading.current_thread().name)
            sink.write(source.read())

        config = PipelineConfig(thread_name_prefix="unit")
        pipeline = Pipeline([char_filter(record), char_filter(record)], kind=StreamKind.TEXT, config=config)
        pipeline.execute(io.StringIO("x"), io.StringIO())

        main = threading.current_thread().name
        assert main in names
        background = [name for name in names if name != main]
        assert len(background) == 1
        assert background[0].startswith("unit-")
