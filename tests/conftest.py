"""
Shared Test Configuration and Fixtures

Provides directory trees for glob and file command tests, shell contexts
rooted in temporary directories, and small stream helpers.
"""

import io
import pytest
from pathlib import Path

from pipeshell.core.config.models import AppConfig, PipelineConfig
from pipeshell.core.context import ShellContext


class TrackingBytesIO(io.BytesIO):
    """BytesIO that counts close() calls and keeps its value after closing."""

    def __init__(self, initial: bytes = b""):
        super().__init__(initial)
        self.close_count = 0
        self.final_value = None

    def close(self):
        self.close_count += 1
        if not self.closed:
            self.final_value = self.getvalue()
        super().close()

    @property
    def data(self) -> bytes:
        return self.final_value if self.closed else self.getvalue()


class TrackingStringIO(io.StringIO):
    """StringIO that counts close() calls and keeps its value after closing."""

    def __init__(self, initial: str = ""):
        super().__init__(initial)
        self.close_count = 0
        self.final_value = None

    def close(self):
        self.close_count += 1
        if not self.closed:
            self.final_value = self.getvalue()
        super().close()

    @property
    def data(self) -> str:
        return self.final_value if self.closed else self.getvalue()


@pytest.fixture
def glob_tree(tmp_path: Path) -> Path:
    """
    Create the directory tree::

        D/file1
        D/file2
        D/dir1/file1
        D/dir1/dir2/file1
    """
    root = tmp_path / "D"
    (root / "dir1" / "dir2").mkdir(parents=True)
    (root / "file1").write_text("one\n")
    (root / "file2").write_text("two\n")
    (root / "dir1" / "file1").write_text("dir1 one\n")
    (root / "dir1" / "dir2" / "file1").write_text("dir2 one\n")
    return tmp_path


@pytest.fixture
def shell_context(tmp_path: Path) -> ShellContext:
    """Shell context whose working and home directory is tmp_path."""
    return ShellContext(cwd=tmp_path, home=tmp_path, environment={})


@pytest.fixture
def small_pipeline_config() -> PipelineConfig:
    """Pipeline config with tiny connectors, so backpressure is exercised."""
    return PipelineConfig(connector_capacity=4, chunk_size=3)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Application config working in tmp_path."""
    return AppConfig(working_directory=tmp_path)


@pytest.fixture
def tracking_bytes():
    """Factory for byte streams that record how often they were closed."""
    return TrackingBytesIO


@pytest.fixture
def tracking_text():
    """Factory for text streams that record how often they were closed."""
    return TrackingStringIO
