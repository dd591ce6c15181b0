"""Tests for progress bar utilities."""

from io import StringIO

from rich.console import Console
from rich.progress import Progress

from miner_stats.helpers.progress import create_standard_progress, height_advancer


class TestCreateStandardProgress:
    """Tests for create_standard_progress function."""

    def test_creates_progress_instance(self) -> None:
        """Test that function creates Progress instance."""
        progress = create_standard_progress()
        assert isinstance(progress, Progress)

    def test_uses_provided_console(self) -> None:
        """Test that function uses provided console."""
        console = Console()
        progress = create_standard_progress(console=console)
        assert progress.console == console

    def test_expand_parameter(self) -> None:
        """Test expand parameter is applied."""
        progress = create_standard_progress(expand=True)
        assert progress.expand is True

    def test_has_time_columns(self) -> None:
        """Test that progress has elapsed and remaining time columns."""
        progress = create_standard_progress()
        column_types = [type(col).__name__ for col in progress.columns]
        assert "TimeElapsedColumn" in column_types
        assert "TimeRemainingColumn" in column_types


class TestHeightAdvancer:
    """Tests for the per-height progress callback."""

    def test_advances_once_per_height(self) -> None:
        """Test that each call advances the task by one and shows the height."""
        console = Console(file=StringIO())
        progress = create_standard_progress(console)
        task_id = progress.add_task("Scanning heights", total=3)
        advance = height_advancer(progress, task_id, "Scanning heights")

        for height in (1000, 1001, 1002):
            advance(height)

        task = progress.tasks[0]
        assert task.completed == 3
        assert task.finished
        assert task.description == "Scanning heights [1002]"
