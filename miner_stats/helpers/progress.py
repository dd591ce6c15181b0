"""Shared progress bar utilities for Rich console displays."""

from collections.abc import Callable

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


def create_standard_progress(
    console: Console | None = None, *, expand: bool = False
) -> Progress:
    """Create a standard progress bar with time remaining estimation.

    Args:
        console: Rich console instance (optional)
        expand: Whether to expand the progress bar to full width

    Returns:
        Configured Progress instance with:
        - Spinner
        - Task description
        - Progress bar
        - M of N counter
        - Time elapsed
        - Time remaining

    Example:
        ```python
        from rich.console import Console
        from miner_stats.helpers.progress import create_standard_progress

        console = Console()
        progress = create_standard_progress(console)

        with progress:
            task_id = progress.add_task("Scanning heights", total=251)
            # ... process heights ...
            progress.update(task_id, advance=1)
        ```
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("•"),
        TimeElapsedColumn(),
        TextColumn("•"),
        TimeRemainingColumn(),
        console=console,
        expand=expand,
    )


def height_advancer(
    progress: Progress, task_id: TaskID, description: str
) -> Callable[[int], None]:
    """Build a per-height callback that advances a progress task by one.

    The returned callable matches the scanner's ``on_height`` hook and also
    shows the last processed height in the task description.

    Args:
        progress: Progress instance
        task_id: Task ID to update
        description: Base task description

    Returns:
        Callback taking the processed height
    """

    def advance(height: int) -> None:
        progress.update(task_id, advance=1, description=f"{description} [{height}]")

    return advance


__all__ = [
    "TaskID",
    "create_standard_progress",
    "height_advancer",
]
