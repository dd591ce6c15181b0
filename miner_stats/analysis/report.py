"""Render a MinerStatsReport as the JSON document and the console table."""

import json
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from miner_stats.analysis.models import MinerStatsReport
from miner_stats.helpers.logging import get_logger
from miner_stats.helpers.parsers import share_to_percent, zats_to_display

logger = get_logger(__name__)


def build_report_document(report: MinerStatsReport) -> dict[str, Any]:
    """Build the JSON report document.

    A pure function of the report: display values are rounded to 2 decimals
    and shares are percentages rounded half up to 2 decimals. Integer zatoshi
    amounts are kept next to every display value.

    Args:
        report: Finalized report

    Returns:
        JSON-serializable document
    """
    return {
        "range": [report.start_height, report.end_height],
        "start_height": report.start_height,
        "end_height": report.end_height,
        "total_blocks": report.total_blocks,
        "total_mined_blocks": report.total_mined_blocks,
        "total_value_zat": report.total_value_zat,
        "total_value": zats_to_display(report.total_value_zat),
        "miners": [
            {
                "label": miner.label,
                "blocks": miner.blocks,
                "value_zat": miner.value_zat,
                "value": zats_to_display(miner.value_zat),
                "share": share_to_percent(miner.share),
                "detailed_blocks": [
                    {
                        "height": block.height,
                        "block_hash": block.block_hash,
                        "address": block.address,
                        "value_zat": block.value_zat,
                        "value": zats_to_display(block.value_zat),
                    }
                    for block in miner.detailed_blocks
                ],
            }
            for miner in report.miners
        ],
        "unmatched": {
            "blocks": report.unmatched.blocks,
            "value_zat": report.unmatched.value_zat,
            "value": zats_to_display(report.unmatched.value_zat),
        },
        "warnings": [
            {
                "height": warning.height,
                "address": warning.address,
                "miners": list(warning.miner_labels),
            }
            for warning in report.warnings
        ],
    }


def write_report(report: MinerStatsReport, path: Path | str) -> Path:
    """Write the JSON report, creating parent directories.

    Args:
        report: Finalized report
        path: Output file

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(build_report_document(report), indent=2) + "\n", encoding="utf-8"
    )
    logger.info("Wrote report for %d miners to %s", len(report.miners), path)
    return path


def render_table(report: MinerStatsReport, console: Console | None = None) -> Table:
    """Print the per-miner summary table followed by any ambiguity warnings.

    Args:
        report: Finalized report
        console: Rich console (a new one when omitted)

    Returns:
        The printed table
    """
    console = console or Console()

    table = Table(
        title=(
            f"Miner stats for heights {report.start_height}-{report.end_height} "
            f"(total {zats_to_display(report.total_value_zat):.2f})"
        )
    )
    table.add_column("Label", style="cyan")
    table.add_column("Blocks", justify="right", style="yellow")
    table.add_column("Value", justify="right", style="green")
    table.add_column("% Share", justify="right", style="magenta")

    for miner in report.miners:
        table.add_row(
            miner.label,
            f"{miner.blocks:,}",
            f"{zats_to_display(miner.value_zat):,.2f}",
            f"{share_to_percent(miner.share):.2f}%",
        )
    table.add_section()
    table.add_row(
        "Others",
        f"{report.unmatched.blocks:,}",
        f"{zats_to_display(report.unmatched.value_zat):,.2f}",
        "-",
        style="dim",
    )

    console.print(table)

    for warning in report.warnings:
        console.print(
            f"[yellow]Warning: address {warning.address} at height "
            f"{warning.height} matches {', '.join(warning.miner_labels)}[/yellow]"
        )

    return table


__all__ = ["build_report_document", "render_table", "write_report"]
