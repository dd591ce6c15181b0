"""Tests for report rendering."""

import json
from decimal import Decimal
from pathlib import Path

from rich.console import Console

from miner_stats.analysis.models import (
    DetailedBlock,
    MinerStats,
    MinerStatsReport,
    UnmatchedSummary,
)
from miner_stats.analysis.report import (
    build_report_document,
    render_table,
    write_report,
)
from miner_stats.data.scan.models import AmbiguousMatch


def make_report(**overrides: object) -> MinerStatsReport:
    fields: dict[str, object] = {
        "start_height": 1000,
        "end_height": 1002,
        "total_blocks": 3,
        "total_mined_blocks": 2,
        "total_value_zat": 937_500_000,
        "miners": [
            MinerStats(
                label="Alpha",
                blocks=1,
                value_zat=625_000_000,
                share=Decimal(2) / Decimal(3),
                detailed_blocks=[
                    DetailedBlock(
                        height=1000,
                        block_hash="aa",
                        address="t1alpha",
                        value_zat=625_000_000,
                    )
                ],
            ),
            MinerStats(
                label="Beta",
                blocks=1,
                value_zat=312_500_000,
                share=Decimal(1) / Decimal(3),
                detailed_blocks=[
                    DetailedBlock(
                        height=1002,
                        block_hash="cc",
                        address="t1beta",
                        value_zat=312_500_000,
                    )
                ],
            ),
        ],
        "unmatched": UnmatchedSummary(blocks=1, value_zat=781_250_000),
    }
    fields.update(overrides)
    return MinerStatsReport.model_validate(fields)


class TestBuildReportDocument:
    """Tests for the JSON document."""

    def test_rounding(self) -> None:
        """Test that shares and values are rounded half up to 2 decimals."""
        document = build_report_document(make_report())

        assert [m["share"] for m in document["miners"]] == [66.67, 33.33]
        assert [m["value"] for m in document["miners"]] == [6.25, 3.13]
        assert document["total_value"] == 9.38

    def test_integer_amounts_are_kept(self) -> None:
        """Test that exact zatoshi totals sit next to display values."""
        document = build_report_document(make_report())

        assert document["total_value_zat"] == 937_500_000
        assert document["miners"][1]["value_zat"] == 312_500_000
        assert document["miners"][0]["detailed_blocks"] == [
            {
                "height": 1000,
                "block_hash": "aa",
                "address": "t1alpha",
                "value_zat": 625_000_000,
                "value": 6.25,
            }
        ]

    def test_range_and_counts(self) -> None:
        """Test range and block counters."""
        document = build_report_document(make_report())

        assert document["range"] == [1000, 1002]
        assert document["total_blocks"] == 3
        assert document["total_mined_blocks"] == 2
        assert document["unmatched"] == {
            "blocks": 1,
            "value_zat": 781_250_000,
            "value": 7.81,
        }
        assert document["warnings"] == []

    def test_warnings(self) -> None:
        """Test that ambiguous matches are listed."""
        warning = AmbiguousMatch(
            height=1001, address="t1shared", miner_labels=("Alpha", "Beta")
        )

        document = build_report_document(make_report(warnings=[warning]))

        assert document["warnings"] == [
            {"height": 1001, "address": "t1shared", "miners": ["Alpha", "Beta"]}
        ]

    def test_document_is_json_serializable(self) -> None:
        """Test that the document has no Decimal or model values left."""
        json.dumps(build_report_document(make_report()))


class TestWriteReport:
    """Tests for writing the report file."""

    def test_writes_json(self, tmp_path: Path) -> None:
        """Test that the file holds the document and parents are created."""
        path = tmp_path / "out" / "stats.json"

        written = write_report(make_report(), path)

        assert written == path
        assert json.loads(path.read_text()) == build_report_document(make_report())

    def test_overwrites_previous_report(self, tmp_path: Path) -> None:
        """Test that a rerun replaces the old file."""
        path = tmp_path / "stats.json"
        path.write_text("stale")

        write_report(make_report(), path)

        assert json.loads(path.read_text())["end_height"] == 1002


class TestRenderTable:
    """Tests for the console table."""

    def test_table_rows(self) -> None:
        """Test the miner rows and the trailing Others row."""
        console = Console(record=True, width=120)

        table = render_table(make_report(), console)
        output = console.export_text()

        assert table.row_count == 3
        assert "Miner stats for heights 1000-1002" in output
        assert "66.67%" in output
        assert "33.33%" in output
        assert "Others" in output

    def test_warnings_printed(self) -> None:
        """Test that ambiguity warnings follow the table."""
        console = Console(record=True, width=120)
        warning = AmbiguousMatch(
            height=1001, address="t1shared", miner_labels=("Alpha", "Beta")
        )

        render_table(make_report(warnings=[warning]), console)

        assert "t1shared at height 1001 matches Alpha, Beta" in console.export_text()
