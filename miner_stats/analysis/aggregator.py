"""Accumulate MatchRecords into per-miner statistics."""

from collections.abc import AsyncIterable, Iterable, Sequence
from decimal import Decimal

from miner_stats.analysis.models import (
    DetailedBlock,
    MinerStats,
    MinerStatsReport,
    UnmatchedSummary,
)
from miner_stats.data.scan.models import (
    AmbiguousMatch,
    MatchRecord,
    ProcessedHeight,
    ScanRange,
)


class MinerStatsAggregator:
    """Running per-miner totals over a stream of MatchRecords.

    The aggregator knows nothing about addresses or derivation; it only sums
    opaque records. Records must arrive in non-decreasing height order with
    at most one record per (height, miner). Totals are integer zatoshis and
    shares are exact decimals.

    Example:
        ```python
        aggregator = MinerStatsAggregator(["Alpha", "Beta"])
        await aggregator.consume(scanner.scan(credentials, scan_range))
        report = aggregator.finalize(
            scan_range, scanner.processed, scanner.ambiguous_matches
        )
        ```
    """

    def __init__(self, labels: Sequence[str]) -> None:
        """Initialize empty totals.

        Args:
            labels: Miner labels in configuration order

        Raises:
            ValueError: If labels repeat
        """
        if len(set(labels)) != len(labels):
            msg = "miner labels must be unique"
            raise ValueError(msg)

        self.labels = list(labels)
        self._records: dict[str, list[MatchRecord]] = {label: [] for label in labels}
        self._value_zat: dict[str, int] = dict.fromkeys(labels, 0)
        self._last_height: int | None = None

    def add(self, record: MatchRecord) -> None:
        """Account one match.

        Raises:
            ValueError: If the label is unknown, heights go backwards, or the
                miner already has a record at this height
        """
        records = self._records.get(record.miner_label)
        if records is None:
            msg = f"unknown miner label {record.miner_label!r}"
            raise ValueError(msg)
        if self._last_height is not None and record.height < self._last_height:
            msg = (
                f"record at height {record.height} arrived after "
                f"height {self._last_height}"
            )
            raise ValueError(msg)
        if records and records[-1].height == record.height:
            msg = f"{record.miner_label!r} already matched height {record.height}"
            raise ValueError(msg)

        records.append(record)
        self._value_zat[record.miner_label] += record.value_zat
        self._last_height = record.height

    async def consume(self, records: AsyncIterable[MatchRecord]) -> None:
        """Add every record of an async stream (e.g. ``Scanner.scan``)."""
        async for record in records:
            self.add(record)

    @property
    def total_value_zat(self) -> int:
        """Sum of all miners' value so far."""
        return sum(self._value_zat.values())

    def finalize(
        self,
        scan_range: ScanRange,
        processed: Iterable[ProcessedHeight] = (),
        ambiguous: Iterable[AmbiguousMatch] = (),
    ) -> MinerStatsReport:
        """Compute shares and build the report for a fully scanned range.

        Finalizing does not change the running totals, so calling it twice
        returns equal reports.

        Args:
            scan_range: The scanned range
            processed: Processed heights, used for the unmatched summary
            ambiguous: Ambiguous matches reported as warnings

        Returns:
            MinerStatsReport with miners in configuration order
        """
        total = self.total_value_zat
        miners = [
            MinerStats(
                label=label,
                blocks=len(self._records[label]),
                value_zat=self._value_zat[label],
                share=(
                    Decimal(self._value_zat[label]) / Decimal(total)
                    if total
                    else Decimal(0)
                ),
                detailed_blocks=[
                    DetailedBlock(
                        height=record.height,
                        block_hash=record.block_hash,
                        address=record.address,
                        value_zat=record.value_zat,
                    )
                    for record in self._records[label]
                ],
            )
            for label in self.labels
        ]

        mined_heights = {
            record.height for records in self._records.values() for record in records
        }
        unmatched_value = sum(
            entry.coinbase_value_zat
            for entry in processed
            if entry.height not in mined_heights
        )

        return MinerStatsReport(
            start_height=scan_range.start_height,
            end_height=scan_range.end_height,
            total_blocks=len(scan_range),
            total_mined_blocks=len(mined_heights),
            total_value_zat=total,
            miners=miners,
            unmatched=UnmatchedSummary(
                blocks=max(len(scan_range) - len(mined_heights), 0),
                value_zat=unmatched_value,
            ),
            warnings=list(ambiguous),
        )


__all__ = ["MinerStatsAggregator"]
