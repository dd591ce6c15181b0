"""Command-line entry point: scan the chain and report miner statistics."""

import sys
from argparse import ArgumentParser, Namespace
from asyncio import run
from collections.abc import Callable, Sequence
from pathlib import Path

from rich.console import Console

from miner_stats.analysis.aggregator import MinerStatsAggregator
from miner_stats.analysis.models import MinerStatsReport
from miner_stats.analysis.report import render_table, write_report
from miner_stats.data.blocks.cache import BlockCache
from miner_stats.data.blocks.reader import ChainReader
from miner_stats.data.credentials.models import ViewingCredential, parse_credentials
from miner_stats.data.scan.models import ScanRange
from miner_stats.data.scan.scanner import Scanner
from miner_stats.helpers.config import MinerStatsConfig, load_config
from miner_stats.helpers.constants import DEFAULT_CONFIG_FILE
from miner_stats.helpers.errors import ConfigurationError, MinerStatsError
from miner_stats.helpers.http import create_http_client
from miner_stats.helpers.logging import LOG_LEVELS, get_logger, set_log_level
from miner_stats.helpers.progress import create_standard_progress, height_advancer
from miner_stats.helpers.rpc import RPCClient

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


async def resolve_scan_range(reader: ChainReader, start_height: int) -> ScanRange:
    """Snapshot the chain tip once and build the run's range.

    Raises:
        ConfigurationError: If ``start_height`` is above the tip
    """
    tip = await reader.tip_height()
    if start_height > tip:
        msg = f"start_height {start_height} is above the chain tip {tip}"
        raise ConfigurationError(msg)
    return ScanRange(start_height=start_height, end_height=tip)


async def collect_stats(
    credentials: Sequence[ViewingCredential],
    reader: ChainReader,
    cache: BlockCache,
    scan_range: ScanRange,
    *,
    batch_size: int,
    parallel_fetches: int,
    on_height: Callable[[int], None] | None = None,
) -> MinerStatsReport:
    """Scan ``scan_range`` and aggregate the matches into a report.

    Args:
        credentials: Parsed credentials in configuration order
        reader: Chain reader
        cache: Open block cache
        scan_range: Range to scan
        batch_size: Heights per scan window
        parallel_fetches: Concurrent block fetches
        on_height: Progress callback

    Returns:
        Finalized MinerStatsReport

    Raises:
        DerivationOutOfRangeError: If the range exceeds the derivation domain
        ScanAbortedError: If fetching fails after all retries
    """
    scanner = Scanner(
        reader,
        cache,
        batch_size=batch_size,
        parallel_fetches=parallel_fetches,
        on_height=on_height,
    )
    aggregator = MinerStatsAggregator([credential.label for credential in credentials])
    await aggregator.consume(scanner.scan(credentials, scan_range))
    return aggregator.finalize(
        scan_range, scanner.processed, scanner.ambiguous_matches
    )


async def run_miner_stats(
    config: MinerStatsConfig,
    *,
    console: Console | None = None,
    import_json: Path | None = None,
) -> MinerStatsReport:
    """Run one full scan as configured and write the report.

    Credentials are parsed before any network access, so a bad key fails the
    run immediately.

    Args:
        config: Validated configuration
        console: Rich console for progress and the summary table
        import_json: Legacy JSON cache to import before scanning

    Returns:
        The written report
    """
    console = console or Console()
    credentials = parse_credentials(config.ufvks, config.chain)
    rpc_client = RPCClient(config.rpc_url, timeout=config.request_timeout)

    async with (
        create_http_client(timeout=config.request_timeout) as http_client,
        BlockCache.open(config.cache_file) as cache,
    ):
        if import_json is not None:
            try:
                await cache.import_json(import_json)
            except (OSError, ValueError) as e:
                msg = f"cannot import cache file {import_json}: {e}"
                raise ConfigurationError(msg) from e

        reader = ChainReader(
            rpc_client,
            http_client,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay,
        )
        scan_range = await resolve_scan_range(reader, config.start_height)

        with create_standard_progress(console) as progress:
            description = "Scanning heights"
            task_id = progress.add_task(description, total=len(scan_range))
            report = await collect_stats(
                credentials,
                reader,
                cache,
                scan_range,
                batch_size=config.batch_size,
                parallel_fetches=config.parallel_fetches,
                on_height=height_advancer(progress, task_id, description),
            )

    write_report(report, config.output_file)
    console.print(
        f"Processed heights {report.start_height}-{report.end_height}; "
        f"matched {report.total_mined_blocks} blocks across "
        f"{len(report.miners)} miners"
    )
    render_table(report, console)
    return report


def build_parser() -> ArgumentParser:
    """Command-line options."""
    parser = ArgumentParser(
        prog="miner-stats",
        description="Attribute coinbase payouts to miners by their viewing keys",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(DEFAULT_CONFIG_FILE),
        help=f"Path to the TOML config file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--log-level",
        choices=list(LOG_LEVELS),
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored log output",
    )
    parser.add_argument(
        "--import-json",
        type=Path,
        default=None,
        help="Import a JSON block cache from an earlier release before scanning",
    )
    return parser


def main(args: Namespace, console: Console | None = None) -> int:
    """Run with parsed arguments and map the outcome to an exit code."""
    console = console or Console(no_color=args.no_color)
    set_log_level(args.log_level, log_color=not args.no_color)

    try:
        config = load_config(args.config)
        run(run_miner_stats(config, console=console, import_json=args.import_json))
    except KeyboardInterrupt:
        logger.info("Interrupted; the block cache holds every completed height")
        return EXIT_INTERRUPTED
    except MinerStatsError as e:
        logger.error("%s", e)
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_FAILURE
    return EXIT_OK


def cli(argv: Sequence[str] | None = None) -> int:
    """Console script entry point."""
    return main(build_parser().parse_args(argv))


if __name__ == "__main__":
    sys.exit(cli())
