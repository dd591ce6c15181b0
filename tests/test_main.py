"""Tests for the command-line entry point."""

import json
from pathlib import Path

import pytest
from rich.console import Console

from miner_stats.data.blocks.cache import BlockCache
from miner_stats.data.blocks.models import CachedBlock
from miner_stats.data.credentials.models import ViewingCredential
from miner_stats.helpers.config import MinerKeyEntry, MinerStatsConfig
from miner_stats.helpers.errors import ConfigurationError, InvalidCredentialError
from miner_stats.main import (
    EXIT_FAILURE,
    EXIT_OK,
    build_parser,
    cli,
    resolve_scan_range,
    run_miner_stats,
)
from tests.factories import FakeChainReader


def make_config(
    tmp_path: Path, miners: list[ViewingCredential], start_height: int = 1000
) -> MinerStatsConfig:
    return MinerStatsConfig(
        start_height=start_height,
        chain="main",
        rpc_url="http://node.test:8232",
        ufvks=[
            MinerKeyEntry(label=credential.label, key=credential.encode())
            for credential in miners
        ],
        cache_file=tmp_path / "blocks.sqlite",
        output_file=tmp_path / "out" / "stats.json",
        retry_base_delay=0.0,
    )


@pytest.fixture
def fake_reader(
    monkeypatch: pytest.MonkeyPatch, chain: dict[int, CachedBlock]
) -> FakeChainReader:
    """Replace the node reader used by the run with an in-memory chain."""
    reader = FakeChainReader(chain)
    monkeypatch.setattr("miner_stats.main.ChainReader", lambda *_, **__: reader)
    return reader


class TestResolveScanRange:
    """Tests for resolving the run's height range."""

    @pytest.mark.asyncio
    async def test_range_ends_at_tip(self, chain: dict[int, CachedBlock]) -> None:
        """Test that the range runs from the configured start to the tip."""
        reader = FakeChainReader(chain)

        scan_range = await resolve_scan_range(reader, 1100)  # type: ignore[arg-type]

        assert (scan_range.start_height, scan_range.end_height) == (1100, 1250)
        assert reader.tip_calls == 1

    @pytest.mark.asyncio
    async def test_start_above_tip(self, chain: dict[int, CachedBlock]) -> None:
        """Test that a start height above the tip is a configuration error."""
        with pytest.raises(ConfigurationError, match="above the chain tip 1250"):
            await resolve_scan_range(FakeChainReader(chain), 1300)  # type: ignore[arg-type]


class TestRunMinerStats:
    """Tests for a full run against an in-memory chain."""

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("fake_reader")
    async def test_writes_report(
        self, tmp_path: Path, miners: list[ViewingCredential]
    ) -> None:
        """Test that the run writes the JSON report and prints the table."""
        config = make_config(tmp_path, miners)
        console = Console(record=True, width=120)

        report = await run_miner_stats(config, console=console)

        document = json.loads(config.output_file.read_text())
        assert [m["label"] for m in document["miners"]] == ["Alpha", "Beta", "Gamma"]
        assert [m["blocks"] for m in document["miners"]] == [28, 11, 6]
        assert [m["share"] for m in document["miners"]] == [62.22, 24.44, 13.33]
        assert document["total_value"] == 281.25
        assert report.total_value_zat == 28_125_000_000
        output = console.export_text()
        summary = "Processed heights 1000-1250; matched 45 blocks across 3 miners"
        assert summary in output
        assert output.index("Processed heights") < output.index("Others")

    @pytest.mark.asyncio
    async def test_cache_persists_between_runs(
        self,
        tmp_path: Path,
        miners: list[ViewingCredential],
        fake_reader: FakeChainReader,
    ) -> None:
        """Test that a second run reads every block from the cache file."""
        config = make_config(tmp_path, miners)
        first = await run_miner_stats(config, console=Console(record=True))
        fetched_first = len(fake_reader.fetched)

        second = await run_miner_stats(config, console=Console(record=True))

        assert fetched_first == 251
        assert len(fake_reader.fetched) == fetched_first
        assert second == first

    @pytest.mark.asyncio
    async def test_invalid_key_fails_before_network(
        self,
        tmp_path: Path,
        miners: list[ViewingCredential],
        fake_reader: FakeChainReader,
    ) -> None:
        """Test that a bad key aborts before the node is contacted."""
        config = make_config(tmp_path, miners)
        entries = [*config.ufvks[:2], MinerKeyEntry(label="Gamma", key="uview1bogus")]
        config = config.model_copy(update={"ufvks": entries})

        with pytest.raises(InvalidCredentialError) as exc_info:
            await run_miner_stats(config, console=Console(record=True))

        assert exc_info.value.label == "Gamma"
        assert fake_reader.calls == 0
        assert not config.output_file.exists()

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("fake_reader")
    async def test_imports_legacy_json(
        self,
        tmp_path: Path,
        miners: list[ViewingCredential],
        chain: dict[int, CachedBlock],
    ) -> None:
        """Test that blocks from a JSON cache are imported before the scan."""
        legacy = tmp_path / "cache.json"
        legacy.write_text(
            json.dumps({"blocks": {"1000": chain[1000].model_dump(mode="json")}})
        )
        config = make_config(tmp_path, miners)

        await run_miner_stats(config, console=Console(record=True), import_json=legacy)

        async with BlockCache.open(config.cache_file) as cache:
            assert await cache.get(1000) == chain[1000]

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("fake_reader")
    async def test_missing_import_file(
        self, tmp_path: Path, miners: list[ViewingCredential]
    ) -> None:
        """Test that an unreadable import file is a configuration error."""
        config = make_config(tmp_path, miners)

        with pytest.raises(ConfigurationError, match="cannot import cache file"):
            await run_miner_stats(
                config,
                console=Console(record=True),
                import_json=tmp_path / "absent.json",
            )


class TestCli:
    """Tests for argument parsing and exit codes."""

    def test_parser_defaults(self) -> None:
        """Test default option values."""
        args = build_parser().parse_args([])

        assert args.config == Path("miner-stats-config.toml")
        assert args.log_level == "INFO"
        assert args.no_color is False
        assert args.import_json is None

    def test_missing_config_exits_with_failure(self, tmp_path: Path) -> None:
        """Test that a missing config file exits with status 1."""
        code = cli(
            [
                "--config",
                str(tmp_path / "absent.toml"),
                "--log-level",
                "INFO",
                "--no-color",
            ]
        )

        assert code == EXIT_FAILURE

    @pytest.mark.usefixtures("fake_reader")
    def test_successful_run_exits_ok(
        self, tmp_path: Path, miners: list[ViewingCredential]
    ) -> None:
        """Test a full run through the console script."""
        output = tmp_path / "stats.json"
        keys = "\n".join(
            f'[[ufvks]]\nlabel = "{credential.label}"\nkey = "{credential.encode()}"\n'
            for credential in miners
        )
        config_path = tmp_path / "miner-stats-config.toml"
        config_path.write_text(
            "start_height = 1200\n"
            'chain = "main"\n'
            'rpc_url = "http://node.test:8232"\n'
            f'cache_file = "{(tmp_path / "blocks.sqlite").as_posix()}"\n'
            f'output_file = "{output.as_posix()}"\n\n'
            f"{keys}"
        )

        code = cli(["--config", str(config_path), "--log-level", "INFO", "--no-color"])

        assert code == EXIT_OK
        document = json.loads(output.read_text())
        assert document["range"] == [1200, 1250]

    def test_json_cache_file_exits_with_failure(
        self, tmp_path: Path, miners: list[ViewingCredential]
    ) -> None:
        """Test that a JSON cache_file is reported instead of crashing."""
        cache_file = tmp_path / "cache.json"
        cache_file.write_text(json.dumps({"last_tip": 5, "blocks": {}}))
        keys = "\n".join(
            f'[[ufvks]]\nlabel = "{credential.label}"\nkey = "{credential.encode()}"\n'
            for credential in miners
        )
        config_path = tmp_path / "miner-stats-config.toml"
        config_path.write_text(
            "start_height = 1200\n"
            'chain = "main"\n'
            'rpc_url = "http://node.test:8232"\n'
            f'cache_file = "{cache_file.as_posix()}"\n'
            f'output_file = "{(tmp_path / "stats.json").as_posix()}"\n\n'
            f"{keys}"
        )

        code = cli(["--config", str(config_path), "--log-level", "INFO", "--no-color"])

        assert code == EXIT_FAILURE
        assert not (tmp_path / "stats.json").exists()
