"""Pydantic models for miner statistics reports."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from miner_stats.data.scan.models import AmbiguousMatch


class DetailedBlock(BaseModel):
    """One block credited to a miner."""

    height: int = Field(..., ge=0)
    block_hash: str = Field(..., description="Block hash validated during the scan")
    address: str = Field(..., description="Derived address the coinbase paid")
    value_zat: int = Field(..., gt=0, description="Value paid to the miner in zatoshis")

    model_config = ConfigDict(frozen=True)


class MinerStats(BaseModel):
    """Final statistics of one miner over the scanned range.

    ``share`` is the exact fraction of the total matched value; it is only
    rounded when rendered.
    """

    label: str
    blocks: int = Field(default=0, ge=0, description="Blocks won in the range")
    value_zat: int = Field(default=0, ge=0, description="Total value in zatoshis")
    share: Decimal = Field(
        default=Decimal(0), description="Fraction of all matched value (0 to 1)"
    )
    detailed_blocks: list[DetailedBlock] = Field(
        default_factory=list, description="Credited blocks ordered by height"
    )

    model_config = ConfigDict(frozen=True)


class UnmatchedSummary(BaseModel):
    """Heights of the range whose coinbase paid none of the miners."""

    blocks: int = Field(default=0, ge=0)
    value_zat: int = Field(default=0, ge=0, description="Coinbase value of those blocks")

    model_config = ConfigDict(frozen=True)


class MinerStatsReport(BaseModel):
    """Everything the JSON report and console table are rendered from."""

    start_height: int = Field(..., ge=0)
    end_height: int = Field(..., ge=0)
    total_blocks: int = Field(..., ge=0, description="Heights in the scanned range")
    total_mined_blocks: int = Field(
        ..., ge=0, description="Heights credited to at least one miner"
    )
    total_value_zat: int = Field(..., ge=0, description="Sum of all miners' value")
    miners: list[MinerStats] = Field(
        default_factory=list, description="Miners in configuration order"
    )
    unmatched: UnmatchedSummary = Field(default_factory=UnmatchedSummary)
    warnings: list[AmbiguousMatch] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


__all__ = ["DetailedBlock", "MinerStats", "MinerStatsReport", "UnmatchedSummary"]
