"""Pydantic models produced by the scanner."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ScanRange(BaseModel):
    """Inclusive height range of one run; the end is the tip seen at start."""

    start_height: int = Field(..., ge=0)
    end_height: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_order(self) -> "ScanRange":
        if self.start_height > self.end_height:
            msg = (
                f"start height {self.start_height} is above "
                f"end height {self.end_height}"
            )
            raise ValueError(msg)
        return self

    def __len__(self) -> int:
        return self.end_height - self.start_height + 1

    def heights(self) -> range:
        """Heights of the range in increasing order."""
        return range(self.start_height, self.end_height + 1)


class MatchRecord(BaseModel):
    """A coinbase payout to a miner's derived address at one height."""

    height: int = Field(..., ge=0)
    block_hash: str = Field(..., description="Validated block hash at the height")
    address: str = Field(..., description="Derived transparent address")
    value_zat: int = Field(..., gt=0, description="Summed value paid to the address")
    miner_label: str

    model_config = ConfigDict(frozen=True)


class ProcessedHeight(BaseModel):
    """A height whose block was validated and matched against every credential."""

    height: int = Field(..., ge=0)
    block_hash: str
    coinbase_value_zat: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class AmbiguousMatch(BaseModel):
    """One address derived by several credentials at the same height."""

    height: int = Field(..., ge=0)
    address: str
    miner_labels: tuple[str, ...]

    model_config = ConfigDict(frozen=True)


__all__ = ["AmbiguousMatch", "MatchRecord", "ProcessedHeight", "ScanRange"]
