"""Pydantic models for cached coinbase data."""

from pydantic import BaseModel, ConfigDict, Field


class CoinbaseOutput(BaseModel):
    """One output of a block's coinbase transaction."""

    value_zat: int = Field(..., ge=0, description="Output value in zatoshis")
    addresses: list[str] = Field(
        default_factory=list,
        description="Addresses from scriptPubKey (empty for non-standard scripts)",
    )

    # Caches written by newer versions may carry extra fields
    model_config = ConfigDict(extra="ignore", frozen=True)

    def pays(self, address: str) -> bool:
        """Whether this output pays the given address."""
        return address in self.addresses


class CachedBlock(BaseModel):
    """Coinbase summary of a block, persisted per height."""

    height: int = Field(..., ge=0)
    hash: str = Field(..., min_length=1, description="Block hash at last validation")
    outputs: list[CoinbaseOutput] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", frozen=True)

    @property
    def coinbase_value_zat(self) -> int:
        """Total value of all coinbase outputs."""
        return sum(output.value_zat for output in self.outputs)


__all__ = ["CachedBlock", "CoinbaseOutput"]
