"""Pydantic models for JSON-RPC requests and responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request model."""

    jsonrpc: str = Field(default="2.0", description="JSON-RPC version")
    method: str = Field(..., description="Method name to call")
    params: list[Any] = Field(
        default_factory=list, description="Method parameters"
    )
    id: int | str = Field(..., description="Request ID")


class GetBlockCountRequest(JsonRpcRequest):
    """JSON-RPC request for getblockcount."""

    method: str = Field(default="getblockcount", frozen=True)
    params: list[Any] = Field(default_factory=list, frozen=True)


class GetBlockHashRequest(JsonRpcRequest):
    """JSON-RPC request for getblockhash."""

    method: str = Field(default="getblockhash", frozen=True)


class GetBlockRequest(JsonRpcRequest):
    """JSON-RPC request for getblock (params: [hash_or_height, verbosity])."""

    method: str = Field(default="getblock", frozen=True)


class JsonRpcError(BaseModel):
    """Error object of a JSON-RPC response."""

    code: int
    message: str


class JsonRpcResponse(BaseModel):
    """JSON-RPC response envelope; ``result`` is validated by the caller."""

    result: Any = None
    error: JsonRpcError | None = None
    id: int | str | None = None


class ScriptPubKey(BaseModel):
    """Locking script summary of a transaction output."""

    addresses: list[str] | None = None

    model_config = ConfigDict(extra="ignore")


class BlockVout(BaseModel):
    """Transaction output as returned by ``getblock`` verbosity 2."""

    value_zat: int = Field(..., alias="valueZat", ge=0)
    script_pub_key: ScriptPubKey = Field(..., alias="scriptPubKey")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class BlockTx(BaseModel):
    """Transaction inside a verbose block."""

    vout: list[BlockVout] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class BlockResult(BaseModel):
    """Verbose block (``getblock <hash> 2``); only coinbase data is used."""

    hash: str = Field(..., min_length=1)
    height: int = Field(..., ge=0)
    tx: list[BlockTx] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @property
    def coinbase(self) -> BlockTx | None:
        """The block's first transaction, if any."""
        return self.tx[0] if self.tx else None


__all__ = [
    "BlockResult",
    "BlockTx",
    "BlockVout",
    "GetBlockCountRequest",
    "GetBlockHashRequest",
    "GetBlockRequest",
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "ScriptPubKey",
]
