"""Tests for RPC models."""

import pytest

from pydantic import ValidationError

from miner_stats.helpers.rpc_models import (
    BlockResult,
    BlockVout,
    GetBlockCountRequest,
    GetBlockHashRequest,
    GetBlockRequest,
    JsonRpcRequest,
    JsonRpcResponse,
)


def test_json_rpc_request() -> None:
    """Test JsonRpcRequest model."""
    request = JsonRpcRequest(method="test_method", params=[1, "two"], id=1)
    assert request.jsonrpc == "2.0"
    assert request.method == "test_method"
    assert request.params == [1, "two"]
    assert request.id == 1


def test_json_rpc_request_default_params() -> None:
    """Test JsonRpcRequest with default params."""
    request = JsonRpcRequest(method="test_method", id="abc123")
    assert request.params == []
    assert request.id == "abc123"


def test_node_requests_carry_method_names() -> None:
    """Test the method names of the node request models."""
    assert GetBlockCountRequest(id=1).method == "getblockcount"
    assert GetBlockHashRequest(params=[1000], id=1).params == [1000]
    assert GetBlockRequest(params=["00ab", 2], id=1).method == "getblock"


def test_response_with_error() -> None:
    """Test parsing an error envelope."""
    response = JsonRpcResponse.model_validate(
        {"result": None, "error": {"code": -8, "message": "out of range"}, "id": 1}
    )
    assert response.error is not None
    assert response.error.code == -8
    assert response.result is None


def test_block_vout_aliases() -> None:
    """Test that node field names map onto model fields."""
    vout = BlockVout.model_validate(
        {"value": 6.25, "valueZat": 625_000_000, "scriptPubKey": {"addresses": ["t1x"]}}
    )
    assert vout.value_zat == 625_000_000
    assert vout.script_pub_key.addresses == ["t1x"]


def test_block_vout_without_addresses() -> None:
    """Test that non-standard scripts have no addresses."""
    vout = BlockVout.model_validate(
        {"valueZat": 0, "scriptPubKey": {"type": "nulldata", "asm": "OP_RETURN"}}
    )
    assert vout.script_pub_key.addresses is None


def test_block_vout_negative_value_rejected() -> None:
    """Test that negative output values fail validation."""
    with pytest.raises(ValidationError):
        BlockVout.model_validate({"valueZat": -1, "scriptPubKey": {}})


def test_block_result_coinbase() -> None:
    """Test that the coinbase is the first transaction."""
    block = BlockResult.model_validate(
        {
            "hash": "00ab",
            "height": 5,
            "tx": [
                {"vout": [{"valueZat": 1, "scriptPubKey": {}}]},
                {"vout": []},
            ],
        }
    )
    assert block.coinbase is not None
    assert block.coinbase.vout[0].value_zat == 1


def test_block_result_without_transactions() -> None:
    """Test that a block without transactions has no coinbase."""
    block = BlockResult.model_validate({"hash": "00ab", "height": 5})
    assert block.coinbase is None
