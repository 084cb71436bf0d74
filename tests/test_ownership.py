"""Tests for the web3-backed ownership oracle.

The AsyncWeb3 instance is a mock; only the contract call results vary.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from web3.exceptions import ContractLogicError

from tests.conftest import CONTRACT, HOLDER
from tokengate.verification.ownership import ERC1155, ERC721, Web3OwnershipOracle


def make_oracle(standard=ERC721, token_ids=(), timeout=1.0):
    w3 = MagicMock()
    contract = MagicMock()
    w3.eth.contract.return_value = contract
    oracle = Web3OwnershipOracle(
        CONTRACT, standard=standard, token_ids=token_ids, timeout=timeout, w3=w3
    )
    return oracle, w3, contract


class TestConstruction:

    def test_contract_bound_with_checksum_address(self):
        oracle, w3, _ = make_oracle()

        kwargs = w3.eth.contract.call_args.kwargs
        assert kwargs["address"] == CONTRACT
        assert kwargs["abi"][0]["name"] == "balanceOf"
        assert oracle.contract_address == CONTRACT

    def test_erc1155_uses_batch_abi(self):
        _, w3, _ = make_oracle(standard=ERC1155, token_ids=(1,))
        assert w3.eth.contract.call_args.kwargs["abi"][0]["name"] == "balanceOfBatch"

    def test_unknown_standard_rejected(self):
        with pytest.raises(ValueError):
            make_oracle(standard="erc20")


class TestHoldsERC721:

    @pytest.mark.asyncio
    async def test_positive_balance_holds(self):
        oracle, _, contract = make_oracle()
        contract.functions.balanceOf.return_value.call = AsyncMock(return_value=3)

        result = await oracle.holds(HOLDER.address.lower())

        assert result.held is True
        assert bool(result) is True
        assert result.error is None
        # Queried with the checksummed form
        contract.functions.balanceOf.assert_called_once_with(HOLDER.address)

    @pytest.mark.asyncio
    async def test_zero_balance_does_not_hold(self):
        oracle, _, contract = make_oracle()
        contract.functions.balanceOf.return_value.call = AsyncMock(return_value=0)

        result = await oracle.holds(HOLDER.address)

        assert result.held is False
        assert result.error is None

    @pytest.mark.asyncio
    async def test_revert_fails_closed(self):
        oracle, _, contract = make_oracle()
        contract.functions.balanceOf.return_value.call = AsyncMock(
            side_effect=ContractLogicError("execution reverted")
        )

        result = await oracle.holds(HOLDER.address)

        assert result.held is False
        assert "ContractLogicError" in result.error

    @pytest.mark.asyncio
    async def test_network_error_fails_closed(self):
        oracle, _, contract = make_oracle()
        contract.functions.balanceOf.return_value.call = AsyncMock(
            side_effect=ConnectionError("connection refused")
        )

        result = await oracle.holds(HOLDER.address)

        assert result.held is False
        assert result.error

    @pytest.mark.asyncio
    async def test_timeout_fails_closed(self):
        oracle, _, contract = make_oracle(timeout=0.01)

        async def stalled():
            await asyncio.sleep(1)
            return 1

        contract.functions.balanceOf.return_value.call = stalled

        result = await oracle.holds(HOLDER.address)

        assert result.held is False
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_malformed_response_fails_closed(self):
        oracle, _, contract = make_oracle()
        contract.functions.balanceOf.return_value.call = AsyncMock(return_value="garbage")

        result = await oracle.holds(HOLDER.address)

        assert result.held is False
        assert result.error

    @pytest.mark.asyncio
    async def test_invalid_address_fails_closed_without_query(self):
        oracle, _, contract = make_oracle()
        contract.functions.balanceOf.return_value.call = AsyncMock(return_value=1)

        result = await oracle.holds("not-an-address")

        assert result.held is False
        assert result.error
        contract.functions.balanceOf.assert_not_called()

    @pytest.mark.asyncio
    async def test_every_call_hits_the_chain(self):
        oracle, _, contract = make_oracle()
        call = AsyncMock(side_effect=[1, 0])
        contract.functions.balanceOf.return_value.call = call

        assert (await oracle.holds(HOLDER.address)).held is True
        assert (await oracle.holds(HOLDER.address)).held is False
        assert call.await_count == 2


class TestHoldsAnyERC1155:

    @pytest.mark.asyncio
    async def test_any_nonzero_balance_holds(self):
        oracle, _, contract = make_oracle(standard=ERC1155, token_ids=(1, 2, 3))
        contract.functions.balanceOfBatch.return_value.call = AsyncMock(return_value=[0, 2, 0])

        result = await oracle.holds(HOLDER.address)

        assert result.held is True
        assert result.matched_token_ids == [2]
        contract.functions.balanceOfBatch.assert_called_once_with(
            [HOLDER.address] * 3, [1, 2, 3]
        )

    @pytest.mark.asyncio
    async def test_all_zero_does_not_hold(self):
        oracle, _, contract = make_oracle(standard=ERC1155, token_ids=(1, 2))
        contract.functions.balanceOfBatch.return_value.call = AsyncMock(return_value=[0, 0])

        result = await oracle.holds_any(HOLDER.address, [1, 2])

        assert result.held is False
        assert result.matched_token_ids == []
        assert result.error is None

    @pytest.mark.asyncio
    async def test_length_mismatch_fails_closed(self):
        oracle, _, contract = make_oracle(standard=ERC1155, token_ids=(1, 2))
        contract.functions.balanceOfBatch.return_value.call = AsyncMock(return_value=[5])

        result = await oracle.holds(HOLDER.address)

        assert result.held is False
        assert result.error

    @pytest.mark.asyncio
    async def test_no_token_ids(self):
        oracle, _, contract = make_oracle(standard=ERC1155)

        result = await oracle.holds(HOLDER.address)

        assert result.held is False
        contract.functions.balanceOfBatch.assert_not_called()
