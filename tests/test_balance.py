"""
Tests for on-chain balance and allowance reads.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from web3 import Web3

from copybot.balance import MAX_UINT256, ApprovalError, BalanceChecker
from copybot.config import ContractAddresses
from tests.conftest import BOT

TEST_KEY = "0x" + "11" * 32


@pytest.fixture
def w3():
    web3 = MagicMock()
    functions = web3.eth.contract.return_value.functions
    functions.balanceOf.return_value.call = AsyncMock(return_value=12_500_000)
    functions.allowance.return_value.call = AsyncMock(return_value=250_000_000)
    functions.approve.return_value.build_transaction = AsyncMock(return_value={
        "to": Web3.to_checksum_address(ContractAddresses.USDC),
        "data": "0x095ea7b3",
        "value": 0,
        "gas": 60_000,
        "gasPrice": 30 * 10 ** 9,
        "nonce": 7,
        "chainId": 137,
    })
    web3.eth.get_balance = AsyncMock(return_value=2 * 10 ** 18)
    web3.eth.get_transaction_count = AsyncMock(return_value=7)
    web3.eth.send_raw_transaction = AsyncMock(return_value=b"\xab" * 32)
    web3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 1})
    return web3


class TestBalanceChecker:
    """USDC uses 6 decimals, MATIC is read in ether units."""

    @pytest.mark.asyncio
    async def test_usdc_balance(self, settings, w3):
        assert await BalanceChecker(settings, w3=w3).get_usdc_balance(BOT) == 12.5

    @pytest.mark.asyncio
    async def test_check_balances(self, settings, w3):
        info = await BalanceChecker(settings, w3=w3).check_balances(BOT)

        assert info.address == BOT
        assert info.usdc == 12.5
        assert info.matic == 2.0


class TestAllowance:
    """USDC allowance reads and approvals."""

    @pytest.mark.asyncio
    async def test_get_allowance(self, settings, w3):
        allowance = await BalanceChecker(settings, w3=w3).get_allowance(
            BOT, ContractAddresses.CTF_EXCHANGE
        )

        assert allowance == 250.0
        owner, spender = w3.eth.contract.return_value.functions.allowance.call_args.args
        assert owner == Web3.to_checksum_address(BOT)
        assert spender == Web3.to_checksum_address(ContractAddresses.CTF_EXCHANGE)

    @pytest.mark.asyncio
    async def test_sufficient_allowance(self, settings, w3):
        checker = BalanceChecker(settings, w3=w3)

        assert await checker.has_sufficient_allowance(BOT, ContractAddresses.CTF_EXCHANGE, 250)
        assert not await checker.has_sufficient_allowance(BOT, ContractAddresses.CTF_EXCHANGE, 250.01)

    @pytest.mark.asyncio
    async def test_approve_unlimited(self, settings, w3):
        tx_hash = await BalanceChecker(settings, w3=w3).approve(
            TEST_KEY, ContractAddresses.CTF_EXCHANGE
        )

        assert tx_hash == "0x" + "ab" * 32
        approve = w3.eth.contract.return_value.functions.approve
        assert approve.call_args.args[1] == MAX_UINT256
        tx_params = approve.return_value.build_transaction.call_args.args[0]
        assert tx_params["nonce"] == 7
        assert tx_params["chainId"] == settings.chain_id
        w3.eth.send_raw_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_approve_amount_uses_usdc_decimals(self, settings, w3):
        await BalanceChecker(settings, w3=w3).approve(TEST_KEY, ContractAddresses.CTF_EXCHANGE, 250)

        approve = w3.eth.contract.return_value.functions.approve
        assert approve.call_args.args[1] == 250_000_000

    @pytest.mark.asyncio
    async def test_reverted_approval_raises(self, settings, w3):
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0}

        with pytest.raises(ApprovalError):
            await BalanceChecker(settings, w3=w3).approve(TEST_KEY, ContractAddresses.CTF_EXCHANGE, 10)

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self, settings, w3):
        with pytest.raises(ValueError):
            await BalanceChecker(settings, w3=w3).approve(TEST_KEY, ContractAddresses.CTF_EXCHANGE, -1)

        w3.eth.send_raw_transaction.assert_not_awaited()
