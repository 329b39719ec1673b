"""
Wallet balance and allowance reads on Polygon
"""

from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from loguru import logger
from web3 import AsyncWeb3, Web3

from .config import Settings, get_settings, TradingConstants

MAX_UINT256 = 2 ** 256 - 1

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"}
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function"
    }
]


class ApprovalError(Exception):
    """Raised when an approve transaction is reverted"""


@dataclass
class BalanceInfo:
    address: str
    usdc: float
    matic: float


class BalanceChecker:
    """Free USDC capital, USDC allowances and gas balance for any address"""

    def __init__(self, settings: Optional[Settings] = None, w3: Optional[AsyncWeb3] = None):
        self.settings = settings or get_settings()
        self.w3 = w3 or AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(self.settings.rpc_url, request_kwargs={"timeout": 10})
        )
        self.usdc = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.settings.usdc_contract_address),
            abi=ERC20_ABI
        )

    async def get_usdc_balance(self, address: str) -> float:
        raw = await self.usdc.functions.balanceOf(Web3.to_checksum_address(address)).call()
        return raw / 10 ** TradingConstants.USDC_DECIMALS

    async def get_matic_balance(self, address: str) -> float:
        wei = await self.w3.eth.get_balance(Web3.to_checksum_address(address))
        return float(Web3.from_wei(wei, "ether"))

    async def check_balances(self, address: str) -> BalanceInfo:
        return BalanceInfo(
            address=address,
            usdc=await self.get_usdc_balance(address),
            matic=await self.get_matic_balance(address),
        )

    async def get_allowance(self, owner: str, spender: str) -> float:
        """USDC that ``spender`` may pull from ``owner``"""
        raw = await self.usdc.functions.allowance(
            Web3.to_checksum_address(owner),
            Web3.to_checksum_address(spender)
        ).call()
        return raw / 10 ** TradingConstants.USDC_DECIMALS

    async def has_sufficient_allowance(self, owner: str, spender: str, amount: float) -> bool:
        return await self.get_allowance(owner, spender) >= amount

    async def approve(
        self,
        private_key: str,
        spender: str,
        amount: Optional[float] = None
    ) -> str:
        """
        Approve ``spender`` to move USDC from the key's address

        Args:
            private_key: Key of the owning wallet; the transaction is sent from it
            spender: Contract allowed to pull USDC
            amount: USDC to approve, unlimited when None

        Returns:
            Transaction hash of the mined approval
        """
        account = Account.from_key(private_key)
        if amount is None:
            raw = MAX_UINT256
        elif amount < 0:
            raise ValueError("Allowance amount must be positive")
        else:
            raw = int(round(amount * 10 ** TradingConstants.USDC_DECIMALS))

        tx = await self.usdc.functions.approve(
            Web3.to_checksum_address(spender), raw
        ).build_transaction({
            "from": account.address,
            "nonce": await self.w3.eth.get_transaction_count(account.address),
            "chainId": self.settings.chain_id,
        })
        signed = account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info(f"Approval sent: {Web3.to_hex(tx_hash)}")

        receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=120)
        if receipt["status"] != 1:
            raise ApprovalError(f"Approval {Web3.to_hex(tx_hash)} reverted")
        return Web3.to_hex(tx_hash)
