"""Binding to the BuyMeACoffee contract through the wallet."""

import asyncio
import logging
from typing import Any, Optional

from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, encode_hex, event_abi_to_log_topic, get_abi_output_types, to_checksum_address
from web3 import Web3
from web3.exceptions import Web3Exception

from .errors import (
    InsufficientFundsError,
    RpcError,
    UserRejectedError,
    WalletRequestError,
    is_insufficient_funds,
    is_user_rejection,
)
from .models import Memo, parse_amount
from .registry import ContractRegistry
from .wallet import WalletProvider

logger = logging.getLogger(__name__)

# Encodes and decodes only. Requests go through the wallet.
w3 = Web3()


class CoffeeContract:
    """Handle bound to a deployed contract and the signer that pays for donations."""

    def __init__(self, wallet: WalletProvider, address: str, abi: list,
                 signer: str, chain_id: Optional[int] = None):
        self.wallet = wallet
        self.address = to_checksum_address(address)
        self.signer = signer
        self.chain_id = chain_id
        self.contract = w3.eth.contract(address=self.address, abi=abi)
        self._new_memo = self.contract.events.NewMemo()

    def __repr__(self) -> str:
        return f"CoffeeContract({self.address} on chain {self.chain_id} as {self.signer})"

    async def _request(self, method: str, params: list, context: str) -> Any:
        try:
            return await self.wallet.request(method, params)
        except WalletRequestError as e:
            raise RpcError.from_wallet_error(e, context)

    def encode_call(self, name: str, *args) -> str:
        """ABI encode a call to function ``name``."""
        return self.contract.encode_abi(name, args=list(args))

    async def call(self, name: str, *args) -> tuple:
        """Run a read-only call and decode its outputs."""
        data = await self._request(
            "eth_call",
            [{"from": self.signer, "to": self.address, "data": self.encode_call(name, *args)}, "latest"],
            f"{name}() call failed"
        )
        types = get_abi_output_types(self.contract.get_function_by_name(name).abi)
        try:
            return w3.codec.decode(types, decode_hex(data or "0x"))
        except (DecodingError, ValueError) as e:
            raise RpcError(f"Could not decode {name}() result: {e}")

    async def total_donations(self) -> int:
        (total,) = await self.call("totalDonations")
        return total

    async def get_memos(self) -> list[Memo]:
        (rows,) = await self.call("getMemos")
        return [
            Memo.from_values(name, message, timestamp, to_checksum_address(sender), amount)
            for name, message, timestamp, sender, amount in rows
        ]

    async def get_balance(self, address: str) -> int:
        result = await self._request("eth_getBalance", [address, "latest"], "Balance request failed")
        balance = parse_amount(result)
        if balance is None:
            raise RpcError(f"Wallet returned an invalid balance: {result!r}")
        return balance

    async def block_number(self) -> int:
        result = await self._request("eth_blockNumber", [], "Block number request failed")
        return parse_amount(result) or 0

    async def buy_coffee(self, name: str, message: str, value: int) -> str:
        """
        Send a donation from the signer.

        Returns:
            Transaction hash

        Raises:
            UserRejectedError: If the user declines to sign
            InsufficientFundsError: If the wallet reports the signer cannot pay
            RpcError: For any other broadcast failure
        """
        tx = {
            "from": self.signer,
            "to": self.address,
            "value": hex(value),
            "data": self.encode_call("buyCoffee", name, message)
        }
        try:
            tx_hash = await self.wallet.request("eth_sendTransaction", [tx])
        except WalletRequestError as e:
            if is_user_rejection(e):
                raise UserRejectedError(f"Transaction was rejected: {e}")
            if is_insufficient_funds(e):
                raise InsufficientFundsError(f"Insufficient funds for this donation: {e}")
            raise RpcError.from_wallet_error(e, "Transaction failed")

        logger.info("Donation sent: %s", tx_hash)
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, poll_interval: float = 4.0) -> dict:
        """Poll the wallet until the transaction is included and return its receipt."""
        while True:
            receipt = await self._request(
                "eth_getTransactionReceipt", [tx_hash], "Receipt request failed"
            )
            if receipt:
                return receipt
            logger.debug("Waiting for %s to be included", tx_hash)
            await asyncio.sleep(poll_interval)

    @property
    def new_memo_topic(self) -> str:
        return encode_hex(event_abi_to_log_topic(self._new_memo.abi))

    async def new_memo_logs(self, from_block: int, to_block: int) -> list[dict]:
        """Fetch raw NewMemo logs emitted by this contract in a block range."""
        logs = await self._request(
            "eth_getLogs",
            [{
                "fromBlock": hex(from_block),
                "toBlock": hex(to_block),
                "address": self.address,
                "topics": [self.new_memo_topic]
            }],
            "Log request failed"
        )
        return logs or []

    def decode_new_memo(self, log: dict) -> Memo:
        """
        Decode a NewMemo log into a Memo.

        Raises:
            RpcError: If the log does not match the NewMemo event
        """
        try:
            event = self._new_memo.process_log(log)
        except (Web3Exception, DecodingError, KeyError, ValueError) as e:
            raise RpcError(f"Could not decode NewMemo log: {e!r}", data=log)

        args = event["args"]
        return Memo.from_values(
            args["name"],
            args["message"],
            args["timestamp"],
            to_checksum_address(args["from"]),
            args["amount"]
        )


def bind(chain_id: int, signer: str, wallet: WalletProvider,
         registry: ContractRegistry) -> CoffeeContract:
    """
    Bind the donation contract registered for ``chain_id`` to the signer.

    Raises:
        UnsupportedChainError: If the registry has no contract for the chain
    """
    deployment = registry.lookup(chain_id)
    logger.info("Binding contract %s on chain %s", deployment.address, chain_id)
    return CoffeeContract(wallet, deployment.address, deployment.abi, signer, chain_id=chain_id)
