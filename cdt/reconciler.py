"""Wallet connection and target chain reconciliation."""

import logging
from enum import Enum
from typing import Optional

from .config import CoffeeConfig
from .errors import (
    NetworkSwitchError,
    NoWalletError,
    RpcError,
    UNRECOGNIZED_CHAIN_CODE,
    UserRejectedError,
    WalletRequestError,
    is_user_rejection,
)
from .models import ConnectionState, parse_amount
from .wallet import WalletProvider

logger = logging.getLogger(__name__)


class SwitchOutcome(Enum):
    """Result of asking the wallet to change chain."""

    SWITCHED = "switched"
    UNRECOGNIZED_CHAIN = "unrecognized_chain"


class NetworkReconciler:
    """Connects to the injected wallet and moves it to the target chain."""

    def __init__(self, wallet: Optional[WalletProvider], config: CoffeeConfig):
        self.wallet = wallet
        self.config = config

    async def connect(self) -> ConnectionState:
        """
        Request account access and make sure the wallet is on the target chain.

        Returns:
            ConnectionState with the signer address and chain id

        Raises:
            NoWalletError: If no wallet is injected
            UserRejectedError: If account access is refused
            NetworkSwitchError: If the wallet cannot be moved to the target chain
        """
        if self.wallet is None:
            raise NoWalletError()

        accounts = await self.request_accounts()
        chain_id = await self.read_chain_id()

        if chain_id != self.config.chain_id:
            logger.info("Wallet is on chain %s, switching to %s", chain_id, self.config.chain_id)
            outcome = await self.switch_chain()
            if outcome == SwitchOutcome.UNRECOGNIZED_CHAIN:
                await self.add_chain()

            chain_id = await self.read_chain_id()
            if chain_id != self.config.chain_id:
                raise NetworkSwitchError(
                    f"Wallet is still on chain {chain_id} after switching to {self.config.chain_name}"
                )

        address = accounts[0]
        logger.info("Connected %s on chain %s", address, chain_id)
        return ConnectionState(address=address, chain_id=chain_id)

    async def request_accounts(self) -> list[str]:
        try:
            accounts = await self.wallet.request("eth_requestAccounts", [])
        except WalletRequestError as e:
            if is_user_rejection(e):
                raise UserRejectedError(f"Account access was rejected: {e}")
            raise RpcError.from_wallet_error(e, "Account request failed")

        if not accounts:
            raise UserRejectedError("The wallet did not grant access to any account")
        return list(accounts)

    async def read_chain_id(self) -> int:
        try:
            result = await self.wallet.request("eth_chainId", [])
        except WalletRequestError as e:
            raise RpcError.from_wallet_error(e, "Could not read chain id")

        chain_id = parse_amount(result)
        if chain_id is None:
            raise RpcError(f"Wallet returned an invalid chain id: {result!r}")
        return chain_id

    async def switch_chain(self) -> SwitchOutcome:
        """
        Ask the wallet to switch to the target chain.

        Returns:
            SwitchOutcome.UNRECOGNIZED_CHAIN when the wallet does not know the chain

        Raises:
            NetworkSwitchError: For any other failure, a declined switch included
        """
        try:
            await self.wallet.request(
                "wallet_switchEthereumChain",
                [{"chainId": self.config.chain_id_hex}]
            )
        except WalletRequestError as e:
            if e.code == UNRECOGNIZED_CHAIN_CODE:
                logger.info("Wallet does not know chain %s", self.config.chain_id)
                return SwitchOutcome.UNRECOGNIZED_CHAIN
            if is_user_rejection(e):
                raise NetworkSwitchError(f"Network switch was rejected: {e}")
            raise NetworkSwitchError(f"Could not switch to {self.config.chain_name}: {e}")
        return SwitchOutcome.SWITCHED

    async def add_chain(self) -> None:
        """Ask the wallet to add the target chain. Wallets switch to it after adding."""
        logger.info("Adding chain %s to wallet", self.config.chain_name)
        try:
            await self.wallet.request(
                "wallet_addEthereumChain",
                [self.config.add_chain_params()]
            )
        except WalletRequestError as e:
            if is_user_rejection(e):
                raise NetworkSwitchError(f"Adding {self.config.chain_name} was rejected: {e}")
            raise NetworkSwitchError(f"Could not add {self.config.chain_name}: {e}")
