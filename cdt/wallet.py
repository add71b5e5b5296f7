"""Wallet transport: EIP-1193 style requests over JSON-RPC."""

import asyncio
import itertools
import logging
from typing import Any, Optional, Protocol

import requests

from .config import CoffeeConfig
from .errors import WalletRequestError

logger = logging.getLogger(__name__)


class WalletProvider(Protocol):
    """Anything that answers EIP-1193 ``request`` calls."""

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        ...


class HTTPWallet:
    """Wallet reached through a JSON-RPC endpoint.

    The endpoint may be a wallet bridge or a development node with unlocked
    accounts; both answer the same ``eth_*`` and ``wallet_*`` methods.
    """

    def __init__(self, url: str, timeout: float = 30):
        """Initialize the transport for the wallet at ``url``."""
        self.url = url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"content-type": "application/json"})
        self._ids = itertools.count(1)

    def _call(self, method: str, params: Optional[list] = None) -> Any:
        """
        Make a blocking JSON-RPC call to the wallet.

        Args:
            method: RPC method name
            params: List of parameters

        Returns:
            Result from RPC call

        Raises:
            WalletRequestError: If the request fails or the wallet answers with an error
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or []
        }

        logger.debug("wallet request %s %s", method, payload["params"])
        try:
            response = self.session.post(
                self.url,
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.ConnectionError as e:
            raise WalletRequestError(f"Failed to connect to wallet at {self.url}: {e}")
        except requests.exceptions.Timeout:
            raise WalletRequestError(f"Wallet request {method} timed out")
        except requests.exceptions.RequestException as e:
            raise WalletRequestError(f"Wallet request {method} failed: {e}")

        try:
            data = response.json()
        except ValueError as e:
            raise WalletRequestError(f"Wallet returned an invalid response to {method}: {e}")
        if not isinstance(data, dict):
            raise WalletRequestError(f"Wallet returned an invalid response to {method}: {data!r}")

        if "error" in data and data["error"]:
            error = data["error"]
            if isinstance(error, dict):
                raise WalletRequestError(
                    error.get("message", str(error)),
                    code=error.get("code"),
                    data=error.get("data")
                )
            raise WalletRequestError(str(error))

        return data.get("result")

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """Send a request without blocking the event loop."""
        return await asyncio.to_thread(self._call, method, params)

    def test_connection(self) -> bool:
        """
        Test connection to the wallet.

        Returns:
            True if the wallet answers eth_chainId
        """
        try:
            self._call("eth_chainId")
            return True
        except WalletRequestError:
            return False

    def close(self) -> None:
        self.session.close()


def detect_wallet(config: CoffeeConfig) -> Optional[HTTPWallet]:
    """Return the configured wallet, or None when no wallet is set up."""
    if not config.wallet_url:
        logger.info("No wallet URL configured")
        return None
    return HTTPWallet(config.wallet_url)
