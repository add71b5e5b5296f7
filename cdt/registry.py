"""Deployed BuyMeACoffee contracts by chain id."""

from dataclasses import dataclass
from typing import Optional

from eth_utils import to_checksum_address

from .config import SEPOLIA_CHAIN_ID
from .errors import UnsupportedChainError


MEMO_COMPONENTS = [
    {"internalType": "string", "name": "name", "type": "string"},
    {"internalType": "string", "name": "message", "type": "string"},
    {"internalType": "uint256", "name": "timestamp", "type": "uint256"},
    {"internalType": "address", "name": "from", "type": "address"},
    {"internalType": "uint256", "name": "amount", "type": "uint256"},
]

BUY_ME_A_COFFEE_ABI = [
    {
        "inputs": [
            {"internalType": "string", "name": "_name", "type": "string"},
            {"internalType": "string", "name": "_message", "type": "string"},
        ],
        "name": "buyCoffee",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "totalDonations",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getMemos",
        "outputs": [
            {
                "components": MEMO_COMPONENTS,
                "internalType": "struct BuyMeACoffee.Memo[]",
                "name": "",
                "type": "tuple[]",
            }
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "string", "name": "name", "type": "string"},
            {"indexed": False, "internalType": "string", "name": "message", "type": "string"},
            {"indexed": False, "internalType": "uint256", "name": "timestamp", "type": "uint256"},
            {"indexed": True, "internalType": "address", "name": "from", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "NewMemo",
        "type": "event",
    },
]


@dataclass(frozen=True)
class ContractDeployment:
    """Address and interface of one deployed contract."""

    address: str
    abi: list


class ContractRegistry:
    """Static mapping of chain id to the donation contract deployed there."""

    def __init__(self, deployments: Optional[dict[int, ContractDeployment]] = None):
        self._deployments = dict(deployments or {})

    def register(self, chain_id: int, address: str, abi: Optional[list] = None) -> None:
        self._deployments[chain_id] = ContractDeployment(
            address=to_checksum_address(address),
            abi=abi or BUY_ME_A_COFFEE_ABI
        )

    def lookup(self, chain_id: int) -> ContractDeployment:
        """
        Get the deployment for a chain.

        Raises:
            UnsupportedChainError: If nothing is deployed on the chain
        """
        try:
            return self._deployments[chain_id]
        except KeyError:
            raise UnsupportedChainError(chain_id) from None

    def __contains__(self, chain_id: int) -> bool:
        return chain_id in self._deployments


DEPLOYED_CONTRACTS = {
    SEPOLIA_CHAIN_ID: ContractDeployment(
        address="0x2F3B3bC31FEc78A4378E6ff18B8F9F50667d45df",
        abi=BUY_ME_A_COFFEE_ABI
    ),
}


def default_registry(config=None) -> ContractRegistry:
    """Registry of known deployments, with the configured override applied."""
    registry = ContractRegistry(DEPLOYED_CONTRACTS)
    if config is not None and config.contract_address:
        registry.register(config.chain_id, config.contract_address)
    return registry
