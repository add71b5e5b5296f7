"""Configuration management for Coffee Donation Tracker."""

import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass
import toml


SEPOLIA_CHAIN_ID = 11155111


@dataclass
class CoffeeConfig:
    """Wallet and target chain configuration."""

    wallet_url: str
    chain_id: int = SEPOLIA_CHAIN_ID
    chain_name: str = "Sepolia Testnet"
    rpc_url: str = "https://rpc.sepolia.org"
    explorer_url: str = "https://sepolia.etherscan.io/"
    currency_name: str = "SepoliaETH"
    currency_symbol: str = "ETH"
    currency_decimals: int = 18
    poll_interval: float = 4.0  # seconds between log/receipt polls
    contract_address: Optional[str] = None  # overrides the registry for chain_id

    @property
    def chain_id_hex(self) -> str:
        """Chain id in the 0x-prefixed form wallets expect."""
        return hex(self.chain_id)

    def add_chain_params(self) -> dict:
        """Parameters for wallet_addEthereumChain."""
        return {
            "chainId": self.chain_id_hex,
            "chainName": self.chain_name,
            "rpcUrls": [self.rpc_url],
            "nativeCurrency": {
                "name": self.currency_name,
                "symbol": self.currency_symbol,
                "decimals": self.currency_decimals
            },
            "blockExplorerUrls": [self.explorer_url]
        }

    @classmethod
    def from_env(cls) -> "CoffeeConfig":
        """Load configuration from environment variables."""
        return cls(
            wallet_url=os.getenv("CDT_WALLET_URL", ""),
            chain_id=int(os.getenv("CDT_CHAIN_ID", str(SEPOLIA_CHAIN_ID))),
            chain_name=os.getenv("CDT_CHAIN_NAME", "Sepolia Testnet"),
            rpc_url=os.getenv("CDT_RPC_URL", "https://rpc.sepolia.org"),
            explorer_url=os.getenv("CDT_EXPLORER_URL", "https://sepolia.etherscan.io/"),
            currency_name=os.getenv("CDT_CURRENCY_NAME", "SepoliaETH"),
            currency_symbol=os.getenv("CDT_CURRENCY_SYMBOL", "ETH"),
            currency_decimals=int(os.getenv("CDT_CURRENCY_DECIMALS", "18")),
            poll_interval=float(os.getenv("CDT_POLL_INTERVAL", "4.0")),
            contract_address=os.getenv("CDT_CONTRACT_ADDRESS") or None
        )

    @classmethod
    def from_toml(cls, config_path: Path) -> "CoffeeConfig":
        """Load configuration from TOML file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        config_data = toml.load(config_path)
        wallet_config = config_data.get("wallet", {})
        chain_config = config_data.get("chain", {})

        return cls(
            wallet_url=wallet_config.get("url", ""),
            poll_interval=float(wallet_config.get("poll_interval", 4.0)),
            chain_id=int(chain_config.get("id", SEPOLIA_CHAIN_ID)),
            chain_name=chain_config.get("name", "Sepolia Testnet"),
            rpc_url=chain_config.get("rpc_url", "https://rpc.sepolia.org"),
            explorer_url=chain_config.get("explorer_url", "https://sepolia.etherscan.io/"),
            currency_name=chain_config.get("currency_name", "SepoliaETH"),
            currency_symbol=chain_config.get("currency_symbol", "ETH"),
            currency_decimals=int(chain_config.get("currency_decimals", 18)),
            contract_address=chain_config.get("contract_address") or None
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.wallet_url:
            errors.append("Wallet URL is required")

        if self.chain_id <= 0:
            errors.append(f"Invalid chain id: {self.chain_id}")

        if not self.rpc_url:
            errors.append("Chain RPC URL is required")

        if not self.chain_name:
            errors.append("Chain name is required")

        if self.currency_decimals < 0:
            errors.append(f"Invalid currency decimals: {self.currency_decimals}")

        if self.poll_interval <= 0:
            errors.append("Poll interval must be positive")

        if self.contract_address and (
            not self.contract_address.startswith("0x") or len(self.contract_address) != 42
        ):
            errors.append(f"Invalid contract address: {self.contract_address}")

        return errors

    def to_toml(self) -> dict:
        """Convert configuration to TOML-compatible dictionary."""
        chain = {
            "id": self.chain_id,
            "name": self.chain_name,
            "rpc_url": self.rpc_url,
            "explorer_url": self.explorer_url,
            "currency_name": self.currency_name,
            "currency_symbol": self.currency_symbol,
            "currency_decimals": self.currency_decimals
        }
        if self.contract_address:
            chain["contract_address"] = self.contract_address

        return {
            "wallet": {
                "url": self.wallet_url,
                "poll_interval": self.poll_interval
            },
            "chain": chain
        }


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".cdt" / "config.toml"


def ensure_config_dir() -> Path:
    """Ensure configuration directory exists and return its path."""
    config_dir = Path.home() / ".cdt"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def load_config() -> CoffeeConfig:
    """Load configuration from file or environment."""
    config_path = get_config_path()

    if config_path.exists():
        return CoffeeConfig.from_toml(config_path)

    # Fall back to environment variables
    return CoffeeConfig.from_env()


def save_config(config: CoffeeConfig) -> None:
    """Save configuration to file."""
    ensure_config_dir()
    config_path = get_config_path()

    with open(config_path, "w") as f:
        toml.dump(config.to_toml(), f)
