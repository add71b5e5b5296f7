"""Data models for Coffee Donation Tracker."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from web3 import Web3


DEFAULT_DONATION_AMOUNT = "0.001"


@dataclass(frozen=True)
class Memo:
    """One donation record as stored by the contract."""

    name: str
    message: str
    timestamp: int
    from_address: str
    amount: Optional[int] = None

    @classmethod
    def from_values(cls, name, message, timestamp, from_address, amount) -> "Memo":
        """Build a memo from decoded contract values."""
        return cls(
            name=name or "",
            message=message or "",
            timestamp=int(timestamp or 0),
            from_address=from_address,
            amount=parse_amount(amount)
        )

    @property
    def display_name(self) -> str:
        """Name shown to readers. Empty names are kept empty in storage."""
        return self.name or "Anonymous"

    @property
    def amount_ether(self) -> Decimal:
        """Donated amount in ether. Missing amounts count as zero."""
        return Web3.from_wei(self.amount or 0, "ether")

    @property
    def donated_at(self) -> datetime:
        """Convert chain time to datetime."""
        return datetime.fromtimestamp(self.timestamp)

    @property
    def key(self) -> tuple:
        """Identity of the underlying donation."""
        return (self.from_address.lower(), self.timestamp, self.name, self.message, self.amount)

    def to_dict(self) -> dict:
        """Convert memo to dictionary."""
        return {
            "name": self.name,
            "message": self.message,
            "timestamp": self.timestamp,
            "from": self.from_address,
            "amount": self.amount
        }


def parse_amount(value: Any) -> Optional[int]:
    """Coerce a wei amount from the wire. Returns None when unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        text = str(value).strip()
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(Decimal(text))
    except (ArithmeticError, ValueError):
        return None


@dataclass
class ConnectionState:
    """Derived wallet connection state for the current session."""

    address: Optional[str] = None
    chain_id: Optional[int] = None
    balance: Optional[int] = None
    status_message: str = ""

    @property
    def connected(self) -> bool:
        return self.address is not None and self.chain_id is not None

    @property
    def balance_ether(self) -> Decimal:
        return Web3.from_wei(self.balance or 0, "ether")

    def invalidate(self) -> None:
        """Forget signer data after a chain change."""
        self.address = None
        self.balance = None


@dataclass
class DonationDraft:
    """Transient donation form state."""

    name: str = ""
    message: str = ""
    amount: str = DEFAULT_DONATION_AMOUNT

    def reset(self) -> None:
        self.name = ""
        self.message = ""
        self.amount = DEFAULT_DONATION_AMOUNT


class TransactionStatus(Enum):
    """Donation lifecycle states."""

    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class TransactionReceipt:
    """Receipt of a confirmed donation transaction."""

    transaction_hash: str
    status: TransactionStatus
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    gas_used: Optional[int] = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_rpc(cls, receipt: dict) -> "TransactionReceipt":
        """Build a receipt from an eth_getTransactionReceipt result."""
        ok = parse_amount(receipt.get("status")) == 1
        return cls(
            transaction_hash=receipt.get("transactionHash", ""),
            status=TransactionStatus.CONFIRMED if ok else TransactionStatus.FAILED,
            block_number=parse_amount(receipt.get("blockNumber")),
            block_hash=receipt.get("blockHash"),
            from_address=receipt.get("from"),
            to_address=receipt.get("to"),
            gas_used=parse_amount(receipt.get("gasUsed")),
            raw=dict(receipt)
        )

    @property
    def succeeded(self) -> bool:
        return self.status == TransactionStatus.CONFIRMED

    def to_dict(self) -> dict:
        """Convert receipt to dictionary."""
        return {
            "transactionHash": self.transaction_hash,
            "status": self.status.value,
            "blockNumber": self.block_number,
            "blockHash": self.block_hash,
            "from": self.from_address,
            "to": self.to_address,
            "gasUsed": self.gas_used,
            "receipt": self.raw
        }


@dataclass
class ReadModel:
    """Snapshot of balance, donation total and memos."""

    balance: int
    total_donations: int
    memos: list[Memo]
    last_updated: datetime

    @property
    def total_donations_ether(self) -> Decimal:
        return Web3.from_wei(self.total_donations, "ether")

    def to_dict(self) -> dict:
        """Convert snapshot to dictionary."""
        return {
            "balance": self.balance,
            "total_donations": self.total_donations,
            "last_updated": self.last_updated.isoformat(),
            "memos": [memo.to_dict() for memo in self.memos]
        }
