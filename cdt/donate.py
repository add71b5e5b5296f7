"""Donation submission and confirmation."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, Optional

from web3 import Web3

from .contract import CoffeeContract
from .errors import (
    CoffeeError,
    InsufficientFundsError,
    RpcError,
    SubmissionInProgressError,
    ValidationError,
)
from .models import DonationDraft, TransactionReceipt, TransactionStatus

logger = logging.getLogger(__name__)

MAX_ETHER_DECIMALS = 18


def parse_donation_amount(amount: str) -> int:
    """
    Convert a decimal ether amount to wei.

    Raises:
        ValidationError: If the amount is not a positive decimal with at most 18 places
    """
    text = (amount or "").strip()
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValidationError(f"Donation amount must be a number, got {amount!r}")

    if not value.is_finite():
        raise ValidationError(f"Donation amount must be a number, got {amount!r}")
    if value <= 0:
        raise ValidationError("Donation amount must be greater than zero")
    if value.normalize().as_tuple().exponent < -MAX_ETHER_DECIMALS:
        raise ValidationError(f"Donation amount has more than {MAX_ETHER_DECIMALS} decimal places")

    return Web3.to_wei(value, "ether")


class DonationPipeline:
    """Runs one donation through validation, broadcast and confirmation.

    ``on_confirmed`` is awaited exactly once per confirmed donation and is
    expected to refresh the read model.
    """

    def __init__(self, on_confirmed: Callable[[CoffeeContract], Awaitable[None]],
                 poll_interval: float = 4.0):
        self.on_confirmed = on_confirmed
        self.poll_interval = poll_interval
        self.state = TransactionStatus.IDLE
        self.failure: Optional[CoffeeError] = None
        self.last_receipt: Optional[TransactionReceipt] = None
        self._in_flight: set[int] = set()

    def in_flight(self, draft: DonationDraft) -> bool:
        return id(draft) in self._in_flight

    async def submit(self, handle: CoffeeContract, draft: DonationDraft) -> TransactionReceipt:
        """
        Submit a donation for ``draft`` and wait for it to be mined.

        The draft is reset only after confirmation. On failure it is left as is.

        Raises:
            SubmissionInProgressError: If the same draft is already being submitted
            ValidationError: If the amount is not a positive decimal
            InsufficientFundsError: If the signer cannot pay the amount
            UserRejectedError: If the user declines to sign
            RpcError: If broadcast fails or the transaction reverts
        """
        if self.in_flight(draft):
            raise SubmissionInProgressError()

        self._in_flight.add(id(draft))
        self.failure = None
        try:
            receipt = await self._submit(handle, draft)
        except CoffeeError as e:
            self.state = TransactionStatus.FAILED
            self.failure = e
            logger.warning("Donation failed: %s", e)
            raise
        finally:
            self._in_flight.discard(id(draft))

        self.last_receipt = receipt
        draft.reset()
        await self.on_confirmed(handle)
        return receipt

    async def _submit(self, handle: CoffeeContract, draft: DonationDraft) -> TransactionReceipt:
        self.state = TransactionStatus.VALIDATING
        value = parse_donation_amount(draft.amount)

        balance = await handle.get_balance(handle.signer)
        if balance < value:
            raise InsufficientFundsError(
                f"Balance of {Web3.from_wei(balance, 'ether')} ETH cannot cover "
                f"a donation of {draft.amount.strip()} ETH"
            )

        self.state = TransactionStatus.SUBMITTED
        tx_hash = await handle.buy_coffee(draft.name, draft.message, value)

        raw = await handle.wait_for_receipt(tx_hash, self.poll_interval)
        receipt = TransactionReceipt.from_rpc(raw)
        if not receipt.transaction_hash:
            receipt.transaction_hash = tx_hash

        if not receipt.succeeded:
            reason = raw.get("revertReason")
            if reason:
                raise RpcError(f"Transaction {tx_hash} reverted: {reason}", data=raw)
            raise RpcError(f"Transaction {tx_hash} reverted", data=raw)

        self.state = TransactionStatus.CONFIRMED
        logger.info("Donation %s confirmed in block %s", tx_hash, receipt.block_number)
        return receipt
