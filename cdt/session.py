"""Client session: wires wallet, contract, read model, events and donations."""

import logging
from pathlib import Path
from typing import Optional

from .config import CoffeeConfig
from .contract import CoffeeContract, bind
from .donate import DonationPipeline
from .errors import CoffeeError
from .events import Subscription, subscribe
from .models import ConnectionState, DonationDraft, Memo, ReadModel, TransactionReceipt
from .projection import Projection, Viewport, project
from .receipts import export_receipt
from .reconciler import NetworkReconciler
from .registry import ContractRegistry, default_registry
from .sync import MemoFeed, ReadModelSynchronizer
from .wallet import WalletProvider

logger = logging.getLogger(__name__)

CONTRACT_NOT_LOADED = "Contract is not loaded."
THANK_YOU_MESSAGE = "Thank you for believing in us. Together, we can create something amazing!"


class DonationSession:
    """State owned by one user session.

    Every public operation catches ``CoffeeError`` and turns it into a
    status message instead of raising.
    """

    def __init__(self, config: CoffeeConfig, wallet: Optional[WalletProvider],
                 registry: Optional[ContractRegistry] = None, listen: bool = True):
        self.config = config
        self.wallet = wallet
        self.registry = registry or default_registry(config)
        self.listen = listen

        self.connection = ConnectionState()
        self.handle: Optional[CoffeeContract] = None
        self.synchronizer = ReadModelSynchronizer()
        self.feed = MemoFeed()
        self.subscription: Optional[Subscription] = None
        self.draft = DonationDraft()
        self.pipeline = DonationPipeline(self._after_donation, poll_interval=config.poll_interval)

        self.donation_error: Optional[str] = None
        self.donation_success: Optional[str] = None

    @property
    def status_message(self) -> str:
        return self.connection.status_message

    @property
    def read_model(self) -> Optional[ReadModel]:
        return self.synchronizer.current

    @property
    def total_donations(self) -> int:
        return self.read_model.total_donations if self.read_model else 0

    @property
    def memos(self) -> list[Memo]:
        return self.feed.memos

    @property
    def last_receipt(self) -> Optional[TransactionReceipt]:
        return self.pipeline.last_receipt

    async def connect(self) -> bool:
        """Connect the wallet, bind the contract, load data and start listening."""
        reconciler = NetworkReconciler(self.wallet, self.config)
        try:
            connection = await reconciler.connect()
            handle = bind(connection.chain_id, connection.address, self.wallet, self.registry)
        except CoffeeError as e:
            logger.warning("Connection failed: %s", e)
            self.connection.status_message = str(e)
            return False

        self.connection = connection
        await self._replace_handle(handle)

        if not await self.refresh():
            return False
        self.connection.status_message = ""
        return True

    async def refresh(self) -> bool:
        """Reload balance, total and memos. Prior state is kept on failure."""
        if self.handle is None:
            self.connection.status_message = CONTRACT_NOT_LOADED
            return False
        try:
            await self._refresh(self.handle)
        except CoffeeError as e:
            logger.warning("Refresh failed: %s", e)
            self.connection.status_message = str(e)
            return False
        return True

    async def donate(self, draft: Optional[DonationDraft] = None) -> Optional[TransactionReceipt]:
        """Submit the draft. Returns the receipt, or None with ``donation_error`` set."""
        draft = draft or self.draft
        self.donation_error = None
        self.donation_success = None

        if self.handle is None:
            self.donation_error = CONTRACT_NOT_LOADED
            return None

        try:
            receipt = await self.pipeline.submit(self.handle, draft)
        except CoffeeError as e:
            self.donation_error = f"Transaction failed: {e}"
            return None

        self.donation_success = THANK_YOU_MESSAGE
        return receipt

    async def on_chain_changed(self, chain_id: int) -> bool:
        """Drop signer data for the old chain and reconnect."""
        logger.info("Wallet moved to chain %s", chain_id)
        self.close()
        self.handle = None
        self.connection.invalidate()
        self.connection.chain_id = chain_id
        return await self.connect()

    def project(self, viewport: Viewport) -> Projection:
        return project(self.feed.memos, viewport)

    def export_receipt(self, directory: Path) -> Optional[Path]:
        """Write the last confirmed receipt to ``directory``."""
        if self.last_receipt is None:
            return None
        path = export_receipt(self.last_receipt, directory)
        logger.info("Receipt written to %s", path)
        return path

    def close(self) -> None:
        if self.subscription is not None:
            self.subscription.cancel()
            self.subscription = None

    async def _replace_handle(self, handle: CoffeeContract) -> None:
        self.close()
        self.handle = handle
        if self.listen:
            try:
                self.subscription = await subscribe(handle, self._on_memo, self.config.poll_interval)
            except CoffeeError as e:
                logger.warning("Could not subscribe to NewMemo: %s", e)

    async def _refresh(self, handle: CoffeeContract) -> ReadModel:
        snapshot = await self.synchronizer.refresh(handle, handle.signer)
        self.connection.address = handle.signer
        self.connection.balance = snapshot.balance
        self.feed.merge_snapshot(snapshot.memos)
        return snapshot

    async def _after_donation(self, handle: CoffeeContract) -> None:
        # Signer data is replaced only by a refresh that succeeds.
        try:
            await self._refresh(handle)
        except CoffeeError as e:
            logger.warning("Refresh after donation failed: %s", e)
            self.connection.status_message = str(e)

    def _on_memo(self, memo: Memo) -> None:
        if self.feed.append(memo):
            logger.info("New memo from %s", memo.display_name)
