"""Read-model synchronization: balance, donation total and memo list."""

import asyncio
import logging
from collections import Counter
from datetime import datetime
from typing import Callable, Optional

from .contract import CoffeeContract
from .models import Memo, ReadModel

logger = logging.getLogger(__name__)


class MemoFeed:
    """Append-only memo list shared by refreshes and live events.

    Memos are never removed or changed once added. A donation seen both as an
    event and in a refreshed snapshot is kept once; identical donations are
    matched by count so repeated gifts are not collapsed.
    """

    def __init__(self):
        self._memos: list[Memo] = []
        self._listeners: list[Callable[[list[Memo]], None]] = []

    def __len__(self) -> int:
        return len(self._memos)

    def __iter__(self):
        return iter(list(self._memos))

    @property
    def memos(self) -> list[Memo]:
        """Copy of the current list."""
        return list(self._memos)

    def on_change(self, listener: Callable[[list[Memo]], None]) -> None:
        self._listeners.append(listener)

    def append(self, memo: Memo) -> bool:
        """Add a memo from the live event stream. Returns False if already present."""
        if any(existing.key == memo.key for existing in self._memos):
            logger.debug("Memo from %s already in feed", memo.from_address)
            return False
        self._memos.append(memo)
        self._notify()
        return True

    def merge_snapshot(self, memos: list[Memo]) -> int:
        """Append the snapshot entries not yet in the feed. Returns the number added."""
        seen = Counter(memo.key for memo in self._memos)
        added = 0
        for memo in memos:
            if seen[memo.key] > 0:
                seen[memo.key] -= 1
                continue
            self._memos.append(memo)
            added += 1
        if added:
            self._notify()
        return added

    def _notify(self) -> None:
        snapshot = self.memos
        for listener in self._listeners:
            listener(snapshot)


class ReadModelSynchronizer:
    """Fetches balance, total donations and memos as one snapshot."""

    def __init__(self):
        self.current: Optional[ReadModel] = None

    async def refresh(self, handle: CoffeeContract, address: str) -> ReadModel:
        """
        Read balance, donation total and memos concurrently.

        The three reads are not atomic with respect to each other. Either all of
        them succeed and ``current`` is replaced, or the error propagates and
        ``current`` is left as it was.

        Raises:
            RpcError: If any of the reads fails
        """
        logger.info("Refreshing read model for %s", address)
        balance, total, memos = await asyncio.gather(
            handle.get_balance(address),
            handle.total_donations(),
            handle.get_memos(),
        )

        snapshot = ReadModel(
            balance=balance,
            total_donations=total,
            memos=memos,
            last_updated=datetime.now()
        )
        self.current = snapshot
        return snapshot
