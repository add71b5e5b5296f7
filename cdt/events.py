"""Live subscription to NewMemo events."""

import asyncio
import logging
from typing import Callable, Optional

from .contract import CoffeeContract
from .errors import CoffeeError, RpcError
from .models import Memo, parse_amount

logger = logging.getLogger(__name__)


def _log_position(log: dict) -> tuple:
    return (parse_amount(log.get("blockNumber")) or 0, parse_amount(log.get("logIndex")) or 0)


class Subscription:
    """Polls the contract for NewMemo logs and hands each memo to a callback.

    Decoded memos pass through a queue and are delivered one at a time in
    chain order. After ``cancel()`` no further callbacks run.
    """

    def __init__(self, handle: CoffeeContract, on_memo: Callable[[Memo], None],
                 poll_interval: float = 4.0):
        self.handle = handle
        self.on_memo = on_memo
        self.poll_interval = poll_interval
        self.next_block: Optional[int] = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    async def start(self, background: bool = True) -> None:
        """Register from the block after the current head and start polling.

        With ``background=False`` the caller drives ``poll_once`` and ``deliver``.
        """
        self.next_block = await self.handle.block_number() + 1
        self._active = True
        if background:
            self._task = asyncio.create_task(self._run())
        logger.info("Listening for NewMemo on %s from block %s", self.handle.address, self.next_block)

    def cancel(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if not self._active and self._task is None:
            return
        self._active = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        logger.info("Stopped listening for NewMemo on %s", self.handle.address)

    async def poll_once(self) -> int:
        """Fetch new logs into the queue. Returns the number of memos queued.

        Logs that do not decode as NewMemo are skipped. The block cursor moves
        past the range only once its logs are queued.
        """
        if not self._active:
            return 0
        head = await self.handle.block_number()
        if head < self.next_block:
            return 0

        logs = await self.handle.new_memo_logs(self.next_block, head)
        queued = 0
        for log in sorted(logs, key=_log_position):
            try:
                memo = self.handle.decode_new_memo(log)
            except RpcError as e:
                logger.warning("Skipping NewMemo log: %s", e)
                continue
            self._queue.put_nowait(memo)
            queued += 1
        self.next_block = head + 1
        return queued

    def deliver(self) -> int:
        """Run the callback for every queued memo. Returns how many were delivered."""
        delivered = 0
        while self._active and not self._queue.empty():
            memo = self._queue.get_nowait()
            self.on_memo(memo)
            delivered += 1
        return delivered

    async def _run(self) -> None:
        try:
            while self._active:
                try:
                    await self.poll_once()
                except CoffeeError as e:
                    logger.warning("Polling NewMemo logs failed: %s", e)
                self.deliver()
                await asyncio.sleep(self.poll_interval)
        except Exception:
            logger.exception("NewMemo listener on %s stopped", self.handle.address)
            self._active = False


async def subscribe(handle: CoffeeContract, on_memo: Callable[[Memo], None],
                    poll_interval: float = 4.0) -> Subscription:
    """Start a NewMemo subscription on ``handle``."""
    subscription = Subscription(handle, on_memo, poll_interval)
    await subscription.start()
    return subscription
