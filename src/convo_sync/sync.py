"""
Sync scheduler — polls the active chat's messages on a fixed interval.

One loop per scheduler. At most one poll is in flight; a tick that fires
while the previous poll is pending is skipped. Each poll is tagged with the
chat id and generation it was issued for and is discarded if either has
changed by the time it completes.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from convo_sync.errors import AuthError, ConvoError
from convo_sync.models.chat import Message
from convo_sync.state import ConversationState

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 2.0

FetchMessages = Callable[[str], Awaitable[list[Message]]]
OnUpdate = Callable[[str, list[Message]], None]


class SyncScheduler:
    def __init__(
        self,
        fetch: FetchMessages,
        state: ConversationState,
        interval_s: float = DEFAULT_POLL_INTERVAL_S,
        on_update: Optional[OnUpdate] = None,
    ):
        self._fetch = fetch
        self._state = state
        self._interval_s = interval_s
        self._on_update = on_update
        self._generation = 0
        self._chat_id: Optional[str] = None
        self._loop_task: Optional[asyncio.Task[None]] = None
        self._poll_task: Optional[asyncio.Task[None]] = None

    @property
    def chat_id(self) -> Optional[str]:
        return self._chat_id

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def start(self, chat_id: str) -> None:
        """Start polling `chat_id`, replacing any previous loop. Needs a running event loop."""
        self.cancel()
        self._chat_id = chat_id
        loop = asyncio.get_running_loop()
        self._loop_task = loop.create_task(self._run(chat_id, self._generation))
        logger.debug("Polling chat %s every %.1fs", chat_id, self._interval_s)

    def cancel(self) -> None:
        self._generation += 1
        self._chat_id = None
        current = asyncio.current_task() if self.running or self.polling else None
        for task in (self._loop_task, self._poll_task):
            if task is not None and not task.done() and task is not current:
                task.cancel()
        self._loop_task = None
        self._poll_task = None

    async def _run(self, chat_id: str, generation: int) -> None:
        while generation == self._generation:
            self._tick(chat_id, generation)
            await asyncio.sleep(self._interval_s)

    def _tick(self, chat_id: str, generation: int) -> None:
        if self.polling:
            logger.debug("Skipping tick for chat %s: previous poll still pending", chat_id)
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll(chat_id, generation))

    async def _poll(self, chat_id: str, generation: int) -> None:
        try:
            messages = await self._fetch(chat_id)
        except AuthError as e:
            logger.warning("Stopping sync for chat %s: %s", chat_id, e)
            if generation == self._generation:
                self.cancel()
            return
        except ConvoError as e:
            logger.warning("Poll for chat %s failed, retrying next tick: %s", chat_id, e)
            return

        if generation != self._generation or chat_id != self._state.active_chat_id:
            logger.debug("Discarding stale poll result for chat %s", chat_id)
            return
        if self._state.replace_messages(chat_id, messages) and self._on_update:
            self._on_update(chat_id, self._state.messages)
