# cexarb/notifier.py
import asyncio
import logging
from typing import Optional

import aiohttp

from .config import NotificationConfig
from .errors import NotificationDeliveryFailed

TELEGRAM_API = "https://api.telegram.org"


class NullNotifier:
    """Used when notifications are disabled."""

    async def start(self):
        pass

    def notify(self, message: str):
        pass

    async def close(self):
        pass


class TelegramNotifier:
    """
    Fire-and-forget Telegram delivery.
    `notify` only enqueues; a background worker posts the messages so a slow
    or failing chat endpoint never stalls the trading loop.
    """
    def __init__(self, config: NotificationConfig, logger: logging.Logger,
                 session: Optional[aiohttp.ClientSession] = None):
        self.cfg = config
        self.logger = logger
        self._session = session
        self._owns_session = session is None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker_task: Optional[asyncio.Task] = None

    @property
    def url(self) -> str:
        return f"{TELEGRAM_API}/bot{self.cfg.bot_token}/sendMessage"

    async def start(self):
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.cfg.timeout_seconds)
            )
        self._worker_task = asyncio.create_task(self._sender_worker())

    def notify(self, message: str):
        self._queue.put_nowait(message)

    async def send(self, message: str):
        """Delivers one message. Raises NotificationDeliveryFailed."""
        payload = {"chat_id": self.cfg.chat_id, "text": message}
        try:
            async with self._session.post(self.url, json=payload) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise NotificationDeliveryFailed(
                        f"Telegram returned HTTP {resp.status}", {"body": body}
                    )
        except aiohttp.ClientError as e:
            raise NotificationDeliveryFailed(f"Telegram request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise NotificationDeliveryFailed("Telegram request timed out") from e

    async def _sender_worker(self):
        """
        Background consumer that delivers queued messages.
        """
        while True:
            message = await self._queue.get()
            try:
                await self.send(message)
            except NotificationDeliveryFailed as e:
                self.logger.error(f"❌ Error sending Telegram message: {e} {e.details or ''}")
            except Exception as e:
                self.logger.error(f"❌ Error sending Telegram message: {e!r}")
            finally:
                self._queue.task_done()

    async def drain(self, timeout: Optional[float] = None):
        """Waits until every queued message has been attempted, at most `timeout` seconds."""
        if self._worker_task is None or self._worker_task.done():
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"⚠️ {self._queue.qsize()} Telegram message(s) not delivered before shutdown")

    async def close(self):
        if self._worker_task is not None:
            await self.drain(self.cfg.timeout_seconds)
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


def build_notifier(config: NotificationConfig, logger: logging.Logger):
    if config.enabled and config.bot_token and config.chat_id:
        return TelegramNotifier(config, logger)
    if config.enabled:
        logger.warning("Telegram notifications enabled but bot token or chat id is missing; disabling.")
    return NullNotifier()
