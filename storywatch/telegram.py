import asyncio
from typing import Awaitable, Callable, Protocol

import httpx
from loguru import logger


class ChatTransport(Protocol):
    async def send(self, recipient: str, text: str) -> None: ...


class TelegramTransport:
    """Minimal Telegram Bot API client used for outbound messages and polling."""

    def __init__(
        self,
        token: str = None,
        base_url: str = "https://api.telegram.org",
        send_timeout: float = 12.0,
        client: httpx.AsyncClient = None,
    ):
        if not token:
            logger.error("TELEGRAM__TOKEN is required")
            raise ValueError("TELEGRAM__TOKEN is required")
        self.base_url = f"{base_url.rstrip('/')}/bot{token}"
        self.send_timeout = send_timeout
        self.client = client or httpx.AsyncClient()

    async def close(self):
        await self.client.aclose()

    async def _call(self, method: str, payload: dict, timeout: float) -> dict:
        response = await self.client.post(
            f"{self.base_url}/{method}", json=payload, timeout=timeout
        )
        response.raise_for_status()
        data = response.json()
        if not data.get("ok", False):
            raise RuntimeError(
                f"Telegram {method} failed: {data.get('description', 'unknown error')}"
            )
        return data

    async def send(self, recipient: str, text: str) -> None:
        await self._call(
            "sendMessage",
            {"chat_id": recipient, "text": text, "parse_mode": "Markdown"},
            timeout=self.send_timeout,
        )

    async def get_updates(self, offset: int | None = None, timeout: int = 30) -> list[dict]:
        payload = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset
        # the HTTP timeout has to outlast the long poll
        data = await self._call("getUpdates", payload, timeout=timeout + 10)
        return data.get("result", [])


class TelegramPoller:
    def __init__(
        self,
        transport: TelegramTransport,
        handler: Callable[[str, str], Awaitable[None]],
        poll_timeout: int = 30,
        retry_delay: float = 5.0,
    ):
        self.transport = transport
        self.handler = handler
        self.poll_timeout = poll_timeout
        self.retry_delay = retry_delay
        self.offset = None

    async def poll_once(self) -> int:
        updates = await self.transport.get_updates(self.offset, self.poll_timeout)
        for update in updates:
            self.offset = update["update_id"] + 1
            message = update.get("message") or {}
            text = message.get("text")
            chat = message.get("chat") or {}
            if text is None or "id" not in chat:
                continue
            try:
                await self.handler(str(chat["id"]), text)
            except Exception as e:
                logger.error(f"Error handling message from {chat['id']}: {e}")
        return len(updates)

    async def poll_forever(self):
        logger.info("Starting Telegram polling")
        while True:
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Error polling Telegram updates: {e}")
                await asyncio.sleep(self.retry_delay)
