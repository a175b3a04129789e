from typing import Callable

from loguru import logger

from . import messages
from .datatypes import is_valid_validator_address
from .registry import RecipientRegistry
from .telegram import ChatTransport
from .validator_api import ValidatorAPI


class CommandHandler:
    """Handles the registration and status commands sent to the bot."""

    def __init__(
        self,
        registry: RecipientRegistry,
        transport: ChatTransport,
        validator_api: ValidatorAPI = None,
        is_active: Callable[[str], bool] = lambda address: True,
    ):
        self.registry = registry
        self.transport = transport
        self.validator_api = validator_api
        self.is_active = is_active

    async def handle(self, chat_id: str, text: str):
        command = text.strip().lower()
        address = await self.registry.get(chat_id)

        if command == "/start":
            if address:
                await self.transport.send(chat_id, messages.STARTED_CHECKING)
            else:
                await self.transport.send(chat_id, messages.PROMPT_VALIDATOR_ADDRESS)
            return

        if command == "/check":
            if address:
                await self.transport.send(chat_id, messages.CHECKING_VALIDATOR_STATUS)
                await self.send_status(chat_id, address)
            else:
                await self.transport.send(chat_id, messages.MISSING_VALIDATOR_ADDRESS)
            return

        if address:
            await self.transport.send(chat_id, messages.INVALID_ACTION_ERROR)
            return

        candidate = text.strip()
        if not is_valid_validator_address(candidate):
            logger.debug(f"Rejected address from chat {chat_id}: {candidate}")
            await self.transport.send(chat_id, messages.INVALID_VALIDATOR_ADDRESS)
            return

        await self.registry.register(chat_id, candidate)
        await self.transport.send(chat_id, messages.VALIDATOR_ADDRESS_SAVED)

    async def send_status(self, chat_id: str, address: str):
        if self.validator_api is None:
            await self.transport.send(chat_id, messages.STATUS_UNAVAILABLE)
            return
        try:
            status = await self.validator_api.get_validator_status(
                address, is_active=self.is_active(address)
            )
        except Exception as e:
            logger.error(f"Error fetching status for {address}: {e}")
            await self.transport.send(chat_id, messages.STATUS_UNAVAILABLE)
            return
        await self.transport.send(chat_id, status.format_message())
