import asyncio
import json
import os
from pathlib import Path
from typing import Iterable

from loguru import logger

from .datatypes import Recipient, ValidatorRecord, is_valid_validator_address
from .exceptions import InvalidAddressError, RegistryError


class RecipientRegistry:
    """JSON file mapping a chat id to the operator address it watches."""

    def __init__(self, path: str | Path = "validators.json"):
        self.path = Path(path)
        self.lock = asyncio.Lock()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            logger.info(f"Creating empty registry at {self.path}")
            self._write({})
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryError(f"Could not read registry {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise RegistryError(f"Registry {self.path} is not a JSON object")
        return {str(chat_id): address for chat_id, address in data.items()}

    def _write(self, registrations: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # readers only ever see a complete file
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(registrations, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def get_all(self) -> dict[str, str]:
        async with self.lock:
            return await asyncio.to_thread(self._read)

    async def get(self, chat_id: str | int) -> str | None:
        registrations = await self.get_all()
        return registrations.get(str(chat_id))

    async def register(self, chat_id: str | int, address: str) -> None:
        if not is_valid_validator_address(address):
            raise InvalidAddressError(f"Invalid validator address: {address}")
        async with self.lock:
            registrations = await asyncio.to_thread(self._read)
            registrations[str(chat_id)] = address
            await asyncio.to_thread(self._write, registrations)
        logger.info(f"Registered chat {chat_id} for validator {address}")


def resolve(
    validators: Iterable[ValidatorRecord], registrations: dict[str, str]
) -> list[ValidatorRecord]:
    """Attach the first registered recipient watching each validator's address."""
    recipients = {}
    for chat_id, address in registrations.items():
        recipients.setdefault(address, Recipient(chat_id=chat_id))
    return [
        validator.model_copy(
            update={"recipient": recipients.get(validator.operatorAddress)}
        )
        for validator in validators
    ]
