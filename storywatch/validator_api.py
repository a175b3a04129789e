import asyncio

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from .datatypes import Snapshot, ValidatorRecord
from .exceptions import FetchError
from .registry import RecipientRegistry, resolve
from .transitions import build_snapshot


class WindowUptime(BaseModel):
    uptime: float = 0.0


class HistoricalUptime(BaseModel):
    lastSyncHeight: int = 0


class Uptime(BaseModel):
    windowUptime: WindowUptime | None = None
    historicalUptime: HistoricalUptime | None = None


class ValidatorDetail(BaseModel):
    jailed: bool = False
    tokens: str | int | float | None = None
    uptime: Uptime | None = None


class ValidatorStatus(BaseModel):
    address: str
    uptime: float
    jailed: bool
    tokens: str | int | float | None
    last_sync_height: int
    chain_height: int

    @property
    def height_difference(self) -> int:
        return self.chain_height - self.last_sync_height

    def format_message(self) -> str:
        return (
            f"📊 *Uptime*: {self.uptime * 100}%\n"
            f"🚫 *Jailed*: {'Yes' if self.jailed else 'No'}\n"
            f"💰 *Tokens*: {self.tokens}\n"
            f"📝 *Last Synced Block Height*: {self.last_sync_height}\n"
            f"🔗 *Chain Block Height*: {self.chain_height}\n"
            f"📉 *Height Difference from Chain*: {self.height_difference}"
        )


class ValidatorAPI:
    def __init__(
        self,
        url: str,
        registry: RecipientRegistry,
        height_url: str = None,
        info_url: str = None,
        timeout: float = 32,
        client: httpx.AsyncClient = None,
    ):
        if not url:
            logger.error("VALIDATOR_API__URL is required")
            raise ValueError("VALIDATOR_API__URL is required")
        self.url = url
        self.registry = registry
        self.height_url = height_url
        self.info_url = info_url
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        await self.client.aclose()

    async def fetch_records(self) -> list[ValidatorRecord]:
        logger.debug(f"Fetching validators from {self.url}")
        try:
            response = await self.client.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise FetchError(f"Error fetching validators: {e}") from e

        if not isinstance(data, list):
            raise FetchError(
                f"Expected a list of validators, got {type(data).__name__}"
            )
        try:
            validators = [ValidatorRecord(**item) for item in data]
        except (ValidationError, TypeError) as e:
            raise FetchError(f"Malformed validator record: {e}") from e

        registrations = await self.registry.get_all()
        return resolve(validators, registrations)

    async def fetch_snapshot(self) -> Snapshot:
        validators = await self.fetch_records()
        snapshot = build_snapshot(validators)
        logger.info(
            f"Fetched {len(snapshot.all)} validators, {len(snapshot.active)} active"
        )
        return snapshot

    async def get_validator_status(
        self, address: str, is_active: bool = True
    ) -> ValidatorStatus:
        if not self.height_url or not self.info_url:
            raise ValueError("Validator status URLs are not configured")
        detail_response, info_response = await asyncio.gather(
            self.client.get(f"{self.height_url}{address}", timeout=self.timeout),
            self.client.get(self.info_url, timeout=self.timeout),
        )
        detail_response.raise_for_status()
        info_response.raise_for_status()

        detail = ValidatorDetail(**detail_response.json())
        chain_height = int(info_response.json()[0]["height"])

        uptime = detail.uptime or Uptime()
        window = uptime.windowUptime or WindowUptime()
        historical = uptime.historicalUptime or HistoricalUptime()
        return ValidatorStatus(
            address=address,
            uptime=window.uptime if is_active else 0.0,
            jailed=detail.jailed,
            tokens=detail.tokens,
            last_sync_height=historical.lastSyncHeight,
            chain_height=chain_height,
        )
