import asyncio
from typing import Sequence

from loguru import logger
from pydantic import BaseModel

from .datatypes import TransitionKind, Transitions, ValidatorRecord
from .messages import TRANSITION_MESSAGES
from .telegram import ChatTransport


class DispatchResult(BaseModel):
    chat_id: str
    operatorAddress: str
    kind: TransitionKind
    ok: bool
    error: str | None = None


class Notifier:
    def __init__(
        self,
        transport: ChatTransport,
        send_timeout: float = 12.0,
        max_concurrency: int = 16,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.transport = transport
        self.send_timeout = send_timeout
        self.semaphore = asyncio.Semaphore(max_concurrency)

    async def dispatch(
        self, validator: ValidatorRecord, kind: TransitionKind
    ) -> DispatchResult:
        """Send one transition message, capturing any failure in the result."""
        chat_id = validator.recipient.chat_id
        try:
            async with self.semaphore:
                await asyncio.wait_for(
                    self.transport.send(chat_id, TRANSITION_MESSAGES[kind]),
                    timeout=self.send_timeout,
                )
        except asyncio.TimeoutError:
            logger.warning(
                f"Timed out notifying {chat_id} that {validator.operatorAddress} {kind.value}"
            )
            return DispatchResult(
                chat_id=chat_id,
                operatorAddress=validator.operatorAddress,
                kind=kind,
                ok=False,
                error=f"timed out after {self.send_timeout}s",
            )
        except Exception as e:
            logger.warning(
                f"Failed to notify {chat_id} that {validator.operatorAddress} {kind.value}: {e}"
            )
            return DispatchResult(
                chat_id=chat_id,
                operatorAddress=validator.operatorAddress,
                kind=kind,
                ok=False,
                error=str(e),
            )
        logger.debug(f"Notified {chat_id} that {validator.operatorAddress} {kind.value}")
        return DispatchResult(
            chat_id=chat_id,
            operatorAddress=validator.operatorAddress,
            kind=kind,
            ok=True,
        )

    async def notify(
        self, validators: Sequence[ValidatorRecord], kind: TransitionKind
    ) -> list[DispatchResult]:
        tasks = [
            self.dispatch(validator, kind)
            for validator in validators
            if validator.recipient is not None
        ]
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    async def notify_all(self, transitions: Transitions) -> list[DispatchResult]:
        results = await asyncio.gather(
            *(self.notify(validators, kind) for kind, validators in transitions.items())
        )
        dispatches = [result for group in results for result in group]
        failed = sum(1 for result in dispatches if not result.ok)
        if dispatches:
            logger.info(f"Sent {len(dispatches) - failed}/{len(dispatches)} notifications")
        return dispatches
