import asyncio

import pytest

from storywatch.datatypes import Recipient, ValidatorRecord


def make_address(n: int) -> str:
    return "storyvaloper1" + f"{n:038d}"


def make_validator(n: int, rank: int, jailed: bool = False, chat_id: str = None):
    return ValidatorRecord(
        operatorAddress=make_address(n),
        rank=rank,
        jailed=jailed,
        recipient=Recipient(chat_id=chat_id) if chat_id else None,
    )


class RecordingTransport:
    """In-memory chat transport that records messages and fails on demand."""

    def __init__(self, failing=(), slow=()):
        self.failing = set(failing)
        self.slow = set(slow)
        self.sent = []

    async def send(self, recipient: str, text: str) -> None:
        if recipient in self.slow:
            await asyncio.sleep(10)
        if recipient in self.failing:
            raise RuntimeError(f"chat {recipient} unreachable")
        self.sent.append((recipient, text))


@pytest.fixture
def validator():
    return make_validator


@pytest.fixture
def address():
    return make_address


@pytest.fixture
def transport():
    return RecordingTransport()
