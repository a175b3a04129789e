from enum import Enum
from typing import Iterator

from pydantic import BaseModel, StrictInt

VALIDATOR_ADDRESS_PREFIX = "storyvaloper1"
VALIDATOR_ADDRESS_LENGTH = 51
ACTIVE_SET_SIZE = 100


def is_valid_validator_address(address: str) -> bool:
    return (
        address.startswith(VALIDATOR_ADDRESS_PREFIX)
        and len(address) == VALIDATOR_ADDRESS_LENGTH
    )


class Recipient(BaseModel):
    chat_id: str


class ValidatorRecord(BaseModel):
    operatorAddress: str
    rank: StrictInt
    jailed: bool
    tokens: str | int | float | None = None
    recipient: Recipient | None = None


class Snapshot(BaseModel):
    all: list[ValidatorRecord] = []
    active: list[ValidatorRecord] = []

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls()


class TransitionKind(str, Enum):
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    JAILED = "jailed"
    RELEASED = "released"


class Transitions(BaseModel):
    activated: list[ValidatorRecord] = []
    deactivated: list[ValidatorRecord] = []
    jailed: list[ValidatorRecord] = []
    released: list[ValidatorRecord] = []

    def items(self) -> Iterator[tuple[TransitionKind, list[ValidatorRecord]]]:
        yield TransitionKind.ACTIVATED, self.activated
        yield TransitionKind.DEACTIVATED, self.deactivated
        yield TransitionKind.JAILED, self.jailed
        yield TransitionKind.RELEASED, self.released

    def is_empty(self) -> bool:
        return not any(records for _, records in self.items())

    def summary(self) -> dict[str, int]:
        return {kind.value: len(records) for kind, records in self.items()}
