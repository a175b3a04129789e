from .datatypes import (
    Recipient,
    Snapshot,
    TransitionKind,
    Transitions,
    ValidatorRecord,
    is_valid_validator_address,
)
from .transitions import build_snapshot, detect_transitions, select_active

__all__ = [
    "Recipient",
    "Snapshot",
    "TransitionKind",
    "Transitions",
    "ValidatorRecord",
    "build_snapshot",
    "detect_transitions",
    "is_valid_validator_address",
    "select_active",
]
