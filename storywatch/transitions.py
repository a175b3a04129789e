from typing import Iterable, Sequence

from .datatypes import ACTIVE_SET_SIZE, Snapshot, Transitions, ValidatorRecord
from .exceptions import MalformedRecordError


def select_active(all_validators: Iterable[ValidatorRecord]) -> list[ValidatorRecord]:
    """
    Derive the active set from a full validator list.

    Keeps ranks 1..100, the first record seen for each rank wins, and the
    survivors are returned in ascending rank order.
    """
    seen_ranks = set()
    active = []
    for validator in all_validators:
        rank = validator.rank
        if isinstance(rank, bool) or not isinstance(rank, int):
            raise MalformedRecordError(
                f"Validator {validator.operatorAddress} has non-integer rank {rank!r}"
            )
        if not 1 <= rank <= ACTIVE_SET_SIZE:
            continue
        if rank in seen_ranks:
            continue
        seen_ranks.add(rank)
        active.append(validator)
    return sorted(active, key=lambda validator: validator.rank)


def build_snapshot(all_validators: Iterable[ValidatorRecord]) -> Snapshot:
    validators = list(all_validators)
    return Snapshot(all=validators, active=select_active(validators))


def _index_by_address(
    validators: Sequence[ValidatorRecord],
) -> dict[str, ValidatorRecord]:
    # first match wins, same as a linear scan
    index = {}
    for validator in validators:
        index.setdefault(validator.operatorAddress, validator)
    return index


def detect_transitions(previous: Snapshot, current: Snapshot) -> Transitions:
    """
    Compare two snapshots and return the validators that changed state.

    Deactivated and jailed entries carry the previous record, activated and
    released entries carry the current one. Validators missing from either
    side never produce a jail transition.
    """
    previous_active = {validator.operatorAddress for validator in previous.active}
    current_active = {validator.operatorAddress for validator in current.active}

    deactivated = [
        validator
        for validator in previous.active
        if validator.operatorAddress not in current_active
    ]
    activated = [
        validator
        for validator in current.active
        if validator.operatorAddress not in previous_active
    ]

    previous_all = _index_by_address(previous.all)
    current_all = _index_by_address(current.all)

    jailed = []
    for validator in previous.all:
        match = current_all.get(validator.operatorAddress)
        if match is not None and match.jailed and not validator.jailed:
            jailed.append(validator)

    released = []
    for validator in current.all:
        match = previous_all.get(validator.operatorAddress)
        if match is not None and match.jailed and not validator.jailed:
            released.append(validator)

    return Transitions(
        activated=activated,
        deactivated=deactivated,
        jailed=jailed,
        released=released,
    )
