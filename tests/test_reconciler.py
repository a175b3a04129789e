import asyncio

from conftest import RecordingTransport

from storywatch.exceptions import FetchError, MalformedRecordError
from storywatch.messages import VALIDATOR_DEACTIVATED
from storywatch.notifier import Notifier
from storywatch.reconciler import CycleStatus, LoopState, ReconciliationLoop
from storywatch.transitions import build_snapshot


class ScriptedFetcher:
    """Returns queued snapshots, raising queued exceptions in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = 0

    async def fetch_snapshot(self):
        self.calls += 1
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return build_snapshot(response)


class ExplodingNotifier:
    async def notify_all(self, transitions):
        raise RuntimeError("transport exploded")


def test_cold_start_sends_nothing(validator, transport):
    fetcher = ScriptedFetcher([validator(1, rank=1, chat_id="a", jailed=True)])
    loop = ReconciliationLoop(fetcher, Notifier(transport))
    assert loop.state == LoopState.COLD

    result = asyncio.run(loop.run_cycle())

    assert result.status == CycleStatus.COLD_START
    assert loop.state == LoopState.WARM
    assert transport.sent == []
    assert loop.is_active(validator(1, rank=1).operatorAddress)


def test_warm_cycle_notifies_and_advances_baseline(validator, transport):
    fetcher = ScriptedFetcher(
        [validator(1, rank=1, chat_id="a"), validator(2, rank=101, chat_id="b")],
        [validator(1, rank=101, chat_id="a"), validator(2, rank=1, chat_id="b")],
        [validator(1, rank=101, chat_id="a"), validator(2, rank=1, chat_id="b")],
    )
    loop = ReconciliationLoop(fetcher, Notifier(transport))

    async def scenario():
        await loop.run_cycle()
        second = await loop.run_cycle()
        third = await loop.run_cycle()
        return second, third

    second, third = asyncio.run(scenario())

    assert second.status == CycleStatus.OK
    assert second.transitions.summary() == {
        "activated": 1,
        "deactivated": 1,
        "jailed": 0,
        "released": 0,
    }
    assert sorted(chat for chat, _ in transport.sent) == ["a", "b"]
    # no duplicate alerts once the baseline has moved on
    assert third.transitions.is_empty()
    assert len(transport.sent) == 2
    assert loop.cycles == 3


def test_fetch_failure_keeps_baseline(validator, transport):
    first = [validator(1, rank=1, chat_id="a")]
    fetcher = ScriptedFetcher(first, FetchError("upstream down"), [])
    loop = ReconciliationLoop(fetcher, Notifier(transport))

    async def scenario():
        await loop.run_cycle()
        baseline = loop.previous
        failed = await loop.run_cycle()
        assert loop.previous is baseline
        return failed, await loop.run_cycle()

    failed, recovered = asyncio.run(scenario())

    assert failed.status == CycleStatus.FETCH_FAILED
    assert "upstream down" in failed.error
    assert loop.failures == 1
    assert recovered.status == CycleStatus.OK
    assert transport.sent == [("a", VALIDATOR_DEACTIVATED)]
    assert len(recovered.transitions.deactivated) == 1


def test_malformed_record_aborts_cycle(validator, transport):
    fetcher = ScriptedFetcher(MalformedRecordError("bad rank"))
    loop = ReconciliationLoop(fetcher, Notifier(transport))

    result = asyncio.run(loop.run_cycle())

    assert result.status == CycleStatus.FETCH_FAILED
    assert loop.state == LoopState.COLD


def test_baseline_advances_even_when_dispatch_fails(validator):
    fetcher = ScriptedFetcher(
        [validator(1, rank=1, chat_id="a")],
        [validator(1, rank=200, chat_id="a")],
        [validator(1, rank=200, chat_id="a")],
    )
    transport = RecordingTransport(failing={"a"})
    loop = ReconciliationLoop(fetcher, Notifier(transport))

    async def scenario():
        await loop.run_cycle()
        second = await loop.run_cycle()
        third = await loop.run_cycle()
        return second, third

    second, third = asyncio.run(scenario())

    assert [result.ok for result in second.dispatches] == [False]
    # the lost notification is not retried
    assert third.transitions.is_empty()
    assert not loop.is_active(validator(1, rank=1).operatorAddress)


def test_baseline_advances_when_notifier_raises(validator):
    fetcher = ScriptedFetcher(
        [validator(1, rank=1, chat_id="a")],
        [validator(1, rank=200, chat_id="a")],
    )
    loop = ReconciliationLoop(fetcher, ExplodingNotifier())

    async def scenario():
        await loop.run_cycle()
        return await loop.run_cycle()

    result = asyncio.run(scenario())

    assert result.status == CycleStatus.ERROR
    assert "transport exploded" in result.error
    assert loop.previous.active == []


def test_run_forever_backs_off_after_failures(validator, transport):
    fetcher = ScriptedFetcher(
        FetchError("down"),
        FetchError("down"),
        FetchError("down"),
        [validator(1, rank=1)],
        FetchError("down"),
    )
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    loop = ReconciliationLoop(
        fetcher,
        Notifier(transport),
        backoff_initial=1.0,
        backoff_max=3.0,
        sleep=fake_sleep,
    )

    asyncio.run(loop.run_forever(max_cycles=5))

    assert fetcher.calls == 5
    assert delays == [1.0, 2.0, 3.0, 1.0]
    assert loop.failures == 4


def test_run_forever_waits_out_min_interval(validator, transport):
    fetcher = ScriptedFetcher([validator(1, rank=1)], [validator(1, rank=1)])
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    loop = ReconciliationLoop(
        fetcher, Notifier(transport), min_interval=30.0, sleep=fake_sleep
    )

    asyncio.run(loop.run_forever(max_cycles=2))

    assert len(delays) == 2
    assert all(0 < delay <= 30.0 for delay in delays)


def test_run_forever_survives_unexpected_errors(validator):
    fetcher = ScriptedFetcher(
        [validator(1, rank=1, chat_id="a")],
        [validator(1, rank=200, chat_id="a")],
        [validator(1, rank=200, chat_id="a")],
    )
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    loop = ReconciliationLoop(fetcher, ExplodingNotifier(), sleep=fake_sleep)

    asyncio.run(loop.run_forever(max_cycles=3))

    assert fetcher.calls == 3
    assert loop.state == LoopState.WARM
    assert loop.cycles == 3
    assert loop.failures == 2
    assert loop.last_result.status == CycleStatus.ERROR
    assert "transport exploded" in loop.last_result.error
    # the fetches succeeded, so no backoff is applied
    assert delays == []


class StalledFetcher:
    """Never returns a snapshot, like an upstream trickling its response."""

    def __init__(self):
        self.cancelled = False

    async def fetch_snapshot(self):
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise


def test_stalled_fetch_is_bounded_by_fetch_timeout(transport):
    fetcher = StalledFetcher()
    loop = ReconciliationLoop(fetcher, Notifier(transport), fetch_timeout=0.05)

    result = asyncio.run(loop.run_cycle())

    assert result.status == CycleStatus.FETCH_FAILED
    assert "timed out" in result.error
    assert fetcher.cancelled
    assert loop.state == LoopState.COLD
    assert loop.failures == 1
    assert loop.last_result is result


def test_stalled_fetch_backs_off_in_run_forever(transport):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    loop = ReconciliationLoop(
        StalledFetcher(),
        Notifier(transport),
        fetch_timeout=0.01,
        backoff_initial=2.0,
        sleep=fake_sleep,
    )

    asyncio.run(loop.run_forever(max_cycles=2))

    assert delays == [2.0, 4.0]
    assert loop.failures == 2


def test_unexpected_fetcher_error_keeps_baseline(validator, transport):
    fetcher = ScriptedFetcher([validator(1, rank=1)], KeyError("operatorAddress"))
    loop = ReconciliationLoop(fetcher, Notifier(transport))

    async def scenario():
        await loop.run_cycle()
        baseline = loop.previous
        result = await loop.run_cycle()
        assert loop.previous is baseline
        return result

    result = asyncio.run(scenario())

    assert result.status == CycleStatus.FETCH_FAILED
    assert loop.failures == 1
