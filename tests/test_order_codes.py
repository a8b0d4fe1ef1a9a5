import asyncio
import threading
from datetime import datetime

import pytest

from repairshop.domain.orders.codes import (
    CodeRetryState,
    OrderCodeGenerator,
    code_prefix,
    format_order_code,
    random_candidate,
)
from repairshop.domain.orders.exceptions import DuplicateOrderCode, ExhaustedRetries

from conftest import SleepRecorder, no_sleep, run


def sequence(*codes):
    it = iter(codes)
    return lambda prefix: next(it)


def test_code_prefix_uses_first_three_letters():
    assert code_prefix("Nevera") == "NEV"
    assert code_prefix("aire acondicionado") == "AIR"
    assert code_prefix(None) == "ORD"
    assert code_prefix("TV") == "ORD"


def test_format_order_code():
    assert format_order_code("NEV2610190423") == "NEV-261019-0423"
    assert format_order_code("weird") == "weird"


def test_random_candidate_shape():
    code = random_candidate("LAV", datetime(2026, 10, 19))
    assert code.startswith("LAV261019")
    assert len(code) == 13
    assert code[-4:].isdigit()


def test_retry_state_linear_backoff_and_exhaustion():
    state = CodeRetryState(max_attempts=3, base_delay=0.2)
    state.start_attempt()
    assert state.record_collision() == pytest.approx(0.2)
    state.start_attempt()
    assert state.record_collision() == pytest.approx(0.4)
    state.start_attempt()
    assert state.exhausted
    with pytest.raises(ExhaustedRetries):
        state.start_attempt()


def test_generate_returns_first_free_candidate():
    taken = {"NEV2610190001"}
    sleeps = SleepRecorder()
    generator = OrderCodeGenerator(
        exists=taken.__contains__,
        candidate_factory=sequence("NEV2610190001", "NEV2610190002"),
        sleep=sleeps,
    )

    assert run(generator.generate_unique_code("NEV")) == "NEV2610190002"
    assert sleeps == [pytest.approx(0.2)]


def test_generate_exhausts_after_max_attempts():
    sleeps = SleepRecorder()
    calls = []

    def exists(code):
        calls.append(code)
        return True

    generator = OrderCodeGenerator(
        exists=exists,
        candidate_factory=lambda prefix: f"{prefix}2610190000",
        max_attempts=3,
        base_delay=0.2,
        sleep=sleeps,
    )

    with pytest.raises(ExhaustedRetries):
        run(generator.generate_unique_code("NEV"))
    assert len(calls) == 3
    # No sleep after the final failed attempt
    assert sleeps == [pytest.approx(0.2), pytest.approx(0.4)]


def test_late_collision_on_insert_is_retried():
    """A code that passes the existence check but loses the insert race is retried"""
    inserted = []

    def insert(code):
        if code == "NEV2610190001":
            raise DuplicateOrderCode(code)
        inserted.append(code)
        return code

    sleeps = SleepRecorder()
    generator = OrderCodeGenerator(
        exists=lambda code: False,
        candidate_factory=sequence("NEV2610190001", "NEV2610190002"),
        sleep=sleeps,
    )

    assert run(generator.create_with_unique_code(insert, "NEV")) == "NEV2610190002"
    assert inserted == ["NEV2610190002"]
    assert len(sleeps) == 1


def test_late_collisions_share_the_attempt_budget():
    def insert(code):
        raise DuplicateOrderCode(code)

    attempts = []
    generator = OrderCodeGenerator(
        exists=lambda code: attempts.append(code) or False,
        candidate_factory=lambda prefix: f"{prefix}2610190000",
        max_attempts=3,
        sleep=no_sleep,
    )

    with pytest.raises(ExhaustedRetries):
        run(generator.create_with_unique_code(insert, "NEV"))
    assert len(attempts) == 3


def test_concurrent_creators_never_share_a_code():
    """Two creators draw from the same tiny candidate pool against a shared store"""
    store = set()
    lock = threading.Lock()
    results = []
    errors = []

    def insert(code):
        with lock:
            if code in store:
                raise DuplicateOrderCode(code)
            store.add(code)
        return code

    def creator(candidates):
        generator = OrderCodeGenerator(
            exists=lambda code: False,  # check always races the insert
            candidate_factory=sequence(*candidates),
            max_attempts=3,
            sleep=no_sleep,
        )
        try:
            results.append(run(generator.create_with_unique_code(insert, "NEV")))
        except ExhaustedRetries as e:
            errors.append(e)

    threads = [
        threading.Thread(target=creator, args=(["NEV2610190001", "NEV2610190002"],)),
        threading.Thread(target=creator, args=(["NEV2610190001", "NEV2610190003"],)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(results) == 2
    assert len(set(results)) == 2
    assert set(results) <= store


def test_backoff_lets_other_tasks_run():
    """Retry delays are awaited, so concurrent work on the loop keeps progressing"""
    ticks = []

    async def ticker():
        for _ in range(3):
            ticks.append(len(ticks))
            await asyncio.sleep(0)

    generator = OrderCodeGenerator(
        exists=lambda code: code == "NEV2610190001",
        candidate_factory=sequence("NEV2610190001", "NEV2610190002"),
        base_delay=0.05,
    )

    async def main():
        task = asyncio.create_task(ticker())
        code = await generator.generate_unique_code("NEV")
        ticks_during_backoff = len(ticks)
        await task
        return code, ticks_during_backoff

    code, ticks_during_backoff = run(main())

    assert code == "NEV2610190002"
    assert ticks_during_backoff == 3
