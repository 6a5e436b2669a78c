import pytest

from kvflow.utils import timing
from kvflow.utils.naming import generate_random_id


@pytest.mark.asyncio
async def test_settle_sleeps_exactly_once(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(timing.asyncio, "sleep", fake_sleep)

    await timing.settle(5.0)
    await timing.settle(0)

    assert sleeps == [5.0]


def test_generate_random_id_unique_within_set(monkeypatch):
    values = iter([42, 42, 7])
    monkeypatch.setattr("kvflow.utils.naming.random.randrange", lambda stop: next(values))
    existing = set()

    assert generate_random_id("testrg", existing) == "testrg42"
    assert generate_random_id("testrg", existing) == "testrg7"
    assert existing == {"testrg42", "testrg7"}


def test_generate_random_id_without_set():
    value = generate_random_id("testkv")

    assert value.startswith("testkv")
    assert 0 <= int(value[len("testkv"):]) < 10000
