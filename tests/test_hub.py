"""RelayHub tests — registry and state kept in lockstep."""

import asyncio

import pytest

from bookingrelay.relay.hub import InvariantViolation, RelayHub
from bookingrelay.relay.types import UNSEEN, UNSET, Assignment, TransitionKind

D1 = Assignment.assigned(1)
D2 = Assignment.assigned(2)


@pytest.mark.asyncio
async def test_unsubscribe_last_handle_drops_state(hub):
    await hub.subscribe(42, "a")
    await hub.classify(42, D1)
    assert await hub.stored_value(42) == D1

    assert await hub.unsubscribe(42, "a") is True
    assert await hub.active_topics() == frozenset()
    assert await hub.stored_value(42) is UNSEEN


@pytest.mark.asyncio
async def test_unsubscribe_keeps_state_while_others_remain(hub):
    await hub.subscribe(42, "a")
    await hub.subscribe(42, "b")
    await hub.classify(42, D1)

    assert await hub.unsubscribe(42, "a") is False
    assert await hub.stored_value(42) == D1


@pytest.mark.asyncio
async def test_drop_handle_drops_state_of_emptied_topics(hub):
    await hub.subscribe(1, "a")
    await hub.subscribe(2, "a")
    await hub.subscribe(2, "b")
    await hub.classify(1, D1)
    await hub.classify(2, D2)

    released = await hub.drop_handle("a")

    assert released == [1]
    assert await hub.stored_value(1) is UNSEEN
    assert await hub.stored_value(2) == D2


@pytest.mark.asyncio
async def test_drop_handle_is_idempotent(hub):
    await hub.subscribe(1, "a")
    await hub.unsubscribe(1, "a")
    assert await hub.drop_handle("a") == []
    assert await hub.drop_handle("a") == []


@pytest.mark.asyncio
async def test_classify_first_observation_is_recorded(hub):
    await hub.subscribe(42, "a")
    transition = await hub.classify(42, D1)
    assert transition.kind is TransitionKind.FIRST_OBSERVATION
    assert transition.previous is UNSEEN
    assert await hub.stored_value(42) == D1


@pytest.mark.asyncio
async def test_classify_unchanged(hub):
    await hub.subscribe(42, "a")
    await hub.classify(42, UNSET)
    transition = await hub.classify(42, Assignment.from_raw(0))
    assert transition.kind is TransitionKind.UNCHANGED


@pytest.mark.asyncio
async def test_classify_changed_waits_for_commit(hub):
    await hub.subscribe(42, "a")
    await hub.classify(42, D1)

    transition = await hub.classify(42, D2)
    assert transition.kind is TransitionKind.CHANGED
    assert transition.previous == D1
    assert await hub.stored_value(42) == D1

    assert await hub.commit(transition) is True
    assert await hub.stored_value(42) == D2


@pytest.mark.asyncio
async def test_classify_unsubscribed_topic_writes_nothing(hub):
    assert await hub.classify(42, D1) is None
    assert await hub.stored_value(42) is UNSEEN
    assert await hub.check_invariants() == []


@pytest.mark.asyncio
async def test_commit_refused_after_topic_released(hub):
    await hub.subscribe(42, "a")
    await hub.classify(42, D1)
    transition = await hub.classify(42, D2)

    await hub.unsubscribe(42, "a")

    assert await hub.commit(transition) is False
    assert await hub.stored_value(42) is UNSEEN
    assert await hub.check_invariants() == []


@pytest.mark.asyncio
async def test_check_invariants_strict_raises():
    hub = RelayHub(strict=True)
    hub._state.set(99, D1)  # orphan: nobody subscribed to 99
    with pytest.raises(InvariantViolation):
        await hub.check_invariants()


@pytest.mark.asyncio
async def test_check_invariants_lenient_heals():
    hub = RelayHub(strict=False)
    await hub.subscribe(1, "a")
    await hub.classify(1, D1)
    hub._state.set(99, D1)

    assert await hub.check_invariants() == [99]
    assert await hub.stored_value(99) is UNSEEN
    assert await hub.stored_value(1) == D1


@pytest.mark.asyncio
async def test_concurrent_connect_disconnect_keeps_invariant(hub):
    """Interleaved subscribe/drop from many tasks never leaves orphans."""

    async def churn(name: str):
        for i in range(20):
            await hub.subscribe(i % 5, name)
            await hub.classify(i % 5, Assignment.assigned(i))
            if i % 3 == 0:
                await hub.unsubscribe(i % 5, name)
            await asyncio.sleep(0)
        await hub.drop_handle(name)

    await asyncio.gather(*(churn(f"h{n}") for n in range(10)))

    assert await hub.active_topics() == frozenset()
    assert await hub.check_invariants() == []
    assert len(hub._state) == 0


@pytest.mark.asyncio
async def test_commit_refused_after_release_and_resubscribe(hub):
    await hub.subscribe(42, "old")
    await hub.classify(42, D1)
    transition = await hub.classify(42, D2)

    await hub.drop_handle("old")
    await hub.subscribe(42, "new")

    assert await hub.commit(transition) is False
    assert await hub.stored_value(42) is UNSEEN
    first = await hub.classify(42, D2)
    assert first.kind is TransitionKind.FIRST_OBSERVATION


@pytest.mark.asyncio
async def test_extra_subscriber_keeps_epoch(hub):
    await hub.subscribe(42, "a")
    await hub.classify(42, D1)
    transition = await hub.classify(42, D2)

    await hub.subscribe(42, "b")

    assert await hub.commit(transition) is True
    assert await hub.stored_value(42) == D2
