"""
Tests for the conversation store.
"""

from datetime import datetime

import pytest

from convergo.db import Message
from convergo.store import ConversationStore, ReadResult, ReadStatus


@pytest.mark.asyncio
async def test_upsert_conversation_is_idempotent(db_session):
    store = ConversationStore(db_session)

    first = await store.upsert_conversation("acme")
    second = await store.upsert_conversation("acme")
    await store.commit()

    assert first.id == second.id
    assert (await store.find_conversation("acme")).id == first.id
    assert await store.find_conversation("other") is None


@pytest.mark.asyncio
async def test_mark_ended_first_call_wins(db_session):
    store = ConversationStore(db_session)
    conversation = await store.upsert_conversation("acme")
    session = await store.create_session(conversation)
    message = await store.append_message(conversation, "user", "hi", session.id)
    await store.commit()
    assert session.active

    first = await store.mark_ended(session, 1)
    second = await store.mark_ended(session, 1)
    await store.commit()

    assert first is not None
    assert first > message.created_at
    assert second == first
    assert not session.active


@pytest.mark.asyncio
async def test_mark_ended_refuses_when_messages_arrived(db_session):
    store = ConversationStore(db_session)
    conversation = await store.upsert_conversation("acme")
    session = await store.create_session(conversation)
    await store.append_message(conversation, "user", "first", session.id)
    await store.append_message(conversation, "user", "late", session.id)
    await store.commit()

    assert await store.mark_ended(session, 1) is None
    assert session.active

    assert await store.mark_ended(session, 2) is not None


@pytest.mark.asyncio
async def test_equal_timestamps_keep_insertion_order(db_session):
    store = ConversationStore(db_session)
    conversation = await store.upsert_conversation("acme")
    stamp = datetime(2030, 1, 1)
    for i, text in enumerate(("one", "two", "three")):
        db_session.add(
            Message(id=f"m-{9 - i}", conversation_id=conversation.id, role="user", content=text, created_at=stamp)
        )
        await db_session.flush()

    assert [m.content for m in await store.list_messages(conversation)] == ["one", "two", "three"]
    assert [m.content for m in await store.list_messages(conversation, limit=2)] == ["two", "three"]
    assert [m.content for m, _ in await store.recent_messages("acme", 10)] == ["three", "two", "one"]


@pytest.mark.asyncio
async def test_created_at_strictly_increases(db_session):
    store = ConversationStore(db_session)
    conversation = await store.upsert_conversation("acme")

    messages = [await store.append_message(conversation, "user", str(i)) for i in range(20)]
    await store.commit()

    stamps = [m.created_at for m in messages]
    assert all(a < b for a, b in zip(stamps, stamps[1:]))


@pytest.mark.asyncio
async def test_created_at_never_goes_backwards(db_session):
    store = ConversationStore(db_session)
    conversation = await store.upsert_conversation("acme")
    future = datetime(2999, 1, 1)
    db_session.add(Message(id="m-future", conversation_id=conversation.id, role="user", content="x", created_at=future))
    await db_session.flush()

    message = await store.append_message(conversation, "user", "later")

    assert message.created_at > future


@pytest.mark.asyncio
async def test_list_and_count_session_messages(db_session):
    store = ConversationStore(db_session)
    conversation = await store.upsert_conversation("acme")
    session = await store.create_session(conversation)
    await store.append_message(conversation, "user", "loose")
    for text in ("a", "b", "c"):
        await store.append_message(conversation, "user", text, session.id)
    await store.commit()

    assert await store.count_session_messages(session.id) == 3
    assert [m.content for m in await store.list_messages(conversation, session.id)] == ["a", "b", "c"]
    assert [m.content for m in await store.list_messages(conversation, limit=2)] == ["b", "c"]


@pytest.mark.asyncio
async def test_recent_messages_newest_first(db_session):
    store = ConversationStore(db_session)
    acme = await store.upsert_conversation("acme")
    other = await store.upsert_conversation("other")
    await store.append_message(acme, "user", "a1")
    await store.append_message(other, "user", "o1")
    await store.append_message(acme, "assistant", "a2")
    await store.commit()

    everything = await store.recent_messages(None, 10)
    acme_only = await store.recent_messages("acme", 10)

    assert [site for _, site in everything].count("other") == 1
    assert [m.content for m, _ in acme_only] == ["a2", "a1"]


def test_read_result_statuses():
    assert ReadResult.of([]).status is ReadStatus.EMPTY
    assert ReadResult.of([1]).status is ReadStatus.OK
    failed = ReadResult.unavailable(RuntimeError("down"))
    assert failed.status is ReadStatus.UNAVAILABLE
    assert failed.degraded
    assert failed.items == []
