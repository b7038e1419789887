"""
Tests for the session journal and the in-memory session store.
"""

from datetime import timedelta

import pytest

from companion_framework.models.data_models import (
    Author,
    Channel,
    CrisisTier,
    Turn,
    utc_now,
)
from companion_framework.providers.session_store.memory_store import InMemorySessionStore
from companion_framework.utils.error_handling import PersistenceFailure
from companion_framework.utils.safety_screen import screen_text
from companion_framework.utils.session_journal import SessionJournal, TRANSCRIPTION_PREFIX

from conftest import FailingStore


class TestInMemorySessionStore:

    @pytest.mark.asyncio
    async def test_turns_keep_insertion_order(self):
        store = InMemorySessionStore()
        session_id = await store.create_session("p1", Channel.TEXT)
        for text in ("one", "two", "three"):
            await store.append_turn(session_id, Turn(author=Author.USER, content=text))

        session = await store.get_session(session_id)
        assert [t.content for t in session.turns] == ["one", "two", "three"]
        assert all(t.session_id == session_id for t in session.turns)

    @pytest.mark.asyncio
    async def test_append_to_unknown_session_fails(self):
        store = InMemorySessionStore()
        with pytest.raises(PersistenceFailure):
            await store.append_turn("missing", Turn(author=Author.USER, content="hi"))

    @pytest.mark.asyncio
    async def test_clear_all_only_touches_participant(self):
        store = InMemorySessionStore()
        await store.create_session("p1", Channel.TEXT)
        other = await store.create_session("p2", Channel.TEXT)

        await store.clear_all("p1")

        assert await store.list_sessions("p1") == []
        assert (await store.get_session(other)) is not None


class TestSessionJournal:

    @pytest.mark.asyncio
    async def test_creates_session_lazily(self, store):
        journal = SessionJournal(store, "p1")
        assert journal.session_id is None

        await journal.record_user("hello")

        assert journal.session_id is not None
        session = await store.get_session(journal.session_id)
        assert session.channel == Channel.VOICE
        assert [t.content for t in session.turns] == ["hello"]

    @pytest.mark.asyncio
    async def test_timestamps_never_decrease(self, store):
        journal = SessionJournal(store, "p1")
        first = await journal.record_user("first")
        late = Turn(author=Author.ASSISTANT, content="second",
                    created_at=first.created_at - timedelta(seconds=30))

        await journal.append(late)

        assert late.created_at >= first.created_at
        stamps = [t.created_at for t in journal.turns]
        assert stamps == sorted(stamps)

    @pytest.mark.asyncio
    async def test_user_turn_carries_screen(self, store):
        journal = SessionJournal(store, "p1")
        turn = await journal.record_user("there is so much tension", screen_text("there is so much tension"))
        assert turn.crisis_tier == CrisisTier.ADVISORY
        assert turn.emotion is not None
        assert turn.sentiment is not None

    @pytest.mark.asyncio
    async def test_history_excludes_transcription_log(self, store):
        journal = SessionJournal(store, "p1")
        await journal.record_transcription("hello there")
        await journal.record_user("hello there")
        await journal.record_assistant("Hi! How are you?")

        assert journal.turns[0].content == f"{TRANSCRIPTION_PREFIX}hello there"
        assert journal.turns[0].author == Author.SYSTEM
        assert journal.history_messages() == [
            {'role': 'user', 'content': 'hello there'},
            {'role': 'assistant', 'content': 'Hi! How are you?'},
        ]

    @pytest.mark.asyncio
    async def test_append_failure_keeps_turn_in_memory(self):
        journal = SessionJournal(FailingStore(fail_on=("append_turn",)), "p1")

        turn = await journal.record_user("still here")

        assert journal.turns == [turn]
        assert journal.persistence_failures == 1

    @pytest.mark.asyncio
    async def test_create_failure_falls_back_to_local_session(self):
        journal = SessionJournal(FailingStore(fail_on=("create_session",)), "p1")

        await journal.record_user("offline")
        await journal.record_assistant("I'm here.")

        assert journal.session_id.startswith("local-")
        assert len(journal.history_messages()) == 2
        assert journal.persistence_failures == 1

    @pytest.mark.asyncio
    async def test_deleted_session_is_replaced(self, store):
        journal = SessionJournal(store, "p1")
        first_id = await journal.ensure_session()
        await journal.record_user("hello")

        await store.delete_session(first_id)
        second_id = await journal.ensure_session()

        assert second_id != first_id
        assert journal.turns == []

    @pytest.mark.asyncio
    async def test_clear_all_forgets_active_session(self, store):
        journal = SessionJournal(store, "p1")
        await journal.record_user("hello")

        await journal.clear_all()

        assert journal.session_id is None
        assert await store.list_sessions("p1") == []
        await journal.record_user("fresh start")
        assert len(await store.list_sessions("p1")) == 1

    @pytest.mark.asyncio
    async def test_end_closes_session(self, store):
        journal = SessionJournal(store, "p1")
        session_id = await journal.ensure_session()

        await journal.end()

        assert (await store.get_session(session_id)).is_closed
        assert await journal.ensure_session() != session_id

    @pytest.mark.asyncio
    async def test_resume_latest_open_session(self, store):
        session_id = await store.create_session("p1", Channel.VOICE)
        await store.append_turn(session_id, Turn(author=Author.USER, content="earlier", created_at=utc_now()))

        journal = SessionJournal(store, "p1")
        assert await journal.resume_latest()
        assert journal.session_id == session_id
        assert journal.history_messages() == [{'role': 'user', 'content': 'earlier'}]
