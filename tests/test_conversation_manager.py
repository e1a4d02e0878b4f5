"""Unit tests for ConversationManager and the session store."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import itertools
import threading
import pytest
from unittest.mock import Mock
from datetime import datetime, timedelta
from models.conversation import Conversation, ConversationState, Role, Session, Turn
from services.conversation_manager import (
    ConversationManager,
    generate_conversation_id,
    CHAT_COMPLETED,
    CHAT_ENDED,
    WAITING_FOR_ASSISTANT,
)
from services.errors import InvalidTurn
from services.outcome_evaluator import OutcomeEvaluator, ScoreThresholdPolicy
from services.prompts import STRANGER_PROFILE, STRANGER_PROMPT, TURING_EXPERT_PROFILE
from services.reply_parser import AssistantReply
from services.session_store import InMemorySessionStore


class FakeClock:
    """Clock that advances one second per call."""

    def __init__(self, start=datetime(2024, 1, 1)):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def manager(store):
    counter = itertools.count(1)
    return ConversationManager(
        store=store,
        profile=STRANGER_PROFILE,
        id_factory=lambda: f"conv_{next(counter)}",
        clock=FakeClock()
    )


@pytest.fixture
def evaluator():
    return OutcomeEvaluator(ScoreThresholdPolicy(threshold=75))


class TestInMemorySessionStore:
    """Tests for the in-memory store."""

    def make_session(self, key, conversation_id="conv_1"):
        conversation = Conversation(conversation_id=conversation_id, turns=[], created_at=datetime.now())
        return Session(session_key=key, user_id="u", chat_id="c", conversation=conversation)

    def test_get_missing_returns_none(self, store):
        assert store.get("nobody") is None

    def test_create_then_get(self, store):
        session = self.make_session("u:c")

        assert store.create(session) is session
        assert store.get("u:c") is session

    def test_create_if_absent_keeps_first(self, store):
        first = self.make_session("u:c", "conv_1")
        second = self.make_session("u:c", "conv_2")

        store.create(first)

        assert store.create(second) is first
        assert len(store) == 1

    def test_update_unknown_session_raises(self, store):
        with pytest.raises(KeyError):
            store.update(self.make_session("ghost"))

    def test_list_sessions_is_a_snapshot(self, store):
        store.create(self.make_session("a"))
        sessions = store.list_sessions()
        store.create(self.make_session("b"))

        assert len(sessions) == 1
        assert len(store.list_sessions()) == 2


class TestSessionResolution:
    """Tests for get_or_create_session."""

    def test_new_session_seeded_with_system_turn(self, manager, store):
        session = manager.get_or_create_session("u1", "c1")

        assert session.session_key == "u1:c1"
        assert session.conversation.conversation_id == "conv_1"
        assert len(session.conversation.turns) == 1
        assert session.conversation.turns[0].role == Role.SYSTEM
        assert session.conversation.turns[0].content == STRANGER_PROMPT
        assert session.conversation.state == ConversationState.AWAITING_USER
        assert len(store) == 1

    def test_existing_session_returned_unchanged(self, manager, store):
        first = manager.get_or_create_session("u1", "c1")
        second = manager.get_or_create_session("u1", "c1")

        assert second is first
        assert len(store) == 1

    def test_sessions_keyed_by_user_and_chat(self, manager, store):
        a = manager.get_or_create_session("u1", "c1")
        b = manager.get_or_create_session("u1", "c2")
        c = manager.get_or_create_session("u2", "c1")

        assert len({a.conversation.conversation_id, b.conversation.conversation_id,
                    c.conversation.conversation_id}) == 3
        assert len(store) == 3

    def test_marker_profile_prompt(self, store):
        manager = ConversationManager(store=store, profile=TURING_EXPERT_PROFILE)
        session = manager.get_or_create_session("u1", "c1")

        system_prompt = session.conversation.turns[0].content
        assert "turing test expert" in system_prompt
        assert "[ENDCHAT]" in system_prompt

    def test_default_conversation_id_format(self):
        conversation_id = generate_conversation_id()

        assert conversation_id.startswith("conv_")
        assert len(conversation_id) == len("conv_") + 12
        assert generate_conversation_id() != conversation_id


class TestTurnOrder:
    """Tests for the state machine guards."""

    def test_begin_round_appends_user_turn(self, manager):
        session = manager.get_or_create_session("u1", "c1")

        turn = manager.begin_round(session, "hello")

        assert turn.role == Role.USER
        assert turn.content == "hello"
        assert session.conversation.turns[-1] is turn
        assert session.conversation.state == ConversationState.AWAITING_ASSISTANT

    def test_rejects_while_awaiting_assistant(self, manager):
        session = manager.get_or_create_session("u1", "c1")
        manager.begin_round(session, "hello")

        with pytest.raises(InvalidTurn) as exc_info:
            manager.begin_round(session, "hello again")

        assert exc_info.value.message == WAITING_FOR_ASSISTANT
        assert exc_info.value.status_code == 400
        assert len(session.conversation.turns) == 2

    def test_rejects_when_last_turn_is_user(self, manager):
        session = manager.get_or_create_session("u1", "c1")
        manager.add_turn(session, Role.USER, "dangling")

        with pytest.raises(InvalidTurn, match=WAITING_FOR_ASSISTANT):
            manager.begin_round(session, "hello")

    def test_complete_round_returns_to_awaiting_user(self, manager, evaluator):
        session = manager.get_or_create_session("u1", "c1")
        manager.begin_round(session, "hello")

        outcome = manager.complete_round(session, AssistantReply(message="sup", score=30), evaluator)

        assert outcome.completed is False
        assert session.conversation.state == ConversationState.AWAITING_USER
        assert [t.role for t in session.conversation.turns] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
        assert session.conversation.turns[-1].score == 30

        manager.begin_round(session, "next")
        assert session.conversation.turns[-1].content == "next"

    def test_rejects_after_completion(self, manager, evaluator):
        session = manager.get_or_create_session("u1", "c1")
        manager.begin_round(session, "hello")
        manager.complete_round(session, AssistantReply(message="ok fine", score=90), evaluator)

        conversation = session.conversation
        assert conversation.has_won is True
        assert conversation.highest_score == 90
        assert conversation.completed_at is not None
        assert conversation.turns[-1].content == "ok fine"
        with pytest.raises(InvalidTurn, match=CHAT_COMPLETED):
            manager.begin_round(session, "did I win?")

    def test_failing_evaluation_stores_no_reply(self, manager):
        evaluator = OutcomeEvaluator(Mock(judge=Mock(side_effect=RuntimeError("bad policy"))))
        session = manager.get_or_create_session("u1", "c1")
        manager.begin_round(session, "hello")

        with pytest.raises(RuntimeError):
            manager.complete_round(session, AssistantReply(message="sup", score=30), evaluator)

        assert [t.role for t in session.conversation.turns] == [Role.SYSTEM, Role.USER]
        assert session.conversation.highest_score is None

    def test_rejects_after_end_marker(self, manager):
        session = manager.get_or_create_session("u1", "c1")
        manager.add_turn(session, Role.USER, "hello")
        manager.add_turn(session, Role.ASSISTANT, "", end_marker=True)

        with pytest.raises(InvalidTurn, match=CHAT_ENDED):
            manager.begin_round(session, "wait")

    def test_failed_round_keeps_user_turn_and_allows_new_message(self, manager):
        session = manager.get_or_create_session("u1", "c1")
        manager.begin_round(session, "hello")

        manager.fail_round(session)

        assert session.conversation.state == ConversationState.AWAITING_USER
        assert session.conversation.last_round_failed is True
        assert session.conversation.turns[-1].content == "hello"

        manager.begin_round(session, "hello?")
        assert [t.content for t in session.conversation.turns[1:]] == ["hello", "hello?"]
        assert session.conversation.last_round_failed is False

    def test_system_turn_never_changes(self, manager, evaluator):
        session = manager.get_or_create_session("u1", "c1")
        system_turn = session.conversation.turns[0]

        for i in range(3):
            manager.begin_round(session, f"message {i}")
            manager.complete_round(session, AssistantReply(message="k", score=10), evaluator)

        assert session.conversation.turns[0] is system_turn
        assert session.conversation.turns[0].content == STRANGER_PROMPT


class TestRoundLock:
    """Tests for the per-session round lock."""

    def test_concurrent_round_rejected(self, manager):
        session = manager.get_or_create_session("u1", "c1")
        entered = threading.Event()
        release = threading.Event()

        def hold_lock():
            with manager.round_lock(session):
                entered.set()
                release.wait(timeout=5)

        worker = threading.Thread(target=hold_lock)
        worker.start()
        try:
            assert entered.wait(timeout=5)
            with pytest.raises(InvalidTurn, match=WAITING_FOR_ASSISTANT):
                with manager.round_lock(session):
                    pass
        finally:
            release.set()
            worker.join()

    def test_lock_released_after_exception(self, manager):
        session = manager.get_or_create_session("u1", "c1")

        with pytest.raises(RuntimeError):
            with manager.round_lock(session):
                raise RuntimeError("gateway blew up")

        with manager.round_lock(session):
            pass

    def test_other_sessions_not_blocked(self, manager):
        first = manager.get_or_create_session("u1", "c1")
        second = manager.get_or_create_session("u2", "c2")

        with manager.round_lock(first):
            with manager.round_lock(second):
                pass

    def test_concurrent_creation_yields_one_session(self, store):
        manager = ConversationManager(store=store)
        barrier = threading.Barrier(8)
        results = []

        def resolve():
            barrier.wait()
            results.append(manager.get_or_create_session("u1", "c1"))

        threads = [threading.Thread(target=resolve) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store) == 1
        assert all(session is results[0] for session in results)
