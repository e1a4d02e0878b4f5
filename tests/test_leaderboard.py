"""Unit tests for Leaderboard."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import pytest
from datetime import datetime, timedelta
from models.conversation import Conversation, ConversationState, Role, Session, Turn
from services.leaderboard import Leaderboard
from services.session_store import InMemorySessionStore

START = datetime(2024, 1, 1, 12, 0, 0)


def add_session(store, chat_id, won=True, score=80, turns=3, seconds=60, finished_minute=0):
    conversation = Conversation(
        conversation_id=f"conv_{chat_id}",
        turns=[Turn(role=Role.SYSTEM, content="s", timestamp=START) for _ in range(turns)],
        created_at=START,
        highest_score=score
    )
    if won:
        conversation.state = ConversationState.COMPLETED
        conversation.has_won = True
        conversation.completed_at = START + timedelta(minutes=finished_minute, seconds=seconds)
    store.create(Session(
        session_key=f"u:{chat_id}",
        user_id="u",
        chat_id=chat_id,
        conversation=conversation
    ))


@pytest.fixture
def store():
    return InMemorySessionStore()


def test_only_winners_listed(store):
    add_session(store, "won")
    add_session(store, "playing", won=False)

    rows = Leaderboard(store).winners()

    assert [row.chat_id for row in rows] == ["won"]
    assert rows[0].time_taken_ms == 60000
    assert rows[0].num_messages == 3


def test_top_ordered_by_score_then_messages_then_time(store):
    add_session(store, "a", score=80, turns=7)
    add_session(store, "b", score=95, turns=9)
    add_session(store, "c", score=80, turns=5, seconds=30)
    add_session(store, "d", score=80, turns=5, seconds=10)

    top = Leaderboard(store).snapshot()["top"]

    assert [row.chat_id for row in top] == ["b", "d", "c", "a"]


def test_recent_newest_first_and_limited(store):
    for minute in range(5):
        add_session(store, f"chat{minute}", finished_minute=minute)

    recent = Leaderboard(store, size=3).snapshot()["recent"]

    assert [row.chat_id for row in recent] == ["chat4", "chat3", "chat2"]


def test_empty_store(store):
    assert Leaderboard(store).snapshot() == {"top": [], "recent": []}
