"""Conversation data models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Role(str, Enum):
    """Author of a turn."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConversationState(str, Enum):
    """Turn-taking state of a conversation."""
    AWAITING_USER = "awaiting_user"
    AWAITING_ASSISTANT = "awaiting_assistant"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Turn:
    """Represents a single turn in a conversation."""
    role: Role
    content: str
    timestamp: datetime
    score: Optional[int] = None
    end_marker: bool = False


@dataclass
class Conversation:
    """
    Represents one chat between a player and the stranger.

    The first turn is always the seeded system turn; turns are only ever
    appended after it.
    """
    conversation_id: str
    turns: List[Turn]
    created_at: datetime
    state: ConversationState = ConversationState.AWAITING_USER
    has_won: bool = False
    highest_score: Optional[int] = None
    completed_at: Optional[datetime] = None
    last_round_failed: bool = False

    @property
    def has_completed(self) -> bool:
        return self.state == ConversationState.COMPLETED

    @property
    def last_turn(self) -> Optional[Turn]:
        return self.turns[-1] if self.turns else None

    def assistant_scores(self) -> List[int]:
        """Scores of scored assistant turns, oldest first."""
        return [
            turn.score for turn in self.turns
            if turn.role == Role.ASSISTANT and turn.score is not None
        ]


@dataclass
class Session:
    """Caller-identified container owning one conversation."""
    session_key: str
    user_id: str
    chat_id: str
    conversation: Conversation
    created_at: datetime = field(default_factory=datetime.now)


def make_session_key(user_id: str, chat_id: str) -> str:
    """Build the registry key for a user/chat pair."""
    return f"{user_id}:{chat_id}"
