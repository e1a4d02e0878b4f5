"""Data models for the Turing Chat backend."""
from .conversation import Conversation, ConversationState, Role, Session, Turn, make_session_key
from .api import ChatRequest, ChatResponse, LeaderboardEntry, LeaderboardResponse

__all__ = [
    "Conversation",
    "ConversationState",
    "Role",
    "Session",
    "Turn",
    "make_session_key",
    "ChatRequest",
    "ChatResponse",
    "LeaderboardEntry",
    "LeaderboardResponse",
]
