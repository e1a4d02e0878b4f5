"""Read-only leaderboard over won conversations."""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from services.session_store import SessionStore


@dataclass
class LeaderboardRow:
    """A won conversation summarized for display."""
    chat_id: str
    user_id: str
    num_messages: int
    time_taken_ms: int
    highest_score: Optional[int]
    completed_at: datetime


class Leaderboard:
    """Builds top and most-recent winner lists from the session store."""

    def __init__(self, store: SessionStore, size: int = 10):
        self.store = store
        self.size = size

    def winners(self) -> List[LeaderboardRow]:
        rows = []
        for session in self.store.list_sessions():
            conversation = session.conversation
            if not conversation.has_won or conversation.completed_at is None:
                continue
            rows.append(LeaderboardRow(
                chat_id=session.chat_id,
                user_id=session.user_id,
                num_messages=len(conversation.turns),
                time_taken_ms=int((conversation.completed_at - conversation.created_at).total_seconds() * 1000),
                highest_score=conversation.highest_score,
                completed_at=conversation.completed_at
            ))
        return rows

    def snapshot(self) -> Dict[str, List[LeaderboardRow]]:
        """
        Return the top and most recent winners.

        Top is ordered by highest score, then fewer messages, then faster
        time; recent by completion time, newest first.
        """
        rows = self.winners()
        top = sorted(
            rows,
            key=lambda r: (-(r.highest_score or 0), r.num_messages, r.time_taken_ms)
        )[:self.size]
        recent = sorted(rows, key=lambda r: r.completed_at, reverse=True)[:self.size]
        return {"top": top, "recent": recent}
