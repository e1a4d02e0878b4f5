"""Request and response schemas for the HTTP API."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Inbound chat message.

    Fields are optional at the schema level so that missing values are
    reported as a 400 by the endpoint rather than a 422 by FastAPI.
    """
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    user_id: Optional[str] = Field(default=None, alias="userId")


class ChatResponse(BaseModel):
    """Reply returned to the terminal UI."""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    highest_score: Optional[int] = Field(default=None, alias="highestScore")
    has_won: Optional[bool] = Field(default=None, alias="hasWon")
    has_completed: Optional[bool] = Field(default=None, alias="hasCompleted")
    num_messages: Optional[int] = Field(default=None, alias="numMessages")
    time_taken: Optional[int] = Field(default=None, alias="timeTaken")


class LeaderboardEntry(BaseModel):
    """One won conversation on the leaderboard."""
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(alias="chatId")
    user_id: str = Field(alias="userId")
    num_messages: int = Field(alias="numMessages")
    time_taken_ms: int = Field(alias="timeTakenMs")
    highest_score: Optional[int] = Field(default=None, alias="highestScore")
    completed_at: datetime = Field(alias="completedAt")


class LeaderboardResponse(BaseModel):
    """Top and most recent winners."""
    top: List[LeaderboardEntry]
    recent: List[LeaderboardEntry]
