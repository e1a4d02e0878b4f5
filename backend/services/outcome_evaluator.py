"""Outcome evaluator deciding win/end conditions after each stranger reply."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
import logging

from models.conversation import Conversation
from services.reply_parser import AssistantReply

logger = logging.getLogger(__name__)


@dataclass
class Verdict:
    """What a policy decided about the latest reply."""
    completed: bool = False
    won: bool = False
    reason: str = ""


@dataclass
class Outcome:
    """
    Result of evaluating one round.

    Attributes:
        highest_score: Running maximum after this round
        completed: Conversation reached a terminal state
        has_won: The player convinced the stranger
        num_messages: Total stored turns (set on completion)
        time_taken_ms: Milliseconds since the conversation started (set on completion)
        reason: Which rule fired
    """
    highest_score: Optional[int]
    completed: bool = False
    has_won: bool = False
    num_messages: Optional[int] = None
    time_taken_ms: Optional[int] = None
    reason: str = ""


class OutcomePolicy(ABC):
    """Termination rule applied to each reply before it is stored."""

    @abstractmethod
    def judge(self, conversation: Conversation, reply: AssistantReply) -> Verdict:
        """Decide whether the conversation ends after this reply."""


class ScoreThresholdPolicy(OutcomePolicy):
    """
    The player wins once a realness score reaches the threshold.

    A reply carrying the end marker still ends the chat, without a win.
    """

    def __init__(self, threshold: int = 75):
        self.threshold = threshold

    def judge(self, conversation: Conversation, reply: AssistantReply) -> Verdict:
        if reply.score is not None and reply.score >= self.threshold:
            return Verdict(completed=True, won=True, reason="score_threshold")
        if reply.end_marker:
            return Verdict(completed=True, reason="end_marker")
        return Verdict()


class EndMarkerPolicy(OutcomePolicy):
    """
    The stranger ends the chat with a literal marker.

    Also ends the chat when the last `streak` scores (including this reply)
    are all at or below `low_score_ceiling`, and declares a win when a
    score reaches `win_score`.
    """

    def __init__(
        self,
        streak: int = 3,
        low_score_ceiling: int = 3,
        win_score: Optional[int] = 10
    ):
        self.streak = streak
        self.low_score_ceiling = low_score_ceiling
        self.win_score = win_score

    def judge(self, conversation: Conversation, reply: AssistantReply) -> Verdict:
        if self.win_score is not None and reply.score is not None and reply.score >= self.win_score:
            return Verdict(completed=True, won=True, reason="score_threshold")

        if reply.end_marker:
            return Verdict(completed=True, reason="end_marker")

        if self.streak > 0:
            scores: List[int] = conversation.assistant_scores()
            if reply.score is not None:
                scores.append(reply.score)
            recent = scores[-self.streak:]
            if len(recent) == self.streak and all(s <= self.low_score_ceiling for s in recent):
                return Verdict(completed=True, reason="low_score_streak")

        return Verdict()


class OutcomeEvaluator:
    """Tracks the running high score and applies the configured policy."""

    def __init__(self, policy: Optional[OutcomePolicy] = None):
        self.policy = policy or ScoreThresholdPolicy()

    def evaluate(
        self,
        conversation: Conversation,
        reply: AssistantReply,
        now: Optional[datetime] = None
    ) -> Outcome:
        """
        Evaluate a reply before it is appended to the conversation.

        The conversation is not modified; the caller stores the reply and
        applies the outcome only once evaluation has succeeded.

        Args:
            conversation: Conversation as it stands before the reply
            reply: Parsed stranger reply
            now: Evaluation time (defaults to datetime.now())

        Returns:
            Outcome describing the round
        """
        now = now or datetime.now()

        highest_score = conversation.highest_score
        if reply.score is not None and (highest_score is None or reply.score > highest_score):
            highest_score = reply.score

        verdict = self.policy.judge(conversation, reply)
        outcome = Outcome(highest_score=highest_score, reason=verdict.reason)

        if not verdict.completed:
            return outcome

        outcome.completed = True
        outcome.has_won = verdict.won
        outcome.num_messages = len(conversation.turns) + 1
        outcome.time_taken_ms = int((now - conversation.created_at).total_seconds() * 1000)

        logger.info(
            f"Conversation {conversation.conversation_id} completed: "
            f"reason={verdict.reason}, won={verdict.won}, "
            f"messages={outcome.num_messages}, time_taken={outcome.time_taken_ms}ms"
        )
        return outcome
