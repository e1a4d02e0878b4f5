"""Conversation manager: session registry and turn-taking state machine."""
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, Optional

from models.conversation import (
    Conversation,
    ConversationState,
    Role,
    Session,
    Turn,
    make_session_key,
)
from services.errors import InvalidTurn
from services.outcome_evaluator import Outcome, OutcomeEvaluator
from services.prompts import PromptProfile, STRANGER_PROFILE
from services.reply_parser import AssistantReply
from services.session_store import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)

CHAT_COMPLETED = "Chat has already completed"
WAITING_FOR_ASSISTANT = "Waiting for assistant response"
CHAT_ENDED = "Chat has ended"


def generate_conversation_id() -> str:
    """
    Generate a unique conversation ID.

    Returns:
        Unique conversation ID string
    """
    return f"conv_{uuid.uuid4().hex[:12]}"


class ConversationManager:
    """Owns every session and enforces turn order within each conversation."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        profile: PromptProfile = STRANGER_PROFILE,
        id_factory: Callable[[], str] = generate_conversation_id,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the conversation manager.

        Args:
            store: Session storage (defaults to an in-memory store)
            profile: Prompt profile used to seed new conversations
            id_factory: Conversation ID generator
            clock: Source of turn timestamps
        """
        self.store = store if store is not None else InMemorySessionStore()
        self.profile = profile
        self.id_factory = id_factory
        self.clock = clock
        self._round_locks: Dict[str, threading.Lock] = {}
        self._round_locks_guard = threading.Lock()
        logger.info(f"ConversationManager initialized with profile '{profile.name}'")

    def get_or_create_session(self, user_id: str, chat_id: str) -> Session:
        """
        Resolve the session for a user/chat pair, creating it on first contact.

        A new session's conversation is seeded with the profile's system turn.
        """
        session_key = make_session_key(user_id, chat_id)
        session = self.store.get(session_key)
        if session is not None:
            return session

        now = self.clock()
        conversation = Conversation(
            conversation_id=self.id_factory(),
            turns=[Turn(role=Role.SYSTEM, content=self.profile.build_system_prompt(), timestamp=now)],
            created_at=now
        )
        session = self.store.create(Session(
            session_key=session_key,
            user_id=user_id,
            chat_id=chat_id,
            conversation=conversation,
            created_at=now
        ))
        if session.conversation is conversation:
            logger.info(f"Created new session {session_key} with conversation {conversation.conversation_id}")
        return session

    @contextmanager
    def round_lock(self, session: Session) -> Iterator[None]:
        """
        Hold the session's round lock for the duration of one round.

        Raises:
            InvalidTurn: Another round for this session is in flight
        """
        with self._round_locks_guard:
            lock = self._round_locks.setdefault(session.session_key, threading.Lock())

        if not lock.acquire(blocking=False):
            logger.warning(f"Rejected concurrent round for session {session.session_key}")
            raise InvalidTurn(WAITING_FOR_ASSISTANT)
        try:
            yield
        finally:
            lock.release()

    def begin_round(self, session: Session, message: str) -> Turn:
        """
        Validate turn order and append the player's message.

        Raises:
            InvalidTurn: Conversation completed, a reply is pending, or the
                stranger ended the chat
        """
        conversation = session.conversation
        last_turn = conversation.last_turn

        if conversation.state == ConversationState.COMPLETED:
            raise InvalidTurn(CHAT_COMPLETED)
        if conversation.state == ConversationState.AWAITING_ASSISTANT:
            raise InvalidTurn(WAITING_FOR_ASSISTANT)
        if last_turn is not None and last_turn.role == Role.USER and not conversation.last_round_failed:
            raise InvalidTurn(WAITING_FOR_ASSISTANT)
        if last_turn is not None and last_turn.end_marker:
            raise InvalidTurn(CHAT_ENDED)

        turn = self.add_turn(session, Role.USER, message)
        conversation.state = ConversationState.AWAITING_ASSISTANT
        conversation.last_round_failed = False
        self.store.update(session)
        return turn

    def complete_round(
        self,
        session: Session,
        reply: AssistantReply,
        evaluator: OutcomeEvaluator
    ) -> Outcome:
        """
        Judge the stranger's reply, then store it and apply the outcome.

        Nothing is appended if evaluation raises, so the caller can roll the
        round back with fail_round.
        """
        conversation = session.conversation
        now = self.clock()
        outcome = evaluator.evaluate(conversation, reply, now=now)

        self.add_turn(session, Role.ASSISTANT, reply.message, score=reply.score, end_marker=reply.end_marker)
        conversation.highest_score = outcome.highest_score
        if outcome.completed:
            conversation.state = ConversationState.COMPLETED
            conversation.completed_at = now
            conversation.has_won = outcome.has_won
        else:
            conversation.state = ConversationState.AWAITING_USER
        self.store.update(session)
        return outcome

    def fail_round(self, session: Session) -> None:
        """Roll back to AWAITING_USER after a failed gateway call; the user turn is kept."""
        conversation = session.conversation
        conversation.state = ConversationState.AWAITING_USER
        conversation.last_round_failed = True
        self.store.update(session)
        logger.warning(f"Round failed for conversation {conversation.conversation_id}")

    def add_turn(
        self,
        session: Session,
        role: Role,
        content: str,
        score: Optional[int] = None,
        end_marker: bool = False
    ) -> Turn:
        """Append an immutable turn to the session's conversation."""
        turn = Turn(
            role=role,
            content=content,
            timestamp=self.clock(),
            score=score,
            end_marker=end_marker
        )
        session.conversation.turns.append(turn)
        logger.debug(f"Added {role.value} turn to conversation {session.conversation.conversation_id}")
        return turn
