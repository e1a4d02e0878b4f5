"""Chat service: one round of the Turing-test game."""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from config import (
    MAX_MESSAGE_LENGTH,
    STRANGER_PREFIX,
    SWAP_ROLES,
    LLM_MAX_TOKENS,
    TYPING_CHARS_PER_MINUTE,
)
from services.conversation_manager import ConversationManager
from services.errors import GatewayFailure, MessageTooLong, ValidationError
from services.llm_client import LLMClient, LLMClientError
from services.outcome_evaluator import OutcomeEvaluator
from services.prompts import JSON_FORMAT
from services.reply_parser import ReplyParser

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Missing required fields"
ASSISTANT_UNAVAILABLE = "Assistant unavailable"


@dataclass
class ChatResult:
    """Outcome of a successful round, shaped for the HTTP response."""
    message: str
    highest_score: Optional[int] = None
    has_won: bool = False
    has_completed: bool = False
    num_messages: Optional[int] = None
    time_taken_ms: Optional[int] = None


class ChatService:
    """
    Runs a chat round end to end.

    A round validates the input, resolves the session and checks turn order,
    then appends the player turn and sends the full history to the gateway.
    The reply is parsed and judged, and only then stored as the stranger turn.
    Any failure before that point rolls the round back so the player can retry.
    """

    def __init__(
        self,
        conversation_manager: ConversationManager,
        llm_client: LLMClient,
        outcome_evaluator: OutcomeEvaluator,
        reply_parser: Optional[ReplyParser] = None,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        stranger_prefix: str = STRANGER_PREFIX,
        swap_roles: bool = SWAP_ROLES,
        typing_chars_per_minute: int = TYPING_CHARS_PER_MINUTE,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.conversation_manager = conversation_manager
        self.llm_client = llm_client
        self.outcome_evaluator = outcome_evaluator
        profile = conversation_manager.profile
        self.reply_parser = reply_parser or ReplyParser(
            reply_format=profile.reply_format,
            max_score=100 if profile.reply_format == JSON_FORMAT else 10
        )
        self.max_message_length = max_message_length
        self.stranger_prefix = stranger_prefix
        self.swap_roles = swap_roles
        self.typing_chars_per_minute = typing_chars_per_minute
        self.sleep = sleep

    def validate(self, user_id: Optional[str], chat_id: Optional[str], message: Optional[str]) -> None:
        """
        Reject missing or oversized input before any state is touched.

        Raises:
            ValidationError: A field is missing or blank
            MessageTooLong: Message exceeds max_message_length
        """
        if not message or not message.strip() or not chat_id or not user_id:
            raise ValidationError(MISSING_FIELDS)
        if len(message) > self.max_message_length:
            raise MessageTooLong()

    def handle_message(self, user_id: str, chat_id: str, message: str) -> ChatResult:
        """
        Process one player message.

        Returns:
            ChatResult with the prefixed stranger reply and any terminal stats

        Raises:
            ValidationError: Bad input
            InvalidTurn: Turn-order violation
            GatewayFailure: Provider failure or unusable reply
        """
        self.validate(user_id, chat_id, message)

        session = self.conversation_manager.get_or_create_session(user_id, chat_id)
        conversation = session.conversation
        profile = self.conversation_manager.profile

        with self.conversation_manager.round_lock(session):
            self.conversation_manager.begin_round(session, message)

            try:
                messages = LLMClient.build_messages(
                    conversation.turns,
                    user_prefix=profile.user_prefix,
                    swap_roles=self.swap_roles,
                    score_annotation=profile.score_annotation
                )
                llm_response = self.llm_client.generate(
                    messages=messages,
                    max_tokens=LLM_MAX_TOKENS,
                    json_mode=profile.reply_format == JSON_FORMAT
                )
                reply = self.reply_parser.parse(llm_response.text)
                outcome = self.conversation_manager.complete_round(session, reply, self.outcome_evaluator)
            except LLMClientError as e:
                self.conversation_manager.fail_round(session)
                logger.error(f"LLM client error for session {session.session_key}: {e.error.message}")
                raise GatewayFailure(
                    ASSISTANT_UNAVAILABLE,
                    retryable=e.error.code == "RATE_LIMIT_ERROR"
                ) from e
            except GatewayFailure as e:
                self.conversation_manager.fail_round(session)
                logger.error(
                    f"Unusable reply for session {session.session_key}: {e.message}",
                    extra={"extra": {"raw_reply": llm_response.text[:500]}}
                )
                raise
            except Exception:
                self.conversation_manager.fail_round(session)
                raise

        logger.info(
            f"Round completed for session {session.session_key}",
            extra={"extra": {
                "conversation_id": conversation.conversation_id,
                "provider": llm_response.provider,
                "model": llm_response.model_used,
                "tokens_input": llm_response.tokens_input,
                "tokens_output": llm_response.tokens_output,
                "latency_ms": llm_response.latency_ms,
                "score": reply.score,
                "highest_score": outcome.highest_score,
                "completed": outcome.completed,
            }}
        )

        self._simulate_typing(reply.message)

        return ChatResult(
            message=f"{self.stranger_prefix}{reply.message}",
            highest_score=outcome.highest_score,
            has_won=outcome.has_won,
            has_completed=outcome.completed,
            num_messages=outcome.num_messages,
            time_taken_ms=outcome.time_taken_ms
        )

    def _simulate_typing(self, text: str) -> None:
        if self.typing_chars_per_minute <= 0:
            return
        self.sleep(len(text) / self.typing_chars_per_minute * 60)
