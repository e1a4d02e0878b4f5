"""Services for the Turing Chat backend."""
from .errors import ChatError, ValidationError, MessageTooLong, InvalidTurn, GatewayFailure
from .session_store import SessionStore, InMemorySessionStore
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError, ProviderAttempt
from .reply_parser import ReplyParser, AssistantReply
from .outcome_evaluator import OutcomeEvaluator, OutcomePolicy, ScoreThresholdPolicy, EndMarkerPolicy, Outcome
from .conversation_manager import ConversationManager
from .chat_service import ChatService, ChatResult
from .leaderboard import Leaderboard

__all__ = ['ChatError', 'ValidationError', 'MessageTooLong', 'InvalidTurn', 'GatewayFailure', 'SessionStore', 'InMemorySessionStore', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'ProviderAttempt', 'ReplyParser', 'AssistantReply', 'OutcomeEvaluator', 'OutcomePolicy', 'ScoreThresholdPolicy', 'EndMarkerPolicy', 'Outcome', 'ConversationManager', 'ChatService', 'ChatResult', 'Leaderboard']
