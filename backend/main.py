"""Main entry point for the Turing Chat API."""
import logging
from typing import Tuple

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from config import (
    PORT,
    CORS_ORIGINS,
    LOG_LEVEL,
    LOG_FORMAT,
    OUTCOME_POLICY,
    WIN_SCORE_THRESHOLD,
    LOW_SCORE_STREAK,
    LOW_SCORE_CEILING,
    MARKER_WIN_SCORE,
    LEADERBOARD_SIZE,
)
from logger import setup_logging
from models.api import ChatRequest, ChatResponse, LeaderboardEntry, LeaderboardResponse
from services.chat_service import ChatService
from services.conversation_manager import ConversationManager
from services.errors import ChatError
from services.leaderboard import Leaderboard
from services.llm_client import LLMClient
from services.outcome_evaluator import EndMarkerPolicy, OutcomeEvaluator, OutcomePolicy, ScoreThresholdPolicy
from services.prompts import PromptProfile, STRANGER_PROFILE, TURING_EXPERT_PROFILE

# Initialize logging
if LOG_FORMAT == "json":
    setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Turing Chat",
    description="Convince a bored stranger that you are human",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
chat_service: ChatService = None
leaderboard: Leaderboard = None


def select_policy(name: str) -> Tuple[PromptProfile, OutcomePolicy]:
    """
    Pick the prompt profile and termination policy for a policy name.

    Args:
        name: "score" (JSON realness score) or "marker" (inline score and [ENDCHAT])

    Returns:
        Tuple of prompt profile and outcome policy
    """
    if name == "score":
        return STRANGER_PROFILE, ScoreThresholdPolicy(threshold=WIN_SCORE_THRESHOLD)
    if name == "marker":
        return TURING_EXPERT_PROFILE, EndMarkerPolicy(
            streak=LOW_SCORE_STREAK,
            low_score_ceiling=LOW_SCORE_CEILING,
            win_score=MARKER_WIN_SCORE
        )
    raise ValueError(f"Unsupported OUTCOME_POLICY: {name}. Use 'score' or 'marker'.")


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global chat_service, leaderboard

    logger.info("Initializing Turing Chat services...")

    try:
        profile, policy = select_policy(OUTCOME_POLICY)
        logger.info(f"Using outcome policy '{OUTCOME_POLICY}' with profile '{profile.name}'")

        conversation_manager = ConversationManager(profile=profile)
        logger.info("Initialized ConversationManager")

        llm_client = LLMClient()
        logger.info("Initialized LLMClient")

        chat_service = ChatService(
            conversation_manager=conversation_manager,
            llm_client=llm_client,
            outcome_evaluator=OutcomeEvaluator(policy)
        )
        leaderboard = Leaderboard(conversation_manager.store, size=LEADERBOARD_SIZE)

        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Turing Chat API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "turing-chat",
        "version": "1.0.0"
    }


@app.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
def chat_endpoint(request: ChatRequest) -> ChatResponse:
    """
    Send one message to the stranger.

    Runs in the worker threadpool because the gateway call blocks.

    Args:
        request: ChatRequest with message, chatId and userId

    Returns:
        ChatResponse with the stranger's reply; win statistics when the
        player has won

    Raises:
        HTTPException: 400 for bad input or turn order, 429/500 for gateway
            failures, 500 for anything unexpected
    """
    try:
        result = chat_service.handle_message(request.user_id, request.chat_id, request.message)
    except ChatError as e:
        logger.warning(f"Chat request rejected ({e.status_code}): {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in chat endpoint: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    response = ChatResponse(message=result.message, highest_score=result.highest_score)
    if result.has_won:
        response.has_won = True
        response.num_messages = result.num_messages
        response.time_taken = result.time_taken_ms
    elif result.has_completed:
        response.has_completed = True
    return response


@app.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard_endpoint() -> LeaderboardResponse:
    """Top and most recent winners."""
    try:
        snapshot = leaderboard.snapshot()
    except Exception as e:
        logger.error(f"Error fetching leaderboard data: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    def to_entries(rows):
        return [
            LeaderboardEntry(
                chat_id=row.chat_id,
                user_id=row.user_id,
                num_messages=row.num_messages,
                time_taken_ms=row.time_taken_ms,
                highest_score=row.highest_score,
                completed_at=row.completed_at
            )
            for row in rows
        ]

    return LeaderboardResponse(top=to_entries(snapshot["top"]), recent=to_entries(snapshot["recent"]))


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Turing Chat API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
