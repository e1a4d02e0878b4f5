"""Configuration management for the Turing Chat backend."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Model Configuration
PRIMARY_MODEL = os.getenv("PRIMARY_MODEL", "llama-3.1-8b-instant")
FALLBACK_MODEL = os.getenv("FALLBACK_MODEL", "gpt-3.5-turbo")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "3"))
LLM_RETRY_BACKOFF_SECONDS = float(os.getenv("LLM_RETRY_BACKOFF_SECONDS", "0.5"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "300"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))

# Chat Configuration
MAX_MESSAGE_LENGTH = 500  # characters
STRANGER_PREFIX = "stranger: "
SWAP_ROLES = os.getenv("SWAP_ROLES", "false").lower() in ("1", "true", "yes")
TYPING_CHARS_PER_MINUTE = int(os.getenv("TYPING_CHARS_PER_MINUTE", "0"))  # 0 disables

# Outcome Configuration
OUTCOME_POLICY = os.getenv("OUTCOME_POLICY", "score")  # "score" or "marker"
WIN_SCORE_THRESHOLD = int(os.getenv("WIN_SCORE_THRESHOLD", "75"))
END_CHAT_MARKER = "[ENDCHAT]"
LOW_SCORE_STREAK = 3
LOW_SCORE_CEILING = 3
MARKER_WIN_SCORE = 10

# Leaderboard Configuration
LEADERBOARD_SIZE = 10

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
