"""LLM gateway with an ordered list of chat-completion providers."""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import groq
import openai
from groq import Groq
from openai import OpenAI
import logging

from config import (
    GROQ_API_KEY,
    OPENAI_API_KEY,
    PRIMARY_MODEL,
    FALLBACK_MODEL,
    LLM_TIMEOUT_SECONDS,
    LLM_MAX_RETRIES,
    LLM_RETRY_BACKOFF_SECONDS,
    LLM_TEMPERATURE,
)
from models.conversation import Role, Turn

logger = logging.getLogger(__name__)

# Both SDKs share the same exception hierarchy shape; order of checks matters
# because RateLimitError and APITimeoutError are both APIError subclasses.
RATE_LIMIT_ERRORS = (groq.RateLimitError, openai.RateLimitError)
AUTHENTICATION_ERRORS = (groq.AuthenticationError, openai.AuthenticationError)
TIMEOUT_ERRORS = (groq.APITimeoutError, openai.APITimeoutError)
API_ERRORS = (groq.APIError, openai.APIError)

RETRYABLE_CODES = {"RATE_LIMIT_ERROR", "TIMEOUT_ERROR", "API_ERROR"}


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str
    provider: str = ""


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


@dataclass
class ProviderAttempt:
    """One entry in the ordered provider list."""
    name: str
    client: Any
    model: str


class LLMClient:
    """
    Client that sends a chat history to the first provider that answers.

    Providers are tried in order. Transient failures (rate limit, timeout,
    API error) are retried on the same provider with exponential backoff, up
    to max_retries times; any other failure moves on to the next provider.
    Every try shares a single timeout budget, so the SDK clients are built
    with their own retries turned off.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        fallback_api_key: Optional[str] = None,
        providers: Optional[List[ProviderAttempt]] = None,
        timeout_seconds: float = LLM_TIMEOUT_SECONDS,
        max_retries: int = LLM_MAX_RETRIES,
        retry_backoff_seconds: float = LLM_RETRY_BACKOFF_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the gateway.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            fallback_api_key: OpenAI API key (defaults to OPENAI_API_KEY)
            providers: Explicit provider list, bypasses key-based construction
            timeout_seconds: Budget shared by every attempt of one call
            max_retries: Retries per provider for transient failures
            retry_backoff_seconds: First backoff delay, doubled on each retry
            clock: Monotonic clock, injectable for tests
            sleep: Backoff sleep, injectable for tests
        """
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self.clock = clock
        self.sleep = sleep

        if providers is not None:
            self.providers = list(providers)
        else:
            self.providers = self._default_providers(
                api_key or GROQ_API_KEY,
                fallback_api_key or OPENAI_API_KEY
            )

        if not self.providers:
            raise ValueError("GROQ_API_KEY or OPENAI_API_KEY must be provided or set in environment")

        logger.info(
            "LLMClient initialized with providers: "
            + ", ".join(f"{p.name}/{p.model}" for p in self.providers)
        )

    def _default_providers(
        self,
        groq_api_key: Optional[str],
        openai_api_key: Optional[str]
    ) -> List[ProviderAttempt]:
        providers = []
        if groq_api_key:
            providers.append(ProviderAttempt(
                name="groq",
                client=Groq(
                    api_key=groq_api_key,
                    max_retries=0,
                    timeout=self.timeout_seconds
                ),
                model=PRIMARY_MODEL
            ))
        if openai_api_key:
            providers.append(ProviderAttempt(
                name="openai",
                client=OpenAI(
                    api_key=openai_api_key,
                    max_retries=0,
                    timeout=self.timeout_seconds
                ),
                model=FALLBACK_MODEL
            ))
        return providers

    def generate(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 300,
        json_mode: bool = False
    ) -> LLMResponse:
        """
        Generate a reply for a chat history.

        Every try, retries included, is given only what is left of the
        timeout budget, and no try starts once the budget is spent.

        Args:
            messages: Role-tagged chat messages, system prompt first
            max_tokens: Maximum tokens to generate
            json_mode: Ask the provider for a JSON object reply

        Returns:
            LLMResponse from the first provider that succeeded

        Raises:
            LLMClientError: Structured error of the last failed attempt, or a
                TIMEOUT_ERROR once the budget is exhausted
        """
        start = self.clock()
        last_error: Optional[LLMClientError] = None
        attempts = 0

        for index, provider in enumerate(self.providers):
            for retry in range(self.max_retries + 1):
                remaining = self.timeout_seconds - (self.clock() - start)
                if remaining <= 0:
                    logger.error(f"Timeout budget exhausted before trying provider {provider.name}")
                    raise LLMClientError(LLMError(
                        code="TIMEOUT_ERROR",
                        message="Request timed out. Please try again.",
                        details={
                            "provider": provider.name,
                            "model": provider.model,
                            "budget_seconds": self.timeout_seconds,
                            "attempts": attempts
                        }
                    ))

                attempts += 1
                try:
                    return self._attempt(provider, messages, max_tokens, remaining, json_mode)
                except LLMClientError as e:
                    last_error = e
                    if e.error.code not in RETRYABLE_CODES or retry == self.max_retries:
                        break

                remaining = self.timeout_seconds - (self.clock() - start)
                delay = min(self.retry_backoff_seconds * (2 ** retry), max(remaining, 0))
                logger.warning(
                    f"Retrying provider {provider.name} after {last_error.error.code} "
                    f"(retry {retry + 1}/{self.max_retries}, backoff {delay:.2f}s)"
                )
                if delay > 0:
                    self.sleep(delay)

            if index + 1 < len(self.providers):
                logger.warning(
                    f"Provider {provider.name} failed ({last_error.error.code}), "
                    f"falling back to {self.providers[index + 1].name}"
                )

        raise last_error

    def _attempt(
        self,
        provider: ProviderAttempt,
        messages: List[Dict[str, str]],
        max_tokens: int,
        timeout: float,
        json_mode: bool
    ) -> LLMResponse:
        start_time = time.time()

        try:
            logger.debug(f"Generating response with {provider.name}/{provider.model}")

            kwargs: Dict[str, Any] = {
                "model": provider.model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": LLM_TEMPERATURE,
                "timeout": timeout,
            }
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}

            response = provider.client.chat.completions.create(**kwargs)

            latency_ms = int((time.time() - start_time) * 1000)

            text = response.choices[0].message.content or ""

            usage = getattr(response, "usage", None)
            tokens_input = getattr(usage, "prompt_tokens", 0) if usage else 0
            tokens_output = getattr(usage, "completion_tokens", 0) if usage else 0

            logger.info(
                f"Generated response: provider={provider.name}, model={provider.model}, "
                f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
                f"latency={latency_ms}ms"
            )

            return LLMResponse(
                text=text,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                latency_ms=latency_ms,
                model_used=provider.model,
                provider=provider.name
            )

        except Exception as e:
            latency_ms = int((time.time() - start_time) * 1000)
            error = self._classify_error(e, provider, latency_ms)
            logger.error(
                f"{error.code}: provider={provider.name}, model={provider.model}, "
                f"latency={latency_ms}ms, error={e}",
                exc_info=True,
                extra={"extra": {"error_code": error.code, "error_details": error.details}}
            )
            raise LLMClientError(error) from e

    @staticmethod
    def _classify_error(exc: Exception, provider: ProviderAttempt, latency_ms: int) -> LLMError:
        details = {
            "provider": provider.name,
            "model": provider.model,
            "latency_ms": latency_ms,
            "original_error": str(exc)
        }

        if isinstance(exc, RATE_LIMIT_ERRORS):
            details["retry_after"] = 60
            return LLMError(
                code="RATE_LIMIT_ERROR",
                message="Rate limit exceeded. Please try again in a few moments.",
                details=details
            )
        if isinstance(exc, AUTHENTICATION_ERRORS):
            return LLMError(
                code="AUTHENTICATION_ERROR",
                message="Authentication failed. Please check your API key.",
                details=details
            )
        if isinstance(exc, TIMEOUT_ERRORS):
            return LLMError(
                code="TIMEOUT_ERROR",
                message="Request timed out. Please try again.",
                details=details
            )
        if isinstance(exc, API_ERRORS):
            return LLMError(
                code="API_ERROR",
                message=f"{provider.name} API error: {str(exc)}",
                details=details
            )

        details["error_type"] = type(exc).__name__
        return LLMError(
            code="UNKNOWN_ERROR",
            message=f"Unexpected error during generation: {str(exc)}",
            details=details
        )

    @staticmethod
    def build_messages(
        turns: Sequence[Turn],
        user_prefix: str = "",
        swap_roles: bool = False,
        score_annotation: str = ""
    ) -> List[Dict[str, str]]:
        """
        Map stored turns to chat-completion messages.

        Args:
            turns: Conversation turns, system turn first
            user_prefix: Prefix for player messages (render time only)
            swap_roles: Present the player as "assistant" and the stranger as "user"
            score_annotation: Format string such as "[SCORE: {score}]" appended
                to scored assistant turns (render time only)

        Returns:
            List of {"role", "content"} dicts in turn order
        """
        mapping = {
            Role.SYSTEM: "system",
            Role.USER: "assistant" if swap_roles else "user",
            Role.ASSISTANT: "user" if swap_roles else "assistant",
        }

        messages = []
        for turn in turns:
            content = turn.content
            if turn.role == Role.USER and user_prefix:
                content = f"{user_prefix}{content}"
            elif turn.role == Role.ASSISTANT and score_annotation and turn.score is not None:
                content = f"{content} {score_annotation.format(score=turn.score)}"
            messages.append({"role": mapping[turn.role], "content": content})
        return messages
