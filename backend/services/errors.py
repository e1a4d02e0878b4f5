"""Error taxonomy for the chat round."""


class ChatError(Exception):
    """Base class for failures surfaced to the HTTP boundary."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ChatError):
    """Bad, missing or oversized input."""

    status_code = 400


class MessageTooLong(ValidationError):
    """Message exceeds the configured maximum length."""

    def __init__(self, message: str = "Message too long"):
        super().__init__(message)


class InvalidTurn(ChatError):
    """Turn-order violation or submission to a completed conversation."""

    status_code = 400


class GatewayFailure(ChatError):
    """The LLM call failed or returned an unusable reply."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable
        if retryable:
            self.status_code = 429
