"""Parsing and validation of the stranger's raw LLM reply."""
import json
import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from services.errors import GatewayFailure
from services.prompts import JSON_FORMAT, MARKER_FORMAT

REPLY_NOT_FOUND = "Assistant reply not found"
REPLY_MALFORMED = "Assistant reply malformed"

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)
_CODE_FENCE = re.compile(r"^```[A-Za-z0-9_-]*\s*|\s*```$")
_SCORE_TAG = re.compile(r"\s*\[SCORE:?\s*(\d{1,3})?\s*\]\s*", re.IGNORECASE)


@dataclass(frozen=True)
class AssistantReply:
    """Validated reply: visible text, optional score and end-of-chat flag."""
    message: str
    score: Optional[int] = None
    end_marker: bool = False


class ReplyParser:
    """Turns raw completion text into an AssistantReply or a GatewayFailure."""

    def __init__(
        self,
        reply_format: str = JSON_FORMAT,
        end_marker: str = "[ENDCHAT]",
        max_score: int = 100
    ):
        if reply_format not in (JSON_FORMAT, MARKER_FORMAT):
            raise ValueError(f"Unknown reply format: {reply_format}")
        self.reply_format = reply_format
        self.end_marker = end_marker
        self.max_score = max_score

    def parse(self, raw: Optional[str]) -> AssistantReply:
        if raw is None or not raw.strip():
            raise GatewayFailure(REPLY_NOT_FOUND)

        if self.reply_format == JSON_FORMAT:
            return self._parse_json(raw)
        return self._parse_marker(raw)

    def _parse_json(self, raw: str) -> AssistantReply:
        data = self._load_object(raw)

        message = data.get("message")
        if not isinstance(message, str) or not message.strip():
            raise GatewayFailure(REPLY_MALFORMED)

        if data.get("refusal"):
            raise GatewayFailure(REPLY_MALFORMED)

        score = data.get("realnessScore", data.get("score"))
        # bool is an int subclass; reject it explicitly
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise GatewayFailure(REPLY_MALFORMED)
        if score != score or score < 0 or score > self.max_score:
            raise GatewayFailure(REPLY_MALFORMED)

        end_marker = self.end_marker in message
        if end_marker:
            message = message.replace(self.end_marker, " ")
        message = " ".join(message.split())
        if not message and not end_marker:
            raise GatewayFailure(REPLY_MALFORMED)

        # halves round up
        return AssistantReply(message=message, score=math.floor(score + 0.5), end_marker=end_marker)

    def _parse_marker(self, raw: str) -> AssistantReply:
        end_marker = self.end_marker in raw
        text = raw.replace(self.end_marker, " ") if end_marker else raw

        score = None
        match = _SCORE_TAG.search(text)
        if match and match.group(1) is not None:
            score = int(match.group(1))
            if score > self.max_score:
                raise GatewayFailure(REPLY_MALFORMED)
        text = _SCORE_TAG.sub(" ", text).strip()

        if not text and not end_marker:
            raise GatewayFailure(REPLY_MALFORMED)

        return AssistantReply(message=text, score=score, end_marker=end_marker)

    @staticmethod
    def _load_object(raw: str) -> Any:
        text = _CODE_FENCE.sub("", raw.strip()).strip()
        try:
            data = json.loads(text)
        except ValueError:
            match = _JSON_BLOCK.search(text)
            if not match:
                raise GatewayFailure(REPLY_MALFORMED)
            try:
                data = json.loads(match.group(0))
            except ValueError:
                raise GatewayFailure(REPLY_MALFORMED)

        if not isinstance(data, dict):
            raise GatewayFailure(REPLY_MALFORMED)
        return data
