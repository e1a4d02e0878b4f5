"""Unit tests for ReplyParser."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import pytest
from services.reply_parser import ReplyParser, AssistantReply, REPLY_MALFORMED, REPLY_NOT_FOUND
from services.errors import GatewayFailure


@pytest.fixture
def json_parser():
    return ReplyParser(reply_format="json")


@pytest.fixture
def marker_parser():
    return ReplyParser(reply_format="marker", max_score=10)


class TestJsonReplies:
    """Replies in the message + realnessScore object format."""

    def test_valid_reply(self, json_parser):
        reply = json_parser.parse('{"message": "asl?", "realnessScore": 42}')

        assert reply == AssistantReply(message="asl?", score=42, end_marker=False)

    def test_score_alias_and_rounding(self, json_parser):
        reply = json_parser.parse('{"message": "lol ok", "score": 74.6}')

        assert reply.score == 75

    @pytest.mark.parametrize("raw_score, score", [(0.5, 1), (2.5, 3), (74.5, 75), (74.4, 74), (99.5, 100)])
    def test_half_scores_round_up(self, json_parser, raw_score, score):
        reply = json_parser.parse(f'{{"message": "hm", "realnessScore": {raw_score}}}')

        assert reply.score == score

    def test_code_fenced_reply(self, json_parser):
        raw = '```json\n{"message": "wat", "realnessScore": 10}\n```'

        assert json_parser.parse(raw).message == "wat"

    def test_reply_wrapped_in_prose(self, json_parser):
        raw = 'Sure! {"message": "brb", "realnessScore": 5} hope that helps'

        assert json_parser.parse(raw).score == 5

    def test_end_marker_stripped_from_message(self, json_parser):
        reply = json_parser.parse('{"message": "bye [ENDCHAT]", "realnessScore": 2}')

        assert reply.message == "bye"
        assert reply.end_marker is True

    @pytest.mark.parametrize("raw", [
        '{"message": "hi"}',
        '{"message": "hi", "realnessScore": 150}',
        '{"message": "hi", "realnessScore": -1}',
        '{"message": "hi", "realnessScore": "80"}',
        '{"message": "hi", "realnessScore": true}',
        '{"message": "", "realnessScore": 50}',
        '{"realnessScore": 50}',
        '{"message": "no", "realnessScore": 50, "refusal": "I cannot help"}',
        '["message", 50]',
        'not json at all',
        '{"message": "hi", "realnessScore": 50',
    ])
    def test_malformed_replies(self, json_parser, raw):
        with pytest.raises(GatewayFailure) as exc_info:
            json_parser.parse(raw)

        assert exc_info.value.message == REPLY_MALFORMED
        assert exc_info.value.status_code == 500

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing_reply(self, json_parser, raw):
        with pytest.raises(GatewayFailure) as exc_info:
            json_parser.parse(raw)

        assert exc_info.value.message == REPLY_NOT_FOUND


class TestMarkerReplies:
    """Free-text replies with inline score and end-of-chat marker."""

    def test_score_tag_stripped(self, marker_parser):
        reply = marker_parser.parse("where are you from [SCORE: 4]")

        assert reply.message == "where are you from"
        assert reply.score == 4
        assert reply.end_marker is False

    def test_score_tag_in_middle(self, marker_parser):
        reply = marker_parser.parse("hmm [SCORE 3] that sounds made up")

        assert reply.message == "hmm that sounds made up"
        assert reply.score == 3

    def test_reply_without_score(self, marker_parser):
        reply = marker_parser.parse("ok")

        assert reply.message == "ok"
        assert reply.score is None

    def test_bare_end_marker(self, marker_parser):
        reply = marker_parser.parse("[ENDCHAT]")

        assert reply.message == ""
        assert reply.end_marker is True

    def test_end_marker_with_score(self, marker_parser):
        reply = marker_parser.parse("[ENDCHAT] [SCORE: 1]")

        assert reply.end_marker is True
        assert reply.score == 1

    def test_score_out_of_range(self, marker_parser):
        with pytest.raises(GatewayFailure):
            marker_parser.parse("nice try [SCORE: 11]")

    def test_only_score_tag_is_malformed(self, marker_parser):
        with pytest.raises(GatewayFailure):
            marker_parser.parse("[SCORE: 5]")


def test_unknown_format_rejected():
    with pytest.raises(ValueError, match="Unknown reply format"):
        ReplyParser(reply_format="xml")
