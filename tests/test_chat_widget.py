"""Tests for the assistant chat widget."""

from unittest.mock import MagicMock

import openai
import pytest

from practice_dashboard.chat_widget import (
    DEFAULT_RESPONSE,
    MAX_MESSAGE_LENGTH,
    ChatWidget,
    MessageTooLongError,
    canned_response,
)


def completion(content):
    """Build a minimal chat completion response."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


class TestCannedResponse:
    """Tests for keyword matching."""

    def test_denial_beats_claims(self):
        assert "denied claim" in canned_response("How do I fix a denied claim?")

    def test_matches_whole_words_only(self):
        # "this" must not trigger the greeting
        assert canned_response("this and that") == DEFAULT_RESPONSE

    def test_greeting(self):
        assert canned_response("Hi there").startswith("Hi!")

    def test_unknown(self):
        assert canned_response("what's the weather") == DEFAULT_RESPONSE


class TestChatWidget:
    """Tests for sending, history and the completion fallback."""

    def test_send_stores_both_turns(self):
        widget = ChatWidget("u-1", "c-1")
        reply = widget.send("  Tell me about eligibility  ")
        assert "Eligibility Verification" in reply
        assert [(m.role, m.content) for m in widget.messages] == [
            ("user", "Tell me about eligibility"),
            ("assistant", reply),
        ]

    def test_history_reloads_per_scope(self):
        ChatWidget("u-1", "c-1").send("hello")
        assert len(ChatWidget("u-1", "c-1").messages) == 2
        assert ChatWidget("u-1", "c-2").messages == []

    def test_blank_and_loading_are_ignored(self):
        widget = ChatWidget("u-1", "c-1")
        assert widget.send("   ") is None
        widget.is_loading = True
        assert widget.send("hello") is None
        assert widget.messages == []

    def test_message_too_long(self):
        widget = ChatWidget("u-1", "c-1")
        with pytest.raises(MessageTooLongError):
            widget.send("x" * (MAX_MESSAGE_LENGTH + 1))
        assert widget.messages == []

    def test_clear(self):
        widget = ChatWidget("u-1", "c-1")
        widget.send("hello")
        widget.clear()
        assert widget.messages == []
        assert ChatWidget("u-1", "c-1").messages == []

    def test_uses_completion_when_available(self):
        client = MagicMock()
        client.chat.completions.create.return_value = completion("  Check the CO-97 code.  ")
        widget = ChatWidget("u-1", "c-1", client=client, context={"page": "claims", "patient": None})

        assert widget.send("Why was this denied?") == "Check the CO-97 code."

        kwargs = client.chat.completions.create.call_args.kwargs
        messages = kwargs["messages"]
        assert messages[0]["role"] == "system"
        assert messages[1]["content"] == "Current dashboard context - page: claims"
        assert messages[-1] == {"role": "user", "content": "Why was this denied?"}

    def test_falls_back_on_api_error(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = openai.OpenAIError("quota exceeded")
        widget = ChatWidget("u-1", "c-1", client=client)
        assert "denied claim" in widget.send("Help with a denial")
        assert widget.is_loading is False

    def test_falls_back_on_empty_completion(self):
        client = MagicMock()
        client.chat.completions.create.return_value = completion("")
        widget = ChatWidget("u-1", "c-1", client=client)
        assert widget.send("xyzzy") == DEFAULT_RESPONSE
