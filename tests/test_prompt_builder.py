"""Tests for prompt construction."""

from health_advisor.models.chat import Message
from health_advisor.models.llm import LLMMessage
from health_advisor.services.prompt_builder import build_prompt


def make_message(role, content):
    return Message(id=f"m-{content}", conversation_id="c1", user_id="user-1", role=role, content=content)


class TestBuildPrompt:
    """Tests for build_prompt."""

    def test_context_leads_history(self):
        """Test the exact prompt for a context and a three-message history."""
        history = [make_message("user", "a"), make_message("assistant", "b"), make_message("user", "c")]

        prompt = build_prompt(history, "CTX")

        assert prompt == [
            LLMMessage(role="system", content="CTX"),
            LLMMessage(role="user", content="a"),
            LLMMessage(role="assistant", content="b"),
            LLMMessage(role="user", content="c"),
        ]

    def test_empty_context_omitted(self):
        """Test that an empty context adds no system entry."""
        prompt = build_prompt([make_message("user", "hello")], "")

        assert prompt == [LLMMessage(role="user", content="hello")]

    def test_whitespace_context_omitted(self):
        """Test that a whitespace-only context adds no system entry."""
        prompt = build_prompt([make_message("user", "hello")], "  \n ")

        assert [m.role for m in prompt] == ["user"]

    def test_history_not_deduplicated_or_reordered(self):
        """Test that repeated messages are passed through in order."""
        history = [make_message("user", "same"), make_message("assistant", "ok"), make_message("user", "same")]

        prompt = build_prompt(history, "")

        assert [(m.role, m.content) for m in prompt] == [("user", "same"), ("assistant", "ok"), ("user", "same")]

    def test_input_not_mutated(self):
        """Test that the history list is left untouched."""
        history = [make_message("user", "a")]

        build_prompt(history, "CTX")

        assert len(history) == 1

    def test_deterministic(self):
        """Test that the same inputs give the same prompt."""
        history = [make_message("user", "a"), make_message("assistant", "b")]
        assert build_prompt(history, "CTX") == build_prompt(history, "CTX")
