"""
Tests for classifier prompt construction.
"""

from versus.prompts import SYSTEM_PROMPT, build_system_prompt, build_user_prompt
from versus.tools import DEFAULT_TOOL_PAIR, Tool, ToolPair


class TestSystemPrompt:

    def test_lists_every_category(self):
        for category in DEFAULT_TOOL_PAIR.categories:
            assert f'"{category}"' in SYSTEM_PROMPT

    def test_names_sentiment_fields(self):
        assert "claudeCodeSentiment" in SYSTEM_PROMPT
        assert "codexSentiment" in SYSTEM_PROMPT

    def test_follows_tool_pair(self):
        pair = ToolPair(Tool("gemini_cli", "Gemini CLI", ("gemini",)), Tool("codex", "Codex", ("codex",)))
        prompt = build_system_prompt(pair)
        assert "gemini_cli_better" in prompt
        assert "geminiCliSentiment" in prompt
        assert "claude_code" not in prompt


class TestUserPrompt:

    def test_carries_context_and_asks_about_last_comment(self):
        prompt = build_user_prompt("POST TITLE: x")
        assert prompt.startswith("POST TITLE: x")
        assert "LAST comment" in prompt
