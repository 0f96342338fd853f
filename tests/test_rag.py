"""
Tests for the Handbook Chat RAG pipeline.
Run with: python -m pytest tests/test_rag.py -v
(No API calls are made — the Anthropic client is replaced with a mock.)
"""

import os
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic
import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import backend.rag as rag  # noqa: E402
from backend.config import Config  # noqa: E402
from backend.conversations import ConversationManager  # noqa: E402
from backend.handbook import SearchResult  # noqa: E402


def _reply(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


@pytest.fixture
def conversations():
    return ConversationManager()


@pytest.fixture
def fake_client(monkeypatch):
    client = MagicMock()
    client.messages.create.return_value = _reply("答案")
    monkeypatch.setattr(rag, "_get_client", lambda: client)
    return client


# ─────────────────────────────────────────────────────────────
# create_system_prompt
# ─────────────────────────────────────────────────────────────

class TestCreateSystemPrompt:

    def test_no_context(self):
        assert rag.create_system_prompt() == rag.SYSTEM_PROMPT
        assert rag.create_system_prompt([]) == rag.SYSTEM_PROMPT
        assert rag.CONTEXT_HEADER not in rag.create_system_prompt()

    def test_contact_details_in_prompt(self):
        prompt = rag.create_system_prompt()
        assert "8598-2012" in prompt
        assert "enrolment@utm.edu.mo" in prompt

    def test_context_block_format(self):
        context = [SearchResult(section="評估或考核", content="補考機會提供給因特殊情況缺考的學生。", score=0.2)]
        prompt = rag.create_system_prompt(context)
        assert prompt.endswith(
            f"\n\n{rag.CONTEXT_HEADER}\n\n[評估或考核]\n補考機會提供給因特殊情況缺考的學生。\n"
        )

    def test_context_capped_at_five(self):
        context = [SearchResult(section=f"S{i}", content=f"passage {i}", score=1.0) for i in range(7)]
        prompt = rag.create_system_prompt(context)
        assert "[S4]" in prompt
        assert "[S5]" not in prompt
        assert "[S6]" not in prompt


# ─────────────────────────────────────────────────────────────
# get_ai_response
# ─────────────────────────────────────────────────────────────

class TestGetAIResponse:

    def test_missing_key_raises(self, monkeypatch, conversations):
        monkeypatch.setattr(Config, "ANTHROPIC_API_KEY", None)
        cid = conversations.create_conversation()
        with pytest.raises(rag.AIServiceError):
            rag.get_ai_response("hi", cid, conversations=conversations)
        assert conversations.get_history(cid) == []

    def test_returns_reply_text(self, fake_client, conversations):
        cid = conversations.create_conversation()
        assert rag.get_ai_response("補考", cid, conversations=conversations) == "答案"

    def test_request_shape(self, fake_client, conversations):
        cid = conversations.create_conversation()
        context = [SearchResult(section="附錄", content="研究道德準則確保研究的倫理性。", score=0.3)]
        rag.get_ai_response("研究道德", cid, context, conversations=conversations)

        kwargs = fake_client.messages.create.call_args.kwargs
        assert kwargs["model"] == Config.AI_MODEL
        assert kwargs["max_tokens"] == Config.AI_MAX_TOKENS
        assert kwargs["temperature"] == 0.1
        assert "[附錄]\n研究道德準則確保研究的倫理性。" in kwargs["system"]
        assert kwargs["messages"] == [{"role": "user", "content": "研究道德"}]

    def test_history_recorded_on_success(self, fake_client, conversations):
        cid = conversations.create_conversation()
        rag.get_ai_response("第一個問題", cid, conversations=conversations)
        assert conversations.get_history(cid) == [
            {"role": "user", "content": "第一個問題"},
            {"role": "assistant", "content": "答案"},
        ]

    def test_history_sent_on_follow_up(self, fake_client, conversations):
        cid = conversations.create_conversation()
        rag.get_ai_response("第一個問題", cid, conversations=conversations)
        rag.get_ai_response("第二個問題", cid, conversations=conversations)
        messages = fake_client.messages.create.call_args.kwargs["messages"]
        assert [m["content"] for m in messages] == ["第一個問題", "答案", "第二個問題"]

    def test_timeout_wrapped(self, fake_client, conversations):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        fake_client.messages.create.side_effect = anthropic.APITimeoutError(request=request)
        cid = conversations.create_conversation()
        with pytest.raises(rag.AIServiceError, match="AI service error"):
            rag.get_ai_response("hi", cid, conversations=conversations)
        assert conversations.get_history(cid) == []

    def test_connection_error_wrapped(self, fake_client, conversations):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        fake_client.messages.create.side_effect = anthropic.APIConnectionError(request=request)
        with pytest.raises(rag.AIServiceError):
            rag.get_ai_response("hi", conversations.create_conversation(), conversations=conversations)

    def test_empty_reply_raises(self, fake_client, conversations):
        fake_client.messages.create.return_value = SimpleNamespace(content=[])
        cid = conversations.create_conversation()
        with pytest.raises(rag.AIServiceError):
            rag.get_ai_response("hi", cid, conversations=conversations)
        assert conversations.get_history(cid) == []

    def test_malformed_reply_raises(self, fake_client, conversations):
        fake_client.messages.create.return_value = SimpleNamespace()
        with pytest.raises(rag.AIServiceError):
            rag.get_ai_response("hi", conversations.create_conversation(), conversations=conversations)


# ─────────────────────────────────────────────────────────────
# _get_client
# ─────────────────────────────────────────────────────────────

class TestGetClient:

    def test_client_uses_configured_timeout(self, monkeypatch):
        monkeypatch.setattr(Config, "ANTHROPIC_API_KEY", "test-key")
        monkeypatch.setattr(Config, "AI_TIMEOUT_SECS", 12)
        monkeypatch.setattr(Config, "AI_MAX_RETRIES", 0)
        client = rag._get_client()
        assert isinstance(client, anthropic.Anthropic)
        assert client.timeout == 12.0
        assert client.max_retries == 0

    def test_client_cached(self, monkeypatch):
        monkeypatch.setattr(Config, "ANTHROPIC_API_KEY", "test-key")
        assert rag._get_client() is rag._get_client()
