# Retrieval-augmented answering for Handbook Chat.
# Injects the best-matching handbook passages into the system prompt and asks
# the Anthropic API for an answer. Any failure surfaces as AIServiceError so the
# caller can switch to the offline fallback.

import logging
from functools import lru_cache
from typing import List, Optional, Sequence

import anthropic

from backend.config import Config
from backend.conversations import ConversationManager, conversation_manager
from backend.handbook import (
    ACADEMIC_AFFAIRS_EMAIL,
    ACADEMIC_AFFAIRS_PHONE,
    UNIVERSITY_NAME,
    UNIVERSITY_WEBSITE,
    SearchResult,
)

logger = logging.getLogger(__name__)

# At most this many passages are injected into the prompt.
MAX_CONTEXT_ITEMS = 5


class AIServiceError(Exception):
    """The AI provider could not produce an answer."""


SYSTEM_PROMPT = f"""你是澳門旅遊大學的智能助手Rose🌹，專門回答有關大學手冊的問題。你的任務是：

1. 根據提供的大學手冊內容回答學生的問題
2. 提供準確、有用的信息
3. 用繁體中文回答（除非用戶用其他語言詢問）
4. 如果手冊中沒有相關信息，請誠實說明
5. 保持友善和專業的語調
6. 提供具體的規章制度和聯絡信息（如適用）

大學基本信息：
- 名稱：{UNIVERSITY_NAME}
- 教務部電話：{ACADEMIC_AFFAIRS_PHONE}
- 教務部電郵：{ACADEMIC_AFFAIRS_EMAIL}
- 網站：{UNIVERSITY_WEBSITE}"""

CONTEXT_HEADER = "以下是與用戶問題相關的手冊內容："


def create_system_prompt(context: Optional[Sequence[SearchResult]] = None) -> str:
    """
    System prompt for the model, with the top handbook passages appended as
    "[section]\\ncontent" blocks when there are any.
    """
    prompt = SYSTEM_PROMPT
    if context:
        prompt += f"\n\n{CONTEXT_HEADER}\n"
        for item in list(context)[:MAX_CONTEXT_ITEMS]:
            prompt += f"\n[{item.section}]\n{item.content}\n"
    return prompt


@lru_cache(maxsize=4)
def _client_for(api_key: str, timeout: float, max_retries: int) -> anthropic.Anthropic:
    return anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=max_retries)


def _get_client() -> anthropic.Anthropic:
    if not Config.ai_configured():
        raise AIServiceError("AI service error: API key not configured")
    return _client_for(Config.ANTHROPIC_API_KEY, float(Config.AI_TIMEOUT_SECS), Config.AI_MAX_RETRIES)


def _reply_text(response) -> str:
    try:
        parts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
    except (AttributeError, TypeError) as e:
        raise AIServiceError(f"AI service error: malformed response ({e})") from e
    if not parts:
        raise AIServiceError("AI service error: response contained no text")
    return "".join(parts)


def get_ai_response(
    message: str,
    conversation_id: str,
    context: Optional[Sequence[SearchResult]] = None,
    conversations: ConversationManager = conversation_manager,
) -> str:
    """
    Ask the model to answer `message` given the conversation so far and the
    injected handbook context.

    The user message and the reply are appended to the conversation only when
    the call succeeds, so a failed turn leaves history untouched.
    Raises AIServiceError on a missing key, timeout, API error or empty reply.
    """
    client = _get_client()

    messages: List[dict] = conversations.get_history(conversation_id)
    messages.append({"role": "user", "content": message})

    try:
        response = client.messages.create(
            model=Config.AI_MODEL,
            max_tokens=Config.AI_MAX_TOKENS,
            temperature=Config.AI_TEMPERATURE,
            system=create_system_prompt(context),
            messages=messages,
        )
    except anthropic.AnthropicError as e:
        logger.warning("[AI] request failed: %s", e)
        raise AIServiceError(f"AI service error: {e}") from e

    reply = _reply_text(response)

    conversations.add_turn(conversation_id, message, reply)
    logger.info("[AI] reply generated for %s (%d chars)", conversation_id, len(reply))
    return reply
