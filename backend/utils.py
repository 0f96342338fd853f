# Handbook Chat - Utility Functions
# Offline fallback answers + regulation summaries for chat responses

from typing import Iterable, List

from pydantic import BaseModel

from backend.handbook import (
    ACADEMIC_AFFAIRS_EMAIL,
    ACADEMIC_AFFAIRS_PHONE,
    UNIVERSITY_KNOWLEDGE,
    UNIVERSITY_WEBSITE,
    SearchResult,
)

# ─────────────────────────────────────────
# FALLBACK ANSWERS
# ─────────────────────────────────────────

# Served when the AI provider is unavailable and no topic matches.
DEFAULT_FALLBACK_RESPONSE = (
    "## 🤖 學生助理 Rose\n\n"
    "您好！關於您的問題，建議您聯繫相關部門獲取準確信息：\n\n"
    f"📞 **教務部：** {ACADEMIC_AFFAIRS_PHONE}\n"
    f"📧 **電郵：** {ACADEMIC_AFFAIRS_EMAIL}\n"
    f"🌐 **網站：** {UNIVERSITY_WEBSITE}\n\n"
    "我可以幫您解答關於課程轉讀、畢業要求、學術誠信、補考規定等問題。\n\n"
    "請嘗試問我具體的問題，例如：\n"
    "• \"如何申請課程轉讀？\"\n"
    "• \"畢業需要多少學分？\"\n"
    "• \"補考有什麼規定？\""
)


def format_topic_answer(topic: str, info: str) -> str:
    return (
        f"## 📚 {topic}\n\n{info}\n\n"
        "**如需詳細信息，請聯繫：**\n"
        f"📞 教務部：{ACADEMIC_AFFAIRS_PHONE}\n"
        f"📧 電郵：{ACADEMIC_AFFAIRS_EMAIL}"
    )


def generate_fallback_response(message: str) -> str:
    """
    Canned answer for when the AI call fails.

    The first topic (in UNIVERSITY_KNOWLEDGE order) that appears anywhere in
    the message wins, so a message naming several topics gets one answer.
    """
    lower_message = message.lower()
    for topic, info in UNIVERSITY_KNOWLEDGE.items():
        if topic.lower() in lower_message:
            return format_topic_answer(topic, info)
    return DEFAULT_FALLBACK_RESPONSE


# ─────────────────────────────────────────
# REGULATION SUMMARIES
# ─────────────────────────────────────────

MAX_REGULATIONS = 3
EXCERPT_CHARS = 100


class Regulation(BaseModel):
    title: str
    excerpt: str
    link: str = "#"
    category: str = "handbook"


def extract_regulations(context: Iterable[SearchResult]) -> List[Regulation]:
    """Summaries of the top search hits, shown next to an AI answer."""
    regulations = []
    for item in list(context)[:MAX_REGULATIONS]:
        excerpt = item.content
        if len(excerpt) > EXCERPT_CHARS:
            excerpt = excerpt[:EXCERPT_CHARS] + "..."
        regulations.append(Regulation(title=item.section, excerpt=excerpt))
    return regulations
