# Handbook knowledge base and lexical search for Handbook Chat.
# The corpus is small and fixed, so search is a linear scan that scores every
# passage against the query terms and keeps the best matches.

import logging
import re
from typing import Dict, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# CONTACT DETAILS
# ─────────────────────────────────────────

UNIVERSITY_NAME = "澳門旅遊大學 (Institute for Tourism Studies, Macao)"
ACADEMIC_AFFAIRS_PHONE = "8598-2012"
ACADEMIC_AFFAIRS_EMAIL = "enrolment@utm.edu.mo"
UNIVERSITY_WEBSITE = "www.utm.edu.mo"


# ─────────────────────────────────────────
# CORPUS
# ─────────────────────────────────────────

# Section name → passages, in handbook order.
HANDBOOK_CONTENT: Dict[str, List[str]] = {
    "第一部分 – 一般資訊": [
        "歡迎加入澳門旅遊大學！我們致力於為您提供優質的旅遊教育。",
        "平等機會政策確保所有學生享有公平的學習環境。",
        "校曆表包含重要的學期日期和公眾假期安排。",
        "教務部負責學術事務管理和學生服務。",
        "課程概覽提供各學士學位課程的詳細信息。",
        "課程規章規定了學習要求和學術標準。",
    ],
    "評估或考核": [
        "評估方法包括考試、作業、專題報告和實習評估。",
        "學生有責任按時完成所有評估要求。",
        "考試期間允許使用指定的輔助器材。",
        "考試中的不當行為將面臨嚴重後果。",
        "教師需按時呈交學生成績。",
        "補考機會提供給因特殊情況缺考的學生。",
        "評估時間表在每學期開始前公布。",
    ],
    "學術誠信與紀律": [
        "學業不誠實行為包括抄襲、作弊和偽造。",
        "大學提供學習支援服務幫助學生成功。",
        "學生紀律守則規定了行為標準和處分程序。",
    ],
    "大學部門與服務": [
        "行政部門為學生提供各種服務和支援。",
        "圖書館提供豐富的學習資源和研究支援。",
        "學生宿舍為在校學生提供住宿服務。",
    ],
    "收費與雜項": [
        "學費需在每學期開始前繳納。",
        "各種雜費包括註冊費、實驗費等。",
    ],
    "學士學位課程規條": [
        "學年分為兩個學期，每學期約16週。",
        "修讀年期通常為四年，需完成120-130學分。",
        "畢業資格要求完成所有必修和選修科目。",
        "畢業榮譽根據累積GPA確定。",
        "實習是某些課程的必修要求。",
        "班級編制按照學年和專業劃分。",
        "選修科目需符合課程要求。",
        "課程轉讀需符合相關條件和程序。",
        "校長榮譽榜表彰優秀學生。",
        "課程考察提供實地學習機會。",
        "第四學年需完成畢業論文或報告。",
    ],
    "附錄": [
        "全球旅遊倫理規範指導行業實踐。",
        "研究道德準則確保研究的倫理性。",
        "AI工具使用指引規範學術寫作中的人工智能應用。",
    ],
}

# Topic → canned answer. Only the fallback generator reads this; insertion
# order decides which topic wins when a message mentions several.
UNIVERSITY_KNOWLEDGE: Dict[str, str] = {
    "課程轉讀": "學生可申請轉讀其他課程，需符合目標課程入學要求，在指定時間內提交申請表格和相關文件。",
    "畢業要求": "學士學位需120-130學分，GPA達2.0以上，完成所有必修和選修科目。",
    "學術誠信": "嚴禁抄襲、作弊等不誠實行為，違者將面臨警告、記過或開除等處分。",
    "補考規定": "因特殊情況缺考可申請補考，需在考試後一週內提供證明文件申請。",
    "學費繳納": "每學期開學前繳納，逾期將影響註冊和考試資格。",
    "學生宿舍": "新生可在入學時申請，在校生需在指定期間申請，按時間順序分配。",
    "圖書館": "提供圖書借閱、電子資料庫、學習空間等服務，週一至週日開放。",
    "評估方法": "包括考試、作業、專題報告、實習評估等多種形式，具體比重由各科目決定。",
    "學術不誠實": "包括但不限於抄襲、代考、偽造文件等行為，將依情節嚴重程度給予相應處分。",
    "學分轉移": "經審核認可的其他院校學分可申請轉移，但需符合本校課程要求。",
    "實習規定": "第三或第四學年需完成相關實習，由學校安排或學生自行聯繫實習單位。",
    "論文要求": "第四學年需完成畢業論文或專題報告，須通過指導老師和評審委員會審核。",
}


# ─────────────────────────────────────────
# SCORING
# ─────────────────────────────────────────

# Passages must score strictly above this to be returned.
MIN_RELEVANCE_SCORE = 0.1

STOP_WORDS = {
    "的", "是", "在", "有", "和", "我", "你", "他", "她", "它", "們",
    "這", "那", "什麼", "怎麼", "為什麼", "如何", "可以", "需要", "應該",
}

# Whitespace, CJK punctuation and straight quotes. ASCII "." "," etc. are kept
# inside terms so values like "GPA2.0" stay whole.
_TERM_SPLIT = re.compile(r"[\s，。！？；：、（）【】「」\"']+")


def extract_keywords(query: str) -> List[str]:
    """
    Split a query into search terms.

    There is no word segmentation: an unspaced Chinese question comes back as
    a single term, which then only matches passages containing it verbatim.
    Single characters and stop words are dropped.
    """
    words = _TERM_SPLIT.split(query)
    return [w for w in words if len(w) > 1 and w not in STOP_WORDS]


def relevance_score(content: str, terms: List[str]) -> float:
    """
    Sum over terms of (occurrences × term length) / passage length.

    Matching is case-insensitive and literal. The score is roughly the share of
    the passage covered by query terms, so short passages that are mostly the
    matched phrase rank above long ones that mention it in passing.
    """
    if not content:
        return 0.0

    score = 0.0
    for term in terms:
        matches = re.findall(re.escape(term), content, re.IGNORECASE)
        if matches:
            score += len(matches) * len(term) / len(content)
    return score


# ─────────────────────────────────────────
# SEARCH
# ─────────────────────────────────────────

class SearchResult(BaseModel):
    section: str
    content: str
    score: float


class HandbookProcessor:
    """In-memory handbook with substring search and section lookup."""

    def __init__(self, content: Optional[Dict[str, List[str]]] = None):
        self.content: Dict[str, List[str]] = {}
        self.is_loaded = False
        self._load(HANDBOOK_CONTENT if content is None else content)

    def _load(self, content: Dict[str, List[str]]) -> None:
        self.content = {section: list(lines) for section, lines in content.items()}
        self.is_loaded = True
        logger.info("Handbook loaded with %d sections", len(self.content))

    def search_content(self, query: str, limit: int = 10) -> List[SearchResult]:
        """
        Score every passage against the query and return the top `limit`,
        highest score first. Ties keep handbook order.
        """
        if not self.is_loaded:
            logger.warning("Handbook content not loaded")
            return []

        terms = extract_keywords(query)
        if not terms:
            return []

        results: List[SearchResult] = []
        for section, lines in self.content.items():
            for line in lines:
                score = relevance_score(line, terms)
                if score > MIN_RELEVANCE_SCORE:
                    results.append(SearchResult(section=section, content=line, score=score))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:max(limit, 0)]

    def all_sections(self) -> List[str]:
        return list(self.content.keys())

    def find_section_name(self, name: str) -> Optional[str]:
        """First section whose name contains `name`, ignoring case."""
        needle = name.lower()
        for section in self.content:
            if needle in section.lower():
                return section
        return None

    def section_content(self, name: str) -> Optional[List[str]]:
        section = self.find_section_name(name)
        if section is None:
            return None
        return list(self.content[section])


# Shared instance used by the API handlers.
handbook = HandbookProcessor()
