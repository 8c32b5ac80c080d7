"""
Reusable text predicates shared by the review rules.

Everything here is a pure function of its arguments: no I/O, no clock, no
module state beyond compiled patterns.
"""
from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from penalty_review.models.document import DocumentContent

# dates
DATE_PATTERN = re.compile(r"\d{4}年\d{1,2}月\d{1,2}日")
DATE_PARTS_PATTERN = re.compile(r"(\d{4})年(\d{1,2})月(\d{1,2})日")
ALT_DATE_PATTERN = re.compile(r"\d{4}[-/.]\d{1,2}[-/.]\d{1,2}")
SPACED_DATE_PATTERN = re.compile(r"\d{4}\s*年\s*\d{1,2}\s*月\s*\d{1,2}\s*日")

# case numbers
CASE_NUMBER_PATTERN = re.compile(
    r"[（(][^）)]{1,12}[）)][^〔\[]*?(处罚|决定|字)[〔\[]\d{4}[〕\]][^号]{0,8}?号"
)
CASE_NUMBER_PATTERN_NORMALIZED = re.compile(
    r"[（(]?[一-龥]{0,8}[）)]?"
    r"(市监罚处|市监罚字|市监处字|市监处|市监罚|市监|市监处罚|市监罚决|监罚|监处|处罚字|处罚|罚字|罚处|处字|决定|罚决|政处|执法处)"
    r"[〔\[]?\d{4}[〕\]]?\d{1,6}号"
)
DOCUMENT_NUMBER_LINE_REGEX = re.compile(
    r"^\s*[（(]?[一-龥A-Za-z（）()]{1,20}[）)]?[^〔\[]*?[〔\[]\d{4}[〕\]]\s*\d{1,6}号"
)
CASE_CATEGORY_TOKEN = re.compile(r"(罚|处|决定|警告|没收|吊销|责令|字|罚处|罚字|处字|罚决)")

# parties
UNIT_KEYWORDS_REGEX = re.compile(
    r"(单位|公司|有限责任公司|分公司|合作社|中心|企业|商行|门店|药店|学校|医院|超市|店|集团"
    r"|支队|大队|事务所|研究所|协会|合作联社|工作室|个体工商户)"
)
PARTY_SECTION = re.compile(r"当事人[：:]([\s\S]{0,200})")
INDIVIDUAL_ID_INLINE = re.compile(r"身份证(?:号码?|号|证号)[：:]?\d{14,17}[\dXx]")
UNIT_ROLE = re.compile(r"法定代表人|负责人|经营者")

# layout
MULTIPLE_SPACE_PATTERN = re.compile(r"[\u3000\u00A0\u2000-\u200B\s]{2,}")
LABEL_PREFIX_REGEX = re.compile(r"^[一-龥（）()]{1,20}[：:]")
ARTICLE_LOCATOR = re.compile(
    r"第[零〇一二三四五六七八九十百千万亿两壹贰叁肆伍陆柒捌玖拾佰仟萬\d]+(条|款|项)"
)
SENTENCE_SPLIT = re.compile(r"[。；;!?？！]")

# signature block
AGENCY_NAME_PATTERN = re.compile(
    r"(人民政府|市场监督管理局|监督管理局|管理局|监督局|执法队|执法局|管理委员会|管理所|大队|支队|行政执法|行政机关)"
)

FINE_AMOUNT_PATTERNS = [
    re.compile(
        r"(?:罚款|处罚款|处以罚款|并处罚款|罚金)(?:人民币)?[^\d]*?"
        r"(\d+(?:[,，]\d{3})*(?:\.\d{1,2})?)\s*(万)?元"
    ),
    re.compile(
        r"(?:罚款|处罚款|处以罚款|并处罚款|罚金)[^\d]*?"
        r"(\d+(?:[,，]\d{3})*(?:\.\d{1,2})?)[^\d]*?(?:元|圆)"
    ),
]

# remedy clauses
REVIEW_TRIGGER = re.compile(r"(如不服|对本处罚?决定不服|对本决定不服|不服本处罚?决定)")
REVIEW_DEADLINE = re.compile(
    r"(收到本决定(?:书)?之日起(?:六十|60)日内|自收到本决定(?:书)?之日起(?:六十|60)日内|在(?:六十|60)日内向)"
)
REVIEW_VENUE = re.compile(r"(人民政府|行政复议机关|行政复议委员会|人民政府行政复议办公室)")
REVIEW_TEMPLATE = re.compile(
    r"如不服.*?(处罚)?决定.{0,40}"
    r"(收到本决定(?:书)?之日起(?:六十|60)日内|自收到本决定(?:书)?之日起(?:六十|60)日内|在(?:六十|60)日内向)"
    r".{0,30}(人民政府|行政复议机关|行政复议委员会|人民政府行政复议办公室).{0,15}申请行政复议"
)
LITIGATION_DEADLINE = re.compile(r"(六个月内|6个月内|半年内)")
LITIGATION_TOKEN = re.compile(r"(行政诉讼|行政诉)")
LITIGATION_TEMPLATE = re.compile(
    r"(六个月内|6个月内|半年内).{0,30}(直接向|依法向).{0,15}人民法院.{0,15}(提起|提出)行政诉讼"
)


def normalize_text(text: str) -> str:
    return re.sub(r"\s+", "", text)


def paragraph_location(index: int) -> str:
    return f"第{index + 1}段"


def context_snippet(text: str, index: int, radius: int = 20) -> str:
    start = max(0, index - radius)
    end = min(len(text), index + radius)
    snippet = normalize_text(text[start:end])
    return f"…{snippet}…" if snippet else "相关段落"


def tail_paragraphs(content: DocumentContent, count: int) -> List[str]:
    return list(content.paragraphs[-count:]) if count > 0 else []


def tail_text(content: DocumentContent, count: int) -> str:
    """Text of the last `count` paragraphs, or the whole text when unsegmented."""
    if not content.paragraphs:
        return content.text
    return "".join(tail_paragraphs(content, count))


def split_sentences(normalized: str) -> List[str]:
    return [s.strip() for s in SENTENCE_SPLIT.split(normalized) if s.strip()]


def contains_article_locator(text: str) -> bool:
    return bool(ARTICLE_LOCATOR.search(text))


def is_unit_party(text: str) -> bool:
    return bool(UNIT_KEYWORDS_REGEX.search(text))


def extract_fine_amount(text: str) -> Optional[float]:
    """
    Largest fine amount (yuan) cited in the text, or None.
    Handles "罚款300元", "处罚款人民币3,000.00元" and "罚款1.5万元".
    """
    normalized = normalize_text(text)
    best: Optional[float] = None
    for pattern in FINE_AMOUNT_PATTERNS:
        for m in pattern.finditer(normalized):
            try:
                amount = float(re.sub(r"[,，]", "", m.group(1)))
            except ValueError:
                continue
            if pattern.groups > 1 and m.group(2):
                amount *= 10000
            if best is None or amount > best:
                best = amount
    return best


def party_type(text: str) -> str:
    """'unit', 'individual' or 'unknown', judged from the 200 chars after 当事人："""
    m = PARTY_SECTION.search(normalize_text(text))
    if not m:
        return "unknown"
    section = m.group(1)
    if UNIT_KEYWORDS_REGEX.search(section):
        return "unit"
    if INDIVIDUAL_ID_INLINE.search(section) and not UNIT_ROLE.search(section):
        return "individual"
    return "unknown"


@dataclass(frozen=True)
class HearingCheck:
    required: bool
    party_type: str
    fine_amount: Optional[float]
    threshold: Optional[float]
    reason: str


def format_amount(amount: float) -> str:
    return f"{amount:.2f}".rstrip("0").rstrip(".")


def hearing_requirement(text: str, individual_threshold: float, unit_threshold: float) -> HearingCheck:
    kind = party_type(text)
    amount = extract_fine_amount(text)
    if not amount:
        return HearingCheck(False, kind, None, None, "未检测到明确的罚款金额")

    threshold = unit_threshold if kind == "unit" else individual_threshold
    required = amount >= threshold
    shown_amount, shown_threshold = format_amount(amount), format_amount(threshold)
    if kind == "unknown":
        reason = (
            f"罚款{shown_amount}元，当事人类型未明确识别，建议按个人标准{shown_threshold}元进行听证告知"
            if required else f"罚款{shown_amount}元，未达到最低听证标准{shown_threshold}元"
        )
    else:
        label = "个人" if kind == "individual" else "单位"
        reason = (
            f"{label}罚款{shown_amount}元，" + ("达到" if required else "未达到") + f"{shown_threshold}元听证标准"
        )
    return HearingCheck(required, kind, amount, threshold, reason)


@dataclass(frozen=True)
class RemedyClause:
    present: bool
    template_like: bool


@dataclass(frozen=True)
class RemedyAnalysis:
    review: RemedyClause
    litigation: RemedyClause


def analyze_remedy_section(content: DocumentContent, tail_count: int) -> RemedyAnalysis:
    """
    Look for the administrative review and litigation clauses in the last
    `tail_count` paragraphs only. A clause is present when its trigger,
    deadline and venue tokens all occur; it is template-like when they occur
    in canonical order within one sentence.
    """
    normalized = normalize_text(tail_text(content, tail_count))
    sentences = split_sentences(normalized)

    review_present = bool(
        REVIEW_TRIGGER.search(normalized)
        and REVIEW_DEADLINE.search(normalized)
        and "申请行政复议" in normalized
        and REVIEW_VENUE.search(normalized)
    )
    review_template = False
    if review_present:
        sentence = next((s for s in sentences if "行政复议" in s), "")
        review_template = bool(REVIEW_TEMPLATE.search(sentence or normalized))

    litigation_present = bool(
        LITIGATION_DEADLINE.search(normalized)
        and "人民法院" in normalized
        and LITIGATION_TOKEN.search(normalized)
    )
    litigation_template = False
    if litigation_present:
        sentence = next((s for s in sentences if LITIGATION_TOKEN.search(s)), "")
        litigation_template = bool(LITIGATION_TEMPLATE.search(sentence or normalized))

    return RemedyAnalysis(
        review=RemedyClause(review_present, review_template),
        litigation=RemedyClause(litigation_present, litigation_template),
    )


def unmatched_book_brackets(text: str) -> Tuple[List[int], List[int]]:
    """Offsets of unmatched 》 and of 《 left open, in text order."""
    closings: List[int] = []
    stack: List[int] = []
    for i, ch in enumerate(text):
        if ch == "《":
            stack.append(i)
        elif ch == "》":
            if stack:
                stack.pop()
            else:
                closings.append(i)
    return closings, stack


def space_location(paragraph: str, match: re.Match, index: int) -> str:
    start, end = match.start(), match.end()
    if start == 0:
        return f"{paragraph_location(index)}开头"
    if end >= len(paragraph):
        return f"{paragraph_location(index)}末尾"
    return f"{paragraph_location(index)} · “{paragraph[start - 1]}”与“{paragraph[end]}”之间"


def parse_dates(text: str) -> List[Tuple[str, int, dt.date]]:
    """(literal, offset, date) for every valid YYYY年M月D日 in the text."""
    found = []
    for m in DATE_PARTS_PATTERN.finditer(text):
        try:
            day = dt.date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            continue
        found.append((m.group(0), m.start(), day))
    return found
