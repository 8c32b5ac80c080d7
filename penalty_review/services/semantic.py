"""
Semantic review of a decision by a chat model.

The model is asked for a JSON report but is free to answer in prose, so
replies go through a two-stage parser: balanced-brace JSON extraction first,
then a heading/keyword based natural-language extractor.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from penalty_review.models.document import DocumentContent, DocumentStructure
from penalty_review.models.semantic import AIIssue, AnalysisOptions, SemanticAnalysis
from penalty_review.services.llm import ChatClient, LLMError, Parsed, extract_json

log = logging.getLogger("semantic")

PLACEHOLDER = "内容待补充"

ANALYSIS_SYSTEM = (
    "你是一位专业的行政处罚决定书审查专家，具有丰富的执法文书审查经验。"
    "请客观准确地指出问题，避免过度严格或误报。"
)

ANALYSIS_SCHEMA = """```json
{
  "issues": [
    {
      "type": "critical|warning|info",
      "category": "当事人信息|违法事实与证据|处罚依据与决定|履行与权利告知|格式与语言规范|逻辑一致性",
      "title": "问题简要标题",
      "description": "具体问题描述",
      "location": "问题位置",
      "suggestion": "改进建议",
      "confidence": 85
    }
  ],
  "summary": {
    "languageScore": 85,
    "logicScore": 85,
    "overallAssessment": "整体评价"
  }
}
```"""

FOCUS_COMPLETENESS = """- 必备要素完整性：
  * 当事人信息：人名为个人，包含“公司、企业、商店、厂、中心、合作社、个体工商户”等为单位
    - 个人当事人必需信息：姓名、住所、身份证号、联系电话
    - 单位当事人必需信息：名称、住所、统一社会信用代码、负责人信息
    - “法定代表人(负责人、经营者)”是正确表述，不要报告此类格式问题
  * 违法事实、证据、法律依据、处罚决定、救济告知是否完整"""
FOCUS_LANGUAGE = """- 格式规范性：
  * 信息字段不应有多余空格，空白字段应删除
  * 标点符号使用规范"""
FOCUS_LOGIC = """- 逻辑一致性：事实、证据、法律依据、处罚决定之间是否对应，前后是否矛盾
- 法律准确性：引用的法律条款是否准确，处罚幅度是否合理
- 程序规范性：陈述申辩、听证、复议诉讼告知等程序是否齐全"""

SECTION_HEADING = r"##?\s*{}[\s\S]*?(?=##|$)"
LIST_ITEM = re.compile(r"[-\d.]\s*.+")
LIST_MARKER = re.compile(r"^[-\d.、．]+\s*")

LOCATION_LABELS = [
    (re.compile(r"(标题|抬头|两行结构)"), "标题部分"),
    (re.compile(r"(文号|案号|字号)"), "文号部分"),
    (re.compile(r"(当事人|被处罚人|法定代表人)"), "当事人信息段"),
    (re.compile(r"(违法事实|经查|调查|事实)"), "违法事实部分"),
    (re.compile(r"(证据|笔录|材料)"), "证据说明部分"),
    (re.compile(r"(处罚决定|决定如下|责令|处以)"), "处罚决定段"),
    (re.compile(r"(复议|诉讼|救济|期限|缴纳|滞纳金)"), "救济及履行要求段"),
    (re.compile(r"(落款|盖章|机关|日期|署名)"), "落款部分"),
    (re.compile(r"(附表|附件|表格)"), "附件部分"),
]


class SemanticAnalysisError(RuntimeError):
    """The analysis call itself failed (as opposed to returning an odd reply)."""


def sanitize_text(text: Any) -> str:
    """Collapse whitespace and strip JSON residue (braces, quotes, key names) from a model string."""
    if not text:
        return PLACEHOLDER
    result = re.sub(r"\s+", " ", str(text).replace('\\"', '"'))
    result = re.sub(r"^[\[{]+|[\]}]+$", "", result.strip())
    result = re.sub(r'"[A-Za-z_]+"\s*[:：]', "", result)
    # quotes not touching a digit or a Han character are residue
    result = re.sub(r"(?<![0-9一-龥])[\"'“”`]+(?![0-9一-龥])", "", result)
    result = result.strip().strip("\"'“”`")
    if re.search(r"[一-龥]", result):
        result = re.sub(r"\s*[:：]\s*", "：", result)
        result = re.sub(r"(?<=[一-龥])\s+(?=[一-龥])", "", result)
        result = re.sub(r"\s+", " ", result).strip()
    return result or PLACEHOLDER


def explicit_location(raw: Any) -> Optional[str]:
    if not raw:
        return None
    normalized = re.sub(r"\s+", "", str(raw))
    m = re.search(r"第(\d+)页第(\d+)段", normalized)
    if m:
        return f"第{m.group(1)}页第{m.group(2)}段"
    m = re.search(r"第(\d+)段", normalized)
    if m:
        return f"第{m.group(1)}段"
    m = re.search(r"第([一二三四五六七八九十百千]+)部分", normalized)
    if m:
        return f"第{m.group(1)}部分"
    return None


def refine_location(raw: Any, description: str = "") -> str:
    """Normalise a model-reported location, or infer a section label from the wording."""
    located = explicit_location(raw)
    if located:
        return located
    cleaned = sanitize_text(raw)
    if cleaned != PLACEHOLDER:
        return cleaned
    text = f"{raw or ''} {description or ''}"
    for pattern, label in LOCATION_LABELS:
        if pattern.search(text):
            return label
    return "全文"


def _clamp(value: Any, default: int) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return default
    if number == 0 and default:
        # a zero score usually means the model left the field unset
        return default
    return max(0, min(100, number))


def _severity(value: Any) -> str:
    value = str(value or "").strip().lower()
    return value if value in ("critical", "warning", "info") else "info"


def make_issue(index: int, raw: Dict[str, Any]) -> AIIssue:
    description = sanitize_text(raw.get("description") or "")
    return AIIssue(
        id=f"ai_{index}",
        type=_severity(raw.get("type")),
        category=sanitize_text(raw.get("category") or "AI分析"),
        title=sanitize_text(raw.get("title") or "检测到问题"),
        description=description,
        location=refine_location(raw.get("location") or "相关段落", description),
        suggestion=sanitize_text(raw.get("suggestion") or "建议进行优化"),
        confidence=_clamp(raw.get("confidence"), 85),
    )


def build_analysis_prompt(content: DocumentContent, structure: DocumentStructure,
                          options: AnalysisOptions) -> str:
    focus = []
    if options.enable_semantic_check:
        focus.append(FOCUS_COMPLETENESS)
    if options.enable_language_check:
        focus.append(FOCUS_LANGUAGE)
    if options.enable_logic_check:
        focus.append(FOCUS_LOGIC)
    strict = "请特别严格地审查所有细节问题。" if options.strict_mode else ""
    outline = "、".join(s.heading for s in structure.sections[:20]) or "（未识别到编号小节）"

    return f"""你是一位资深的行政处罚决定书审查专家，请仔细审查以下文书，指出存在的问题并给出改进建议。

**重要原则**：
1. 基于文书的实际内容进行判断，不要因为格式或表述方式不同而误报
2. 如果文书中明确包含某项内容（如“罚款300元”），即使表述简洁，也应认为已满足要求
3. 只有真正缺失关键信息或存在明显错误时才报告问题
4. 给出的建议必须具体可操作{strict}

**重点关注**：
{chr(10).join(focus)}

**文书结构**：
标题：{structure.title}
小节：{outline}

**文书内容**：
{content.text}

请按以下JSON格式输出分析结果：

{ANALYSIS_SCHEMA}

如果没有发现问题，issues数组可以为空。评分标准：90分以上优秀，80-89分良好，70-79分合格，70分以下需要改进。"""


def _section_items(text: str, heading: str) -> List[str]:
    m = re.search(SECTION_HEADING.format(heading), text)
    if not m:
        return []
    items = [item.strip() for item in LIST_ITEM.findall(m.group(0))]
    return [LIST_MARKER.sub("", item).strip() for item in items if len(item) > 5]


def parse_natural_language(text: str) -> SemanticAnalysis:
    """Fallback for prose replies: "##严重问题" / "##警告问题" lists, then a keyword trigger."""
    raw_issues = [
        {"type": "critical", "title": "严重问题", "description": d, "suggestion": "建议立即修正", "confidence": 90}
        for d in _section_items(text, "严重问题")
    ] + [
        {"type": "warning", "title": "警告问题", "description": d, "suggestion": "建议优化", "confidence": 85}
        for d in _section_items(text, "警告问题")
    ]

    if raw_issues:
        issues = [make_issue(n, raw) for n, raw in enumerate(raw_issues, start=1)]
        assessment = re.search(SECTION_HEADING.format("总体评价"), text)
        overall = (
            sanitize_text(re.sub(r"##?\s*总体评价\s*", "", assessment.group(0)).strip())
            if assessment else "文书已通过AI审查"
        )
        critical = sum(1 for i in issues if i.type == "critical")
        warning = sum(1 for i in issues if i.type == "warning")
        score = max(60, 95 - critical * 10 - warning * 5)
        return SemanticAnalysis(issues=issues, language_score=score, logic_score=score,
                                overall_assessment=overall, parsed_as="natural_language")

    if any(word in text for word in ("问题", "建议", "不规范")):
        issue = make_issue(1, {
            "type": "info",
            "category": "AI语义分析",
            "title": "AI检测到改进点",
            "description": "根据AI分析，文档存在可以改进的地方",
            "location": "全文",
            "suggestion": text[:200] + "...",
            "confidence": 70,
        })
        return SemanticAnalysis(issues=[issue], language_score=80, logic_score=80,
                                overall_assessment="AI分析完成，请参考具体建议",
                                parsed_as="natural_language")

    return SemanticAnalysis(overall_assessment="AI未返回可解析的审查结果", parsed_as="empty")


def parse_analysis_response(text: str) -> SemanticAnalysis:
    result = extract_json(text)
    if not isinstance(result, Parsed):
        log.info("analysis reply is not JSON (%s); parsing as natural language", result.reason)
        return parse_natural_language(text)

    payload = result.payload
    raw_issues = payload.get("issues")
    summary = payload.get("summary")
    if not isinstance(raw_issues, list) and not isinstance(summary, dict):
        log.info("analysis JSON lacks issues/summary; parsing as natural language")
        return parse_natural_language(text)

    summary = summary if isinstance(summary, dict) else {}
    issues = [
        make_issue(n, raw)
        for n, raw in enumerate((r for r in raw_issues or [] if isinstance(r, dict)), start=1)
    ]
    return SemanticAnalysis(
        issues=issues,
        language_score=_clamp(summary.get("languageScore"), 85),
        logic_score=_clamp(summary.get("logicScore"), 85),
        overall_assessment=sanitize_text(summary.get("overallAssessment") or "整体质量良好"),
        parsed_as="json",
    )


class SemanticAnalyzer:
    def __init__(self, client: ChatClient, model_label: Optional[str] = None):
        self.client = client
        self.model_label = model_label or getattr(client, "model", "") or ""

    def analyze(self, content: DocumentContent, structure: DocumentStructure,
                options: Optional[AnalysisOptions] = None) -> SemanticAnalysis:
        options = options or AnalysisOptions()
        prompt = build_analysis_prompt(content, structure, options)
        log.info("semantic analysis: %d chars, prompt %d chars", content.word_count, len(prompt))
        messages = [
            {"role": "system", "content": ANALYSIS_SYSTEM},
            {"role": "user", "content": prompt},
        ]
        try:
            reply = self.client.chat(messages, temperature=0.5, max_tokens=4096)
        except LLMError as e:
            raise SemanticAnalysisError(str(e)) from e

        analysis = parse_analysis_response(reply)
        log.info("semantic analysis parsed as %s with %d issues", analysis.parsed_as, len(analysis.issues))
        return analysis.model_copy(update={"model_used": self.model_label})
