"""
Rule catalog for administrative penalty decisions.

Each rule is a row of the `RULES` table: an id, the review stage it belongs
to, a default severity and a pure check function
``check(content, structure, ctx) -> list[dict]``. Checks return plain dicts
with ``problem``/``location``/``solution``/``severity``; the pipeline turns
them into `Issue` models. Rows are ordered by stage, top of the document to
the bottom.
"""
from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from penalty_review.core.config import CATEGORIES, ReviewConfig
from penalty_review.models.document import DocumentContent, DocumentStructure, ParagraphFormat
from penalty_review.services import patterns as P


@dataclass(frozen=True)
class ReviewContext:
    """Values a rule may depend on besides the document itself."""
    today: dt.date
    config: ReviewConfig = field(default_factory=ReviewConfig)


CheckFn = Callable[[DocumentContent, DocumentStructure, ReviewContext], List[Dict]]


@dataclass(frozen=True)
class Rule:
    id: str
    name: str
    category: str
    severity: str
    description: str
    check: CheckFn


def _issue(problem: str, location: str, solution: str, severity: str) -> Dict:
    return {"problem": problem, "location": location, "solution": solution, "severity": severity}


def _listing(items: List[str], limit: int) -> str:
    shown = "、".join(items[:limit])
    return shown + (f"等共{len(items)}段" if len(items) > limit else "")


# ---------------------------------------------------------------------------
# 1. 文书格式检查
# ---------------------------------------------------------------------------
# Lengths in twips: 2 CJK characters ~ 420 twips (21 pt)
INDENT_MIN_TWIPS = 360
INDENT_MAX_TWIPS = 480
EXACT_LINE_RANGE = (520, 600)   # fixed 26-30 pt
AUTO_LINE_RANGE = (340, 380)    # ~1.5 lines, in 240ths of a line

LIST_HEADING = re.compile(r"^[（(]?[一二三四五六七八九十0-9]+[、.．）)]|^第[一二三四五六七八九十百]+[章节条款]")
LABEL_PARAGRAPH = re.compile(r"^[一-龥（）()]{1,15}[：:]")


def has_valid_indent(para: ParagraphFormat) -> bool:
    indent = para.first_line_indent or 0
    return INDENT_MIN_TWIPS <= indent <= INDENT_MAX_TWIPS


def has_partial_indent(para: ParagraphFormat) -> bool:
    indent = para.first_line_indent or 0
    return 0 < indent < INDENT_MIN_TWIPS


def has_valid_line_spacing(para: ParagraphFormat) -> bool:
    if not para.line:
        return False
    if para.line_rule == "exact":
        return EXACT_LINE_RANGE[0] <= para.line <= EXACT_LINE_RANGE[1]
    if para.line_rule == "auto":
        return AUTO_LINE_RANGE[0] <= para.line <= AUTO_LINE_RANGE[1]
    return False


def describe_indent(twips: int) -> str:
    return f"{twips / 20:.1f}pt ({twips / 567:.2f}cm)"


def describe_line_spacing(para: ParagraphFormat) -> str:
    if not para.line:
        return "未设置"
    if para.line_rule == "exact":
        return f"固定值{para.line / 20:.1f}磅"
    if para.line_rule == "auto":
        return f"{para.line / 240:.1f}倍行距"
    return f"{para.line} twip ({para.line_rule})"


def _body_paragraphs(content: DocumentContent) -> List[ParagraphFormat]:
    """Formatted paragraphs below the title/number block that are long enough to judge."""
    return [
        p for p in content.format_info.paragraphs
        if p.index >= 3 and len(p.text.strip()) >= 10
    ]


def check_title_presence(content, structure, ctx):
    if not structure.title.strip():
        return [_issue(
            "缺少文书标题，无法识别为行政处罚决定书", "文书顶部",
            "补充完整的标题信息，建议两行格式：机关名称 + 行政处罚决定书", "critical",
        )]
    return []


def check_content_length(content, structure, ctx):
    issues = []
    if len(P.normalize_text(content.text)) < 500:
        issues.append(_issue(
            "文书内容明显偏少，可能缺失必要事实或程序说明", "全文",
            "核对文书模板，补充调查经过、事实认定、法律依据等必要部分", "warning",
        ))
    if len(content.paragraphs) < 6:
        issues.append(_issue(
            "文书段落数量过少，结构可能不完整", "全文",
            "对照标准模板补充当事人信息、违法事实、权利告知等段落", "info",
        ))
    return issues


def check_basic_sections(content, structure, ctx):
    text = content.text
    issues = []
    if not re.search(r"(当事人|被处罚人)", text):
        issues.append(_issue(
            "文书缺少当事人身份信息段落", "正文开头",
            "补充“当事人”“被处罚人”等基本身份信息及联系方式", "critical",
        ))
    if not re.search(r"(违法事实|违法行为|经查|经调查)", text):
        issues.append(_issue(
            "未见违法事实认定段落，无法体现处罚依据", "正文主体部分",
            "增加违法事实认定段落，写明时间、地点、行为及证据", "critical",
        ))
    if not re.search(r"(决定给予|决定对|现决定|处罚如下)", text):
        issues.append(_issue(
            "文书缺少明确的处罚决定表述", "处罚决定部分",
            "使用“决定给予……处罚”等标准决定语句", "critical",
        ))
    return issues


def check_paragraph_indentation(content, structure, ctx):
    if content.format_info is None:
        return [_issue(
            "无法精确检测段落缩进格式（Word格式解析失败）", "全文",
            "请手动检查所有正文段落是否设置了首行缩进2字符（约21pt或0.74cm）", "info",
        )]

    missing, partial = [], []
    for para in _body_paragraphs(content):
        text = para.text.strip()
        if LIST_HEADING.search(text) or LABEL_PARAGRAPH.search(text):
            continue
        if has_valid_indent(para):
            continue
        indent = para.first_line_indent or 0
        label = f"第{para.index + 1}段({describe_indent(indent) if indent > 0 else '无缩进'})"
        (partial if has_partial_indent(para) else missing).append(label)

    issues = []
    if missing:
        issues.append(_issue(
            f"以下段落首行缩进不符合标准（应为18-24pt）：{_listing(missing, 8)}", "正文段落",
            "请在Word中设置首行缩进为2字符（约21pt或0.74cm），或在段首添加两个全角空格", "warning",
        ))
    if partial:
        issues.append(_issue(
            f"以下段落首行缩进不足2字符：{_listing(partial, 8)}", "正文段落",
            "请调整缩进至标准的2字符（约21pt或0.74cm）", "info",
        ))
    return issues


def check_line_spacing(content, structure, ctx):
    if content.format_info is None:
        return [_issue(
            "无法精确检测段落行间距格式（Word格式解析失败）", "全文",
            "请手动检查所有正文段落行距是否设置为“固定值28磅”或“1.5倍行距”", "info",
        )]

    checked = _body_paragraphs(content)
    bad = [f"第{p.index + 1}段({describe_line_spacing(p)})" for p in checked if not has_valid_line_spacing(p)]
    # only report when the deviation is systematic (>30% of body paragraphs)
    if checked and bad and len(bad) / len(checked) > 0.3:
        return [_issue(
            f"多个段落行间距不符合公文格式标准：{_listing(bad, 5)}", "正文段落",
            "请在Word中选中正文段落，设置行距为“固定值28磅”或“1.5倍行距”", "warning",
        )]
    return []


# ---------------------------------------------------------------------------
# 2. 标题部分
# ---------------------------------------------------------------------------
DOCUMENT_KIND = "行政处罚决定书"
AUTHORITY_SUFFIX = re.compile(r"(局|委员会|人民政府|管理局|监督局|执法队)")


def check_title_keyword(content, structure, ctx):
    if DOCUMENT_KIND not in (structure.title or ""):
        return [_issue(
            "标题未包含“行政处罚决定书”标准表述", "标题",
            "标题第二行应准确使用“行政处罚决定书”字样", "critical",
        )]
    return []


def check_title_two_lines(content, structure, ctx):
    lines = [line.strip() for line in structure.title_lines]
    # a single-line title puts the document kind on line one
    if len(lines) < 2 or DOCUMENT_KIND in lines[0]:
        return [_issue(
            "未检测到“机关名称 + 行政处罚决定书”的两行标题结构", "标题",
            "标题建议分两行：第一行机关名称，第二行“行政处罚决定书”", "warning",
        )]
    issues = []
    if not AUTHORITY_SUFFIX.search(lines[0]):
        issues.append(_issue(
            "标题第一行未呈现完整执法机关名称", "标题第一行",
            "第一行应为完整机关名称，如“××市市场监督管理局”", "warning",
        ))
    if lines[1] != DOCUMENT_KIND:
        issues.append(_issue(
            "标题第二行表述不规范", "标题第二行",
            "第二行建议严格书写为“行政处罚决定书”", "warning",
        ))
    return issues


# ---------------------------------------------------------------------------
# 3. 文号部分
# ---------------------------------------------------------------------------
def _head_lines(content: DocumentContent, count: int = 8) -> List[str]:
    lines = []
    for paragraph in content.paragraphs[:count]:
        lines.extend(line.strip() for line in paragraph.split("\n") if line.strip())
    return lines


def check_document_number_presence(content, structure, ctx):
    for line in _head_lines(content):
        normalized = P.normalize_text(line).replace("_", "")
        if P.CASE_NUMBER_PATTERN.search(line) or P.CASE_NUMBER_PATTERN_NORMALIZED.search(normalized):
            return []
    return [_issue(
        "未发现符合规范的案件文号", "标题下方文号区域",
        "按照“（机关简称）处罚〔年份〕序号号”格式补充案件文号", "critical",
    )]


def check_document_number_format(content, structure, ctx):
    issues = []
    for line in _head_lines(content):
        if not P.DOCUMENT_NUMBER_LINE_REGEX.search(line):
            continue
        problems, suggestions = [], []
        severity = "info"

        if re.search(r"\([^)]+\)", line) and not re.search(r"（[^）]+）", line):
            problems.append("机关简称未使用中文全角括号")
            suggestions.append("机关简称应使用中文全角括号（），例如：（市监）")
            severity = "warning"

        if not re.search(r"〔\d{4}〕", line):
            problems.append("缺少年份方括号“〔〕”标注")
            suggestions.append("年份需使用〔〕标注，例如：〔2025〕")
            severity = "warning"

        segment = re.sub(r"[（(][^）)]{1,12}[）)]", "", line.split("〔")[0].split("[")[0], count=1)
        segment = re.sub(r"[^一-龥A-Za-z]", "", segment)
        if segment and not P.CASE_CATEGORY_TOKEN.search(segment):
            problems.append("未识别到处罚类别或文种标识")
            suggestions.append("可在机关简称后加入“罚处”“罚字”“决定”等文种标识，与本机关惯用格式保持一致")

        if problems:
            issues.append(_issue(
                f"案件文号“{line}”存在：{'；'.join(problems)}", "文号部分",
                "；".join(suggestions), severity,
            ))
    return issues


# ---------------------------------------------------------------------------
# 4. 正文部分
# ---------------------------------------------------------------------------
ID_FIELD = re.compile(
    r"(身份证|居民身份证|身份证号|身份证号码|公民身份号码|证件号|证件号码)[\s（(]*[^：:]*[）)]*\s*[：:]\s*[0-9Xx\s]{15,20}"
)
CREDIT_FIELD = re.compile(
    r"(统一社会信用代码|社会信用代码|信用代码|组织机构代码|营业执照号|注册号)[\s（(]*[^：:]*[）)]*\s*[：:]\s*[0-9A-Za-z\-\s]{8,}"
)
REPRESENTATIVE_FIELD = re.compile(r"(法定代表人|主要负责人|负责人|经理|经营者)[^：:\n]{0,12}[：:].+")
FACT_MARKER = re.compile(r"(违法事实|违法行为|经查|查明|案件来源|调查发现)")
LOCATION_PHRASE = re.compile(r"(在.*?(进行|经营|销售|生产)|于.*?处|地点为|发生在|位于|营业场所|经营地址|经营场所|现场检查)")
EVIDENCE_ITEM = re.compile(
    r"证据[一二三四五六七八九十0-9]|询问笔录|现场检查笔录|检查笔录|调查笔录|检测报告|检验报告|鉴定意见|票据|照片|凭证"
    r"|扣押清单|证明材料|书证|物证|视听资料|电子数据"
)
EVIDENCE_PROCESS = re.compile(r"(有证据证明|经调查|经查|查明|调查取证|现场检查|抽样检验|送检|经审查)")
VIOLATION_CLAUSE = re.compile(r"(违反|构成).*?(法|条例|规定|办法)[^。；]{0,20}(条|款|项)")
BASIS_CLAUSE = re.compile(r"(依据|根据).*?(法|条例|规定|办法)[^。；]{0,30}(条|款|项)")
LAW_TITLE = re.compile(r"《([一-龥]{2,})》")
PENALTY_TYPES = ("警告", "罚款", "没收", "责令停产停业", "暂扣", "吊销", "行政拘留")
PENALTY_AMOUNT = re.compile(r"(?:人民币|金额|共计).*?(元|万元)|罚款[:：]\s*\d+(?:,\d{3})*(?:\.\d+)?\s*元?")

PARTY_WINDOW = 1000


def check_party_information(content, structure, ctx):
    head = content.text[:PARTY_WINDOW]
    if P.is_unit_party(content.text):
        if not CREDIT_FIELD.search(head):
            return [_issue(
                "单位当事人未提供统一社会信用代码或组织机构代码", "当事人基本信息段",
                "补充单位统一社会信用代码、组织机构代码等主体身份信息（如“统一社会信用代码：91330000XXXXXXXXXX”）",
                "warning",
            )]
    elif not ID_FIELD.search(head):
        return [_issue(
            "个人当事人未提供身份证号码或有效证件号码", "当事人基本信息段",
            "补充个人身份证号码或其他有效身份证明信息（如“身份证号码：330XXXXXXXXXXXXXXXXX”）", "warning",
        )]
    return []


def check_legal_representative(content, structure, ctx):
    if P.is_unit_party(content.text) and not REPRESENTATIVE_FIELD.search(content.text[:PARTY_WINDOW]):
        return [_issue(
            "单位当事人未注明法定代表人或负责人", "当事人信息段",
            "为单位当事人补充“法定代表人/负责人：××”等信息", "warning",
        )]
    return []


def check_violation_facts(content, structure, ctx):
    text = content.text
    if not FACT_MARKER.search(text):
        return [_issue(
            "未明确设置违法事实认定段落", "违法事实部分",
            "增加“违法事实：……”段落，说明调查情况及事实认定", "critical",
        )]
    issues = []
    if not P.DATE_PATTERN.search(text) and not P.ALT_DATE_PATTERN.search(text):
        issues.append(_issue(
            "违法事实缺少明确的发生时间", "违法事实部分",
            "补充违法行为发生的具体日期，例如“2025年5月10日”", "warning",
        ))
    if not LOCATION_PHRASE.search(text):
        issues.append(_issue(
            "违法事实未说明具体地点", "违法事实部分",
            "写明违法行为发生地点或经营场所，确保要素完整", "info",
        ))
    return issues


def check_evidence(content, structure, ctx):
    text = content.text
    if EVIDENCE_PROCESS.search(text) and len(EVIDENCE_ITEM.findall(text)) < 2:
        return [_issue(
            "未见对证据材料的逐项列举，难以支撑事实认定", "证据说明部分",
            "以“证据一……证据二……”形式列出主要证据及证明目的", "info",
        )]
    return []


def check_legal_basis(content, structure, ctx):
    normalized = P.normalize_text(content.text)
    issues = []
    if not VIOLATION_CLAUSE.search(normalized):
        issues.append(_issue(
            "未引用具体的违法法律条款", "法律依据部分",
            "补充“违反《××法》第×条第×款”的违法依据表述", "critical",
        ))
    if not BASIS_CLAUSE.search(normalized):
        issues.append(_issue(
            "未引用作出处罚决定的法律依据", "法律依据部分",
            "补充“依据《××法》第×条”的处罚依据表述", "critical",
        ))
    if LAW_TITLE.search(content.text) and not P.contains_article_locator(normalized):
        issues.append(_issue(
            "法律条文引用格式可能不够规范，未见“第×条/款/项”表述", "法律依据部分",
            "在引用法律名称后补充具体条款，例如“《食品安全法》第三十四条”。", "warning",
        ))
    return issues


def check_penalty_decision(content, structure, ctx):
    text = content.text
    issues = []
    if not any(kind in text for kind in PENALTY_TYPES):
        issues.append(_issue(
            "未明确写明处罚种类或处罚幅度", "处罚决定部分",
            "明确写明具体处罚种类，如“决定给予警告并罚款人民币××元”", "critical",
        ))
    if "罚款" in text and P.extract_fine_amount(text) is None and not PENALTY_AMOUNT.search(text):
        issues.append(_issue(
            "罚款处罚未注明具体金额及币种", "处罚决定部分",
            "补充罚款金额及单位，如“罚款人民币5000元”", "critical",
        ))
    return issues


# ---------------------------------------------------------------------------
# 5. 履行与权利告知
# ---------------------------------------------------------------------------
PERFORMANCE_DEADLINE = re.compile(r"(\d+日内|十五日内|三十日内|自收到.*?之日)")
PAYMENT_METHOD = re.compile(r"(缴纳|缴款|银行|账户|非税收入|代收机构)")
STATEMENT_NOTICE = re.compile(r"(陈述|申辩|事先告知|拟处罚告知)")
HEARING_DEADLINE = [
    re.compile(r"(?:收到|自收到).*?告知.*?之日起.*?(?:三|3).*?(?:日|天).*?(?:内|之内).*?(?:提出|申请).*?听证"),
    re.compile(r"(?:提出|申请).*?听证.*?(?:收到|自收到).*?告知.*?之日起.*?(?:三|3).*?(?:日|天)"),
]
REVIEW_SENTENCE = "如不服本决定，可以在收到本决定书之日起六十日内向××人民政府申请行政复议"
LITIGATION_SENTENCE = "也可以在收到本决定书之日起六个月内直接向××人民法院提起行政诉讼"


def check_penalty_deadline(content, structure, ctx):
    text = content.text
    if re.search(r"(罚款|没收|责令改正)", text) and not PERFORMANCE_DEADLINE.search(text):
        return [_issue(
            "未告知处罚决定的履行期限", "执行要求部分",
            "补充“自收到本决定书之日起十五日内履行”等履行期限表述", "critical",
        )]
    return []


def check_payment_instructions(content, structure, ctx):
    if "罚款" in content.text and not PAYMENT_METHOD.search(content.text):
        return [_issue(
            "罚款处罚未明确缴纳方式或账户", "执行要求部分",
            "补充缴款方式，如“通过非税收入一般缴款书在××银行缴纳”", "warning",
        )]
    return []


def check_statement_notice(content, structure, ctx):
    if not STATEMENT_NOTICE.search(content.text):
        return [_issue(
            "未见陈述申辩权利的告知记录", "权利告知部分",
            "补充表述“你单位已享有陈述申辩权利”或说明是否放弃", "warning",
        )]
    return []


def check_hearing_right(content, structure, ctx):
    """Fines at or above the party-type threshold must come with a hearing notice."""
    text = content.text
    cfg = ctx.config
    hearing = P.hearing_requirement(text, cfg.hearing_threshold_individual, cfg.hearing_threshold_unit)
    if not hearing.required:
        return []

    if "听证" not in text:
        label = {"individual": "个人", "unit": "单位"}.get(hearing.party_type, "当事人")
        return [_issue(
            f"{label}罚款{P.format_amount(hearing.fine_amount)}元，达到听证标准"
            f"（{P.format_amount(hearing.threshold)}元），但未告知听证权利",
            "权利告知部分",
            f"根据《行政处罚法》规定，{hearing.reason}，应告知当事人享有听证权利，"
            "并说明应在收到行政处罚事先告知书之日起三日内提出听证申请",
            "critical",
        )]

    normalized = P.normalize_text(text)
    if not any(p.search(normalized) for p in HEARING_DEADLINE):
        return [_issue(
            "已告知听证权利，但未明确说明听证申请期限", "听证权利告知部分",
            "应明确告知“当事人有权在收到本告知书之日起三日内向本机关提出听证申请”", "warning",
        )]
    return []


def check_remedy_notice(content, structure, ctx):
    remedy = P.analyze_remedy_section(content, ctx.config.remedy_tail_paragraphs)
    review_ok, litigation_ok = remedy.review.present, remedy.litigation.present
    if not review_ok and not litigation_ok:
        return [_issue(
            "未检测到行政复议和行政诉讼救济途径的完整表述", "救济途径告知部分",
            f"补充“{REVIEW_SENTENCE}；{LITIGATION_SENTENCE}”", "critical",
        )]
    if not review_ok:
        return [_issue(
            "未检测到行政复议救济途径的完整表述", "救济途径告知部分",
            f"补充“{REVIEW_SENTENCE}”", "warning",
        )]
    if not litigation_ok:
        return [_issue(
            "未检测到行政诉讼救济途径的完整表述", "救济途径告知部分",
            f"补充“{LITIGATION_SENTENCE}”", "warning",
        )]
    return []


# ---------------------------------------------------------------------------
# 6. 落款部分
# ---------------------------------------------------------------------------
AGENCY_LINE_MAX = 40


def check_authority_signature(content, structure, ctx):
    tail = [p.strip() for p in P.tail_paragraphs(content, ctx.config.signature_tail_paragraphs) if p.strip()]
    agency_index = next(
        (i for i, p in enumerate(tail) if P.AGENCY_NAME_PATTERN.search(p) and len(p) <= AGENCY_LINE_MAX),
        None,
    )
    if agency_index is None:
        return [_issue(
            "未在文末明确标注作出处罚决定的执法机关名称", "落款部分",
            "在落款处单独列出执法机关全称，如“××市市场监督管理局”。", "critical",
        )]

    date_index = next(
        (i for i, p in enumerate(tail) if P.SPACED_DATE_PATTERN.search(P.normalize_text(p))),
        None,
    )
    if date_index is not None and date_index < agency_index:
        return [_issue(
            "落款日期位置异常，应在执法机关名称之后", "落款部分",
            "调整版式，使落款日期置于执法机关名称下方并保持对齐。", "warning",
        )]
    return []


def check_decision_date(content, structure, ctx):
    tail = P.normalize_text(P.tail_text(content, ctx.config.date_tail_paragraphs))
    if not P.DATE_PATTERN.search(tail):
        return [_issue(
            "文书末尾未见标准的作出决定日期", "落款日期",
            "在落款处写明“2025年5月10日”等完整日期，与机关名称对齐", "critical",
        )]
    return []


# ---------------------------------------------------------------------------
# 7. 固定内容比对
# ---------------------------------------------------------------------------
SURCHARGE_CLAUSE = re.compile(
    r"(逾期(不|未)缴(纳)?罚款.{0,20}(每日)?按(罚款)?数额.{0,12}(百分之三|3%)[^。；]*加(收|处)罚款)"
)
ENFORCEMENT_CLAUSE = re.compile(
    r"(申请人民法院[^。；]{0,12}强制执行|依法[^。；]{0,12}申请人民法院强制执行|向人民法院申请强制执行)"
)


def check_fixed_reconsideration(content, structure, ctx):
    remedy = P.analyze_remedy_section(content, ctx.config.remedy_tail_paragraphs)
    if remedy.review.present and not remedy.review.template_like:
        return [_issue(
            "行政复议救济语句存在表述顺序或要素偏差", "第十部分救济途径",
            "参考模板调整为“如不服本处罚决定，可以在收到本决定书之日起六十日内向××人民政府申请行政复议”。",
            "warning",
        )]
    return []


def check_fixed_litigation(content, structure, ctx):
    remedy = P.analyze_remedy_section(content, ctx.config.remedy_tail_paragraphs)
    if remedy.litigation.present and not remedy.litigation.template_like:
        return [_issue(
            "行政诉讼救济语句未按照“六个月+人民法院+行政诉讼”模板表述", "第十部分救济途径",
            "建议写为“也可以在收到本决定书之日起六个月内向××人民法院提起行政诉讼”。", "warning",
        )]
    return []


def check_overdue_consequence(content, structure, ctx):
    normalized = P.normalize_text(content.text)
    if "罚款" not in normalized:
        return []
    if not SURCHARGE_CLAUSE.search(normalized) or not ENFORCEMENT_CLAUSE.search(normalized):
        return [_issue(
            "罚款逾期履行后果表述不完整", "第九部分履行方式与期限",
            "补充“逾期不缴纳罚款的，每日按罚款数额的百分之三加处罚款，并可申请人民法院强制执行”", "warning",
        )]
    return []


# ---------------------------------------------------------------------------
# 8. 整体一致性
# ---------------------------------------------------------------------------
PARTY_NAME = re.compile(r"当事人[：:]\s*([^\s，。\n]{2,30})")
AMOUNT_MENTION = re.compile(r"(罚款|人民币|合计)[^\d]{0,6}(\d{1,3}(?:,\d{3})+|\d+)")
DUPLICATE_LABEL = re.compile(r"([一-龥]{2,12}[：:])\s*\1")
ORDERED_ITEM = re.compile(r"^\s*(\d+[．.])([\s　]+)(.+)$")
ILLEGAL_PUNCTUATION = ("，，", "。。", "：：", "；；", "，。", "。，")
POSITIVE_SALE = re.compile(r"(?<!未)(?<!未曾)(?:已)?(?:销售|售出|出售)[^，。；\n]{0,30}")
NEGATIVE_SALE = re.compile(r"未(?:曾)?(?:销售|售出|出售)[^，。；\n]{0,30}")
BOTTLE_TOTAL = re.compile(r"共[^。；\n]{0,20}?(\d+)[^。；\n]{0,3}?瓶")
BOTTLE_SUMMARY = re.compile(r"(?:上述|综上|本次|该批)[^。；\n]{0,20}?(\d+)[^。；\n]{0,3}?瓶")
INFORMAL_WORDS = ("很", "比较", "可能", "差不多", "挺", "特别", "估计", "大约", "左右", "基本上", "通常")
VIOLATION_DATE_HINTS = ("违法", "实施", "发生")
DECISION_DATE_HINTS = ("决定", "作出")
DATE_CONTEXT_RADIUS = 50


def _unique(items):
    return list(dict.fromkeys(items))


def check_party_name_consistency(content, structure, ctx):
    names = _unique(PARTY_NAME.findall(content.text))
    if len(names) > 1:
        return [_issue(
            f"当事人名称存在前后不一致：{'、'.join(names)}", "全文",
            "核对当事人名称，确保全文表述完全一致", "warning",
        )]
    return []


def check_amount_consistency(content, structure, ctx):
    amounts = _unique(m.group(2).replace(",", "") for m in AMOUNT_MENTION.finditer(content.text))
    if len(amounts) > 1:
        return [_issue(
            f"文书中罚款金额出现多个数值：{'、'.join(amounts)}元", "处罚决定部分",
            "核对金额，保留法定金额并确保全篇一致", "warning",
        )]
    return []


def check_duplicate_labels(content, structure, ctx):
    issues = []
    for index, paragraph in enumerate(content.paragraphs):
        m = DUPLICATE_LABEL.search(paragraph)
        if m:
            phrase = m.group(1)[:-1]
            issues.append(_issue(
                f"检测到提示性短语重复：{m.group(0)}", P.paragraph_location(index),
                f"删除重复的“{phrase}：”表述，仅保留一次。", "warning",
            ))
    return issues


def check_book_title_brackets(content, structure, ctx):
    text = content.text
    closings, openings = P.unmatched_book_brackets(text)
    issues = [
        _issue(
            "发现缺少对应前导“《”的书名号，可能导致引用不完整", P.context_snippet(text, i),
            "补充对应的“《”使书名号成对出现，如“《书证提取单》”。", "warning",
        )
        for i in closings
    ]
    issues.extend(
        _issue(
            "发现缺少对应结束“》”的书名号", P.context_snippet(text, i),
            "补全“》”使引用名称完整，例如“《食品安全法》第三十四条”。", "warning",
        )
        for i in openings
    )
    return issues


def check_ordered_list_spacing(content, structure, ctx):
    issues = []
    for index, paragraph in enumerate(content.paragraphs):
        m = ORDERED_ITEM.match(paragraph.strip())
        if not m:
            continue
        label = "全角空格" if "　" in m.group(2) else "空格"
        issues.append(_issue(
            f"编号“{m.group(1)}”后存在多余{label}，影响编号与正文对齐", P.paragraph_location(index),
            "删除编号后的空格，使数字与正文直接衔接，例如“3.2022年…”", "info",
        ))
    return issues


def check_internal_spacing(content, structure, ctx):
    spots = []
    for index, paragraph in enumerate(content.paragraphs):
        for m in P.MULTIPLE_SPACE_PATTERN.finditer(paragraph):
            if P.LABEL_PREFIX_REGEX.search(paragraph[:m.start()]):
                continue
            spots.append(P.space_location(paragraph, m, index))
    if spots:
        return [_issue(
            "检测到正文中存在连续空格或全角空格，可能影响排版整齐", f"位点：{'、'.join(_unique(spots))}",
            "请删除多余空格或改用首行缩进等方式对齐文本。", "info",
        )]
    return []


def check_punctuation_pairs(content, structure, ctx):
    issues = []
    for index, paragraph in enumerate(content.paragraphs):
        normalized = P.normalize_text(paragraph)
        for i in range(len(normalized) - 1):
            pair = normalized[i:i + 2]
            if pair in ILLEGAL_PUNCTUATION:
                issues.append(_issue(
                    f"检测到不规范的连续标点“{pair}”", P.paragraph_location(index),
                    "请检查该处标点，通常应保留一个或调整为规范组合。", "info",
                ))
                break
    return issues


def check_sales_contradiction(content, structure, ctx):
    issues = []
    for index, paragraph in enumerate(content.paragraphs):
        normalized = P.normalize_text(paragraph)
        positive = POSITIVE_SALE.search(normalized)
        negative = NEGATIVE_SALE.search(normalized)
        if not positive or not negative:
            continue
        start = max(0, min(positive.start(), negative.start()) - 10)
        end = max(positive.end(), negative.end()) + 10
        issues.append(_issue(
            f"同一段内检测到相反销售结论：例如“{positive.group(0)}”与“{negative.group(0)}”",
            f"{P.paragraph_location(index)} · 上下文：…{normalized[start:end]}…",
            "请核对销售事实，将不同时间段或状态拆分表述，确保同一段落内结论一致。", "critical",
        ))
    return issues


def check_bottle_quantities(content, structure, ctx):
    text = content.text
    totals = {m.group(1) for m in BOTTLE_TOTAL.finditer(text)}
    summaries = list(BOTTLE_SUMMARY.finditer(text))
    combined = totals | {m.group(1) for m in summaries}
    mismatched = [m for m in summaries if m.group(1) not in totals]
    if len(combined) <= 1:
        return []
    return [
        _issue(
            f"总结语句中的“{m.group(1)}瓶”与前文“共计”数量不一致", P.context_snippet(text, m.start()),
            "请核对各段落的瓶数描述，保持“共计”“上述”等表述口径一致。", "warning",
        )
        for m in mismatched
    ]


def check_date_formats(content, structure, ctx):
    if P.DATE_PATTERN.search(content.text) and P.ALT_DATE_PATTERN.search(content.text):
        return [_issue(
            "文中日期格式不统一，混用“YYYY年MM月DD日”和“YYYY-MM-DD”等格式", "全文",
            "统一日期格式，建议使用“YYYY年MM月DD日”", "info",
        )]
    return []


def check_time_logic(content, structure, ctx):
    """Violation dates must precede decision dates; very old dates are likely typos."""
    text = content.text
    dates = P.parse_dates(text)
    if len(dates) < 2:
        return []

    def around(offset, literal):
        return text[max(0, offset - DATE_CONTEXT_RADIUS): offset + len(literal) + DATE_CONTEXT_RADIUS]

    issues, seen = [], set()
    for i, (lit_a, off_a, day_a) in enumerate(dates):
        if not any(h in around(off_a, lit_a) for h in VIOLATION_DATE_HINTS):
            continue
        for lit_b, off_b, day_b in dates[i + 1:]:
            if day_a < day_b or (lit_a, lit_b) in seen:
                continue
            if any(h in around(off_b, lit_b) for h in DECISION_DATE_HINTS):
                seen.add((lit_a, lit_b))
                issues.append(_issue(
                    f"违法行为时间({lit_a})不应晚于或等于处罚决定时间({lit_b})", "全文",
                    "违法行为发生时间应早于处罚决定作出时间，请核实时间逻辑", "warning",
                ))

    for literal in _unique(lit for lit, _, day in dates if ctx.today.year - day.year > ctx.config.stale_date_years):
        issues.append(_issue(
            f"发现较早的时间{literal}，请确认是否为笔误", "全文",
            "请核实文书中的时间信息，确保时间准确无误", "info",
        ))
    return issues


def check_informal_language(content, structure, ctx):
    found = [w for w in INFORMAL_WORDS if w in content.text]
    if found:
        return [_issue(
            f"文中出现口语化或模糊词语：{'、'.join(found)}", "全文",
            "替换为准确、规范的法律用语，避免口语化描述", "info",
        )]
    return []


FORMAT, TITLE, NUMBER, BODY, RIGHTS, SIGNATURE, FIXED, CONSISTENCY = CATEGORIES

RULES: List[Rule] = [
    Rule("format_title_presence", "文书标题是否存在", FORMAT, "critical",
         "检查文书是否包含标题，避免文书结构缺失", check_title_presence),
    Rule("format_content_length", "文书内容完整性", FORMAT, "warning",
         "检查文书字数与段落数是否足以覆盖必备要素", check_content_length),
    Rule("format_basic_sections", "基本结构要素", FORMAT, "critical",
         "检查是否至少出现当事人信息、违法事实和处罚决定要素", check_basic_sections),
    Rule("paragraph_indentation", "正文段落首行缩进", FORMAT, "warning",
         "检查正文段落首行缩进是否为两个字符（18-24pt）", check_paragraph_indentation),
    Rule("paragraph_line_spacing", "段落行间距规范", FORMAT, "warning",
         "检查段落行间距是否为固定值28磅或1.5倍行距", check_line_spacing),

    Rule("title_keyword_check", "标题包含“行政处罚决定书”", TITLE, "critical",
         "检查标题是否严格包含“行政处罚决定书”字样", check_title_keyword),
    Rule("title_two_line_structure", "标题两行结构", TITLE, "warning",
         "检查标题是否采用“机关名称 + 行政处罚决定书”的两行结构", check_title_two_lines),

    Rule("document_number_presence", "案件文号存在性", NUMBER, "critical",
         "检查是否匹配标准案件文号格式", check_document_number_presence),
    Rule("document_number_format", "文号格式规范性", NUMBER, "warning",
         "检查括号、方括号和处罚类型标识是否完整", check_document_number_format),

    Rule("party_information_completeness", "当事人信息完整性", BODY, "warning",
         "检查当事人身份证号码或统一社会信用代码是否齐全", check_party_information),
    Rule("legal_representative_information", "法定代表人信息", BODY, "warning",
         "检查单位当事人是否注明法定代表人或负责人", check_legal_representative),
    Rule("violation_facts_specificity", "违法事实具体性", BODY, "critical",
         "检查违法事实是否包含时间、地点、行为三要素", check_violation_facts),
    Rule("evidence_enumeration", "证据列举情况", BODY, "warning",
         "检查证据材料是否逐项列举并能支撑事实", check_evidence),
    Rule("legal_basis_completeness", "法律依据引用完整", BODY, "critical",
         "检查违法依据与处罚依据引用是否准确、格式规范", check_legal_basis),
    Rule("penalty_decision_specificity", "处罚决定明确性", BODY, "critical",
         "检查处罚种类与罚款金额是否明确", check_penalty_decision),

    Rule("penalty_deadline", "处罚履行期限", RIGHTS, "critical",
         "检查是否明确处罚履行期限", check_penalty_deadline),
    Rule("payment_instructions", "罚款缴纳方式", RIGHTS, "warning",
         "检查罚款类处罚是否说明缴纳途径", check_payment_instructions),
    Rule("statement_and_defense_notice", "陈述申辩权利告知", RIGHTS, "warning",
         "检查是否告知当事人陈述、申辩权利", check_statement_notice),
    Rule("hearing_right_notice", "听证权利告知", RIGHTS, "critical",
         "罚款达到听证标准（个人1万元、单位10万元）时检查是否告知听证权利及申请期限", check_hearing_right),
    Rule("remedy_notice", "行政复议与诉讼告知", RIGHTS, "critical",
         "检查文末行政复议与诉讼途径是否完整", check_remedy_notice),

    Rule("authority_signature", "执法机关落款", SIGNATURE, "critical",
         "检查文末是否标注执法机关名称且与落款日期位置匹配", check_authority_signature),
    Rule("decision_date", "决定日期规范性", SIGNATURE, "critical",
         "检查落款日期是否存在且格式正确", check_decision_date),

    Rule("fixed_reconsideration_content", "行政复议固定表述", FIXED, "warning",
         "比对行政复议救济告知是否符合标准模板", check_fixed_reconsideration),
    Rule("fixed_litigation_content", "行政诉讼固定表述", FIXED, "warning",
         "比对行政诉讼救济告知是否符合标准模板", check_fixed_litigation),
    Rule("fixed_overdue_consequence", "逾期履行后果表述", FIXED, "warning",
         "检查逾期不履行的法律后果表述是否完整", check_overdue_consequence),

    Rule("party_name_consistency", "当事人名称前后一致", CONSISTENCY, "warning",
         "检查当事人姓名或单位名称是否前后一致", check_party_name_consistency),
    Rule("penalty_amount_consistency", "处罚金额一致性", CONSISTENCY, "warning",
         "检查罚款金额在文中是否多次出现不同数值", check_amount_consistency),
    Rule("duplicate_prompt_phrases", "提示性短语重复", CONSISTENCY, "warning",
         "检查段落中是否出现“经查明：经查明：”等重复粘贴的标签", check_duplicate_labels),
    Rule("book_title_bracket_balance", "书名号成对使用", CONSISTENCY, "warning",
         "检查《》书名号是否成对出现", check_book_title_brackets),
    Rule("ordered_list_spacing", "编号后空格规范", CONSISTENCY, "info",
         "检查数字编号后是否存在多余或全角空格", check_ordered_list_spacing),
    Rule("excessive_internal_spacing", "文本空格规范", CONSISTENCY, "info",
         "检查正文中是否存在连续空格或全角空格", check_internal_spacing),
    Rule("duplicate_punctuation_sequence", "标点连续误用", CONSISTENCY, "info",
         "检查明显不可能连续出现的标点组合", check_punctuation_pairs),
    Rule("sales_statement_contradiction", "销售事实自相矛盾", CONSISTENCY, "critical",
         "检查同一段落内是否同时存在“已销售”与“未销售”等相反表述", check_sales_contradiction),
    Rule("bottle_quantity_inconsistency", "瓶数描述一致性", CONSISTENCY, "warning",
         "检查“共×瓶”与“上述×瓶”等总结性语句的数量是否一致", check_bottle_quantities),
    Rule("date_format_consistency", "日期格式统一", CONSISTENCY, "info",
         "检查文中日期格式是否混用", check_date_formats),
    Rule("time_logic_consistency", "时间逻辑一致性", CONSISTENCY, "warning",
         "检查违法时间与决定时间的先后关系及明显过早的日期", check_time_logic),
    Rule("informal_language", "语言表述规范性", CONSISTENCY, "info",
         "检查是否存在口语化或模糊表述", check_informal_language),
]

RULES_BY_ID: Dict[str, Rule] = {rule.id: rule for rule in RULES}

REVIEW_STAGES = [
    {"step": 1, "title": FORMAT, "focus": ["标题存在性", "内容完整性", "缩进与行距"]},
    {"step": 2, "title": TITLE, "focus": ["两行结构", "机关名称规范", "标题表述标准"]},
    {"step": 3, "title": NUMBER, "focus": ["案件文号存在", "括号及方括号格式"]},
    {"step": 4, "title": BODY, "focus": ["当事人信息完整", "违法事实具体", "证据与法律依据"]},
    {"step": 5, "title": RIGHTS, "focus": ["履行期限", "缴款方式", "听证与复议诉讼权利"]},
    {"step": 6, "title": SIGNATURE, "focus": ["机关名称", "落款顺序", "作出日期"]},
    {"step": 7, "title": FIXED, "focus": ["行政复议固定语", "行政诉讼固定语", "逾期后果告知"]},
    {"step": 8, "title": CONSISTENCY, "focus": ["要素前后一致", "金额一致", "书名号成对", "编号与措辞规范"]},
]


def rules_in_category(category: str) -> List[Rule]:
    return [r for r in RULES if r.category == category]
