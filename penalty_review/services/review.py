"""
Review orchestration: rules, optional AI reconciliation and semantic
analysis, merge, scoring and recommendations.
"""
from __future__ import annotations

import datetime as dt
import logging
import re
import threading
from typing import List, Optional, Sequence

from penalty_review.core.config import ReviewConfig
from penalty_review.models.document import DocumentContent, DocumentStructure
from penalty_review.models.report import (
    DocumentTypeCheck,
    Issue,
    Recommendations,
    ReviewResult,
    ReviewSummary,
)
from penalty_review.models.semantic import AnalysisOptions, SemanticAnalysis
from penalty_review.services.extract import analyze_structure, extract_content
from penalty_review.services.llm import ChatClient, LLMUnavailable
from penalty_review.services.merge import merge_issues
from penalty_review.services.pipeline import PipelineExecutor
from penalty_review.services.reconcile import RuleVerdictReconciler
from penalty_review.services.rules import RULES, Rule
from penalty_review.services.scoring import category_scores, score_issues, severity_counts
from penalty_review.services.semantic import SemanticAnalysisError, SemanticAnalyzer

log = logging.getLogger("review")

RIGHTS_CATEGORY = "履行与权利告知"

KEYWORD_GROUPS = [
    (("行政处罚", "处罚决定"), 30, "包含处罚相关关键词"),
    (("当事人", "违法行为"), 20, "包含当事人和违法行为"),
    (("依据", "法律", "法规"), 15, "包含法律依据"),
    (("决定", "处以", "罚款"), 20, "包含处罚决定"),
    (("复议", "诉讼", "救济"), 10, "包含救济途径"),
    (("执法机关", "年", "月", "日"), 5, "包含执法机关和日期"),
]
ESSENTIAL_KEYWORDS = ("当事人", "违法", "处罚", "依据", "救济")
CORE_TITLE = [re.compile(r"行政处罚决定书"), re.compile(r"行政处罚决定\s*$")]


class DocumentTypeError(ValueError):
    """The document does not look like an administrative penalty decision."""

    def __init__(self, check: DocumentTypeCheck):
        super().__init__(f"not an administrative penalty decision (confidence {check.confidence})")
        self.check = check


def validate_document_type(content: DocumentContent) -> DocumentTypeCheck:
    """Keyword and layout scoring (0-100) of how much a document looks like a penalty decision."""
    text = content.text
    lines = [p.strip() for p in content.paragraphs if p.strip()]
    first = lines[0] if lines else ""
    second = lines[1] if len(lines) > 1 else ""
    reasons: List[str] = []
    score = 0

    matched_groups = 0
    for keywords, weight, name in KEYWORD_GROUPS:
        if any(k in text for k in keywords):
            matched_groups += 1
            score += weight
            reasons.append(name)

    has_core_title = any(p.search(first) or p.search(text) for p in CORE_TITLE)
    if has_core_title:
        score += 10
        reasons.append("检测到行政处罚决定书核心标题")

    has_two_line_title = bool(first and second and "行政处罚决定书" in second)
    if has_two_line_title:
        score += 10
        reasons.append("标题符合“机关名称 + 行政处罚决定书”两行格式")

    essentials = [k for k in ESSENTIAL_KEYWORDS if k in text]
    if len(essentials) >= 3:
        score += 10
        reasons.append("包含核心要素信息")

    if len(content.paragraphs) >= 5:
        score += 10
        reasons.append("文档结构完整（段落数量合理）")
    if len(text) >= 200:
        score += 5
        reasons.append("内容长度符合要求")
    if re.search(r"\d{4}年\d{1,2}月\d{1,2}日", text):
        score += 10
        reasons.append("包含日期格式")

    if not has_core_title:
        reasons.append("未检测到典型的行政处罚决定书标题")
    if len(essentials) < 3:
        reasons.append("核心要素出现次数不足")
    if not has_two_line_title:
        reasons.append("标题格式未检测到“机关名称 + 行政处罚决定书”两行排列")

    confidence = min(score, 100)
    is_valid = (
        has_core_title and has_two_line_title and matched_groups >= 4
        and len(essentials) >= 3 and confidence >= 70
    )
    return DocumentTypeCheck(is_valid=is_valid, confidence=confidence, reasons=reasons)


def build_recommendations(issues: List[Issue], score: int,
                          analysis: Optional[SemanticAnalysis] = None) -> Recommendations:
    counts = severity_counts(issues)
    critical, warning, info = counts["critical"], counts["warning"], counts["info"]
    actions: List[str] = []

    if critical > 0:
        priority, risk, status = "high", ("critical" if critical >= 3 else "high"), "non_compliant"
        actions += [
            f"立即处理 {critical} 个严重问题，涉及法定要素缺失或程序违法",
            "重点关注当事人信息、违法事实认定、法律依据引用等核心要素",
            "建议法律专家进行复核，确保合规性",
        ]
    elif warning > 3:
        priority, risk, status = "medium", "medium", "needs_improvement"
        actions += [f"及时修正 {warning} 个警告问题", "完善格式规范和表述完整性"]
    else:
        priority, risk = "low", "low"
        status = "needs_improvement" if warning > 0 else "compliant"
        if info > 0:
            actions.append(f"优化 {info} 个提示问题，提升文书质量")

    if score < 60:
        actions.append("文书质量不符合基本要求，建议全面重新审查和修订")
    elif score < 80:
        actions.append("文书质量需要改进，建议按优先级逐项完善")
    elif score < 90:
        actions.append("文书质量良好，建议关注细节完善")
    else:
        actions.append("文书质量优秀，符合规范要求")

    if analysis is not None and analysis.language_score < 80:
        actions.append("注意语言表述的规范性，避免口语化表述")
    if analysis is not None and analysis.logic_score < 80:
        actions.append("加强逻辑结构的完整性，确保事实认定与法律适用的一致性")
    if any(i.category == RIGHTS_CATEGORY for i in issues):
        actions.append("完善救济途径告知，明确行政复议和诉讼的期限、机关信息")

    return Recommendations(priority=priority, risk_level=risk, compliance_status=status, actions=actions)


class ReviewEngine:
    """
    One configured review pipeline. Without an analyzer (or with AI disabled
    in the config) the review is rules-only.
    """

    def __init__(self, config: Optional[ReviewConfig] = None,
                 analyzer: Optional[SemanticAnalyzer] = None,
                 reconciler: Optional[RuleVerdictReconciler] = None,
                 rules: Sequence[Rule] = RULES):
        self.config = config or ReviewConfig()
        self.analyzer = analyzer
        self.reconciler = reconciler
        self.pipeline = PipelineExecutor(rules, self.config)

    def _semantic(self, content, structure, options, cancel_event) -> Optional[SemanticAnalysis]:
        if not self.config.enable_ai or self.analyzer is None:
            return None
        if cancel_event is not None and cancel_event.is_set():
            log.info("review cancelled before semantic analysis")
            return None
        try:
            return self.analyzer.analyze(content, structure, options)
        except SemanticAnalysisError as e:
            log.warning("semantic analysis failed, falling back to rules only: %s", e)
            return None
        except Exception:
            log.exception("semantic analysis crashed, falling back to rules only")
            return None

    def review(self, content: DocumentContent, structure: DocumentStructure,
               options: Optional[AnalysisOptions] = None, today: Optional[dt.date] = None,
               cancel_event: Optional[threading.Event] = None) -> ReviewResult:
        rule_issues = self.pipeline.run(content, structure, today)
        analysis = self._semantic(content, structure, options, cancel_event)
        if analysis is not None and cancel_event is not None and cancel_event.is_set():
            log.info("review cancelled during semantic analysis; dropping AI results")
            analysis = None

        discarded: List[str] = []
        reconciled: Optional[bool] = None
        if analysis is not None and self.reconciler is not None and self.config.enable_reconciliation:
            outcome = self.reconciler.reconcile(content, rule_issues, cancel_event)
            rule_issues, discarded = outcome.kept_issues, outcome.discarded_issue_ids
            reconciled = outcome.completed

        issues = merge_issues(rule_issues, analysis.issues if analysis else [])
        score = score_issues(issues, self.config)
        counts = severity_counts(issues)
        summary = ReviewSummary(
            total_issues=len(issues),
            critical_issues=counts["critical"],
            warning_issues=counts["warning"],
            info_issues=counts["info"],
            rule_issues=len(rule_issues),
            ai_issues=len(issues) - len(rule_issues),
            rules_applied=len(self.pipeline.rules),
            ai_enabled=analysis is not None,
            model_used=analysis.model_used if analysis else None,
            language_score=analysis.language_score if analysis else None,
            logic_score=analysis.logic_score if analysis else None,
            overall_assessment=(
                analysis.overall_assessment if analysis
                else "AI语义分析未启用，本次仅依据规则审查结果评估。"
            ),
            discarded_issue_ids=discarded,
            reconciliation_completed=reconciled,
            recommendations=build_recommendations(issues, score, analysis),
        )
        log.info("review %s: score=%d issues=%d ai=%s",
                 content.file_name or "-", score, len(issues), summary.ai_enabled)
        return ReviewResult(
            file_name=content.file_name,
            word_count=content.word_count,
            score=score,
            category_scores=category_scores(issues, self.config),
            issues=issues,
            summary=summary,
        )


def build_engine(enable_ai: bool = True, config: Optional[ReviewConfig] = None) -> ReviewEngine:
    """Engine wired to the configured chat endpoint, or rules-only when AI is off or unconfigured."""
    config = config or ReviewConfig.from_env()
    if not (enable_ai and config.enable_ai):
        return ReviewEngine(config)
    try:
        client = ChatClient()
    except LLMUnavailable as e:
        log.info("AI review unavailable: %s", e)
        return ReviewEngine(config)
    return ReviewEngine(
        config,
        analyzer=SemanticAnalyzer(client),
        reconciler=RuleVerdictReconciler(client, config),
    )


def review_file(doc_id: str, path: str, options: Optional[AnalysisOptions] = None,
                engine: Optional[ReviewEngine] = None) -> ReviewResult:
    """Extract, type-check and review one stored upload. Raises DocumentTypeError for other documents."""
    content = extract_content(path)
    check = validate_document_type(content)
    if not check.is_valid:
        log.info("doc %s rejected: confidence=%d", doc_id, check.confidence)
        raise DocumentTypeError(check)
    structure = analyze_structure(content)
    engine = engine or build_engine()
    return engine.review(content, structure, options, today=dt.date.today())
