import json
import threading

from penalty_review.core.config import ReviewConfig
from penalty_review.services.extract import analyze_structure
from penalty_review.services.llm import LLMError
from penalty_review.services.reconcile import RuleVerdictReconciler
from penalty_review.services.review import (
    ReviewEngine,
    build_engine,
    build_recommendations,
    validate_document_type,
)
from penalty_review.services.semantic import SemanticAnalyzer

from conftest import COMPLIANT_PARAGRAPHS, make_content

AI_REPORT = json.dumps({
    "issues": [
        {"type": "warning", "category": "逻辑一致性", "title": "违法所得计算依据不明",
         "description": "未说明违法所得的计算方式", "location": "第8段", "suggestion": "补充计算过程"},
        {"type": "info", "category": "标题部分", "title": "标题两行结构",
         "description": "标题为单行", "location": "标题", "suggestion": "拆分为两行"},
    ],
    "summary": {"languageScore": 90, "logicScore": 75, "overallAssessment": "基本规范"},
}, ensure_ascii=False)


def _single_line_title():
    content = make_content(["XX市监督管理局行政处罚决定书"] + COMPLIANT_PARAGRAPHS[2:])
    return content, analyze_structure(content)


def test_compliant_decision_scores_full_marks(compliant_content, compliant_structure, today):
    result = ReviewEngine().review(compliant_content, compliant_structure, today=today)
    assert result.score == 100
    assert result.issues == []
    assert result.summary.ai_enabled is False
    assert result.summary.recommendations.compliance_status == "compliant"
    assert set(result.category_scores.values()) == {100}


def test_rules_only_review(today):
    content, structure = _single_line_title()
    result = ReviewEngine().review(content, structure, today=today)
    assert [i.rule_id for i in result.issues] == ["title_two_line_structure"]
    assert result.score == 95
    assert result.category_scores["标题部分"] == 95
    assert result.summary.rules_applied > 30


def test_ai_review_reconciles_and_merges(fake_chat, today):
    content, structure = _single_line_title()
    analyzer = SemanticAnalyzer(fake_chat([AI_REPORT]))
    verdicts = json.dumps({"validatedIssues": [
        {"id": "title_two_line_structure_1", "verdict": "keep", "reason": "确为单行"},
    ]}, ensure_ascii=False)
    reconciler = RuleVerdictReconciler(fake_chat([verdicts]))
    result = ReviewEngine(analyzer=analyzer, reconciler=reconciler).review(content, structure, today=today)

    assert [i.id for i in result.issues] == ["title_two_line_structure_1", "ai_1"]
    assert result.summary.ai_enabled
    assert result.summary.ai_issues == 1
    assert result.summary.model_used == "fake-model"
    assert result.score == 90
    assert "加强逻辑结构的完整性，确保事实认定与法律适用的一致性" in result.summary.recommendations.actions


def test_discarded_rule_issue_is_reported(fake_chat, today):
    content, structure = _single_line_title()
    analyzer = SemanticAnalyzer(fake_chat([json.dumps({"issues": [], "summary": {}})]))
    reconciler = RuleVerdictReconciler(fake_chat([json.dumps({"validatedIssues": [
        {"id": "title_two_line_structure_1", "verdict": "discard", "reason": "误报"},
    ]})]))
    result = ReviewEngine(analyzer=analyzer, reconciler=reconciler).review(content, structure, today=today)
    assert result.issues == []
    assert result.summary.discarded_issue_ids == ["title_two_line_structure_1"]
    assert result.summary.reconciliation_completed is True
    assert result.score == 100


def test_ai_failure_falls_back_to_rules(fake_chat, today):
    content, structure = _single_line_title()
    analyzer = SemanticAnalyzer(fake_chat([LLMError("401 unauthorized")]))
    reconciler_client = fake_chat([])
    engine = ReviewEngine(analyzer=analyzer, reconciler=RuleVerdictReconciler(reconciler_client))
    result = engine.review(content, structure, today=today)
    assert result.summary.ai_enabled is False
    assert [i.rule_id for i in result.issues] == ["title_two_line_structure"]
    assert reconciler_client.calls == []


def test_malformed_ai_issue_fields_do_not_fail_review(fake_chat, today):
    content, structure = _single_line_title()
    reply = json.dumps({"issues": [
        {"type": ["warning"], "category": 3, "title": {"t": "x"}, "description": ["缺少"],
         "location": ["第3段"], "suggestion": None, "confidence": "high"},
    ]}, ensure_ascii=False)
    analyzer = SemanticAnalyzer(fake_chat([reply]))
    result = ReviewEngine(analyzer=analyzer).review(content, structure, today=today)
    assert result.summary.ai_enabled
    ai = [i for i in result.issues if i.source == "ai"]
    assert len(ai) == 1
    assert ai[0].location == "第3段"
    assert ai[0].severity == "info"


class _CrashingAnalyzer:
    def analyze(self, content, structure, options=None):
        raise TypeError("unexpected reply shape")


def test_unexpected_analyzer_error_falls_back_to_rules(fake_chat, today):
    content, structure = _single_line_title()
    reconciler_client = fake_chat([])
    engine = ReviewEngine(analyzer=_CrashingAnalyzer(), reconciler=RuleVerdictReconciler(reconciler_client))
    result = engine.review(content, structure, today=today)
    assert result.summary.ai_enabled is False
    assert [i.rule_id for i in result.issues] == ["title_two_line_structure"]
    assert reconciler_client.calls == []


class _CancellingClient:
    model = "fake-model"

    def __init__(self, cancel, reply):
        self.cancel = cancel
        self.reply = reply
        self.calls = []

    def chat(self, messages, temperature=0.3, max_tokens=2048):
        self.calls.append(messages)
        self.cancel.set()
        return self.reply


def test_cancel_during_analysis_drops_ai_results(fake_chat, today):
    content, structure = _single_line_title()
    cancel = threading.Event()
    reconciler_client = fake_chat([])
    engine = ReviewEngine(analyzer=SemanticAnalyzer(_CancellingClient(cancel, AI_REPORT)),
                          reconciler=RuleVerdictReconciler(reconciler_client))
    result = engine.review(content, structure, today=today, cancel_event=cancel)
    assert result.summary.ai_enabled is False
    assert [i.rule_id for i in result.issues] == ["title_two_line_structure"]
    assert reconciler_client.calls == []
    assert result.summary.reconciliation_completed is None


def test_incomplete_reconciliation_is_flagged(fake_chat, today):
    content, structure = _single_line_title()
    analyzer = SemanticAnalyzer(fake_chat([json.dumps({"issues": [], "summary": {}})]))
    reconciler = RuleVerdictReconciler(fake_chat([LLMError("503")]))
    result = ReviewEngine(analyzer=analyzer, reconciler=reconciler).review(content, structure, today=today)
    assert [i.rule_id for i in result.issues] == ["title_two_line_structure"]
    assert result.summary.reconciliation_completed is False


def test_disabled_ai_skips_analyzer(fake_chat, today):
    content, structure = _single_line_title()
    client = fake_chat([AI_REPORT])
    engine = ReviewEngine(ReviewConfig(enable_ai=False), analyzer=SemanticAnalyzer(client))
    engine.review(content, structure, today=today)
    assert client.calls == []


def test_full_review_is_deterministic(fake_chat, today):
    content, structure = _single_line_title()

    def once():
        engine = ReviewEngine(analyzer=SemanticAnalyzer(fake_chat([AI_REPORT])),
                              reconciler=RuleVerdictReconciler(fake_chat(['{"validatedIssues": []}'])))
        return engine.review(content, structure, today=today).model_dump_json()

    assert once() == once()


def test_build_engine_without_key_is_rules_only():
    engine = build_engine()
    assert engine.analyzer is None and engine.reconciler is None


def test_document_type_validation(compliant_content):
    check = validate_document_type(compliant_content)
    assert check.is_valid and check.confidence == 100

    other = make_content(["会议纪要", "今天讨论了下周的工作安排。"])
    check = validate_document_type(other)
    assert not check.is_valid
    assert "未检测到典型的行政处罚决定书标题" in check.reasons


def test_recommendation_levels():
    from penalty_review.models.report import Issue

    def issue(n, severity, category="正文部分"):
        return Issue(id=str(n), category=category, title=str(n), severity=severity,
                     problem="p", location="全文", solution="s")

    critical = [issue(n, "critical") for n in range(3)]
    rec = build_recommendations(critical, 70)
    assert (rec.priority, rec.risk_level, rec.compliance_status) == ("high", "critical", "non_compliant")

    warnings = [issue(n, "warning", "履行与权利告知") for n in range(4)]
    rec = build_recommendations(warnings, 80)
    assert (rec.priority, rec.risk_level, rec.compliance_status) == ("medium", "medium", "needs_improvement")
    assert rec.actions[-1].startswith("完善救济途径告知")

    rec = build_recommendations([issue(1, "info")], 99)
    assert (rec.priority, rec.compliance_status) == ("low", "compliant")
    assert rec.actions == ["优化 1 个提示问题，提升文书质量", "文书质量优秀，符合规范要求"]
