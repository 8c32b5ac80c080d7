from penalty_review.core.config import ReviewConfig
from penalty_review.models.report import Issue
from penalty_review.services.pipeline import PipelineExecutor
from penalty_review.services.rules import RULES, Rule
from penalty_review.services.scoring import category_scores, score_issues

from conftest import COMPLIANT_PARAGRAPHS, make_content
from penalty_review.services.extract import analyze_structure


def _broken(content, structure, ctx):
    raise RuntimeError("boom")


BROKEN = Rule("always_fails", "故障规则", "整体一致性", "critical", "", _broken)


def _defective():
    paragraphs = ["XX市监督管理局行政处罚决定书"] + COMPLIANT_PARAGRAPHS[2:] + ["当事人大约销售了二十件左右。"]
    content = make_content(paragraphs, formatted=False)
    return content, analyze_structure(content)


def test_run_is_deterministic(today):
    content, structure = _defective()
    first = PipelineExecutor().run(content, structure, today)
    second = PipelineExecutor().run(content, structure, today)
    assert first and [i.model_dump() for i in first] == [i.model_dump() for i in second]


def test_issue_ids_and_titles_come_from_the_rule(today):
    content, structure = _defective()
    issues = PipelineExecutor().run(content, structure, today)
    by_rule = {i.rule_id: i for i in issues}
    two_line = by_rule["title_two_line_structure"]
    assert two_line.id == "title_two_line_structure_1"
    assert two_line.title == "标题两行结构"
    assert two_line.category == "标题部分"
    assert all(i.source == "rules" for i in issues)


def test_failing_rule_does_not_stop_the_pipeline(today):
    content, structure = _defective()
    baseline = PipelineExecutor(RULES).run(content, structure, today)
    with_broken = PipelineExecutor([BROKEN] + list(RULES)).run(content, structure, today)
    assert with_broken == baseline


def _issue(n, severity, category="正文部分"):
    return Issue(id=f"x_{n}", category=category, title=f"t{n}", severity=severity,
                 problem="p", location="全文", solution="s")


def test_score_weights_and_floor():
    issues = [_issue(1, "critical"), _issue(2, "warning"), _issue(3, "info")]
    assert score_issues(issues) == 100 - 10 - 5 - 1
    many = [_issue(n, "critical") for n in range(20)]
    assert score_issues(many) == 0
    assert score_issues(many, ReviewConfig(score_floor=40)) == 40


def test_extra_critical_never_raises_score():
    issues = [_issue(1, "warning"), _issue(2, "info")]
    for n in range(3, 15):
        before = score_issues(issues)
        issues = issues + [_issue(n, "critical")]
        assert score_issues(issues) <= before


def test_category_scores_cover_all_stages_and_extra_categories():
    issues = [_issue(1, "critical"), _issue(2, "warning", category="AI分析")]
    scores = category_scores(issues)
    assert scores["正文部分"] == 90
    assert scores["文书格式检查"] == 100
    assert scores["AI分析"] == 95
    assert list(scores)[-1] == "AI分析"
