from collections import Counter
from typing import Dict, Iterable, List, Optional

from penalty_review.core.config import CATEGORIES, SEVERITIES, ReviewConfig
from penalty_review.models.report import CategoryScore, Issue


def severity_counts(issues: Iterable[Issue]) -> Dict[str, int]:
    counts = Counter(i.severity for i in issues)
    return {sev: counts.get(sev, 0) for sev in SEVERITIES}


def score_issues(issues: Iterable[Issue], config: Optional[ReviewConfig] = None) -> int:
    """100 minus the weighted deductions, clamped to [floor, 100]."""
    config = config or ReviewConfig()
    deduction = sum(config.weight(i.severity) for i in issues)
    return max(config.score_floor, 0, min(100, 100 - deduction))


def category_breakdown(issues: List[Issue], config: Optional[ReviewConfig] = None) -> List[CategoryScore]:
    """Per-category scores for the eight stages, then any extra categories (e.g. AI ones) in first-seen order."""
    categories = list(CATEGORIES)
    for issue in issues:
        if issue.category not in categories:
            categories.append(issue.category)

    out = []
    for category in categories:
        scoped = [i for i in issues if i.category == category]
        counts = severity_counts(scoped)
        out.append(CategoryScore(
            category=category,
            score=score_issues(scoped, config),
            critical=counts["critical"],
            warning=counts["warning"],
            info=counts["info"],
        ))
    return out


def category_scores(issues: List[Issue], config: Optional[ReviewConfig] = None) -> Dict[str, int]:
    return {c.category: c.score for c in category_breakdown(issues, config)}
