from typing import List, Tuple

from penalty_review.models.report import Issue
from penalty_review.models.semantic import AIIssue


def ai_to_issue(ai: AIIssue) -> Issue:
    return Issue(
        id=ai.id,
        source="ai",
        category=ai.category,
        title=ai.title,
        severity=ai.type,
        problem=ai.description,
        location=ai.location,
        solution=ai.suggestion,
        confidence=ai.confidence,
    )


def merge_issues(rule_issues: List[Issue], ai_issues: List[AIIssue]) -> List[Issue]:
    """
    Rule issues first, then AI issues whose (category, title) is not already
    present. The same key also collapses repeated AI findings.
    """
    seen: set[Tuple[str, str]] = {(i.category, i.title) for i in rule_issues}
    merged = list(rule_issues)
    for ai in ai_issues:
        key = (ai.category, ai.title)
        if key in seen:
            continue
        seen.add(key)
        merged.append(ai_to_issue(ai))
    return merged
