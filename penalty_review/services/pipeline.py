import datetime as dt
import logging
from typing import List, Optional, Sequence

from penalty_review.core.config import ReviewConfig
from penalty_review.models.document import DocumentContent, DocumentStructure
from penalty_review.models.report import Issue
from penalty_review.services.rules import RULES, ReviewContext, Rule

log = logging.getLogger("pipeline")


class PipelineExecutor:
    """
    Runs the rule catalog in order against one document.

    A rule that raises contributes no issues; the run itself never fails
    because of a single rule.
    """

    def __init__(self, rules: Sequence[Rule] = RULES, config: Optional[ReviewConfig] = None):
        self.rules = list(rules)
        self.config = config or ReviewConfig()

    def run(self, content: DocumentContent, structure: DocumentStructure,
            today: Optional[dt.date] = None) -> List[Issue]:
        ctx = ReviewContext(today=today or dt.date.today(), config=self.config)
        issues: List[Issue] = []
        for rule in self.rules:
            try:
                found = rule.check(content, structure, ctx) or []
            except Exception:
                log.exception("rule %s failed; skipping", rule.id)
                continue
            for n, raw in enumerate(found, start=1):
                issues.append(Issue(
                    id=f"{rule.id}_{n}",
                    source="rules",
                    rule_id=rule.id,
                    category=rule.category,
                    title=rule.name,
                    severity=raw.get("severity", rule.severity),
                    problem=raw["problem"],
                    location=raw.get("location") or "全文",
                    solution=raw.get("solution", ""),
                ))
        log.info("pipeline: %d rules, %d issues", len(self.rules), len(issues))
        return issues
