import logging
import threading
from typing import Dict, List, Optional

from penalty_review.core.config import ReviewConfig
from penalty_review.models.document import DocumentContent
from penalty_review.models.report import Issue
from penalty_review.models.semantic import ReconciliationResult, Verdict
from penalty_review.services.llm import ChatClient, LLMError, Parsed, extract_json
from penalty_review.services.semantic import sanitize_text

log = logging.getLogger("reconcile")

VALIDATION_SYSTEM = (
    "你是行政处罚决定书审查专家，需要判断规则检测的问题是否为误报。"
    "如果文书中确实包含相关内容，应判定为误报。"
)

VALIDATION_SCHEMA = """```json
{
  "validatedIssues": [
    {"id": "问题ID", "verdict": "keep", "reason": "确实缺失XX信息"},
    {"id": "问题ID", "verdict": "discard", "reason": "文书中已包含XX内容"}
  ]
}
```"""


class ReconciliationAborted(RuntimeError):
    pass


def build_validation_prompt(content: DocumentContent, issues: List[Issue], text_limit: int) -> str:
    text = content.text[:text_limit] + ("..." if len(content.text) > text_limit else "")
    listing = "\n\n".join(
        f"{n}. [{issue.id}] {issue.title}\n   问题：{issue.problem}\n   位置：{issue.location}"
        for n, issue in enumerate(issues, start=1)
    )
    return f"""你是行政处罚决定书审查专家，需要复核以下规则检测出的问题是否为误报。

**重要原则**：
1. 如果文书中确实包含相关内容，即使表述方式不同，也应判定为误报
2. 只有真正缺失关键信息时才保留问题
3. 例如：“罚款300元”和“罚款人民币300元”都是有效的

**文书内容**：
{text}

**待复核的问题**：
{listing}

请对每个问题判断是否为误报，输出JSON格式：

{VALIDATION_SCHEMA}

verdict只能是"keep"(保留)或"discard"(误报)。"""


def parse_verdicts(reply: str, issue_ids: List[str]) -> Optional[Dict[str, Verdict]]:
    """
    Verdicts for the submitted ids, or None when the reply holds no usable JSON.
    Ids the reply does not mention (or mentions without a clear "discard") are kept.
    """
    result = extract_json(reply)
    if not isinstance(result, Parsed):
        return None
    raw_list = result.payload.get("validatedIssues")
    if not isinstance(raw_list, list):
        return None

    submitted = set(issue_ids)
    verdicts: Dict[str, Verdict] = {}
    for item in raw_list:
        if not isinstance(item, dict):
            continue
        issue_id = item.get("id")
        if not isinstance(issue_id, str) or issue_id not in submitted or issue_id in verdicts:
            continue
        decision = "discard" if item.get("verdict") == "discard" else "keep"
        reason = sanitize_text(item.get("reason")) if item.get("reason") else None
        verdicts[issue_id] = Verdict(issue_id=issue_id, decision=decision, reason=reason)

    for issue_id in issue_ids:
        verdicts.setdefault(issue_id, Verdict(issue_id=issue_id, decision="keep"))
    return verdicts


class RuleVerdictReconciler:
    """
    Asks the chat model to confirm or discard rule findings, a few at a time.

    All-or-nothing: if any batch fails or the review is cancelled, every rule
    issue is kept and the result is marked incomplete.
    """

    def __init__(self, client: ChatClient, config: Optional[ReviewConfig] = None):
        self.client = client
        self.config = config or ReviewConfig()

    def _judge_batch(self, content: DocumentContent, batch: List[Issue]) -> Dict[str, Verdict]:
        prompt = build_validation_prompt(content, batch, self.config.reconcile_text_limit)
        messages = [
            {"role": "system", "content": VALIDATION_SYSTEM},
            {"role": "user", "content": prompt},
        ]
        reply = self.client.chat(messages, temperature=0.3, max_tokens=2048)
        verdicts = parse_verdicts(reply, [i.id for i in batch])
        if verdicts is None:
            raise LLMError("verdict reply held no validatedIssues JSON")
        return verdicts

    def reconcile(self, content: DocumentContent, issues: List[Issue],
                  cancel_event: Optional[threading.Event] = None) -> ReconciliationResult:
        if not issues:
            return ReconciliationResult(kept_issues=[])

        size = self.config.reconcile_batch_size
        verdicts: Dict[str, Verdict] = {}
        try:
            for start in range(0, len(issues), size):
                if cancel_event is not None and cancel_event.is_set():
                    raise ReconciliationAborted("review cancelled")
                batch = issues[start:start + size]
                verdicts.update(self._judge_batch(content, batch))
                log.info("reconcile batch %d-%d judged", start + 1, start + len(batch))
            if cancel_event is not None and cancel_event.is_set():
                raise ReconciliationAborted("review cancelled while a batch was in flight")
        except (LLMError, ReconciliationAborted) as e:
            log.warning("reconciliation incomplete, keeping all %d rule issues: %s", len(issues), e)
            return ReconciliationResult(kept_issues=list(issues), completed=False)

        kept, discarded = [], []
        for issue in issues:
            verdict = verdicts.get(issue.id)
            if verdict is not None and verdict.decision == "discard":
                log.info("discarding %s: %s", issue.id, verdict.reason)
                discarded.append(issue.id)
            else:
                kept.append(issue)
        log.info("reconcile: kept %d, discarded %d of %d", len(kept), len(discarded), len(issues))
        return ReconciliationResult(
            kept_issues=kept,
            discarded_issue_ids=discarded,
            verdicts=[verdicts[i.id] for i in issues if i.id in verdicts],
        )
