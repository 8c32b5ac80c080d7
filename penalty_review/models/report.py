from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional

Severity = Literal["critical", "warning", "info"]
Source = Literal["rules", "ai"]


class Issue(BaseModel):
    id: str
    source: Source = "rules"
    rule_id: Optional[str] = None
    category: str
    title: str
    severity: Severity
    problem: str
    location: str
    solution: str
    confidence: int = 95


class CategoryScore(BaseModel):
    category: str
    score: int
    critical: int = 0
    warning: int = 0
    info: int = 0


class Recommendations(BaseModel):
    priority: Literal["high", "medium", "low"]
    risk_level: Literal["low", "medium", "high", "critical"]
    compliance_status: Literal["compliant", "needs_improvement", "non_compliant"]
    actions: List[str]


class ReviewSummary(BaseModel):
    total_issues: int
    critical_issues: int
    warning_issues: int
    info_issues: int
    rule_issues: int
    ai_issues: int
    rules_applied: int
    ai_enabled: bool = False
    model_used: Optional[str] = None
    language_score: Optional[int] = None
    logic_score: Optional[int] = None
    overall_assessment: str = ""
    discarded_issue_ids: List[str] = Field(default_factory=list)
    # None when no reconciliation ran; False when it fell back to keeping every rule issue
    reconciliation_completed: Optional[bool] = None
    recommendations: Recommendations


class ReviewResult(BaseModel):
    file_name: str = ""
    word_count: int = 0
    score: int
    category_scores: Dict[str, int]
    issues: List[Issue]
    summary: ReviewSummary


class DocumentTypeCheck(BaseModel):
    is_valid: bool
    confidence: int
    reasons: List[str]
