from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from penalty_review.models.report import Issue, Severity


class AnalysisOptions(BaseModel):
    strict_mode: bool = False
    enable_semantic_check: bool = True
    enable_language_check: bool = True
    enable_logic_check: bool = True


class AIIssue(BaseModel):
    id: str
    type: Severity = "info"
    category: str = "AI分析"
    title: str = "检测到问题"
    description: str = ""
    location: str = "相关段落"
    suggestion: str = "建议进行优化"
    confidence: int = Field(default=85, ge=0, le=100)


class SemanticAnalysis(BaseModel):
    issues: List[AIIssue] = Field(default_factory=list)
    language_score: int = Field(default=85, ge=0, le=100)
    logic_score: int = Field(default=85, ge=0, le=100)
    overall_assessment: str = ""
    model_used: str = ""
    parsed_as: Literal["json", "natural_language", "empty"] = "json"


class Verdict(BaseModel):
    issue_id: str
    decision: Literal["keep", "discard"] = "keep"
    reason: Optional[str] = None


class ReconciliationResult(BaseModel):
    kept_issues: List[Issue]
    discarded_issue_ids: List[str] = Field(default_factory=list)
    verdicts: List[Verdict] = Field(default_factory=list)
    completed: bool = True
