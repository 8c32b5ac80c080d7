import os
from typing import Dict

from pydantic import BaseModel, Field

MAX_UPLOAD_BYTES = 20 * 1024 * 1024  # 20 MB soft cap
ALLOWED_EXTENSIONS = {'.docx', '.pdf'}
DATA_DIR = "data"
MIME_ALLOW = {
    ".pdf": {"application/pdf"},
    ".docx": {
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/zip",
    },
}

# Semantic model (any OpenAI-compatible chat completions endpoint)
LLM_API_KEY_ENV = "DEEPSEEK_API_KEY"
LLM_BASE_URL = os.getenv("DEEPSEEK_BASE_URL", "https://api.deepseek.com")
LLM_MODEL = os.getenv("DEEPSEEK_MODEL", "deepseek-chat")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "1"))

# Review stages, in evaluation order
CATEGORIES = [
    "文书格式检查",
    "标题部分",
    "文号部分",
    "正文部分",
    "履行与权利告知",
    "落款部分",
    "固定内容比对",
    "整体一致性",
]

SEVERITIES = ("critical", "warning", "info")


def ai_disabled_by_env() -> bool:
    return os.getenv("AI_SEMANTIC_REVIEW_DISABLED", "").lower() in ("1", "true", "yes", "on")


class ReviewConfig(BaseModel):
    """Explicit knobs for one review engine instance."""

    severity_weights: Dict[str, int] = Field(
        default_factory=lambda: {"critical": 10, "warning": 5, "info": 1}
    )
    score_floor: int = Field(default=0, ge=0, le=100)

    enable_ai: bool = True
    enable_reconciliation: bool = True
    reconcile_batch_size: int = Field(default=3, ge=1)
    reconcile_text_limit: int = 3000

    hearing_threshold_individual: float = 10000
    hearing_threshold_unit: float = 100000

    remedy_tail_paragraphs: int = 7
    signature_tail_paragraphs: int = 5
    date_tail_paragraphs: int = 3
    stale_date_years: int = 5

    def weight(self, severity: str) -> int:
        return self.severity_weights.get(severity, 0)

    @classmethod
    def from_env(cls) -> "ReviewConfig":
        cfg = cls()
        weights = dict(cfg.severity_weights)
        for sev in SEVERITIES:
            raw = os.getenv(f"REVIEW_WEIGHT_{sev.upper()}")
            if raw:
                weights[sev] = int(raw)
        floor = os.getenv("REVIEW_SCORE_FLOOR")
        return cls(
            severity_weights=weights,
            score_floor=int(floor) if floor else cfg.score_floor,
            enable_ai=not ai_disabled_by_env(),
        )
