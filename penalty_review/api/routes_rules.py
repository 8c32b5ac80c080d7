from fastapi import APIRouter

from penalty_review.services.rules import REVIEW_STAGES, RULES

router = APIRouter(tags=["rules"])


@router.get("/rules")
def list_rules():
    return {
        "process": REVIEW_STAGES,
        "rules": [
            {
                "id": r.id,
                "name": r.name,
                "category": r.category,
                "severity": r.severity,
                "description": r.description,
            }
            for r in RULES
        ],
    }
