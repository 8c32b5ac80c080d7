import logging

from fastapi import APIRouter, HTTPException, Query

from penalty_review.models.semantic import AnalysisOptions
from penalty_review.services.extract import ExtractionError
from penalty_review.services.review import DocumentTypeError, build_engine, review_file
from penalty_review.utils.storage import find_original

log = logging.getLogger("review")

router = APIRouter(tags=["review"])


@router.post("/review")
def review(
    doc_id: str = Query(...),
    enable_ai: bool = Query(True),
    strict_mode: bool = Query(False),
):
    path = find_original(doc_id)
    options = AnalysisOptions(strict_mode=strict_mode)
    try:
        result = review_file(doc_id, path, options, engine=build_engine(enable_ai=enable_ai))
    except DocumentTypeError as e:
        raise HTTPException(status_code=422, detail={
            "error": "document_type_error",
            "confidence": e.check.confidence,
            "reasons": e.check.reasons,
        })
    except ExtractionError as e:
        log.warning("doc %s could not be read: %s", doc_id, e)
        raise HTTPException(status_code=400, detail=str(e))
    return {"doc_id": doc_id, **result.model_dump()}
