from fastapi import FastAPI

from penalty_review.api.routes_review import router as review_router
from penalty_review.api.routes_rules import router as rules_router
from penalty_review.api.routes_upload import router as upload_router
from penalty_review.middleware.limits import BodySizeLimitMiddleware

app = FastAPI(title="PenaltyDecisionReview")

app.add_middleware(BodySizeLimitMiddleware)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(upload_router)
app.include_router(review_router)
app.include_router(rules_router)
