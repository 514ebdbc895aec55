"""
Feedback router.

Endpoints:
- POST /api/feedback/lookup - Track a term lookup
- POST /api/feedback/submit - Submit feedback on an explanation
- GET /api/feedback/stats/{client_id} - Lookup stats for one client
"""
from fastapi import APIRouter, Depends

from jargon_api.dependencies import get_feedback_service
from jargon_api.models import FeedbackRequest, LookupRequest, ok
from jargon_api.services.feedback import FeedbackService

router = APIRouter(prefix="/api/feedback", tags=["feedback"])


@router.post("/lookup")
async def track_lookup(body: LookupRequest, service: FeedbackService = Depends(get_feedback_service)):
    data = await service.record_lookup(
        client_id=body.client_id,
        term_key=body.term_key,
        term_display=body.term_display,
        complexity_level=body.complexity_level,
        page_url=body.page_url,
        page_context=body.page_context,
        found=body.found,
    )
    return ok(data)


@router.post("/submit")
async def submit_feedback(body: FeedbackRequest, service: FeedbackService = Depends(get_feedback_service)):
    data = await service.submit_feedback(
        client_id=body.client_id,
        term_key=body.term_key,
        feedback_type=body.feedback_type,
        complexity_level=body.complexity_level,
        comment=body.comment,
    )
    return ok(data)


@router.get("/stats/{client_id}")
async def get_user_stats(client_id: str, service: FeedbackService = Depends(get_feedback_service)):
    return ok(await service.get_user_stats(client_id))
