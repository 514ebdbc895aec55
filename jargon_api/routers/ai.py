"""
AI router.

Endpoints:
- POST /api/ai/rewrite - Rewrite a confusing explanation with the language model
- GET /api/ai/stats - Rewrite counts, tokens and cost
"""
from fastapi import APIRouter, Depends

from jargon_api.dependencies import get_ai_rewrite_service
from jargon_api.models import RewriteRequest, ok
from jargon_api.services.ai_rewrite import AIRewriteService

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("/rewrite")
async def rewrite_explanation(body: RewriteRequest, service: AIRewriteService = Depends(get_ai_rewrite_service)):
    data = await service.rewrite(
        client_id=body.client_id,
        term_key=body.term_key,
        original_explanation=body.original_explanation,
        term_display=body.term_display,
        complexity_level=body.complexity_level,
        user_context=body.user_context,
    )
    return ok(data)


@router.get("/stats")
async def get_ai_stats(service: AIRewriteService = Depends(get_ai_rewrite_service)):
    return ok(await service.stats())
