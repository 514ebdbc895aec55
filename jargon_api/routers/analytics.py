"""
Analytics router.

Endpoints:
- GET /api/analytics/overview - Totals plus popular, confusing and missing terms
- GET /api/analytics/daily?days=30 - Daily rollups
- GET /api/analytics/term/{term_key} - Detail for one term
- GET /api/analytics/user-engagement - Lookup distribution and retention
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from jargon_api.dependencies import get_analytics_service
from jargon_api.models import ok
from jargon_api.services.analytics import AnalyticsService, parse_days

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/overview")
async def get_overview(service: AnalyticsService = Depends(get_analytics_service)):
    return ok(await service.overview())


@router.get("/daily")
async def get_daily(
    days: Optional[str] = Query(None, description="Trailing window in days (default 30)"),
    service: AnalyticsService = Depends(get_analytics_service),
):
    # Parsed by hand so malformed values get the envelope's 400 rather than a 422
    return ok(await service.daily(parse_days(days)))


@router.get("/term/{term_key}")
async def get_term_detail(term_key: str, service: AnalyticsService = Depends(get_analytics_service)):
    return ok(await service.term_detail(term_key))


@router.get("/user-engagement")
async def get_user_engagement(service: AnalyticsService = Depends(get_analytics_service)):
    return ok(await service.user_engagement())
