"""
FastAPI dependencies handing each request the handles built at startup.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from jargon_api.clients.llm_client import LLMClient
from jargon_api.config import Settings
from jargon_api.database.session import get_db
from jargon_api.services.ai_rewrite import AIRewriteService
from jargon_api.services.analytics import AnalyticsService
from jargon_api.services.feedback import FeedbackService
from jargon_api.utils import EventTracker


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_tracker(request: Request) -> EventTracker:
    return request.app.state.tracker


def get_llm_client(request: Request) -> LLMClient:
    return request.app.state.llm_client


def get_feedback_service(
    db: AsyncSession = Depends(get_db),
    tracker: EventTracker = Depends(get_tracker),
) -> FeedbackService:
    return FeedbackService(db, tracker)


def get_analytics_service(db: AsyncSession = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db)


def get_ai_rewrite_service(
    db: AsyncSession = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
    tracker: EventTracker = Depends(get_tracker),
    settings: Settings = Depends(get_settings),
) -> AIRewriteService:
    return AIRewriteService(db, llm, tracker, model=settings.openai_model)
