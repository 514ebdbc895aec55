"""
Lookup, feedback and per-user stats ingestion.
"""
import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jargon_api.database.models import FEEDBACK_TYPES, utcnow
from jargon_api.database.repositories import (
    FeedbackRepository,
    MissingTermRepository,
    TermLookupRepository,
    UserRepository,
)
from jargon_api.exceptions import PersistenceError, ValidationError
from jargon_api.utils import EventTracker, is_blank, normalize_term_text

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class FeedbackService:
    """Records lookup events and feedback, and reports per-user stats."""

    def __init__(self, db: AsyncSession, tracker: EventTracker):
        self.db = db
        self.tracker = tracker
        self.users = UserRepository(db)
        self.lookups = TermLookupRepository(db)
        self.missing_terms = MissingTermRepository(db)
        self.feedback = FeedbackRepository(db)

    async def record_lookup(
        self,
        client_id: Optional[str],
        term_key: Optional[str],
        term_display: Optional[str] = None,
        complexity_level: Optional[str] = None,
        page_url: Optional[str] = None,
        page_context: Optional[str] = None,
        found: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Count a lookup against the user, store the lookup row and, when the
        term was not found, count it as missing.

        Returns:
            {"lookup_id": int, "total_lookups": int}
        """
        if is_blank(client_id) or is_blank(term_key):
            raise ValidationError("client_id and term_key are required")

        was_found = found is not False

        try:
            total_lookups = await self.users.record_lookup(client_id)
            lookup = await self.lookups.create_lookup(
                client_id=client_id,
                term_key=term_key,
                term_display=term_display,
                complexity_level=complexity_level,
                page_url=page_url,
                page_context=page_context,
                found=was_found,
            )
            if not was_found:
                await self.missing_terms.record_missing(
                    normalize_term_text(term_key),
                    client_id=client_id,
                    page_url=page_url,
                    page_context=page_context,
                )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"[LOOKUP] Failed to track lookup for {term_key}: {e}")
            raise PersistenceError("Failed to track lookup") from e

        self.tracker.track_event("term_lookup", {
            "term_key": term_key,
            "complexity_level": complexity_level,
            "found": was_found,
        })

        return {"lookup_id": lookup.id, "total_lookups": total_lookups}

    async def submit_feedback(
        self,
        client_id: Optional[str],
        term_key: Optional[str],
        feedback_type: Optional[str],
        complexity_level: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        if is_blank(client_id) or is_blank(term_key) or is_blank(feedback_type):
            raise ValidationError("client_id, term_key, and feedback_type are required")
        if feedback_type not in FEEDBACK_TYPES:
            raise ValidationError(f"feedback_type must be one of: {', '.join(FEEDBACK_TYPES)}")

        try:
            feedback = await self.feedback.create_feedback(
                client_id=client_id,
                term_key=term_key,
                feedback_type=feedback_type,
                complexity_level=complexity_level,
                comment=comment,
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"[FEEDBACK] Failed to submit feedback for {term_key}: {e}")
            raise PersistenceError("Failed to submit feedback") from e

        self.tracker.track_event("feedback_submitted", {
            "term_key": term_key,
            "feedback_type": feedback_type,
            "complexity_level": complexity_level,
        })

        return {"feedback_id": feedback.id}

    async def get_user_stats(self, client_id: str) -> Dict[str, Any]:
        """
        Lookup stats for one client. Unknown clients get zeros, not an error.

        days_active is measured from the earliest lookup row, re-read on every
        call, rounded up to whole days.
        """
        try:
            user = await self.users.get_by_client_id(client_id)
            if user is None:
                return {"total_lookups": 0, "unique_terms": 0, "days_active": 0}

            unique_terms = await self.lookups.count_unique_terms(client_id)
            first_lookup_at = await self.lookups.get_first_lookup_at(client_id)
        except SQLAlchemyError as e:
            logger.exception(f"[STATS] Failed to get stats for {client_id}: {e}")
            raise PersistenceError("Failed to get stats") from e

        days_active = 0
        if first_lookup_at is not None:
            elapsed = (utcnow() - first_lookup_at).total_seconds()
            days_active = max(0, math.ceil(elapsed / SECONDS_PER_DAY))

        return {
            "total_lookups": user.total_lookups,
            "unique_terms": unique_terms,
            "days_active": days_active,
            "first_seen": user.first_seen_at.isoformat() if user.first_seen_at else None,
            "last_seen": user.last_seen_at.isoformat() if user.last_seen_at else None,
        }
