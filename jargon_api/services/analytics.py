"""
Read-only analytics over lookups, feedback, users and daily rollups.

Provides:
- Overview counts with popular, confusing and missing terms
- Daily rollups for a trailing window
- Per-term detail
- User engagement (distribution buckets and retention)
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import case, desc, distinct, func, literal_column, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jargon_api.database.models import (
    AnalyticsDaily,
    Feedback,
    MissingTerm,
    TermLookup,
    User,
    utcnow,
)
from jargon_api.exceptions import PersistenceError, ValidationError

logger = logging.getLogger(__name__)

TOP_N = 10
DEFAULT_DAILY_WINDOW = 30
MAX_DAILY_WINDOW = 36500

# (label, upper bound inclusive); the last bucket is open-ended
LOOKUP_BUCKETS = (
    ("1-5", 5),
    ("6-10", 10),
    ("11-20", 20),
    ("21-50", 50),
    ("50+", None),
)


def parse_days(value: Union[str, int, None]) -> int:
    """
    Parse the `days` query parameter.

    The whole value must be a non-negative integer: "7abc" and "2.5" are
    rejected instead of being truncated or replaced by the default. Windows
    longer than MAX_DAILY_WINDOW days are rejected as well.
    """
    if value is None:
        return DEFAULT_DAILY_WINDOW
    if isinstance(value, bool):
        raise ValidationError("days must be a non-negative integer")
    if isinstance(value, int):
        days = value
    else:
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            raise ValidationError("days must be a non-negative integer")
        days = int(text)
    if days < 0:
        raise ValidationError("days must be a non-negative integer")
    if days > MAX_DAILY_WINDOW:
        raise ValidationError(f"days must be at most {MAX_DAILY_WINDOW}")
    return days


def retention_rate(active_last_week: int, active_last_month: int) -> str:
    if active_last_month == 0:
        return "0%"
    return f"{active_last_week / active_last_month * 100:.2f}%"


def _bucket_expression():
    whens = [(User.total_lookups <= upper, label) for label, upper in LOOKUP_BUCKETS if upper is not None]
    return case(*whens, else_=LOOKUP_BUCKETS[-1][0])


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


class AnalyticsService:
    """Service for generating analytics and insights."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _count(self, stmt) -> int:
        return int(await self.db.scalar(stmt) or 0)

    async def _active_users_since(self, days: int) -> int:
        since = utcnow() - timedelta(days=days)
        return await self._count(
            select(func.count(User.id)).where(User.last_seen_at >= since)
        )

    async def overview(self) -> Dict[str, Any]:
        try:
            total_users = await self._count(select(func.count(User.id)))
            total_lookups = await self._count(select(func.count(TermLookup.id)))
            total_feedback = await self._count(select(func.count(Feedback.id)))
            active_users = await self._active_users_since(7)

            lookup_count = func.count(TermLookup.id)
            popular = (
                await self.db.execute(
                    select(
                        TermLookup.term_key,
                        func.max(TermLookup.term_display).label("term_display"),
                        lookup_count.label("lookup_count"),
                        func.count(distinct(TermLookup.client_id)).label("unique_users"),
                    )
                    .where(TermLookup.found.is_(True))
                    .group_by(TermLookup.term_key)
                    .order_by(desc(lookup_count))
                    .limit(TOP_N)
                )
            ).all()

            confused_count = func.count(Feedback.id)
            confusing = (
                await self.db.execute(
                    select(Feedback.term_key, confused_count.label("confused_count"))
                    .where(Feedback.feedback_type == "confused")
                    .group_by(Feedback.term_key)
                    .order_by(desc(confused_count))
                    .limit(TOP_N)
                )
            ).all()

            missing = (
                await self.db.execute(
                    select(MissingTerm.missing_text, MissingTerm.lookup_count, MissingTerm.last_seen_at)
                    .order_by(desc(MissingTerm.lookup_count))
                    .limit(TOP_N)
                )
            ).all()
        except SQLAlchemyError as e:
            logger.exception(f"[ANALYTICS] Overview query failed: {e}")
            raise PersistenceError("Failed to get analytics overview") from e

        return {
            "overview": {
                "total_users": total_users,
                "active_users": active_users,
                "total_lookups": total_lookups,
                "total_feedback": total_feedback,
            },
            "popular_terms": [
                {
                    "term_key": r.term_key,
                    "term_display": r.term_display,
                    "lookup_count": r.lookup_count,
                    "unique_users": r.unique_users,
                }
                for r in popular
            ],
            "confusing_terms": [
                {"term_key": r.term_key, "confused_count": r.confused_count}
                for r in confusing
            ],
            "missing_terms": [
                {
                    "missing_text": r.missing_text,
                    "lookup_count": r.lookup_count,
                    "last_seen_at": _iso(r.last_seen_at),
                }
                for r in missing
            ],
        }

    async def daily(self, days: int = DEFAULT_DAILY_WINDOW) -> List[Dict[str, Any]]:
        """Rollup rows dated within the last `days` days, newest first."""
        start_date = utcnow().date() - timedelta(days=days)
        try:
            result = await self.db.execute(
                select(AnalyticsDaily)
                .where(AnalyticsDaily.date >= start_date)
                .order_by(desc(AnalyticsDaily.date))
            )
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.exception(f"[ANALYTICS] Daily query failed: {e}")
            raise PersistenceError("Failed to get daily analytics") from e
        return [row.to_dict() for row in rows]

    async def term_detail(self, term_key: str) -> Dict[str, Any]:
        found_for_term = (TermLookup.term_key == term_key, TermLookup.found.is_(True))
        try:
            total_lookups = await self._count(
                select(func.count(TermLookup.id)).where(*found_for_term)
            )
            unique_users = await self._count(
                select(func.count(distinct(TermLookup.client_id))).where(*found_for_term)
            )
            complexity = (
                await self.db.execute(
                    select(TermLookup.complexity_level, func.count(TermLookup.id).label("count"))
                    .where(*found_for_term)
                    .group_by(TermLookup.complexity_level)
                )
            ).all()
            feedback = (
                await self.db.execute(
                    select(Feedback.feedback_type, func.count(Feedback.id).label("count"))
                    .where(Feedback.term_key == term_key)
                    .group_by(Feedback.feedback_type)
                )
            ).all()
            recent = (
                await self.db.execute(
                    select(
                        TermLookup.client_id,
                        TermLookup.complexity_level,
                        TermLookup.page_url,
                        TermLookup.lookup_timestamp,
                    )
                    .where(*found_for_term)
                    .order_by(desc(TermLookup.lookup_timestamp))
                    .limit(TOP_N)
                )
            ).all()
        except SQLAlchemyError as e:
            logger.exception(f"[ANALYTICS] Term detail query failed for {term_key}: {e}")
            raise PersistenceError("Failed to get term analytics") from e

        return {
            "term_key": term_key,
            "total_lookups": total_lookups,
            "unique_users": unique_users,
            "complexity_breakdown": [
                {"complexity_level": level, "count": count} for level, count in complexity
            ],
            "feedback_breakdown": [
                {"feedback_type": kind, "count": count} for kind, count in feedback
            ],
            "recent_lookups": [
                {
                    "client_id": r.client_id,
                    "complexity_level": r.complexity_level,
                    "page_url": r.page_url,
                    "lookup_timestamp": _iso(r.lookup_timestamp),
                }
                for r in recent
            ],
        }

    async def user_engagement(self) -> Dict[str, Any]:
        bucket = _bucket_expression()
        try:
            avg_lookups = await self.db.scalar(select(func.avg(User.total_lookups)))
            rows = (
                await self.db.execute(
                    select(bucket.label("bucket"), func.count(User.id).label("user_count"))
                    .group_by(literal_column("bucket"))
                )
            ).all()
            active_last_week = await self._active_users_since(7)
            active_last_month = await self._active_users_since(30)
        except SQLAlchemyError as e:
            logger.exception(f"[ANALYTICS] User engagement query failed: {e}")
            raise PersistenceError("Failed to get user engagement metrics") from e

        counts = {r.bucket: int(r.user_count) for r in rows}
        return {
            "avg_lookups_per_user": round(float(avg_lookups or 0), 2),
            "user_distribution": [
                {"bucket": label, "user_count": counts.get(label, 0)}
                for label, _ in LOOKUP_BUCKETS
            ],
            "retention": {
                "active_last_week": active_last_week,
                "active_last_month": active_last_month,
                "retention_rate": retention_rate(active_last_week, active_last_month),
            },
        }
