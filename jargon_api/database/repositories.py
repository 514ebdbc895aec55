"""
Repository layer for database operations on users, lookups, feedback,
missing terms and AI rewrites.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, distinct, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AIRewrite, Feedback, MissingTerm, TermLookup, User, utcnow


async def _increment_or_create(db: AsyncSession, model, key_column, key_value, counter_column, new_row) -> int:
    """
    Atomically bump a counter on the row matching key_value, inserting new_row
    when no such row exists. Returns the counter value after the change.

    The increment is a single UPDATE ... SET counter = counter + 1, so
    concurrent events never lose a count. Two concurrent first events race on
    the unique key; the loser rolls back and falls through to the increment.
    Callers must not have uncommitted work in the session.
    """
    now = utcnow()
    increment = (
        update(model)
        .where(key_column == key_value)
        .values({counter_column.key: counter_column + 1, "last_seen_at": now})
        .execution_options(synchronize_session=False)
    )

    result = await db.execute(increment)
    if result.rowcount == 0:
        db.add(new_row)
        try:
            await db.commit()
            return getattr(new_row, counter_column.key)
        except IntegrityError:
            await db.rollback()
            await db.execute(increment)

    await db.commit()
    return await db.scalar(select(counter_column).where(key_column == key_value))


class UserRepository:
    """Repository for User operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_lookup(self, client_id: str) -> int:
        """Count one lookup for client_id, creating the user on first sight. Returns total_lookups."""
        now = utcnow()
        new_user = User(
            client_id=client_id,
            first_seen_at=now,
            last_seen_at=now,
            total_lookups=1,
        )
        return await _increment_or_create(
            self.db, User, User.client_id, client_id, User.total_lookups, new_user
        )

    async def get_by_client_id(self, client_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.client_id == client_id))
        return result.scalar_one_or_none()


class TermLookupRepository:
    """Repository for TermLookup operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_lookup(
        self,
        client_id: str,
        term_key: str,
        term_display: Optional[str] = None,
        complexity_level: Optional[str] = None,
        page_url: Optional[str] = None,
        page_context: Optional[str] = None,
        found: bool = True,
    ) -> TermLookup:
        """Create a new lookup record."""
        lookup = TermLookup(
            client_id=client_id,
            term_key=term_key,
            term_display=term_display or term_key,
            complexity_level=complexity_level or "simple",
            page_url=page_url,
            page_context=page_context,
            found=found,
            lookup_timestamp=utcnow(),
        )

        self.db.add(lookup)
        await self.db.commit()
        await self.db.refresh(lookup)
        return lookup

    async def count_unique_terms(self, client_id: str) -> int:
        return await self.db.scalar(
            select(func.count(distinct(TermLookup.term_key)))
            .where(TermLookup.client_id == client_id)
        ) or 0

    async def get_first_lookup_at(self, client_id: str) -> Optional[datetime]:
        """Timestamp of the client's earliest lookup, queried fresh each call."""
        return await self.db.scalar(
            select(TermLookup.lookup_timestamp)
            .where(TermLookup.client_id == client_id)
            .order_by(TermLookup.lookup_timestamp)
            .limit(1)
        )


class MissingTermRepository:
    """Repository for MissingTerm operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_missing(
        self,
        missing_text: str,
        client_id: str,
        page_url: Optional[str] = None,
        page_context: Optional[str] = None,
    ) -> int:
        """Count one miss for missing_text, creating the row on first sight. Returns lookup_count."""
        now = utcnow()
        new_term = MissingTerm(
            client_id=client_id,
            missing_text=missing_text,
            page_url=page_url,
            page_context=page_context,
            lookup_count=1,
            first_seen_at=now,
            last_seen_at=now,
        )
        return await _increment_or_create(
            self.db, MissingTerm, MissingTerm.missing_text, missing_text, MissingTerm.lookup_count, new_term
        )


class FeedbackRepository:
    """Repository for Feedback operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_feedback(
        self,
        client_id: str,
        term_key: str,
        feedback_type: str,
        complexity_level: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> Feedback:
        """Create a new feedback record."""
        feedback = Feedback(
            client_id=client_id,
            term_key=term_key,
            feedback_type=feedback_type,
            complexity_level=complexity_level,
            comment=comment,
        )

        self.db.add(feedback)
        await self.db.commit()
        await self.db.refresh(feedback)
        return feedback


class AIRewriteRepository:
    """Repository for AIRewrite operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_rewrite(
        self,
        client_id: str,
        term_key: str,
        original_explanation: str,
        rewritten_explanation: str,
        model: str,
        tokens_used: int,
        cost_usd: float,
    ) -> AIRewrite:
        """Persist a completed rewrite."""
        rewrite = AIRewrite(
            client_id=client_id,
            term_key=term_key,
            original_explanation=original_explanation,
            rewritten_explanation=rewritten_explanation,
            model=model,
            tokens_used=tokens_used,
            cost_usd=cost_usd,
        )

        self.db.add(rewrite)
        await self.db.commit()
        await self.db.refresh(rewrite)
        return rewrite

    async def get_rewrite_stats(self, days: int = 30) -> Dict[str, Any]:
        """Totals over all rewrites plus a per-day breakdown for the last `days` days."""
        totals = (
            await self.db.execute(
                select(
                    func.count(AIRewrite.id),
                    func.sum(AIRewrite.tokens_used),
                    func.sum(AIRewrite.cost_usd),
                )
            )
        ).one()

        since = utcnow() - timedelta(days=days)
        day = func.date(AIRewrite.created_at)
        rows = (
            await self.db.execute(
                select(
                    day.label("date"),
                    func.count(AIRewrite.id).label("count"),
                    func.sum(AIRewrite.tokens_used).label("tokens"),
                    func.sum(AIRewrite.cost_usd).label("cost"),
                )
                .where(AIRewrite.created_at >= since)
                .group_by(day)
                .order_by(desc(day))
            )
        ).all()

        rewrites_by_date: List[Dict[str, Any]] = [
            {
                "date": str(day_value),
                "count": int(count),
                "tokens": int(tokens or 0),
                "cost": round(float(cost or 0), 6),
            }
            for day_value, count, tokens, cost in rows
        ]

        return {
            "total_rewrites": int(totals[0] or 0),
            "total_tokens": int(totals[1] or 0),
            "total_cost": round(float(totals[2] or 0), 6),
            "rewrites_by_date": rewrites_by_date,
        }
