"""
Database models for the jargon lookup, feedback and AI rewrite tables.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

FEEDBACK_TYPES = ("thumbs_up", "thumbs_down", "confused")


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """One row per anonymous extension installation."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String(255), unique=True, nullable=False, index=True)
    first_seen_at = Column(DateTime, default=utcnow, nullable=False)
    last_seen_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    total_lookups = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, client_id='{self.client_id}', total_lookups={self.total_lookups})>"


class TermLookup(Base):
    """Immutable record of a single term lookup."""
    __tablename__ = "term_lookups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String(255), nullable=False, index=True)
    term_key = Column(String(255), nullable=False, index=True)
    term_display = Column(String(255), nullable=False)
    complexity_level = Column(String(50), default="simple")
    page_url = Column(Text, nullable=True)
    page_context = Column(Text, nullable=True)
    found = Column(Boolean, default=True, nullable=False)
    lookup_timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<TermLookup(id={self.id}, term_key='{self.term_key}', found={self.found})>"


class Feedback(Base):
    """Feedback a user left on a term explanation."""
    __tablename__ = "feedback"
    __table_args__ = (
        CheckConstraint(
            "feedback_type IN ('thumbs_up', 'thumbs_down', 'confused')",
            name="ck_feedback_type",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String(255), nullable=False, index=True)
    term_key = Column(String(255), nullable=False, index=True)
    feedback_type = Column(String(50), nullable=False)
    complexity_level = Column(String(50), nullable=True)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Feedback(id={self.id}, term_key='{self.term_key}', type='{self.feedback_type}')>"


class AIRewrite(Base):
    """A language-model rewrite of a stored explanation, with its token cost."""
    __tablename__ = "ai_rewrites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String(255), nullable=False, index=True)
    term_key = Column(String(255), nullable=False)
    original_explanation = Column(Text, nullable=False)
    rewritten_explanation = Column(Text, nullable=False)
    model = Column(String(100), nullable=False)
    tokens_used = Column(Integer, nullable=True)
    cost_usd = Column(Numeric(10, 6), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AIRewrite(id={self.id}, term_key='{self.term_key}', tokens={self.tokens_used})>"


class MissingTerm(Base):
    """A term users asked for that the glossary does not have."""
    __tablename__ = "missing_terms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String(255), nullable=False)
    missing_text = Column(String(255), unique=True, nullable=False, index=True)
    page_url = Column(Text, nullable=True)
    page_context = Column(Text, nullable=True)
    lookup_count = Column(Integer, default=1, nullable=False)
    first_seen_at = Column(DateTime, default=utcnow, nullable=False)
    last_seen_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<MissingTerm(id={self.id}, missing_text='{self.missing_text}', count={self.lookup_count})>"


class AnalyticsDaily(Base):
    """Per-day rollup written by the batch job; this service only reads it."""
    __tablename__ = "analytics_daily"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, unique=True, nullable=False, index=True)
    total_lookups = Column(Integer, default=0, nullable=False)
    unique_users = Column(Integer, default=0, nullable=False)
    total_feedback = Column(Integer, default=0, nullable=False)
    thumbs_up = Column(Integer, default=0, nullable=False)
    thumbs_down = Column(Integer, default=0, nullable=False)
    confused_clicks = Column(Integer, default=0, nullable=False)
    ai_rewrites = Column(Integer, default=0, nullable=False)
    top_terms = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "total_lookups": self.total_lookups,
            "unique_users": self.unique_users,
            "total_feedback": self.total_feedback,
            "thumbs_up": self.thumbs_up,
            "thumbs_down": self.thumbs_down,
            "confused_clicks": self.confused_clicks,
            "ai_rewrites": self.ai_rewrites,
            "top_terms": self.top_terms or [],
        }

    def __repr__(self):
        return f"<AnalyticsDaily(date={self.date}, total_lookups={self.total_lookups})>"
