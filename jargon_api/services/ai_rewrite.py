"""
AI rewrites of glossary explanations for users who found them confusing.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jargon_api.clients.llm_client import Completion, LLMClient
from jargon_api.config import ModelPricing, get_pricing
from jargon_api.database.repositories import AIRewriteRepository
from jargon_api.exceptions import PersistenceError, ValidationError
from jargon_api.utils import EventTracker, is_blank

logger = logging.getLogger(__name__)

TEMPERATURE = 0.7
MAX_TOKENS = 300
STATS_WINDOW_DAYS = 30

SYSTEM_PROMPT = (
    "You are a financial education assistant that translates jargon into plain "
    "English with a conversational, confident tone."
)

REWRITE_PROMPT = """You are a financial jargon translator that helps people understand financial terms in plain English.

A user is confused by this explanation of "{term}":

"{explanation}"

Please rewrite this explanation to be:
- Clearer and easier to understand
- More conversational and engaging
- Include a real-world example or analogy
- Keep it concise (60-120 words)
- Use a confident, accessible, authentic and supportive tone
{context}
Rewrite the explanation now:"""


def build_messages(term: str, explanation: str, user_context: Optional[str] = None) -> List[Dict[str, str]]:
    context = f"\nAdditional context: {user_context}\n" if user_context else ""
    prompt = REWRITE_PROMPT.format(term=term, explanation=explanation, context=context)
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def compute_cost(pricing: ModelPricing, prompt_tokens: int, completion_tokens: int) -> float:
    """USD cost of one completion under the given per-1K-token pricing."""
    return (
        prompt_tokens * pricing.input_per_1k / 1000
        + completion_tokens * pricing.output_per_1k / 1000
    )


class AIRewriteService:
    """Builds the rewrite prompt, calls the model, and records cost."""

    def __init__(self, db: AsyncSession, llm: LLMClient, tracker: EventTracker, model: str):
        self.db = db
        self.llm = llm
        self.tracker = tracker
        self.model = model
        self.pricing = get_pricing(model)
        self.rewrites = AIRewriteRepository(db)

    async def rewrite(
        self,
        client_id: Optional[str],
        term_key: Optional[str],
        original_explanation: Optional[str],
        term_display: Optional[str] = None,
        complexity_level: Optional[str] = None,
        user_context: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Ask the model for a simpler explanation and store it.

        Raises:
            ValidationError: a required field is missing; nothing is called or stored.
            UpstreamError: the model call failed; nothing is stored.
            PersistenceError: the rewrite could not be saved.
        """
        if is_blank(client_id) or is_blank(term_key) or is_blank(original_explanation):
            raise ValidationError("client_id, term_key, and original_explanation are required")

        messages = build_messages(term_display or term_key, original_explanation, user_context)

        logger.info(f"[AI REWRITE] Requesting rewrite of '{term_key}' with {self.model}")
        completion: Completion = await self.llm.complete(
            model=self.model,
            messages=messages,
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
        )

        cost_usd = compute_cost(self.pricing, completion.prompt_tokens, completion.completion_tokens)

        try:
            rewrite = await self.rewrites.create_rewrite(
                client_id=client_id,
                term_key=term_key,
                original_explanation=original_explanation,
                rewritten_explanation=completion.text,
                model=self.model,
                tokens_used=completion.total_tokens,
                cost_usd=cost_usd,
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"[AI REWRITE] Failed to save rewrite of '{term_key}': {e}")
            raise PersistenceError("Failed to generate AI rewrite") from e

        self.tracker.track_event("ai_rewrite", {
            "term_key": term_key,
            "complexity_level": complexity_level,
            "tokens_used": completion.total_tokens,
            "cost_usd": cost_usd,
        })

        logger.info(f"[AI REWRITE] ✅ Saved rewrite {rewrite.id} ({completion.total_tokens} tokens, ${cost_usd:.6f})")

        return {
            "rewrite_id": rewrite.id,
            "rewritten_explanation": completion.text,
            "tokens_used": completion.total_tokens,
            "cost_usd": round(cost_usd, 6),
        }

    async def stats(self) -> Dict[str, Any]:
        try:
            return await self.rewrites.get_rewrite_stats(days=STATS_WINDOW_DAYS)
        except SQLAlchemyError as e:
            logger.exception(f"[AI REWRITE] Failed to get AI stats: {e}")
            raise PersistenceError("Failed to get AI stats") from e
