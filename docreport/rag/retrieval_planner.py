"""Adaptive sizing of page and fragment retrieval for a question."""

import logging
import math

from docreport.config import Settings
from docreport.models import PartPlan, RetrievalPlan

logger = logging.getLogger(__name__)

DETAIL_KEYWORDS = (
    "analysis",
    "review",
    "research",
    "strategy",
    "comprehensive",
    "deep dive",
    "исследуй",
    "доклад",
    "обзор",
    "подробно",
    "проанализируй",
)


def is_high_detail_request(question: str, keywords: tuple[str, ...] = DETAIL_KEYWORDS) -> bool:
    lower = question.lower()
    return any(keyword in lower for keyword in keywords)


class RetrievalPlanner:
    """Computes page and fragment limits and the context token budget.

    The budget is what remains of the model context window after the
    expected output of every part and a safety margin are reserved,
    bounded again by the estimated size of the chosen pages and an
    absolute ceiling.
    """

    def __init__(self, settings: Settings, detail_keywords: tuple[str, ...] = DETAIL_KEYWORDS):
        self.settings = settings
        self.detail_keywords = detail_keywords

    def _part_tokens(self, part: PartPlan) -> int:
        return part.tokens or self.settings.default_tokens_per_part

    def target_pages(self, total_pages: int, high_detail: bool, available_tokens: float) -> int:
        s = self.settings
        if total_pages < s.min_pages:
            target = total_pages
        elif total_pages > s.max_pages:
            target = s.max_pages if high_detail else s.min_pages
        else:
            target = total_pages

        if target * s.avg_tokens_per_page > available_tokens:
            target = math.floor(available_tokens / s.avg_tokens_per_page)
            target = min(target, s.max_pages)

        return max(1, target)

    def plan(
        self,
        question: str,
        parts: list[PartPlan],
        total_pages: int,
        manual_max_sources: int | None = None,
    ) -> RetrievalPlan:
        """Build the retrieval plan for one query.

        Args:
            question: Normalized question text.
            parts: Planned report parts.
            total_pages: Number of full pages in the corpus.
            manual_max_sources: Optional user override for the fragment limit.

        Returns:
            RetrievalPlan with all fields positive.
        """
        s = self.settings
        requested_tokens = sum(self._part_tokens(p) for p in parts)
        avg_tokens_per_part = requested_tokens / max(len(parts), 1)
        high_detail = (
            is_high_detail_request(question, self.detail_keywords)
            or len(parts) >= 5
            or avg_tokens_per_part >= 1000
        )

        estimated_output = requested_tokens * s.part_buffer_ratio
        available_for_context = (
            s.model_context_tokens - estimated_output - s.context_safety_margin
        )

        page_limit = self.target_pages(total_pages, high_detail, available_for_context)
        chunk_limit = page_limit * s.fragments_per_page
        if manual_max_sources:
            chunk_limit = max(s.manual_fragment_floor, manual_max_sources)

        max_context_tokens = int(
            min(
                available_for_context,
                page_limit * s.avg_tokens_per_page,
                s.context_token_ceiling,
            )
        )
        if max_context_tokens < 1:
            logger.warning(
                f"No context budget left after reserving {estimated_output:.0f} output tokens"
            )
            max_context_tokens = 1

        plan = RetrievalPlan(
            chunk_limit=max(1, chunk_limit),
            page_limit=page_limit,
            max_context_tokens=max_context_tokens,
            high_detail=high_detail,
        )
        logger.info(
            f"Retrieval plan: pages={plan.page_limit} fragments={plan.chunk_limit} "
            f"context_tokens={plan.max_context_tokens} high_detail={high_detail}"
        )
        return plan
