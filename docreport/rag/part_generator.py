"""Generation of a single report part under the per-request token ceiling."""

import logging
import math
import time
from typing import Callable

from docreport.config import Settings
from docreport.models import (
    ContextBuildResult,
    Fragment,
    FullPage,
    PartGenerationResult,
    PartPlan,
    RetrievalPlan,
)
from docreport.rag.context_builder import ContextBuilder, format_context
from docreport.rag.generator import is_truncated
from docreport.rag.prompts import build_part_prompt, message, system_prompt
from docreport.rag.retriever import (
    BaseRetrieval,
    PageFragmentRetriever,
    SearchOptions,
    merge_fragments,
)
from docreport.rag.scoring import PartRelevanceScorer
from docreport.rag.tokens import TokenEstimator

logger = logging.getLogger(__name__)


def pages_for_fragments(pages: list[FullPage], fragments: list[Fragment]) -> list[FullPage]:
    """Pages that one of ``fragments`` was cut from, in page order."""
    needed = {
        (f.filename, f.section_number) for f in fragments if f.section_type == "page"
    }
    return [page for page in pages if page.key in needed]


class PartGenerator:
    """Retrieves, ranks, packs and generates one part of the report.

    Every generation call is preceded by ``settings.request_delay_seconds``
    of sleep so consecutive calls respect the provider rate limit.
    """

    def __init__(
        self,
        settings: Settings,
        retriever: PageFragmentRetriever,
        generator,
        scorer: PartRelevanceScorer | None = None,
        context_builder: ContextBuilder | None = None,
        token_estimator: TokenEstimator | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize part generator.

        Args:
            settings: Application settings.
            retriever: Two-level retriever over the corpus.
            generator: Object exposing ``generate(system_prompt,
                user_prompt, max_output_tokens) -> GenerationResult``.
            scorer: Part relevance scorer.
            context_builder: Context builder.
            token_estimator: Token estimator for prompt sizing.
            sleep: Function used for the pre-call delay.
        """
        self.settings = settings
        self.retriever = retriever
        self.generator = generator
        self.scorer = scorer or PartRelevanceScorer()
        self.tokens = token_estimator or TokenEstimator()
        self.context_builder = context_builder or ContextBuilder(self.tokens)
        self.sleep = sleep

    def output_ceiling(self, part: PartPlan) -> int:
        s = self.settings
        target = part.tokens or s.default_tokens_per_part
        return min(
            s.model_output_tokens,
            max(s.min_output_tokens, math.floor(target * s.part_buffer_ratio)),
        )

    def cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        s = self.settings
        return (prompt_tokens / 1_000_000) * s.input_cost_per_million + (
            completion_tokens / 1_000_000
        ) * s.output_cost_per_million

    def select_context(
        self,
        question: str,
        part: PartPlan,
        base: BaseRetrieval,
        plan: RetrievalPlan,
    ) -> ContextBuildResult:
        """Retrieve and rank fragments for ``part`` and pack its context."""
        s = self.settings
        search_size = max(
            s.part_search_min_results, math.floor(plan.chunk_limit * s.part_search_multiplier)
        )
        part_fragments = self.retriever.retrieve_for_part(
            question, part, SearchOptions(top_k=search_size, pages=base.pages)
        )
        candidates = merge_fragments(base.fragments, part_fragments)
        ranked = self.scorer.rank(part, candidates)
        selected = ranked[: min(plan.chunk_limit, s.max_fragments_per_part)]
        related_pages = pages_for_fragments(base.pages, selected)
        return self.context_builder.build(selected, related_pages, plan.max_context_tokens)

    def fit_context(
        self,
        system: str,
        question: str,
        part: PartPlan,
        context: ContextBuildResult,
        max_output_tokens: int,
        language: str,
    ) -> tuple[ContextBuildResult, str, int]:
        """Drop the lowest-priority items until prompt plus output fit.

        Fragments are dropped from the end first, keeping at least one;
        pages are dropped afterwards.

        Returns:
            Tuple of (trimmed context, user prompt, estimated prompt tokens).
        """
        allowed = self.settings.allowed_request_tokens
        pages = list(context.pages)
        fragments = list(context.fragments)
        text = context.text
        user_prompt = build_part_prompt(question, part, text, language)
        prompt_tokens = self.tokens.count_prompt(system, user_prompt)

        while prompt_tokens + max_output_tokens > allowed and (len(fragments) > 1 or pages):
            if len(fragments) > 1:
                fragments.pop()
            else:
                pages.pop()
            text = format_context(pages, fragments)
            user_prompt = build_part_prompt(question, part, text, language)
            prompt_tokens = self.tokens.count_prompt(system, user_prompt)

        if len(fragments) != len(context.fragments) or len(pages) != len(context.pages):
            logger.info(
                f"Part {part.index}: trimmed context to {len(pages)} page(s) and "
                f"{len(fragments)} fragment(s), ~{prompt_tokens} prompt tokens"
            )
        trimmed = ContextBuildResult(text=text, pages=pages, fragments=fragments)
        return trimmed, user_prompt, prompt_tokens

    def generate_part(
        self,
        question: str,
        part: PartPlan,
        base: BaseRetrieval,
        plan: RetrievalPlan,
        language: str,
    ) -> PartGenerationResult:
        context = self.select_context(question, part, base, plan)

        if context.is_empty:
            logger.warning(f"Part {part.index} '{part.title}': no relevant context")
            return PartGenerationResult(
                plan=part, text=message("no_context", language), context=context
            )

        system = system_prompt(language)
        ceiling = self.output_ceiling(part)
        context, user_prompt, prompt_tokens = self.fit_context(
            system, question, part, context, ceiling, language
        )
        max_output_tokens = max(
            self.settings.min_output_tokens,
            min(ceiling, self.settings.allowed_request_tokens - prompt_tokens),
        )

        self.sleep(self.settings.request_delay_seconds)
        result = self.generator.generate(system, user_prompt, max_output_tokens)

        text = result.text.strip()
        if not text:
            logger.warning(f"Part {part.index}: model returned no text")
            text = message("empty_answer", language)
        if is_truncated(result.finish_reason):
            logger.warning(f"Part {part.index}: output truncated at {max_output_tokens} tokens")
            text += message("truncated", language)

        tokens_used = result.prompt_tokens + result.completion_tokens
        cost = self.cost(result.prompt_tokens, result.completion_tokens)
        logger.info(f"Part {part.index} generated: tokens={tokens_used} cost={cost:.4f}")
        return PartGenerationResult(
            plan=part, text=text, tokens_used=tokens_used, cost=cost, context=context
        )
