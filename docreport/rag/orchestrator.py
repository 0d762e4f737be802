"""Orchestrator layer for multi-part report generation.

This module provides the GenerationOrchestrator class that plans the
report, retrieves evidence once for the whole question, generates every
part in sequence and assembles the cited answer.
"""

import logging
import time
from typing import Callable

from docreport.config import Settings
from docreport.models import PartGenerationResult, QueryResult, SourceCitation
from docreport.rag.corpus_store import JsonCorpusStore
from docreport.rag.diagnostics import describe_document_coverage, is_diagnostics_request
from docreport.rag.part_generator import PartGenerator
from docreport.rag.prompts import message, normalize_language
from docreport.rag.report_planner import extract_length_preferences, plan_report
from docreport.rag.retrieval_planner import RetrievalPlanner
from docreport.rag.retriever import PageFragmentRetriever
from docreport.rag.scoring import PartRelevanceScorer
from docreport.rag.similarity_store import SimilarityStore
from docreport.rag.tokens import TokenEstimator

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 400


def _preview(text: str) -> str:
    return text[:PREVIEW_CHARS] + ("..." if len(text) > PREVIEW_CHARS else "")


def aggregate_sources(results: list[PartGenerationResult]) -> list[SourceCitation]:
    """Merge the sources of all parts into one citation list.

    Pages are keyed by (filename, page number) and fragments by id; the
    first occurrence wins. Relevance is ``1 - index / count`` within the
    part's selected pages or fragments. The list is ordered by relevance,
    ties keeping part order.
    """
    collected: dict[str, SourceCitation] = {}
    for result in results:
        pages = result.context.pages
        fragments = result.context.fragments

        for index, page in enumerate(pages):
            key = f"page-{page.filename}-{page.page_number}"
            if key not in collected:
                collected[key] = SourceCitation(
                    filename=page.filename,
                    section_number=page.page_number,
                    section_type="page",
                    content=_preview(page.content),
                    relevance=1 - index / max(len(pages), 1),
                )

        for index, fragment in enumerate(fragments):
            key = f"fragment-{fragment.id}"
            if key not in collected:
                collected[key] = SourceCitation(
                    filename=fragment.filename,
                    section_number=fragment.section_number,
                    section_type=fragment.section_type,
                    content=_preview(fragment.content),
                    relevance=1 - index / max(len(fragments), 1),
                )

    return sorted(collected.values(), key=lambda c: -c.relevance)


class GenerationOrchestrator:
    """Plans, retrieves and generates a multi-part cited report.

    Parts are generated strictly one after another; the part generator
    sleeps before each generation call to stay under the provider rate
    limit.
    """

    def __init__(
        self,
        settings: Settings,
        corpus_store,
        embedder,
        generator,
        scorer: PartRelevanceScorer | None = None,
        token_estimator: TokenEstimator | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize orchestrator.

        Args:
            settings: Application settings.
            corpus_store: Object exposing ``load_all() -> list[StoredDocument]``.
            embedder: Object exposing ``embed_query(text) -> list[float]``.
            generator: Object exposing ``generate(system_prompt, user_prompt,
                max_output_tokens) -> GenerationResult``.
            scorer: Optional part relevance scorer with custom weights.
            token_estimator: Optional token estimator.
            sleep: Function used for the pre-call delay.
        """
        self.settings = settings
        self.documents = corpus_store.load_all()
        self.store = SimilarityStore(self.documents)
        self.tokens = token_estimator or TokenEstimator()
        self.retriever = PageFragmentRetriever(self.store, embedder)
        self.planner = RetrievalPlanner(settings)
        self.part_generator = PartGenerator(
            settings,
            self.retriever,
            generator,
            scorer=scorer,
            token_estimator=self.tokens,
            sleep=sleep,
        )

    def _rejected(self, key: str, language: str) -> QueryResult:
        logger.info(f"Query rejected: {key}")
        return QueryResult(answer=message(key, language))

    def format_answer(self, results: list[PartGenerationResult]) -> str:
        blocks = []
        for result in results:
            approx = self.tokens.count(result.text)
            blocks.append(
                "\n".join(
                    [
                        f"**Part {result.plan.index}: {result.plan.title}**",
                        "",
                        result.text,
                        "",
                        f"_Approximate length: ~{approx} tokens_",
                    ]
                )
            )
        return "\n\n".join(blocks)

    def query(
        self,
        question: str,
        language: str = "en",
        max_sources: int | None = None,
    ) -> QueryResult:
        """Answer ``question`` with a multi-part cited report.

        Args:
            question: User request.
            language: "en" or "ru".
            max_sources: Optional manual fragment limit.

        Returns:
            QueryResult. Empty or infeasible requests get an explanatory
            answer with zero usage.

        Raises:
            ExternalServiceError: If embedding or generation fails.
        """
        language = normalize_language(language)
        question = question.strip()
        if not question:
            return self._rejected("empty_query", language)

        if is_diagnostics_request(question):
            return QueryResult(answer=describe_document_coverage(self.documents))

        length = extract_length_preferences(
            question, default_tokens=self.settings.default_tokens_per_part
        )
        report = plan_report(
            question, length, default_tokens=self.settings.default_tokens_per_part
        )
        parts = report.parts

        requested = sum(p.tokens or self.settings.default_tokens_per_part for p in parts)
        if requested > self.settings.model_output_tokens * len(parts):
            return self._rejected("length_infeasible", language)

        plan = self.planner.plan(question, parts, self.store.total_pages, max_sources)
        base = self.retriever.retrieve_base(question, plan)

        results: list[PartGenerationResult] = []
        total_tokens = 0
        total_cost = 0.0
        for part in parts:
            logger.info(f"Generating part {part.index}/{len(parts)}: {part.title}")
            result = self.part_generator.generate_part(question, part, base, plan, language)
            results.append(result)
            total_tokens += result.tokens_used
            total_cost += result.cost

        logger.info(f"Report complete: {len(results)} part(s), tokens={total_tokens}")
        return QueryResult(
            answer=self.format_answer(results),
            sources=aggregate_sources(results),
            tokens_used=total_tokens,
            cost=total_cost,
        )


def build_orchestrator(settings: Settings, corpus_path: str | None = None) -> GenerationOrchestrator:
    """Wire the orchestrator to watsonx.ai and the JSON corpus."""
    from docreport.rag.embeddings import EmbeddingClient
    from docreport.rag.generator import GeneratorClient

    return GenerationOrchestrator(
        settings,
        JsonCorpusStore(settings, corpus_path),
        EmbeddingClient(settings),
        GeneratorClient(settings),
    )
