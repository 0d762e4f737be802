"""Two-level retrieval: relevant pages first, then fragments inside them.

Scoring every fragment of a large corpus against each part query is the
expensive step, so fragment search is always restricted to the pages
selected for the whole question.
"""

import logging
from dataclasses import dataclass, field

from docreport.models import Fragment, FullPage, PartPlan, RetrievalPlan
from docreport.rag.similarity_store import SimilarityStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchOptions:
    """Options for one fragment search.

    Attributes:
        top_k: Maximum number of fragments to return.
        pages: Pages the search is restricted to.
    """

    top_k: int
    pages: list[FullPage] = field(default_factory=list)


@dataclass
class BaseRetrieval:
    """Pages and fragments retrieved for the whole question."""

    query_embedding: list[float]
    pages: list[FullPage]
    fragments: list[Fragment]


def merge_fragments(primary: list[Fragment], secondary: list[Fragment]) -> list[Fragment]:
    """Union of two fragment lists by id, keeping first-seen order."""
    merged: dict[str, Fragment] = {}
    for fragment in [*primary, *secondary]:
        if fragment.id not in merged:
            merged[fragment.id] = fragment
    return list(merged.values())


def compose_part_search_query(question: str, part: PartPlan) -> str:
    return "\n".join(
        [
            question,
            f"Focus topic: {part.title}",
            f"Keywords: {', '.join(part.keywords)}",
        ]
    )


class PageFragmentRetriever:
    def __init__(self, store: SimilarityStore, embedder) -> None:
        """Initialize retriever.

        Args:
            store: Similarity store over the loaded corpus.
            embedder: Object exposing ``embed_query(text) -> list[float]``.
        """
        self.store = store
        self.embedder = embedder

    def rank_pages(self, query_embedding: list[float], limit: int) -> list[FullPage]:
        return [page for page, _ in self.store.rank_pages(query_embedding, limit)]

    def search_in_pages(
        self, query_embedding: list[float], options: SearchOptions
    ) -> list[Fragment]:
        ranked = self.store.rank_fragments_in_pages(
            query_embedding, options.pages, options.top_k
        )
        return [fragment for fragment, _ in ranked]

    def retrieve_base(self, question: str, plan: RetrievalPlan) -> BaseRetrieval:
        """Embed the question once and fetch its pages and fragments."""
        query_embedding = self.embedder.embed_query(question)
        pages = self.rank_pages(query_embedding, plan.page_limit)
        fragments = self.search_in_pages(
            query_embedding, SearchOptions(top_k=plan.chunk_limit, pages=pages)
        )
        logger.info(
            f"Base retrieval: {len(pages)} page(s), {len(fragments)} fragment(s)"
        )
        return BaseRetrieval(query_embedding=query_embedding, pages=pages, fragments=fragments)

    def retrieve_for_part(
        self, question: str, part: PartPlan, options: SearchOptions
    ) -> list[Fragment]:
        """Search the base pages with the part's composite query."""
        if not options.pages:
            return []
        query_embedding = self.embedder.embed_query(compose_part_search_query(question, part))
        return self.search_in_pages(query_embedding, options)
