"""Assembly of a bounded context window from full pages and fragments."""

import logging

from docreport.models import ContextBuildResult, Fragment, FullPage
from docreport.rag.tokens import TokenEstimator

logger = logging.getLogger(__name__)

SECTION_LABELS = {
    "page": "page",
    "paragraph": "paragraph",
    "sheet": "sheet",
    "line": "line",
}


def section_label(section_type: str, section_number: int) -> str:
    return f"{SECTION_LABELS.get(section_type, 'section')} {section_number}"


def page_budget_ratio(page_count: int) -> float:
    """Share of the budget full pages may take; shrinks as pages grow."""
    if page_count <= 5:
        return 0.4
    if page_count <= 15:
        return 0.3
    return 0.25


def prioritise_by_document(fragments: list[Fragment]) -> list[Fragment]:
    """Reorder fragments so every document is represented early.

    Each document's largest fragment comes first, in order of first
    appearance, followed by the remaining fragments in rank order.
    """
    leaders: dict[str, Fragment] = {}
    for fragment in fragments:
        current = leaders.get(fragment.filename)
        if current is None or fragment.tokens > current.tokens:
            leaders[fragment.filename] = fragment

    leader_ids = {f.id for f in leaders.values()}
    rest = [f for f in fragments if f.id not in leader_ids]
    return [*leaders.values(), *rest]


def format_context(pages: list[FullPage], fragments: list[Fragment]) -> str:
    sections: list[str] = []

    if pages:
        sections.append("=== Full pages (verbatim) ===")
        for page in pages:
            sections.append(f"Page {page.page_number} from {page.filename}:")
            sections.append(page.content.strip())
            sections.append("")

    if fragments:
        sections.append("=== Key fragments ===")
        for index, fragment in enumerate(fragments, start=1):
            label = section_label(fragment.section_type, fragment.section_number)
            sections.append(f"Fragment {index} from {fragment.filename}, {label}:")
            sections.append(fragment.content.strip())
            sections.append("")

    return "\n".join(sections).strip()


class ContextBuilder:
    def __init__(self, token_estimator: TokenEstimator | None = None) -> None:
        self.tokens = token_estimator or TokenEstimator()

    def _page_tokens(self, page: FullPage) -> int:
        return page.tokens or self.tokens.count(page.content)

    def build(
        self, fragments: list[Fragment], pages: list[FullPage], token_budget: int
    ) -> ContextBuildResult:
        """Select pages and fragments that fit ``token_budget``.

        Pages are taken first up to their share of the budget, skipping
        any page that would overflow it. Fragments fill the rest and stop
        at the first overflow. When nothing fits at all, the first
        candidate is included on its own so the context is never empty
        while candidates exist.

        Args:
            fragments: Ranked fragments, best first.
            pages: Candidate full pages, best first.
            token_budget: Maximum tokens for the whole context.

        Returns:
            ContextBuildResult with the selection and its text form.
        """
        unique: dict[str, Fragment] = {}
        for fragment in fragments:
            unique.setdefault(fragment.id, fragment)
        prioritised = prioritise_by_document(list(unique.values()))

        max_page_tokens = int(token_budget * page_budget_ratio(len(pages)))
        selected_pages: list[FullPage] = []
        page_tokens_used = 0
        for page in pages:
            tokens = self._page_tokens(page)
            if page_tokens_used + tokens > max_page_tokens:
                continue
            if not page.tokens:
                page = page.model_copy(update={"tokens": tokens})
            selected_pages.append(page)
            page_tokens_used += tokens

        remaining = token_budget - page_tokens_used
        selected_fragments: list[Fragment] = []
        fragment_tokens_used = 0
        for fragment in prioritised:
            if fragment_tokens_used + fragment.tokens > remaining:
                if not selected_fragments:
                    logger.warning(
                        f"Fragment {fragment.id} ({fragment.tokens} tokens) exceeds the "
                        f"remaining budget of {remaining}, including it alone"
                    )
                    selected_fragments.append(fragment)
                break
            selected_fragments.append(fragment)
            fragment_tokens_used += fragment.tokens

        if not selected_pages and not selected_fragments and pages:
            logger.warning(
                f"Page {pages[0].filename}:{pages[0].page_number} exceeds the budget of "
                f"{token_budget}, including it alone"
            )
            first = pages[0]
            selected_pages.append(
                first if first.tokens else first.model_copy(update={"tokens": self._page_tokens(first)})
            )

        return ContextBuildResult(
            text=format_context(selected_pages, selected_fragments),
            pages=selected_pages,
            fragments=selected_fragments,
        )
