"""
Shared fixtures and fakes: corpus factories, a fake embedder and a fake
generator so no test reaches watsonx.ai.
"""

import dataclasses

import pytest

from docreport.config import Settings
from docreport.models import (
    Fragment,
    FragmentStructure,
    FullPage,
    GenerationResult,
    StoredDocument,
)
from docreport.rag.tokens import TokenEstimator, heuristic_token_count


def make_fragment(
    fid: str,
    content: str,
    filename: str = "a.pdf",
    section_number: int = 1,
    tokens: int | None = None,
    embedding: list[float] | None = None,
    section_type: str = "page",
    structure: FragmentStructure | None = None,
) -> Fragment:
    return Fragment(
        id=fid,
        content=content,
        embedding=embedding or [1.0, 0.0],
        filename=filename,
        section_number=section_number,
        section_type=section_type,
        tokens=tokens if tokens is not None else max(1, heuristic_token_count(content)),
        structure=structure,
    )


def make_page(filename: str, page_number: int, content: str = "", tokens: int = 50) -> FullPage:
    return FullPage(
        filename=filename,
        page_number=page_number,
        content=content or f"Full text of {filename} page {page_number}.",
        tokens=tokens,
    )


class FakeEmbedder:
    """Returns ``vectors[text]`` or a constant vector; records every call."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, default=None):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0]
        self.calls: list[str] = []

    def embed_query(self, text: str) -> list[float]:
        self.calls.append(text)
        return self.vectors.get(text, self.default)


class FakeGenerator:
    """Replays queued results; records (system, user, max_tokens) per call."""

    def __init__(self, results: list[GenerationResult] | None = None):
        self.results = list(results or [])
        self.calls: list[tuple[str, str, int]] = []

    def generate(self, system_prompt: str, user_prompt: str, max_output_tokens: int):
        self.calls.append((system_prompt, user_prompt, max_output_tokens))
        if self.results:
            return self.results.pop(0)
        return GenerationResult(
            text=f"Generated section {len(self.calls)}.",
            finish_reason="eos_token",
            prompt_tokens=1000,
            completion_tokens=500,
        )


class FakeCorpusStore:
    def __init__(self, documents: list[StoredDocument]):
        self.documents = documents

    def load_all(self) -> list[StoredDocument]:
        return self.documents


@pytest.fixture
def settings() -> Settings:
    return dataclasses.replace(
        Settings.from_env(),
        request_delay_seconds=0.0,
        model_context_tokens=120000,
        model_output_tokens=16000,
        context_safety_margin=2000,
        min_output_tokens=512,
        default_tokens_per_part=1200,
        request_token_limit=15000,
        request_safety_margin=3000,
        part_buffer_ratio=1.25,
        min_pages=8,
        max_pages=15,
        avg_tokens_per_page=650,
        fragments_per_page=3,
        context_token_ceiling=25000,
        manual_fragment_floor=40,
        part_search_min_results=60,
        part_search_multiplier=1.5,
        max_fragments_per_part=35,
        input_cost_per_million=5.0,
        output_cost_per_million=15.0,
    )


@pytest.fixture
def estimator() -> TokenEstimator:
    return TokenEstimator(counter=heuristic_token_count)


@pytest.fixture
def corpus() -> list[StoredDocument]:
    """Two documents: a.pdf with three pages, b.pdf with two."""
    a_fragments = [
        make_fragment(
            "a-1-0",
            "Introduction and overview of the tax regime for importers.",
            "a.pdf",
            1,
            embedding=[1.0, 0.0],
            structure=FragmentStructure(position="beginning"),
        ),
        make_fragment(
            "a-2-0",
            "The tax rate on imported goods is ten percent and the tax is paid monthly.",
            "a.pdf",
            2,
            embedding=[0.9, 0.1],
        ),
        make_fragment(
            "a-3-0",
            "Conclusion: we recommend registering early. Summary of recommendations.",
            "a.pdf",
            3,
            embedding=[0.2, 0.8],
            structure=FragmentStructure(position="end"),
        ),
    ]
    b_fragments = [
        make_fragment(
            "b-1-0",
            "Logistics partners handle customs and freight for the tax warehouse.",
            "b.pdf",
            1,
            embedding=[0.7, 0.3],
        ),
        make_fragment(
            "b-2-0",
            "Overview of conclusions and recommendations on vendor selection.",
            "b.pdf",
            2,
            embedding=[0.5, 0.5],
        ),
    ]
    return [
        StoredDocument(
            filename="a.pdf",
            fragments=a_fragments,
            pages=[make_page("a.pdf", n) for n in (1, 2, 3)],
            created_at="2026-01-05T10:00:00",
        ),
        StoredDocument(
            filename="b.pdf",
            fragments=b_fragments,
            pages=[make_page("b.pdf", n) for n in (1, 2)],
            created_at="2026-01-06T11:30:00",
        ),
    ]
