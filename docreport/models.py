"""Data models for the report pipeline.

This module defines Pydantic models for the ingested corpus, report
plans, retrieval plans, built contexts and query results.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SectionType = Literal["page", "paragraph", "sheet", "line"]
DocumentPosition = Literal["beginning", "middle", "end"]
PartRole = Literal["introduction", "body", "conclusion", "combined"]


class FragmentStructure(BaseModel):
    """Structural metadata captured for a fragment at ingestion time.

    Attributes:
        headings: Headings found near the fragment.
        ancestors: Enclosing section titles, nearest ancestor first.
        parent_section: Title of the immediate parent section.
        position: Coarse location of the fragment within its document.
    """

    model_config = ConfigDict(frozen=True)

    headings: list[str] = Field(default_factory=list)
    ancestors: list[str] = Field(default_factory=list)
    parent_section: str | None = None
    position: DocumentPosition | None = None


class Fragment(BaseModel):
    """Embedded span of document text used for fine-grained retrieval.

    Attributes:
        id: Unique fragment identifier.
        content: Fragment text.
        embedding: Embedding vector for the fragment.
        filename: Name of the owning document.
        section_number: Page, paragraph, sheet or line number.
        section_type: Kind of section the number refers to.
        tokens: Token count of the content.
        structure: Optional structural metadata.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    embedding: list[float]
    filename: str
    section_number: int
    section_type: SectionType = "page"
    tokens: int = Field(gt=0)
    structure: FragmentStructure | None = None


class FullPage(BaseModel):
    """Verbatim text of one document page.

    Attributes:
        filename: Name of the owning document.
        page_number: Page number within the document.
        content: Page text.
        tokens: Token count of the page.
    """

    model_config = ConfigDict(frozen=True)

    filename: str
    page_number: int
    content: str
    tokens: int = 0

    @property
    def key(self) -> tuple[str, int]:
        return (self.filename, self.page_number)


class StoredDocument(BaseModel):
    """One ingested document with its fragments and full pages."""

    model_config = ConfigDict(frozen=True)

    filename: str
    fragments: list[Fragment] = Field(default_factory=list)
    pages: list[FullPage] = Field(default_factory=list)
    created_at: str = ""


class LengthRequest(BaseModel):
    """Requested report length.

    Attributes:
        parts: Requested number of parts, if any.
        tokens_per_part: Requested tokens per part, if any.
        explicit_parts: Whether the part count came from the user.
        explicit_tokens: Whether the part length came from the user.
    """

    parts: int | None = None
    tokens_per_part: int | None = None
    explicit_parts: bool = False
    explicit_tokens: bool = False


class PartPlan(BaseModel):
    """One section of the planned report.

    Attributes:
        index: Position in the report, starting at 1.
        title: Part heading.
        tokens: Target length in tokens.
        keywords: Lowercased topic words used for scoring.
        role: Opening, closing or middle part; a single-part report is
            "combined".
    """

    index: int
    title: str
    tokens: int
    keywords: list[str]
    role: PartRole = "body"


class ReportPlan(BaseModel):
    """Ordered outline of the report for one request."""

    topic: str
    length: LengthRequest
    parts: list[PartPlan]


class RetrievalPlan(BaseModel):
    """Sizing parameters for retrieval and context.

    Attributes:
        chunk_limit: Number of fragments to retrieve.
        page_limit: Number of pages to retrieve.
        max_context_tokens: Token budget for a part's context.
        high_detail: Whether the request was classified as high detail.
    """

    chunk_limit: int = Field(gt=0)
    page_limit: int = Field(gt=0)
    max_context_tokens: int = Field(gt=0)
    high_detail: bool = False


class ContextBuildResult(BaseModel):
    """Serialized context with the pages and fragments it was built from."""

    text: str = ""
    pages: list[FullPage] = Field(default_factory=list)
    fragments: list[Fragment] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()

    @property
    def token_total(self) -> int:
        return sum(p.tokens for p in self.pages) + sum(f.tokens for f in self.fragments)


class GenerationResult(BaseModel):
    """Raw outcome of one generation call."""

    text: str
    finish_reason: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0


class PartGenerationResult(BaseModel):
    """Generated text and usage for one report part."""

    plan: PartPlan
    text: str
    tokens_used: int = 0
    cost: float = 0.0
    context: ContextBuildResult


class SourceCitation(BaseModel):
    """Deduplicated source entry attached to the final answer."""

    filename: str
    section_number: int
    section_type: SectionType
    content: str
    relevance: float


class QueryResult(BaseModel):
    """Query result with answer, citations and usage.

    Attributes:
        answer: Final answer text.
        sources: Citations in relevance order.
        tokens_used: Total tokens reported by the generation service.
        cost: Total cost of all generation calls.
    """

    answer: str
    sources: list[SourceCitation] = Field(default_factory=list)
    tokens_used: int = 0
    cost: float = 0.0
