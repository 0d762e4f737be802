"""Corpus coverage report for questions about the indexed documents."""

from dataclasses import dataclass

from docreport.models import StoredDocument

DIAGNOSTIC_KEYWORDS = (
    "list files",
    "list documents",
    "show files",
    "document summary",
    "document status",
    "какие файлы",
    "сколько файлов",
    "какие документы",
)


@dataclass
class DocumentSummary:
    filename: str
    total_fragments: int
    full_pages: int
    created_at: str


def is_diagnostics_request(question: str) -> bool:
    lower = question.lower()
    return any(keyword in lower for keyword in DIAGNOSTIC_KEYWORDS)


def summarize_documents(documents: list[StoredDocument]) -> list[DocumentSummary]:
    return [
        DocumentSummary(
            filename=doc.filename,
            total_fragments=len(doc.fragments),
            full_pages=len(doc.pages),
            created_at=doc.created_at,
        )
        for doc in documents
    ]


def describe_document_coverage(documents: list[StoredDocument]) -> str:
    summaries = summarize_documents(documents)
    if not summaries:
        return "No documents have been indexed yet. Upload your files to proceed."

    total_fragments = sum(s.total_fragments for s in summaries)
    total_pages = sum(s.full_pages for s in summaries)
    lines = [
        "Document Status Report:",
        f"• Total files processed: {len(summaries)}",
        f"• Total text fragments: {total_fragments}",
        f"• Total full pages: {total_pages}",
        "",
        "Files processed:",
    ]
    for index, summary in enumerate(summaries, start=1):
        lines.append(f"{index}. {summary.filename}")
        lines.append(f"   - Fragments: {summary.total_fragments}")
        lines.append(f"   - Pages: {summary.full_pages}")
        if summary.created_at:
            lines.append(f"   - Uploaded: {summary.created_at}")
    return "\n".join(lines)
