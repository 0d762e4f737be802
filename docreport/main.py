"""Command-line entry point for docreport.

Loads settings from the environment (and a .env file), answers one
question against the JSON corpus and prints the report with its sources.
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from docreport.config import Settings
from docreport.errors import ExternalServiceError
from docreport.models import QueryResult
from docreport.rag.orchestrator import build_orchestrator
from docreport.rag.prompts import SUPPORTED_LANGUAGES


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        description="Generate a multi-part, cited report from an indexed document corpus.",
    )
    ap.add_argument("question", help="Research question or itemized outline.")
    ap.add_argument(
        "--language",
        choices=SUPPORTED_LANGUAGES,
        default="en",
        help="Language of prompts and messages (default: en).",
    )
    ap.add_argument(
        "--max-sources",
        type=int,
        default=None,
        help="Manual fragment limit; raised to the configured floor if lower.",
    )
    ap.add_argument("--corpus", default=None, help="Corpus JSON file (default: CORPUS_PATH).")
    ap.add_argument("--json", action="store_true", help="Print the full result as JSON.")
    ap.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
    return ap.parse_args(argv)


def render(result: QueryResult) -> str:
    lines = [result.answer, ""]
    if result.sources:
        lines.append("Sources:")
        for index, source in enumerate(result.sources, start=1):
            lines.append(
                f"{index}. {source.filename}, {source.section_type} {source.section_number} "
                f"(relevance {source.relevance:.2f})"
            )
        lines.append("")
    lines.append(f"Tokens used: {result.tokens_used} | Cost: ${result.cost:.4f}")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = Settings.from_env()
    try:
        orchestrator = build_orchestrator(settings, args.corpus)
        result = orchestrator.query(
            args.question, language=args.language, max_sources=args.max_sources
        )
    except ExternalServiceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(result.model_dump_json(indent=2) if args.json else render(result))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
