"""Decomposition of a request into an ordered outline of report parts."""

import logging
import re

from docreport.models import LengthRequest, PartPlan, ReportPlan

logger = logging.getLogger(__name__)

DEFAULT_PART_COUNT = 7
DEFAULT_TOKENS_PER_PART = 1200
MIN_EXPLICIT_TOKENS = 400

INTRO_KEYWORDS = ("introduction", "введение", "overview")
CONCLUSION_KEYWORDS = ("conclusion", "summary", "вывод", "заключение", "recommendations")

INTRO_TITLE = "Introduction"
CONCLUSION_TITLE = "Conclusions and strategic recommendations"
COMBINED_TITLE = "Overview and conclusions"

DEFAULT_TOPICS = (
    "Regulatory framework and licensing",
    "Tax incentives and financial conditions",
    "Logistics and operational processes",
    "Risk management and compliance",
    "Business models and partnerships",
)

_NUMBERED_LINE = re.compile(r"^\d+[.)]\s*(.+)$")
_BULLET_LINE = re.compile(r"^[-*•]\s*(.+)$")
_KEYWORD_SPLIT = re.compile(r"[,;:/\-\s.()!?\"'«»]+")

_PARTS_REQUEST = re.compile(
    r"\b(\d+)\s*(?:parts?|sections?|част(?:ей|и|ь)|раздел(?:ов|а)?)\b",
    re.IGNORECASE,
)
_TOKENS_REQUEST = re.compile(
    r"\b(\d+)\s*(?:tokens?|words?|токен(?:ов|а)?|слов(?:а|о)?)\b",
    re.IGNORECASE,
)


def detect_explicit_parts(request: str) -> list[str]:
    """Return part titles from an itemized request.

    Three or more numbered lines win; otherwise three or more bulleted
    lines; otherwise nothing.
    """
    lines = [line.strip() for line in request.splitlines() if line.strip()]

    numbered = [m.group(1).strip() for m in map(_NUMBERED_LINE.match, lines) if m]
    if len(numbered) >= 3:
        return numbered

    bullets = [m.group(1).strip() for m in map(_BULLET_LINE.match, lines) if m]
    return bullets if len(bullets) >= 3 else []


def normalize_keywords(title: str) -> list[str]:
    return [part for part in _KEYWORD_SPLIT.split(title.lower()) if part]


def _leading_word(title: str) -> str:
    words = normalize_keywords(title)
    return words[0] if words else ""


def is_intro_title(title: str) -> bool:
    """True when the title opens with an introduction marker.

    "Overview of the market" qualifies, "Market overview" does not.
    """
    return _leading_word(title).startswith(INTRO_KEYWORDS)


def is_conclusion_title(title: str) -> bool:
    return _leading_word(title).startswith(CONCLUSION_KEYWORDS)


def assign_roles(parts: list[PartPlan]) -> list[PartPlan]:
    """Mark an intro-like first part and a conclusion-like last part.

    Any other part is a body part, whatever its title mentions.
    """
    last = len(parts) - 1

    def role(i: int, part: PartPlan) -> str:
        if i == 0 and is_intro_title(part.title):
            return "introduction"
        if i == last and i > 0 and is_conclusion_title(part.title):
            return "conclusion"
        return "body"

    return [p.model_copy(update={"role": role(i, p)}) for i, p in enumerate(parts)]


def extract_length_preferences(
    question: str,
    default_tokens: int = DEFAULT_TOKENS_PER_PART,
) -> LengthRequest:
    """Read a requested part count and part length from the question text.

    "5 parts", "4 sections", "1500 tokens" or "800 words" (and their
    Russian forms) are recognised. A requested length is floored at
    MIN_EXPLICIT_TOKENS. Without a requested count ``parts`` stays None
    and the planner decides.
    """
    parts_match = _PARTS_REQUEST.search(question)
    tokens_match = _TOKENS_REQUEST.search(question)

    parts = max(1, int(parts_match.group(1))) if parts_match else None
    tokens = (
        max(MIN_EXPLICIT_TOKENS, int(tokens_match.group(1)))
        if tokens_match
        else default_tokens
    )
    return LengthRequest(
        parts=parts,
        tokens_per_part=tokens,
        explicit_parts=parts_match is not None,
        explicit_tokens=tokens_match is not None,
    )


def _default_titles(count: int, topics: tuple[str, ...]) -> list[str]:
    middle = [
        topics[i] if i < len(topics) else f"Section {i + 2}"
        for i in range(max(count - 2, 0))
    ]
    return [INTRO_TITLE, *middle, CONCLUSION_TITLE]


def _part(title: str, tokens: int, keywords: list[str] | None = None) -> PartPlan:
    keywords = keywords or normalize_keywords(title) or [title.lower()]
    return PartPlan(index=0, title=title, tokens=tokens, keywords=keywords)


def _truncate(parts: list[PartPlan], limit: int) -> list[PartPlan]:
    """Cut the outline to ``limit`` parts, keeping both bookends."""
    if len(parts) <= limit:
        return parts
    keep = {i for i, p in enumerate(parts) if p.role in ("introduction", "conclusion")}
    for i in range(len(parts)):
        if len(keep) >= limit:
            break
        keep.add(i)
    return [p for i, p in enumerate(parts) if i in keep]


def plan_report(
    request: str,
    length: LengthRequest,
    default_tokens: int = DEFAULT_TOKENS_PER_PART,
    topics: tuple[str, ...] = DEFAULT_TOPICS,
) -> ReportPlan:
    """Plan the ordered parts of the report.

    Args:
        request: Free-text request.
        length: Requested part count and tokens per part.
        default_tokens: Part length when the request does not give one.
        topics: Middle sections of the default outline.

    Returns:
        ReportPlan whose parts start with an introduction, end with
        conclusions and are indexed 1..N.
    """
    tokens = length.tokens_per_part or default_tokens
    explicit = detect_explicit_parts(request)

    if length.parts is not None:
        limit = max(1, length.parts)
    elif explicit:
        limit = None
    else:
        limit = DEFAULT_PART_COUNT

    if limit == 1:
        parts = [
            _part(COMBINED_TITLE, tokens, ["overview", "conclusion", "summary"]).model_copy(
                update={"role": "combined"}
            )
        ]
    else:
        if explicit:
            titles = explicit
        else:
            titles = _default_titles(limit, topics)
        parts = assign_roles([_part(title, tokens) for title in titles])

        if not any(p.role == "introduction" for p in parts):
            parts.insert(
                0,
                _part(INTRO_TITLE, tokens, ["introduction", "overview"]).model_copy(
                    update={"role": "introduction"}
                ),
            )
        if not any(p.role == "conclusion" for p in parts):
            parts.append(
                _part(
                    "Conclusions and recommendations",
                    tokens,
                    ["conclusion", "summary", "recommendations"],
                ).model_copy(update={"role": "conclusion"})
            )
        if limit is not None:
            parts = _truncate(parts, limit)

    parts = [p.model_copy(update={"index": i}) for i, p in enumerate(parts, start=1)]
    logger.info(f"Planned {len(parts)} part(s): {[p.title for p in parts]}")
    return ReportPlan(topic=request, length=length, parts=parts)
