"""Heuristic ranking of candidate fragments against one report part.

The ranking is a weighted sum of lexical, length, density, topical and
structural signals. Weights and lookup tables are plain data
(:class:`ScoringWeights`, :class:`TopicTables`) so they can be tuned or
replaced per domain without touching the algorithm.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from docreport.models import Fragment, PartPlan
from docreport.rag.report_planner import normalize_keywords

logger = logging.getLogger(__name__)

_WORD = re.compile(r"\w+")


@dataclass(frozen=True)
class ScoringWeights:
    """Weights, caps and thresholds of the part relevance score.

    Attributes:
        exact_match: Per whole-word keyword occurrence.
        partial_match: Per keyword occurrence inside a longer word.
        min_partial_length: Shorter keywords only count as whole words.
        title_match: Per distinct title word found in the fragment.
        length_bonus_per_token: Bonus per fragment token.
        length_bonus_cap: Maximum length bonus.
        min_tokens: Fragments shorter than this are penalized.
        max_tokens: Fragments longer than this are penalized.
        length_penalty: Multiplier applied to the lexical score of
            fragments outside [min_tokens, max_tokens].
        density_weight: Multiplier for keyword hits per word.
        density_cap: Maximum density bonus.
        related_term: Per related term of the part topic found.
        related_cap: Maximum related-term bonus.
        heading_match: Per nearby heading mentioning the part topic.
        heading_cap: Maximum heading bonus.
        ancestor_match: Bonus for the nearest matching ancestor section.
        ancestor_decay: Factor applied per level of distance.
        ancestor_cap: Maximum ancestor bonus.
        parent_match: Bonus when the parent section mentions the topic.
        parent_cap: Maximum parent bonus.
        position_bonus: Introduction parts reading early fragments and
            conclusion parts reading late fragments.
        conflict_penalty: Per conflicting-topic pair hit by the ancestry.
        relevance_floor: Fragments without exact matches must score
            above this to be kept.
    """

    exact_match: float = 10.0
    partial_match: float = 3.0
    min_partial_length: int = 3
    title_match: float = 5.0
    length_bonus_per_token: float = 0.005
    length_bonus_cap: float = 2.0
    min_tokens: int = 40
    max_tokens: int = 1200
    length_penalty: float = 0.6
    density_weight: float = 50.0
    density_cap: float = 4.0
    related_term: float = 1.5
    related_cap: float = 4.5
    heading_match: float = 3.0
    heading_cap: float = 6.0
    ancestor_match: float = 2.5
    ancestor_decay: float = 0.6
    ancestor_cap: float = 5.0
    parent_match: float = 4.0
    parent_cap: float = 4.0
    position_bonus: float = 3.0
    conflict_penalty: float = 5.0
    relevance_floor: float = 2.0


DEFAULT_RELATED_TERMS: dict[str, tuple[str, ...]] = {
    "introduction": ("background", "purpose", "scope", "context"),
    "overview": ("background", "purpose", "scope"),
    "regulatory": ("regulation", "law", "legislation", "authority", "permit"),
    "licensing": ("licence", "license", "permit", "registration", "certificate"),
    "tax": ("vat", "duty", "tariff", "exemption", "deduction", "rate"),
    "financial": ("cost", "budget", "revenue", "investment", "capital", "funding"),
    "logistics": ("shipping", "transport", "warehouse", "delivery", "customs", "freight"),
    "operational": ("process", "workflow", "procedure", "staff"),
    "risk": ("exposure", "mitigation", "threat", "liability", "audit"),
    "compliance": ("audit", "policy", "control", "sanction"),
    "business": ("customer", "market", "revenue", "pricing"),
    "partnerships": ("partner", "joint venture", "alliance", "agreement"),
    "conclusion": ("recommend", "outlook", "next steps", "overall"),
    "recommendations": ("recommend", "should", "propose", "next steps"),
}

DEFAULT_CONFLICTING_TOPICS: tuple[tuple[frozenset[str], frozenset[str]], ...] = (
    (
        frozenset({"tax", "financial", "finance", "налог"}),
        frozenset({"logistics", "transport", "shipping", "логистик"}),
    ),
    (
        frozenset({"regulatory", "licensing", "legal", "law", "регулир"}),
        frozenset({"business model", "partnership", "marketing", "партнер"}),
    ),
    (
        frozenset({"risk", "compliance", "риск"}),
        frozenset({"introduction", "background", "введение"}),
    ),
)

DEFAULT_STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "by", "for", "from", "in", "is",
        "of", "on", "or", "the", "to", "with", "и", "в", "во", "на", "по", "с",
        "со", "для", "о", "об", "к",
    }
)


@dataclass(frozen=True)
class TopicTables:
    """Domain lookup tables used by the scorer.

    Attributes:
        related_terms: Topic word found in a part title -> terms that
            signal the same topic in a fragment.
        conflicting_topics: Pairs of marker sets. A fragment whose section
            ancestry matches one side is penalized for a part that matches
            the other side.
        stopwords: Words never used as keywords.
    """

    related_terms: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_RELATED_TERMS)
    )
    conflicting_topics: tuple[tuple[frozenset[str], frozenset[str]], ...] = (
        DEFAULT_CONFLICTING_TOPICS
    )
    stopwords: frozenset[str] = DEFAULT_STOPWORDS


@dataclass(frozen=True)
class ScoredFragment:
    fragment: Fragment
    score: float
    exact_matches: int


def count_exact(keyword: str, text: str) -> int:
    """Whole-word occurrences of ``keyword`` in lowercased ``text``."""
    return len(re.findall(rf"(?<!\w){re.escape(keyword)}(?!\w)", text))


def _mentions(text: str, terms) -> bool:
    return any(term in text for term in terms)


class PartRelevanceScorer:
    """Ranks fragments for one part. Pure and deterministic."""

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        tables: TopicTables | None = None,
    ) -> None:
        self.weights = weights or ScoringWeights()
        self.tables = tables or TopicTables()

    def _keywords(self, part: PartPlan) -> list[str]:
        keywords = []
        for keyword in part.keywords:
            keyword = keyword.lower().strip()
            if keyword and keyword not in self.tables.stopwords and keyword not in keywords:
                keywords.append(keyword)
        return keywords

    def _title_words(self, part: PartPlan) -> list[str]:
        return [
            word
            for word in dict.fromkeys(normalize_keywords(part.title))
            if len(word) >= 3 and word not in self.tables.stopwords
        ]

    def _topic_terms(self, part: PartPlan) -> list[str]:
        keywords = [
            k for k in self._keywords(part) if len(k) >= self.weights.min_partial_length
        ]
        return list(dict.fromkeys(keywords + self._title_words(part)))

    def _hierarchy_bonus(self, fragment: Fragment, topic_terms: list[str]) -> float:
        structure = fragment.structure
        if structure is None or not topic_terms:
            return 0.0
        w = self.weights

        heading_hits = sum(
            1 for heading in structure.headings if _mentions(heading.lower(), topic_terms)
        )
        bonus = min(heading_hits * w.heading_match, w.heading_cap)

        ancestor_bonus = sum(
            w.ancestor_match * (w.ancestor_decay**distance)
            for distance, ancestor in enumerate(structure.ancestors)
            if _mentions(ancestor.lower(), topic_terms)
        )
        bonus += min(ancestor_bonus, w.ancestor_cap)

        if structure.parent_section and _mentions(structure.parent_section.lower(), topic_terms):
            bonus += min(w.parent_match, w.parent_cap)
        return bonus

    def _position_bonus(self, part: PartPlan, fragment: Fragment) -> float:
        structure = fragment.structure
        if structure is None:
            return 0.0
        title = part.title.lower()
        w = self.weights
        bonus = 0.0

        if structure.position == "beginning" and part.role in ("introduction", "combined"):
            bonus += w.position_bonus
        if structure.position == "end" and part.role in ("conclusion", "combined"):
            bonus += w.position_bonus

        ancestry = " ".join([*structure.ancestors, structure.parent_section or ""]).lower()
        if ancestry.strip():
            part_text = " ".join([title, *part.keywords]).lower()
            for side_a, side_b in self.tables.conflicting_topics:
                for own, other in ((side_a, side_b), (side_b, side_a)):
                    if (
                        _mentions(part_text, own)
                        and not _mentions(part_text, other)
                        and _mentions(ancestry, other)
                        and not _mentions(ancestry, own)
                    ):
                        bonus -= w.conflict_penalty
        return bonus

    def score(self, part: PartPlan, fragment: Fragment) -> ScoredFragment:
        w = self.weights
        text = fragment.content.lower()
        keywords = self._keywords(part)

        exact = 0
        partial = 0
        for keyword in keywords:
            hits = count_exact(keyword, text)
            exact += hits
            if len(keyword) >= w.min_partial_length:
                partial += max(text.count(keyword) - hits, 0)

        title_hits = sum(1 for word in self._title_words(part) if word in text)
        lexical = (
            exact * w.exact_match
            + partial * w.partial_match
            + title_hits * w.title_match
            + min(fragment.tokens * w.length_bonus_per_token, w.length_bonus_cap)
        )
        if fragment.tokens < w.min_tokens or fragment.tokens > w.max_tokens:
            lexical *= w.length_penalty

        word_count = len(_WORD.findall(text))
        density = min((exact + partial) / max(word_count, 1) * w.density_weight, w.density_cap)

        title = part.title.lower()
        related = {
            term
            for topic, terms in self.tables.related_terms.items()
            if topic in title
            for term in terms
            if term in text
        }
        related_bonus = min(len(related) * w.related_term, w.related_cap)

        total = (
            lexical
            + density
            + related_bonus
            + self._hierarchy_bonus(fragment, self._topic_terms(part))
            + self._position_bonus(part, fragment)
        )
        return ScoredFragment(fragment=fragment, score=total, exact_matches=exact)

    def rank_scored(self, part: PartPlan, fragments: list[Fragment]) -> list[ScoredFragment]:
        scored = [self.score(part, fragment) for fragment in fragments]
        kept = [
            s
            for s in scored
            if s.exact_matches > 0 or s.score > self.weights.relevance_floor
        ]
        kept.sort(key=lambda s: (-s.exact_matches, -s.score))
        logger.info(
            f"Part {part.index} '{part.title}': kept {len(kept)}/{len(fragments)} fragment(s)"
        )
        return kept

    def rank(self, part: PartPlan, fragments: list[Fragment]) -> list[Fragment]:
        return [s.fragment for s in self.rank_scored(part, fragments)]
