import logging
from collections import defaultdict

import numpy as np

from docreport.models import Fragment, FullPage, StoredDocument

logger = logging.getLogger(__name__)


def _normalize(vecs: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vecs, axis=-1, keepdims=True) + 1e-12
    return vecs / norms


class SimilarityStore:
    """In-memory corpus of fragments and full pages with cosine search.

    Fragment embeddings are stacked into one normalized matrix so a
    query is scored with a single matrix product. Pages are linked to
    the fragments of the same file whose section number equals the
    page number.
    """

    def __init__(self, documents: list[StoredDocument]):
        self.documents = documents
        self.fragments: list[Fragment] = []
        self.pages: list[FullPage] = []
        self._page_fragments: dict[tuple[str, int], list[int]] = defaultdict(list)

        for doc in documents:
            for fragment in doc.fragments:
                self._page_fragments[(fragment.filename, fragment.section_number)].append(
                    len(self.fragments)
                )
                self.fragments.append(fragment)
            self.pages.extend(doc.pages)

        if self.fragments:
            dims = {len(f.embedding) for f in self.fragments}
            if len(dims) != 1:
                raise ValueError(f"Fragment embeddings have mixed dimensions: {sorted(dims)}")
            self._matrix = _normalize(
                np.array([f.embedding for f in self.fragments], dtype=np.float32)
            )
        else:
            self._matrix = np.zeros((0, 0), dtype=np.float32)

        logger.info(
            f"Similarity store ready: {len(self.documents)} document(s), "
            f"{len(self.fragments)} fragment(s), {len(self.pages)} page(s)"
        )

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    def _similarities(self, query_embedding: list[float], indices: list[int]) -> np.ndarray:
        if not indices:
            return np.zeros(0, dtype=np.float32)
        q = np.asarray(query_embedding, dtype=np.float32)
        if q.shape[0] != self._matrix.shape[1]:
            raise ValueError(
                f"Query embedding dimension {q.shape[0]} does not match corpus dimension "
                f"{self._matrix.shape[1]}"
            )
        return self._matrix[indices] @ _normalize(q)

    def page_fragment_indices(self, page: FullPage) -> list[int]:
        return self._page_fragments.get(page.key, [])

    def rank_pages(
        self, query_embedding: list[float], limit: int
    ) -> list[tuple[FullPage, float]]:
        """Rank pages by the mean similarity of their fragments.

        Pages without fragments are left out. Ties keep corpus order.
        """
        candidates: list[FullPage] = []
        scores: list[float] = []
        for page in self.pages:
            indices = self.page_fragment_indices(page)
            if not indices:
                continue
            candidates.append(page)
            scores.append(float(self._similarities(query_embedding, indices).mean()))

        order = np.argsort(-np.asarray(scores, dtype=np.float64), kind="stable")
        return [(candidates[i], scores[i]) for i in order[: max(limit, 0)]]

    def rank_fragments_in_pages(
        self, query_embedding: list[float], pages: list[FullPage], limit: int
    ) -> list[tuple[Fragment, float]]:
        """Rank only the fragments that belong to ``pages``."""
        indices: list[int] = []
        for page in pages:
            indices.extend(self.page_fragment_indices(page))
        # Corpus order keeps ties stable regardless of page order
        indices = sorted(set(indices))
        sims = self._similarities(query_embedding, indices)
        order = np.argsort(-sims.astype(np.float64), kind="stable")
        return [(self.fragments[indices[i]], float(sims[i])) for i in order[: max(limit, 0)]]
