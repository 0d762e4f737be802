"""Token estimation with a tiktoken encoder and a character-length fallback."""

import logging
import math
from typing import Callable

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"


def heuristic_token_count(text: str) -> int:
    """Approximate token count as one token per four characters."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


class TokenEstimator:
    """Best-effort token counter.

    Uses ``counter`` when given, otherwise a tiktoken encoding loaded on
    first use. Any tokenizer failure falls back to
    :func:`heuristic_token_count`; estimation never raises.
    """

    def __init__(
        self,
        encoding_name: str = DEFAULT_ENCODING,
        counter: Callable[[str], int] | None = None,
    ) -> None:
        self.encoding_name = encoding_name
        self._counter = counter
        self._encoding = None
        self._encoding_failed = False

    def _get_encoding(self):
        if self._encoding is None and not self._encoding_failed:
            try:
                self._encoding = tiktoken.get_encoding(self.encoding_name)
            except Exception as e:
                logger.warning(
                    f"Tokenizer {self.encoding_name} unavailable ({e}), using length heuristic"
                )
                self._encoding_failed = True
        return self._encoding

    def count(self, text: str) -> int:
        if not text:
            return 0
        try:
            if self._counter is not None:
                return int(self._counter(text))
            encoding = self._get_encoding()
            if encoding is not None:
                return len(encoding.encode(text, disallowed_special=()))
        except Exception as e:
            logger.warning(f"Token counting failed ({e}), using length heuristic")
        return heuristic_token_count(text)

    def count_prompt(self, system_prompt: str, user_prompt: str) -> int:
        return self.count(system_prompt) + self.count(user_prompt)
