import json
import logging
import os

from pydantic import TypeAdapter

from docreport.config import Settings
from docreport.models import StoredDocument

logger = logging.getLogger(__name__)

_DOCUMENTS = TypeAdapter(list[StoredDocument])


class JsonCorpusStore:
    """Read-only view of the ingested corpus kept in one JSON file.

    The file holds a list of stored documents, each with its fragments
    (embeddings included) and full pages.
    """

    def __init__(self, settings: Settings, path: str | None = None):
        self.settings = settings
        self.path = path or settings.corpus_path

    def load_all(self) -> list[StoredDocument]:
        if not os.path.exists(self.path):
            logger.warning(f"Corpus file {self.path} not found, corpus is empty")
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        documents = _DOCUMENTS.validate_python(raw)
        logger.info(f"Loaded {len(documents)} document(s) from {self.path}")
        return documents

    def save_all(self, documents: list[StoredDocument]) -> int:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(_DOCUMENTS.dump_python(documents, mode="json"), f, ensure_ascii=False)
        return len(documents)
