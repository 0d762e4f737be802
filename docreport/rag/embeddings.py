import logging

from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import Embeddings as WXEmbeddings
from ibm_watsonx_ai.wml_client_error import WMLClientError
from requests.exceptions import RequestException

from docreport.config import Settings
from docreport.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class EmbeddingClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        credentials = Credentials(
            api_key=settings.ibm_cloud_api_key,
            url=f"https://{settings.watsonx_region}.ml.cloud.ibm.com",
        )
        self.client = WXEmbeddings(
            model_id=settings.watsonx_embed_model,
            project_id=settings.watsonx_project_id,
            credentials=credentials,
        )

    def embed_query(self, text: str) -> list[float]:
        try:
            result = self.client.embed_query(text)
        except (WMLClientError, RequestException) as e:
            logger.error(f"Query embedding failed: {e}")
            raise ExternalServiceError("embed", str(e)) from e
        return self._parse_vector(result)

    @staticmethod
    def _parse_vector(result) -> list[float]:
        data = result.get_result() if hasattr(result, "get_result") else result
        if isinstance(data, dict):
            # {"results": [{"embedding"|"vector"|"values": [...]}, ...]}
            if (
                "results" in data
                and isinstance(data["results"], list)
                and data["results"]
            ):
                first = data["results"][0]
                if isinstance(first, dict):
                    for key in ("embedding", "vector", "values"):
                        if key in first:
                            return [float(v) for v in first[key]]
            if "embedding" in data:
                return [float(v) for v in data["embedding"]]
            if data.get("embeddings"):
                return [float(v) for v in data["embeddings"][0]]
        # list-shaped: either a single vector or list of vectors
        if isinstance(data, list) and data:
            if isinstance(data[0], list):
                return [float(v) for v in data[0]]
            if isinstance(data[0], (int, float)):
                return [float(v) for v in data]
        raise ExternalServiceError(
            "embed",
            f"unexpected query embedding response format: {type(data)} "
            f"keys={list(data.keys()) if isinstance(data, dict) else 'n/a'}",
        )
