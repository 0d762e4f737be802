import logging
import re

from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import ModelInference
from ibm_watsonx_ai.metanames import GenTextParamsMetaNames as GenParams
from ibm_watsonx_ai.wml_client_error import WMLClientError
from requests.exceptions import RequestException

from docreport.config import Settings
from docreport.errors import ExternalServiceError
from docreport.models import GenerationResult

logger = logging.getLogger(__name__)

TRUNCATED_FINISH_REASONS = frozenset({"max_tokens", "length", "token_limit"})


def is_truncated(finish_reason: str | None) -> bool:
    return (finish_reason or "").lower() in TRUNCATED_FINISH_REASONS


class GeneratorClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        credentials = Credentials(
            api_key=settings.ibm_cloud_api_key,
            url=f"https://{settings.watsonx_region}.ml.cloud.ibm.com",
        )
        self.client = ModelInference(
            model_id=settings.watsonx_gen_model,
            project_id=settings.watsonx_project_id,
            credentials=credentials,
        )

    @staticmethod
    def build_prompt(system_prompt: str, user_prompt: str) -> str:
        return f"{system_prompt}\n\n{user_prompt}\n\n"

    @staticmethod
    def clean_output(text: str) -> str:
        """Remove prompt artifacts and placeholder citations from model output."""
        cleaned = text

        # Placeholder citations; real ones look like [report.pdf, page 3]
        cleaned = re.sub(r"\[Source\s+\d+\]", "", cleaned, flags=re.IGNORECASE)
        cleaned = re.sub(
            r"\(Source\s+\d+(?:,\s*Source\s+\d+)*\)", "", cleaned, flags=re.IGNORECASE
        )
        cleaned = re.sub(r"\[Fragment\s+\d+\]", "", cleaned, flags=re.IGNORECASE)

        # Echoed answer label at the very start
        cleaned = re.sub(r"^\s*(?:Answer|Ответ)\s*:\s*", "", cleaned, flags=re.IGNORECASE)

        # Echoed prompt sections
        cleaned = re.split(
            r"^\s*(?:Context \(use only the following materials\)|Primary research question)\s*:",
            cleaned,
            flags=re.MULTILINE | re.IGNORECASE,
        )[0]

        cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
        return cleaned.strip()

    def generate(
        self, system_prompt: str, user_prompt: str, max_output_tokens: int
    ) -> GenerationResult:
        """Run one completion and report text, stop reason and token usage.

        Args:
            system_prompt: Instructions that frame the answer.
            user_prompt: Context and task for this call.
            max_output_tokens: Ceiling for generated tokens.

        Returns:
            GenerationResult with cleaned text.

        Raises:
            ExternalServiceError: If watsonx.ai rejects or fails the call.
        """
        prompt = self.build_prompt(system_prompt, user_prompt)
        params = {
            GenParams.TEMPERATURE: float(self.settings.temperature),
            GenParams.MAX_NEW_TOKENS: int(max_output_tokens),
            GenParams.TRUNCATE_INPUT_TOKENS: 0,
        }
        try:
            response = self.client.generate(prompt=prompt, params=params)
        except (WMLClientError, RequestException) as e:
            logger.error(f"Generation request failed: {e}")
            raise ExternalServiceError("generate", str(e)) from e

        data = response.get_result() if hasattr(response, "get_result") else response
        if isinstance(data, dict) and data.get("results"):
            first = data["results"][0]
            return GenerationResult(
                text=self.clean_output(first.get("generated_text") or ""),
                finish_reason=first.get("stop_reason"),
                prompt_tokens=int(first.get("input_token_count") or 0),
                completion_tokens=int(first.get("generated_token_count") or 0),
            )
        if isinstance(data, dict) and "generated_text" in data:
            return GenerationResult(
                text=self.clean_output(data["generated_text"] or ""),
                finish_reason=data.get("stop_reason"),
            )
        if isinstance(data, str):
            return GenerationResult(text=self.clean_output(data))
        raise ExternalServiceError(
            "generate", f"unexpected generation response format: {type(data)}"
        )
