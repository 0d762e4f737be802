"""Application configuration settings.

This module defines the Settings dataclass that loads configuration
from environment variables.
"""

from dataclasses import dataclass
import os


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        ibm_cloud_api_key: IBM Cloud API key for authentication.
        watsonx_region: Watsonx.ai service region.
        watsonx_project_id: Watsonx.ai project ID.
        watsonx_embed_model: Embedding model ID.
        watsonx_gen_model: Generation model ID.
        corpus_path: Path to the JSON corpus file.
        temperature: Generation temperature.
        request_delay_seconds: Mandatory pause before every generation call.
        input_cost_per_million: Price of one million prompt tokens.
        output_cost_per_million: Price of one million completion tokens.
        model_context_tokens: Context window of the generation model.
        model_output_tokens: Absolute output ceiling of one generation call.
        context_safety_margin: Tokens kept free when sizing the context.
        min_output_tokens: Floor for the per-part output ceiling.
        default_tokens_per_part: Part length used when none is requested.
        request_token_limit: Provider ceiling for prompt plus output tokens.
        request_safety_margin: Tokens kept free under the request ceiling.
        part_buffer_ratio: Multiplier applied to part targets for output.
        min_pages: Lower edge of the adaptive page band.
        max_pages: Upper edge of the adaptive page band.
        avg_tokens_per_page: Token estimate for one full page.
        fragments_per_page: Fragments retrieved per selected page.
        context_token_ceiling: Absolute ceiling for the context budget.
        manual_fragment_floor: Floor applied to a manual fragment limit.
        part_search_min_results: Minimum size of a part-specific search.
        part_search_multiplier: Part search size relative to the fragment limit.
        max_fragments_per_part: Fragments handed to the context builder per part.
    """

    ibm_cloud_api_key: str
    watsonx_region: str
    watsonx_project_id: str
    watsonx_embed_model: str
    watsonx_gen_model: str

    corpus_path: str

    temperature: float
    request_delay_seconds: float
    input_cost_per_million: float
    output_cost_per_million: float

    model_context_tokens: int
    model_output_tokens: int
    context_safety_margin: int
    min_output_tokens: int
    default_tokens_per_part: int
    request_token_limit: int
    request_safety_margin: int
    part_buffer_ratio: float

    min_pages: int
    max_pages: int
    avg_tokens_per_page: int
    fragments_per_page: int
    context_token_ceiling: int
    manual_fragment_floor: int
    part_search_min_results: int
    part_search_multiplier: float
    max_fragments_per_part: int

    @property
    def allowed_request_tokens(self) -> int:
        """Tokens one generation request may use, prompt and output together."""
        return self.request_token_limit - self.request_safety_margin

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables.

        Returns:
            Settings instance with values loaded from environment.
        """
        return cls(
            ibm_cloud_api_key=os.getenv("IBM_CLOUD_API_KEY", ""),
            watsonx_region=os.getenv("WATSONX_REGION", "us-south"),
            watsonx_project_id=os.getenv("WATSONX_PROJECT_ID", ""),
            watsonx_embed_model=os.getenv(
                "WATSONX_EMBED_MODEL",
                "ibm/granite-embedding-278m-multilingual",
            ),
            watsonx_gen_model=os.getenv(
                "WATSONX_GEN_MODEL", "meta-llama/llama-3-3-70b-instruct"
            ),
            corpus_path=os.getenv("CORPUS_PATH", "data/corpus.json"),
            temperature=float(os.getenv("TEMPERATURE", "0.6")),
            request_delay_seconds=float(os.getenv("REQUEST_DELAY_SECONDS", "15")),
            input_cost_per_million=float(os.getenv("INPUT_COST_PER_MILLION", "5")),
            output_cost_per_million=float(os.getenv("OUTPUT_COST_PER_MILLION", "15")),
            model_context_tokens=int(os.getenv("MODEL_CONTEXT_TOKENS", "120000")),
            model_output_tokens=int(os.getenv("MODEL_OUTPUT_TOKENS", "16000")),
            context_safety_margin=int(os.getenv("CONTEXT_SAFETY_MARGIN", "2000")),
            min_output_tokens=int(os.getenv("MIN_OUTPUT_TOKENS", "512")),
            default_tokens_per_part=int(os.getenv("DEFAULT_TOKENS_PER_PART", "1200")),
            request_token_limit=int(os.getenv("REQUEST_TOKEN_LIMIT", "15000")),
            request_safety_margin=int(os.getenv("REQUEST_SAFETY_MARGIN", "3000")),
            part_buffer_ratio=float(os.getenv("PART_BUFFER_RATIO", "1.25")),
            min_pages=int(os.getenv("MIN_PAGES", "8")),
            max_pages=int(os.getenv("MAX_PAGES", "15")),
            avg_tokens_per_page=int(os.getenv("AVG_TOKENS_PER_PAGE", "650")),
            fragments_per_page=int(os.getenv("FRAGMENTS_PER_PAGE", "3")),
            context_token_ceiling=int(os.getenv("CONTEXT_TOKEN_CEILING", "25000")),
            manual_fragment_floor=int(os.getenv("MANUAL_FRAGMENT_FLOOR", "40")),
            part_search_min_results=int(os.getenv("PART_SEARCH_MIN_RESULTS", "60")),
            part_search_multiplier=float(os.getenv("PART_SEARCH_MULTIPLIER", "1.5")),
            max_fragments_per_part=int(os.getenv("MAX_FRAGMENTS_PER_PART", "35")),
        )
