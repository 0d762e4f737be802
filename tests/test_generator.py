import pytest
from ibm_watsonx_ai.metanames import GenTextParamsMetaNames as GenParams
from ibm_watsonx_ai.wml_client_error import WMLClientError
from requests.exceptions import ConnectionError as TransportConnectionError
from requests.exceptions import Timeout

from docreport.errors import ExternalServiceError
from docreport.rag.embeddings import EmbeddingClient
from docreport.rag.generator import GeneratorClient, is_truncated


class FakeModel:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def generate(self, prompt, params):
        self.calls.append((prompt, params))
        if self.error:
            raise self.error
        return self.response


class FakeEmbeddings:
    def __init__(self, error):
        self.error = error

    def embed_query(self, text):
        raise self.error


def _generator(settings, model) -> GeneratorClient:
    client = GeneratorClient.__new__(GeneratorClient)
    client.settings = settings
    client.client = model
    return client


class TestCleanOutput:
    def test_removes_placeholder_citations(self):
        text = "Rates rose [Source 1] sharply (Source 2, Source 3) in 2024 [Fragment 4]."
        assert GeneratorClient.clean_output(text) == "Rates rose  sharply  in 2024 ."

    def test_keeps_real_citations(self):
        text = "Rates rose [report.pdf, page 3]."
        assert GeneratorClient.clean_output(text) == text

    def test_strips_answer_label_and_echoed_prompt(self):
        text = "Answer: The summary.\n\n\n\nMore text.\nPrimary research question: leaked"
        assert GeneratorClient.clean_output(text) == "The summary.\n\nMore text."


class TestIsTruncated:
    def test_reasons(self):
        assert is_truncated("max_tokens")
        assert is_truncated("LENGTH")
        assert not is_truncated("eos_token")
        assert not is_truncated(None)


class TestGenerate:
    def test_parses_usage(self, settings):
        model = FakeModel(
            {
                "results": [
                    {
                        "generated_text": "Answer: Body text",
                        "stop_reason": "max_tokens",
                        "input_token_count": 1200,
                        "generated_token_count": 800,
                    }
                ]
            }
        )
        result = _generator(settings, model).generate("sys", "user", 900)

        assert result.text == "Body text"
        assert result.finish_reason == "max_tokens"
        assert result.prompt_tokens == 1200
        assert result.completion_tokens == 800
        prompt, params = model.calls[0]
        assert prompt.startswith("sys\n\nuser")
        assert 900 in params.values()
        assert GenParams.RETURN_OPTIONS not in params

    def test_service_error_is_wrapped(self, settings):
        model = FakeModel(error=WMLClientError("quota exceeded"))
        with pytest.raises(ExternalServiceError) as excinfo:
            _generator(settings, model).generate("sys", "user", 900)
        assert excinfo.value.operation == "generate"

    def test_transport_error_is_wrapped(self, settings):
        model = FakeModel(error=TransportConnectionError("connection refused"))
        with pytest.raises(ExternalServiceError) as excinfo:
            _generator(settings, model).generate("sys", "user", 900)
        assert excinfo.value.operation == "generate"

    def test_unexpected_payload(self, settings):
        with pytest.raises(ExternalServiceError):
            _generator(settings, FakeModel(12345)).generate("sys", "user", 900)


class TestEmbeddingClient:
    def test_parse_vector_shapes(self):
        assert EmbeddingClient._parse_vector([0.1, 0.2]) == [0.1, 0.2]
        assert EmbeddingClient._parse_vector([[1, 2], [3, 4]]) == [1.0, 2.0]
        assert EmbeddingClient._parse_vector({"results": [{"embedding": [5, 6]}]}) == [5.0, 6.0]

    def test_parse_vector_rejects_unknown_payload(self):
        with pytest.raises(ExternalServiceError):
            EmbeddingClient._parse_vector({"unexpected": True})

    def test_service_error_is_wrapped(self, settings):
        client = EmbeddingClient.__new__(EmbeddingClient)
        client.settings = settings
        client.client = FakeEmbeddings(WMLClientError("unauthorized"))
        with pytest.raises(ExternalServiceError) as excinfo:
            client.embed_query("q")
        assert excinfo.value.operation == "embed"

    def test_transport_error_is_wrapped(self, settings):
        client = EmbeddingClient.__new__(EmbeddingClient)
        client.settings = settings
        client.client = FakeEmbeddings(Timeout("read timed out"))
        with pytest.raises(ExternalServiceError) as excinfo:
            client.embed_query("q")
        assert excinfo.value.operation == "embed"
