import pytest

from docreport.errors import ExternalServiceError
from docreport.models import ContextBuildResult, PartGenerationResult, PartPlan
from docreport.rag.orchestrator import GenerationOrchestrator, PREVIEW_CHARS, aggregate_sources
from docreport.rag.prompts import MESSAGES

from conftest import FakeCorpusStore, FakeEmbedder, FakeGenerator, make_fragment, make_page


class FailingEmbedder:
    def embed_query(self, text):
        raise ExternalServiceError("embed", "service unavailable")


def _orchestrator(settings, corpus, estimator, embedder=None, generator=None):
    sleeps: list[float] = []
    orchestrator = GenerationOrchestrator(
        settings,
        FakeCorpusStore(corpus),
        embedder or FakeEmbedder(),
        generator or FakeGenerator(),
        token_estimator=estimator,
        sleep=sleeps.append,
    )
    return orchestrator, sleeps


class TestRejections:
    def test_empty_question(self, settings, corpus, estimator):
        generator = FakeGenerator()
        orchestrator, _ = _orchestrator(settings, corpus, estimator, generator=generator)

        result = orchestrator.query("   ")

        assert result.answer == MESSAGES["empty_query"]["en"]
        assert result.sources == []
        assert result.tokens_used == 0
        assert result.cost == 0.0
        assert generator.calls == []

    def test_infeasible_length(self, settings, corpus, estimator):
        embedder = FakeEmbedder()
        generator = FakeGenerator()
        orchestrator, _ = _orchestrator(settings, corpus, estimator, embedder, generator)

        result = orchestrator.query("Write 3 parts of 20000 tokens each", language="ru")

        assert result.answer == MESSAGES["length_infeasible"]["ru"]
        assert result.tokens_used == 0
        assert embedder.calls == []
        assert generator.calls == []

    def test_unknown_language_falls_back_to_english(self, settings, corpus, estimator):
        orchestrator, _ = _orchestrator(settings, corpus, estimator)
        assert orchestrator.query("", language="de").answer == MESSAGES["empty_query"]["en"]


class TestDiagnostics:
    def test_coverage_report(self, settings, corpus, estimator):
        generator = FakeGenerator()
        orchestrator, _ = _orchestrator(settings, corpus, estimator, generator=generator)

        result = orchestrator.query("Please list files in the corpus")

        assert result.answer.startswith("Document Status Report:")
        assert "Total files processed: 2" in result.answer
        assert "Total text fragments: 5" in result.answer
        assert "1. a.pdf" in result.answer
        assert "2. b.pdf" in result.answer
        assert result.cost == 0.0
        assert generator.calls == []

    def test_empty_corpus(self, settings, estimator):
        orchestrator, _ = _orchestrator(settings, [], estimator)
        result = orchestrator.query("document status")
        assert result.answer.startswith("No documents have been indexed yet")


class TestQuery:
    def test_two_part_report(self, settings, corpus, estimator):
        embedder = FakeEmbedder()
        generator = FakeGenerator()
        orchestrator, sleeps = _orchestrator(settings, corpus, estimator, embedder, generator)

        result = orchestrator.query("Summarize the tax rules in 2 parts")

        assert len(generator.calls) == 2
        assert len(sleeps) == 2
        assert embedder.calls[0] == "Summarize the tax rules in 2 parts"
        assert "**Part 1: Introduction**" in result.answer
        assert "**Part 2: Conclusions and strategic recommendations**" in result.answer
        assert "Generated section 1." in result.answer
        assert "_Approximate length: ~" in result.answer
        assert result.answer.index("Part 1:") < result.answer.index("Part 2:")
        assert result.tokens_used == 3000
        assert result.cost == pytest.approx(0.025)

        keys = [(s.section_type, s.filename, s.section_number, s.content) for s in result.sources]
        assert len(keys) == len(set(keys))
        relevances = [s.relevance for s in result.sources]
        assert relevances == sorted(relevances, reverse=True)
        assert all(0 < r <= 1 for r in relevances)

    def test_external_failure_aborts_query(self, settings, corpus, estimator):
        generator = FakeGenerator()
        orchestrator, _ = _orchestrator(
            settings, corpus, estimator, embedder=FailingEmbedder(), generator=generator
        )

        with pytest.raises(ExternalServiceError) as excinfo:
            orchestrator.query("Summarize the tax rules in 2 parts")

        assert excinfo.value.operation == "embed"
        assert generator.calls == []

    def test_part_without_evidence_still_reported(self, settings, corpus, estimator):
        generator = FakeGenerator()
        orchestrator, _ = _orchestrator(settings, corpus, estimator, generator=generator)

        result = orchestrator.query("1. Zebra habitats\n2. Penguin diets\n3. Tax rates")

        assert "**Part 2: Zebra habitats**" in result.answer
        assert MESSAGES["no_context"]["en"] in result.answer
        assert "**Part 4: Tax rates**" in result.answer


class TestAggregateSources:
    def _result(self, index, pages, fragments):
        plan = PartPlan(index=index, title=f"Part {index}", tokens=800, keywords=["x"])
        context = ContextBuildResult(text="ctx", pages=pages, fragments=fragments)
        return PartGenerationResult(plan=plan, text="t", context=context)

    def test_deduplicates_and_orders_by_relevance(self):
        shared = make_fragment("shared", "shared text")
        other = make_fragment("other", "other text", "b.pdf", 3)
        page = make_page("a.pdf", 1)
        results = [
            self._result(1, [page], [shared, other]),
            self._result(2, [page], [other, shared]),
        ]

        sources = aggregate_sources(results)

        assert [(s.section_type, s.filename, s.section_number) for s in sources] == [
            ("page", "a.pdf", 1),
            ("page", "a.pdf", 1),
            ("page", "b.pdf", 3),
        ]
        assert [s.relevance for s in sources] == [1.0, 1.0, 0.5]
        assert sources[1].content == "shared text"

    def test_long_content_is_previewed(self):
        long_text = "y" * (PREVIEW_CHARS + 50)
        sources = aggregate_sources([self._result(1, [], [make_fragment("f", long_text)])])
        assert sources[0].content == "y" * PREVIEW_CHARS + "..."
