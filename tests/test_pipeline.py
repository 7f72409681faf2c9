import pytest

from resolver.answerer import EMPTY_UTTERANCE_RESPONSE, FALLBACK_RESPONSE
from resolver.intents import NavigationDetector
from resolver.sources import MemorySource
from resolver.types import NavigationIntent, SourceRecord

from conftest import APP_RECORDS, EchoBackend, FailingBackend, SlowBackend, structured

APP_ANSWER = APP_RECORDS[0]["answer"]


def test_navigation_preempts_matching_faq(make_pipeline):
    backend = EchoBackend()
    pipeline = make_pipeline(backend)
    resolution = pipeline.resolve("Wie ändere ich meine PIN?")
    assert resolution.navigation_intent == NavigationIntent.PIN.value
    assert resolution.response == NavigationDetector().acknowledgment(NavigationIntent.PIN)
    assert backend.calls == []


def test_conversational_reply_skips_knowledge(make_pipeline):
    backend = EchoBackend()
    resolution = make_pipeline(backend).resolve("Hallo!")
    assert resolution.source == "conversation"
    assert resolution.navigation_intent is None
    assert backend.calls == []


def test_knowledge_answer_returned_verbatim(make_pipeline):
    backend = EchoBackend()
    resolution = make_pipeline(backend).resolve("Was ist die App?")
    assert resolution.response == APP_ANSWER
    assert resolution.source == "knowledge"
    assert resolution.confidence > 0.75
    assert backend.calls == []


def test_second_identical_request_served_from_cache(make_pipeline):
    pipeline = make_pipeline(EchoBackend())
    first = pipeline.resolve("Was ist die App?")
    second = pipeline.resolve("  was ist die app?  ")
    assert not first.from_cache
    assert second.from_cache
    assert second.response == first.response


def test_unknown_query_delegates_with_grounding(make_pipeline):
    backend = EchoBackend("Das weiß ich leider nicht.")
    resolution = make_pipeline(backend).resolve("xyz")
    assert resolution.response == "Das weiß ich leider nicht."
    assert resolution.source == "completion"
    request = backend.calls[0]
    assert request.user_utterance == "xyz"
    assert request.model_name == "llama3:8b"
    assert "Wie sperre ich meine Kreditkarte?" in request.system_instruction


def test_model_name_is_passed_through(make_pipeline):
    backend = EchoBackend()
    make_pipeline(backend).resolve("xyz", "mistral:7b")
    assert backend.calls[0].model_name == "mistral:7b"


def test_backend_timeout_falls_back(make_pipeline, resolver_logs):
    backend = SlowBackend()
    pipeline = make_pipeline(backend)
    resolution = pipeline.resolve("xyz")
    assert resolution.response == FALLBACK_RESPONSE
    assert resolution.source == "fallback"
    assert any("timed out" in r.getMessage() for r in resolver_logs.records)


def test_fallback_is_cached_by_default(make_pipeline):
    backend = FailingBackend()
    pipeline = make_pipeline(backend)
    first = pipeline.resolve("xyz")
    second = pipeline.resolve("xyz")
    assert first.response == second.response == FALLBACK_RESPONSE
    assert not first.from_cache
    assert second.from_cache
    assert len(backend.calls) == 1


def test_fallback_caching_can_be_disabled(make_pipeline):
    backend = FailingBackend()
    pipeline = make_pipeline(backend, config={"llm": {"timeout_sec": 0.1}, "resolution": {"cache_fallbacks": False}})
    pipeline.resolve("xyz")
    assert not pipeline.resolve("xyz").from_cache
    assert len(backend.calls) == 2


def test_backend_error_falls_back(make_pipeline):
    resolution = make_pipeline(FailingBackend()).resolve("xyz")
    assert resolution.response == FALLBACK_RESPONSE


def test_missing_backend_falls_back(make_pipeline):
    assert make_pipeline(None).resolve("xyz").response == FALLBACK_RESPONSE


def test_empty_utterance(make_pipeline):
    assert make_pipeline(None).resolve("   ").response == EMPTY_UTTERANCE_RESPONSE


def test_grounded_policy_sends_medium_match_to_backend(make_pipeline):
    backend = EchoBackend("Generiert")
    config = {"resolution": {"high_confidence": 100, "medium_policy": "grounded"}, "llm": {"timeout_sec": 1}}
    resolution = make_pipeline(backend, config=config).resolve("Was ist die App?")
    assert resolution.response == "Generiert"
    instruction = backend.calls[0].system_instruction
    assert 'Die Frage ähnelt: "Was ist die Hanseatic Bank Mobile App?"' in instruction


def test_verbatim_policy_returns_medium_match(make_pipeline):
    backend = EchoBackend()
    config = {"resolution": {"high_confidence": 100}}
    resolution = make_pipeline(backend, config=config).resolve("Was ist die App?")
    assert resolution.response == APP_ANSWER
    assert backend.calls == []


def test_refresh_clears_cache_and_counts_entries(make_pipeline):
    pipeline = make_pipeline(EchoBackend())
    pipeline.resolve("Was ist die App?")
    assert pipeline.refresh_knowledge(force=True) == len(APP_RECORDS)
    assert not pipeline.resolve("Was ist die App?").from_cache


def test_clear_response_cache(make_pipeline):
    pipeline = make_pipeline(EchoBackend())
    pipeline.resolve("Was ist die App?")
    assert pipeline.clear_response_cache() == 1
    assert not pipeline.resolve("Was ist die App?").from_cache


def test_refresh_survives_malformed_source(make_pipeline, resolver_logs):
    source = MemorySource(
        [structured("good.json", APP_RECORDS), SourceRecord(id="bad.txt", format="delimited-v2", content="?")]
    )
    count = make_pipeline(EchoBackend(), source=source).refresh_knowledge(force=True)
    assert count == len(APP_RECORDS)
    assert any(r.levelname == "WARNING" and "bad.txt" in r.getMessage() for r in resolver_logs.records)


def test_add_entry_reloads_store(make_pipeline):
    source = MemorySource([structured("app.json", APP_RECORDS)])
    pipeline = make_pipeline(EchoBackend(), source=source)
    count = pipeline.add_entry("Wie hoch sind die Zinsen beim Tagesgeld?", "Aktuell 2,5 % pro Jahr.")
    assert count == len(APP_RECORDS) + 1
    assert source.appended[0]["keywords"] == ["hoch", "zinsen", "tagesgeld"]
    resolution = pipeline.resolve("Wie hoch sind die Zinsen beim Tagesgeld?")
    assert resolution.response == "Aktuell 2,5 % pro Jahr."


@pytest.mark.parametrize(
    "utterance",
    ["Danke, und wie sperre ich meine Kreditkarte?", "Wie geht es weiter, wenn ich meine Kreditkarte sperren will?"],
)
def test_small_talk_opening_does_not_hide_question(make_pipeline, utterance):
    resolution = make_pipeline(EchoBackend()).resolve(utterance)
    assert resolution.source == "knowledge"
    assert resolution.response == APP_RECORDS[1]["answer"]
