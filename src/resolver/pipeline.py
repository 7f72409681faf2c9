from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .answerer import EMPTY_UTTERANCE_RESPONSE, FALLBACK_RESPONSE, build_system_instruction
from .cache import ResponseCache
from .config import section
from .errors import BackendError, BackendTimeout
from .intents import ConversationalDetector, NavigationDetector
from .llm import CompletionBackend, build_backend
from .logger import LOGGER
from .matching import MatchingEngine
from .sources import DirectorySource, KnowledgeSource
from .store import KnowledgeStore
from .text import clean_keywords, derive_keywords
from .types import CompletionRequest, Entry, MatchResult, Resolution

POLICY_VERBATIM = "verbatim"
POLICY_GROUNDED = "grounded"


class ResolutionPipeline:
    """Routes an utterance to navigation, a canned reply, a knowledge answer or the backend.

    One long-lived instance owns the knowledge store and the response cache;
    request handlers share it.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        source: KnowledgeSource,
        backend: Optional[CompletionBackend] = None,
    ) -> None:
        self.config = config
        self.store = KnowledgeStore.from_config(source, section(config, "knowledge"))
        self.engine = MatchingEngine.from_config(section(config, "matching"))
        self.navigation = NavigationDetector()
        self.conversation = ConversationalDetector()
        self.cache = ResponseCache()
        self.backend = backend

        resolution_cfg = section(config, "resolution")
        self.high_confidence = float(resolution_cfg.get("high_confidence", 0.75))
        self.medium_confidence = float(resolution_cfg.get("medium_confidence", 0.3))
        self.medium_policy = resolution_cfg.get("medium_policy", POLICY_VERBATIM)
        if self.medium_policy not in {POLICY_VERBATIM, POLICY_GROUNDED}:
            raise ValueError(f"Unknown medium confidence policy: {self.medium_policy}")
        self.cache_fallbacks = bool(resolution_cfg.get("cache_fallbacks", True))

        llm_cfg = section(config, "llm")
        self.default_model = llm_cfg.get("default_model", "llama3:8b")
        self.timeout_sec = float(llm_cfg.get("timeout_sec", 8))
        self.max_context_entries = int(llm_cfg.get("max_context_entries", 8))
        self.assistant_name = llm_cfg.get("assistant_name", "Hanna")
        self.bank_name = llm_cfg.get("bank_name", "Hanseatic Bank")
        self._executor = ThreadPoolExecutor(
            max_workers=int(llm_cfg.get("max_concurrent_calls", 4)),
            thread_name_prefix="completion",
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any], knowledge_dir: Optional[str] = None) -> "ResolutionPipeline":
        directory = knowledge_dir or section(config, "knowledge").get("dir", "knowledge")
        return cls(config, DirectorySource(directory), build_backend(section(config, "llm")))

    def resolve(self, utterance: str, model_name: Optional[str] = None) -> Resolution:
        text = (utterance or "").strip()
        if not text:
            return Resolution(response=EMPTY_UTTERANCE_RESPONSE, source="empty")

        intent = self.navigation.detect(text)
        if intent is not None:
            LOGGER.info("Navigation intent %s", intent.value)
            return Resolution(
                response=self.navigation.acknowledgment(intent),
                navigation_intent=intent.value,
                source="navigation",
            )

        if self.conversation.detect(text):
            LOGGER.debug("Conversational reply for %r", text)
            return Resolution(response=self.conversation.respond(text), source="conversation")

        cached = self.cache.get(text)
        if cached is not None:
            LOGGER.debug("Cache hit for %r", text)
            return Resolution(response=cached, from_cache=True, source="cache")

        entries = self.store.snapshot()
        match = self.engine.find_best_match(text, entries)
        resolution = self._decide(text, entries, match, model_name)

        if resolution.source != "fallback" or self.cache_fallbacks:
            self.cache.set(text, resolution.response)
        return resolution

    def _decide(
        self,
        text: str,
        entries: Sequence[Entry],
        match: Optional[MatchResult],
        model_name: Optional[str],
    ) -> Resolution:
        if match is not None and match.confidence > self.high_confidence:
            return Resolution(response=match.entry.answer, confidence=match.confidence, source="knowledge")
        if match is not None and match.confidence > self.medium_confidence and self.medium_policy == POLICY_VERBATIM:
            return Resolution(response=match.entry.answer, confidence=match.confidence, source="knowledge")

        response, ok = self._delegate(text, entries, match, model_name)
        return Resolution(
            response=response,
            confidence=match.confidence if match is not None else 0.0,
            source="completion" if ok else "fallback",
        )

    def _delegate(
        self,
        text: str,
        entries: Sequence[Entry],
        match: Optional[MatchResult],
        model_name: Optional[str],
    ) -> Tuple[str, bool]:
        if self.backend is None:
            LOGGER.warning("No completion backend configured, using fallback response")
            return FALLBACK_RESPONSE, False

        request = CompletionRequest(
            system_instruction=build_system_instruction(
                entries,
                match,
                max_entries=self.max_context_entries,
                assistant_name=self.assistant_name,
                bank_name=self.bank_name,
            ),
            user_utterance=text,
            model_name=model_name or self.default_model,
        )
        LOGGER.info("Delegating to completion backend with model %s", request.model_name)
        future = self._executor.submit(self.backend.complete, request)
        try:
            try:
                return future.result(timeout=self.timeout_sec), True
            except FutureTimeout as exc:
                future.cancel()
                raise BackendTimeout(f"no answer within {self.timeout_sec}s") from exc
        except BackendTimeout as exc:
            LOGGER.warning("Completion backend timed out: %s", exc)
        except BackendError as exc:
            LOGGER.warning("Completion backend failed: %s", exc)
        except Exception:
            LOGGER.exception("Completion backend raised unexpectedly")
        return FALLBACK_RESPONSE, False

    def refresh_knowledge(self, force: bool = True) -> int:
        entries = self.store.load(force_refresh=force)
        dropped = self.cache.clear()
        LOGGER.info("Knowledge refreshed: %d entries, %d cached responses dropped", len(entries), dropped)
        return len(entries)

    def clear_response_cache(self) -> int:
        dropped = self.cache.clear()
        LOGGER.info("Response cache cleared (%d entries)", dropped)
        return dropped

    def add_entry(
        self,
        question: str,
        answer: str,
        keywords: Optional[List[str]] = None,
        category: Optional[str] = None,
    ) -> int:
        question, answer = (question or "").strip(), (answer or "").strip()
        if not question or not answer:
            raise ValueError("question and answer are required")
        appender = getattr(self.store.source, "append_record", None)
        if appender is None:
            raise ValueError("knowledge source is read-only")
        record: Dict[str, Any] = {
            "question": question,
            "answer": answer,
            "keywords": clean_keywords(keywords or []) or derive_keywords(question),
        }
        if category:
            record["category"] = category
        appender(record)
        LOGGER.info("Added knowledge entry %r", question)
        return self.refresh_knowledge(force=True)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
