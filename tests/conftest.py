import json
import logging
import time
from typing import Any, Dict, List, Optional

import pytest

from resolver.errors import BackendError
from resolver.logger import LOGGER
from resolver.pipeline import ResolutionPipeline
from resolver.sources import MemorySource
from resolver.types import CompletionRequest, SourceRecord

APP_RECORDS = [
    {
        "question": "Was ist die Hanseatic Bank Mobile App?",
        "answer": "Die App zeigt dir alle Umsätze deiner Kreditkarte.",
        "keywords": ["app"],
        "category": "App",
    },
    {
        "question": "Wie sperre ich meine Kreditkarte?",
        "answer": "Du kannst deine Karte in der App sofort sperren.",
        "keywords": ["sperren", "kreditkarte", "karte", "verloren", "gestohlen"],
        "category": "Kreditkarte",
    },
    {
        "question": "Wie ändere ich meine PIN?",
        "answer": "Die PIN änderst du in der App unter Sicherheit.",
        "keywords": ["pin", "ändern"],
        "category": "Sicherheit",
    },
]


class EchoBackend:
    def __init__(self, text: str = "Antwort vom Modell") -> None:
        self.text = text
        self.calls: List[CompletionRequest] = []

    def complete(self, request: CompletionRequest) -> str:
        self.calls.append(request)
        return self.text


class SlowBackend(EchoBackend):
    def complete(self, request: CompletionRequest) -> str:
        self.calls.append(request)
        time.sleep(0.5)
        return self.text


class FailingBackend(EchoBackend):
    def complete(self, request: CompletionRequest) -> str:
        self.calls.append(request)
        raise BackendError("HTTP 500: model not found")


def structured(source_id: str, data: Any) -> SourceRecord:
    return SourceRecord(id=source_id, format="structured", content=json.dumps(data))


@pytest.fixture
def app_source() -> MemorySource:
    return MemorySource([structured("app.json", APP_RECORDS)])


@pytest.fixture
def make_pipeline(app_source):
    created: List[ResolutionPipeline] = []

    def _make(
        backend: Optional[Any] = None,
        source: Optional[MemorySource] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> ResolutionPipeline:
        cfg = config or {"llm": {"timeout_sec": 0.1}}
        pipeline = ResolutionPipeline(cfg, source or app_source, backend)
        created.append(pipeline)
        return pipeline

    yield _make
    for pipeline in created:
        pipeline.close()


@pytest.fixture
def resolver_logs(caplog):
    """The resolver logger does not propagate, so attach caplog directly."""
    LOGGER.addHandler(caplog.handler)
    caplog.set_level(logging.DEBUG, logger=LOGGER.name)
    yield caplog
    LOGGER.removeHandler(caplog.handler)
