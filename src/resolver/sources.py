"""Knowledge-source collaborators.

A source only has to enumerate ``SourceRecord`` items; the store never
writes through it except for the default set and appended entries.
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .loader import FORMAT_DELIMITED, FORMAT_STRUCTURED, entries_to_envelope
from .logger import LOGGER
from .types import Entry, SourceRecord

SUFFIX_FORMATS = {
    ".txt": FORMAT_DELIMITED,
    ".json": FORMAT_STRUCTURED,
}

DEFAULTS_FILE = "faqs.json"
CUSTOM_FILE = "custom-faqs.json"


class KnowledgeSource(Protocol):
    def list(self) -> List[SourceRecord]:
        ...


class DirectorySource:
    """Reads ``*.txt`` (delimited) and ``*.json`` (structured) files from one directory."""

    def __init__(self, directory: str) -> None:
        self.directory = Path(directory)
        self._write_lock = threading.Lock()

    def list(self) -> List[SourceRecord]:
        if not self.directory.is_dir():
            return []
        records: List[SourceRecord] = []
        for path in sorted(p for p in self.directory.iterdir() if p.is_file()):
            fmt = SUFFIX_FORMATS.get(path.suffix.lower())
            if fmt is None:
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                records.append(SourceRecord(id=path.name, format=fmt, content="", error=str(exc)))
                continue
            records.append(SourceRecord(id=path.name, format=fmt, content=content))
        return records

    def write_defaults(self, entries: Iterable[Entry]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / DEFAULTS_FILE
        try:
            with path.open("x", encoding="utf-8") as f:
                json.dump(entries_to_envelope(entries), f, ensure_ascii=False, indent=2)
        except FileExistsError:
            LOGGER.info("Keeping existing knowledge source %s", path)
            return
        LOGGER.info("Wrote default knowledge source to %s", path)

    def append_record(self, record: Dict[str, Any]) -> None:
        with self._write_lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            path = self.directory / CUSTOM_FILE
            records: List[Any] = []
            if path.exists():
                with path.open("r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if not isinstance(loaded, list):
                    raise ValueError(f"{path.name} does not hold a list of records")
                records = loaded
            records.append(record)
            with path.open("w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, indent=2)


class MemorySource:
    """In-memory source, mostly for tests and embedding."""

    def __init__(self, records: Optional[List[SourceRecord]] = None) -> None:
        self.records: List[SourceRecord] = list(records or [])
        self.appended: List[Dict[str, Any]] = []

    def list(self) -> List[SourceRecord]:
        records = list(self.records)
        if self.appended:
            records.append(
                SourceRecord(id=CUSTOM_FILE, format=FORMAT_STRUCTURED, content=json.dumps(self.appended))
            )
        return records

    def write_defaults(self, entries: Iterable[Entry]) -> None:
        if any(record.id == DEFAULTS_FILE for record in self.records):
            return
        self.records.insert(
            0,
            SourceRecord(
                id=DEFAULTS_FILE,
                format=FORMAT_STRUCTURED,
                content=json.dumps(entries_to_envelope(entries), ensure_ascii=False),
            ),
        )

    def append_record(self, record: Dict[str, Any]) -> None:
        self.appended.append(record)
