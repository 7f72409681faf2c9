import threading
from typing import Dict, Optional


def cache_key(utterance: str) -> str:
    return (utterance or "").strip().lower()


class ResponseCache:
    """Final response text per utterance; entries live until ``clear``."""

    def __init__(self) -> None:
        self._store: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, utterance: str) -> Optional[str]:
        with self._lock:
            return self._store.get(cache_key(utterance))

    def set(self, utterance: str, response: str) -> None:
        with self._lock:
            self._store[cache_key(utterance)] = response

    def clear(self) -> int:
        with self._lock:
            size = len(self._store)
            self._store.clear()
        return size

    def __len__(self) -> int:
        return len(self._store)
