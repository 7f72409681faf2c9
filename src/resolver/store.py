import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from .loader import default_entries, parse_source
from .logger import LOGGER
from .sources import KnowledgeSource
from .types import Entry

POLICY_EXPLICIT = "explicit"
POLICY_TTL = "ttl"


class KnowledgeStore:
    """Holds the resolved entry set and swaps it wholesale on reload.

    Readers take a snapshot tuple; a reload builds a new tuple and replaces
    the reference in one assignment, so nobody observes a partial set.
    """

    def __init__(
        self,
        source: KnowledgeSource,
        refresh_policy: str = POLICY_EXPLICIT,
        refresh_interval_sec: float = 300.0,
        persist_defaults: bool = True,
    ) -> None:
        if refresh_policy not in {POLICY_EXPLICIT, POLICY_TTL}:
            raise ValueError(f"Unknown refresh policy: {refresh_policy}")
        self.source = source
        self.refresh_policy = refresh_policy
        self.refresh_interval_sec = refresh_interval_sec
        self.persist_defaults = persist_defaults
        self._entries: Optional[Tuple[Entry, ...]] = None
        self.last_loaded: Optional[float] = None
        self._reload_lock = threading.Lock()

    @classmethod
    def from_config(cls, source: KnowledgeSource, cfg: Dict[str, Any]) -> "KnowledgeStore":
        return cls(
            source,
            refresh_policy=cfg.get("refresh_policy", POLICY_EXPLICIT),
            refresh_interval_sec=float(cfg.get("refresh_interval_sec", 300)),
            persist_defaults=cfg.get("persist_defaults", True),
        )

    def load(self, force_refresh: bool = False) -> List[Entry]:
        snapshot = self._entries
        if snapshot is not None and not force_refresh and not self._expired():
            return list(snapshot)
        with self._reload_lock:
            # another thread may have reloaded while we waited
            if not force_refresh and self._entries is not None and self._entries is not snapshot:
                return list(self._entries)
            return list(self._reload())

    def snapshot(self) -> Tuple[Entry, ...]:
        snapshot = self._entries
        if snapshot is None or self._expired():
            return tuple(self.load())
        return snapshot

    def invalidate(self) -> None:
        self._entries = None

    def _expired(self) -> bool:
        if self.refresh_policy != POLICY_TTL or self.last_loaded is None:
            return False
        return time.monotonic() - self.last_loaded >= self.refresh_interval_sec

    def _reload(self) -> Tuple[Entry, ...]:
        records = self.source.list()
        if not records:
            LOGGER.info("No knowledge source found, using built-in defaults")
            entries = default_entries()
            if self.persist_defaults:
                writer = getattr(self.source, "write_defaults", None)
                if writer is not None:
                    try:
                        writer(entries)
                    except OSError as exc:
                        LOGGER.warning("Could not persist default knowledge source: %s", exc)
            loaded = tuple(entries)
        else:
            collected: List[Entry] = []
            for record in records:
                collected.extend(parse_source(record))
            if not collected:
                LOGGER.warning("%d knowledge sources present but none yielded entries", len(records))
            loaded = tuple(collected)

        self._entries = loaded
        self.last_loaded = time.monotonic()
        LOGGER.info("Knowledge store holds %d entries from %d sources", len(loaded), len(records) or 1)
        return loaded
