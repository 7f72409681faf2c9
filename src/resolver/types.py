from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

UNKNOWN_CATEGORY = "Unbekannt"


class NavigationIntent(str, Enum):
    PIN = "pin"
    REFERENCE_ACCOUNT = "reference-account"
    EMAIL = "email"
    TRANSFER = "transfer"
    BENEFITS = "benefits"
    SUPPORT = "support"
    FAQ = "faq"
    CHANGE_NUMBER = "change-number"


@dataclass(frozen=True)
class Entry:
    question: str
    answer: str
    keywords: Tuple[str, ...] = ()
    category: str = UNKNOWN_CATEGORY
    tags: FrozenSet[str] = frozenset()
    source_id: str = ""

    def __post_init__(self) -> None:
        if not self.question.strip() or not self.answer.strip():
            raise ValueError("Entry requires a non-empty question and answer")


@dataclass
class MatchResult:
    entry: Entry
    confidence: float
    reasons: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SourceRecord:
    id: str
    format: str
    content: str
    # set when the record exists but its content could not be read
    error: Optional[str] = None


@dataclass
class CompletionRequest:
    system_instruction: str
    user_utterance: str
    model_name: str


@dataclass
class Resolution:
    response: str
    navigation_intent: Optional[str] = None
    from_cache: bool = False
    confidence: float = 0.0
    source: str = ""
