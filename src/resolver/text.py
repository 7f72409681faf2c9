import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List

# \w covers umlauts, ß and other accented letters; underscore is not wanted.
STRIP_RE = re.compile(r"[^\w\s-]|_")
SPACE_RE = re.compile(r"\s+")
SPLIT_RE = re.compile(r"[\s-]+")

STOPWORDS_DE: FrozenSet[str] = frozenset(
    {
        "aber", "alle", "allem", "also", "auch", "auf", "aus", "bei", "beim", "bin", "bist",
        "dann", "darf", "dass", "dein", "deine", "dem", "den", "denn", "der", "des", "dich",
        "die", "dies", "diese", "dieser", "dir", "doch", "dort", "durch", "ein", "eine",
        "einem", "einen", "einer", "eines", "etwa", "euch", "euer", "für", "gibt", "habe",
        "haben", "hast", "hat", "hier", "ich", "ihr", "ihre", "ihrem", "ihren", "ihrer",
        "im", "immer", "ist", "jetzt", "kann", "kannst", "kein", "keine", "können",
        "könnte", "mein", "meine", "meinem", "meinen", "meiner", "mich", "mir", "mit",
        "muss", "nach", "nicht", "noch", "nur", "oder", "ohne", "sehr", "sein", "seine",
        "sich", "sie", "sind", "soll", "sollte", "über", "und", "uns", "unser", "unsere",
        "vom", "von", "vor", "war", "warum", "was", "weil", "welche", "welcher", "wenn",
        "wer", "werde", "werden", "wie", "wieso", "will", "wird", "wir", "wo", "woher",
        "wohin", "zum", "zur", "zwischen",
    }
)

STOPWORDS_EN: FrozenSet[str] = frozenset(
    {
        "about", "after", "again", "also", "been", "before", "being", "can", "could",
        "does", "doing", "down", "each", "from", "have", "having", "here", "how", "into",
        "just", "more", "most", "much", "must", "only", "other", "over", "same", "should",
        "some", "such", "than", "that", "their", "them", "then", "there", "these", "they",
        "this", "those", "through", "very", "want", "what", "when", "where", "which",
        "while", "will", "with", "would", "your", "yours",
    }
)

STOPWORDS: FrozenSet[str] = STOPWORDS_DE | STOPWORDS_EN


@dataclass(frozen=True)
class NormalizedText:
    normalized: str
    tokens: List[str]


def normalize_text(text: str) -> str:
    lowered = (text or "").lower()
    stripped = STRIP_RE.sub("", lowered)
    return SPACE_RE.sub(" ", stripped).strip()


def tokenize(normalized: str) -> List[str]:
    return [token for token in SPLIT_RE.split(normalized) if token]


def normalize(text: str) -> NormalizedText:
    normalized = normalize_text(text)
    return NormalizedText(normalized=normalized, tokens=tokenize(normalized))


def overlap_tokens(tokens: Iterable[str]) -> List[str]:
    """Tokens used for word-overlap scoring (recall oriented)."""
    return [token for token in tokens if len(token) > 2]


def content_tokens(tokens: Iterable[str], stopwords: FrozenSet[str] = STOPWORDS) -> List[str]:
    """Tokens used to derive keywords from raw text (precision oriented)."""
    return [token for token in tokens if len(token) > 3 and token not in stopwords]


def derive_keywords(*texts: str) -> List[str]:
    keywords: List[str] = []
    for text in texts:
        for token in content_tokens(normalize(text).tokens):
            if token not in keywords:
                keywords.append(token)
    return keywords


def clean_keywords(raw: Iterable[str]) -> List[str]:
    return [kw.strip().lower() for kw in raw if kw and kw.strip()]
