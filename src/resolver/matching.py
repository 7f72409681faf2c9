"""Multi-factor matching of an utterance against the knowledge entries.

The score is a fold over ``SCORING_RULES``: each rule has a name, a
predicate deciding whether it applies, and a weight formula. Reasons list
every rule that contributed, in table order.
"""

import math
import re
from dataclasses import dataclass, field
from functools import cached_property, lru_cache
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .domain import CATEGORY_HINTS, IMPORTANT_TERMS, PHRASE_PATTERNS, PRODUCT_NAMES
from .logger import LOGGER
from .text import normalize, normalize_text, overlap_tokens, tokenize
from .types import UNKNOWN_CATEGORY, Entry, MatchResult

EXACT_SCORE = 3.0
CONTAINMENT_WEIGHT = 1.0
PHRASE_BONUS = 2.0

KEYWORD_EQUAL = {True: 2.0, False: 1.2}
KEYWORD_IN_QUERY = {True: 1.0, False: 0.6}
QUERY_IN_KEYWORD = {True: 0.8, False: 0.4}
SHORT_KEYWORD_DAMPING = 0.8
SPECIAL_HIT_BONUS = 0.25

OVERLAP_SPECIAL_WEIGHT = 2.0
OVERLAP_MULTIPLIER = {True: 0.2, False: 0.4}

PRODUCT_TITLE_BONUS = 0.5
TERM_BONUS = {True: 0.4, False: 0.2}
CATEGORY_BONUS = 0.3
CATEGORY_HINT_BONUS = 0.2
ANSWER_TERM_BONUS = {True: 0.2, False: 0.1}
MISSING_KEYWORD_PENALTY = 0.05

SHORT_QUERY_TOKENS = 2
SHORT_QUERY_THRESHOLD = 0.4
LONG_QUERY_THRESHOLD = 0.3


@lru_cache(maxsize=1024)
def _term_re(term: str) -> re.Pattern[str]:
    # left word boundary only, so German compounds and plurals still match
    return re.compile(r"(?<!\w)" + re.escape(term))


def appears(text: str, term: str) -> bool:
    return bool(term) and _term_re(term).search(text) is not None


@dataclass(frozen=True)
class Vocabulary:
    product_names: Tuple[str, ...] = PRODUCT_NAMES
    important_terms: Tuple[str, ...] = IMPORTANT_TERMS
    category_hints: Dict[str, str] = field(default_factory=lambda: dict(CATEGORY_HINTS))
    phrase_patterns: Tuple[Tuple[str, ...], ...] = PHRASE_PATTERNS

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "Vocabulary":
        products = tuple(p.lower() for p in cfg.get("product_names") or PRODUCT_NAMES)
        terms = cfg.get("important_terms")
        important = tuple(t.lower() for t in terms) if terms else products + IMPORTANT_TERMS[len(PRODUCT_NAMES):]
        hints = {k.lower(): v for k, v in (cfg.get("category_hints") or CATEGORY_HINTS).items()}
        phrases = tuple(tuple(w.lower() for w in words) for words in cfg.get("phrase_patterns") or PHRASE_PATTERNS)
        return cls(product_names=products, important_terms=important, category_hints=hints, phrase_patterns=phrases)

    @cached_property
    def ranked_terms(self) -> Tuple[str, ...]:
        # product names first, so the first shared term is a product whenever one is shared
        return tuple(sorted(self.important_terms, key=lambda term: not self.is_product(term)))

    def is_product(self, text: str) -> bool:
        return any(text == name or appears(text, name) for name in self.product_names)

    def has_domain_signal(self, tokens: Iterable[str]) -> bool:
        for token in tokens:
            for term in self.important_terms:
                if token == term:
                    return True
                if len(token) >= 3 and (token in term or term in token):
                    return True
        return False


class Query:
    def __init__(self, utterance: str, vocab: Vocabulary) -> None:
        self.raw = (utterance or "").strip()
        parsed = normalize(self.raw)
        self.normalized = parsed.normalized
        self.tokens = parsed.tokens
        self.overlap: Set[str] = set(overlap_tokens(self.tokens))
        self.is_short = len(self.tokens) <= SHORT_QUERY_TOKENS
        self.products = [name for name in vocab.product_names if appears(self.normalized, name)]
        self.category_labels = {
            label.lower() for term, label in vocab.category_hints.items() if appears(self.normalized, term)
        }


@dataclass
class KeywordHit:
    keyword: str
    kind: str
    special: bool
    boost: float


class Candidate:
    """One entry seen from one query; derived features are computed lazily."""

    def __init__(self, query: Query, entry: Entry, vocab: Vocabulary) -> None:
        self.query = query
        self.entry = entry
        self.vocab = vocab

    @cached_property
    def question(self) -> str:
        return normalize_text(self.entry.question)

    @cached_property
    def question_tokens(self) -> Set[str]:
        return set(tokenize(self.question))

    @cached_property
    def answer(self) -> str:
        return normalize_text(self.entry.answer)

    @cached_property
    def category(self) -> str:
        category = normalize_text(self.entry.category)
        return "" if category == normalize_text(UNKNOWN_CATEGORY) else category

    @cached_property
    def keywords(self) -> List[str]:
        cleaned = (normalize_text(kw) for kw in self.entry.keywords)
        return [kw for kw in cleaned if kw]

    @cached_property
    def keyword_hits(self) -> List[KeywordHit]:
        u = self.query.normalized
        if not self.keywords or not u:
            return []
        longest = max(len(kw) for kw in self.keywords)
        hits: List[KeywordHit] = []
        for kw in self.keywords:
            special = self.vocab.is_product(kw)
            if kw == u:
                hits.append(KeywordHit(kw, "equal", special, KEYWORD_EQUAL[special]))
            elif appears(u, kw):
                scale = 0.5 + 0.5 * len(kw) / longest
                hits.append(KeywordHit(kw, "in_query", special, KEYWORD_IN_QUERY[special] * scale))
            elif u in kw:
                hits.append(KeywordHit(kw, "query_in_keyword", special, QUERY_IN_KEYWORD[special] * len(u) / len(kw)))
        return hits

    def mentions(self, term: str) -> bool:
        return appears(self.question, term) or any(kw == term or appears(kw, term) for kw in self.keywords)


def _containment(c: Candidate) -> float:
    u, q = c.query.normalized, c.question
    if u == q:
        return EXACT_SCORE
    return CONTAINMENT_WEIGHT * min(len(u), len(q)) / max(len(u), len(q))


def _shared_phrase(c: Candidate) -> bool:
    return any(
        all(word in c.query.normalized and word in c.question for word in words) for words in c.vocab.phrase_patterns
    )


def _keyword_score(c: Candidate) -> float:
    total = sum(hit.boost for hit in c.keyword_hits) / math.sqrt(len(c.keywords))
    return total * (SHORT_KEYWORD_DAMPING if c.query.is_short else 1.0)


def _special_bonus(c: Candidate) -> float:
    return SPECIAL_HIT_BONUS * sum(1 for hit in c.keyword_hits if hit.special)


def _common_tokens(c: Candidate) -> Set[str]:
    return c.query.overlap & c.question_tokens


def _token_overlap(c: Candidate) -> float:
    weighted = sum(
        OVERLAP_SPECIAL_WEIGHT if token in c.vocab.product_names else 1.0 for token in _common_tokens(c)
    )
    return weighted / len(c.query.overlap) * OVERLAP_MULTIPLIER[c.query.is_short]


def _first_shared_term(c: Candidate, where: Callable[[str], bool]) -> Optional[str]:
    for term in c.vocab.ranked_terms:
        if appears(c.query.normalized, term) and where(term):
            return term
    return None


def _term_bonus(c: Candidate) -> float:
    term = _first_shared_term(c, c.mentions)
    return TERM_BONUS[c.vocab.is_product(term)] if term else 0.0


def _category_matches(c: Candidate) -> bool:
    u = c.query.normalized
    return bool(c.category) and (appears(u, c.category) or u in c.category)


def _answer_bonus(c: Candidate) -> float:
    term = _first_shared_term(c, lambda t: appears(c.answer, t))
    return ANSWER_TERM_BONUS[c.vocab.is_product(term)] if term else 0.0


def _missing_keywords(c: Candidate) -> int:
    return sum(1 for kw in c.keywords if not appears(c.query.normalized, kw))


@dataclass(frozen=True)
class ScoringRule:
    name: str
    predicate: Callable[[Candidate], bool]
    weight: Callable[[Candidate], float]


SCORING_RULES: Tuple[ScoringRule, ...] = (
    ScoringRule(
        "containment",
        lambda c: c.query.normalized == c.question or c.query.normalized in c.question or c.question in c.query.normalized,
        _containment,
    ),
    ScoringRule("phrase_pattern", _shared_phrase, lambda c: PHRASE_BONUS),
    ScoringRule("keywords", lambda c: bool(c.keyword_hits), _keyword_score),
    ScoringRule("special_keywords", lambda c: any(hit.special for hit in c.keyword_hits), _special_bonus),
    ScoringRule("token_overlap", lambda c: bool(c.query.overlap and _common_tokens(c)), _token_overlap),
    ScoringRule(
        "product_in_title",
        lambda c: bool(c.query.products) and c.query.raw.lower() in c.entry.question.lower(),
        lambda c: PRODUCT_TITLE_BONUS,
    ),
    ScoringRule("domain_term", lambda c: _first_shared_term(c, c.mentions) is not None, _term_bonus),
    ScoringRule("category", _category_matches, lambda c: CATEGORY_BONUS),
    ScoringRule(
        "category_hint",
        lambda c: bool(c.category) and c.category in c.query.category_labels,
        lambda c: CATEGORY_HINT_BONUS,
    ),
    ScoringRule("answer_term", lambda c: _answer_bonus(c) > 0, _answer_bonus),
    ScoringRule(
        "missing_keywords",
        lambda c: _missing_keywords(c) > 0,
        lambda c: -MISSING_KEYWORD_PENALTY * _missing_keywords(c),
    ),
)


class MatchingEngine:
    def __init__(
        self,
        vocab: Optional[Vocabulary] = None,
        rules: Sequence[ScoringRule] = SCORING_RULES,
        short_query_threshold: float = SHORT_QUERY_THRESHOLD,
        long_query_threshold: float = LONG_QUERY_THRESHOLD,
    ) -> None:
        self.vocab = vocab or Vocabulary()
        self.rules = tuple(rules)
        self.short_query_threshold = short_query_threshold
        self.long_query_threshold = long_query_threshold

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "MatchingEngine":
        return cls(
            vocab=Vocabulary.from_config(cfg),
            short_query_threshold=float(cfg.get("short_query_threshold", SHORT_QUERY_THRESHOLD)),
            long_query_threshold=float(cfg.get("long_query_threshold", LONG_QUERY_THRESHOLD)),
        )

    def score(self, query: Query, entry: Entry) -> Tuple[float, List[str]]:
        candidate = Candidate(query, entry, self.vocab)
        total = 0.0
        reasons: List[str] = []
        for rule in self.rules:
            if not rule.predicate(candidate):
                continue
            value = rule.weight(candidate)
            if value == 0:
                continue
            total += value
            reasons.append(f"{rule.name}={value:.2f}")
        return total, reasons

    def passes_guard(self, query: Query, entries: Sequence[Entry]) -> bool:
        if not query.tokens:
            return False
        if not query.is_short:
            return True
        if self.vocab.has_domain_signal(query.tokens):
            return True
        return any(normalize_text(entry.question) == query.normalized for entry in entries)

    def rank(self, utterance: str, entries: Sequence[Entry]) -> List[MatchResult]:
        query = Query(utterance, self.vocab)
        if not self.passes_guard(query, entries):
            LOGGER.debug("Short query without domain signal, skipping match: %r", utterance)
            return []

        threshold = self.short_query_threshold if query.is_short else self.long_query_threshold
        results: List[MatchResult] = []
        for entry in entries:
            confidence, reasons = self.score(query, entry)
            LOGGER.debug("%.2f %r %s", confidence, entry.question, reasons)
            if confidence > threshold:
                results.append(MatchResult(entry=entry, confidence=confidence, reasons=reasons))
        results.sort(key=lambda r: r.confidence, reverse=True)
        return results

    def find_best_match(self, utterance: str, entries: Sequence[Entry]) -> Optional[MatchResult]:
        results = self.rank(utterance, entries)
        if not results:
            LOGGER.info("No knowledge match for %r", utterance)
            return None
        best = results[0]
        LOGGER.info("Best match %r (%.2f): %s", best.entry.question, best.confidence, ", ".join(best.reasons))
        return best
