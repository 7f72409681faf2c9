"""Cheap pattern classifiers that run before any knowledge scoring."""

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from .logger import LOGGER
from .types import NavigationIntent

CHANGE_VERB_WORDS = (
    r"ändern|ändere|änderst|ändert|geändert|änderung|aktualisieren|aktualisiere|"
    r"zurücksetzen|zurücksetze|setzen|setze|festlegen|vergeben|neue[nrs]?|"
    r"change|update|reset|set|new"
)
TRANSFER_VERB_WORDS = CHANGE_VERB_WORDS + r"|überweisen|überweise|senden|schicken|transferieren|send|transfer"
CHANGE_VERBS = rf"\b({CHANGE_VERB_WORDS})\b"
TRAILING_PUNCT_RE = re.compile(r"[\s!?.,]+$")


@dataclass(frozen=True)
class NavigationRule:
    intent: NavigationIntent
    acknowledgment: str
    nouns: Optional[re.Pattern[str]] = None
    verbs: Optional[re.Pattern[str]] = re.compile(CHANGE_VERBS)
    aliases: FrozenSet[str] = field(default_factory=frozenset)

    def matches(self, lowered: str) -> bool:
        if self.nouns is not None:
            if self.verbs is not None and self.verbs.search(lowered) and self.nouns.search(lowered):
                return True
            bare = re.fullmatch(rf"(?:(?:meine?n?|my)\s+)?(?:{self.nouns.pattern})\s*\??", lowered)
            if bare:
                return True
        return TRAILING_PUNCT_RE.sub("", lowered) in self.aliases


NAVIGATION_RULES: Tuple[NavigationRule, ...] = (
    NavigationRule(
        intent=NavigationIntent.PIN,
        nouns=re.compile(r"\bpin(?:-?code|-?nummer)?\b|\bgeheimzahl\b"),
        acknowledgment="Ich öffne die PIN-Verwaltung. Dort kannst du deine PIN sicher ändern.",
    ),
    NavigationRule(
        intent=NavigationIntent.REFERENCE_ACCOUNT,
        nouns=re.compile(r"\breferenzkonto\b|\bverrechnungskonto\b|\breference account\b"),
        acknowledgment="Ich öffne die Einstellungen zu deinem Referenzkonto.",
    ),
    NavigationRule(
        intent=NavigationIntent.EMAIL,
        nouns=re.compile(r"\be-?mail(?:-?adresse)?\b|\bmailadresse\b|\bemail address\b"),
        acknowledgment="Ich öffne die Einstellungen, in denen du deine E-Mail-Adresse ändern kannst.",
    ),
    NavigationRule(
        intent=NavigationIntent.CHANGE_NUMBER,
        nouns=re.compile(
            r"\b(?:handy|mobil|mobilfunk|telefon|ruf|karten)nummer\b|\b(?:phone|mobile|card) number\b"
        ),
        acknowledgment="Ich öffne die Einstellungen, in denen du deine Nummer ändern kannst.",
    ),
    NavigationRule(
        intent=NavigationIntent.TRANSFER,
        nouns=re.compile(r"\bgeld\b|\büberweisung(?:en)?\b|\bmoney\b|\btransfer\b"),
        verbs=re.compile(rf"\b({TRANSFER_VERB_WORDS})\b"),
        acknowledgment="Ich öffne die Überweisung. Dort kannst du Geld auf dein Referenzkonto übertragen.",
    ),
    NavigationRule(
        intent=NavigationIntent.BENEFITS,
        aliases=frozenset({"benefits", "vorteile", "meine vorteile", "vorteilswelt", "my benefits"}),
        acknowledgment="Ich öffne deine Vorteilswelt.",
    ),
    NavigationRule(
        intent=NavigationIntent.SUPPORT,
        aliases=frozenset({"support", "kundenservice", "kontakt", "service", "customer support"}),
        acknowledgment="Ich öffne den Kundenservice. Dort findest du alle Kontaktmöglichkeiten.",
    ),
    NavigationRule(
        intent=NavigationIntent.FAQ,
        aliases=frozenset({"faq", "faqs", "häufige fragen"}),
        acknowledgment="Ich öffne die häufig gestellten Fragen.",
    ),
)


class NavigationDetector:
    def __init__(self, rules: Tuple[NavigationRule, ...] = NAVIGATION_RULES) -> None:
        self.rules = rules
        self._acks: Dict[NavigationIntent, str] = {rule.intent: rule.acknowledgment for rule in rules}

    def detect(self, utterance: str) -> Optional[NavigationIntent]:
        lowered = (utterance or "").strip().lower()
        if not lowered:
            return None
        for rule in self.rules:
            if rule.matches(lowered):
                LOGGER.debug("Navigation intent %s for %r", rule.intent.value, utterance)
                return rule.intent
        return None

    def acknowledgment(self, intent: NavigationIntent) -> str:
        return self._acks[intent]


GREETING_WORDS = r"(hallo|hi|hey|moin|servus|grüß gott|guten (morgen|tag|abend)|hello|good (morning|afternoon|evening))"


def _small_talk(body: str) -> re.Pattern[str]:
    # whole utterance only: an optional greeting, the phrase, trailing punctuation
    return re.compile(r"^(" + GREETING_WORDS + r"[\s,!.]*)?" + body + r"[\s!?.,]*$")


CONVERSATIONAL_PATTERNS: List[Tuple[str, re.Pattern[str], str]] = [
    (
        "greeting",
        re.compile(r"^" + GREETING_WORDS + r"( zusammen| du| bot)?[\s!.,]*$"),
        "Hallo! Ich bin dein digitaler Assistent. Wie kann ich dir heute helfen?",
    ),
    (
        "how_are_you",
        _small_talk(
            r"(und )?(wie geht(['’]?s| es)( dir| ihnen| euch)?( so)?( heute)?"
            r"|wie läuft(['’]?s| es)( so)?|how are you( doing)?( today)?)"
        ),
        "Mir geht es gut, danke der Nachfrage! Was kann ich für dich tun?",
    ),
    (
        "capabilities",
        _small_talk(
            r"(was kannst du( alles| so)*( machen| tun)?|was machst du( so)?"
            r"|wobei kannst du( mir)?( helfen)?|what can you do)"
        ),
        "Ich beantworte Fragen rund um deine Kreditkarte, die App und dein Konto und bringe dich "
        "direkt zu Einstellungen wie PIN, E-Mail-Adresse oder Referenzkonto.",
    ),
    (
        "identity",
        _small_talk(r"(wer bist du( eigentlich| denn)?|was bist du( eigentlich| denn)?|who are you|bist du ein (bot|mensch))"),
        "Ich bin der digitale Assistent deiner Bank und helfe dir bei Fragen rund um deine Produkte.",
    ),
    (
        "thanks",
        _small_talk(
            r"(danke|dankeschön|vielen dank|besten dank|merci|thanks|thank you)"
            r"( schön| sehr| dir| euch| ihnen| vielmals| so much| für (die|deine|ihre) hilfe)*"
        ),
        "Gern geschehen! Melde dich, wenn du noch etwas brauchst.",
    ),
    (
        "help",
        _small_talk(r"(hilfe|help|ich brauche hilfe|kannst du mir helfen)"),
        "Klar, ich helfe dir gern. Stell mir einfach deine Frage, zum Beispiel 'Wie sperre ich meine Karte?'.",
    ),
]


CONVERSATIONAL_FALLBACK = "Ich bin für dich da. Was möchtest du wissen?"


class ConversationalDetector:
    def __init__(self, patterns: List[Tuple[str, re.Pattern[str], str]] = CONVERSATIONAL_PATTERNS) -> None:
        self.patterns = patterns

    def category(self, utterance: str) -> Optional[str]:
        lowered = (utterance or "").strip().lower()
        for name, pattern, _ in self.patterns:
            if pattern.search(lowered):
                return name
        return None

    def detect(self, utterance: str) -> bool:
        return self.category(utterance) is not None

    def respond(self, utterance: str) -> str:
        lowered = (utterance or "").strip().lower()
        for _, pattern, reply in self.patterns:
            if pattern.search(lowered):
                return reply
        return CONVERSATIONAL_FALLBACK
