"""Knowledge parsers.

Two external schemas converge on :class:`Entry`:

* delimited text, one ``question | keywords | answer`` record per line;
* structured JSON in one of three shapes (envelope, flat record list,
  nested category tree), tried in that order.

``parse_source`` is the module boundary: any failure becomes an empty
result plus a logged warning.
"""

import json
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

from .errors import ParseFailure
from .logger import LOGGER
from .text import clean_keywords, derive_keywords
from .types import UNKNOWN_CATEGORY, Entry, SourceRecord

FORMAT_DELIMITED = "delimited"
FORMAT_STRUCTURED = "structured"

CATEGORY_PREFIX_RE = re.compile(r"^(cat|category|kategorie)[_\-:]", re.IGNORECASE)


def parse_delimited(content: str, source_id: str = "") -> List[Entry]:
    entries: List[Entry] = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = [part.strip() for part in line.split("|")]
        if len(parts) < 3:
            continue
        question, raw_keywords, answer = parts[0], parts[1], "|".join(parts[2:]).strip()
        if not question or not answer:
            continue
        keywords = clean_keywords(raw_keywords.split(","))
        entries.append(
            Entry(
                question=question,
                answer=answer,
                keywords=tuple(keywords or derive_keywords(question)),
                source_id=source_id,
            )
        )
    return entries


def detect_shape(data: Any) -> Optional[str]:
    if isinstance(data, dict) and isinstance(data.get("faqs"), list):
        return "envelope"
    if isinstance(data, list):
        return "records"
    if isinstance(data, dict):
        return "tree"
    return None


def parse_structured(content: str, source_id: str = "") -> List[Entry]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ParseFailure(source_id, f"invalid JSON ({exc.msg} at line {exc.lineno})") from exc

    shape = detect_shape(data)
    handler = SHAPE_HANDLERS.get(shape or "")
    if handler is None:
        raise ParseFailure(source_id, f"unrecognised structure ({type(data).__name__})")
    LOGGER.debug("Source %s detected as %s", source_id, shape)
    return handler(data, source_id)


def _parse_envelope(data: Dict[str, Any], source_id: str) -> List[Entry]:
    categories: Dict[str, str] = {}
    for category in data.get("categories") or []:
        if isinstance(category, dict) and category.get("id") is not None:
            categories[str(category["id"])] = _text(category.get("name")) or UNKNOWN_CATEGORY

    entries: List[Entry] = []
    for record in data["faqs"]:
        if not isinstance(record, dict):
            continue
        category_id = record.get("category_id")
        category = categories.get(str(category_id), UNKNOWN_CATEGORY) if category_id is not None else UNKNOWN_CATEGORY
        entry = _record_to_entry(record, category, source_id)
        if entry is not None:
            entries.append(entry)
    return entries


def _parse_records(data: List[Any], source_id: str) -> List[Entry]:
    entries: List[Entry] = []
    for record in data:
        if not isinstance(record, dict):
            continue
        category = _category_from_id(record.get("category_id")) or _text(record.get("category")) or UNKNOWN_CATEGORY
        entry = _record_to_entry(record, category, source_id)
        if entry is not None:
            entries.append(entry)
    return entries


def _parse_tree(data: Dict[str, Any], source_id: str) -> List[Entry]:
    entries: List[Entry] = []
    _walk_tree(data, UNKNOWN_CATEGORY, source_id, entries)
    return entries


def _walk_tree(node: Dict[str, Any], category: str, source_id: str, out: List[Entry]) -> None:
    for key, value in node.items():
        if not isinstance(key, str) or not key.strip():
            continue
        if isinstance(value, dict):
            _walk_tree(value, key.strip(), source_id, out)
        elif isinstance(value, str) and value.strip():
            question, answer = key.strip(), value.strip()
            out.append(
                Entry(
                    question=question,
                    answer=answer,
                    keywords=tuple(derive_keywords(question, answer)),
                    category=category,
                    source_id=source_id,
                )
            )


SHAPE_HANDLERS: Dict[str, Callable[[Any, str], List[Entry]]] = {
    "envelope": _parse_envelope,
    "records": _parse_records,
    "tree": _parse_tree,
}


def _record_to_entry(record: Dict[str, Any], category: str, source_id: str) -> Optional[Entry]:
    question = _text(record.get("question"))
    answer = _text(record.get("answer"))
    if not question or not answer:
        return None
    keywords = _keywords(record.get("keywords")) or derive_keywords(question)
    tags = record.get("tags") or []
    if isinstance(tags, str):
        tags = tags.split(",")
    elif not isinstance(tags, list):
        LOGGER.debug("Ignoring tags of %r in %s", question, source_id)
        tags = []
    return Entry(
        question=question,
        answer=answer,
        keywords=tuple(keywords),
        category=category,
        tags=frozenset(clean_keywords(str(tag) for tag in tags if tag is not None)),
        source_id=source_id,
    )


def _keywords(raw: Any) -> List[str]:
    if isinstance(raw, str):
        return clean_keywords(raw.split(","))
    if isinstance(raw, list):
        return clean_keywords(str(kw) for kw in raw if kw is not None)
    return []


def _category_from_id(raw: Any) -> str:
    text = _text(raw)
    if not text:
        return ""
    label = CATEGORY_PREFIX_RE.sub("", text).replace("_", " ").replace("-", " ").strip()
    return label[:1].upper() + label[1:]


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


PARSERS: Dict[str, Callable[[str, str], List[Entry]]] = {
    FORMAT_DELIMITED: parse_delimited,
    FORMAT_STRUCTURED: parse_structured,
}


def parse_source(source: SourceRecord) -> List[Entry]:
    parser = PARSERS.get(source.format)
    try:
        if source.error is not None:
            raise ParseFailure(source.id, f"unreadable ({source.error})")
        if parser is None:
            raise ParseFailure(source.id, f"unsupported format {source.format!r}")
        entries = parser(source.content, source.id)
    except ParseFailure as exc:
        LOGGER.warning("Skipping knowledge source %s: %s", exc.source_id, exc.reason)
        return []
    except (TypeError, ValueError, RecursionError) as exc:
        LOGGER.warning("Skipping knowledge source %s: %s", source.id, exc)
        return []
    LOGGER.info("Loaded %d entries from %s", len(entries), source.id)
    return entries


def entries_to_envelope(entries: Iterable[Entry], version: str = "1") -> Dict[str, Any]:
    names: List[str] = []
    faqs: List[Dict[str, Any]] = []
    for idx, entry in enumerate(entries, start=1):
        if entry.category not in names:
            names.append(entry.category)
        faqs.append(
            {
                "id": f"faq-{idx}",
                "question": entry.question,
                "answer": entry.answer,
                "keywords": list(entry.keywords),
                "category_id": f"cat-{names.index(entry.category) + 1}",
                "tags": sorted(entry.tags),
            }
        )
    return {
        "meta": {"version": version},
        "categories": [{"id": f"cat-{idx}", "name": name} for idx, name in enumerate(names, start=1)],
        "faqs": faqs,
    }


def default_entries() -> List[Entry]:
    source_id = "builtin"
    return [
        Entry(
            question="Was ist die Hanseatic Bank Mobile App?",
            answer="Mit der Hanseatic Bank Mobile App behältst du deine Kreditkarte jederzeit im Blick: Umsätze ansehen, Teilzahlungen steuern, Karte sperren und Freigaben per SecureGo plus erteilen.",
            keywords=("app", "mobile app", "hanseatic"),
            category="App",
            source_id=source_id,
        ),
        Entry(
            question="Wie sperre ich meine Kreditkarte?",
            answer="Du kannst deine Karte in der App unter 'Karte' > 'Karte sperren' sofort sperren. Alternativ erreichst du den Sperr-Notruf rund um die Uhr unter 116 116.",
            keywords=("sperren", "kreditkarte", "karte", "verloren", "gestohlen"),
            category="Kreditkarte",
            source_id=source_id,
        ),
        Entry(
            question="Was ist die GenialCard?",
            answer="Die GenialCard ist unsere kostenlose Visa-Kreditkarte ohne Jahresgebühr, mit der du weltweit gebührenfrei bezahlen und Bargeld abheben kannst.",
            keywords=("genialcard", "visa", "kreditkarte", "jahresgebühr"),
            category="Kreditkarte",
            source_id=source_id,
        ),
        Entry(
            question="Wie kann ich mein Kreditkartenlimit erhöhen?",
            answer="Eine Limiterhöhung kannst du in der App unter 'Service' > 'Limit ändern' beantragen. Wir prüfen deinen Antrag und melden uns in der Regel innerhalb weniger Tage.",
            keywords=("limit", "erhöhen", "kreditrahmen", "verfügungsrahmen"),
            category="Kreditkarte",
            source_id=source_id,
        ),
        Entry(
            question="Wie funktioniert die Teilzahlung?",
            answer="Bei der Teilzahlung zahlst du monatlich nur einen Teilbetrag deiner Kreditkartenabrechnung zurück. Den Rückzahlungsbetrag kannst du in der App jederzeit anpassen.",
            keywords=("teilzahlung", "rückzahlung", "raten", "abrechnung"),
            category="Zahlungen",
            source_id=source_id,
        ),
        Entry(
            question="Wann erhalte ich meine Kreditkartenabrechnung?",
            answer="Deine Abrechnung wird einmal im Monat erstellt und steht dir anschließend in der App im Postfach zur Verfügung.",
            keywords=("abrechnung", "rechnung", "monatlich", "postfach"),
            category="Zahlungen",
            source_id=source_id,
        ),
        Entry(
            question="Kann ich Apple Pay oder Google Pay nutzen?",
            answer="Ja, du kannst deine Kreditkarte in Apple Pay und Google Pay hinterlegen und damit kontaktlos mit dem Smartphone bezahlen.",
            keywords=("apple pay", "google pay", "kontaktlos", "smartphone"),
            category="App",
            source_id=source_id,
        ),
        Entry(
            question="Was ist SecureGo plus?",
            answer="SecureGo plus ist die App, mit der du Online-Zahlungen mit deiner Kreditkarte sicher freigibst.",
            keywords=("securego", "freigabe", "online-zahlung", "sicherheit"),
            category="Sicherheit",
            source_id=source_id,
        ),
        Entry(
            question="Wie beantrage ich einen Ratenkredit?",
            answer="Einen Ratenkredit kannst du online auf unserer Website beantragen. Nach der Prüfung erhältst du ein individuelles Angebot.",
            keywords=("ratenkredit", "kredit", "beantragen", "darlehen"),
            category="Kredit",
            source_id=source_id,
        ),
        Entry(
            question="Wie ändere ich meine Adresse?",
            answer="Deine Adresse änderst du in der App unter 'Profil' > 'Persönliche Daten'. Bei einem Umzug ins Ausland melde dich bitte bei unserem Kundenservice.",
            keywords=("adresse", "umzug", "anschrift", "ändern"),
            category="Konto",
            source_id=source_id,
        ),
    ]
