from typing import List, Optional, Sequence

from .types import Entry, MatchResult

FALLBACK_RESPONSE = (
    "Entschuldigung, ich kann deine Anfrage gerade nicht beantworten. "
    "Bitte versuche es später erneut oder wende dich an unseren Kundenservice."
)
EMPTY_UTTERANCE_RESPONSE = "Bitte stell mir eine Frage, damit ich dir helfen kann."

PARTIAL_MATCH_MIN_CONFIDENCE = 0.4

INSTRUCTION_TEMPLATE = """Du bist {assistant_name}, der digitale Assistent der {bank_name} in der Banking-App.
Regeln:
- Antworte auf Deutsch, freundlich und in höchstens drei kurzen Sätzen.
- Beantworte nur Fragen zu Produkten und Services der {bank_name} (Kreditkarte, App, Konto, Zahlungen, Kredit).
- Lehne Fragen außerhalb dieses Bereichs höflich ab und verweise auf den Kundenservice.
- Erfinde keine Konditionen, Gebühren oder Telefonnummern, die nicht im Wissen unten stehen.
- Frage niemals nach PIN, Passwort, TAN oder vollständigen Kartennummern.
- Wenn du unsicher bist, empfiehl den Kundenservice.

Wissen:
{knowledge}"""

PARTIAL_MATCH_TEMPLATE = (
    '\n\nDie Frage ähnelt: "{question}" mit der Antwort: "{answer}". '
    "Nutze das als Referenz, falls es passt."
)


def select_context_entries(
    entries: Sequence[Entry],
    match: Optional[MatchResult],
    max_entries: int,
) -> List[Entry]:
    """Entries of the partial match's category first, then others, capped."""
    if max_entries <= 0:
        return []
    selected: List[Entry] = []
    if match is not None:
        selected.append(match.entry)
        selected.extend(e for e in entries if e.category == match.entry.category and e is not match.entry)
    selected = selected[:max_entries]
    for entry in entries:
        if len(selected) >= max_entries:
            break
        if entry not in selected:
            selected.append(entry)
    return selected


def format_knowledge(entries: Sequence[Entry]) -> str:
    if not entries:
        return "(kein Wissen verfügbar)"
    return "\n\n".join(f"F: {entry.question}\nA: {entry.answer}" for entry in entries)


def build_system_instruction(
    entries: Sequence[Entry],
    match: Optional[MatchResult] = None,
    max_entries: int = 8,
    assistant_name: str = "Hanna",
    bank_name: str = "Hanseatic Bank",
) -> str:
    context = select_context_entries(entries, match, max_entries)
    instruction = INSTRUCTION_TEMPLATE.format(
        assistant_name=assistant_name,
        bank_name=bank_name,
        knowledge=format_knowledge(context),
    )
    if match is not None and match.confidence > PARTIAL_MATCH_MIN_CONFIDENCE:
        instruction += PARTIAL_MATCH_TEMPLATE.format(question=match.entry.question, answer=match.entry.answer)
    return instruction
