"""Curated banking vocabulary used by the matching engine.

Product names mark "special" keywords. Important terms are the domain signal
that lets a short query through the short-query guard. Category hints map a
term found in an utterance to the category label it implies.
"""

from typing import Dict, Tuple

PRODUCT_NAMES: Tuple[str, ...] = (
    "genialcard",
    "goldcard",
    "hanseatic",
    "mobile app",
    "app",
    "kreditkarte",
    "visa",
    "mastercard",
    "ratenkredit",
    "kredit",
    "tagesgeld",
    "festgeld",
    "referenzkonto",
    "securego",
    "apple pay",
    "google pay",
    "online-banking",
    "banking",
)

IMPORTANT_TERMS: Tuple[str, ...] = PRODUCT_NAMES + (
    "karte",
    "konto",
    "pin",
    "tan",
    "passwort",
    "überweisung",
    "lastschrift",
    "limit",
    "zinsen",
    "gebühr",
    "gebühren",
    "abrechnung",
    "rechnung",
    "sperren",
    "sperre",
    "adresse",
    "kündigen",
    "kündigung",
    "teilzahlung",
    "rückzahlung",
    "ausland",
    "bargeld",
    "geldautomat",
    "versicherung",
    "card",
    "account",
    "transfer",
    "payment",
    "fee",
    "loan",
    "password",
    "statement",
)

CATEGORY_HINTS: Dict[str, str] = {
    "genialcard": "Kreditkarte",
    "goldcard": "Kreditkarte",
    "kreditkarte": "Kreditkarte",
    "karte": "Kreditkarte",
    "card": "Kreditkarte",
    "app": "App",
    "securego": "App",
    "banking": "App",
    "pin": "Sicherheit",
    "tan": "Sicherheit",
    "passwort": "Sicherheit",
    "password": "Sicherheit",
    "sperren": "Sicherheit",
    "konto": "Konto",
    "referenzkonto": "Konto",
    "account": "Konto",
    "überweisung": "Zahlungen",
    "lastschrift": "Zahlungen",
    "teilzahlung": "Zahlungen",
    "transfer": "Zahlungen",
    "payment": "Zahlungen",
    "kredit": "Kredit",
    "ratenkredit": "Kredit",
    "loan": "Kredit",
}

# Word pairs that name one common request; an utterance and a question that
# both contain every word of a pair are about the same topic.
PHRASE_PATTERNS: Tuple[Tuple[str, ...], ...] = (
    ("passwort", "ändern"),
    ("change", "password"),
    ("geld", "überweis"),
    ("transfer", "money"),
    ("karte", "verloren"),
    ("lost", "card"),
    ("opening", "hours"),
)
