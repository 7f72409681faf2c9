import pytest

from resolver.intents import CONVERSATIONAL_FALLBACK, ConversationalDetector, NavigationDetector
from resolver.types import NavigationIntent


@pytest.fixture
def navigation():
    return NavigationDetector()


@pytest.fixture
def conversation():
    return ConversationalDetector()


@pytest.mark.parametrize(
    "utterance, intent",
    [
        ("Wie ändere ich meine PIN?", NavigationIntent.PIN),
        ("PIN", NavigationIntent.PIN),
        ("pin?", NavigationIntent.PIN),
        ("Meine PIN zurücksetzen", NavigationIntent.PIN),
        ("Referenzkonto ändern", NavigationIntent.REFERENCE_ACCOUNT),
        ("Referenzkonto", NavigationIntent.REFERENCE_ACCOUNT),
        ("E-Mail-Adresse aktualisieren", NavigationIntent.EMAIL),
        ("change my email", NavigationIntent.EMAIL),
        ("Handynummer ändern", NavigationIntent.CHANGE_NUMBER),
        ("Geld überweisen", NavigationIntent.TRANSFER),
        ("Überweisung?", NavigationIntent.TRANSFER),
        ("Vorteile", NavigationIntent.BENEFITS),
        ("Support!", NavigationIntent.SUPPORT),
        ("FAQ", NavigationIntent.FAQ),
        ("häufige Fragen", NavigationIntent.FAQ),
    ],
)
def test_navigation_patterns(navigation, utterance, intent):
    assert navigation.detect(utterance) == intent


@pytest.mark.parametrize(
    "utterance",
    ["Was ist die GenialCard?", "Hallo", "Wie sperre ich meine Kreditkarte?", "", "   "],
)
def test_navigation_ignores_other_utterances(navigation, utterance):
    assert navigation.detect(utterance) is None


def test_navigation_priority_order(navigation):
    # both PIN and e-mail vocabulary present; PIN comes first
    assert navigation.detect("PIN per E-Mail ändern") == NavigationIntent.PIN


def test_every_intent_has_one_acknowledgment(navigation):
    for intent in NavigationIntent:
        assert navigation.acknowledgment(intent)
    assert "PIN" in navigation.acknowledgment(NavigationIntent.PIN)


@pytest.mark.parametrize(
    "utterance, category",
    [
        ("Hallo!", "greeting"),
        ("Guten Morgen", "greeting"),
        ("Hallo, wie geht's?", "how_are_you"),
        ("Was kannst du?", "capabilities"),
        ("Wer bist du eigentlich?", "identity"),
        ("Danke dir", "thanks"),
        ("Hilfe", "help"),
        ("Vielen Dank für die Hilfe!", "thanks"),
        ("Hey, wer bist du?", "identity"),
        ("Wie geht es dir heute?", "how_are_you"),
        ("Wobei kannst du mir helfen?", "capabilities"),
    ],
)
def test_conversational_categories(conversation, utterance, category):
    assert conversation.detect(utterance)
    assert conversation.category(utterance) == category


def test_greeting_with_question_is_not_small_talk(conversation):
    assert not conversation.detect("Hallo, was ist die GenialCard?")
    assert not conversation.detect("Wie sperre ich meine Karte?")
    assert not conversation.detect("Danke, und wie sperre ich meine Kreditkarte?")
    assert not conversation.detect("Wie geht es weiter, wenn ich meine Kreditkarte sperren will?")
    assert not conversation.detect("Was kannst du mir zur GenialCard sagen?")
    assert not conversation.detect("Wer bist du und wie sperre ich die Karte?")


def test_respond_uses_priority_chain_and_catch_all(conversation):
    assert conversation.respond("Danke!").startswith("Gern geschehen")
    assert conversation.respond("irgendwas") == CONVERSATIONAL_FALLBACK
