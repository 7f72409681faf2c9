import pytest

from resolver.loader import default_entries
from resolver.matching import MatchingEngine, Query, ScoringRule, Vocabulary, appears
from resolver.types import Entry


@pytest.fixture
def engine():
    return MatchingEngine()


@pytest.fixture
def card_entry():
    return Entry(
        question="Wie sperre ich meine Kreditkarte?",
        answer="Du kannst deine Karte in der App unter 'Karte' > 'Karte sperren' sofort sperren.",
        keywords=("sperren", "kreditkarte", "karte", "verloren", "gestohlen"),
        category="Kreditkarte",
    )


def test_every_question_matches_itself_exactly(engine):
    entries = default_entries()
    for entry in entries:
        result = engine.find_best_match(entry.question, entries)
        assert result is not None
        assert result.entry == entry
        assert "containment=3.00" in result.reasons
        assert result.confidence > 0.75


def test_short_question_verbatim_passes_the_guard(engine):
    entry = Entry(question="Öffnungszeiten?", answer="Wir sind online immer für dich da.")
    result = engine.find_best_match("Öffnungszeiten", [entry])
    assert result is not None and result.entry == entry


def test_app_question_clears_high_threshold(engine):
    entry = Entry(
        question="Was ist die Hanseatic Bank Mobile App?",
        answer="Die App zeigt dir alle Umsätze deiner Kreditkarte.",
        keywords=("app",),
        category="App",
    )
    result = engine.find_best_match("Was ist die App?", [entry])
    assert result is not None
    assert result.confidence > 0.75
    assert result.entry.answer == entry.answer
    assert any(reason.startswith("keywords=") for reason in result.reasons)


def test_short_query_guard_blocks_generic_words(engine):
    entry = Entry(question="Wie begrüße ich den Bot?", answer="Sag einfach hallo.", keywords=("hallo",))
    assert engine.find_best_match("hallo", [entry]) is None
    assert engine.rank("xyz", default_entries()) == []


def test_short_query_with_product_name_matches(engine):
    result = engine.find_best_match("GenialCard", default_entries())
    assert result is not None
    assert result.entry.question == "Was ist die GenialCard?"
    assert "product_in_title=0.50" in result.reasons


def test_long_query_without_signal_returns_none(engine):
    assert engine.find_best_match("Wie wird das Wetter morgen?", default_entries()) is None


def test_adding_entry_keywords_never_lowers_score(engine, card_entry):
    utterances = [
        "meine karte ist weg",
        "meine karte ist weg verloren",
        "meine karte ist weg verloren gestohlen",
        "meine karte ist weg verloren gestohlen sperren",
    ]
    scores = [engine.score(Query(u, engine.vocab), card_entry)[0] for u in utterances]
    assert scores == sorted(scores)
    assert scores[-1] > scores[0]


def test_missing_keywords_are_penalised(engine, card_entry):
    _, reasons = engine.score(Query("meine karte ist weg", engine.vocab), card_entry)
    assert "missing_keywords=-0.20" in reasons


def test_results_sorted_by_confidence(engine):
    results = engine.rank("Kreditkarte sperren verloren", default_entries())
    assert results
    assert results[0].entry.question == "Wie sperre ich meine Kreditkarte?"
    confidences = [r.confidence for r in results]
    assert confidences == sorted(confidences, reverse=True)


def test_score_is_a_fold_over_the_rule_table():
    rules = [
        ScoringRule("always", lambda c: True, lambda c: 1.0),
        ScoringRule("never", lambda c: False, lambda c: 5.0),
        ScoringRule("question_words", lambda c: True, lambda c: 0.1 * len(c.question_tokens)),
    ]
    engine = MatchingEngine(rules=rules)
    entry = Entry(question="Was ist TAN?", answer="Eine Transaktionsnummer.")
    score, reasons = engine.score(Query("tan", engine.vocab), entry)
    assert score == pytest.approx(1.3)
    assert reasons == ["always=1.00", "question_words=0.30"]


def test_vocabulary_from_config_overrides_products():
    vocab = Vocabulary.from_config({"product_names": ["Platincard"]})
    assert vocab.is_product("platincard")
    assert not vocab.is_product("genialcard")
    assert vocab.has_domain_signal(["platincard"])
    assert vocab.has_domain_signal(["konto"])


def test_appears_matches_word_starts_only():
    assert appears("meine kreditkarte", "kredit")
    assert not appears("meine kreditkarte", "karte")
    assert appears("zwei überweisungen", "überweisung")


NEUTRAL_OPENING = "hallo zusammen bitte um auskunft"


def test_appending_keywords_never_lowers_score_for_any_default_entry(engine):
    for entry in default_entries():
        utterance = NEUTRAL_OPENING
        first = previous = engine.score(Query(utterance, engine.vocab), entry)[0]
        for keyword in entry.keywords:
            utterance = f"{utterance} {keyword}"
            current = engine.score(Query(utterance, engine.vocab), entry)[0]
            assert current >= previous, (entry.question, utterance)
            previous = current
        assert previous > first


def test_domain_term_prefers_products_whatever_the_order():
    vocab = Vocabulary(important_terms=("karte", "genialcard"))
    engine = MatchingEngine(vocab=vocab)
    entry = Entry(question="Was ist die GenialCard Karte?", answer="Eine Visa-Karte.", keywords=("genialcard", "karte"))
    for utterance in ("genialcard", "genialcard karte"):
        _, reasons = engine.score(Query(utterance, vocab), entry)
        assert "domain_term=0.40" in reasons


def test_shared_phrase_adds_pattern_bonus(engine):
    lost = Entry(question="Was tun, wenn die Karte verloren ist?", answer="Sperre sie sofort.")
    block = Entry(question="Wie sperre ich meine Karte?", answer="In der App.")
    query = Query("hab meine karte verloren", engine.vocab)
    assert "phrase_pattern=2.00" in engine.score(query, lost)[1]
    assert not any(reason.startswith("phrase_pattern") for reason in engine.score(query, block)[1])
