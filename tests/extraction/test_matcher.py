"""Tests for the catalog-driven RegexMatcher."""

from narrative_tracker.extraction import RegexMatcher, default_matcher, extract
from narrative_tracker.models import Message


def _by_category(facts, category):
    return [f for f in facts if f.category == category]


def _names(facts, category):
    return [f.name for f in _by_category(facts, category)]


class TestLocations:
    def test_tavern(self) -> None:
        facts = default_matcher().match("You enter the tavern.")
        [loc] = _by_category(facts, "location")
        assert loc.name == "tavern"
        assert loc.attributes["type"] == "building"
        assert loc.attributes["terrain"] == "urban"
        assert loc.attributes["tags"].split(",") == ["social", "rest", "rumors"]
        assert loc.raw_span == "tavern"

    def test_last_mention_wins(self) -> None:
        facts = default_matcher().match("You leave the tavern and head into the forest.")
        assert _names(facts, "location") == ["forest"]

    def test_no_location(self) -> None:
        assert _by_category(default_matcher().match("You wait."), "location") == []

    def test_custom_catalog(self) -> None:
        matcher = RegexMatcher(locations={
            "lighthouse": {"patterns": [r"\blighthouse\b"], "type": "building",
                           "terrain": "coastal", "tags": ["lookout"]},
        })
        facts = matcher.match("The lighthouse beam sweeps the tavern.")
        assert _names(facts, "location") == ["lighthouse"]
        assert matcher.location_info("lighthouse")["tags"] == ["lookout"]


class TestSingletons:
    def test_faction_label(self) -> None:
        [faction] = _by_category(default_matcher().match("An imperial patrol rides by."), "faction")
        assert faction.name == "valdran_empire"
        assert faction.attributes["label"] == "Valdran Empire"

    def test_weather_and_time(self) -> None:
        facts = default_matcher().match("Rain drums on the roof as dusk settles.")
        assert _names(facts, "weather") == ["rain"]
        assert _names(facts, "time") == ["dusk"]


class TestPeople:
    def test_introduction_with_title(self) -> None:
        facts = default_matcher().match("You meet Captain Aldric at the docks.")
        assert set(_names(facts, "person")) == {"Aldric"}

    def test_speech_verb(self) -> None:
        facts = default_matcher().match('Marta says, "Welcome, traveller."')
        assert _names(facts, "person") == ["Marta"]

    def test_possessive(self) -> None:
        facts = default_matcher().match("You knock on Bren's door, then step into Bren's house.")
        assert _names(facts, "person") == ["Bren"]

    def test_stop_words_rejected(self) -> None:
        facts = default_matcher().match("Then Someone says nothing.")
        assert _names(facts, "person") == []

    def test_text_order(self) -> None:
        facts = default_matcher().match("Tomas says hello. Later you spoke to Ilse.")
        assert _names(facts, "person") == ["Tomas", "Ilse"]


class TestItems:
    def test_bracket_gain(self) -> None:
        [item] = _by_category(default_matcher().match("[+1 Iron Sword]"), "item")
        assert item.name == "Iron Sword"
        assert item.attributes == {"direction": "gained", "quantity": "1"}

    def test_bracket_loss(self) -> None:
        [item] = _by_category(default_matcher().match("[-Health Potion]"), "item")
        assert item.name == "Health Potion"
        assert item.attributes["direction"] == "lost"

    def test_acquired_tag(self) -> None:
        facts = default_matcher().match("[Acquired: Silver Key]")
        assert _names(facts, "item") == ["Silver Key"]

    def test_narrative_pickup(self) -> None:
        facts = default_matcher().match("You picked up a lantern.")
        assert _names(facts, "item") == ["lantern"]

    def test_skip_words(self) -> None:
        assert _names(default_matcher().match("You found something."), "item") == []


def test_empty_text_yields_nothing() -> None:
    assert default_matcher().match("") == []
    assert default_matcher().match("   \n") == []


def test_extract_uses_injected_matcher() -> None:
    class Fixed:
        def match(self, text):
            return []

    assert extract(Message(index=0, author="narrator", text="You enter the tavern."), Fixed()) == []


def test_default_matcher_is_shared() -> None:
    assert default_matcher() is default_matcher()
