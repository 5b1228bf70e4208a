"""Matcher capability and the catalog-driven regex implementation."""

from __future__ import annotations

import logging
import re
from typing import Protocol

from narrative_tracker import catalog
from narrative_tracker.models import CandidateFact, Message

from .rules import (
    combat_signals,
    extract_items,
    extract_people,
    last_match,
    mask_directives,
    mechanics_tags,
    parse_mechanics_tag,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — the synchronizer only depends on this
# ---------------------------------------------------------------------------

class Matcher(Protocol):
    def match(self, text: str) -> list[CandidateFact]: ...


# ---------------------------------------------------------------------------
# RegexMatcher — applies the static pattern catalog
# ---------------------------------------------------------------------------

class RegexMatcher:
    """Turns one message's text into candidate facts using the pattern catalog.

    Singleton categories (location, faction, weather, time) yield at most one
    candidate each: the match starting latest in the text. People and items
    yield every match in text order. Combat yields a single candidate carrying
    the signal count, and only when at least one signal fired.

    The catalog tables can be overridden per instance, which is how tests and
    alternative settings plug in smaller rule sets.
    """

    def __init__(
        self,
        *,
        locations: dict[str, dict] | None = None,
        factions: dict[str, dict] | None = None,
        weather: dict[str, list[str]] | None = None,
        times_of_day: dict[str, list[str]] | None = None,
    ) -> None:
        self._locations = locations if locations is not None else catalog.LOCATIONS
        self._factions = factions if factions is not None else catalog.FACTIONS

        self._location_table = {
            key: catalog.compile_all(entry["patterns"]) for key, entry in self._locations.items()
        }
        self._faction_table = {
            key: catalog.compile_all(entry["patterns"]) for key, entry in self._factions.items()
        }
        self._weather_table = {
            key: catalog.compile_all(p) for key, p in (weather or catalog.WEATHER).items()
        }
        self._time_table = {
            key: catalog.compile_all(p) for key, p in (times_of_day or catalog.TIMES_OF_DAY).items()
        }

        self._people = catalog.compile_all(catalog.PERSON_PATTERNS, flags=0)
        self._items = [(re.compile(p), direction) for p, direction in catalog.ITEM_PATTERNS]
        self._directives = catalog.compile_all(catalog.SYSTEM_DIRECTIVES)
        self._bracket = re.compile(catalog.BRACKET_SPAN)
        self._combat = catalog.compile_all(catalog.COMBAT_SIGNALS)
        self._combat_exclusions = catalog.compile_all(catalog.COMBAT_EXCLUSIONS)
        self._mechanics_block = re.compile(catalog.MECHANICS_BLOCK, re.IGNORECASE)
        self._mechanics = {
            kind: re.compile(p, re.IGNORECASE) for kind, p in catalog.MECHANICS_TAGS.items()
        }

    def location_info(self, key: str) -> dict:
        return self._locations.get(key, {})

    def match(self, text: str) -> list[CandidateFact]:
        if not text or not text.strip():
            return []

        facts: list[CandidateFact] = []

        hit = last_match(text, self._location_table)
        if hit:
            key, m = hit
            info = self._locations[key]
            facts.append(CandidateFact(
                category="location",
                name=key,
                attributes={
                    "type": info["type"],
                    "terrain": info["terrain"],
                    "tags": ",".join(info["tags"]),
                },
                raw_span=m.group(0),
            ))

        hit = last_match(text, self._faction_table)
        if hit:
            key, m = hit
            facts.append(CandidateFact(
                category="faction",
                name=key,
                attributes={"label": self._factions[key].get("label", key)},
                raw_span=m.group(0),
            ))

        hit = last_match(text, self._weather_table)
        if hit:
            facts.append(CandidateFact(category="weather", name=hit[0], raw_span=hit[1].group(0)))

        hit = last_match(text, self._time_table)
        if hit:
            facts.append(CandidateFact(category="time", name=hit[0], raw_span=hit[1].group(0)))

        signals, span = combat_signals(text, self._combat, self._combat_exclusions)
        if signals:
            facts.append(CandidateFact(
                category="combat", name="combat",
                attributes={"signals": str(signals)}, raw_span=span,
            ))

        for tag in mechanics_tags(text, self._mechanics_block):
            fact = parse_mechanics_tag(tag, self._mechanics)
            if fact is not None:
                facts.append(fact)

        narrative = mask_directives(text, self._bracket, self._directives)
        facts.extend(extract_people(narrative, self._people, catalog.PERSON_STOP_WORDS))
        facts.extend(extract_items(narrative, self._items, catalog.ITEM_SKIP_WORDS))

        logger.debug("matched %d candidate(s) in %d chars", len(facts), len(text))
        return facts


_default_matcher: RegexMatcher | None = None


def default_matcher() -> RegexMatcher:
    """Shared catalog matcher; compiled once, immutable after construction."""
    global _default_matcher
    if _default_matcher is None:
        _default_matcher = RegexMatcher()
    return _default_matcher


def extract(message: Message, matcher: Matcher | None = None) -> list[CandidateFact]:
    """Candidate facts for one message. Pure in the message text and catalog."""
    return (matcher or default_matcher()).match(message.text)
