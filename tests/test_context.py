"""Tests for the Handlebars context block."""

import pytest

from narrative_tracker.context import TemplateError, build_context, render, render_context_block
from narrative_tracker.models import Message, StateStore
from narrative_tracker.sync import rebuild


def _store(*texts: str) -> StateStore:
    return rebuild([Message(index=i, author="narrator", text=t) for i, t in enumerate(texts)])


# ── render ────────────────────────────────────────────────


def test_render_simple_variable():
    assert render("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_join_helper():
    assert render('{{{join names " / "}}}', {"names": ["a", "b"]}) == "a / b"


def test_render_take_helper():
    assert render("{{#take items 2}}{{this}};{{/take}}", {"items": ["a", "b", "c"]}) == "a;b;"


def test_render_invalid_template():
    with pytest.raises(TemplateError):
        render("{{> missing_partial}}", {})


# ── context block ─────────────────────────────────────────


def test_empty_store_block():
    block = render_context_block(StateStore())
    lines = block.splitlines()
    assert lines[0] == "[JOURNEY CONTEXT]"
    assert "Location: Unknown (plains)" in lines
    assert lines[-1] == "[/JOURNEY CONTEXT]"
    assert "Faction" not in block
    assert "IN COMBAT" not in block


def test_block_lists_known_state():
    store = _store(
        "You enter the tavern. Rain drums on the roof.",
        "Marta says hello. [+1 Iron Sword] [Gold +12]",
        "Elena attacks you with a blade.",
    )
    block = render_context_block(store)
    assert "Location: tavern (urban)" in block
    assert "Weather: rain" in block
    assert "Status: IN COMBAT" in block
    assert "Known people: Marta" in block
    assert "Items noted: Iron Sword" in block
    assert "Resources: Gold 12" in block
    assert "- #2 tavern (combat)" in block


def test_custom_header_and_footer():
    block = render_context_block(StateStore(), header="[WORLD]", footer="[/WORLD]")
    assert block.startswith("[WORLD]\n")
    assert block.endswith("[/WORLD]")


def test_custom_template():
    store = _store("You walk into the forest at dusk.")
    assert render_context_block(store, "{{location}}/{{time_of_day}}") == "forest/dusk"


def test_build_context_people_most_recent_first():
    store = _store("Tomas says hello.", "Ilse says goodbye.", "Tomas says hello again.")
    assert build_context(store)["people"] == ["Tomas", "Ilse"]
    assert build_context(store, people_limit=1)["people"] == ["Tomas"]


def test_text_is_not_html_escaped():
    block = render_context_block(StateStore(), header="[Hearth & Home]")
    assert block.startswith("[Hearth & Home]")
