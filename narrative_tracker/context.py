"""Handlebars rendering of the narrator-facing context block."""

from collections.abc import Callable
from typing import Any

import pybars

from narrative_tracker.models import StateStore, TrackerError

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}

DEFAULT_HEADER = "[JOURNEY CONTEXT]"
DEFAULT_FOOTER = "[/JOURNEY CONTEXT]"

DEFAULT_TEMPLATE = (
    "{{{header}}}\n"
    "Location: {{#if location}}{{{location}}}{{else}}Unknown{{/if}} ({{{terrain}}})\n"
    "{{#if faction}}Faction: {{{faction}}}\n{{/if}}"
    "{{#if weather}}Weather: {{{weather}}}\n{{/if}}"
    "{{#if time_of_day}}Time: {{{time_of_day}}}\n{{/if}}"
    "{{#if in_combat}}Status: IN COMBAT\n{{/if}}"
    "{{#if people}}Known people: {{{join people \", \"}}}\n{{/if}}"
    "{{#if items}}Items noted: {{{join items \", \"}}}\n{{/if}}"
    "{{#if resources}}Resources: {{{join resources \" | \"}}}\n{{/if}}"
    "{{#if quests}}Quests: {{{join quests \"; \"}}}\n{{/if}}"
    "{{#if statuses}}Active effects: {{{join statuses \", \"}}}\n{{/if}}"
    "{{#if activity}}Recent:\n{{#take activity 3}}- #{{index}} {{#if location}}{{{location}}}{{else}}unknown{{/if}}{{#if in_combat}} (combat){{/if}}\n{{/take}}{{/if}}"
    "{{{footer}}}"
)


class TemplateError(TrackerError):
    """Raised when a context template fails to compile or render."""


def _helper_take(this, options, items, count):
    """{{#take array N}}...{{/take}} — iterate over the first N items."""
    result = []
    for item in list(items)[:int(count)]:
        result.extend(options["fn"](item))
    return result


def _helper_join(this, items, separator=", "):
    return separator.join(str(item) for item in items)


_HELPERS: dict[str, Callable] = {
    "take": _helper_take,
    "join": _helper_join,
}


def render(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template; compiled templates are cached."""
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise TemplateError(f"Template error: {e}") from e


def build_context(
    store: StateStore,
    *,
    header: str | None = None,
    footer: str | None = None,
    people_limit: int = 8,
) -> dict[str, Any]:
    """Template variables for a store.

    Collections are flattened to display strings; people are the most
    recently seen ones, newest first.
    """
    current = store.current
    people = sorted(store.entities("person"), key=lambda e: e.last_seen, reverse=True)
    mechanics = store.mechanics
    return {
        "header": (header or "").strip() or DEFAULT_HEADER,
        "footer": (footer or "").strip() or DEFAULT_FOOTER,
        **current.model_dump(),
        "tags": list(store.tags),
        "people": [e.display_name for e in people[:people_limit]],
        "items": [e.display_name for e in store.entities("item")],
        "resources": [f"{name} {value}" for name, value in mechanics.resources.items()]
        + [f"{name} {value}" for name, value in mechanics.currencies.items()],
        "quests": [f"{name} ({status})" for name, status in mechanics.quests.items()],
        "statuses": list(mechanics.statuses),
        "activity": [a.model_dump() for a in store.activity],
        "cursor": store.cursor,
    }


def render_context_block(
    store: StateStore,
    template: str | None = None,
    **options: Any,
) -> str:
    """Render the context block for injection into a narrator prompt."""
    return render(template or DEFAULT_TEMPLATE, build_context(store, **options))
