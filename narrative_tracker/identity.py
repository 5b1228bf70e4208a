"""Identity resolution — normalise candidate names and split novel from known.

Normalisation lowercases and strips every non-alphanumeric character, so
"Iron Sword", "iron-sword" and "IRON SWORD!" all resolve to one entity.
Identities are category-scoped: a place and a person with the same name are
two entities.
"""

import unicodedata
from dataclasses import dataclass, field

from narrative_tracker.models import REGISTRY_CATEGORIES, CandidateFact, EntityRecord


def normalize(name: str) -> str:
    """ "Café Münch" → "cafemunch" """
    text = unicodedata.normalize("NFKD", name.casefold())
    # NFKD splits accents into combining marks, which are not alphanumeric.
    return "".join(ch for ch in text if ch.isalnum())


def entity_id(category: str, name: str) -> str:
    return f"{category}:{normalize(name)}"


@dataclass
class Resolution:
    novel: list[CandidateFact] = field(default_factory=list)
    known: list[EntityRecord] = field(default_factory=list)


def resolve(
    candidates: list[CandidateFact],
    registries: dict[str, dict[str, EntityRecord]],
) -> Resolution:
    """Classify registry-backed candidates as novel or known.

    Candidates whose category has no registry (weather, time, combat,
    mechanics) are ignored here; the synchronizer handles them directly.
    Repeats within one batch collapse onto their first occurrence, and names
    that normalise to nothing are dropped. Registries are not modified.
    """
    result = Resolution()
    seen: set[str] = set()
    for fact in candidates:
        if fact.category not in REGISTRY_CATEGORIES:
            continue
        if not normalize(fact.name):
            continue
        eid = entity_id(fact.category, fact.name)
        if eid in seen:
            continue
        seen.add(eid)
        existing = registries.get(fact.category, {}).get(eid)
        if existing is not None:
            result.known.append(existing)
        else:
            result.novel.append(fact)
    return result
