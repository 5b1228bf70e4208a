"""Feature gates — monotonic unlock flags consulted by consumer modules.

A gate is Locked until its rule first fires, then Unlocked(since_cursor,
reason) for the rest of the conversation. Only reset() locks gates again.
Consumers ask before generating; a locked gate means "produce nothing".

Rules are plain callables returning a reason string when triggered. The
stock rules look at the store's context tags:
  socialContextVisited  social or rumors tag (taverns, markets, villages)
  questBoardVisited     quests tag (guild halls)
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from narrative_tracker.models import Locked, StateStore, Unlocked

logger = logging.getLogger(__name__)

GateRule = Callable[[StateStore], str | None]

DEFAULT_GATE_TAGS: dict[str, list[str]] = {
    "socialContextVisited": ["social", "rumors"],
    "questBoardVisited": ["quests"],
}


def tags_rule(*tags: str) -> GateRule:
    """Rule that fires when the store's tags intersect the given tags."""
    required = frozenset(tags)

    def rule(store: StateStore) -> str | None:
        hit = sorted(required.intersection(store.tags))
        if not hit:
            return None
        where = store.current.location or "unknown location"
        return f"{', '.join(hit)} at {where}"

    return rule


class GateEvaluator:
    def __init__(
        self,
        rules: dict[str, GateRule] | None = None,
        gates: dict[str, Locked | Unlocked] | None = None,
    ) -> None:
        self._rules: dict[str, GateRule] = dict(rules or {})
        self._gates: dict[str, Locked | Unlocked] = dict(gates or {})

    @classmethod
    def from_tags(
        cls,
        gate_tags: dict[str, list[str]] | None = None,
        gates: dict[str, Locked | Unlocked] | None = None,
    ) -> GateEvaluator:
        source = DEFAULT_GATE_TAGS if gate_tags is None else gate_tags
        return cls({name: tags_rule(*tags) for name, tags in source.items()}, gates)

    @property
    def gates(self) -> dict[str, Locked | Unlocked]:
        """Current gate states, including locked gates that have a rule."""
        result: dict[str, Locked | Unlocked] = {name: Locked() for name in self._rules}
        result.update(self._gates)
        return result

    def register(self, name: str, rule: GateRule) -> None:
        self._rules[name] = rule

    def state(self, name: str) -> Locked | Unlocked:
        return self._gates.get(name, Locked())

    def is_open(self, name: str) -> bool:
        return isinstance(self._gates.get(name), Unlocked)

    def evaluate(self, name: str, store: StateStore) -> bool:
        """True if the gate is open, latching it first if its rule fires now."""
        if self.is_open(name):
            return True
        rule = self._rules.get(name)
        if rule is None:
            return False
        reason = rule(store)
        if reason is None:
            return False
        self.latch(name, store.cursor, reason)
        return True

    def latch(self, name: str, cursor: int = -1, reason: str = "manual") -> Unlocked:
        """Open a gate. Idempotent: an open gate keeps its original cursor and reason."""
        existing = self._gates.get(name)
        if isinstance(existing, Unlocked):
            return existing
        gate = Unlocked(since_cursor=cursor, reason=reason)
        self._gates[name] = gate
        logger.info("Gate %s unlocked at cursor %d (%s)", name, cursor, reason)
        return gate

    def observe(self, store: StateStore) -> list[str]:
        """Evaluate every ruled gate against the store; return the newly opened ones."""
        opened = []
        for name in self._rules:
            if not self.is_open(name) and self.evaluate(name, store):
                opened.append(name)
        return opened

    def reset(self) -> None:
        self._gates.clear()
