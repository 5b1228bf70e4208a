"""Tests for monotonic feature gates."""

from narrative_tracker.gates import DEFAULT_GATE_TAGS, GateEvaluator, tags_rule
from narrative_tracker.models import Locked, StateStore, Unlocked


def _store(location: str | None = None, tags: tuple[str, ...] = (), cursor: int = 0) -> StateStore:
    store = StateStore(cursor=cursor)
    store.current.location = location
    store.add_tags(*tags)
    return store


def test_default_rules_start_locked() -> None:
    gates = GateEvaluator.from_tags()
    assert set(gates.gates) == set(DEFAULT_GATE_TAGS)
    assert all(isinstance(g, Locked) for g in gates.gates.values())


def test_evaluate_latches_on_trigger() -> None:
    gates = GateEvaluator.from_tags()
    store = _store("tavern", ("rest", "rumors", "social"), cursor=4)
    assert gates.evaluate("socialContextVisited", store) is True
    gate = gates.state("socialContextVisited")
    assert gate == Unlocked(since_cursor=4, reason="rumors, social at tavern")


def test_latch_is_monotonic() -> None:
    gates = GateEvaluator.from_tags()
    gates.evaluate("socialContextVisited", _store("tavern", ("social",), cursor=1))
    later = _store("forest", ("danger", "nature"), cursor=9)
    assert gates.evaluate("socialContextVisited", later) is True
    assert gates.state("socialContextVisited").since_cursor == 1


def test_untriggered_stays_locked() -> None:
    gates = GateEvaluator.from_tags()
    assert gates.evaluate("questBoardVisited", _store("forest", ("nature",))) is False
    assert isinstance(gates.state("questBoardVisited"), Locked)


def test_unknown_gate_is_locked() -> None:
    gates = GateEvaluator()
    assert gates.evaluate("nothingHere", _store()) is False
    assert gates.is_open("nothingHere") is False


def test_manual_latch_is_idempotent() -> None:
    gates = GateEvaluator()
    first = gates.latch("dungeonDelve", 3, "manual")
    second = gates.latch("dungeonDelve", 7, "again")
    assert first is second
    assert gates.state("dungeonDelve") == Unlocked(since_cursor=3, reason="manual")


def test_observe_returns_newly_opened() -> None:
    gates = GateEvaluator.from_tags()
    store = _store("guild", ("quests", "social"), cursor=2)
    assert sorted(gates.observe(store)) == ["questBoardVisited", "socialContextVisited"]
    assert gates.observe(store) == []


def test_reset_is_the_only_unlatch() -> None:
    gates = GateEvaluator.from_tags()
    gates.observe(_store("tavern", ("social",)))
    gates.reset()
    assert isinstance(gates.state("socialContextVisited"), Locked)


def test_custom_rule() -> None:
    gates = GateEvaluator()
    gates.register("combatSeen", lambda s: "fought" if s.current.in_combat else None)
    store = _store()
    assert gates.evaluate("combatSeen", store) is False
    store.current.in_combat = True
    assert gates.evaluate("combatSeen", store) is True


def test_restored_gates_keep_state() -> None:
    gates = GateEvaluator.from_tags(gates={"socialContextVisited": Unlocked(since_cursor=5, reason="r")})
    assert gates.is_open("socialContextVisited")
    assert isinstance(gates.gates["questBoardVisited"], Locked)


def test_tags_rule_reason_without_location() -> None:
    rule = tags_rule("quests")
    assert rule(_store(None, ("quests",))) == "quests at unknown location"
    assert rule(_store(None, ("social",))) is None
