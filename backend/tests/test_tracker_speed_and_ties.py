import asyncio

import pytest
from pydantic import ValidationError

from champsim.core.engine.commands import (
    AddCombatant,
    ChangeSpeed,
    MoveToPhase,
    NextRound,
    RegisterActor,
    SetInitiative,
    StartCombat,
    UpdatePhases,
)
from champsim.core.engine.config import TrackerConfig
from champsim.core.engine.rules.apply import apply_command
from champsim.core.engine.rules.turns import pending_changes
from champsim.core.engine.state import EncounterState


def _segments_of(state, actor_id):
    return [e.segment for e in state.phase_order if e.combatant.actor_id == actor_id]


def _twins(state, apply):
    return apply(
        state,
        RegisterActor(actor_id="a", name="Alice", dexterity=12, speed=2),
        RegisterActor(actor_id="b", name="Bob", dexterity=12, speed=2),
        AddCombatant(actor_id="a", combatant_id="A"),
        AddCombatant(actor_id="b", combatant_id="B"),
    )


def test_speed_change_is_recorded_then_applied_after_current_segment(encounter, apply):
    state, _ = apply(encounter, StartCombat(), NextRound(), MoveToPhase(segment=6, actor_id="a"))
    assert state.current.segment == 6

    state, events = apply(state, ChangeSpeed(actor_id="b", speed=6))
    assert [e["type"] for e in events] == ["SpeedChangeRecorded"]
    assert events[0]["payload"]["old_speed"] == 3
    assert events[0]["segment"] == 6
    assert state.spd_changes_pending
    assert _segments_of(state, "b") == [4, 8, 12]
    assert [c["name"] for c in pending_changes(state)] == ["Bob"]

    state, events = apply(state, UpdatePhases())
    assert events[-1]["type"] == "PhasesUpdated"
    assert events[-1]["payload"]["pending"] is False
    assert not state.spd_changes_pending
    assert _segments_of(state, "b") == [8, 10, 12]
    assert (state.turn, state.current.segment, state.current.actor_id) == (1, 6, "a")
    assert state.combat_order.get("B").phases == [2, 4, 6, 8, 10, 12]
    assert pending_changes(state) == []

    state, _ = apply(state, NextRound())
    assert _segments_of(state, "b") == [2, 4, 6, 8, 10, 12]


def test_speed_change_back_cancels(encounter, apply):
    state, _ = apply(encounter, StartCombat(), NextRound())
    state, _ = apply(state, ChangeSpeed(actor_id="b", speed=6))
    assert state.spd_changes_pending

    state, events = apply(state, ChangeSpeed(actor_id="b", speed=3))
    assert [e["type"] for e in events] == ["SpeedChangeCancelled"]
    assert not state.spd_changes_pending
    assert state.combat_order.pending_speed_changes == {}
    assert state.actors["b"].speed == 3


def test_speed_change_without_combatants_updates_the_sheet(apply):
    state, events = apply(
        EncounterState(),
        RegisterActor(actor_id="a", name="Alice", speed=3),
        ChangeSpeed(actor_id="a", speed=5),
    )
    assert [e["type"] for e in events] == ["SpeedChangeRecorded"]
    assert state.actors["a"].phases == [3, 5, 8, 10, 12]

    state, events = apply(state, AddCombatant(actor_id="a"))
    assert events[0]["combatant_id"] == "a-1"
    assert events[0]["payload"]["phases"] == [3, 5, 8, 10, 12]


def test_dexterity_ties_are_rolled_with_the_encounter_rng(apply):
    state, events = _twins(EncounterState().with_seed(42), apply)

    assert [e["type"] for e in events] == ["CombatantAdded", "InitiativeRolled", "InitiativeRolled"]
    seqs = [e["seq"] for e in events]
    assert seqs == list(range(seqs[0], seqs[0] + 3))
    assert state.seq == seqs[-1]
    rolled = {e["combatant_id"]: e["payload"] for e in events[1:]}
    assert set(rolled) == {"A", "B"}
    for payload in rolled.values():
        assert payload["roll"]["kind"] == "tie_break"
        assert 3 <= payload["initiative"] <= 18

    co = state.combat_order
    assert co.ties == set()
    assert co.get("A").initiative == rolled["A"]["initiative"]
    seg12 = [c.id for c in co.phase_chart[12]]
    expected = sorted(["A", "B"], key=lambda cid: -co.get(cid).initiative)
    if co.get("A").initiative != co.get("B").initiative:
        assert seg12 == expected


def test_same_seed_same_rolls(apply):
    first, _ = _twins(EncounterState.from_config(TrackerConfig(seed=7)), apply)
    second, _ = _twins(EncounterState.from_config(TrackerConfig(seed=7)), apply)
    for cid in ("A", "B"):
        assert first.combat_order.get(cid).initiative == second.combat_order.get(cid).initiative


def test_configured_formula(apply):
    cfg = TrackerConfig(seed=3, tie_break_formula=" 1d6+10 ")
    assert cfg.tie_break_formula == "1d6+10"
    state, _ = _twins(EncounterState.from_config(cfg), apply)
    for cid in ("A", "B"):
        assert 11 <= state.combat_order.get(cid).initiative <= 16


def test_bad_formula_is_rejected():
    with pytest.raises(ValidationError):
        TrackerConfig(tie_break_formula="banana")
    with pytest.raises(ValidationError):
        TrackerConfig(seed=1, colour="red")


def test_set_initiative_avoids_the_roll(apply):
    state, _ = apply(
        EncounterState(),
        RegisterActor(actor_id="a", name="Alice", dexterity=12),
        RegisterActor(actor_id="b", name="Bob", dexterity=12),
        AddCombatant(actor_id="a", combatant_id="A", initiative=4),
    )
    state, events = apply(state, AddCombatant(actor_id="b", combatant_id="B", initiative=9))
    assert [e["type"] for e in events] == ["CombatantAdded"]
    assert [c.id for c in state.combat_order.phase_chart[12]] == ["B", "A"]

    state, events = apply(state, SetInitiative(combatant_id="A", initiative=11))
    assert [e["type"] for e in events] == ["InitiativeSet"]
    assert [c.id for c in state.combat_order.phase_chart[12]] == ["A", "B"]


def test_failing_tie_break_propagates():
    async def boom(tied):
        raise RuntimeError("no dice")

    state = EncounterState(break_ties=boom)

    async def scenario():
        s = state
        for cmd in (
            RegisterActor(actor_id="a", name="Alice", dexterity=12),
            RegisterActor(actor_id="b", name="Bob", dexterity=12),
            AddCombatant(actor_id="a", combatant_id="A"),
            AddCombatant(actor_id="b", combatant_id="B"),
        ):
            s, _ = await apply_command(s, cmd)

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())
    assert {c.id for c in state.combat_order.ties} == {"A", "B"}


def test_speed_update_keeps_the_current_turn(encounter, apply):
    state, _ = apply(encounter, StartCombat(), NextRound(), MoveToPhase(segment=8, actor_id="b"))
    assert (state.turn, state.current.actor_id) == (3, "b")

    # Alice slows down; her 3 and 6 drop out of the turn list ahead of Bob
    state, _ = apply(state, ChangeSpeed(actor_id="a", speed=2), UpdatePhases())
    assert [(e.segment, e.combatant.id) for e in state.phase_order] == [
        (4, "B"),
        (8, "B"),
        (12, "A"),
        (12, "B"),
    ]
    assert state.current.segment == 8
    assert state.current.actor_id == "b"
    assert state.turn == 1
