import asyncio

from champsim.core.engine.commands import (
    AddCombatant,
    ChangeSpeed,
    MoveToPhase,
    NextRound,
    RegisterActor,
    StartCombat,
    UpdatePhases,
)
from champsim.core.engine.order import OrderStatus
from champsim.core.engine.speed_chart import phases_for_speed
from champsim.core.engine.state import EncounterState


def test_three_combatant_round(combatant, make_order):
    order, breaker = make_order(
        [
            combatant("A", 12, phases_for_speed(3), speed=3),
            combatant("B", 12, phases_for_speed(3), speed=3),
            combatant("C", 8, phases_for_speed(2), speed=2),
        ],
        initiatives={"A": 3, "B": 5},
    )
    asyncio.run(order.calculate_phase_order(current_segment=None))
    chart = order.phase_chart

    assert [c.id for c in chart[4]] == ["B", "A"]
    assert [c.id for c in chart[6]] == ["C"]
    assert [c.id for c in chart[8]] == ["B", "A"]
    assert [c.id for c in chart[12]] == ["B", "A", "C"]
    assert breaker.calls == [["A", "B"]]

    turns = [e.combatant.id for e in order.linearize_phases(round_=2)]
    assert turns == ["B", "A", "C", "B", "A", "B", "A", "C"]
    assert [e.segment for e in order.linearize_phases(round_=1)] == [12, 12, 12]
    assert order.status is OrderStatus.SETTLED


def test_mid_round_speed_change_end_to_end(combatant, make_order):
    order, _ = make_order(
        [
            combatant("A", 12, phases_for_speed(3), speed=3, initiative=3),
            combatant("C", 8, phases_for_speed(2), speed=2),
        ]
    )
    asyncio.run(order.calculate_phase_order())

    # A goes to SPD 4 after acting in segment 4
    order.change_speed("A", 4)
    asyncio.run(order.calculate_phase_order(current_segment=4, spd_changed=True))
    segments = [(e.segment, e.combatant.id) for e in order.linearize_phases(round_=2)]
    assert segments == [(6, "C"), (9, "A"), (12, "A"), (12, "C")]

    order.round = 3
    asyncio.run(order.calculate_phase_order())
    segments = [(e.segment, e.combatant.id) for e in order.linearize_phases()]
    assert segments == [(3, "A"), (6, "A"), (6, "C"), (9, "A"), (12, "A"), (12, "C")]


def test_mid_round_speed_change_moves_turn_to_next_surviving_phase(apply):
    state, _ = apply(
        EncounterState(),
        RegisterActor(actor_id="a", name="A", dexterity=12, speed=3),
        RegisterActor(actor_id="c", name="C", dexterity=8, speed=2),
        AddCombatant(actor_id="a", combatant_id="A"),
        AddCombatant(actor_id="c", combatant_id="C"),
        StartCombat(),
        NextRound(),
        MoveToPhase(segment=8, actor_id="a"),
    )
    assert state.turn == 2

    # A's phase in segment 8 is dropped by the new schedule
    state, _ = apply(state, ChangeSpeed(actor_id="a", speed=4), UpdatePhases())
    assert [(e.segment, e.combatant.id) for e in state.phase_order] == [
        (6, "C"),
        (12, "A"),
        (12, "C"),
    ]
    assert state.turn == 1
    assert (state.current.segment, state.current.actor_id) == (12, "a")
