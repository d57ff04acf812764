import asyncio

import pytest

from champsim.core.engine.order import CombatOrder, OrderStatus, TieResolver


def _ids(entrants):
    return [c.id for c in entrants]


def test_resolving_ties_sorts_the_cached_chart(combatant, make_order):
    order, breaker = make_order(
        [combatant("X", 10, [12]), combatant("Y", 10, [6, 12])],
        initiatives={"X": 5, "Y": 9},
    )
    asyncio.run(order.calculate_phase_order())

    assert breaker.calls == [["X", "Y"]]
    assert order.ties == set()
    assert _ids(order.phase_chart[12]) == ["Y", "X"]
    assert order.get("X").initiative == 5
    assert order.status is OrderStatus.SETTLED


def test_chart_stays_cached_after_resolution(combatant, make_order):
    order, _ = make_order(
        [combatant("X", 10, [12]), combatant("Y", 10, [12])],
        initiatives={"X": 5, "Y": 9},
    )
    order.calculate_phase_chart()
    assert order.ties

    asyncio.run(order.resolve_ties())
    chart = order.phase_chart
    assert order.ties == set()
    assert order.calculate_phase_chart(spd_changed=False) is chart
    assert _ids(chart[12]) == ["Y", "X"]


def test_resolved_initiatives_are_not_rolled_again(combatant, make_order):
    order, breaker = make_order(
        [combatant("X", 10, [12]), combatant("Y", 10, [12])],
        initiatives={"X": 5, "Y": 9},
    )
    asyncio.run(order.calculate_phase_order())
    order.add_combatant(combatant("Z", 4, [12]))
    asyncio.run(order.calculate_phase_order())

    assert breaker.calls == [["X", "Y"]]
    assert _ids(order.phase_chart[12]) == ["Y", "X", "Z"]


def test_failing_tie_break_keeps_the_ties(combatant, make_order):
    order, breaker = make_order(
        [combatant("X", 10, [12]), combatant("Y", 10, [12])],
        initiatives={"X": 1, "Y": 2},
        fail=True,
    )
    with pytest.raises(RuntimeError):
        asyncio.run(order.calculate_phase_order())

    assert {c.id for c in order.ties} == {"X", "Y"}
    assert order.status is OrderStatus.AWAITING_TIE_BREAK

    breaker.fail = False
    asyncio.run(order.resolve_ties())
    assert order.ties == set()
    assert _ids(order.phase_chart[12]) == ["Y", "X"]
    assert len(breaker.calls) == 2


def test_plain_function_tie_breaker(combatant):
    seen = []

    def tie_break(tied):
        seen.extend(c.id for c in tied)
        for n, c in enumerate(tied):
            c.initiative = n

    order = CombatOrder(2, [combatant("X", 10, [12]), combatant("Y", 10, [12])], break_ties=tie_break)
    asyncio.run(order.calculate_phase_order())

    assert sorted(seen) == ["X", "Y"]
    assert order.ties == set()


def test_nothing_to_break_skips_the_callback(combatant, make_order):
    order, breaker = make_order([combatant("X", 10, [12]), combatant("Y", 11, [12])])
    asyncio.run(order.calculate_phase_order())
    assert breaker.calls == []


def test_removing_a_tied_combatant_drops_it_from_the_ties(combatant, make_order):
    order, _ = make_order([combatant("X", 10, [12]), combatant("Y", 10, [12])])
    order.calculate_phase_chart()
    order.remove_combatant("X")
    assert {c.id for c in order.ties} == {"Y"}


def test_resolver_reports_whether_it_ran(combatant):
    calls = []
    resolver = TieResolver(lambda tied: calls.append(len(tied)))
    assert asyncio.run(resolver.resolve()) is False

    order = CombatOrder(2, [combatant("X", 10, [12])], break_ties=lambda tied: None)
    x = order.get("X")
    resolver.pending[x.id] = x
    assert asyncio.run(resolver.resolve()) is True
    assert calls == [1]
    assert resolver.pending == {}
