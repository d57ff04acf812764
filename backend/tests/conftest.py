from __future__ import annotations

import asyncio

import pytest

from champsim.core.engine.commands import AddCombatant, RegisterActor
from champsim.core.engine.order import CombatOrder
from champsim.core.engine.rules.apply import apply_command
from champsim.core.engine.state import EncounterState


class RecordingTieBreaker:
    """Assigns fixed initiatives to tied combatants and remembers each batch."""

    def __init__(self, initiatives=None, fail=False):
        self.order = None
        self.calls = []
        self.initiatives = dict(initiatives or {})
        self.fail = fail

    async def __call__(self, tied):
        self.calls.append(sorted(c.id for c in tied))
        if self.fail:
            raise RuntimeError("dice tray on fire")
        for c in tied:
            self.order.update_initiative(c.id, self.initiatives.get(c.id, 0))


@pytest.fixture()
def combatant():
    def _make(cid, dexterity, phases, initiative=None, actor_id=None, speed=None):
        return {
            "id": cid,
            "actor_id": actor_id or cid.lower(),
            "dexterity": dexterity,
            "initiative": initiative,
            "phases": phases,
            "speed": speed,
            "name": cid,
        }

    return _make


@pytest.fixture()
def make_order():
    def _make(combatants, initiatives=None, round_=2, fail=False):
        breaker = RecordingTieBreaker(initiatives, fail=fail)
        order = CombatOrder(round_, combatants, break_ties=breaker)
        breaker.order = order
        return order, breaker

    return _make


def run(state, *cmds):
    """Применить команды по очереди, вернуть state и события последней."""
    events = []
    for cmd in cmds:
        state, events = asyncio.run(apply_command(state, cmd))
    return state, events


@pytest.fixture()
def encounter():
    # Alice: DEX 18 SPD 4 -> 3,6,9,12; Bob: DEX 12 SPD 3 -> 4,8,12
    state = EncounterState().with_seed(1234)
    state, _ = run(
        state,
        RegisterActor(actor_id="a", name="Alice", dexterity=18, speed=4),
        RegisterActor(actor_id="b", name="Bob", dexterity=12, speed=3),
        AddCombatant(actor_id="a", combatant_id="A"),
        AddCombatant(actor_id="b", combatant_id="B"),
    )
    return state


@pytest.fixture()
def apply():
    return run
