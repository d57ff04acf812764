from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from champsim.core.engine.dice import roll_formula
from champsim.core.engine.events import ev_initiative_rolled
from champsim.core.engine.rules.turns import _bump
from champsim.core.engine.state import CombatantState

if TYPE_CHECKING:
    from champsim.core.engine.state import EncounterState

logger = logging.getLogger("champsim.tracker")


class DiceTieBreaker:
    """
    Default tie-break procedure of a tracked encounter: rolls the configured
    formula for each tied combatant with the encounter's RNG and records the
    result as its initiative.
    """

    def __init__(self, state: "EncounterState"):
        self._state = state

    async def __call__(self, tied: List[CombatantState]) -> None:
        state = self._state
        for combatant in tied:
            roll = roll_formula(state.rng, state.tie_break_formula, kind="tie_break")
            state.combat_order.update_initiative(combatant.id, roll.total)
            logger.info(f"Tie break: {combatant.id} rolled {roll.total} ({roll.formula})")

            seq, t = _bump(state)
            state.outbox.append(
                ev_initiative_rolled(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    combatant_id=combatant.id,
                    actor_id=combatant.actor_id,
                    roll=roll,
                ).model_dump()
            )
