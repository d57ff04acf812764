from __future__ import annotations

from typing import List

from champsim.core.engine.config import SEGMENTS, starting_segment
from champsim.core.engine.state import PhaseChart, PhaseEntry


def linearize_phases(phases: PhaseChart, round_: int) -> List[PhaseEntry]:
    """Flattens a phase chart into the turns of one round, in acting order."""
    order: List[PhaseEntry] = []
    for segment in range(starting_segment(round_), SEGMENTS[-1] + 1):
        for combatant in phases.get(segment, ()):
            order.append(
                PhaseEntry(
                    combatant=combatant,
                    segment=segment,
                    dexterity=combatant.dexterity,
                )
            )
    return order
