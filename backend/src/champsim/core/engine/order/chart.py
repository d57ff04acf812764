from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from champsim.core.engine.config import SEGMENTS
from champsim.core.engine.state import CombatantState, PhaseChart


@dataclass(frozen=True)
class PhaseSource:
    """
    Where a combatant's phases come from for one chart build.

    old is None  -> act on `new` as-is.
    old not None -> Speed change in effect from `segment` onward.
    """

    new: List[int]
    old: Optional[List[int]] = None
    segment: Optional[int] = None


def order_key(c: CombatantState) -> Tuple[float, float]:
    # DEX desc, then initiative desc; no initiative acts last among equals
    initiative = -math.inf if c.initiative is None else c.initiative
    return (-c.dexterity, -initiative)


def sort_by_dex_and_initiative(combatants: List[CombatantState]) -> None:
    combatants.sort(key=order_key)


def empty_chart() -> PhaseChart:
    return {segment: [] for segment in SEGMENTS}


def next_old_phase(old: Iterable[int], segment: Optional[int]) -> Optional[int]:
    for phase in old:
        if segment is None or phase > segment:
            return phase
    return None


def scheduled_phases(source: PhaseSource) -> List[int]:
    if source.old is None or source.segment is None:
        return list(source.new)

    # phases at or before the change belong to the old schedule and are not rewritten;
    # the new schedule starts no earlier than the next old phase
    upcoming = next_old_phase(source.old, source.segment)
    return [
        phase
        for phase in source.new
        if phase > source.segment and (upcoming is None or phase >= upcoming)
    ]


def build_phase_chart(
    combatants: List[CombatantState],
    sources: Dict[str, PhaseSource],
    ties: Dict[str, CombatantState],
) -> PhaseChart:
    """
    Places every combatant in the segments it acts in this round.

    `combatants` must already be sorted by DEX and initiative; that order is the
    order inside each segment. Combatants tied on DEX with the previous entrant of
    a segment and lacking an initiative are recorded into `ties`.
    """
    chart = empty_chart()
    for combatant in combatants:
        source = sources.get(combatant.id) or PhaseSource(new=combatant.phases)
        for phase in scheduled_phases(source):
            _add_phase(chart, combatant, phase, ties)
    return chart


def _add_phase(
    chart: PhaseChart,
    combatant: CombatantState,
    phase: int,
    ties: Dict[str, CombatantState],
) -> None:
    entrants = chart[phase]
    if combatant in entrants:
        return
    if entrants:
        prior = entrants[-1]
        if prior.dexterity == combatant.dexterity:
            for c in (prior, combatant):
                if c.initiative is None:
                    ties.setdefault(c.id, c)
    entrants.append(combatant)
