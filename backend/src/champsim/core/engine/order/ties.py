from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Union

from champsim.core.engine.state import CombatantState

logger = logging.getLogger("champsim.order.ties")

TieBreaker = Callable[[List[CombatantState]], Union[Awaitable[Any], Any]]


class TieResolver:
    """
    Holds the combatants tied on DEX and hands the unresolved ones to an injected
    tie-break procedure (usually a dice roll).
    """

    def __init__(self, break_ties: TieBreaker):
        self._break_ties = break_ties
        self._ties: Dict[str, CombatantState] = {}

    @property
    def pending(self) -> Dict[str, CombatantState]:
        return self._ties

    def reset(self) -> Dict[str, CombatantState]:
        self._ties = {}
        return self._ties

    def discard(self, combatant_id: str) -> None:
        self._ties.pop(combatant_id, None)

    def unresolved(self) -> List[CombatantState]:
        return [c for c in self._ties.values() if c.initiative is None]

    async def resolve(self) -> bool:
        """
        Breaks outstanding ties. Returns True if the tie-break procedure ran.
        If it raises, the ties stay recorded so a later call can retry.
        """
        tied = self.unresolved()
        ran = False
        if tied:
            logger.debug(f"Ties: breaking for {[c.id for c in tied]}")
            result = self._break_ties(tied)
            if inspect.isawaitable(result):
                await result
            ran = True
        self._ties.clear()
        return ran
