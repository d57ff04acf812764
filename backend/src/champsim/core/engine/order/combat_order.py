from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from champsim.core.engine.config import SEGMENTS
from champsim.core.engine.order.chart import (
    PhaseSource,
    build_phase_chart,
    order_key,
    sort_by_dex_and_initiative,
)
from champsim.core.engine.order.linearize import linearize_phases
from champsim.core.engine.order.ties import TieBreaker, TieResolver
from champsim.core.engine.speed_chart import phases_for_speed
from champsim.core.engine.state import (
    CombatantState,
    Initiative,
    PhaseChart,
    PhaseEntry,
    SpeedChange,
)
from champsim.core.errors import PreconditionError, UnknownCombatantError

logger = logging.getLogger("champsim.order")


class OrderStatus(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    SETTLED = "settled"
    PENDING_SPEED_CHANGE = "pending_speed_change"
    AWAITING_TIE_BREAK = "awaiting_tie_break"


@dataclass
class _AppliedChange:
    old_phases: List[int]
    segment: int


class CombatOrder:
    """
    Incrementally maintained phase chart for one encounter.

    Roster and characteristic changes only mark the order as changed; the chart is
    rebuilt on the next `calculate_phase_chart`. Speed changes wait until a
    recompute with `spd_changed=True` and never rewrite segments already passed.
    """

    def __init__(
        self,
        round_: int,
        combatants: Iterable[Any],
        *,
        break_ties: TieBreaker,
    ):
        if not callable(break_ties):
            raise PreconditionError("break_ties must be callable")
        self._round = round_
        self._combatants: List[CombatantState] = []
        self._by_id: Dict[str, CombatantState] = {}
        for descriptor in combatants:
            self._insert(CombatantState.from_descriptor(descriptor))

        self._ties = TieResolver(break_ties)

        self._has_changed = False
        self._has_dex_changes = False
        self._resolving = False
        self._phase_chart: Optional[PhaseChart] = None
        self._chart_segment: Optional[int] = None

        # actor_id -> change
        self._pending: Dict[str, SpeedChange] = {}
        self._changes_are_pending = False
        self._applied: Dict[str, _AppliedChange] = {}

    # --- read side ---

    @property
    def phase_chart(self) -> PhaseChart:
        if self._phase_chart is None:
            raise PreconditionError("Can't get phase_chart before it's been calculated")
        return self._phase_chart

    @property
    def ties(self) -> set[CombatantState]:
        return set(self._ties.pending.values())

    @property
    def has_dex_changes(self) -> bool:
        return self._has_dex_changes

    @property
    def changes_are_pending(self) -> bool:
        return self._changes_are_pending

    @property
    def pending_speed_changes(self) -> Dict[str, SpeedChange]:
        return dict(self._pending)

    @property
    def combatants(self) -> List[CombatantState]:
        return list(self._combatants)

    @property
    def status(self) -> OrderStatus:
        if self._phase_chart is None:
            return OrderStatus.UNINITIALIZED
        if self._ties.pending:
            return OrderStatus.AWAITING_TIE_BREAK
        if self._pending:
            return OrderStatus.PENDING_SPEED_CHANGE
        return OrderStatus.SETTLED

    @property
    def round(self) -> int:
        return self._round

    @round.setter
    def round(self, new_round: int) -> None:
        if new_round == self._round:
            return
        self._round = new_round
        if self._applied:
            # a new round runs entirely on the committed phases
            self._applied.clear()
            self._mark_changed()

    def get(self, combatant_id: str) -> CombatantState:
        return self._require(combatant_id)

    def __contains__(self, combatant_id: object) -> bool:
        return combatant_id in self._by_id

    def __len__(self) -> int:
        return len(self._combatants)

    # --- roster ---

    def add_combatant(self, descriptor: Any) -> CombatantState:
        combatant = CombatantState.from_descriptor(descriptor)
        if combatant.id in self._by_id:
            raise PreconditionError(f"Combatant {combatant.id!r} is already in the order")
        self._insert(combatant)
        self._mark_changed()
        return combatant

    def remove_combatant(self, combatant_id: str) -> None:
        combatant = self._require(combatant_id)
        self._combatants.remove(combatant)
        del self._by_id[combatant_id]
        self._ties.discard(combatant_id)

        if not any(c.actor_id == combatant.actor_id for c in self._combatants):
            self._pending.pop(combatant.actor_id, None)
            self._applied.pop(combatant.actor_id, None)
        self._mark_changed()

    def update_initiative(self, combatant_id: str, initiative: Optional[Initiative]) -> None:
        combatant = self._require(combatant_id)
        combatant.initiative = initiative
        if not self._resolving:
            # tie-break results are sorted into the cached chart by resolve_ties
            self._mark_changed()

    def change_dexterity(self, combatant_id: str, dexterity: int) -> None:
        combatant = self._require(combatant_id)
        combatant.dexterity = int(dexterity)
        self._has_dex_changes = True
        self._mark_changed()

    def clear_dex_changes(self) -> None:
        self._has_dex_changes = False

    def change_speed(
        self,
        combatant_id: str,
        new_speed: Optional[int],
        new_phases: Optional[Iterable[int]] = None,
    ) -> bool:
        """
        Records a Speed change for the combatant's actor; it is folded into the
        chart by the next recompute with `spd_changed=True`.

        Returns False when the change cancels an earlier pending one
        (the Speed went back to what it was).
        """
        combatant = self._require(combatant_id)
        if new_phases is None:
            if new_speed is None:
                raise PreconditionError("change_speed needs a speed or a phase list")
            new_phases = phases_for_speed(new_speed)
        phases = sorted(set(int(p) for p in new_phases))
        for seg in phases:
            if seg not in SEGMENTS:
                raise PreconditionError(f"segment {seg} is outside 1..12")

        existing = self._pending.get(combatant.actor_id)
        if existing is not None:
            old_speed, old_phases = existing.old_speed, existing.old_phases
        else:
            old_speed, old_phases = combatant.speed, list(combatant.phases)

        if old_speed is not None and old_speed == new_speed:
            if existing is not None:
                logger.debug(f"Speed change for {combatant.actor_id} cancelled")
            self._pending.pop(combatant.actor_id, None)
            return False

        self._pending[combatant.actor_id] = SpeedChange(
            old_speed=old_speed,
            old_phases=old_phases,
            new_speed=new_speed,
            new_phases=phases,
        )
        logger.debug(
            f"Speed change pending for {combatant.actor_id}: {old_phases} -> {phases}"
        )
        return True

    # --- computation ---

    def calculate_phase_chart(
        self,
        *,
        current_segment: Optional[int] = None,
        spd_changed: bool = False,
        spd_changes: Optional[Mapping[str, SpeedChange]] = None,
    ) -> PhaseChart:
        if spd_changes:
            self._pending.update(spd_changes)
        if spd_changed:
            self._mark_changed()
        if self._changes_are_pending:
            spd_changed = True
        if self._phase_chart is not None and not self._has_changed:
            return self._phase_chart
        self._has_changed = False

        ties = self._ties.reset()
        sort_by_dex_and_initiative(self._combatants)

        sources: Dict[str, PhaseSource] = {}
        for combatant in self._combatants:
            source = self._phases_for(combatant, current_segment, spd_changed)
            if source is not None:
                sources[combatant.id] = source

        chart = build_phase_chart(self._combatants, sources, ties)
        self._phase_chart = chart
        self._chart_segment = current_segment
        logger.debug(
            f"Phase chart rebuilt: {len(self._combatants)} combatants, "
            f"segment={current_segment}, spd_changed={spd_changed}, ties={len(ties)}"
        )

        if spd_changed:
            if ties:
                self._changes_are_pending = True
            else:
                self._fold_pending(current_segment)
        return chart

    async def calculate_phase_order(
        self,
        *,
        current_segment: Optional[int] = None,
        spd_changed: bool = False,
    ) -> None:
        chart = self.calculate_phase_chart(
            current_segment=current_segment, spd_changed=spd_changed
        )
        await self.resolve_ties()
        self._sort_segments(chart)

    async def resolve_ties(self) -> None:
        self._resolving = True
        try:
            ran = await self._ties.resolve()
        finally:
            self._resolving = False
        if ran and self._phase_chart is not None:
            self._sort_segments(self._phase_chart)
        if self._changes_are_pending:
            self._fold_pending(self._chart_segment)

    def linearize_phases(
        self,
        *,
        phases: Optional[PhaseChart] = None,
        round_: Optional[int] = None,
    ) -> List[PhaseEntry]:
        return linearize_phases(
            self.phase_chart if phases is None else phases,
            self._round if round_ is None else round_,
        )

    # --- internals ---

    def _insert(self, combatant: CombatantState) -> None:
        if combatant.id in self._by_id:
            raise PreconditionError(f"Combatant {combatant.id!r} is already in the order")
        self._combatants.append(combatant)
        self._by_id[combatant.id] = combatant

    def _require(self, combatant_id: str) -> CombatantState:
        combatant = self._by_id.get(combatant_id)
        if combatant is None:
            raise UnknownCombatantError(combatant_id)
        return combatant

    def _mark_changed(self) -> None:
        self._has_changed = True

    @staticmethod
    def _sort_segments(chart: PhaseChart) -> None:
        for segment in SEGMENTS:
            chart[segment].sort(key=order_key)

    def _phases_for(
        self,
        combatant: CombatantState,
        current_segment: Optional[int],
        spd_changed: bool,
    ) -> Optional[PhaseSource]:
        change = self._pending.get(combatant.actor_id)
        if change is not None and spd_changed:
            return PhaseSource(
                new=change.new_phases,
                old=list(combatant.phases),
                segment=current_segment,
            )
        applied = self._applied.get(combatant.actor_id)
        if applied is not None:
            return PhaseSource(
                new=combatant.phases,
                old=applied.old_phases,
                segment=applied.segment,
            )
        return None

    def _fold_pending(self, segment: Optional[int]) -> None:
        for actor_id, change in self._pending.items():
            members = [c for c in self._combatants if c.actor_id == actor_id]
            if not members:
                continue
            if segment is not None:
                self._applied[actor_id] = _AppliedChange(
                    old_phases=list(members[0].phases), segment=segment
                )
            for c in members:
                c.phases = list(change.new_phases)
                c.speed = change.new_speed
            logger.debug(f"Speed change for {actor_id} applied after segment {segment}")
        self._pending.clear()
        self._changes_are_pending = False
