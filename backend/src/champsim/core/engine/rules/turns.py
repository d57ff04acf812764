from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from champsim.core.engine.events import ev_round_started, ev_turn_started
from champsim.core.engine.state import CombatantState, CurrentTurn, EncounterState
from champsim.core.errors import CombatOrderError

logger = logging.getLogger("champsim.tracker")


def _bump(state: EncounterState) -> Tuple[int, int]:
    state.seq += 1
    state.t += 1
    return state.seq, state.t


def drain_outbox(state: EncounterState) -> List[dict]:
    out = list(state.outbox)
    state.outbox.clear()
    return out


# --- построение ходов ---


def setup_turns(state: EncounterState) -> List[CombatantState]:
    """
    Rebuilds the turns of the current round from the combat order's phase chart.
    """
    co = state.combat_order
    co.round = state.round
    state.phase_order = co.linearize_phases(phases=co.phase_chart, round_=state.round)
    turns = [entry.combatant for entry in state.phase_order]

    clamp_turn(state, turns)
    if state.combat_started and state.turn is None and turns:
        state.turn = 0
    state.turns = turns
    set_current(state)

    # ties hold the speed change open until they're broken
    state.spd_changes_pending = bool(co.pending_speed_changes) or co.changes_are_pending
    return turns


def clamp_turn(state: EncounterState, turns: List[CombatantState]) -> None:
    if state.turn is None:
        return
    if not turns:
        state.turn = None
        return
    # число ходов могло уменьшиться
    state.turn = min(state.turn, len(turns) - 1)


def set_current(state: EncounterState) -> CurrentTurn:
    current = CurrentTurn(round=state.round, turn=state.turn)
    if state.turn is not None and state.phase_order:
        entry = state.phase_order[state.turn]
        current.combatant_id = entry.combatant.id
        current.actor_id = entry.combatant.actor_id
        current.segment = entry.segment
        current.dexterity = entry.dexterity
    state.current = current
    return current


async def recalculate_phase_order(state: EncounterState, spd_changed: bool = False) -> None:
    co = state.combat_order
    co.round = state.round
    segment, combatant_id = state.current.segment, state.current.combatant_id
    await co.calculate_phase_order(current_segment=segment, spd_changed=spd_changed)
    co.clear_dex_changes()
    setup_turns(state)
    relocate_turn(state, segment, combatant_id)


def relocate_turn(state: EncounterState, segment: Optional[int], combatant_id: Optional[str]) -> None:
    """
    Puts the turn back on the entry that was current before a rebuild.
    Speed changes drop entries from passed segments, so the old index may point elsewhere.
    """
    if state.turn is None or segment is None or combatant_id is None:
        return
    target = None
    for i, entry in enumerate(state.phase_order):
        if entry.segment == segment and entry.combatant.id == combatant_id:
            target = i
            break
    if target is None:
        # текущий ход исчез: первый ход не раньше того же сегмента
        later = [i for i, entry in enumerate(state.phase_order) if entry.segment >= segment]
        if not later:
            return
        target = later[0]
    state.turn = target
    set_current(state)


def pending_changes(state: EncounterState) -> List[dict]:
    """Pending Speed changes, by actor name."""
    out = []
    for actor_id, change in state.combat_order.pending_speed_changes.items():
        actor = state.actors.get(actor_id)
        out.append(
            {
                "actor_id": actor_id,
                "name": actor.name if actor else actor_id,
                "old_speed": change.old_speed,
                "old_phases": list(change.old_phases),
                "new_speed": change.new_speed,
                "new_phases": list(change.new_phases),
            }
        )
    out.sort(key=lambda c: c["name"])
    return out


# --- перемещение по ходам ---


def _turn_started(state: EncounterState) -> dict:
    seq, t = _bump(state)
    cur = state.current
    return ev_turn_started(
        seq=seq,
        t=t,
        round_=state.round,
        turn=cur.turn if cur.turn is not None else -1,
        segment=cur.segment,
        combatant_id=cur.combatant_id,
        actor_id=cur.actor_id,
        dexterity=cur.dexterity,
    ).model_dump()


async def _after_turn_change(state: EncounterState) -> None:
    segment = state.current.segment
    set_current(state)
    # DEX changes re-sort the chart once the segment they happened in is over
    if state.combat_order.has_dex_changes and segment != state.current.segment:
        logger.debug(f"Re-sorting for DEX changes at segment {state.current.segment}")
        await recalculate_phase_order(state)
        set_current(state)


async def change_round(
    state: EncounterState, new_round: int, turn: Optional[int] = 0
) -> List[dict]:
    events: List[dict] = []
    state.round = new_round
    state.turn = turn
    # a new round has no segment in progress yet
    state.current = CurrentTurn(round=new_round, turn=turn)
    await recalculate_phase_order(state)
    events.extend(drain_outbox(state))

    seq, t = _bump(state)
    events.append(
        ev_round_started(seq=seq, t=t, round_=state.round, turns=len(state.turns)).model_dump()
    )
    return events


async def next_turn(state: EncounterState) -> List[dict]:
    if state.turn is None:
        raise CombatOrderError("No turn in progress")
    nxt = state.turn + 1
    if nxt >= len(state.turns):
        events = await change_round(state, state.round + 1, turn=0)
    else:
        events = []
        state.turn = nxt
        await _after_turn_change(state)
        events.extend(drain_outbox(state))
    events.append(_turn_started(state))
    return events


async def previous_turn(state: EncounterState) -> List[dict]:
    if state.turn is None:
        raise CombatOrderError("No turn in progress")
    prev = state.turn - 1
    if prev < 0:
        events = await change_round(state, state.round - 1, turn=0)
        state.turn = max(len(state.turns) - 1, 0) if state.turns else None
        set_current(state)
    else:
        events = []
        state.turn = prev
        await _after_turn_change(state)
        events.extend(drain_outbox(state))
    events.append(_turn_started(state))
    return events


async def next_round(state: EncounterState) -> List[dict]:
    events = await change_round(state, state.round + 1, turn=0)
    events.append(_turn_started(state))
    return events


async def previous_round(state: EncounterState) -> List[dict]:
    events = await change_round(state, state.round - 1, turn=0)
    if state.round == 1 and state.turn is not None:
        # rounds don't all have the same number of turns; land on the last one of round 1
        state.turn = max(len(state.turns) - 1, 0)
        set_current(state)
    events.append(_turn_started(state))
    return events


def find_phase(state: EncounterState, segment: int, actor_id: str) -> Optional[int]:
    matches = [
        i
        for i, entry in enumerate(state.phase_order)
        if entry.segment == segment and entry.combatant.actor_id == actor_id
    ]
    if not matches:
        return None
    current = state.turn or 0
    ahead = [i for i in matches if i >= current]
    return ahead[0] if ahead else matches[-1]


def _landed(state: EncounterState, segment: int, actor_id: str) -> bool:
    return state.current.segment == segment and state.current.actor_id == actor_id


async def move_to_phase(state: EncounterState, segment: int, actor_id: str) -> Tuple[List[dict], int]:
    """
    Steps forward or backward through the turns until `actor_id` acts in `segment`.
    """
    target = find_phase(state, segment, actor_id)
    if target is None:
        raise CombatOrderError(f"{actor_id} has no phase in segment {segment}")

    forward = target >= (state.turn or 0)
    events: List[dict] = []
    steps = 0
    limit = len(state.turns) + 1
    while not _landed(state, segment, actor_id) and steps < limit:
        if forward:
            events.extend(await next_turn(state))
        else:
            events.extend(await previous_turn(state))
        steps += 1

    if not _landed(state, segment, actor_id):
        raise CombatOrderError(
            f"Moving to segment {segment} for {actor_id} landed on "
            f"segment {state.current.segment} / {state.current.actor_id}"
        )
    return events, steps
