from __future__ import annotations

import logging
from typing import List, Tuple

from champsim.core.adapters.mapper import combatant_from_actor
from champsim.core.engine.commands import (
    AddCombatant,
    ChangeDexterity,
    ChangeSpeed,
    Command,
    MoveToPhase,
    NextRound,
    NextTurn,
    PreviousRound,
    PreviousTurn,
    RegisterActor,
    RemoveCombatant,
    SetInitiative,
    StartCombat,
    UpdatePhases,
)
from champsim.core.engine.events import (
    ev_actor_registered,
    ev_combat_started,
    ev_combatant_added,
    ev_combatant_removed,
    ev_command_rejected,
    ev_dexterity_changed,
    ev_initiative_set,
    ev_moved_to_phase,
    ev_phases_updated,
    ev_speed_change_cancelled,
    ev_speed_change_recorded,
)
from champsim.core.engine.rules.turns import (
    _bump,
    _turn_started,
    change_round,
    drain_outbox,
    move_to_phase,
    next_round,
    next_turn,
    previous_round,
    previous_turn,
    recalculate_phase_order,
)
from champsim.core.engine.rules.validator import validate_command
from champsim.core.engine.speed_chart import phases_for_speed
from champsim.core.engine.state import ActorState, EncounterState

logger = logging.getLogger("champsim.tracker")


def _turns_payload(state: EncounterState) -> list[dict]:
    return [
        {
            "combatant_id": e.combatant.id,
            "segment": e.segment,
            "dexterity": e.dexterity,
        }
        for e in state.phase_order
    ]


async def apply_command(
    state: EncounterState, cmd: Command
) -> Tuple[EncounterState, List[dict]]:
    """
    Возвращаем (state, events_as_dicts).
    При ошибке валидации возвращаем CommandRejected и НЕ меняем state.
    Errors from the tie-break procedure propagate.
    """
    vr = validate_command(state, cmd)
    if not vr.ok:
        e = vr.errors[0]
        seq, t = _bump(state)
        rej = ev_command_rejected(
            seq=seq,
            t=t,
            round_=state.round,
            segment=state.current.segment,
            actor_id=getattr(cmd, "actor_id", None),
            command=cmd.model_dump(),
            code=e.code,
            message=e.message,
            meta=e.meta,
        ).model_dump()
        logger.debug(f"Rejected {cmd.type}: {e.code}")
        return state, [rej]

    events: List[dict] = []
    co = state.combat_order

    if isinstance(cmd, RegisterActor):
        state.actors[cmd.actor_id] = ActorState(
            id=cmd.actor_id, name=cmd.name, dexterity=cmd.dexterity, speed=cmd.speed
        )
        seq, t = _bump(state)
        events.append(
            ev_actor_registered(
                seq=seq,
                t=t,
                round_=state.round,
                actor_id=cmd.actor_id,
                name=cmd.name,
                dexterity=cmd.dexterity,
                speed=cmd.speed,
            ).model_dump()
        )
        return state, events

    if isinstance(cmd, AddCombatant):
        actor = state.actors[cmd.actor_id]
        cid = cmd.combatant_id or state.new_combatant_id(actor.id)
        combatant = co.add_combatant(
            combatant_from_actor(actor, combatant_id=cid, initiative=cmd.initiative)
        )
        seq, t = _bump(state)
        events.append(
            ev_combatant_added(
                seq=seq,
                t=t,
                round_=state.round,
                combatant_id=cid,
                actor_id=actor.id,
                dexterity=combatant.dexterity,
                phases=list(combatant.phases),
                initiative=combatant.initiative,
            ).model_dump()
        )
        await recalculate_phase_order(state)
        events.extend(drain_outbox(state))
        return state, events

    if isinstance(cmd, RemoveCombatant):
        combatant = co.get(cmd.combatant_id)
        co.remove_combatant(cmd.combatant_id)
        seq, t = _bump(state)
        events.append(
            ev_combatant_removed(
                seq=seq,
                t=t,
                round_=state.round,
                combatant_id=combatant.id,
                actor_id=combatant.actor_id,
            ).model_dump()
        )
        await recalculate_phase_order(state)
        events.extend(drain_outbox(state))
        return state, events

    if isinstance(cmd, SetInitiative):
        co.update_initiative(cmd.combatant_id, cmd.initiative)
        seq, t = _bump(state)
        events.append(
            ev_initiative_set(
                seq=seq,
                t=t,
                round_=state.round,
                combatant_id=cmd.combatant_id,
                initiative=cmd.initiative,
            ).model_dump()
        )
        await recalculate_phase_order(state)
        events.extend(drain_outbox(state))
        return state, events

    if isinstance(cmd, ChangeDexterity):
        actor = state.actors[cmd.actor_id]
        old = actor.dexterity
        actor.dexterity = cmd.dexterity
        members = state.combatants_of(actor.id)
        for c in members:
            co.change_dexterity(c.id, cmd.dexterity)

        seq, t = _bump(state)
        events.append(
            ev_dexterity_changed(
                seq=seq,
                t=t,
                round_=state.round,
                actor_id=actor.id,
                old=old,
                new=cmd.dexterity,
                combatant_ids=[c.id for c in members],
            ).model_dump()
        )
        # пересортировка произойдёт при смене сегмента
        if not state.combat_started:
            await recalculate_phase_order(state)
            events.extend(drain_outbox(state))
        return state, events

    if isinstance(cmd, ChangeSpeed):
        actor = state.actors[cmd.actor_id]
        old_speed = actor.speed
        actor.speed = cmd.speed
        new_phases = phases_for_speed(cmd.speed)

        # без участников меняется только лист персонажа
        pending = True
        for c in state.combatants_of(actor.id):
            pending = co.change_speed(c.id, cmd.speed, new_phases)
        state.spd_changes_pending = bool(co.pending_speed_changes)

        seq, t = _bump(state)
        if pending:
            events.append(
                ev_speed_change_recorded(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    segment=state.current.segment,
                    actor_id=actor.id,
                    old_speed=old_speed,
                    new_speed=cmd.speed,
                    new_phases=new_phases,
                ).model_dump()
            )
        else:
            events.append(
                ev_speed_change_cancelled(
                    seq=seq,
                    t=t,
                    round_=state.round,
                    segment=state.current.segment,
                    actor_id=actor.id,
                    speed=cmd.speed,
                ).model_dump()
            )
        return state, events

    if isinstance(cmd, UpdatePhases):
        await recalculate_phase_order(state, spd_changed=True)
        events.extend(drain_outbox(state))
        seq, t = _bump(state)
        events.append(
            ev_phases_updated(
                seq=seq,
                t=t,
                round_=state.round,
                segment=state.current.segment,
                pending=state.spd_changes_pending,
                turns=_turns_payload(state),
            ).model_dump()
        )
        return state, events

    if isinstance(cmd, StartCombat):
        state.combat_started = True
        seq, t = _bump(state)
        events.append(ev_combat_started(seq=seq, t=t, round_=1).model_dump())
        events.extend(await change_round(state, 1, turn=0))
        events.append(_turn_started(state))
        return state, events

    if isinstance(cmd, NextTurn):
        events.extend(await next_turn(state))
        return state, events

    if isinstance(cmd, PreviousTurn):
        events.extend(await previous_turn(state))
        return state, events

    if isinstance(cmd, NextRound):
        events.extend(await next_round(state))
        return state, events

    if isinstance(cmd, PreviousRound):
        events.extend(await previous_round(state))
        return state, events

    if isinstance(cmd, MoveToPhase):
        moved, steps = await move_to_phase(state, cmd.segment, cmd.actor_id)
        events.extend(moved)
        seq, t = _bump(state)
        events.append(
            ev_moved_to_phase(
                seq=seq,
                t=t,
                round_=state.round,
                segment=cmd.segment,
                combatant_id=state.current.combatant_id,
                actor_id=cmd.actor_id,
                steps=steps,
            ).model_dump()
        )
        return state, events

    # На всякий случай (хотя валидатор уже ловит)
    seq, t = _bump(state)
    events.append(
        ev_command_rejected(
            seq=seq,
            t=t,
            round_=state.round,
            segment=state.current.segment,
            actor_id=None,
            command=cmd.model_dump(),
            code="UNKNOWN_COMMAND",
            message="Unhandled command",
            meta={},
        ).model_dump()
    )
    return state, events
