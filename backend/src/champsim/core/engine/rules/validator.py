from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

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
from champsim.core.engine.config import FIRST_ROUND_SEGMENT
from champsim.core.engine.rules.turns import find_phase
from champsim.core.engine.state import EncounterState


@dataclass
class ValidationError:
    code: str
    message: str
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ValidationResult:
    ok: bool
    errors: List[ValidationError] = field(default_factory=list)


def _err(code: str, message: str, **meta: Any) -> ValidationResult:
    return ValidationResult(
        ok=False, errors=[ValidationError(code=code, message=message, meta=meta)]
    )


def _unknown_actor(state: EncounterState, actor_id: str) -> bool:
    return actor_id not in state.actors


def _unknown_combatant(state: EncounterState, combatant_id: str) -> bool:
    return combatant_id not in state.combat_order


def _require_turn(state: EncounterState) -> ValidationResult:
    if not state.combat_started:
        return _err("COMBAT_NOT_STARTED", "Call StartCombat first")
    if state.turn is None or not state.turns:
        return _err("NO_TURNS", "Nobody has a phase this round")
    return ValidationResult(ok=True)


def validate_command(state: EncounterState, cmd: Command) -> ValidationResult:
    if isinstance(cmd, RegisterActor):
        if cmd.actor_id in state.actors:
            return _err(
                "ACTOR_EXISTS",
                "Actor already registered; use ChangeDexterity/ChangeSpeed",
                actor_id=cmd.actor_id,
            )
        return ValidationResult(ok=True)

    if isinstance(cmd, AddCombatant):
        if _unknown_actor(state, cmd.actor_id):
            return _err("UNKNOWN_ACTOR", "Unknown actor_id", actor_id=cmd.actor_id)
        if cmd.combatant_id is not None and cmd.combatant_id in state.combat_order:
            return _err(
                "DUPLICATE_COMBATANT",
                "Combatant already in the encounter",
                combatant_id=cmd.combatant_id,
            )
        return ValidationResult(ok=True)

    if isinstance(cmd, (RemoveCombatant, SetInitiative)):
        if _unknown_combatant(state, cmd.combatant_id):
            return _err(
                "UNKNOWN_COMBATANT",
                "Unknown combatant_id",
                combatant_id=cmd.combatant_id,
            )
        return ValidationResult(ok=True)

    if isinstance(cmd, (ChangeDexterity, ChangeSpeed)):
        if _unknown_actor(state, cmd.actor_id):
            return _err("UNKNOWN_ACTOR", "Unknown actor_id", actor_id=cmd.actor_id)
        return ValidationResult(ok=True)

    if isinstance(cmd, UpdatePhases):
        return ValidationResult(ok=True)

    if isinstance(cmd, StartCombat):
        if state.combat_started:
            return _err("COMBAT_ALREADY_STARTED", "Combat already started")
        if len(state.combat_order) == 0:
            return _err("NO_COMBATANTS", "Cannot start combat with zero combatants")
        return ValidationResult(ok=True)

    if isinstance(cmd, NextTurn):
        return _require_turn(state)

    if isinstance(cmd, PreviousTurn):
        vr = _require_turn(state)
        if not vr.ok:
            return vr
        if state.round <= 1 and state.turn == 0:
            return _err("NO_PREVIOUS_TURN", "Already at the first turn of combat")
        return vr

    if isinstance(cmd, NextRound):
        if not state.combat_started:
            return _err("COMBAT_NOT_STARTED", "Call StartCombat first")
        return ValidationResult(ok=True)

    if isinstance(cmd, PreviousRound):
        if not state.combat_started:
            return _err("COMBAT_NOT_STARTED", "Call StartCombat first")
        if state.round <= 1:
            return _err("NO_PREVIOUS_ROUND", "Already in round 1", round=state.round)
        return ValidationResult(ok=True)

    if isinstance(cmd, MoveToPhase):
        vr = _require_turn(state)
        if not vr.ok:
            return vr
        if state.round == 1 and cmd.segment != FIRST_ROUND_SEGMENT:
            return _err(
                "BAD_SEGMENT",
                "Round 1 only has segment 12",
                segment=cmd.segment,
            )
        if _unknown_actor(state, cmd.actor_id):
            return _err("UNKNOWN_ACTOR", "Unknown actor_id", actor_id=cmd.actor_id)
        if find_phase(state, cmd.segment, cmd.actor_id) is None:
            return _err(
                "NO_SUCH_PHASE",
                "Actor has no phase in that segment this round",
                segment=cmd.segment,
                actor_id=cmd.actor_id,
            )
        return ValidationResult(ok=True)

    return _err("UNKNOWN_COMMAND", "Unhandled command", type=getattr(cmd, "type", None))
