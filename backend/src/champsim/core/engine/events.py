from __future__ import annotations

from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, ConfigDict

from champsim.core.engine.dice import Roll


class EventEnvelope(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_id: UUID = Field(default_factory=uuid4)
    seq: int
    t: int
    type: str

    round: int
    segment: Optional[int] = None
    combatant_id: Optional[str] = None
    actor_id: Optional[str] = None

    payload: dict[str, Any] = Field(default_factory=dict)


def ev_command_rejected(
    *,
    seq: int,
    t: int,
    round_: int,
    segment: Optional[int],
    actor_id: Optional[str],
    command: dict,
    code: str,
    message: str,
    meta: dict,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CommandRejected",
        round=round_,
        segment=segment,
        actor_id=actor_id,
        payload={
            "command": command,
            "code": code,
            "message": message,
            "meta": meta,
        },
    )


def ev_actor_registered(
    *, seq: int, t: int, round_: int, actor_id: str, name: str, dexterity: int, speed: int
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="ActorRegistered",
        round=round_,
        actor_id=actor_id,
        payload={"name": name, "dexterity": dexterity, "speed": speed},
    )


def ev_combatant_added(
    *,
    seq: int,
    t: int,
    round_: int,
    combatant_id: str,
    actor_id: str,
    dexterity: int,
    phases: list[int],
    initiative: Optional[float],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatantAdded",
        round=round_,
        combatant_id=combatant_id,
        actor_id=actor_id,
        payload={
            "dexterity": dexterity,
            "phases": phases,
            "initiative": initiative,
        },
    )


def ev_combatant_removed(
    *, seq: int, t: int, round_: int, combatant_id: str, actor_id: str
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatantRemoved",
        round=round_,
        combatant_id=combatant_id,
        actor_id=actor_id,
        payload={},
    )


def ev_initiative_set(
    *, seq: int, t: int, round_: int, combatant_id: str, initiative: Optional[float]
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="InitiativeSet",
        round=round_,
        combatant_id=combatant_id,
        payload={"combatant_id": combatant_id, "initiative": initiative},
    )


def ev_initiative_rolled(
    *, seq: int, t: int, round_: int, combatant_id: str, actor_id: str, roll: Roll
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="InitiativeRolled",
        round=round_,
        combatant_id=combatant_id,
        actor_id=actor_id,
        payload={
            "combatant_id": combatant_id,
            "roll": roll.model_dump(),
            "initiative": roll.total,
            "flavor": "Breaking initiative ties",
        },
    )


def ev_dexterity_changed(
    *,
    seq: int,
    t: int,
    round_: int,
    actor_id: str,
    old: int,
    new: int,
    combatant_ids: list[str],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="DexterityChanged",
        round=round_,
        actor_id=actor_id,
        payload={"old": old, "new": new, "combatant_ids": combatant_ids},
    )


def ev_speed_change_recorded(
    *,
    seq: int,
    t: int,
    round_: int,
    segment: Optional[int],
    actor_id: str,
    old_speed: Optional[int],
    new_speed: int,
    new_phases: list[int],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="SpeedChangeRecorded",
        round=round_,
        segment=segment,
        actor_id=actor_id,
        payload={
            "old_speed": old_speed,
            "new_speed": new_speed,
            "new_phases": new_phases,
        },
    )


def ev_speed_change_cancelled(
    *, seq: int, t: int, round_: int, segment: Optional[int], actor_id: str, speed: int
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="SpeedChangeCancelled",
        round=round_,
        segment=segment,
        actor_id=actor_id,
        payload={"speed": speed},
    )


def ev_phases_updated(
    *,
    seq: int,
    t: int,
    round_: int,
    segment: Optional[int],
    pending: bool,
    turns: list[dict],
) -> EventEnvelope:
    # turns: [{"combatant_id": "...", "segment": 4, "dexterity": 12}, ...]
    return EventEnvelope(
        seq=seq,
        t=t,
        type="PhasesUpdated",
        round=round_,
        segment=segment,
        payload={"pending": pending, "turns": turns},
    )


def ev_combat_started(*, seq: int, t: int, round_: int) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="CombatStarted",
        round=round_,
        payload={},
    )


def ev_round_started(
    *, seq: int, t: int, round_: int, turns: int
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="RoundStarted",
        round=round_,
        payload={"round": round_, "turns": turns},
    )


def ev_turn_started(
    *,
    seq: int,
    t: int,
    round_: int,
    turn: int,
    segment: Optional[int],
    combatant_id: Optional[str],
    actor_id: Optional[str],
    dexterity: Optional[int],
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="TurnStarted",
        round=round_,
        segment=segment,
        combatant_id=combatant_id,
        actor_id=actor_id,
        payload={"turn": turn, "dexterity": dexterity},
    )


def ev_moved_to_phase(
    *,
    seq: int,
    t: int,
    round_: int,
    segment: int,
    combatant_id: Optional[str],
    actor_id: str,
    steps: int,
) -> EventEnvelope:
    return EventEnvelope(
        seq=seq,
        t=t,
        type="MovedToPhase",
        round=round_,
        segment=segment,
        combatant_id=combatant_id,
        actor_id=actor_id,
        payload={"steps": steps},
    )
