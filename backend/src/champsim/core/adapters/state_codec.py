from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any, Dict, List, cast

from champsim.core.engine.order.combat_order import OrderStatus
from champsim.core.engine.rules.turns import pending_changes
from champsim.core.engine.state import CombatantState, EncounterState, PhaseChart


def _jsonable(v: Any) -> Any:
    """Привести значение к JSON-дружелюбному виду (set->list, tuple->list, dataclass/pydantic->dict)."""
    if v is None:
        return None
    if isinstance(v, (str, int, float, bool)):
        return v
    if isinstance(v, (set, tuple, list)):
        return [_jsonable(x) for x in v]
    if isinstance(v, dict):
        return {str(k): _jsonable(val) for k, val in v.items()}

    md = getattr(v, "model_dump", None)
    if callable(md):
        return _jsonable(md())

    if is_dataclass(v) and not isinstance(v, type):
        return _jsonable(asdict(cast(Any, v)))

    return str(v)


def combatant_to_dict(c: CombatantState) -> Dict[str, Any]:
    return {
        "id": c.id,
        "actor_id": c.actor_id,
        "name": c.name,
        "dexterity": c.dexterity,
        "initiative": c.initiative,
        "speed": c.speed,
        "phases": list(c.phases),
    }


def phase_chart_to_dict(chart: PhaseChart) -> Dict[str, List[str]]:
    # ключи-строки: JSON не умеет int-ключи
    return {str(segment): [c.id for c in chart[segment]] for segment in sorted(chart)}


def encounter_state_to_dict(state: EncounterState) -> Dict[str, Any]:
    co = state.combat_order
    chart = None
    if co.status is not OrderStatus.UNINITIALIZED:
        chart = phase_chart_to_dict(co.phase_chart)

    return {
        "round": state.round,
        "turn": state.turn,
        "combat_started": state.combat_started,
        "current": _jsonable(state.current),
        "status": co.status.value,
        "actors": {aid: _jsonable(a) for aid, a in state.actors.items()},
        "combatants": [combatant_to_dict(c) for c in co.combatants],
        "turns": [
            {
                "combatant_id": e.combatant.id,
                "actor_id": e.combatant.actor_id,
                "segment": e.segment,
                "dexterity": e.dexterity,
            }
            for e in state.phase_order
        ],
        "phase_chart": chart,
        "spd_changes_pending": state.spd_changes_pending,
        "pending_changes": pending_changes(state),
        "ties": sorted(c.id for c in co.ties),
        "seq": state.seq,
        "t": state.t,
        "rng_seed": state.rng_seed,
    }
