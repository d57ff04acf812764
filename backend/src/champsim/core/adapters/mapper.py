from __future__ import annotations

from collections.abc import Mapping as ABCMapping
from typing import Any, Optional, cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from champsim.core.engine.state import ActorState, CombatantDescriptor, Initiative
from champsim.core.errors import PreconditionError


class ActorPayload(BaseModel):
    """Character sheet fields the tracker reads; everything else is ignored."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = "Unknown"
    dexterity: int = 10
    speed: int = Field(default=2, ge=0)


def _as_dict(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return cast(dict[str, Any], obj)
    if isinstance(obj, ABCMapping):
        return dict(cast(ABCMapping[str, Any], obj))

    # pydantic v2
    dump = getattr(obj, "model_dump", None)
    if callable(dump):
        res = dump()
        if isinstance(res, dict):
            return cast(dict[str, Any], res)
    raise PreconditionError(f"Can't read an actor from {type(obj).__name__}")


def _first_present(d: ABCMapping[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


def _characteristic(c: dict[str, Any], *keys: str) -> Any:
    # плоское поле или characteristics.{dex,spd}.total как в листе персонажа
    value = _first_present(c, *keys)
    if value is not None:
        return value
    chars = c.get("characteristics") or {}
    if not isinstance(chars, ABCMapping):
        return None
    raw = _first_present(chars, *keys)
    if not isinstance(raw, ABCMapping):
        return raw
    total = raw.get("total")
    if total is not None:
        return total
    base = _first_present(raw, "value", "current", "max")
    if base is None:
        return None
    # total = max(0, value + modifier)
    return max(0, int(base) + int(raw.get("modifier") or 0))


def actor_from_payload(payload: Any) -> ActorState:
    c = _as_dict(payload)
    data = {
        "id": _first_present(c, "id", "actor_id", "_id"),
        "name": _first_present(c, "name", "title", default="Unknown"),
        "dexterity": _characteristic(c, "dexterity", "dex"),
        "speed": _characteristic(c, "speed", "spd"),
    }
    try:
        parsed = ActorPayload.model_validate({k: v for k, v in data.items() if v is not None})
    except ValidationError as exc:
        raise PreconditionError(f"Invalid actor payload: {exc}") from exc
    return ActorState(
        id=parsed.id, name=parsed.name, dexterity=parsed.dexterity, speed=parsed.speed
    )


def combatant_from_actor(
    actor: ActorState,
    *,
    combatant_id: str,
    initiative: Optional[Initiative] = None,
) -> CombatantDescriptor:
    return CombatantDescriptor(
        id=combatant_id,
        actor_id=actor.id,
        dexterity=actor.dexterity,
        initiative=initiative,
        phases=actor.phases,
        speed=actor.speed,
        name=actor.name,
    )
