from __future__ import annotations

import re
from random import Random
from typing import Literal, Optional, Tuple
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

_DICE_RE = re.compile(r"^\s*(\d+)d(\d+)\s*([+-]\s*\d+)?\s*$")


class RollMod(BaseModel):
    name: str
    value: int


class Roll(BaseModel):
    roll_id: UUID = Field(default_factory=uuid4)
    kind: Literal["tie_break", "other"] = "other"
    formula: str
    dice: list[int]
    mods: list[RollMod] = Field(default_factory=list)
    total: int
    nat: Optional[int] = None


def parse_dice(formula: str) -> Tuple[int, int, int]:
    m = _DICE_RE.match(formula)
    if not m:
        raise ValueError(f"Unsupported dice formula: {formula!r}")
    n = int(m.group(1))
    d = int(m.group(2))
    if n < 1 or d < 1:
        raise ValueError(f"Unsupported dice formula: {formula!r}")
    mod = m.group(3)
    k = int(mod.replace(" ", "")) if mod else 0
    return n, d, k


def roll_formula(rng: Random, formula: str, *, kind: str = "other") -> Roll:
    n, d, k = parse_dice(formula)
    rolls = [rng.randint(1, d) for _ in range(n)]

    mods = []
    if k != 0:
        mods.append(RollMod(name="flat_mod", value=k))

    return Roll(
        kind=kind,  # type: ignore[arg-type]
        formula=formula,
        dice=rolls,
        mods=mods,
        total=sum(rolls) + k,
        nat=sum(rolls),
    )
