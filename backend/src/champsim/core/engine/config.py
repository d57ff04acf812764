from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from champsim.core.engine.dice import parse_dice

# 12 segments per round; round 1 only has segment 12
SEGMENTS = tuple(range(1, 13))
FIRST_ROUND_SEGMENT = 12

DEFAULT_TIE_BREAK_FORMULA = "3d6"


class TrackerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    seed: int = 0
    tie_break_formula: str = DEFAULT_TIE_BREAK_FORMULA

    @field_validator("tie_break_formula")
    @classmethod
    def _check_formula(cls, v: str) -> str:
        parse_dice(v)
        return v.strip()


def starting_segment(round_: int) -> int:
    return FIRST_ROUND_SEGMENT if round_ == 1 else SEGMENTS[0]
