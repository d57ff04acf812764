from __future__ import annotations

from dataclasses import dataclass, field
from random import Random
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from champsim.core.engine.config import DEFAULT_TIE_BREAK_FORMULA, SEGMENTS, TrackerConfig
from champsim.core.engine.speed_chart import phases_for_speed
from champsim.core.errors import PreconditionError

if TYPE_CHECKING:
    from champsim.core.engine.order.combat_order import CombatOrder
    from champsim.core.engine.order.ties import TieBreaker

Initiative = Union[int, float]


class CombatantDescriptor(BaseModel):
    """What a host hands over when a combatant joins the encounter."""

    model_config = ConfigDict(extra="forbid")

    id: str
    actor_id: str
    dexterity: int
    initiative: Optional[Initiative] = None
    phases: List[int] = Field(default_factory=list)
    speed: Optional[int] = Field(default=None, ge=0)
    name: str = ""

    @field_validator("phases", mode="before")
    @classmethod
    def _phases_default(cls, v: Any) -> Any:
        # a sheet that hasn't derived its phases yet
        return [] if v is None else v

    @field_validator("phases")
    @classmethod
    def _phases_in_round(cls, v: List[int]) -> List[int]:
        for seg in v:
            if seg not in SEGMENTS:
                raise ValueError(f"segment {seg} is outside 1..12")
        return sorted(set(v))


@dataclass(eq=False)
class CombatantState:
    """
    Snapshot of one combatant as seen by the combat order.
    Hashes by identity: the same snapshot object lives in every segment it acts in.
    """

    id: str
    actor_id: str
    dexterity: int
    initiative: Optional[Initiative] = None
    phases: List[int] = field(default_factory=list)
    speed: Optional[int] = None
    name: str = ""

    @classmethod
    def from_descriptor(cls, descriptor: Any) -> "CombatantState":
        if isinstance(descriptor, CombatantState):
            descriptor = {
                "id": descriptor.id,
                "actor_id": descriptor.actor_id,
                "dexterity": descriptor.dexterity,
                "initiative": descriptor.initiative,
                "phases": list(descriptor.phases),
                "speed": descriptor.speed,
                "name": descriptor.name,
            }
        if not isinstance(descriptor, CombatantDescriptor):
            try:
                descriptor = CombatantDescriptor.model_validate(descriptor)
            except ValidationError as exc:
                raise PreconditionError(f"Invalid combatant descriptor: {exc}") from exc
        return cls(
            id=descriptor.id,
            actor_id=descriptor.actor_id,
            dexterity=descriptor.dexterity,
            initiative=descriptor.initiative,
            phases=list(descriptor.phases),
            speed=descriptor.speed,
            name=descriptor.name,
        )


PhaseChart = Dict[int, List[CombatantState]]


@dataclass
class SpeedChange:
    old_speed: Optional[int]
    old_phases: List[int]
    new_speed: Optional[int]
    new_phases: List[int]


@dataclass(frozen=True)
class PhaseEntry:
    combatant: CombatantState
    segment: int
    dexterity: int


class CurrentTurn(BaseModel):
    round: int = 0
    turn: Optional[int] = None
    combatant_id: Optional[str] = None
    actor_id: Optional[str] = None
    segment: Optional[int] = None
    dexterity: Optional[int] = None


@dataclass
class ActorState:
    """Character sheet data the tracker needs: name, DEX and SPD."""

    id: str
    name: str
    dexterity: int = 10
    speed: int = 2

    @property
    def phases(self) -> List[int]:
        return phases_for_speed(self.speed)


@dataclass
class EncounterState:
    round: int = 0
    turn: Optional[int] = None
    current: CurrentTurn = field(default_factory=CurrentTurn)

    combat_started: bool = False

    actors: Dict[str, ActorState] = field(default_factory=dict)

    # linearized turns of the current round
    phase_order: List[PhaseEntry] = field(default_factory=list)
    turns: List[CombatantState] = field(default_factory=list)

    spd_changes_pending: bool = False

    seq: int = 0
    t: int = 0

    rng_seed: int = 0
    rng: Random = field(default_factory=Random)
    tie_break_formula: str = DEFAULT_TIE_BREAK_FORMULA

    # None -> roll tie breaks with tie_break_formula
    break_ties: Optional["TieBreaker"] = None
    combat_order: "CombatOrder" = field(init=False)

    # events produced outside the command flow (tie-break rolls)
    outbox: List[dict] = field(default_factory=list)

    _combatant_seq: int = 1

    def __post_init__(self) -> None:
        from champsim.core.engine.order.combat_order import CombatOrder
        from champsim.core.engine.rules.tiebreak import DiceTieBreaker

        breaker = self.break_ties or DiceTieBreaker(self)
        self.combat_order = CombatOrder(self.round, [], break_ties=breaker)

    @classmethod
    def from_config(cls, cfg: TrackerConfig) -> "EncounterState":
        return cls(tie_break_formula=cfg.tie_break_formula).with_seed(cfg.seed)

    def with_seed(self, seed: int) -> "EncounterState":
        self.rng_seed = seed
        self.rng = Random(seed)
        return self

    def new_combatant_id(self, actor_id: str) -> str:
        cid = f"{actor_id}-{self._combatant_seq}"
        self._combatant_seq += 1
        return cid

    def combatants_of(self, actor_id: str) -> List[CombatantState]:
        return [c for c in self.combat_order.combatants if c.actor_id == actor_id]

    @property
    def combatant(self) -> Optional[CombatantState]:
        if self.turn is None or not self.turns:
            return None
        return self.turns[self.turn]
