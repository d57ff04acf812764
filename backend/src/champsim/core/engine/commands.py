# backend/src/champsim/core/engine/commands.py

from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class CommandBase(BaseModel):
    model_config = ConfigDict(extra="forbid")
    type: str


class RegisterActor(CommandBase):
    type: Literal["RegisterActor"] = "RegisterActor"
    actor_id: str
    name: str
    dexterity: int = 10
    speed: int = Field(default=2, ge=0)


class AddCombatant(CommandBase):
    type: Literal["AddCombatant"] = "AddCombatant"
    actor_id: str
    combatant_id: Optional[str] = None  # None -> сгенерировать
    initiative: Optional[float] = None


class RemoveCombatant(CommandBase):
    type: Literal["RemoveCombatant"] = "RemoveCombatant"
    combatant_id: str


class SetInitiative(CommandBase):
    type: Literal["SetInitiative"] = "SetInitiative"
    combatant_id: str
    initiative: Optional[float] = None


class ChangeDexterity(CommandBase):
    type: Literal["ChangeDexterity"] = "ChangeDexterity"
    actor_id: str
    dexterity: int


class ChangeSpeed(CommandBase):
    type: Literal["ChangeSpeed"] = "ChangeSpeed"
    actor_id: str
    speed: int = Field(ge=0)


class UpdatePhases(CommandBase):
    type: Literal["UpdatePhases"] = "UpdatePhases"


class StartCombat(CommandBase):
    type: Literal["StartCombat"] = "StartCombat"


class NextTurn(CommandBase):
    type: Literal["NextTurn"] = "NextTurn"


class PreviousTurn(CommandBase):
    type: Literal["PreviousTurn"] = "PreviousTurn"


class NextRound(CommandBase):
    type: Literal["NextRound"] = "NextRound"


class PreviousRound(CommandBase):
    type: Literal["PreviousRound"] = "PreviousRound"


class MoveToPhase(CommandBase):
    type: Literal["MoveToPhase"] = "MoveToPhase"
    segment: int = Field(ge=1, le=12)
    actor_id: str


Command = Union[
    RegisterActor,
    AddCombatant,
    RemoveCombatant,
    SetInitiative,
    ChangeDexterity,
    ChangeSpeed,
    UpdatePhases,
    StartCombat,
    NextTurn,
    PreviousTurn,
    NextRound,
    PreviousRound,
    MoveToPhase,
]
