"""Exceptions raised by the combat order engine."""


class CombatOrderError(Exception):
    """Base exception for the combat order engine."""


class PreconditionError(CombatOrderError):
    """Raised when a caller breaks the contract of an operation."""


class UnknownCombatantError(PreconditionError, KeyError):
    """Raised when an operation names a combatant that is not in the roster."""

    def __init__(self, combatant_id: str):
        super().__init__(f"Unknown combatant: {combatant_id!r}")
        self.combatant_id = combatant_id

    def __str__(self) -> str:
        return self.args[0]