from .mapper import ActorPayload, actor_from_payload, combatant_from_actor
from .state_codec import encounter_state_to_dict, phase_chart_to_dict

__all__ = [
    "ActorPayload",
    "actor_from_payload",
    "combatant_from_actor",
    "encounter_state_to_dict",
    "phase_chart_to_dict",
]
