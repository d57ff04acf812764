from .chart import build_phase_chart, order_key
from .combat_order import CombatOrder, OrderStatus
from .linearize import linearize_phases
from .ties import TieBreaker, TieResolver

__all__ = [
    "CombatOrder",
    "OrderStatus",
    "TieBreaker",
    "TieResolver",
    "build_phase_chart",
    "linearize_phases",
    "order_key",
]
