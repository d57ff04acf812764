from __future__ import annotations

from typing import Dict, Tuple

from champsim.core.errors import PreconditionError

MAX_SPEED = 12

# Hero System 6E Speed Chart: SPD -> segments with a phase
SPEED_CHART: Dict[int, Tuple[int, ...]] = {
    0: (),
    1: (7,),
    2: (6, 12),
    3: (4, 8, 12),
    4: (3, 6, 9, 12),
    5: (3, 5, 8, 10, 12),
    6: (2, 4, 6, 8, 10, 12),
    7: (2, 4, 6, 7, 9, 11, 12),
    8: (2, 3, 5, 6, 8, 9, 11, 12),
    9: (2, 3, 4, 6, 7, 8, 10, 11, 12),
    10: (2, 3, 4, 5, 6, 8, 9, 10, 11, 12),
    11: (2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12),
    12: (1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12),
}


def phases_for_speed(speed: int) -> list[int]:
    """
    Segments on which a character with the given SPD acts.
    SPD above 12 acts every segment; SPD 0 never acts.
    """
    if speed < 0:
        raise PreconditionError(f"Speed can't be negative: {speed}")
    return list(SPEED_CHART[min(int(speed), MAX_SPEED)])
