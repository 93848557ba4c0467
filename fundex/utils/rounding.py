"""
Score rounding.

Points are rounded half up (2.5 -> 3), not with Python's round-half-even,
so a score sitting on a .5 boundary always goes to the higher integer.
"""

import math


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
