"""
Random node selection.
"""
import random
from typing import Optional, Sequence, TypeVar

from ..errors import EmptyPoolError

T = TypeVar("T")


def pick_random(items: Sequence[T], role: str, rng: Optional[random.Random] = None) -> T:
    """
    Picks one element uniformly at random.

    :param items: Candidates, in a deterministic order so a seeded rng is reproducible.
    :param role: Role name used in the error message.
    :param rng: Source of randomness; the module-level generator when omitted.
    :raises EmptyPoolError: If there is nothing to pick from.
    """
    if not items:
        raise EmptyPoolError(role)
    return (rng or random).choice(list(items))
