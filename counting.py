"""
Card counting systems.

Every system is a fixed vector of ten tag values indexed by rank class
(2, 3, 4, 5, 6, 7, 8, 9, ten-valued, Ace).  Looking a value up is a dictionary
hit followed by a tuple index, so counting a card is O(1).

Systems included:

* ``hi-lo`` – balanced level 1, 2‑6 = +1, 7‑9 = 0, 10‑A = −1.
* ``ko`` – unbalanced level 1, same as Hi‑Lo but 7 = +1.
* ``hi-opt-i`` – balanced level 1 with 2 and A counted as 0.
* ``hi-opt-ii`` – balanced level 2.
* ``omega-ii`` – balanced level 2 where 9 = −1.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple, Union

from errors import ConfigurationError


class CountingSystem(str, Enum):
    HI_LO = "hi-lo"
    KO = "ko"
    HI_OPT_I = "hi-opt-i"
    HI_OPT_II = "hi-opt-ii"
    OMEGA_II = "omega-ii"


@dataclass(frozen=True)
class CountingSystemDefinition:
    """Static description of a counting system."""

    id: CountingSystem
    name: str
    values: Tuple[int, ...]  # 2, 3, 4, 5, 6, 7, 8, 9, 10/J/Q/K, A
    balanced: bool

    @property
    def level(self) -> int:
        return max(abs(v) for v in self.values)

    @property
    def true_count_required(self) -> bool:
        return self.balanced


# Rank label -> position in the value vector.
RANK_INDEX: Dict[str, int] = {
    "2": 0,
    "3": 1,
    "4": 2,
    "5": 3,
    "6": 4,
    "7": 5,
    "8": 6,
    "9": 7,
    "10": 8,
    "J": 8,
    "Q": 8,
    "K": 8,
    "A": 9,
}

COUNTING_SYSTEMS: Dict[CountingSystem, CountingSystemDefinition] = {
    CountingSystem.HI_LO: CountingSystemDefinition(
        CountingSystem.HI_LO, "Hi-Lo", (1, 1, 1, 1, 1, 0, 0, 0, -1, -1), True
    ),
    CountingSystem.KO: CountingSystemDefinition(
        CountingSystem.KO, "Knock-Out (KO)", (1, 1, 1, 1, 1, 1, 0, 0, -1, -1), False
    ),
    CountingSystem.HI_OPT_I: CountingSystemDefinition(
        CountingSystem.HI_OPT_I, "Hi-Opt I", (0, 1, 1, 1, 1, 0, 0, 0, -1, 0), True
    ),
    CountingSystem.HI_OPT_II: CountingSystemDefinition(
        CountingSystem.HI_OPT_II, "Hi-Opt II", (1, 1, 2, 2, 1, 1, 0, 0, -2, 0), True
    ),
    CountingSystem.OMEGA_II: CountingSystemDefinition(
        CountingSystem.OMEGA_II, "Omega II", (1, 1, 2, 2, 2, 1, 0, -1, -2, 0), True
    ),
}

DEFAULT_SYSTEM = CountingSystem.HI_LO

SystemLike = Union[CountingSystem, str]


def get_system(system: SystemLike) -> CountingSystemDefinition:
    """Return the definition for a system id, raising ``ConfigurationError`` if unknown."""
    try:
        return COUNTING_SYSTEMS[CountingSystem(system)]
    except (ValueError, KeyError):
        raise ConfigurationError(f"unknown counting system: {system!r}") from None


def rank_index(rank) -> int:
    # Rank enum members are str subclasses, so their value works as a key.
    key = getattr(rank, "value", rank)
    try:
        return RANK_INDEX[key]
    except (KeyError, TypeError):
        raise ConfigurationError(f"invalid rank: {rank!r}") from None


def count_value(rank, system: SystemLike = DEFAULT_SYSTEM) -> int:
    """Return the tag value of ``rank`` under ``system``."""
    return get_system(system).values[rank_index(rank)]


def full_deck_sum(system: SystemLike) -> int:
    """
    Sum of tag values over one 52-card deck.

    Zero for balanced systems.  For unbalanced systems this is the amount the
    running count drifts per deck, e.g. +4 for KO.
    """
    values = get_system(system).values
    # four cards of each rank; the ten class holds 10, J, Q and K
    return 4 * (sum(values) + 3 * values[8])
