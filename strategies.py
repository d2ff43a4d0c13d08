"""
Basic strategy and the named strategy functions used to play hands.

The advisor is a lookup against the standard multi-deck chart (double after
split, late surrender) with the handful of cells that change when the dealer
hits soft 17.  Each cell holds a code:

* ``H`` hit, ``S`` stand, ``P`` split
* ``D`` double, otherwise hit
* ``Ds`` double, otherwise stand
* ``Rh`` / ``Rs`` / ``Rp`` surrender, otherwise hit / stand / split

Pair rows hold ``P`` where the pair should be split and ``-`` where it should
be played as an ordinary total.  When an action in a cell is not currently
legal the advisor falls back as described by the code, so a recommendation is
always a legal action.

Strategy functions accept the current hand, the dealer's upcard and the
:class:`PlayOptions` describing what is legal, and return an :class:`Action`.
They are exported in ``STRATEGIES`` for lookup by name.
"""

from enum import Enum
from typing import Callable, Dict, NamedTuple, Optional, Sequence, Tuple
import random

from errors import InvariantViolation
from game import Card, Hand, hand_value, is_soft


class Action(str, Enum):
    HIT = "HIT"
    STAND = "STAND"
    DOUBLE = "DOUBLE"
    SPLIT = "SPLIT"
    SURRENDER = "SURRENDER"


def _rows(table: Dict[int, str]) -> Dict[int, Tuple[str, ...]]:
    return {k: tuple(v.split()) for k, v in table.items()}


# Columns: dealer upcard 2, 3, 4, 5, 6, 7, 8, 9, 10, A
HARD = _rows({
    8: "H  H  H  H  H  H  H  H  H  H",
    9: "H  D  D  D  D  H  H  H  H  H",
    10: "D  D  D  D  D  D  D  D  H  H",
    11: "D  D  D  D  D  D  D  D  D  H",
    12: "H  H  S  S  S  H  H  H  H  H",
    13: "S  S  S  S  S  H  H  H  H  H",
    14: "S  S  S  S  S  H  H  H  H  H",
    15: "S  S  S  S  S  H  H  H  Rh H",
    16: "S  S  S  S  S  H  H  Rh Rh Rh",
    17: "S  S  S  S  S  S  S  S  S  S",
    18: "S  S  S  S  S  S  S  S  S  S",
})

SOFT = _rows({
    12: "H  H  H  H  H  H  H  H  H  H",
    13: "H  H  H  D  D  H  H  H  H  H",
    14: "H  H  H  D  D  H  H  H  H  H",
    15: "H  H  D  D  D  H  H  H  H  H",
    16: "H  H  D  D  D  H  H  H  H  H",
    17: "H  D  D  D  D  H  H  H  H  H",
    18: "S  Ds Ds Ds Ds S  S  H  H  H",
    19: "S  S  S  S  S  S  S  S  S  S",
    20: "S  S  S  S  S  S  S  S  S  S",
    21: "S  S  S  S  S  S  S  S  S  S",
})

# Keyed by the blackjack value of the paired rank (11 = Aces).
PAIRS = _rows({
    2: "P  P  P  P  P  P  -  -  -  -",
    3: "P  P  P  P  P  P  -  -  -  -",
    4: "-  -  -  P  P  -  -  -  -  -",
    5: "-  -  -  -  -  -  -  -  -  -",
    6: "P  P  P  P  P  -  -  -  -  -",
    7: "P  P  P  P  P  P  -  -  -  -",
    8: "P  P  P  P  P  P  P  P  P  P",
    9: "P  P  P  P  P  -  P  P  -  -",
    10: "-  -  -  -  -  -  -  -  -  -",
    11: "P  P  P  P  P  P  P  P  P  P",
})

# (table, row, column) -> code when the dealer hits soft 17
H17_OVERRIDES = {
    ("hard", 11, 9): "D",
    ("hard", 15, 9): "Rh",
    ("hard", 17, 9): "Rs",
    ("soft", 18, 0): "Ds",
    ("soft", 19, 4): "Ds",
    ("pair", 8, 9): "Rp",
}

# Without double after split the small pairs are only worth splitting
# against the weakest upcards.
NO_DAS_OVERRIDES = {
    ("pair", 2, 0): "-",
    ("pair", 2, 1): "-",
    ("pair", 3, 0): "-",
    ("pair", 3, 1): "-",
    ("pair", 4, 3): "-",
    ("pair", 4, 4): "-",
    ("pair", 6, 0): "-",
}


class PlayOptions(NamedTuple):
    """What the player may legally do at a decision point."""

    can_split: bool
    can_double: bool
    can_surrender: bool
    rules: object


def _column(dealer_upcard: Card) -> int:
    return dealer_upcard.value - 2


def _code(table: str, row: int, col: int, rules) -> str:
    key = (table, row, col)
    if not getattr(rules, "double_after_split", True) and key in NO_DAS_OVERRIDES:
        return NO_DAS_OVERRIDES[key]
    if rules.hit_soft_17 and key in H17_OVERRIDES:
        return H17_OVERRIDES[key]
    if table == "pair":
        return PAIRS[row][col]
    if table == "soft":
        return SOFT[row][col]
    return HARD[row][col]


# A double that cannot be taken is a hit, except the soft 18/19 "Ds" cells,
# which stand as on printed charts.
def _resolve(code: str, can_split: bool, can_double: bool, can_surrender: bool) -> Optional[Action]:
    """Turn a chart code into a legal action.  ``None`` means play the hand as a total."""
    if code.startswith("R"):
        if can_surrender:
            return Action.SURRENDER
        code = code[1:].upper()
    if code == "P":
        return Action.SPLIT if can_split else None
    if code == "-":
        return None
    if code == "D":
        return Action.DOUBLE if can_double else Action.HIT
    if code == "Ds":
        return Action.DOUBLE if can_double else Action.STAND
    if code == "S":
        return Action.STAND
    return Action.HIT


def recommend_action(
    player_cards: Sequence[Card],
    dealer_upcard: Card,
    rules,
    can_split: bool = True,
    can_double: bool = True,
    can_surrender: bool = False,
) -> Action:
    """
    Basic strategy action for a decision point.

    :param player_cards: The player's current cards (at least two).
    :param dealer_upcard: The dealer's face-up card.
    :param rules: Anything with ``hit_soft_17`` and optionally
        ``double_after_split`` (``DealerRules`` or ``TableRules``).
    :param can_split: Whether splitting is currently legal.
    :param can_double: Whether doubling is currently legal.
    :param can_surrender: Whether late surrender is currently legal.
    :returns: The best legal action.
    """
    if len(player_cards) < 2:
        raise InvariantViolation("a decision needs at least two player cards")
    col = _column(dealer_upcard)

    if len(player_cards) == 2 and player_cards[0].rank == player_cards[1].rank:
        code = _code("pair", player_cards[0].value, col, rules)
        action = _resolve(code, can_split, can_double, can_surrender)
        if action is not None:
            return action

    total = hand_value(player_cards)
    if is_soft(player_cards):
        code = _code("soft", total, col, rules)
    else:
        code = _code("hard", min(max(total, 8), 18), col, rules)
    return _resolve(code, can_split, can_double, can_surrender)


def grade_decision(taken: Action, recommended: Action) -> bool:
    """
    Whether a decision counts as correct play.

    Hitting where doubling was best gives up value without a strategy
    error, so it is graded as correct.
    """
    if taken is recommended:
        return True
    return recommended is Action.DOUBLE and taken is Action.HIT


def legal_actions(options: PlayOptions) -> Tuple[Action, ...]:
    acts = [Action.STAND, Action.HIT]
    if options.can_double:
        acts.append(Action.DOUBLE)
    if options.can_split:
        acts.append(Action.SPLIT)
    if options.can_surrender:
        acts.append(Action.SURRENDER)
    return tuple(acts)


StrategyFn = Callable[[Hand, Card, PlayOptions], Action]


def simplest_strategy(hand: Hand, dealer_up: Card, options: PlayOptions) -> Action:
    """Always hit below 17, else stand."""
    return Action.HIT if hand.value < 17 else Action.STAND


def random_strategy(hand: Hand, dealer_up: Card, options: PlayOptions) -> Action:
    """Randomly choose between hit and stand."""
    return random.choice([Action.HIT, Action.STAND])


def basic_strategy(hand: Hand, dealer_up: Card, options: PlayOptions) -> Action:
    return recommend_action(
        hand.cards,
        dealer_up,
        options.rules,
        can_split=options.can_split,
        can_double=options.can_double,
        can_surrender=options.can_surrender,
    )


STRATEGIES: Dict[str, StrategyFn] = {
    "simplest": simplest_strategy,
    "random": random_strategy,
    "basic": basic_strategy,
}


# ----- Insurance -----
# Hi-Lo index: insurance is a good bet from a true count of +3.
INSURANCE_INDEX = 3

InsuranceFn = Callable[[float], bool]


def never_insure(true_count: float) -> bool:
    """Basic strategy never takes insurance."""
    return False


def count_insurance(true_count: float) -> bool:
    return true_count >= INSURANCE_INDEX


INSURANCE_STRATEGIES: Dict[str, InsuranceFn] = {
    "never": never_insure,
    "count": count_insurance,
}
