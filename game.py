"""
Cards, the shoe and hand evaluation for a counting-aware Blackjack table.

The shoe holds ``num_decks`` full 52-card decks.  Each card carries the tag
value of the counting system that was active when the shoe was built, and the
shoe keeps a running count of every card dealt since the last reshuffle.  The
true count is derived on demand from the running count and the number of
decks left in the shoe.

Hand evaluation is done with plain functions over a sequence of cards so the
same code serves player hands, dealer hands and the strategy advisor.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple
import logging
import math
import random

from counting import DEFAULT_SYSTEM, SystemLike, count_value, get_system
from errors import ConfigurationError, InvariantViolation

log = logging.getLogger(__name__)


# ----- Card definitions -----
class Rank(str, Enum):
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"


class Suit(str, Enum):
    HEARTS = "H"
    DIAMONDS = "D"
    CLUBS = "C"
    SPADES = "S"


RANKS: List[Rank] = list(Rank)
SUITS: List[Suit] = list(Suit)
TEN_RANKS = frozenset({Rank.TEN, Rank.JACK, Rank.QUEEN, Rank.KING})
VALUES = {
    Rank.ACE: 11,
    Rank.TWO: 2,
    Rank.THREE: 3,
    Rank.FOUR: 4,
    Rank.FIVE: 5,
    Rank.SIX: 6,
    Rank.SEVEN: 7,
    Rank.EIGHT: 8,
    Rank.NINE: 9,
    Rank.TEN: 10,
    Rank.JACK: 10,
    Rank.QUEEN: 10,
    Rank.KING: 10,
}

CARDS_PER_DECK = 52
# Joining a table in progress burns at most 75% of one deck.
MID_SHOE_MAX_BURN = int(0.75 * CARDS_PER_DECK)


def parse_rank(rank) -> Rank:
    """Return ``rank`` as a :class:`Rank`, raising ``ConfigurationError`` if it is not one."""
    try:
        return Rank(rank)
    except ValueError:
        raise ConfigurationError(f"invalid rank: {rank!r}") from None


@dataclass(frozen=True)
class Card:
    """A dealt or undealt card.  ``count`` is the tag value stamped at shoe build time."""

    rank: Rank
    suit: Suit = Suit.HEARTS
    count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "rank", parse_rank(self.rank))
        object.__setattr__(self, "suit", Suit(self.suit))

    @property
    def value(self) -> int:
        return VALUES[self.rank]

    @property
    def is_ace(self) -> bool:
        return self.rank is Rank.ACE

    @property
    def is_ten(self) -> bool:
        return self.rank in TEN_RANKS

    def __str__(self) -> str:
        return f"{self.rank.value}{self.suit.value}"


# ----- Shoe construction -----
def create_deck(system: SystemLike = DEFAULT_SYSTEM) -> List[Card]:
    """One ordered 52-card deck with count values from ``system``."""
    return [Card(rank, suit, count_value(rank, system)) for suit in SUITS for rank in RANKS]


def create_shuffled_shoe(
    num_decks: int,
    system: SystemLike = DEFAULT_SYSTEM,
    rng: Optional[random.Random] = None,
) -> List[Card]:
    """Build ``num_decks`` decks and shuffle them in place (Fisher-Yates)."""
    if num_decks < 1:
        raise ConfigurationError(f"num_decks must be at least 1, got {num_decks}")
    rng = rng or random.Random()
    cards: List[Card] = []
    for _ in range(num_decks):
        cards.extend(create_deck(system))
    rng.shuffle(cards)
    return cards


def create_mid_shoe(
    num_decks: int,
    system: SystemLike = DEFAULT_SYSTEM,
    rng: Optional[random.Random] = None,
) -> Tuple[List[Card], int]:
    """
    Simulate sitting down at a table whose shoe is already in play.

    A uniform random number of cards in ``[0, MID_SHOE_MAX_BURN]`` is removed
    from the top of a freshly shuffled shoe.  The burned cards are never
    counted, so the player starts with a running count of zero and no way of
    knowing what has already left the shoe.

    :returns: ``(cards, burned)``
    """
    rng = rng or random.Random()
    cards = create_shuffled_shoe(num_decks, system, rng)
    burned = rng.randint(0, min(MID_SHOE_MAX_BURN, len(cards)))
    # the top of the shoe is the end of the list
    return cards[: len(cards) - burned], burned


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


class Shoe:
    """
    A multi-deck shoe with running count tracking.

    One instance belongs to one game session.  The cut card sits
    ``cut_card_offset`` cards from the back; once the cards removed from the
    shoe (dealt plus any mid-shoe burn) reach it, :meth:`is_at_cut_card`
    becomes true and the caller reshuffles before the next round.
    """

    def __init__(
        self,
        num_decks: int = 6,
        counting_system: SystemLike = DEFAULT_SYSTEM,
        penetration: float = 0.75,
        rng: Optional[random.Random] = None,
        mid_shoe: bool = False,
    ) -> None:
        if num_decks < 1:
            raise ConfigurationError(f"num_decks must be at least 1, got {num_decks}")
        if not 0 < penetration <= 1:
            raise ConfigurationError(f"penetration must be in (0, 1], got {penetration}")
        self.num_decks = num_decks
        self.penetration = penetration
        self._system = get_system(counting_system)
        self._rng = rng or random.Random()
        self.shoes_dealt = 0
        self.running_count = 0
        self._dealt: List[Card] = []
        # dealt face down, counted once revealed
        self._face_down: List[Card] = []
        if mid_shoe:
            self._cards, self.burned = create_mid_shoe(num_decks, self._system.id, self._rng)
            log.debug("mid-shoe start: %d cards burned", self.burned)
        else:
            self._cards = create_shuffled_shoe(num_decks, self._system.id, self._rng)
            self.burned = 0

    @classmethod
    def from_rules(cls, rules, rng: Optional[random.Random] = None) -> "Shoe":
        """Build a shoe from a ``TableRules`` instance."""
        return cls(
            num_decks=rules.num_decks,
            counting_system=rules.counting_system,
            penetration=rules.penetration,
            rng=rng,
            mid_shoe=rules.mid_shoe_start,
        )

    # ----- state -----
    @property
    def counting_system(self):
        return self._system.id

    @property
    def total_cards(self) -> int:
        return self.num_decks * CARDS_PER_DECK

    @property
    def cards_dealt(self) -> int:
        return len(self._dealt)

    @property
    def dealt_cards(self) -> List[Card]:
        return list(self._dealt)

    @property
    def cut_card_offset(self) -> int:
        """Cards left behind the cut card."""
        return self.total_cards - math.floor(self.total_cards * self.penetration)

    def cards_remaining(self) -> int:
        return len(self._cards)

    def decks_remaining(self) -> float:
        return len(self._cards) / CARDS_PER_DECK

    def decks_remaining_estimate(self) -> float:
        """Decks left as a player would eyeball them: nearest half deck, at least 0.5."""
        return max(0.5, _round_half_up(self.decks_remaining() * 2) / 2)

    def true_count(self) -> float:
        """
        Running count divided by the decks remaining.

        Decks remaining is rounded half-up to a whole deck and never drops
        below one, so the true count stays stable near deck boundaries and
        deep into the shoe.
        """
        return self.running_count / max(1, _round_half_up(self.decks_remaining()))

    def betting_true_count(self) -> int:
        """True count floored toward negative infinity, as used for bet ramps."""
        return math.floor(self.true_count())

    def is_at_cut_card(self) -> bool:
        return self.burned + self.cards_dealt >= self.total_cards - self.cut_card_offset

    # ----- operations -----
    def deal_one(self, counted: bool = True) -> Card:
        """
        Deal the top card.

        A face-up card adds its tag value to the running count straight away.
        With ``counted`` false (the dealer's hole card) the count is held back
        until :meth:`count_card` is called on reveal.
        """
        if not self._cards:
            raise InvariantViolation("shoe exhausted; reshuffle at the cut card before dealing")
        card = self._cards.pop()
        self._dealt.append(card)
        if counted:
            self.running_count += card.count
        else:
            self._face_down.append(card)
        return card

    @property
    def face_down_cards(self) -> List[Card]:
        return list(self._face_down)

    def count_card(self, card: Card) -> None:
        """Add a revealed face-down card to the running count."""
        for i, c in enumerate(self._face_down):
            if c is card:
                del self._face_down[i]
                break
        else:
            raise InvariantViolation(f"{card} is not a face-down card from this shoe")
        self.running_count += count_value(card.rank, self._system.id)

    def reshuffle(self) -> None:
        """Replace the shoe with a fresh one and reset the counts."""
        self._cards = create_shuffled_shoe(self.num_decks, self._system.id, self._rng)
        self._dealt = []
        self._face_down = []
        self.burned = 0
        self.running_count = 0
        self.shoes_dealt += 1
        log.debug("reshuffled %d-deck shoe (shoe #%d)", self.num_decks, self.shoes_dealt)

    def set_counting_system(self, system: SystemLike) -> None:
        """
        Switch counting systems mid-shoe.

        Undealt cards are restamped and the running count is recomputed from
        the dealt stream under the new system.  Cards already handed out keep
        the values they were dealt with.
        """
        self._system = get_system(system)
        self._cards = [replace(c, count=count_value(c.rank, self._system.id)) for c in self._cards]
        self.running_count = sum(
            count_value(c.rank, self._system.id)
            for c in self._dealt
            if not any(c is d for d in self._face_down)
        )
        log.debug("counting system switched to %s", self._system.id.value)


# ----- Hand evaluation -----
def hard_total(cards: Sequence[Card]) -> int:
    """Total with every ace counted as 1."""
    return sum(1 if c.is_ace else c.value for c in cards)


def _best_total(cards: Sequence[Card]) -> Tuple[int, int]:
    """Return (total, aces still counted as 11)."""
    total = 0
    aces = 0
    for c in cards:
        total += c.value
        if c.is_ace:
            aces += 1
    while total > 21 and aces > 0:
        total -= 10
        aces -= 1
    return total, aces


def hand_value(cards: Sequence[Card]) -> int:
    """
    Compute the Blackjack value of the cards, counting Aces as 11 and
    demoting them to 1 one at a time while the total is over 21.
    """
    return _best_total(cards)[0]


def is_soft(cards: Sequence[Card]) -> bool:
    """True when an Ace is still counted as 11.  A single card is never soft."""
    if len(cards) < 2:
        return False
    total, aces = _best_total(cards)
    return aces > 0 and total <= 21


def is_blackjack(cards: Sequence[Card]) -> bool:
    return (
        len(cards) == 2
        and any(c.is_ace for c in cards)
        and any(c.is_ten for c in cards)
    )


def is_busted(cards: Sequence[Card]) -> bool:
    return hand_value(cards) > 21


def can_split(
    cards: Sequence[Card],
    current_split_depth: int = 0,
    max_resplits: int = 3,
    allow_resplit_aces: bool = False,
) -> bool:
    """Two cards of the same rank, under the resplit limit and the resplit-aces rule."""
    if len(cards) != 2 or cards[0].rank != cards[1].rank:
        return False
    if current_split_depth >= max_resplits:
        return False
    if cards[0].is_ace and current_split_depth > 0:
        return allow_resplit_aces
    return True


def can_double(cards: Sequence[Card], chips_available: int, bet_amount: int) -> bool:
    """Any two-card total may double as long as the chips cover a second bet."""
    return len(cards) == 2 and chips_available >= bet_amount


@dataclass
class Hand:
    """A player's or dealer's hand and the associated bet."""

    cards: List[Card] = field(default_factory=list)
    bet: int = 0
    actions: List[str] = field(default_factory=list)
    doubled: bool = False
    surrendered: bool = False
    split_depth: int = 0
    from_split: bool = False
    finished: bool = False

    @property
    def value(self) -> int:
        return hand_value(self.cards)

    @property
    def soft(self) -> bool:
        return is_soft(self.cards)

    @property
    def busted(self) -> bool:
        return is_busted(self.cards)

    def is_blackjack(self) -> bool:
        """A natural: two-card 21 on the original hand, never after a split."""
        return not self.from_split and is_blackjack(self.cards)

    def add_card(self, card: Card) -> None:
        if self.finished:
            raise InvariantViolation("cannot add a card to a finished hand")
        self.cards.append(card)

    def finish(self) -> None:
        self.finished = True

    def can_split(self, max_resplits: int, allow_resplit_aces: bool) -> bool:
        return can_split(self.cards, self.split_depth, max_resplits, allow_resplit_aces)

    def can_double(self, chips_available: int) -> bool:
        return can_double(self.cards, chips_available, self.bet)
