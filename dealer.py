"""
Dealer rules, round results and payouts.

The dealer's behaviour is fixed by two table rules: whether the dealer hits
soft 17 and whether the dealer peeks for blackjack under an Ace or ten-valued
upcard.  Results follow casino precedence: a busted player loses before the
dealer plays, naturals are settled next, then dealer busts, then totals.

Payouts are whole chips.  Fractional blackjack payouts are floored, never
rounded, so a $15 bet at 3:2 returns $37.
"""

from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Callable, List, Optional, Sequence, Union
import logging
import math

from errors import ConfigurationError, InvariantViolation
from game import TEN_RANKS, Card, Hand, Rank, hand_value, is_blackjack, is_busted, is_soft, parse_rank

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DealerRules:
    hit_soft_17: bool = True
    peek_for_blackjack: bool = True


class HandResult(str, Enum):
    WIN = "WIN"
    LOSE = "LOSE"
    PUSH = "PUSH"
    BUST = "BUST"
    BLACKJACK = "BLACKJACK"
    SURRENDER = "SURRENDER"


def parse_payout_ratio(value: Union[str, float, int, Fraction]) -> Fraction:
    """
    Parse a blackjack payout ratio.

    Accepts ``"3:2"``/``"6:5"`` style strings, decimal strings and numbers.
    Floats are snapped to the nearest small fraction so ``1.2`` becomes 6/5.
    """
    try:
        if isinstance(value, str) and ":" in value:
            num, den = value.split(":")
            ratio = Fraction(int(num), int(den))
        elif isinstance(value, str):
            ratio = Fraction(value.strip())
        else:
            ratio = Fraction(value).limit_denominator(1000)
    except (ValueError, ZeroDivisionError, TypeError):
        raise ConfigurationError(f"invalid blackjack payout ratio: {value!r}") from None
    if ratio <= 0:
        raise ConfigurationError(f"blackjack payout ratio must be positive: {value!r}")
    return ratio


def format_payout_ratio(value) -> str:
    ratio = parse_payout_ratio(value)
    return f"{ratio.numerator}:{ratio.denominator}"


def should_dealer_hit(cards: Sequence[Card], rules: DealerRules) -> bool:
    """Hit 16 or less; hit 17 only when soft and the table hits soft 17."""
    total = hand_value(cards)
    if total <= 16:
        return True
    if total == 17:
        return rules.hit_soft_17 and is_soft(cards)
    return False


def should_peek_for_blackjack(upcard_rank) -> bool:
    rank = parse_rank(upcard_rank)
    return rank is Rank.ACE or rank in TEN_RANKS


def should_offer_insurance(upcard_rank, insurance_available: bool = True) -> bool:
    return insurance_available and parse_rank(upcard_rank) is Rank.ACE


def insurance_payout(stake: int, dealer_cards: Sequence[Card]) -> int:
    """Insurance pays 2:1 when the dealer has blackjack.  Stake included, like ``calculate_payout``."""
    return stake * 3 if is_blackjack(dealer_cards) else 0


def determine_result(
    player_cards: Sequence[Card],
    dealer_cards: Sequence[Card],
    player_natural: Optional[bool] = None,
) -> HandResult:
    """
    Compare a finished player hand against the dealer's.

    ``player_natural`` overrides blackjack detection for the player, e.g. a
    two-card 21 on a split hand is not a natural.
    """
    if player_natural is None:
        player_natural = is_blackjack(player_cards)
    if is_busted(player_cards):
        return HandResult.BUST

    dealer_natural = is_blackjack(dealer_cards)
    if player_natural and not dealer_natural:
        return HandResult.BLACKJACK
    if player_natural and dealer_natural:
        return HandResult.PUSH
    if dealer_natural:
        return HandResult.LOSE
    if is_busted(dealer_cards):
        return HandResult.WIN

    player_total = hand_value(player_cards)
    dealer_total = hand_value(dealer_cards)
    if player_total > dealer_total:
        return HandResult.WIN
    if player_total < dealer_total:
        return HandResult.LOSE
    return HandResult.PUSH


def settle_hand(hand: Hand, dealer_cards: Sequence[Card]) -> HandResult:
    if hand.surrendered:
        return HandResult.SURRENDER
    return determine_result(hand.cards, dealer_cards, player_natural=hand.is_blackjack())


def calculate_payout(hand: Hand, result: HandResult, blackjack_multiplier=1.5) -> int:
    """
    Chips returned to the player for ``hand``, stake included.

    A surrendered hand reports 0 here; the half-bet refund is the caller's
    business.
    """
    bet = hand.bet
    if result is HandResult.BLACKJACK:
        return bet + math.floor(bet * parse_payout_ratio(blackjack_multiplier))
    if result is HandResult.WIN:
        return bet * 2
    if result is HandResult.PUSH:
        return bet
    if result in (HandResult.LOSE, HandResult.BUST, HandResult.SURRENDER):
        return 0
    raise InvariantViolation(f"unhandled hand result: {result!r}")


def dealer_hand_description(cards: Sequence[Card], revealed: bool) -> str:
    """Short label for the dealer's hand, e.g. ``"K + ?"`` or ``"Soft 17"``."""
    if not cards:
        return ""
    if not revealed:
        return f"{cards[0].rank.value} + ?"
    total = hand_value(cards)
    if is_blackjack(cards):
        return "Blackjack!"
    if total > 21:
        return f"Bust ({total})"
    if is_soft(cards):
        return f"Soft {total}"
    return str(total)


class DealerPhase(str, Enum):
    AWAITING_PEEK = "AWAITING_PEEK"
    PEEK = "PEEK"
    DEALER_DRAWING = "DEALER_DRAWING"
    DEALER_DONE = "DEALER_DONE"
    RESULT_DETERMINED = "RESULT_DETERMINED"


class DealerTurn:
    """
    The dealer's side of one round.

    ``peek`` runs once after the initial deal, ``play`` once after every
    player hand is finished, ``settle`` once at the end.  Calling them out of
    order raises ``InvariantViolation``.

    ``on_reveal`` is called with the hole card when it is turned over: by a
    peek that finds blackjack, otherwise at the start of ``play``.
    """

    def __init__(
        self,
        hand: Hand,
        rules: DealerRules,
        on_reveal: Optional[Callable[[Card], None]] = None,
    ) -> None:
        if len(hand.cards) != 2:
            raise InvariantViolation("dealer turn needs the two-card initial hand")
        self.hand = hand
        self.rules = rules
        self.on_reveal = on_reveal
        self.phase = DealerPhase.AWAITING_PEEK
        self.peeked = False
        self.revealed = False

    @property
    def upcard(self) -> Card:
        return self.hand.cards[0]

    @property
    def hole_card(self) -> Card:
        return self.hand.cards[1]

    def _reveal(self) -> None:
        if self.revealed:
            return
        self.revealed = True
        if self.on_reveal is not None:
            self.on_reveal(self.hole_card)

    def _require(self, *phases: DealerPhase) -> None:
        if self.phase not in phases:
            raise InvariantViolation(f"dealer turn is in {self.phase.value}, expected one of "
                                     f"{', '.join(p.value for p in phases)}")

    def peek(self) -> bool:
        """Check the hole card when the rules and upcard call for it.  Returns True on dealer blackjack."""
        self._require(DealerPhase.AWAITING_PEEK)
        if not (self.rules.peek_for_blackjack and should_peek_for_blackjack(self.upcard.rank)):
            return False
        self.phase = DealerPhase.PEEK
        self.peeked = True
        if is_blackjack(self.hand.cards):
            self._reveal()
            return True
        return False

    def play(self, deal_to: Callable[[Hand], None], needs_draw: bool = True) -> None:
        """
        Draw to the dealer's hand until the rules say stand.

        ``deal_to`` adds one card from the shoe to the given hand.  With
        ``needs_draw`` false (every player hand busted, surrendered or was a
        natural) the dealer only reveals.
        """
        self._require(DealerPhase.AWAITING_PEEK, DealerPhase.PEEK)
        self.phase = DealerPhase.DEALER_DRAWING
        self._reveal()
        if needs_draw and not is_blackjack(self.hand.cards):
            while should_dealer_hit(self.hand.cards, self.rules):
                deal_to(self.hand)
                log.debug("dealer draws %s (total %d)", self.hand.cards[-1], self.hand.value)
        self.hand.finish()
        self.phase = DealerPhase.DEALER_DONE

    def settle(self, hands: Sequence[Hand]) -> List[HandResult]:
        self._require(DealerPhase.DEALER_DONE)
        results = [settle_hand(h, self.hand.cards) for h in hands]
        self.phase = DealerPhase.RESULT_DETERMINED
        return results
