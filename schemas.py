"""
Pydantic data models for table configuration and round output.

``TableRules`` is the inbound configuration supplied by the game-settings
layer.  ``DealSnapshot`` is emitted after every card for rendering, and
``RoundSummary`` is the complete record of a finished round that the
hand-history layer stores.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional

from counting import DEFAULT_SYSTEM, CountingSystem, get_system
from dealer import DealerRules, HandResult, format_payout_ratio, parse_payout_ratio
from strategies import Action


class TableRules(BaseModel):
    """House rules and shoe configuration for a table."""

    model_config = ConfigDict(frozen=True)

    num_decks: int = Field(6, ge=1, le=8, description="Number of decks in the shoe.")
    penetration: float = Field(0.75, gt=0, le=1, description="Fraction of the shoe dealt before the cut card.")
    hit_soft_17: bool = Field(True, description="Dealer hits soft 17 (H17) instead of standing (S17).")
    peek_for_blackjack: bool = Field(True, description="Dealer checks for blackjack under an Ace or ten upcard.")
    blackjack_payout: float = Field(1.5, description='Blackjack payout ratio, e.g. "3:2" (1.5) or "6:5" (1.2).')
    max_resplits: int = Field(3, ge=0, description="Maximum number of splits per round.")
    resplit_aces: bool = Field(False, description="Whether split Aces may be split again.")
    double_after_split: bool = Field(True, description="Whether split hands may double.")
    late_surrender: bool = Field(True, description="Whether the first two cards may be surrendered.")
    insurance_available: bool = Field(True, description="Insurance is offered when the dealer shows an Ace.")
    counting_system: CountingSystem = Field(DEFAULT_SYSTEM, description="Active card counting system.")
    mid_shoe_start: bool = Field(True, description="Start a session part-way through a shoe.")

    @field_validator("blackjack_payout", mode="before")
    @classmethod
    def _parse_payout(cls, v):
        return float(parse_payout_ratio(v))

    @field_validator("counting_system", mode="before")
    @classmethod
    def _parse_system(cls, v):
        return get_system(v).id

    @property
    def blackjack_payout_label(self) -> str:
        return format_payout_ratio(self.blackjack_payout)

    def dealer_rules(self) -> DealerRules:
        return DealerRules(hit_soft_17=self.hit_soft_17, peek_for_blackjack=self.peek_for_blackjack)


class DealSnapshot(BaseModel):
    """State after one card is dealt, for rendering."""

    card: Optional[str] = Field(..., description='The dealt card, e.g. "AS", or None while face down.')
    target: str = Field(..., description='Who received it: "player-1", "player-2", ... or "dealer".')
    face_down: bool = Field(False, description="The dealer's hole card before it is revealed.")
    running_count: int
    true_count: float
    cards_remaining: int
    hand_value: int = Field(..., description="Value of the target's visible cards.")
    soft: bool
    busted: bool
    blackjack: bool


class DecisionRecord(BaseModel):
    action: Action
    recommended: Action
    correct: bool
    player_total: int
    soft: bool
    dealer_upcard: str


class HandRecord(BaseModel):
    """
    Represents a single player hand within a Blackjack round (several when
    the player splits).
    """

    hand_number: int
    cards: List[str] = Field(..., description="The player's final cards in this hand.")
    final_value: int
    soft: bool
    blackjack: bool = Field(..., description="Whether the hand was a natural blackjack.")
    busted: bool
    doubled: bool
    surrendered: bool
    from_split: bool
    bet: int = Field(..., description="The total bet on this hand (includes doubling).")
    result: HandResult
    payout: int = Field(..., description="Chips returned by the table, stake included.")
    refund: int = Field(0, description="Half-bet returned on surrender.")
    profit: int = Field(..., description="payout + refund - bet")
    decisions: List[DecisionRecord] = Field(default_factory=list)


class RoundSummary(BaseModel):
    """Everything the hand-history layer needs about a finished round."""

    round_id: int
    counting_system: CountingSystem
    num_decks: int
    hit_soft_17: bool
    blackjack_payout: str
    running_count_start: int = Field(..., description="Running count when the bet was placed.")
    true_count_start: float = Field(..., description="True count when the bet was placed.")
    running_count: int = Field(..., description="Running count after the round.")
    true_count: float = Field(..., description="True count after the round.")
    decks_remaining: float
    cards_remaining: int
    reshuffle_needed: bool = Field(..., description="The cut card has been reached.")
    dealer_upcard: str
    dealer_cards: List[str]
    dealer_value: int
    dealer_blackjack: bool
    insurance_offered: bool = False
    insurance_bet: int = Field(0, description="Insurance stake, at most half the initial bet.")
    insurance_result: Optional[HandResult] = Field(None, description="WIN or LOSE when insurance was taken.")
    insurance_payout: int = Field(0, description="Chips returned on the insurance bet, stake included.")
    hands: List[HandRecord]
    total_bet: int = Field(..., description="Hand bets plus any insurance stake.")
    total_profit: int = Field(..., description="Net result of the hands and the insurance bet.")
    was_correct_play: bool = Field(..., description="Every decision matched basic strategy (with leniency).")
    deals: List[DealSnapshot] = Field(default_factory=list)
