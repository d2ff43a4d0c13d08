"""
Playing complete rounds and simulating sessions.

``play_round`` runs one round against a shoe: the initial deal, insurance
under an Ace, the dealer's peek, every player decision (hit, stand, double,
split, surrender), the dealer's draw and settlement.  Every decision is
graded against basic strategy and every dealt card is captured as a
``DealSnapshot``.  The dealer's hole card stays out of the running count and
the snapshots until it is revealed.  The ``RoundSummary`` it returns is what
the hand-history layer records.

``simulate_rounds`` plays many rounds from one shoe, reshuffling between
rounds once the cut card is reached, with either a fixed bet or a bet ramp
driven by the true count.
"""

from typing import List, Optional
import logging
import random

from dealer import DealerTurn, HandResult, calculate_payout, insurance_payout, should_offer_insurance
from errors import ConfigurationError
from game import Card, Hand, Shoe
from schemas import DealSnapshot, DecisionRecord, HandRecord, RoundSummary, TableRules
from strategies import (
    INSURANCE_STRATEGIES,
    STRATEGIES,
    Action,
    InsuranceFn,
    PlayOptions,
    StrategyFn,
    basic_strategy,
    grade_decision,
    legal_actions,
    never_insure,
    recommend_action,
)

log = logging.getLogger(__name__)

# Reshuffle early rather than run out of cards mid-round.
MIN_CARDS_FOR_ROUND = 20


def _play_options(hand: Hand, hands: List[Hand], rules: TableRules, chips_left: Optional[int]) -> PlayOptions:
    can_cover = chips_left is None or chips_left >= hand.bet
    splits_so_far = len(hands) - 1
    first_decision = len(hand.cards) == 2 and not hand.actions
    return PlayOptions(
        can_split=(
            can_cover
            and splits_so_far < rules.max_resplits
            and hand.can_split(rules.max_resplits, rules.resplit_aces)
        ),
        can_double=(
            can_cover
            and len(hand.cards) == 2
            and (rules.double_after_split or not hand.from_split)
        ),
        can_surrender=rules.late_surrender and first_decision and not hand.from_split,
        rules=rules,
    )


def play_round(
    shoe: Shoe,
    rules: TableRules,
    bet: int,
    strategy_fn: StrategyFn = basic_strategy,
    chips: Optional[int] = None,
    round_id: int = 1,
    insurance_fn: InsuranceFn = never_insure,
) -> RoundSummary:
    """
    Play one round and return its summary.

    :param shoe: The session's shoe.  It must hold enough cards for a round.
    :param rules: Table rules.
    :param bet: Initial wager in whole chips.
    :param strategy_fn: Chooses the player's action at each decision point.
    :param chips: Chips available for insurance, doubles and splits beyond
        the initial bet, or ``None`` for no limit.
    :param round_id: Identifier carried into the summary.
    :param insurance_fn: Decides on insurance from the visible true count
        when the dealer shows an Ace.  The stake is half the bet, floored.
    """
    if bet < 0:
        raise ConfigurationError(f"bet must not be negative, got {bet}")
    running_count_start = shoe.running_count
    true_count_start = shoe.true_count()
    chips_left = chips

    player = Hand(bet=bet)
    dealer = Hand()
    hands: List[Hand] = [player]
    decisions: List[List[DecisionRecord]] = [[]]
    deals: List[DealSnapshot] = []

    def snapshot(hand: Hand, card: Card) -> None:
        if hand is dealer:
            target = "dealer"
        else:
            # Hand compares by value, so split hands are told apart by identity
            target = "player-%d" % next(n for n, h in enumerate(hands, start=1) if h is hand)
        deals.append(
            DealSnapshot(
                card=str(card),
                target=target,
                running_count=shoe.running_count,
                true_count=shoe.true_count(),
                cards_remaining=shoe.cards_remaining(),
                hand_value=hand.value,
                soft=hand.soft,
                busted=hand.busted,
                blackjack=hand.is_blackjack(),
            )
        )

    def deal_to(hand: Hand) -> None:
        card = shoe.deal_one()
        hand.add_card(card)
        snapshot(hand, card)

    def reveal(card: Card) -> None:
        shoe.count_card(card)
        snapshot(dealer, card)

    for hand in (player, dealer, player):
        deal_to(hand)
    upcard: Card = dealer.cards[0]
    dealer.add_card(shoe.deal_one(counted=False))
    deals.append(
        DealSnapshot(
            card=None,
            target="dealer",
            face_down=True,
            running_count=shoe.running_count,
            true_count=shoe.true_count(),
            cards_remaining=shoe.cards_remaining(),
            hand_value=upcard.value,
            soft=False,
            busted=False,
            blackjack=False,
        )
    )

    insurance_offered = should_offer_insurance(upcard.rank, rules.insurance_available)
    insurance_bet = 0
    if insurance_offered:
        stake = bet // 2
        if stake and (chips_left is None or chips_left >= stake) and insurance_fn(shoe.true_count()):
            insurance_bet = stake
            if chips_left is not None:
                chips_left -= stake
            log.debug("insurance taken for %d at true count %.2f", stake, shoe.true_count())

    turn = DealerTurn(dealer, rules.dealer_rules(), on_reveal=reveal)
    dealer_blackjack = turn.peek()

    if dealer_blackjack or player.is_blackjack():
        player.finish()

    i = 0
    while i < len(hands):
        hand = hands[i]
        while not hand.finished:
            if hand.busted or hand.value == 21:
                hand.finish()
                break
            options = _play_options(hand, hands, rules, chips_left)
            recommended = recommend_action(
                hand.cards,
                upcard,
                rules,
                can_split=options.can_split,
                can_double=options.can_double,
                can_surrender=options.can_surrender,
            )
            action = strategy_fn(hand, upcard, options)
            if action not in legal_actions(options):
                log.warning("illegal action %s on %s, standing instead",
                            action, " ".join(str(c) for c in hand.cards))
                action = Action.STAND
            decisions[i].append(
                DecisionRecord(
                    action=action,
                    recommended=recommended,
                    correct=grade_decision(action, recommended),
                    player_total=hand.value,
                    soft=hand.soft,
                    dealer_upcard=upcard.rank.value,
                )
            )
            hand.actions.append(action.value.lower())

            if action is Action.HIT:
                deal_to(hand)
            elif action is Action.STAND:
                hand.finish()
            elif action is Action.DOUBLE:
                if chips_left is not None:
                    chips_left -= hand.bet
                hand.bet *= 2
                hand.doubled = True
                deal_to(hand)
                hand.finish()
            elif action is Action.SURRENDER:
                hand.surrendered = True
                hand.finish()
            elif action is Action.SPLIT:
                if chips_left is not None:
                    chips_left -= hand.bet
                split_aces = hand.cards[0].is_ace
                second = Hand(
                    cards=[hand.cards.pop()],
                    bet=hand.bet,
                    split_depth=hand.split_depth + 1,
                    from_split=True,
                )
                hand.split_depth += 1
                hand.from_split = True
                hands.insert(i + 1, second)
                decisions.insert(i + 1, [])
                for h in (hand, second):
                    deal_to(h)
                    # split aces get one card unless they pair up again and may resplit
                    if split_aces and not (
                        len(hands) - 1 < rules.max_resplits
                        and h.can_split(rules.max_resplits, rules.resplit_aces)
                    ):
                        h.finish()
        i += 1

    needs_draw = any(not (h.busted or h.surrendered or h.is_blackjack()) for h in hands)
    turn.play(deal_to, needs_draw=needs_draw)
    results = turn.settle(hands)

    records: List[HandRecord] = []
    for n, (hand, result, hand_decisions) in enumerate(zip(hands, results, decisions), start=1):
        payout = calculate_payout(hand, result, rules.blackjack_payout)
        refund = hand.bet // 2 if result is HandResult.SURRENDER else 0
        records.append(
            HandRecord(
                hand_number=n,
                cards=[str(c) for c in hand.cards],
                final_value=hand.value,
                soft=hand.soft,
                blackjack=hand.is_blackjack(),
                busted=hand.busted,
                doubled=hand.doubled,
                surrendered=hand.surrendered,
                from_split=hand.from_split,
                bet=hand.bet,
                result=result,
                payout=payout,
                refund=refund,
                profit=payout + refund - hand.bet,
                decisions=hand_decisions,
            )
        )

    insurance_result = None
    insurance_paid = 0
    if insurance_bet:
        insurance_paid = insurance_payout(insurance_bet, dealer.cards)
        insurance_result = HandResult.WIN if insurance_paid else HandResult.LOSE

    all_decisions = [d for ds in decisions for d in ds]
    return RoundSummary(
        round_id=round_id,
        counting_system=shoe.counting_system,
        num_decks=shoe.num_decks,
        hit_soft_17=rules.hit_soft_17,
        blackjack_payout=rules.blackjack_payout_label,
        running_count_start=running_count_start,
        true_count_start=true_count_start,
        running_count=shoe.running_count,
        true_count=shoe.true_count(),
        decks_remaining=round(shoe.decks_remaining(), 3),
        cards_remaining=shoe.cards_remaining(),
        reshuffle_needed=shoe.is_at_cut_card(),
        dealer_upcard=str(upcard),
        dealer_cards=[str(c) for c in dealer.cards],
        dealer_value=dealer.value,
        dealer_blackjack=dealer.is_blackjack(),
        insurance_offered=insurance_offered,
        insurance_bet=insurance_bet,
        insurance_result=insurance_result,
        insurance_payout=insurance_paid,
        hands=records,
        total_bet=sum(r.bet for r in records) + insurance_bet,
        total_profit=sum(r.profit for r in records) + insurance_paid - insurance_bet,
        was_correct_play=bool(all_decisions) and all(d.correct for d in all_decisions),
        deals=deals,
    )


def _bet_from_true_count(tc: int, base: int = 10, max_mult: int = 5) -> int:
    """
    Bet ramp on the floored true count:
      tc ≤ 0 → base bet
      tc = 1 → base×2, tc = 2 → base×3, tc = 3 → base×4, tc ≥ 4 → base×5
    """
    if tc <= 0:
        return base
    return base * min(1 + tc, max_mult)


def simulate_rounds(
    rounds: int,
    rules: Optional[TableRules] = None,
    base_bet: int = 10,
    strategy_name: str = "basic",
    seed: Optional[int] = None,
    bet_mode: str = "fixed",  # "fixed" | "count"
    insurance: str = "never",  # "never" | "count"
) -> List[RoundSummary]:
    """Play ``rounds`` rounds from one shoe and return their summaries."""
    if strategy_name not in STRATEGIES:
        raise ConfigurationError(f"unknown strategy: {strategy_name!r}")
    if bet_mode not in ("fixed", "count"):
        raise ConfigurationError(f"unknown bet mode: {bet_mode!r}")
    if insurance not in INSURANCE_STRATEGIES:
        raise ConfigurationError(f"unknown insurance strategy: {insurance!r}")
    rules = rules or TableRules()
    strategy_fn = STRATEGIES[strategy_name]
    insurance_fn = INSURANCE_STRATEGIES[insurance]
    shoe = Shoe.from_rules(rules, rng=random.Random(seed))

    results: List[RoundSummary] = []
    for round_id in range(1, rounds + 1):
        if shoe.is_at_cut_card() or shoe.cards_remaining() < MIN_CARDS_FOR_ROUND:
            shoe.reshuffle()

        if bet_mode == "count":
            bet = _bet_from_true_count(shoe.betting_true_count(), base=base_bet)
        else:
            bet = base_bet

        results.append(
            play_round(shoe, rules, bet, strategy_fn, round_id=round_id, insurance_fn=insurance_fn)
        )
    return results
