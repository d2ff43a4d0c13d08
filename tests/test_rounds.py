import random

import pytest

from counting import count_value
from dealer import HandResult
from errors import ConfigurationError
from game import Card, Shoe, hand_value, is_blackjack, is_busted
from rounds import _bet_from_true_count, play_round, simulate_rounds
from schemas import TableRules
from strategies import Action, recommend_action, simplest_strategy
from tests.conftest import card, cards


def stack(shoe, *ranks):
    """Put ``ranks`` on top of the shoe so they are dealt in the given order."""
    top = [Card(r, "S", count_value(r, shoe.counting_system)) for r in ranks]
    shoe._cards.extend(reversed(top))


@pytest.fixture
def rules():
    return TableRules(mid_shoe_start=False)


@pytest.fixture
def shoe(rng):
    return Shoe(num_decks=6, rng=rng)


class TestMidShoeScenario:
    def test_stiff_twelve_against_nine(self, rng):
        shoe = Shoe(num_decks=6, rng=rng, mid_shoe=True)
        assert shoe.running_count == 0
        assert shoe.cards_dealt == 0

        player = cards("5", "7")
        upcard = card("9")
        assert recommend_action(player, upcard, TableRules().dealer_rules()) is Action.HIT

        player.append(card("9"))
        assert hand_value(player) == 21
        assert not is_busted(player)
        assert not is_blackjack(player)

    def test_mid_shoe_round(self, rng):
        shoe = Shoe(num_decks=6, rng=rng, mid_shoe=True)
        burned = shoe.burned
        stack(shoe, "5", "9", "7", "8", "9")
        summary = play_round(shoe, TableRules(), bet=10)

        (record,) = summary.hands
        assert [d.recommended for d in record.decisions] == [Action.HIT]
        assert [d.action for d in record.decisions] == [Action.HIT]
        assert record.decisions[0].player_total == 12
        assert record.cards == ["5S", "7S", "9S"]
        assert record.final_value == 21
        assert not record.busted
        assert not record.blackjack
        assert record.result is HandResult.WIN
        assert summary.running_count_start == 0
        assert summary.running_count == 1
        assert shoe.burned == burned
        assert shoe.cards_dealt == 5


class TestPlayRound:
    def test_hit_to_21(self, shoe, rules):
        stack(shoe, "5", "9", "7", "8", "9")
        summary = play_round(shoe, rules, bet=10)

        (record,) = summary.hands
        assert record.cards == ["5S", "7S", "9S"]
        assert record.final_value == 21
        assert not record.blackjack
        assert record.result is HandResult.WIN
        assert record.payout == 20
        assert record.profit == 10
        assert [d.action for d in record.decisions] == [Action.HIT]
        assert record.decisions[0].recommended is Action.HIT
        assert summary.was_correct_play
        assert summary.dealer_value == 17
        assert summary.running_count == summary.running_count_start + 1
        # four initial cards, one hit, the hole card revealed
        assert len(summary.deals) == 6
        assert summary.deals[4].hand_value == 21
        assert summary.deals[1].target == "dealer"
        assert summary.deals[-1].card == "8S"
        assert summary.deals[-1].hand_value == 17

    def test_dealer_blackjack_after_peek(self, shoe, rules):
        stack(shoe, "10", "A", "9", "K")
        summary = play_round(shoe, rules, bet=10)
        assert summary.dealer_blackjack
        (record,) = summary.hands
        assert record.result is HandResult.LOSE
        assert record.decisions == []
        assert record.profit == -10
        assert not summary.was_correct_play

    def test_player_blackjack(self, shoe, rules):
        stack(shoe, "A", "9", "K", "7")
        summary = play_round(shoe, rules, bet=10)
        (record,) = summary.hands
        assert record.result is HandResult.BLACKJACK
        assert record.payout == 25
        assert record.profit == 15
        # nothing left to beat, the dealer only reveals
        assert summary.dealer_cards == ["9S", "7S"]

    def test_six_to_five_blackjack(self, shoe):
        stack(shoe, "A", "9", "K", "7")
        summary = play_round(shoe, TableRules(blackjack_payout="6:5"), bet=15)
        assert summary.blackjack_payout == "6:5"
        assert summary.hands[0].payout == 33

    def test_double(self, shoe, rules):
        stack(shoe, "6", "6", "5", "10", "10", "10")
        summary = play_round(shoe, rules, bet=10)
        (record,) = summary.hands
        assert record.doubled
        assert record.bet == 20
        assert record.cards == ["6S", "5S", "10S"]
        assert record.result is HandResult.WIN
        assert record.payout == 40
        assert summary.dealer_value == 26

    def test_double_needs_chips(self, shoe, rules):
        stack(shoe, "6", "6", "5", "10", "3", "10")
        summary = play_round(shoe, rules, bet=10, chips=5)
        (record,) = summary.hands
        assert not record.doubled
        assert record.decisions[0].action is Action.HIT

    def test_split(self, shoe, rules):
        stack(shoe, "8", "10", "8", "7", "3", "10", "10")
        summary = play_round(shoe, rules, bet=10)
        first, second = summary.hands
        assert first.cards == ["8S", "3S", "10S"]
        assert first.doubled and first.bet == 20
        assert first.result is HandResult.WIN
        assert second.cards == ["8S", "10S"]
        assert second.result is HandResult.WIN
        assert first.from_split and second.from_split
        assert summary.total_bet == 30
        assert summary.total_profit == 30
        assert [d.action for d in first.decisions] == [Action.SPLIT, Action.DOUBLE]
        assert [d.action for d in second.decisions] == [Action.STAND]
        assert {d.target for d in summary.deals} == {"player-1", "player-2", "dealer"}

    def test_split_aces_get_one_card(self, shoe, rules):
        stack(shoe, "A", "9", "A", "8", "5", "6")
        summary = play_round(shoe, rules, bet=10)
        first, second = summary.hands
        assert first.cards == ["AS", "5S"]
        assert second.cards == ["AS", "6S"]
        assert first.decisions[0].action is Action.SPLIT
        assert second.decisions == []

    def test_split_21_is_not_blackjack(self, shoe, rules):
        stack(shoe, "A", "9", "A", "8", "K", "6")
        summary = play_round(shoe, rules, bet=10)
        first = summary.hands[0]
        assert first.final_value == 21
        assert not first.blackjack
        assert first.result is HandResult.WIN
        assert first.payout == 20

    def test_surrender(self, shoe, rules):
        stack(shoe, "10", "10", "6", "7")
        summary = play_round(shoe, rules, bet=10)
        (record,) = summary.hands
        assert record.surrendered
        assert record.result is HandResult.SURRENDER
        assert record.payout == 0
        assert record.refund == 5
        assert record.profit == -5
        assert summary.dealer_cards == ["10S", "7S"]

    def test_illegal_action_stands(self, shoe, rules):
        stack(shoe, "10", "10", "6", "7")
        summary = play_round(shoe, rules, bet=10, strategy_fn=lambda h, up, o: Action.SPLIT)
        (record,) = summary.hands
        assert record.decisions[0].action is Action.STAND
        assert not record.decisions[0].correct
        assert record.result is HandResult.LOSE

    def test_bust(self, shoe, rules):
        stack(shoe, "10", "5", "6", "6", "10")
        summary = play_round(shoe, rules, bet=10, strategy_fn=simplest_strategy)
        (record,) = summary.hands
        assert record.busted
        assert record.result is HandResult.BUST
        assert record.payout == 0
        assert summary.dealer_cards == ["5S", "6S"]

    def test_negative_bet(self, shoe, rules):
        with pytest.raises(ConfigurationError):
            play_round(shoe, rules, bet=-1)


class TestHoleCard:
    def test_not_counted_before_reveal(self, shoe, rules):
        stack(shoe, "10", "7", "6", "K")
        seen = []

        def stand(hand, up, options):
            seen.append((shoe.running_count, shoe.true_count()))
            return Action.STAND

        summary = play_round(shoe, rules, bet=10, strategy_fn=stand)
        # only the 10, 7 and 6 are visible at the decision
        assert seen == [(0, 0.0)]
        assert summary.running_count == -1
        assert summary.dealer_value == 17

    def test_snapshot_hides_hole_card(self, shoe, rules):
        stack(shoe, "10", "7", "6", "K")
        summary = play_round(shoe, rules, bet=10, strategy_fn=lambda h, up, o: Action.STAND)
        hole = summary.deals[3]
        assert hole.face_down
        assert hole.card is None
        assert hole.target == "dealer"
        assert hole.hand_value == 7
        assert not hole.blackjack
        assert hole.running_count == 0

        revealed = summary.deals[4]
        assert not revealed.face_down
        assert revealed.card == "KS"
        assert revealed.hand_value == 17
        assert revealed.running_count == -1

    def test_revealed_by_peek(self, shoe, rules):
        stack(shoe, "10", "A", "9", "K")
        summary = play_round(shoe, rules, bet=10)
        assert [d.card for d in summary.deals] == ["10S", "AS", "9S", None, "KS"]
        assert summary.deals[3].running_count == -2
        assert summary.deals[4].blackjack
        assert summary.running_count == -3
        assert shoe.face_down_cards == []

    def test_counted_when_player_busts(self, shoe, rules):
        stack(shoe, "10", "5", "6", "6", "10")
        summary = play_round(shoe, rules, bet=10, strategy_fn=simplest_strategy)
        # 10, 5, 6, 10 face up, then the 6 in the hole
        assert summary.running_count == 1
        assert summary.deals[-1].card == "6S"


class TestInsurance:
    def test_wins_against_dealer_blackjack(self, shoe, rules):
        stack(shoe, "10", "A", "9", "K")
        summary = play_round(shoe, rules, bet=10, insurance_fn=lambda tc: True)
        assert summary.insurance_offered
        assert summary.insurance_bet == 5
        assert summary.insurance_result is HandResult.WIN
        assert summary.insurance_payout == 15
        assert summary.hands[0].result is HandResult.LOSE
        assert summary.total_bet == 15
        assert summary.total_profit == 0

    def test_loses_without_dealer_blackjack(self, shoe, rules):
        stack(shoe, "10", "A", "9", "7")
        summary = play_round(shoe, rules, bet=10, insurance_fn=lambda tc: True)
        assert summary.insurance_bet == 5
        assert summary.insurance_result is HandResult.LOSE
        assert summary.insurance_payout == 0
        assert summary.hands[0].result is HandResult.WIN
        assert summary.total_profit == 10 - 5

    def test_decided_on_visible_count(self, shoe, rules):
        stack(shoe, "10", "A", "9", "K")
        seen = []
        play_round(shoe, rules, bet=10, insurance_fn=lambda tc: seen.append(tc) or False)
        # 10 and A are -2 over six decks; the hole K is not seen
        assert seen == [pytest.approx(-2 / 6)]

    def test_declined_by_default(self, shoe, rules):
        stack(shoe, "10", "A", "9", "K")
        summary = play_round(shoe, rules, bet=10)
        assert summary.insurance_offered
        assert summary.insurance_bet == 0
        assert summary.insurance_result is None
        assert summary.total_profit == -10

    def test_only_under_an_ace(self, shoe, rules):
        stack(shoe, "10", "K", "9", "7")
        summary = play_round(shoe, rules, bet=10, insurance_fn=lambda tc: True)
        assert not summary.insurance_offered
        assert summary.insurance_bet == 0

    def test_not_offered_when_disabled(self, shoe):
        stack(shoe, "10", "A", "9", "K")
        table = TableRules(mid_shoe_start=False, insurance_available=False)
        summary = play_round(shoe, table, bet=10, insurance_fn=lambda tc: True)
        assert not summary.insurance_offered
        assert summary.insurance_bet == 0

    def test_needs_chips(self, shoe, rules):
        stack(shoe, "10", "A", "9", "K")
        summary = play_round(shoe, rules, bet=10, chips=4, insurance_fn=lambda tc: True)
        assert summary.insurance_bet == 0

    def test_stake_is_floored_half_bet(self, shoe, rules):
        stack(shoe, "10", "A", "9", "K")
        summary = play_round(shoe, rules, bet=15, insurance_fn=lambda tc: True)
        assert summary.insurance_bet == 7
        assert summary.insurance_payout == 21


class TestSimulateRounds:
    def test_rounds_played(self):
        summaries = simulate_rounds(60, TableRules(), base_bet=10, seed=7)
        assert len(summaries) == 60
        assert [s.round_id for s in summaries] == list(range(1, 61))
        for s in summaries:
            assert s.hands
            assert s.total_profit == (
                sum(h.payout + h.refund - h.bet for h in s.hands) + s.insurance_payout - s.insurance_bet
            )

    def test_count_carries_between_rounds(self):
        summaries = simulate_rounds(80, TableRules(num_decks=2), seed=11)
        for prev, cur in zip(summaries, summaries[1:]):
            # either the shoe continued or it was reshuffled to zero
            assert cur.running_count_start in (prev.running_count, 0)

    def test_deterministic_with_seed(self):
        a = simulate_rounds(20, TableRules(), seed=3)
        b = simulate_rounds(20, TableRules(), seed=3)
        assert [s.model_dump() for s in a] == [s.model_dump() for s in b]

    def test_count_bet_mode(self):
        summaries = simulate_rounds(80, TableRules(), base_bet=10, seed=5, bet_mode="count")
        for s in summaries:
            assert s.hands[0].bet // (2 if s.hands[0].doubled else 1) in (10, 20, 30, 40, 50)

    def test_unknown_strategy(self):
        with pytest.raises(ConfigurationError):
            simulate_rounds(1, strategy_name="martingale")

    def test_count_insurance(self):
        summaries = simulate_rounds(150, TableRules(num_decks=1), seed=9, insurance="count")
        for s in summaries:
            assert s.insurance_bet in (0, 5)
            if s.insurance_bet:
                assert s.dealer_upcard.startswith("A")
                assert s.insurance_result in (HandResult.WIN, HandResult.LOSE)
            assert s.total_profit == (
                sum(h.payout + h.refund - h.bet for h in s.hands) + s.insurance_payout - s.insurance_bet
            )

    def test_unknown_insurance_strategy(self):
        with pytest.raises(ConfigurationError):
            simulate_rounds(1, insurance="always")

    def test_unknown_bet_mode(self):
        with pytest.raises(ConfigurationError):
            simulate_rounds(1, bet_mode="hi-lo")

    def test_bet_ramp(self):
        assert _bet_from_true_count(-2, base=10) == 10
        assert _bet_from_true_count(0, base=10) == 10
        assert _bet_from_true_count(1, base=10) == 20
        assert _bet_from_true_count(3, base=10) == 40
        assert _bet_from_true_count(9, base=10) == 50
