import random

import pytest

from dealer import DealerRules
from game import Card, Hand


def card(rank, suit="H", count=0):
    return Card(rank, suit, count)


def cards(*ranks):
    return [card(r) for r in ranks]


def hand(*ranks, bet=10):
    return Hand(cards=cards(*ranks), bet=bet)


H17 = DealerRules(hit_soft_17=True, peek_for_blackjack=True)
S17 = DealerRules(hit_soft_17=False, peek_for_blackjack=True)


@pytest.fixture
def rng():
    return random.Random(1234)
