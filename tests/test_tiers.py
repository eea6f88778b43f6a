# tests/test_tiers.py

from decimal import Decimal

import pytest

from incentive.calculator.errors import SchemeExecutionError
from incentive.calculator.tiers import calculate_tiered_payout
from incentive.models import PayoutTier

TWO_TIERS = [
    {'id': 'T1', 'from': 0, 'to': 1000, 'rate': 5},
    {'id': 'T2', 'from': 1000, 'to': None, 'rate': 10},
]


@pytest.mark.parametrize("amount, expected", [
    (1500, Decimal('100')),
    (1000, Decimal('50')),
    (400, Decimal('20')),
    (0, Decimal('0')),
    (-250, Decimal('0')),
])
def test_marginal_rates_apply_per_slice(amount, expected):
    assert calculate_tiered_payout(Decimal(amount), TWO_TIERS) == expected


def test_single_unbounded_tier():
    assert calculate_tiered_payout(Decimal(3000), [{'from': 0, 'to': None, 'rate': 10}]) == Decimal(300)


def test_tier_order_in_input_does_not_matter():
    assert calculate_tiered_payout(Decimal(1500), list(reversed(TWO_TIERS))) == Decimal(100)


def test_no_tiers_pays_nothing():
    assert calculate_tiered_payout(Decimal(1500), []) == 0


def test_amount_below_first_tier_pays_nothing():
    tiers = [{'from': 500, 'to': None, 'rate': 10}]
    assert calculate_tiered_payout(Decimal(400), tiers) == 0
    assert calculate_tiered_payout(Decimal(600), tiers) == Decimal(10)


def test_fixed_rate_tier_is_a_per_unit_multiplier():
    tiers = [PayoutTier(id='F', lower_bound=Decimal(0), upper_bound=None, rate=Decimal('0.02'), is_percentage=False)]
    assert calculate_tiered_payout(Decimal(1000), tiers) == Decimal(20)


def test_payout_is_continuous_and_non_decreasing():
    tiers = [
        {'from': 0, 'to': 1000, 'rate': 5},
        {'from': 1000, 'to': 2500, 'rate': 10},
        {'from': 2500, 'to': 4000, 'rate': 12},
        {'from': 4000, 'to': None, 'rate': 15},
    ]
    step = Decimal('0.5')
    previous = Decimal(0)
    amount = Decimal(0)
    while amount <= 5000:
        payout = calculate_tiered_payout(amount, tiers)
        assert payout >= previous
        # The highest marginal rate bounds how much one step can add.
        assert payout - previous <= step * Decimal('0.15')
        previous = payout
        amount += step


def test_non_numeric_tier_bounds_raise():
    with pytest.raises(SchemeExecutionError):
        calculate_tiered_payout(Decimal(10), [{'from': 'zero', 'to': None, 'rate': 5}])
