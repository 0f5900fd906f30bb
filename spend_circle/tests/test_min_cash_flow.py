"""
Unit Tests for Min-Cash-Flow Algorithm

Tests cover:
- Rounding helpers and zero-sum validation
- Greedy netting on small and larger circles
- Deterministic ordering of ties
- Edge cases (empty, single user, unbalanced input)
"""

import pytest
from decimal import Decimal
from spend_circle.utils.min_cash_flow import (
    is_zero,
    min_cash_flow,
    round_decimal,
    validate_balance_sum
)


def apply_transfers(balances, transfers):
    remaining = dict(balances)
    for transfer in transfers:
        remaining[transfer["from"]] += transfer["amount"]
        remaining[transfer["to"]] -= transfer["amount"]
    return remaining


class TestRoundDecimal:
    """Test the round_decimal utility function."""

    def test_round_to_cents(self):
        assert round_decimal(Decimal("43.333333")) == Decimal("43.33")
        assert round_decimal(Decimal("43.336666")) == Decimal("43.34")
        # ROUND_HALF_EVEN (banker's rounding)
        assert round_decimal(Decimal("100.005")) == Decimal("100.00")
        assert round_decimal(Decimal("100.015")) == Decimal("100.02")

    def test_non_decimal_input(self):
        assert round_decimal(0.1) == Decimal("0.10")
        assert round_decimal(7) == Decimal("7.00")

    def test_is_zero(self):
        assert is_zero(Decimal("0.01"))
        assert is_zero(Decimal("-0.005"))
        assert not is_zero(Decimal("0.02"))


class TestValidateBalanceSum:

    def test_valid_balanced_sum(self):
        validate_balance_sum({"A": Decimal("50"), "B": Decimal("-50")})

    def test_rounding_slack_grows_with_members(self):
        balances = {"A": Decimal("33.34"), "B": Decimal("-33.33"), "C": Decimal("-0.02")}
        validate_balance_sum(balances)

    def test_invalid_outside_tolerance(self):
        balances = {"A": Decimal("50"), "B": Decimal("-49")}
        with pytest.raises(ValueError, match="Balances not zero-sum"):
            validate_balance_sum(balances)


@pytest.mark.unit
class TestMinCashFlow:

    def test_single_transfer(self):
        transfers = min_cash_flow({"alice": Decimal("100"), "bob": Decimal("0"), "carol": Decimal("-100")})
        assert transfers == [{"from": "carol", "to": "alice", "amount": Decimal("100.00")}]

    def test_largest_debtor_pays_largest_creditor_first(self):
        balances = {"A": Decimal("80"), "B": Decimal("-10"), "C": Decimal("-70")}
        transfers = min_cash_flow(balances)
        assert transfers == [
            {"from": "C", "to": "A", "amount": Decimal("70.00")},
            {"from": "B", "to": "A", "amount": Decimal("10.00")},
        ]

    def test_ties_keep_balance_order(self):
        balances = {"A": Decimal("50"), "B": Decimal("50"), "C": Decimal("-50"), "D": Decimal("-50")}
        transfers = min_cash_flow(balances)
        assert transfers == [
            {"from": "C", "to": "A", "amount": Decimal("50.00")},
            {"from": "D", "to": "B", "amount": Decimal("50.00")},
        ]

    def test_settles_everyone(self):
        balances = {
            "A": Decimal("66.67"),
            "B": Decimal("-10.00"),
            "C": Decimal("-43.33"),
            "D": Decimal("-13.34"),
        }
        transfers = min_cash_flow(balances)
        remaining = apply_transfers(balances, transfers)
        assert all(is_zero(value) for value in remaining.values())
        assert len(transfers) <= 3

    def test_transfer_count_bound(self):
        balances = {
            "A": Decimal("120"), "B": Decimal("35"), "C": Decimal("-40"),
            "D": Decimal("-55"), "E": Decimal("-60"),
        }
        transfers = min_cash_flow(balances)
        assert len(transfers) <= 2 + 3 - 1
        assert all(t["amount"] > Decimal("0.01") for t in transfers)
        remaining = apply_transfers(balances, transfers)
        assert all(is_zero(value) for value in remaining.values())

    def test_within_tolerance_is_settled(self):
        assert min_cash_flow({"A": Decimal("0.01"), "B": Decimal("-0.01")}) == []

    def test_empty_and_single(self):
        assert min_cash_flow({}) == []
        assert min_cash_flow({"A": Decimal("10")}) == []

    def test_unbalanced_input_is_netted_with_warning(self, caplog):
        transfers = min_cash_flow({"A": Decimal("100"), "B": Decimal("-60")})
        assert transfers == [{"from": "B", "to": "A", "amount": Decimal("60.00")}]
        assert "unbalanced" in caplog.text

    def test_max_iterations_guard(self):
        balances = {f"c{i}": Decimal("1") for i in range(5)}
        balances.update({f"d{i}": Decimal("-1") for i in range(5)})
        with pytest.raises(RuntimeError, match="max_iterations"):
            min_cash_flow(balances, max_iterations=2)
