"""
Min-Cash-Flow Algorithm Module

Greedy netting of circle balances into pairwise transfers.

The algorithm works by:
1. Separating users into creditors (positive balance) and debtors (negative balance)
2. Sorting both lists by amount, largest first (stable, so ties keep the
   balance map's order)
3. Walking both lists with two pointers and transferring the minimum of the
   current debtor's and creditor's remaining amounts

It produces at most ``len(debtors) + len(creditors) - 1`` transfers. This is a
heuristic: every balance ends at zero, but the transfer count is not guaranteed
to be minimal.

Example Usage:
    from spend_circle.utils.min_cash_flow import min_cash_flow

    balances = {"alice": Decimal("100"), "bob": Decimal("0"), "carol": Decimal("-100")}
    transfers = min_cash_flow(balances)

    # Result: [{"from": "carol", "to": "alice", "amount": Decimal("100.00")}]
"""

import logging
from decimal import Decimal
from typing import Dict, Hashable, List, Optional

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def round_decimal(value, precision: Decimal = CENT) -> Decimal:
    """
    Round a value to the specified precision.

    Floats and ints are converted through ``str`` first so that 0.1 stays 0.1.

    Example:
        >>> round_decimal(Decimal("43.333333"))
        Decimal('43.33')
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(precision)


def is_zero(value: Decimal, tolerance: Decimal = CENT) -> bool:
    """True when ``value`` is within ``tolerance`` of zero."""
    return abs(value) <= tolerance


def validate_balance_sum(
    balances: Dict[Hashable, Decimal],
    tolerance: Optional[Decimal] = None,
) -> None:
    """
    Validate that the sum of all balances is approximately zero.

    The default tolerance grows with the number of members, since each member's
    balance may carry up to one cent of rounding.

    Raises:
        ValueError: If the sum of balances exceeds the tolerance
    """
    if tolerance is None:
        tolerance = CENT * max(len(balances), 1)
    total = sum(balances.values(), Decimal('0'))
    if abs(total) > tolerance:
        raise ValueError(
            f"Balances not zero-sum: total={total}, tolerance={tolerance}. "
            f"This indicates unbalanced expense data."
        )


def min_cash_flow(
    balances: Dict[Hashable, Decimal],
    tolerance: Decimal = CENT,
    max_iterations: int = 1000,
) -> List[Dict]:
    """
    Net balances into a list of transfers.

    Args:
        balances: Mapping of user key -> signed balance (positive = owed money)
        tolerance: Amounts within this of zero are treated as settled
        max_iterations: Guard against malformed input looping forever

    Returns:
        [{"from": key, "to": key, "amount": Decimal}, ...]

    Raises:
        RuntimeError: If max_iterations is exceeded

    Example:
        >>> min_cash_flow({"A": Decimal("80"), "B": Decimal("-10"), "C": Decimal("-70")})
        [{'from': 'C', 'to': 'A', 'amount': Decimal('70.00')},
         {'from': 'B', 'to': 'A', 'amount': Decimal('10.00')}]
    """
    if len(balances) < 2:
        return []

    try:
        validate_balance_sum(balances)
    except ValueError as e:
        logger.warning(f"Netting unbalanced input: {e}")

    debtors = [
        [user, -balance]  # Store as positive for easier matching
        for user, balance in balances.items()
        if balance < -tolerance
    ]
    creditors = [
        [user, balance]
        for user, balance in balances.items()
        if balance > tolerance
    ]

    # list.sort is stable, so equal amounts keep their original order
    debtors.sort(key=lambda entry: entry[1], reverse=True)
    creditors.sort(key=lambda entry: entry[1], reverse=True)

    transfers = []
    iterations = 0

    i, j = 0, 0
    while i < len(debtors) and j < len(creditors):
        iterations += 1
        if iterations > max_iterations:
            raise RuntimeError(
                f"Settlement loop exceeded max_iterations ({max_iterations}). "
                f"This may indicate malformed input or rounding issues."
            )

        debtor = debtors[i]
        creditor = creditors[j]
        amount = min(debtor[1], creditor[1])

        if amount > tolerance:
            transfers.append({
                "from": debtor[0],
                "to": creditor[0],
                "amount": round_decimal(amount),
            })

        debtor[1] -= amount
        creditor[1] -= amount

        if debtor[1] < tolerance:
            i += 1
        if creditor[1] < tolerance:
            j += 1

    return transfers
