"""Balance validation: total cost with a gas-price safety buffer."""

from __future__ import annotations

from dataclasses import dataclass

# Fee is divided by this to get the buffer (10% of the fee, not of the total).
_BUFFER_DIVISOR = 10


@dataclass(frozen=True)
class BalanceCheck:
    """Result of comparing an account balance against a transaction's cost."""

    sufficient: bool
    total_cost: int
    fee: int
    buffer: int


class BalanceValidator:
    """Decides whether an account can afford a transaction.

    ``total_cost = gas * gas_price + value + (gas * gas_price) // 10`` and the
    balance must strictly exceed it, so an account is never drained to zero.
    """

    def check(self, account_balance: int, value: int, gas: int, gas_price: int) -> BalanceCheck:
        for name, amount in (("value", value), ("gas", gas), ("gas_price", gas_price)):
            if amount < 0:
                msg = f"{name} must be non-negative, got {amount}"
                raise ValueError(msg)

        fee = gas * gas_price
        buffer = fee // _BUFFER_DIVISOR
        total_cost = fee + value + buffer
        return BalanceCheck(
            sufficient=account_balance > total_cost,
            total_cost=total_cost,
            fee=fee,
            buffer=buffer,
        )
