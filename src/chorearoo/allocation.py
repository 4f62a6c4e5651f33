"""Jar allocation rules for chore earnings, bonuses, expenses and purchases."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple

from .config import SAVINGS_SHARE, SPENDING_SHARE
from .exceptions import InsufficientFundsError
from .models import Jar, JarSplit, PaymentMethod
from .money import CENT, ZERO, AmountLike, format_currency, require_positive, to_decimal


def allocate(amount: AmountLike) -> JarSplit:
    """Split a chore reward 80/10/10 across spending, savings and giving.

    Spending and savings are rounded to the cent; giving receives whatever is
    left so the three shares always add back up to ``amount``.
    """

    value = require_positive(to_decimal(amount))
    spending = (value * SPENDING_SHARE).quantize(CENT, rounding=ROUND_HALF_UP)
    savings = (value * SAVINGS_SHARE).quantize(CENT, rounding=ROUND_HALF_UP)
    giving = value - spending - savings
    return JarSplit(spending=spending, savings=savings, giving=giving)


def single_jar(amount: AmountLike, jar: Jar | str, *, debit: bool = False) -> JarSplit:
    """Put the whole ``amount`` into one jar (negative when ``debit`` is set)."""

    value = require_positive(to_decimal(amount))
    target = Jar.parse(jar)
    signed = -value if debit else value
    return JarSplit(**{target.value: signed})


def available_payment_methods(
    price: AmountLike, spending: AmountLike, savings: AmountLike
) -> Tuple[PaymentMethod, ...]:
    """Return the payment methods a child can use for an item costing ``price``.

    ``both`` is offered only when neither jar covers the price alone.
    """

    cost = to_decimal(price)
    spending_value = to_decimal(spending)
    savings_value = to_decimal(savings)
    methods: list[PaymentMethod] = []
    if cost <= spending_value:
        methods.append(PaymentMethod.SPENDING)
    if cost <= savings_value:
        methods.append(PaymentMethod.SAVINGS)
    if cost > spending_value and cost > savings_value and cost <= spending_value + savings_value:
        methods.append(PaymentMethod.BOTH)
    return tuple(methods)


def can_afford(price: AmountLike, spending: AmountLike, savings: AmountLike) -> bool:
    return to_decimal(spending) + to_decimal(savings) >= to_decimal(price)


def purchase_split(
    price: AmountLike,
    method: PaymentMethod | str,
    spending: AmountLike,
    savings: AmountLike,
) -> JarSplit:
    """Return the (negative) jar amounts for buying an item with ``method``."""

    cost = require_positive(to_decimal(price))
    chosen = PaymentMethod.parse(method)
    if chosen not in available_payment_methods(cost, spending, savings):
        raise InsufficientFundsError(
            f"Cannot pay {format_currency(cost)} using {chosen.value}."
        )
    if chosen is PaymentMethod.SPENDING:
        return JarSplit(spending=-cost)
    if chosen is PaymentMethod.SAVINGS:
        return JarSplit(savings=-cost)
    from_spending = min(cost, max(to_decimal(spending), ZERO))
    from_savings = cost - from_spending
    return JarSplit(spending=-from_spending, savings=-from_savings)


def jar_balance(spending: Decimal, savings: Decimal, giving: Decimal, jar: Jar | str) -> Decimal:
    target = Jar.parse(jar)
    return {Jar.SPENDING: spending, Jar.SAVINGS: savings, Jar.GIVING: giving}[target]


__all__ = [
    "allocate",
    "single_jar",
    "available_payment_methods",
    "can_afford",
    "purchase_split",
    "jar_balance",
]
