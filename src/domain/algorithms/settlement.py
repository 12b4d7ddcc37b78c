from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from src.domain.models import Account

BONUS_SPEND_THRESHOLD = 1000.0
BONUS_AMOUNT = 100.0


def month_key(moment: datetime) -> str:
    """Reset-period key, e.g. "2026-1" or "2026-10" (month is not zero padded)."""

    return f"{moment.year}-{moment.month}"


def compute_fare(fare_per_km: float, distance_travelled_km: float) -> float:
    return fare_per_km * distance_travelled_km


def apply_monthly_reset(account: Account, current_month: str) -> Account:
    if account.last_reset_month == current_month:
        return account
    return replace(
        account,
        total_spend_current_month=0.0,
        count_bonus=0,
        bonus=0.0,
        last_reset_month=current_month,
    )


def deduct_fare(account: Account, fare: float) -> Account:
    """Charge the fare against the bonus first, then the balance."""

    if account.bonus >= fare:
        return replace(account, bonus=account.bonus - fare)
    if account.bonus > 0:
        return replace(account, balance=account.balance + account.bonus - fare, bonus=0.0)
    return replace(account, balance=account.balance - fare)


def apply_bonus_rule(account: Account) -> Account:
    # One grant per reset period.
    if account.total_spend_current_month > BONUS_SPEND_THRESHOLD and account.count_bonus == 0:
        return replace(account, bonus=BONUS_AMOUNT, count_bonus=1)
    return account


def settle_account(account: Account, *, fare: float, current_month: str) -> Account:
    """Apply one fare to an account snapshot and return the new snapshot.

    Order matters: the monthly reset happens before the fare is deducted, and
    the bonus grant is evaluated after the month's spend includes this fare.
    """

    out = apply_monthly_reset(account, current_month)
    out = deduct_fare(out, fare)
    out = replace(out, total_spend_current_month=out.total_spend_current_month + fare)
    out = apply_bonus_rule(out)
    return replace(out, on_journey=False)
