from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Account:
    """A rider's monetary state.

    `version` is bumped by the profile store on every successful write and is
    used for optimistic concurrency.
    """

    rider_id: str
    card_id: str | None = None
    balance: float = 0.0
    bonus: float = 0.0
    total_spend_current_month: float = 0.0
    count_bonus: int = 0
    last_reset_month: str | None = None
    on_journey: bool = False
    version: int = 0
