from __future__ import annotations

import csv
import logging
from pathlib import Path

from src.adapters.persistence.in_memory_repositories import InMemoryProfileRepository
from src.domain.models import Account

logger = logging.getLogger(__name__)


def _float(raw: str | None) -> float:
    raw = (raw or "").strip()
    return float(raw) if raw else 0.0


def seed_accounts_from_csv(repository: InMemoryProfileRepository, path: str | Path) -> int:
    """Load rider accounts for a local (in-memory) deployment.

    Columns: rider_id, card_id, balance, bonus, total_spend_current_month,
    count_bonus, last_reset_month. Only rider_id and card_id are required.
    """

    count = 0
    with Path(path).open("r", encoding="utf-8", newline="") as fp:
        reader = csv.DictReader(fp)
        for row in reader:
            rider_id = (row.get("rider_id") or "").strip()
            card_id = (row.get("card_id") or "").strip()
            if not rider_id or not card_id:
                continue
            repository.add_account(
                Account(
                    rider_id=rider_id,
                    card_id=card_id,
                    balance=_float(row.get("balance")),
                    bonus=_float(row.get("bonus")),
                    total_spend_current_month=_float(row.get("total_spend_current_month")),
                    count_bonus=int(_float(row.get("count_bonus"))),
                    last_reset_month=(row.get("last_reset_month") or "").strip() or None,
                )
            )
            count += 1

    logger.info("Seeded %s accounts from %s", count, path)
    return count
