from __future__ import annotations

import logging
from dataclasses import dataclass

from src.app.ports.output import IProfileRepository
from src.domain.exceptions.fares import InvalidInput, RiderNotFound
from src.domain.models import Account

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IdentityResolver:
    """Maps a scanned card number to the rider's account."""

    profile_repository: IProfileRepository

    def resolve_by_card(self, card_id: str) -> Account:
        card = card_id.strip() if isinstance(card_id, str) else ""
        if not card:
            raise InvalidInput("No card number found in scan data")

        account = self.profile_repository.find_by_card(card)
        if account is None:
            logger.warning("No rider found for card number %s", card)
            raise RiderNotFound(f"No rider found for card number {card}")
        return account
