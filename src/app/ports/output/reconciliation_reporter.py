from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping


class IReconciliationReporter(ABC):
    """Port for handing failed settlements over to manual reconciliation."""

    @abstractmethod
    def report_failed_settlement(self, payload: Mapping[str, Any]) -> None:
        raise NotImplementedError
