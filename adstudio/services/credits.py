from __future__ import annotations

import logging
from typing import Optional


class CreditLedger:
    """In-memory credit balance of a single session."""

    def __init__(self, balance: int, logger: Optional[logging.Logger] = None) -> None:
        if balance < 0:
            raise ValueError("balance must not be negative")
        self._balance = balance
        self.log = logger or logging.getLogger(__name__)

    @property
    def balance(self) -> int:
        return self._balance

    def can_afford(self, amount: int) -> bool:
        return self._balance >= amount

    def below_floor(self, floor: int) -> bool:
        return self._balance < floor

    def debit(self, amount: int) -> int:
        if amount < 0:
            raise ValueError("debit amount must not be negative")
        before = self._balance
        self._balance = max(0, before - amount)
        self.log.info("credits debited", extra={"amount": amount, "before": before, "after": self._balance})
        return self._balance
