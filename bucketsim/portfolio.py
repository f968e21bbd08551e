"""Five-account portfolio state."""

from __future__ import annotations

from dataclasses import dataclass

ACCOUNTS = ("sb", "cbb", "tba", "tda", "tfa")
EQUITY_ACCOUNTS = ("tba", "tda", "tfa")


@dataclass(slots=True)
class Portfolio:
    sb: float = 0.0  # Spend Bucket (HYSA)
    cbb: float = 0.0  # Crash Buffer Bucket (bonds)
    tba: float = 0.0  # Taxable brokerage
    tda: float = 0.0  # Tax-deferred
    tfa: float = 0.0  # Tax-free

    def to_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in ACCOUNTS}

    def get(self, account: str) -> float:
        if account not in ACCOUNTS:
            raise KeyError(f"unknown account: {account}")
        return getattr(self, account)

    def apply(self, account: str, delta: float) -> float:
        """Add a signed delta to one account and return the new balance."""
        balance = self.get(account) + delta
        setattr(self, account, balance)
        return balance

    def transfer(self, source: str, destination: str, amount: float) -> None:
        self.apply(source, -amount)
        self.apply(destination, amount)

    def total(self) -> float:
        return self.sb + self.cbb + self.tba + self.tda + self.tfa

    def copy(self) -> "Portfolio":
        return Portfolio(sb=self.sb, cbb=self.cbb, tba=self.tba, tda=self.tda, tfa=self.tfa)
