"""Read-only collaborator contracts consumed by the analytics service."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from portfolio_engine.portfolio.models import Holding, Transaction, ValuationSnapshot


class HoldingStore(Protocol):
    def list_by_portfolio(self, portfolio_id: str) -> list[Holding]: ...


class TransactionStore(Protocol):
    def list_by_holding(self, holding_id: str) -> list[Transaction]: ...

    def list_by_portfolio(self, portfolio_id: str) -> list[Transaction]: ...


class SnapshotStore(Protocol):
    def list_since(self, portfolio_id: str, since: datetime | None) -> list[ValuationSnapshot]:
        """Snapshots at or after ``since`` (all of them when None), oldest first."""
        ...


class PriceSource(Protocol):
    def get_price(self, symbol: str) -> float | None: ...


class FxRateSource(Protocol):
    def get_rates(self) -> dict[str, float]:
        """Units of each currency per one USD."""
        ...
