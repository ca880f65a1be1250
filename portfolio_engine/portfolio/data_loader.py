"""Portfolio export loader and the file-backed store built on it."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from portfolio_engine.portfolio.models import Holding, Transaction, ValuationSnapshot
from portfolio_engine.utils.time_utils import parse_timestamp

LOGGER = logging.getLogger(__name__)

REQUIRED_SECTIONS = ("holdings",)
DEFAULT_PORTFOLIO_ID = "default"

# exports written by the mobile app use camelCase keys
KEY_ALIASES = {
    "assetClass": "asset_class",
    "costBasis": "cost_basis",
    "manualValue": "manual_value",
    "holdingId": "holding_id",
    "totalAmount": "total_amount",
    "valueBase": "value_base",
    "baseCurrency": "base_currency",
    "fxRates": "fx_rates",
    "valueSnapshots": "snapshots",
    "isDeleted": "deleted",
}
# holdings call their asset class "type"; transactions use "type" for the kind
HOLDING_ALIASES = {**KEY_ALIASES, "type": "asset_class"}
TRANSACTION_ALIASES = {**KEY_ALIASES, "kind": "type"}


class PortfolioFileError(ValueError):
    """The export could not be read or is not a JSON object."""


@dataclass
class PortfolioExport:
    portfolio_id: str
    name: str
    base_currency: str
    holdings: list[Holding] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    snapshots: list[ValuationSnapshot] = field(default_factory=list)
    prices: dict[str, float] = field(default_factory=dict)
    fx_rates: dict[str, float] = field(default_factory=dict)


def normalize_keys(record: dict[str, Any], aliases: dict[str, str] = KEY_ALIASES) -> dict[str, Any]:
    return {aliases.get(key, key): value for key, value in record.items()}


def read_export(file_path: str | Path) -> dict[str, Any]:
    path = Path(file_path).expanduser()
    if not path.exists():
        raise PortfolioFileError(f"Portfolio file not found: {path}")
    if path.suffix.lower() != ".json":
        raise PortfolioFileError("Portfolio file must be a .json export.")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise PortfolioFileError(f"Portfolio file is not valid JSON: {error.msg} (line {error.lineno}).") from error
    if not isinstance(raw, dict):
        raise PortfolioFileError("Portfolio file must contain a JSON object.")
    return normalize_keys(raw)


def _optional_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_holding(record: dict[str, Any]) -> Holding:
    data = normalize_keys(record, HOLDING_ALIASES)
    symbol = data.get("symbol")
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    return Holding(
        id=str(data.get("id", "")).strip(),
        asset_class=str(data.get("asset_class", "other")).strip().lower(),  # type: ignore[arg-type]
        name=str(data.get("name", "")).strip(),
        currency=str(data.get("currency", "USD")).strip().upper(),
        symbol=str(symbol).strip().upper() if symbol else None,
        quantity=_optional_float(data.get("quantity")),
        cost_basis=_optional_float(data.get("cost_basis")),
        manual_value=_optional_float(data.get("manual_value")),
        metadata={str(key): str(value) for key, value in metadata.items() if value is not None},
        deleted=data.get("deleted") is True,
    )


def _to_transaction(record: dict[str, Any]) -> Transaction:
    data = normalize_keys(record, TRANSACTION_ALIASES)
    return Transaction(
        id=str(data.get("id", "")).strip(),
        holding_id=str(data.get("holding_id", "")).strip(),
        type=str(data.get("type", "")).strip().lower(),  # type: ignore[arg-type]
        date=str(data.get("date", "")),
        total_amount=_optional_float(data.get("total_amount")) or 0.0,
        currency=str(data.get("currency", "USD")).strip().upper(),
    )


def _to_snapshot(record: dict[str, Any]) -> ValuationSnapshot:
    data = normalize_keys(record)
    return ValuationSnapshot(timestamp=str(data.get("timestamp", "")), value_base=_optional_float(data.get("value_base")) or 0.0)


def _number_map(value: Any) -> dict[str, float]:
    if not isinstance(value, dict):
        return {}
    out: dict[str, float] = {}
    for key, item in value.items():
        number = _optional_float(item)
        if number is not None:
            out[str(key).strip().upper()] = number
    return out


def parse_export(raw: dict[str, Any]) -> PortfolioExport:
    """Build typed models from an export. Callers validate first; this only coerces."""
    portfolio = normalize_keys(raw.get("portfolio") or {}) if isinstance(raw.get("portfolio"), dict) else {}
    transactions = [_to_transaction(item) for item in raw.get("transactions") or [] if isinstance(item, dict)]
    return PortfolioExport(
        portfolio_id=str(portfolio.get("id") or DEFAULT_PORTFOLIO_ID),
        name=str(portfolio.get("name") or "Portfolio"),
        base_currency=str(portfolio.get("base_currency") or raw.get("base_currency") or "USD").upper(),
        holdings=[_to_holding(item) for item in raw.get("holdings") or [] if isinstance(item, dict)],
        transactions=transactions,
        snapshots=[_to_snapshot(item) for item in raw.get("snapshots") or [] if isinstance(item, dict)],
        prices=_number_map(raw.get("prices")),
        fx_rates=_number_map(raw.get("fx_rates")),
    )


def load_portfolio_export(file_path: str | Path) -> PortfolioExport:
    return parse_export(read_export(file_path))


def _owned_by(export: PortfolioExport, portfolio_id: str) -> bool:
    return portfolio_id in {export.portfolio_id, DEFAULT_PORTFOLIO_ID}


class FileHoldingStore:
    def __init__(self, export: PortfolioExport) -> None:
        self._export = export

    def list_by_portfolio(self, portfolio_id: str) -> list[Holding]:
        if not _owned_by(self._export, portfolio_id):
            return []
        return [holding for holding in self._export.holdings if not holding.deleted]


class FileTransactionStore:
    def __init__(self, export: PortfolioExport) -> None:
        self._export = export

    def list_by_holding(self, holding_id: str) -> list[Transaction]:
        return [tx for tx in self._export.transactions if tx.holding_id == holding_id]

    def list_by_portfolio(self, portfolio_id: str) -> list[Transaction]:
        if not _owned_by(self._export, portfolio_id):
            return []
        return list(self._export.transactions)


class FileSnapshotStore:
    def __init__(self, export: PortfolioExport) -> None:
        self._export = export

    def list_since(self, portfolio_id: str, since: datetime | None) -> list[ValuationSnapshot]:
        if not _owned_by(self._export, portfolio_id):
            return []
        out: list[tuple[datetime, ValuationSnapshot]] = []
        for snapshot in self._export.snapshots:
            ts = parse_timestamp(snapshot.timestamp)
            if ts is None:
                LOGGER.warning("snapshot skipped (unparsable): timestamp=%s", snapshot.timestamp)
                continue
            if since is None or ts >= since:
                out.append((ts, snapshot))
        out.sort(key=lambda item: item[0])
        return [snapshot for _, snapshot in out]


class FilePortfolioStore:
    """One loaded export exposed through the store, price and FX source interfaces.

    Prices and rates come from the export's optional ``prices`` / ``fx_rates`` maps,
    so a file can be analyzed fully offline.
    """

    def __init__(self, export: PortfolioExport) -> None:
        self.export = export
        self.holdings = FileHoldingStore(export)
        self.transactions = FileTransactionStore(export)
        self.snapshots = FileSnapshotStore(export)

    @classmethod
    def from_file(cls, file_path: str | Path) -> FilePortfolioStore:
        return cls(load_portfolio_export(file_path))

    @property
    def portfolio_id(self) -> str:
        return self.export.portfolio_id

    @property
    def base_currency(self) -> str:
        return self.export.base_currency

    def get_price(self, symbol: str) -> float | None:
        price = self.export.prices.get(symbol.strip().upper())
        return price if price is not None and price > 0 else None

    def get_rates(self) -> dict[str, float]:
        return dict(self.export.fx_rates)
