"""Portfolio export validation."""

from __future__ import annotations

import math
import re
from typing import Any, get_args

from portfolio_engine.portfolio.data_loader import (
    HOLDING_ALIASES,
    KEY_ALIASES,
    REQUIRED_SECTIONS,
    TRANSACTION_ALIASES,
    normalize_keys,
)
from portfolio_engine.portfolio.models import ASSET_CLASSES, TransactionType, ValidationIssue, is_listed_equity
from portfolio_engine.services.base import validate_symbol
from portfolio_engine.utils.time_utils import parse_timestamp

CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
TRANSACTION_TYPES = set(get_args(TransactionType))
NON_NEGATIVE_HOLDING_FIELDS = ("quantity", "cost_basis", "manual_value")


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    return number if math.isfinite(number) else None


def _check_currency(value: Any, field: str, row: int | None, issues: list[ValidationIssue]) -> None:
    if not isinstance(value, str) or not CURRENCY_PATTERN.match(value.strip().upper()):
        issues.append(
            ValidationIssue(field=field, row=row, code="invalid_currency", message=f"Invalid currency code: {value!r}")
        )


def _check_ids(records: list[dict[str, Any]], section: str, issues: list[ValidationIssue]) -> set[str]:
    seen: set[str] = set()
    for row, record in enumerate(records, start=1):
        if not record:
            continue
        raw_id = record.get("id")
        record_id = str(raw_id).strip() if raw_id is not None else ""
        if not record_id:
            issues.append(ValidationIssue(field=f"{section}.id", row=row, code="missing_id", message="Record has no id."))
            continue
        if record_id in seen:
            issues.append(
                ValidationIssue(field=f"{section}.id", row=row, code="duplicate_id", message=f"Duplicate id: {record_id}")
            )
        seen.add(record_id)
    return seen


def _records(raw: dict[str, Any], section: str, issues: list[ValidationIssue]) -> list[dict[str, Any]]:
    value = raw.get(section)
    if value is None:
        return []
    if not isinstance(value, list):
        issues.append(ValidationIssue(field=section, code="invalid_section", message=f"`{section}` must be a list."))
        return []
    records: list[dict[str, Any]] = []
    for row, item in enumerate(value, start=1):
        if not isinstance(item, dict):
            issues.append(ValidationIssue(field=section, row=row, code="invalid_record", message="Entry must be an object."))
            records.append({})
            continue
        records.append(item)
    return records


def validate_holdings(records: list[dict[str, Any]], issues: list[ValidationIssue]) -> set[str]:
    normalized = [normalize_keys(record, HOLDING_ALIASES) for record in records]
    holding_ids = _check_ids(normalized, "holdings", issues)
    for row, record in enumerate(normalized, start=1):
        if not record:
            continue
        asset_class = str(record.get("asset_class", "")).strip().lower()
        if asset_class not in ASSET_CLASSES:
            issues.append(
                ValidationIssue(
                    field="holdings.asset_class",
                    row=row,
                    code="invalid_asset_class",
                    message=f"Asset class must be one of {list(ASSET_CLASSES)}.",
                )
            )
        if not str(record.get("name") or "").strip():
            issues.append(ValidationIssue(field="holdings.name", row=row, code="empty_name", message="Holding name is empty."))
        _check_currency(record.get("currency"), "holdings.currency", row, issues)

        for key in NON_NEGATIVE_HOLDING_FIELDS:
            value = record.get(key)
            if value is None:
                continue
            number = _number(value)
            if number is None:
                issues.append(
                    ValidationIssue(field=f"holdings.{key}", row=row, code="invalid_number", message=f"{key} must be numeric.")
                )
            elif number < 0:
                issues.append(
                    ValidationIssue(field=f"holdings.{key}", row=row, code="negative_value", message=f"{key} cannot be negative.")
                )

        if "deleted" in record and not isinstance(record["deleted"], bool):
            issues.append(
                ValidationIssue(field="holdings.deleted", row=row, code="invalid_boolean", message="deleted must be true or false.")
            )

        symbol = record.get("symbol")
        if is_listed_equity(asset_class) or asset_class == "crypto":
            if not symbol:
                issues.append(
                    ValidationIssue(
                        field="holdings.symbol",
                        row=row,
                        code="missing_symbol",
                        message="Listed holdings need a ticker symbol.",
                    )
                )
            if record.get("quantity") is None:
                issues.append(
                    ValidationIssue(
                        field="holdings.quantity",
                        row=row,
                        code="missing_quantity",
                        message="Listed holdings need a quantity.",
                    )
                )
        if symbol:
            try:
                validate_symbol(str(symbol))
            except ValueError:
                issues.append(
                    ValidationIssue(field="holdings.symbol", row=row, code="invalid_symbol", message=f"Invalid ticker: {symbol}")
                )
    return holding_ids


def validate_transactions(
    records: list[dict[str, Any]],
    holding_ids: set[str],
    issues: list[ValidationIssue],
) -> None:
    normalized = [normalize_keys(record, TRANSACTION_ALIASES) for record in records]
    _check_ids(normalized, "transactions", issues)
    for row, record in enumerate(normalized, start=1):
        if not record:
            continue
        holding_id = str(record.get("holding_id") or "").strip()
        if holding_id not in holding_ids:
            issues.append(
                ValidationIssue(
                    field="transactions.holding_id",
                    row=row,
                    code="unknown_holding",
                    message=f"Transaction references unknown holding: {holding_id or '(empty)'}",
                )
            )
        tx_type = str(record.get("type") or "").strip().lower()
        if tx_type not in TRANSACTION_TYPES:
            issues.append(
                ValidationIssue(
                    field="transactions.type",
                    row=row,
                    code="invalid_transaction_type",
                    message=f"Transaction type must be one of {sorted(TRANSACTION_TYPES)}.",
                )
            )
        if parse_timestamp(str(record.get("date") or "")) is None:
            issues.append(
                ValidationIssue(field="transactions.date", row=row, code="invalid_timestamp", message="Unparsable date.")
            )
        if _number(record.get("total_amount")) is None:
            issues.append(
                ValidationIssue(
                    field="transactions.total_amount",
                    row=row,
                    code="invalid_number",
                    message="total_amount must be numeric.",
                )
            )
        _check_currency(record.get("currency"), "transactions.currency", row, issues)


def validate_snapshots(records: list[dict[str, Any]], issues: list[ValidationIssue]) -> None:
    for row, record in enumerate(records, start=1):
        if not record:
            continue
        data = normalize_keys(record, KEY_ALIASES)
        if parse_timestamp(str(data.get("timestamp") or "")) is None:
            issues.append(
                ValidationIssue(field="snapshots.timestamp", row=row, code="invalid_timestamp", message="Unparsable timestamp.")
            )
        value = _number(data.get("value_base"))
        if value is None:
            issues.append(
                ValidationIssue(field="snapshots.value_base", row=row, code="invalid_number", message="value_base must be numeric.")
            )
        elif value < 0:
            issues.append(
                ValidationIssue(
                    field="snapshots.value_base",
                    row=row,
                    code="negative_value",
                    message="value_base cannot be negative.",
                )
            )


def _validate_number_map(raw: dict[str, Any], section: str, issues: list[ValidationIssue]) -> None:
    value = raw.get(section)
    if value is None:
        return
    if not isinstance(value, dict):
        issues.append(ValidationIssue(field=section, code="invalid_section", message=f"`{section}` must be an object."))
        return
    for key, item in value.items():
        number = _number(item)
        if number is None or number <= 0:
            issues.append(
                ValidationIssue(
                    field=f"{section}.{key}",
                    code="invalid_number",
                    message=f"{section} values must be positive numbers.",
                )
            )


def validate_export(raw: dict[str, Any]) -> list[ValidationIssue]:
    """Every problem found in a raw export; an empty list means it is safe to parse."""
    issues: list[ValidationIssue] = []
    for section in REQUIRED_SECTIONS:
        if section not in raw:
            issues.append(
                ValidationIssue(field=section, code="missing_section", message=f"Required section is missing: {section}")
            )
    if issues:
        return issues

    portfolio = raw.get("portfolio")
    if portfolio is not None and not isinstance(portfolio, dict):
        issues.append(ValidationIssue(field="portfolio", code="invalid_section", message="`portfolio` must be an object."))
    base_currency = normalize_keys(portfolio).get("base_currency") if isinstance(portfolio, dict) else None
    if base_currency is not None:
        _check_currency(base_currency, "portfolio.base_currency", None, issues)

    holding_ids = validate_holdings(_records(raw, "holdings", issues), issues)
    validate_transactions(_records(raw, "transactions", issues), holding_ids, issues)
    validate_snapshots(_records(raw, "snapshots", issues), issues)
    _validate_number_map(raw, "prices", issues)
    _validate_number_map(raw, "fx_rates", issues)
    return issues
