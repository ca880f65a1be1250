import json

import pytest

from portfolio_engine.portfolio.data_loader import PortfolioFileError, load_portfolio_export, normalize_keys, read_export
from portfolio_engine.portfolio.validation import validate_export


def _valid_export() -> dict:
    return {
        "portfolio": {"id": "p1", "name": "Main", "baseCurrency": "USD"},
        "holdings": [
            {"id": "h1", "assetClass": "stock", "name": "Apple", "currency": "USD", "symbol": "AAPL", "quantity": 10},
            {"id": "h2", "type": "real_estate", "name": "Flat", "currency": "EUR", "manualValue": 250000},
        ],
        "transactions": [
            {"id": "t1", "holdingId": "h1", "type": "buy", "date": "2024-01-02", "totalAmount": 1800, "currency": "USD"},
        ],
        "valueSnapshots": [{"timestamp": "2024-01-02T00:00:00Z", "valueBase": 1800}],
        "prices": {"AAPL": 190.5},
        "fxRates": {"USD": 1.0, "EUR": 0.92},
    }


def _codes(raw: dict) -> list[str]:
    return [issue.code for issue in validate_export(raw)]


def test_valid_export_has_no_issues() -> None:
    assert validate_export(normalize_keys(_valid_export())) == []


def test_missing_holdings_section() -> None:
    assert _codes({"transactions": []}) == ["missing_section"]


def test_holding_problems_are_reported_with_rows() -> None:
    raw = {
        "holdings": [
            {"id": "h1", "asset_class": "stock", "name": "Apple", "currency": "USD", "quantity": 1},
            {"id": "h1", "asset_class": "beanie_babies", "name": " ", "currency": "dollars"},
            {"id": "h3", "asset_class": "cash", "name": "Wallet", "currency": "USD", "manual_value": -5},
        ]
    }
    issues = validate_export(raw)
    by_code = {issue.code: issue for issue in issues}

    assert by_code["missing_symbol"].row == 1
    assert by_code["duplicate_id"].row == 2
    assert by_code["invalid_asset_class"].field == "holdings.asset_class"
    assert by_code["empty_name"].row == 2
    assert by_code["invalid_currency"].row == 2
    assert by_code["negative_value"].field == "holdings.manual_value"
    assert by_code["negative_value"].row == 3


def test_transaction_problems() -> None:
    raw = {
        "holdings": [{"id": "h1", "asset_class": "cash", "name": "Wallet", "currency": "USD"}],
        "transactions": [
            {"id": "t1", "holding_id": "ghost", "type": "gift", "date": "yesterday", "total_amount": "ten", "currency": "USD"},
        ],
    }
    codes = _codes(raw)
    assert "unknown_holding" in codes
    assert "invalid_transaction_type" in codes
    assert "invalid_timestamp" in codes
    assert "invalid_number" in codes


def test_snapshot_and_price_map_problems() -> None:
    raw = {
        "holdings": [],
        "snapshots": [{"timestamp": "2024-01-01", "value_base": -1}, "oops"],
        "prices": {"AAPL": 0},
        "fx_rates": [],
    }
    issues = validate_export(raw)
    assert {(issue.field, issue.code) for issue in issues} == {
        ("snapshots.value_base", "negative_value"),
        ("snapshots", "invalid_record"),
        ("prices.AAPL", "invalid_number"),
        ("fx_rates", "invalid_section"),
    }


def test_load_export_accepts_camel_case_keys(tmp_path) -> None:
    path = tmp_path / "portfolio.json"
    path.write_text(json.dumps(_valid_export()), encoding="utf-8")

    export = load_portfolio_export(path)

    assert export.portfolio_id == "p1"
    assert export.base_currency == "USD"
    assert [holding.asset_class for holding in export.holdings] == ["stock", "real_estate"]
    assert export.holdings[1].manual_value == 250000.0
    assert export.transactions[0].holding_id == "h1"
    assert export.transactions[0].type == "buy"
    assert export.snapshots[0].value_base == 1800.0
    assert export.prices == {"AAPL": 190.5}
    assert export.fx_rates["EUR"] == 0.92


def test_read_export_rejects_bad_files(tmp_path) -> None:
    with pytest.raises(PortfolioFileError):
        read_export(tmp_path / "missing.json")

    csv_path = tmp_path / "portfolio.csv"
    csv_path.write_text("id,name\n", encoding="utf-8")
    with pytest.raises(PortfolioFileError):
        read_export(csv_path)

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(PortfolioFileError):
        read_export(broken)

    array = tmp_path / "array.json"
    array.write_text("[]", encoding="utf-8")
    with pytest.raises(PortfolioFileError):
        read_export(array)


def test_deleted_flag_must_be_boolean(tmp_path) -> None:
    holding = {"id": "h1", "asset_class": "cash", "name": "Wallet", "currency": "USD", "isDeleted": "false"}
    issues = validate_export({"holdings": [holding]})
    assert [(issue.field, issue.code) for issue in issues] == [("holdings.deleted", "invalid_boolean")]

    path = tmp_path / "portfolio.json"
    path.write_text(json.dumps({"holdings": [holding, {**holding, "id": "h2", "isDeleted": True}]}), encoding="utf-8")
    export = load_portfolio_export(path)
    assert [h.deleted for h in export.holdings] == [False, True]
