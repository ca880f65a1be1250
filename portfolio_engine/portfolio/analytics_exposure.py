"""Concentration and exposure analytics over valued holdings."""

from __future__ import annotations

from collections import defaultdict

import numpy as np
import pandas as pd

from portfolio_engine.portfolio.models import (
    ConcentrationMetrics,
    ExposureSlice,
    ExposureType,
    ValuedHolding,
    is_listed_equity,
)


def _total_value(valued: list[ValuedHolding]) -> float:
    return float(sum(item.value_base for item in valued))


def _largest_group_percent(totals: dict[str, float], total_value: float) -> float:
    if total_value <= 0 or not totals:
        return 0.0
    return max(totals.values()) / total_value * 100.0


def compute_concentration(valued: list[ValuedHolding]) -> ConcentrationMetrics:
    """Concentration statistics for holdings already sorted by value, largest first.

    Top holding and top 3 are read positionally; the list is not re-sorted here.
    Country and sector shares are measured against the whole portfolio value,
    not against the subtotal of holdings that carry the field.
    """
    if not valued:
        return ConcentrationMetrics()

    total_value = _total_value(valued)
    top_holding = float(valued[0].weight_percent)
    top3 = (
        sum(item.value_base for item in valued[:3]) / total_value * 100.0
        if total_value > 0
        else 0.0
    )
    weights = np.array([item.weight_percent / 100.0 for item in valued], dtype=float)
    hhi = float(np.sum(np.square(weights)))

    by_country: defaultdict[str, float] = defaultdict(float)
    by_sector: defaultdict[str, float] = defaultdict(float)
    for item in valued:
        country = item.holding.country
        sector = item.holding.sector
        if country:
            by_country[country] += item.value_base
        if sector:
            by_sector[sector] += item.value_base

    return ConcentrationMetrics(
        top_holding_percent=top_holding,
        top3_combined_percent=top3,
        largest_country_percent=_largest_group_percent(by_country, total_value),
        largest_sector_percent=_largest_group_percent(by_sector, total_value),
        hhi=min(1.0, max(0.0, hhi)),
        has_country_data=bool(by_country),
        has_sector_data=bool(by_sector),
    )


def _exposure_frame(valued: list[ValuedHolding]) -> pd.DataFrame:
    rows = []
    for item in valued:
        holding = item.holding
        listed = is_listed_equity(holding.asset_class)
        rows.append(
            {
                "asset_class": holding.asset_class.replace("_", " "),
                "currency": holding.currency,
                "country": holding.country if listed else None,
                "sector": holding.sector if listed else None,
                "value": float(item.value_base),
            }
        )
    return pd.DataFrame(rows, columns=["asset_class", "currency", "country", "sector", "value"])


def exposure_breakdown(valued: list[ValuedHolding]) -> list[ExposureSlice]:
    """Exposure by asset class and currency for all holdings, country and sector for listed equity."""
    total_value = _total_value(valued)
    if total_value <= 0:
        return []

    frame = _exposure_frame(valued)
    slices: list[ExposureSlice] = []
    exposure_types: tuple[ExposureType, ...] = ("asset_class", "currency", "country", "sector")
    for exposure_type in exposure_types:
        grouped = frame.dropna(subset=[exposure_type]).groupby(exposure_type, sort=False)["value"].sum()
        for label, value in grouped.items():
            slices.append(ExposureSlice(label=str(label), percent=float(value) / total_value * 100.0, type=exposure_type))
    return sorted(slices, key=lambda item: item.percent, reverse=True)


def exposure_by_type(slices: list[ExposureSlice], exposure_type: ExposureType) -> dict[str, float]:
    return {item.label: item.percent for item in slices if item.type == exposure_type}
