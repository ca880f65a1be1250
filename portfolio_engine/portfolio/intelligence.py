"""Diversification scoring and insight generation."""

from __future__ import annotations

from dataclasses import dataclass

from portfolio_engine.portfolio.analytics_exposure import compute_concentration
from portfolio_engine.portfolio.models import ConcentrationMetrics, DiversificationResult, ValuedHolding

MAX_SCORE = 100.0
MAX_INSIGHTS = 5


@dataclass(frozen=True)
class ScoreRules:
    top_holding_threshold: float = 25.0
    top3_threshold: float = 60.0
    country_threshold: float = 70.0
    sector_threshold: float = 40.0
    crypto_threshold: float = 30.0
    top_holding_penalty: float = 15.0
    top3_penalty: float = 15.0
    country_penalty: float = 15.0
    sector_penalty: float = 10.0
    crypto_penalty: float = 10.0


@dataclass(frozen=True)
class RuleBreach:
    rule: str
    value: float
    penalty: float


def crypto_weight_percent(valued: list[ValuedHolding]) -> float:
    return float(sum(item.weight_percent for item in valued if item.holding.asset_class == "crypto"))


def evaluate_rules(
    concentration: ConcentrationMetrics,
    valued: list[ValuedHolding],
    rules: ScoreRules,
    crypto_threshold_percent: float | None = None,
) -> list[RuleBreach]:
    """Breached rules in evaluation order. A rule breaches only when strictly above its threshold."""
    crypto_threshold = rules.crypto_threshold if crypto_threshold_percent is None else crypto_threshold_percent
    breaches: list[RuleBreach] = []
    if concentration.top_holding_percent > rules.top_holding_threshold:
        breaches.append(RuleBreach("top_holding", concentration.top_holding_percent, rules.top_holding_penalty))
    if concentration.top3_combined_percent > rules.top3_threshold:
        breaches.append(RuleBreach("top3", concentration.top3_combined_percent, rules.top3_penalty))
    if concentration.has_country_data and concentration.largest_country_percent > rules.country_threshold:
        breaches.append(RuleBreach("country", concentration.largest_country_percent, rules.country_penalty))
    if concentration.has_sector_data and concentration.largest_sector_percent > rules.sector_threshold:
        breaches.append(RuleBreach("sector", concentration.largest_sector_percent, rules.sector_penalty))
    crypto_percent = crypto_weight_percent(valued)
    if crypto_percent > crypto_threshold:
        breaches.append(RuleBreach("crypto", crypto_percent, rules.crypto_penalty))
    return breaches


def compute_diversification_score(
    concentration: ConcentrationMetrics,
    valued: list[ValuedHolding],
    rules: ScoreRules | None = None,
    crypto_threshold_percent: float | None = None,
) -> float:
    rules = rules or ScoreRules()
    breaches = evaluate_rules(concentration, valued, rules, crypto_threshold_percent)
    score = MAX_SCORE - sum(breach.penalty for breach in breaches)
    return max(0.0, min(MAX_SCORE, score))


def _insight_for(breach: RuleBreach) -> str:
    value = f"{breach.value:.1f}%"
    if breach.rule == "top_holding":
        return f"Top holding is {value}, consider diversifying."
    if breach.rule == "top3":
        return f"Top 3 holdings make up {value}, concentration is high."
    if breach.rule == "country":
        return f"Largest country exposure is {value}, consider geographic diversification."
    if breach.rule == "sector":
        return f"Largest sector is {value}, sector risk is elevated."
    return f"Crypto is {value} of portfolio, volatility may be high."


def _closing_insight(score: float) -> str:
    if score >= 80:
        return "Portfolio diversification looks healthy."
    if score >= 50:
        return "Moderate diversification, a few tweaks could improve balance."
    return "Consider diversifying across holdings, sectors, and regions."


def generate_insights(
    concentration: ConcentrationMetrics,
    score: float,
    valued: list[ValuedHolding],
    rules: ScoreRules | None = None,
    crypto_threshold_percent: float | None = None,
) -> list[str]:
    rules = rules or ScoreRules()
    insights = [_insight_for(breach) for breach in evaluate_rules(concentration, valued, rules, crypto_threshold_percent)]
    insights.append(_closing_insight(score))
    return insights[:MAX_INSIGHTS]


def score_portfolio(
    valued: list[ValuedHolding],
    rules: ScoreRules | None = None,
    crypto_threshold_percent: float | None = None,
) -> DiversificationResult:
    rules = rules or ScoreRules()
    concentration = compute_concentration(valued)
    score = compute_diversification_score(concentration, valued, rules, crypto_threshold_percent)
    return DiversificationResult(
        score=score,
        insights=generate_insights(concentration, score, valued, rules, crypto_threshold_percent),
        crypto_percent=crypto_weight_percent(valued),
    )
