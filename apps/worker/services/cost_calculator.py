"""
Cost Calculator - token cost, credit pricing and cost alerts

- calculate_cost: USD cost of one model call (unrounded)
- calculate_credit_cost: credits charged for one analysis
- monitor_costs: alerts for expensive or low-margin analyses
- calculate_scraper_cost: compute-unit estimate for a scrape
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from config import AnalysisDepth, PricingSettings, get_settings
from schemas.pipeline_types import ModelDescriptor

logger = logging.getLogger(__name__)

# Apify compute units per scrape, by depth
SCRAPER_COMPUTE_UNITS = {
    AnalysisDepth.LIGHT: 0.1,
    AnalysisDepth.DEEP: 0.3,
    AnalysisDepth.EXTENDED: 0.8,
}

FALLBACK_SCRAPER_MULTIPLIER = 1.5


def calculate_cost(tokens_in: int, tokens_out: int, descriptor: ModelDescriptor) -> float:
    """USD cost of a call. Linear in both token counts, no rounding."""
    return (
        (tokens_in / 1_000_000) * descriptor.price_in_per_million
        + (tokens_out / 1_000_000) * descriptor.price_out_per_million
    )


def calculate_credit_cost(
    depth: AnalysisDepth,
    actual_cost: float,
    tokens_used: int,
    pricing: Optional[PricingSettings] = None,
) -> float:
    """
    Credits charged for an analysis

    Over the token cap the base fee is multiplied by the penalty; otherwise
    base fee + cost with margin, floored at the minimum charge.

    >>> calculate_credit_cost(AnalysisDepth.LIGHT, 0.02, 500)
    0.53
    """
    pricing = pricing or get_settings().pricing
    base_fee = pricing.base_fees[AnalysisDepth(depth).value]

    if tokens_used > pricing.token_cap:
        return round(base_fee * pricing.penalty_multiplier, 2)

    charge = base_fee + actual_cost * (1 + pricing.margin_target)
    return round(max(charge, pricing.minimum_charge), 2)


@dataclass
class CostAlert:
    alert_type: str          # high_cost / low_margin / token_cap
    depth: str
    actual_cost: float
    tokens_used: int
    margin_percent: float


def monitor_costs(
    depth: AnalysisDepth,
    actual_cost: float,
    tokens_used: int,
    credit_charge: float,
    pricing: Optional[PricingSettings] = None,
) -> List[CostAlert]:
    """
    Check a finished analysis against the cost thresholds

    Margin is measured against actual spend; an analysis that spent nothing
    has no margin to alert on.
    """
    pricing = pricing or get_settings().pricing
    depth_value = AnalysisDepth(depth).value

    if actual_cost > 0:
        margin_percent = (credit_charge - actual_cost) / actual_cost * 100
    else:
        margin_percent = 100.0

    def _alert(kind: str) -> CostAlert:
        return CostAlert(
            alert_type=kind,
            depth=depth_value,
            actual_cost=actual_cost,
            tokens_used=tokens_used,
            margin_percent=margin_percent,
        )

    alerts: List[CostAlert] = []
    if actual_cost > pricing.high_cost_alert_usd:
        alerts.append(_alert("high_cost"))
    if margin_percent < pricing.low_margin_alert_percent:
        alerts.append(_alert("low_margin"))
    if tokens_used > pricing.token_cap:
        alerts.append(_alert("token_cap"))

    if alerts:
        logger.warning(
            f"[CostMonitor] Alerts {[a.alert_type for a in alerts]} "
            f"(depth={depth_value}, cost=${actual_cost:.4f}, "
            f"margin={margin_percent:.1f}%, tokens={tokens_used})"
        )

    return alerts


def calculate_scraper_cost(depth: AnalysisDepth, scraper_used: str) -> float:
    """Compute units for a scrape; backup and fallback scrapers cost more"""
    base = SCRAPER_COMPUTE_UNITS[AnalysisDepth(depth)]
    if "backup" in scraper_used or "fallback" in scraper_used or "secondary" in scraper_used:
        return base * FALLBACK_SCRAPER_MULTIPLIER
    return base
