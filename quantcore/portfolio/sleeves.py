"""Strategy sleeves.

Each sleeve selects an eligibility pool from the universe; the sleeve's share
of the total weight is spread evenly over its pool. Sleeve contributions add
up per instrument. A sleeve whose pool is empty contributes nothing: its
weight is left uninvested rather than redistributed to the other sleeves.
"""

from typing import Dict, Iterable, List, Tuple

from quantcore.market.base import AssetClass, Instrument, Sector
from quantcore.portfolio.base import AllocationConfig

DEFAULT_RISK_THRESHOLD = 20.0

QUALITY_MAX_PBR = 1.0
QUALITY_MAX_PER = 10.0
BREAKOUT_MAX_RISK_GRADE = 3

DEFENSIVE_SECTORS = (Sector.BOND, Sector.HEDGE)


def macro_pool(
    universe: Iterable[Instrument],
    macro_indicator: float,
    risk_threshold: float = DEFAULT_RISK_THRESHOLD,
) -> List[Instrument]:
    """VIX regime switch.

    Risk-off (indicator strictly above the threshold): bond and hedge
    instruments. Risk-on: every equity.
    """
    if macro_indicator > risk_threshold:
        return [inst for inst in universe if inst.sector in DEFENSIVE_SECTORS]
    return [inst for inst in universe if inst.asset_class == AssetClass.EQUITY]


def quality_pool(universe: Iterable[Instrument]) -> List[Instrument]:
    """Cheap equities: PBR < 1 and PER < 10.

    A zero or negative ratio means "not applicable" and is not eligible.
    """
    return [
        inst
        for inst in universe
        if inst.asset_class == AssetClass.EQUITY
        and inst.has_valuation
        and inst.pbr < QUALITY_MAX_PBR
        and inst.per < QUALITY_MAX_PER
    ]


def breakout_pool(universe: Iterable[Instrument]) -> List[Instrument]:
    """Risk-on momentum: risk grade 1-3, bonds excluded."""
    return [
        inst
        for inst in universe
        if inst.risk_grade <= BREAKOUT_MAX_RISK_GRADE and inst.sector != Sector.BOND
    ]


def spread_evenly(pool: List[Instrument], weight: float) -> Dict[str, float]:
    """Split ``weight`` evenly across ``pool``; an empty pool gets nothing."""
    if not pool:
        return {}
    per_instrument = weight / len(pool)
    return {inst.instrument_id: per_instrument for inst in pool}


def blend_target_weights(
    universe: Iterable[Instrument],
    macro_indicator: float,
    config: AllocationConfig,
    risk_threshold: float = DEFAULT_RISK_THRESHOLD,
) -> Tuple[Dict[str, float], List[str]]:
    """Blend the three sleeves into one target weight per instrument.

    Args:
        universe: Instruments to allocate across
        macro_indicator: VIX-like volatility proxy
        config: Sleeve weights
        risk_threshold: Macro sleeve risk-off cutoff

    Returns:
        Tuple of (target weights for every universe instrument, names of
        weighted sleeves whose pool was empty). Weights are all zero when the
        total sleeve weight is zero.
    """
    universe = list(universe)
    targets = {inst.instrument_id: 0.0 for inst in universe}
    empty_pools: List[str] = []

    total_weight = config.total_weight
    if total_weight == 0:
        return targets, empty_pools

    sleeves = (
        ("macro", config.weight_macro, macro_pool(universe, macro_indicator, risk_threshold)),
        ("quality", config.weight_quality, quality_pool(universe)),
        ("breakout", config.weight_breakout, breakout_pool(universe)),
    )

    for name, weight, pool in sleeves:
        if weight <= 0:
            continue
        if not pool:
            empty_pools.append(name)
            continue
        for instrument_id, share in spread_evenly(pool, weight / total_weight).items():
            targets[instrument_id] += share

    return targets, empty_pools
