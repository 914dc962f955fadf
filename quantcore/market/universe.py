"""Default trading universe.

Five KRX instruments spanning the risk grades: two large-cap stocks, a
government bond fund, a crude oil futures fund and an inverse index fund used
as a hedge.
"""

from typing import Tuple

from quantcore.market.base import AssetClass, Instrument, Sector

DEFAULT_UNIVERSE: Tuple[Instrument, ...] = (
    Instrument(
        instrument_id="A005930",
        name="Samsung Electronics",
        price=75000,
        sector=Sector.IT,
        asset_class=AssetClass.EQUITY,
        risk_grade=3,
        per=14.5,
        pbr=1.3,
    ),
    Instrument(
        instrument_id="A005380",
        name="Hyundai Motor",
        price=240000,
        sector=Sector.AUTO,
        asset_class=AssetClass.EQUITY,
        risk_grade=3,
        per=5.2,
        pbr=0.6,
    ),
    Instrument(
        instrument_id="A148070",
        name="KTB 10Y Active",
        price=105000,
        sector=Sector.BOND,
        asset_class=AssetClass.FUND,
        risk_grade=5,
    ),
    Instrument(
        instrument_id="A130680",
        name="WTI Crude Oil Futures",
        price=18000,
        sector=Sector.COMMODITY,
        asset_class=AssetClass.FUND,
        risk_grade=1,
    ),
    Instrument(
        instrument_id="A114800",
        name="KODEX Inverse",
        price=4200,
        sector=Sector.HEDGE,
        asset_class=AssetClass.FUND,
        risk_grade=2,
    ),
)
