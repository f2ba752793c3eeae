# market_physics.py
from financial_structs import clamp, WEEKS_PER_YEAR

# Initial sector parameters: (baseline weekly growth, multiple adjustment)
SECTOR_TABLE = {
    'Technology': (0.003, 1.15),
    'Healthcare': (0.0023, 1.06),
    'Energy': (0.0017, 0.95),
    'Utilities': (0.0012, 0.9),
    'Consumer': (0.0020, 1.02),
    'Industrials': (0.0018, 0.98),
    'Financials': (0.0019, 0.96),
    'Materials': (0.0016, 0.94),
    'Communication': (0.0021, 1.03),
    'RealEstate': (0.0015, 0.92),
}


class MarketEnv:
    """
    Macro environment shared by every company in a universe.

    Rates and inflation are annualized, sentiment lives in [-1, 1] and
    vol is the systemic weekly volatility. Mutated only by update().
    """

    def __init__(self, rng, interest_rate=0.03, inflation=0.02, sentiment=0.0, vol=0.01):
        self.rng = rng
        self.week = 0
        self.interest_rate = interest_rate
        self.inflation = inflation
        self.sentiment = sentiment
        self.vol = vol

    def base_pe(self):
        """Map the policy rate to a ballpark market P/E, centered on 2% rates."""
        r = clamp(self.interest_rate, 0, 0.12)
        pe = 30 - 180 * (r - 0.02)
        return clamp(pe, 10, 34)

    def update(self):
        self.week += 1

        # 1. Sentiment mean-reverts toward zero
        self.sentiment = clamp(self.sentiment * 0.95 + self.rng.tnorm(0, 0.02, -0.08, 0.08), -1, 1)

        # 2. Gentle rate and inflation drift
        self.interest_rate = clamp(self.interest_rate + self.rng.normal(0, 0.0005), 0, 0.15)
        self.inflation = clamp(self.inflation + self.rng.normal(0, 0.0005), -0.02, 0.15)

        # 3. Rare macro shock, otherwise vol decays toward its floor
        if self.rng.chance(0.01):
            shock = self.rng.tnorm(0, 0.08, -0.2, 0.2)
            self.sentiment = clamp(self.sentiment + shock, -1, 1)
            self.interest_rate = clamp(self.interest_rate + 0.2 * shock, 0, 0.2)
            self.vol = clamp(self.vol + abs(shock) * 0.02, 0.006, 0.04)
        else:
            self.vol = clamp(self.vol * 0.995, 0.006, 0.03)

    def expected_equity_return_weekly(self):
        """
        Systemic weekly equity return shared by all companies.
        Baseline ~4.8%/yr, dragged down by rates above 2%, lifted by sentiment.
        """
        base = 0.0010
        rate_drag = (self.interest_rate - 0.02) * 0.25
        sentiment_lift = self.sentiment * 0.0006
        weekly = base - rate_drag / WEEKS_PER_YEAR + sentiment_lift
        return clamp(weekly, 0.0001, 0.0018)


class SectorIndex:
    def __init__(self, name, baseline_growth=0.002, vol=0.012, sentiment=0.0, pe_adj=1.0):
        self.name = name
        self.baseline_growth = baseline_growth  # weekly revenue growth
        self.vol = vol
        self.sentiment = sentiment
        self.pe_adj = pe_adj                    # multiplies the market P/E

    def update(self, market, rng):
        self.sentiment = clamp(self.sentiment * 0.9 + market.sentiment * 0.1 + rng.tnorm(0, 0.02, -0.08, 0.08), -1, 1)
        self.baseline_growth = clamp(self.baseline_growth + rng.normal(0, 0.0004) + market.inflation / 4800, -0.005, 0.01)
        self.pe_adj = clamp(1 + self.sentiment * 0.25, 0.75, 1.35)
        self.vol = clamp(self.vol + rng.normal(0, 0.001), 0.006, 0.03)


def build_sectors(overrides=None):
    """One SectorIndex per entry of SECTOR_TABLE, optionally overridden per sector."""
    overrides = overrides or {}
    sectors = {}
    for name, (growth, pe_adj) in SECTOR_TABLE.items():
        params = {'baseline_growth': growth, 'pe_adj': pe_adj}
        params.update(overrides.get(name, {}))
        sectors[name] = SectorIndex(name, **params)
    for name, params in overrides.items():
        if name not in sectors:
            sectors[name] = SectorIndex(name, **params)
    return sectors
