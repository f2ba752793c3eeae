# company.py
from financial_structs import (
    CompanyInit, HistoryPoint, clamp, RISK_PROFILES, STAGES,
    WEEKS_PER_YEAR, WEEKS_PER_QUARTER,
)
from market_events import EventEngine
from policies import CorporatePolicies, PRICE_FLOOR

STAGE_GROWTH = {'startup': 0.0032, 'growth': 0.0020, 'mature': 0.0005, 'decline': -0.0005}
STAGE_PE_ADJ = {'startup': 1.2, 'growth': 1.1, 'mature': 1.0, 'decline': 0.85}
STAGE_PS = {'startup': 6, 'growth': 4, 'mature': 2, 'decline': 1.4}
RISK_PE_ADJ = {'low': 1.05, 'medium': 1.0, 'high': 0.95}
RISK_VOL = {'low': 0.01, 'medium': 0.02, 'high': 0.045}
RISK_SPREAD = {'low': 0.01, 'medium': 0.03, 'high': 0.06}
BETA_MARKET = {'low': 0.7, 'medium': 1.0, 'high': 1.3}
BETA_SECTOR = {'low': 0.8, 'medium': 1.0, 'high': 1.2}

BASE_PS = 2.8
REVERSION_SPEED = 0.06
MOMENTUM = 0.012
MAX_WEEKLY_RETURN = 0.10


class Company:
    """
    A listed company: fundamentals, balance sheet, valuation and quote.

    simulate_week() advances everything by one tick and appends exactly one
    HistoryPoint. Macro and sector state are passed in read-only; the
    company only keeps its sector name.
    """

    def __init__(self, init: CompanyInit, start_price=100.0):
        if init.risk_profile not in RISK_PROFILES:
            raise ValueError(f"Unknown risk profile: {init.risk_profile}")
        if init.stage not in STAGES:
            raise ValueError(f"Unknown stage: {init.stage}")

        # Identity
        self.name = init.name
        self.ticker = init.ticker
        self.sector = init.sector
        self.description = init.description

        # Structure
        self.risk_profile = init.risk_profile
        self.stage = init.stage
        self.beta_market = BETA_MARKET[self.risk_profile]
        self.beta_sector = BETA_SECTOR[self.risk_profile]

        # Fundamentals (weekly flows)
        self.revenue = init.revenue
        self.expenses = init.expenses
        early = self.stage in ('startup', 'growth')
        self.r_and_d_rate = init.r_and_d_rate if init.r_and_d_rate is not None else (0.09 if early else 0.03)
        self.capex_rate = init.capex_rate if init.capex_rate is not None else (0.08 if self.sector == 'Utilities' else 0.04)
        self.depreciation_rate = init.depreciation_rate if init.depreciation_rate is not None else 0.002
        self.tax_rate = init.tax_rate if init.tax_rate is not None else 0.21

        # Balance sheet
        self.cash = init.cash if init.cash is not None else max(0.0, init.revenue * 8)
        self.debt = init.debt if init.debt is not None else init.revenue * (12 if self.risk_profile == 'high' else 6)
        self.assets = max(0.0, init.assets if init.assets is not None else init.revenue * 20)
        self.shares_outstanding = init.shares

        # Payout policy
        default_payout = 0.4 if self.stage == 'mature' else 0.0
        self.payout_ratio = clamp(init.payout_ratio if init.payout_ratio is not None else default_payout, 0, 0.9)
        self.target_yield = init.target_yield
        self.buyback_rate = clamp(init.buyback_rate if init.buyback_rate is not None else 0.25, 0, 1)

        self.sentiment = clamp(init.sentiment, -1, 1)
        self.market_share = clamp(init.market_share if init.market_share is not None else 0.05, 0.001, 0.9)

        # Bookkeeping
        self.history = []
        self.events = []
        self.active_effects = []
        self.quarter_net_income_acc = 0.0
        self.negative_quarter_streak = 0
        self.low_price_streak = 0
        self.is_bankrupt = False
        self.last_borrow_rate = 0.08
        self.pending_split_factor = 1.0

        # Market behaviour
        self.price = start_price
        self.base_drift = 0.001 + self.margin * 0.01
        self.base_vol = RISK_VOL[self.risk_profile]

    def __repr__(self):
        return f"Company({self.ticker!r}, {self.sector}, {self.stage}, {self.risk_profile}, price={self.price:.2f})"

    # --- Derived metrics ---

    @property
    def total_assets(self):
        return self.assets + self.cash

    @property
    def equity(self):
        return self.total_assets - self.debt

    @property
    def market_cap(self):
        return self.price * self.shares_outstanding

    @property
    def interest_rate_spread(self):
        return RISK_SPREAD[self.risk_profile]

    def current_net_income_estimate(self):
        rnd = self.r_and_d_rate * self.revenue
        depreciation = self.depreciation_rate * self.assets
        interest = self.debt * (self.last_borrow_rate / WEEKS_PER_YEAR)
        pretax = self.revenue - self.expenses - rnd - depreciation - interest
        return pretax - max(0.0, pretax) * self.tax_rate

    @property
    def margin(self):
        return self.current_net_income_estimate() / self.revenue if self.revenue > 0 else 0.0

    @property
    def eps(self):
        return self.current_net_income_estimate() / self.shares_outstanding if self.shares_outstanding > 0 else 0.0

    @property
    def sales_per_share(self):
        return self.revenue / self.shares_outstanding if self.shares_outstanding > 0 else 0.0

    @property
    def pe(self):
        eps = self.eps
        return self.price / eps if eps > 0 else None

    @property
    def ps(self):
        return self.price / (self.sales_per_share or 1e-9)

    def _sum_history(self, key, weeks=WEEKS_PER_YEAR):
        return sum(getattr(h, key) or 0.0 for h in self.history[-weeks:])

    @property
    def ttm_revenue(self):
        # Falls back to an annualized run rate before any history exists
        return self._sum_history('revenue') or self.revenue * WEEKS_PER_YEAR

    @property
    def ttm_net_income(self):
        return self._sum_history('net_income') or self.current_net_income_estimate() * WEEKS_PER_YEAR

    @property
    def ttm_eps(self):
        return self.ttm_net_income / self.shares_outstanding if self.shares_outstanding > 0 else 0.0

    @property
    def ttm_sales_per_share(self):
        return self.ttm_revenue / self.shares_outstanding if self.shares_outstanding > 0 else 0.0

    @property
    def pe_ttm(self):
        eps = self.ttm_eps
        return self.price / eps if eps > 0 else None

    @property
    def ps_ttm(self):
        return self.price / (self.ttm_sales_per_share or 1e-9)

    @property
    def ttm_margin(self):
        rev = self.ttm_revenue
        return self.ttm_net_income / rev if rev > 0 else 0.0

    @property
    def debt_to_equity(self):
        return self.debt / max(1e-6, self.equity)

    def consume_split_factor(self):
        """Reads the split signal for this tick and clears it."""
        factor = self.pending_split_factor
        self.pending_split_factor = 1.0
        return factor

    # --- Simulation ---

    def simulate_week(self, week, market, sector, rng):
        if self.is_bankrupt:
            self.pending_split_factor = 1.0
            self.history.append(self.snapshot(week))
            return

        shares_before = self.shares_outstanding
        last_ret = self._last_return()

        # 1. Sentiment: mean reversion with macro and sector bleed
        self.sentiment = clamp(
            self.sentiment * 0.9
            + market.sentiment * 0.05
            + sector.sentiment * 0.05
            + 0.2 * clamp(last_ret, -0.05, 0.05)
            + rng.tnorm(0, 0.02, -0.08, 0.08),
            -1, 1,
        )

        # 2. Revenue and expenses
        rev_mean = (sector.baseline_growth + STAGE_GROWTH[self.stage]
                    + market.sentiment * 0.0007 + self.sentiment * 0.0008)
        self.revenue = max(0.0, self.revenue * (1 + rev_mean + rng.normal(0, 0.003)))

        exp_mean = rev_mean * 0.7 + (market.inflation / WEEKS_PER_YEAR) * 0.8
        self.expenses = max(0.0, self.expenses * (1 + exp_mean + rng.normal(0, 0.003)))

        # 3. Income statement
        rnd = self.r_and_d_rate * self.revenue
        depreciation = self.depreciation_rate * self.assets
        self.last_borrow_rate = clamp(market.interest_rate + self.interest_rate_spread, 0, 0.35)
        interest = self.debt * (self.last_borrow_rate / WEEKS_PER_YEAR)

        operating_income = self.revenue - self.expenses - rnd - depreciation
        pretax = operating_income - interest
        net_income = pretax - max(0.0, pretax) * self.tax_rate
        self.quarter_net_income_acc += net_income

        # 4. Cash flow and operating assets
        capex = self.capex_rate * self.revenue
        self.assets = max(0.0, self.assets + capex - depreciation)
        self.cash += (net_income + depreciation) - capex

        # 5. Active effects
        drift_adj, multiple_adj, sentiment_adj = EventEngine.decay_effects(self, week)
        if sentiment_adj:
            self.sentiment = clamp(self.sentiment + clamp(sentiment_adj, -0.5, 0.5), -1, 1)

        # 6. Valuation targets
        target_pe, target_ps = self._valuation_targets(market, sector, multiple_adj)
        fundamental = self._fundamental_value(target_pe, target_ps)

        # 7. Price dynamics
        self._move_price(market, sector, rng, last_ret, net_income, drift_adj, target_pe, fundamental)

        # 8. Keep the quote in a retail-looking band
        CorporatePolicies.normalize_price_band(self)

        # 9. Quarter bell
        if week % WEEKS_PER_QUARTER == 0:
            self._close_quarter(week, fundamental, rng)

        # 10. Weekly news
        if rng.chance(0.05):
            EventEngine.roll_weekly_news(self, week, rng)

        # 11-12. Distress and bankruptcy
        CorporatePolicies.manage_liquidity(self, week)
        CorporatePolicies.check_failure(self, week)

        # 13. Global floor
        self.price = max(PRICE_FLOOR, self.price)

        # 14. Publish split-like share changes; buyback drift is ignored
        factor = self.shares_outstanding / shares_before if shares_before > 0 else 1.0
        self.pending_split_factor = factor if (factor > 1.5 or factor < 0.67) else 1.0

        # 15. Record
        self.history.append(self.snapshot(week))

    def _last_return(self):
        if not self.history:
            return 0.0
        prev = self.history[-1].price
        return (self.price - prev) / max(1.0, prev)

    def _valuation_targets(self, market, sector, multiple_adj):
        base_pe = market.base_pe() * sector.pe_adj
        sent_adj = 1 + clamp(self.sentiment, -1, 1) * 0.25
        target_pe = clamp(
            base_pe * STAGE_PE_ADJ[self.stage] * RISK_PE_ADJ[self.risk_profile] * sent_adj * (1 + multiple_adj),
            12, 45,
        )

        rate_ps_adj = clamp(1.6 - 8 * market.interest_rate, 0.8, 1.6)
        target_ps = clamp(BASE_PS * STAGE_PS[self.stage] * rate_ps_adj * (1 + multiple_adj), 1.0, 14)
        return target_pe, target_ps

    def _fundamental_value(self, target_pe, target_ps):
        eps_ttm = self.ttm_eps
        sps_ttm = self.ttm_sales_per_share or 1e-9
        if eps_ttm > 0:
            return 0.7 * target_pe * eps_ttm + 0.3 * target_ps * sps_ttm
        return target_ps * sps_ttm

    def _move_price(self, market, sector, rng, last_ret, net_income, drift_adj, target_pe, fundamental):
        reversion = clamp((fundamental - self.price) / max(1.0, self.price), -0.25, 0.25) * REVERSION_SPEED

        market_shock = rng.normal(market.sentiment * 0.002, market.vol)
        sector_shock = rng.normal(sector.sentiment * 0.002, sector.vol)
        idio_shock = rng.normal(0, self.base_vol)

        momentum = MOMENTUM * last_ret

        self.base_drift = 0.00008 + self.margin * 0.004 + drift_adj

        leverage_bump = max(0.0, self.debt_to_equity - 1) * 0.003
        unprofitable_bump = 0.004 if net_income < 0 else 0.0
        self.base_vol = clamp(RISK_VOL[self.risk_profile] + leverage_bump + unprofitable_bump, 0.008, 0.12)

        # Tilts toward profitable growth at reasonable valuations
        quality = clamp(self.ttm_margin, -0.2, 0.4)
        ref_revenue = self.history[max(0, len(self.history) - 13)].revenue if self.history else self.revenue
        growth = clamp((self.revenue - ref_revenue) / max(1e-6, ref_revenue), -0.5, 0.5)
        pe_now = self.pe_ttm
        discount = clamp((target_pe - pe_now) / target_pe, -0.6, 0.6) if pe_now is not None else 0.0
        margin_trend = self._margin_trend()

        quality_alpha = 0.0012 * quality + 0.0012 * growth
        value_alpha = 0.0012 * discount
        trend_alpha = 0.0008 * margin_trend

        raw = (self.base_drift + market.expected_equity_return_weekly()
               + self.beta_market * market_shock
               + self.beta_sector * sector_shock
               + idio_shock
               + reversion
               + momentum
               + quality_alpha + value_alpha + trend_alpha)
        ret = clamp(raw, -MAX_WEEKLY_RETURN, MAX_WEEKLY_RETURN)
        self.price = max(PRICE_FLOOR, self.price * (1 + ret))

    def _margin_trend(self):
        """TTM margin minus the margin of the year before; zero until two years of history."""
        n = len(self.history)
        if n < 2 * WEEKS_PER_YEAR:
            return 0.0
        prior = self.history[n - 2 * WEEKS_PER_YEAR:n - WEEKS_PER_YEAR]
        prev_rev = sum(h.revenue for h in prior)
        prev_ni = sum(h.net_income for h in prior)
        prev_margin = prev_ni / prev_rev if prev_rev > 0 else 0.0
        return clamp(self.ttm_margin - prev_margin, -0.2, 0.2)

    def _close_quarter(self, week, fundamental, rng):
        EventEngine.earnings_release(self, week, rng)
        CorporatePolicies.pay_dividend(self, week)
        CorporatePolicies.buy_back(self, week, fundamental)
        CorporatePolicies.forward_split(self, week)
        CorporatePolicies.reverse_split(self, week)
        CorporatePolicies.close_quarter(self)
        EventEngine.roll_quarterly(self, week, rng)

    def snapshot(self, week):
        ni = self.current_net_income_estimate()
        return HistoryPoint(
            week=week,
            price=self.price,
            revenue=self.revenue,
            expenses=self.expenses,
            eps=ni / self.shares_outstanding if self.shares_outstanding > 0 else 0.0,
            net_income=ni,
            cash=self.cash,
            debt=self.debt,
            assets=self.total_assets,
            equity=self.equity,
            shares=self.shares_outstanding,
            pe=self.pe,
            ps=self.ps,
            pe_ttm=self.pe_ttm,
            ps_ttm=self.ps_ttm,
            sentiment=self.sentiment,
        )
