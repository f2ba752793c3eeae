from loguru import logger
from rng import RNG, fresh_seed
from market_physics import MarketEnv, build_sectors
from financial_structs import CompanyInit, RISK_PROFILES, STAGES, WEEKS_PER_YEAR
from company import Company

MAX_PRE_SIM_WEEKS = 52 * 10

DEFAULT_CONFIG = {
    'seed': None,
    'company_count': 10,
    'pre_sim_weeks': 0,
    'sectors': None,
}

EXPENSE_RISK = {'low': 0.03, 'medium': 0.07, 'high': 0.12}
EXPENSE_STAGE = {'startup': 0.12, 'growth': 0.06, 'mature': 0.0, 'decline': 0.0}
DEBT_WEEKS = {'low': 12, 'medium': 24, 'high': 40}


class MarketSimulator:
    """
    Owns one universe: a seeded RNG, the macro environment, the sector
    indexes and the companies. step() is one simulated week.
    """

    def __init__(self, config=None):
        self.config = dict(DEFAULT_CONFIG)
        self.config.update(config or {})
        self._build(self.config)

    def _build(self, config):
        count = config.get('company_count', 10)
        if not isinstance(count, int) or count <= 0:
            raise ValueError(f"company_count must be a positive integer, got {count!r}")

        weeks = config.get('pre_sim_weeks')
        if weeks is None or (weeks == 0 and config.get('pre_sim_years')):
            weeks = int(config.get('pre_sim_years') or 0) * WEEKS_PER_YEAR
        if weeks < 0:
            raise ValueError(f"pre-simulation length must be non-negative, got {weeks!r}")

        seed = config.get('seed')
        self.seed = fresh_seed() if seed is None else int(seed)
        self.week = 0
        self.rng = RNG(self.seed)
        self.market = MarketEnv(self.rng)
        self.sectors = build_sectors(config.get('sectors'))
        self.companies = self._create_companies(count)
        logger.info(f"Universe built: seed={self.seed}, companies={count}, sectors={len(self.sectors)}")

        if weeks > 0:
            self.pre_simulate(weeks)

    def _gen_ticker(self, used):
        while True:
            length = 3 + int(self.rng.random() * 2)
            ticker = "".join(chr(65 + int(self.rng.random() * 26)) for _ in range(length))
            if ticker not in used:
                used.add(ticker)
                return ticker

    def _create_companies(self, count):
        rng = self.rng
        sector_names = list(self.sectors.keys())
        used = set()
        companies = []

        for i in range(count):
            sector = rng.pick(sector_names)
            risk = rng.pick(RISK_PROFILES)
            stage = rng.pick(STAGES)

            weekly_revenue = (1_500_000 + rng.random() * 6_000_000) / WEEKS_PER_YEAR
            expense_factor = 0.5 + EXPENSE_RISK[risk] + EXPENSE_STAGE[stage]

            # Draw order matters for reproducibility
            ticker = self._gen_ticker(used)
            shares = float(int(2_000_000 + rng.random() * 8_000_000))
            mature = stage == 'mature'
            payout = 0.2 + rng.random() * 0.4 if mature else 0.0
            target_yield = 0.02 + rng.random() * 0.03 if mature else None
            capex = 0.08 if sector == 'Utilities' else 0.03 + rng.random() * 0.05
            early = stage in ('startup', 'growth')
            rnd = 0.1 + rng.random() * 0.15 if early else 0.02 + rng.random() * 0.04
            sentiment = rng.normal(0, 0.2)
            cash = weekly_revenue * (6 + rng.random() * 12)

            init = CompanyInit(
                name=f"{sector} Corp {i + 1}",
                ticker=ticker,
                sector=sector,
                description=f"{sector} company ({stage}, {risk}).",
                revenue=weekly_revenue,
                expenses=weekly_revenue * expense_factor,
                shares=shares,
                risk_profile=risk,
                stage=stage,
                payout_ratio=payout,
                target_yield=target_yield,
                capex_rate=capex,
                r_and_d_rate=rnd,
                sentiment=sentiment,
                cash=cash,
                debt=weekly_revenue * DEBT_WEEKS[risk],
                assets=weekly_revenue * (80 if risk == 'high' else 120),
            )
            companies.append(Company(init))
        return companies

    def sector_for(self, company):
        # Unknown labels fall back to the first sector
        return self.sectors.get(company.sector) or next(iter(self.sectors.values()))

    def step(self):
        """
        Advances one week: macro, then every sector, then every company.
        Returns {ticker: factor} for companies that split this week.
        """
        self.week += 1
        self.market.update()
        for sector in self.sectors.values():
            sector.update(self.market, self.rng)

        splits = {}
        for company in self.companies:
            company.simulate_week(self.week, self.market, self.sector_for(company), self.rng)
            if company.pending_split_factor != 1:
                splits[company.ticker] = company.pending_split_factor
        return splits

    def run(self, weeks):
        for _ in range(weeks):
            self.step()

    def pre_simulate(self, weeks):
        """Builds history before anyone reads the market. Capped at ten years."""
        weeks = max(0, min(int(weeks), MAX_PRE_SIM_WEEKS))
        logger.info(f"Pre-simulating {weeks} weeks")
        self.run(weeks)

    def reset_universe(self, seed=None, company_count=None, years=0):
        config = dict(self.config)
        config['seed'] = seed
        if company_count is not None:
            config['company_count'] = int(company_count)
        config.pop('pre_sim_years', None)
        config['pre_sim_weeks'] = max(0, int(years)) * WEEKS_PER_YEAR
        self.config = config
        self._build(config)

    @property
    def company_by_ticker(self):
        return {c.ticker: c for c in self.companies}

    def get(self, ticker):
        return self.company_by_ticker.get(ticker.strip().upper())
