import unittest
from loguru import logger
from rng import RNG
from market_physics import MarketEnv, SectorIndex
from financial_structs import CompanyInit
from company import Company
from policies import CorporatePolicies
from simulator import MarketSimulator
from analysis import Analyzer


def make_company(**overrides):
    params = dict(
        name="Test Corp", ticker="TST", sector="Technology", description="Test company",
        revenue=100000, expenses=60000, shares=5_000_000,
        risk_profile="medium", stage="mature", payout_ratio=0.4,
    )
    params.update(overrides)
    return Company(CompanyInit(**params))


class SingleCompanyHarness:
    """Drives one company through weeks with its own macro and sector."""

    def __init__(self, company, seed=42):
        self.company = company
        self.rng = RNG(seed)
        self.market = MarketEnv(self.rng)
        self.sector = SectorIndex("Technology", baseline_growth=0.003, pe_adj=1.15)
        self.week = 0

    def tick(self):
        self.week += 1
        self.market.update()
        self.sector.update(self.market, self.rng)
        self.company.simulate_week(self.week, self.market, self.sector, self.rng)

    def run(self, weeks):
        for _ in range(weeks):
            self.tick()


class TestUniverse(unittest.TestCase):

    def setUp(self):
        logger.remove()

    def _trajectory(self, sim):
        return [[h for h in c.history] for c in sim.companies]

    def test_same_seed_same_trajectory(self):
        a = MarketSimulator({'seed': 123, 'company_count': 6})
        b = MarketSimulator({'seed': 123, 'company_count': 6})
        a.run(240)
        b.run(240)
        self.assertEqual([c.ticker for c in a.companies], [c.ticker for c in b.companies])
        self.assertEqual(self._trajectory(a), self._trajectory(b))

    def test_different_seed_different_universe(self):
        a = MarketSimulator({'seed': 1, 'company_count': 6})
        b = MarketSimulator({'seed': 2, 'company_count': 6})
        a.run(20)
        b.run(20)
        self.assertNotEqual(self._trajectory(a), self._trajectory(b))

    def test_invariants_hold_every_tick(self):
        sim = MarketSimulator({'seed': 7, 'company_count': 20})
        for _ in range(480):
            sim.step()
            for c in sim.companies:
                self.assertGreaterEqual(c.price, 0.5)
                self.assertGreaterEqual(c.shares_outstanding, 1_000_000)
                self.assertTrue(-1 <= c.sentiment <= 1)
                self.assertGreaterEqual(c.assets, 0)
                self.assertGreaterEqual(c.revenue, 0)
                self.assertTrue(all(e.expiry_week >= sim.week for e in c.active_effects))

    def test_history_integrity(self):
        sim = MarketSimulator({'seed': 11, 'company_count': 5})
        sim.run(150)
        for c in sim.companies:
            self.assertEqual(len(c.history), 150)
            self.assertEqual([h.week for h in c.history], list(range(1, 151)))

    def test_pre_simulation(self):
        sim = MarketSimulator({'seed': 5, 'company_count': 3, 'pre_sim_years': 2})
        self.assertEqual(sim.week, 96)
        self.assertEqual(len(sim.companies[0].history), 96)

        capped = MarketSimulator({'seed': 5, 'company_count': 2, 'pre_sim_weeks': 5000})
        self.assertEqual(capped.week, 520)

    def test_reset_universe(self):
        sim = MarketSimulator({'seed': 5, 'company_count': 3})
        sim.run(10)
        sim.reset_universe(seed=9, company_count=4, years=1)
        self.assertEqual(sim.seed, 9)
        self.assertEqual(len(sim.companies), 4)
        self.assertEqual(sim.week, 48)

        fresh = MarketSimulator({'seed': 9, 'company_count': 4, 'pre_sim_weeks': 48})
        self.assertEqual([c.price for c in sim.companies], [c.price for c in fresh.companies])

    def test_invalid_config(self):
        with self.assertRaises(ValueError):
            MarketSimulator({'company_count': 0})
        with self.assertRaises(ValueError):
            MarketSimulator({'pre_sim_weeks': -1})

    def test_generated_companies_are_consistent(self):
        sim = MarketSimulator({'seed': 17, 'company_count': 30})
        tickers = [c.ticker for c in sim.companies]
        self.assertEqual(len(set(tickers)), 30)
        for c in sim.companies:
            self.assertIn(c.sector, sim.sectors)
            self.assertTrue(3 <= len(c.ticker) <= 4)
            self.assertTrue(2_000_000 <= c.shares_outstanding < 10_000_000)
            self.assertLess(c.expenses, c.revenue)
            self.assertEqual(c.price, 100.0)
            if c.stage != 'mature':
                self.assertEqual(c.payout_ratio, 0.0)
                self.assertIsNone(c.target_yield)
        self.assertIs(sim.get(tickers[0].lower()), sim.companies[0])

    def test_step_reports_splits(self):
        sim = MarketSimulator({'seed': 3, 'company_count': 10})
        for _ in range(480):
            splits = sim.step()
            expected = {c.ticker: c.pending_split_factor for c in sim.companies if c.pending_split_factor != 1}
            self.assertEqual(splits, expected)


class TestCompanyScenarios(unittest.TestCase):

    def setUp(self):
        logger.remove()

    def test_quarterly_dividend(self):
        company = make_company()
        harness = SingleCompanyHarness(company, seed=2024)
        harness.run(12)

        week_12 = [r.event for r in company.events if r.week == 12]
        self.assertIn("dividend", [e.type for e in week_12])
        self.assertIn("earnings", [e.type for e in week_12])
        self.assertEqual(company.quarter_net_income_acc, 0.0)
        self.assertEqual(company.negative_quarter_streak, 0)

    def test_distress_raise(self):
        company = make_company()
        harness = SingleCompanyHarness(company, seed=99)
        harness.run(3)

        company.cash = -200_000
        debt_before = company.debt
        harness.tick()

        self.assertGreater(company.debt, debt_before)
        self.assertGreaterEqual(company.cash, 0)
        distress = [r for r in company.events if r.event.type == "distress"]
        self.assertEqual([r.week for r in distress], [4])
        self.assertEqual(company.history[-1].cash, company.cash)

    def test_forward_split_signal(self):
        company = make_company(payout_ratio=0.0, buyback_rate=0.0)
        harness = SingleCompanyHarness(company, seed=5)
        harness.run(11)

        company.price = 260.0
        shares = company.shares_outstanding
        harness.tick()

        self.assertEqual(company.pending_split_factor, 4.0)
        self.assertEqual(company.shares_outstanding, shares * 4)
        self.assertIn("4-for-1 split", [r.event.description for r in company.events if r.week == 12])

        harness.tick()
        self.assertEqual(company.pending_split_factor, 1.0)

        # Split-adjusted history stays continuous across the split
        adjusted = Analyzer.split_adjusted_prices(company)
        raw = Analyzer.history_frame(company)['price']
        self.assertAlmostEqual(adjusted.loc[12], raw.loc[12] * 4)
        self.assertLess(abs(adjusted.loc[12] / 260.0 - 1), 0.6)

    def test_low_band_consolidation_signal(self):
        """A sub-$3 quote is consolidated mid-week and published as a reverse split."""
        company = make_company(payout_ratio=0.0, buyback_rate=0.0)
        harness = SingleCompanyHarness(company, seed=13)
        harness.run(2)

        company.price = 1.0
        shares = company.shares_outstanding
        harness.tick()

        factor = company.pending_split_factor
        self.assertLess(factor, 0.67)
        self.assertIn(round(1 / factor), (3, 4))
        self.assertAlmostEqual(factor, company.shares_outstanding / shares)
        self.assertGreaterEqual(company.price, 3.0)
        self.assertEqual(company.history[-1].shares, company.shares_outstanding)

        company.price = 50.0
        harness.tick()
        self.assertEqual(company.pending_split_factor, 1.0)

    def test_consume_split_factor(self):
        company = make_company()
        company.pending_split_factor = 4.0
        self.assertEqual(company.consume_split_factor(), 4.0)
        self.assertEqual(company.consume_split_factor(), 1.0)

    def test_bankruptcy_is_terminal(self):
        company = make_company()
        harness = SingleCompanyHarness(company, seed=8)
        harness.run(5)

        company.debt = 1e9
        company.cash = -1e6
        company.negative_quarter_streak = 8
        company.pending_split_factor = 4.0
        self.assertTrue(CorporatePolicies.check_failure(company, 5))

        frozen = (company.price, company.revenue, company.expenses, company.cash, company.debt)
        harness.run(30)

        self.assertTrue(company.is_bankrupt)
        self.assertEqual(company.pending_split_factor, 1.0)
        self.assertEqual(len(company.history), 35)
        self.assertEqual((company.price, company.revenue, company.expenses, company.cash, company.debt), frozen)
        for h in company.history[5:]:
            self.assertEqual(h.price, frozen[0])
            self.assertEqual(h.revenue, frozen[1])

    def test_derived_metrics(self):
        company = make_company()
        self.assertIsNotNone(company.pe)
        self.assertAlmostEqual(company.ttm_revenue, 100000 * 48)
        self.assertAlmostEqual(company.ps_ttm, 100 / (100000 * 48 / 5_000_000))

        company.expenses = 1e9
        self.assertIsNone(company.pe)
        self.assertIsNone(company.pe_ttm)
        self.assertLess(company.margin, 0)

        company.debt = 1e12
        self.assertEqual(company.debt_to_equity, 1e12 / 1e-6)

        company.revenue = 0
        self.assertEqual(company.margin, 0.0)
        self.assertGreater(company.ps, 1e9)

    def test_ttm_uses_last_48_weeks(self):
        company = make_company()
        SingleCompanyHarness(company, seed=31).run(60)
        expected = sum(h.revenue for h in company.history[-48:])
        self.assertAlmostEqual(company.ttm_revenue, expected)

    def test_unknown_classification(self):
        with self.assertRaises(ValueError):
            make_company(stage="zombie")
        with self.assertRaises(ValueError):
            make_company(risk_profile="extreme")


class TestAnalyzer(unittest.TestCase):

    def setUp(self):
        logger.remove()
        self.sim = MarketSimulator({'seed': 77, 'company_count': 8})
        self.sim.run(100)
        self.analyzer = Analyzer(self.sim)

    def test_history_frame(self):
        df = Analyzer.history_frame(self.sim.companies[0])
        self.assertEqual(len(df), 100)
        self.assertEqual(df.index[0], 1)
        self.assertIn('pe_ttm', df.columns)

    def test_market_snapshot(self):
        snap = self.analyzer.market_snapshot()
        self.assertEqual(len(snap), 8)
        self.assertTrue((snap['price'] >= 0.5).all())

    def test_benchmark_starts_at_one(self):
        bench = self.analyzer.equal_weight_benchmark(start_week=10)
        self.assertAlmostEqual(bench.iloc[0], 1.0)
        self.assertEqual(bench.index[0], 10)
        self.assertEqual(len(bench), 91)

    def test_report_runs(self):
        self.analyzer.report_outlook()


if __name__ == '__main__':
    unittest.main()
