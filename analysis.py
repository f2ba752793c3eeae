import numpy as np
import pandas as pd
from dataclasses import asdict

SPLIT_UP = 1.5
SPLIT_DOWN = 0.67


class Analyzer:
    def __init__(self, simulator):
        self.sim = simulator

    @staticmethod
    def history_frame(company):
        """One row per simulated week, indexed by week."""
        if not company.history:
            return pd.DataFrame()
        df = pd.DataFrame([asdict(h) for h in company.history])
        return df.set_index('week')

    @staticmethod
    def split_adjusted_prices(company):
        """
        Price series made continuous across splits and reverse splits by
        compounding the split-like share ratios (same thresholds as the
        split signal, so buybacks do not leak in).
        """
        df = Analyzer.history_frame(company)
        if df.empty:
            return pd.Series(dtype=float)
        ratio = (df['shares'] / df['shares'].shift(1)).fillna(1.0)
        factor = ratio.where((ratio > SPLIT_UP) | (ratio < SPLIT_DOWN), 1.0)
        return df['price'] * factor.cumprod()

    def market_snapshot(self):
        """Current price and derived metrics, one row per company."""
        rows = []
        for c in self.sim.companies:
            rows.append({
                'ticker': c.ticker,
                'sector': c.sector,
                'stage': c.stage,
                'risk': c.risk_profile,
                'price': c.price,
                'pe': c.pe,
                'ps': c.ps,
                'pe_ttm': c.pe_ttm,
                'ps_ttm': c.ps_ttm,
                'ttm_revenue': c.ttm_revenue,
                'ttm_net_income': c.ttm_net_income,
                'ttm_margin': c.ttm_margin,
                'debt_to_equity': c.debt_to_equity,
                'sentiment': c.sentiment,
                'bankrupt': c.is_bankrupt,
            })
        return pd.DataFrame(rows).set_index('ticker')

    def equal_weight_benchmark(self, start_week=1):
        """Equal-dollar portfolio of every company bought at `start_week`, normalized to 1."""
        legs = []
        for c in self.sim.companies:
            prices = self.split_adjusted_prices(c)
            prices = prices[prices.index >= start_week]
            if prices.empty:
                continue
            legs.append(prices / prices.iloc[0])
        if not legs:
            return pd.Series(dtype=float)
        return pd.concat(legs, axis=1).mean(axis=1)

    def total_returns(self, start_week=1):
        out = {}
        for c in self.sim.companies:
            prices = self.split_adjusted_prices(c)
            prices = prices[prices.index >= start_week]
            if len(prices) > 1:
                out[c.ticker] = prices.iloc[-1] / prices.iloc[0] - 1
        return pd.Series(out, dtype=float)

    def report_outlook(self):
        snap = self.market_snapshot()
        returns = self.total_returns()
        bench = self.equal_weight_benchmark()

        print(f"--- Market Report (week {self.sim.week}, seed {self.sim.seed}) ---")
        print(f"Companies: {len(snap)}  Bankrupt: {int(snap['bankrupt'].sum())}")
        print(f"Median Price: ${np.median(snap['price']):,.2f}")
        pe = snap['pe_ttm'].dropna()
        if not pe.empty:
            print(f"Median TTM P/E: {np.median(pe):.1f}")
        if not bench.empty:
            print(f"Equal-Weight Benchmark: {100 * (bench.iloc[-1] - 1):+.1f}%")
        if not returns.empty:
            print(f"Best: {returns.idxmax()} ({100 * returns.max():+.1f}%)")
            print(f"Worst: {returns.idxmin()} ({100 * returns.min():+.1f}%)")
