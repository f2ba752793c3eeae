import argparse
from simulator import MarketSimulator
from analysis import Analyzer


def parse_args():
    parser = argparse.ArgumentParser(description="Weekly synthetic stock market simulator")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--companies", type=int, default=10)
    parser.add_argument("--years", type=int, default=3, help="Years to simulate (48 weeks each)")
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()

    sim = MarketSimulator({'seed': args.seed, 'company_count': args.companies})
    sim.run(args.years * 48)

    analyzer = Analyzer(sim)
    analyzer.report_outlook()

    print("-" * 30)
    print(analyzer.market_snapshot()[['sector', 'stage', 'price', 'pe_ttm', 'ttm_margin', 'debt_to_equity']].round(2))
