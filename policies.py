import math
from loguru import logger
from financial_structs import Event, WEEKS_PER_YEAR, WEEKS_PER_QUARTER
from market_events import EventEngine

MIN_SHARES = 1_000_000
PRICE_FLOOR = 0.5
PRICE_BAND_LOW = 3
PRICE_BAND_HIGH = 300
FORWARD_SPLIT_TRIGGER = 200
FORWARD_SPLIT_RATIO = 4
REVERSE_SPLIT_RATIO = 10
REVERSE_SPLIT_STREAK = 16
BUYBACK_MAX_FRACTION = 0.05

# Bankruptcy requires all three at once
BANKRUPTCY_DEBT_TO_EQUITY = 5.0
BANKRUPTCY_NEGATIVE_QUARTERS = 8


def _round_half_up(x):
    return math.floor(x + 0.5)


class CorporatePolicies:
    @staticmethod
    def normalize_price_band(company):
        """
        Policy 1: Retail Price Band
        Keeps the quote inside [3, 300] by silently rescaling the share count,
        then tracks how long the stock has traded under $1.
        """
        if company.price < PRICE_BAND_LOW:
            r = math.ceil(PRICE_BAND_LOW / max(1e-6, company.price))
            company.price *= r
            company.shares_outstanding = max(MIN_SHARES, _round_half_up(company.shares_outstanding / r))
            logger.debug(f"{company.ticker}: price band consolidation x{r}")
        elif company.price > PRICE_BAND_HIGH:
            r = math.ceil(company.price / PRICE_BAND_HIGH)
            company.price /= r
            company.shares_outstanding *= r
            logger.debug(f"{company.ticker}: price band split x{r}")

        if company.price < 1:
            company.low_price_streak += 1
        else:
            company.low_price_streak = 0

    @staticmethod
    def pay_dividend(company, week):
        """Policy 2: Pay out a fraction of the quarter's profit, capped by the target yield."""
        if company.payout_ratio <= 0 or company.quarter_net_income_acc <= 0:
            return 0.0

        total = company.payout_ratio * company.quarter_net_income_acc
        if company.target_yield and company.price > 0:
            cap = company.target_yield * company.market_cap / 4
            total = min(total, cap)

        dps = total / company.shares_outstanding
        if dps <= 0:
            return 0.0

        company.cash -= total
        company.price = max(PRICE_FLOOR, company.price - dps)  # ex-dividend drop
        EventEngine.apply_event(company, Event("dividend", f"Dividend {dps:.2f}/sh"), week)
        return total

    @staticmethod
    def buy_back(company, week, fundamental):
        """
        Policy 3: Repurchase stock when it trades well below fundamental value
        and cash sits above the liquidity buffer. At most 5% of shares a quarter.
        """
        cheap = fundamental > 0 and company.price < 0.9 * fundamental
        cash_buffer = max(0.0, 0.1 * company.revenue * WEEKS_PER_YEAR / WEEKS_PER_QUARTER)
        if not cheap or company.cash <= cash_buffer * 1.5 or company.buyback_rate <= 0:
            return 0.0

        budget = company.buyback_rate * (company.cash - cash_buffer)
        unit_price = max(1.0, company.price)
        repurchased = min(budget / unit_price, company.shares_outstanding * BUYBACK_MAX_FRACTION)
        # The whole budget leaves cash even when the 5% cap binds
        company.shares_outstanding = max(MIN_SHARES, company.shares_outstanding - repurchased)
        company.cash -= budget
        company.price *= 1.01
        EventEngine.apply_event(company, Event("buyback", f"Buyback ${budget:.0f}"), week)
        return budget

    @staticmethod
    def forward_split(company, week):
        if company.price <= FORWARD_SPLIT_TRIGGER:
            return False
        company.shares_outstanding *= FORWARD_SPLIT_RATIO
        company.price /= FORWARD_SPLIT_RATIO
        EventEngine.apply_event(company, Event("split", f"{FORWARD_SPLIT_RATIO}-for-1 split"), week)
        logger.info(f"{company.ticker}: {FORWARD_SPLIT_RATIO}-for-1 split in week {week}")
        return True

    @staticmethod
    def reverse_split(company, week):
        if company.low_price_streak < REVERSE_SPLIT_STREAK:
            return False
        company.shares_outstanding = max(MIN_SHARES, company.shares_outstanding / REVERSE_SPLIT_RATIO)
        company.price *= REVERSE_SPLIT_RATIO
        company.low_price_streak = 0
        EventEngine.apply_event(company, Event("split", f"1-for-{REVERSE_SPLIT_RATIO} reverse split"), week)
        logger.info(f"{company.ticker}: 1-for-{REVERSE_SPLIT_RATIO} reverse split in week {week}")
        return True

    @staticmethod
    def close_quarter(company):
        """Tracks consecutive losing quarters and resets the quarterly accumulator."""
        if company.quarter_net_income_acc < 0:
            company.negative_quarter_streak += 1
        else:
            company.negative_quarter_streak = max(0, company.negative_quarter_streak - 1)
        company.quarter_net_income_acc = 0.0

    @staticmethod
    def min_cash(company):
        # About two weeks of revenue
        return 0.02 * company.revenue * WEEKS_PER_YEAR / WEEKS_PER_QUARTER

    @staticmethod
    def manage_liquidity(company, week):
        """
        Policy 4: Distress Financing
        Negative cash forces an emergency debt raise covering the shortfall
        plus a small buffer, capped at 20% of total assets.
        """
        if company.cash >= 0:
            return 0.0

        raised = min(abs(company.cash) + CorporatePolicies.min_cash(company),
                     0.2 * max(1.0, company.total_assets))
        EventEngine.apply_event(company, Event(
            "distress",
            "Emergency debt raise",
            price_shock=-0.03,
            cash_delta=raised,
            debt_delta=raised,
        ), week)
        logger.debug(f"{company.ticker}: emergency debt raise of {raised:,.0f} in week {week}")
        return raised

    @staticmethod
    def check_failure(company, week):
        """Policy 5: Bankruptcy Detection. Terminal once triggered."""
        severe_leverage = company.debt_to_equity > BANKRUPTCY_DEBT_TO_EQUITY
        if not (severe_leverage
                and company.negative_quarter_streak >= BANKRUPTCY_NEGATIVE_QUARTERS
                and company.cash < -CorporatePolicies.min_cash(company)):
            return False

        EventEngine.apply_event(company, Event(
            "bankruptcy",
            "Bankruptcy: equity wiped, trading suspended then resumes OTC",
            price_shock=-0.9,
        ), week)
        company.is_bankrupt = True
        company.price = max(0.05, company.price * 0.2)
        logger.warning(f"{company.ticker}: bankruptcy in week {week}")
        return True
