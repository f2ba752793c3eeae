# financial_structs.py
from dataclasses import dataclass
from typing import Optional

WEEKS_PER_YEAR = 48
WEEKS_PER_QUARTER = 12

RISK_PROFILES = ("low", "medium", "high")
STAGES = ("startup", "growth", "mature", "decline")

EVENT_TYPES = (
    "earnings",
    "guidance",
    "product",
    "lawsuit",
    "scandal",
    "merger",
    "dividend",
    "buyback",
    "split",
    "downgrade",
    "upgrade",
    "regulatory",
    "supply_chain",
    "macro_shock",
    "distress",
    "bankruptcy",
)


def clamp(x, lo, hi):
    return max(lo, min(hi, x))


@dataclass
class Event:
    type: str
    description: str

    # Instant shocks
    price_shock: Optional[float] = None   # +0.08 for +8%
    cash_delta: float = 0.0
    debt_delta: float = 0.0
    shares_delta: float = 0.0

    # One-time nudges
    revenue_delta_pct: float = 0.0
    expense_delta_pct: float = 0.0

    # Sticky effects
    drift_delta: float = 0.0
    multiple_delta: float = 0.0           # +0.1 = +10% on target multiples
    sentiment_delta: float = 0.0
    duration_weeks: Optional[int] = None

    def __post_init__(self):
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {self.type}")

    @property
    def is_sticky(self):
        return bool(self.drift_delta or self.multiple_delta or self.sentiment_delta)


@dataclass(frozen=True)
class EventRecord:
    week: int
    event: Event


@dataclass
class ActiveEffect:
    expiry_week: int
    drift_delta: float = 0.0
    multiple_delta: float = 0.0
    sentiment_delta: float = 0.0

    def is_live(self, week):
        return week <= self.expiry_week


@dataclass(frozen=True)
class HistoryPoint:
    week: int
    price: float
    revenue: float
    expenses: float
    eps: float
    net_income: float
    cash: float
    debt: float
    assets: float          # total assets, cash included
    equity: float
    shares: float
    pe: Optional[float]
    ps: float
    pe_ttm: Optional[float]
    ps_ttm: float
    sentiment: float


@dataclass
class CompanyInit:
    name: str
    ticker: str
    sector: str
    description: str

    revenue: float         # weekly
    expenses: float        # weekly opex excl. R&D, interest, taxes, depreciation
    shares: float

    cash: Optional[float] = None
    debt: Optional[float] = None
    assets: Optional[float] = None    # operating assets, cash excluded

    risk_profile: str = "medium"
    stage: str = "mature"

    payout_ratio: Optional[float] = None
    r_and_d_rate: Optional[float] = None
    capex_rate: Optional[float] = None
    depreciation_rate: Optional[float] = None
    buyback_rate: Optional[float] = None
    target_yield: Optional[float] = None
    tax_rate: Optional[float] = None

    sentiment: float = 0.0
    market_share: Optional[float] = None
