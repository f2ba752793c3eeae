# market_impact.py
import math
from financial_structs import clamp
from policies import PRICE_FLOOR

IMPACT_BASE = 0.6
MAX_IMPACT = 0.06
NEUTRAL_VOL = 0.02


def illiquidity(company):
    """Crude illiquidity proxy from the company's current volatility; 0.02 vol is neutral."""
    return clamp(1 + 20 * (company.base_vol - NEUTRAL_VOL), 0.6, 1.8)


def impact_pct(company, shares, side):
    """
    Fractional price move caused by filling `shares` on `side` ('buy' or 'sell').
    Scales with the square root of the trade's share of the float, capped at 6%.
    """
    if side == 'buy':
        sign = 1
    elif side == 'sell':
        sign = -1
    else:
        raise ValueError(f"Unknown trade side: {side!r}")

    relative_size = max(0, shares) / max(1, company.shares_outstanding)
    raw = IMPACT_BASE * math.sqrt(relative_size) * illiquidity(company)
    return clamp(sign * raw, -MAX_IMPACT, MAX_IMPACT)


def apply_trade_impact(company, shares, side):
    """Nudges the quote after an external fill. Deterministic; returns the applied fraction."""
    pct = impact_pct(company, shares, side)
    company.price = max(PRICE_FLOOR, company.price * (1 + pct))
    return pct
