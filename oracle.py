# oracle.py
# Boundary contract for an external decision source (e.g. an LLM agent).
# The simulation never depends on it; failures always degrade to no decisions.
import json
import math
import re
from dataclasses import dataclass
from loguru import logger

MAX_DECISIONS = 12

SYSTEM_PROMPT = (
    "You are an investing agent in a stock simulation. "
    "Respond ONLY with JSON. No commentary outside JSON."
)

_FENCE = re.compile(r"```json([\s\S]*?)```", re.IGNORECASE)


@dataclass(frozen=True)
class Decision:
    action: str     # "BUY" or "SELL"
    ticker: str
    dollars: int


def build_stock_views(companies):
    return [
        {
            'ticker': c.ticker,
            'sector': c.sector,
            'stage': c.stage,
            'riskProfile': c.risk_profile,
            'price': c.price,
            'peTTM': c.pe_ttm,
            'psTTM': c.ps_ttm,
            'ttmRevenue': c.ttm_revenue,
            'ttmMargin': c.ttm_margin,
            'debtToEquity': c.debt_to_equity,
            'sentiment': c.sentiment,
        }
        for c in companies
    ]


def build_decision_prompt(stocks, cash_available, holdings, max_decisions=MAX_DECISIONS):
    """
    holdings: iterable of dicts with ticker, quantity and avgCostBasis.
    Returns the user prompt; pair it with SYSTEM_PROMPT.
    """
    budget = max(0, math.floor(cash_available))
    instruction = "\n".join([
        "You are given current stock fundamentals and your current portfolio.",
        f"Budget available (cash): {budget}.",
        f'You may output up to {max_decisions} decisions. Each decision must be one of {{"BUY", "SELL"}}.',
        "Allocate whole-dollar amounts (no cents). Keep total BUY dollars <= cash.",
        "For SELL, ensure you do not sell more shares than you own.",
        "Only use tickers present in DATA.stocks.",
        "Game goals: maximize long-run CAGR over yearly rebalances (48 weeks/year).",
        "- Prefer profitable growth (higher ttmMargin, positive sentiment).",
        "- Favor reasonable valuations (lower peTTM when available; otherwise lower psTTM).",
        "- Penalize high leverage (high debtToEquity).",
        "Output strict JSON of the form: {",
        '  "decisions": [{"action": "BUY"|"SELL", "ticker": string, "dollars": number}],',
        '  "rationale": string',
        "}",
    ])
    payload = {'stocks': stocks, 'holdings': list(holdings)}
    return f"DATA:\n{json.dumps(payload, indent=2)}\n\nTASK:\n{instruction}"


def _extract_json(raw):
    match = _FENCE.search(raw)
    if match:
        return match.group(1).strip()
    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end > start:
        return raw[start:end + 1]
    return raw


def parse_decisions(raw, max_decisions=MAX_DECISIONS):
    """
    Tolerant parser for the oracle's reply. Anything malformed yields [].
    Returns (decisions, rationale).
    """
    if not isinstance(raw, str):
        return [], None
    try:
        parsed = json.loads(_extract_json(raw))
    except (ValueError, RecursionError):
        logger.warning("Decision response is not valid JSON; ignoring it")
        return [], None
    if not isinstance(parsed, dict):
        return [], None

    entries = parsed.get('decisions')
    if not isinstance(entries, list):
        entries = []

    clean = []
    for d in entries:
        if not isinstance(d, dict):
            continue
        ticker = d.get('ticker')
        dollars = d.get('dollars')
        if not isinstance(ticker, str) or isinstance(dollars, bool) or not isinstance(dollars, (int, float)):
            continue
        if not math.isfinite(dollars):
            continue
        action = "SELL" if d.get('action') == "SELL" else "BUY"
        clean.append(Decision(action, ticker.strip().upper(), max(0, math.floor(dollars))))

    rationale = parsed.get('rationale')
    return clean[:max_decisions], rationale if isinstance(rationale, str) else None


def request_decisions(generate, stocks, cash_available, holdings, max_decisions=MAX_DECISIONS):
    """
    generate(system_prompt, user_prompt) -> str is supplied by the caller.
    Network or parse failures never propagate; they yield an empty list.
    """
    prompt = build_decision_prompt(stocks, cash_available, holdings, max_decisions)
    try:
        raw = generate(SYSTEM_PROMPT, prompt)
    except Exception as exc:
        logger.warning(f"Decision request failed: {exc}")
        return []
    decisions, _ = parse_decisions(raw, max_decisions)
    return decisions
