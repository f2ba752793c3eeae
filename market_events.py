# market_events.py
from financial_structs import Event, EventRecord, ActiveEffect, WEEKS_PER_QUARTER

DEFAULT_EFFECT_WEEKS = 12


class EventEngine:
    @staticmethod
    def apply_event(company, event, week):
        """
        Applies instant deltas to the company, installs a timed effect when the
        event carries sticky fields, and records the event in the trace.
        """
        if event.revenue_delta_pct:
            company.revenue = max(0.0, company.revenue * (1 + event.revenue_delta_pct))
        if event.expense_delta_pct:
            company.expenses = max(0.0, company.expenses * (1 + event.expense_delta_pct))
        if event.cash_delta:
            company.cash += event.cash_delta
        if event.debt_delta:
            company.debt = max(0.0, company.debt + event.debt_delta)
        if event.shares_delta:
            company.shares_outstanding = max(1.0, company.shares_outstanding + event.shares_delta)
        if event.price_shock is not None:
            company.price = max(0.05, company.price * (1 + event.price_shock))

        if event.is_sticky:
            duration = event.duration_weeks or DEFAULT_EFFECT_WEEKS
            company.active_effects.append(ActiveEffect(
                expiry_week=week + duration,
                drift_delta=event.drift_delta,
                multiple_delta=event.multiple_delta,
                sentiment_delta=event.sentiment_delta,
            ))

        company.events.append(EventRecord(week, event))

    @staticmethod
    def decay_effects(company, week):
        """
        Sums the deltas of effects still live at `week` and drops expired ones.
        Returns (drift, multiple, sentiment).
        """
        drift = multiple = sentiment = 0.0
        live = []
        for effect in company.active_effects:
            if effect.is_live(week):
                drift += effect.drift_delta
                multiple += effect.multiple_delta
                sentiment += effect.sentiment_delta
                live.append(effect)
        company.active_effects = live
        return drift, multiple, sentiment

    @staticmethod
    def earnings_release(company, week, rng):
        surprise = rng.normal(0, 0.03 + (0.02 if company.stage == "startup" else 0))
        EventEngine.apply_event(company, Event("earnings", "Quarterly earnings release", price_shock=surprise), week)

    @staticmethod
    def roll_quarterly(company, week, rng):
        """One categorical draw picks at most one extra quarterly event."""
        r = rng.random()
        if r < 0.15:
            beat = rng.chance(0.55)
            event = Event(
                "guidance",
                "Raised guidance" if beat else "Lowered guidance",
                price_shock=rng.normal(0.03, 0.02) if beat else rng.normal(-0.04, 0.03),
                drift_delta=0.0005 if beat else -0.0005,
                multiple_delta=0.05 if beat else -0.05,
                sentiment_delta=0.2 if beat else -0.2,
                duration_weeks=WEEKS_PER_QUARTER,
            )
        elif r < 0.25:
            hit = rng.chance(0.6)
            event = Event(
                "product",
                "Successful product launch" if hit else "Product flop",
                revenue_delta_pct=0.04 if hit else -0.03,
                expense_delta_pct=0.01,
                price_shock=rng.normal(0.06, 0.04) if hit else rng.normal(-0.07, 0.05),
                drift_delta=0.0008 if hit else -0.0008,
                duration_weeks=2 * WEEKS_PER_QUARTER,
            )
        elif r < 0.32:
            kind = "scandal" if rng.chance(0.4) else "lawsuit"
            event = Event(
                kind,
                "Legal or governance issue",
                expense_delta_pct=0.03,
                price_shock=rng.normal(-0.08, 0.05),
                multiple_delta=-0.08,
                sentiment_delta=-0.4,
                duration_weeks=2 * WEEKS_PER_QUARTER,
            )
        elif r < 0.36:
            acquirer = rng.chance(0.5)
            event = Event(
                "merger",
                "Announces acquisition" if acquirer else "Receives takeover interest",
                price_shock=rng.normal(-0.03, 0.02) if acquirer else rng.normal(0.12, 0.06),
                multiple_delta=-0.02 if acquirer else 0.05,
                duration_weeks=WEEKS_PER_QUARTER,
            )
        elif r < 0.40:
            up = rng.chance(0.5)
            event = Event(
                "upgrade" if up else "downgrade",
                "Analyst upgrade" if up else "Analyst downgrade",
                price_shock=0.02 if up else -0.03,
                multiple_delta=0.03 if up else -0.04,
                duration_weeks=WEEKS_PER_QUARTER,
            )
        else:
            return None

        EventEngine.apply_event(company, event, week)
        return event

    @staticmethod
    def roll_weekly_news(company, week, rng):
        r = rng.random()
        if r < 0.2:
            event = Event(
                "supply_chain",
                "Minor supply chain hiccups",
                expense_delta_pct=0.01,
                price_shock=-0.01,
                duration_weeks=4,
            )
        elif r < 0.35:
            event = Event(
                "regulatory",
                "Regulatory headline",
                price_shock=rng.normal(0, 0.02),
                duration_weeks=4,
            )
        else:
            return None

        EventEngine.apply_event(company, event, week)
        return event
