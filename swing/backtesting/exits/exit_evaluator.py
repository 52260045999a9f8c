"""
Exit Engine - Daily exit decision for an open swing trade

Evaluates exit conditions in strict priority order. First applicable
condition wins; remaining conditions are skipped.

Priority Order:
1. STOP_LOSS      - Day's low at or below the stop (gap-aware fill)
2. TIME_EXIT      - Holding days reached max_holding_days (fill at close)
3. TP3 / TP2 / TP1 - Take-profit tranches, highest target first
4. TRAILING_STOP  - Low breached the MFE trail after activation

decide() is a pure function of its inputs and the trade's recorded
state: it never mutates the trade and performs no I/O. Excursions are
updated by the simulator before decide() is called.
"""

import logging
from datetime import date

from swing.backtesting.config import BacktestConfig
from swing.backtesting.exits.decisions import ExitDecision, FullExit, NoAction
from swing.backtesting.exits.partial_exit import TakeProfitEvaluator
from swing.backtesting.exits.stop_loss import StopLossEvaluator
from swing.backtesting.exits.trailing_stop import TrailingStopEvaluator
from swing.backtesting.simulation.position_tracker import Trade, ExitReason

logger = logging.getLogger(__name__)


class ExitEngine:
    """
    Decides whether and how much of a trade to exit on a given day.

    Usage:
        engine = ExitEngine(config)
        decision = engine.decide(trade, day_high, day_low, day_close, day)
        if isinstance(decision, PartialExit):
            ...
    """

    def __init__(self, config: BacktestConfig):
        self._config = config
        self._stop = StopLossEvaluator(config)
        self._take_profit = TakeProfitEvaluator(config)
        self._trailing = TrailingStopEvaluator(config)

    def decide(
        self,
        trade: Trade,
        day_high: float,
        day_low: float,
        day_close: float,
        day: date,
    ) -> ExitDecision:
        """
        Evaluate all exit conditions for a trade against one daily bar.

        Args:
            trade: Open trade (excursions already updated for the day)
            day_high: Day's high
            day_low: Day's low
            day_close: Day's close
            day: Bar date

        Returns:
            NoAction, PartialExit or FullExit
        """
        # ── Priority 1: STOP_LOSS ───────────────────────────────────
        stop_decision = self._stop.check(trade, day_low)
        if stop_decision is not None:
            return stop_decision

        # ── Priority 2: TIME_EXIT ───────────────────────────────────
        max_days = self._config.max_holding_days
        if max_days:
            held = trade.holding_days_at(day)
            if held >= max_days:
                return FullExit(day_close, ExitReason.TIME_EXIT,
                                f"Held {held} days >= max {max_days}")

        # ── Priority 3: TAKE PROFIT (TP3 -> TP2 -> TP1) ─────────────
        tp_decision = self._take_profit.check(trade, day_high)
        if tp_decision is not None:
            return tp_decision

        # ── Priority 4: TRAILING_STOP ───────────────────────────────
        trail_decision = self._trailing.check(trade, day_low)
        if trail_decision is not None:
            return trail_decision

        return NoAction()
