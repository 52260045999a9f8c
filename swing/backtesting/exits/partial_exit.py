"""
Take-Profit Evaluator - Three-tranche scale-out

Strategy:
- TP1 / TP2: sell floor(initial_shares * tranche fraction) shares,
  capped at the remaining shares, at the target price
- TP3: close whatever remains at the target price
- Targets are checked highest first (TP3 -> TP2 -> TP1) against the day's high
- Each tranche fires at most once, tracked through the trade's
  recorded partial-exit reasons
"""

import logging
from typing import Optional

from swing.backtesting.config import BacktestConfig
from swing.backtesting.exits.decisions import ExitDecision, FullExit, PartialExit
from swing.backtesting.simulation.position_tracker import Trade, ExitReason

logger = logging.getLogger(__name__)


class TakeProfitEvaluator:
    """
    Evaluates the three take-profit tranches for an open trade.

    Tranche sizes are computed from initial_shares so a 33/33/34 split
    stays proportional to the original position.
    """

    def __init__(self, config: BacktestConfig):
        self._config = config

    def check(self, trade: Trade, day_high: float) -> Optional[ExitDecision]:
        """
        Check take-profit targets against the day's high.

        Returns:
            FullExit for TP3, PartialExit for TP2/TP1, None otherwise
        """
        if not trade.tranche_taken(ExitReason.TP3) and day_high >= trade.tp3:
            return FullExit(trade.tp3, ExitReason.TP3, f"TP3 ${trade.tp3:.2f} reached")

        tranches = (
            (ExitReason.TP2, trade.tp2, self._config.tp_sizes[1]),
            (ExitReason.TP1, trade.tp1, self._config.tp_sizes[0]),
        )
        for reason, target, fraction in tranches:
            if trade.tranche_taken(reason) or day_high < target:
                continue
            shares = min(int(trade.initial_shares * fraction), trade.shares)
            if shares <= 0:
                continue
            logger.debug(
                "%s %s: %d/%d shares at $%.2f",
                trade.ticker, reason.value, shares, trade.initial_shares, target,
            )
            return PartialExit(
                price=target,
                shares=shares,
                reason=reason,
                details=f"{reason.value}: {shares}/{trade.initial_shares} shares at ${target:.2f}",
            )

        return None
