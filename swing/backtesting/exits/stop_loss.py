"""
Stop-Loss Evaluator - Gap-aware stop fills

Three gap-handling models for a day whose low trades through the stop:

1. MARKET: fill at the day's low, but never worse than
   entry - R * max_slippage_r (loss capped in R)
2. SKIP:   if the gap is more than skip_gap_threshold_pct beyond the
   stop, defer the exit to a later bar; otherwise fill at the low
3. LIMIT:  fill exactly at the stop

A degenerate trade (entry <= stop) always exits at the stop.
"""

import logging
from typing import Optional

from swing.backtesting.config import BacktestConfig, GapHandling
from swing.backtesting.exits.decisions import ExitDecision, FullExit, NoAction
from swing.backtesting.simulation.position_tracker import Trade, ExitReason

logger = logging.getLogger(__name__)


class StopLossEvaluator:
    """
    Decides stop-loss fills for a long position.

    Returns None when the stop was not touched, NoAction when a SKIP
    deferral suppresses the exit for the day, FullExit otherwise.
    """

    def __init__(self, config: BacktestConfig):
        self._config = config

    def check(self, trade: Trade, day_low: float) -> Optional[ExitDecision]:
        """
        Check the stop against the day's low.

        Args:
            trade: Open trade
            day_low: Day's low price

        Returns:
            None if the stop was not reached, else the stop decision
        """
        stop = trade.stop_loss
        if day_low > stop:
            return None

        risk = trade.entry_price - stop
        if risk <= 0:
            return FullExit(stop, ExitReason.STOP_LOSS, "Non-positive risk, exit at stop")

        fill = stop
        details = f"Stop ${stop:.2f} hit"

        if day_low < stop:
            mode = self._config.gap_handling
            if mode == GapHandling.MARKET:
                floor_price = trade.entry_price - risk * self._config.max_slippage_r
                fill = max(day_low, floor_price)
                details = (f"Gap through stop ${stop:.2f} to ${day_low:.2f}, "
                           f"filled ${fill:.2f} (cap {self._config.max_slippage_r:.1f}R)")
            elif mode == GapHandling.SKIP:
                gap_pct = (stop - day_low) / stop * 100
                if gap_pct > self._config.skip_gap_threshold_pct:
                    logger.debug(
                        "%s: gap %.2f%% through stop $%.2f, deferring exit",
                        trade.ticker, gap_pct, stop,
                    )
                    return NoAction(f"Stop gap {gap_pct:.2f}% deferred")
                fill = day_low
                details = f"Gap through stop ${stop:.2f}, filled at low ${day_low:.2f}"
            else:
                fill = stop
                details = f"Gap through stop ${stop:.2f}, limit fill at stop"

        multiplier = self._config.stop_loss_multiplier
        if multiplier is not None and multiplier < 1:
            tighter_stop = trade.entry_price - risk * multiplier
            if day_low <= tighter_stop:
                fill = max(tighter_stop, fill)

        return FullExit(fill, ExitReason.STOP_LOSS, details)
