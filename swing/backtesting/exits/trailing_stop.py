"""
Trailing Stop Evaluator - Percentage trail below max favorable excursion

- Activation: trade's MFE has reached trailing_stop_activation R
- Trail level: MFE price * (1 - trailing_stop_distance)
- Fill: max(trail level, day's low) when the low breaches the level
"""

import logging
from typing import Optional

from swing.backtesting.config import BacktestConfig
from swing.backtesting.exits.decisions import ExitDecision, FullExit
from swing.backtesting.simulation.position_tracker import Trade, ExitReason

logger = logging.getLogger(__name__)


class TrailingStopEvaluator:
    """Evaluates the MFE-anchored trailing stop for an open trade."""

    def __init__(self, config: BacktestConfig):
        self._config = config

    def is_active(self, trade: Trade) -> bool:
        """Whether the trade's MFE has reached the activation threshold."""
        return (
            self._config.use_trailing_stop
            and trade.mfe is not None
            and trade.mfe_r is not None
            and trade.mfe_r >= self._config.trailing_stop_activation
        )

    def trailing_level(self, trade: Trade) -> Optional[float]:
        """Current trail price, or None before activation."""
        if not self.is_active(trade):
            return None
        return trade.mfe * (1 - self._config.trailing_stop_distance)

    def check(self, trade: Trade, day_low: float) -> Optional[ExitDecision]:
        """
        Check the trailing stop against the day's low.

        Returns:
            FullExit if the trail was breached, None otherwise
        """
        level = self.trailing_level(trade)
        if level is None or day_low > level:
            return None

        fill = max(level, day_low)
        logger.debug(
            "%s trailing stop: level $%.2f (MFE $%.2f, %.2fR), low $%.2f",
            trade.ticker, level, trade.mfe, trade.mfe_r, day_low,
        )
        return FullExit(
            fill, ExitReason.TRAILING_STOP,
            f"Trail ${level:.2f} hit (MFE ${trade.mfe:.2f})",
        )
