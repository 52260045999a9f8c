"""
Entry Filter - Admissibility gates and candidate ranking

Decides whether an entry signal may be traded on a given day:
- Probability and R:R thresholds (raised for CHOPPY/CRASH regimes)
- Long-swing trade type only
- Volume / multi-timeframe confirmation when required
- VIX ceiling and sector relative-strength floor
- Regime momentum gates:
    BULL:   reject RSI > 50 unless a bullish divergence is present
    CHOPPY: require RSI <= 35 AND a bullish divergence

Missing context falls back to neutral values: regime BULL, RSI 50,
VIX 20, sector RS 1.0.
"""

import logging
from typing import List, Optional

from swing.backtesting.config import BacktestConfig
from swing.backtesting.data_providers.base import EntrySignal, MTF_BUY_ALIGNMENTS, SWING_LONG
from swing.backtesting.simulation.position_tracker import Regime

logger = logging.getLogger(__name__)

DEFAULT_RSI = 50.0
DEFAULT_VIX = 20.0
DEFAULT_SECTOR_RS = 1.0

BULL_MAX_RSI = 50.0
CHOPPY_MAX_RSI = 35.0


class EntryFilter:
    """
    Evaluates entry signals against the run's entry criteria.

    Usage:
        entry_filter = EntryFilter(config)
        if entry_filter.is_admissible(signal):
            ...
        ranked = entry_filter.rank(candidates)
    """

    def __init__(self, config: BacktestConfig):
        self._config = config

    def rejection_reason(self, signal: EntrySignal) -> Optional[str]:
        """
        Return why a signal is rejected, or None if it is admissible.

        Args:
            signal: Entry signal for one ticker/day

        Returns:
            Human-readable reason, or None
        """
        config = self._config

        threshold = config.effective_entry_threshold(signal.regime)
        if signal.probability < threshold:
            return f"probability {signal.probability:.1f} < {threshold:.1f}"

        min_rr = config.effective_min_rr(signal.regime)
        if signal.rr_ratio < min_rr:
            return f"R:R {signal.rr_ratio:.2f} < {min_rr:.2f}"

        if signal.trade_type != SWING_LONG:
            return f"trade type {signal.trade_type}"

        if config.require_volume_confirm and not signal.volume_confirms:
            return "no volume confirmation"

        if config.require_mtf_align and signal.mtf_alignment not in MTF_BUY_ALIGNMENTS:
            return f"MTF alignment {signal.mtf_alignment}"

        vix = signal.vix_level if signal.vix_level is not None else DEFAULT_VIX
        if vix > config.max_vix_level:
            return f"VIX {vix:.1f} > {config.max_vix_level:.1f}"

        sector_rs = signal.sector_rs if signal.sector_rs is not None else DEFAULT_SECTOR_RS
        if sector_rs < config.min_sector_rs:
            return f"sector RS {sector_rs:.2f} < {config.min_sector_rs:.2f}"

        rsi = signal.rsi if signal.rsi is not None else DEFAULT_RSI
        regime = signal.regime or Regime.BULL
        if regime == Regime.BULL:
            if rsi > BULL_MAX_RSI and not signal.has_bullish_divergence:
                return f"BULL: RSI {rsi:.1f} without bullish divergence"
        elif regime == Regime.CHOPPY:
            if rsi > CHOPPY_MAX_RSI or not signal.has_bullish_divergence:
                return f"CHOPPY: RSI {rsi:.1f} / divergence {signal.divergence}"

        return None

    def is_admissible(self, signal: EntrySignal) -> bool:
        reason = self.rejection_reason(signal)
        if reason:
            logger.debug("%s %s rejected: %s", signal.ticker, signal.as_of, reason)
            return False
        return True

    @staticmethod
    def rank(candidates: List[EntrySignal]) -> List[EntrySignal]:
        """Sort candidates by probability, best first (stable for ties)."""
        return sorted(candidates, key=lambda s: -s.probability)
