"""
Market Data Provider Protocols

Defines the two collaborator interfaces the simulator consumes:
- PriceHistoryProvider: ordered daily OHLCV bars for a ticker/date range
- EntrySignalProvider:  point-in-time entry signal for a ticker/as-of date

Implementations include in-memory DataFrame providers (tests, walk-forward)
and CSV loaders (command line). Point-in-time correctness of signals is
the provider's contract; the simulator only passes the as-of date through.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

import pandas as pd

from swing.backtesting.simulation.position_tracker import Regime


SWING_LONG = 'SWING_LONG'
BULLISH_DIVERGENCES = ('REGULAR_BULLISH', 'HIDDEN_BULLISH')
MTF_BUY_ALIGNMENTS = ('STRONG_BUY', 'BUY')


@dataclass(frozen=True)
class PriceBar:
    """One daily OHLCV bar."""
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass
class EntrySignal:
    """
    Standardized entry signal from the scoring collaborator.

    Optional context fields fall back to neutral values when absent
    (see signals.entry_filter).
    """
    # Identification
    ticker: str
    as_of: date

    # Scoring
    probability: float               # 0-100
    rr_ratio: float                  # Risk/reward ratio
    trade_type: str = SWING_LONG
    entry_price: float = 0.0         # Current price at as_of
    stop_loss: float = 0.0

    # Confirmation flags
    volume_confirms: bool = False
    mtf_alignment: Optional[str] = None   # e.g. 'STRONG_BUY', 'BUY', 'NEUTRAL'

    # Market context
    regime: Optional[Regime] = None
    vix_level: Optional[float] = None
    sector: Optional[str] = None
    sector_rs: Optional[float] = None
    rsi: Optional[float] = None
    divergence: Optional[str] = None      # e.g. 'REGULAR_BULLISH', 'NONE'

    @property
    def has_bullish_divergence(self) -> bool:
        return self.divergence in BULLISH_DIVERGENCES


class PriceHistoryProvider(Protocol):
    """
    Protocol for daily price history.

    Must tolerate unknown tickers (return an empty frame) rather than
    raising for the whole run.
    """

    def get_history(
        self,
        ticker: str,
        start: date,
        end: date,
    ) -> pd.DataFrame:
        """
        Get daily bars for a ticker.

        Args:
            ticker: Symbol (e.g., 'AAPL')
            start: First date (inclusive)
            end: Last date (inclusive)

        Returns:
            DataFrame indexed by date (ascending) with Open/High/Low/Close/Volume
            columns; empty if no data
        """
        ...


class EntrySignalProvider(Protocol):
    """Protocol for the entry-signal scoring collaborator."""

    def get_signal(
        self,
        ticker: str,
        as_of: date,
    ) -> Optional[EntrySignal]:
        """
        Score a ticker as of a date.

        Args:
            ticker: Symbol
            as_of: Evaluation date (no data after this date may be used)

        Returns:
            EntrySignal, or None if the ticker cannot be scored
        """
        ...
