"""
In-Memory Providers - Deterministic price and signal sources

DataFrame-backed price history and dict-backed entry signals. Used by
tests, by the walk-forward optimizer (one load, many runs) and by the
CSV loaders behind the command line.
"""

import dataclasses
import logging
from datetime import date
from typing import Dict, Iterable, Optional, Tuple

import pandas as pd

from swing.backtesting.data_providers.base import EntrySignal

logger = logging.getLogger(__name__)

OHLCV_COLUMNS = ['Open', 'High', 'Low', 'Close', 'Volume']


def normalize_ohlcv(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize an OHLCV frame: title-case columns, DatetimeIndex, ascending.

    A 'Date' column is used as the index when present.
    """
    out = df.copy()
    out.columns = [str(c).strip().title() for c in out.columns]
    if 'Date' in out.columns:
        out = out.set_index('Date')
    out.index = pd.to_datetime(out.index).normalize()
    if getattr(out.index, 'tz', None) is not None:
        out.index = out.index.tz_localize(None)
    if 'Volume' not in out.columns:
        out['Volume'] = 0.0
    missing = [c for c in OHLCV_COLUMNS if c not in out.columns]
    if missing:
        raise ValueError(f"Price data missing columns: {missing}")
    out = out[OHLCV_COLUMNS].astype(float)
    out = out[~out.index.duplicated(keep='last')]
    return out.sort_index()


class InMemoryPriceProvider:
    """
    Price history backed by one DataFrame per ticker.

    Usage:
        provider = InMemoryPriceProvider({'AAPL': df})
        bars = provider.get_history('AAPL', date(2023, 1, 3), date(2023, 3, 31))
    """

    def __init__(self, frames: Optional[Dict[str, pd.DataFrame]] = None):
        self._frames: Dict[str, pd.DataFrame] = {}
        for ticker, df in (frames or {}).items():
            self.add(ticker, df)

    @property
    def tickers(self):
        return sorted(self._frames)

    def add(self, ticker: str, df: pd.DataFrame) -> None:
        self._frames[ticker.upper()] = normalize_ohlcv(df)

    def get_history(self, ticker: str, start: date, end: date) -> pd.DataFrame:
        """Bars for ticker within [start, end]; empty frame for unknown tickers."""
        df = self._frames.get(ticker.upper())
        if df is None:
            logger.debug("No price history for %s", ticker)
            return pd.DataFrame(columns=OHLCV_COLUMNS)
        mask = (df.index >= pd.Timestamp(start)) & (df.index <= pd.Timestamp(end))
        return df.loc[mask]


class InMemorySignalProvider:
    """
    Entry signals keyed by (ticker, as_of date).

    Usage:
        provider = InMemorySignalProvider([signal_a, signal_b])
        signal = provider.get_signal('AAPL', date(2023, 1, 3))
    """

    def __init__(self, signals: Optional[Iterable[EntrySignal]] = None):
        self._signals: Dict[Tuple[str, date], EntrySignal] = {}
        for signal in signals or []:
            self.add(signal)

    def __len__(self) -> int:
        return len(self._signals)

    def add(self, signal: EntrySignal) -> None:
        signal = dataclasses.replace(signal, ticker=signal.ticker.upper())
        self._signals[(signal.ticker, signal.as_of)] = signal

    def get_signal(self, ticker: str, as_of: date) -> Optional[EntrySignal]:
        return self._signals.get((ticker.upper(), as_of))
