"""
Fixtures for swing backtesting tests.

Provides deterministic synthetic price frames, entry signals, trades and
configs, plus a price provider that fails on demand.
"""

import pytest
import pandas as pd
from datetime import date
from typing import Dict, Optional, Set, Tuple

from swing.backtesting.config import create_default_config
from swing.backtesting.data_providers.base import EntrySignal
from swing.backtesting.data_providers.memory_provider import InMemoryPriceProvider
from swing.backtesting.simulation.position_tracker import Regime, Trade

START = date(2023, 1, 2)  # Monday


def build_frame(
    start: str = '2023-01-02',
    periods: int = 10,
    price: float = 100.0,
    bars: Optional[Dict[str, Tuple[float, float, float]]] = None,
) -> pd.DataFrame:
    """
    Flat weekday OHLCV frame with per-date (high, low, close) overrides.

    Open equals the previous close for overridden bars.
    """
    index = pd.bdate_range(start, periods=periods)
    rows = []
    for ts in index:
        key = ts.strftime('%Y-%m-%d')
        if bars and key in bars:
            high, low, close = bars[key]
            rows.append({'Open': price, 'High': high, 'Low': low, 'Close': close, 'Volume': 1e6})
        else:
            rows.append({'Open': price, 'High': price, 'Low': price, 'Close': price, 'Volume': 1e6})
    return pd.DataFrame(rows, index=index)


class FlakyPriceProvider:
    """
    Price provider that raises for selected tickers.

    Args:
        inner: Provider used once a call is allowed through
        fail_first: ticker -> number of initial calls that raise
        always_fail: tickers that always raise
    """

    def __init__(
        self,
        inner: InMemoryPriceProvider,
        fail_first: Optional[Dict[str, int]] = None,
        always_fail: Optional[Set[str]] = None,
    ):
        self._inner = inner
        self._fail_first = dict(fail_first or {})
        self._always_fail = set(always_fail or ())
        self.calls: Dict[str, int] = {}

    def get_history(self, ticker, start, end):
        self.calls[ticker] = self.calls.get(ticker, 0) + 1
        if ticker in self._always_fail:
            raise ConnectionError(f"{ticker}: source unavailable")
        if self.calls[ticker] <= self._fail_first.get(ticker, 0):
            raise TimeoutError(f"{ticker}: transient timeout")
        return self._inner.get_history(ticker, start, end)


@pytest.fixture
def price_frame():
    """Factory for synthetic weekday price frames."""
    return build_frame


@pytest.fixture
def flaky_provider():
    """The FlakyPriceProvider class (wrap an InMemoryPriceProvider)."""
    return FlakyPriceProvider


@pytest.fixture
def make_config():
    """
    Factory for configs with frictionless, deterministic defaults.

    100 shares for a $100 entry with a $95 stop (risk 0.5% of $100k).
    """
    def _make(**overrides):
        values = dict(
            universe=['AAA'],
            start_date='2023-01-02',
            end_date='2023-01-13',
            risk_per_trade=0.005,
            slippage_percent=0.0,
            commission_per_share=0.0,
            use_trailing_stop=False,
            retry_base_delay=0.0,
        )
        values.update(overrides)
        universe = values.pop('universe')
        start = values.pop('start_date')
        end = values.pop('end_date')
        return create_default_config(universe, start, end, **values)
    return _make


@pytest.fixture
def make_signal():
    """Factory for admissible BULL-regime entry signals."""
    def _make(ticker='AAA', as_of=START, **overrides):
        values = dict(
            probability=80.0,
            rr_ratio=3.0,
            entry_price=100.0,
            stop_loss=95.0,
            regime=Regime.BULL,
            rsi=40.0,
            sector='Technology',
        )
        values.update(overrides)
        return EntrySignal(ticker=ticker, as_of=as_of, **values)
    return _make


@pytest.fixture
def make_trade():
    """
    Factory for an open trade: entry $100, stop $95 (R=5), targets
    $107.50 / $112.50 / $120.00 (1.5R / 2.5R / 4R), 100 shares.
    """
    def _make(**overrides):
        values = dict(
            trade_id='T1',
            ticker='AAA',
            signal_date=START,
            entry_date=START,
            entry_price=100.0,
            entry_probability=80.0,
            shares=100,
            stop_loss=95.0,
            tp1=107.5,
            tp2=112.5,
            tp3=120.0,
            regime=Regime.BULL,
            sector='Technology',
        )
        values.update(overrides)
        return Trade(**values)
    return _make


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays = []

    def _sleep(seconds):
        delays.append(seconds)
    _sleep.delays = delays
    return _sleep
