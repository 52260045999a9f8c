"""
Fixtures for walk-forward optimizer tests.

Provides a scripted runner that stands in for the simulator and returns
BacktestResults with chosen metrics, plus a small synthetic market for
end-to-end runs through the real simulator.
"""

import pytest
import pandas as pd
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from swing.backtesting.analytics.metrics import PerformanceMetrics
from swing.backtesting.analytics.results_formatter import BacktestResult
from swing.backtesting.config import BacktestConfig
from swing.backtesting.data_providers.base import EntrySignal
from swing.backtesting.data_providers.memory_provider import (
    InMemoryPriceProvider,
    InMemorySignalProvider,
)
from swing.backtesting.simulation.position_tracker import ExitReason, Regime, Trade


def build_result(
    config: BacktestConfig,
    n_trades: int = 0,
    pnl_per_trade: float = 100.0,
    sharpe: float = 0.0,
    sortino: float = 0.0,
    max_dd_pct: float = 0.0,
) -> BacktestResult:
    """
    BacktestResult with n closed 100-share trades and the given headline metrics.
    """
    trades = []
    for i in range(n_trades):
        trade = Trade(
            trade_id=f"T{i + 1}",
            ticker='AAA',
            signal_date=config.start,
            entry_date=config.start,
            entry_price=100.0,
            entry_probability=80.0,
            shares=100,
            stop_loss=95.0,
            tp1=107.5,
            tp2=112.5,
            tp3=120.0,
            regime=Regime.BULL,
        )
        trade.close(config.start + timedelta(days=1), 100.0 + pnl_per_trade / 100, ExitReason.MANUAL)
        trades.append(trade)

    metrics = PerformanceMetrics(
        total_trades=n_trades,
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        max_drawdown=max_dd_pct * config.initial_capital / 100,
        max_drawdown_percent=max_dd_pct,
        max_drawdown_duration=int(max_dd_pct),
    )
    return BacktestResult(config=config, trades=trades, metrics=metrics)


class ScriptedRunner:
    """
    Runner stand-in for WalkForwardOptimizer.

    Args:
        train_score: config -> Sharpe for TRAIN runs
        oos: period name -> build_result kwargs for out-of-sample runs
        fail_when: config -> True to raise for that run
    """

    def __init__(
        self,
        train_score: Optional[Callable[[BacktestConfig], float]] = None,
        oos: Optional[Dict[str, dict]] = None,
        fail_when: Optional[Callable[[BacktestConfig], bool]] = None,
    ):
        self._train_score = train_score or (lambda config: 0.0)
        self._oos = oos or {}
        self._fail_when = fail_when
        self.calls: List[BacktestConfig] = []

    def __call__(self, config: BacktestConfig) -> BacktestResult:
        self.calls.append(config)
        if self._fail_when is not None and self._fail_when(config):
            raise RuntimeError(f"simulated failure for {config.name}")

        period_type, _, period_name = config.name.partition(': ')
        if period_type == 'TRAIN':
            return build_result(config, n_trades=1, sharpe=self._train_score(config))
        return build_result(config, **self._oos.get(period_name, {}))


@pytest.fixture
def scripted_runner():
    """The ScriptedRunner class."""
    return ScriptedRunner


@pytest.fixture
def make_result():
    """Factory for BacktestResults with chosen metrics (see build_result)."""
    return build_result


@pytest.fixture
def synthetic_market():
    """
    One ticker on a flat $100 series through January 2023 with a daily
    80% / 3R BULL signal and a $108 high every Tuesday.

    Returns:
        (price provider, signal provider)
    """
    index = pd.bdate_range('2023-01-02', '2023-01-31')
    highs = [108.0 if ts.dayofweek == 1 else 100.0 for ts in index]
    frame = pd.DataFrame({
        'Open': 100.0, 'High': highs, 'Low': 100.0, 'Close': 100.0, 'Volume': 1e6,
    }, index=index)

    signals = [
        EntrySignal(
            ticker='AAA',
            as_of=ts.date(),
            probability=80.0,
            rr_ratio=3.0,
            entry_price=100.0,
            stop_loss=95.0,
            regime=Regime.BULL,
            rsi=40.0,
            sector='Technology',
        )
        for ts in index
    ]
    return InMemoryPriceProvider({'AAA': frame}), InMemorySignalProvider(signals)


@pytest.fixture
def three_period_dates():
    """Training / Validation / Test windows inside January 2023."""
    return ('2023-01-02', '2023-01-13', '2023-01-16', '2023-01-20', '2023-01-23', '2023-01-31')

