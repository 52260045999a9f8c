"""
Backtest Engine - Top-level Orchestrator

Coordinates one backtest run:
1. Wire the price and signal providers (in-memory or CSV-backed)
2. Run the day simulator over the configured universe and date range
3. Return the BacktestResult for reporting

Usage:
    from swing.backtesting.engine import BacktestEngine
    from swing.backtesting.config import create_default_config

    config = create_default_config(['AAPL', 'MSFT'], '2023-01-01', '2023-12-31')
    engine = BacktestEngine.from_csv(config, 'data/prices', 'data/signals.csv')
    result = engine.run()
    print(result.summary())
"""

import logging
from typing import Optional

from swing.backtesting.analytics.results_formatter import BacktestResult
from swing.backtesting.config import BacktestConfig
from swing.backtesting.data_providers.base import EntrySignalProvider, PriceHistoryProvider
from swing.backtesting.data_providers.csv_provider import load_price_directory, load_signals_csv
from swing.backtesting.simulation.day_simulator import CandidateFilter, Simulator

logger = logging.getLogger(__name__)


class BacktestEngine:
    """
    Top-level backtest orchestrator.

    Holds the collaborators; every run() builds a fresh Simulator so no
    cache or cooldown state leaks between runs.
    """

    def __init__(
        self,
        config: BacktestConfig,
        price_provider: PriceHistoryProvider,
        signal_provider: Optional[EntrySignalProvider] = None,
        candidate_filter: Optional[CandidateFilter] = None,
    ):
        self._config = config
        self._price_provider = price_provider
        self._signal_provider = signal_provider
        self._candidate_filter = candidate_filter

    @classmethod
    def from_csv(
        cls,
        config: BacktestConfig,
        data_dir: str,
        signals_path: Optional[str] = None,
    ) -> 'BacktestEngine':
        """Build an engine from a directory of price CSVs and an optional signals CSV."""
        prices = load_price_directory(data_dir, config.universe)
        signals = load_signals_csv(signals_path) if signals_path else None
        if signals is None:
            logger.warning("No signals file given: the run will not open any trades")
        return cls(config, prices, signals)

    @property
    def config(self) -> BacktestConfig:
        return self._config

    def run(self, config: Optional[BacktestConfig] = None) -> BacktestResult:
        """
        Execute one backtest.

        Args:
            config: Optional config overriding the engine's own (walk-forward
                runs pass per-period variants)

        Returns:
            BacktestResult with all trades and statistics
        """
        run_config = config or self._config
        sim = Simulator(
            run_config,
            self._price_provider,
            self._signal_provider,
            candidate_filter=self._candidate_filter,
        )
        return sim.run()
