"""
Walk-Forward Optimizer - Grid search on TRAIN, replay out-of-sample

Processes periods in the order given:
- TRAIN:           run the simulator once per combination of the parameter
                   grid and keep the best-scoring parameter set
- VALIDATE / TEST: run the simulator once with the most recently
                   selected parameters

Out-of-sample performance is aggregated over every non-TRAIN period.
Drawdown is the worst period drawdown, never an average, so a single bad
out-of-sample window cannot be diluted.

Usage:
    from validation.walk_forward import WalkForwardOptimizer
    from validation.config import create_standard_walk_forward

    optimizer = WalkForwardOptimizer(price_provider, signal_provider)
    result = optimizer.run(create_standard_walk_forward(...), ['AAPL', 'MSFT'])
    print(result.summary())
"""

import itertools
import logging
import math
from datetime import datetime
from typing import Dict, Any, List, Optional, Sequence, Callable, Tuple

from swing.backtesting.analytics.metrics import PerformanceMetrics, calculate_metrics, empty_metrics
from swing.backtesting.analytics.results_formatter import BacktestResult
from swing.backtesting.config import BacktestConfig, create_default_config
from swing.backtesting.data_providers.base import EntrySignalProvider, PriceHistoryProvider
from swing.backtesting.simulation.day_simulator import CandidateFilter, Simulator
from validation.config import OptimizationMetric, WalkForwardConfig, WalkForwardPeriod
from validation.results import PeriodResult, WalkForwardResult

logger = logging.getLogger(__name__)

BacktestRunner = Callable[[BacktestConfig], BacktestResult]


def generate_parameter_combinations(parameter_ranges: Dict[str, List[Any]]) -> List[Dict[str, Any]]:
    """
    Cartesian product of all parameter candidate values.

    Keys vary in insertion order, last key fastest. An empty map yields
    a single empty combination (run with defaults).
    """
    if not parameter_ranges:
        return [{}]
    keys = list(parameter_ranges)
    return [dict(zip(keys, values))
            for values in itertools.product(*(parameter_ranges[k] for k in keys))]


def get_metric_score(metrics: PerformanceMetrics, metric: OptimizationMetric) -> float:
    """Read the optimization metric from a metrics report."""
    metric = OptimizationMetric(metric)
    if metric == OptimizationMetric.SHARPE:
        return metrics.sharpe_ratio
    if metric == OptimizationMetric.SORTINO:
        return metrics.sortino_ratio
    if metric == OptimizationMetric.PROFIT_FACTOR:
        return metrics.profit_factor
    return metrics.expectancy


def aggregate_metrics(results: Sequence[BacktestResult]) -> PerformanceMetrics:
    """
    Aggregate out-of-sample period results.

    - Trade counts, P&L, win rate, averages: pooled over all trades
    - Sharpe / Sortino: weighted by each period's trade count
    - Max drawdown (value, percent, duration): maximum over periods
    - Calmar: not meaningful across disjoint windows, left at 0

    Returns:
        PerformanceMetrics (zeroed when no period has trades)
    """
    if not results:
        return empty_metrics()

    all_trades = [t for r in results for t in r.closed_trades]
    if not all_trades:
        return empty_metrics()

    initial_capital = results[0].config.initial_capital
    pooled = calculate_metrics(all_trades, initial_capital)

    weighted = [r for r in results if r.metrics.total_trades > 0]
    total_weight = sum(r.metrics.total_trades for r in weighted)
    pooled.sharpe_ratio = _weighted_average([r.metrics.sharpe_ratio for r in weighted],
                                            [r.metrics.total_trades for r in weighted], total_weight)
    pooled.sortino_ratio = _weighted_average([r.metrics.sortino_ratio for r in weighted],
                                             [r.metrics.total_trades for r in weighted], total_weight)

    pooled.max_drawdown = max(r.metrics.max_drawdown for r in results)
    pooled.max_drawdown_percent = max(r.metrics.max_drawdown_percent for r in results)
    pooled.max_drawdown_duration = max(r.metrics.max_drawdown_duration for r in results)
    pooled.calmar_ratio = 0.0
    return pooled


def _weighted_average(values: List[float], weights: List[int], total_weight: int) -> float:
    if total_weight <= 0:
        return 0.0
    return sum(v * w for v, w in zip(values, weights)) / total_weight


class WalkForwardOptimizer:
    """
    Walk-forward parameter optimization over the day simulator.

    Every combination is an independent simulator run with its own
    caches; combinations run sequentially.

    Example:
        optimizer = WalkForwardOptimizer(prices, signals)
        result = optimizer.run(create_rolling_walk_forward(2015, 2023), universe)
        print(result.best_params, result.out_of_sample_metrics.max_drawdown_percent)
    """

    def __init__(
        self,
        price_provider: Optional[PriceHistoryProvider] = None,
        signal_provider: Optional[EntrySignalProvider] = None,
        candidate_filter: Optional[CandidateFilter] = None,
        runner: Optional[BacktestRunner] = None,
    ):
        """
        Initialize the optimizer.

        Args:
            price_provider: Price history collaborator for the simulator
            signal_provider: Entry signal collaborator for the simulator
            candidate_filter: Optional veto hook passed to every run
            runner: Replaces the simulator entirely (config -> BacktestResult)

        Raises:
            ValueError: If neither a price provider nor a runner is given
        """
        if runner is None and price_provider is None:
            raise ValueError("WalkForwardOptimizer needs a price_provider or a runner")
        self._price_provider = price_provider
        self._signal_provider = signal_provider
        self._candidate_filter = candidate_filter
        self._runner = runner or self._run_simulator

    def _run_simulator(self, config: BacktestConfig) -> BacktestResult:
        sim = Simulator(config, self._price_provider, self._signal_provider,
                        candidate_filter=self._candidate_filter)
        return sim.run()

    def run(self, config: WalkForwardConfig, universe: List[str]) -> WalkForwardResult:
        """
        Run walk-forward optimization.

        Args:
            config: Period layout, parameter grid and metric
            universe: Tickers traded in every run

        Returns:
            WalkForwardResult with per-period results and OOS aggregate

        Raises:
            ValueError: If the config is invalid or the universe is empty
            RuntimeError: If every combination of a TRAIN period fails
        """
        issues = config.validate()
        if not universe:
            issues.append('Universe is empty')
        if issues:
            raise ValueError("Invalid walk-forward configuration: " + "; ".join(issues))

        started_at = datetime.now()
        combinations = generate_parameter_combinations(config.parameter_ranges)
        logger.info(
            f"Starting walk-forward '{config.name}': {len(config.periods)} periods, "
            f"{len(combinations)} combinations, metric={config.optimization_metric.value}"
        )

        period_results: List[PeriodResult] = []
        best_params: Dict[str, Any] = {}

        for period in config.periods:
            if period.is_train:
                period_result = self._optimize_period(config, period, universe, combinations)
                best_params = period_result.params
                logger.info(
                    f"{period.name}: best {best_params} "
                    f"({config.optimization_metric.value}={period_result.score:.3f})"
                )
            else:
                run_config = self._build_config(config, period, universe, best_params)
                period_result = PeriodResult(
                    period=period,
                    params=dict(best_params),
                    result=self._runner(run_config),
                )
                logger.info(
                    f"{period.name}: {period_result.metrics.total_trades} trades, "
                    f"Sharpe={period_result.metrics.sharpe_ratio:.2f}, "
                    f"DD={period_result.metrics.max_drawdown_percent:.1f}%"
                )
            period_results.append(period_result)

        oos = aggregate_metrics([r.result for r in period_results if not r.period.is_train])

        logger.info(
            f"Walk-forward complete: OOS {oos.total_trades} trades, "
            f"Sharpe={oos.sharpe_ratio:.2f}, worst DD={oos.max_drawdown_percent:.1f}%"
        )

        return WalkForwardResult(
            config=config,
            universe=list(universe),
            period_results=period_results,
            best_params=dict(best_params),
            out_of_sample_metrics=oos,
            started_at=started_at,
            completed_at=datetime.now(),
        )

    def _optimize_period(
        self,
        config: WalkForwardConfig,
        period: WalkForwardPeriod,
        universe: List[str],
        combinations: List[Dict[str, Any]],
    ) -> PeriodResult:
        """
        Grid search one TRAIN period.

        A combination replaces the current best only with a strictly
        greater score, so ties keep the earliest combination.
        """
        best: Optional[Tuple[Dict[str, Any], BacktestResult, float]] = None
        best_score = -math.inf
        failed = 0

        for params in combinations:
            try:
                run_config = self._build_config(config, period, universe, params)
                result = self._runner(run_config)
            except Exception as e:
                failed += 1
                logger.warning(f"{period.name}: combination {params} failed: {e}")
                continue

            score = get_metric_score(result.metrics, config.optimization_metric)
            logger.debug(f"{period.name}: {params} -> {score:.3f}")
            if score > best_score:
                best_score = score
                best = (params, result, score)

        if best is None:
            raise RuntimeError(
                f"No valid parameter combinations found for period '{period.name}' "
                f"({failed} of {len(combinations)} failed)"
            )

        params, result, score = best
        return PeriodResult(
            period=period,
            params=dict(params),
            result=result,
            score=score,
            combinations_tested=len(combinations) - failed,
            combinations_failed=failed,
        )

    @staticmethod
    def _build_config(
        config: WalkForwardConfig,
        period: WalkForwardPeriod,
        universe: List[str],
        params: Dict[str, Any],
    ) -> BacktestConfig:
        overrides = dict(config.base_overrides)
        overrides.update(params)
        return create_default_config(
            universe,
            period.start_date,
            period.end_date,
            name=f"{period.period_type.value}: {period.name}",
            **overrides,
        )
