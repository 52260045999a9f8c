"""
Walk-Forward Optimization - Results Module

Result dataclasses for a walk-forward run:
- PeriodResult: one period's simulator output and the parameters used
- WalkForwardResult: every period plus the selected parameters and the
  out-of-sample aggregate

Usage:
    result = optimizer.run(config, universe)
    print(result.summary())
    oos = result.out_of_sample_metrics
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Any, Optional

from swing.backtesting.analytics.metrics import PerformanceMetrics, empty_metrics
from swing.backtesting.analytics.results_formatter import BacktestResult
from validation.config import WalkForwardConfig, WalkForwardPeriod


@dataclass
class PeriodResult:
    """
    Results for a single walk-forward period.

    Attributes:
        period: The period definition
        params: Parameters used (best of the grid for TRAIN periods)
        result: Simulator output for the run with those parameters
        score: Optimization metric value (TRAIN periods only)
        combinations_tested: Grid combinations that completed (TRAIN only)
        combinations_failed: Grid combinations that raised (TRAIN only)
    """
    period: WalkForwardPeriod
    params: Dict[str, Any]
    result: BacktestResult
    score: Optional[float] = None
    combinations_tested: int = 0
    combinations_failed: int = 0

    @property
    def metrics(self) -> PerformanceMetrics:
        return self.result.metrics

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'period': self.period.to_dict(),
            'params': dict(self.params),
            'score': self.score,
            'combinations_tested': self.combinations_tested,
            'combinations_failed': self.combinations_failed,
            'metrics': self.metrics.to_dict(),
            'trade_count': len(self.result.trades),
        }


@dataclass
class WalkForwardResult:
    """
    Results from a walk-forward optimization run.

    out_of_sample_metrics aggregates every non-TRAIN period: pooled
    counts and P&L, trade-weighted Sharpe/Sortino, worst drawdown.
    """
    config: WalkForwardConfig
    universe: List[str]
    period_results: List[PeriodResult] = field(default_factory=list)
    best_params: Dict[str, Any] = field(default_factory=dict)
    out_of_sample_metrics: PerformanceMetrics = field(default_factory=empty_metrics)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def train_results(self) -> List[PeriodResult]:
        return [r for r in self.period_results if r.period.is_train]

    @property
    def out_of_sample_results(self) -> List[PeriodResult]:
        return [r for r in self.period_results if not r.period.is_train]

    @property
    def selected_params(self) -> List[Dict[str, Any]]:
        """Best parameters chosen by each TRAIN period, in order."""
        return [r.params for r in self.train_results]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'config': self.config.to_dict(),
            'universe': list(self.universe),
            'best_params': dict(self.best_params),
            'out_of_sample_metrics': self.out_of_sample_metrics.to_dict(),
            'periods': [r.to_dict() for r in self.period_results],
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }

    def summary(self) -> str:
        """Human-readable summary."""
        oos = self.out_of_sample_metrics
        lines = [
            "=" * 60,
            f"WALK-FORWARD OPTIMIZATION: {self.config.name}",
            "=" * 60,
            f"Universe:              {len(self.universe)} tickers",
            f"Metric:                {self.config.optimization_metric.value}",
            f"Best Parameters:       {self.best_params}",
            "",
            "Periods:",
        ]
        for r in self.period_results:
            m = r.metrics
            line = (
                f"  {r.period.period_type.value:8s} {r.period.name:12s} "
                f"{r.period.start_date} to {r.period.end_date}: "
                f"{m.total_trades} trades, Sharpe {_fmt(m.sharpe_ratio)}, "
                f"DD {m.max_drawdown_percent:.1f}%"
            )
            if r.period.is_train:
                line += f" [{r.combinations_tested} tested, {r.combinations_failed} failed]"
            lines.append(line)

        lines.extend([
            "",
            "Out-of-Sample Aggregate:",
            f"  Trades:              {oos.total_trades}",
            f"  Win Rate:            {oos.win_rate:.1f}%",
            f"  Total P&L:           ${oos.total_pnl:,.2f}",
            f"  Sharpe (weighted):   {_fmt(oos.sharpe_ratio)}",
            f"  Sortino (weighted):  {_fmt(oos.sortino_ratio)}",
            f"  Worst Drawdown:      {oos.max_drawdown_percent:.1f}%",
            "=" * 60,
        ])
        return "\n".join(lines)


def _fmt(value: float) -> str:
    return 'inf' if math.isinf(value) else f"{value:.2f}"
