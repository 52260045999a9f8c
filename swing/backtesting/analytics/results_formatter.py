"""
Results Formatter - Breakdowns, Calibration, Summary and DataFrame Output

Produces the BacktestResult artifact for one simulator run:
- Overall PerformanceMetrics (trades + daily equity curve)
- Metrics sliced by regime, sector, exit month and exit year
- Probability calibration buckets (predicted probability vs realized wins)
- Human-readable summary and pandas tables for further analysis
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

import pandas as pd

from swing.backtesting.analytics.metrics import PerformanceMetrics, calculate_metrics, empty_metrics
from swing.backtesting.config import BacktestConfig
from swing.backtesting.simulation.position_tracker import EquityPoint, Regime, Trade, TradeStatus

logger = logging.getLogger(__name__)

# Realized R at or above which a trade counts as a win for calibration
CALIBRATION_WIN_R = 1.5
CALIBRATION_BUCKET_WIDTH = 10

UNKNOWN_SECTOR = 'Unknown'


@dataclass
class CalibrationBucket:
    """Predicted entry probability vs realized win rate for one decile."""
    bucket: str
    bucket_start: int
    predicted_avg: float
    actual_win_rate: float      # Percent
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bucket': self.bucket,
            'predicted_avg': self.predicted_avg,
            'actual_win_rate': self.actual_win_rate,
            'count': self.count,
        }


@dataclass
class BacktestResult:
    """
    Complete output of one simulator run.

    Produced by ResultsFormatter.format() after simulation.
    """
    config: BacktestConfig
    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    metrics: PerformanceMetrics = field(default_factory=empty_metrics)

    # Breakdowns
    performance_by_regime: Dict[str, PerformanceMetrics] = field(default_factory=dict)
    performance_by_sector: Dict[str, PerformanceMetrics] = field(default_factory=dict)
    performance_by_month: Dict[str, PerformanceMetrics] = field(default_factory=dict)
    performance_by_year: Dict[str, PerformanceMetrics] = field(default_factory=dict)
    calibration_by_bucket: List[CalibrationBucket] = field(default_factory=list)

    capital_summary: Optional[Dict[str, Any]] = None

    status: str = 'COMPLETED'
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def closed_trades(self) -> List[Trade]:
        return [t for t in self.trades if t.status == TradeStatus.CLOSED]

    def summary(self) -> str:
        """Human-readable summary string."""
        m = self.metrics
        lines = [
            "=" * 60,
            f"BACKTEST RESULTS: {self.config.name}",
            "=" * 60,
            f"Period:        {self.config.start_date} to {self.config.end_date}",
            f"Universe:      {len(self.config.universe)} tickers",
            f"Total Trades:  {m.total_trades}",
            f"Win Rate:      {m.win_rate:.1f}%",
            f"Total P&L:     ${m.total_pnl:,.2f} ({m.total_pnl_percent:.1f}%)",
            f"Avg Win:       ${m.avg_win:,.2f}",
            f"Avg Loss:      ${m.avg_loss:,.2f}",
            f"Avg R:         {m.avg_r:.2f}",
            f"Expectancy:    ${m.expectancy:,.2f}",
            f"Profit Factor: {_fmt_ratio(m.profit_factor)}",
            f"Max Drawdown:  ${m.max_drawdown:,.2f} ({m.max_drawdown_percent:.1f}%, "
            f"{m.max_drawdown_duration} days)",
            f"Sharpe Ratio:  {_fmt_ratio(m.sharpe_ratio)}",
            f"Sortino Ratio: {_fmt_ratio(m.sortino_ratio)}",
            f"Calmar Ratio:  {_fmt_ratio(m.calmar_ratio)}",
            f"Avg Holding:   {m.avg_holding_days:.1f} days",
        ]

        by_reason: Dict[str, int] = {}
        for t in self.closed_trades:
            reason = t.exit_reason.value if t.exit_reason else 'UNKNOWN'
            by_reason[reason] = by_reason.get(reason, 0) + 1
        if by_reason:
            lines.append("")
            lines.append("Exit Reason Distribution:")
            for reason, count in sorted(by_reason.items(), key=lambda x: -x[1]):
                pct = count / m.total_trades * 100 if m.total_trades > 0 else 0
                lines.append(f"  {reason:20s} {count:4d} ({pct:5.1f}%)")

        lines.append("")
        lines.append("By Regime:")
        for regime, stats in self.performance_by_regime.items():
            lines.append(
                f"  {regime:8s}: {stats.total_trades} trades, "
                f"{stats.win_rate:.1f}% WR, "
                f"${stats.total_pnl:,.2f} P&L"
            )

        if self.performance_by_sector:
            lines.append("")
            lines.append("By Sector:")
            for sector, stats in sorted(self.performance_by_sector.items()):
                lines.append(
                    f"  {sector:20s}: {stats.total_trades} trades, "
                    f"{stats.win_rate:.1f}% WR, "
                    f"${stats.total_pnl:,.2f} P&L"
                )

        if self.calibration_by_bucket:
            lines.append("")
            lines.append("Calibration (predicted vs actual):")
            for b in self.calibration_by_bucket:
                lines.append(
                    f"  {b.bucket:8s}: predicted {b.predicted_avg:5.1f}%, "
                    f"actual {b.actual_win_rate:5.1f}% ({b.count} trades)"
                )

        if self.capital_summary:
            cs = self.capital_summary
            lines.append("")
            lines.append("Capital Summary:")
            lines.append(f"  Starting:    ${cs.get('starting_capital', 0):,.2f}")
            lines.append(f"  Final:       ${cs.get('final_equity', 0):,.2f}")
            lines.append(f"  Return:      {cs.get('total_return_pct', 0):.1f}%")
            lines.append(f"  Commissions: ${cs.get('total_commissions', 0):,.2f}")

        lines.append("=" * 60)
        return "\n".join(lines)

    def trades_df(self) -> pd.DataFrame:
        """One row per trade (open trades included)."""
        rows = []
        for t in self.trades:
            rows.append({
                'trade_id': t.trade_id,
                'ticker': t.ticker,
                'signal_date': t.signal_date,
                'entry_date': t.entry_date,
                'entry_price': t.entry_price,
                'entry_probability': t.entry_probability,
                'initial_shares': t.initial_shares,
                'stop_loss': t.stop_loss,
                'tp1': t.tp1,
                'tp2': t.tp2,
                'tp3': t.tp3,
                'partial_exits': len(t.partial_exits),
                'exit_date': t.exit_date,
                'exit_price': t.exit_price,
                'exit_reason': t.exit_reason.value if t.exit_reason else None,
                'realized_r': t.realized_r,
                'realized_pnl': t.realized_pnl,
                'realized_pnl_percent': t.realized_pnl_percent,
                'holding_days': t.holding_days,
                'mfe_r': t.mfe_r,
                'mae_r': t.mae_r,
                'regime': t.regime.value if t.regime else None,
                'sector': t.sector,
                'status': t.status.value,
            })
        return pd.DataFrame(rows)

    def equity_df(self) -> pd.DataFrame:
        """Equity curve indexed by date."""
        if not self.equity_curve:
            return pd.DataFrame()
        df = pd.DataFrame([p.to_dict() for p in self.equity_curve])
        df['date'] = pd.to_datetime(df['date'])
        return df.set_index('date')

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'config': self.config.to_dict(),
            'status': self.status,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'metrics': self.metrics.to_dict(),
            'trades': [t.to_dict() for t in self.trades],
            'equity_curve': [p.to_dict() for p in self.equity_curve],
            'performance_by_regime': {k: v.to_dict() for k, v in self.performance_by_regime.items()},
            'performance_by_sector': {k: v.to_dict() for k, v in self.performance_by_sector.items()},
            'performance_by_month': {k: v.to_dict() for k, v in self.performance_by_month.items()},
            'performance_by_year': {k: v.to_dict() for k, v in self.performance_by_year.items()},
            'calibration_by_bucket': [b.to_dict() for b in self.calibration_by_bucket],
            'capital_summary': self.capital_summary,
        }


class ResultsFormatter:
    """Builds a BacktestResult from a finished run."""

    @staticmethod
    def format(
        config: BacktestConfig,
        trades: List[Trade],
        equity_curve: List[EquityPoint],
        capital_summary: Optional[Dict[str, Any]] = None,
        started_at: Optional[datetime] = None,
    ) -> BacktestResult:
        """
        Compute metrics, breakdowns and calibration for a finished run.

        Args:
            config: BacktestConfig used for the run
            trades: Every trade of the run (closed after force-close)
            equity_curve: Daily equity points
            capital_summary: Optional capital state summary
            started_at: When the run started

        Returns:
            BacktestResult with all statistics computed
        """
        initial = config.initial_capital
        closed = [t for t in trades if t.status == TradeStatus.CLOSED]

        return BacktestResult(
            config=config,
            trades=list(trades),
            equity_curve=list(equity_curve),
            metrics=calculate_metrics(closed, initial, equity_curve),
            performance_by_regime=ResultsFormatter.breakdown_by_regime(closed, initial),
            performance_by_sector=ResultsFormatter.breakdown_by_sector(closed, initial),
            performance_by_month=ResultsFormatter.breakdown_by_period(closed, initial, '%Y-%m'),
            performance_by_year=ResultsFormatter.breakdown_by_period(closed, initial, '%Y'),
            calibration_by_bucket=ResultsFormatter.calibration_buckets(closed),
            capital_summary=capital_summary,
            status='COMPLETED',
            started_at=started_at,
            completed_at=datetime.now(),
        )

    @staticmethod
    def breakdown_by_regime(trades: List[Trade], initial_capital: float) -> Dict[str, PerformanceMetrics]:
        """Metrics per regime; every regime is present even with no trades."""
        return {
            regime.value: calculate_metrics(
                [t for t in trades if t.regime == regime], initial_capital)
            for regime in Regime
        }

    @staticmethod
    def breakdown_by_sector(trades: List[Trade], initial_capital: float) -> Dict[str, PerformanceMetrics]:
        groups: Dict[str, List[Trade]] = {}
        for t in trades:
            groups.setdefault(t.sector or UNKNOWN_SECTOR, []).append(t)
        return {key: calculate_metrics(group, initial_capital)
                for key, group in sorted(groups.items())}

    @staticmethod
    def breakdown_by_period(
        trades: List[Trade],
        initial_capital: float,
        fmt: str,
    ) -> Dict[str, PerformanceMetrics]:
        """Metrics grouped by exit date formatted with fmt ('%Y-%m' or '%Y')."""
        groups: Dict[str, List[Trade]] = {}
        for t in trades:
            if t.exit_date:
                groups.setdefault(t.exit_date.strftime(fmt), []).append(t)
        return {key: calculate_metrics(group, initial_capital)
                for key, group in sorted(groups.items())}

    @staticmethod
    def calibration_buckets(trades: List[Trade]) -> List[CalibrationBucket]:
        """
        Bucket trades by entry probability decile.

        A trade counts as a win when its realized R is at least
        CALIBRATION_WIN_R.
        """
        groups: Dict[int, List[Trade]] = {}
        for t in trades:
            start = int(math.floor(t.entry_probability / CALIBRATION_BUCKET_WIDTH)) * CALIBRATION_BUCKET_WIDTH
            groups.setdefault(start, []).append(t)

        buckets = []
        for start in sorted(groups):
            group = groups[start]
            wins = sum(1 for t in group if (t.realized_r or 0.0) >= CALIBRATION_WIN_R)
            buckets.append(CalibrationBucket(
                bucket=f"{start}-{start + CALIBRATION_BUCKET_WIDTH}%",
                bucket_start=start,
                predicted_avg=sum(t.entry_probability for t in group) / len(group),
                actual_win_rate=wins / len(group) * 100,
                count=len(group),
            ))
        return buckets


def _fmt_ratio(value: float) -> str:
    if math.isinf(value):
        return 'inf'
    return f"{value:.2f}"
