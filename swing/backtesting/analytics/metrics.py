"""
Performance Metrics - Trade and equity-curve statistics

Pure functions that turn closed trades (plus an optional daily equity
history) into a PerformanceMetrics report. Metrics are always recomputed
from scratch: for a full run, for regime/sector/month/year slices and for
walk-forward aggregation.

Key definitions:
- Winner: realized P&L > 0 (break-even counts as a loser)
- Profit factor: gross profit / gross loss (inf if no losses but a
  profit, 0 if neither)
- Sharpe / Sortino: daily % returns annualized by sqrt(252); returns come
  from the equity curve when supplied, else from P&L grouped by exit date
- Calmar: CAGR % / max drawdown %

Usage:
    from swing.backtesting.analytics.metrics import calculate_metrics

    metrics = calculate_metrics(trades, 100000.0, equity_history)
    print(metrics.sharpe_ratio, metrics.max_drawdown_percent)
"""

import math
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Dict, List, Any, Optional, Sequence, Tuple

import numpy as np

from swing.backtesting.simulation.position_tracker import EquityPoint, Trade, TradeStatus

TRADING_DAYS_PER_YEAR = 252
DAYS_PER_YEAR = 365

R_BUCKETS: List[Tuple[str, float, float]] = [
    ('< -2R', -math.inf, -2.0),
    ('-2R to -1R', -2.0, -1.0),
    ('-1R to 0R', -1.0, 0.0),
    ('0R to 1R', 0.0, 1.0),
    ('1R to 2R', 1.0, 2.0),
    ('2R to 3R', 2.0, 3.0),
    ('3R to 4R', 3.0, 4.0),
    ('> 4R', 4.0, math.inf),
]


@dataclass
class RBucket:
    """Share of trades whose realized R falls in [min, max)."""
    bucket: str
    count: int
    percent: float


@dataclass
class PerformanceMetrics:
    """
    Performance report for a set of trades.

    Percent fields are expressed in percent (55.0 = 55%).
    """
    total_trades: int = 0
    winners: int = 0
    losers: int = 0
    win_rate: float = 0.0

    total_pnl: float = 0.0
    total_pnl_percent: float = 0.0
    avg_pnl_per_trade: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0          # Absolute value

    avg_r: float = 0.0
    avg_win_r: float = 0.0
    avg_loss_r: float = 0.0        # Absolute value

    expectancy: float = 0.0
    profit_factor: float = 0.0

    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    max_drawdown_duration: int = 0  # Calendar days

    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0

    avg_holding_days: float = 0.0
    r_distribution: List[RBucket] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


def empty_metrics() -> PerformanceMetrics:
    """Zeroed report for an empty trade set."""
    return PerformanceMetrics()


def calculate_metrics(
    trades: Sequence[Trade],
    initial_capital: float,
    equity_history: Optional[Sequence[EquityPoint]] = None,
) -> PerformanceMetrics:
    """
    Calculate performance metrics from trades.

    Args:
        trades: Trades (only CLOSED trades are counted)
        initial_capital: Starting capital for percent figures
        equity_history: Optional daily equity points (any order)

    Returns:
        PerformanceMetrics (all zeros when there are no closed trades)
    """
    closed = [t for t in trades if t.status == TradeStatus.CLOSED]
    if not closed:
        return empty_metrics()

    n = len(closed)
    pnls = np.array([t.realized_pnl or 0.0 for t in closed], dtype=float)
    rs = np.array([t.realized_r or 0.0 for t in closed], dtype=float)
    win_mask = pnls > 0
    loss_mask = ~win_mask
    n_win = int(win_mask.sum())
    n_loss = n - n_win

    if equity_history:
        total_pnl = _sorted_points(equity_history)[-1].equity - initial_capital
    else:
        total_pnl = float(pnls.sum())
    total_pnl_percent = total_pnl / initial_capital * 100 if initial_capital > 0 else 0.0

    avg_win = float(pnls[win_mask].mean()) if n_win else 0.0
    avg_loss = abs(float(pnls[loss_mask].mean())) if n_loss else 0.0
    avg_win_r = float(rs[win_mask].mean()) if n_win else 0.0
    avg_loss_r = abs(float(rs[loss_mask].mean())) if n_loss else 0.0

    expectancy = (n_win / n) * avg_win - (n_loss / n) * avg_loss

    gross_profit = float(pnls[win_mask].sum())
    gross_loss = abs(float(pnls[loss_mask].sum()))
    if gross_loss > 0:
        profit_factor = gross_profit / gross_loss
    else:
        profit_factor = math.inf if gross_profit > 0 else 0.0

    max_dd, max_dd_pct, max_dd_days = calculate_drawdown(closed, initial_capital, equity_history)

    returns = calculate_daily_returns(closed, initial_capital, equity_history)
    annualized = calculate_annualized_return(total_pnl_percent, closed, equity_history)

    return PerformanceMetrics(
        total_trades=n,
        winners=n_win,
        losers=n_loss,
        win_rate=n_win / n * 100,
        total_pnl=total_pnl,
        total_pnl_percent=total_pnl_percent,
        avg_pnl_per_trade=total_pnl / n,
        avg_win=avg_win,
        avg_loss=avg_loss,
        avg_r=float(rs.mean()),
        avg_win_r=avg_win_r,
        avg_loss_r=avg_loss_r,
        expectancy=expectancy,
        profit_factor=profit_factor,
        max_drawdown=max_dd,
        max_drawdown_percent=max_dd_pct,
        max_drawdown_duration=max_dd_days,
        sharpe_ratio=calculate_sharpe_ratio(returns),
        sortino_ratio=calculate_sortino_ratio(returns),
        calmar_ratio=annualized / max_dd_pct if max_dd_pct > 0 else 0.0,
        avg_holding_days=float(np.mean([t.holding_days or 0 for t in closed])),
        r_distribution=calculate_r_distribution(closed),
    )


def calculate_drawdown(
    trades: Sequence[Trade],
    initial_capital: float,
    equity_history: Optional[Sequence[EquityPoint]] = None,
) -> Tuple[float, float, int]:
    """
    Max drawdown (value, percent, duration in days) from a peak-tracking scan.

    Scans the date-sorted equity history when it has more than one point,
    otherwise a running equity built from trade P&L by exit date. The peak
    starts at initial capital. Duration runs from the first point under
    the peak to the point that sets a new peak (or the last point if the
    drawdown never recovers).
    """
    if equity_history and len(equity_history) > 1:
        series = [(p.date, p.equity) for p in _sorted_points(equity_history)]
    else:
        series = []
        equity = initial_capital
        for t in sorted((t for t in trades if t.exit_date), key=lambda t: t.exit_date):
            equity += t.realized_pnl or 0.0
            series.append((t.exit_date, equity))

    if not series:
        return 0.0, 0.0, 0

    peak = initial_capital
    max_dd = 0.0
    max_dd_pct = 0.0
    max_duration = 0
    dd_start: Optional[date] = None

    for point_date, equity in series:
        if equity > peak:
            peak = equity
            if dd_start is not None:
                max_duration = max(max_duration, (point_date - dd_start).days)
                dd_start = None
        else:
            if dd_start is None:
                dd_start = point_date
            drawdown = peak - equity
            if drawdown > max_dd:
                max_dd = drawdown
                max_dd_pct = drawdown / peak * 100 if peak > 0 else 0.0

    if dd_start is not None:
        max_duration = max(max_duration, (series[-1][0] - dd_start).days)

    return max_dd, max_dd_pct, max_duration


def calculate_daily_returns(
    trades: Sequence[Trade],
    initial_capital: float,
    equity_history: Optional[Sequence[EquityPoint]] = None,
) -> List[float]:
    """
    Daily % returns from the equity curve, or from P&L grouped by exit date.
    """
    if equity_history and len(equity_history) > 1:
        points = _sorted_points(equity_history)
        returns = []
        for prev, curr in zip(points, points[1:]):
            if prev.equity == 0:
                continue
            returns.append((curr.equity - prev.equity) / prev.equity * 100)
        return returns

    pnl_by_date: Dict[date, float] = {}
    for t in trades:
        if t.exit_date:
            pnl_by_date[t.exit_date] = pnl_by_date.get(t.exit_date, 0.0) + (t.realized_pnl or 0.0)

    returns = []
    equity = initial_capital
    for day in sorted(pnl_by_date):
        day_pnl = pnl_by_date[day]
        returns.append(day_pnl / equity * 100 if equity != 0 else 0.0)
        equity += day_pnl
    return returns


def calculate_sharpe_ratio(
    returns: Sequence[float],
    periods_per_year: int = TRADING_DAYS_PER_YEAR,
) -> float:
    """
    Annualized Sharpe ratio (risk-free rate 0, population std).

    Returns 0 for fewer than two returns or zero volatility.
    """
    if len(returns) < 2:
        return 0.0
    arr = np.asarray(returns, dtype=float)
    std = arr.std()
    if std == 0 or np.isnan(std):
        return 0.0
    return float(arr.mean() / std * np.sqrt(periods_per_year))


def calculate_sortino_ratio(
    returns: Sequence[float],
    periods_per_year: int = TRADING_DAYS_PER_YEAR,
) -> float:
    """
    Annualized Sortino ratio.

    Downside deviation = sqrt(mean(negative returns ** 2)); inf when no
    return is negative.
    """
    if len(returns) < 2:
        return 0.0
    arr = np.asarray(returns, dtype=float)
    negative = arr[arr < 0]
    if negative.size == 0:
        return math.inf
    downside = np.sqrt(np.mean(negative ** 2))
    if downside == 0:
        return 0.0
    return float(arr.mean() / downside * np.sqrt(periods_per_year))


def calculate_annualized_return(
    total_return_pct: float,
    trades: Sequence[Trade],
    equity_history: Optional[Sequence[EquityPoint]] = None,
) -> float:
    """
    CAGR in percent over the equity date span (trade dates as fallback).

    Returns the total return unchanged when the span is empty.
    """
    if equity_history and len(equity_history) > 1:
        points = _sorted_points(equity_history)
        dates = [points[0].date, points[-1].date]
    else:
        dates = []
        for t in trades:
            if t.entry_date and t.exit_date:
                dates.extend([t.entry_date, t.exit_date])

    if len(dates) < 2:
        return total_return_pct

    years = (max(dates) - min(dates)).days / DAYS_PER_YEAR
    if years <= 0:
        return total_return_pct

    growth = 1 + total_return_pct / 100
    if growth <= 0:
        return -100.0
    return (growth ** (1 / years) - 1) * 100


def calculate_r_distribution(trades: Sequence[Trade]) -> List[RBucket]:
    """Histogram of realized R into fixed bands (min inclusive, max exclusive)."""
    total = len(trades)
    distribution = []
    for label, low, high in R_BUCKETS:
        count = sum(1 for t in trades if low <= (t.realized_r or 0.0) < high)
        distribution.append(RBucket(
            bucket=label,
            count=count,
            percent=count / total * 100 if total else 0.0,
        ))
    return distribution


def calculate_equity_curve(
    trades: Sequence[Trade],
    initial_capital: float,
) -> List[EquityPoint]:
    """
    Realized-only equity curve built from trade entry/exit dates.

    Useful when no daily mark-to-market history is available.
    """
    if not trades:
        return []

    dates = sorted({d for t in trades for d in (t.entry_date, t.exit_date) if d})
    curve = []
    equity = initial_capital
    peak = initial_capital

    for day in dates:
        closed_today = [t for t in trades
                        if t.exit_date == day and t.status == TradeStatus.CLOSED]
        open_on_day = [t for t in trades
                       if t.entry_date <= day and (t.exit_date is None or t.exit_date > day)]
        day_pnl = sum(t.realized_pnl or 0.0 for t in closed_today)
        prev = equity
        equity += day_pnl
        peak = max(peak, equity)
        drawdown = peak - equity
        curve.append(EquityPoint(
            date=day,
            equity=equity,
            drawdown=drawdown,
            drawdown_percent=drawdown / peak * 100 if peak > 0 else 0.0,
            open_positions=len(open_on_day),
            daily_pnl=day_pnl,
            daily_return=day_pnl / prev * 100 if prev > 0 else 0.0,
        ))
    return curve


def calculate_monthly_returns(
    trades: Sequence[Trade],
    initial_capital: float,
) -> List[Dict[str, Any]]:
    """
    Realized return per exit month (YYYY-MM) on a running capital base.

    Returns:
        List of {'month', 'return', 'trades'} dicts sorted by month
    """
    by_month: Dict[str, List[Trade]] = {}
    for t in trades:
        if t.status == TradeStatus.CLOSED and t.exit_date:
            by_month.setdefault(t.exit_date.strftime('%Y-%m'), []).append(t)

    results = []
    capital = initial_capital
    for month in sorted(by_month):
        month_trades = by_month[month]
        month_pnl = sum(t.realized_pnl or 0.0 for t in month_trades)
        results.append({
            'month': month,
            'return': month_pnl / capital * 100 if capital != 0 else 0.0,
            'trades': len(month_trades),
        })
        capital += month_pnl
    return results


def calculate_streaks(trades: Sequence[Trade]) -> Dict[str, Any]:
    """
    Longest win/loss streaks and the current streak, by exit date.

    Returns:
        Dict with max_win_streak, max_loss_streak, current_streak,
        current_streak_type ('WIN', 'LOSS' or 'NONE')
    """
    closed = sorted(
        (t for t in trades if t.status == TradeStatus.CLOSED and t.exit_date),
        key=lambda t: t.exit_date,
    )
    max_win = max_loss = current = 0
    last_win: Optional[bool] = None

    for t in closed:
        is_win = (t.realized_pnl or 0.0) > 0
        if is_win == last_win:
            current += 1
        else:
            current = 1
            last_win = is_win
        if is_win:
            max_win = max(max_win, current)
        else:
            max_loss = max(max_loss, current)

    return {
        'max_win_streak': max_win,
        'max_loss_streak': max_loss,
        'current_streak': current,
        'current_streak_type': 'NONE' if last_win is None else ('WIN' if last_win else 'LOSS'),
    }


def _sorted_points(points: Sequence[EquityPoint]) -> List[EquityPoint]:
    return sorted(points, key=lambda p: p.date)
