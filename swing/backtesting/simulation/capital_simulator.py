"""
Capital Simulator - Cash and equity accounting for one run

Pure simulation of the portfolio's cash account:
- Entries debit shares * fill + commission
- Partial and final exits credit shares * fill - commission
- Daily equity = cash + open shares marked at the day's close
  (falling back to entry price when no close is available)
- Drawdown measured against the running equity peak

Owns the run's equity history (one EquityPoint per recorded day).
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from swing.backtesting.config import BacktestConfig
from swing.backtesting.simulation.position_tracker import EquityPoint, Trade

logger = logging.getLogger(__name__)


class CapitalSimulator:
    """
    Tracks cash, equity history and drawdown during a backtest.

    Usage:
        capital = CapitalSimulator(config)
        capital.record_equity(start, [], {})      # seed point
        capital.debit(shares * fill, commission)
        capital.credit(shares * fill, commission)
        capital.record_equity(day, open_trades, closes, realized_today)
    """

    def __init__(self, config: BacktestConfig):
        self._config = config
        self._initial_capital = config.initial_capital
        self._cash = config.initial_capital
        self._commissions = 0.0
        self._peak = config.initial_capital
        self._history: List[EquityPoint] = []

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def initial_capital(self) -> float:
        return self._initial_capital

    @property
    def equity_history(self) -> List[EquityPoint]:
        return list(self._history)

    @property
    def sizing_capital(self) -> float:
        """Capital used to size new positions."""
        if self._config.use_initial_capital_for_sizing:
            return self._initial_capital
        return self._cash

    def commission_for(self, shares: int) -> float:
        return shares * self._config.commission_per_share

    def debit(self, amount: float, commission: float = 0.0) -> None:
        """Pay for an entry fill."""
        self._cash -= amount + commission
        self._commissions += commission

    def credit(self, amount: float, commission: float = 0.0) -> None:
        """Receive exit proceeds net of commission."""
        self._cash += amount - commission
        self._commissions += commission

    def mark_to_market(self, open_trades: List[Trade], closes: Dict[str, float]) -> float:
        """Cash plus open positions valued at the given closes (entry price fallback)."""
        open_value = sum(
            closes.get(t.ticker, t.entry_price) * t.shares
            for t in open_trades
        )
        return self._cash + open_value

    def record_equity(
        self,
        day: date,
        open_trades: List[Trade],
        closes: Dict[str, float],
        realized_today: float = 0.0,
    ) -> EquityPoint:
        """
        Append the day's equity point.

        Args:
            day: Date of the snapshot
            open_trades: Trades still open after the day's processing
            closes: Today's close per ticker (from the daily price cache)
            realized_today: Realized P&L of trades closed today

        Returns:
            The appended EquityPoint
        """
        equity = self.mark_to_market(open_trades, closes)
        prev_equity = self._history[-1].equity if self._history else self._initial_capital
        daily_return = (equity - prev_equity) / prev_equity * 100 if prev_equity > 0 else 0.0

        self._peak = max(self._peak, equity)
        drawdown = self._peak - equity
        drawdown_pct = drawdown / self._peak * 100 if self._peak > 0 else 0.0

        point = EquityPoint(
            date=day,
            equity=equity,
            drawdown=drawdown,
            drawdown_percent=drawdown_pct,
            open_positions=len(open_trades),
            daily_pnl=realized_today,
            daily_return=daily_return,
        )
        self._history.append(point)
        return point

    def last_equity(self) -> Optional[float]:
        return self._history[-1].equity if self._history else None

    def get_summary(self) -> dict:
        """Return a snapshot of the capital state."""
        final_equity = self.last_equity()
        if final_equity is None:
            final_equity = self._cash
        return {
            'starting_capital': self._initial_capital,
            'final_equity': final_equity,
            'cash': self._cash,
            'peak_equity': self._peak,
            'total_commissions': self._commissions,
            'total_return_pct': (final_equity - self._initial_capital)
                                / self._initial_capital * 100
                                if self._initial_capital > 0 else 0.0,
        }
