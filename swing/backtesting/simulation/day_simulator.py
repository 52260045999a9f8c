"""
Day Simulator - Core Event Loop

Walks the weekday calendar from start_date to end_date, and for each day,
strictly in this order:
1. Update open positions (price lookup, MFE/MAE, exit engine, fills)
2. Scan for new entries if position slots remain
3. Record the day's equity point (exactly one per trading day; the
   ledger's running peak starts at initial capital)

On the final trading day every open trade is force-closed with
TIME_EXIT before the last equity point is recorded.

All per-run state (price cache, cooldown map, daily close cache) is
owned by one Simulator instance; create a new instance per run.
"""

import logging
import time
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

import pandas as pd

from swing.backtesting.analytics.results_formatter import BacktestResult, ResultsFormatter
from swing.backtesting.config import BacktestConfig
from swing.backtesting.data_providers.base import EntrySignal, EntrySignalProvider, PriceHistoryProvider
from swing.backtesting.data_providers.data_access import MarketDataAccess
from swing.backtesting.exits.decisions import ExitDecision, FullExit, PartialExit
from swing.backtesting.exits.exit_evaluator import ExitEngine
from swing.backtesting.signals.entry_filter import EntryFilter
from swing.backtesting.simulation.capital_simulator import CapitalSimulator
from swing.backtesting.simulation.position_tracker import ExitReason, Regime, Trade

logger = logging.getLogger(__name__)

# Optional veto / calibration hook: return False to drop an admissible candidate
CandidateFilter = Callable[[EntrySignal], bool]


def trading_days(start: date, end: date) -> List[date]:
    """Weekdays between start and end, inclusive."""
    return [ts.date() for ts in pd.bdate_range(start, end)]


class Simulator:
    """
    Day-by-day portfolio simulation engine.

    Usage:
        sim = Simulator(config, price_provider, signal_provider)
        result = sim.run()
        print(result.summary())
    """

    def __init__(
        self,
        config: BacktestConfig,
        price_provider: PriceHistoryProvider,
        signal_provider: Optional[EntrySignalProvider] = None,
        candidate_filter: Optional[CandidateFilter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._config = config
        self._price_provider = price_provider
        self._signal_provider = signal_provider
        self._candidate_filter = candidate_filter
        self._sleep = sleep

        self._exit_engine = ExitEngine(config)
        self._entry_filter = EntryFilter(config)

        # State (reset by run)
        self._data: Optional[MarketDataAccess] = None
        self._capital: Optional[CapitalSimulator] = None
        self._trades: List[Trade] = []
        self._open: List[Trade] = []
        self._daily_closes: Dict[str, float] = {}
        self._ticker_exit_dates: Dict[str, date] = {}
        self._trade_counter = 0

    def _reset(self) -> None:
        self._data = MarketDataAccess.from_config(
            self._config, self._price_provider, self._signal_provider, sleep=self._sleep,
        )
        self._capital = CapitalSimulator(self._config)
        self._trades = []
        self._open = []
        self._daily_closes = {}
        self._ticker_exit_dates = {}
        self._trade_counter = 0

    def run(self) -> BacktestResult:
        """
        Run the simulation over the configured date range.

        Returns:
            BacktestResult with trades, equity curve, metrics and breakdowns
        """
        config = self._config
        started_at = datetime.now()
        self._reset()

        logger.info("Starting backtest: %s (%s to %s, %d tickers)",
                    config.name, config.start_date, config.end_date, len(config.universe))

        self._data.prefetch(config.universe)

        days = trading_days(config.start, config.end)
        final_day = days[-1] if days else config.end

        for day in days:
            self._daily_closes = {}
            self._update_open_positions(day)
            if day != final_day:
                self._scan_for_entries(day)
            else:
                self._close_all_positions(day, ExitReason.TIME_EXIT)
            self._record_equity(day)

        if not days:
            self._record_equity(final_day)

        result = ResultsFormatter.format(
            config,
            self._trades,
            self._capital.equity_history,
            capital_summary=self._capital.get_summary(),
            started_at=started_at,
        )

        logger.info("Backtest complete: %d trades, win rate %.1f%%, Sharpe %.2f (%d failed fetches)",
                    result.metrics.total_trades, result.metrics.win_rate,
                    result.metrics.sharpe_ratio, self._data.failed_fetches)
        return result

    # ── Step 1: Open Positions ──────────────────────────────────────

    def _update_open_positions(self, day: date) -> None:
        """Fetch today's bars for open trades and apply exit decisions."""
        if not self._open:
            return

        bars = self._data.get_bars([t.ticker for t in self._open], day)

        still_open = []
        for trade in self._open:
            bar = bars.get(trade.ticker)
            if bar is None:
                # No data today; retried tomorrow
                still_open.append(trade)
                continue

            self._daily_closes[trade.ticker] = bar.close
            trade.update_excursion(bar.high, bar.low)

            decision = self._exit_engine.decide(trade, bar.high, bar.low, bar.close, day)
            self._apply_decision(trade, decision, day)

            if trade.is_open:
                still_open.append(trade)

        self._open = still_open

    def _apply_decision(self, trade: Trade, decision: ExitDecision, day: date) -> None:
        if isinstance(decision, PartialExit):
            shares = min(decision.shares, trade.shares)
            if shares <= 0:
                return
            fill = self._sell_fill(decision.price)
            pnl = trade.apply_partial_exit(day, fill, shares, decision.reason)
            self._capital.credit(fill * shares, self._capital.commission_for(shares))
            logger.debug("%s %s %s: sold %d @ $%.2f, PnL=$%.2f",
                         day, trade.ticker, decision.reason.value, shares, fill, pnl)
        elif isinstance(decision, FullExit):
            self._close_trade(trade, day, decision.price, decision.reason)

    def _close_trade(self, trade: Trade, day: date, price: float, reason: ExitReason) -> None:
        fill = self._sell_fill(price)
        shares = trade.shares
        trade.close(day, fill, reason)
        self._capital.credit(fill * shares, self._capital.commission_for(shares))
        self._ticker_exit_dates[trade.ticker] = day
        logger.debug("%s %s closed (%s) @ $%.2f: R=%.2f, PnL=$%.2f",
                     day, trade.ticker, reason.value, fill, trade.realized_r, trade.realized_pnl)

    def _close_all_positions(self, day: date, reason: ExitReason) -> None:
        """Force-close remaining trades at the last known close (entry price as last resort)."""
        for trade in self._open:
            price = self._daily_closes.get(trade.ticker)
            if price is None:
                bar = self._data.get_bar(trade.ticker, day)
                price = bar.close if bar is not None else trade.entry_price
                self._daily_closes[trade.ticker] = price
            self._close_trade(trade, day, price, reason)
        self._open = []

    # ── Step 2: Entries ─────────────────────────────────────────────

    def _scan_for_entries(self, day: date) -> None:
        config = self._config
        slots = config.max_open_positions - len(self._open)
        if slots <= 0:
            return

        open_tickers = {t.ticker for t in self._open}
        to_scan = [
            ticker for ticker in config.universe
            if ticker not in open_tickers and not self._in_cooldown(ticker, day)
        ]
        if not to_scan:
            return

        candidates = []
        for ticker, signal in self._data.get_signals(to_scan, day):
            if signal is None:
                continue
            if not self._entry_filter.is_admissible(signal):
                continue
            if self._candidate_filter is not None and not self._candidate_filter(signal):
                logger.debug("%s %s vetoed by candidate filter", day, ticker)
                continue
            candidates.append(signal)

        # Only the top-N ranked candidates get a slot, even if some of them abort
        for signal in EntryFilter.rank(candidates)[:slots]:
            if self._sector_full(signal.sector):
                logger.debug("%s %s skipped: sector %s at capacity", day, signal.ticker, signal.sector)
                continue
            self._enter_trade(signal, day)
            self._data.pace()

    def _in_cooldown(self, ticker: str, day: date) -> bool:
        last_exit = self._ticker_exit_dates.get(ticker)
        if last_exit is None:
            return False
        return (day - last_exit).days < self._config.reentry_cooldown_days

    def _open_risk(self) -> float:
        return sum(t.shares * max(t.entry_price - t.stop_loss, 0.0) for t in self._open)

    def _risk_budget_shares(self, risk: float) -> int:
        """Shares that fit in the remaining portfolio risk budget (max_total_risk of equity)."""
        equity = self._capital.last_equity() or self._config.initial_capital
        available = equity * self._config.max_total_risk - self._open_risk()
        if available <= 0:
            return 0
        return int(available // risk)

    def _sector_full(self, sector: Optional[str]) -> bool:
        cap = self._config.max_per_sector
        if cap is None or not sector:
            return False
        return sum(1 for t in self._open if t.sector == sector) >= cap

    def _enter_trade(self, signal: EntrySignal, day: date) -> bool:
        """
        Size and open a position for an admissible signal.

        Returns:
            True if a trade was opened
        """
        config = self._config
        price = signal.entry_price
        stop = signal.stop_loss
        risk = price - stop
        if price <= 0 or risk <= 0:
            logger.debug("%s %s aborted: invalid risk (entry $%.2f, stop $%.2f)",
                         day, signal.ticker, price, stop)
            return False

        risk_dollars = self._capital.sizing_capital * config.risk_per_trade
        shares = int(risk_dollars // risk)
        max_shares = int(config.initial_capital * config.max_position_percent // price)
        shares = min(shares, max_shares)
        shares = min(shares, self._risk_budget_shares(risk))
        if shares <= 0:
            logger.debug("%s %s aborted: position size rounds to zero (size cap or risk budget)", day, signal.ticker)
            return False

        fill = price * (1 + config.slippage_percent / 100)
        self._trade_counter += 1
        trade = Trade(
            trade_id=f"T{self._trade_counter}",
            ticker=signal.ticker,
            signal_date=signal.as_of,
            entry_date=day,
            entry_price=fill,
            entry_probability=signal.probability,
            shares=shares,
            position_value=shares * fill,
            stop_loss=stop,
            tp1=price + risk * config.tp_ratios[0],
            tp2=price + risk * config.tp_ratios[1],
            tp3=price + risk * config.tp_ratios[2],
            regime=signal.regime or Regime.CHOPPY,
            sector=signal.sector,
        )

        self._capital.debit(shares * fill, self._capital.commission_for(shares))
        self._trades.append(trade)
        self._open.append(trade)

        bar = self._data.get_bar(signal.ticker, day)
        if bar is not None:
            self._daily_closes[signal.ticker] = bar.close

        logger.debug("%s opened %s: %d shares @ $%.2f (stop $%.2f, p=%.1f)",
                     day, trade.trade_id, shares, fill, stop, signal.probability)
        return True

    # ── Step 3: Equity ──────────────────────────────────────────────

    def _record_equity(self, day: date) -> None:
        realized_today = sum(
            t.realized_pnl or 0.0 for t in self._trades
            if not t.is_open and t.exit_date == day
        )
        self._capital.record_equity(day, self._open, self._daily_closes, realized_today)

    def _sell_fill(self, price: float) -> float:
        return price * (1 - self._config.slippage_percent / 100)
