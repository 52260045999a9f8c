"""
Market Data Access - Rate-limited, retrying access to the collaborators

Thin layer between the simulator and its external data sources:
- Per-run price-history cache (one load per ticker per run)
- Exact-date bar lookup with fallback to the most recent prior bar
- Bounded batches fetched concurrently with a ThreadPoolExecutor
- Retry with exponential backoff on transient failures
- Inter-batch and per-entry pacing delays for rate-limited sources

Batch results are always returned in input order, so concurrency never
changes simulation outcomes. A ticker that still fails after retries is
reported as "no data" for that call only and is retried on the next call.

Usage:
    access = MarketDataAccess.from_config(config, price_provider, signal_provider)
    access.prefetch(config.universe)
    bars = access.get_bars(['AAPL', 'MSFT'], day)
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import pandas as pd

from swing.backtesting.data_providers.base import (
    EntrySignal,
    EntrySignalProvider,
    PriceBar,
    PriceHistoryProvider,
)
from swing.backtesting.data_providers.memory_provider import normalize_ohlcv

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Calendar days loaded before the run start so the first day can fall back to a prior bar
HISTORY_LOOKBACK_DAYS = 10


class MarketDataAccess:
    """
    Batched, retrying data access owned by a single simulator run.

    The price cache lives for the life of this instance; a new instance
    is created for every run so nothing is shared between runs.
    """

    def __init__(
        self,
        price_provider: PriceHistoryProvider,
        signal_provider: Optional[EntrySignalProvider],
        start: date,
        end: date,
        batch_size: int = 5,
        max_retries: int = 2,
        retry_base_delay: float = 0.5,
        batch_delay: float = 0.0,
        rate_limit_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._prices = price_provider
        self._signals = signal_provider
        self._start = start
        self._end = end
        self._batch_size = max(1, batch_size)
        self._max_retries = max(1, max_retries)
        self._retry_base_delay = retry_base_delay
        self._batch_delay = batch_delay
        self._rate_limit_delay = rate_limit_delay
        self._sleep = sleep

        self._history: Dict[str, pd.DataFrame] = {}
        self.failed_fetches = 0

    @classmethod
    def from_config(
        cls,
        config,
        price_provider: PriceHistoryProvider,
        signal_provider: Optional[EntrySignalProvider],
        sleep: Callable[[float], None] = time.sleep,
    ) -> 'MarketDataAccess':
        """Build a data-access layer using a BacktestConfig's pacing settings."""
        return cls(
            price_provider=price_provider,
            signal_provider=signal_provider,
            start=config.start,
            end=config.end,
            batch_size=config.batch_size,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay,
            batch_delay=config.batch_delay,
            rate_limit_delay=config.rate_limit_delay,
            sleep=sleep,
        )

    # ── Retry / Pacing ──────────────────────────────────────────────

    def retry_with_backoff(self, fn: Callable[..., T], *args) -> T:
        """
        Call fn(*args), retrying with exponential backoff.

        Raises:
            Exception: The last error if every attempt fails
        """
        for attempt in range(self._max_retries):
            try:
                return fn(*args)
            except Exception as e:
                if attempt == self._max_retries - 1:
                    raise
                wait_time = self._retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Fetch failed (attempt %d/%d), retrying in %.2fs: %s",
                    attempt + 1, self._max_retries, wait_time, e,
                )
                if wait_time > 0:
                    self._sleep(wait_time)
        raise RuntimeError("retry_with_backoff called with no attempts")

    def pace(self) -> None:
        """Delay between consecutive entries (no-op when unset)."""
        if self._rate_limit_delay > 0:
            self._sleep(self._rate_limit_delay)

    def _run_batched(
        self,
        keys: Sequence[str],
        fetch: Callable[[str], T],
        delay: float,
    ) -> List[Tuple[str, Optional[T]]]:
        """
        Fetch keys in bounded concurrent batches.

        Failures (after retries) yield None for that key. Output order
        matches input order.
        """
        results: List[Tuple[str, Optional[T]]] = []
        for i in range(0, len(keys), self._batch_size):
            batch = list(keys[i:i + self._batch_size])
            batch_results: Dict[str, Optional[T]] = {}

            with ThreadPoolExecutor(max_workers=len(batch)) as executor:
                futures = {
                    executor.submit(self.retry_with_backoff, fetch, key): key
                    for key in batch
                }
                for future in as_completed(futures):
                    key = futures[future]
                    try:
                        batch_results[key] = future.result()
                    except Exception as e:
                        self.failed_fetches += 1
                        logger.warning("Giving up on %s for now: %s", key, e)
                        batch_results[key] = None

            results.extend((key, batch_results[key]) for key in batch)

            if delay > 0 and i + self._batch_size < len(keys):
                self._sleep(delay)
        return results

    # ── Price History ───────────────────────────────────────────────

    def _load_history(self, ticker: str) -> pd.DataFrame:
        start = self._start - timedelta(days=HISTORY_LOOKBACK_DAYS)
        df = self._prices.get_history(ticker, start, self._end)
        if df is None or df.empty:
            df = pd.DataFrame()
        else:
            df = normalize_ohlcv(df)
        self._history[ticker] = df
        return df

    def prefetch(self, tickers: Sequence[str]) -> None:
        """Load price history for every ticker not yet cached."""
        missing = [t for t in dict.fromkeys(tickers) if t not in self._history]
        if not missing:
            return
        self._run_batched(missing, self._load_history, self._rate_limit_delay)
        logger.info("Prefetched price history: %d/%d tickers",
                    sum(1 for t in missing if t in self._history), len(missing))

    def get_history(self, ticker: str) -> Optional[pd.DataFrame]:
        """Cached history for a ticker, loading it on first use (None on failure)."""
        if ticker in self._history:
            return self._history[ticker]
        try:
            return self.retry_with_backoff(self._load_history, ticker)
        except Exception as e:
            self.failed_fetches += 1
            logger.warning("Price history unavailable for %s: %s", ticker, e)
            return None

    def get_bar(self, ticker: str, day: date) -> Optional[PriceBar]:
        """
        Bar for a ticker on a day, falling back to the most recent prior bar.

        Returns:
            PriceBar, or None if no bar exists on or before the day
        """
        df = self.get_history(ticker)
        if df is None or df.empty:
            return None

        ts = pd.Timestamp(day)
        if ts in df.index:
            row = df.loc[ts]
            bar_date = day
        else:
            prior = df.loc[df.index < ts]
            if prior.empty:
                return None
            row = prior.iloc[-1]
            bar_date = prior.index[-1].date()

        return PriceBar(
            date=bar_date,
            open=float(row['Open']),
            high=float(row['High']),
            low=float(row['Low']),
            close=float(row['Close']),
            volume=float(row.get('Volume', 0.0)),
        )

    def get_bars(self, tickers: Sequence[str], day: date) -> Dict[str, Optional[PriceBar]]:
        """Bars for several tickers, in batches with pacing between batches."""
        self.prefetch(tickers)
        pairs = self._run_batched(
            list(tickers),
            lambda ticker: self.get_bar(ticker, day),
            self._rate_limit_delay * 2,
        )
        return dict(pairs)

    # ── Entry Signals ───────────────────────────────────────────────

    def get_signals(self, tickers: Sequence[str], day: date) -> List[Tuple[str, Optional[EntrySignal]]]:
        """
        Request entry signals for candidate tickers.

        Returns:
            (ticker, signal or None) pairs in input order
        """
        if self._signals is None or not tickers:
            return [(t, None) for t in tickers]
        return self._run_batched(
            list(tickers),
            lambda ticker: self._signals.get_signal(ticker, day),
            self._batch_delay,
        )
