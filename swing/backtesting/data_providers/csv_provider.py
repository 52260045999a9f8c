"""
CSV Loaders - File-backed price history and entry signals

Price history: one file per ticker, <data_dir>/<TICKER>.csv, with
Date/Open/High/Low/Close[/Volume] columns.

Signals: a single CSV with one row per (ticker, date):
    ticker,date,probability,rr_ratio,entry_price,stop_loss[,trade_type,
    volume_confirms,mtf_alignment,regime,vix_level,sector,sector_rs,rsi,divergence]

Usage:
    prices = load_price_directory('data/prices')
    signals = load_signals_csv('data/signals.csv')
"""

import logging
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd

from swing.backtesting.data_providers.base import EntrySignal, SWING_LONG
from swing.backtesting.data_providers.memory_provider import (
    InMemoryPriceProvider,
    InMemorySignalProvider,
)
from swing.backtesting.simulation.position_tracker import Regime

logger = logging.getLogger(__name__)

REQUIRED_SIGNAL_COLUMNS = ['ticker', 'date', 'probability', 'rr_ratio', 'entry_price', 'stop_loss']


def load_price_directory(
    data_dir: str,
    tickers: Optional[List[str]] = None,
) -> InMemoryPriceProvider:
    """
    Load <TICKER>.csv files from a directory.

    Args:
        data_dir: Directory holding one CSV per ticker
        tickers: Optional subset to load (others are ignored)

    Returns:
        InMemoryPriceProvider with every readable file loaded

    Raises:
        FileNotFoundError: If data_dir does not exist
    """
    path = Path(data_dir)
    if not path.is_dir():
        raise FileNotFoundError(f"Price data directory not found: {path}")

    wanted = {t.upper() for t in tickers} if tickers else None
    provider = InMemoryPriceProvider()
    for csv_path in sorted(path.glob('*.csv')):
        ticker = csv_path.stem.upper()
        if wanted is not None and ticker not in wanted:
            continue
        try:
            provider.add(ticker, pd.read_csv(csv_path))
        except (ValueError, pd.errors.ParserError) as e:
            logger.warning("Skipping unreadable price file %s: %s", csv_path, e)

    logger.info("Loaded price history for %d tickers from %s", len(provider.tickers), path)
    return provider


def load_signals_csv(signals_path: str) -> InMemorySignalProvider:
    """
    Load entry signals from a CSV file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If required columns are missing
    """
    path = Path(signals_path)
    if not path.exists():
        raise FileNotFoundError(f"Signals file not found: {path}")

    df = pd.read_csv(path)
    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in REQUIRED_SIGNAL_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Signals file {path} missing columns: {missing}")

    provider = InMemorySignalProvider()
    for row in df.to_dict('records'):
        provider.add(EntrySignal(
            ticker=str(row['ticker']),
            as_of=pd.Timestamp(row['date']).date(),
            probability=float(row['probability']),
            rr_ratio=float(row['rr_ratio']),
            trade_type=_optional(row.get('trade_type')) or SWING_LONG,
            entry_price=float(row['entry_price']),
            stop_loss=float(row['stop_loss']),
            volume_confirms=_as_bool(row.get('volume_confirms')),
            mtf_alignment=_optional(row.get('mtf_alignment')),
            regime=_as_regime(row.get('regime')),
            vix_level=_as_float(row.get('vix_level')),
            sector=_optional(row.get('sector')),
            sector_rs=_as_float(row.get('sector_rs')),
            rsi=_as_float(row.get('rsi')),
            divergence=_optional(row.get('divergence')),
        ))

    logger.info("Loaded %d signals from %s", len(provider), path)
    return provider


def _optional(value: Any) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def _as_float(value: Any) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def _as_bool(value: Any) -> bool:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return False
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'y')
    return bool(value)


def _as_regime(value: Any) -> Optional[Regime]:
    text = _optional(value)
    if text is None:
        return None
    return Regime(text.upper())
