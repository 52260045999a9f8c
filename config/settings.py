"""
Centralized Configuration Loading for the Swing Backtester.

- Single source of truth for environment-backed defaults
- Loads the project root .env file when present (optional; no
  credentials are required to run a backtest)
- Environment variables already set by the shell always win when no
  .env file exists

Usage:
    from config.settings import load_config, get_data_dir, get_log_level

    # At app startup (call once)
    load_config()

    data_dir = get_data_dir()
    level = get_log_level()
"""

import os
from pathlib import Path
from typing import Dict, Optional

# Flag to track if config has been loaded
_CONFIG_LOADED = False

PROJECT_ROOT = Path(__file__).parent.parent

VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def load_config(force_reload: bool = False) -> None:
    """
    Load environment variables from the project root .env file.

    Args:
        force_reload: If True, reload even if already loaded
    """
    global _CONFIG_LOADED

    if _CONFIG_LOADED and not force_reload:
        return

    # Import here to avoid circular imports
    from dotenv import load_dotenv

    env_path = PROJECT_ROOT / '.env'
    if env_path.exists():
        load_dotenv(env_path, override=force_reload)

    _CONFIG_LOADED = True


def get_data_dir() -> Path:
    """Directory holding <TICKER>.csv price files (SWING_DATA_DIR, default data/prices)."""
    load_config()
    return Path(os.getenv('SWING_DATA_DIR', str(PROJECT_ROOT / 'data' / 'prices')))


def get_signals_path() -> Optional[Path]:
    """Default signals CSV (SWING_SIGNALS_PATH), if configured."""
    load_config()
    value = os.getenv('SWING_SIGNALS_PATH')
    return Path(value) if value else None


def get_output_dir() -> Path:
    """Directory for exported trade tables (SWING_OUTPUT_DIR, default data/backtests)."""
    load_config()
    return Path(os.getenv('SWING_OUTPUT_DIR', str(PROJECT_ROOT / 'data' / 'backtests')))


def get_log_level() -> str:
    """
    Default log level name (SWING_LOG_LEVEL, default INFO).

    Raises:
        ValueError: If the configured level is not a standard logging level
    """
    load_config()
    level = os.getenv('SWING_LOG_LEVEL', 'INFO').strip().upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid SWING_LOG_LEVEL: {level}. Use one of {VALID_LOG_LEVELS}.")
    return level


def get_rate_limit_settings() -> Dict[str, float]:
    """
    Data-access pacing for rate-limited price/signal sources.

    Returns:
        Dict with batch_size, rate_limit_delay, batch_delay, max_retries,
        retry_base_delay (ready to pass as BacktestConfig overrides)

    Example:
        config = create_default_config(tickers, start, end, **get_rate_limit_settings())
    """
    load_config()
    return {
        'batch_size': int(os.getenv('SWING_BATCH_SIZE', '5')),
        'rate_limit_delay': float(os.getenv('SWING_RATE_LIMIT_DELAY', '0')),
        'batch_delay': float(os.getenv('SWING_BATCH_DELAY', '0')),
        'max_retries': int(os.getenv('SWING_MAX_RETRIES', '2')),
        'retry_base_delay': float(os.getenv('SWING_RETRY_BASE_DELAY', '0.5')),
    }


def is_config_loaded() -> bool:
    """Check if configuration has been loaded."""
    return _CONFIG_LOADED
