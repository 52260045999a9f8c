"""
Config package for the Swing Backtester.

Provides centralized configuration loading from the root .env file.
"""

from config.settings import (
    load_config,
    get_data_dir,
    get_signals_path,
    get_output_dir,
    get_log_level,
    get_rate_limit_settings,
    is_config_loaded,
)

__all__ = [
    'load_config',
    'get_data_dir',
    'get_signals_path',
    'get_output_dir',
    'get_log_level',
    'get_rate_limit_settings',
    'is_config_loaded',
]
