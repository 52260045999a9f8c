"""
CLI Entry Point for the Swing Backtester

Runs a single backtest, or a walk-forward optimization using the
standard Training / Validation / Test layout, over CSV price files and a
CSV of entry signals.

Usage:
    python -m swing.backtesting.runners.cli --universe AAPL MSFT --start 2023-01-01 --end 2023-12-31 \
        --data-dir data/prices --signals data/signals.csv
    python -m swing.backtesting.runners.cli --walk-forward 2019-01-01 2021-12-31 \
        2022-01-01 2022-12-31 2023-01-01 2023-12-31 --signals data/signals.csv
    python -m swing.backtesting.runners.cli --config path/to/config.json --csv
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from config.settings import (
    get_data_dir,
    get_log_level,
    get_output_dir,
    get_rate_limit_settings,
    get_signals_path,
    load_config,
)
from swing.backtesting.config import BacktestConfig, GapHandling
from swing.backtesting.data_providers.csv_provider import load_price_directory, load_signals_csv
from swing.backtesting.engine import BacktestEngine
from validation.config import RESERVED_FIELDS, create_standard_walk_forward
from validation.walk_forward import WalkForwardOptimizer


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Swing Strategy Backtester',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Data selection
    parser.add_argument('--universe', '-u', nargs='+', default=None,
                        help='Tickers to trade (default: every CSV in --data-dir)')
    parser.add_argument('--start', default='2023-01-01',
                        help='Start date YYYY-MM-DD (default: 2023-01-01)')
    parser.add_argument('--end', default='2023-12-31',
                        help='End date YYYY-MM-DD (default: 2023-12-31)')
    parser.add_argument('--data-dir', default=None,
                        help='Directory of <TICKER>.csv price files (default: SWING_DATA_DIR)')
    parser.add_argument('--signals', default=None,
                        help='Entry signals CSV (default: SWING_SIGNALS_PATH)')

    # Risk settings
    parser.add_argument('--capital', type=float, default=100000.0,
                        help='Initial capital (default: 100000)')
    parser.add_argument('--risk', type=float, default=0.01,
                        help='Fraction of capital risked per trade (default: 0.01)')
    parser.add_argument('--max-positions', type=int, default=10,
                        help='Max concurrent positions (default: 10)')

    # Execution model
    parser.add_argument('--gap-handling', choices=[g.value for g in GapHandling],
                        default=GapHandling.MARKET.value,
                        help='Stop-loss gap fill model (default: MARKET)')

    # Walk-forward
    parser.add_argument('--walk-forward', nargs=6, metavar='DATE',
                        help='Run walk-forward optimization: TRAIN_START TRAIN_END '
                             'VALIDATE_START VALIDATE_END TEST_START TEST_END')

    # Output
    parser.add_argument('--output', '-o', default=None,
                        help='Output directory (default: SWING_OUTPUT_DIR)')
    parser.add_argument('--csv', action='store_true',
                        help='Export trades to CSV')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose logging')

    # Config file
    parser.add_argument('--config', type=str,
                        help='Path to JSON config file (overrides other args)')

    return parser.parse_args(argv)


def build_config(args) -> BacktestConfig:
    """
    Build BacktestConfig from CLI arguments.

    Values from a JSON config file override the command-line flags.

    Raises:
        ValueError: If the resulting configuration is invalid
    """
    data_dir = Path(args.data_dir) if args.data_dir else get_data_dir()
    values = dict(
        universe=args.universe or _discover_universe(data_dir),
        start_date=args.start,
        end_date=args.end,
        initial_capital=args.capital,
        risk_per_trade=args.risk,
        max_open_positions=args.max_positions,
        gap_handling=args.gap_handling,
    )
    values.update(get_rate_limit_settings())

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            raise ValueError(f"Config file not found: {config_path}")
        with open(config_path) as f:
            values.update(json.load(f))

    return BacktestConfig(**values)


def _discover_universe(data_dir: Path):
    if not data_dir.is_dir():
        return []
    return sorted(p.stem.upper() for p in data_dir.glob('*.csv'))


def run_walk_forward(args, config: BacktestConfig, prices, signals):
    """Run the standard three-period walk-forward with the CLI config as the base."""
    wf_config = create_standard_walk_forward(*args.walk_forward)
    wf_config.base_overrides = {
        k: v for k, v in config.to_dict().items()
        if k not in RESERVED_FIELDS and k not in wf_config.parameter_ranges
    }
    optimizer = WalkForwardOptimizer(prices, signals)
    return optimizer.run(wf_config, config.universe)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    load_config()

    # Setup logging
    level = logging.DEBUG if args.verbose else getattr(logging, get_log_level())
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S',
    )

    try:
        config = build_config(args)
    except ValueError as e:
        logging.error("Config error: %s", e)
        sys.exit(1)

    data_dir = args.data_dir or str(get_data_dir())
    signals_path = args.signals or get_signals_path()

    prices = load_price_directory(data_dir, config.universe)
    signals = load_signals_csv(str(signals_path)) if signals_path else None
    if signals is None:
        logging.warning("No signals file given: no trades will be opened")

    if args.walk_forward:
        results = run_walk_forward(args, config, prices, signals)
        print(results.summary())
        return results

    engine = BacktestEngine(config, prices, signals)
    results = engine.run()

    # Print summary
    print(results.summary())

    # Export CSV if requested
    trades_df = results.trades_df()
    if args.csv and not trades_df.empty:
        output_path = Path(args.output) if args.output else get_output_dir()
        output_path.mkdir(parents=True, exist_ok=True)
        csv_path = output_path / f"backtest_trades_{config.start_date}_{config.end_date}.csv"
        trades_df.to_csv(csv_path, index=False)
        print(f"\nTrades exported to: {csv_path}")

    return results


if __name__ == '__main__':
    main()
