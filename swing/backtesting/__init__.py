"""
Swing Backtesting Pipeline - Daily portfolio simulation

Replays a long swing strategy day by day against historical OHLC bars:
scored entry signals, risk-based sizing, three take-profit tranches,
gap-aware stops, trailing stops and time exits, with cash and equity
accounting and a full performance report.

Module Structure:
    config          - BacktestConfig (validated, immutable per run)
    engine          - BacktestEngine orchestrator
    data_providers  - Provider protocols, in-memory/CSV providers, data access
    simulation      - Day simulator, trade model, capital simulator
    signals         - Entry admissibility and ranking
    exits           - Stop-loss, take-profit, trailing stop, exit engine
    analytics       - Metrics calculator, breakdowns, results formatting
    runners         - CLI entry point
"""

__version__ = '0.1.0'
