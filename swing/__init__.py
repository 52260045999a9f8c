"""
Swing Backtester - Historical simulation of a long swing-trading strategy.

Packages:
    backtesting - configuration, exit engine, day simulator, metrics, CLI
"""

__version__ = '0.1.0'
