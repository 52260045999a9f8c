"""
Walk-Forward Optimization Module

Searches swing strategy parameters on TRAIN windows and replays the
selected parameters on later, disjoint VALIDATE / TEST windows to
estimate out-of-sample performance.

Components:
- config:       periods, parameter grid, optimization metric, standard layouts
- results:      per-period and aggregate result dataclasses
- walk_forward: the optimizer, grid generation, scoring and OOS aggregation

Usage:
    from validation import WalkForwardOptimizer, create_standard_walk_forward

    config = create_standard_walk_forward(
        '2019-01-01', '2021-12-31',
        '2022-01-01', '2022-12-31',
        '2023-01-01', '2023-12-31',
    )
    optimizer = WalkForwardOptimizer(price_provider, signal_provider)
    result = optimizer.run(config, ['AAPL', 'MSFT', 'NVDA'])
    print(result.summary())
"""

# Configuration dataclasses
from validation.config import (
    PeriodType,
    OptimizationMetric,
    WalkForwardPeriod,
    WalkForwardConfig,
    create_standard_walk_forward,
    create_rolling_walk_forward,
)

# Result dataclasses
from validation.results import (
    PeriodResult,
    WalkForwardResult,
)

# Optimizer
from validation.walk_forward import (
    WalkForwardOptimizer,
    generate_parameter_combinations,
    get_metric_score,
    aggregate_metrics,
)

__all__ = [
    # Config
    'PeriodType',
    'OptimizationMetric',
    'WalkForwardPeriod',
    'WalkForwardConfig',
    'create_standard_walk_forward',
    'create_rolling_walk_forward',
    # Results
    'PeriodResult',
    'WalkForwardResult',
    # Optimizer
    'WalkForwardOptimizer',
    'generate_parameter_combinations',
    'get_metric_score',
    'aggregate_metrics',
]
