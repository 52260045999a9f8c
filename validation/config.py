"""
Walk-Forward Optimization - Configuration Module

Defines the period layout, parameter grid and scoring metric for a
walk-forward run, plus the two standard layouts:
- create_standard_walk_forward: one Training / Validation / Test split
- create_rolling_walk_forward:  rolling N-year train, M-month test windows

Usage:
    from validation.config import create_standard_walk_forward

    config = create_standard_walk_forward(
        '2019-01-01', '2021-12-31',
        '2022-01-01', '2022-12-31',
        '2023-01-01', '2023-12-31',
    )
    config.parameter_ranges['entry_threshold'] = [65, 70]
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, List

from swing.backtesting.config import BacktestConfig

# Set per run by the optimizer; not tunable
RESERVED_FIELDS = ('name', 'universe', 'start_date', 'end_date')


class PeriodType(str, Enum):
    TRAIN = "TRAIN"
    VALIDATE = "VALIDATE"
    TEST = "TEST"


class OptimizationMetric(str, Enum):
    """Metric maximized by the TRAIN-period grid search."""
    SHARPE = "sharpe"
    SORTINO = "sortino"
    PROFIT_FACTOR = "profit_factor"
    EXPECTANCY = "expectancy"


@dataclass
class WalkForwardPeriod:
    """
    One time window of a walk-forward run.

    Attributes:
        name: Display name (e.g., 'Training', 'Test 2')
        period_type: TRAIN, VALIDATE or TEST
        start_date: First day (YYYY-MM-DD)
        end_date: Last day (YYYY-MM-DD), inclusive
    """
    name: str
    period_type: PeriodType
    start_date: str
    end_date: str

    def __post_init__(self):
        if not isinstance(self.period_type, PeriodType):
            self.period_type = PeriodType(str(self.period_type).upper())

    @property
    def is_train(self) -> bool:
        return self.period_type == PeriodType.TRAIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'period_type': self.period_type.value,
            'start_date': self.start_date,
            'end_date': self.end_date,
        }


@dataclass
class WalkForwardConfig:
    """
    Configuration for walk-forward optimization.

    Attributes:
        periods: Windows processed in the order given
        parameter_ranges: BacktestConfig field -> candidate values
        optimization_metric: Metric maximized on TRAIN periods
        base_overrides: BacktestConfig fields applied to every run
            (capital, risk, pacing, ...)
        name: Label for reports
    """
    periods: List[WalkForwardPeriod] = field(default_factory=list)
    parameter_ranges: Dict[str, List[Any]] = field(default_factory=dict)
    optimization_metric: OptimizationMetric = OptimizationMetric.SHARPE
    base_overrides: Dict[str, Any] = field(default_factory=dict)
    name: str = 'Walk-Forward'

    def __post_init__(self):
        if not isinstance(self.optimization_metric, OptimizationMetric):
            self.optimization_metric = OptimizationMetric(str(self.optimization_metric).lower())

    @property
    def train_periods(self) -> List[WalkForwardPeriod]:
        return [p for p in self.periods if p.is_train]

    @property
    def out_of_sample_periods(self) -> List[WalkForwardPeriod]:
        return [p for p in self.periods if not p.is_train]

    def validate(self) -> List[str]:
        """Validate configuration and return list of issues."""
        issues = []
        if not self.periods:
            issues.append('No periods configured')
        elif not self.periods[0].is_train:
            issues.append(f"First period '{self.periods[0].name}' must be TRAIN")

        for period in self.periods:
            try:
                start = datetime.strptime(period.start_date, '%Y-%m-%d')
                end = datetime.strptime(period.end_date, '%Y-%m-%d')
            except ValueError:
                issues.append(f"Period '{period.name}' has invalid dates")
                continue
            if start >= end:
                issues.append(f"Period '{period.name}' start must be before end")

        known = {f.name for f in dataclasses.fields(BacktestConfig)}
        for param, values in self.parameter_ranges.items():
            if param not in known or param in RESERVED_FIELDS:
                issues.append(f"Unknown parameter '{param}'")
            if not values:
                issues.append(f"Parameter '{param}' has no candidate values")
        for param in self.base_overrides:
            if param not in known or param in RESERVED_FIELDS:
                issues.append(f"Invalid base override '{param}'")
        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'periods': [p.to_dict() for p in self.periods],
            'parameter_ranges': {k: list(v) for k, v in self.parameter_ranges.items()},
            'optimization_metric': self.optimization_metric.value,
            'base_overrides': dict(self.base_overrides),
        }


def create_standard_walk_forward(
    train_start: str,
    train_end: str,
    validate_start: str,
    validate_end: str,
    test_start: str,
    test_end: str,
) -> WalkForwardConfig:
    """
    Standard three-period layout: Training, Validation, Test.

    Grid: entry_threshold [60, 65, 70, 75] x min_rr_ratio [1.5, 2.0, 2.5, 3.0]
    x max_holding_days [20, 30, 45], optimized for Sharpe.
    """
    return WalkForwardConfig(
        name='Standard Walk-Forward',
        periods=[
            WalkForwardPeriod('Training', PeriodType.TRAIN, train_start, train_end),
            WalkForwardPeriod('Validation', PeriodType.VALIDATE, validate_start, validate_end),
            WalkForwardPeriod('Test', PeriodType.TEST, test_start, test_end),
        ],
        parameter_ranges={
            'entry_threshold': [60, 65, 70, 75],
            'min_rr_ratio': [1.5, 2.0, 2.5, 3.0],
            'max_holding_days': [20, 30, 45],
        },
        optimization_metric=OptimizationMetric.SHARPE,
    )


def create_rolling_walk_forward(
    start_year: int,
    end_year: int,
    train_years: int = 3,
    test_months: int = 6,
) -> WalkForwardConfig:
    """
    Rolling layout: train on train_years calendar years, test on the
    first test_months of the following year, then roll forward one year.

    Windows are generated while start + train_years <= end_year. Test
    windows end on the 28th of their last month.

    Raises:
        ValueError: If test_months is not 1-12 or train_years < 1
    """
    if not 1 <= test_months <= 12:
        raise ValueError(f"test_months must be 1-12, got {test_months}")
    if train_years < 1:
        raise ValueError(f"train_years must be at least 1, got {train_years}")

    periods = []
    year = start_year
    window = 1
    while year + train_years <= end_year:
        test_year = year + train_years
        periods.append(WalkForwardPeriod(
            f'Train {window}', PeriodType.TRAIN,
            f'{year}-01-01', f'{test_year - 1}-12-31',
        ))
        periods.append(WalkForwardPeriod(
            f'Test {window}', PeriodType.TEST,
            f'{test_year}-01-01', f'{test_year}-{test_months:02d}-28',
        ))
        year += 1
        window += 1

    return WalkForwardConfig(
        name=f'Rolling Walk-Forward {start_year}-{end_year}',
        periods=periods,
        parameter_ranges={
            'entry_threshold': [60, 65, 70],
            'min_rr_ratio': [2.0, 2.5],
            'max_holding_days': [30, 45],
        },
        optimization_metric=OptimizationMetric.SHARPE,
    )
