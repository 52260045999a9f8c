"""
Backtest Configuration - Swing Strategy Run Settings

Provides a single BacktestConfig dataclass that captures every parameter
of one simulated run: universe and date range, capital and risk, entry
gates, exit rules, execution model and data-access pacing.

The config is validated once at construction (invalid settings raise
ValueError) and is never mutated during a run. Walk-forward optimization
derives variants through with_params().

Usage:
    from swing.backtesting.config import BacktestConfig, create_default_config

    config = create_default_config(['AAPL', 'MSFT'], '2023-01-01', '2023-12-31')
    tighter = config.with_params(entry_threshold=75, min_rr_ratio=2.0)
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from swing.backtesting.simulation.position_tracker import Regime


class GapHandling(str, Enum):
    """How a stop-loss fill is modelled when the day's low gaps through the stop."""
    MARKET = "MARKET"
    SKIP = "SKIP"
    LIMIT = "LIMIT"


# Regime-adjusted entry floors: (min probability, min R:R)
REGIME_ENTRY_FLOORS: Dict[Regime, Tuple[float, float]] = {
    Regime.CHOPPY: (70.0, 2.5),
    Regime.CRASH: (80.0, 3.0),
}

TRANCHE_SUM_TOLERANCE = 1e-6


@dataclass
class BacktestConfig:
    """
    Master configuration for one simulator run.

    All defaults match the production swing strategy settings.
    Raises ValueError from __post_init__ when validate() reports issues.
    """

    name: str = 'Backtest'

    # ── Universe & Date Range ───────────────────────────────────────
    universe: List[str] = field(default_factory=list)
    start_date: str = '2023-01-01'
    end_date: str = '2023-12-31'

    # ── Capital & Risk ──────────────────────────────────────────────
    initial_capital: float = 100000.0
    risk_per_trade: float = 0.01
    max_total_risk: float = 0.06
    max_open_positions: int = 10
    max_per_sector: Optional[int] = None
    max_position_percent: float = 0.15
    # Size from initial capital so position sizes do not compound
    use_initial_capital_for_sizing: bool = True
    reentry_cooldown_days: int = 5

    # ── Entry Criteria ──────────────────────────────────────────────
    entry_threshold: float = 70.0
    min_rr_ratio: float = 1.5
    max_vix_level: float = 22.0
    min_sector_rs: float = 0.95
    require_volume_confirm: bool = False
    require_mtf_align: bool = False
    adjust_for_regime: bool = True

    # ── Exit Rules ──────────────────────────────────────────────────
    tp_ratios: Tuple[float, float, float] = (1.5, 2.5, 4.0)
    tp_sizes: Tuple[float, float, float] = (0.33, 0.33, 0.34)
    max_holding_days: Optional[int] = 45

    # ── Trailing Stop ───────────────────────────────────────────────
    use_trailing_stop: bool = True
    trailing_stop_activation: float = 1.0   # MFE in R before trailing starts
    trailing_stop_distance: float = 0.15    # Fraction below MFE price

    # ── Execution Model ─────────────────────────────────────────────
    slippage_percent: float = 0.1
    commission_per_share: float = 0.005
    gap_handling: GapHandling = GapHandling.MARKET
    max_slippage_r: float = 2.0
    skip_gap_threshold_pct: float = 3.0
    # Values < 1 simulate a tighter stop for analysis
    stop_loss_multiplier: Optional[float] = None

    # ── Data Access ─────────────────────────────────────────────────
    batch_size: int = 5
    rate_limit_delay: float = 0.0   # Seconds between position batches / entries
    batch_delay: float = 0.0        # Seconds between signal batches
    max_retries: int = 2
    retry_base_delay: float = 0.5

    def __post_init__(self):
        """Normalize field types and reject invalid settings."""
        if isinstance(self.gap_handling, str) and not isinstance(self.gap_handling, GapHandling):
            try:
                self.gap_handling = GapHandling(self.gap_handling.upper())
            except ValueError:
                pass  # reported by validate()
        self.universe = [t.upper() for t in self.universe]
        self.tp_ratios = tuple(self.tp_ratios)
        self.tp_sizes = tuple(self.tp_sizes)

        issues = self.validate()
        if issues:
            raise ValueError("Invalid backtest configuration: " + "; ".join(issues))

    # ── Derived Values ──────────────────────────────────────────────

    @property
    def start(self) -> date:
        return _parse_date(self.start_date)

    @property
    def end(self) -> date:
        return _parse_date(self.end_date)

    def effective_entry_threshold(self, regime: Optional[Regime]) -> float:
        """Minimum probability for an entry, raised for choppy/crash regimes."""
        floor = REGIME_ENTRY_FLOORS.get(regime) if self.adjust_for_regime else None
        if floor is None:
            return self.entry_threshold
        return max(self.entry_threshold, floor[0])

    def effective_min_rr(self, regime: Optional[Regime]) -> float:
        """Minimum R:R for an entry, raised for choppy/crash regimes."""
        floor = REGIME_ENTRY_FLOORS.get(regime) if self.adjust_for_regime else None
        if floor is None:
            return self.min_rr_ratio
        return max(self.min_rr_ratio, floor[1])

    def with_params(self, **params: Any) -> 'BacktestConfig':
        """
        Return a copy of this config with the given fields replaced.

        Args:
            **params: Field overrides (e.g., entry_threshold=75)

        Returns:
            New BacktestConfig (validated)

        Raises:
            ValueError: If a parameter is not a config field or the result is invalid
        """
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ValueError(f"Unknown config parameters: {unknown}")
        return dataclasses.replace(self, **params)

    def validate(self) -> List[str]:
        """Validate configuration and return list of issues."""
        issues = []
        if not self.universe:
            issues.append('Universe is empty')
        try:
            if self.start >= self.end:
                issues.append('start_date must be before end_date')
        except ValueError:
            issues.append(f'Invalid date range: {self.start_date} to {self.end_date}')
        if self.initial_capital <= 0:
            issues.append('initial_capital must be positive')
        if not 0 < self.risk_per_trade <= 1:
            issues.append('risk_per_trade must be in (0, 1]')
        if self.max_open_positions < 1:
            issues.append('max_open_positions must be at least 1')
        if self.max_per_sector is not None and self.max_per_sector < 1:
            issues.append('max_per_sector must be at least 1 when set')
        if not 0 < self.max_total_risk <= 1:
            issues.append('max_total_risk must be in (0, 1]')
        if not 0 < self.max_position_percent <= 1:
            issues.append('max_position_percent must be in (0, 1]')

        if len(self.tp_ratios) != 3 or len(self.tp_sizes) != 3:
            issues.append('tp_ratios and tp_sizes must have exactly three tranches')
        else:
            if any(s < 0 for s in self.tp_sizes):
                issues.append(f'Tranche fractions must be non-negative: {self.tp_sizes}')
            if abs(sum(self.tp_sizes) - 1.0) > TRANCHE_SUM_TOLERANCE:
                issues.append(f'Tranche fractions must sum to 1.0: {self.tp_sizes}')
            if not (0 < self.tp_ratios[0] < self.tp_ratios[1] < self.tp_ratios[2]):
                issues.append(f'tp_ratios must be positive and increasing: {self.tp_ratios}')

        if self.max_holding_days is not None and self.max_holding_days < 1:
            issues.append('max_holding_days must be at least 1 when set')
        if not 0 < self.trailing_stop_distance < 1:
            issues.append('trailing_stop_distance must be in (0, 1)')
        if self.slippage_percent < 0 or self.commission_per_share < 0:
            issues.append('slippage_percent and commission_per_share must be non-negative')
        if not isinstance(self.gap_handling, GapHandling):
            issues.append(f'Invalid gap_handling: {self.gap_handling}')
        if self.max_slippage_r <= 0:
            issues.append('max_slippage_r must be positive')
        if self.stop_loss_multiplier is not None and not 0 < self.stop_loss_multiplier <= 1:
            issues.append('stop_loss_multiplier must be in (0, 1] when set')
        if self.batch_size < 1:
            issues.append('batch_size must be at least 1')
        if self.max_retries < 0:
            issues.append('max_retries must be non-negative')
        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = dataclasses.asdict(self)
        data['gap_handling'] = self.gap_handling.value
        data['tp_ratios'] = list(self.tp_ratios)
        data['tp_sizes'] = list(self.tp_sizes)
        return data


def create_default_config(
    universe: List[str],
    start_date: str,
    end_date: str,
    **overrides: Any,
) -> BacktestConfig:
    """
    Build a config with production defaults for a universe and date range.

    Args:
        universe: Tickers to trade
        start_date: First calendar day (YYYY-MM-DD)
        end_date: Last calendar day (YYYY-MM-DD), inclusive
        **overrides: Any other BacktestConfig field

    Returns:
        Validated BacktestConfig
    """
    name = overrides.pop('name', f'Backtest {start_date} to {end_date}')
    return BacktestConfig(
        name=name,
        universe=list(universe),
        start_date=start_date,
        end_date=end_date,
        **overrides,
    )


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value, '%Y-%m-%d').date()
