"""
Trade - Full lifecycle record of one simulated swing position

Pure data container holding everything the exit engine, the simulator
and the metrics calculator need: entry economics, take-profit levels,
partial-exit history, excursions and final outcome.

The simulator mutates a Trade only through apply_partial_exit() and
close(); once CLOSED the record is final.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Dict, Any, List


class ExitReason(str, Enum):
    """Reason for a partial or full exit."""
    STOP_LOSS = "STOP_LOSS"
    TP1 = "TP1"
    TP2 = "TP2"
    TP3 = "TP3"
    TIME_EXIT = "TIME_EXIT"
    TRAILING_STOP = "TRAILING_STOP"
    SIGNAL_EXIT = "SIGNAL_EXIT"
    MANUAL = "MANUAL"


class Regime(str, Enum):
    """Coarse market-condition label attached to signals and trades."""
    BULL = "BULL"
    CHOPPY = "CHOPPY"
    CRASH = "CRASH"


class TradeStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass
class PartialExitRecord:
    """One tranche sold before the trade closed."""
    date: date
    price: float         # Slippage-adjusted fill
    shares: int
    reason: ExitReason
    pnl: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'price': self.price,
            'shares': self.shares,
            'reason': self.reason.value,
            'pnl': self.pnl,
        }


@dataclass
class Trade:
    """
    A simulated swing position from entry to final exit.

    Invariant: sum(partial exit shares) + shares + exit_shares == initial_shares
    (shares drops to zero and exit_shares is set by close()).
    Tranche sizing always uses initial_shares, never the remaining count.
    """

    # ── Identifiers ─────────────────────────────────────────────────
    trade_id: str
    ticker: str

    # ── Entry ───────────────────────────────────────────────────────
    signal_date: date
    entry_date: date
    entry_price: float               # Post-slippage fill
    entry_probability: float
    shares: int                      # Remaining shares (reduced by partials)
    initial_shares: int = 0          # Original share count (constant)
    position_value: float = 0.0
    stop_loss: float = 0.0

    # ── Targets ─────────────────────────────────────────────────────
    tp1: float = 0.0
    tp2: float = 0.0
    tp3: float = 0.0

    # ── Partial Exits ───────────────────────────────────────────────
    partial_exits: List[PartialExitRecord] = field(default_factory=list)

    # ── Exit ────────────────────────────────────────────────────────
    exit_date: Optional[date] = None
    exit_price: Optional[float] = None
    exit_reason: Optional[ExitReason] = None
    exit_shares: int = 0             # Shares sold by the closing fill

    # ── Performance ─────────────────────────────────────────────────
    realized_r: Optional[float] = None
    realized_pnl: Optional[float] = None
    realized_pnl_percent: Optional[float] = None
    holding_days: Optional[int] = None

    # ── Excursion ───────────────────────────────────────────────────
    mfe: Optional[float] = None
    mae: Optional[float] = None
    mfe_r: Optional[float] = None
    mae_r: Optional[float] = None

    # ── Context ─────────────────────────────────────────────────────
    regime: Regime = Regime.CHOPPY
    sector: Optional[str] = None
    status: TradeStatus = TradeStatus.OPEN

    def __post_init__(self):
        """Initialize computed fields."""
        if self.initial_shares == 0:
            self.initial_shares = self.shares
        if self.position_value == 0.0:
            self.position_value = self.entry_price * self.shares

    @property
    def risk_per_share(self) -> float:
        """Entry minus stop (the trade's R unit)."""
        return self.entry_price - self.stop_loss

    @property
    def is_open(self) -> bool:
        return self.status == TradeStatus.OPEN

    @property
    def exited_shares(self) -> int:
        """Shares sold through partial exits so far."""
        return sum(p.shares for p in self.partial_exits)

    def tranche_taken(self, reason: ExitReason) -> bool:
        """Whether a partial exit with this reason has been recorded."""
        return any(p.reason == reason for p in self.partial_exits)

    def holding_days_at(self, as_of: date) -> int:
        """Calendar days since entry, rounded up."""
        return int(math.ceil((as_of - self.entry_date).days))

    def update_excursion(self, high: float, low: float) -> None:
        """
        Update max favorable / adverse excursion with a day's range.

        R-multiples are only recorded when the trade has positive risk.
        """
        risk = self.risk_per_share
        if high > (self.mfe if self.mfe is not None else self.entry_price):
            self.mfe = high
            if risk > 0:
                self.mfe_r = (high - self.entry_price) / risk
        if low < (self.mae if self.mae is not None else self.entry_price):
            self.mae = low
            if risk > 0:
                self.mae_r = (self.entry_price - low) / risk

    def apply_partial_exit(
        self,
        exit_date: date,
        fill_price: float,
        shares: int,
        reason: ExitReason,
    ) -> float:
        """
        Sell one tranche.

        Args:
            exit_date: Date of the fill
            fill_price: Slippage-adjusted sell price
            shares: Shares sold (1..remaining)
            reason: Tranche reason (TP1 / TP2)

        Returns:
            Realized P&L of the tranche (before commission)

        Raises:
            ValueError: If the trade is closed or shares is out of range
        """
        if not self.is_open:
            raise ValueError(f"Trade {self.trade_id} is already closed")
        if shares <= 0 or shares > self.shares:
            raise ValueError(
                f"Trade {self.trade_id}: cannot sell {shares} of {self.shares} remaining shares"
            )

        pnl = (fill_price - self.entry_price) * shares
        self.partial_exits.append(PartialExitRecord(
            date=exit_date,
            price=fill_price,
            shares=shares,
            reason=reason,
            pnl=pnl,
        ))
        self.shares -= shares
        return pnl

    def close(self, exit_date: date, fill_price: float, reason: ExitReason) -> float:
        """
        Close the remaining shares and finalize performance fields.

        Realized R is the shares-weighted average of every fill (partials
        included) versus entry, divided by the entry-to-stop risk.

        Returns:
            Realized P&L of the remaining shares (before commission)

        Raises:
            ValueError: If the trade is already closed
        """
        if not self.is_open:
            raise ValueError(f"Trade {self.trade_id} is already closed")

        remaining = self.shares
        final_pnl = (fill_price - self.entry_price) * remaining
        partial_pnl = sum(p.pnl for p in self.partial_exits)

        self.realized_pnl = partial_pnl + final_pnl
        cost_basis = self.entry_price * self.initial_shares
        self.realized_pnl_percent = (self.realized_pnl / cost_basis * 100) if cost_basis > 0 else 0.0

        risk = self.risk_per_share
        if risk > 0 and self.initial_shares > 0:
            filled_value = fill_price * remaining + sum(p.price * p.shares for p in self.partial_exits)
            avg_exit = filled_value / self.initial_shares
            self.realized_r = (avg_exit - self.entry_price) / risk
        else:
            self.realized_r = 0.0

        self.exit_date = exit_date
        self.exit_price = fill_price
        self.exit_reason = reason
        self.exit_shares = remaining
        self.holding_days = self.holding_days_at(exit_date)
        self.shares = 0
        self.status = TradeStatus.CLOSED
        return final_pnl

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'trade_id': self.trade_id,
            'ticker': self.ticker,
            'signal_date': self.signal_date.isoformat(),
            'entry_date': self.entry_date.isoformat(),
            'entry_price': self.entry_price,
            'entry_probability': self.entry_probability,
            'shares': self.shares,
            'initial_shares': self.initial_shares,
            'position_value': self.position_value,
            'stop_loss': self.stop_loss,
            'tp1': self.tp1,
            'tp2': self.tp2,
            'tp3': self.tp3,
            'partial_exits': [p.to_dict() for p in self.partial_exits],
            'exit_date': self.exit_date.isoformat() if self.exit_date else None,
            'exit_price': self.exit_price,
            'exit_reason': self.exit_reason.value if self.exit_reason else None,
            'exit_shares': self.exit_shares,
            'realized_r': self.realized_r,
            'realized_pnl': self.realized_pnl,
            'realized_pnl_percent': self.realized_pnl_percent,
            'holding_days': self.holding_days,
            'mfe': self.mfe,
            'mae': self.mae,
            'mfe_r': self.mfe_r,
            'mae_r': self.mae_r,
            'regime': self.regime.value,
            'sector': self.sector,
            'status': self.status.value,
        }


@dataclass
class EquityPoint:
    """One day's portfolio snapshot."""
    date: date
    equity: float
    drawdown: float = 0.0
    drawdown_percent: float = 0.0
    open_positions: int = 0
    daily_pnl: float = 0.0
    daily_return: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'equity': self.equity,
            'drawdown': self.drawdown,
            'drawdown_percent': self.drawdown_percent,
            'open_positions': self.open_positions,
            'daily_pnl': self.daily_pnl,
            'daily_return': self.daily_return,
        }
