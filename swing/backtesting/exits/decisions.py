"""
Exit Decisions - Result type of the exit engine

An exit decision is exactly one of:
- NoAction:    nothing to do today
- PartialExit: sell a tranche (price, shares, reason)
- FullExit:    close whatever shares remain (price, reason)

Prices are raw trigger prices; slippage and commission are applied by
the simulator when the decision is executed.
"""

from dataclasses import dataclass
from typing import Union

from swing.backtesting.simulation.position_tracker import ExitReason


@dataclass(frozen=True)
class NoAction:
    """No exit condition met."""
    details: str = ""


@dataclass(frozen=True)
class PartialExit:
    """Sell part of the position; the trade stays open."""
    price: float
    shares: int
    reason: ExitReason
    details: str = ""


@dataclass(frozen=True)
class FullExit:
    """Close the remaining position."""
    price: float
    reason: ExitReason
    details: str = ""


ExitDecision = Union[NoAction, PartialExit, FullExit]
