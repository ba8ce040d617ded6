# cexarb/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

# Sentinel code venues use to report a failed order or withdrawal
FAILURE_CODE = -1


class ExecutionState(Enum):
    """
    Lifecycle states of one arbitrage execution.
    FAILED is absorbing and reachable from every step.
    """
    IDLE = "IDLE"
    BUY_PLACED = "BUY_PLACED"
    AWAIT_BUY_SETTLEMENT = "AWAIT_BUY_SETTLEMENT"
    WITHDRAW_INITIATED = "WITHDRAW_INITIATED"
    AWAIT_DEPOSIT_SETTLEMENT = "AWAIT_DEPOSIT_SETTLEMENT"
    SELL_PLACED = "SELL_PLACED"
    DONE = "DONE"
    FAILED = "FAILED"


class Decision(Enum):
    EXECUTE = "EXECUTE"
    ALERT = "ALERT"
    SKIP = "SKIP"


@dataclass(frozen=True, slots=True)
class Quote:
    venue: str
    price: float


@dataclass(frozen=True, slots=True)
class FeeQuote:
    """Trading fees in percent (0.1 means 0.1%)."""
    venue: str
    maker_fee_pct: float
    taker_fee_pct: float


@dataclass(frozen=True, slots=True)
class Balance:
    free: float
    locked: float = 0.0


@dataclass(frozen=True, slots=True)
class RankedPair:
    """
    Two venues ranked by price, highest first.
    The asset is bought on `buy` and sold back on `sell`.
    """
    sell: Quote
    buy: Quote
    sell_fee: FeeQuote
    buy_fee: FeeQuote

    @property
    def spread(self) -> float:
        return self.sell.price - self.buy.price


@dataclass(frozen=True, slots=True)
class ArbitragePlan:
    """
    Everything the margin calculator and the orchestrator need for one tick.
    Computed fresh every tick and consumed once.
    """
    base: str
    quote: str
    trade_amount: float
    buy_venue: str
    sell_venue: str
    buy_price: float
    sell_price: float
    buy_fee_pct: float
    sell_fee_pct: float
    withdraw_fee_base: float

    @property
    def symbol(self) -> str:
        return f"{self.base}/{self.quote}"


@dataclass(frozen=True, slots=True)
class MarginResult:
    tradeable_buy_amount: float
    base_received: float
    base_after_withdraw_fee: float
    tradeable_sell_amount: float
    quote_received: float
    final_quote_amount: float
    net_profit: float
    profit_pct: float


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Response of a single venue call (order placement or withdrawal)."""
    code: int
    message: str

    @property
    def ok(self) -> bool:
        return self.code != FAILURE_CODE

    @classmethod
    def failure(cls, message: str) -> "ExecutionResult":
        return cls(code=FAILURE_CODE, message=message)


@dataclass(slots=True)
class ExecutionReport:
    """
    Outcome of one run of the orchestrator.
    `last_state` is the step that was in progress when the run stopped.
    """
    plan: ArbitragePlan
    state: ExecutionState = ExecutionState.IDLE
    last_state: ExecutionState = ExecutionState.IDLE
    buy_size: float = 0.0
    withdrawn_amount: float = 0.0
    sold_amount: float = 0.0
    results: List[ExecutionResult] = field(default_factory=list)
    reason: Optional[str] = None
    simulated: bool = False
    return_result: Optional[ExecutionResult] = None

    @property
    def succeeded(self) -> bool:
        return self.state is ExecutionState.DONE


@dataclass(slots=True)
class TickOutcome:
    """What a single scan tick ended up doing."""
    base: str
    quote: str
    decision: Optional[Decision] = None
    plan: Optional[ArbitragePlan] = None
    margin: Optional[MarginResult] = None
    report: Optional[ExecutionReport] = None
    skipped_reason: Optional[str] = None
    confirmed: Optional[bool] = None
