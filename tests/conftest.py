"""
Shared fixtures: an in-memory venue that records every call.
"""

import logging
from collections import deque
from typing import Deque, Dict, List, Optional, Union

import pytest

from cexarb.config import ExecutionConfig, FeeTable, StrategyConfig, SymbolMap, WalletBook
from cexarb.models import Balance, ExecutionResult, FeeQuote
from cexarb.venue import ExchangeAdapter


class FakeVenue(ExchangeAdapter):
    """
    Scripted venue. Balances per asset can be a fixed value or a queue of
    successive readings (the last reading repeats once the queue is empty).
    """

    def __init__(self, name: str, price: Optional[float] = None, maker_fee: float = 0.1,
                 taker_fee: float = 0.2, address: Optional[str] = "0xdeposit"):
        self.name = name
        self.price = price
        self.maker_fee = maker_fee
        self.taker_fee = taker_fee
        self.address = address
        self.price_error: Optional[Exception] = None
        self.fee_error: Optional[Exception] = None
        self.balances: Dict[str, Deque[Union[float, Exception]]] = {}
        self.trade_results: Deque[ExecutionResult] = deque()
        self.withdraw_results: Deque[ExecutionResult] = deque()
        self.calls: List[tuple] = []

    def set_balance(self, asset: str, *readings: Union[float, Exception]):
        self.balances[asset] = deque(readings)

    async def get_price(self, base, quote):
        self.calls.append(("get_price", base, quote))
        if self.price_error:
            raise self.price_error
        return self.price

    async def get_trading_fee_rate(self, base, quote):
        self.calls.append(("get_trading_fee_rate", base, quote))
        if self.fee_error:
            raise self.fee_error
        return FeeQuote(venue=self.name, maker_fee_pct=self.maker_fee, taker_fee_pct=self.taker_fee)

    async def get_balance_by_asset(self, asset):
        self.calls.append(("get_balance_by_asset", asset))
        readings = self.balances.get(asset)
        if not readings:
            return Balance(free=0.0)
        value = readings.popleft() if len(readings) > 1 else readings[0]
        if isinstance(value, Exception):
            raise value
        return Balance(free=value)

    async def spot_trade_tokens(self, base, quote, side, size, price=None):
        self.calls.append(("spot_trade_tokens", base, quote, side, size, price))
        if self.trade_results:
            return self.trade_results.popleft()
        return ExecutionResult(code=0, message=f"{side} ok")

    async def withdraw_token(self, asset, amount, address, network):
        self.calls.append(("withdraw_token", asset, amount, address, network))
        if self.withdraw_results:
            return self.withdraw_results.popleft()
        return ExecutionResult(code=1, message="withdraw ok")

    async def get_wallet_address(self, asset, network):
        self.calls.append(("get_wallet_address", asset, network))
        return self.address

    def called(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]


@pytest.fixture
def logger():
    return logging.getLogger("cexarb.tests")


@pytest.fixture
def execution_config():
    return ExecutionConfig(
        poll_interval_seconds=0,
        max_poll_attempts=5,
        withdraw_buffer={"USDT": 2.5},
    )


@pytest.fixture
def strategy_config():
    return StrategyConfig(profit_threshold=1.0, loss_alert_threshold=-5.0)


@pytest.fixture
def fee_table():
    return FeeTable(withdraw={"btse": {"TRUMP": 4.54, "USDT": 2}}, default=0.005, sell_side_withdraw_fee=2.5)


@pytest.fixture
def symbol_map():
    return SymbolMap({"coinex": {"TRUMP": "MAGATRUMP", "TRAC": "TRACBRC"}})


@pytest.fixture
def wallet_book():
    return WalletBook()


@pytest.fixture
def btse():
    return FakeVenue("btse", price=100.0)


@pytest.fixture
def coinex():
    return FakeVenue("coinex", price=105.0)


@pytest.fixture
def make_venue():
    return FakeVenue
